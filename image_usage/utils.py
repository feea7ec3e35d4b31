"""Utility helpers for URL normalization and MIME classification."""

from __future__ import annotations

import logging
from typing import List, Optional
from urllib.parse import urljoin, urlsplit

from .errors import MalformedUrlError

logger = logging.getLogger("image_usage")

IMAGE_MIME_PREFIX = "image/"


def resolve_url(url: str, base_url: Optional[str]) -> str:
    """Resolve ``url`` against ``base_url`` or raise ``MalformedUrlError``."""
    candidate = url.strip()
    try:
        resolved = urljoin(base_url or "", candidate)
        parts = urlsplit(resolved)
        # Accessing the port validates the authority component.
        parts.port
    except ValueError as exc:
        raise MalformedUrlError(url, str(exc)) from exc
    return resolved


def normalize_url(url: str, base_url: Optional[str]) -> str:
    """Return an absolute, comparable key for ``url``.

    Malformed input is returned unchanged, so the result is a best-effort key
    rather than a validated URL. An empty URL stays empty instead of collapsing
    onto the base document.
    """
    if not url:
        return ""
    try:
        return resolve_url(url, base_url)
    except MalformedUrlError as exc:
        logger.debug("Keeping raw URL as key: %s", exc)
        return url


def parse_srcset_urls(srcset: str, base_url: Optional[str]) -> List[str]:
    """Extract candidate URLs from a ``srcset`` attribute, in declared order."""
    if not srcset:
        return []
    urls: List[str] = []
    for entry in srcset.split(","):
        tokens = entry.strip().split(" ")
        urls.append(normalize_url(tokens[0], base_url))
    return urls


def is_image_mime(mime_type: Optional[str]) -> bool:
    """Check whether a MIME/content-type string belongs to the image family."""
    if not mime_type:
        return False
    media_type = mime_type.split(";")[0].strip().lower()
    return media_type.startswith(IMAGE_MIME_PREFIX)
