"""Element snapshot collected inside the page and its host-side parsing."""

from __future__ import annotations

import json
import logging
import math
from dataclasses import fields
from typing import Any, Awaitable, Callable, List, Mapping, Optional

from .errors import RemoteEvaluationError, SnapshotUnavailableError
from .models import AnyElement, ElementDescriptor, GroupedElement
from .utils import parse_srcset_urls

logger = logging.getLogger("image_usage")

Evaluator = Callable[[str, Any], Awaitable[Any]]

# Runs inside the page. `img` tags within `picture` report the picture's
# rendered size but not necessarily an accurate natural size, so the matching
# sources are collected alongside the chosen tag.
COLLECT_IMAGE_TAGS_JS = """
() => {
  function parseSrcsetUrls(srcset) {
    if (!srcset) {
      return [];
    }
    return srcset.split(',').map(entry => {
      const url = entry.trim().split(' ')[0];
      try {
        return new URL(url, document.baseURI).href;
      } catch (err) {
        return url;
      }
    });
  }

  function toObject(tag) {
    return {
      tagName: tag.tagName,
      effectiveSrc: tag.currentSrc || '',
      srcsetRaw: tag.srcset || '',
      srcsetCandidateUrls: parseSrcsetUrls(tag.srcset),
      sizesRaw: tag.sizes || '',
      mediaRaw: tag.media || '',
      renderedWidth: tag.clientWidth || 0,
      renderedHeight: tag.clientHeight || 0,
      reportedIntrinsicWidth: tag.naturalWidth || 0,
      reportedIntrinsicHeight: tag.naturalHeight || 0,
    };
  }

  return [...document.querySelectorAll('img')].map(tag => {
    const parent = tag.parentElement;
    if (!parent || parent.tagName !== 'PICTURE') {
      return Object.assign(toObject(tag), {isPicture: false});
    }

    const imgTagInfo = toObject(tag);
    const sources = [...parent.children]
        .filter(child => child.tagName === 'SOURCE')
        .filter(child => !child.media || window.matchMedia(child.media).matches)
        .map(toObject)
        .concat(imgTagInfo);
    return Object.assign({}, imgTagInfo, {
      isPicture: true,
      sources: JSON.stringify(sources),
    });
  });
}
"""

_STRING_FIELDS = {
    "effective_src": "effectiveSrc",
    "srcset_raw": "srcsetRaw",
    "sizes_raw": "sizesRaw",
    "media_raw": "mediaRaw",
}

_INT_FIELDS = {
    "rendered_width": "renderedWidth",
    "rendered_height": "renderedHeight",
    "reported_intrinsic_width": "reportedIntrinsicWidth",
    "reported_intrinsic_height": "reportedIntrinsicHeight",
}


def _read_string(raw: Mapping[str, Any], key: str) -> str:
    value = raw.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise SnapshotUnavailableError(
            f"Snapshot field {key!r} must be a string, got {type(value).__name__}"
        )
    return value


def _read_dimension(raw: Mapping[str, Any], key: str) -> int:
    value = raw.get(key)
    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise SnapshotUnavailableError(
            f"Snapshot field {key!r} must be a number, got {type(value).__name__}"
        )
    if not math.isfinite(value):
        raise SnapshotUnavailableError(
            f"Snapshot field {key!r} must be a finite number, got {value}"
        )
    return max(int(value), 0)


def _read_candidate_urls(
    raw: Mapping[str, Any], srcset_raw: str, base_url: Optional[str]
) -> List[str]:
    value = raw.get("srcsetCandidateUrls")
    if value is None:
        return parse_srcset_urls(srcset_raw, base_url)
    if not isinstance(value, list) or not all(isinstance(u, str) for u in value):
        raise SnapshotUnavailableError(
            "Snapshot field 'srcsetCandidateUrls' must be a list of strings"
        )
    return list(value)


def _read_descriptor(raw: Any, base_url: Optional[str]) -> ElementDescriptor:
    if not isinstance(raw, Mapping):
        raise SnapshotUnavailableError(
            f"Snapshot entry must be an object, got {type(raw).__name__}"
        )
    tag_name = raw.get("tagName")
    if not isinstance(tag_name, str) or not tag_name:
        raise SnapshotUnavailableError("Snapshot entry is missing 'tagName'")

    kwargs: dict = {"tag_name": tag_name.upper()}
    for attr, key in _STRING_FIELDS.items():
        kwargs[attr] = _read_string(raw, key)
    for attr, key in _INT_FIELDS.items():
        kwargs[attr] = _read_dimension(raw, key)
    kwargs["srcset_candidate_urls"] = _read_candidate_urls(
        raw, kwargs["srcset_raw"], base_url
    )
    return ElementDescriptor(**kwargs)


def _rehydrate_sources(raw: Mapping[str, Any]) -> List[Any]:
    sources = raw.get("sources")
    if sources is None:
        return []
    if isinstance(sources, str):
        try:
            sources = json.loads(sources)
        except json.JSONDecodeError as exc:
            raise SnapshotUnavailableError(
                f"Snapshot 'sources' is not valid JSON: {exc}"
            ) from exc
    if not isinstance(sources, list):
        raise SnapshotUnavailableError("Snapshot 'sources' must be a list")
    return sources


def _read_element(raw: Any, base_url: Optional[str]) -> AnyElement:
    element = _read_descriptor(raw, base_url)
    if not raw.get("isPicture"):
        return element

    alternatives = [
        _read_descriptor(source, base_url) for source in _rehydrate_sources(raw)
    ]
    if not alternatives:
        alternatives = [element]
    values = {f.name: getattr(element, f.name) for f in fields(element)}
    return GroupedElement(alternatives=alternatives, **values)


def parse_snapshot(payload: Any, base_url: Optional[str] = None) -> List[AnyElement]:
    """Convert the raw page snapshot into element descriptors, in page order."""
    if not isinstance(payload, list):
        raise SnapshotUnavailableError(
            f"Snapshot must be a list, got {type(payload).__name__}"
        )
    return [_read_element(raw, base_url) for raw in payload]


async def read_snapshot(
    evaluate: Evaluator, base_url: Optional[str] = None
) -> List[AnyElement]:
    """Collect image-bearing elements from the page behind ``evaluate``."""
    try:
        payload = await evaluate(COLLECT_IMAGE_TAGS_JS, None)
    except RemoteEvaluationError as exc:
        raise SnapshotUnavailableError(f"Snapshot script failed: {exc}") from exc
    elements = parse_snapshot(payload, base_url)
    logger.debug("Snapshot returned %d image elements", len(elements))
    return elements
