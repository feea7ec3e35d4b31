"""Network transfer capture and the per-pass image record index."""

from __future__ import annotations

import asyncio
import logging
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Optional, Set

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page, Request

from .models import NetworkRecord
from .utils import is_image_mime, normalize_url

logger = logging.getLogger("image_usage")


def _optional_number(value: Any) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return value


def _project(transfer: Mapping[str, Any], url: str) -> NetworkRecord:
    resource_size = _optional_number(transfer.get("resourceSize"))
    headers = transfer.get("requestHeaders")
    return NetworkRecord(
        url=url,
        resource_size=int(resource_size) if resource_size is not None else None,
        start_time=_optional_number(transfer.get("startTime")),
        end_time=_optional_number(transfer.get("endTime")),
        response_received_time=_optional_number(transfer.get("responseReceivedTime")),
        request_headers=dict(headers) if isinstance(headers, Mapping) else {},
    )


def index_network_records(
    transfers: Optional[Iterable[Mapping[str, Any]]],
    base_url: Optional[str] = None,
) -> Mapping[str, NetworkRecord]:
    """Map absolute image URLs to their reduced transfer records.

    Non-image transfers are ignored. When a URL was fetched more than once the
    last transfer seen wins; only one of them can back the rendered element.
    The returned mapping is read-only.
    """
    indexed: Dict[str, NetworkRecord] = {}
    for transfer in transfers or ():
        if not isinstance(transfer, Mapping):
            logger.debug("Skipping non-mapping transfer %r", transfer)
            continue
        raw_url = transfer.get("url")
        if not isinstance(raw_url, str) or not raw_url:
            logger.debug("Skipping transfer without a URL")
            continue
        if not is_image_mime(transfer.get("mimeType")):
            continue
        key = normalize_url(raw_url, base_url)
        indexed[key] = _project(transfer, key)
    logger.debug("Indexed %d image transfers", len(indexed))
    return MappingProxyType(indexed)


def transfer_from_timing(
    url: str,
    mime_type: Optional[str],
    timing: Mapping[str, Any],
    resource_size: Optional[int] = None,
    request_headers: Optional[Mapping[str, str]] = None,
) -> Dict[str, Any]:
    """Build a raw transfer dict from Playwright ``Request.timing`` data.

    Playwright reports ``startTime`` in epoch milliseconds and every other
    entry in milliseconds relative to it, with ``-1`` meaning unavailable.
    """
    start_ms = timing.get("startTime")
    start_time = start_ms / 1000 if isinstance(start_ms, (int, float)) else None

    def _offset(key: str) -> Optional[float]:
        value = timing.get(key)
        if start_time is None or not isinstance(value, (int, float)) or value < 0:
            return None
        return start_time + value / 1000

    transfer: Dict[str, Any] = {
        "url": url,
        "mimeType": mime_type or "",
        "resourceSize": resource_size,
        "startTime": start_time,
        "endTime": _offset("responseEnd"),
        "requestHeaders": dict(request_headers or {}),
    }
    received = _offset("responseStart")
    if received is not None:
        transfer["responseReceivedTime"] = received
    return transfer


class NetworkCapture:
    """Record finished requests of a Playwright page as raw transfers."""

    def __init__(self) -> None:
        self.transfers: List[Dict[str, Any]] = []
        self._pending: Set[asyncio.Task] = set()

    def attach(self, page: Page) -> None:
        def on_request_finished(request: Request) -> None:
            task = asyncio.ensure_future(self._record(request))
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)

        page.on("requestfinished", on_request_finished)

    async def _record(self, request: Request) -> None:
        try:
            response = await request.response()
        except PlaywrightError as exc:
            logger.debug("No response for %s: %s", request.url, exc)
            return
        if response is None:
            return
        mime_type = response.headers.get("content-type", "")
        resource_size: Optional[int] = None
        if is_image_mime(mime_type):
            try:
                resource_size = len(await response.body())
            except PlaywrightError as exc:
                logger.debug("Could not read body of %s: %s", request.url, exc)
        self.transfers.append(
            transfer_from_timing(
                request.url,
                mime_type,
                request.timing,
                resource_size=resource_size,
                request_headers=request.headers,
            )
        )

    async def drain(self) -> List[Dict[str, Any]]:
        """Wait for in-flight handlers and return the captured transfers."""
        while self._pending:
            await asyncio.gather(*list(self._pending))
        return list(self.transfers)
