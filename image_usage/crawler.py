"""High-level orchestration for rendering pages and gathering image usage."""

from __future__ import annotations

import logging
import time
from typing import Any, Iterable, List, Mapping, Optional

from playwright.async_api import (
    Error as PlaywrightError,
    Page,
    Playwright,
    TimeoutError as PlaywrightTimeoutError,
    async_playwright,
)

from .config import AuditConfig
from .correlate import correlate
from .errors import HostDisconnectedError, ImageUsageError, RemoteEvaluationError
from .images import SizeResolver
from .models import AuditResult, ImageUsageRecord
from .network import NetworkCapture, index_network_records
from .pipeline import DEFAULT_STRATEGY, EnrichmentStrategy, enrich
from .snapshot import Evaluator, read_snapshot

logger = logging.getLogger("image_usage")

BASE_URL_JS = "() => document.baseURI"

TARGET_CLOSED = "TargetClosedError"


def _is_disconnect(page: Page, exc: PlaywrightError) -> bool:
    # Playwright reports a closed target either by name or by subclass.
    return (
        page.is_closed()
        or exc.name == TARGET_CLOSED
        or type(exc).__name__ == TARGET_CLOSED
    )


def page_evaluator(page: Page) -> Evaluator:
    """Adapt a Playwright page to the evaluator capability used by a pass."""

    async def evaluate(expression: str, arg: Any = None) -> Any:
        if page.is_closed():
            raise HostDisconnectedError(f"Page {page.url} is closed")
        try:
            return await page.evaluate(expression, arg)
        except PlaywrightError as exc:
            if _is_disconnect(page, exc):
                raise HostDisconnectedError(exc.message) from exc
            raise RemoteEvaluationError(exc.message) from exc

    return evaluate


async def gather_image_usage(
    evaluate: Evaluator,
    transfers: Optional[Iterable[Mapping[str, Any]]],
    base_url: Optional[str] = None,
    strategy: EnrichmentStrategy = DEFAULT_STRATEGY,
) -> List[ImageUsageRecord]:
    """Run one pass: snapshot, correlate with the network, then enrich.

    Fatal errors propagate unchanged; no partial record list is returned.
    """
    index = index_network_records(transfers, base_url)
    elements = await read_snapshot(evaluate, base_url)
    records = correlate(elements, index, base_url)
    matched = sum(1 for record in records if record.network_record is not None)
    logger.info(
        "Correlated %d images with %d image transfers (%d matched)",
        len(records),
        len(index),
        matched,
    )
    return await enrich(records, SizeResolver(evaluate), strategy)


async def audit_page(
    playwright: Playwright,
    url: str,
    config: AuditConfig,
) -> AuditResult:
    """Load a URL while capturing the network and gather its image usage."""
    start = time.perf_counter()
    browser = await playwright.chromium.launch(headless=config.headless)
    try:
        page = await browser.new_page(
            viewport={
                "width": config.viewport_width,
                "height": config.viewport_height,
            }
        )
        page.set_default_navigation_timeout(config.navigation_timeout * 1000)
        capture = NetworkCapture()
        capture.attach(page)

        logger.info("Loading %s", url)
        await page.goto(url, wait_until="networkidle")
        if config.wait_after_load:
            await page.wait_for_timeout(int(config.wait_after_load * 1000))
        transfers = await capture.drain()

        evaluate = page_evaluator(page)
        try:
            base_url = await evaluate(BASE_URL_JS, None)
        except RemoteEvaluationError:
            base_url = page.url
        records = await gather_image_usage(
            evaluate, transfers, base_url, config.strategy
        )
        final_url = page.url
    finally:
        await browser.close()
    return AuditResult(
        url=url,
        final_url=final_url,
        records=records,
        total_seconds=time.perf_counter() - start,
    )


async def run_audit(urls: List[str], config: AuditConfig) -> List[AuditResult]:
    """Audit each URL sequentially; failed passes are logged and skipped."""
    results: List[AuditResult] = []
    async with async_playwright() as playwright:
        for url in urls:
            try:
                result = await audit_page(playwright, url, config)
            except PlaywrightTimeoutError as exc:
                logger.error("Timeout while loading %s: %s", url, exc)
                continue
            except ImageUsageError as exc:
                logger.error("Image usage pass failed for %s: %s", url, exc)
                continue
            except Exception:  # pylint: disable=broad-except
                logger.exception("Unexpected error auditing %s", url)
                continue
            logger.info(
                "Collected %d images from %s in %.2fs",
                len(result.records),
                url,
                result.total_seconds,
            )
            results.append(result)
    return results
