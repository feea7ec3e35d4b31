from __future__ import annotations

import json
from typing import Any, List

import pytest
from playwright.async_api import Error as PlaywrightError

from image_usage.crawler import gather_image_usage, page_evaluator
from image_usage.errors import (
    HostDisconnectedError,
    RemoteEvaluationError,
    SnapshotUnavailableError,
)
from image_usage.images import DETERMINE_NATURAL_SIZE_JS
from image_usage.pipeline import EnrichmentStrategy
from image_usage.snapshot import COLLECT_IMAGE_TAGS_JS

BASE = "https://example.com/"


def _tag(src: str, picture: bool = False) -> dict:
    tag = {
        "tagName": "IMG",
        "effectiveSrc": src,
        "renderedWidth": 50,
        "renderedHeight": 25,
        "reportedIntrinsicWidth": 0 if picture else 100,
        "reportedIntrinsicHeight": 0 if picture else 50,
        "isPicture": picture,
    }
    if picture:
        tag["sources"] = json.dumps([{"tagName": "IMG", "effectiveSrc": src}])
    return tag


def _transfer(url: str, mime: str = "image/png") -> dict:
    return {"url": url, "mimeType": mime, "resourceSize": 1234, "startTime": 1.0, "endTime": 2.0}


def _named_error(message: str, name: str) -> PlaywrightError:
    error = PlaywrightError(message)
    # The connection layer fills in the name reported by the Playwright server.
    error._name = name
    return error


class FakePage:
    """Stand-in for a Playwright page: answers snapshot and size requests."""

    def __init__(self, tags: List[dict], sizes: dict, broken: tuple = ()) -> None:
        self.tags = tags
        self.sizes = sizes
        self.broken = broken
        self.size_requests: List[str] = []

    async def evaluate(self, expression: str, arg: Any = None) -> Any:
        if expression == COLLECT_IMAGE_TAGS_JS:
            return self.tags
        if expression == DETERMINE_NATURAL_SIZE_JS:
            self.size_requests.append(arg)
            if arg in self.broken:
                raise RemoteEvaluationError("Error: ImageLoadError: could not decode " + arg)
            return self.sizes[arg]
        raise AssertionError(f"unexpected expression {expression!r}")


@pytest.mark.asyncio
@pytest.mark.parametrize("strategy", list(EnrichmentStrategy))
async def test_gather_image_usage_end_to_end(strategy: EnrichmentStrategy) -> None:
    page = FakePage(
        tags=[
            _tag("https://example.com/plain.png"),
            _tag("https://example.com/pic.png", picture=True),
            _tag(""),
            _tag("https://example.com/broken.png", picture=True),
        ],
        sizes={"https://example.com/pic.png": {"width": 100, "height": 50}},
        broken=("https://example.com/broken.png",),
    )
    transfers = [
        _transfer("https://example.com/plain.png"),
        _transfer("https://example.com/pic.png"),
        _transfer("https://example.com/broken.png"),
        _transfer("https://example.com/", mime="text/html"),
    ]
    records = await gather_image_usage(page.evaluate, transfers, BASE, strategy)

    data = [record.to_dict() for record in records]
    assert [d["effectiveSrc"] for d in data] == [
        "https://example.com/plain.png",
        "https://example.com/pic.png",
        "",
        "https://example.com/broken.png",
    ]
    assert [d["needsSizeResolution"] for d in data] == [False, True, False, True]
    assert (data[0]["reportedIntrinsicWidth"], data[0]["reportedIntrinsicHeight"]) == (100, 50)
    assert (data[1]["reportedIntrinsicWidth"], data[1]["reportedIntrinsicHeight"]) == (100, 50)
    assert data[2]["networkRecord"] is None
    assert (data[3]["reportedIntrinsicWidth"], data[3]["reportedIntrinsicHeight"]) == (0, 0)
    assert data[1]["networkRecord"]["resourceSize"] == 1234
    assert data[1]["isPicture"] is True
    assert len(data[1]["alternatives"]) == 1
    assert sorted(page.size_requests) == [
        "https://example.com/broken.png",
        "https://example.com/pic.png",
    ]
    json.dumps(data)


@pytest.mark.asyncio
async def test_gather_image_usage_keeps_pass_when_size_is_not_finite() -> None:
    page = FakePage(
        tags=[_tag("https://example.com/a.png", picture=True), _tag("https://example.com/b.png", picture=True)],
        sizes={
            "https://example.com/a.png": {"width": float("nan"), "height": 10},
            "https://example.com/b.png": {"width": 30, "height": 20},
        },
    )
    transfers = [_transfer("https://example.com/a.png"), _transfer("https://example.com/b.png")]
    records = await gather_image_usage(page.evaluate, transfers, BASE)
    assert [(r.reported_intrinsic_width, r.reported_intrinsic_height) for r in records] == [(0, 0), (30, 20)]


@pytest.mark.asyncio
async def test_gather_image_usage_without_network_capture() -> None:
    page = FakePage(tags=[_tag("https://example.com/pic.png", picture=True)], sizes={})
    (record,) = await gather_image_usage(page.evaluate, None, BASE)
    assert record.network_record is None
    assert record.needs_size_resolution is False
    assert page.size_requests == []


@pytest.mark.asyncio
async def test_gather_image_usage_fails_on_bad_snapshot() -> None:
    page = FakePage(tags={"not": "a list"}, sizes={})  # type: ignore[arg-type]
    with pytest.raises(SnapshotUnavailableError):
        await gather_image_usage(page.evaluate, [], BASE)


class ClosingPage:
    """Page double whose evaluate raises the configured Playwright error."""

    url = "https://example.com/"

    def __init__(self, error: Exception, closed_after_error: bool = False) -> None:
        self.error = error
        self.closed = False
        self.closed_after_error = closed_after_error

    def is_closed(self) -> bool:
        return self.closed

    async def evaluate(self, expression: str, arg: Any = None) -> Any:
        if self.closed_after_error:
            self.closed = True
        raise self.error


@pytest.mark.asyncio
async def test_page_evaluator_maps_script_errors() -> None:
    evaluate = page_evaluator(ClosingPage(PlaywrightError("ReferenceError: x is not defined")))
    with pytest.raises(RemoteEvaluationError):
        await evaluate("() => x", None)


@pytest.mark.asyncio
async def test_page_evaluator_maps_target_closed_by_name() -> None:
    error = _named_error("Target page, context or browser has been closed", "TargetClosedError")
    evaluate = page_evaluator(ClosingPage(error))
    with pytest.raises(HostDisconnectedError):
        await evaluate("() => 1", None)


@pytest.mark.asyncio
async def test_page_evaluator_maps_target_closed_subclass() -> None:
    class TargetClosedError(PlaywrightError):
        pass

    evaluate = page_evaluator(ClosingPage(TargetClosedError("Target closed")))
    with pytest.raises(HostDisconnectedError):
        await evaluate("() => 1", None)


@pytest.mark.asyncio
async def test_page_evaluator_maps_errors_on_closed_page() -> None:
    page = ClosingPage(PlaywrightError("Execution context was destroyed"), closed_after_error=True)
    with pytest.raises(HostDisconnectedError):
        await page_evaluator(page)("() => 1", None)


@pytest.mark.asyncio
async def test_page_evaluator_refuses_closed_page() -> None:
    page = ClosingPage(PlaywrightError("unused"))
    page.closed = True
    with pytest.raises(HostDisconnectedError):
        await page_evaluator(page)("() => 1", None)


@pytest.mark.asyncio
async def test_page_evaluator_returns_result() -> None:
    class EchoPage(ClosingPage):
        async def evaluate(self, expression: str, arg: Any = None) -> Any:
            return {"expression": expression, "arg": arg}

    evaluate = page_evaluator(EchoPage(PlaywrightError("unused")))
    assert await evaluate("(u) => u", "a.png") == {"expression": "(u) => u", "arg": "a.png"}


def test_cli_and_mcp_entry_points_import() -> None:
    from image_usage import cli, mcp_server

    assert callable(cli.main)
    assert callable(mcp_server.main)
