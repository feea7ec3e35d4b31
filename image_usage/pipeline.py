"""Ordered enrichment of correlated records with re-measured sizes."""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Dict, List, Sequence

from .errors import ImageLoadError
from .images import SizeResolver
from .models import ImageUsageRecord

logger = logging.getLogger("image_usage")


class EnrichmentStrategy(str, Enum):
    """How size resolutions are scheduled against the page."""

    SERIAL = "serial"
    PARALLEL = "parallel"


DEFAULT_STRATEGY = EnrichmentStrategy.SERIAL


async def _enrich_one(
    record: ImageUsageRecord, resolver: SizeResolver
) -> ImageUsageRecord:
    if not record.needs_size_resolution or record.network_record is None:
        return record
    url = record.network_record.url
    try:
        size = await resolver.resolve(url)
    except ImageLoadError as exc:
        logger.warning("Keeping reported size for %s: %s", url, exc)
        return record
    return record.with_intrinsic_size(size)


async def _enrich_serial(
    records: Sequence[ImageUsageRecord], resolver: SizeResolver
) -> List[ImageUsageRecord]:
    enriched: List[ImageUsageRecord] = []
    for record in records:
        enriched.append(await _enrich_one(record, resolver))
    return enriched


async def _enrich_parallel(
    records: Sequence[ImageUsageRecord], resolver: SizeResolver
) -> List[ImageUsageRecord]:
    enriched = list(records)
    tasks: Dict[int, asyncio.Task] = {
        position: asyncio.ensure_future(_enrich_one(record, resolver))
        for position, record in enumerate(records)
        if record.needs_size_resolution
    }
    if not tasks:
        return enriched
    try:
        results = await asyncio.gather(*tasks.values())
    except BaseException:
        for task in tasks.values():
            task.cancel()
        await asyncio.gather(*tasks.values(), return_exceptions=True)
        raise
    for position, result in zip(tasks.keys(), results):
        enriched[position] = result
    return enriched


async def enrich(
    records: Sequence[ImageUsageRecord],
    resolver: SizeResolver,
    strategy: EnrichmentStrategy = DEFAULT_STRATEGY,
) -> List[ImageUsageRecord]:
    """Resolve intrinsic sizes where needed, preserving input order.

    A failed re-measurement leaves that record's reported size untouched;
    any other error fails the whole pass.
    """
    strategy = EnrichmentStrategy(strategy)
    pending = sum(1 for record in records if record.needs_size_resolution)
    logger.debug(
        "Enriching %d records (%d need resolution) with %s strategy",
        len(records),
        pending,
        strategy.value,
    )
    if strategy is EnrichmentStrategy.PARALLEL:
        return await _enrich_parallel(records, resolver)
    return await _enrich_serial(records, resolver)
