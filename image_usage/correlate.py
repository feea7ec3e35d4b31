"""Join element snapshots with the network transfers that served them."""

from __future__ import annotations

import logging
from typing import List, Mapping, Optional, Sequence

from .models import AnyElement, ImageUsageRecord, NetworkRecord
from .utils import normalize_url

logger = logging.getLogger("image_usage")


def correlate(
    elements: Sequence[AnyElement],
    index: Mapping[str, NetworkRecord],
    base_url: Optional[str] = None,
) -> List[ImageUsageRecord]:
    """Attach network records to elements, keeping snapshot order.

    Every element yields exactly one record. Elements without an effective
    source (lazy images that have not loaded yet) simply have no match.
    Only grouped elements with a matched transfer are flagged for
    re-measurement.
    """
    records: List[ImageUsageRecord] = []
    for element in elements:
        network_record: Optional[NetworkRecord] = None
        if element.effective_src:
            key = normalize_url(element.effective_src, base_url)
            network_record = index.get(key)
            if network_record is None:
                logger.debug("No network transfer observed for %s", key)
        records.append(
            ImageUsageRecord(
                element=element,
                network_record=network_record,
                needs_size_resolution=element.is_picture
                and network_record is not None,
            )
        )
    return records
