"""Data models used throughout the image usage pipeline."""

from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Mapping, Optional, Union


@dataclass
class ElementDescriptor:
    """A rendered ``img`` (or ``source``) element as seen by the page."""

    tag_name: str
    effective_src: str = ""
    srcset_raw: str = ""
    srcset_candidate_urls: List[str] = field(default_factory=list)
    sizes_raw: str = ""
    media_raw: str = ""
    rendered_width: int = 0
    rendered_height: int = 0
    reported_intrinsic_width: int = 0
    reported_intrinsic_height: int = 0

    @property
    def is_picture(self) -> bool:
        return False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tagName": self.tag_name,
            "effectiveSrc": self.effective_src,
            "srcsetRaw": self.srcset_raw,
            "srcsetCandidateUrls": list(self.srcset_candidate_urls),
            "sizesRaw": self.sizes_raw,
            "mediaRaw": self.media_raw,
            "renderedWidth": self.rendered_width,
            "renderedHeight": self.rendered_height,
            "reportedIntrinsicWidth": self.reported_intrinsic_width,
            "reportedIntrinsicHeight": self.reported_intrinsic_height,
            "isPicture": self.is_picture,
        }


@dataclass
class GroupedElement(ElementDescriptor):
    """An ``img`` inside a ``picture``, with its currently matching sources.

    ``alternatives`` lists the matching ``source`` elements in document order
    followed by the chosen ``img`` itself, so it is never empty.
    """

    alternatives: List[ElementDescriptor] = field(default_factory=list)

    @property
    def is_picture(self) -> bool:
        return True

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["alternatives"] = [alt.to_dict() for alt in self.alternatives]
        return data


AnyElement = Union[ElementDescriptor, GroupedElement]


@dataclass
class NetworkRecord:
    """Reduced projection of an image transfer observed during page load."""

    url: str
    resource_size: Optional[int]
    start_time: Optional[float]
    end_time: Optional[float]
    response_received_time: Optional[float] = None
    request_headers: Dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "url": self.url,
            "resourceSize": self.resource_size,
            "startTime": self.start_time,
            "endTime": self.end_time,
        }
        if self.response_received_time is not None:
            data["responseReceivedTime"] = self.response_received_time
        if self.request_headers:
            data["requestHeaders"] = dict(self.request_headers)
        return data


@dataclass
class IntrinsicSize:
    """Decoded pixel dimensions of an image resource."""

    width: int
    height: int

    @classmethod
    def from_payload(cls, payload: Any) -> Optional["IntrinsicSize"]:
        """Build from ``{"width": .., "height": ..}``; ``None`` if malformed."""
        if not isinstance(payload, Mapping):
            return None
        width = payload.get("width")
        height = payload.get("height")
        for value in (width, height):
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                return None
            if not math.isfinite(value) or value < 0:
                return None
        return cls(width=int(width), height=int(height))


@dataclass
class ImageUsageRecord:
    """Final output unit: an element joined with its network transfer."""

    element: AnyElement
    network_record: Optional[NetworkRecord] = None
    needs_size_resolution: bool = False

    @property
    def is_picture(self) -> bool:
        return self.element.is_picture

    @property
    def effective_src(self) -> str:
        return self.element.effective_src

    @property
    def reported_intrinsic_width(self) -> int:
        return self.element.reported_intrinsic_width

    @property
    def reported_intrinsic_height(self) -> int:
        return self.element.reported_intrinsic_height

    def with_intrinsic_size(self, size: IntrinsicSize) -> "ImageUsageRecord":
        """Return a copy whose reported intrinsic size is overwritten."""
        element = replace(
            self.element,
            reported_intrinsic_width=size.width,
            reported_intrinsic_height=size.height,
        )
        return replace(self, element=element)

    def to_dict(self) -> Dict[str, Any]:
        data = self.element.to_dict()
        data["networkRecord"] = (
            self.network_record.to_dict() if self.network_record else None
        )
        data["needsSizeResolution"] = self.needs_size_resolution
        return data


@dataclass
class AuditResult:
    """Image usage records gathered for one audited URL."""

    url: str
    final_url: str
    records: List[ImageUsageRecord]
    total_seconds: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "url": self.url,
            "finalUrl": self.final_url,
            "totalSeconds": round(self.total_seconds, 3),
            "images": [record.to_dict() for record in self.records],
        }
