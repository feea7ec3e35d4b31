"""Configuration objects and constants for an image usage audit."""

from __future__ import annotations

from dataclasses import dataclass

from .pipeline import DEFAULT_STRATEGY, EnrichmentStrategy

DEFAULT_VIEWPORT_WIDTH = 1350
DEFAULT_VIEWPORT_HEIGHT = 940


@dataclass
class AuditConfig:
    """Top-level settings that control page rendering and enrichment."""

    wait_after_load: float = 1.0
    navigation_timeout: float = 30.0
    strategy: EnrichmentStrategy = DEFAULT_STRATEGY
    viewport_width: int = DEFAULT_VIEWPORT_WIDTH
    viewport_height: int = DEFAULT_VIEWPORT_HEIGHT
    headless: bool = True
