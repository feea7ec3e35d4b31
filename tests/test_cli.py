from __future__ import annotations

import argparse
from pathlib import Path

import pytest

from image_usage.cli import build_config, parse_args, parse_viewport
from image_usage.config import AuditConfig
from image_usage.pipeline import EnrichmentStrategy


def test_defaults_match_audit_config() -> None:
    config = build_config(parse_args(["https://example.com"]))
    assert config == AuditConfig()
    assert config.strategy is EnrichmentStrategy.SERIAL


def test_options_are_carried_into_config() -> None:
    args = parse_args(
        [
            "https://example.com",
            "https://example.org",
            "--strategy",
            "parallel",
            "--viewport",
            "390x844",
            "--wait",
            "0",
            "--timeout",
            "10",
            "--headed",
            "--output",
            "report.json",
        ]
    )
    assert args.urls == ["https://example.com", "https://example.org"]
    assert args.output == Path("report.json")
    config = build_config(args)
    assert config.strategy is EnrichmentStrategy.PARALLEL
    assert (config.viewport_width, config.viewport_height) == (390, 844)
    assert config.wait_after_load == 0
    assert config.navigation_timeout == 10
    assert config.headless is False


def test_parse_viewport() -> None:
    assert parse_viewport("1440X900") == (1440, 900)
    for value in ("wide", "100", "0x10", "10x-1"):
        with pytest.raises(argparse.ArgumentTypeError):
            parse_viewport(value)


def test_unknown_strategy_is_rejected() -> None:
    with pytest.raises(SystemExit):
        parse_args(["https://example.com", "--strategy", "eager"])
