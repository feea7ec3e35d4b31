"""Command-line entry point for the image usage auditor."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
import time
from pathlib import Path
from typing import Sequence, Tuple

from .config import DEFAULT_VIEWPORT_HEIGHT, DEFAULT_VIEWPORT_WIDTH, AuditConfig
from .crawler import run_audit
from .pipeline import DEFAULT_STRATEGY, EnrichmentStrategy

logger = logging.getLogger("image_usage.cli")


def parse_viewport(value: str) -> Tuple[int, int]:
    """Parse a ``WIDTHxHEIGHT`` viewport specification."""
    try:
        width, height = (int(part) for part in value.lower().split("x", 1))
    except ValueError as exc:
        raise argparse.ArgumentTypeError(
            f"Viewport must look like 1350x940, got {value!r}"
        ) from exc
    if width <= 0 or height <= 0:
        raise argparse.ArgumentTypeError("Viewport dimensions must be positive")
    return width, height


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description=(
            "Render pages via Playwright and report every rendered image with "
            "its dimensions and the network transfer that produced it."
        ),
    )
    parser.add_argument("urls", nargs="+", help="One or more URLs to audit")
    parser.add_argument(
        "--output",
        type=Path,
        default=None,
        help="Write the JSON report to this file instead of STDOUT",
    )
    parser.add_argument(
        "--wait",
        type=float,
        default=1.0,
        help="Seconds to wait after network idle before taking the snapshot",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=30.0,
        help="Navigation timeout in seconds",
    )
    parser.add_argument(
        "--strategy",
        choices=[strategy.value for strategy in EnrichmentStrategy],
        default=DEFAULT_STRATEGY.value,
        help="Re-measure picture images one at a time (serial) or all at once (parallel)",
    )
    parser.add_argument(
        "--viewport",
        type=parse_viewport,
        default=(DEFAULT_VIEWPORT_WIDTH, DEFAULT_VIEWPORT_HEIGHT),
        help="Viewport size as WIDTHxHEIGHT",
    )
    parser.add_argument(
        "--headed",
        action="store_true",
        help="Show the browser window while auditing",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )
    argv = list(sys.argv[1:] if argv is None else argv)
    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> AuditConfig:
    width, height = args.viewport
    return AuditConfig(
        wait_after_load=args.wait,
        navigation_timeout=args.timeout,
        strategy=EnrichmentStrategy(args.strategy),
        viewport_width=width,
        viewport_height=height,
        headless=not args.headed,
    )


def main(argv: Sequence[str] | None = None) -> None:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stderr,
        force=True,
    )

    config = build_config(args)
    overall_start = time.perf_counter()
    results = asyncio.run(run_audit(args.urls, config))
    total_elapsed = time.perf_counter() - overall_start

    successes = len(results)
    total_urls = len(args.urls)
    failures = total_urls - successes
    logger.info(
        "Finished in %.2fs (%d/%d succeeded, %d failed)",
        total_elapsed,
        successes,
        total_urls,
        failures,
    )

    report = json.dumps([result.to_dict() for result in results], indent=2)
    if args.output:
        args.output.write_text(report + "\n", encoding="utf-8")
        logger.info("Saved report to %s", args.output)
    else:
        sys.stdout.write(report + "\n")
        sys.stdout.flush()

    if not successes:
        sys.exit(1)


if __name__ == "__main__":
    main()
