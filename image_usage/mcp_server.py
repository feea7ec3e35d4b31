"""MCP server exposing the image usage audit as a tool."""

from __future__ import annotations

import json
import logging

from mcp.server.fastmcp import FastMCP

from .config import AuditConfig
from .crawler import run_audit
from .pipeline import DEFAULT_STRATEGY, EnrichmentStrategy

logger = logging.getLogger("image_usage.mcp")
logger.setLevel(logging.ERROR)

mcp = FastMCP(name="image-usage")


async def _run_audit_once(url: str, config: AuditConfig) -> str:
    results = await run_audit([url], config)
    if not results:
        raise RuntimeError(f"Failed to audit {url}")
    return json.dumps(results[0].to_dict(), indent=2)


@mcp.tool()
async def image_usage(
    url: str,
    strategy: str = DEFAULT_STRATEGY.value,
) -> str:
    """Render a web page and return its image usage records as JSON."""

    config = AuditConfig(strategy=EnrichmentStrategy(strategy))
    return await _run_audit_once(url, config)


def main() -> None:
    """Entry point for running the MCP server."""
    logging.basicConfig(level=logging.ERROR)
    mcp.run()


if __name__ == "__main__":
    main()
