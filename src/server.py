"""Protean Engine runner for the marketplace domain.

With ``PROTEAN_ENV=production`` events are processed asynchronously; this
process runs the Engine that feeds them to the projectors and to the
notification and intent handlers.

Usage:
    PROTEAN_ENV=production python src/server.py
"""

import argparse
import asyncio

import structlog
from protean.server.engine import Engine

logger = structlog.get_logger(__name__)


def _get_domain():
    import marketplace.utils.logging  # noqa: F401
    from marketplace.domain import marketplace

    marketplace.init()
    return marketplace


async def run(test_mode: bool = False):
    domain = _get_domain()
    logger.info("Starting engine", domain=domain.name, test_mode=test_mode)
    await Engine(domain, test_mode=test_mode).run()


def main():
    parser = argparse.ArgumentParser(description="Marketplace Engine runner")
    parser.add_argument(
        "--test-mode",
        action="store_true",
        help="Process pending messages once and exit",
    )
    args = parser.parse_args()

    asyncio.run(run(args.test_mode))


if __name__ == "__main__":
    main()
