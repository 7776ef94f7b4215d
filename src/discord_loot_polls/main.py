#!/usr/bin/env python3
"""Main entry point for the loot poll service.

Initializes the store and runs the expiry sweep until interrupted. Discord
views are attached by the hosting bot through the container's handlers.
"""

from __future__ import annotations

import asyncio
import logging
import sys

from discord_loot_polls.domain.shared.messages import LogTemplates
from discord_loot_polls.utils.logging import setup_logging

logger = logging.getLogger(__name__)


async def serve(container) -> None:
    try:
        await container.initialize()
        container.expiry_job.start()
        await asyncio.Event().wait()
    finally:
        await container.shutdown()


def main() -> int:
    from discord_loot_polls.config.container import create_container
    from discord_loot_polls.config.settings import get_settings

    settings = get_settings()
    setup_logging(settings.log_level)

    logger.info(LogTemplates.SERVICE_STARTING, settings.environment)
    container = create_container(settings)

    try:
        asyncio.run(serve(container))
        return 0
    except KeyboardInterrupt:
        logger.info(LogTemplates.SERVICE_INTERRUPTED)
        return 0
    except Exception as e:
        logger.exception(LogTemplates.SERVICE_FATAL_ERROR, e)
        return 1
    finally:
        logger.info(LogTemplates.SERVICE_STOPPED)


def cli() -> None:
    """Console script entry point (used by pyproject.toml [project.scripts])."""
    sys.exit(main())


if __name__ == "__main__":
    cli()  # pragma: no cover
