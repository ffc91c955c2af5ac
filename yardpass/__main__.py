"""
YardPass service layer entry point.
Runs a health check against the configured backend.
"""

import asyncio
import sys

from loguru import logger

from yardpass.services import create_orchestrator
from yardpass.settings import global_settings


async def main() -> int:
    if not global_settings.supabase_url:
        logger.error("SUPABASE_URL is not set")
        return 2

    logger.info(f"Checking backend at {global_settings.supabase_url}...")
    async with create_orchestrator(global_settings) as orchestrator:
        report = await orchestrator.health_check()

    if report["status"] != "healthy":
        logger.error(f"Backend unhealthy: {report['details']}")
        return 1

    logger.info(f"Backend healthy ({report['details']['duration_ms']}ms)")
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
