import logging
from datetime import datetime

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from portmap.config import settings
from portmap.errors import GatewayError
from portmap.services.registry import registry

logger = logging.getLogger(__name__)

scheduler = AsyncIOScheduler()


async def refresh_job():
    """Background job reconciling the switch registry with the gateway."""
    logger.info("Running scheduled registry refresh...")
    try:
        switches = await registry.refresh()
        logger.info(f"Registry refresh completed ({len(switches)} switches)")
    except GatewayError as e:
        logger.error(f"Registry refresh failed: {e}")


def start_scheduler():
    """Start the background scheduler. A zero interval disables it."""
    if settings.refresh_interval <= 0:
        logger.info("Background refresh disabled")
        return

    scheduler.add_job(
        refresh_job,
        "interval",
        seconds=settings.refresh_interval,
        id="refresh_registry",
        replace_existing=True,
        next_run_time=datetime.now(),  # initial load
    )
    scheduler.start()
    logger.info(f"Scheduler started with {settings.refresh_interval}s interval")


def stop_scheduler():
    """Stop the background scheduler."""
    if scheduler.running:
        scheduler.shutdown()
        logger.info("Scheduler stopped")
