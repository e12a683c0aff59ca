"""Celery tasks for template lookup rebuilds."""

import logging

from spectable.celery_app import app as celery_app
from spectable.services.rebuild_coordinator import (
    RebuildCoordinator,
    RebuildLockTimeout,
    rebuild_all_template_lookups,
    rebuild_template_lookup,
)

logger = logging.getLogger(__name__)


@celery_app.task(bind=True, max_retries=3)
def rebuild_template_lookup_task(self, shop_id: int) -> dict:
    """Rebuild one shop's lookup index in the background.

    Args:
        shop_id: ID of the shop whose assignments changed

    Returns:
        dict with the number of rebuilt rows
    """
    try:
        result = rebuild_template_lookup(shop_id)
        return {"success": True, "shop_id": shop_id, "rebuilt": result["rebuilt"]}

    except RebuildLockTimeout as e:
        logger.warning(f"Rebuild for shop {shop_id} still busy, retrying: {e}")
        raise self.retry(exc=e, countdown=5) from e

    except Exception as e:
        logger.error(f"Error rebuilding lookup for shop {shop_id}: {e}", exc_info=True)
        if self.request.retries < self.max_retries:
            raise self.retry(exc=e, countdown=30) from e
        return {"success": False, "shop_id": shop_id, "error": str(e)}


@celery_app.task
def rebuild_all_template_lookups_task() -> dict:
    """Maintenance task: rebuild every shop's lookup index.

    Returns:
        dict with per-shop results and totals
    """
    results = rebuild_all_template_lookups()
    failed = [r for r in results if not r["success"]]
    if failed:
        logger.warning(f"Lookup rebuild failed for {len(failed)} shops")
    return {
        "total": len(results),
        "succeeded": len(results) - len(failed),
        "failed": len(failed),
        "results": results,
    }


def rebuild_or_queue(coordinator: RebuildCoordinator, shop_id: int) -> int | None:
    """Rebuild now, or hand the rebuild to the worker when the shop stays busy.

    Used after a committed mutation: the write has succeeded, so a busy shop
    must not turn into an error for the caller.

    Returns:
        Number of rebuilt rows, or None when the rebuild was queued
    """
    try:
        return coordinator.schedule_rebuild(shop_id)["rebuilt"]
    except RebuildLockTimeout as e:
        logger.warning(f"Shop {shop_id} busy after change, queueing rebuild: {e}")
        rebuild_template_lookup_task.delay(shop_id)
        return None
