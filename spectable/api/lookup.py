"""Template lookup maintenance endpoints."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from spectable.api.dependencies import get_coordinator
from spectable.database import get_db
from spectable.models.shop import Shop
from spectable.schemas.lookup import LookupEntryResponse, RebuildAllResponse, RebuildResponse
from spectable.services.lookup_index import LookupIndex
from spectable.services.rebuild_coordinator import (
    RebuildCoordinator,
    RebuildLockTimeout,
    rebuild_all_template_lookups,
)
from spectable.tasks.template_lookup import rebuild_all_template_lookups_task

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["template-lookup"])


def get_shop_or_404(db: Session, shop_id: int) -> Shop:
    shop = db.query(Shop).filter(Shop.id == shop_id).first()
    if not shop:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Shop not found")
    return shop


@router.get("/shops/{shop_id}/template-lookup", response_model=list[LookupEntryResponse])
def get_lookup_entries(
    shop_id: int,
    db: Annotated[Session, Depends(get_db)],
):
    """List the lookup rows of a shop."""
    get_shop_or_404(db, shop_id)
    return LookupIndex(db).entries_for_shop(shop_id)


@router.post("/shops/{shop_id}/template-lookup/rebuild", response_model=RebuildResponse)
def rebuild_shop_lookup(
    shop_id: int,
    db: Annotated[Session, Depends(get_db)],
    coordinator: Annotated[RebuildCoordinator, Depends(get_coordinator)],
):
    """Rebuild a shop's lookup index now."""
    get_shop_or_404(db, shop_id)
    try:
        result = coordinator.schedule_rebuild(shop_id)
    except RebuildLockTimeout as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e)) from e
    return RebuildResponse(shop_id=shop_id, rebuilt=result["rebuilt"])


@router.post("/template-lookup/rebuild-all", response_model=RebuildAllResponse)
def rebuild_all_lookups(
    coordinator: Annotated[RebuildCoordinator, Depends(get_coordinator)],
):
    """Rebuild every shop's lookup index, one shop's failure does not stop the rest."""
    results = rebuild_all_template_lookups(coordinator)
    failed = sum(1 for r in results if not r["success"])
    return RebuildAllResponse(
        total=len(results),
        succeeded=len(results) - failed,
        failed=failed,
        results=results,
    )


@router.post("/template-lookup/rebuild-all/async", status_code=status.HTTP_202_ACCEPTED)
def queue_rebuild_all_lookups() -> dict:
    """Queue a rebuild of every shop's lookup index on the worker."""
    task = rebuild_all_template_lookups_task.delay()
    logger.info(f"Queued rebuild-all task {task.id}")
    return {"task_id": task.id}
