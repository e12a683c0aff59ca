"""FastAPI dependencies for services and the rebuild coordinator."""

from typing import Annotated

from fastapi import Depends
from sqlalchemy.orm import Session

from spectable.database import get_db
from spectable.services.assignments import AssignmentService
from spectable.services.catalog import CatalogService
from spectable.services.rebuild_coordinator import RebuildCoordinator, get_rebuild_coordinator
from spectable.services.template_resolution import TemplateResolver


def get_coordinator() -> RebuildCoordinator:
    """Get the process-wide rebuild coordinator."""
    return get_rebuild_coordinator()


def get_template_resolver(
    db: Annotated[Session, Depends(get_db)],
    coordinator: Annotated[RebuildCoordinator, Depends(get_coordinator)],
) -> TemplateResolver:
    """Get template resolver with dependencies."""
    return TemplateResolver(db, coordinator)


def get_assignment_service(
    db: Annotated[Session, Depends(get_db)],
    coordinator: Annotated[RebuildCoordinator, Depends(get_coordinator)],
) -> AssignmentService:
    """Get assignment service with dependencies."""
    return AssignmentService(db, coordinator)


def get_catalog_service(
    db: Annotated[Session, Depends(get_db)],
    coordinator: Annotated[RebuildCoordinator, Depends(get_coordinator)],
) -> CatalogService:
    """Get catalog service with dependencies."""
    return CatalogService(db, coordinator)
