"""Pydantic schemas for API requests and responses."""

from spectable.schemas.assignment import (
    AssignmentRequest,
    AssignmentResponse,
    TemplateActiveRequest,
    TemplateResponse,
)
from spectable.schemas.lookup import (
    LookupEntryResponse,
    RebuildAllResponse,
    RebuildResponse,
    ShopRebuildResult,
    TemplateLookupResponse,
)
from spectable.schemas.webhook import ResourceDeletedPayload

__all__ = [
    "AssignmentRequest",
    "AssignmentResponse",
    "TemplateActiveRequest",
    "TemplateResponse",
    "LookupEntryResponse",
    "RebuildResponse",
    "RebuildAllResponse",
    "ShopRebuildResult",
    "TemplateLookupResponse",
    "ResourceDeletedPayload",
]
