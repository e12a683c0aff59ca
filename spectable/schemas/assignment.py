"""Template assignment schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from spectable.models.enums import AssignmentType


class AssignmentRequest(BaseModel):
    """Replace a template's assignment. A null type removes it."""

    assignment_type: AssignmentType | None = None
    target_ids: list[str] = Field(default_factory=list)


class AssignmentResponse(BaseModel):
    """Result of an assignment change."""

    assignment_id: int | None
    targets: int
    rebuilt: int | None


class TemplateActiveRequest(BaseModel):
    """Toggle a template."""

    is_active: bool


class TemplateResponse(BaseModel):
    """Template response."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    shop_id: int
    name: str
    is_active: bool
    created_at: datetime
    updated_at: datetime
