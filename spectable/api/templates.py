"""Template assignment endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status

from spectable.api.dependencies import get_assignment_service
from spectable.schemas.assignment import (
    AssignmentRequest,
    AssignmentResponse,
    TemplateActiveRequest,
    TemplateResponse,
)
from spectable.services.assignments import AssignmentService

router = APIRouter(prefix="/api/v1/templates", tags=["templates"])


@router.put("/{template_id}/assignment", response_model=AssignmentResponse)
def save_assignment(
    template_id: int,
    assignment_data: AssignmentRequest,
    service: Annotated[AssignmentService, Depends(get_assignment_service)],
):
    """Replace a template's assignment and rebuild the shop's lookup."""
    try:
        return service.save_template_assignment(
            template_id, assignment_data.assignment_type, assignment_data.target_ids
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e


@router.post("/{template_id}/active", response_model=TemplateResponse)
def set_template_active(
    template_id: int,
    active_data: TemplateActiveRequest,
    service: Annotated[AssignmentService, Depends(get_assignment_service)],
):
    """Activate or deactivate a template. Deactivating removes its assignments."""
    return service.set_template_active(template_id, active_data.is_active)


@router.delete("/{template_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_template(
    template_id: int,
    service: Annotated[AssignmentService, Depends(get_assignment_service)],
):
    """Delete a template and its assignments."""
    service.delete_template(template_id)
