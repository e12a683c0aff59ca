"""Template assignment mutations.

Conflicting assignments are rejected here, at write time. The rebuild's
last-writer-wins deduplication only backs this up for data written before
the checks existed.
"""

import logging

from fastapi import HTTPException, status
from sqlalchemy.orm import Session, selectinload

from spectable.models.assignment import TemplateAssignment, TemplateAssignmentTarget
from spectable.models.enums import AssignmentType
from spectable.models.template import SpecificationTemplate
from spectable.services.identifiers import normalize_shopify_id
from spectable.services.lookup_index import LookupIndex
from spectable.services.rebuild_coordinator import RebuildCoordinator, get_rebuild_coordinator
from spectable.tasks.template_lookup import rebuild_or_queue

logger = logging.getLogger(__name__)


class AssignmentService:
    """Creates, replaces and removes template assignments, then rebuilds the lookup."""

    def __init__(self, db: Session, coordinator: RebuildCoordinator | None = None):
        self.db = db
        self._coordinator = coordinator

    @property
    def coordinator(self) -> RebuildCoordinator:
        if self._coordinator is None:
            self._coordinator = get_rebuild_coordinator()
        return self._coordinator

    def get_template(self, template_id: int) -> SpecificationTemplate:
        template = (
            self.db.query(SpecificationTemplate)
            .filter(SpecificationTemplate.id == template_id)
            .first()
        )
        if not template:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Template not found")
        return template

    def save_template_assignment(
        self,
        template_id: int,
        assignment_type: AssignmentType | None,
        target_ids: list[str] | None = None,
    ) -> dict:
        """Replace a template's assignment.

        Args:
            template_id: Template to assign
            assignment_type: PRODUCT, COLLECTION, DEFAULT, or None to unassign
            target_ids: Product or collection ids in any form (ignored for DEFAULT)

        Returns:
            {"assignment_id": int | None, "targets": int, "rebuilt": int | None}
            (rebuilt is None when the shop was busy and the rebuild was queued)
        """
        template = self.get_template(template_id)

        targets = self._unique_targets(target_ids or []) if assignment_type else []
        if assignment_type and assignment_type.has_targets and not targets:
            raise ValueError(f"{assignment_type.value} assignment requires at least one target")

        if assignment_type:
            self._check_conflicts(template, assignment_type, targets)

        self._remove_assignments(template.id)

        assignment = None
        if assignment_type:
            assignment = TemplateAssignment(
                template_id=template.id,
                shop_id=template.shop_id,
                assignment_type=assignment_type,
            )
            if assignment_type.has_targets:
                assignment.targets = [
                    TemplateAssignmentTarget(
                        target_shopify_id=target_id,
                        target_type=assignment_type,
                        is_excluded=False,
                    )
                    for target_id in targets
                ]
            self.db.add(assignment)

        self.db.commit()
        logger.info(
            f"Template {template.id}: assignment set to "
            f"{assignment_type.value if assignment_type else 'NONE'} ({len(targets)} targets)"
        )

        rebuilt = rebuild_or_queue(self.coordinator, template.shop_id)
        return {
            "assignment_id": assignment.id if assignment else None,
            "targets": len(targets) if assignment_type and assignment_type.has_targets else 0,
            "rebuilt": rebuilt,
        }

    def set_template_active(self, template_id: int, is_active: bool) -> SpecificationTemplate:
        """Activate or deactivate a template. Deactivation drops its assignments."""
        template = self.get_template(template_id)
        template.is_active = is_active

        if not is_active:
            removed = self._remove_assignments(template.id)
            logger.info(f"Template {template.id} deactivated, removed {removed} assignments")

        self.db.commit()
        self.db.refresh(template)

        rebuild_or_queue(self.coordinator, template.shop_id)
        return template

    def delete_template(self, template_id: int) -> None:
        """Delete a template together with its assignments and lookup rows."""
        template = self.get_template(template_id)
        shop_id = template.shop_id

        LookupIndex(self.db).delete_for_template(template.id)
        self.db.delete(template)
        self.db.commit()
        logger.info(f"Deleted template {template_id}")

        rebuild_or_queue(self.coordinator, shop_id)

    def _remove_assignments(self, template_id: int) -> int:
        # ORM deletes so targets go with their assignment
        assignments = (
            self.db.query(TemplateAssignment)
            .filter(TemplateAssignment.template_id == template_id)
            .all()
        )
        for assignment in assignments:
            self.db.delete(assignment)
        self.db.flush()
        return len(assignments)

    def _unique_targets(self, target_ids: list[str]) -> list[str]:
        targets: list[str] = []
        for target_id in target_ids:
            normalized = normalize_shopify_id(target_id)
            if normalized and normalized not in targets:
                targets.append(normalized)
        return targets

    def _check_conflicts(
        self,
        template: SpecificationTemplate,
        assignment_type: AssignmentType,
        targets: list[str],
    ) -> None:
        others = (
            self.db.query(TemplateAssignment)
            .filter(
                TemplateAssignment.shop_id == template.shop_id,
                TemplateAssignment.template_id != template.id,
                TemplateAssignment.assignment_type == assignment_type,
            )
            .options(selectinload(TemplateAssignment.targets))
            .all()
        )

        if assignment_type == AssignmentType.DEFAULT:
            if others:
                raise HTTPException(
                    status_code=status.HTTP_409_CONFLICT,
                    detail=f"Template {others[0].template_id} is already assigned globally",
                )
            return

        wanted = set(targets)
        conflicts = sorted(
            {
                normalize_shopify_id(target.target_shopify_id)
                for other in others
                for target in other.targets
                if not target.is_excluded
                and normalize_shopify_id(target.target_shopify_id) in wanted
            }
        )
        if conflicts:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"Targets already assigned to other templates: {', '.join(conflicts)}",
            )
