"""Read-only access to template assignments and the catalog mirror."""

import logging
from dataclasses import dataclass, field

from sqlalchemy.orm import Session, selectinload

from spectable.models.assignment import TemplateAssignment
from spectable.models.catalog import Collection, Product
from spectable.models.enums import AssignmentType
from spectable.models.template import SpecificationTemplate
from spectable.services.identifiers import id_candidates

logger = logging.getLogger(__name__)


@dataclass
class TargetRecord:
    """Snapshot of an assignment target."""

    id: int
    target_shopify_id: str
    target_type: AssignmentType
    is_excluded: bool = False


@dataclass
class AssignmentRecord:
    """Snapshot of an active assignment with its targets, detached from the session."""

    id: int
    template_id: int
    assignment_type: AssignmentType
    targets: list[TargetRecord] = field(default_factory=list)


class AssignmentStore:
    """Reads the assignments that feed the lookup index for a shop."""

    def __init__(self, db: Session):
        self.db = db

    def has_active_assignments(self, shop_id: int) -> bool:
        """Check if any active template of the shop has an assignment."""
        return (
            self.db.query(TemplateAssignment.id)
            .join(TemplateAssignment.template)
            .filter(
                TemplateAssignment.shop_id == shop_id,
                SpecificationTemplate.is_active.is_(True),
            )
            .first()
            is not None
        )

    def find_active_assignments_with_targets(self, shop_id: int) -> list[AssignmentRecord]:
        """Get assignments of active templates, oldest first, targets in insertion order."""
        assignments = (
            self.db.query(TemplateAssignment)
            .join(TemplateAssignment.template)
            .filter(
                TemplateAssignment.shop_id == shop_id,
                SpecificationTemplate.is_active.is_(True),
            )
            .options(selectinload(TemplateAssignment.targets))
            .order_by(TemplateAssignment.created_at.asc(), TemplateAssignment.id.asc())
            .all()
        )

        return [
            AssignmentRecord(
                id=assignment.id,
                template_id=assignment.template_id,
                assignment_type=AssignmentType(assignment.assignment_type),
                targets=[
                    TargetRecord(
                        id=target.id,
                        target_shopify_id=target.target_shopify_id,
                        target_type=AssignmentType(target.target_type),
                        is_excluded=bool(target.is_excluded),
                    )
                    for target in sorted(assignment.targets, key=lambda t: t.id)
                ],
            )
            for assignment in assignments
        ]


class CatalogMirror:
    """Existence checks against the locally synced products and collections."""

    def __init__(self, db: Session):
        self.db = db

    def product_exists(self, shop_id: int, normalized_id: str) -> bool:
        """Check if the product is present in the mirror under any id form."""
        candidates = id_candidates("Product", normalized_id)
        product = (
            self.db.query(Product.id)
            .filter(Product.shop_id == shop_id, Product.shopify_id.in_(candidates))
            .first()
        )
        return product is not None

    def collection_exists(self, shop_id: int, normalized_id: str) -> bool:
        """Check if the collection is present in the mirror under any id form."""
        candidates = id_candidates("Collection", normalized_id)
        collection = (
            self.db.query(Collection.id)
            .filter(
                Collection.shop_id == shop_id,
                Collection.shopify_id.in_(candidates),
            )
            .first()
        )
        return collection is not None
