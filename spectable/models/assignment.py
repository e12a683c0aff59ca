"""Template assignment and target models."""

from sqlalchemy import Boolean, Column, Enum, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from spectable.database import Base
from spectable.models.enums import AssignmentType
from spectable.models.mixins import TimestampMixin


def _assignment_type_column(**kwargs) -> Column:
    return Column(
        Enum(
            AssignmentType,
            name="assignmenttype",
            values_callable=lambda x: [e.value for e in x],
        ),
        **kwargs,
    )


class TemplateAssignment(Base, TimestampMixin):
    """Binds one template to one resource-selection strategy for a shop."""

    __tablename__ = "template_assignments"

    id = Column(Integer, primary_key=True, index=True)
    template_id = Column(
        Integer, ForeignKey("specification_templates.id"), nullable=False, index=True
    )
    shop_id = Column(Integer, ForeignKey("shops.id"), nullable=False, index=True)
    assignment_type = _assignment_type_column(nullable=False)

    # Relationships
    template = relationship("SpecificationTemplate", back_populates="assignments")
    targets = relationship(
        "TemplateAssignmentTarget",
        back_populates="assignment",
        cascade="all, delete-orphan",
        order_by="TemplateAssignmentTarget.id",
    )


class TemplateAssignmentTarget(Base):
    """One concrete product or collection reference within an assignment."""

    __tablename__ = "template_assignment_targets"

    id = Column(Integer, primary_key=True, index=True)
    assignment_id = Column(
        Integer, ForeignKey("template_assignments.id"), nullable=False, index=True
    )
    target_shopify_id = Column(String(255), nullable=False, index=True)
    target_type = _assignment_type_column(nullable=False)
    # Legacy "all except these" flag. Kept for existing rows, not interpreted by the rebuild.
    is_excluded = Column(Boolean, default=False, nullable=False)

    # Relationships
    assignment = relationship("TemplateAssignment", back_populates="targets")
