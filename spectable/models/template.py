"""Specification template model."""

from sqlalchemy import Boolean, Column, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from spectable.database import Base
from spectable.models.mixins import TimestampMixin


class SpecificationTemplate(Base, TimestampMixin):
    """A named specification table layout. Only active templates are resolvable."""

    __tablename__ = "specification_templates"

    id = Column(Integer, primary_key=True, index=True)
    shop_id = Column(Integer, ForeignKey("shops.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False, index=True)

    # Relationships
    shop = relationship("Shop", backref="templates")
    assignments = relationship(
        "TemplateAssignment", back_populates="template", cascade="all, delete-orphan"
    )
