"""SQLAlchemy models."""

from spectable.models.assignment import TemplateAssignment, TemplateAssignmentTarget
from spectable.models.catalog import Collection, Product
from spectable.models.shop import Shop
from spectable.models.template import SpecificationTemplate
from spectable.models.template_lookup import TemplateLookup

__all__ = [
    "Shop",
    "SpecificationTemplate",
    "TemplateAssignment",
    "TemplateAssignmentTarget",
    "Product",
    "Collection",
    "TemplateLookup",
]
