"""Template lookup model (denormalized resolution index)."""

from sqlalchemy import Boolean, Column, ForeignKey, Index, Integer, String, text

from spectable.database import Base


class TemplateLookup(Base):
    """One resolution row: (shop, product | collection | default) -> template.

    Rows are written only by the rebuild and replaced wholesale per shop.
    """

    __tablename__ = "template_lookups"
    __table_args__ = (
        Index(
            "uq_template_lookup_product",
            "shop_id",
            "product_id",
            unique=True,
            postgresql_where=text("product_id IS NOT NULL"),
            sqlite_where=text("product_id IS NOT NULL"),
        ),
        Index(
            "uq_template_lookup_collection",
            "shop_id",
            "collection_id",
            unique=True,
            postgresql_where=text("collection_id IS NOT NULL"),
            sqlite_where=text("collection_id IS NOT NULL"),
        ),
        Index(
            "uq_template_lookup_default",
            "shop_id",
            unique=True,
            postgresql_where=text("is_default"),
            sqlite_where=text("is_default = 1"),
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    shop_id = Column(Integer, ForeignKey("shops.id"), nullable=False, index=True)
    product_id = Column(String(64), nullable=True)
    collection_id = Column(String(64), nullable=True)
    template_id = Column(Integer, ForeignKey("specification_templates.id"), nullable=False)
    priority = Column(Integer, nullable=False)
    is_default = Column(Boolean, default=False, nullable=False)

    def __repr__(self) -> str:
        return (
            f"<TemplateLookup(shop_id={self.shop_id}, product_id={self.product_id!r}, "
            f"collection_id={self.collection_id!r}, template_id={self.template_id}, "
            f"priority={self.priority})>"
        )
