"""Catalog mirror models (products and collections synced from the platform)."""

from sqlalchemy import Column, ForeignKey, Integer, String, UniqueConstraint

from spectable.database import Base
from spectable.models.mixins import TimestampMixin


class Product(Base, TimestampMixin):
    """Mirrored product. shopify_id may hold the GID or the bare numeric form."""

    __tablename__ = "products"
    __table_args__ = (UniqueConstraint("shop_id", "shopify_id", name="uq_product_shop_shopify_id"),)

    id = Column(Integer, primary_key=True, index=True)
    shop_id = Column(Integer, ForeignKey("shops.id"), nullable=False, index=True)
    shopify_id = Column(String(255), nullable=False, index=True)
    title = Column(String(500), nullable=True)


class Collection(Base, TimestampMixin):
    """Mirrored collection. shopify_id may hold the GID or the bare numeric form."""

    __tablename__ = "collections"
    __table_args__ = (
        UniqueConstraint("shop_id", "shopify_id", name="uq_collection_shop_shopify_id"),
    )

    id = Column(Integer, primary_key=True, index=True)
    shop_id = Column(Integer, ForeignKey("shops.id"), nullable=False, index=True)
    shopify_id = Column(String(255), nullable=False, index=True)
    title = Column(String(500), nullable=True)
