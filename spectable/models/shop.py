"""Shop model."""

from sqlalchemy import Column, Integer, String

from spectable.database import Base
from spectable.models.mixins import TimestampMixin


class Shop(Base, TimestampMixin):
    """An installed merchant shop (tenant)."""

    __tablename__ = "shops"

    id = Column(Integer, primary_key=True, index=True)
    shop_domain = Column(String(255), unique=True, nullable=False, index=True)
