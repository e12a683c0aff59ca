"""Template lookup schemas."""

from pydantic import BaseModel, ConfigDict


class TemplateLookupResponse(BaseModel):
    """Template resolved for a storefront render."""

    template_id: int | None


class LookupEntryResponse(BaseModel):
    """One row of the lookup index."""

    model_config = ConfigDict(from_attributes=True)

    product_id: str | None
    collection_id: str | None
    template_id: int
    priority: int
    is_default: bool


class RebuildResponse(BaseModel):
    """Result of a single-shop rebuild."""

    shop_id: int
    rebuilt: int


class ShopRebuildResult(BaseModel):
    """Per-shop outcome of a rebuild-all run."""

    shop_id: int
    shop_domain: str
    success: bool
    rebuilt: int | None = None
    error: str | None = None


class RebuildAllResponse(BaseModel):
    """Result of a rebuild-all run."""

    total: int
    succeeded: int
    failed: int
    results: list[ShopRebuildResult]
