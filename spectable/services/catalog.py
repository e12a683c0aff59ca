"""Catalog mirror maintenance driven by platform product/collection events."""

import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from spectable.models.assignment import TemplateAssignment, TemplateAssignmentTarget
from spectable.models.catalog import Collection, Product
from spectable.models.enums import AssignmentType
from spectable.models.shop import Shop
from spectable.services.identifiers import id_candidates, normalize_shopify_id, shopify_gid
from spectable.services.lookup_index import LookupIndex
from spectable.services.rebuild_coordinator import RebuildCoordinator, get_rebuild_coordinator
from spectable.tasks.template_lookup import rebuild_or_queue

logger = logging.getLogger(__name__)


class CatalogService:
    """Keeps the product/collection mirror and the lookup index in step with the platform."""

    def __init__(self, db: Session, coordinator: RebuildCoordinator | None = None):
        self.db = db
        self._coordinator = coordinator

    @property
    def coordinator(self) -> RebuildCoordinator:
        if self._coordinator is None:
            self._coordinator = get_rebuild_coordinator()
        return self._coordinator

    def get_shop(self, shop_domain: str) -> Shop | None:
        return self.db.query(Shop).filter(Shop.shop_domain == shop_domain).first()

    def upsert_product(self, shop_id: int, raw_id: str | int, title: str | None = None) -> Product:
        """Insert or update a mirrored product, stored under its GID."""
        return self._upsert(Product, "Product", shop_id, raw_id, title)

    def upsert_collection(
        self, shop_id: int, raw_id: str | int, title: str | None = None
    ) -> Collection:
        """Insert or update a mirrored collection, stored under its GID."""
        return self._upsert(Collection, "Collection", shop_id, raw_id, title)

    def _upsert(self, model, resource_type: str, shop_id: int, raw_id, title):
        candidates = id_candidates(resource_type, raw_id)
        if not candidates:
            raise ValueError(f"Invalid {resource_type.lower()} id: {raw_id!r}")

        record = (
            self.db.query(model)
            .filter(model.shop_id == shop_id, model.shopify_id.in_(candidates))
            .first()
        )
        if record is None:
            record = model(shop_id=shop_id, shopify_id=shopify_gid(resource_type, raw_id))
            self.db.add(record)
        if title is not None:
            record.title = title

        self.db.commit()
        self.db.refresh(record)
        return record

    def product_deleted(self, shop_domain: str, raw_id: str | int) -> dict:
        """Remove a deleted product from the mirror, the lookup and assignment targets."""
        shop = self.get_shop(shop_domain)
        normalized = normalize_shopify_id(raw_id)
        if not shop or not normalized:
            return {"deleted": 0}

        candidates = id_candidates("Product", raw_id)
        deleted = (
            self.db.query(Product)
            .filter(Product.shop_id == shop.id, Product.shopify_id.in_(candidates))
            .delete(synchronize_session=False)
        )
        LookupIndex(self.db).delete_for_product(shop.id, normalized)
        targets = self._delete_targets(shop.id, AssignmentType.PRODUCT, candidates)
        self.db.commit()

        logger.info(
            f"Product {normalized} deleted for {shop_domain}: "
            f"{deleted} mirror rows, {targets} assignment targets"
        )
        return {"deleted": deleted, "targets": targets}

    def collection_deleted(self, shop_domain: str, raw_id: str | int) -> dict:
        """Remove a deleted collection everywhere, then rebuild the shop's lookup."""
        shop = self.get_shop(shop_domain)
        normalized = normalize_shopify_id(raw_id)
        if not shop or not normalized:
            return {"deleted": 0}

        candidates = id_candidates("Collection", raw_id)
        deleted = (
            self.db.query(Collection)
            .filter(Collection.shop_id == shop.id, Collection.shopify_id.in_(candidates))
            .delete(synchronize_session=False)
        )
        targets = self._delete_targets(shop.id, AssignmentType.COLLECTION, candidates)
        LookupIndex(self.db).delete_for_collection(shop.id, normalized)
        self.db.commit()

        logger.info(
            f"Collection {normalized} deleted for {shop_domain}: "
            f"{deleted} mirror rows, {targets} assignment targets"
        )

        rebuilt = rebuild_or_queue(self.coordinator, shop.id)
        return {"deleted": deleted, "targets": targets, "rebuilt": rebuilt}

    def _delete_targets(
        self, shop_id: int, target_type: AssignmentType, candidates: list[str]
    ) -> int:
        assignment_ids = select(TemplateAssignment.id).where(TemplateAssignment.shop_id == shop_id)
        return (
            self.db.query(TemplateAssignmentTarget)
            .filter(
                TemplateAssignmentTarget.target_type == target_type,
                TemplateAssignmentTarget.target_shopify_id.in_(candidates),
                TemplateAssignmentTarget.assignment_id.in_(assignment_ids),
            )
            .delete(synchronize_session=False)
        )
