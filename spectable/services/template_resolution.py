"""Storefront-side resolution of the template that applies to a product page."""

import logging

from sqlalchemy.orm import Session

from spectable.config import get_settings
from spectable.models.shop import Shop
from spectable.services.assignment_store import AssignmentStore
from spectable.services.identifiers import normalize_shopify_id
from spectable.services.lookup_index import LookupIndex
from spectable.services.rebuild_coordinator import RebuildCoordinator, get_rebuild_coordinator

logger = logging.getLogger(__name__)


class TemplateResolver:
    """Resolves a template id through the lookup index.

    The cascade is strict: a product row wins over a collection row, which
    wins over the shop default, regardless of what the caller supplies.
    """

    def __init__(
        self,
        db: Session,
        coordinator: RebuildCoordinator | None = None,
        self_heal: bool | None = None,
    ):
        self.db = db
        self.index = LookupIndex(db)
        self._coordinator = coordinator
        self.self_heal = get_settings().lookup_self_heal if self_heal is None else self_heal

    @property
    def coordinator(self) -> RebuildCoordinator:
        if self._coordinator is None:
            self._coordinator = get_rebuild_coordinator()
        return self._coordinator

    def resolve(
        self,
        shop_id: int,
        product_id: str | int | None = None,
        collection_id: str | int | None = None,
    ) -> int | None:
        """Get the template id for a product/collection context, or None."""
        normalized_product_id = normalize_shopify_id(product_id)
        normalized_collection_id = normalize_shopify_id(collection_id)

        template_id = self._cascade(shop_id, normalized_product_id, normalized_collection_id)
        if template_id is not None or not self.self_heal:
            return template_id

        if self.index.count_for_shop(shop_id) > 0:
            return None
        if not AssignmentStore(self.db).has_active_assignments(shop_id):
            return None

        # Empty index although assignments exist: rebuild once and retry
        try:
            result = self.coordinator.heal(shop_id)
        except Exception as e:
            logger.error(f"Self-heal rebuild failed for shop {shop_id}: {e}", exc_info=True)
            return None
        if result is None:
            return None

        logger.warning(
            f"Lookup index for shop {shop_id} was empty, rebuilt {result['rebuilt']} rows"
        )
        self.db.expire_all()
        return self._cascade(shop_id, normalized_product_id, normalized_collection_id)

    def _cascade(
        self, shop_id: int, product_id: str | None, collection_id: str | None
    ) -> int | None:
        if product_id:
            lookup = self.index.find_for_product(shop_id, product_id)
            if lookup:
                logger.debug(f"Shop {shop_id}: product {product_id} -> {lookup.template_id}")
                return lookup.template_id

        if collection_id:
            lookup = self.index.find_for_collection(shop_id, collection_id)
            if lookup:
                logger.debug(f"Shop {shop_id}: collection {collection_id} -> {lookup.template_id}")
                return lookup.template_id

        lookup = self.index.find_default(shop_id)
        if lookup:
            logger.debug(f"Shop {shop_id}: default -> {lookup.template_id}")
            return lookup.template_id

        return None

    def resolve_for_domain(
        self,
        shop_domain: str,
        product_id: str | int | None = None,
        collection_id: str | int | None = None,
    ) -> int | None:
        """Resolve using the shop domain the storefront knows about."""
        shop = self.db.query(Shop).filter(Shop.shop_domain == shop_domain).first()
        if not shop:
            logger.info(f"Template requested for unknown shop {shop_domain}")
            return None
        return self.resolve(shop.id, product_id, collection_id)


def get_template_from_lookup(
    db: Session,
    shop_id: int,
    product_id: str | int | None = None,
    collection_id: str | int | None = None,
) -> int | None:
    """Resolve the template for a storefront render."""
    return TemplateResolver(db).resolve(shop_id, product_id, collection_id)
