"""Rebuild of the template lookup index from the current assignments."""

import logging
from collections.abc import Callable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from spectable.models.enums import AssignmentType
from spectable.services.assignment_store import (
    AssignmentRecord,
    AssignmentStore,
    CatalogMirror,
    TargetRecord,
)
from spectable.services.identifiers import normalize_shopify_id
from spectable.services.lookup_index import LookupEntry, LookupIndex

logger = logging.getLogger(__name__)


class TemplateLookupBuilder:
    """Recomputes a shop's lookup index and swaps it in atomically.

    The index is never patched in place: every rebuild derives the full row
    set from the active assignments, resolves conflicts, and replaces all of
    the shop's rows, so nothing stale survives a template or assignment
    deletion. Running it twice without intervening changes yields the same rows.
    """

    def __init__(
        self,
        db: Session,
        store: AssignmentStore | None = None,
        catalog: CatalogMirror | None = None,
        index: LookupIndex | None = None,
    ):
        self.db = db
        self.store = store or AssignmentStore(db)
        self.catalog = catalog or CatalogMirror(db)
        self.index = index or LookupIndex(db)

    def rebuild(self, shop_id: int) -> dict[str, int]:
        """Rebuild the lookup index for one shop.

        Returns:
            {"rebuilt": number of rows written}
        """
        assignments = self.store.find_active_assignments_with_targets(shop_id)
        logger.info(f"Shop {shop_id}: rebuilding lookup from {len(assignments)} active assignments")

        candidates = self.build_entries(shop_id, assignments)
        entries = self.deduplicate(candidates)
        if len(entries) != len(candidates):
            logger.info(
                f"Shop {shop_id}: {len(entries)} unique lookup entries "
                f"(from {len(candidates)} candidates)"
            )

        rebuilt = self.index.replace_for_shop(shop_id, entries)
        return {"rebuilt": rebuilt}

    def build_entries(self, shop_id: int, assignments: list[AssignmentRecord]) -> list[LookupEntry]:
        """Turn assignments into candidate lookup entries in processing order."""
        entries: list[LookupEntry] = []

        for assignment in assignments:
            if assignment.assignment_type == AssignmentType.PRODUCT:
                entries.extend(self._product_entries(shop_id, assignment))
            elif assignment.assignment_type == AssignmentType.COLLECTION:
                entries.extend(self._collection_entries(shop_id, assignment))
            elif assignment.assignment_type == AssignmentType.DEFAULT:
                entries.append(
                    LookupEntry(
                        shop_id=shop_id,
                        template_id=assignment.template_id,
                        priority=AssignmentType.DEFAULT.priority,
                        is_default=True,
                    )
                )

        return entries

    def _product_entries(self, shop_id: int, assignment: AssignmentRecord) -> list[LookupEntry]:
        entries = []
        for target in self._live_targets(assignment):
            product_id = normalize_shopify_id(target.target_shopify_id)
            if not product_id:
                continue

            if not self._exists(self.catalog.product_exists, shop_id, product_id, "Product"):
                logger.warning(f"Shop {shop_id}: product {product_id} not in catalog, skipping")
                continue

            entries.append(
                LookupEntry(
                    shop_id=shop_id,
                    template_id=assignment.template_id,
                    priority=AssignmentType.PRODUCT.priority,
                    product_id=product_id,
                )
            )
        return entries

    def _collection_entries(
        self, shop_id: int, assignment: AssignmentRecord
    ) -> list[LookupEntry]:
        # Collapse targets that point at the same collection in different id forms
        unique_ids: list[str] = []
        seen: set[str] = set()
        for target in self._live_targets(assignment):
            collection_id = normalize_shopify_id(target.target_shopify_id)
            if not collection_id:
                logger.warning(
                    f"Shop {shop_id}: could not normalize collection target "
                    f"{target.target_shopify_id!r}"
                )
                continue
            if collection_id not in seen:
                seen.add(collection_id)
                unique_ids.append(collection_id)

        entries = []
        for collection_id in unique_ids:
            if not self._exists(
                self.catalog.collection_exists, shop_id, collection_id, "Collection"
            ):
                logger.warning(
                    f"Shop {shop_id}: collection {collection_id} not in catalog, skipping"
                )
                continue

            entries.append(
                LookupEntry(
                    shop_id=shop_id,
                    template_id=assignment.template_id,
                    priority=AssignmentType.COLLECTION.priority,
                    collection_id=collection_id,
                )
            )
        return entries

    def _live_targets(self, assignment: AssignmentRecord) -> list[TargetRecord]:
        targets = []
        for target in assignment.targets:
            if target.is_excluded:
                # Legacy "all except" rows are not expanded; they select nothing.
                logger.warning(
                    f"Assignment {assignment.id}: ignoring legacy excluded target "
                    f"{target.target_shopify_id!r}"
                )
                continue
            targets.append(target)
        return targets

    def _exists(
        self,
        check: Callable[[int, str], bool],
        shop_id: int,
        normalized_id: str,
        resource_type: str,
    ) -> bool:
        try:
            return bool(check(shop_id, normalized_id))
        except Exception as e:
            logger.warning(
                f"Shop {shop_id}: {resource_type} existence check failed for "
                f"{normalized_id}, treating as absent: {e}"
            )
            if isinstance(e, SQLAlchemyError):
                self.db.rollback()
            return False

    @staticmethod
    def deduplicate(entries: list[LookupEntry]) -> list[LookupEntry]:
        """Keep the last entry per resolution key, warning on template conflicts."""
        unique: dict[tuple, LookupEntry] = {}
        for entry in entries:
            existing = unique.get(entry.resolution_key)
            if existing is not None and existing.template_id != entry.template_id:
                logger.warning(
                    f"Conflicting lookup entry for key {entry.resolution_key}: "
                    f"template {existing.template_id} discarded in favour of {entry.template_id}"
                )
            unique[entry.resolution_key] = entry
        return list(unique.values())
