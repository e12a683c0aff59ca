"""Access to the template lookup index (the materialized resolution table)."""

import logging
from dataclasses import asdict, dataclass

from sqlalchemy import insert
from sqlalchemy.orm import Session

from spectable.config import get_settings
from spectable.models.template_lookup import TemplateLookup

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LookupEntry:
    """A row of the lookup index before it is written."""

    shop_id: int
    template_id: int
    priority: int
    product_id: str | None = None
    collection_id: str | None = None
    is_default: bool = False

    @property
    def resolution_key(self) -> tuple[int, str | None, str | None, int]:
        """Key on which at most one entry may exist."""
        return (self.shop_id, self.product_id, self.collection_id, self.priority)


class LookupIndex:
    """Reads and replaces lookup rows for a shop."""

    def __init__(self, db: Session, batch_size: int | None = None):
        self.db = db
        self.batch_size = batch_size or get_settings().lookup_batch_size

    def replace_for_shop(self, shop_id: int, entries: list[LookupEntry]) -> int:
        """Replace every lookup row of a shop in a single transaction.

        Other sessions keep seeing the previous rows until the commit. If any
        insert chunk fails the whole replacement is rolled back and re-raised.

        Returns:
            Number of rows inserted
        """
        rows = [asdict(entry) for entry in entries]
        try:
            deleted = (
                self.db.query(TemplateLookup)
                .filter(TemplateLookup.shop_id == shop_id)
                .delete(synchronize_session=False)
            )

            saved = 0
            for start in range(0, len(rows), self.batch_size):
                batch = rows[start : start + self.batch_size]
                self.db.execute(insert(TemplateLookup), batch)
                saved += len(batch)
                logger.debug(
                    f"Shop {shop_id}: staged lookup batch {start // self.batch_size + 1} "
                    f"({len(batch)} rows)"
                )

            self.db.commit()
        except Exception:
            self.db.rollback()
            logger.error(f"Lookup replacement failed for shop {shop_id}, rolled back")
            raise

        logger.info(f"Shop {shop_id}: replaced {deleted} lookup rows with {saved}")
        return saved

    def find_for_product(self, shop_id: int, product_id: str) -> TemplateLookup | None:
        """Get the lookup row for a product."""
        return (
            self.db.query(TemplateLookup)
            .filter(TemplateLookup.shop_id == shop_id, TemplateLookup.product_id == product_id)
            .order_by(TemplateLookup.priority.asc())
            .first()
        )

    def find_for_collection(self, shop_id: int, collection_id: str) -> TemplateLookup | None:
        """Get the lookup row for a collection."""
        return (
            self.db.query(TemplateLookup)
            .filter(
                TemplateLookup.shop_id == shop_id,
                TemplateLookup.collection_id == collection_id,
            )
            .order_by(TemplateLookup.priority.asc())
            .first()
        )

    def find_default(self, shop_id: int) -> TemplateLookup | None:
        """Get the default lookup row for a shop."""
        return (
            self.db.query(TemplateLookup)
            .filter(TemplateLookup.shop_id == shop_id, TemplateLookup.is_default.is_(True))
            .order_by(TemplateLookup.priority.asc())
            .first()
        )

    def count_for_shop(self, shop_id: int) -> int:
        """Count lookup rows for a shop."""
        return self.db.query(TemplateLookup).filter(TemplateLookup.shop_id == shop_id).count()

    def entries_for_shop(self, shop_id: int) -> list[TemplateLookup]:
        """All lookup rows for a shop in a stable order."""
        return (
            self.db.query(TemplateLookup)
            .filter(TemplateLookup.shop_id == shop_id)
            .order_by(
                TemplateLookup.priority.asc(),
                TemplateLookup.product_id.asc(),
                TemplateLookup.collection_id.asc(),
            )
            .all()
        )

    def delete_for_product(self, shop_id: int, product_id: str) -> int:
        """Drop the row for a deleted product. The caller commits."""
        return (
            self.db.query(TemplateLookup)
            .filter(TemplateLookup.shop_id == shop_id, TemplateLookup.product_id == product_id)
            .delete(synchronize_session=False)
        )

    def delete_for_collection(self, shop_id: int, collection_id: str) -> int:
        """Drop the row for a deleted collection. The caller commits."""
        return (
            self.db.query(TemplateLookup)
            .filter(
                TemplateLookup.shop_id == shop_id,
                TemplateLookup.collection_id == collection_id,
            )
            .delete(synchronize_session=False)
        )

    def delete_for_template(self, template_id: int) -> int:
        """Drop rows pointing at a template that is being deleted. The caller commits."""
        return (
            self.db.query(TemplateLookup)
            .filter(TemplateLookup.template_id == template_id)
            .delete(synchronize_session=False)
        )
