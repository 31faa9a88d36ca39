"""
Availability reconciliation service.

Walks a scoped set of products and corrects every product whose persisted
availability flag disagrees with the live computation. Idempotent: a product
that already matches is never written. Status flips are not inventory
movements, so no InventoryMovement row is created here.
"""
import logging
from typing import Iterator, List, Optional

from flask import current_app, has_app_context
from sqlalchemy import func

from marketplace.models import Product, AdminCategory
from marketplace.exceptions import NotFoundError, ValidationError
from marketplace.services.availability_service import compute_availability
from marketplace.services.ledger_service import (
    reserved_quantity, in_flight_quantity,
    reserved_quantities, in_flight_quantities, delivered_quantities
)
from marketplace.services.cache_service import invalidate_catalog_cache
from marketplace.blueprints.metrics import availability_corrections_total, batch_items_skipped_total

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 200


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _int_list(data: dict, key: str) -> Optional[List[int]]:
    values = data.get(key)
    if values is None:
        return None
    if not isinstance(values, list) or not all(_is_int(v) for v in values):
        raise ValidationError(f'scope.{key} must be a list of integers')
    return values


class InventoryScope:
    """
    Subset of products a batch pass or stats query applies to.

    None means "no restriction" for a field; an empty list restricts to
    nothing (e.g. an admin without assigned categories).
    """

    def __init__(self, seller_id: Optional[int] = None,
                 category_ids: Optional[List[int]] = None,
                 product_ids: Optional[List[int]] = None):
        self.seller_id = seller_id
        self.category_ids = list(category_ids) if category_ids is not None else None
        self.product_ids = list(product_ids) if product_ids is not None else None

    def __repr__(self):
        return (f"<InventoryScope(seller_id={self.seller_id}, "
                f"category_ids={self.category_ids}, product_ids={self.product_ids})>")

    @property
    def is_empty(self) -> bool:
        return self.category_ids == [] or self.product_ids == []

    def apply(self, query):
        """Restrict a query that selects from Product."""
        if self.seller_id is not None:
            query = query.filter(Product.seller_id == self.seller_id)
        if self.category_ids is not None:
            query = query.filter(Product.category_id.in_(self.category_ids))
        if self.product_ids is not None:
            query = query.filter(Product.id.in_(self.product_ids))
        return query

    def to_dict(self) -> dict:
        return {
            'seller_id': self.seller_id,
            'category_ids': self.category_ids,
            'product_ids': self.product_ids,
        }

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> 'InventoryScope':
        """
        Build a scope from a JSON body or a queued job payload.

        Raises:
            ValidationError: If a field has the wrong type
        """
        data = data or {}
        if not isinstance(data, dict):
            raise ValidationError('scope must be an object')

        seller_id = data.get('seller_id')
        if seller_id is not None and not _is_int(seller_id):
            raise ValidationError('scope.seller_id must be an integer')

        return cls(
            seller_id=seller_id,
            category_ids=_int_list(data, 'category_ids'),
            product_ids=_int_list(data, 'product_ids'),
        )


class ReconciliationSummary:
    """Counts produced by one reconciliation pass."""

    def __init__(self):
        self.checked = 0
        self.updated = 0
        self.skipped = 0
        self.updated_ids = []

    def to_dict(self) -> dict:
        return {
            'checked': self.checked,
            'updated': self.updated,
            'skipped': self.skipped,
            'updated_ids': self.updated_ids,
        }


def scope_for_admin(session, admin_id: int) -> InventoryScope:
    """Scope limited to the categories assigned to an admin."""
    rows = session.query(AdminCategory.category_id).filter(
        AdminCategory.admin_id == admin_id
    ).all()
    return InventoryScope(category_ids=[row[0] for row in rows])


def _resolve_page_size(page_size: Optional[int]) -> int:
    if page_size:
        return page_size
    if has_app_context():
        return current_app.config.get('INVENTORY_PAGE_SIZE', DEFAULT_PAGE_SIZE)
    return DEFAULT_PAGE_SIZE


def iter_product_id_pages(session, scope: Optional[InventoryScope] = None,
                          page_size: Optional[int] = None) -> Iterator[List[int]]:
    """
    Yield product ids in ascending pages (keyset pagination).

    Each page is read fresh, so a pass can be interrupted between pages and
    resumed without holding a cursor open.
    """
    scope = scope or InventoryScope()
    if scope.is_empty:
        return
    size = _resolve_page_size(page_size)
    last_id = 0
    while True:
        query = scope.apply(session.query(Product.id)).filter(Product.id > last_id)
        ids = [row[0] for row in query.order_by(Product.id).limit(size).all()]
        if not ids:
            return
        yield ids
        last_id = ids[-1]
        if len(ids) < size:
            return


def _reconcile_one(session, product_id: int) -> bool:
    """
    Fix one product's flag in its own transaction. Returns True if written.

    Demand is read after the row lock is taken so the flag is computed from
    the ledger as it stands when it is written.
    """
    product = session.query(Product).filter(Product.id == product_id).with_for_update().first()
    if not product:
        raise NotFoundError(f'Product {product_id} not found')

    reserved = reserved_quantity(session, product_id)
    in_flight = in_flight_quantity(session, product_id)

    result = compute_availability(product.stock_quantity, reserved, in_flight)
    if product.availability == result.status:
        # Releases the row lock without writing anything
        session.rollback()
        return False

    previous = product.availability
    product.availability = result.status
    session.commit()

    availability_corrections_total.labels(status=result.status.value).inc()
    logger.info(
        f"[RECONCILE] Product {product_id}: {previous.value if previous else None} -> "
        f"{result.status.value} (stock={product.stock_quantity}, reserved={reserved}, in_flight={in_flight})"
    )
    return True


def reconcile_product_availability(session, scope: Optional[InventoryScope] = None,
                                   page_size: Optional[int] = None) -> ReconciliationSummary:
    """
    Align the persisted availability flag with the computed status.

    Best-effort: a failure on one product is rolled back, logged and counted
    as skipped, and the pass continues with the next product.

    Args:
        session: SQLAlchemy session
        scope: Products to check (default: all products)
        page_size: Products per page (default: INVENTORY_PAGE_SIZE)

    Returns:
        ReconciliationSummary
    """
    summary = ReconciliationSummary()

    for ids in iter_product_id_pages(session, scope, page_size):
        for product_id in ids:
            summary.checked += 1
            try:
                changed = _reconcile_one(session, product_id)
            except Exception as e:
                session.rollback()
                summary.skipped += 1
                batch_items_skipped_total.labels(job='reconcile').inc()
                logger.error(f"[RECONCILE] Skipping product {product_id}: {e}", exc_info=True)
                continue

            if changed:
                summary.updated += 1
                summary.updated_ids.append(product_id)

    if summary.updated:
        invalidate_catalog_cache()

    logger.info(
        f"[RECONCILE] Done: checked={summary.checked} updated={summary.updated} skipped={summary.skipped}"
    )
    return summary


def get_inventory_stats(session, scope: Optional[InventoryScope] = None) -> dict:
    """
    Aggregate inventory figures for a scope. Read-only.

    lowStockProducts counts products whose stock is at or below their own
    low-stock threshold.
    """
    scope = scope or InventoryScope()
    stats = {
        'totalProducts': 0,
        'totalStockQuantity': 0,
        'deliveredQuantity': 0,
        'reservedQuantity': 0,
        'shippingQuantity': 0,
        'lowStockProducts': 0,
    }
    if scope.is_empty:
        return stats

    totals = scope.apply(
        session.query(
            func.count(Product.id),
            func.coalesce(func.sum(Product.stock_quantity), 0),
        )
    ).one()
    stats['totalProducts'] = int(totals[0] or 0)
    stats['totalStockQuantity'] = int(totals[1] or 0)

    stats['lowStockProducts'] = scope.apply(session.query(func.count(Product.id))).filter(
        Product.stock_quantity <= Product.low_stock_threshold
    ).scalar() or 0

    for ids in iter_product_id_pages(session, scope):
        stats['reservedQuantity'] += sum(reserved_quantities(session, ids).values())
        stats['shippingQuantity'] += sum(in_flight_quantities(session, ids).values())
        stats['deliveredQuantity'] += sum(delivered_quantities(session, ids).values())

    return stats
