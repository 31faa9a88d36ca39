"""
Over-reservation repair service.

Abandoned-cart reservations are recorded without a capacity check, so the
reserved total for a product can exceed its stock. Repair honors the earliest
reservations first (cart item id ascending): later items are capped to the
remaining capacity or removed. Cart totals are then recomputed once for every
touched cart, and carts left without items are deleted.
"""
import logging
from decimal import Decimal
from typing import Iterable, Optional, Set

from sqlalchemy import func

from marketplace.models import Product, AbandonedCart, AbandonedCartItem, CartStatus
from marketplace.exceptions import NotFoundError
from marketplace.services.ledger_service import reserved_quantities
from marketplace.services.reconciliation_service import InventoryScope, iter_product_id_pages
from marketplace.blueprints.metrics import reservation_repairs_total, batch_items_skipped_total

logger = logging.getLogger(__name__)


class RepairSummary:
    """Counts produced by a repair pass."""

    def __init__(self):
        self.products_checked = 0
        self.products_repaired = 0
        self.items_capped = 0
        self.items_removed = 0
        self.carts_updated = 0
        self.carts_deleted = 0
        self.skipped = 0

    def to_dict(self) -> dict:
        return {
            'products_checked': self.products_checked,
            'products_repaired': self.products_repaired,
            'items_capped': self.items_capped,
            'items_removed': self.items_removed,
            'carts_updated': self.carts_updated,
            'carts_deleted': self.carts_deleted,
            'skipped': self.skipped,
        }


def _repair_product(session, product_id: int, summary: RepairSummary) -> Set[int]:
    """
    Trim reservations for one product in a single transaction.

    Returns:
        Ids of carts whose items were capped or removed
    """
    product = session.query(Product).filter(Product.id == product_id).with_for_update().first()
    if not product:
        raise NotFoundError(f'Product {product_id} not found')

    items = (
        session.query(AbandonedCartItem)
        .join(AbandonedCart, AbandonedCart.id == AbandonedCartItem.cart_id)
        .filter(
            AbandonedCartItem.product_id == product_id,
            AbandonedCart.status == CartStatus.ABANDONED
        )
        .order_by(AbandonedCartItem.id.asc())
        .with_for_update()
        .all()
    )

    total_stock = product.stock_quantity
    total_reserved = sum(item.quantity for item in items)
    if total_reserved <= total_stock:
        session.rollback()
        return set()

    logger.info(
        f"[REPAIR] Product {product_id}: stock={total_stock} reserved={total_reserved} "
        f"(over by {total_reserved - total_stock})"
    )

    touched_carts = set()
    remaining = total_stock
    for item in items:
        if remaining <= 0:
            logger.info(f"[REPAIR]   removing cart item {item.id} (qty {item.quantity})")
            touched_carts.add(item.cart_id)
            session.delete(item)
            summary.items_removed += 1
            reservation_repairs_total.labels(action='removed').inc()
        elif item.quantity > remaining:
            logger.info(f"[REPAIR]   capping cart item {item.id} from {item.quantity} to {remaining}")
            touched_carts.add(item.cart_id)
            item.quantity = remaining
            item.total_price = (Decimal(item.unit_price) * remaining).quantize(Decimal('0.01'))
            remaining = 0
            summary.items_capped += 1
            reservation_repairs_total.labels(action='capped').inc()
        else:
            remaining -= item.quantity

    session.commit()
    summary.products_repaired += 1
    return touched_carts


def recalculate_cart_totals(session, cart_ids: Iterable[int], summary: Optional[RepairSummary] = None) -> RepairSummary:
    """
    Recompute item_count and cart_value from current items, one transaction per cart.

    An ABANDONED cart with no items left is deleted instead of updated.
    """
    summary = summary or RepairSummary()

    for cart_id in sorted(set(cart_ids)):
        try:
            cart = session.query(AbandonedCart).filter(AbandonedCart.id == cart_id).with_for_update().first()
            if not cart:
                raise NotFoundError(f'Cart {cart_id} not found')

            item_count, cart_value = session.query(
                func.coalesce(func.sum(AbandonedCartItem.quantity), 0),
                func.coalesce(func.sum(AbandonedCartItem.total_price), 0),
            ).filter(AbandonedCartItem.cart_id == cart_id).one()

            if int(item_count or 0) == 0 and cart.status == CartStatus.ABANDONED:
                logger.info(f"[REPAIR] Removing empty cart {cart_id}")
                session.delete(cart)
                session.commit()
                summary.carts_deleted += 1
                continue

            cart.item_count = int(item_count or 0)
            cart.cart_value = Decimal(str(cart_value or 0)).quantize(Decimal('0.01'))
            session.commit()
            summary.carts_updated += 1
        except Exception as e:
            session.rollback()
            summary.skipped += 1
            batch_items_skipped_total.labels(job='repair').inc()
            logger.error(f"[REPAIR] Could not recalculate cart {cart_id}: {e}", exc_info=True)

    return summary


def repair_over_reserved_cart(session, product_id: int) -> RepairSummary:
    """
    Repair over-reservation for a single product.

    Raises:
        NotFoundError: If the product does not exist
    """
    summary = RepairSummary()
    summary.products_checked = 1
    try:
        touched = _repair_product(session, product_id, summary)
    except Exception:
        session.rollback()
        raise
    recalculate_cart_totals(session, touched, summary)
    return summary


def repair_over_reserved_carts(session, scope: Optional[InventoryScope] = None,
                               page_size: Optional[int] = None) -> RepairSummary:
    """
    Repair every over-reserved product in scope.

    Products are pre-filtered with one grouped query per page; failures are
    isolated per product. Touched carts are recomputed after all products.
    """
    summary = RepairSummary()
    touched_carts = set()

    for ids in iter_product_id_pages(session, scope, page_size):
        reserved = reserved_quantities(session, ids)
        stock = dict(session.query(Product.id, Product.stock_quantity).filter(Product.id.in_(ids)).all())
        session.rollback()

        for product_id in ids:
            summary.products_checked += 1
            if reserved.get(product_id, 0) <= stock.get(product_id, 0):
                continue
            try:
                touched_carts |= _repair_product(session, product_id, summary)
            except Exception as e:
                session.rollback()
                summary.skipped += 1
                batch_items_skipped_total.labels(job='repair').inc()
                logger.error(f"[REPAIR] Skipping product {product_id}: {e}", exc_info=True)

    recalculate_cart_totals(session, touched_carts, summary)

    logger.info(f"[REPAIR] Done: {summary.to_dict()}")
    return summary
