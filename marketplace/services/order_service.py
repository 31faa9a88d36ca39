"""
Order status transitions and their inventory side effects.

Stock leaves inventory when an order is delivered, not when it is placed:
while pending/processing/shipped the units count as in-flight demand. A
delivered order that comes back as returned is restocked.
"""
import logging
from typing import Optional

from marketplace.models import Order, OrderStatus
from marketplace.exceptions import ValidationError, NotFoundError, BusinessLogicError
from marketplace.services.stock_service import lock_product, apply_stock_delta
from marketplace.services.cache_service import invalidate_catalog_cache
from marketplace.services.reconciliation_service import InventoryScope
from marketplace.services.job_queue import request_reconciliation

logger = logging.getLogger(__name__)


ALLOWED_TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.PROCESSING, OrderStatus.SHIPPED, OrderStatus.DELIVERED, OrderStatus.CANCELLED},
    OrderStatus.PROCESSING: {OrderStatus.SHIPPED, OrderStatus.DELIVERED, OrderStatus.CANCELLED},
    OrderStatus.SHIPPED: {OrderStatus.DELIVERED, OrderStatus.CANCELLED},
    OrderStatus.DELIVERED: {OrderStatus.RETURNED},
    OrderStatus.CANCELLED: set(),
    OrderStatus.RETURNED: set(),
}


def parse_order_status(value) -> OrderStatus:
    if isinstance(value, OrderStatus):
        return value
    try:
        return OrderStatus(str(value).strip().lower())
    except ValueError:
        valid = ', '.join(s.value for s in OrderStatus)
        raise ValidationError(f'Invalid order status "{value}". Expected one of: {valid}')


def update_order_status(session, order_id: int, new_status, actor: Optional[str] = None) -> Order:
    """
    Move an order to a new status (single transaction).

    Entering DELIVERED decrements stock for each item; DELIVERED -> RETURNED
    restocks. Both go through apply_stock_delta so movements are recorded.
    Afterwards reconciliation is requested for the order's products.

    Raises:
        ValidationError: Unknown status
        NotFoundError: Order not found
        BusinessLogicError: Transition not allowed
    """
    target = parse_order_status(new_status)

    try:
        order = session.query(Order).filter(Order.id == order_id).with_for_update().first()
        if not order:
            raise NotFoundError(f'Order {order_id} not found')

        current = order.status
        if target not in ALLOWED_TRANSITIONS[current]:
            raise BusinessLogicError(
                f'Cannot change order {order.order_number} from {current.value} to {target.value}',
                status_code=409
            )

        product_ids = [item.product_id for item in order.items]

        # Flush first so the ledger reads below already see the new status
        order.status = target
        session.flush()

        if target == OrderStatus.DELIVERED:
            for item in order.items:
                product = lock_product(session, item.product_id)
                apply_stock_delta(session, product, -item.quantity,
                                  reason=f'Order {order.order_number} delivered', actor=actor)
        elif current == OrderStatus.DELIVERED and target == OrderStatus.RETURNED:
            for item in order.items:
                product = lock_product(session, item.product_id)
                apply_stock_delta(session, product, item.quantity,
                                  reason=f'Order {order.order_number} returned', actor=actor)

        session.commit()
    except Exception:
        session.rollback()
        raise

    logger.info(f"[INVENTORY] Order {order_id}: {current.value} -> {target.value} (by {actor or 'system'})")

    if target in (OrderStatus.DELIVERED, OrderStatus.RETURNED):
        invalidate_catalog_cache()
    request_reconciliation(session, InventoryScope(product_ids=product_ids))
    return order
