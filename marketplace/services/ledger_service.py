"""
Ledger readers - demand sums per product.

Pure aggregation queries over the order-item ledger and the abandoned-cart
ledger. No side effects; a product with no ledger rows always sums to 0.
"""
from collections import namedtuple
from typing import Dict, Iterable

from sqlalchemy import func

from marketplace.models import (
    Order, OrderItem, OrderStatus, IN_FLIGHT_STATUSES,
    AbandonedCart, AbandonedCartItem, CartStatus
)


Demand = namedtuple('Demand', ['reserved', 'in_flight', 'delivered'])


def _reserved_query(session):
    return (
        session.query(func.coalesce(func.sum(AbandonedCartItem.quantity), 0))
        .join(AbandonedCart, AbandonedCart.id == AbandonedCartItem.cart_id)
        .filter(AbandonedCart.status == CartStatus.ABANDONED)
    )


def _order_query(session, statuses):
    return (
        session.query(func.coalesce(func.sum(OrderItem.quantity), 0))
        .join(Order, Order.id == OrderItem.order_id)
        .filter(Order.status.in_(statuses))
    )


def reserved_quantity(session, product_id: int) -> int:
    """Units held by carts still in ABANDONED status."""
    total = _reserved_query(session).filter(AbandonedCartItem.product_id == product_id).scalar()
    return int(total or 0)


def in_flight_quantity(session, product_id: int) -> int:
    """Units committed to pending, processing or shipped orders."""
    total = _order_query(session, IN_FLIGHT_STATUSES).filter(OrderItem.product_id == product_id).scalar()
    return int(total or 0)


def delivered_quantity(session, product_id: int) -> int:
    """Units on delivered orders (informational only)."""
    total = _order_query(session, (OrderStatus.DELIVERED,)).filter(OrderItem.product_id == product_id).scalar()
    return int(total or 0)


def get_demand(session, product_id: int) -> Demand:
    """Bundle the three demand sums for a single product."""
    return Demand(
        reserved=reserved_quantity(session, product_id),
        in_flight=in_flight_quantity(session, product_id),
        delivered=delivered_quantity(session, product_id),
    )


# =====================================================
# SET-BASED VARIANTS (one grouped query per bucket)
# =====================================================

def _grouped(query, product_column, product_ids) -> Dict[int, int]:
    ids = list(product_ids)
    if not ids:
        return {}
    rows = query.filter(product_column.in_(ids)).group_by(product_column).all()
    totals = {pid: 0 for pid in ids}
    for pid, qty in rows:
        totals[pid] = int(qty or 0)
    return totals


def reserved_quantities(session, product_ids: Iterable[int]) -> Dict[int, int]:
    """Reserved quantity for each id in product_ids (missing rows -> 0)."""
    query = (
        session.query(AbandonedCartItem.product_id, func.sum(AbandonedCartItem.quantity))
        .join(AbandonedCart, AbandonedCart.id == AbandonedCartItem.cart_id)
        .filter(AbandonedCart.status == CartStatus.ABANDONED)
    )
    return _grouped(query, AbandonedCartItem.product_id, product_ids)


def in_flight_quantities(session, product_ids: Iterable[int]) -> Dict[int, int]:
    """In-flight quantity for each id in product_ids (missing rows -> 0)."""
    query = (
        session.query(OrderItem.product_id, func.sum(OrderItem.quantity))
        .join(Order, Order.id == OrderItem.order_id)
        .filter(Order.status.in_(IN_FLIGHT_STATUSES))
    )
    return _grouped(query, OrderItem.product_id, product_ids)


def delivered_quantities(session, product_ids: Iterable[int]) -> Dict[int, int]:
    """Delivered quantity for each id in product_ids (missing rows -> 0)."""
    query = (
        session.query(OrderItem.product_id, func.sum(OrderItem.quantity))
        .join(Order, Order.id == OrderItem.order_id)
        .filter(Order.status == OrderStatus.DELIVERED)
    )
    return _grouped(query, OrderItem.product_id, product_ids)
