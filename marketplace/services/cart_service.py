"""
Abandoned cart sync.

Creates or replaces a customer's open cart for a seller. Reservations are
recorded as-is, without a capacity check; over-reservation is corrected later
by reservation_repair_service.
"""
import logging
import uuid
from decimal import Decimal, InvalidOperation
from typing import List, Optional

from marketplace.models import Product, AbandonedCart, AbandonedCartItem, CartStatus
from marketplace.exceptions import ValidationError, NotFoundError
from marketplace.services.reconciliation_service import InventoryScope
from marketplace.services.job_queue import request_reconciliation

logger = logging.getLogger(__name__)


def _generate_cart_number() -> str:
    return f"CART-{uuid.uuid4().hex[:10].upper()}"


def _parse_items(items: List[dict]) -> List[dict]:
    if not items:
        raise ValidationError('A cart needs at least one item')

    parsed = []
    for raw in items:
        try:
            product_id = int(raw['product_id'])
        except (KeyError, TypeError, ValueError):
            raise ValidationError('Each item needs an integer product_id')

        quantity = raw.get('quantity', 1)
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
            raise ValidationError(f'Quantity for product {product_id} must be a positive integer')

        unit_price = raw.get('unit_price')
        if unit_price is not None:
            try:
                unit_price = Decimal(str(unit_price))
            except InvalidOperation:
                raise ValidationError(f'Invalid unit_price for product {product_id}')
            if unit_price < 0:
                raise ValidationError(f'unit_price for product {product_id} cannot be negative')

        parsed.append({'product_id': product_id, 'quantity': quantity, 'unit_price': unit_price})
    return parsed


def sync_abandoned_cart(session, seller_id: int, customer_name: str, customer_email: str,
                        items: List[dict]) -> AbandonedCart:
    """
    Create the customer's abandoned cart, or replace the items of the open one.

    Args:
        session: SQLAlchemy session
        seller_id: Seller the cart belongs to
        customer_name: Display name
        customer_email: Identifies the customer's open cart
        items: [{'product_id': int, 'quantity': int, 'unit_price': optional}]

    Raises:
        ValidationError: Bad input (nothing is written)
        NotFoundError: Unknown product
    """
    if not customer_email:
        raise ValidationError('customer_email is required')
    lines = _parse_items(items)

    try:
        products = {}
        for line in lines:
            pid = line['product_id']
            if pid not in products:
                product = session.get(Product, pid)
                if not product:
                    raise NotFoundError(f'Product {pid} not found')
                if product.seller_id != seller_id:
                    raise ValidationError(f'Product {pid} does not belong to seller {seller_id}')
                products[pid] = product

        cart = session.query(AbandonedCart).filter(
            AbandonedCart.seller_id == seller_id,
            AbandonedCart.customer_email == customer_email,
            AbandonedCart.status == CartStatus.ABANDONED
        ).with_for_update().first()

        affected = set(products)
        if cart:
            affected |= {item.product_id for item in cart.items}
            cart.items = []
            cart.customer_name = customer_name or cart.customer_name
        else:
            cart = AbandonedCart(
                cart_number=_generate_cart_number(),
                seller_id=seller_id,
                customer_name=customer_name or customer_email,
                customer_email=customer_email,
                status=CartStatus.ABANDONED,
            )
            session.add(cart)

        item_count = 0
        cart_value = Decimal('0')
        for line in lines:
            product = products[line['product_id']]
            unit_price = line['unit_price'] if line['unit_price'] is not None else Decimal(product.price)
            total_price = (unit_price * line['quantity']).quantize(Decimal('0.01'))
            cart.items.append(AbandonedCartItem(
                product_id=product.id,
                product_name=product.name,
                quantity=line['quantity'],
                unit_price=unit_price,
                total_price=total_price,
            ))
            item_count += line['quantity']
            cart_value += total_price

        # Derived totals commit together with the items they summarize
        cart.item_count = item_count
        cart.cart_value = cart_value

        session.commit()
    except Exception:
        session.rollback()
        raise

    logger.info(f"[INVENTORY] Synced cart {cart.cart_number} ({len(lines)} lines) for {customer_email}")

    request_reconciliation(session, InventoryScope(product_ids=sorted(affected)))
    return cart


def set_cart_status(session, cart_id: int, status) -> AbandonedCart:
    """
    Move a cart to recovered/expired (or back to abandoned).

    Leaving ABANDONED releases its reservations, so reconciliation is
    requested for the cart's products.
    """
    try:
        target = status if isinstance(status, CartStatus) else CartStatus(str(status).strip().lower())
    except ValueError:
        raise ValidationError(f'Invalid cart status "{status}"')

    try:
        cart = session.query(AbandonedCart).filter(AbandonedCart.id == cart_id).with_for_update().first()
        if not cart:
            raise NotFoundError(f'Cart {cart_id} not found')
        product_ids = sorted({item.product_id for item in cart.items})
        cart.status = target
        session.commit()
    except Exception:
        session.rollback()
        raise

    logger.info(f"[INVENTORY] Cart {cart_id} -> {target.value}")
    request_reconciliation(session, InventoryScope(product_ids=product_ids))
    return cart


def get_cart(session, cart_id: int) -> Optional[AbandonedCart]:
    cart = session.get(AbandonedCart, cart_id)
    if not cart:
        raise NotFoundError(f'Cart {cart_id} not found')
    return cart
