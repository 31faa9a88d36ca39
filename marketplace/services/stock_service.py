"""
Stock mutation service.

The only path that changes Product.stock_quantity. Every call appends exactly
one InventoryMovement and recomputes the availability flag from the current
demand, all in the same transaction as the quantity change.
"""
import logging
from typing import Optional, Tuple

from flask import current_app, has_app_context
from sqlalchemy.orm.exc import StaleDataError
from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from marketplace.models import Product, ProductAvailability, InventoryMovement, MovementType
from marketplace.exceptions import ValidationError, NotFoundError, ConcurrentModificationError
from marketplace.services.availability_service import compute_availability
from marketplace.services.ledger_service import reserved_quantity, in_flight_quantity
from marketplace.services.cache_service import invalidate_catalog_cache
from marketplace.blueprints.metrics import stock_adjustments_total

logger = logging.getLogger(__name__)

# Largest magnitude accepted for a single adjustment (stock is a 32-bit column)
MAX_ADJUSTMENT = 2 ** 31 - 1


def validate_delta(delta) -> int:
    """Reject anything that is not a plain integer in range."""
    if isinstance(delta, bool) or not isinstance(delta, int):
        raise ValidationError('Adjustment must be an integer')
    if abs(delta) > MAX_ADJUSTMENT:
        raise ValidationError(f'Adjustment magnitude must not exceed {MAX_ADJUSTMENT}')
    return delta


def movement_type_for(delta: int) -> MovementType:
    if delta > 0:
        return MovementType.IN
    if delta < 0:
        return MovementType.OUT
    return MovementType.ADJUSTMENT


def lock_product(session, product_id: int) -> Product:
    """Load a product FOR UPDATE or raise NotFoundError."""
    product = session.query(Product).filter(Product.id == product_id).with_for_update().first()
    if not product:
        raise NotFoundError(f'Product {product_id} not found')
    return product


def apply_stock_delta(session, product: Product, delta: int, reason: Optional[str] = None,
                      actor: Optional[str] = None) -> InventoryMovement:
    """
    Apply delta to a locked product and stage the movement row.

    Does not commit; the caller owns the transaction.
    """
    previous_stock = product.stock_quantity
    if previous_stock + delta > MAX_ADJUSTMENT:
        raise ValidationError(f'Resulting stock for product {product.id} would exceed {MAX_ADJUSTMENT}')
    new_stock = max(0, previous_stock + delta)

    result = compute_availability(
        new_stock,
        reserved_quantity(session, product.id),
        in_flight_quantity(session, product.id),
    )

    product.stock_quantity = new_stock
    product.availability = result.status

    movement = InventoryMovement(
        product_id=product.id,
        type=movement_type_for(delta),
        quantity=abs(delta),
        previous_stock=previous_stock,
        new_stock=new_stock,
        reason=reason,
        actor=actor,
    )
    session.add(movement)
    return movement


def _log_retry(retry_state: RetryCallState) -> None:
    logger.warning(
        f"[INVENTORY] Stock update lost a race, retrying "
        f"(attempt {retry_state.attempt_number}): "
        f"{retry_state.outcome.exception() if retry_state.outcome else None}"
    )


def _retry_settings() -> Tuple[int, float]:
    if has_app_context():
        return (
            current_app.config.get('STOCK_MUTATION_MAX_RETRIES', 3),
            current_app.config.get('STOCK_MUTATION_RETRY_WAIT', 0.05),
        )
    return 3, 0.05


def _adjust_once(session, product_id: int, delta: int, reason: Optional[str], actor: Optional[str]):
    try:
        product = lock_product(session, product_id)
        movement = apply_stock_delta(session, product, delta, reason, actor)
        session.commit()
        return product, movement
    except Exception:
        session.rollback()
        raise


def adjust_stock(session, product_id: int, delta, reason: Optional[str] = None,
                 actor: Optional[str] = None) -> Tuple[Product, InventoryMovement]:
    """
    Adjust a product's stock by a signed delta (clamped at zero).

    Args:
        session: SQLAlchemy session
        product_id: Product to adjust
        delta: Positive for inbound, negative for outbound, 0 for a recount
        reason: Free-text reason stored on the movement
        actor: Who performed the change

    Returns:
        (product, movement)

    Raises:
        ValidationError: If delta is not an in-range integer (nothing is written)
        NotFoundError: If the product does not exist
        ConcurrentModificationError: If every retry lost a race
    """
    delta = validate_delta(delta)
    max_retries, wait = _retry_settings()

    retryer = Retrying(
        stop=stop_after_attempt(max_retries),
        wait=wait_exponential(multiplier=wait, max=wait * 8),
        retry=retry_if_exception_type(StaleDataError),
        before_sleep=_log_retry,
        reraise=True,
    )

    try:
        product, movement = retryer(_adjust_once, session, product_id, delta, reason, actor)
    except StaleDataError:
        raise ConcurrentModificationError('Product', product_id, max_retries)

    stock_adjustments_total.labels(type=movement.type.value).inc()
    invalidate_catalog_cache()
    logger.info(
        f"[INVENTORY] Product {product_id} stock {movement.previous_stock} -> {movement.new_stock} "
        f"({movement.type.value} {movement.quantity}, by {actor or 'system'}); "
        f"availability={product.availability.value}"
    )
    return product, movement


def parse_availability(value) -> ProductAvailability:
    if isinstance(value, ProductAvailability):
        return value
    try:
        return ProductAvailability(str(value).strip().lower())
    except ValueError:
        raise ValidationError(f'Invalid availability "{value}". Expected available or unavailable')


def set_availability_override(session, product_id: int, status, actor: Optional[str] = None) -> Product:
    """
    Force a product's availability flag by hand.

    Stock is untouched and no movement is written. The override is transient:
    the next reconciliation pass over the product recomputes the flag from
    stock and demand.

    Raises:
        ValidationError: Unknown status
        NotFoundError: If the product does not exist
    """
    target = parse_availability(status)

    try:
        product = lock_product(session, product_id)
        previous = product.availability
        product.availability = target
        session.commit()
    except Exception:
        session.rollback()
        raise

    if previous != target:
        invalidate_catalog_cache()
    logger.warning(
        f"[INVENTORY] Product {product_id} availability overridden "
        f"{previous.value if previous else None} -> {target.value} by {actor or 'system'}"
    )
    return product


def list_movements(session, product_id: int, limit: int = 50, offset: int = 0):
    """
    Movement history for a product, newest first.

    Raises:
        NotFoundError: If the product does not exist
    """
    if not session.get(Product, product_id):
        raise NotFoundError(f'Product {product_id} not found')

    return (
        session.query(InventoryMovement)
        .filter(InventoryMovement.product_id == product_id)
        .order_by(InventoryMovement.created_at.desc(), InventoryMovement.id.desc())
        .limit(limit)
        .offset(offset)
        .all()
    )
