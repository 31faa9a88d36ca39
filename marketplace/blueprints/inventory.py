"""Inventory blueprint - stats, per-product detail, stock adjustment and maintenance passes."""
from flask import Blueprint, request, jsonify, g
import logging

from marketplace.database import get_session
from marketplace.models import Product, ProductAvailability
from marketplace.middleware import require_actor, require_json
from marketplace.exceptions import NotFoundError, ValidationError
from marketplace.services.availability_service import get_product_inventory
from marketplace.services.reconciliation_service import (
    InventoryScope, scope_for_admin, get_inventory_stats, reconcile_product_availability
)
from marketplace.services.reservation_repair_service import (
    repair_over_reserved_cart, repair_over_reserved_carts
)
from marketplace.services.stock_service import adjust_stock, list_movements, set_availability_override
from marketplace.services.job_queue import request_reconciliation
from marketplace.utils.pagination import parse_pagination, build_meta

logger = logging.getLogger(__name__)

inventory_bp = Blueprint('inventory', __name__, url_prefix='/inventory')


def _int_arg(name):
    value = request.args.get(name, '').strip()
    if not value:
        return None
    try:
        return int(value)
    except ValueError:
        raise ValidationError(f'{name} must be an integer')


def _scope_from_request(session) -> InventoryScope:
    """
    Build the inventory scope from query args.

    admin_id restricts to the admin's assigned categories; seller_id and
    category_id narrow further. A caller identified by X-Seller-Id is always
    held to its own products.
    """
    admin_id = _int_arg('admin_id')
    scope = scope_for_admin(session, admin_id) if admin_id is not None else InventoryScope()

    seller_id = _int_arg('seller_id')
    if g.get('seller_id') is not None:
        seller_id = g.seller_id
    scope.seller_id = seller_id

    category_id = _int_arg('category_id')
    if category_id is not None:
        if scope.category_ids is None:
            scope.category_ids = [category_id]
        else:
            scope.category_ids = [c for c in scope.category_ids if c == category_id]
    return scope


def _optional_body() -> dict:
    body = request.get_json(silent=True)
    if body is None:
        return {}
    if not isinstance(body, dict):
        raise ValidationError('Request body must be a JSON object')
    return body


def _scope_from_body(body: dict) -> InventoryScope:
    scope = InventoryScope.from_dict(body.get('scope'))
    if g.get('seller_id') is not None:
        scope.seller_id = g.seller_id
    return scope


def _get_scoped_product(session, product_id: int) -> Product:
    """Load a product, hiding other sellers' products when a seller is calling."""
    product = session.get(Product, product_id)
    if not product or (g.get('seller_id') is not None and product.seller_id != g.seller_id):
        raise NotFoundError(f'Product {product_id} not found')
    return product


@inventory_bp.route('/stats', methods=['GET'])
def inventory_stats():
    """
    Inventory figures for a scope.

    Reconciliation for the same scope is requested through the job queue;
    the figures returned here never depend on it.
    """
    session = get_session()
    scope = _scope_from_request(session)
    stats = get_inventory_stats(session, scope)

    try:
        request_reconciliation(session, scope)
    except Exception as e:
        session.rollback()
        logger.error(f"[INVENTORY] Could not request reconciliation for {scope}: {e}", exc_info=True)

    return jsonify({'status': 'success', 'data': stats})


@inventory_bp.route('/products/<int:product_id>', methods=['GET'])
def product_detail(product_id: int):
    """Live availability detail for one product (no writes)."""
    session = get_session()
    _get_scoped_product(session, product_id)
    return jsonify({'status': 'success', 'data': get_product_inventory(session, product_id)})


@inventory_bp.route('/products/<int:product_id>/movements', methods=['GET'])
def product_movements(product_id: int):
    """Movement history, newest first."""
    session = get_session()
    _get_scoped_product(session, product_id)
    page, limit = parse_pagination(request.args, default_limit=50)
    movements = list_movements(session, product_id, limit=limit, offset=(page - 1) * limit)
    return jsonify({'status': 'success', 'data': [m.to_dict() for m in movements]})


@inventory_bp.route('/products/<int:product_id>/adjust', methods=['POST'])
@require_actor
@require_json
def adjust_product_stock(product_id: int):
    """Manual stock adjustment: body {adjustment: int, reason?: str}."""
    session = get_session()
    body = request.get_json()
    _get_scoped_product(session, product_id)

    if 'adjustment' not in body:
        raise ValidationError('adjustment is required')

    reason = (body.get('reason') or 'Manual adjustment').strip()
    product, movement = adjust_stock(session, product_id, body['adjustment'], reason=reason, actor=g.actor)

    return jsonify({
        'status': 'success',
        'data': {'product': product.to_dict(), 'movement': movement.to_dict()}
    }), 201


@inventory_bp.route('/products/<int:product_id>/availability', methods=['PATCH'])
@require_actor
@require_json
def override_availability(product_id: int):
    """
    Manual availability override: body {status: available|unavailable}.

    Writes only the flag (no movement); the next reconciliation of the
    product recomputes it.
    """
    session = get_session()
    _get_scoped_product(session, product_id)

    product = set_availability_override(session, product_id, request.get_json().get('status'), actor=g.actor)
    return jsonify({'status': 'success', 'data': product.to_dict()})


@inventory_bp.route('/low-stock', methods=['GET'])
def low_stock():
    """Products currently flagged unavailable (persisted flag), paginated."""
    session = get_session()
    scope = _scope_from_request(session)
    page, limit = parse_pagination(request.args)

    if scope.is_empty:
        return jsonify({'status': 'success', 'data': [], 'meta': build_meta(page, limit, 0)})

    query = scope.apply(session.query(Product)).filter(
        Product.availability == ProductAvailability.UNAVAILABLE
    )
    total = query.count()
    products = query.order_by(Product.updated_at.desc(), Product.id.desc()).limit(limit).offset((page - 1) * limit).all()

    return jsonify({
        'status': 'success',
        'data': [p.to_dict() for p in products],
        'meta': build_meta(page, limit, total),
    })


@inventory_bp.route('/reconcile', methods=['POST'])
@require_actor
def reconcile():
    """Run availability reconciliation now and return the summary."""
    session = get_session()
    body = _optional_body()
    scope = _scope_from_body(body)

    logger.info(f"[INVENTORY] Reconciliation requested by {g.actor} for {scope}")
    summary = reconcile_product_availability(session, scope)
    return jsonify({'status': 'success', 'data': summary.to_dict()})


@inventory_bp.route('/repair-reservations', methods=['POST'])
@require_actor
def repair_reservations():
    """Run over-reservation repair for one product or a scope."""
    session = get_session()
    body = _optional_body()

    logger.info(f"[INVENTORY] Reservation repair requested by {g.actor}")
    if body.get('product_id') is not None:
        try:
            product_id = int(body['product_id'])
        except (TypeError, ValueError):
            raise ValidationError('product_id must be an integer')
        _get_scoped_product(session, product_id)
        summary = repair_over_reserved_cart(session, product_id)
    else:
        summary = repair_over_reserved_carts(session, _scope_from_body(body))

    return jsonify({'status': 'success', 'data': summary.to_dict()})
