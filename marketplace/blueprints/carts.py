"""Abandoned carts blueprint - cart sync and status changes."""
from flask import Blueprint, request, jsonify, g

from marketplace.database import get_session
from marketplace.middleware import require_json
from marketplace.exceptions import ValidationError
from marketplace.services.cart_service import sync_abandoned_cart, set_cart_status, get_cart

carts_bp = Blueprint('carts', __name__, url_prefix='/carts')


@carts_bp.route('', methods=['POST'])
@require_json
def sync_cart():
    """Create or replace a customer's abandoned cart."""
    session = get_session()
    body = request.get_json()

    seller_id = body.get('seller_id', g.get('seller_id'))
    try:
        seller_id = int(seller_id)
    except (TypeError, ValueError):
        raise ValidationError('seller_id is required')

    cart = sync_abandoned_cart(
        session,
        seller_id=seller_id,
        customer_name=(body.get('customer_name') or '').strip(),
        customer_email=(body.get('customer_email') or '').strip().lower(),
        items=body.get('items') or [],
    )
    return jsonify({'status': 'success', 'data': cart.to_dict()}), 201


@carts_bp.route('/<int:cart_id>', methods=['GET'])
def cart_detail(cart_id: int):
    session = get_session()
    return jsonify({'status': 'success', 'data': get_cart(session, cart_id).to_dict()})


@carts_bp.route('/<int:cart_id>/status', methods=['PATCH'])
@require_json
def update_cart_status(cart_id: int):
    """Body {status: abandoned|recovered|expired}."""
    session = get_session()
    cart = set_cart_status(session, cart_id, request.get_json().get('status'))
    return jsonify({'status': 'success', 'data': cart.to_dict()})
