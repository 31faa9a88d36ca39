"""Orders blueprint - status transitions that drive stock."""
from flask import Blueprint, request, jsonify, g

from marketplace.database import get_session
from marketplace.middleware import require_actor, require_json
from marketplace.services.order_service import update_order_status

orders_bp = Blueprint('orders', __name__, url_prefix='/orders')


@orders_bp.route('/<int:order_id>/status', methods=['PATCH'])
@require_actor
@require_json
def change_status(order_id: int):
    """Body {status}. Delivering an order decrements stock."""
    session = get_session()
    order = update_order_status(session, order_id, request.get_json().get('status'), actor=g.actor)
    return jsonify({'status': 'success', 'data': order.to_dict()})
