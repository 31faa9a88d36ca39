"""Middleware for request context (actor and inventory scope)."""
from functools import wraps
from flask import g, request

from marketplace.exceptions import ValidationError


def load_request_context():
    """
    Load the acting user and seller scope into g.

    Authentication happens upstream; the gateway forwards the identity in
    X-Actor and, for seller-facing calls, X-Seller-Id.
    """
    g.actor = (request.headers.get('X-Actor') or '').strip() or None
    g.seller_id = None

    seller_header = request.headers.get('X-Seller-Id')
    if seller_header:
        try:
            g.seller_id = int(seller_header)
        except ValueError:
            g.seller_id = None


def require_actor(f):
    """
    Decorator: Require an identified actor for mutating endpoints.

    Stock movements are audited, so anonymous writes are rejected.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not g.get('actor'):
            raise ValidationError('X-Actor header is required for this operation')
        return f(*args, **kwargs)
    return decorated_function


def require_json(f):
    """Decorator: Require a JSON object body."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        body = request.get_json(silent=True)
        if not isinstance(body, dict):
            raise ValidationError('Request body must be a JSON object')
        return f(*args, **kwargs)
    return decorated_function
