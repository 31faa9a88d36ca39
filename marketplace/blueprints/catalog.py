"""Public catalog blueprint - storefront listing."""
from flask import Blueprint, request, jsonify, current_app

from marketplace.database import get_session
from marketplace.models import Product, ProductAvailability
from marketplace.services.cache_service import get_cache
from marketplace.utils.pagination import parse_pagination, build_meta

catalog_bp = Blueprint('catalog', __name__, url_prefix='/catalog')


def _load_catalog_page(session, page: int, limit: int, category_id):
    # Filters on the persisted flag only; freshness comes from reconciliation
    query = session.query(Product).filter(
        Product.active == True,  # noqa: E712
        Product.availability == ProductAvailability.AVAILABLE
    )
    if category_id is not None:
        query = query.filter(Product.category_id == category_id)

    total = query.count()
    products = query.order_by(Product.id).limit(limit).offset((page - 1) * limit).all()
    return {
        'data': [
            {
                'id': p.id,
                'name': p.name,
                'sku': p.sku,
                'price': float(p.price),
                'category_id': p.category_id,
                'seller_id': p.seller_id,
                'availability': p.availability.value,
            }
            for p in products
        ],
        'meta': build_meta(page, limit, total),
    }


@catalog_bp.route('/products', methods=['GET'])
def list_products():
    """List products flagged available."""
    session = get_session()
    page, limit = parse_pagination(request.args, default_limit=current_app.config.get('CATALOG_PAGE_SIZE', 20))

    category_id = request.args.get('category_id', type=int)

    cache_key = f"page:{page}:limit:{limit}:category:{category_id or 'all'}"
    result = get_cache().memoize(
        'public', 'catalog', cache_key,
        lambda: _load_catalog_page(session, page, limit, category_id),
        ttl=current_app.config.get('CACHE_CATALOG_TTL', 30)
    )
    return jsonify({'status': 'success', **result})
