import pytest
import uuid
from decimal import Decimal

from marketplace import create_app
from marketplace.database import get_session, create_schema, drop_schema
from marketplace.models import (
    Seller, Category, AdminCategory, Product, ProductAvailability,
    Order, OrderItem, OrderStatus, AbandonedCart, AbandonedCartItem, CartStatus
)


@pytest.fixture(scope='session')
def app():
    """Create application instance for testing."""
    app = create_app('config.TestingConfig')
    return app


@pytest.fixture(scope='function', autouse=True)
def schema(app):
    """Fresh in-memory schema per test, inside an application context."""
    with app.app_context():
        create_schema()
        yield
        get_session().remove()
        drop_schema()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def session():
    """Create database session for testing."""
    session = get_session()
    yield session
    session.rollback()


@pytest.fixture(scope='function')
def seller(session):
    """Create a test seller."""
    suffix = str(uuid.uuid4())[:8]
    seller = Seller(name=f'Seller {suffix}', email=f'seller-{suffix}@test.com', active=True)
    session.add(seller)
    session.commit()
    return seller


@pytest.fixture(scope='function')
def other_seller(session):
    """Create a second seller for isolation tests."""
    suffix = str(uuid.uuid4())[:8]
    seller = Seller(name=f'Other {suffix}', email=f'other-{suffix}@test.com', active=True)
    session.add(seller)
    session.commit()
    return seller


@pytest.fixture(scope='function')
def category(session):
    """Create a test category."""
    category = Category(name='Idols')
    session.add(category)
    session.commit()
    return category


@pytest.fixture(scope='function')
def admin_id(session, category):
    """Admin assigned to the test category."""
    session.add(AdminCategory(admin_id=42, category_id=category.id))
    session.commit()
    return 42


@pytest.fixture(scope='function')
def make_product(session, seller):
    """Factory for products with a given stock and persisted flag."""
    def _make(stock=10, availability=ProductAvailability.AVAILABLE, seller_id=None,
              category_id=None, price='100.00', low_stock_threshold=5, name=None):
        product = Product(
            seller_id=seller_id or seller.id,
            category_id=category_id,
            name=name or f'Product {uuid.uuid4().hex[:6]}',
            sku=f'SKU-{uuid.uuid4().hex[:8]}',
            price=Decimal(price),
            stock_quantity=stock,
            low_stock_threshold=low_stock_threshold,
            availability=availability,
            active=True
        )
        session.add(product)
        session.commit()
        return product
    return _make


@pytest.fixture(scope='function')
def make_order(session, seller):
    """Factory for orders: lines are (product, quantity) pairs."""
    def _make(lines, status=OrderStatus.PENDING):
        order = Order(
            order_number=f'ORD-{uuid.uuid4().hex[:8].upper()}',
            seller_id=seller.id,
            status=status
        )
        for product, quantity in lines:
            order.items.append(OrderItem(product_id=product.id, quantity=quantity, unit_price=product.price))
        session.add(order)
        session.commit()
        return order
    return _make


@pytest.fixture(scope='function')
def make_cart(session, seller):
    """Factory for abandoned carts: lines are (product, quantity, unit_price)."""
    def _make(lines, status=CartStatus.ABANDONED, email=None):
        cart = AbandonedCart(
            cart_number=f'CART-{uuid.uuid4().hex[:8].upper()}',
            seller_id=seller.id,
            customer_name='Customer',
            customer_email=email or f'customer-{uuid.uuid4().hex[:6]}@test.com',
            status=status
        )
        item_count = 0
        cart_value = Decimal('0')
        for product, quantity, unit_price in lines:
            unit_price = Decimal(unit_price)
            cart.items.append(AbandonedCartItem(
                product_id=product.id,
                product_name=product.name,
                quantity=quantity,
                unit_price=unit_price,
                total_price=unit_price * quantity
            ))
            item_count += quantity
            cart_value += unit_price * quantity
        cart.item_count = item_count
        cart.cart_value = cart_value
        session.add(cart)
        session.commit()
        return cart
    return _make


@pytest.fixture(scope='function')
def actor_headers():
    """Headers identifying the operator for mutating endpoints."""
    return {'X-Actor': 'ops@test.com'}
