"""
Unit tests for SQLAlchemy models.
"""

import pytest
from marketplace.models import Seller, Product, ProductAvailability, AbandonedCart, CartStatus
from marketplace.exceptions import ConcurrentModificationError, NotFoundError, ValidationError


class TestSellerModel:
    """Tests for Seller model."""

    def test_seller_email_unique(self, session, seller):
        """Seller email must be unique."""
        session.add(Seller(name='Duplicate', email=seller.email))

        with pytest.raises(Exception):  # IntegrityError
            session.commit()


class TestProductModel:
    """Tests for Product model."""

    def test_defaults(self, session, seller):
        product = Product(seller_id=seller.id, name='Plain', price=10)
        session.add(product)
        session.commit()

        assert product.stock_quantity == 0
        assert product.availability == ProductAvailability.UNAVAILABLE
        assert product.low_stock_threshold == 5
        assert product.version_id == 1

    def test_version_increments_on_update(self, session, make_product):
        product = make_product(stock=3)
        product.stock_quantity = 4
        session.commit()

        assert product.version_id == 2

    def test_is_low_stock(self, make_product):
        assert make_product(stock=5, low_stock_threshold=5).is_low_stock is True
        assert make_product(stock=6, low_stock_threshold=5).is_low_stock is False

    def test_to_dict(self, make_product):
        data = make_product(stock=3, price='12.50').to_dict()
        assert data['stock_quantity'] == 3
        assert data['price'] == 12.5
        assert data['availability'] == 'available'


class TestAbandonedCartModel:
    """Tests for AbandonedCart model."""

    def test_items_deleted_with_cart(self, session, make_product, make_cart):
        product = make_product(stock=10)
        cart = make_cart([(product, 2, '10.00')])
        cart_id = cart.id

        session.delete(cart)
        session.commit()

        assert session.get(AbandonedCart, cart_id) is None

    def test_to_dict(self, make_product, make_cart):
        product = make_product(stock=10)
        data = make_cart([(product, 2, '10.00')], status=CartStatus.ABANDONED).to_dict()
        assert data['status'] == 'abandoned'
        assert data['item_count'] == 2
        assert data['items'][0]['total_price'] == 20.0


class TestExceptions:
    """Error payloads returned by the API."""

    def test_validation_error(self):
        error = ValidationError('bad')
        assert error.status_code == 400
        assert error.to_dict() == {'status': 'error', 'message': 'bad'}

    def test_not_found(self):
        assert NotFoundError().status_code == 404

    def test_concurrent_modification_is_retryable(self):
        error = ConcurrentModificationError('Product', 7, 3)
        assert error.status_code == 409
        assert error.to_dict()['retryable'] is True
        assert 'Product 7' in error.message
