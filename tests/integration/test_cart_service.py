"""
Integration tests for abandoned cart sync.
"""

import pytest
from decimal import Decimal

from marketplace.models import AbandonedCart, Product, ProductAvailability, CartStatus
from marketplace.exceptions import ValidationError, NotFoundError
from marketplace.services.cart_service import sync_abandoned_cart, set_cart_status, get_cart
from marketplace.services.ledger_service import reserved_quantity


class TestSyncAbandonedCart:
    """Cart creation and replacement."""

    def test_creates_cart_with_totals(self, session, seller, make_product):
        product = make_product(stock=10, price='12.50')

        cart = sync_abandoned_cart(session, seller.id, 'Ana', 'ana@test.com', [
            {'product_id': product.id, 'quantity': 2},
            {'product_id': product.id, 'quantity': 1, 'unit_price': '10.00'},
        ])

        assert cart.status == CartStatus.ABANDONED
        assert cart.cart_number.startswith('CART-')
        assert cart.item_count == 3
        assert cart.cart_value == Decimal('35.00')
        assert reserved_quantity(session, product.id) == 3

    def test_replaces_open_cart_items(self, session, seller, make_product):
        first = make_product(stock=10)
        second = make_product(stock=10)

        original = sync_abandoned_cart(session, seller.id, 'Ana', 'ana@test.com',
                                       [{'product_id': first.id, 'quantity': 4}])
        original_id = original.id
        updated = sync_abandoned_cart(session, seller.id, 'Ana', 'ana@test.com',
                                      [{'product_id': second.id, 'quantity': 1}])

        assert updated.id == original_id
        assert session.query(AbandonedCart).count() == 1
        assert reserved_quantity(session, first.id) == 0
        assert reserved_quantity(session, second.id) == 1

    def test_totals_are_committed_with_items(self, session, seller, make_product, monkeypatch):
        """Every commit sees item_count and cart_value matching the cart's items."""
        first = make_product(stock=10, price='12.50')
        second = make_product(stock=10, price='3.00')
        real = session()
        original_commit = real.commit
        committed = []

        def recording_commit():
            for obj in list(real.new) + list(real.identity_map.values()):
                if isinstance(obj, AbandonedCart):
                    committed.append((
                        (obj.item_count, obj.cart_value),
                        (sum(item.quantity for item in obj.items),
                         sum((item.total_price for item in obj.items), Decimal('0'))),
                    ))
            return original_commit()

        monkeypatch.setattr(real, 'commit', recording_commit)

        sync_abandoned_cart(session, seller.id, 'Ana', 'ana@test.com', [
            {'product_id': first.id, 'quantity': 2},
            {'product_id': second.id, 'quantity': 3},
        ])
        sync_abandoned_cart(session, seller.id, 'Ana', 'ana@test.com', [
            {'product_id': second.id, 'quantity': 1},
        ])

        assert committed
        for stored, from_items in committed:
            assert stored == from_items
        cart = session.query(AbandonedCart).one()
        assert cart.item_count == 1
        assert cart.cart_value == Decimal('3.00')

    def test_over_reservation_is_accepted(self, session, seller, make_product):
        """No capacity check at sync time; the flag is reconciled instead."""
        product = make_product(stock=2, availability=ProductAvailability.AVAILABLE)

        sync_abandoned_cart(session, seller.id, 'Ana', 'ana@test.com',
                            [{'product_id': product.id, 'quantity': 5}])

        assert reserved_quantity(session, product.id) == 5
        assert session.get(Product, product.id).availability == ProductAvailability.UNAVAILABLE

    def test_product_of_another_seller(self, session, seller, other_seller, make_product):
        product = make_product(stock=10, seller_id=other_seller.id)

        with pytest.raises(ValidationError):
            sync_abandoned_cart(session, seller.id, 'Ana', 'ana@test.com',
                                [{'product_id': product.id, 'quantity': 1}])
        assert session.query(AbandonedCart).count() == 0

    def test_unknown_product(self, session, seller):
        with pytest.raises(NotFoundError):
            sync_abandoned_cart(session, seller.id, 'Ana', 'ana@test.com',
                                [{'product_id': 404, 'quantity': 1}])

    @pytest.mark.parametrize('items', [
        [],
        [{'quantity': 1}],
        [{'product_id': 'abc', 'quantity': 1}],
        [{'product_id': 1, 'quantity': 0}],
        [{'product_id': 1, 'quantity': 1.5}],
        [{'product_id': 1, 'quantity': 1, 'unit_price': '-1'}],
        [{'product_id': 1, 'quantity': 1, 'unit_price': 'free'}],
    ])
    def test_invalid_items(self, session, seller, items):
        with pytest.raises(ValidationError):
            sync_abandoned_cart(session, seller.id, 'Ana', 'ana@test.com', items)

    def test_email_required(self, session, seller, make_product):
        product = make_product(stock=1)
        with pytest.raises(ValidationError):
            sync_abandoned_cart(session, seller.id, 'Ana', '', [{'product_id': product.id}])


class TestSetCartStatus:
    """Leaving ABANDONED releases reservations."""

    def test_recovered_releases_reservation(self, session, make_product, make_cart):
        product = make_product(stock=2, availability=ProductAvailability.UNAVAILABLE)
        cart = make_cart([(product, 2, '10.00')])
        product_id = product.id

        set_cart_status(session, cart.id, 'recovered')

        assert reserved_quantity(session, product_id) == 0
        assert session.get(Product, product_id).availability == ProductAvailability.AVAILABLE

    def test_invalid_status(self, session, make_product, make_cart):
        product = make_product(stock=2)
        cart = make_cart([(product, 1, '10.00')])

        with pytest.raises(ValidationError):
            set_cart_status(session, cart.id, 'lost')

    def test_unknown_cart(self, session):
        with pytest.raises(NotFoundError):
            set_cart_status(session, 999, 'expired')
        with pytest.raises(NotFoundError):
            get_cart(session, 999)
