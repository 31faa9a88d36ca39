"""
Integration tests for over-reservation repair.
"""

import pytest
from decimal import Decimal

from marketplace.models import AbandonedCart, AbandonedCartItem, CartStatus
from marketplace.exceptions import NotFoundError
from marketplace.services.ledger_service import reserved_quantity
from marketplace.services import reservation_repair_service
from marketplace.services.reconciliation_service import InventoryScope
from marketplace.services.reservation_repair_service import (
    repair_over_reserved_cart, repair_over_reserved_carts, recalculate_cart_totals
)


def _quantities(session, item_ids):
    result = []
    for item_id in item_ids:
        item = session.get(AbandonedCartItem, item_id)
        result.append(item.quantity if item else None)
    return result


class TestRepairOverReservedCart:
    """Single product repair."""

    def test_earliest_reservations_win(self, session, make_product, make_cart):
        """Items of 3, 5 and 4 against stock 6 become 3, 3 and removed."""
        product = make_product(stock=6)
        carts = [
            make_cart([(product, 3, '10.00')]),
            make_cart([(product, 5, '10.00')]),
            make_cart([(product, 4, '10.00')]),
        ]
        item_ids = [cart.items[0].id for cart in carts]
        cart_ids = [cart.id for cart in carts]

        summary = repair_over_reserved_cart(session, product.id)

        assert _quantities(session, item_ids) == [3, 3, None]
        assert summary.items_capped == 1
        assert summary.items_removed == 1
        assert summary.products_repaired == 1
        assert reserved_quantity(session, product.id) == 6
        # The third cart had no other items and is gone
        assert session.get(AbandonedCart, cart_ids[2]) is None
        assert session.get(AbandonedCart, cart_ids[1]).item_count == 3
        assert summary.carts_deleted == 1

    def test_single_item_capped_to_stock(self, session, make_product, make_cart):
        product = make_product(stock=4)
        cart = make_cart([(product, 10, '25.00')])
        item_id = cart.items[0].id
        cart_id = cart.id

        repair_over_reserved_cart(session, product.id)

        item = session.get(AbandonedCartItem, item_id)
        assert item.quantity == 4
        assert item.total_price == Decimal('100.00')
        cart = session.get(AbandonedCart, cart_id)
        assert cart.item_count == 4
        assert cart.cart_value == Decimal('100.00')

    def test_cart_totals_cover_other_products(self, session, make_product, make_cart):
        """Totals are recomputed from every remaining item of a touched cart."""
        scarce = make_product(stock=1)
        plenty = make_product(stock=100)
        cart = make_cart([(scarce, 3, '10.00'), (plenty, 2, '5.50')])
        cart_id = cart.id

        repair_over_reserved_cart(session, scarce.id)

        cart = session.get(AbandonedCart, cart_id)
        assert cart.item_count == 3
        assert cart.cart_value == Decimal('21.00')
        assert sum(item.quantity for item in cart.items) == cart.item_count

    def test_within_capacity_is_untouched(self, session, make_product, make_cart):
        product = make_product(stock=5)
        cart = make_cart([(product, 2, '10.00')])
        make_cart([(product, 3, '10.00')])
        item_id = cart.items[0].id

        summary = repair_over_reserved_cart(session, product.id)

        assert summary.products_repaired == 0
        assert _quantities(session, [item_id]) == [2]

    def test_ignores_carts_not_abandoned(self, session, make_product, make_cart):
        product = make_product(stock=2)
        recovered = make_cart([(product, 5, '10.00')], status=CartStatus.RECOVERED)
        open_cart = make_cart([(product, 3, '10.00')])
        recovered_item = recovered.items[0].id
        open_item = open_cart.items[0].id

        repair_over_reserved_cart(session, product.id)

        assert _quantities(session, [recovered_item, open_item]) == [5, 2]

    def test_zero_stock_removes_everything(self, session, make_product, make_cart):
        product = make_product(stock=0)
        cart = make_cart([(product, 1, '10.00')])
        cart_id = cart.id

        repair_over_reserved_cart(session, product.id)

        assert reserved_quantity(session, product.id) == 0
        assert session.get(AbandonedCart, cart_id) is None

    def test_unknown_product(self, session):
        with pytest.raises(NotFoundError):
            repair_over_reserved_cart(session, 12345)


class TestRepairOverReservedCarts:
    """Batch repair across products."""

    def test_repairs_every_over_reserved_product(self, session, make_product, make_cart):
        first = make_product(stock=2)
        second = make_product(stock=1)
        fine = make_product(stock=10)
        make_cart([(first, 3, '10.00'), (second, 2, '10.00'), (fine, 4, '10.00')])

        summary = repair_over_reserved_carts(session, page_size=2)

        assert summary.products_checked == 3
        assert summary.products_repaired == 2
        for product in (first, second, fine):
            assert reserved_quantity(session, product.id) <= product.stock_quantity

    def test_scope_limits_repair(self, session, make_product, make_cart, other_seller):
        mine = make_product(stock=1)
        make_cart([(mine, 3, '10.00')])

        summary = repair_over_reserved_carts(session, InventoryScope(seller_id=other_seller.id))

        assert summary.products_checked == 0
        assert reserved_quantity(session, mine.id) == 3

    def test_failure_on_one_product_is_isolated(self, session, make_product, make_cart, monkeypatch):
        first = make_product(stock=2)
        broken = make_product(stock=2)
        last = make_product(stock=2)
        carts = [make_cart([(product, 5, '10.00')]) for product in (first, broken, last)]
        item_ids = [cart.items[0].id for cart in carts]
        broken_id = broken.id

        original = reservation_repair_service._repair_product

        def flaky(session, product_id, summary):
            if product_id == broken_id:
                raise RuntimeError('deadlock detected')
            return original(session, product_id, summary)

        monkeypatch.setattr(reservation_repair_service, '_repair_product', flaky)

        summary = repair_over_reserved_carts(session, page_size=2)

        assert summary.products_checked == 3
        assert summary.skipped == 1
        assert summary.products_repaired == 2
        assert _quantities(session, item_ids) == [2, 5, 2]


class TestRecalculateCartTotals:
    """Derived cart fields."""

    def test_recomputes_from_items(self, session, make_product, make_cart):
        product = make_product(stock=10)
        cart = make_cart([(product, 2, '10.00')])
        cart.item_count = 99
        cart.cart_value = Decimal('1.00')
        session.commit()
        cart_id = cart.id

        summary = recalculate_cart_totals(session, [cart_id])

        cart = session.get(AbandonedCart, cart_id)
        assert summary.carts_updated == 1
        assert cart.item_count == 2
        assert cart.cart_value == Decimal('20.00')

    def test_missing_cart_is_skipped(self, session):
        summary = recalculate_cart_totals(session, [4242])
        assert summary.skipped == 1
