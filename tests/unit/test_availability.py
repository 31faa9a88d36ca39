"""
Unit tests for the availability calculator.
"""

import pytest
from marketplace.models import ProductAvailability
from marketplace.services.availability_service import compute_availability


class TestComputeAvailability:
    """Tests for compute_availability (no database)."""

    def test_stock_minus_demand(self):
        """10 in stock, 3 reserved, 4 in flight leaves 3 sellable."""
        result = compute_availability(10, 3, 4)
        assert result.available_stock == 3
        assert result.status == ProductAvailability.AVAILABLE

    def test_exactly_consumed_is_unavailable(self):
        """Demand equal to stock leaves nothing to sell."""
        result = compute_availability(5, 2, 3)
        assert result.available_stock == 0
        assert result.status == ProductAvailability.UNAVAILABLE

    def test_over_reserved_clamps_to_zero(self):
        """Demand above stock is valid input and never goes negative."""
        result = compute_availability(4, 10, 3)
        assert result.available_stock == 0
        assert result.status == ProductAvailability.UNAVAILABLE

    def test_no_stock(self):
        result = compute_availability(0, 0, 0)
        assert result.available_stock == 0
        assert result.status == ProductAvailability.UNAVAILABLE

    def test_no_demand(self):
        result = compute_availability(7, 0, 0)
        assert result.available_stock == 7
        assert result.status == ProductAvailability.AVAILABLE

    @pytest.mark.parametrize('stock,reserved,in_flight', [
        (0, 0, 0), (1, 0, 0), (1, 1, 0), (3, 0, 5), (100, 40, 59), (100, 40, 60),
    ])
    def test_status_follows_available_stock(self, stock, reserved, in_flight):
        """available is never negative and the flag is AVAILABLE exactly when it is positive."""
        result = compute_availability(stock, reserved, in_flight)
        assert result.available_stock >= 0
        assert result.available_stock == max(0, stock - reserved - in_flight)
        assert (result.status == ProductAvailability.AVAILABLE) == (result.available_stock > 0)
