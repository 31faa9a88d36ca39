"""
Unit tests for InventoryScope parsing.
"""

import pytest
from marketplace.exceptions import ValidationError
from marketplace.services.reconciliation_service import InventoryScope


class TestInventoryScopeFromDict:
    """JSON bodies and job payloads are type-checked."""

    def test_valid_payload(self):
        scope = InventoryScope.from_dict({'seller_id': 3, 'category_ids': [1, 2], 'product_ids': None})

        assert scope.seller_id == 3
        assert scope.category_ids == [1, 2]
        assert scope.product_ids is None

    def test_missing_payload_is_unrestricted(self):
        scope = InventoryScope.from_dict(None)

        assert scope.to_dict() == {'seller_id': None, 'category_ids': None, 'product_ids': None}
        assert scope.is_empty is False

    @pytest.mark.parametrize('payload', [
        {'category_ids': 5},
        {'category_ids': '1,2'},
        {'product_ids': ['a']},
        {'product_ids': [1, True]},
        {'seller_id': 'x'},
        {'seller_id': 1.5},
        [1, 2],
        'all',
    ])
    def test_malformed_payload_raises_validation_error(self, payload):
        with pytest.raises(ValidationError):
            InventoryScope.from_dict(payload)
