"""
Availability calculator.

compute_availability is pure: no session, no I/O. Delivered units are not
subtracted because stock is decremented when an order is delivered
(see order_service.update_order_status).
"""
from collections import namedtuple

from marketplace.models import Product, ProductAvailability
from marketplace.exceptions import NotFoundError
from marketplace.services.ledger_service import get_demand


AvailabilityResult = namedtuple('AvailabilityResult', ['available_stock', 'status'])


def compute_availability(total_stock: int, reserved: int, in_flight: int) -> AvailabilityResult:
    """
    Compute sellable stock and the matching availability flag.

    reserved + in_flight may exceed total_stock (over-reservation); that is a
    valid input and simply yields zero available units.
    """
    available_stock = max(0, total_stock - reserved - in_flight)
    status = ProductAvailability.AVAILABLE if available_stock > 0 else ProductAvailability.UNAVAILABLE
    return AvailabilityResult(available_stock, status)


def get_product_inventory(session, product_id: int) -> dict:
    """
    Inventory detail for one product, computed live. Never writes.

    Raises:
        NotFoundError: If the product does not exist
    """
    product = session.get(Product, product_id)
    if not product:
        raise NotFoundError(f'Product {product_id} not found')

    demand = get_demand(session, product_id)
    result = compute_availability(product.stock_quantity, demand.reserved, demand.in_flight)

    return {
        'productId': product.id,
        'totalStock': product.stock_quantity,
        'availableStock': result.available_stock,
        'status': result.status.value,
        'deliveredQuantity': demand.delivered,
        'reservedQuantity': demand.reserved,
        'shippingQuantity': demand.in_flight,
    }
