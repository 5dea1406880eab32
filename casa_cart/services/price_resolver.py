# casa_cart/services/price_resolver.py
from decimal import Decimal

from casa_cart.domain.errors import UpstreamError
from casa_cart.domain.money import to_money
from casa_cart.services.product_client import ProductClient
from casa_cart.utils.logging import get_logger

logger = get_logger(__name__)


class PriceSnapshotResolver:
    """
    Resolves the current catalog price of a product.

    The returned amount is what gets frozen into ``price_at_add``; nothing
    downstream ever asks the catalog again for a line that already exists.
    """

    def __init__(self, product_client: ProductClient):
        self.product_client = product_client

    def resolve(self, product_id: str) -> Decimal:
        pdata = self.product_client.fetch_product(product_id)

        try:
            price = to_money(pdata["price"])
        except (KeyError, TypeError, ValueError) as e:
            raise UpstreamError(f"Product {product_id} has no usable price") from e

        if price < 0:
            raise UpstreamError(f"Product {product_id} has a negative price")

        logger.info(f"Resolved price {price} for product {product_id}")
        return price
