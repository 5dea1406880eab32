# casa_cart/services/product_client.py
import requests

from casa_cart.domain.errors import ProductNotFound, UpstreamError
from casa_cart.utils.retry import http_retry
from casa_cart.utils.settings import PRODUCT_SERVICE_URL, PRODUCT_SERVICE_TIMEOUT
from casa_cart.utils.logging import get_logger

logger = get_logger(__name__)


class ProductClient:
    """HTTP client of the catalog service, ``GET /products/{id}``."""

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        session: requests.Session | None = None,
    ):
        self.base_url = (base_url or PRODUCT_SERVICE_URL).rstrip("/")
        self.timeout = timeout or PRODUCT_SERVICE_TIMEOUT
        self.http = session or requests.Session()

    @http_retry()
    def _get(self, url: str) -> requests.Response:
        logger.info(f"ProductClient GET {url}")
        return self.http.get(url, timeout=self.timeout)

    def fetch_product(self, product_id: str) -> dict:
        url = f"{self.base_url}/products/{product_id}"

        try:
            resp = self._get(url)
        except requests.RequestException as e:
            logger.error(f"Product service unreachable for {product_id}: {e}")
            raise UpstreamError(f"Product lookup failed for {product_id}") from e

        if resp.status_code == 404:
            raise ProductNotFound(f"Product {product_id} not found")

        if resp.status_code >= 400:
            logger.error(f"Product service answered {resp.status_code} for {product_id}")
            raise UpstreamError(f"Product service answered {resp.status_code}")

        return resp.json()
