# checkout/services/product_client.py
from decimal import Decimal

import requests
from requests import RequestException

from checkout.domain.errors import ExternalServiceError
from checkout.utils.retry import http_retry
from checkout.utils.settings import PRODUCT_SERVICE_URL
from checkout.utils.logging import get_logger

logger = get_logger(__name__)


class ProductClient:
    def __init__(self, base_url: str | None = None, timeout: float = 2):
        self.base_url = (base_url or PRODUCT_SERVICE_URL).rstrip("/")
        self.timeout = timeout

    @http_retry()
    def _get(self, url: str) -> requests.Response:
        resp = requests.get(url, timeout=self.timeout)
        if resp.status_code != 404:
            resp.raise_for_status()
        return resp

    def fetch_product(self, product_id: str) -> dict | None:
        """Catalog entry ``{id, name, price}`` with a Decimal price, or None when the product does not exist."""
        url = f"{self.base_url}/products/{product_id}"
        logger.info(f"ProductClient GET {url}")

        try:
            resp = self._get(url)
        except RequestException as e:
            raise ExternalServiceError("product-service", str(e)) from e

        if resp.status_code == 404:
            return None

        data = resp.json()
        data["price"] = Decimal(str(data["price"]))
        return data
