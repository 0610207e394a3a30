# checkout/services/shipping_client.py
from dataclasses import dataclass
from decimal import Decimal

import requests
from requests import RequestException

from checkout.domain.errors import ExternalServiceError
from checkout.utils.retry import http_retry
from checkout.utils.settings import SHIPPING_SERVICE_URL, SHIPPING_API_TOKEN, SHIPPING_TIMEOUT_SECONDS
from checkout.utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_CARRIERS = ("correios", "jadlog", "azul_cargo")


@dataclass(frozen=True)
class PackageData:
    weight: int  # grams
    width: int  # cm
    height: int  # cm
    length: int  # cm


@dataclass(frozen=True)
class ShippingQuote:
    carrier_name: str
    price: Decimal
    estimated_days: int | None


class ShippingClient:
    """
    Shipping quote provider client.
    Every call is bounded by ``timeout``; errors after retries surface as ExternalServiceError.
    """

    def __init__(
        self,
        base_url: str | None = None,
        token: str | None = None,
        timeout: float | None = None,
    ):
        self.base_url = (base_url or SHIPPING_SERVICE_URL).rstrip("/")
        self.token = SHIPPING_API_TOKEN if token is None else token
        self.timeout = SHIPPING_TIMEOUT_SECONDS if timeout is None else timeout

    @http_retry()
    def _post(self, url: str, body: dict) -> requests.Response:
        headers = {"Accept": "application/json", "Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"

        resp = requests.post(url, json=body, headers=headers, timeout=self.timeout)
        resp.raise_for_status()
        return resp

    def calculate(
        self,
        from_postal_code: str,
        to_postal_code: str,
        package: PackageData,
        carriers: list[str] | None = None,
    ) -> list[ShippingQuote]:
        url = f"{self.base_url}/shipment/calculate"
        body = {
            "from": {"postal_code": from_postal_code},
            "to": {"postal_code": to_postal_code},
            "package": {
                "weight": package.weight,
                "width": package.width,
                "height": package.height,
                "length": package.length,
            },
            "services": list(carriers or DEFAULT_CARRIERS),
        }
        logger.info(f"ShippingClient POST {url} ({from_postal_code} -> {to_postal_code}, {package.weight}g)")

        try:
            data = self._post(url, body).json()
        except (RequestException, ValueError) as e:
            raise ExternalServiceError("shipping", str(e)) from e

        if not isinstance(data, list):
            raise ExternalServiceError("shipping", "unexpected response format")

        try:
            return self._parse(data)
        except (AttributeError, ArithmeticError, TypeError) as e:
            raise ExternalServiceError("shipping", f"malformed quote: {e}") from e

    def _parse(self, data: list) -> list[ShippingQuote]:
        quotes = []
        for raw in data:
            #carriers that cannot serve the route come back with an error field
            if raw.get("error") or raw.get("price") in (None, ""):
                continue
            company = raw.get("company") or {}
            quotes.append(
                ShippingQuote(
                    carrier_name=company.get("name") or raw.get("name", "unknown"),
                    price=Decimal(str(raw["price"])),
                    estimated_days=raw.get("delivery_time"),
                )
            )
        return quotes
