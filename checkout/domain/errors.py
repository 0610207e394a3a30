# checkout/domain/errors.py
from dataclasses import dataclass, asdict


class CheckoutError(Exception):
    """Base class for every error raised by the checkout core."""


class ValidationError(CheckoutError):
    """Malformed input (quantity, reason, threshold...)."""


class NotFoundError(CheckoutError):
    pass


class EmptyCartError(CheckoutError):
    def __init__(self, owner_id: str):
        super().__init__(f"Cart of {owner_id} is empty")
        self.owner_id = owner_id


@dataclass(frozen=True)
class CartViolation:
    product_id: str
    requested: int
    available: int
    reason: str  # product_not_found, not_stocked, insufficient_stock

    def to_dict(self) -> dict:
        return asdict(self)


class CartValidationError(CheckoutError):
    """
    Aggregated per-item violations found while validating a cart.
    Carries every offending item, not only the first one.
    """

    def __init__(self, violations: list[CartViolation]):
        self.violations = list(violations)
        listed = ", ".join(f"{v.product_id} ({v.reason})" for v in self.violations)
        super().__init__(f"Cart validation failed: {listed}")


class InsufficientStockError(CheckoutError):
    def __init__(self, product_id: str, requested: int):
        super().__init__(f"Could not reserve {requested} unit(s) of product {product_id}")
        self.product_id = product_id
        self.requested = requested


class InvalidStateError(CheckoutError):
    def __init__(self, current: str, requested: str, message: str | None = None):
        super().__init__(message or f"Invalid status transition from {current} to {requested}")
        self.current = current
        self.requested = requested


class ExternalServiceError(CheckoutError):
    def __init__(self, service: str, message: str):
        super().__init__(f"{service}: {message}")
        self.service = service


class ConcurrencyError(CheckoutError):
    """A concurrent operation won the race (cart version, checkout lock)."""
