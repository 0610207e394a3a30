# checkout/services/payment_gateway.py
import uuid
from dataclasses import dataclass

from checkout.domain.order_status import PaymentStatus


@dataclass(frozen=True)
class PaymentResult:
    status: PaymentStatus  # completed or failed
    transaction_id: str | None


class SimulatedPaymentGateway:
    """
    Placeholder integration point for a real payment provider.
    ``payload["success"]`` decides the outcome; a transaction id from the payload is kept.
    """

    def process(self, order_id: int, payload: dict) -> PaymentResult:
        if payload.get("success"):
            return PaymentResult(
                status=PaymentStatus.COMPLETED,
                transaction_id=payload.get("transaction_id") or f"sim-{order_id}-{uuid.uuid4().hex[:12]}",
            )
        return PaymentResult(status=PaymentStatus.FAILED, transaction_id=payload.get("transaction_id"))
