# checkout/services/order_service.py
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict

from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import set_committed_value

from checkout.data.models.order import OrderModel
from checkout.data.models.order_item import OrderItemModel
from checkout.domain.errors import ValidationError, NotFoundError, InvalidStateError, ConcurrencyError
from checkout.domain.order_status import OrderStatus, PaymentStatus, PaymentMethod, ensure_transition
from checkout.repos.order_repo import OrderRepo
from checkout.services.notification_service import dispatch_best_effort
from checkout.services.payment_gateway import SimulatedPaymentGateway
from checkout.utils.logging import get_logger

logger = get_logger(__name__)

CENT = Decimal("0.01")


@dataclass(frozen=True)
class OrderLine:
    product_id: str
    quantity: int
    unit_price: Decimal  # snapshot, never a reference to the catalog


@dataclass(frozen=True)
class ShippingInfo:
    address: str
    method: str
    cost: Decimal


def calculate_total(items: list[OrderLine], shipping_cost: Decimal) -> Decimal:
    items_total = sum((i.unit_price * i.quantity for i in items), Decimal("0.00"))
    return (items_total + shipping_cost).quantize(CENT)


def _validate(owner_id: str, items: list[OrderLine], shipping: ShippingInfo) -> None:
    errors = []

    if not owner_id or not owner_id.strip():
        errors.append("Owner ID is required")

    if not items:
        errors.append("At least one item is required")
    for index, item in enumerate(items):
        if not item.product_id:
            errors.append(f"Item {index}: product ID is required")
        if not isinstance(item.quantity, int) or isinstance(item.quantity, bool) or item.quantity <= 0:
            errors.append(f"Item {index}: quantity must be a positive integer")
        if item.unit_price is None or item.unit_price < 0:
            errors.append(f"Item {index}: price must be a non-negative number")

    if not shipping.address or not shipping.address.strip():
        errors.append("Shipping address is required")
    if not shipping.method or not shipping.method.strip():
        errors.append("Shipping method is required")
    if shipping.cost is None or shipping.cost < 0:
        errors.append("Shipping cost must be a non-negative number")

    if errors:
        raise ValidationError(f"Order validation failed: {', '.join(errors)}")


def order_to_dict(order: OrderModel) -> Dict[str, Any]:
    return {
        "id": order.id,
        "owner_id": order.owner_id,
        "items": [
            {
                "product_id": i.product_id,
                "quantity": i.quantity,
                "unit_price": i.unit_price,
            }
            for i in order.items
        ],
        "total": order.total,
        "status": order.status,
        "shipping": {
            "address": order.shipping_address,
            "method": order.shipping_method,
            "cost": order.shipping_cost,
        },
        "payment": {
            "method": order.payment_method,
            "status": order.payment_status,
            "transaction_id": order.transaction_id,
        },
        "created_at": order.created_at,
        "updated_at": order.updated_at,
    }


class OrderService:
    """
    Order ledger. Items and total are fixed at creation; only status and the
    payment sub-record change afterwards, and only along the state machine.
    Nothing here touches inventory.
    """

    def __init__(self, db: Session, notifier=None, payment_gateway=None):
        self.repo = OrderRepo(db)
        self.notifier = notifier
        self.payment_gateway = payment_gateway or SimulatedPaymentGateway()

    #commands

    def create(
        self,
        owner_id: str,
        items: list[OrderLine],
        shipping: ShippingInfo,
        payment_method: PaymentMethod | str = PaymentMethod.PIX,
        commit: bool = True,
    ) -> OrderModel:
        _validate(owner_id, items, shipping)
        try:
            payment_method = PaymentMethod(payment_method)
        except ValueError:
            raise ValidationError("Payment method must be pix or card")

        now = datetime.now(timezone.utc)
        order = OrderModel(
            owner_id=owner_id,
            status=OrderStatus.PENDING.value,
            total=calculate_total(items, shipping.cost),
            shipping_address=shipping.address,
            shipping_method=shipping.method,
            shipping_cost=shipping.cost,
            payment_method=payment_method.value,
            payment_status=PaymentStatus.PENDING.value,
            created_at=now,
            updated_at=now,
            items=[
                OrderItemModel(
                    product_id=i.product_id,
                    quantity=i.quantity,
                    unit_price=i.unit_price,
                )
                for i in items
            ],
        )

        if commit:
            self.repo.create_order(order)
        else:
            self.repo.add_order(order)

        logger.info(f"Order {order.id} created for {owner_id}, total {order.total}")
        return order

    def transition(self, order: OrderModel, new_status: OrderStatus | str) -> OrderModel:
        """Move ``order`` along one edge of the state machine without committing."""
        old_status = order.status
        new_status = ensure_transition(old_status, new_status).value
        now = datetime.now(timezone.utc)

        #the row must still be in old_status, a concurrent transition wins otherwise
        if self.repo.compare_and_set_status(order.id, old_status, new_status, now) == 0:
            self.repo.rollback()
            raise ConcurrencyError(f"Order {order.id} was modified by another operation")

        set_committed_value(order, "status", new_status)
        set_committed_value(order, "updated_at", now)
        logger.info(f"Order {order.id}: {old_status} -> {order.status}")
        return order

    def update_status(self, order_id: int, new_status: OrderStatus | str) -> OrderModel:
        order = self.get_order(order_id)
        old_status = order.status

        self.transition(order, new_status)
        self.repo.commit()

        self.notify_status(order, old_status)
        return order

    def process_payment(self, order_id: int, payload: dict) -> OrderModel:
        order = self.get_order(order_id)

        if order.status != OrderStatus.PENDING.value:
            raise InvalidStateError(
                order.status,
                OrderStatus.PAID.value,
                f"Payment of order {order_id} was already processed",
            )

        result = self.payment_gateway.process(order_id, payload)

        order.payment_status = result.status.value
        order.transaction_id = result.transaction_id
        if result.status == PaymentStatus.COMPLETED:
            self.transition(order, OrderStatus.PAID)
        else:
            order.updated_at = datetime.now(timezone.utc)
        self.repo.commit()

        logger.info(f"Processed payment for order {order_id}: {result.status.value}")
        if result.status == PaymentStatus.COMPLETED:
            self.notify_status(order, OrderStatus.PENDING.value)
        return order

    def notify_status(self, order: OrderModel, old_status: str) -> None:
        if self.notifier is None:
            return
        dispatch_best_effort(
            self.notifier,
            order.owner_id,
            "order_status_update",
            {"order_id": order.id, "old_status": old_status, "new_status": order.status},
        )

    #query

    def get_order(self, order_id: int) -> OrderModel:
        order = self.repo.get_order(order_id)
        if not order:
            raise NotFoundError(f"Order {order_id} not found")
        return order

    def get_owner_order(self, owner_id: str, order_id: int) -> OrderModel:
        order = self.repo.get_order(order_id)
        #someone else's order looks exactly like a missing one
        if not order or order.owner_id != owner_id:
            raise NotFoundError(f"Order {order_id} not found")
        return order

    def list_owner_orders(self, owner_id: str) -> list[OrderModel]:
        return self.repo.list_by_owner(owner_id)

    def list_by_status(self, status: OrderStatus | str | None = None) -> list[OrderModel]:
        if status is not None:
            try:
                status = OrderStatus(status).value
            except ValueError:
                raise ValidationError(f"Unknown order status: {status}")
        return self.repo.list_by_status(status)

    def stats(self) -> Dict[str, Any]:
        by_status = self.repo.count_by_status()
        return {
            "total_orders": sum(by_status.values()),
            "total_revenue": Decimal(str(self.repo.delivered_revenue())).quantize(CENT),
            "orders_by_status": by_status,
        }
