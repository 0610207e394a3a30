# checkout/services/checkout_service.py
import re
import uuid
from decimal import Decimal

from checkout.data.models.order import OrderModel
from checkout.domain.errors import (
    CartValidationError,
    CartViolation,
    EmptyCartError,
    InsufficientStockError,
    InvalidStateError,
)
from checkout.domain.order_status import CANCELLABLE, OrderStatus, PaymentMethod
from checkout.services.cart_service import CartService
from checkout.services.inventory_service import InventoryService
from checkout.services.notification_service import dispatch_best_effort
from checkout.services.order_service import OrderLine, OrderService, ShippingInfo
from checkout.services.shipping_client import PackageData
from checkout.utils.logging import get_logger

logger = get_logger(__name__)

ITEM_WEIGHT_GRAMS = 300
PACKAGE_WIDTH_CM = 20
PACKAGE_HEIGHT_CM = 10
PACKAGE_LENGTH_CM = 30

FALLBACK_SHIPPING_METHOD = "standard"

_POSTAL_CODE = re.compile(r"\b\d{5}-?\d{3}\b")


def parse_postal_code(address: str) -> str | None:
    match = _POSTAL_CODE.search(address or "")
    return match.group(0) if match else None


class CheckoutService:
    """
    Checkout orchestrator.

    create_order_from_cart:
    1. load the cart (EmptyCartError)
    2. validate every item against catalog and ledger, all violations at once
    3. snapshot the current prices
    4. shipping quote, default cost when the provider fails or has nothing
    5. reserve stock for every item, undo on the first refusal
    6-8. one transaction: order row, reservations turned into debits, cart cleared
    9. confirmation notification, best effort

    Reservation in step 5 is the only gate that can lose to a concurrent
    checkout, and it is an atomic conditional update, so stock is never oversold.
    """

    def __init__(
        self,
        cart_service: CartService,
        inventory: InventoryService,
        orders: OrderService,
        product_client,
        shipping_client,
        notifier,
        lock_service,
        default_shipping_cost: Decimal,
        store_postal_code: str,
        lock_ttl: int = 30,
    ):
        self.carts = cart_service
        self.inventory = inventory
        self.orders = orders
        self.product_client = product_client
        self.shipping_client = shipping_client
        self.notifier = notifier
        self.lock_service = lock_service
        self.default_shipping_cost = Decimal(default_shipping_cost)
        self.store_postal_code = store_postal_code
        self.lock_ttl = lock_ttl

    #commands

    def create_order_from_cart(
        self,
        owner_id: str,
        shipping_address: str,
        payment_method: PaymentMethod | str = PaymentMethod.PIX,
    ) -> OrderModel:
        with self.lock_service.checkout_lock(owner_id, self.lock_ttl):
            order = self._create_order_from_cart(owner_id, shipping_address, payment_method)

        dispatch_best_effort(
            self.notifier,
            owner_id,
            "order_confirmation",
            {"order_id": order.id, "total": str(order.total), "items": len(order.items)},
        )
        return order

    def _create_order_from_cart(self, owner_id, shipping_address, payment_method) -> OrderModel:
        # 1
        cart = self.carts.load(owner_id)
        items = self.carts.get_items(owner_id) if cart else []
        if not items:
            raise EmptyCartError(owner_id)

        requested = [(i.product_id, i.quantity) for i in items]

        # 2 + 3
        lines = self._validate_and_price(requested)

        # 4
        shipping = self._quote_shipping(shipping_address, sum(q for _, q in requested))

        # 5
        reference = f"checkout-{owner_id}-{uuid.uuid4().hex[:12]}"
        reserved = self._reserve_all(lines, reference)

        # 6, 7, 8
        try:
            order = self.orders.create(owner_id, lines, shipping, payment_method, commit=False)
            for line in lines:
                self.inventory.commit_reservation(
                    line.product_id,
                    line.quantity,
                    reference=reference,
                    actor=owner_id,
                    commit=False,
                )
            self.carts.clear_items(cart, commit=False)
            self.inventory.commit()
        except Exception:
            #nothing above is durable yet, give the held stock back
            self.inventory.rollback()
            self._release_all(reserved, reference)
            raise

        logger.info(
            f"Order {order.id} committed for {owner_id}: {len(lines)} line(s), total {order.total}"
        )
        return order

    def _validate_and_price(self, requested: list[tuple[str, int]]) -> list[OrderLine]:
        stock = self.inventory.get_stock_batch([pid for pid, _ in requested])
        violations: list[CartViolation] = []
        lines: list[OrderLine] = []

        for product_id, quantity in requested:
            product = self.product_client.fetch_product(product_id)
            item = stock.get(product_id)
            available = item.available if item else 0

            if product is None:
                violations.append(CartViolation(product_id, quantity, available, "product_not_found"))
            elif item is None:
                violations.append(CartViolation(product_id, quantity, 0, "not_stocked"))
            elif available < quantity:
                violations.append(CartViolation(product_id, quantity, available, "insufficient_stock"))
            else:
                lines.append(OrderLine(product_id, quantity, Decimal(product["price"])))

        if violations:
            logger.info(f"Cart validation failed: {[v.to_dict() for v in violations]}")
            raise CartValidationError(violations)
        return lines

    def _quote_shipping(self, address: str, total_quantity: int) -> ShippingInfo:
        package = PackageData(
            weight=total_quantity * ITEM_WEIGHT_GRAMS,
            width=PACKAGE_WIDTH_CM,
            height=PACKAGE_HEIGHT_CM,
            length=PACKAGE_LENGTH_CM,
        )
        fallback = ShippingInfo(address, FALLBACK_SHIPPING_METHOD, self.default_shipping_cost)

        postal_code = parse_postal_code(address)
        if postal_code is None:
            logger.warning("No postal code in shipping address, using default shipping cost")
            return fallback

        try:
            quotes = self.shipping_client.calculate(self.store_postal_code, postal_code, package)
        except Exception as e:
            logger.warning(f"Shipping quote failed, using default cost {self.default_shipping_cost}: {e}")
            return fallback

        if not quotes:
            logger.warning(f"No shipping quotes for {postal_code}, using default cost {self.default_shipping_cost}")
            return fallback

        best = min(quotes, key=lambda q: q.price)
        return ShippingInfo(address, best.carrier_name, best.price)

    def _reserve_all(self, lines: list[OrderLine], reference: str) -> list[OrderLine]:
        reserved: list[OrderLine] = []
        for line in lines:
            try:
                ok = self.inventory.reserve(line.product_id, line.quantity, reference=reference)
            except Exception:
                self.inventory.rollback()
                self._release_all(reserved, reference)
                raise

            if not ok:
                logger.info(f"Reservation lost for {line.product_id}, undoing {len(reserved)} hold(s)")
                self._release_all(reserved, reference)
                raise InsufficientStockError(line.product_id, line.quantity)
            reserved.append(line)
        return reserved

    def _release_all(self, lines: list[OrderLine], reference: str) -> None:
        for line in lines:
            try:
                self.inventory.release(line.product_id, line.quantity, reference=reference)
            except Exception as e:
                #the hold expires and the maintenance task gives it back
                self.inventory.rollback()
                logger.error(f"Failed to release {line.quantity} x {line.product_id} ({reference}): {e}")

    def cancel_order(self, owner_id: str, order_id: int, is_admin: bool = False) -> OrderModel:
        if is_admin:
            order = self.orders.get_order(order_id)
        else:
            order = self.orders.get_owner_order(owner_id, order_id)

        if order.status not in {s.value for s in CANCELLABLE}:
            raise InvalidStateError(
                order.status,
                OrderStatus.CANCELLED.value,
                f"Order {order_id} cannot be cancelled from status {order.status}",
            )

        old_status = order.status
        try:
            for item in order.items:
                self.inventory.adjust_stock(
                    item.product_id,
                    item.quantity,
                    reason="return",
                    reference=f"order-{order.id}",
                    actor=owner_id,
                    commit=False,
                )
            self.orders.transition(order, OrderStatus.CANCELLED)
            self.inventory.commit()
        except Exception:
            self.inventory.rollback()
            raise

        logger.info(f"Order {order_id} cancelled by {owner_id}{' (admin)' if is_admin else ''}")
        self.orders.notify_status(order, old_status)
        return order

    def update_order_status(self, order_id: int, new_status: OrderStatus | str) -> OrderModel:
        return self.orders.update_status(order_id, new_status)

