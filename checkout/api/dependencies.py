# checkout/api/dependencies.py
import secrets

from fastapi import Depends, HTTPException, status
from fastapi.security import APIKeyHeader
from sqlalchemy.orm import Session

from checkout.data.database import get_db, get_session_factory
from checkout.repos.inventory_repo import AuditLog
from checkout.services.cart_service import CartService
from checkout.services.checkout_service import CheckoutService
from checkout.services.inventory_service import InventoryService
from checkout.services.lock_service import LockService
from checkout.services.notification_service import NotificationService
from checkout.services.order_service import OrderService
from checkout.services.product_client import ProductClient
from checkout.services.shipping_client import ShippingClient
from checkout.utils import settings

admin_key_header = APIKeyHeader(name="X-Admin-API-Key", auto_error=False)


# collaborators, overridable with app.dependency_overrides

def get_product_client() -> ProductClient:
    return ProductClient()


def get_shipping_client() -> ShippingClient:
    return ShippingClient()


def get_notifier() -> NotificationService:
    return NotificationService()


def get_lock_service() -> LockService:
    return LockService()


# services

def get_cart_service(db: Session = Depends(get_db)) -> CartService:
    return CartService(db)


def get_inventory_service(
    db: Session = Depends(get_db),
    session_factory=Depends(get_session_factory),
) -> InventoryService:
    return InventoryService(
        db,
        AuditLog(session_factory),
        default_threshold=settings.DEFAULT_LOW_STOCK_THRESHOLD,
        hold_ttl=settings.STOCK_HOLD_TTL_SECONDS,
    )


def get_order_service(
    db: Session = Depends(get_db),
    notifier=Depends(get_notifier),
) -> OrderService:
    return OrderService(db, notifier=notifier)


def get_checkout_service(
    carts: CartService = Depends(get_cart_service),
    inventory: InventoryService = Depends(get_inventory_service),
    orders: OrderService = Depends(get_order_service),
    product_client=Depends(get_product_client),
    shipping_client=Depends(get_shipping_client),
    notifier=Depends(get_notifier),
    lock_service=Depends(get_lock_service),
) -> CheckoutService:
    return CheckoutService(
        cart_service=carts,
        inventory=inventory,
        orders=orders,
        product_client=product_client,
        shipping_client=shipping_client,
        notifier=notifier,
        lock_service=lock_service,
        default_shipping_cost=settings.DEFAULT_SHIPPING_COST,
        store_postal_code=settings.STORE_POSTAL_CODE,
        lock_ttl=settings.CHECKOUT_LOCK_TTL_SECONDS,
    )


def verify_admin_key(api_key: str = Depends(admin_key_header)) -> bool:
    if not api_key or not secrets.compare_digest(str(api_key), str(settings.ADMIN_API_KEY)):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid or missing X-Admin-API-Key header",
        )
    return True
