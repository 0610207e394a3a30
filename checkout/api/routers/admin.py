# checkout/api/routers/admin.py
from typing import List

from fastapi import APIRouter, Depends, Query

from checkout.api.dependencies import get_checkout_service, get_order_service, verify_admin_key
from checkout.api.errors import to_http
from checkout.domain.errors import CheckoutError
from checkout.domain.order_status import OrderStatus
from checkout.domain.schemas import OrderOut, OrderStatsOut, OrderStatusIn
from checkout.services.checkout_service import CheckoutService
from checkout.services.order_service import OrderService, order_to_dict

# the whole router requires the admin key
router = APIRouter(prefix="/admin/orders", tags=["admin"], dependencies=[Depends(verify_admin_key)])


@router.get("/", response_model=List[OrderOut])
def list_orders(
    status: OrderStatus | None = Query(None),
    svc: OrderService = Depends(get_order_service),
):
    return [order_to_dict(o) for o in svc.list_by_status(status)]


@router.get("/stats", response_model=OrderStatsOut)
def order_stats(svc: OrderService = Depends(get_order_service)):
    return svc.stats()


@router.patch("/{order_id}/status", response_model=OrderOut)
def update_status(
    order_id: int,
    payload: OrderStatusIn,
    svc: CheckoutService = Depends(get_checkout_service),
):
    """Moves the order along the state machine; never touches inventory."""
    try:
        return order_to_dict(svc.update_order_status(order_id, payload.status))
    except CheckoutError as e:
        raise to_http(e)


@router.post("/{order_id}/cancel", response_model=OrderOut)
def cancel_order(
    order_id: int,
    performed_by: str = Query("admin"),
    svc: CheckoutService = Depends(get_checkout_service),
):
    try:
        return order_to_dict(svc.cancel_order(performed_by, order_id, is_admin=True))
    except CheckoutError as e:
        raise to_http(e)
