# checkout/api/routers/orders.py
from typing import List

from fastapi import APIRouter, Depends, Query

from checkout.api.dependencies import get_checkout_service, get_order_service
from checkout.api.errors import to_http
from checkout.domain.errors import CheckoutError
from checkout.domain.schemas import CheckoutIn, OrderOut, PaymentIn
from checkout.services.checkout_service import CheckoutService
from checkout.services.order_service import OrderService, order_to_dict

router = APIRouter(prefix="/orders", tags=["orders"])


@router.post("/", response_model=OrderOut, status_code=201)
def create_order(payload: CheckoutIn, svc: CheckoutService = Depends(get_checkout_service)):
    """
    Creates an order from the owner's cart.
    Stock is reserved, then debited; the confirmation is sent asynchronously.
    """
    try:
        order = svc.create_order_from_cart(
            payload.owner_id,
            payload.shipping_address,
            payload.payment_method,
        )
        return order_to_dict(order)
    except CheckoutError as e:
        raise to_http(e)


@router.get("/", response_model=List[OrderOut])
def list_orders(owner_id: str = Query(...), svc: OrderService = Depends(get_order_service)):
    return [order_to_dict(o) for o in svc.list_owner_orders(owner_id)]


@router.get("/{order_id}", response_model=OrderOut)
def get_order(
    order_id: int,
    owner_id: str = Query(...),
    svc: OrderService = Depends(get_order_service),
):
    try:
        return order_to_dict(svc.get_owner_order(owner_id, order_id))
    except CheckoutError as e:
        raise to_http(e)


@router.post("/{order_id}/cancel", response_model=OrderOut)
def cancel_order(
    order_id: int,
    owner_id: str = Query(...),
    svc: CheckoutService = Depends(get_checkout_service),
):
    """Cancels a pending or paid order and puts its items back in stock."""
    try:
        return order_to_dict(svc.cancel_order(owner_id, order_id))
    except CheckoutError as e:
        raise to_http(e)


@router.post("/{order_id}/payment", response_model=OrderOut)
def process_payment(
    order_id: int,
    payload: PaymentIn,
    svc: OrderService = Depends(get_order_service),
):
    try:
        return order_to_dict(svc.process_payment(order_id, payload.model_dump()))
    except CheckoutError as e:
        raise to_http(e)
