#checkout/api/routers/carts.py
from fastapi import APIRouter, Depends

from checkout.api.dependencies import get_cart_service
from checkout.api.errors import to_http
from checkout.domain.errors import CheckoutError
from checkout.domain.schemas import CartOut, ItemIn, QuantityIn
from checkout.services.cart_service import CartService

router = APIRouter(prefix="/carts", tags=["carts"])


@router.get("/{owner_id}", response_model=CartOut)
def get_cart(owner_id: str, svc: CartService = Depends(get_cart_service)):
    try:
        return svc.get_cart(owner_id)
    except CheckoutError as e:
        raise to_http(e)


@router.post("/{owner_id}/items", response_model=CartOut)
def add_item(owner_id: str, payload: ItemIn, svc: CartService = Depends(get_cart_service)):
    try:
        return svc.add_item(owner_id, payload.product_id, payload.quantity)
    except CheckoutError as e:
        raise to_http(e)


@router.put("/{owner_id}/items/{product_id}", response_model=CartOut)
def update_quantity(
    owner_id: str,
    product_id: str,
    payload: QuantityIn,
    svc: CartService = Depends(get_cart_service),
):
    try:
        return svc.update_quantity(owner_id, product_id, payload.quantity)
    except CheckoutError as e:
        raise to_http(e)


@router.delete("/{owner_id}/items/{product_id}", response_model=CartOut)
def remove_item(owner_id: str, product_id: str, svc: CartService = Depends(get_cart_service)):
    try:
        return svc.remove_item(owner_id, product_id)
    except CheckoutError as e:
        raise to_http(e)


@router.delete("/{owner_id}", response_model=CartOut)
def clear_cart(owner_id: str, svc: CartService = Depends(get_cart_service)):
    try:
        return svc.clear(owner_id)
    except CheckoutError as e:
        raise to_http(e)
