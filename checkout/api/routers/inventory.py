# checkout/api/routers/inventory.py
from typing import Dict, List

from fastapi import APIRouter, Depends, HTTPException

from checkout.api.dependencies import get_inventory_service
from checkout.api.errors import to_http
from checkout.domain.errors import CheckoutError
from checkout.domain.schemas import (
    InventoryOut,
    InventorySummaryOut,
    StockAdjustIn,
    StockAlertOut,
    StockBatchIn,
    ThresholdIn,
)
from checkout.services.inventory_service import InventoryService

router = APIRouter(prefix="/inventory", tags=["inventory"])


# static paths first, /{product_id} would swallow them


@router.get("/alerts/low-stock", response_model=List[StockAlertOut])
def low_stock(svc: InventoryService = Depends(get_inventory_service)):
    return svc.list_low_stock()


@router.get("/summary", response_model=InventorySummaryOut)
def summary(svc: InventoryService = Depends(get_inventory_service)):
    return svc.summary()


@router.post("/batch", response_model=Dict[str, InventoryOut])
def get_stock_batch(payload: StockBatchIn, svc: InventoryService = Depends(get_inventory_service)):
    return svc.get_stock_batch(payload.product_ids)


@router.get("/{product_id}", response_model=InventoryOut)
def get_stock(product_id: str, svc: InventoryService = Depends(get_inventory_service)):
    item = svc.get_stock(product_id)
    if not item:
        raise HTTPException(status_code=404, detail="No inventory record for this product")
    return item


@router.post("/{product_id}/adjust", response_model=InventoryOut)
def adjust_stock(
    product_id: str,
    payload: StockAdjustIn,
    svc: InventoryService = Depends(get_inventory_service),
):
    try:
        return svc.adjust_stock(
            product_id,
            payload.delta,
            payload.reason,
            payload.reference,
            payload.performed_by,
        )
    except CheckoutError as e:
        raise to_http(e)


@router.put("/{product_id}/threshold", response_model=InventoryOut)
def set_threshold(
    product_id: str,
    payload: ThresholdIn,
    svc: InventoryService = Depends(get_inventory_service),
):
    try:
        return svc.set_threshold(product_id, payload.threshold)
    except CheckoutError as e:
        raise to_http(e)
