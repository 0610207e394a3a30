# checkout/dev_services/main.py
from decimal import Decimal

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field

app = FastAPI(title="Product + Shipping Service (dev mock)")


PRODUCTS = {
    "1": {"id": "1", "name": "Keyboard", "price": 199.99},
    "2": {"id": "2", "name": "Mouse", "price": 49.50},
    "3": {"id": "3", "name": "Monitor", "price": 899.00},
}

CARRIERS = {
    "correios": {"name": "Correios", "base": Decimal("12.00"), "per_kg": Decimal("4.00"), "days": 6},
    "jadlog": {"name": "Jadlog", "base": Decimal("15.50"), "per_kg": Decimal("3.00"), "days": 4},
    "azul_cargo": {"name": "Azul Cargo", "base": Decimal("25.00"), "per_kg": Decimal("2.50"), "days": 2},
}


class PostalCode(BaseModel):
    postal_code: str


class Package(BaseModel):
    weight: int
    width: int
    height: int
    length: int


class QuoteRequest(BaseModel):
    from_: PostalCode = Field(alias="from")
    to: PostalCode
    package: Package
    services: list[str] = list(CARRIERS)


@app.get("/products/{product_id}")
def get_product(product_id: str):
    product = PRODUCTS.get(product_id)
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    return product


@app.post("/shipment/calculate")
def calculate(req: QuoteRequest):
    kg = Decimal(max(req.package.weight, 1)) / 1000
    quotes = []
    for key in req.services:
        carrier = CARRIERS.get(key)
        if not carrier:
            quotes.append({"name": key, "error": "Service unavailable"})
            continue
        quotes.append(
            {
                "name": carrier["name"],
                "price": str((carrier["base"] + carrier["per_kg"] * kg).quantize(Decimal("0.01"))),
                "delivery_time": carrier["days"],
                "company": {"name": carrier["name"]},
            }
        )
    return quotes
