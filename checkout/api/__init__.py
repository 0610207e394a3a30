# checkout/api/__init__.py
from fastapi import FastAPI

from checkout.api.routers import admin, carts, health, inventory, orders


def register_routers(app: FastAPI) -> FastAPI:
    app.include_router(health.router)
    app.include_router(carts.router)
    app.include_router(orders.router)
    app.include_router(inventory.router)
    app.include_router(admin.router)
    return app
