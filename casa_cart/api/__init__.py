# casa_cart/api/__init__.py
from fastapi import FastAPI

from casa_cart.api.handlers import register_exception_handlers
from casa_cart.api.routers import carts, checkout, health, orders


def create_app() -> FastAPI:
    app = FastAPI(title="Casa Cart Service", version="1.0.0")

    register_exception_handlers(app)

    app.include_router(health.router)
    app.include_router(carts.router)
    app.include_router(orders.router)
    app.include_router(checkout.router)
    return app
