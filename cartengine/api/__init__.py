# cartengine/api/__init__.py
from fastapi import FastAPI

from cartengine.api.routers import carts, orders, health


def create_app() -> FastAPI:
    app = FastAPI(
        title="Cart Engine",
        version="1.0.0",
    )

    app.include_router(health.router)
    app.include_router(carts.router)
    app.include_router(orders.router)

    return app
