import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware import Middleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.sessions import SessionMiddleware

from storefront.config import settings
from storefront.db import init_db
from storefront.routers import (
    admin_order,
    admin_product,
    admin_sales,
    auth,
    cart,
    catalog,
    dashboard,
    orders,
)
from storefront.services.notifications import NotificationQueue
from storefront.services.payment import PaymentGateway


def configure_logging() -> None:
    os.makedirs(settings.LOG_DIR, exist_ok=True)
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=[
            logging.FileHandler(
                os.path.join(settings.LOG_DIR, "storefront.log"), encoding="utf-8"
            ),
            logging.StreamHandler(),
        ],
    )


logger = logging.getLogger("storefront")


def create_app(
    notifications: NotificationQueue | None = None,
    payment_gateway: PaymentGateway | None = None,
) -> FastAPI:
    notifications = notifications or NotificationQueue()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging()
        if settings.AUTO_CREATE_TABLES:
            init_db()
        notifications.start()
        logger.info("%s started", settings.APP_NAME)
        try:
            yield
        finally:
            notifications.stop()

    app = FastAPI(
        title=settings.APP_NAME,
        lifespan=lifespan,
        middleware=[
            Middleware(SessionMiddleware, secret_key=settings.SECRET_KEY),
        ],
    )
    app.state.notifications = notifications
    app.state.payment_gateway = payment_gateway or PaymentGateway()

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        # access-denied responses never describe the target resource
        detail = exc.detail if exc.status_code != 404 else "Not Found"
        return JSONResponse({"message": detail}, status_code=exc.status_code)

    @app.get("/health")
    def health():
        return {"ok": True}

    app.include_router(auth.router)
    app.include_router(catalog.router)
    app.include_router(cart.router)
    app.include_router(orders.router)
    app.include_router(dashboard.router)
    app.include_router(admin_product.router)
    app.include_router(admin_order.router)
    app.include_router(admin_sales.router)
    return app


app = create_app()
