from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from storefront.api.routes_cart import router as cart_router
from storefront.api.routes_checkout import router as checkout_router
from storefront.api.routes_orders import router as orders_router
from storefront.api.routes_products import router as products_router
from storefront.api.routes_realtime import router as realtime_router
from storefront.core.config import get_settings
from storefront.core.errors import StorefrontError
from storefront.core.logging import configure_logging
from storefront.persistence.pg import init_db

configure_logging()
logger = logging.getLogger(__name__)
settings = get_settings()

app = FastAPI(title=settings.app_name)


@app.on_event("startup")
def on_startup() -> None:
    init_db()
    logger.info("storefront ready: env=%s gateway=%s", settings.env, settings.gateway_mode)


@app.exception_handler(StorefrontError)
async def storefront_error_handler(_: Request, exc: StorefrontError):
    if exc.status_code >= 500:
        logger.error("%s: %s", exc.error, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_response())


@app.exception_handler(RequestValidationError)
async def request_validation_handler(_: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content={"error": "Invalid request body", "details": jsonable_encoder(exc.errors())},
    )


@app.get("/healthz")
def healthz() -> dict:
    return {"status": "ok"}


app.include_router(checkout_router)
app.include_router(orders_router)
app.include_router(cart_router)
app.include_router(products_router)
app.include_router(realtime_router)
