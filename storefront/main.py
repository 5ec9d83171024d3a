"""
storefront/main.py - Lewis Storefront Service

PURPOSE:
    Serves the customer-facing storefront: the shopping cart, the checkout screen,
    the payment widget hand-off, and thin pass-throughs to the store API for the
    catalogue, order history, accounts and the back office.

RESPONSIBILITIES:
    - Keep the customer's cart and persist it between sessions
    - Price the order live as delivery, payment type and credit term change
    - Validate and submit orders to the store API
    - Hand pay-in-full orders to the payment widget and confirm the transaction
    - Clear the cart and redirect once an order is confirmed

API ENDPOINTS:
    GET    /cart                          - View cart contents
    POST   /cart/items                    - Add item to cart
    PUT    /cart/items/{product_id}       - Update item quantity (0 removes)
    DELETE /cart/items/{product_id}       - Remove item from cart
    DELETE /cart                          - Clear cart
    GET    /checkout                      - Checkout state with live pricing
    POST   /checkout/reset                - Start a new checkout session
    POST   /checkout/actions              - Apply a field edit
    POST   /checkout/submit               - Submit the order
    POST   /checkout/payment/success      - Payment widget success callback
    POST   /checkout/payment/close        - Payment widget close callback
    GET    /products, /products/{id}      - Catalogue
    GET    /orders, /orders/{id}          - Order history (login required)
    POST   /orders/{id}/cancel            - Cancel an order (login required)
    POST   /auth/login|logout|register    - Account session
    GET    /auth/session                  - Current session
    GET    /account/profile               - Customer profile (login required)
    PATCH  /account/profile               - Update customer profile (login required)
    GET    /manage/...                    - Back office: dashboard, inventory, orders,
                                             reports, audit logs, store settings (admin only)
    POST   /manage/products               - Create product (admin only)
    PATCH  /manage/products/{id}          - Update product (admin only)
    POST   /manage/products/{id}/images   - Upload up to three images (admin only)
    DELETE /manage/products/{id}[/permanent] - Soft or permanent delete (admin only)
    POST   /manage/products/import        - CSV import (admin only)
    GET    /manage/products/export        - CSV export (admin only)
    GET    /health                        - Health check endpoint

ERROR RESPONSES:
    - 422: Local checkout validation failure, or a malformed checkout action
    - 409: Checkout action not allowed in the current phase
    - 4xx: Store API rejection, passed through with its message
    - 502: Store API unreachable or failing

DATA STORAGE:
    - CART_BACKEND=file (default): JSON array at CART_FILE_PATH
    - CART_BACKEND=redis: JSON array under CART_KEY, optional CART_TTL_SECONDS
    - CART_BACKEND=memory: process memory only

TESTING COMMANDS:
    1. Health Check:
        curl -X GET http://localhost:8010/health

    2. Add Item to Cart (one sofa at R8999.00):
        curl -X POST http://localhost:8010/cart/items \
          -H "Content-Type: application/json" \
          -d '{"productId": 12, "name": "Oslo 3 Seater", "unitPrice": 8999.0, "quantity": 1}'

    3. Switch to credit over 12 months:
        curl -X POST http://localhost:8010/checkout/actions \
          -H "Content-Type: application/json" \
          -d '{"type": "set_payment_type", "value": "Credit"}'
        curl -X POST http://localhost:8010/checkout/actions \
          -H "Content-Type: application/json" \
          -d '{"type": "set_term_months", "value": 12}'

    4. Fill in the billing address and accept the terms:
        curl -X POST http://localhost:8010/checkout/actions \
          -H "Content-Type: application/json" \
          -d '{"type": "set_billing_field", "field": "full_name", "value": "Thandi Mokoena"}'
        curl -X POST http://localhost:8010/checkout/actions \
          -H "Content-Type: application/json" \
          -d '{"type": "set_agreed_to_terms", "value": true}'

    5. Submit:
        curl -X POST http://localhost:8010/checkout/submit

USAGE:
    python -m storefront.main
    Access: http://localhost:8010/...
"""

import logging
import os
from contextlib import asynccontextmanager
from typing import Optional, Tuple

import httpx
import redis
from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from pydantic_settings import BaseSettings

from shared.api_client import ApiError, BaseApiClient
from shared.events import set_event_timezone
from shared.logging_config import DEFAULT_TIMEZONE, setup_logging
from storefront.api import AuthApi, AuthSession, CheckoutApi, ManageApi, ProductsApi
from storefront.cart_repository import (
    DEFAULT_CART_KEY,
    CartStorage,
    CartStore,
    InMemoryCartStorage,
    JsonFileCartStorage,
    RedisCartStorage,
)
from storefront.checkout import CheckoutValidationError, InvalidTransition
from storefront.checkout_flow import CheckoutFlow
from storefront.dependencies import Storefront
from storefront.routes import (
    account_router,
    cart_router,
    catalogue_router,
    checkout_router,
    manage_router,
)
from storefront.schemas import HealthResponse

logger = logging.getLogger(__name__)

SERVICE_NAME = "storefront"
SERVICE_VERSION = "1.0.0"


class Settings(BaseSettings):
    """Application settings."""

    store_api_url: str = os.getenv("STORE_API_URL", "http://localhost:5000/api/")
    api_timeout_seconds: float = float(os.getenv("API_TIMEOUT_SECONDS", "10"))
    paystack_public_key: str = os.getenv("PAYSTACK_PUBLIC_KEY", "")
    default_buyer_email: str = os.getenv("DEFAULT_BUYER_EMAIL", "user@example.com")
    cart_backend: str = os.getenv("CART_BACKEND", "file")
    cart_file_path: str = os.getenv("CART_FILE_PATH", "~/.lewis/cart.json")
    redis_host: str = os.getenv("REDIS_HOST", "localhost")
    redis_port: int = int(os.getenv("REDIS_PORT", "6379"))
    cart_key: str = os.getenv("CART_KEY", DEFAULT_CART_KEY)
    cart_ttl_seconds: Optional[int] = int(os.getenv("CART_TTL_SECONDS")) if os.getenv("CART_TTL_SECONDS") else None
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    store_timezone: str = os.getenv("STORE_TIMEZONE", DEFAULT_TIMEZONE)
    # Single-user client: the logged-in session token is sent on every proxied call
    storefront_host: str = os.getenv("STOREFRONT_HOST", "127.0.0.1")
    storefront_port: int = int(os.getenv("STOREFRONT_PORT", "8010"))


def build_storage(settings: Settings) -> Tuple[CartStorage, Optional[redis.Redis]]:
    """Cart storage for the configured backend, plus the Redis client to close on shutdown."""
    backend = settings.cart_backend.lower()
    if backend == "redis":
        redis_client = redis.Redis(
            host=settings.redis_host,
            port=settings.redis_port,
            decode_responses=True,
        )
        redis_client.ping()
        logger.info("Redis connected")
        return RedisCartStorage(redis_client, key=settings.cart_key, ttl=settings.cart_ttl_seconds), redis_client
    if backend == "file":
        return JsonFileCartStorage(settings.cart_file_path), None
    if backend == "memory":
        return InMemoryCartStorage(), None
    raise ValueError(f"Unknown cart backend: {settings.cart_backend}")


def create_app(
    settings: Optional[Settings] = None,
    storage: Optional[CartStorage] = None,
    transport: Optional[httpx.BaseTransport] = None,
) -> FastAPI:
    """
    Build the storefront app.

    Args:
        settings: Defaults to Settings() read from the environment
        storage: Cart storage override; skips the configured backend
        transport: httpx transport for the store API client (tests stub the API with it)
    """
    settings = settings or Settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Manage app lifecycle."""
        setup_logging(SERVICE_NAME, level=settings.log_level, timezone=settings.store_timezone)
        set_event_timezone(settings.store_timezone)
        logger.info("Starting Storefront...")

        redis_client = None
        cart_storage = storage
        if cart_storage is None:
            try:
                cart_storage, redis_client = build_storage(settings)
            except (redis.RedisError, ValueError) as e:
                logger.error(f"Failed to initialize cart storage: {e}")
                raise

        session = AuthSession()
        api_client = BaseApiClient(
            settings.store_api_url,
            token_provider=session.get_token,
            timeout=settings.api_timeout_seconds,
            transport=transport,
        )
        checkout_api = CheckoutApi(api_client)
        cart = CartStore(cart_storage)

        if not settings.paystack_public_key:
            logger.warning("PAYSTACK_PUBLIC_KEY is not set, the payment widget will reject payments")

        app.state.storefront = Storefront(
            api_client=api_client,
            session=session,
            cart=cart,
            checkout=CheckoutFlow(
                cart,
                checkout_api,
                public_key=settings.paystack_public_key,
                session=session,
                default_email=settings.default_buyer_email,
            ),
            checkout_api=checkout_api,
            products_api=ProductsApi(api_client),
            auth_api=AuthApi(api_client, session),
            manage_api=ManageApi(api_client),
        )
        logger.info(f"Store API client ready for {api_client.base_url}")

        yield   # ← Application is now ready to handle requests

        logger.info("Shutting down Storefront...")
        api_client.close()
        if redis_client:
            redis_client.close()

    app = FastAPI(title="Lewis Storefront", version=SERVICE_VERSION, lifespan=lifespan)

    app.include_router(cart_router)
    app.include_router(checkout_router)
    app.include_router(catalogue_router)
    app.include_router(account_router)
    app.include_router(manage_router)

    @app.exception_handler(CheckoutValidationError)
    async def checkout_validation_handler(request: Request, exc: CheckoutValidationError) -> JSONResponse:
        return JSONResponse(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, content={"detail": exc.message})

    @app.exception_handler(ValidationError)
    async def action_validation_handler(request: Request, exc: ValidationError) -> JSONResponse:
        errors = exc.errors(include_url=False, include_context=False)
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={"detail": jsonable_encoder(errors)},
        )

    @app.exception_handler(InvalidTransition)
    async def invalid_transition_handler(request: Request, exc: InvalidTransition) -> JSONResponse:
        return JSONResponse(status_code=status.HTTP_409_CONFLICT, content={"detail": str(exc)})

    @app.exception_handler(ApiError)
    async def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
        # Upstream client errors pass through, anything else is a bad gateway
        if exc.status_code and 400 <= exc.status_code < 500:
            status_code = exc.status_code
        else:
            status_code = status.HTTP_502_BAD_GATEWAY
        return JSONResponse(status_code=status_code, content={"detail": exc.message, "code": exc.code})

    @app.get("/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        """Health check endpoint."""
        return HealthResponse(
            status="ok",
            service=SERVICE_NAME,
            version=SERVICE_VERSION,
        )

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = Settings()
    uvicorn.run(app, host=settings.storefront_host, port=settings.storefront_port)
