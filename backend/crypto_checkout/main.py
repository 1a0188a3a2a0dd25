"""
Crypto Checkout Backend - FastAPI Application

Checkout and payment-webhook processing service. Creates payment sessions
against a (simulated) Coinbase Commerce gateway, records them as
transactions, and reconciles their state from webhook notifications.
"""
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from contextlib import asynccontextmanager
from typing import Optional
import logging
import time

from .config import Settings, settings
from .exceptions import CheckoutServiceError
from .db.init_db import open_database
from .services.charge_gateway import build_charge_gateway
from .services.checkout_service import CheckoutService
from .services.transaction_store import TransactionStore
from .services.webhook_service import WebhookService
from .api.checkout import router as checkout_router
from .api.webhook import router as webhook_router
from .api.transactions import router as transactions_router
from .api.health import router as health_router


# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


def create_app(app_settings: Optional[Settings] = None) -> FastAPI:
    """
    Build the FastAPI application.

    The store handle, gateway and services are constructed in the lifespan
    and injected through app.state; nothing is initialized lazily.
    """
    app_settings = app_settings or settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Application lifespan manager.

        - Startup: open the database, create the schema, wire services
        - Shutdown: release pooled connections
        """
        logger.info(f"Starting {app_settings.app_name}...")
        logger.info(f"Environment: {app_settings.environment}")

        async with open_database(app_settings) as database:
            store = TransactionStore(database.session_factory, max_page_size=app_settings.max_page_size)
            gateway = build_charge_gateway(app_settings)

            app.state.settings = app_settings
            app.state.started_at = time.monotonic()
            app.state.database = database
            app.state.store = store
            app.state.checkout_service = CheckoutService(
                store,
                gateway,
                currency=app_settings.default_currency,
                gateway_timeout_seconds=app_settings.gateway_timeout_seconds,
                checkout_timeout_seconds=app_settings.checkout_timeout_seconds,
            )
            app.state.webhook_service = WebhookService(store, gateway)

            logger.info(f"Server startup complete ({database.backend_name})")
            logger.info(f"Health check: {app_settings.base_url}/api/health")

            yield

            logger.info(f"Shutting down {app_settings.app_name}...")

    app = FastAPI(
        title=app_settings.app_name,
        description="Crypto checkout sessions and payment webhook reconciliation",
        version=app_settings.version,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        started = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - started) * 1000
        logger.info(
            f"{request.method} {request.url.path} -> {response.status_code} ({duration_ms:.1f}ms)"
        )
        return response

    @app.exception_handler(CheckoutServiceError)
    async def checkout_error_handler(request: Request, exc: CheckoutServiceError):
        """
        Handle service errors with the standard {success, error} body.

        Status comes from the exception class; details are logged, never returned.
        """
        log = logger.error if exc.status_code >= 500 else logger.warning
        log(
            f"{type(exc).__name__} on {request.method} {request.url.path}: {exc.message}",
            extra={"details": exc.details}
        )

        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def request_validation_error_handler(request: Request, exc: RequestValidationError):
        """
        Handle FastAPI request parsing errors (query params, malformed JSON).

        Reports only the first violated field.
        """
        errors = exc.errors()
        if errors:
            error = errors[0]
            field = ".".join(str(part) for part in error.get("loc", ()) if part not in ("body", "query"))
            message = f"Invalid request: {field + ': ' if field else ''}{error.get('msg')}"
        else:
            message = "Invalid request"
        logger.warning(f"Validation error on {request.method} {request.url.path}: {message}")

        return JSONResponse(status_code=400, content={"success": False, "error": message})

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        """Unknown routes and disallowed methods."""
        message = "Endpoint not found" if exc.status_code == 404 else str(exc.detail)
        return JSONResponse(
            status_code=exc.status_code,
            content={"success": False, "error": message},
        )

    @app.exception_handler(Exception)
    async def general_error_handler(request: Request, exc: Exception):
        """
        Catch-all handler for unexpected errors.

        Logs full exception for debugging but returns generic message to client.
        """
        logger.error(
            f"Unhandled error on {request.method} {request.url.path}: {exc}",
            exc_info=True
        )

        return JSONResponse(
            status_code=500,
            content={"success": False, "error": "Internal server error"},
        )

    @app.get("/")
    async def root():
        return {
            "success": True,
            "message": app_settings.app_name,
            "version": app_settings.version,
            "endpoints": {
                "checkout": "POST /api/checkout",
                "webhook": "POST /api/webhook",
                "transactions": "GET /api/transactions",
                "health": "GET /api/health",
            },
        }

    app.include_router(checkout_router, prefix="/api", tags=["Checkout"])
    app.include_router(webhook_router, prefix="/api", tags=["Webhooks"])
    app.include_router(transactions_router, prefix="/api/transactions", tags=["Transactions"])
    app.include_router(health_router, prefix="/api", tags=["Health"])

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "crypto_checkout.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.environment == "development",
        log_level=settings.log_level.lower()
    )
