"""
FastAPI application entry point for the Storefront AI assistant.

This module creates the FastAPI app instance, builds the Gemini key pool at
startup and registers all routers.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware

from storefront.config import settings
from storefront.routes.admin import router as admin_router
from storefront.routes.health import router as health_router
from storefront.routes.recommendations import router as recommendations_router
from storefront.services.api_key_pool import build_api_key_pool
from storefront.utils.exceptions import StorefrontError

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

logger = logging.getLogger(__name__)


def _get_cors_origins() -> list[str]:
    """
    The storefront's origins in production, any origin elsewhere.

    The shopping assistant widget is embedded in the storefront pages, so
    production only needs the storefront domain(s) from CORS_ALLOWED_ORIGINS.
    """
    if not settings.is_production():
        logger.info(f"CORS open to all origins ({settings.ENVIRONMENT})")
        return ["*"]

    if not settings.CORS_ALLOWED_ORIGINS:
        logger.warning(
            "CORS_ALLOWED_ORIGINS is empty in production; the storefront widget "
            "will not be able to call this API from a browser."
        )
    else:
        logger.info(f"CORS restricted to {len(settings.CORS_ALLOWED_ORIGINS)} storefront origin(s)")
    return list(settings.CORS_ALLOWED_ORIGINS)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the process-wide key pool once; None disables recommendations."""
    app.state.key_pool = build_api_key_pool()
    yield


# Create FastAPI app
app = FastAPI(
    title="Storefront AI Assistant API",
    description="Product recommendations for the storefront shopping assistant",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """
    Log detailed validation errors and answer 400.

    The storefront treats every malformed request as a 400, not 422.
    """
    logger.error(
        f"Validation error on {request.method} {request.url.path}: {exc.errors()}"
    )

    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "success": False,
            "error": "validation_error",
            "details": jsonable_encoder(exc.errors()),
        }
    )


@app.exception_handler(StorefrontError)
async def storefront_exception_handler(request: Request, exc: StorefrontError):
    """Map service exceptions that escape a route to their status code."""
    logger.error(f"{type(exc).__name__} on {request.method} {request.url.path}: {exc.message}")

    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": exc.message}
    )


# Configure CORS with environment-based origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=_get_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register routers
app.include_router(health_router)
app.include_router(recommendations_router)
app.include_router(admin_router)

logger.info("FastAPI app initialized successfully")
