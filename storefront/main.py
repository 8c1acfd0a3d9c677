"""
Storefront Checkout Service

Cart, availability and checkout state for the storefront UI, backed by the
commerce API for inventory, orders and payments.
"""

import os
import asyncio
import logging
from contextlib import asynccontextmanager, suppress

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from dotenv import load_dotenv

from .routes import cart_router, checkout_router
from .core.config import settings
from .core.session import SessionManager
from .services.api_client import StorefrontApiClient
from .services.payment_processor import HttpPaymentProcessor

# Load environment variables
load_dotenv(os.path.join(os.path.dirname(__file__), "..", "config", ".env"))

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events"""
    logger.info("Storefront checkout starting up...")
    logger.info(f"Commerce API: {settings.api_base_url}")
    logger.info(f"Availability polling: {settings.availability_polling}")

    client = StorefrontApiClient(
        base_url=settings.api_base_url,
        auth_token=settings.api_auth_token,
        timeout=settings.http_timeout,
    )
    app.state.api_client = client
    app.state.session_manager = SessionManager(
        inventory=client,
        orders=client,
        payment_processor=HttpPaymentProcessor(client),
        settings=settings,
    )
    cleanup = asyncio.create_task(app.state.session_manager.cleanup_periodically())

    yield

    logger.info("Storefront checkout shutting down...")
    cleanup.cancel()
    with suppress(asyncio.CancelledError):
        await cleanup
    await app.state.session_manager.close()
    await client.close()


# Create FastAPI app
app = FastAPI(
    title="Storefront Checkout",
    description="Cart-to-order pipeline for the online store",
    version="1.0.0",
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(cart_router)
app.include_router(checkout_router)


@app.get("/")
async def root():
    return {
        "message": "Storefront Checkout API",
        "docs": "/docs",
        "endpoints": {
            "sessions": "/api/sessions",
            "cart": "/api/sessions/{session_id}/cart",
            "checkout": "/api/sessions/{session_id}/checkout",
        },
    }


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "service": "storefront-checkout",
        "backend_configured": settings.backend_configured,
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "storefront.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )
