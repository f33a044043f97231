"""
Storefront API — FastAPI Backend
Multi-vendor digital goods: checkout, purchases, subscriptions, shop payouts
"""

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from config import settings
from db.database import engine
from routers import checkout, packages, payments, paypal, purchases, shops, stripe_connect, subscriptions
from services.errors import StorefrontError
from services.expiry_sweep import run_expiry_sweeper

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    # Startup
    logger.info("Storefront API starting...")
    sweeper = None
    if settings.CHECKOUT_SWEEP_INTERVAL_SEC > 0:
        sweeper = asyncio.create_task(run_expiry_sweeper(settings.CHECKOUT_SWEEP_INTERVAL_SEC))
    yield
    # Shutdown
    if sweeper:
        sweeper.cancel()
        try:
            await sweeper
        except asyncio.CancelledError:
            pass
    await engine.dispose()
    logger.info("Storefront API shut down.")


app = FastAPI(
    title="Storefront API",
    description="Multi-vendor digital goods storefront backend",
    version="1.0.0",
    lifespan=lifespan,
)

# ── CORS ───────────────────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ── Errors ─────────────────────────────────────────────────
@app.exception_handler(StorefrontError)
async def storefront_error_handler(request: Request, exc: StorefrontError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


# ── Routers ────────────────────────────────────────────────
app.include_router(shops.router, prefix="/api/shops", tags=["Shops"])
app.include_router(packages.router, prefix="/api/packages", tags=["Packages"])
app.include_router(checkout.router, prefix="/api/checkout", tags=["Checkout"])
app.include_router(purchases.router, prefix="/api/purchases", tags=["Purchases"])
app.include_router(subscriptions.router, prefix="/api/subscriptions", tags=["Subscriptions"])
app.include_router(payments.router, prefix="/api/payments/stripe", tags=["Stripe Payments"])
app.include_router(paypal.router, prefix="/api/payments/paypal", tags=["PayPal Payments"])
app.include_router(stripe_connect.router, prefix="/api/stripe-connect", tags=["Stripe Connect"])


@app.get("/health")
async def health_check():
    return {"status": "healthy", "service": "Storefront API"}


@app.get("/health/db")
async def health_db():
    """Verify the DB connection and report catalog size."""
    from sqlalchemy import text
    try:
        async with engine.connect() as conn:
            count_row = (await conn.execute(text("SELECT COUNT(*) FROM packages"))).first()
        return {"status": "ok", "packages_count": count_row[0] if count_row else 0}
    except Exception as e:
        return {"status": "error", "detail": str(e)}
