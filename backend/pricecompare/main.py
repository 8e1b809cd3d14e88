"""Nearby price comparison service - FastAPI Backend"""
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from pricecompare.api import health, prices, stores
from pricecompare.core.config import settings
from pricecompare.core.database import engine
from pricecompare.core.errors import register_error_handlers
from pricecompare.core.limiter import limiter
from pricecompare.core.logging_config import setup_logging


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup - logging and database
    setup_logging()
    from pricecompare.core.database import init_db
    await init_db()

    if settings.SEED_SAMPLE_DATA:
        from pricecompare.services.seed_service import seed_data
        await seed_data()

    yield
    # Shutdown
    await engine.dispose()


app = FastAPI(
    title="Price Compare API",
    description="Crowd-sourced nearby price comparison",
    version="1.0.0",
    lifespan=lifespan,
)

# Rate limiting
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_middleware(SlowAPIMiddleware)

# CORS for frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_error_handlers(app)

# Routes
app.include_router(health.router, tags=["Health"])
app.include_router(prices.router, prefix="/api/v1/prices", tags=["Prices"])
app.include_router(stores.router, prefix="/api/v1/stores", tags=["Stores"])
