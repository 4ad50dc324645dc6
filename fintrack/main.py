"""
fintrack backend — FastAPI application entry-point.
"""
import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from fintrack.config import settings
from fintrack.database import Base, engine

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s  %(name)-30s  %(levelname)-5s  %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: ensure data dir + tables exist
    os.makedirs(settings.DATA_DIR, exist_ok=True)
    import fintrack.models  # noqa: F401  — register models on Base.metadata
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables ready (%s)", settings.DATABASE_URL)
    if not settings.GEMINI_API_KEY:
        logger.warning("GEMINI_API_KEY is not set; receipt scanning is disabled")
    yield
    logger.info("Shutting down")


app = FastAPI(
    title="fintrack",
    description="Accounts, transactions, budgets and AI receipt scanning",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/")
async def root():
    return {"service": "fintrack", "version": "0.1.0", "status": "running"}


@app.get("/health")
async def health_check():
    return {"status": "healthy"}


# ── Register API routers ─────────────────────────────────────────────────
from fintrack.routers.users import router as users_router  # noqa: E402
from fintrack.routers.accounts import router as accounts_router  # noqa: E402
from fintrack.routers.transactions import router as transactions_router  # noqa: E402
from fintrack.routers.budgets import router as budgets_router  # noqa: E402
from fintrack.routers.dashboard import router as dashboard_router  # noqa: E402
from fintrack.routers.receipts import router as receipts_router  # noqa: E402

app.include_router(users_router, prefix="/api", tags=["Users"])
app.include_router(accounts_router, prefix="/api", tags=["Accounts"])
app.include_router(transactions_router, prefix="/api", tags=["Transactions"])
app.include_router(budgets_router, prefix="/api", tags=["Budgets"])
app.include_router(dashboard_router, prefix="/api", tags=["Dashboard"])
app.include_router(receipts_router, prefix="/api", tags=["Receipts"])
