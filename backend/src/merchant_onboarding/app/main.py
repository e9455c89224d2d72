"""FastAPI application entry point for the Merchant Onboarding API."""

import asyncio
import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from merchant_onboarding.app.config import get_settings
from merchant_onboarding.infra.database import async_session, init_db
from merchant_onboarding.services.notification_service import get_notifier
from merchant_onboarding.services.setup_token_service import SetupTokenService

logger = logging.getLogger(__name__)

TOKEN_PURGE_INTERVAL_SECONDS = 6 * 60 * 60


async def token_purge_loop():
    """Drop expired, never-used setup tokens every 6 hours."""
    while True:
        try:
            async with async_session() as db:
                await SetupTokenService(db).purge_expired_tokens()
        except Exception as e:
            logger.error("Token purge error: %s", e)
        await asyncio.sleep(TOKEN_PURGE_INTERVAL_SECONDS)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: initialize database, start housekeeping."""
    await init_db()
    purge_task = asyncio.create_task(token_purge_loop())
    yield
    purge_task.cancel()
    await get_notifier().drain()


settings = get_settings()

# Configure logging
logging.basicConfig(
    level=logging.INFO if settings.debug else logging.WARNING,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    datefmt="%H:%M:%S",
)

app = FastAPI(
    title="Merchant Onboarding API",
    lifespan=lifespan,
    debug=settings.debug,
)

_cors_origins = settings.cors_origins_list
app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_credentials=("*" not in _cors_origins),
    allow_methods=["*"],
    allow_headers=["*"],
)

# ---------------------------------------------------------------------------
# Route includes
# ---------------------------------------------------------------------------
from merchant_onboarding.app.routes.admin import router as admin_router
from merchant_onboarding.app.routes.merchants import documents_router, router as merchants_router

app.include_router(admin_router)
app.include_router(merchants_router)
app.include_router(documents_router)


@app.get("/health", tags=["health"])
async def health_check():
    """Return service health status."""
    return {"status": "ok", "service": "merchant-onboarding"}


def run() -> None:
    """Run the application with uvicorn (used by project.scripts entry point)."""
    uvicorn.run(
        "merchant_onboarding.app.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
    )


if __name__ == "__main__":
    run()
