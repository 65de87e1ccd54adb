# backend/idbroker/main.py
"""
Application wiring: logging, lifespan, routers and error handlers.

Run with ``uvicorn idbroker.main:app`` from the ``backend`` directory.
"""

from contextlib import asynccontextmanager
import logging
from typing import AsyncGenerator

from fastapi import APIRouter, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .core.config import is_running_tests, settings
from .core.constants import API_DESCRIPTION, API_TITLE, API_VERSION, BRAND_NAME
from .core.keys import get_key_ring
from .core.redis import close_redis_client
from .errors import register_error_handlers
from .routes import metrics, wellknown
from .routes.v1 import account as account_v1
from .routes.v1 import auth as auth_v1
from .routes.v1 import clients as clients_v1
from .routes.v1 import groups as groups_v1
from .routes.v1 import oauth as oauth_v1
from .routes.v1 import users as users_v1

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def app_lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Handle application startup/shutdown."""
    logger.info(f"{BRAND_NAME} API starting up...")
    logger.info(f"Environment: {settings.environment}")
    if is_running_tests():
        logger.info("Running under pytest (test mode active)")

    # Fail fast on unreadable key material instead of on the first request.
    key_ring = get_key_ring()
    logger.info("Signing with OIDC key %s", key_ring.current_kid)

    yield

    logger.info(f"{BRAND_NAME} API shutting down...")
    close_redis_client()


app = FastAPI(
    title=API_TITLE,
    description=API_DESCRIPTION,
    version=API_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=app_lifespan,
)

register_error_handlers(app)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.frontend_base_url],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Create API v1 router
api_v1 = APIRouter(prefix="/v1")

api_v1.include_router(auth_v1.router, prefix="/auth")
api_v1.include_router(oauth_v1.router, prefix="/oauth")
api_v1.include_router(account_v1.router, prefix="/user")
api_v1.include_router(clients_v1.router, prefix="/clients")
api_v1.include_router(groups_v1.router, prefix="/groups")
api_v1.include_router(users_v1.router, prefix="/users")

app.include_router(api_v1)
app.include_router(wellknown.router)
app.include_router(metrics.router)


@app.get("/health", tags=["monitoring"])
async def health() -> dict[str, str]:
    return {"status": "ok"}
