"""FastAPI app for the seoimg API.

Every ``/api`` router authenticates through ``backend.auth.require_auth``;
credit-spending routes (single generation, bulk run start/resume) also go
through the per-account limit in ``backend.ratelimit``.
"""

import logging
import sys
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from seoimg import __version__
from seoimg.config import get_settings

logger = logging.getLogger(__name__)
logging.basicConfig(level=logging.INFO)

settings = get_settings()

app = FastAPI(
    title="SEO Image Engine API",
    description="Credit-metered blog featured images and infographics via webhook.",
    version=__version__,
    docs_url="/api/docs",
    redoc_url="/api/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

logger.info("Webhook endpoint: %s", settings.seoimg_webhook_url)
logger.info(
    "Credit ledger: %s",
    "Postgres" if settings.seoimg_database_url else f"file ({settings.data_dir / 'credits'})",
)
logger.info(
    "Generation limit: %d requests per %gs per account",
    settings.seoimg_rate_limit_max, settings.seoimg_rate_limit_window,
)
if not settings.api_token_map:
    logger.warning("SEOIMG_API_TOKENS is empty; every authenticated /api route will return 401")


class HealthResponse(BaseModel):
    status: str
    data_dir: str


@app.get("/health", response_model=HealthResponse)
@app.get("/api/health", response_model=HealthResponse)
async def health():
    return HealthResponse(status="ok", data_dir=str(settings.data_dir))


@app.get("/api/")
async def root():
    return {"message": "SEO Image Engine API", "version": __version__}


from backend.routes import auth, credits, generate, notifications, queues  # noqa: E402

app.include_router(auth.router, prefix="/api", tags=["auth"])
app.include_router(credits.router, prefix="/api", tags=["credits"])
app.include_router(notifications.router, prefix="/api", tags=["notifications"])
app.include_router(queues.router, prefix="/api", tags=["queues"])
app.include_router(generate.router, prefix="/api", tags=["generate"])
