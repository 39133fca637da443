import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from livraria.app.api.v1.api import api_router
from livraria.app.core.config import settings
from livraria.app.core.database import init_db

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    if settings.AUTO_CREATE_TABLES:
        init_db()
        logger.info("Database schema ready")
    yield


app = FastAPI(title="Livraria PDV", lifespan=lifespan)

# ─── CORS: PDV front-end only ───────────────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "DELETE"],
    allow_headers=["Content-Type", "Accept", "X-Session-Token"],
)

app.include_router(api_router)
