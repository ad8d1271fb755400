"""FastAPI application entrypoint: logging, middleware and the v1 routers."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from dotenv import load_dotenv

load_dotenv()

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from empdash.api.v1 import router as v1_router
from empdash.core.config import settings

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%SZ",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    logger.info(
        "EmpDash identity API starting: env=%s store_backend=%s",
        settings.APP_ENV,
        settings.STORE_BACKEND,
    )
    yield


app = FastAPI(
    title="EmpDash Identity API",
    description="Credentials, rename history and soft-deleted accounts for the ASN employee dashboard.",
    version="0.1.0",
    lifespan=lifespan,
)

# The dashboard is served from a different origin in development.
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if settings.APP_ENV == "dev" else [],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(v1_router, prefix=settings.API_V1_PREFIX)


@app.get("/")
def root() -> dict[str, str]:
    return {"message": "EmpDash Identity API", "api": settings.API_V1_PREFIX}
