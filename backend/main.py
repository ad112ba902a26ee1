"""
Fixtureseed — schema-driven database fixture seeding
FastAPI application entry point.
"""
import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api import health, sessions, operations
from config import settings

# ── Logging ──────────────────────────────────────────────────────────────────
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%S",
)
logger = logging.getLogger("fixtureseed")


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Fixtureseed starting up…")
    yield
    for fixture in sessions._session_registry.values():
        fixture.dispose()
    sessions._session_registry.clear()
    logger.info("Fixtureseed shutting down.")


# ── App ───────────────────────────────────────────────────────────────────────
app = FastAPI(
    title="Fixtureseed",
    description="Seed and verify relational test fixtures from schema and data descriptions.",
    version="1.0.0",
    lifespan=lifespan,
)

# ── CORS ──────────────────────────────────────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ── Routers ───────────────────────────────────────────────────────────────────
app.include_router(health.router,     prefix="/api")
app.include_router(sessions.router,   prefix="/api")
app.include_router(operations.router, prefix="/api")


if __name__ == "__main__":
    uvicorn.run("main:app", host=settings.API_HOST, port=settings.API_PORT)
