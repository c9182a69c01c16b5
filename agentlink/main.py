"""FastAPI entry-point exposing the A2A agent directory."""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from agentlink.api.routes import router as a2a_router
from agentlink.config import config
from agentlink.runtime import get_integration, initialize_default_agents

logging.basicConfig(level=config.log_level)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifecycle manager for FastAPI application."""
    await initialize_default_agents()
    yield
    get_integration().close()


app = FastAPI(title="A2A Agent Directory", lifespan=lifespan)
app.include_router(a2a_router)


@app.get("/health")
async def health() -> dict:
    return {"status": "ok"}
