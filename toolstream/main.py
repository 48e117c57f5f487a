"""toolstream FastAPI application entry point."""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from toolstream import config
from toolstream.observability import initialize as initialize_observability, shutdown as shutdown_observability
from toolstream.pipeline import ToolStreamPipeline
from toolstream.routers.api import paths_router, status_router, tools_router
from toolstream.routers.events import events_router

logging.basicConfig(
    level=getattr(logging, config.LOG_LEVEL, logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("toolstream")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup / shutdown lifecycle."""
    logger.info("toolstream starting up")
    initialize_observability(app)

    pipeline = ToolStreamPipeline()
    app.state.pipeline = pipeline
    await pipeline.start()

    yield

    logger.info("toolstream shutting down")
    await pipeline.stop()
    shutdown_observability(app)


app = FastAPI(
    title="toolstream API",
    description="Live normalized tool records from agent session logs",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        config.FRONTEND_ORIGIN,
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(status_router)
app.include_router(tools_router)
app.include_router(paths_router)
app.include_router(events_router)
