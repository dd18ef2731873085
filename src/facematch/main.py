"""FastAPI application entry point."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from facematch.config import Settings
    from facematch.store.base import EmbeddingStore

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from facematch.api.errors import register_error_handlers
from facematch.api.routes import router
from facematch.config import get_settings
from facematch.errors import ModelLoadFailed
from facematch.matching import Matcher
from facematch.ml.embedding import EmbeddingService
from facematch.ml.inference import InferencePool
from facematch.ml.model_manager import OnnxModelManager
from facematch.ml.preprocessing import ImagePreprocessor
from facematch.service import FaceService
from facematch.store.memory import InMemoryEmbeddingStore
from facematch.store.sql import SqlEmbeddingStore, create_db_engine

logger = logging.getLogger(__name__)


def build_store(settings: Settings) -> EmbeddingStore:
    """Return the SQL store for a configured database URL, else an in-memory one."""
    if settings.database_url:
        return SqlEmbeddingStore(create_db_engine(settings.database_url))
    logger.warning("No database configured, identities will not survive a restart")
    return InMemoryEmbeddingStore()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan: load the model on startup, clean up on shutdown."""
    settings = get_settings()
    app.state.settings = settings

    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    logger.info(
        "Starting FaceMatch (model=%s, threshold=%s, pixel_range=%s, max_concurrent=%s)",
        settings.model_path,
        settings.match_threshold,
        settings.pixel_range,
        settings.max_concurrent,
    )

    model_manager = OnnxModelManager(settings)
    try:
        model_manager.get_session()
    except ModelLoadFailed:
        logger.critical("Cannot serve without a model, aborting startup")
        raise
    app.state.model_manager = model_manager

    embedder = EmbeddingService(ImagePreprocessor.from_settings(settings), model_manager)
    app.state.face_service = FaceService(embedder, build_store(settings), Matcher(settings.match_threshold))

    inference_pool = InferencePool.from_settings(settings)
    app.state.inference_pool = inference_pool

    logger.info("FaceMatch ready")
    yield

    logger.info("Shutting down FaceMatch")
    inference_pool.shutdown()
    logger.info("FaceMatch shutdown complete")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    application = FastAPI(
        title="FaceMatch",
        description="Face embedding and verification API",
        version="0.1.0",
        lifespan=lifespan,
    )

    application.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_error_handlers(application)
    application.include_router(router)
    return application


app = create_app()


def run() -> None:
    """Console entry point: serve the app with uvicorn."""
    settings = get_settings()
    uvicorn.run("facematch.main:app", host=settings.host, port=settings.port)
