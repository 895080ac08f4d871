"""FastAPI application entry point."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from labelseek.api.routes import router
from labelseek.config import get_settings
from labelseek.ml.image_classifier import OnnxImageClassifier
from labelseek.ml.inference import InferencePool
from labelseek.ml.model_manager import OnnxModelManager
from labelseek.ml.preprocessing import ImagePreprocessor

logger = logging.getLogger(__name__)


async def evict_idle_models(model_manager: OnnxModelManager, ttl: int) -> None:
    """Unload idle classifier sessions every ``ttl`` seconds (at most once a minute)."""
    interval = min(ttl, 60)
    while True:
        await asyncio.sleep(interval)
        model_manager.unload_idle_models()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan: initialize on startup, clean up on shutdown."""
    settings = get_settings()
    app.state.settings = settings

    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    logger.info(
        "Starting labelseek (device=%s, max_concurrent=%s, model=%s, corpus=%s)",
        settings.device,
        settings.max_concurrent,
        settings.classification_model,
        settings.corpus_path,
    )

    model_manager = OnnxModelManager(settings)
    app.state.model_manager = model_manager
    app.state.classifier = OnnxImageClassifier(model_manager, settings.classification_model)
    app.state.preprocessor = ImagePreprocessor(settings)
    inference_pool = InferencePool(settings)
    app.state.inference_pool = inference_pool

    evictor = None
    if settings.model_ttl:
        evictor = asyncio.create_task(evict_idle_models(model_manager, settings.model_ttl))

    logger.info("labelseek ready")
    yield

    logger.info("Shutting down labelseek")
    if evictor is not None:
        evictor.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await evictor
    inference_pool.shutdown()
    model_manager.shutdown()
    logger.info("labelseek shutdown complete")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    application = FastAPI(
        title="labelseek",
        description="Image classification with fuzzy label search",
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

    application.include_router(router)
    return application


app = create_app()
