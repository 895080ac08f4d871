"""API route definitions."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from fastapi import APIRouter, Depends, HTTPException, Query, Request, UploadFile, status

from labelseek.api.dependencies import (
    get_classifier,
    get_inference_pool,
    get_model_manager,
    get_preprocessor,
    get_settings,
    verify_api_key,
)
from labelseek.api.schemas import (
    ClassifyImageResponse,
    ErrorResponse,
    HealthResponse,
    ModelInfo,
    ModelsResponse,
    SearchMatch,
    SearchResponse,
)
from labelseek.classify import to_classifications
from labelseek.errors import (
    CorpusError,
    CorpusFormatError,
    CorpusNotFoundError,
    EmptyQueryError,
    ImageReadError,
    ImageTooLargeError,
    InferenceError,
    UnsupportedImageError,
)
from labelseek.ml.model_manager import MODEL_REGISTRY
from labelseek.search import search
from labelseek.store import read_corpus

if TYPE_CHECKING:
    from labelseek.ml.image_classifier import ClassificationResult, ImageClassifier
    from labelseek.ml.preprocessing import ImagePreprocessor

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", dependencies=[Depends(verify_api_key)])


def _classify_bytes(
    preprocessor: ImagePreprocessor,
    classifier: ImageClassifier,
    data: bytes,
    name: str,
    top_k: int,
) -> list[ClassificationResult]:
    image = preprocessor.decode_bytes(data, name)
    return classifier.classify(preprocessor.to_tensor(image), top_k)


@router.post(
    "/classify-image",
    response_model=ClassifyImageResponse,
    responses={
        status.HTTP_400_BAD_REQUEST: {"model": ErrorResponse},
        status.HTTP_413_CONTENT_TOO_LARGE: {"model": ErrorResponse},
        status.HTTP_415_UNSUPPORTED_MEDIA_TYPE: {"model": ErrorResponse},
        status.HTTP_503_SERVICE_UNAVAILABLE: {"model": ErrorResponse},
    },
    summary="Classify an image with normalized labels",
)
async def classify_image(
    request: Request,
    file: UploadFile,
    top_k: int | None = Query(default=None, ge=1),
) -> ClassifyImageResponse:
    """Classify an uploaded image and return its ranked, normalized classifications."""
    settings = get_settings(request)
    pool = get_inference_pool(request)
    classifier = get_classifier(request)
    data = await file.read()

    try:
        results = await pool.run(
            _classify_bytes,
            get_preprocessor(request),
            classifier,
            data,
            file.filename or "<upload>",
            top_k or settings.top_k,
        )
        classifications = to_classifications(results)
    except TimeoutError:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Inference queue is full, retry later",
        ) from None
    except ImageTooLargeError as e:
        raise HTTPException(status_code=status.HTTP_413_CONTENT_TOO_LARGE, detail=str(e)) from e
    except UnsupportedImageError as e:
        raise HTTPException(status_code=status.HTTP_415_UNSUPPORTED_MEDIA_TYPE, detail=str(e)) from e
    except ImageReadError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e
    except InferenceError as e:
        logger.error("Classification of %s failed: %s", file.filename, e)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e)) from e

    return ClassifyImageResponse(model=classifier.model_name, classifications=classifications)


@router.get(
    "/search",
    response_model=SearchResponse,
    responses={
        status.HTTP_400_BAD_REQUEST: {"model": ErrorResponse},
        status.HTTP_404_NOT_FOUND: {"model": ErrorResponse},
        status.HTTP_422_UNPROCESSABLE_CONTENT: {"model": ErrorResponse},
    },
    summary="Fuzzy-search the classified images",
)
async def search_corpus(
    request: Request,
    q: str = Query(default="", description="Free-text query, misspellings allowed"),
    limit: int | None = Query(default=None, ge=1),
) -> SearchResponse:
    """Rank the configured corpus against a query by edit distance."""
    settings = get_settings(request)
    try:
        corpus = read_corpus(settings.corpus_path)
        hits = search(corpus, q, limit=limit or settings.max_results)
    except EmptyQueryError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e
    except CorpusNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    except CorpusFormatError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_CONTENT, detail=str(e)) from e
    except CorpusError as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e)) from e

    return SearchResponse(
        query=q,
        results=[
            SearchMatch(rank=hit.rank, score=hit.score, absolute_path=hit.absolute_path, classes=hit.classes)
            for hit in hits
        ],
    )


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
)
async def health(request: Request) -> HealthResponse:
    """Return service health status."""
    settings = get_settings(request)
    pool = get_inference_pool(request)
    return HealthResponse(
        status="ok",
        gpu=settings.device == "cuda",
        models_loaded=get_model_manager(request).get_loaded_models(),
        concurrent_requests=pool.active_count,
        queue_depth=pool.queue_depth,
    )


@router.get(
    "/models",
    response_model=ModelsResponse,
    summary="List available models",
)
async def list_models(request: Request) -> ModelsResponse:
    """Return the registered classifiers, marking the configured one active."""
    settings = get_settings(request)
    return ModelsResponse(
        models=[
            ModelInfo(
                name=spec.name,
                repo_id=spec.repo_id,
                status="active" if spec.name == settings.classification_model else "available",
                license=spec.license,
            )
            for spec in MODEL_REGISTRY.values()
        ]
    )
