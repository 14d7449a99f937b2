"""Main FastAPI application."""

import asyncio
import logging
import sys
import time
from dataclasses import asdict
from functools import lru_cache

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from pill_counter.config import (
    AI_GATEWAY_API_KEY,
    ALLOW_ALL_ORIGINS,
    CORS_ORIGINS,
    LOG_LEVEL,
)
from pill_counter.errors import BackendUnavailable, InvalidInput, PillCountError
from pill_counter.image_ingest import decode_image_payload
from pill_counter.schemas import (
    BulkUploadItemStatus,
    BulkUploadRequest,
    BulkUploadResponse,
    ContributionRequest,
    CountPillsRequest,
    CountResult,
    TrainingRecordResponse,
    TrainingStatsResponse,
)
from pill_counter.training.bulk_queue import BulkIngestQueue, store_persister
from pill_counter.training.store import LocalTrainingStore, TrainingStore, save_contribution
from pill_counter.vision_pipeline.cloud_vision import CloudVisionDetector
from pill_counter.vision_pipeline.gpt_fallback import build_fallback_detector
from pill_counter.vision_pipeline.pipeline import PillCountPipeline

logging.basicConfig(
    level=LOG_LEVEL,
    stream=sys.stdout,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# -----------------------------------
# App
# -----------------------------------

app = FastAPI(title="Pill Counter API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=not ALLOW_ALL_ORIGINS,
    allow_methods=["*"],
    allow_headers=["authorization", "x-client-info", "apikey", "content-type"],
)


@lru_cache
def get_pipeline() -> PillCountPipeline:
    return PillCountPipeline(
        primary=CloudVisionDetector(),
        fallback=build_fallback_detector(AI_GATEWAY_API_KEY),
    )


@lru_cache
def get_training_store() -> TrainingStore:
    return LocalTrainingStore()


# -----------------------------------
# Errors -> {"error": ...}
# -----------------------------------

@app.exception_handler(PillCountError)
async def pill_count_error_handler(request: Request, exc: PillCountError):
    if isinstance(exc, BackendUnavailable):
        logger.warning(
            "%s %s -> %s (retryable=%s): %s",
            request.method,
            request.url.path,
            exc.status_code,
            exc.retryable,
            exc.message,
        )
    else:
        logger.error("%s %s -> %s: %s", request.method, request.url.path, exc.status_code, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    logger.warning("Invalid request body for %s: %s", request.url.path, exc.errors())
    return JSONResponse(status_code=400, content={"error": "Invalid request body"})


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    logger.exception("Unexpected error in %s", request.url.path)
    return JSONResponse(status_code=500, content={"error": "An unexpected error occurred"})


# -----------------------------------
# Endpoints
# -----------------------------------

@app.get("/health")
def health():
    return {"status": "ok"}


@app.post("/count-pills", response_model=CountResult)
async def count_pills(
    body: CountPillsRequest,
    pipeline: PillCountPipeline = Depends(get_pipeline),
):
    total_start = time.perf_counter()
    logger.info("[PIPELINE] Starting /count-pills")
    result = await pipeline.count_async(body.image)
    logger.info(
        "[PIPELINE] /count-pills completed, count=%s, total time: %sms",
        result.count,
        round((time.perf_counter() - total_start) * 1000, 2),
    )
    return result


@app.post("/contribute", response_model=TrainingRecordResponse)
async def contribute(
    body: ContributionRequest,
    store: TrainingStore = Depends(get_training_store),
):
    image = decode_image_payload(body.image)
    record = await asyncio.to_thread(
        save_contribution,
        store,
        image,
        body.ai_count,
        body.corrected_count,
        body.confidence,
        body.notes,
    )
    return TrainingRecordResponse(**asdict(record))


@app.post("/bulk-upload", response_model=BulkUploadResponse)
async def bulk_upload(
    body: BulkUploadRequest,
    store: TrainingStore = Depends(get_training_store),
):
    queue = BulkIngestQueue()
    for entry in body.items:
        try:
            queue.add(entry.image or "", entry.count or "", item_id=entry.id)
        except ValueError as e:
            raise InvalidInput(str(e)) from e

    summary = await queue.run(store_persister(store))
    return BulkUploadResponse(
        done=summary.done,
        error=summary.error,
        pending=summary.pending,
        items=[
            BulkUploadItemStatus(id=item.id, status=item.status.value, error=item.error)
            for item in queue.items()
        ],
    )


@app.get("/training-stats", response_model=TrainingStatsResponse)
async def training_stats(store: TrainingStore = Depends(get_training_store)):
    try:
        count = await asyncio.to_thread(store.count)
    except OSError as e:
        logger.error("Error fetching training stats: %s", e)
        count = 0
    return TrainingStatsResponse(count=count)
