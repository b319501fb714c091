# ============================================================================
# api/main.py
# ============================================================================
"""
FastAPI Backend for Biomarker Ingestion

Runs on port 8000.
Accepts a document (or pasted text) for a patient, runs the ingestion
pipeline and returns the per-table result together with the processing log.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, File, Form, HTTPException, UploadFile
from fastapi.middleware.cors import CORSMiddleware

from biomarker_ingestion import (
    ExtractionFailure,
    IngestionPipeline,
    IngestionRequest,
    ModelInvocationFailure,
    PipelineFailure,
    ProcessingLog,
    ResponseParseFailure,
    get_registry,
)
from biomarker_ingestion.config import base_settings
from biomarker_ingestion.utils import ConfigurationError, FailureReason, setup_logging_from_settings

logger = logging.getLogger(__name__)

_pipeline: Optional[IngestionPipeline] = None


def get_pipeline() -> IngestionPipeline:
    """Shared pipeline, created on first use."""
    global _pipeline
    if _pipeline is None:
        _pipeline = IngestionPipeline()
    return _pipeline


@asynccontextmanager
async def lifespan(app: FastAPI):
    global _pipeline
    setup_logging_from_settings()
    base_settings.create_directories()
    yield
    if _pipeline is not None:
        await _pipeline.close()
        _pipeline = None


app = FastAPI(
    title="Biomarker Ingestion API",
    description="Extracts lab results and biomarker metrics from medical documents",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def status_for_failure(error: Exception) -> int:
    """HTTP status for a fatal pipeline error."""
    if isinstance(error, ExtractionFailure):
        return 422
    if isinstance(error, ModelInvocationFailure):
        return 429 if error.reason == FailureReason.RATE_LIMITED else 502
    if isinstance(error, ResponseParseFailure):
        return 502
    return 500


# ============================================================================
# Endpoints
# ============================================================================

@app.get("/api/health")
async def health():
    """Health check for monitoring."""
    return {"status": "healthy"}


@app.get("/api/schemas")
async def schemas():
    """Destination tables the model may extract into."""
    registry = get_registry()
    return {"tables": [schema.to_dict() for schema in registry.extractable_tables()]}


@app.post("/api/ingest")
async def ingest(
    patient_id: str = Form(...),
    force_overwrite: bool = Form(False),
    text: Optional[str] = Form(None),
    file: Optional[UploadFile] = File(None),
    pipeline: IngestionPipeline = Depends(get_pipeline),
):
    """
    Ingest one document for a patient.

    Returns the pipeline result and the processing log. Duplicates without
    force_overwrite are reported as a cancelled result (HTTP 200).
    """
    data = await file.read() if file is not None else None
    if not data and not (text and text.strip()):
        raise HTTPException(status_code=400, detail="Provide a file or text")

    request = IngestionRequest(
        patient_id=patient_id,
        data=data or None,
        text=text,
        force_overwrite=force_overwrite,
        file_name=file.filename if file is not None else None,
        mime_type=file.content_type if file is not None else None,
    )
    log = ProcessingLog()

    try:
        result = await pipeline.run(request, log)
    except (PipelineFailure, ConfigurationError) as e:
        logger.error(f"Ingestion failed for patient {patient_id}: {e}")
        raise HTTPException(
            status_code=status_for_failure(e),
            detail={
                "error": str(e),
                "error_type": type(e).__name__,
                "log": log.to_list(),
            },
        )

    return {
        "run_id": log.run_id,
        "result": result.to_dict(),
        "log": log.to_list(),
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
