import uuid
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Request, status
from fastapi.middleware.cors import CORSMiddleware

from policyscan.config import settings
from policyscan.exceptions import ConfigurationError, EmptyTextError
from policyscan.pipelines.analysis_pipeline import AnalysisPipeline, build_pipeline
from policyscan.schemas.analysis_schemas import AnalysisRequest, EnhancedAnalysisResult
from policyscan.utils.logging_config import StructuredLogger, init_logging, metrics, request_id_var

VERSION = "0.1.0"

# Initialize structured logging
init_logging()

logger = StructuredLogger(__name__)

app = FastAPI(
    title="PolicyScan API",
    version=VERSION,
    description="LLM-backed content policy risk analysis",
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)


@app.middleware("http")
async def add_request_id(request: Request, call_next):
    request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
    token = request_id_var.set(request_id)
    try:
        response = await call_next(request)
    finally:
        request_id_var.reset(token)
    response.headers["X-Request-ID"] = request_id
    return response


_pipeline: Optional[AnalysisPipeline] = None


def get_pipeline() -> AnalysisPipeline:
    """Build the pipeline on first use; without credentials /analyze answers 503."""
    global _pipeline
    if _pipeline is None:
        try:
            _pipeline = build_pipeline(settings)
        except ConfigurationError as e:
            logger.error("Analysis pipeline unavailable", error=e.message, error_code=e.error_code)
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail=e.message,
            )
    return _pipeline


@app.get("/health")
def health():
    """Health check endpoint."""
    return {"status": "ok"}


@app.get("/status")
def status_info():
    """API status and configuration info."""
    return {
        "status": "ok",
        "version": VERSION,
        "environment": settings.environment,
        "provider": _pipeline.model_name if _pipeline else None,
        "credentials_configured": settings.has_llm_credentials,
        "rate_limit": {
            "requests": settings.llm_rate_limit_requests,
            "window_seconds": settings.llm_rate_limit_window,
        },
    }


@app.get("/metrics")
def metrics_snapshot():
    return metrics.get_stats()


@app.post("/analyze", response_model=EnhancedAnalysisResult)
async def analyze(
    body: AnalysisRequest,
    pipeline: AnalysisPipeline = Depends(get_pipeline),
):
    try:
        result = await pipeline.analyze(body.text, channel_context=body.channel_context)
    except EmptyTextError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)

    logger.info(
        "Analysis served",
        mode=result.analysis_metadata.analysis_mode,
        risk_score=result.risk_score,
        processing_time_ms=result.analysis_metadata.processing_time_ms,
    )
    return result
