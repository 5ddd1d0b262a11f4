"""HTTP API for the material request resolver.

    uvicorn bid_resolver.main:app --reload
"""

import asyncio
import logging
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .api_keys import api_keys_manager
from .catalog import count_rows, fetch_catalog_text
from .config import ServiceConfig, load_config
from .errors import ConfigurationError, ResolverError, SourceUnavailableError
from .models import (
    ConvertRequest,
    ConvertResponse,
    IndexStats,
    ResolvedLineOut,
    SheetRequest,
    SheetResponse,
)
from .pipeline import Collaborators, ResolutionPipeline

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("bid_resolver.api")

app = FastAPI(title="Material Request Resolver API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
)


# =============================================================================
# DEPENDENCIES
# =============================================================================

_config: Optional[ServiceConfig] = None
_pipeline: Optional[ResolutionPipeline] = None


def get_config() -> ServiceConfig:
    """Environment config, read once. Not validated: diagnostics must work without keys."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def get_pipeline() -> ResolutionPipeline:
    """Validated pipeline, built on first use."""
    global _pipeline
    if _pipeline is None:
        config = get_config().validate()
        _pipeline = ResolutionPipeline(config, Collaborators.from_config(config))
        logger.info(
            f"Pipeline ready: reasoning={config.reasoning_model}, "
            f"semantic={'on' if config.semantic_enabled else 'off'}"
        )
    return _pipeline


def _http_error(e: ResolverError) -> HTTPException:
    if isinstance(e, ConfigurationError):
        return HTTPException(status_code=500, detail=str(e))
    if isinstance(e, SourceUnavailableError) and e.status_code in (400, 403, 404):
        return HTTPException(status_code=e.status_code, detail=str(e))
    return HTTPException(status_code=502, detail=str(e))


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(status_code=400, content={"detail": jsonable_encoder(exc.errors())})


@app.on_event("startup")
async def startup_event():
    try:
        get_pipeline()
    except ConfigurationError as e:
        # Diagnostics stay reachable; /convert reports the problem per request.
        logger.error(f"Configuration invalid: {e}")


# =============================================================================
# ENDPOINTS
# =============================================================================

@app.get("/health")
async def health():
    return {"status": "healthy"}


@app.post("/convert", response_model=ConvertResponse)
async def convert(request: ConvertRequest, config: ServiceConfig = Depends(get_config)):
    """Resolve a free-text material request into code / quantity lines."""
    if not request.material_input.strip():
        raise HTTPException(status_code=400, detail="material_input is required")
    try:
        pipeline = get_pipeline()
        result = await asyncio.wait_for(
            pipeline.convert(request.material_input, sheet_id=request.sheet_id),
            timeout=config.request_timeout_s,
        )
    except asyncio.TimeoutError:
        logger.error(f"Conversion timed out after {config.request_timeout_s}s")
        raise HTTPException(status_code=504, detail="Conversion timed out")
    except ResolverError as e:
        logger.error(f"Conversion failed: {e}")
        raise _http_error(e)

    return ConvertResponse(
        result=result.render(),
        lines=[ResolvedLineOut(code=line.code, quantity=line.quantity) for line in result.lines],
        notes=result.notes,
        strategy=result.strategy,
        line_items=[item.text for item in result.line_items],
    )


@app.post("/sheets", response_model=SheetResponse)
async def sheets(request: SheetRequest, config: ServiceConfig = Depends(get_config)):
    """Fetch the catalog spreadsheet as CSV."""
    loop = asyncio.get_running_loop()
    try:
        csv_data = await loop.run_in_executor(
            None, lambda: fetch_catalog_text(request.sheet_id, timeout=config.http_timeout_s)
        )
    except SourceUnavailableError as e:
        raise _http_error(e)
    return SheetResponse(csv_data=csv_data, row_count=count_rows(csv_data))


@app.get("/index/stats", response_model=IndexStats)
async def index_stats():
    """Vector index statistics (vector count, dimension, fullness)."""
    try:
        pipeline = get_pipeline()
        index = pipeline.collaborators.index
        if index is None:
            raise ConfigurationError("Vector index is not configured (set PINECONE_HOST and PINECONE_API_KEY)")
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, index.describe_index_stats)
    except ResolverError as e:
        raise _http_error(e)


@app.get("/diagnostics")
async def diagnostics(config: ServiceConfig = Depends(get_config)):
    """Masked credential status and which retrieval paths are available."""
    try:
        config.validate()
        config_error = None
    except ConfigurationError as e:
        config_error = str(e)
    return {
        "api_keys": [s.model_dump() for s in api_keys_manager.get_status()],
        "reasoning_model": config.reasoning_model,
        "embedding_model": config.embedding_model,
        "semantic_enabled": config.semantic_enabled,
        "lexical_enabled": True,
        "default_sheet_configured": bool(config.default_sheet_id),
        "config_error": config_error,
    }
