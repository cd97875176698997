#!/usr/bin/env python3
"""Saju AI backend (FastAPI).

- Four pillars: inference service, strict JSON payload
- Section readings: inference service, markdown prose
"""

from pathlib import Path

from dotenv import load_dotenv

# Process env wins, then backend/.env, then repo/.env.
MODULE_DIR = Path(__file__).resolve().parent
REPO_ROOT = MODULE_DIR.parent
load_dotenv(dotenv_path=MODULE_DIR / ".env")
load_dotenv(dotenv_path=REPO_ROOT / ".env")

import logging
from contextlib import asynccontextmanager
from typing import Any, Optional
from uuid import uuid4

from fastapi import Body, Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from backend.errors import SajuError
from backend.llm_service import (
    OPENAI_MODEL,
    InferenceGateway,
    OpenAIInferenceGateway,
    build_openai_client,
)
from backend.orchestrator import MISSING_FIELDS_MESSAGE, SajuOrchestrator

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s - %(message)s",
)

logger = logging.getLogger("saju_ai")

GENERIC_FAILURE_MESSAGE = "사주 분석 중 오류가 발생했습니다."

# ------------------------------------------------------------------------------
# Inference client initialization
# ------------------------------------------------------------------------------
async_client, OPENAI_HTTP_CLIENT = build_openai_client()
if async_client is None:
    logger.warning("OpenAI client is None. LLM will not be called. Check OPENAI_API_KEY in .env")

gateway = OpenAIInferenceGateway(async_client, model=OPENAI_MODEL)


@asynccontextmanager
async def lifespan(_app: FastAPI):
    yield
    if OPENAI_HTTP_CLIENT is not None:
        await OPENAI_HTTP_CLIENT.aclose()


app = FastAPI(title="Saju AI API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_gateway() -> InferenceGateway:
    return gateway


def get_orchestrator(inference: InferenceGateway = Depends(get_gateway)) -> SajuOrchestrator:
    return SajuOrchestrator(inference)


def _resolve_request_id(request: Optional[Request]) -> str:
    if request is not None:
        for header in ("x-request-id", "x-correlation-id"):
            value = (request.headers.get(header) or "").strip()
            if value:
                return value
    return str(uuid4())


@app.middleware("http")
async def attach_request_id(request: Request, call_next):
    request_id = _resolve_request_id(request)
    request.state.request_id = request_id
    response = await call_next(request)
    response.headers["x-request-id"] = request_id
    return response


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    logger.info(
        "Request body rejected request_id=%s errors=%s",
        getattr(request.state, "request_id", "-"),
        len(exc.errors()),
    )
    return JSONResponse(status_code=400, content={"error": MISSING_FIELDS_MESSAGE})


def _error_response(exc: Exception, request_id: str) -> JSONResponse:
    if isinstance(exc, SajuError):
        logger.warning(
            "Saju request failed request_id=%s error_type=%s error=%s",
            request_id,
            type(exc).__name__,
            exc.message,
        )
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message})
    logger.exception("Saju request crashed request_id=%s error_type=%s", request_id, type(exc).__name__)
    return JSONResponse(status_code=500, content={"error": str(exc) or GENERIC_FAILURE_MESSAGE})


# ------------------------------------------------------------------------------
# API endpoints: Health Check
# ------------------------------------------------------------------------------
@app.get("/health")
def health(inference: InferenceGateway = Depends(get_gateway)):
    return {
        "status": "ok",
        "llm_configured": bool(getattr(inference, "configured", True)),
        "model": getattr(inference, "model", OPENAI_MODEL),
    }


# ------------------------------------------------------------------------------
# API endpoints: Saju
# ------------------------------------------------------------------------------
@app.post("/api/get-saju")
async def get_saju(
    request: Request,
    payload: Any = Body(None),
    orchestrator: SajuOrchestrator = Depends(get_orchestrator),
):
    """Compute (or reuse) the four pillars and return one section's reading."""
    request_id = request.state.request_id
    section = payload.get("section") if isinstance(payload, dict) else None
    logger.info(
        "Saju request received request_id=%s section=%s pillars_threaded=%s",
        request_id,
        section,
        isinstance(payload, dict) and payload.get("pillars") is not None,
    )
    try:
        result = await orchestrator.handle(payload, request_id=request_id)
    except Exception as e:
        return _error_response(e, request_id)
    return result.model_dump(by_alias=True)


@app.post("/api/pillars")
async def get_pillars(
    request: Request,
    payload: Any = Body(None),
    orchestrator: SajuOrchestrator = Depends(get_orchestrator),
):
    request_id = request.state.request_id
    try:
        pillars = await orchestrator.compute_pillars(payload, request_id=request_id)
    except Exception as e:
        return _error_response(e, request_id)
    return {"pillars": pillars.model_dump()}
