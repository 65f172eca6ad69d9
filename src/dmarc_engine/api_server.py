"""REST API server exposing DMARC decisions to mail pipelines.

Endpoints:
  GET  /api/v1/health
  POST /api/v1/org-domain   — organizational domain of a name
  POST /api/v1/discover     — DMARC policy discovery for a domain
  POST /api/v1/evaluate     — alignment + disposition for one message

Authentication:
  Authorization: Bearer <DMARC_API_KEY env var>
"""

import os
import threading
import uuid
from datetime import datetime, timezone
from typing import Optional

import structlog
from fastapi import Depends, FastAPI, HTTPException, Request, status
from fastapi.responses import JSONResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel, field_validator, model_validator

from . import __version__
from .cli import build_engine, run_check
from .config import EngineConfig
from .engine import DmarcEngine
from .exceptions import ConfigurationError, DmarcEngineError, ValidationError
from .report_json import JsonReporter

logger = structlog.get_logger(__name__)


# ── App ────────────────────────────────────────────────────────────────────────

app = FastAPI(
    title="DMARC Policy Engine API",
    description="DMARC policy discovery and alignment decisions.",
    version=__version__,
    docs_url="/docs",
    openapi_url="/openapi.json",
)

_reporter = JsonReporter()


# ── Request models ─────────────────────────────────────────────────────────────

def _clean_domain(v: str) -> str:
    v = v.strip().lower()
    if not v:
        raise ValueError("domain must not be empty")
    return v


class DomainRequest(BaseModel):
    domain: str

    @field_validator("domain")
    @classmethod
    def domain_not_empty(cls, v: str) -> str:
        return _clean_domain(v)


class EvaluateRequest(BaseModel):
    from_host: Optional[str] = None
    from_header: Optional[str] = None
    dkim_pass_domains: list[str] = []
    spf_pass_domain: Optional[str] = None

    @field_validator("dkim_pass_domains")
    @classmethod
    def dkim_domains_bounded(cls, v: list[str]) -> list[str]:
        if len(v) > 50:
            raise ValueError("maximum 50 DKIM pass domains")
        return [d.strip().lower() for d in v if d.strip()]

    @model_validator(mode="after")
    def one_from_source(self) -> "EvaluateRequest":
        if self.from_host and self.from_header:
            raise ValueError("from_host and from_header are mutually exclusive")
        return self


# ── Engine ─────────────────────────────────────────────────────────────────────

_engine: Optional[DmarcEngine] = None
_engine_lock = threading.Lock()


def _get_engine() -> DmarcEngine:
    """Build the engine once from the environment; the suffix list is read-only afterwards."""
    global _engine
    with _engine_lock:
        if _engine is None:
            _engine = build_engine(EngineConfig.from_env())
        return _engine


# ── Auth ───────────────────────────────────────────────────────────────────────

_bearer = HTTPBearer(auto_error=False)


def _get_api_key() -> str:
    key = os.environ.get("DMARC_API_KEY", "")
    if not key:
        raise RuntimeError("DMARC_API_KEY environment variable is not set")
    return key


def _require_auth(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer),
) -> str:
    """Validate Bearer token; return the API key on success."""
    expected = _get_api_key()
    if credentials is None or credentials.credentials != expected:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"error": {"code": "AUTH_FAILED", "message": "Invalid or missing API key"}},
        )
    return credentials.credentials


# ── Error helpers ──────────────────────────────────────────────────────────────

def _now() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def _error_response(code: str, message: str, http_status: int, request_id: str = "") -> JSONResponse:
    body = {
        "error": {
            "code": code,
            "message": message,
            "request_id": request_id or str(uuid.uuid4()),
            "timestamp": _now(),
        }
    }
    return JSONResponse(status_code=http_status, content=body)


def _engine_error(exc: DmarcEngineError, request_id: str) -> JSONResponse:
    if isinstance(exc, ValidationError):
        return _error_response("INVALID_DOMAIN", str(exc), 400, request_id)
    if isinstance(exc, ConfigurationError):
        logger.error("engine_misconfigured", error=str(exc))
        return _error_response("NOT_CONFIGURED", "Engine is not configured.", 500, request_id)
    return _error_response("ENGINE_ERROR", str(exc), 500, request_id)


# ── Routes ─────────────────────────────────────────────────────────────────────

@app.get("/api/v1/health", tags=["system"])
def health() -> dict:
    """Returns service health. No authentication required."""
    return {"status": "ok", "timestamp": _now(), "version": __version__}


@app.post("/api/v1/org-domain", tags=["dmarc"])
def org_domain(body: DomainRequest, api_key: str = Depends(_require_auth)) -> JSONResponse:
    request_id = str(uuid.uuid4())
    try:
        result = _get_engine().organizational_domain(body.domain)
    except DmarcEngineError as exc:
        return _engine_error(exc, request_id)
    return JSONResponse(status_code=200, content={
        "request_id": request_id,
        "domain": body.domain,
        "organizational_domain": result,
    })


@app.post("/api/v1/discover", tags=["dmarc"])
def discover(body: DomainRequest, api_key: str = Depends(_require_auth)) -> JSONResponse:
    """Discover the DMARC policy for a domain."""
    request_id = str(uuid.uuid4())
    try:
        discovery = _get_engine().discover(body.domain)
    except DmarcEngineError as exc:
        return _engine_error(exc, request_id)
    return JSONResponse(status_code=200, content={
        "request_id": request_id,
        **_reporter.discovery_dict(body.domain, discovery),
    })


@app.post("/api/v1/evaluate", tags=["dmarc"])
def evaluate(body: EvaluateRequest, api_key: str = Depends(_require_auth)) -> JSONResponse:
    """Alignment and disposition for one message."""
    request_id = str(uuid.uuid4())
    try:
        decision = run_check(
            _get_engine(),
            body.from_host,
            body.from_header,
            body.dkim_pass_domains,
            body.spf_pass_domain,
        )
    except DmarcEngineError as exc:
        return _engine_error(exc, request_id)
    logger.info(
        "decision",
        request_id=request_id,
        from_host=decision.from_host,
        disposition=decision.disposition.value,
        reason=decision.reason,
    )
    return JSONResponse(status_code=200, content={
        "request_id": request_id,
        **_reporter.decision_dict(decision),
    })


# ── Global exception handlers ──────────────────────────────────────────────────

@app.exception_handler(HTTPException)
async def _http_exc(request: Request, exc: HTTPException) -> JSONResponse:
    """Reformat HTTPException so auth errors use our standard error envelope."""
    if isinstance(exc.detail, dict):
        return JSONResponse(status_code=exc.status_code, content=exc.detail)
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": {"code": "HTTP_ERROR", "message": str(exc.detail)}},
    )


@app.exception_handler(Exception)
async def _unhandled(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("unhandled_error", path=request.url.path)
    return _error_response("INTERNAL_ERROR", "An unexpected error occurred.", 500)
