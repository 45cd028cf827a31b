"""FastAPI application wiring for the Red Phone sales-support assistant.

This module bootstraps the HTTP API:

- Configures logging, CORS (optional for the admin UI), Prometheus metrics
  and rate limiting.
- Builds the assistant pipeline once and keeps it on ``app.state`` so the
  routers and the chat endpoint share one conversation store.
- Exposes health/version/config endpoints and the chat endpoint; sessions,
  cases, policies and scenarios live in ``redphone.routers``.
"""

import logging
import os

from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from prometheus_fastapi_instrumentator import Instrumentator
from pydantic import BaseModel
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from .__version__ import __build_date__, __commit_sha__, __version__
from .app_logging import init_logging
from .assistant import build_assistant
from .cases import CaseSubmissionService
from .config import get_settings
from .routers import cases, policies, sessions

load_dotenv()

logger = logging.getLogger(__name__)


def get_client_ip(request: Request) -> str:
    """Extract a best-effort client IP for rate limiting.

    Prefer ``X-Forwarded-For`` (first hop) if present, otherwise use the
    socket peer address.
    """
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def chat_rate_limit() -> str:
    return get_settings().chat_rate_limit


def install_services(target: FastAPI) -> None:
    """Build the assistant and the case submission service onto ``target.state``."""

    settings = get_settings()
    assistant = build_assistant(settings)
    target.state.assistant = assistant
    target.state.cases = CaseSubmissionService(
        assistant.checker,
        assistant.router,
        latency_seconds=settings.submission_latency_seconds,
    )


limiter = Limiter(key_func=get_client_ip)

app = FastAPI(title="Red Phone Assistant", version=__version__)
init_logging(app)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_middleware(SlowAPIMiddleware)
# Optional CORS for admin UI
admin_ui_origins = os.getenv("ADMIN_UI_ORIGINS")
if admin_ui_origins:
    origins = [o.strip() for o in admin_ui_origins.split(",") if o.strip()]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
app.include_router(sessions.router)
app.include_router(cases.router)
app.include_router(policies.router)
app.include_router(policies.scenarios_router)

# Expose Prometheus metrics
Instrumentator().instrument(app).expose(
    app, include_in_schema=False, endpoint="/api/metrics"
)

install_services(app)


class ChatRequest(BaseModel):
    """Payload for the chat endpoint."""

    message: str
    sessionId: str


@app.get("/api/health")
async def health():
    """Liveness/readiness check with a minimal JSON body."""
    return {"status": "ok"}


@app.get("/api/version")
async def version():
    """Return version information for the application."""
    return {
        "version": __version__,
        "build_date": __build_date__,
        "commit_sha": __commit_sha__,
    }


@app.get("/api/config")
async def config():
    """Expose selected frontend configuration from environment variables."""
    settings = get_settings()
    return {
        "BRAND_NAME": os.getenv("BRAND_NAME", "Red Phone Assistant"),
        "POWERED_BY_LABEL": os.getenv("POWERED_BY_LABEL", "Powered by Red Phone"),
        "LOGO_URL": os.getenv("LOGO_URL", ""),
        "CHAT_MAX_MESSAGE_LENGTH": settings.chat_max_message_length,
        "SESSION_ID_MAX_LENGTH": settings.session_id_max_length,
    }


@app.post("/api/chat")
@limiter.limit(chat_rate_limit)
async def chat(request: Request, payload: ChatRequest):
    """Run one chat turn through the assistant pipeline.

    Rate-limited by client IP. Validates message and session lengths; the
    pipeline itself never raises, failures come back as an error response.
    """
    settings = get_settings()
    if len(payload.message) > settings.chat_max_message_length:
        raise HTTPException(status_code=400, detail="Message too long")
    session_id = payload.sessionId.strip()
    if not session_id or len(session_id) > settings.session_id_max_length:
        raise HTTPException(status_code=400, detail="Invalid sessionId")
    assistant = request.app.state.assistant
    response = await assistant.respond(payload.message, session_id)
    return response.to_payload()
