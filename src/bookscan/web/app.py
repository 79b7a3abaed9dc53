"""FastAPI web application for bookscan."""

from __future__ import annotations

import os
import time
import uuid
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from urllib.parse import quote

import httpx
import structlog
import uvicorn
from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.responses import HTMLResponse, JSONResponse, Response
from fastapi.staticfiles import StaticFiles

from .. import __version__
from ..core.controller import FormController
from ..core.errors import FormStateError
from ..core.lookup import LookupClient
from ..core.notify import NoticeBuffer, PromptRequired, RequestPrompter

load_dotenv()

log = structlog.get_logger()

STATIC_DIR = Path(__file__).parent / "static"
SESSION_TTL = 1800  # 30 minutes idle
MAX_SESSIONS = 500  # cap total sessions to bound memory
MAX_BODY_BYTES = 50_000  # ~50 KB max request body

# Rate limiting: per-IP, requests to /api/lookup
RATE_LIMIT = int(os.environ.get("RATE_LIMIT", "30"))  # requests per window
RATE_LIMIT_WINDOW = int(os.environ.get("RATE_LIMIT_WINDOW", "60"))  # seconds

# Replaced in tests to keep lookups off the network.
lookup_transport: httpx.AsyncBaseTransport | None = None


@dataclass
class Session:
    controller: FormController
    notices: NoticeBuffer
    created_at: float = field(default_factory=time.time)
    last_seen: float = field(default_factory=time.time)


# One session per page load; a reload starts an empty list.
sessions: dict[str, Session] = {}

# Rate limit tracking: IP -> list of timestamps
_rate_log: dict[str, list[float]] = defaultdict(list)


def _clean_expired() -> None:
    now = time.time()
    expired = [sid for sid, s in sessions.items() if now - s.last_seen > SESSION_TTL]
    for sid in expired:
        sessions.pop(sid, None)


def _client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def _is_rate_limited(ip: str) -> bool:
    now = time.time()
    window_start = now - RATE_LIMIT_WINDOW
    # Trim old entries
    _rate_log[ip] = [t for t in _rate_log[ip] if t > window_start]
    return len(_rate_log[ip]) >= RATE_LIMIT


def _record_request(ip: str) -> None:
    _rate_log[ip].append(time.time())


def _new_session() -> Session:
    notices = NoticeBuffer()
    lookup = LookupClient(notices, transport=lookup_transport)
    return Session(controller=FormController(notices, lookup=lookup), notices=notices)


def _get_session(session_id: str | None) -> Session | None:
    if not session_id:
        return None
    session = sessions.get(session_id)
    if not session:
        return None
    now = time.time()
    if now - session.last_seen > SESSION_TTL:
        sessions.pop(session_id, None)
        return None
    session.last_seen = now
    return session


def _session_missing() -> JSONResponse:
    return JSONResponse({"error": "Session not found or expired."}, status_code=404)


def _content_disposition(filename: str) -> str:
    """Attachment header with an ASCII fallback and the UTF-8 name (RFC 6266)."""
    fallback = filename.encode("ascii", "replace").decode("ascii")
    fallback = fallback.replace("\\", "_").replace('"', "_")
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quote(filename)}"


class RequestError(Exception):
    """A request the API refuses before touching any session."""

    def __init__(self, message: str, status_code: int = 400) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


async def _read_body(request: Request) -> dict:
    content_length = request.headers.get("content-length")
    try:
        too_large = bool(content_length) and int(content_length) > MAX_BODY_BYTES
    except ValueError as e:
        raise RequestError("Invalid Content-Length header.") from e
    if too_large:
        raise RequestError("Request too large.", status_code=413)
    try:
        body = await request.json()
    except ValueError as e:
        raise RequestError("Request body is not valid JSON.") from e
    return body if isinstance(body, dict) else {}


app = FastAPI(title="bookscan", docs_url=None, redoc_url=None)


@app.exception_handler(RequestError)
async def request_error(request: Request, exc: RequestError):
    return JSONResponse({"error": exc.message}, status_code=exc.status_code)


@app.middleware("http")
async def security_headers(request: Request, call_next):
    response = await call_next(request)
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
    return response


app.mount("/static", StaticFiles(directory=str(STATIC_DIR)), name="static")


@app.get("/health")
async def health():
    return {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": __version__,
        "environment": os.environ.get("ENV", "dev"),
        "sessions_active": len(sessions),
    }


@app.get("/", response_class=HTMLResponse)
async def index():
    return (STATIC_DIR / "index.html").read_text()


@app.post("/api/session")
async def create_session():
    _clean_expired()
    if len(sessions) >= MAX_SESSIONS:
        return JSONResponse(
            {"error": "Server is busy. Please try again in a few minutes."},
            status_code=503,
        )

    session_id = uuid.uuid4().hex[:12]
    session = _new_session()
    sessions[session_id] = session
    log.info("session_created", session=session_id, active=len(sessions))
    return {"session_id": session_id, "form": session.controller.form.to_dict()}


@app.post("/api/lookup")
async def lookup(request: Request):
    # Rate limit check
    ip = _client_ip(request)
    if _is_rate_limited(ip):
        log.warning("rate_limited", ip=ip)
        return JSONResponse(
            {"error": "Too many requests. Please wait a minute and try again."},
            status_code=429,
        )

    body = await _read_body(request)

    s = _get_session(body.get("session_id"))
    if not s:
        return _session_missing()

    _record_request(ip)
    ok = await s.controller.lookup(str(body.get("isbn", "")))
    return JSONResponse(
        {"notices": s.notices.drain(), "form": s.controller.form.to_dict()},
        status_code=200 if ok else 422,
    )


@app.post("/api/save")
async def save(request: Request):
    body = await _read_body(request)

    s = _get_session(body.get("session_id"))
    if not s:
        return _session_missing()

    fields = body.get("fields")
    values = dict(fields) if isinstance(fields, dict) else {}
    if "isbn" in body:
        values["isbn"] = body["isbn"]
    values = {k: str(v) for k, v in values.items() if v is not None}

    try:
        s.controller.save(values)
    except FormStateError as e:
        return JSONResponse({"error": str(e)}, status_code=409)

    state = s.controller.state
    return {
        "notices": s.notices.drain(),
        "form": state.form.to_dict(),
        "rows": state.table.drain(),
        "count": len(state.store),
    }


@app.post("/api/export")
async def export(request: Request):
    body = await _read_body(request)

    s = _get_session(body.get("session_id"))
    if not s:
        return _session_missing()

    prompter = RequestPrompter(body["filename"]) if "filename" in body else RequestPrompter()
    try:
        out = s.controller.export(prompter)
    except PromptRequired as p:
        return {"prompt": {"message": p.message, "default": p.default}}

    notices = s.notices.drain()
    if notices:
        return JSONResponse({"notices": notices}, status_code=400)
    if out is None:
        return Response(status_code=204)

    return Response(
        content=out.content,
        media_type=out.media_type,
        headers={"Content-Disposition": _content_disposition(out.filename)},
    )


def main():
    port = int(os.environ.get("PORT", "8000"))
    is_dev = os.environ.get("ENV", "dev") == "dev"
    uvicorn.run(
        "bookscan.web.app:app",
        host="0.0.0.0",
        port=port,
        reload=is_dev,
    )
