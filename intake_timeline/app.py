from __future__ import annotations

import logging
import mimetypes
import os
import time
from datetime import datetime, timezone
from typing import Any, Dict, List
from uuid import uuid4

import uvicorn
from fastapi import FastAPI, File, HTTPException, Request, Response, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, JSONResponse
from starlette.concurrency import run_in_threadpool

from . import draft_cache
from .attachments import ALLOWED_CONTENT_TYPES, upload_attachments
from .blob_store import BlobStore
from .complaints import ComplaintNotFoundError, create_complaint_for_event, link_event_to_complaint, remove_event
from .date_parser import format_event_date, is_exact_date, parse_approximate_date
from .draft_cache import DraftCache
from .merger import is_synthetic_id
from .models import (
    AttachmentUploadResponse,
    ComplaintRequest,
    ComplaintResponse,
    DraftResponse,
    DraftValue,
    EventDeleteRequest,
    EventListResponse,
    ParseDateRequest,
    ParseDateResponse,
    ReorderRequest,
    ReorderResponse,
    SortRequest,
    SortResponse,
    SubmissionRequest,
    SubmissionResponse,
    SubmissionStatusUpdate,
    TimelineRequest,
    TimelineMoveRequest,
    TimelineResponse,
    TimelineSubmission,
)
from .notifier import MailConfig, Notifier
from .reorder import ReorderController, ReorderModeError, reorder_custom
from .review_renderer import render_review_html
from .settings import settings
from .sorter import sort_chronological
from .submission_store import FirestoreConfig, StoreError, SubmissionStore

LOG_LEVEL = getattr(logging, settings.log_level.upper(), logging.INFO)
logging.basicConfig(level=LOG_LEVEL)
logger = logging.getLogger("intake.app")
logger.setLevel(LOG_LEVEL)

ALLOWED_ORIGINS = settings.allowed_origins or ["*"]


app = FastAPI(
    title=settings.app_title,
    description=settings.app_description,
    version="0.1.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _uptime_seconds() -> float:
    started_at = getattr(app.state, "started_at", None)
    if not started_at:
        return 0.0
    return max(0.0, (datetime.now(timezone.utc) - started_at).total_seconds())


@app.middleware("http")
async def request_context_middleware(request: Request, call_next):
    request_id = request.headers.get("X-Request-ID") or str(uuid4())
    request.state.request_id = request_id
    start_time = time.perf_counter()
    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id

    if settings.enable_request_logging:
        duration_ms = (time.perf_counter() - start_time) * 1000
        logger.info(
            "Request completed",
            extra={
                "request_id": request_id,
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "duration_ms": round(duration_ms, 2),
            },
        )

    return response


@app.exception_handler(StoreError)
async def store_error_handler(request: Request, exc: StoreError) -> JSONResponse:
    request_id = getattr(request.state, "request_id", str(uuid4()))
    logger.error("Document store failure: %s", exc, extra={"request_id": request_id})
    return JSONResponse(
        status_code=502,
        content={"detail": "The submission store is unavailable. Please try again.", "request_id": request_id},
        headers={"X-Request-ID": request_id},
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    request_id = getattr(request.state, "request_id", str(uuid4()))
    logger.exception(
        "Unhandled server error",
        extra={"request_id": request_id, "path": request.url.path},
    )
    return JSONResponse(
        status_code=500,
        content={
            "detail": "An unexpected server error occurred.",
            "request_id": request_id,
        },
        headers={"X-Request-ID": request_id},
    )


@app.on_event("startup")
async def startup() -> None:
    app.state.started_at = datetime.now(timezone.utc)
    app.state.settings = settings
    data_dir = os.path.abspath(settings.data_dir)
    os.makedirs(data_dir, exist_ok=True)

    firestore_cfg = FirestoreConfig(
        enabled=settings.firestore_enabled,
        project_id=settings.firestore_project_id,
        credentials_path=settings.firestore_credentials_path,
        collection=settings.firestore_collection,
    )
    # Tests never talk to hosted services.
    testing = bool(os.environ.get("PYTEST_CURRENT_TEST"))
    if testing:
        firestore_cfg.enabled = False
    app.state.submission_store = SubmissionStore(
        firestore=firestore_cfg,
        db_path=os.path.join(data_dir, "submissions.db"),
    )
    app.state.blob_store = BlobStore(
        bucket="" if testing else settings.storage_bucket,
        local_dir=os.path.join(data_dir, "attachments"),
        public_base_url=settings.public_base_url,
    )
    app.state.draft_cache = DraftCache(
        os.path.join(data_dir, "drafts.db"),
        default_ttl=settings.draft_ttl_seconds,
    )
    app.state.notifier = Notifier(
        MailConfig(
            host=settings.smtp_host,
            port=settings.smtp_port,
            user=settings.smtp_user,
            password=settings.smtp_password,
            recipient=settings.notification_recipient,
        )
    )
    logger.info(
        "Stores initialised",
        extra={
            "submission_backend": app.state.submission_store.backend,
            "blob_backend": app.state.blob_store.backend,
        },
    )


@app.get("/health")
async def health() -> Dict[str, Any]:
    return {
        "status": "ok",
        "uptime_seconds": round(_uptime_seconds(), 3),
        "version": app.version,
    }


@app.get("/health/live")
async def health_live() -> Dict[str, Any]:
    return {"status": "ok", "uptime_seconds": round(_uptime_seconds(), 3)}


@app.get("/health/ready")
async def health_ready() -> Dict[str, Any]:
    store = getattr(app.state, "submission_store", None)
    if store is None:
        raise HTTPException(status_code=503, detail="Stores are not initialised yet.")
    return {"status": "ok", "uptime_seconds": round(_uptime_seconds(), 3), "store": store.backend}


# --- timeline core -------------------------------------------------------------


@app.post("/api/dates/parse", response_model=ParseDateResponse)
async def parse_date(request: ParseDateRequest) -> ParseDateResponse:
    return ParseDateResponse(
        text=request.text,
        instant=parse_approximate_date(request.text),
        is_exact=is_exact_date(request.text),
        display=format_event_date(request.text),
    )


def _timeline_response(controller: ReorderController, request: TimelineRequest) -> TimelineResponse:
    entries = controller.display(request.complaints)
    return TimelineResponse(
        mode=controller.mode,
        custom_order=controller.custom_order,
        entries=entries,
        total_entries=len(entries),
    )


@app.post("/api/timeline", response_model=TimelineResponse)
async def build_timeline(request: TimelineRequest) -> TimelineResponse:
    controller = ReorderController(
        request.events,
        mode=request.mode,
        custom_order=request.custom_order or None,
    )
    return _timeline_response(controller, request)


@app.post("/api/timeline/toggle", response_model=TimelineResponse)
async def toggle_timeline_mode(request: TimelineRequest) -> TimelineResponse:
    controller = ReorderController(
        request.events,
        mode=request.mode,
        custom_order=request.custom_order or None,
    )
    controller.toggle_mode()
    return _timeline_response(controller, request)


@app.post("/api/timeline/sort", response_model=SortResponse)
async def sort_timeline(request: SortRequest) -> SortResponse:
    return SortResponse(entries=sort_chronological(request.entries))


@app.post("/api/timeline/reorder", response_model=ReorderResponse)
async def reorder_timeline(request: ReorderRequest) -> ReorderResponse:
    order = reorder_custom(request.order, request.dragged_id, request.target_index)
    moved = request.dragged_id in request.order and not is_synthetic_id(request.dragged_id)
    return ReorderResponse(order=order, moved=moved)


@app.post("/api/timeline/move", response_model=TimelineResponse)
async def move_timeline_event(request: TimelineMoveRequest) -> TimelineResponse:
    controller = ReorderController(
        request.events,
        mode=request.mode,
        custom_order=request.custom_order or None,
    )
    try:
        controller.move_event(request.dragged_id, request.target_index)
    except ReorderModeError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    return _timeline_response(controller, request)


@app.post("/api/complaints", response_model=ComplaintResponse)
async def save_complaint(request: ComplaintRequest) -> ComplaintResponse:
    if request.complaint_id:
        try:
            complaints = link_event_to_complaint(request.complaints, request.event.id, request.complaint_id)
        except ComplaintNotFoundError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        event = request.event.model_copy(update={"complaint_id": request.complaint_id, "did_complain": True})
        return ComplaintResponse(event=event, complaints=complaints)

    event, complaint = create_complaint_for_event(
        request.event,
        user_id=request.user_id,
        title=request.title,
        description=request.description,
        complaint_to=request.complaint_to,
        complaint_date=request.complaint_date,
    )
    return ComplaintResponse(event=event, complaints=[*request.complaints, complaint])


@app.post("/api/events/delete", response_model=EventListResponse)
async def delete_event(request: EventDeleteRequest) -> EventListResponse:
    events, complaints = remove_event(request.events, request.complaints, request.event_id)
    return EventListResponse(events=sort_chronological(events), complaints=complaints)


# --- submissions ---------------------------------------------------------------


def _submission_store() -> SubmissionStore:
    return app.state.submission_store


@app.post("/api/submissions", response_model=SubmissionResponse)
async def submit_timeline(request: SubmissionRequest) -> SubmissionResponse:
    submission = TimelineSubmission(
        user_id=request.user_id,
        contact_info=request.contact_info,
        employer_info=request.employer_info,
        events=request.events,
        complaints=request.complaints,
        status=request.status,
    )
    store = _submission_store()
    submission_id, created = await run_in_threadpool(store.save_submission, submission)
    saved = await run_in_threadpool(store.get_submission, submission_id)
    if saved is None:  # pragma: no cover - just written
        raise HTTPException(status_code=500, detail="The submission could not be read back.")

    user_name = request.user_name or request.contact_info.full_name
    user_email = request.user_email or request.contact_info.email
    notifier: Notifier = app.state.notifier
    notification = await run_in_threadpool(notifier.send_submission, saved, user_email, user_name)
    if not notification.success:
        logger.warning(
            "Submission saved but notification failed",
            extra={"submission_id": submission_id, "reason": notification.message},
        )

    app.state.draft_cache.clear(request.user_id)
    return SubmissionResponse(id=submission_id, created=created, submission=saved, notification=notification)


@app.get("/api/submissions/{user_id}", response_model=TimelineSubmission)
async def get_submission(user_id: str) -> TimelineSubmission:
    submission = await run_in_threadpool(_submission_store().get_user_submission, user_id)
    if submission is None:
        raise HTTPException(status_code=404, detail="No timeline submission found for this user.")
    return submission.model_copy(update={"events": sort_chronological(submission.events)})


@app.patch("/api/submissions/{submission_id}/status", response_model=TimelineSubmission)
async def update_submission_status(submission_id: str, body: SubmissionStatusUpdate) -> TimelineSubmission:
    store = _submission_store()
    updated = await run_in_threadpool(store.update_submission, submission_id, {"status": body.status})
    if not updated:
        raise HTTPException(status_code=404, detail="Submission not found.")
    submission = await run_in_threadpool(store.get_submission, submission_id)
    if submission is None:  # pragma: no cover - just written
        raise HTTPException(status_code=404, detail="Submission not found.")
    return submission


@app.delete("/api/submissions/{submission_id}", status_code=204)
async def delete_submission(submission_id: str) -> Response:
    deleted = await run_in_threadpool(_submission_store().delete_submission, submission_id)
    if not deleted:
        raise HTTPException(status_code=404, detail="Submission not found.")
    return Response(status_code=204)


@app.get("/api/submissions/{user_id}/review", response_class=HTMLResponse)
async def review_submission(user_id: str, mode: str = "chronological") -> HTMLResponse:
    if mode not in ("chronological", "custom"):
        raise HTTPException(status_code=400, detail="mode must be 'chronological' or 'custom'.")
    submission = await run_in_threadpool(_submission_store().get_user_submission, user_id)
    if submission is None:
        raise HTTPException(status_code=404, detail="No timeline submission found for this user.")
    # Custom mode renders the events in the order they were saved.
    html = render_review_html(submission, mode=mode)  # type: ignore[arg-type]
    return HTMLResponse(content=html)


# --- attachments ---------------------------------------------------------------


@app.post("/api/attachments/{user_id}/{event_id}", response_model=AttachmentUploadResponse)
async def upload_event_attachments(
    user_id: str,
    event_id: str,
    files: List[UploadFile] = File(...),
) -> AttachmentUploadResponse:
    attachments, failed = await upload_attachments(
        app.state.blob_store,
        user_id=user_id,
        event_id=event_id,
        uploads=files,
        limit=settings.max_attachment_bytes,
    )
    return AttachmentUploadResponse(
        attachments=attachments,
        uploaded=len(attachments) - failed,
        failed=failed,
    )


@app.delete("/api/attachments", status_code=204)
async def delete_attachment(url: str) -> Response:
    store: BlobStore = app.state.blob_store
    try:
        deleted = await run_in_threadpool(store.delete_file, url)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    if not deleted:
        raise HTTPException(status_code=404, detail="File not found.")
    logger.info("Attachment deleted", extra={"attachment_url": url})
    return Response(status_code=204)


@app.get("/files/{path:path}")
async def download_attachment(path: str) -> Response:
    store: BlobStore = app.state.blob_store
    try:
        data = store.read_local(path)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail="File not found.") from exc
    if data is None:
        raise HTTPException(status_code=404, detail="File not found.")
    media_type = mimetypes.guess_type(path)[0]
    if media_type not in ALLOWED_CONTENT_TYPES:
        media_type = "application/octet-stream"
    filename = path.rsplit("/", 1)[-1]
    return Response(
        content=data,
        media_type=media_type,
        headers={
            "Content-Disposition": f"attachment; filename=\"{filename}\"",
            "X-Content-Type-Options": "nosniff",
        },
    )


# --- drafts --------------------------------------------------------------------


def _require_draft_key(key: str) -> None:
    if key not in draft_cache.CACHE_KEYS:
        raise HTTPException(status_code=400, detail=f"Unknown draft key: {key}")


def _expiry(timestamp: float | None) -> datetime | None:
    if timestamp is None:
        return None
    return datetime.fromtimestamp(timestamp, tz=timezone.utc)


@app.get("/api/drafts/{user_id}/{key}", response_model=DraftResponse)
async def get_draft(user_id: str, key: str) -> DraftResponse:
    _require_draft_key(key)
    cache: DraftCache = app.state.draft_cache
    value = cache.get(key, user_id)
    if value is None:
        raise HTTPException(status_code=404, detail="No saved draft.")
    return DraftResponse(key=key, value=value, expires_at=_expiry(cache.expires_at(key, user_id)))


@app.put("/api/drafts/{user_id}/{key}", response_model=DraftResponse)
async def put_draft(user_id: str, key: str, body: DraftValue) -> DraftResponse:
    _require_draft_key(key)
    cache: DraftCache = app.state.draft_cache
    expires_at = cache.set(key, user_id, body.value, ttl=body.ttl_seconds)
    return DraftResponse(key=key, value=body.value, expires_at=_expiry(expires_at))


@app.delete("/api/drafts/{user_id}/{key}", status_code=204)
async def delete_draft(user_id: str, key: str) -> Response:
    _require_draft_key(key)
    app.state.draft_cache.remove(key, user_id)
    return Response(status_code=204)


@app.delete("/api/drafts/{user_id}", status_code=204)
async def clear_drafts(user_id: str) -> Response:
    app.state.draft_cache.clear(user_id)
    return Response(status_code=204)


# --- notifications -------------------------------------------------------------


@app.get("/api/notifications/check")
async def check_notifications() -> JSONResponse:
    notifier: Notifier = app.state.notifier
    result = notifier.check_configuration()
    return JSONResponse(status_code=200 if result["success"] else 400, content=result)


def run() -> None:
    """Serve the API with uvicorn using the configured host and port."""
    uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level.lower())
