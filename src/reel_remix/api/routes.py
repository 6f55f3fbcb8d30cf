"""FastAPI route handlers for the editing session API."""

from __future__ import annotations

import asyncio
import uuid
from collections.abc import Iterator
from contextlib import contextmanager

import structlog
from fastapi import APIRouter, Depends, File, HTTPException, Request, UploadFile
from sse_starlette.sse import EventSourceResponse

from reel_remix.api.dependencies import get_session_store
from reel_remix.api.schemas import (
    AssignRequest,
    ExportResponse,
    ImportResponse,
    MediaListResponse,
    MediaRemoveResponse,
    PlaybackResponse,
    SelectionResponse,
    SelectShotRequest,
    SessionCreateResponse,
    TemplateResponse,
)
from reel_remix.editor import template_model
from reel_remix.editor.session import EditingSession
from reel_remix.exceptions import (
    InvalidTemplate,
    MediaNotFound,
    SessionStateError,
    ShotNotFound,
)
from reel_remix.memory.session_store import SessionStore
from reel_remix.models.media import UploadedFile
from reel_remix.models.session import SessionStatus

logger = structlog.get_logger()

router = APIRouter(prefix="/api/v1/sessions")

_STREAM_POLL_SEC = 0.25


@contextmanager
def _http_errors(session_id: str) -> Iterator[None]:
    """Translate editor errors into HTTP responses."""
    try:
        yield
    except (ShotNotFound, MediaNotFound) as exc:
        logger.warning("session.contract_violation", session_id=session_id, error=str(exc))
        raise HTTPException(status_code=404, detail=exc.user_message) from exc
    except InvalidTemplate as exc:
        raise HTTPException(status_code=422, detail=exc.user_message) from exc
    except SessionStateError as exc:
        raise HTTPException(status_code=409, detail=exc.user_message) from exc


async def _get_session(session_id: str, store: SessionStore) -> EditingSession:
    session = await store.get(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail=f"Session {session_id} not found")
    return session


async def _read_upload(upload: UploadFile) -> UploadedFile:
    data = await upload.read()
    return UploadedFile(
        filename=upload.filename or "upload",
        content_type=upload.content_type or "application/octet-stream",
        data=data,
    )


# ---------------------------------------------------------------------------
# Session lifecycle
# ---------------------------------------------------------------------------


@router.post("", response_model=SessionCreateResponse)
async def create_session(store: SessionStore = Depends(get_session_store)):
    """Open a new editing session in the importing phase."""
    session = await store.create(str(uuid.uuid4()))
    return SessionCreateResponse(session_id=session.session_id, phase=session.phase)


@router.get("/{session_id}/status", response_model=SessionStatus)
async def get_session_status(session_id: str, store: SessionStore = Depends(get_session_store)):
    session = await _get_session(session_id, store)
    return session.status()


@router.delete("/{session_id}")
async def close_session(session_id: str, store: SessionStore = Depends(get_session_store)):
    """Close a session and release all of its media."""
    if not await store.delete(session_id):
        raise HTTPException(status_code=404, detail=f"Session {session_id} not found")
    return {"session_id": session_id, "status": "closed"}


@router.post("/{session_id}/import", response_model=ImportResponse)
async def import_reference(
    session_id: str,
    file: UploadFile = File(...),
    store: SessionStore = Depends(get_session_store),
):
    """Upload the reference reel and start template generation + analysis."""
    session = await _get_session(session_id, store)
    reference = await _read_upload(file)
    with _http_errors(session_id):
        session.start_import(reference)
    logger.info("session.import_started", session_id=session_id, filename=reference.filename)
    return ImportResponse(session_id=session_id, reference=session.reference)


@router.post("/{session_id}/reset", response_model=SessionStatus)
async def reset_session(session_id: str, store: SessionStore = Depends(get_session_store)):
    """Start a new project in the same session."""
    session = await _get_session(session_id, store)
    session.reset()
    return session.status()


# ---------------------------------------------------------------------------
# Template & media
# ---------------------------------------------------------------------------


def _template_response(session: EditingSession) -> TemplateResponse:
    template = session.template
    if template is None:
        raise HTTPException(status_code=409, detail="Template is not ready")
    return TemplateResponse(
        session_id=session.session_id,
        template=template,
        timeline=template_model.timeline(template),
        selected_shot_id=session.controller.selected_shot_id if session.controller else None,
        complete=template_model.is_complete(template, session.registry),
        can_export=session.can_export(),
    )


@router.get("/{session_id}/template", response_model=TemplateResponse)
async def get_template(session_id: str, store: SessionStore = Depends(get_session_store)):
    session = await _get_session(session_id, store)
    return _template_response(session)


@router.get("/{session_id}/media", response_model=MediaListResponse)
async def list_media(session_id: str, store: SessionStore = Depends(get_session_store)):
    session = await _get_session(session_id, store)
    return MediaListResponse(session_id=session_id, media=session.registry.assets())


@router.post("/{session_id}/media", response_model=MediaListResponse)
async def upload_media(
    session_id: str,
    files: list[UploadFile] = File(...),
    store: SessionStore = Depends(get_session_store),
):
    """Add user media to the bin. Any content type is accepted."""
    session = await _get_session(session_id, store)
    uploads = [await _read_upload(f) for f in files]
    with _http_errors(session_id):
        assets = session.upload_media(uploads)
    return MediaListResponse(session_id=session_id, media=assets)


@router.delete("/{session_id}/media/{media_id}", response_model=MediaRemoveResponse)
async def remove_media(session_id: str, media_id: str, store: SessionStore = Depends(get_session_store)):
    session = await _get_session(session_id, store)
    with _http_errors(session_id):
        cleared = session.remove_media(media_id)
    return MediaRemoveResponse(session_id=session_id, media_id=media_id, cleared_shots=cleared)


# ---------------------------------------------------------------------------
# Selection & assignment
# ---------------------------------------------------------------------------


@router.post("/{session_id}/selection", response_model=SelectionResponse)
async def select_shot(
    session_id: str, request: SelectShotRequest, store: SessionStore = Depends(get_session_store)
):
    session = await _get_session(session_id, store)
    with _http_errors(session_id):
        session.select_shot(request.shot_id)
    return SelectionResponse(session_id=session_id, selected_shot_id=request.shot_id)


@router.delete("/{session_id}/selection", response_model=SelectionResponse)
async def deselect_shot(session_id: str, store: SessionStore = Depends(get_session_store)):
    session = await _get_session(session_id, store)
    with _http_errors(session_id):
        session.deselect()
    return SelectionResponse(session_id=session_id)


@router.post("/{session_id}/assign", response_model=TemplateResponse)
async def assign_media(
    session_id: str, request: AssignRequest, store: SessionStore = Depends(get_session_store)
):
    """Fill the selected shot with a media asset."""
    session = await _get_session(session_id, store)
    with _http_errors(session_id):
        session.select_media(request.media_id)
    return _template_response(session)


@router.post("/{session_id}/shots/{shot_id}/clear", response_model=TemplateResponse)
async def clear_shot(session_id: str, shot_id: str, store: SessionStore = Depends(get_session_store)):
    session = await _get_session(session_id, store)
    with _http_errors(session_id):
        session.clear_shot(shot_id)
    return _template_response(session)


# ---------------------------------------------------------------------------
# Playback
# ---------------------------------------------------------------------------


@router.get("/{session_id}/playback", response_model=PlaybackResponse)
async def get_playback(session_id: str, store: SessionStore = Depends(get_session_store)):
    session = await _get_session(session_id, store)
    return PlaybackResponse(session_id=session_id, playback=session.playback_snapshot())


@router.post("/{session_id}/playback/ended", response_model=PlaybackResponse)
async def playback_ended(session_id: str, store: SessionStore = Depends(get_session_store)):
    """Client-side player reports end of the current clip."""
    session = await _get_session(session_id, store)
    with _http_errors(session_id):
        snapshot = session.media_ended()
    return PlaybackResponse(session_id=session_id, playback=snapshot)


# ---------------------------------------------------------------------------
# Export
# ---------------------------------------------------------------------------


@router.post("/{session_id}/export", response_model=ExportResponse)
async def start_export(session_id: str, store: SessionStore = Depends(get_session_store)):
    """Start the (simulated) export."""
    session = await _get_session(session_id, store)
    with _http_errors(session_id):
        session.start_export()
    return ExportResponse(session_id=session_id, export=session.export.snapshot())


@router.get("/{session_id}/export", response_model=ExportResponse)
async def get_export(session_id: str, store: SessionStore = Depends(get_session_store)):
    session = await _get_session(session_id, store)
    return ExportResponse(session_id=session_id, export=session.export.snapshot())


@router.delete("/{session_id}/export", response_model=ExportResponse)
async def dismiss_export(session_id: str, store: SessionStore = Depends(get_session_store)):
    session = await _get_session(session_id, store)
    session.dismiss_export()
    return ExportResponse(session_id=session_id, export=session.export.snapshot())


@router.get("/{session_id}/stream")
async def stream_session_status(
    session_id: str, request: Request, store: SessionStore = Depends(get_session_store)
):
    """SSE endpoint pushing session status whenever it changes."""
    session = await _get_session(session_id, store)

    async def event_generator():
        last = None
        try:
            while not session.closed:
                if await request.is_disconnected():
                    break
                payload = session.status().model_dump_json()
                if payload != last:
                    last = payload
                    yield {"event": "status", "data": payload}
                await asyncio.sleep(_STREAM_POLL_SEC)
        except Exception as e:
            logger.exception("session.stream_failed", session_id=session_id)
            yield {"event": "error", "data": str(e)}

    return EventSourceResponse(event_generator())
