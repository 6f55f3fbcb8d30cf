"""Request/Response schemas for the FastAPI endpoints."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field

from reel_remix.models.media import MediaAsset
from reel_remix.models.progress import ProgressSnapshot
from reel_remix.models.session import PlaybackSnapshot, SessionPhase
from reel_remix.models.template import Template, TimelineSlot


class SessionCreateResponse(BaseModel):
    session_id: str
    phase: SessionPhase


class ImportResponse(BaseModel):
    session_id: str
    status: str = "analyzing"
    reference: MediaAsset


class TemplateResponse(BaseModel):
    session_id: str
    template: Template
    timeline: list[TimelineSlot]
    selected_shot_id: Optional[str] = None
    complete: bool
    can_export: bool


class MediaListResponse(BaseModel):
    session_id: str
    media: list[MediaAsset]


class MediaRemoveResponse(BaseModel):
    session_id: str
    media_id: str
    cleared_shots: list[str] = Field(default_factory=list)


class SelectShotRequest(BaseModel):
    shot_id: str


class SelectionResponse(BaseModel):
    session_id: str
    selected_shot_id: Optional[str] = None


class AssignRequest(BaseModel):
    media_id: str


class ExportResponse(BaseModel):
    session_id: str
    export: ProgressSnapshot


class PlaybackResponse(BaseModel):
    session_id: str
    playback: PlaybackSnapshot
