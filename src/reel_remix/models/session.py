"""Pydantic models for editing session state."""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel

from reel_remix.models.media import MediaAsset
from reel_remix.models.progress import ProgressSnapshot


class SessionPhase(str, Enum):
    IMPORTING = "importing"
    ANALYZING = "analyzing"
    EDITING = "editing"


class PlaybackSnapshot(BaseModel):
    state: str  # "idle" | "playing"
    index: int
    entries: int
    shot_id: Optional[str] = None
    media_id: Optional[str] = None
    preview_url: Optional[str] = None


class SessionStatus(BaseModel):
    session_id: str
    phase: SessionPhase
    error: Optional[str] = None
    reference: Optional[MediaAsset] = None
    selected_shot_id: Optional[str] = None
    media_count: int = 0
    shot_count: int = 0
    assigned_count: int = 0
    complete: bool = False
    analysis: ProgressSnapshot
    export: ProgressSnapshot
