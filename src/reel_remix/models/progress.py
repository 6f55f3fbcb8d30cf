"""Pydantic models for staged progress runs."""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel


class ProgressStatus(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETE = "complete"
    CANCELLED = "cancelled"


class ProgressSnapshot(BaseModel):
    name: str
    status: ProgressStatus
    current_step: int
    total_steps: int
    label: Optional[str] = None
    steps: list[str]
