"""Pydantic models for reel templates."""

from __future__ import annotations

import math
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field


class ShotSpec(BaseModel):
    """A shot descriptor as received from the template generator."""

    model_config = ConfigDict(frozen=True, allow_inf_nan=False)

    duration: float = Field(gt=0, strict=True)
    description: str
    transition: str
    effect: str
    caption: str = ""


class Shot(ShotSpec):
    id: str
    media_id: Optional[str] = None


class Template(BaseModel):
    model_config = ConfigDict(frozen=True)

    shots: tuple[Shot, ...]

    @computed_field
    @property
    def total_duration(self) -> float:
        return math.fsum(shot.duration for shot in self.shots)


class TimelineSlot(BaseModel):
    shot: Shot
    start: float
    end: float


# ---------------------------------------------------------------------------
# LLM Structured Output models (used by the template generator)
# ---------------------------------------------------------------------------


class ShotOutput(BaseModel):
    """A single shot of the generated reel."""

    duration: float = Field(gt=0, strict=True, description="Duration of the shot in seconds (e.g., 1.2).")
    description: str = Field(
        description="A descriptive placeholder for the shot content "
        "(e.g., 'Dynamic close-up of product')."
    )
    transition: str = Field(
        description="The transition effect leading into this shot (e.g., 'Hard Cut', 'Zoom In')."
    )
    effect: str = Field(
        description="A visual effect applied to the shot (e.g., 'None', 'Glitch', 'Slow Motion')."
    )
    caption: str = Field(description="On-screen text for this shot. Can be an empty string.")


class TemplateGenerationResult(BaseModel):
    """Full template returned by the LLM."""

    shots: list[ShotOutput] = Field(
        description="An array of shot objects representing the video timeline.",
        min_length=1,
    )
