"""Template model: ordered shot slots and their media assignment state.

All operations are pure: a mutation returns a new ``Template`` and never
edits the one it was given. The model validates structure only; whether a
media id resolves is the assignment controller's concern.
"""

from __future__ import annotations

import uuid
from collections.abc import Iterable, Mapping
from typing import TYPE_CHECKING, Any, Optional, Union

import structlog
from pydantic import ValidationError

from reel_remix.exceptions import InvalidTemplate, ShotNotFound
from reel_remix.models.template import Shot, ShotSpec, Template, TimelineSlot

if TYPE_CHECKING:
    from reel_remix.editor.media_registry import MediaRegistry

logger = structlog.get_logger()

ShotDescriptor = Union[ShotSpec, Mapping[str, Any]]


def load(shots: Iterable[ShotDescriptor]) -> Template:
    """Build a template from generator shot descriptors.

    Raises:
        InvalidTemplate: If the list is empty or any descriptor is malformed
            (including a non-positive or non-finite duration).
    """
    descriptors = list(shots)
    if not descriptors:
        raise InvalidTemplate(
            "The generated template has no shots.",
            technical_details="empty shot list",
        )

    token = uuid.uuid4().hex[:8]
    loaded: list[Shot] = []
    for index, raw in enumerate(descriptors):
        try:
            spec = raw if isinstance(raw, ShotSpec) else ShotSpec.model_validate(raw)
        except ValidationError as exc:
            raise InvalidTemplate(
                "The generated template contains an invalid shot.",
                technical_details=f"shot {index}: {exc}",
            ) from exc
        fields = spec.model_dump(include=set(ShotSpec.model_fields))
        loaded.append(Shot(id=f"shot-{index}-{token}", **fields))

    template = Template(shots=tuple(loaded))
    logger.info(
        "template.loaded",
        shot_count=len(template.shots),
        total_duration=template.total_duration,
    )
    return template


def find_shot(template: Template, shot_id: str) -> Shot:
    for shot in template.shots:
        if shot.id == shot_id:
            return shot
    raise ShotNotFound(shot_id)


def _replace_media(template: Template, shot_id: str, media_id: Optional[str]) -> Template:
    found = False
    shots: list[Shot] = []
    for shot in template.shots:
        if shot.id == shot_id:
            found = True
            shots.append(shot.model_copy(update={"media_id": media_id}))
        else:
            shots.append(shot)
    if not found:
        raise ShotNotFound(shot_id)
    return Template(shots=tuple(shots))


def assign(template: Template, shot_id: str, media_id: str) -> Template:
    """Return a template where ``shot_id`` references ``media_id``."""
    return _replace_media(template, shot_id, media_id)


def clear(template: Template, shot_id: str) -> Template:
    """Return a template where ``shot_id`` has no media reference.

    Clearing an already-empty shot returns the template unchanged.
    """
    shot = find_shot(template, shot_id)
    if shot.media_id is None:
        return template
    return _replace_media(template, shot_id, None)


def is_complete(template: Template, registry: Optional[MediaRegistry] = None) -> bool:
    """True iff every shot has media.

    With a registry, each reference must also resolve right now.
    """
    for shot in template.shots:
        if shot.media_id is None:
            return False
        if registry is not None and registry.lookup(shot.media_id) is None:
            return False
    return True


def has_assignments(template: Template) -> bool:
    return any(shot.media_id is not None for shot in template.shots)


def shots_using(template: Template, media_id: str) -> list[str]:
    return [shot.id for shot in template.shots if shot.media_id == media_id]


def timeline(template: Template) -> list[TimelineSlot]:
    """Lay shots out left to right with their start/end offsets in seconds."""
    slots: list[TimelineSlot] = []
    cursor = 0.0
    for shot in template.shots:
        end = cursor + shot.duration
        slots.append(TimelineSlot(shot=shot, start=cursor, end=end))
        cursor = end
    return slots
