"""Assignment controller: pick a shot slot, then pick media to fill it."""

from __future__ import annotations

from collections.abc import Callable
from enum import Enum
from typing import Optional

import structlog

from reel_remix.editor import template_model
from reel_remix.editor.media_registry import MediaRegistry
from reel_remix.exceptions import MediaNotFound
from reel_remix.models.template import Template

logger = structlog.get_logger()

TemplateListener = Callable[[Template], None]


class SelectionState(str, Enum):
    IDLE = "idle"
    SHOT_SELECTED = "shot_selected"


class AssignmentController:
    """Two-state machine: ``IDLE`` and ``SHOT_SELECTED(shot_id)``.

    At most one shot is selected at any time. Every successful template
    mutation is published to the registered listeners.
    """

    def __init__(self, template: Template, registry: MediaRegistry):
        self._template = template
        self._registry = registry
        self._selected_shot_id: Optional[str] = None
        self._listeners: list[TemplateListener] = []

    @property
    def template(self) -> Template:
        return self._template

    @property
    def selected_shot_id(self) -> Optional[str]:
        return self._selected_shot_id

    @property
    def state(self) -> SelectionState:
        if self._selected_shot_id is None:
            return SelectionState.IDLE
        return SelectionState.SHOT_SELECTED

    def subscribe(self, listener: TemplateListener) -> None:
        self._listeners.append(listener)

    def _publish(self, template: Template) -> None:
        self._template = template
        for listener in self._listeners:
            listener(template)

    def select_shot(self, shot_id: str) -> None:
        template_model.find_shot(self._template, shot_id)
        previous = self._selected_shot_id
        self._selected_shot_id = shot_id
        logger.info("assignment.shot_selected", shot_id=shot_id, previous=previous)

    def deselect(self) -> None:
        self._selected_shot_id = None

    def select_media(self, media_id: str) -> Template:
        """Fill the selected shot with ``media_id`` and return to ``IDLE``.

        With no shot selected this is a no-op.

        Raises:
            MediaNotFound: If ``media_id`` is not in the registry.
        """
        shot_id = self._selected_shot_id
        if shot_id is None:
            logger.info("assignment.no_selection", media_id=media_id)
            return self._template

        if self._registry.lookup(media_id) is None:
            raise MediaNotFound(media_id)

        updated = template_model.assign(self._template, shot_id, media_id)
        self._selected_shot_id = None
        logger.info("assignment.assigned", shot_id=shot_id, media_id=media_id)
        self._publish(updated)
        return updated

    def clear_shot(self, shot_id: str) -> Template:
        """Remove media from ``shot_id``. Selection is left as it is."""
        updated = template_model.clear(self._template, shot_id)
        if updated is not self._template:
            logger.info("assignment.cleared", shot_id=shot_id)
            self._publish(updated)
        return updated

    def replace_template(self, template: Template) -> None:
        self._selected_shot_id = None
        self._publish(template)
