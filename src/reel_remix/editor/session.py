"""Editing session: phase state machine over the editor components.

Phases:
    IMPORTING --start_import--> ANALYZING --(template + analysis done)--> EDITING
    ANALYZING --(generation failed)--> IMPORTING   (error kept, retryable)
    any       --reset-->         IMPORTING

Every in-flight run (template generation, analysis, export, playback timer)
is cancelled on reset/close, and the session epoch is bumped so a late
result from a previous import can never touch the new state.
"""

from __future__ import annotations

import asyncio
import uuid
from collections.abc import Awaitable, Callable, Iterable
from typing import Optional

import structlog

from reel_remix.config import settings
from reel_remix.editor import template_model
from reel_remix.editor.assignment import AssignmentController
from reel_remix.editor.media_registry import MediaRegistry, PreviewAllocator
from reel_remix.editor.playback import MediaSink, PlaybackEngine, PlaybackTimer
from reel_remix.editor.progress import ANALYSIS_STEPS, EXPORT_STEPS, StagedProgress
from reel_remix.exceptions import SessionStateError, TemplateGenerationFailed
from reel_remix.models.media import MediaAsset, UploadedFile
from reel_remix.models.progress import ProgressStatus
from reel_remix.models.session import PlaybackSnapshot, SessionPhase, SessionStatus
from reel_remix.models.template import Template
from reel_remix.tools.template_generator import generate_template

logger = structlog.get_logger()

TemplateSource = Callable[[], Awaitable[Template]]


class EditingSession:
    def __init__(
        self,
        session_id: Optional[str] = None,
        generate: TemplateSource = generate_template,
        allocator: Optional[PreviewAllocator] = None,
        sink: Optional[MediaSink] = None,
        analysis_step_delay: Optional[float] = None,
        export_step_delay: Optional[float] = None,
        export_requires_complete: Optional[bool] = None,
        playback_autoadvance: Optional[bool] = None,
    ):
        self.session_id = session_id or str(uuid.uuid4())
        self._generate = generate
        self.registry = MediaRegistry(allocator)
        self._reference_registry = MediaRegistry(allocator)
        self.playback = PlaybackEngine(self.registry, sink)
        self._timer = PlaybackTimer(self.playback)

        self.analysis = StagedProgress(
            "analysis",
            ANALYSIS_STEPS,
            settings.analysis_step_delay if analysis_step_delay is None else analysis_step_delay,
        )
        self.export = StagedProgress(
            "export",
            EXPORT_STEPS,
            settings.export_step_delay if export_step_delay is None else export_step_delay,
        )
        self._export_requires_complete = (
            settings.export_requires_complete
            if export_requires_complete is None
            else export_requires_complete
        )
        self._autoadvance = (
            settings.playback_autoadvance if playback_autoadvance is None else playback_autoadvance
        )

        self.phase = SessionPhase.IMPORTING
        self.error: Optional[str] = None
        self.reference: Optional[MediaAsset] = None
        self.controller: Optional[AssignmentController] = None
        self.closed = False
        self._epoch = 0
        self._import_task: Optional[asyncio.Task] = None

    # ------------------------------------------------------------------
    # Phase handling
    # ------------------------------------------------------------------

    def _set_phase(self, phase: SessionPhase) -> None:
        previous = self.phase
        self.phase = phase
        logger.info(
            "session.phase_changed",
            session_id=self.session_id,
            previous=previous.value,
            phase=phase.value,
        )

    def _require(self, phase: SessionPhase, action: str) -> None:
        if self.closed:
            raise SessionStateError(f"Cannot {action}: session is closed")
        if self.phase != phase:
            raise SessionStateError(
                f"Cannot {action} while {self.phase.value}",
                technical_details=f"expected phase {phase.value}",
            )

    def _editing(self, action: str) -> AssignmentController:
        self._require(SessionPhase.EDITING, action)
        assert self.controller is not None
        return self.controller

    @property
    def template(self) -> Optional[Template]:
        return self.controller.template if self.controller is not None else None

    # ------------------------------------------------------------------
    # Import / analysis
    # ------------------------------------------------------------------

    def start_import(self, reference: UploadedFile) -> asyncio.Task:
        """Register the reference video and start analysis in the background."""
        self._require(SessionPhase.IMPORTING, "import a reference video")
        self.error = None
        [self.reference] = self._reference_registry.register([reference])
        self._set_phase(SessionPhase.ANALYZING)
        self._import_task = asyncio.create_task(self._run_import(self._epoch))
        return self._import_task

    async def import_reference(self, reference: UploadedFile) -> Template:
        """Run a whole import and wait for the editor to open.

        Raises:
            TemplateGenerationFailed: If the generator failed (session is back
                in ``IMPORTING`` with ``error`` set).
            SessionStateError: If the import was abandoned by a reset.
        """
        task = self.start_import(reference)
        try:
            failure = await task
        except asyncio.CancelledError:
            # Abandoned by reset(), as opposed to our own caller being cancelled.
            if task.cancelled() and self._import_task is not task:
                raise SessionStateError("Import was cancelled") from None
            raise
        if failure is not None:
            raise failure
        if self.template is None:
            raise SessionStateError("Import was cancelled")
        return self.template

    async def _run_import(self, epoch: int) -> Optional[TemplateGenerationFailed]:
        self.analysis.start()
        try:
            template = await self._generate()
        except Exception as exc:
            failure = (
                exc
                if isinstance(exc, TemplateGenerationFailed)
                else TemplateGenerationFailed(technical_details=str(exc))
            )
            if epoch != self._epoch:
                return None
            logger.warning(
                "session.template_generation_failed",
                session_id=self.session_id,
                details=failure.technical_details,
            )
            self.analysis.reset()
            self._reference_registry.release_all()
            self.reference = None
            self.error = failure.user_message
            self._set_phase(SessionPhase.IMPORTING)
            return failure

        if epoch != self._epoch:
            logger.info("session.stale_template_discarded", session_id=self.session_id)
            return None

        completed = await self.analysis.wait()
        if epoch != self._epoch or not completed:
            return None

        self._enter_editing(template)
        return None

    def _enter_editing(self, template: Template) -> None:
        controller = AssignmentController(template, self.registry)
        controller.subscribe(self.playback.refresh)
        self.controller = controller
        self.playback.refresh(template)
        self._set_phase(SessionPhase.EDITING)
        if self._autoadvance:
            self._timer.start()

    # ------------------------------------------------------------------
    # Media
    # ------------------------------------------------------------------

    def upload_media(self, files: Iterable[UploadedFile]) -> list[MediaAsset]:
        self._editing("upload media")
        return self.registry.register(files)

    def remove_media(self, media_id: str) -> list[str]:
        """Release an asset and clear every shot that used it.

        Returns the ids of the shots that were cleared.
        """
        controller = self._editing("remove media")
        self.registry.release(media_id)
        self.playback.asset_released(media_id)
        cleared = template_model.shots_using(controller.template, media_id)
        for shot_id in cleared:
            controller.clear_shot(shot_id)
        logger.info("session.media_removed", media_id=media_id, cleared_shots=cleared)
        return cleared

    # ------------------------------------------------------------------
    # Assignment
    # ------------------------------------------------------------------

    def select_shot(self, shot_id: str) -> None:
        self._editing("select a shot").select_shot(shot_id)

    def deselect(self) -> None:
        self._editing("deselect").deselect()

    def select_media(self, media_id: str) -> Template:
        return self._editing("assign media").select_media(media_id)

    def clear_shot(self, shot_id: str) -> Template:
        return self._editing("clear a shot").clear_shot(shot_id)

    # ------------------------------------------------------------------
    # Playback
    # ------------------------------------------------------------------

    def media_ended(self) -> PlaybackSnapshot:
        self._editing("advance playback")
        self.playback.media_ended()
        return self.playback_snapshot()

    def playback_snapshot(self) -> PlaybackSnapshot:
        current = self.playback.current
        return PlaybackSnapshot(
            state=self.playback.state.value,
            index=self.playback.index,
            entries=len(self.playback.playlist),
            shot_id=current.shot_id if current else None,
            media_id=current.media_id if current else None,
            preview_url=current.preview_url if current else None,
        )

    # ------------------------------------------------------------------
    # Export
    # ------------------------------------------------------------------

    def can_export(self) -> bool:
        template = self.template
        if template is None:
            return False
        if self._export_requires_complete:
            return template_model.is_complete(template, self.registry)
        return template_model.has_assignments(template)

    def start_export(self) -> None:
        self._editing("export")
        if self.export.status == ProgressStatus.RUNNING:
            raise SessionStateError("Export is already in progress")
        if not self.can_export():
            raise SessionStateError(
                "Fill the timeline before exporting",
                technical_details=f"export_requires_complete={self._export_requires_complete}",
            )
        self.export.start()
        logger.info("session.export_started", session_id=self.session_id)

    def dismiss_export(self) -> None:
        self.export.reset()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def reset(self) -> None:
        """Start a new project: cancel everything and release every handle."""
        self._epoch += 1
        if self._import_task is not None and not self._import_task.done():
            self._import_task.cancel()
        self._import_task = None
        self.analysis.reset()
        self.export.reset()
        self._timer.cancel()
        self.playback.stop()
        self.registry.release_all()
        self._reference_registry.release_all()
        self.reference = None
        self.controller = None
        self.error = None
        if self.phase != SessionPhase.IMPORTING:
            self._set_phase(SessionPhase.IMPORTING)

    def close(self) -> None:
        if self.closed:
            return
        self.reset()
        self.closed = True
        logger.info("session.closed", session_id=self.session_id)

    def status(self) -> SessionStatus:
        template = self.template
        return SessionStatus(
            session_id=self.session_id,
            phase=self.phase,
            error=self.error,
            reference=self.reference,
            selected_shot_id=self.controller.selected_shot_id if self.controller else None,
            media_count=len(self.registry),
            shot_count=len(template.shots) if template else 0,
            assigned_count=sum(1 for s in template.shots if s.media_id) if template else 0,
            complete=template_model.is_complete(template, self.registry) if template else False,
            analysis=self.analysis.snapshot(),
            export=self.export.snapshot(),
        )
