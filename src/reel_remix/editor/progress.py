"""Staged progress simulator shared by the analysis and export phases.

Given N step labels and a per-step delay, the current step advances from 0
to N-1 once per delay, then ``complete`` fires after one more delay.
``start`` restarts from step 0; ``cancel`` guarantees that no step or
completion callback fires afterwards.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Sequence
from typing import Optional

import structlog

from reel_remix.models.progress import ProgressSnapshot, ProgressStatus

logger = structlog.get_logger()

ANALYSIS_STEPS = [
    "Initializing analysis engine",
    "Detecting scene cuts & shot lengths",
    "Mapping audio beats & SFX markers",
    "Identifying transitions & effects",
    "Extracting on-screen text & captions",
    "Analyzing color grading & style",
    "Generating editable template",
]

EXPORT_STEPS = [
    "Stitching clips together...",
    "Applying transitions & effects...",
    "Adding captions and text overlays...",
    "Mixing audio tracks...",
    "Rendering final video (1080p)...",
]

StepCallback = Callable[[int, str], None]
CompleteCallback = Callable[[], None]


class StagedProgress:
    def __init__(
        self,
        name: str,
        steps: Sequence[str],
        step_delay: float,
        on_step: Optional[StepCallback] = None,
        on_complete: Optional[CompleteCallback] = None,
    ):
        if not steps:
            raise ValueError("StagedProgress needs at least one step")
        if step_delay < 0:
            raise ValueError("step_delay must be non-negative")
        self.name = name
        self.steps = list(steps)
        self.step_delay = step_delay
        self.on_step = on_step
        self.on_complete = on_complete

        self.current_step = 0
        self.status = ProgressStatus.IDLE
        self._run_token = 0
        self._task: Optional[asyncio.Task] = None
        self._done: Optional[asyncio.Future] = None

    def start(self) -> asyncio.Task:
        """(Re)start from step 0. Must be called with a running event loop."""
        self._stop_task()
        self._run_token += 1
        token = self._run_token
        self.current_step = 0
        self.status = ProgressStatus.RUNNING
        loop = asyncio.get_running_loop()
        self._done = loop.create_future()

        logger.info("progress.started", name=self.name, steps=len(self.steps))
        self._task = loop.create_task(self._run(token))
        self._emit_step(token)
        return self._task

    def cancel(self) -> None:
        if self.status != ProgressStatus.RUNNING:
            return
        self._run_token += 1
        self._stop_task()
        self.status = ProgressStatus.CANCELLED
        self._resolve(False)
        logger.info("progress.cancelled", name=self.name, step=self.current_step)

    def reset(self) -> None:
        """Cancel any run and go back to idle."""
        self.cancel()
        self.current_step = 0
        self.status = ProgressStatus.IDLE

    async def wait(self) -> bool:
        """Wait for the current run; True if it completed, False if cancelled."""
        if self._done is None:
            return self.status == ProgressStatus.COMPLETE
        return await asyncio.shield(self._done)

    def snapshot(self) -> ProgressSnapshot:
        label = self.steps[self.current_step] if self.status != ProgressStatus.IDLE else None
        return ProgressSnapshot(
            name=self.name,
            status=self.status,
            current_step=self.current_step,
            total_steps=len(self.steps),
            label=label,
            steps=list(self.steps),
        )

    async def _run(self, token: int) -> None:
        for step in range(1, len(self.steps)):
            await asyncio.sleep(self.step_delay)
            if token != self._run_token:
                return
            self.current_step = step
            self._emit_step(token)

        await asyncio.sleep(self.step_delay)
        if token != self._run_token:
            return
        self.status = ProgressStatus.COMPLETE
        self._resolve(True)
        logger.info("progress.complete", name=self.name)
        if self.on_complete is not None:
            self.on_complete()

    def _emit_step(self, token: int) -> None:
        if self.on_step is not None and token == self._run_token:
            self.on_step(self.current_step, self.steps[self.current_step])

    def _stop_task(self) -> None:
        if self._task is not None and not self._task.done():
            if self._task is not asyncio.current_task():
                self._task.cancel()
        self._task = None
        self._resolve(False)

    def _resolve(self, completed: bool) -> None:
        if self._done is not None and not self._done.done():
            self._done.set_result(completed)
