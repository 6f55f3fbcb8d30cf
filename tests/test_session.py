"""
Tests for the editing session phase machine.
"""

import asyncio

import pytest
import pytest_asyncio

from conftest import make_upload, shot_descriptor
from reel_remix.editor import template_model
from reel_remix.editor.media_registry import InMemoryPreviewAllocator
from reel_remix.editor.session import EditingSession
from reel_remix.exceptions import (
    MediaNotFound,
    SessionStateError,
    TemplateGenerationFailed,
)
from reel_remix.models.progress import ProgressStatus
from reel_remix.models.session import SessionPhase

DELAY = 0.005


def generator_for(*durations, delay=0.0):
    async def generate():
        if delay:
            await asyncio.sleep(delay)
        return template_model.load([shot_descriptor(d) for d in durations])

    return generate


async def failing_generator():
    raise TemplateGenerationFailed(technical_details="bad response")


def make_session(generate, **kwargs):
    kwargs.setdefault("analysis_step_delay", DELAY)
    kwargs.setdefault("export_step_delay", DELAY)
    kwargs.setdefault("playback_autoadvance", False)
    allocator = kwargs.pop("allocator", InMemoryPreviewAllocator())
    return EditingSession(session_id="s1", generate=generate, allocator=allocator, **kwargs)


@pytest.fixture
def allocator():
    return InMemoryPreviewAllocator()


@pytest_asyncio.fixture
async def editing(allocator):
    session = make_session(generator_for(2.0, 3.5, 1.5), allocator=allocator)
    await session.import_reference(make_upload("reference.mp4"))
    yield session
    session.close()


class TestImport:

    @pytest.mark.asyncio
    async def test_import_moves_through_phases(self):
        session = make_session(generator_for(2.0, 3.5, 1.5))
        assert session.phase == SessionPhase.IMPORTING

        task = session.start_import(make_upload("reference.mp4"))
        assert session.phase == SessionPhase.ANALYZING
        assert session.reference.filename == "reference.mp4"

        await task
        assert session.phase == SessionPhase.EDITING
        assert session.analysis.status == ProgressStatus.COMPLETE
        assert session.template.total_duration == pytest.approx(7.0)

    @pytest.mark.asyncio
    async def test_generation_failure_returns_to_import(self, allocator):
        session = make_session(failing_generator, allocator=allocator)
        with pytest.raises(TemplateGenerationFailed):
            await session.import_reference(make_upload("reference.mp4"))

        assert session.phase == SessionPhase.IMPORTING
        assert session.error == "Failed to generate video template. Please try again."
        assert session.template is None
        assert session.reference is None
        assert allocator.live == set()

    @pytest.mark.asyncio
    async def test_unexpected_generator_error_is_wrapped(self):
        async def broken():
            raise ConnectionError("boom")

        session = make_session(broken)
        with pytest.raises(TemplateGenerationFailed):
            await session.import_reference(make_upload())
        assert session.phase == SessionPhase.IMPORTING

    @pytest.mark.asyncio
    async def test_retry_after_failure(self):
        attempts = []

        async def flaky():
            attempts.append(1)
            if len(attempts) == 1:
                raise TemplateGenerationFailed()
            return template_model.load([shot_descriptor(1.0)])

        session = make_session(flaky)
        with pytest.raises(TemplateGenerationFailed):
            await session.import_reference(make_upload())
        await session.import_reference(make_upload())
        assert session.phase == SessionPhase.EDITING
        assert session.error is None

    @pytest.mark.asyncio
    async def test_import_only_from_importing(self, editing):
        with pytest.raises(SessionStateError):
            editing.start_import(make_upload())

    @pytest.mark.asyncio
    async def test_reset_during_analysis_discards_late_result(self, allocator):
        session = make_session(generator_for(1.0, delay=0.02), allocator=allocator)
        task = session.start_import(make_upload())
        await asyncio.sleep(0)
        session.reset()

        with pytest.raises(asyncio.CancelledError):
            await task
        await asyncio.sleep(0.05)
        assert session.phase == SessionPhase.IMPORTING
        assert session.template is None
        assert allocator.live == set()

    @pytest.mark.asyncio
    async def test_stale_result_ignored_when_generator_ignores_cancel(self):
        async def stubborn():
            try:
                await asyncio.sleep(1)
            except asyncio.CancelledError:
                pass
            return template_model.load([shot_descriptor(1.0)])

        session = make_session(stubborn)
        session.start_import(make_upload())
        await asyncio.sleep(0)
        session.reset()
        await asyncio.sleep(0.02)
        assert session.phase == SessionPhase.IMPORTING
        assert session.controller is None


class TestEditing:

    @pytest.mark.asyncio
    async def test_assign_updates_playback(self, editing):
        [clip] = editing.upload_media([make_upload("clip.mp4")])
        shot_id = editing.template.shots[1].id

        editing.select_shot(shot_id)
        editing.select_media(clip.id)

        assert editing.controller.selected_shot_id is None
        assert editing.playback.current.media_id == clip.id
        assert editing.status().assigned_count == 1

    @pytest.mark.asyncio
    async def test_assign_then_clear_scenario(self, editing):
        [m1] = editing.upload_media([make_upload("m1.mp4")])
        before = editing.template
        shot_id = before.shots[1].id

        editing.select_shot(shot_id)
        editing.select_media(m1.id)
        editing.clear_shot(shot_id)

        assert editing.template == before
        assert editing.template.total_duration == pytest.approx(7.0)
        assert editing.playback.current is None

    @pytest.mark.asyncio
    async def test_unknown_media_is_rejected(self, editing):
        editing.select_shot(editing.template.shots[0].id)
        with pytest.raises(MediaNotFound):
            editing.select_media("missing")
        assert editing.template.shots[0].media_id is None

    @pytest.mark.asyncio
    async def test_remove_media_clears_shots(self, editing, allocator):
        a, b = editing.upload_media([make_upload("a.mp4"), make_upload("b.mp4")])
        shots = editing.template.shots
        for shot, media in zip(shots, (a, b, a)):
            editing.select_shot(shot.id)
            editing.select_media(media.id)

        cleared = editing.remove_media(a.id)

        assert cleared == [shots[0].id, shots[2].id]
        assert editing.registry.lookup(a.id) is None
        assert [e.media_id for e in editing.playback.playlist] == [b.id]
        assert allocator.revoked[a.preview_url] == 1
        assert template_model.is_complete(editing.template) is False

    @pytest.mark.asyncio
    async def test_editing_ops_need_editing_phase(self):
        session = make_session(generator_for(1.0))
        with pytest.raises(SessionStateError):
            session.select_shot("shot-0")
        with pytest.raises(SessionStateError):
            session.upload_media([make_upload()])

    @pytest.mark.asyncio
    async def test_media_ended_loops(self, editing):
        a, b = editing.upload_media([make_upload("a.mp4"), make_upload("b.mp4")])
        shots = editing.template.shots
        for shot, media in ((shots[0], a), (shots[2], b)):
            editing.select_shot(shot.id)
            editing.select_media(media.id)

        assert editing.playback_snapshot().media_id == a.id
        assert editing.media_ended().media_id == b.id
        assert editing.media_ended().media_id == a.id


class TestExport:

    @pytest.mark.asyncio
    async def test_export_requires_complete_template(self, editing):
        [clip] = editing.upload_media([make_upload()])
        editing.select_shot(editing.template.shots[0].id)
        editing.select_media(clip.id)

        with pytest.raises(SessionStateError):
            editing.start_export()

        for shot in editing.template.shots[1:]:
            editing.select_shot(shot.id)
            editing.select_media(clip.id)

        editing.start_export()
        assert editing.export.status == ProgressStatus.RUNNING
        assert await editing.export.wait() is True
        assert editing.status().export.status == ProgressStatus.COMPLETE

        editing.dismiss_export()
        assert editing.export.status == ProgressStatus.IDLE

    @pytest.mark.asyncio
    async def test_export_partial_when_allowed(self):
        session = make_session(generator_for(1.0, 1.0), export_requires_complete=False)
        await session.import_reference(make_upload())
        with pytest.raises(SessionStateError):
            session.start_export()

        [clip] = session.upload_media([make_upload()])
        session.select_shot(session.template.shots[0].id)
        session.select_media(clip.id)
        session.start_export()
        with pytest.raises(SessionStateError):
            session.start_export()
        session.close()

    @pytest.mark.asyncio
    async def test_reset_cancels_export(self, editing):
        [clip] = editing.upload_media([make_upload()])
        for shot in editing.template.shots:
            editing.select_shot(shot.id)
            editing.select_media(clip.id)
        editing.start_export()
        editing.reset()

        await asyncio.sleep(DELAY * 10)
        assert editing.export.status == ProgressStatus.IDLE
        assert editing.phase == SessionPhase.IMPORTING


class TestLifecycle:

    @pytest.mark.asyncio
    async def test_close_releases_every_handle(self, allocator):
        session = make_session(generator_for(2.0, 1.0), allocator=allocator)
        await session.import_reference(make_upload("reference.mp4"))
        a, b = session.upload_media([make_upload("a.mp4"), make_upload("b.mp4")])
        session.select_shot(session.template.shots[0].id)
        session.select_media(a.id)

        session.close()

        assert session.closed
        assert allocator.live == set()
        assert all(count == 1 for count in allocator.revoked.values())
        assert len(allocator.revoked) == 3
        with pytest.raises(SessionStateError):
            session.start_import(make_upload())

    @pytest.mark.asyncio
    async def test_autoadvance_timer(self):
        session = make_session(generator_for(0.2, 0.2), playback_autoadvance=True)
        await session.import_reference(make_upload())
        a, b = session.upload_media([make_upload("a.mp4"), make_upload("b.mp4")])
        for shot, media in zip(session.template.shots, (a, b)):
            session.select_shot(shot.id)
            session.select_media(media.id)

        assert session.playback.index == 0
        await asyncio.sleep(0.3)
        assert session.playback.index == 1
        session.close()
