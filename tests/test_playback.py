"""
Tests for the sequential playback engine.
"""

import asyncio

import pytest

from conftest import make_upload, shot_descriptor
from reel_remix.editor import template_model
from reel_remix.editor.playback import (
    PlaybackEngine,
    PlaybackState,
    PlaybackTimer,
    PlaylistEntry,
    RecordingSink,
    derive_playlist,
)


def entry(registry, media_id, shot_id, duration=1.0):
    asset = registry.lookup(media_id)
    return PlaylistEntry(shot_id=shot_id, media_id=media_id, preview_url=asset.preview_url, duration=duration)


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def engine(registry, sink):
    return PlaybackEngine(registry, sink)


@pytest.fixture
def ab(registry):
    a, b = registry.register([make_upload("a.mp4"), make_upload("b.mp4")])
    return [entry(registry, a.id, "s0"), entry(registry, b.id, "s1")]


def test_derive_playlist_skips_unassigned(template, registry):
    a, b = registry.register([make_upload("a.mp4"), make_upload("b.mp4")])
    template = template_model.assign(template, template.shots[2].id, a.id)
    template = template_model.assign(template, template.shots[0].id, b.id)

    playlist = derive_playlist(template, registry)
    assert [e.media_id for e in playlist] == [b.id, a.id]
    assert [e.duration for e in playlist] == [2.0, 1.5]


def test_derive_playlist_skips_released(template, registry):
    [a] = registry.register([make_upload()])
    template = template_model.assign(template, template.shots[0].id, a.id)
    registry.release(a.id)
    assert derive_playlist(template, registry) == []


def test_empty_playlist_is_idle(engine):
    engine.set_playlist([])
    assert engine.state == PlaybackState.IDLE
    assert engine.current is None


def test_two_entry_scenario(engine, sink, ab):
    engine.set_playlist(ab)
    assert engine.index == 0
    assert sink.source == ab[0] and sink.playing

    engine.media_ended()
    assert engine.index == 1
    assert sink.source == ab[1] and sink.playing

    engine.media_ended()
    assert engine.index == 0
    assert sink.source == ab[0]


def test_loop_closure(registry, engine):
    assets = registry.register([make_upload(f"{i}.mp4") for i in range(4)])
    playlist = [entry(registry, a.id, f"s{i}") for i, a in enumerate(assets)]
    engine.set_playlist(playlist)
    for _ in range(len(playlist)):
        engine.media_ended()
    assert engine.index == 0
    assert engine.playing


def test_single_entry_loops(registry, engine, sink):
    [a] = registry.register([make_upload()])
    engine.set_playlist([entry(registry, a.id, "s0")])
    for _ in range(3):
        engine.media_ended()
        assert engine.index == 0
        assert sink.playing
    assert sink.history[-2:] == [("load", a.preview_url), ("play", a.preview_url)]


def test_switch_loads_then_plays(engine, sink, ab):
    engine.set_playlist(ab)
    engine.media_ended()
    assert sink.history[-2:] == [("load", ab[1].preview_url), ("play", ab[1].preview_url)]


def test_playlist_change_resets_index(engine, ab, registry):
    engine.set_playlist(ab)
    engine.media_ended()
    assert engine.index == 1

    [c] = registry.register([make_upload("c.mp4")])
    engine.set_playlist(ab + [entry(registry, c.id, "s2")])
    assert engine.index == 0


def test_unchanged_playlist_does_not_restart(engine, ab):
    engine.set_playlist(ab)
    engine.media_ended()
    engine.set_playlist(list(ab))
    assert engine.index == 1


def test_released_current_entry_advances(engine, sink, ab, registry):
    engine.set_playlist(ab)
    registry.release(ab[0].media_id)
    engine.asset_released(ab[0].media_id)
    assert engine.index == 1
    assert sink.source == ab[1]

    # released entry is skipped on wraparound
    engine.media_ended()
    assert engine.index == 1


def test_all_released_goes_idle(engine, sink, ab, registry):
    engine.set_playlist(ab)
    registry.release(ab[0].media_id)
    registry.release(ab[1].media_id)
    engine.asset_released(ab[0].media_id)
    assert engine.state == PlaybackState.IDLE
    assert not sink.playing


def test_engine_holds_handles_until_replaced(engine, ab, registry, allocator):
    engine.set_playlist(ab)
    registry.release(ab[0].media_id)
    assert allocator.revoked[ab[0].preview_url] == 0

    engine.set_playlist([ab[1]])
    assert allocator.revoked[ab[0].preview_url] == 1

    engine.stop()
    registry.release_all()
    assert allocator.live == set()


def test_refresh_from_template(engine, template, registry):
    [a] = registry.register([make_upload()])
    engine.refresh(template)
    assert engine.state == PlaybackState.IDLE

    engine.refresh(template_model.assign(template, template.shots[1].id, a.id))
    assert engine.current.shot_id == template.shots[1].id


@pytest.mark.asyncio
async def test_timer_advances_on_duration(registry, engine):
    a, b = registry.register([make_upload("a.mp4"), make_upload("b.mp4")])
    template = template_model.load([shot_descriptor(0.05), shot_descriptor(0.05)])
    template = template_model.assign(template, template.shots[0].id, a.id)
    template = template_model.assign(template, template.shots[1].id, b.id)
    engine.refresh(template)

    timer = PlaybackTimer(engine)
    timer.start()
    await asyncio.sleep(0.075)
    assert engine.index == 1
    timer.cancel()
    assert not timer.running

    await asyncio.sleep(0.05)
    assert engine.index == 1


@pytest.mark.asyncio
async def test_timer_ignores_entry_restarted_by_client(registry, engine):
    a, b = registry.register([make_upload("a.mp4"), make_upload("b.mp4")])
    engine.set_playlist([entry(registry, a.id, "s0", 0.1), entry(registry, b.id, "s1", 0.1)])

    timer = PlaybackTimer(engine)
    timer.start()
    await asyncio.sleep(0.02)
    # client reports two ends, looping back to the first entry
    engine.media_ended()
    engine.media_ended()
    assert engine.index == 0

    # the timer armed before the restart must not cut it short
    await asyncio.sleep(0.11)
    assert engine.index == 0
    timer.cancel()


@pytest.mark.asyncio
async def test_idle_timer_wakes_when_playback_starts(registry, engine):
    timer = PlaybackTimer(engine)
    timer.start()
    await asyncio.sleep(0.01)
    assert timer.running

    a, b = registry.register([make_upload("a.mp4"), make_upload("b.mp4")])
    engine.set_playlist([entry(registry, a.id, "s0", 0.05), entry(registry, b.id, "s1", 0.5)])
    await asyncio.sleep(0.075)
    assert engine.index == 1
    timer.cancel()


def test_advance_counter_bumps_on_every_switch(engine, ab):
    engine.set_playlist(ab)
    first = engine.advances
    engine.media_ended()
    engine.media_ended()
    assert engine.index == 0
    assert engine.advances == first + 2
