"""Sequential playback engine: plays assigned media back-to-back in a loop."""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Protocol

import structlog

from reel_remix.editor.media_registry import MediaRegistry
from reel_remix.models.template import Template

logger = structlog.get_logger()


@dataclass(frozen=True)
class PlaylistEntry:
    shot_id: str
    media_id: str
    preview_url: str
    duration: float


def derive_playlist(template: Template, registry: MediaRegistry) -> list[PlaylistEntry]:
    """Project shot order through the registry.

    Unassigned shots and shots whose media no longer resolves are skipped.
    """
    entries: list[PlaylistEntry] = []
    for shot in template.shots:
        if shot.media_id is None:
            continue
        asset = registry.lookup(shot.media_id)
        if asset is None:
            continue
        entries.append(
            PlaylistEntry(
                shot_id=shot.id,
                media_id=asset.id,
                preview_url=asset.preview_url,
                duration=shot.duration,
            )
        )
    return entries


class MediaSink(Protocol):
    """Whatever actually renders the media (a <video> element, a player...)."""

    def load(self, entry: PlaylistEntry) -> None: ...

    def play(self) -> None: ...

    def stop(self) -> None: ...


class RecordingSink:
    """Sink that only remembers what it was asked to do."""

    def __init__(self):
        self.history: list[tuple[str, Optional[str]]] = []
        self.source: Optional[PlaylistEntry] = None
        self.playing = False

    def load(self, entry: PlaylistEntry) -> None:
        self.source = entry
        self.playing = False
        self.history.append(("load", entry.preview_url))

    def play(self) -> None:
        self.playing = True
        self.history.append(("play", self.source.preview_url if self.source else None))

    def stop(self) -> None:
        self.source = None
        self.playing = False
        self.history.append(("stop", None))


class PlaybackState(str, Enum):
    IDLE = "idle"
    PLAYING = "playing"


class PlaybackEngine:
    """Loops over a play-list forever while it is non-empty.

    The engine holds a registry reference on every entry in its current
    play-list, so released media is never revoked while still queued.
    """

    def __init__(self, registry: MediaRegistry, sink: Optional[MediaSink] = None):
        self._registry = registry
        self.sink: MediaSink = sink or RecordingSink()
        self._playlist: tuple[PlaylistEntry, ...] = ()
        self._held: list[str] = []
        self._index = 0
        self._playing = False
        # Bumped on every switch so timers can tell a restarted entry apart.
        self._advances = 0
        self._playing_event = asyncio.Event()

    @property
    def playlist(self) -> tuple[PlaylistEntry, ...]:
        return self._playlist

    @property
    def index(self) -> int:
        return self._index

    @property
    def playing(self) -> bool:
        return self._playing

    @property
    def advances(self) -> int:
        return self._advances

    async def wait_playing(self) -> None:
        await self._playing_event.wait()

    @property
    def state(self) -> PlaybackState:
        return PlaybackState.PLAYING if self._playing else PlaybackState.IDLE

    @property
    def current(self) -> Optional[PlaylistEntry]:
        if not self._playing:
            return None
        return self._playlist[self._index]

    def refresh(self, template: Template) -> None:
        """Re-derive the play-list after a template or registry change."""
        self.set_playlist(derive_playlist(template, self._registry))

    def set_playlist(self, entries: Sequence[PlaylistEntry]) -> None:
        """Install a new play-list; restarts from the top only if it changed."""
        playlist = tuple(entries)
        if playlist == self._playlist and (self._playing or not playlist):
            return

        held: list[str] = []
        for entry in playlist:
            if self._registry.acquire(entry.media_id) is not None:
                held.append(entry.media_id)
        self._drop_held()
        self._held = held
        self._playlist = playlist
        self._index = 0

        logger.info("playback.playlist_changed", entries=len(playlist))
        if not playlist:
            self._go_idle()
            return
        self._advance_from(0)

    def media_ended(self) -> None:
        """Natural end of the current entry: move to the next one, wrapping around."""
        if not self._playing:
            return
        self._advance_from((self._index + 1) % len(self._playlist))

    def asset_released(self, media_id: str) -> None:
        """Skip ahead if the entry being played just lost its media."""
        current = self.current
        if current is None or current.media_id != media_id:
            return
        logger.info("playback.current_released", media_id=media_id, index=self._index)
        self._advance_from((self._index + 1) % len(self._playlist))

    def stop(self) -> None:
        self._drop_held()
        self._playlist = ()
        self._index = 0
        self._go_idle()

    def _advance_from(self, start: int) -> None:
        count = len(self._playlist)
        for offset in range(count):
            index = (start + offset) % count
            entry = self._playlist[index]
            if self._registry.lookup(entry.media_id) is None:
                logger.info("playback.skipped_invalid", index=index, media_id=entry.media_id)
                continue
            self._index = index
            self._playing = True
            self._advances += 1
            self._playing_event.set()
            self.sink.load(entry)
            self.sink.play()
            logger.debug("playback.advanced", index=index, shot_id=entry.shot_id)
            return
        logger.info("playback.no_valid_entries", entries=count)
        self._index = 0
        self._go_idle()

    def _go_idle(self) -> None:
        was_playing = self._playing
        self._playing = False
        self._playing_event.clear()
        if was_playing:
            self.sink.stop()

    def _drop_held(self) -> None:
        held, self._held = self._held, []
        for media_id in held:
            self._registry.drop(media_id)


class PlaybackTimer:
    """Fires ``media_ended`` when the current entry's duration has elapsed.

    Stands in for a real player's end-of-media event.
    """

    def __init__(self, engine: PlaybackEngine, speed: float = 1.0):
        self._engine = engine
        self._speed = speed
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> asyncio.Task:
        self.cancel()
        self._task = asyncio.create_task(self._run())
        return self._task

    def cancel(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    async def _run(self) -> None:
        while True:
            entry = self._engine.current
            if entry is None:
                await self._engine.wait_playing()
                continue
            advances = self._engine.advances
            await asyncio.sleep(entry.duration / self._speed)
            # Only end the entry we started timing, not a later restart of it.
            if self._engine.advances == advances:
                self._engine.media_ended()
