"""Media registry: owns uploaded media assets and their preview handles.

Preview handles are reference counted. ``release`` makes an asset
unresolvable immediately, but the handle itself is revoked only once the
last holder (e.g. the playback engine) drops it. Each handle is revoked
exactly once.
"""

from __future__ import annotations

import uuid
from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Optional, Protocol

import structlog

from reel_remix.models.media import MediaAsset, UploadedFile

logger = structlog.get_logger()


class PreviewAllocator(Protocol):
    """Derives a playable preview URL for an upload and revokes it later."""

    def allocate(self, media_id: str, upload: UploadedFile) -> str: ...

    def revoke(self, media_id: str, preview_url: str) -> None: ...


class InMemoryPreviewAllocator:
    """Allocates ``blob:`` style handles and keeps accounting for leak checks."""

    def __init__(self):
        self.allocated: Counter[str] = Counter()
        self.revoked: Counter[str] = Counter()

    def allocate(self, media_id: str, upload: UploadedFile) -> str:
        url = f"blob:{uuid.uuid4()}"
        self.allocated[url] += 1
        return url

    def revoke(self, media_id: str, preview_url: str) -> None:
        self.revoked[preview_url] += 1

    @property
    def live(self) -> set[str]:
        return {url for url in self.allocated if self.revoked[url] < self.allocated[url]}


@dataclass
class _Handle:
    asset: MediaAsset
    holders: int = 0
    released: bool = False
    revoked: bool = False


class MediaRegistry:
    """Identifier-keyed set of media assets for one editing session."""

    def __init__(self, allocator: Optional[PreviewAllocator] = None):
        self._allocator = allocator or InMemoryPreviewAllocator()
        # Insertion order is upload order; released assets are removed.
        self._assets: dict[str, _Handle] = {}
        # Released but still held by someone.
        self._pending: dict[str, _Handle] = {}

    def _new_id(self) -> str:
        while True:
            media_id = f"media-{uuid.uuid4().hex[:12]}"
            if media_id not in self._assets and media_id not in self._pending:
                return media_id

    def register(self, files: Iterable[UploadedFile]) -> list[MediaAsset]:
        """Register uploads in input order. Identical content still gets a new id."""
        assets: list[MediaAsset] = []
        for upload in files:
            media_id = self._new_id()
            preview_url = self._allocator.allocate(media_id, upload)
            asset = MediaAsset(
                id=media_id,
                filename=upload.filename,
                content_type=upload.content_type,
                size_bytes=len(upload.data),
                preview_url=preview_url,
            )
            self._assets[media_id] = _Handle(asset=asset)
            assets.append(asset)

        logger.info("media_registry.registered", count=len(assets), total=len(self._assets))
        return assets

    def lookup(self, media_id: str) -> Optional[MediaAsset]:
        handle = self._assets.get(media_id)
        return handle.asset if handle is not None else None

    def assets(self) -> list[MediaAsset]:
        return [handle.asset for handle in self._assets.values()]

    def __len__(self) -> int:
        return len(self._assets)

    def __contains__(self, media_id: object) -> bool:
        return media_id in self._assets

    # -- reference counting ------------------------------------------------

    def acquire(self, media_id: str) -> Optional[str]:
        """Take a reference on a live asset's preview handle.

        Returns the preview URL, or None if the asset does not resolve.
        """
        handle = self._assets.get(media_id)
        if handle is None:
            return None
        handle.holders += 1
        return handle.asset.preview_url

    def drop(self, media_id: str) -> None:
        """Give back a reference taken with ``acquire``."""
        handle = self._assets.get(media_id) or self._pending.get(media_id)
        if handle is None or handle.holders == 0:
            logger.warning("media_registry.unbalanced_drop", media_id=media_id)
            return
        handle.holders -= 1
        if handle.released and handle.holders == 0:
            self._pending.pop(media_id, None)
            self._revoke(handle)

    def release(self, media_id: str) -> None:
        """Remove an asset. Idempotent; unknown ids are ignored."""
        handle = self._assets.pop(media_id, None)
        if handle is None:
            return
        handle.released = True
        if handle.holders == 0:
            self._revoke(handle)
        else:
            self._pending[media_id] = handle
            logger.info("media_registry.release_deferred", media_id=media_id, holders=handle.holders)

    def release_all(self) -> None:
        for media_id in list(self._assets):
            self.release(media_id)

    @property
    def live_handles(self) -> int:
        """Handles allocated and not yet revoked."""
        return len(self._assets) + len(self._pending)

    def _revoke(self, handle: _Handle) -> None:
        if handle.revoked:
            return
        handle.revoked = True
        self._allocator.revoke(handle.asset.id, handle.asset.preview_url)
        logger.info("media_registry.revoked", media_id=handle.asset.id)
