"""File-backed preview handles: uploads are written to disk and served statically."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import structlog

from reel_remix.config import get_media_dir, settings
from reel_remix.models.media import UploadedFile

logger = structlog.get_logger()


class FilePreviewAllocator:
    """Stores each upload under ``<media_dir>/<session_id>/`` and revokes by deleting it."""

    def __init__(self, session_id: str, base_dir: Optional[Path] = None, url_prefix: Optional[str] = None):
        self.session_id = session_id
        self.base_dir = (base_dir or get_media_dir()) / session_id
        self.url_prefix = (url_prefix or settings.preview_url_prefix).rstrip("/")

    def _path_for(self, media_id: str, filename: str) -> Path:
        ext = Path(filename or "").suffix
        return self.base_dir / f"{media_id}{ext}"

    def allocate(self, media_id: str, upload: UploadedFile) -> str:
        dest = self._path_for(media_id, upload.filename)
        dest.parent.mkdir(parents=True, exist_ok=True)
        dest.write_bytes(upload.data)
        logger.info("preview_storage.written", path=str(dest), bytes_written=len(upload.data))
        return f"{self.url_prefix}/{self.session_id}/{dest.name}"

    def revoke(self, media_id: str, preview_url: str) -> None:
        name = preview_url.rsplit("/", 1)[-1]
        path = self.base_dir / name
        path.unlink(missing_ok=True)
        logger.info("preview_storage.deleted", path=str(path))
