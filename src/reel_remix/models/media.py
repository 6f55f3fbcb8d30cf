"""Models for user media assets."""

from __future__ import annotations

from dataclasses import dataclass

from pydantic import BaseModel, ConfigDict


@dataclass(frozen=True)
class UploadedFile:
    """Raw file handed over by the upload boundary. Content type is not checked."""

    filename: str
    content_type: str
    data: bytes


class MediaAsset(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    filename: str
    content_type: str
    size_bytes: int
    preview_url: str
