import pytest

from reel_remix.editor import template_model
from reel_remix.editor.media_registry import InMemoryPreviewAllocator, MediaRegistry
from reel_remix.models.media import UploadedFile


def make_upload(name="clip.mp4", content_type="video/mp4", data=b"\x00\x01video"):
    return UploadedFile(filename=name, content_type=content_type, data=data)


def shot_descriptor(duration, caption=""):
    return {
        "duration": duration,
        "description": f"{duration}s shot",
        "transition": "Hard Cut",
        "effect": "None",
        "caption": caption,
    }


@pytest.fixture
def allocator():
    return InMemoryPreviewAllocator()


@pytest.fixture
def registry(allocator):
    return MediaRegistry(allocator)


@pytest.fixture
def template():
    return template_model.load([shot_descriptor(2.0), shot_descriptor(3.5), shot_descriptor(1.5)])
