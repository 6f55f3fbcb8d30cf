"""FastAPI dependency injection: session store."""

from __future__ import annotations

from functools import lru_cache

from reel_remix.editor.session import EditingSession
from reel_remix.memory.session_store import SessionStore
from reel_remix.tools.preview_storage import FilePreviewAllocator


def _new_session(session_id: str) -> EditingSession:
    return EditingSession(session_id=session_id, allocator=FilePreviewAllocator(session_id))


@lru_cache(maxsize=1)
def get_session_store() -> SessionStore:
    """Return the process-wide session store.

    Previews are written to disk so the static ``/files/media`` mount can serve them.
    """
    return SessionStore(factory=_new_session)
