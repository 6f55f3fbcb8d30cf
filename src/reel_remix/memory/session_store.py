"""Session store: keeps live editing sessions by id."""

from __future__ import annotations

from collections.abc import Callable
from typing import Optional

import structlog

from reel_remix.editor.session import EditingSession

logger = structlog.get_logger()

SessionFactory = Callable[[str], EditingSession]


class SessionStore:
    """In-memory store for editing sessions. Sessions die with the process."""

    def __init__(self, factory: Optional[SessionFactory] = None):
        self._factory = factory or (lambda session_id: EditingSession(session_id=session_id))
        self._store: dict[str, EditingSession] = {}

    async def create(self, session_id: str) -> EditingSession:
        session = self._factory(session_id)
        previous = self._store.get(session.session_id)
        if previous is not None:
            logger.warning("session_store.replaced", session_id=session.session_id)
            previous.close()
        self._store[session.session_id] = session
        logger.info("session_store.created", session_id=session.session_id)
        return session

    async def get(self, session_id: str) -> Optional[EditingSession]:
        return self._store.get(session_id)

    async def delete(self, session_id: str) -> bool:
        session = self._store.pop(session_id, None)
        if session is None:
            return False
        session.close()
        return True

    async def close_all(self) -> None:
        for session_id in list(self._store):
            await self.delete(session_id)

    def __len__(self) -> int:
        return len(self._store)
