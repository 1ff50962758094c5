"""Persist chat sessions and their messages.

The orchestrator only appends and reads through :class:`SessionStore`; how sessions are stored is
up to the implementation.  :class:`InMemorySessionStore` is what the API uses by default.
"""

import logging
import threading
import time
from abc import (
    ABC,
    abstractmethod,
)
from typing import (
    Any,
    Dict,
    List,
)

from nexus.agent.schema import (
    ChatSession,
    Message,
)

logger = logging.getLogger(__name__)

NEW_SESSION_TITLE = "New Session"
_PREVIEW_LEN = 60
_TITLE_LEN = 30


class SessionNotFoundError(KeyError):
    """Raised when a session id is unknown to the store."""


class SessionStore(ABC):
    """Storage interface for sessions and messages."""

    @abstractmethod
    def get_messages(self, session_id: str) -> List[Message]: ...

    @abstractmethod
    def save_messages(self, session_id: str, messages: List[Message]) -> None: ...

    @abstractmethod
    def get_sessions(self) -> List[ChatSession]:
        """Return every session, most recently modified first."""

    @abstractmethod
    def save_sessions(self, sessions: List[ChatSession]) -> None: ...


class InMemorySessionStore(SessionStore):
    """Process-local store; contents are lost on restart."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._messages: Dict[str, List[Message]] = {}
        self._sessions: List[ChatSession] = []

    def get_messages(self, session_id: str) -> List[Message]:
        with self._lock:
            return [m.model_copy(deep=True) for m in self._messages.get(session_id, [])]

    def save_messages(self, session_id: str, messages: List[Message]) -> None:
        with self._lock:
            self._messages[session_id] = [m.model_copy(deep=True) for m in messages]

    def get_sessions(self) -> List[ChatSession]:
        with self._lock:
            sessions = [s.model_copy() for s in self._sessions]
        return sorted(sessions, key=lambda s: s.last_modified, reverse=True)

    def save_sessions(self, sessions: List[ChatSession]) -> None:
        with self._lock:
            self._sessions = [s.model_copy() for s in sessions]


# ---------------------------------------------------------------------------
# Helpers shared by the orchestrator and the API
# ---------------------------------------------------------------------------
def _truncate(text: str, limit: int) -> str:
    return text[:limit] + ("..." if len(text) > limit else "")


def create_session(store: SessionStore) -> ChatSession:
    """Create an empty session and register it with *store*."""
    session = ChatSession()
    store.save_sessions([session, *store.get_sessions()])
    store.save_messages(session.id, [])
    logger.debug("Created session %s", session.id)
    return session


def append_message(store: SessionStore, session_id: str, message: Message) -> None:
    """
    Append *message* to a session and refresh the session's preview.

    The first user message of a session still titled "New Session" becomes its title.
    """
    sessions = store.get_sessions()
    for session in sessions:
        if session.id == session_id:
            break
    else:
        raise SessionNotFoundError(session_id)

    store.save_messages(session_id, [*store.get_messages(session_id), message])

    session.last_modified = time.time()
    session.preview = _truncate(message.content, _PREVIEW_LEN)
    if session.title == NEW_SESSION_TITLE and message.role == "user":
        session.title = _truncate(message.content, _TITLE_LEN)
    store.save_sessions(sessions)


def update_message(
    store: SessionStore, session_id: str, message_id: str, **updates: Any
) -> Message | None:
    """Apply *updates* to one message in place; returns the updated message, or None."""
    messages = store.get_messages(session_id)
    updated: Message | None = None
    for index, message in enumerate(messages):
        if message.id == message_id:
            updated = message.model_copy(update=updates)
            messages[index] = updated
            break
    if updated is None:
        logger.warning("Message %s not found in session %s", message_id, session_id)
        return None
    store.save_messages(session_id, messages)
    return updated
