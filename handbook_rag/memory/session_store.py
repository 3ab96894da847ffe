"""
Session Memory
---------------
Per-session conversation transcripts.

A session is created lazily the first time its id is referenced and lives
for the lifetime of the store; transcripts are append-only.  Sessions are
isolated from each other: the store-level lock only guards the session map,
and each session carries its own re-entrant lock, so requests for different
sessions never wait on each other while requests for the same session are
serialised by holding `lock(session_id)` for the whole exchange.

SessionStore is the abstract contract; a capacity-bounded or persisted
store can replace InMemorySessionStore without changing callers.
"""
from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Iterator, Literal

from loguru import logger
from pydantic import BaseModel, ConfigDict

DEFAULT_SESSION_ID = "default"

Role = Literal["system", "user", "assistant"]


class Turn(BaseModel):
    """One message in a conversation."""

    model_config = ConfigDict(frozen=True)

    role: Role
    content: str

    def to_message(self) -> dict[str, str]:
        return {"role": self.role, "content": self.content}


@dataclass
class Session:
    session_id: str
    turns: list[Turn] = field(default_factory=list)
    lock: threading.RLock = field(default_factory=threading.RLock, repr=False)


class SessionStore(ABC):
    """Contract shared by every session store implementation."""

    @abstractmethod
    def get(self, session_id: str) -> Session:
        """Return the session for `session_id`, creating it if needed."""
        ...

    @abstractmethod
    def append(self, session_id: str, turn: Turn) -> None:
        ...

    @abstractmethod
    def transcript(self, session_id: str) -> tuple[Turn, ...]:
        """Turns in append order, as an immutable copy."""
        ...

    @abstractmethod
    def session_ids(self) -> list[str]:
        ...

    @contextmanager
    def lock(self, session_id: str) -> Iterator[Session]:
        """Hold the session's lock; same-session callers run one at a time."""
        session = self.get(session_id)
        with session.lock:
            yield session

    def append_exchange(self, session_id: str, user_turn: Turn, assistant_turn: Turn) -> None:
        """Record a completed user/assistant exchange as one unit."""
        with self.lock(session_id):
            self.append(session_id, user_turn)
            self.append(session_id, assistant_turn)

    def __len__(self) -> int:
        return len(self.session_ids())


class InMemorySessionStore(SessionStore):
    """Unbounded, process-local session store.  Nothing is ever evicted."""

    def __init__(self) -> None:
        self._sessions: dict[str, Session] = {}
        self._map_lock = threading.Lock()

    def get(self, session_id: str) -> Session:
        session = self._sessions.get(session_id)
        if session is not None:
            return session
        with self._map_lock:
            session = self._sessions.get(session_id)
            if session is None:
                session = Session(session_id=session_id)
                self._sessions[session_id] = session
                logger.debug(f"[SessionStore] New session {session_id!r}")
            return session

    def append(self, session_id: str, turn: Turn) -> None:
        session = self.get(session_id)
        with session.lock:
            session.turns.append(turn)

    def transcript(self, session_id: str) -> tuple[Turn, ...]:
        session = self.get(session_id)
        with session.lock:
            return tuple(session.turns)

    def session_ids(self) -> list[str]:
        with self._map_lock:
            return list(self._sessions)
