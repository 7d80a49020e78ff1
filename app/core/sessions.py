"""Server-side login sessions.

A session maps an opaque token (the cookie value) to a user id. Only the id
is bound, never the user row. Two interchangeable implementations exist:
an in-process dict for single-instance deployments and a database table
for deployments that share the document store.
"""
import logging
import secrets
import threading
import time
from abc import ABC, abstractmethod
from typing import Callable, Optional

from sqlalchemy.orm import sessionmaker

from app.models.login_session import LoginSession

logger = logging.getLogger(__name__)

# 32 bytes -> 43 url-safe characters
_TOKEN_BYTES = 32


def new_token() -> str:
    return secrets.token_urlsafe(_TOKEN_BYTES)


class SessionManager(ABC):
    def __init__(self, ttl_seconds: int, clock: Callable[[], float] = time.time):
        self.ttl_seconds = ttl_seconds
        self._clock = clock

    @abstractmethod
    def create(self, user_id: int) -> str:
        """Start a session for ``user_id`` and return its token.

        Expired sessions are purged first.
        """

    @abstractmethod
    def resolve(self, token: Optional[str]) -> Optional[int]:
        """Return the user id bound to a live ``token``, or None."""

    @abstractmethod
    def destroy(self, token: str) -> bool:
        """End a session. Returns False if the token was unknown."""

    @abstractmethod
    def purge_expired(self) -> int:
        """Drop sessions past their expiry and return how many went."""

    def close(self) -> None:
        pass

    def _expiry(self) -> float:
        return self._clock() + self.ttl_seconds


class InMemorySessionManager(SessionManager):
    def __init__(self, ttl_seconds: int, clock: Callable[[], float] = time.time):
        super().__init__(ttl_seconds, clock)
        self._sessions: dict[str, tuple[int, float]] = {}
        self._lock = threading.Lock()

    def create(self, user_id: int) -> str:
        self.purge_expired()
        token = new_token()
        with self._lock:
            self._sessions[token] = (user_id, self._expiry())
        logger.info("Session created for user %s: %s", user_id, token[:8])
        return token

    def resolve(self, token: Optional[str]) -> Optional[int]:
        if not token:
            return None
        with self._lock:
            entry = self._sessions.get(token)
            if entry is None:
                return None
            user_id, expires_at = entry
            if expires_at <= self._clock():
                del self._sessions[token]
                logger.info("Session expired: %s", token[:8])
                return None
            return user_id

    def destroy(self, token: str) -> bool:
        with self._lock:
            removed = self._sessions.pop(token, None)
        if removed is not None:
            logger.info("Session ended: %s", token[:8])
        return removed is not None

    def purge_expired(self) -> int:
        now = self._clock()
        with self._lock:
            stale = [t for t, (_, expires_at) in self._sessions.items() if expires_at <= now]
            for token in stale:
                del self._sessions[token]
        if stale:
            logger.info("Cleaned up %d expired sessions", len(stale))
        return len(stale)

    def close(self) -> None:
        with self._lock:
            self._sessions.clear()


class DatabaseSessionManager(SessionManager):
    def __init__(
        self,
        session_factory: sessionmaker,
        ttl_seconds: int,
        clock: Callable[[], float] = time.time,
    ):
        super().__init__(ttl_seconds, clock)
        self._session_factory = session_factory

    def create(self, user_id: int) -> str:
        self.purge_expired()
        token = new_token()
        with self._session_factory() as db:
            db.add(LoginSession(token=token, user_id=user_id, expires_at=self._expiry()))
            db.commit()
        logger.info("Session created for user %s: %s", user_id, token[:8])
        return token

    def resolve(self, token: Optional[str]) -> Optional[int]:
        if not token:
            return None
        with self._session_factory() as db:
            row = db.get(LoginSession, token)
            if row is None:
                return None
            if row.expires_at <= self._clock():
                db.delete(row)
                db.commit()
                logger.info("Session expired: %s", token[:8])
                return None
            return row.user_id

    def destroy(self, token: str) -> bool:
        with self._session_factory() as db:
            deleted = db.query(LoginSession).filter(LoginSession.token == token).delete()
            db.commit()
        if deleted:
            logger.info("Session ended: %s", token[:8])
        return deleted > 0

    def purge_expired(self) -> int:
        with self._session_factory() as db:
            deleted = (
                db.query(LoginSession)
                .filter(LoginSession.expires_at <= self._clock())
                .delete()
            )
            db.commit()
        if deleted:
            logger.info("Cleaned up %d expired sessions", deleted)
        return deleted


def build_session_manager(settings, session_factory: sessionmaker) -> SessionManager:
    if settings.session_backend == "database":
        return DatabaseSessionManager(session_factory, settings.session_ttl_seconds)
    return InMemorySessionManager(settings.session_ttl_seconds)
