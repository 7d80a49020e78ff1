# Shared dependencies: per-request DB session, process-wide handles, access guard.
from typing import Iterator

from fastapi import Request
from sqlalchemy.orm import Session

from app.core.config import Settings
from app.core.errors import Unauthenticated
from app.core.security import PasswordHasher
from app.core.sessions import SessionManager
from app.core.storage import FileStorage


def get_db(request: Request) -> Iterator[Session]:
    db = request.app.state.session_factory()
    try:
        yield db
    finally:
        db.close()


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_session_manager(request: Request) -> SessionManager:
    return request.app.state.session_manager


def get_storage(request: Request) -> FileStorage:
    return request.app.state.storage


def get_hasher(request: Request) -> PasswordHasher:
    return request.app.state.hasher


def get_session_token(request: Request) -> str | None:
    return request.cookies.get(request.app.state.settings.session_cookie_name)


# --- helper: get current logged in user id from the session cookie ---
def get_current_user_id(request: Request) -> int | None:
    return get_session_manager(request).resolve(get_session_token(request))


def require_user_id(request: Request) -> int:
    """Access guard for protected routes."""
    user_id = get_current_user_id(request)
    if user_id is None:
        raise Unauthenticated()
    return user_id
