"""StudyHub web application.

Users register, log in, and share study files behind a session-gated area.

Process-wide handles (database engine, session factory, session manager,
file storage, password hasher) are built when the app starts, kept on
``app.state`` and injected into routes through ``app.routers.deps``.
"""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.responses import PlainTextResponse, RedirectResponse
from fastapi.staticfiles import StaticFiles
from sqlalchemy.exc import SQLAlchemyError

from app.core.config import Settings, get_settings
from app.core.errors import AppError, Unauthenticated
from app.core.security import PasswordHasher
from app.core.sessions import build_session_manager
from app.core.storage import build_storage
from app.models.database import build_engine, build_session_factory, init_db
from app.routers import auth, files
from app.routers.deps import get_current_user_id
from app.templating import BASE_DIR

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

# botocore logs signed requests at DEBUG
for _noisy in ("botocore", "boto3", "s3transfer", "urllib3"):
    logging.getLogger(_noisy).setLevel(logging.WARNING)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings: Settings = app.state.settings

    configured_level = getattr(logging, settings.log_level.upper(), None)
    if configured_level is not None:
        logging.getLogger().setLevel(configured_level)

    engine = build_engine(settings.database_url)
    init_db(engine)
    session_factory = build_session_factory(engine)

    app.state.session_factory = session_factory
    app.state.session_manager = build_session_manager(settings, session_factory)
    app.state.storage = build_storage(settings)
    app.state.hasher = PasswordHasher(settings.password_hash_method, settings.password_salt_length)
    logger.info(
        "StudyHub started (sessions=%s, storage=%s)",
        settings.session_backend,
        settings.storage_backend,
    )

    yield

    app.state.session_manager.close()
    engine.dispose()
    logger.info("StudyHub stopped")


async def unauthenticated_handler(request: Request, exc: Unauthenticated):
    logger.info("Unauthenticated request to %s", request.url.path)
    return RedirectResponse(url="/login", status_code=status.HTTP_303_SEE_OTHER)


async def app_error_handler(request: Request, exc: AppError):
    return PlainTextResponse(exc.message, status_code=exc.status_code)


async def database_error_handler(request: Request, exc: SQLAlchemyError):
    logger.error("Database error on %s %s: %s", request.method, request.url.path, exc)
    return PlainTextResponse("Server error", status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    app = FastAPI(title="StudyHub", lifespan=lifespan)
    app.state.settings = settings or get_settings()

    app.mount("/static", StaticFiles(directory=str(BASE_DIR / "static")), name="static")

    app.add_exception_handler(Unauthenticated, unauthenticated_handler)
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(SQLAlchemyError, database_error_handler)

    # include our routers
    app.include_router(auth.router)
    app.include_router(files.router)

    @app.get("/")
    def home(request: Request):
        if get_current_user_id(request) is not None:
            return RedirectResponse(url="/notes", status_code=status.HTTP_303_SEE_OTHER)
        return RedirectResponse(url="/login", status_code=status.HTTP_303_SEE_OTHER)

    @app.get("/healthz")
    def healthz():
        return {"status": "ok"}

    return app


app = create_app()


def run() -> None:
    import uvicorn

    uvicorn.run("app.main:app", host="127.0.0.1", port=3000)
