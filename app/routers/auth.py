import logging

from fastapi import APIRouter, Depends, Form, Request, status
from fastapi.responses import HTMLResponse, RedirectResponse
from sqlalchemy.orm import Session

from app.core.config import Settings
from app.core.errors import AppError, InvalidCredentials
from app.core.security import PasswordHasher
from app.core.sessions import SessionManager
from app.routers.deps import (
    get_db,
    get_hasher,
    get_session_manager,
    get_session_token,
    get_settings,
)
from app.services.accounts import authenticate, register_user
from app.templating import templates

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/register", response_class=HTMLResponse)
def register_page(request: Request):
    return templates.TemplateResponse(request, "register.html")


@router.post("/register", response_class=HTMLResponse)
def register(
    request: Request,
    name: str = Form(""),
    email: str = Form(""),
    password: str = Form(""),
    db: Session = Depends(get_db),
    hasher: PasswordHasher = Depends(get_hasher),
):
    try:
        register_user(db, hasher, name, email, password)
    except AppError as e:
        return templates.TemplateResponse(
            request,
            "register.html",
            {"error": e.message, "name": name, "email": email},
            status_code=e.status_code,
        )

    return templates.TemplateResponse(
        request,
        "register.html",
        {"message": "User registered successfully!"},
        status_code=status.HTTP_201_CREATED,
    )


@router.get("/login", response_class=HTMLResponse)
def login_page(request: Request):
    return templates.TemplateResponse(request, "login.html")


@router.post("/login")
def login(
    request: Request,
    email: str = Form(""),
    password: str = Form(""),
    db: Session = Depends(get_db),
    hasher: PasswordHasher = Depends(get_hasher),
    sessions: SessionManager = Depends(get_session_manager),
    settings: Settings = Depends(get_settings),
):
    try:
        user = authenticate(db, hasher, email, password)
    except InvalidCredentials as e:
        return templates.TemplateResponse(
            request, "login.html", {"error": e.message}, status_code=e.status_code
        )

    # never carry a pre-login token over into the logged-in state
    previous = get_session_token(request)
    if previous:
        try:
            sessions.destroy(previous)
        except Exception:
            # a stale token must not block a valid login
            logger.exception("Destroying previous session %s failed", previous[:8])

    token = sessions.create(user.id)

    # login success → set the session cookie
    response = RedirectResponse(url="/notes", status_code=status.HTTP_303_SEE_OTHER)
    response.set_cookie(
        settings.session_cookie_name,
        token,
        max_age=settings.session_ttl_seconds,
        httponly=True,
        samesite="lax",
        secure=settings.session_cookie_secure,
    )
    logger.info("User id=%s logged in", user.id)
    return response


@router.post("/logout")
def logout(
    request: Request,
    sessions: SessionManager = Depends(get_session_manager),
    settings: Settings = Depends(get_settings),
):
    token = get_session_token(request)
    if token:
        try:
            sessions.destroy(token)
        except Exception:
            # the client still ends up logged out
            logger.exception("Destroying session %s failed", token[:8])

    response = RedirectResponse(url="/login", status_code=status.HTTP_303_SEE_OTHER)
    response.delete_cookie(
        settings.session_cookie_name,
        httponly=True,
        samesite="lax",
        secure=settings.session_cookie_secure,
    )
    return response
