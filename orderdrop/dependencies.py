"""FastAPI dependencies.

Collaborators live on ``app.state`` (set by ``create_app``) instead of
module globals, so tests can build an app around in-memory fakes.
"""
import logging
from typing import Generator, Optional

from fastapi import Depends, Request, Response
from sqlalchemy.orm import Session

from . import crud, models
from .auth import create_session_token, decode_session_token
from .blob import BlobStore
from .config import Settings
from .sessions import SessionStore

logger = logging.getLogger(__name__)


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_db(request: Request) -> Generator[Session, None, None]:
    db = request.app.state.session_factory()
    try:
        yield db
    finally:
        db.close()


def get_session_store(request: Request) -> SessionStore:
    return request.app.state.session_store


def get_blob_store(request: Request) -> BlobStore:
    return request.app.state.blob_store


def get_current_user(
    request: Request,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
    session_store: SessionStore = Depends(get_session_store),
) -> Optional[models.User]:
    """Resolve the session cookie to a user, or None for anonymous callers."""
    token = request.cookies.get(settings.session_cookie_name)
    if not token:
        return None
    claims = decode_session_token(token, settings.session_secret)
    if claims is None:
        return None
    user_id = session_store.get_user_id(claims["sid"])
    # A logged-out or expired session, or a token minted for another user
    if user_id is None or str(user_id) != claims["sub"]:
        return None
    return crud.get_user(db, user_id)


def start_session(response: Response, request: Request, user: models.User) -> None:
    settings: Settings = request.app.state.settings
    session_id = request.app.state.session_store.create(user.id, settings.session_ttl_seconds)
    token = create_session_token(session_id, user.id, settings.session_secret, settings.session_ttl_seconds)
    response.set_cookie(
        settings.session_cookie_name,
        token,
        max_age=settings.session_ttl_seconds,
        httponly=True,
        samesite="lax",
        secure=request.url.scheme == "https",
    )
    logger.info("User %s logged in", user.username)


def end_session(response: Response, request: Request) -> None:
    settings: Settings = request.app.state.settings
    token = request.cookies.get(settings.session_cookie_name)
    if token:
        claims = decode_session_token(token, settings.session_secret)
        if claims is not None:
            request.app.state.session_store.delete(claims["sid"])
    response.delete_cookie(settings.session_cookie_name)
