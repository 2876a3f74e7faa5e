import logging
from pathlib import Path
from typing import List, Optional
from urllib.parse import quote

from fastapi import APIRouter, Depends, FastAPI, File, Form, Request, Response, UploadFile
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse
from fastapi.staticfiles import StaticFiles
from fastapi.templating import Jinja2Templates
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session, sessionmaker
from starlette.concurrency import run_in_threadpool

from . import config, errors, models, schemas, services
from .blob import BlobStore, VercelBlobStore
from .db import init_db, make_engine, make_session_factory
from .dependencies import (
    end_session,
    get_app_settings,
    get_blob_store,
    get_current_user,
    get_db,
    start_session,
)
from .sessions import DatabaseSessionStore, SessionStore

logger = logging.getLogger(__name__)

BASE_DIR = Path(__file__).resolve().parent
templates = Jinja2Templates(directory=str(BASE_DIR / "templates"))

api = APIRouter(prefix="/api")
ui = APIRouter()


async def _json_body(request: Request) -> dict:
    try:
        body = await request.json()
    except ValueError:
        body = None
    return body if isinstance(body, dict) else {}


async def _read_upload(file: Optional[UploadFile], limit: int) -> Optional[services.IncomingFile]:
    # Read one byte past the limit so oversized files are detected without buffering them whole
    if file is None:
        return None
    data = await file.read(limit + 1)
    return services.IncomingFile(filename=file.filename, content_type=file.content_type, data=data)


def _limits(settings: config.Settings) -> services.UploadLimits:
    return services.UploadLimits(max_video_bytes=settings.max_video_bytes, max_image_bytes=settings.max_image_bytes)


@ui.get("/health")
async def health():
    return {"status": "ok"}


# -------------------- Auth API --------------------
@api.post("/register", response_model=schemas.UserRead, status_code=201)
async def api_register(request: Request, response: Response, db: Session = Depends(get_db),
                       settings: config.Settings = Depends(get_app_settings)):
    try:
        payload = schemas.UserCreate.model_validate(await _json_body(request))
    except PydanticValidationError as e:
        raise errors.ValidationError("Invalid registration details") from e
    if payload.is_seller and not settings.allow_seller_registration:
        raise errors.Forbidden("Seller registration is disabled")
    user = services.register_user(db, payload.username, payload.password, is_seller=payload.is_seller)
    start_session(response, request, user)
    return user


@api.post("/login", response_model=schemas.UserRead)
async def api_login(request: Request, response: Response, db: Session = Depends(get_db)):
    try:
        payload = schemas.LoginRequest.model_validate(await _json_body(request))
    except PydanticValidationError as e:
        raise errors.AuthenticationFailed("Username and password are required") from e
    user = services.authenticate(db, payload.username, payload.password)
    start_session(response, request, user)
    return user


@api.post("/logout")
async def api_logout(request: Request, response: Response):
    end_session(response, request)
    return {"loggedOut": True}


@api.get("/user", response_model=schemas.UserRead)
async def api_current_user(user: Optional[models.User] = Depends(get_current_user)):
    if user is None:
        raise errors.AuthenticationFailed("Not logged in")
    return user


# -------------------- Orders API --------------------
@api.post("/orders", response_model=schemas.OrderRead, status_code=201)
async def api_create_order(request: Request, db: Session = Depends(get_db),
                           user: Optional[models.User] = Depends(get_current_user)):
    # Auth is checked before the body so anonymous callers always see 403
    services.require_seller(user)
    body = await _json_body(request)
    order_number = schemas.parse_order_number(body.get("orderNumber"))
    return services.create_order(db, user, order_number)


@api.get("/orders", response_model=List[schemas.OrderRead])
async def api_list_orders(q: str = "", db: Session = Depends(get_db),
                          user: Optional[models.User] = Depends(get_current_user)):
    return services.list_orders(db, user, search=q)


@api.delete("/orders/{order_number}")
async def api_delete_order(order_number: str, db: Session = Depends(get_db),
                           user: Optional[models.User] = Depends(get_current_user)):
    services.require_seller(user)
    order_number = schemas.parse_order_number(order_number)
    services.delete_order(db, user, order_number)
    return {"deleted": order_number}


@api.post("/verify-order", response_model=schemas.OrderRead)
async def api_verify_order(request: Request, db: Session = Depends(get_db)):
    body = await _json_body(request)
    order_number = schemas.parse_order_number(body.get("orderNumber"))
    return services.verify_order(db, order_number)


@api.post("/upload/{order_number}", response_model=schemas.OrderRead)
async def api_upload(
    order_number: str,
    video: Optional[UploadFile] = File(default=None),
    image: Optional[UploadFile] = File(default=None),
    song_request: Optional[str] = Form(default=None, alias="songRequest"),
    db: Session = Depends(get_db),
    blob_store: BlobStore = Depends(get_blob_store),
    settings: config.Settings = Depends(get_app_settings),
):
    order_number = schemas.parse_order_number(order_number)
    limits = _limits(settings)
    video_file = await _read_upload(video, limits.max_video_bytes)
    image_file = await _read_upload(image, limits.max_image_bytes)
    # Blob puts are blocking HTTP calls
    return await run_in_threadpool(
        services.upload_files, db, blob_store, order_number, video_file, image_file, song_request, limits
    )


# -------------------- UI Views --------------------
def _render(request: Request, name: str, context: dict, status_code: int = 200,
            user: Optional[models.User] = None) -> HTMLResponse:
    context = {"user": user, "error": None, **context}
    return templates.TemplateResponse(request, name, context, status_code=status_code)


@ui.get("/", response_class=HTMLResponse)
async def ui_home(request: Request):
    return _render(request, "home.html", {"order_number": ""})


@ui.post("/ui/verify")
async def ui_verify(request: Request, orderNumber: str = Form(default=""), db: Session = Depends(get_db)):
    try:
        order_number = schemas.parse_order_number(orderNumber)
        services.verify_order(db, order_number)
    except errors.OrderDropError as e:
        return _render(request, "home.html", {"order_number": orderNumber, "error": e.message}, e.status_code)
    return RedirectResponse(url=f"/upload/{quote(order_number, safe='')}", status_code=303)


@ui.get("/upload/{order_number}", response_class=HTMLResponse)
async def ui_upload_form(request: Request, order_number: str, db: Session = Depends(get_db),
                         settings: config.Settings = Depends(get_app_settings)):
    try:
        order_number = schemas.parse_order_number(order_number)
        services.verify_order(db, order_number)
    except errors.OrderDropError as e:
        return _render(request, "home.html", {"order_number": order_number, "error": e.message}, e.status_code)
    return _render(request, "upload.html", {"order_number": order_number, "limits": _limits(settings), "song_request": ""})


@ui.post("/ui/upload/{order_number}")
async def ui_upload(
    request: Request,
    order_number: str,
    video: Optional[UploadFile] = File(default=None),
    image: Optional[UploadFile] = File(default=None),
    songRequest: Optional[str] = Form(default=None),
    db: Session = Depends(get_db),
    blob_store: BlobStore = Depends(get_blob_store),
    settings: config.Settings = Depends(get_app_settings),
):
    limits = _limits(settings)
    try:
        order_number = schemas.parse_order_number(order_number)
        video_file = await _read_upload(video, limits.max_video_bytes)
        image_file = await _read_upload(image, limits.max_image_bytes)
        await run_in_threadpool(
            services.upload_files, db, blob_store, order_number, video_file, image_file, songRequest, limits
        )
    except errors.OrderDropError as e:
        return _render(request, "upload.html",
                       {"order_number": order_number, "limits": limits, "song_request": songRequest or "",
                        "error": e.message}, e.status_code)
    return RedirectResponse(url="/success", status_code=303)


@ui.get("/success", response_class=HTMLResponse)
async def ui_success(request: Request):
    return _render(request, "success.html", {})


@ui.get("/auth", response_class=HTMLResponse)
async def ui_auth(request: Request, user: Optional[models.User] = Depends(get_current_user)):
    if user is not None and user.is_seller:
        return RedirectResponse(url="/dashboard", status_code=303)
    return _render(request, "auth.html", {"username": ""}, user=user)


@ui.post("/ui/login")
async def ui_login(request: Request, username: str = Form(default=""), password: str = Form(default=""),
                   db: Session = Depends(get_db)):
    try:
        user = services.authenticate(db, username, password)
    except errors.OrderDropError as e:
        return _render(request, "auth.html", {"username": username, "error": e.message}, e.status_code)
    response = RedirectResponse(url="/dashboard", status_code=303)
    start_session(response, request, user)
    return response


@ui.post("/ui/logout")
async def ui_logout(request: Request):
    response = RedirectResponse(url="/auth", status_code=303)
    end_session(response, request)
    return response


def _render_dashboard(request: Request, db: Session, user: models.User, q: str = "",
                      error: Optional[str] = None, status_code: int = 200) -> HTMLResponse:
    orders = services.list_orders(db, user, search=q)
    return _render(request, "dashboard.html", {"orders": orders, "q": q, "error": error}, status_code, user=user)


@ui.get("/dashboard", response_class=HTMLResponse)
async def ui_dashboard(request: Request, q: str = "", db: Session = Depends(get_db),
                       user: Optional[models.User] = Depends(get_current_user)):
    if user is None or not user.is_seller:
        return RedirectResponse(url="/auth", status_code=303)
    return _render_dashboard(request, db, user, q=q)


@ui.post("/ui/orders")
async def ui_create_order(request: Request, orderNumber: str = Form(default=""), db: Session = Depends(get_db),
                          user: Optional[models.User] = Depends(get_current_user)):
    if user is None or not user.is_seller:
        return RedirectResponse(url="/auth", status_code=303)
    try:
        services.create_order(db, user, schemas.parse_order_number(orderNumber))
    except errors.OrderDropError as e:
        return _render_dashboard(request, db, user, error=e.message, status_code=e.status_code)
    return RedirectResponse(url="/dashboard", status_code=303)


@ui.post("/ui/orders/{order_number}/delete")
async def ui_delete_order(request: Request, order_number: str, db: Session = Depends(get_db),
                          user: Optional[models.User] = Depends(get_current_user)):
    if user is None or not user.is_seller:
        return RedirectResponse(url="/auth", status_code=303)
    try:
        services.delete_order(db, user, schemas.parse_order_number(order_number))
    except errors.OrderDropError as e:
        return _render_dashboard(request, db, user, error=e.message, status_code=e.status_code)
    return RedirectResponse(url="/dashboard", status_code=303)


# -------------------- App factory --------------------
async def handle_unexpected_exception(request: Request, exc: Exception):
    logger.exception("Unexpected error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"detail": "An unexpected error occurred"})


def create_app(
    settings: Optional[config.Settings] = None,
    session_factory: Optional[sessionmaker] = None,
    session_store: Optional[SessionStore] = None,
    blob_store: Optional[BlobStore] = None,
) -> FastAPI:
    """Build the application around explicitly supplied collaborators.

    Anything left as None is built from ``settings`` (by default the
    environment): a SQLAlchemy session factory with its tables created, a
    database-backed session store and a Vercel Blob client.
    """
    settings = settings or config.get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    if session_factory is None:
        engine = make_engine(settings.database_url)
        init_db(engine)
        session_factory = make_session_factory(engine)
    if session_store is None:
        session_store = DatabaseSessionStore(session_factory)
    if blob_store is None:
        blob_store = VercelBlobStore(settings.blob_token, api_url=settings.blob_api_url,
                                     timeout=settings.blob_timeout_seconds)

    app = FastAPI(title="OrderDrop")
    app.state.settings = settings
    app.state.session_factory = session_factory
    app.state.session_store = session_store
    app.state.blob_store = blob_store

    app.add_exception_handler(errors.OrderDropError, errors.orderdrop_exception_handler)
    app.add_exception_handler(Exception, handle_unexpected_exception)
    app.include_router(api)
    app.include_router(ui)
    app.mount("/static", StaticFiles(directory=str(BASE_DIR / "static")), name="static")
    return app


app = create_app()
