# main.py
import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse, RedirectResponse

from .catalog import AUTHOR_FIELDS, BOOK_FIELDS, CatalogRepository, authors_router, books_router
from .db import connect
from .errors import DuplicateAccount, OAuthError, register_error_handlers
from .logging_config import setup_logging
from .models import AuthResponse, LoginRequest, MessageResponse, SessionStatus, SignupRequest, UserPublic
from .oauth import GoogleOAuthClient
from .sessions import SessionManager, SessionStore, current_user_optional, get_session_manager, require_user
from .settings import Settings, settings as default_settings
from .strategies import LocalStrategy, OAuthStrategy, unwrap
from .users import UserDirectory
from .validation import register_validation_handler

logger = logging.getLogger(__name__)

OAUTH_NONCE_COOKIE = "booklib_oauth_nonce"


def create_app(
    app_settings: Optional[Settings] = None,
    mongo_client: Optional[Any] = None,
    oauth_client: Optional[GoogleOAuthClient] = None,
) -> FastAPI:
    cfg = app_settings or default_settings
    setup_logging(cfg.LOG_LEVEL)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup: one store handle, injected into every component that needs it
        store = connect(cfg, mongo_client)
        await store.init_indexes()
        users = UserDirectory(store, rounds=cfg.BCRYPT_ROUNDS)
        app.state.settings = cfg
        app.state.store = store
        app.state.users = users
        app.state.session_manager = SessionManager(
            SessionStore(store, cfg.SESSION_TTL_SECONDS), users, cfg
        )
        app.state.local_strategy = LocalStrategy(users)
        app.state.oauth_strategy = OAuthStrategy(users)
        app.state.oauth = oauth_client or GoogleOAuthClient(cfg)
        app.state.books = CatalogRepository(store, "books", BOOK_FIELDS)
        app.state.authors = CatalogRepository(store, "authors", AUTHOR_FIELDS)
        logger.info("%s started", cfg.APP_NAME)
        try:
            yield
        finally:
            # Shutdown
            await app.state.oauth.aclose()
            store.close()
            logger.info("%s stopped", cfg.APP_NAME)

    app = FastAPI(title=cfg.APP_NAME, lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=cfg.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )

    register_error_handlers(app)
    register_validation_handler(app)
    app.include_router(router)
    app.include_router(books_router)
    app.include_router(authors_router)
    return app


router = APIRouter(tags=["Authentication"])


@router.get("/", response_class=PlainTextResponse)
def root():
    return "Book Library API is running! Visit /docs for documentation."

@router.get("/healthz")
def healthz():
    return {"ok": True}

# --------------------- local credentials ----------------------

@router.post("/signup", status_code=201, response_model=AuthResponse)
async def signup(request: Request, payload: SignupRequest):
    users: UserDirectory = request.app.state.users
    try:
        user = await users.create_local_user(
            email=payload.email,
            password=payload.password,
            display_name=payload.displayName,
        )
    except DuplicateAccount:
        logger.info("signup rejected: email already registered")
        raise
    return AuthResponse(
        message="User created successfully. You can now log in.",
        user=UserPublic.from_doc(user),
    )

@router.post("/login", response_model=AuthResponse)
async def login(request: Request, response: Response, payload: LoginRequest):
    # 1) Run the local strategy (raises on Rejected / Errored)
    strategy: LocalStrategy = request.app.state.local_strategy
    user = unwrap(await strategy.authenticate(payload.email, payload.password))

    # 2) Replace any session this browser already holds, hand back the signed cookie
    manager = get_session_manager(request)
    manager.set_cookie(response, await manager.login(user, previous=manager.cookie_from(request)))
    logger.info("%s login for user %s", strategy.name, user["_id"])

    return AuthResponse(message="Login successful", user=UserPublic.from_doc(user))

# --------------------------- OAuth ----------------------------

def _redirect_uri(request: Request) -> str:
    cfg: Settings = request.app.state.settings
    return cfg.OAUTH_REDIRECT_URI or str(request.url_for("oauth_callback"))

@router.get("/oauth/start")
def oauth_start(request: Request):
    cfg: Settings = request.app.state.settings
    oauth: GoogleOAuthClient = request.app.state.oauth
    state, nonce = oauth.create_state()
    url = oauth.build_authorize_url(_redirect_uri(request), state)

    response = RedirectResponse(url=url, status_code=302)
    response.set_cookie(
        OAUTH_NONCE_COOKIE,
        nonce,
        max_age=cfg.OAUTH_STATE_MAX_AGE,
        httponly=True,
        secure=cfg.cookie_secure,
        samesite="lax",
        path="/",
    )
    return response

@router.get("/oauth/callback", name="oauth_callback")
async def oauth_callback(request: Request, code: Optional[str] = None,
                         state: Optional[str] = None, error: Optional[str] = None):
    cfg: Settings = request.app.state.settings
    oauth: GoogleOAuthClient = request.app.state.oauth

    failure = RedirectResponse(url="/oauth/failure", status_code=302)
    failure.delete_cookie(OAUTH_NONCE_COOKIE, path="/")
    if error or not code:
        logger.info("oauth callback without code (error=%s)", error)
        return failure

    try:
        oauth.validate_state(state, request.cookies.get(OAUTH_NONCE_COOKIE))
        profile = await oauth.complete(code, _redirect_uri(request))
    except OAuthError as e:
        logger.warning("oauth callback failed: %s", e.message)
        return failure

    strategy: OAuthStrategy = request.app.state.oauth_strategy
    user = unwrap(await strategy.authenticate(profile))

    manager = get_session_manager(request)
    response = RedirectResponse(url=cfg.OAUTH_SUCCESS_REDIRECT, status_code=302)
    manager.set_cookie(response, await manager.login(user, previous=manager.cookie_from(request)))
    response.delete_cookie(OAUTH_NONCE_COOKIE, path="/")
    logger.info("%s login for user %s", strategy.name, user["_id"])
    return response

@router.get("/oauth/failure")
def oauth_failure():
    err = OAuthError("Authentication failed")
    return JSONResponse(status_code=401, content=err.to_dict())

@router.get("/oauth/success", response_model=AuthResponse)
async def oauth_success(user: Dict[str, Any] = Depends(require_user)):
    return AuthResponse(message="Authentication successful", user=UserPublic.from_doc(user))

# -------------------------- session ---------------------------

@router.get("/session/status", response_model=SessionStatus, response_model_exclude_none=True)
async def session_status(user: Optional[Dict[str, Any]] = Depends(current_user_optional)):
    if user is None:
        return SessionStatus(authenticated=False, message="Not logged in")
    return SessionStatus(authenticated=True, user=UserPublic.from_doc(user))

@router.get("/logout", response_model=MessageResponse)
async def logout(request: Request, response: Response):
    # idempotent: no session (or an unknown one) still logs out cleanly
    manager = get_session_manager(request)
    await manager.logout(manager.cookie_from(request))
    manager.clear_cookie(response)
    return MessageResponse(message="Logged out successfully")


app = create_app()
