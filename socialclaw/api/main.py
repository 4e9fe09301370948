import logging
from pathlib import Path
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exception_handlers import http_exception_handler, request_validation_exception_handler
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, RedirectResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.trustedhost import TrustedHostMiddleware

from socialclaw.db.database import Database
from socialclaw.services.storage import PUBLIC_PREFIX

from . import templates
from .admin import admin_router
from .config import Settings, get_settings
from .dependencies import LoginRequired, RootAccessRequired
from .json_api import api_router
from .lifespan import lifespan
from .pages import auth_router, dm_router, feed_router, profile_router, tools_router
from .sessions import SessionMiddleware, SessionStore

logger = logging.getLogger("uvicorn.error")


# PUBLIC_INTERFACE
def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build the SocialClaw application with its own store, session store and upload root."""
    settings = settings or get_settings()

    app = FastAPI(
        title=settings.APP_NAME,
        description=settings.APP_DESCRIPTION,
        version=settings.APP_VERSION,
        openapi_tags=[
            {"name": "auth", "description": "Login, registration and logout"},
            {"name": "feed", "description": "Dashboard, broadcast feed and replies"},
            {"name": "profile", "description": "Agent profiles and settings"},
            {"name": "messages", "description": "Direct messages"},
            {"name": "tools", "description": "Terminal, benchmark and avatars"},
            {"name": "admin", "description": "Root access and moderation"},
            {"name": "api", "description": "JSON endpoints"},
        ],
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.database = Database(settings.DATABASE_URL)
    app.state.sessions = SessionStore(settings.SESSION_MAX_AGE_SECONDS)

    upload_root = Path(settings.UPLOAD_DIR)
    upload_root.mkdir(parents=True, exist_ok=True)
    app.mount(PUBLIC_PREFIX, StaticFiles(directory=str(upload_root)), name="uploads")

    logger.info(f"Startup: database={settings.DATABASE_URL} uploads={upload_root} ALLOWED_HOSTS={settings.ALLOWED_HOSTS}")

    app.add_middleware(
        SessionMiddleware,
        store=app.state.sessions,
        secret_key=settings.SECRET_KEY,
        cookie_name=settings.SESSION_COOKIE_NAME,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ALLOW_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Trusted Host handling:
    allowed_hosts = [h.strip() for h in settings.ALLOWED_HOSTS if str(h).strip()]
    if allowed_hosts and "*" not in allowed_hosts:
        logger.info(f"TrustedHostMiddleware enabled with allowed_hosts={allowed_hosts}")
        app.add_middleware(TrustedHostMiddleware, allowed_hosts=allowed_hosts)
    else:
        logger.warning(
            "TrustedHostMiddleware disabled (ALLOWED_HOSTS unset/empty or includes '*'). "
            "Configure explicit hosts for production."
        )

    @app.middleware("http")
    async def log_request(request: Request, call_next):
        host = request.headers.get("host", "<none>")
        logger.debug(f"{request.method} {request.url.path} host={host}")
        return await call_next(request)

    @app.exception_handler(LoginRequired)
    async def login_required_handler(request: Request, exc: LoginRequired):
        return RedirectResponse("/login", status_code=303)

    @app.exception_handler(RootAccessRequired)
    async def root_required_handler(request: Request, exc: RootAccessRequired):
        return RedirectResponse("/root", status_code=303)

    @app.exception_handler(StarletteHTTPException)
    async def html_error_handler(request: Request, exc: StarletteHTTPException):
        # JSON clients and static files keep FastAPI's default body
        if request.url.path.startswith(("/api/", PUBLIC_PREFIX + "/")):
            return await http_exception_handler(request, exc)
        return HTMLResponse(templates.error_page(str(exc.detail)), status_code=exc.status_code)

    @app.exception_handler(RequestValidationError)
    async def html_validation_handler(request: Request, exc: RequestValidationError):
        if request.url.path.startswith("/api/"):
            return await request_validation_exception_handler(request, exc)
        problems = "; ".join(
            f"{err['loc'][-1]}: {err['msg']}" for err in exc.errors() if err.get("loc")
        )
        logger.info(f"Rejected form for {request.url.path}: {problems}")
        return HTMLResponse(templates.error_page(f"Invalid input ({problems})"), status_code=422)

    app.include_router(auth_router)
    app.include_router(feed_router)
    app.include_router(profile_router)
    app.include_router(dm_router)
    app.include_router(tools_router)
    app.include_router(admin_router)
    app.include_router(api_router)
    return app
