import logging
from datetime import datetime, timezone
from pathlib import Path

from fastapi import FastAPI, Request
from starlette.exceptions import HTTPException as StarletteHTTPException
from fastapi.exception_handlers import http_exception_handler
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import RedirectResponse
from fastapi.staticfiles import StaticFiles
from starlette.middleware.sessions import SessionMiddleware

from app import models  # noqa: F401
from app.core.config import is_production, settings
from app.database import Base, check_database_connection, engine
from app.routes.agent import router as agent_router
from app.routes.auth import router as auth_router
from app.routes.dashboard import router as dashboard_router
from app.routes.edit_requests import router as edit_requests_router
from app.routes.finance import router as finance_router
from app.routes.notifications import router as notifications_router
from app.routes.operations import router as operations_router
from app.routes.reports import router as reports_router

logging.basicConfig(
    level=getattr(logging, (settings.LOG_LEVEL or "INFO").upper(), logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app_root = Path(__file__).resolve().parent
app = FastAPI(title=settings.APP_NAME)
app.mount("/static", StaticFiles(directory=str(app_root / "static")), name="static")
app.add_middleware(
    SessionMiddleware,
    secret_key=settings.SESSION_SECRET_KEY,
    same_site="lax",
    https_only=is_production(),
    domain=(settings.SESSION_COOKIE_DOMAIN or None),
)
app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.APP_BASE_URL],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.include_router(auth_router)
app.include_router(dashboard_router)
app.include_router(reports_router)
app.include_router(operations_router)
app.include_router(finance_router)
app.include_router(edit_requests_router)
app.include_router(notifications_router)
app.include_router(agent_router)


@app.on_event("startup")
def startup() -> None:
    Base.metadata.create_all(bind=engine)
    logger.info("startup: env=%s timezone=%s", settings.ENV, settings.REPORT_TIMEZONE)


@app.exception_handler(StarletteHTTPException)
async def redirect_pages_to_login(request: Request, exc: StarletteHTTPException):
    # browser pages bounce to the login form, JSON endpoints keep the 401
    if exc.status_code == 401 and not request.url.path.startswith("/api/"):
        return RedirectResponse(url="/auth/login", status_code=303)
    return await http_exception_handler(request, exc)


@app.get("/")
def index():
    return RedirectResponse(url="/dashboard", status_code=302)


@app.get("/health")
def health() -> dict[str, str]:
    database = "connected"
    status_value = "healthy"
    try:
        check_database_connection()
    except Exception:
        logger.exception("health: database check failed")
        database = "disconnected"
        status_value = "degraded"

    return {
        "status": status_value,
        "database": database,
        "environment": settings.ENV,
        "timestamp_utc": datetime.now(timezone.utc).isoformat(),
    }
