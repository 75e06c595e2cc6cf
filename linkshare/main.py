import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse, RedirectResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.middleware.sessions import SessionMiddleware

from linkshare import __version__
from linkshare.cache import cache
from linkshare.config import settings
from linkshare.database import engine
from linkshare.dependencies import LoginRequired
from linkshare.middleware import TimingMiddleware
from linkshare.routers import auth, posts

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup; the app serves straight from the database without Redis.
    await cache.connect()
    yield
    # Shutdown
    await cache.disconnect()
    await engine.dispose()


app = FastAPI(
    title="linkshare",
    description="Share links by category, vote on them and comment",
    version=__version__,
    lifespan=lifespan,
)

# Middleware
app.add_middleware(
    SessionMiddleware,
    secret_key=settings.SESSION_SECRET,
    session_cookie=settings.SESSION_COOKIE,
    max_age=settings.SESSION_MAX_AGE,
    same_site="lax",
    https_only=settings.APP_ENV == "production",
)
app.add_middleware(TimingMiddleware, slow_request_ms=settings.SLOW_REQUEST_MS)

# Routers
app.include_router(auth.router)
app.include_router(posts.router)


@app.exception_handler(LoginRequired)
async def login_required_handler(request: Request, exc: LoginRequired):
    return RedirectResponse("/login", status_code=303)


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError):
    logger.error("Database error on %s %s", request.method, request.url.path, exc_info=exc)
    return PlainTextResponse("Internal server error", status_code=500)


@app.get("/health")
async def health():
    return {
        "status": "healthy",
        "version": __version__,
        "cache": "connected" if cache.available else "disabled",
    }
