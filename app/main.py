import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from sqlalchemy.exc import OperationalError

from app.core.config import settings
from app.core.database import SessionLocal, engine
from app.core.exceptions import AppError, ServiceUnavailableError
from app.core.rate_limit import limiter, rate_limit_exceeded_handler
from app.core.tasks import start_user_token_cleanup
import app.models  # noqa: F401
from app.models.base import Base
from app.repositories.user_token_repository import UserTokenRepository
from app.routers import auth as auth_router
from app.routers import expertise as expertise_router
from app.routers import health as health_router
from app.routers import listings as listings_router
from app.routers import users as users_router
from app.routers import vehicles as vehicles_router

logger = logging.getLogger(__name__)
_user_token_repo = UserTokenRepository()


def _bootstrap_admin() -> None:
    if not (settings.admin_username and settings.admin_email and settings.admin_password):
        return
    with SessionLocal() as db:
        auth_router.auth_service.ensure_admin(
            db, settings.admin_username, settings.admin_email, settings.admin_password
        )


@asynccontextmanager
async def lifespan(app: FastAPI):
    Base.metadata.create_all(bind=engine)
    _bootstrap_admin()
    start_user_token_cleanup(
        session_factory=SessionLocal,
        repo=_user_token_repo,
        interval_seconds=settings.token_cleanup_interval_seconds,
    )
    yield


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


async def operational_error_handler(request: Request, exc: OperationalError) -> JSONResponse:
    logger.error("Database unavailable during %s %s", request.method, request.url.path, exc_info=exc)
    unavailable = ServiceUnavailableError()
    return JSONResponse(status_code=unavailable.status_code, content={"detail": unavailable.message})


def create_app() -> FastAPI:
    logging.basicConfig(level=settings.log_level.upper())
    application = FastAPI(title="Vehicle Marketplace API", lifespan=lifespan)
    application.state.limiter = limiter
    application.add_exception_handler(AppError, app_error_handler)
    application.add_exception_handler(OperationalError, operational_error_handler)
    application.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
    application.include_router(health_router.router)
    application.include_router(auth_router.router)
    application.include_router(users_router.router)
    application.include_router(vehicles_router.router)
    application.include_router(listings_router.router)
    application.include_router(expertise_router.router)
    return application


app = create_app()
