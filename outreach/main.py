import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request, HTTPException
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from sqlalchemy.orm import Session
from starlette.exceptions import HTTPException as StarletteHTTPException

from .auth import get_password_hash
from .config import Settings, load_settings
from .database import Base, build_engine, build_session_factory
from .exceptions import EntryError
from .models import User
from .policy import Role
from .routers import auth as auth_router
from .routers import dashboard as dashboard_router
from .routers import entries as entries_router
from .routers import users as users_router

log = logging.getLogger("outreach")


def error_response(status_code: int, message: str, errors: Optional[list] = None) -> JSONResponse:
    content = {"detail": message}
    if errors is not None:
        content["errors"] = errors
    return JSONResponse(status_code=status_code, content=content)


def seed_admin(db: Session, settings: Settings) -> None:
    """Create the bootstrap admin from settings, or promote an existing account."""
    if not (settings.admin_email and settings.admin_password):
        return
    user = db.query(User).filter(User.email == settings.admin_email).first()
    if user is None:
        db.add(User(
            email=settings.admin_email,
            password_hash=get_password_hash(settings.admin_password),
            name=settings.admin_name,
            role=Role.ADMIN.value,
        ))
        log.info("Created admin user %s", settings.admin_email)
    elif user.role != Role.ADMIN.value:
        user.role = Role.ADMIN.value
        log.info("Promoted %s to admin", settings.admin_email)
    db.commit()


def register_exception_handlers(app: FastAPI) -> None:

    @app.exception_handler(EntryError)
    async def entry_error_handler(request: Request, exc: EntryError):
        log.warning("Entry rejected (%s): %s %s", exc.status_code, exc.message, exc.errors)
        return error_response(exc.status_code, exc.message, exc.errors)

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        return error_response(exc.status_code, str(exc.detail))

    @app.exception_handler(StarletteHTTPException)
    async def starlette_http_exception_handler(request: Request, exc: StarletteHTTPException):
        # 404/405 from routing
        return error_response(exc.status_code, str(exc.detail))

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        log.warning("Validation error: %s", exc.errors())
        errors = [
            {
                "field": ".".join(str(p) for p in err["loc"] if p not in ("body", "query", "path")),
                "message": err["msg"],
            }
            for err in exc.errors()
        ]
        return error_response(400, "Validation failed", errors)

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        # never leak a stack trace to the client
        log.exception("Unhandled error: %s", exc)
        return error_response(500, "Internal server error")


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or load_settings()
    logging.basicConfig(level=settings.log_level)

    engine = build_engine(settings.database_url)
    session_factory = build_session_factory(engine)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        Base.metadata.create_all(bind=engine)
        db = session_factory()
        try:
            seed_admin(db, settings)
        finally:
            db.close()
        yield
        engine.dispose()

    app = FastAPI(title="Outreach Records", lifespan=lifespan)
    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = session_factory

    register_exception_handlers(app)

    @app.get("/api/health")
    def health_check():
        return {"status": "healthy"}

    # dashboard before entries so /stats and /analytics win over /{entry_id}
    app.include_router(auth_router.router)
    app.include_router(dashboard_router.router)
    app.include_router(entries_router.router)
    app.include_router(users_router.router)
    return app


app = create_app()
