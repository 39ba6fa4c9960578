from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request

from natours.application.errors import NotFoundError
from natours.config import Settings, settings as default_settings
from natours.infrastructure.db.session import Database
from natours.infrastructure.logging import configure_logging, get_logger
from natours.interfaces.api.v1.router import api_router
from natours.interfaces.api.v1.routes.bookings import webhook_router
from natours.interfaces.http.error_handlers import build_error_responder, register_error_handlers
from natours.interfaces.http.pipeline import RequestPipeline, RequestPipelineMiddleware
from natours.interfaces.http.stages import build_default_stages
from natours.interfaces.web.templating import templates
from natours.interfaces.web.views import router as views_router

logger = get_logger(__name__)

PUBLIC_DIR = Path(__file__).resolve().parent / "public"
ALL_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]

OPENAPI_DESCRIPTION = """
Tour-booking API for tours, users, reviews and bookings.

How to call this API:
- Sign up at `POST /api/v1/users/signup` or log in at `POST /api/v1/users/login`.
- Send the returned token as `Authorization: Bearer <token>`, or rely on the `jwt` cookie.
- List endpoints accept filters (`price[gte]=100`), `sort`, `fields`, `page` and `limit`.
"""

OPENAPI_TAGS = [
    {"name": "health", "description": "Service health and connectivity checks."},
    {"name": "tours", "description": "Tour catalogue, statistics and geo queries."},
    {"name": "users", "description": "Authentication, own profile and user administration."},
    {"name": "reviews", "description": "Tour reviews; ratings summaries follow every change."},
    {"name": "bookings", "description": "Checkout sessions, payment webhook and booking administration."},
]


def create_app(settings: Settings = default_settings, database: Database | None = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging(settings)
        logger.info("app_startup", app_name=settings.app_name, version=settings.app_version, env=settings.node_env)
        if database is None:
            app.state.database = Database(settings.database_url)
            app.state.database.connect()
        try:
            yield
        finally:
            app.state.database.close()
            logger.info("app_shutdown", app_name=settings.app_name)

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description=OPENAPI_DESCRIPTION,
        openapi_tags=OPENAPI_TAGS,
        lifespan=lifespan,
    )
    app.state.settings = settings
    if database is not None:
        app.state.database = database

    app.add_middleware(
        RequestPipelineMiddleware,
        pipeline=RequestPipeline(build_default_stages(settings, public_dir=PUBLIC_DIR)),
        error_responder=build_error_responder(settings, templates),
    )
    register_error_handlers(app, settings, templates)

    app.include_router(views_router)
    app.include_router(webhook_router)
    app.include_router(api_router)

    @app.api_route("/{full_path:path}", methods=ALL_METHODS, include_in_schema=False)
    def not_found(full_path: str, request: Request):
        context = getattr(request.state, "context", None)
        original_url = context.original_url if context is not None else request.url.path
        raise NotFoundError(f"Can't find {original_url} on this server!")

    return app


app = create_app()
