import logging

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError, SQLAlchemyError

from .api import applications as applications_api
from .api import competences as competences_api
from .api import users as users_api
from .config import Settings, load_settings
from .database import build_engine, build_session_factory, init_db
from .utils.error_handlers import AppError, create_error_response, get_error_message
from .utils.jwt import TokenService

logger = logging.getLogger(__name__)

_default_origins = ["http://localhost:5173", "http://127.0.0.1:5173"]


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        if exc.status_code >= 500:
            logger.error("%s on %s: %s", exc.code, request.url.path, exc.message)
        return create_error_response(exc.status_code, exc.message, exc.code, exc.details)

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        return create_error_response(exc.status_code, str(exc.detail), "HTTP_ERROR")

    @app.exception_handler(RequestValidationError)
    async def request_validation_error_handler(request: Request, exc: RequestValidationError):
        # Malformed bodies are plain input errors for our clients, not 422s.
        errors = [
            {"field": ".".join(str(p) for p in err.get("loc", ())), "message": err.get("msg")}
            for err in exc.errors()
        ]
        return create_error_response(
            400,
            get_error_message("validation_error"),
            "VALIDATION_ERROR",
            {"errors": errors},
        )

    @app.exception_handler(OperationalError)
    async def sqlalchemy_operational_error_handler(request: Request, exc: OperationalError):
        logger.exception("Database OperationalError: %s", exc)
        return create_error_response(503, get_error_message("database_error"), "DATABASE_UNAVAILABLE")

    @app.exception_handler(SQLAlchemyError)
    async def sqlalchemy_error_handler(request: Request, exc: SQLAlchemyError):
        logger.exception("Database SQLAlchemyError: %s", exc)
        return create_error_response(500, get_error_message("database_error"), "DATABASE_ERROR")

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled exception: %s", exc)
        return create_error_response(500, get_error_message("server_error"), "SERVER_ERROR")


def create_app(settings: Settings | None = None) -> FastAPI:
    """
    Build the API with its own engine, session factory and token service.
    Handlers reach them through `app.state` via the dependencies in utils.dependencies.
    """
    settings = settings or load_settings()

    app = FastAPI(title="HireFlow")
    app.state.settings = settings
    app.state.engine = build_engine(settings.database_url)
    app.state.session_factory = build_session_factory(app.state.engine)
    app.state.token_service = TokenService(settings.jwt_secret)

    app.include_router(users_api.router)
    app.include_router(applications_api.router)
    app.include_router(competences_api.router)

    _register_exception_handlers(app)

    @app.get("/health")
    def health_check():
        """Health check endpoint."""
        return {
            "status": "Backend running",
            "service": "HireFlow"
        }

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[*_default_origins, *settings.frontend_origins],
        allow_origin_regex=r"^https?://(localhost|127\.0\.0\.1)(:\d+)?$",
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.on_event("startup")
    def on_startup() -> None:
        init_db(app.state.engine)
        logger.info("Database ready (%s)", app.state.engine.dialect.name)

    @app.on_event("shutdown")
    def on_shutdown() -> None:
        app.state.engine.dispose()

    return app


def run() -> None:
    """Console entrypoint: `hireflow` (or `uvicorn --factory hireflow.main:create_app`)."""
    import uvicorn

    settings = load_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run(create_app(settings), host=settings.server_host, port=settings.server_port)


if __name__ == "__main__":
    run()
