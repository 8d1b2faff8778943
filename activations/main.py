import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from activations.domain.errors import AmbiguousActivation, PersistenceError
from activations.infrastructure.backend import close_backend, open_backend
from activations.logging import setup_logging
from activations.presentation.api import api
from activations.settings import get_settings

logger = logging.getLogger(__name__)

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    # startup
    await open_backend(settings)
    try:
        yield
    finally:
        # shutdown
        await close_backend(settings)


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(PersistenceError)
    async def persistence_error_handler(request: Request, exc: PersistenceError):
        logger.error(
            "activation store unavailable",
            extra={"path": request.url.path, "error": str(exc)},
        )
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"detail": "activation store unavailable"},
        )

    @app.exception_handler(AmbiguousActivation)
    async def ambiguous_activation_handler(request: Request, exc: AmbiguousActivation):
        logger.warning(
            "ambiguous activation lookup",
            extra={"path": request.url.path, "error": str(exc)},
        )
        return JSONResponse(
            status_code=status.HTTP_409_CONFLICT,
            content={"detail": "ambiguous activation"},
        )


def create_app() -> FastAPI:
    setup_logging(settings.log_level, settings.app_env)
    app = FastAPI(title="Activations API", version="0.1.0", lifespan=lifespan)
    app.state.settings = settings
    register_exception_handlers(app)
    app.include_router(api)
    return app


app = create_app()
