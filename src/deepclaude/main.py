import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from deepclaude.api.api import api_router
from deepclaude.core.config import get_settings
from deepclaude.core.error_handler import (
    ExceptionNormalizationMiddleware,
    global_exception_handler,
    setup_logging,
)
from deepclaude.core.middleware import CorrelationIdMiddleware
from deepclaude.dependencies.dialog import close_dialog_orchestrator


logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    logger.info("%s starting", app.title)
    try:
        yield
    finally:
        close_dialog_orchestrator()
        logger.info("%s stopped; upstream connections closed", app.title)


def create_app() -> FastAPI:
    settings = get_settings()
    setup_logging()

    app = FastAPI(
        title=f"{settings.APP_NAME} API",
        description="Two-phase reasoning and answering relay",
        version="0.1.0",
        lifespan=lifespan,
    )

    # Innermost first: exceptions are normalized with the correlation id set.
    app.add_middleware(ExceptionNormalizationMiddleware)
    app.add_middleware(CorrelationIdMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(StarletteHTTPException, global_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, global_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, global_exception_handler)

    app.include_router(api_router)

    @app.get("/")
    def read_root() -> dict[str, str]:
        return {"message": f"{settings.APP_NAME} relay"}

    return app


app = create_app()


def main() -> None:
    import uvicorn

    uvicorn.run("deepclaude.main:app", host="0.0.0.0", port=8000)


if __name__ == "__main__":
    main()
