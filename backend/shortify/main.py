"""FastAPI application entry point."""
import logging
from contextlib import asynccontextmanager
from typing import Callable, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from shortify.api.routes import router
from shortify.config import CORS_ORIGINS, logger as config_logger
from shortify.conversion import FfmpegEngine, JobRunner, Orchestrator, SourceResolver

logging.getLogger("uvicorn").setLevel(logging.INFO)


def build_orchestrator() -> Orchestrator:
    """Wire the pipeline around one shared engine. The engine initializes on first job."""
    engine = FfmpegEngine()
    return Orchestrator(resolver=SourceResolver(), runner=JobRunner(engine))


def create_app(
    orchestrator_factory: Callable[[], Orchestrator] = build_orchestrator,
    cors_origins: Optional[list[str]] = None,
) -> FastAPI:
    """Build the API. The orchestrator is created on startup and drained on shutdown."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        orchestrator = orchestrator_factory()
        app.state.orchestrator = orchestrator
        config_logger.info("Shortify API started (settle delay %.2fs)", orchestrator.settle_delay)
        yield
        if orchestrator.state.busy:
            config_logger.info("Waiting for running job (%s) before shutdown", orchestrator.state.value)
        await orchestrator.wait()
        config_logger.info("Shortify API shutting down")

    application = FastAPI(
        title="Shortify API",
        description="Turn a video file or link into a 30-second 720p short with progress tracking.",
        version="1.0.0",
        lifespan=lifespan,
    )
    origins = cors_origins if cors_origins is not None else CORS_ORIGINS
    application.add_middleware(
        CORSMiddleware,
        allow_origins=origins or ["*"],
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )
    application.include_router(router)
    return application


app = create_app()


if __name__ == "__main__":
    import uvicorn
    from shortify.config import HOST, PORT
    uvicorn.run("shortify.main:app", host=HOST, port=PORT)
