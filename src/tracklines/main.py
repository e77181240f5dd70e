"""Main FastAPI application for tracklines."""

from contextlib import asynccontextmanager
from typing import Awaitable, Callable, Optional

from fastapi import Depends, FastAPI
from fastapi.responses import JSONResponse

from . import __version__
from .api import lines, trackers, view
from .api.dependencies import get_context
from .api.middleware import ProblemDetailsMiddleware, register_problem_handlers
from .context import TrackerContext, create_context
from .db.database import check_connection
from .utils.logging_config import get_logger

logger = get_logger('main')

ContextFactory = Callable[[], Awaitable[TrackerContext]]


def create_app(context_factory: Optional[ContextFactory] = None) -> FastAPI:
    """
    Build the application.

    Args:
        context_factory: Coroutine function returning an unstarted
            ``TrackerContext``. Defaults to ``create_context`` with the
            process configuration.
    """
    factory = context_factory or create_context

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        context = await factory()
        app.state.context = context
        await context.start()
        logger.info(f"tracklines {__version__} ready")
        try:
            yield
        finally:
            await context.shutdown()
            logger.info("tracklines stopped")

    app = FastAPI(
        title="tracklines",
        description="Personal time tracker with pausable work sessions",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    app.add_middleware(ProblemDetailsMiddleware)
    register_problem_handlers(app)

    app.include_router(trackers.router)
    app.include_router(lines.router)
    app.include_router(view.router)

    @app.get("/health")
    async def health_check(context: TrackerContext = Depends(get_context)):
        """Health check endpoint. Reports storage reachability when a database is attached."""
        checks = {"reconciler": context.reconciler.running}
        errors = []

        if context.engine is not None:
            error = await check_connection(context.engine)
            checks["database"] = error is None
            if error:
                errors.append(f"Database check failed: {error}")

        healthy = all(checks.values())
        response = {
            "status": "healthy" if healthy else "degraded",
            "service": "tracklines",
            "version": __version__,
            "checks": checks,
        }
        if errors:
            response["errors"] = errors

        return JSONResponse(content=response, status_code=200 if healthy else 503)

    return app


app = create_app()
