import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.engine import Engine

from task_manager import __version__, config
from task_manager.database import create_db_engine, dispose_engine, init_db
from task_manager.errors import AppError
from task_manager.routers import auth, tasks

logger = logging.getLogger(__name__)


def _describe_validation_error(exc: RequestValidationError) -> str:
    parts = []
    for error in exc.errors():
        loc = ".".join(str(p) for p in error.get("loc", ()) if p != "body")
        parts.append(f"{loc}: {error.get('msg')}" if loc else str(error.get("msg")))
    return "; ".join(parts) or "Invalid request"


def create_app(engine: Optional[Engine] = None) -> FastAPI:
    """
    Creates and configures the FastAPI application.

    When no engine is given, one is built from DATABASE_URL on startup and
    disposed on shutdown.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owns_engine = engine is None
        app.state.engine = create_db_engine() if owns_engine else engine
        init_db(app.state.engine)
        try:
            yield
        finally:
            if owns_engine:
                dispose_engine(app.state.engine)

    app = FastAPI(
        title="Smart Task Manager",
        description="Per-user task tracking with filtering, pagination and analytics.",
        version=__version__,
        lifespan=lifespan,
    )

    # --- Middleware Configuration ---
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # --- Error Handling ---
    @app.exception_handler(AppError)
    async def handle_app_error(request: Request, exc: AppError):
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.message}, headers=exc.headers)

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation_error(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"detail": _describe_validation_error(exc)},
        )

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": "Internal server error"},
        )

    # --- API Endpoints ---
    @app.get("/")
    def read_root():
        return {"message": "Welcome to the Smart Task Manager API!"}

    @app.get("/health")
    def health():
        return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}

    app.include_router(auth.router)
    app.include_router(tasks.router)

    return app


# Create the FastAPI app instance
app = create_app()


def run() -> None:
    import uvicorn

    from task_manager.logging_setup import setup_logging

    setup_logging(config.LOG_LEVEL)
    uvicorn.run(app, host=config.HOST, port=config.PORT, log_config=None)


if __name__ == "__main__":
    run()
