"""
Photo Refine - FastAPI Backend
==============================

REST API around the refinement controller.

Run:
    uvicorn photorefine.api.main:app --port 8000

Endpoints:
    POST /enhance   - Enhance one image (mode + sliders)
    GET  /modes     - Modes and slider presets
    GET  /health    - Health check
"""

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .. import __version__, config
from ..core.errors import InputError
from ..core.neural import initialize_models
from ..core.refinement import RefinementController
from .middleware.error_handler import ErrorHandlerMiddleware, input_error_handler
from .middleware.logging import RequestLoggingMiddleware, configure_request_log
from .routers import enhance, health

logger = logging.getLogger(__name__)


def create_app(controller: RefinementController = None, log_dir: str = config.LOG_DIR) -> FastAPI:
    app = FastAPI(
        title="Photo Refine API",
        description="Quality-driven photo enhancement",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    # Last added runs outermost: the request id is set before errors are handled
    app.add_middleware(ErrorHandlerMiddleware)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_exception_handler(InputError, input_error_handler)

    app.include_router(enhance.router)
    app.include_router(health.router)

    app.state.controller = controller or RefinementController()

    @app.on_event("startup")
    async def startup_event():
        configure_request_log(log_dir)
        if controller is None:
            app.state.controller.initialize()
        models = app.state.controller.models
        logger.info(
            f"Photo Refine v{__version__} ready - "
            f"{'neural service' if models.initialized else 'local filters'} "
            f"({models.error or 'ok'})"
        )

    return app


app = create_app()
