"""Main FastAPI application for the estimate import service"""

import sys
import time
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import settings
from .routes.imports import router as imports_router
from .services.import_service import ImportService, create_import_service
from .utils.logging import logger


def create_app(import_service: Optional[ImportService] = None) -> FastAPI:
    """Build the application; a service is composed from settings when none is given."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan manager"""
        # Startup
        logger.log_step("starting_estimate_import_service", {
            "host": settings.APP_HOST,
            "port": settings.APP_PORT,
            "debug": settings.DEBUG,
            "python_version": sys.version
        })

        logger.log_step("application_startup", {
            "app_name": settings.SERVICE_NAME,
            "version": settings.SERVICE_VERSION,
            "store_backend": settings.STORE_BACKEND,
            "dev_mode": settings.DEV_MODE
        })

        if getattr(app.state, "import_service", None) is None:
            app.state.import_service = create_import_service(settings)

        yield

        # Shutdown
        app.state.import_service.close()
        logger.log_step("application_shutdown")

    app = FastAPI(
        title=settings.SERVICE_NAME,
        description="Imports BMS and EMS collision estimates into customers, vehicles and jobs",
        version=settings.SERVICE_VERSION,
        lifespan=lifespan
    )
    app.state.import_service = import_service

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=settings.CORS_ALLOW_CREDENTIALS,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Request logging middleware
    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """Log all requests"""
        start_time = time.time()

        response = await call_next(request)

        process_time = time.time() - start_time

        logger.log_step("request_completed", {
            "method": request.method,
            "url": str(request.url),
            "status_code": response.status_code,
            "process_time": process_time
        })

        return response

    # Global exception handler
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Global exception handler"""
        logger.log_error("unhandled_exception", {
            "method": request.method,
            "url": str(request.url),
            "error": str(exc)
        })

        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error"}
        )

    # Include routers
    app.include_router(imports_router)

    # Root endpoint
    @app.get("/")
    async def root():
        """Root endpoint"""
        return {
            "message": settings.SERVICE_NAME,
            "version": settings.SERVICE_VERSION,
            "endpoints": {
                "health": "/api/v1/health",
                "import": "/api/v1/imports/",
                "validate": "/api/v1/imports/validate",
                "batch": "/api/v1/imports/batch",
                "batch_status": "/api/v1/imports/batch-status/{batch_id}",
                "history": "/api/v1/imports/",
                "statistics": "/api/v1/imports/statistics",
                "import_by_id": "/api/v1/imports/{import_id}",
                "cleanup": "/api/v1/imports/cleanup",
                "docs": "/docs"
            }
        }

    return app


app = create_app()
