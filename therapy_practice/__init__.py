"""
Therapy Practice Assessment Platform

This module provides the application factory for the practice backend,
exposing an API for therapists to author, share and score client assessments.

The platform features:
1. A question catalog with a shared library
2. Assessments built from ordered, per-assessment customizable questions
3. Public share links and client assignments
4. Validated, scored submissions with interpretation ranges
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI

from therapy_practice.common.logger import app_logger

logger = app_logger.getChild("app")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    FastAPI application lifespan context manager.

    Initializes the database engine on startup and disposes of it on
    shutdown.
    """
    from therapy_practice.database.init_db import initialize_database, close_database

    logger.info("Application startup sequence initiated.")
    initialize_database()
    logger.info("Application startup sequence complete. Yielding control.")

    yield

    logger.info("Application shutdown sequence initiated.")
    close_database()
    logger.info("Application shutdown sequence complete.")


def create_app(
    app_name: str = None,
    app_description: str = "Assessment authoring, sharing and scoring for therapy practices"
) -> FastAPI:
    """
    Create and configure a FastAPI application instance.

    This factory function creates a new FastAPI application with all routers,
    middleware and exception handlers configured.

    Args:
        app_name: The name of the application, defaults to ``settings.PROJECT_NAME``
        app_description: Description of the application

    Returns:
        Configured FastAPI application
    """
    from fastapi.exceptions import RequestValidationError
    from fastapi.middleware.cors import CORSMiddleware

    from therapy_practice.api import (
        main_router,
        practice_exception_handler,
        validation_exception_handler,
    )
    from therapy_practice.common.error_handling import PracticeError
    from therapy_practice.config import settings

    app = FastAPI(
        title=app_name or settings.PROJECT_NAME,
        description=app_description,
        version="0.1.0",
        lifespan=lifespan
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    _register_assessment_modules()
    app.include_router(main_router, prefix="/api")

    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(PracticeError, practice_exception_handler)

    logger.info(f"Application created with {len(app.routes)} routes")
    return app


def _register_assessment_modules() -> None:
    """Register the assessment routers with the main router once."""
    from therapy_practice.api import register_assessment_module, registered_modules
    from therapy_practice.assessments import controllers, public_controller

    modules = {
        "questions": controllers.questions_router,
        "assessments": controllers.assessments_router,
        "assignments": controllers.assignments_router,
        "submissions": controllers.submissions_router,
        "clients": controllers.clients_router,
        "notifications": controllers.notifications_router,
        "public": public_controller.router,
    }
    for name, router in modules.items():
        if name not in registered_modules:
            register_assessment_module(name=name, router=router)
