"""
Main application entry point for the therapy practice backend.

Usage:
    - Direct: python -m therapy_practice.main
    - ASGI server: uvicorn therapy_practice.main:app
"""

import os

from therapy_practice import create_app
from therapy_practice.common.logger import app_logger

# Setup module logger
logger = app_logger.getChild("main")

app = create_app()


@app.get("/")
def root():
    """Root endpoint."""
    return {"message": "Therapy Practice Assessments API"}


@app.get("/health")
def health():
    return {"status": "ok"}


# Entry point for running the application directly
if __name__ == "__main__":
    import uvicorn

    host = os.environ.get("HOST", "0.0.0.0")
    port = int(os.environ.get("PORT", 8000))
    reload_enabled = os.environ.get("RELOAD", "false").lower() == "true"

    logger.info(f"Starting server on {host}:{port} (reload: {reload_enabled})")

    uvicorn.run(
        "therapy_practice.main:app",
        host=host,
        port=port,
        reload=reload_enabled,
        log_level="info"
    )
