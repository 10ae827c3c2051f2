# src/shadefast_stage/main.py
"""Main entry point for the ShadeFast Stage application."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from shadefast_stage.api.v1 import trending_router, uploads_router
from shadefast_stage.core.errors import ApiError, method_not_allowed
from shadefast_stage.core.http import error_response
from shadefast_stage.core.settings import settings

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title="ShadeFast Stage API",
    description="Upload moderation and trending listings for ShadeFast",
    version=settings.app_version,
)

# Include API routers
app.include_router(uploads_router, prefix="/api/v1")
app.include_router(trending_router, prefix="/api/v1")


@app.exception_handler(ApiError)
async def handle_api_error(request: Request, exc: ApiError) -> JSONResponse:
    """Render structured API errors."""
    return error_response(exc)


@app.exception_handler(StarletteHTTPException)
async def handle_http_exception(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Render framework HTTP errors in the same envelope as API errors."""
    if exc.status_code == 405:
        return error_response(method_not_allowed())
    code = "not_found" if exc.status_code == 404 else f"http_{exc.status_code}"
    return error_response(ApiError(exc.status_code, code, str(exc.detail)))


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint to verify the service is running."""
    return {"status": "ok"}


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint with basic information about the API."""
    return {
        "name": "ShadeFast Stage API",
        "version": settings.app_version,
        "docs": "/docs",
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("shadefast_stage.main:app", host="0.0.0.0", port=8000, reload=settings.debug)
