"""HTTP response helpers shared by every route."""

from __future__ import annotations

from typing import Any

from fastapi.responses import JSONResponse, PlainTextResponse

from shadefast_stage.core.errors import ApiError

CORS_HEADERS: dict[str, str] = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "authorization, x-client-info, apikey, content-type",
    "Access-Control-Allow-Methods": "POST, OPTIONS",
}


def json_response(body: Any, status_code: int = 200) -> JSONResponse:
    """Return a JSON response carrying the permissive CORS headers."""
    return JSONResponse(content=body, status_code=status_code, headers=dict(CORS_HEADERS))


def error_response(error: ApiError) -> JSONResponse:
    """Render an ``ApiError`` as the standard error envelope."""
    return json_response(error.to_body(), error.status_code)


def preflight_response() -> PlainTextResponse:
    """Answer an ``OPTIONS`` request."""
    return PlainTextResponse("ok", status_code=200, headers=dict(CORS_HEADERS))
