"""Structured API errors rendered as ``{"error": {"code", "message"}}`` bodies."""

from __future__ import annotations

from typing import Any

from fastapi import status


class ApiError(Exception):
    """Error that crosses the HTTP boundary with a stable machine-readable code.

    Every failure a client can observe is expressed as one of these; internal
    exceptions are logged server-side and converted before reaching a route.
    """

    def __init__(self, status_code: int, code: str, message: str) -> None:
        self.status_code = status_code
        self.code = code
        self.message = message
        super().__init__(f"{code}: {message}")

    def to_body(self) -> dict[str, Any]:
        """Return the JSON body for this error."""
        return {"error": {"code": self.code, "message": self.message}}


def misconfigured_env() -> ApiError:
    return ApiError(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "misconfigured_env",
        "Missing function secrets.",
    )


def method_not_allowed() -> ApiError:
    return ApiError(
        status.HTTP_405_METHOD_NOT_ALLOWED,
        "method_not_allowed",
        "Use POST for this route.",
    )


def invalid_json() -> ApiError:
    return ApiError(status.HTTP_400_BAD_REQUEST, "invalid_json", "Invalid JSON payload.")


def invalid_payload(message: str = "Payload fields have unexpected types.") -> ApiError:
    return ApiError(status.HTTP_400_BAD_REQUEST, "invalid_payload", message)
