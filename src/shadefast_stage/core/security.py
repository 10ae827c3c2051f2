"""Access token verification for platform-issued bearer tokens."""

from __future__ import annotations

from jose import JWTError, jwt

from shadefast_stage.core.settings import settings


class InvalidTokenError(ValueError):
    """Raised when a bearer token cannot be trusted."""


def extract_bearer_token(authorization: str | None) -> str | None:
    """Return the token from an ``Authorization: Bearer <token>`` header value."""
    if not authorization or not authorization.startswith("Bearer "):
        return None
    token = authorization[len("Bearer "):].strip()
    return token or None


def verify_access_token(token: str, secret: str) -> str:
    """Verify a signed access token and return its subject (the user id).

    Args:
        token: Encoded JWT taken from the Authorization header.
        secret: Shared signing secret of the identity provider.

    Returns:
        The ``sub`` claim of the token.

    Raises:
        InvalidTokenError: If the signature, expiry or audience is invalid, or
            the token carries no subject.
    """
    try:
        payload = jwt.decode(
            token,
            secret,
            algorithms=[settings.jwt_algorithm],
            audience=settings.jwt_audience,
        )
    except JWTError as err:
        raise InvalidTokenError("Could not validate credentials") from err

    subject = payload.get("sub")
    if not isinstance(subject, str) or not subject.strip():
        raise InvalidTokenError("Token has no subject")
    return subject.strip()
