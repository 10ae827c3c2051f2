# src/shadefast_stage/api/v1/__init__.py
"""Version 1 API endpoints."""

from .endpoints import trending_router, uploads_router

__all__ = [
    "trending_router",
    "uploads_router",
]
