# src/shadefast_stage/api/v1/endpoints/__init__.py
"""API endpoint modules for version 1."""

from .trending import router as trending_router
from .uploads import router as uploads_router

__all__ = [
    "trending_router",
    "uploads_router",
]
