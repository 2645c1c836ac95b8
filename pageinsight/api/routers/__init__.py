"""API router factory functions."""
from .analyze import create_analyze_router
from .systems import create_systems_router

__all__ = [
    "create_analyze_router",
    "create_systems_router",
]
