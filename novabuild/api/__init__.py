"""
API module - All route handlers.
"""
from . import health, projects

__all__ = [
    "health",
    "projects",
]
