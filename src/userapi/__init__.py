"""User API package: a small FastAPI service over a single users table."""

from .api import create_app
from .database import Database

__all__ = ["create_app", "Database"]
