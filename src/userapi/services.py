"""Service layer: one storage statement per operation."""

import logging
from typing import NoReturn

from fastapi import HTTPException, status
from prometheus_client import Counter
from sqlalchemy.engine import Row
from sqlalchemy.exc import SQLAlchemyError

from .database import Database
from .models.user import User


logger = logging.getLogger(__name__)

USERS_CREATED = Counter("users_created_total", "Total users created")
STORAGE_ERRORS = Counter(
    "storage_errors_total", "Storage failures by operation", ["operation"]
)

DATABASE_UNAVAILABLE = "Database connection failed"
CREATE_FAILED = "Failed to create user"
INVALID_CREDENTIALS = "User not found or incorrect credentials"


def _handle_service_error(
    operation: str, exc: Exception, status_code: int, detail: str
) -> NoReturn:
    """Log a storage error and raise a generic HTTP exception for it."""
    STORAGE_ERRORS.labels(operation=operation).inc()
    logger.exception("%s failed", operation, exc_info=exc)
    raise HTTPException(status_code=status_code, detail=detail) from exc


def check_database(database: Database) -> None:
    """Raise a 500 unless the database answers a ping."""
    try:
        database.ping()
    except SQLAlchemyError as exc:
        _handle_service_error(
            "healthcheck", exc, status.HTTP_500_INTERNAL_SERVER_ERROR, DATABASE_UNAVAILABLE
        )


def create_user(database: Database, username: str, password: str, age: int) -> None:
    """Insert one user row; the generated id is not returned."""
    try:
        with database.session() as session:
            session.add(User(username=username, password=password, age=age))
            session.commit()
    except SQLAlchemyError as exc:
        _handle_service_error(
            "create_user", exc, status.HTTP_500_INTERNAL_SERVER_ERROR, CREATE_FAILED
        )
    USERS_CREATED.inc()


def find_user(database: Database, username: str, password: str) -> Row:
    """Return ``(username, age)`` of the first row matching both credentials.

    A missing row and a storage failure both raise the same 401 so callers
    cannot tell which credential was wrong.
    """
    try:
        with database.session() as session:
            row = (
                session.query(User.username, User.age)
                .filter(User.username == username, User.password == password)
                .first()
            )
    except SQLAlchemyError as exc:
        _handle_service_error(
            "find_user", exc, status.HTTP_401_UNAUTHORIZED, INVALID_CREDENTIALS
        )
    if row is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail=INVALID_CREDENTIALS
        )
    return row
