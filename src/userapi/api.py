"""FastAPI application exposing health check, user creation and user lookup."""

import binascii
import logging
from base64 import b64decode
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request, status
from fastapi.responses import PlainTextResponse
from fastapi.security import HTTPBasic, HTTPBasicCredentials
from fastapi.security.utils import get_authorization_scheme_param
from prometheus_client import Counter
from pydantic import BaseModel, Field, ValidationError
from sqlalchemy.exc import SQLAlchemyError

from .config import Settings, settings as default_settings
from .database import Database
from .services import check_database, create_user, find_user


logger = logging.getLogger(__name__)

WELCOME_MESSAGE = "Welcome to the User API Server!"

# Prometheus counter to track API requests by method, endpoint and status code
REQUEST_COUNTER = Counter(
    "api_requests_total",
    "Total API requests",
    ["method", "endpoint", "status"],
)

UNMATCHED_ENDPOINT = "unmatched"
INVALID_BODY = "Invalid request body"


class UTF8HTTPBasic(HTTPBasic):
    """HTTP Basic credentials decoded as UTF-8 rather than ASCII."""

    async def __call__(self, request: Request) -> HTTPBasicCredentials:
        authorization = request.headers.get("Authorization")
        scheme, param = get_authorization_scheme_param(authorization)
        unauthorized = HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Basic"},
        )
        if not (authorization and scheme.lower() == "basic" and param):
            raise unauthorized
        try:
            data = b64decode(param, validate=True).decode("utf-8")
        except (ValueError, binascii.Error):
            raise unauthorized
        username, separator, password = data.partition(":")
        if not separator:
            raise unauthorized
        return HTTPBasicCredentials(username=username, password=password)


security = UTF8HTTPBasic()
router = APIRouter()


class UserCreate(BaseModel):
    """Request body for creating a user."""

    username: str = Field(..., strict=True)
    password: str = Field(..., strict=True)
    age: int = Field(..., strict=True)


class UserResponse(BaseModel):
    """Public view of a user; the password is never included."""

    username: str
    age: int


class MessageResponse(BaseModel):
    message: str


def _endpoint_label(request: Request) -> str:
    """Route template the request matched, so metrics do not grow per path."""
    route = request.scope.get("route")
    return getattr(route, "path_format", UNMATCHED_ENDPOINT)


async def log_requests(request: Request, call_next):
    """Log incoming requests and their outcomes while updating metrics."""
    logger.info("request %s %s", request.method, request.url.path)
    try:
        response = await call_next(request)
        REQUEST_COUNTER.labels(
            method=request.method,
            endpoint=_endpoint_label(request),
            status=str(response.status_code),
        ).inc()
        logger.info(
            "response %s %s status %s",
            request.method,
            request.url.path,
            response.status_code,
        )
        return response
    except Exception:
        REQUEST_COUNTER.labels(
            method=request.method,
            endpoint=_endpoint_label(request),
            status="500",
        ).inc()
        logger.exception(
            "error handling %s %s", request.method, request.url.path
        )
        raise


async def parse_user_body(request: Request) -> UserCreate:
    """Decode the body as JSON whatever the Content-Type header says."""
    body = await request.body()
    try:
        return UserCreate.model_validate_json(body)
    except ValidationError as exc:
        logger.info(
            "invalid body for %s %s: %s",
            request.method,
            request.url.path,
            exc.errors(include_url=False),
        )
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail=INVALID_BODY
        ) from exc


async def not_found_handler(request: Request, exc: Exception) -> PlainTextResponse:
    """Answer unknown paths with the welcome text, as the root route does."""
    return PlainTextResponse(WELCOME_MESSAGE)


def get_database(request: Request) -> Database:
    """Return the Database wired into the running application."""
    return request.app.state.database


@router.get("/", response_class=PlainTextResponse)
def index() -> str:
    return WELCOME_MESSAGE


@router.get("/healthcheck", response_class=PlainTextResponse)
def healthcheck(database: Database = Depends(get_database)) -> str:
    """Ping the database; 500 if it cannot be reached."""
    check_database(database)
    return "OK"


@router.post(
    "/user",
    response_model=MessageResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_user_endpoint(
    user: UserCreate = Depends(parse_user_body),
    database: Database = Depends(get_database),
) -> MessageResponse:
    create_user(database, user.username, user.password, user.age)
    return MessageResponse(message="User created successfully")


@router.get("/getuser", response_model=UserResponse)
def get_user_endpoint(
    credentials: HTTPBasicCredentials = Depends(security),
    database: Database = Depends(get_database),
) -> UserResponse:
    """Look up a user by the Basic Auth username and password."""
    row = find_user(database, credentials.username, credentials.password)
    return UserResponse(username=row.username, age=row.age)


def create_app(
    settings: Settings | None = None, database: Database | None = None
) -> FastAPI:
    """Build the application around a single Database.

    When ``database`` is omitted one is created from ``settings``. The users
    table is bootstrapped on startup; any failure there aborts startup.
    """
    settings = settings or default_settings
    if database is None:
        database = Database(
            settings.database_url,
            pool_size=settings.pool_size,
            max_overflow=settings.pool_max_overflow,
            connect_timeout=settings.db_connect_timeout,
        )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        try:
            database.init_db()
        except SQLAlchemyError:
            logger.critical("database bootstrap failed", exc_info=True)
            raise
        yield
        database.close()

    app = FastAPI(title=settings.api_title, lifespan=lifespan)
    app.state.settings = settings
    app.state.database = database
    app.middleware("http")(log_requests)
    app.add_exception_handler(status.HTTP_404_NOT_FOUND, not_found_handler)
    app.include_router(router)
    return app
