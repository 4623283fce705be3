"""
API endpoint implementations for the demo application.
"""

from contextlib import asynccontextmanager
from datetime import datetime

from fastapi import APIRouter, FastAPI, Request

from restboot.logger import UnifiedLogger
from .exceptions import APIException, InvalidNameError, create_error_response
from .models import GreetingResponse, HealthResponse


logger = UnifiedLogger(tag="api")

MAX_NAME_LENGTH = 64

router = APIRouter(tags=["restboot demo"])


@router.get("/", response_model=GreetingResponse)
async def hello():
    """Say hello."""
    return GreetingResponse(message="Hello, World!")


@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request):
    """Lightweight health check reporting when the app finished starting."""
    return HealthResponse(started_at=request.app.state.started_at)


@router.get("/greetings/{name}", response_model=GreetingResponse)
async def greet(name: str):
    """Greet ``name``."""
    cleaned = name.strip()
    if not cleaned:
        raise InvalidNameError(name, "name is blank")
    if len(cleaned) > MAX_NAME_LENGTH:
        raise InvalidNameError(name, f"longer than {MAX_NAME_LENGTH} characters")
    return GreetingResponse(message=f"Hello, {cleaned}!")


def register_exception_handlers(app):
    """Register exception handlers with the FastAPI app."""

    @app.exception_handler(APIException)
    async def api_exception_handler(request, exc: APIException):
        """Handle API-specific exceptions with proper error responses."""
        return create_error_response(exc)

    @app.exception_handler(Exception)
    async def general_exception_handler(request, exc: Exception):
        """Handle unexpected exceptions with generic error responses."""
        logger.error("Unhandled API error: {error}", error=str(exc), path=request.url.path)
        return create_error_response(exc)


@asynccontextmanager
async def lifespan(app: FastAPI):
    app.state.started_at = datetime.now()
    logger.info("Application startup complete")
    yield
    logger.info("Application shutdown complete")


def create_app() -> FastAPI:
    """Build the demo FastAPI application."""
    app = FastAPI(title="restboot demo", lifespan=lifespan)
    app.include_router(router)
    register_exception_handlers(app)
    return app
