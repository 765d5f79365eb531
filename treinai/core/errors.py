from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException

from treinai.core.exceptions import TreinAIError
from treinai.core.logging import get_logger
from treinai.schemas.response import ErrorResponse
from treinai.core.config import settings

logger = get_logger(__name__)


def _error_response(status_code: int, error: str, code: str, details=None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder(
            ErrorResponse(error=error, code=code, details=details).model_dump()
        )
    )


def add_exception_handlers(app: FastAPI):
    """
    Registers exception handlers with the FastAPI app.
    """
    @app.exception_handler(TreinAIError)
    async def treinai_exception_handler(request: Request, exc: TreinAIError):
        if exc.status_code >= 500:
            logger.error(
                f"{exc.code}: {exc.message}",
                extra={"method": request.method, "url": str(request.url)}
            )
        return _error_response(exc.status_code, exc.message, exc.code, exc.details)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        """
        Handles standard HTTP exceptions (404, 405, etc.)
        """
        return _error_response(exc.status_code, str(exc.detail), "HTTP_ERROR")

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """
        Handles Pydantic validation errors.
        """
        return _error_response(
            422,
            "Input validation failed",
            "VALIDATION_ERROR",
            exc.errors()  # Pydantic error list
        )

    @app.exception_handler(RateLimitExceeded)
    async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
        logger.warning(
            f"Rate limit exceeded: {request.method} {request.url.path}",
            extra={"client": request.client.host if request.client else "unknown"}
        )
        return _error_response(429, f"Rate limit exceeded: {exc.detail}", "RATE_LIMITED")

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """
        Catch-all for unhandled exceptions.
        """
        logger.error(
            f"Unhandled exception: {str(exc)}",
            extra={
                "method": request.method,
                "url": str(request.url),
                "client": request.client.host if request.client else "unknown"
            },
            exc_info=True
        )

        message = "An internal error occurred. Please try again later." if settings.is_production else str(exc)

        return _error_response(500, message, "INTERNAL_ERROR")
