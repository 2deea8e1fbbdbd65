"""Domain exceptions and their HTTP mapping."""

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from .logger_config import logger


class DomainError(Exception):
    def __init__(self, message: str, status_code: int = 400):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class BadRequestError(DomainError):
    pass


class UnauthorizedError(DomainError):
    def __init__(self, message: str):
        super().__init__(message, 401)


class ForbiddenError(DomainError):
    def __init__(self, message: str):
        super().__init__(message, 403)


class NotFoundError(DomainError):
    def __init__(self, message: str):
        super().__init__(message, 404)


class InsufficientSeatsError(DomainError):
    pass


class SeatUnavailableError(DomainError):
    pass


class InvalidTransitionError(DomainError):
    pass


class OperationFailedError(DomainError):
    """A database transaction failed and was rolled back."""


async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.exception(f"Domain error: {exc.message}")
    else:
        logger.error(f"Domain error on {request.method} {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    logger.error(f"Validation error: {exc.errors()}")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": jsonable_errors(exc)},
    )


async def general_500_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled exception: {exc}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"},
    )


def jsonable_errors(exc: RequestValidationError) -> list:
    return [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg", ""), "type": err.get("type", "")}
        for err in exc.errors()
    ]


EXCEPTION_HANDLERS = {
    DomainError: domain_error_handler,
    RequestValidationError: validation_error_handler,
    Exception: general_500_exception_handler,
}


def register_exception_handlers(app: FastAPI):
    for exception_class, handler in EXCEPTION_HANDLERS.items():
        app.add_exception_handler(exception_class, handler)
