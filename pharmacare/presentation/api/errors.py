from typing import Dict, Type

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from ...domain.exceptions import (
    AccessDeniedError,
    AccountError,
    ConflictError,
    DeliveryError,
    ExpiredError,
    InvalidCredentials,
    InvalidToken,
    MismatchError,
    MissingFields,
    NotFoundError,
    StoreError,
    ValidationError,
    WeakPassword,
)
from .schemas.account_schemas import ErrorResponse

# Most specific classes first; the first isinstance match wins.
_STATUS_BY_KIND: Dict[Type[AccountError], int] = {
    InvalidCredentials: status.HTTP_401_UNAUTHORIZED,
    InvalidToken: status.HTTP_400_BAD_REQUEST,
    ValidationError: status.HTTP_400_BAD_REQUEST,
    ExpiredError: status.HTTP_400_BAD_REQUEST,
    MismatchError: status.HTTP_400_BAD_REQUEST,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    ConflictError: status.HTTP_409_CONFLICT,
    AccessDeniedError: status.HTTP_403_FORBIDDEN,
    DeliveryError: status.HTTP_502_BAD_GATEWAY,
    StoreError: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def status_for(exc: AccountError) -> int:
    for kind, code in _STATUS_BY_KIND.items():
        if isinstance(exc, kind):
            return code
    return status.HTTP_400_BAD_REQUEST


def error_body(exc: AccountError) -> ErrorResponse:
    return ErrorResponse(
        error=type(exc).__name__,
        detail=exc.message,
        violations=exc.violations if isinstance(exc, WeakPassword) else [],
        fields=exc.fields if isinstance(exc, MissingFields) else [],
    )


async def account_error_handler(request: Request, exc: AccountError) -> JSONResponse:
    return JSONResponse(status_code=status_for(exc), content=error_body(exc).model_dump())


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AccountError, account_error_handler)
