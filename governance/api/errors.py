"""Translation of governance rejections into HTTP responses."""
from __future__ import annotations

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from governance.core.errors import (
    AuthorizationError,
    CryptographicError,
    GovernanceError,
    ProposalNotFoundError,
    StateError,
    ValidationError,
)

_STATUS_BY_ERROR: tuple[tuple[type[GovernanceError], int], ...] = (
    (ProposalNotFoundError, status.HTTP_404_NOT_FOUND),
    (AuthorizationError, status.HTTP_403_FORBIDDEN),
    (StateError, status.HTTP_409_CONFLICT),
    (ValidationError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (CryptographicError, status.HTTP_400_BAD_REQUEST),
)


def status_for(exc: GovernanceError) -> int:
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status_code
    return status.HTTP_400_BAD_REQUEST


async def governance_error_handler(request: Request, exc: GovernanceError) -> JSONResponse:
    return JSONResponse(
        status_code=status_for(exc),
        content={"detail": str(exc), "error": type(exc).__name__},
    )


def register_exception_handlers(application: FastAPI) -> None:
    application.add_exception_handler(GovernanceError, governance_error_handler)  # type: ignore[arg-type]


__all__ = ["governance_error_handler", "register_exception_handlers", "status_for"]
