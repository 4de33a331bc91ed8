"""Custom exception classes and FastAPI exception handlers."""
from __future__ import annotations

from fastapi import FastAPI
from fastapi.responses import JSONResponse
from starlette.requests import Request


class AppError(Exception):
    """Base application error."""

    def __init__(self, detail: str, status_code: int = 500) -> None:
        self.detail = detail
        self.status_code = status_code
        super().__init__(detail)


class ValidationError(AppError):
    """Validation error (422)."""

    def __init__(self, detail: str = "Validation error") -> None:
        super().__init__(detail=detail, status_code=422)


class ParsingError(AppError):
    """Parsing error (400)."""

    def __init__(self, detail: str = "Parsing error") -> None:
        super().__init__(detail=detail, status_code=400)


class BaselineVersionError(AppError):
    """Two baselines have incompatible format versions (409).

    Carries both versions so callers can report or override explicitly.
    """

    def __init__(
        self,
        detail: str,
        source_version: str,
        target_version: str,
    ) -> None:
        self.source_version = source_version
        self.target_version = target_version
        super().__init__(detail=detail, status_code=409)


class MigrationError(AppError):
    """A baseline cannot be migrated to the requested version (422)."""

    def __init__(
        self,
        detail: str = "Migration error",
        from_version: str | None = None,
        to_version: str | None = None,
    ) -> None:
        self.from_version = from_version
        self.to_version = to_version
        super().__init__(detail=detail, status_code=422)


class BaselineIntegrityError(AppError):
    """Stored baseline hash does not match its content (422)."""

    def __init__(self, detail: str = "Baseline hash verification failed") -> None:
        super().__init__(detail=detail, status_code=422)


def register_exception_handlers(app: FastAPI) -> None:
    """Register custom exception handlers with a FastAPI app."""

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
        content: dict[str, str] = {"detail": exc.detail}
        if isinstance(exc, BaselineVersionError):
            content["source_version"] = exc.source_version
            content["target_version"] = exc.target_version
        return JSONResponse(status_code=exc.status_code, content=content)
