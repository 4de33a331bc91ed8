"""Tests for shared error classes and exception handlers."""
from __future__ import annotations

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from src.shared.errors import (
    AppError,
    BaselineIntegrityError,
    BaselineVersionError,
    MigrationError,
    ParsingError,
    ValidationError,
    register_exception_handlers,
)


class TestAppError:
    """Tests for the base AppError exception."""

    def test_default_status_code(self):
        err = AppError(detail="something broke")
        assert err.status_code == 500
        assert err.detail == "something broke"

    def test_custom_status_code(self):
        err = AppError(detail="bad request", status_code=400)
        assert err.status_code == 400

    def test_str_is_detail(self):
        assert str(AppError(detail="human readable")) == "human readable"


class TestSubclasses:
    @pytest.mark.parametrize(
        "cls, status_code",
        [
            (ValidationError, 422),
            (ParsingError, 400),
            (MigrationError, 422),
            (BaselineIntegrityError, 422),
        ],
    )
    def test_status_codes(self, cls, status_code):
        err = cls()
        assert err.status_code == status_code
        assert isinstance(err, AppError)

    def test_version_error_carries_versions(self):
        err = BaselineVersionError("majors differ", source_version="1.0.0", target_version="2.0.0")
        assert err.status_code == 409
        assert err.source_version == "1.0.0"
        assert err.target_version == "2.0.0"

    def test_migration_error_carries_versions(self):
        err = MigrationError("no path", from_version="0.1.0", to_version="2.0.0")
        assert err.from_version == "0.1.0"
        assert err.to_version == "2.0.0"


@pytest.fixture
def error_client() -> TestClient:
    app = FastAPI()
    register_exception_handlers(app)

    @app.get("/parse")
    async def parse():
        raise ParsingError("Baseline document must be an object")

    @app.get("/version")
    async def version():
        raise BaselineVersionError(
            "Baseline format versions are incompatible",
            source_version="1.0.0",
            target_version="2.0.0",
        )

    return TestClient(app)


class TestExceptionHandlers:
    def test_app_error_rendered_as_json(self, error_client):
        resp = error_client.get("/parse")
        assert resp.status_code == 400
        assert resp.json() == {"detail": "Baseline document must be an object"}

    def test_version_error_includes_versions(self, error_client):
        resp = error_client.get("/version")
        assert resp.status_code == 409
        body = resp.json()
        assert body["source_version"] == "1.0.0"
        assert body["target_version"] == "2.0.0"
