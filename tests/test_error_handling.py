# ruff: noqa: INP001
"""HTTP error envelope, request-id propagation, and request logging."""

from __future__ import annotations

import pytest
from fastapi import FastAPI, HTTPException
from fastapi.testclient import TestClient
from pydantic import BaseModel, Field
from starlette.requests import Request

from forge_api.core import error_handling
from forge_api.core.error_handling import (
    REQUEST_ID_HEADER,
    _error_payload,
    _get_request_id,
    _service_error_handler,
    install_error_handling,
)
from forge_api.core.errors import (
    ConflictError,
    ForbiddenError,
    InternalError,
    NotFoundError,
    ValidationError,
)


def _app_raising(exc: Exception) -> TestClient:
    app = FastAPI()
    install_error_handling(app)

    @app.get("/raise")
    def _raise() -> None:
        raise exc

    return TestClient(app, raise_server_exceptions=False)


@pytest.mark.parametrize(
    ("exc", "status_code", "code", "detail"),
    [
        (ValidationError("no fields to update"), 422, "validation_error", "no fields to update"),
        (NotFoundError("task not found"), 404, "not_found", "task not found"),
        (ForbiddenError(), 403, "forbidden", "not a project member"),
        (ConflictError("invite already exists"), 409, "conflict", "invite already exists"),
        (InternalError(), 500, "internal_error", "server error"),
    ],
)
def test_service_errors_map_to_status_and_code(
    exc: Exception,
    status_code: int,
    code: str,
    detail: str,
) -> None:
    resp = _app_raising(exc).get("/raise")

    assert resp.status_code == status_code
    body = resp.json()
    assert body["detail"] == detail
    assert body["code"] == code
    assert body["request_id"] == resp.headers[REQUEST_ID_HEADER]


def test_request_validation_error_lists_field_errors() -> None:
    class Payload(BaseModel):
        title: str = Field(min_length=1)

    app = FastAPI()
    install_error_handling(app)

    @app.post("/tasks")
    def create(payload: Payload) -> dict[str, str]:
        return {"title": payload.title}

    resp = TestClient(app).post("/tasks", json={"title": ""})

    assert resp.status_code == 422
    body = resp.json()
    assert isinstance(body["detail"], list)
    assert body["request_id"] == resp.headers[REQUEST_ID_HEADER]


def test_http_exception_keeps_detail() -> None:
    resp = _app_raising(HTTPException(status_code=401, detail="unauthorized")).get("/raise")

    assert resp.status_code == 401
    assert resp.json()["detail"] == "unauthorized"
    assert "code" not in resp.json()


def test_unhandled_exception_does_not_leak_details() -> None:
    resp = _app_raising(RuntimeError("db password in message")).get("/raise")

    assert resp.status_code == 500
    body = resp.json()
    assert body["detail"] == "Internal Server Error"
    assert "password" not in resp.text
    assert body["request_id"]


def test_client_request_id_is_echoed() -> None:
    client = _app_raising(NotFoundError())

    resp = client.get("/raise", headers={REQUEST_ID_HEADER: "  req-42  "})

    assert resp.json()["request_id"] == "req-42"
    assert resp.headers[REQUEST_ID_HEADER] == "req-42"


def test_slow_request_emits_slow_log(monkeypatch: pytest.MonkeyPatch) -> None:
    warnings: list[tuple[str, dict[str, object]]] = []

    def _fake_warning(message: str, *args: object, **kwargs: object) -> None:
        extra = kwargs.get("extra")
        warnings.append((message, extra if isinstance(extra, dict) else {}))

    perf_ticks = iter((10.0, 10.5))
    monkeypatch.setattr(error_handling.settings, "request_log_slow_ms", 100)
    monkeypatch.setattr(error_handling, "perf_counter", lambda: next(perf_ticks))
    monkeypatch.setattr(error_handling.logger, "warning", _fake_warning)

    app = FastAPI()
    install_error_handling(app)

    @app.get("/board")
    def board() -> dict[str, bool]:
        return {"ok": True}

    resp = TestClient(app).get("/board")

    assert resp.status_code == 200
    assert any(
        message == "http.request.slow" and extra.get("slow_threshold_ms") == 100
        for message, extra in warnings
    )


def test_get_request_id_ignores_missing_or_blank_state() -> None:
    assert _get_request_id(Request({"type": "http", "headers": [], "state": {}})) is None
    blank = Request({"type": "http", "headers": [], "state": {"request_id": ""}})
    assert _get_request_id(blank) is None


def test_error_payload_drops_empty_extras() -> None:
    assert _error_payload(detail="x", request_id=None, code=None) == {"detail": "x"}
    assert _error_payload(detail="x", request_id="r", code="conflict") == {
        "detail": "x",
        "code": "conflict",
        "request_id": "r",
    }


@pytest.mark.asyncio
async def test_service_error_handler_rejects_wrong_exception() -> None:
    req = Request({"type": "http", "headers": [], "state": {}})
    with pytest.raises(TypeError, match="Expected ServiceError"):
        await _service_error_handler(req, Exception("x"))
