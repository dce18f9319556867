"""Structured logging, request_id propagation and the error envelope."""

import json
import logging

from fastapi import FastAPI, Request
from fastapi.testclient import TestClient

from gather.core.errors import AppError, app_error_handler, unhandled_exception_handler
from gather.core.logging import JsonFormatter, PrettyFormatter, log_event, request_id_ctx_var
from gather.core.middleware.request_id import RequestIdMiddleware


def _make_app():
    app = FastAPI()
    app.add_middleware(RequestIdMiddleware)
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    @app.get("/")
    async def root(request: Request):
        return {"request_id": getattr(request.state, "request_id", None)}

    @app.get("/boom")
    async def boom():
        raise RuntimeError("secret detail")

    return app


def _record(**extra) -> logging.LogRecord:
    record = logging.LogRecord("gather", logging.INFO, __file__, 1, "plan.created", None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_generates_request_id_when_missing():
    resp = TestClient(_make_app()).get("/")
    assert resp.headers["x-request-id"] == resp.json()["request_id"]


def test_echoes_provided_request_id():
    resp = TestClient(_make_app()).get("/", headers={"X-Request-Id": "rid-123"})
    assert resp.headers["x-request-id"] == "rid-123"


def test_request_id_in_response_and_logs(client, caplog):
    with caplog.at_level(logging.INFO, logger="gather"):
        response = client.get("/healthz")
    rid = response.headers.get("x-request-id")
    records = [r for r in caplog.records if getattr(r, "request_id", None) == rid]
    assert records
    assert any(r.getMessage() == "request.complete" for r in records)


def test_unhandled_error_hides_message():
    client = TestClient(_make_app(), raise_server_exceptions=False)
    resp = client.get("/boom", headers={"X-Request-Id": "rid-500"})
    assert resp.status_code == 500
    body = resp.json()
    assert body["error"] == {"code": "internal_error", "message": "Unexpected error", "request_id": "rid-500"}
    assert "secret" not in resp.text


def test_log_event_carries_structured_fields(caplog):
    token = request_id_ctx_var.set("rid-ctx")
    try:
        with caplog.at_level(logging.INFO, logger="gather"):
            log_event("info", "plan.created", user_id="u1", plan_id="p1", extra={"note": "x" * 600})
    finally:
        request_id_ctx_var.reset(token)

    record = caplog.records[-1]
    assert record.request_id == "rid-ctx"
    assert record.user_id == "u1"
    assert record.plan_id == "p1"
    assert record.note.endswith("...<truncated>")
    assert len(record.note) < 600


def test_json_formatter():
    line = JsonFormatter().format(_record(request_id="r1", plan_id="p1", event_type="join"))
    payload = json.loads(line)
    assert payload["message"] == "plan.created"
    assert payload["request_id"] == "r1"
    assert payload["plan_id"] == "p1"
    assert payload["event_type"] == "join"
    assert "user_id" not in payload


def test_pretty_formatter():
    line = PrettyFormatter().format(_record(request_id="r1", plan_id="p1"))
    assert "[gather] [rid=r1] [plan=p1] plan.created" in line
