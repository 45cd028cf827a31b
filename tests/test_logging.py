import json
import logging
import tempfile
from pathlib import Path

import pytest
from fastapi import FastAPI
from starlette.testclient import TestClient

from redphone.app_logging import JsonFormatter, init_logging, scrub


def _clear_handlers(name: str) -> logging.Logger:
    logger = logging.getLogger(name)
    logger.handlers.clear()
    return logger


@pytest.fixture
def log_dir(monkeypatch):
    with tempfile.TemporaryDirectory() as tmpdir:
        monkeypatch.setenv("LOG_DIR", tmpdir)
        yield Path(tmpdir)
    logging.getLogger("redphone").handlers.clear()
    logging.getLogger("uvicorn.access").handlers.clear()


def test_package_loggers_write_to_app_log(log_dir):
    app_logger = _clear_handlers("redphone")
    _clear_handlers("uvicorn.access")

    app = FastAPI()
    init_logging(app)
    assert app.logger is app_logger

    logging.getLogger("redphone.cases.routing").warning("routing degraded")
    for handler in app_logger.handlers:
        handler.flush()

    assert "routing degraded" in (log_dir / "app.log").read_text()


def test_access_log_masks_contact_fields(log_dir, app_factory):
    _clear_handlers("redphone")
    _clear_handlers("uvicorn.access")
    app = app_factory(log_dir, log_request_bodies=True)

    with TestClient(app) as client:
        resp = client.post(
            "/echo",
            json={
                "customer": {"email": "buyer@acme.example", "phone": "555-0100"},
                "dealValue": 600000,
            },
            headers={"X-Request-Id": "deal-42"},
        )
        assert resp.status_code == 200
        assert resp.headers["X-Request-Id"] == "deal-42"

    access_logger = logging.getLogger("uvicorn.access")
    for handler in access_logger.handlers:
        handler.flush()

    access_line = (log_dir / "access.log").read_text().splitlines()[-1]
    data = json.loads(access_line.split(": ", 1)[1])
    assert data["request_id"] == "deal-42"
    assert data["body"]["customer"] == {"email": "***", "phone": "***"}
    assert data["body"]["dealValue"] == 600000


def test_json_formatter_includes_logger_name():
    record = logging.LogRecord(
        "redphone.assistant", logging.WARNING, __file__, 1, "degraded %s", ("turn",), None
    )
    data = json.loads(JsonFormatter().format(record))
    assert data["level"] == "WARNING"
    assert data["logger"] == "redphone.assistant"
    assert data["message"] == "degraded turn"


def test_scrub_masks_nested_contact_fields():
    scrubbed = scrub(
        {"contacts": [{"phone": "555", "name": "Ada"}], "customerEmail": "a@b.example"}
    )
    assert scrubbed == {
        "contacts": [{"phone": "***", "name": "Ada"}],
        "customerEmail": "***",
    }
