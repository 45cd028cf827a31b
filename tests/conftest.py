import os
import pathlib
import sys
import tempfile

import pytest
from fastapi import FastAPI, Request

sys.path.append(str(pathlib.Path(__file__).resolve().parents[1]))
os.environ.setdefault("LOG_DIR", os.path.join(tempfile.gettempdir(), "redphone-test-logs"))

from redphone.app_logging import init_logging
from redphone.assistant import build_assistant
from redphone.cases import CaseRouter, ComplianceChecker
from redphone.config import AssistantSettings, reset_settings_cache
from redphone.nlp import MessageAnalyser
from redphone.policies import HistoricalCaseIndex, PolicyKnowledgeStore
from redphone.scenarios import ScenarioCatalog


class FakeClock:
    """Monotonic clock the tests advance by hand."""

    def __init__(self, start: float = 1_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture(scope="session")
def policies() -> PolicyKnowledgeStore:
    return PolicyKnowledgeStore(historical_cases=HistoricalCaseIndex.load())


@pytest.fixture(scope="session")
def catalog() -> ScenarioCatalog:
    return ScenarioCatalog.load()


@pytest.fixture(scope="session")
def analyser() -> MessageAnalyser:
    return MessageAnalyser()


@pytest.fixture
def checker(policies) -> ComplianceChecker:
    return ComplianceChecker(policies)


@pytest.fixture
def router(policies) -> CaseRouter:
    return CaseRouter(policies)


@pytest.fixture
def assistant():
    return build_assistant(AssistantSettings())


@pytest.fixture
def settings_env(monkeypatch):
    """Set environment overrides and drop the cached settings around the test."""

    def _apply(**values: str) -> None:
        for name, value in values.items():
            monkeypatch.setenv(name, value)
        reset_settings_cache()

    yield _apply
    reset_settings_cache()


@pytest.fixture
def app_factory(monkeypatch):
    def _create_app(log_dir: str, log_request_bodies: bool = False):
        """Create a FastAPI app with logging initialised."""
        monkeypatch.setenv("LOG_DIR", str(log_dir))
        if log_request_bodies:
            monkeypatch.setenv("LOG_REQUEST_BODIES", "true")
        app = FastAPI()

        @app.post("/echo")
        async def echo(request: Request):
            return await request.json()

        init_logging(app)
        return app

    return _create_app
