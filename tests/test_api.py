"""HTTP tests for the endpoints wired in redphone/main.py and its routers.

Covers the health endpoints (/api/health, /api/version, /api/config), the chat
endpoint with its validation and rate limiting, and the session, case,
policy and scenario routers.
"""

from unittest.mock import MagicMock

import pytest
from fastapi import Request
from fastapi.testclient import TestClient

from redphone.__version__ import __build_date__, __commit_sha__, __version__
from redphone.main import app, get_client_ip, install_services, limiter

HEP_PROMPT = "Can you help me with my HEP pricing in Solution Builder?"
EXCEPTION_REQUEST = "I need approval for a 35% discount on a $600k enterprise new business deal"


@pytest.fixture
def client(settings_env):
    """Fresh services and rate-limit counters for every test."""
    settings_env(SUBMISSION_LATENCY_SECONDS="0")
    install_services(app)
    limiter.reset()
    return TestClient(app)


def _chat(client, message, session_id, ip="10.0.0.1"):
    return client.post(
        "/api/chat",
        json={"message": message, "sessionId": session_id},
        headers={"X-Forwarded-For": ip},
    )


def _valid_draft() -> dict:
    return {
        "title": "Enterprise discount exception",
        "category": "Pricing",
        "priority": "high",
        "description": "Customer requests 15% on an enterprise new business deal",
        "businessJustification": "Strategic logo with expansion potential across regions",
        "dealValue": 80000,
        "discountRequested": 15,
        "segment": "enterprise",
    }


class TestHealthEndpoints:
    def test_health(self, client):
        resp = client.get("/api/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok"}

    def test_version(self, client):
        resp = client.get("/api/version")
        assert resp.json() == {
            "version": __version__,
            "build_date": __build_date__,
            "commit_sha": __commit_sha__,
        }

    def test_config_defaults(self, client, monkeypatch):
        monkeypatch.delenv("BRAND_NAME", raising=False)
        data = client.get("/api/config").json()
        assert data["BRAND_NAME"] == "Red Phone Assistant"
        assert data["CHAT_MAX_MESSAGE_LENGTH"] == 5000
        assert data["SESSION_ID_MAX_LENGTH"] == 64

    def test_config_reads_environment(self, client, settings_env):
        settings_env(BRAND_NAME="Deal Desk", CHAT_MAX_MESSAGE_LENGTH="200")
        data = client.get("/api/config").json()
        assert data["BRAND_NAME"] == "Deal Desk"
        assert data["CHAT_MAX_MESSAGE_LENGTH"] == 200

    def test_metrics_are_exposed(self, client):
        client.get("/api/health")
        resp = client.get("/api/metrics")
        assert resp.status_code == 200


class TestChatEndpoint:
    def test_scenario_turn(self, client):
        resp = _chat(client, HEP_PROMPT, "api-1")
        assert resp.status_code == 200
        assert resp.headers["X-Request-Id"]
        data = resp.json()
        assert data["responseType"] == "scenario_match"
        assert data["scenarioId"] == "hep-pricing"
        assert data["requiresCase"] is True
        assert data["actions"][0]["type"] == "create_case"
        assert "caseDraft" not in data

    def test_case_suggestion_turn(self, client):
        data = _chat(client, EXCEPTION_REQUEST, "api-1").json()
        assert data["responseType"] == "case_suggestion"
        assert data["compliance"]["overallCompliance"] == "non_compliant"
        assert data["routing"]["routing"]["primaryApprover"] == "VP Sales + CEO"
        assert data["routing"]["routing"]["approvalLevel"] == 6

    def test_message_too_long(self, client):
        resp = _chat(client, "a" * 5001, "api-1")
        assert resp.status_code == 400
        assert resp.json()["detail"] == "Message too long"

    @pytest.mark.parametrize("session_id", ["   ", "s" * 65])
    def test_invalid_session_id(self, client, session_id):
        resp = _chat(client, "hi", session_id)
        assert resp.status_code == 400
        assert resp.json()["detail"] == "Invalid sessionId"

    def test_missing_fields_are_rejected(self, client):
        resp = client.post("/api/chat", json={"message": "hi"})
        assert resp.status_code == 422

    def test_rate_limit(self, client, settings_env):
        settings_env(CHAT_RATE_LIMIT="2/minute", SUBMISSION_LATENCY_SECONDS="0")
        for _ in range(2):
            assert _chat(client, "hi", "rl", ip="2.2.2.2").status_code == 200
        assert _chat(client, "hi", "rl", ip="2.2.2.2").status_code == 429
        assert _chat(client, "hi", "rl", ip="2.2.2.3").status_code == 200


class TestSessionsRouter:
    def test_summary_and_stats(self, client):
        _chat(client, HEP_PROMPT, "api-s")
        summary = client.get("/api/sessions/api-s").json()
        assert summary["sessionId"] == "api-s"
        assert summary["messageCount"] == 2
        assert summary["pendingActions"][0]["type"] == "create_case"

        stats = client.get("/api/sessions/stats").json()
        assert stats["totalContexts"] == 1

    def test_delete_then_missing(self, client):
        _chat(client, HEP_PROMPT, "api-s")
        assert client.delete("/api/sessions/api-s").status_code == 204
        assert client.delete("/api/sessions/api-s").status_code == 404
        assert client.get("/api/sessions/api-s").status_code == 404


class TestCasesRouter:
    def test_draft_from_session(self, client):
        _chat(client, EXCEPTION_REQUEST, "api-c")
        resp = client.post("/api/cases/draft", json={"sessionId": "api-c"})
        assert resp.status_code == 200
        data = resp.json()
        assert data["draft"]["dealValue"] == 600000
        assert data["draft"]["discountRequested"] == 35
        assert data["draft"]["category"] == "pricing"
        assert 0 < data["confidence"] <= 1

    def test_draft_from_scenario(self, client):
        _chat(client, HEP_PROMPT, "api-c")
        resp = client.post(
            "/api/cases/draft", json={"sessionId": "api-c", "scenarioId": "hep-pricing"}
        )
        draft = resp.json()["draft"]
        assert draft["scenarioId"] == "hep-pricing"
        assert draft["requiredFields"] == ["max_first_year_spend", "deal_length"]
        assert draft["fields"] == {"max_first_year_spend": "", "deal_length": ""}

    def test_draft_errors(self, client):
        assert client.post("/api/cases/draft", json={"sessionId": "nobody"}).status_code == 404
        _chat(client, HEP_PROMPT, "api-c")
        resp = client.post("/api/cases/draft", json={"sessionId": "api-c", "scenarioId": "nope"})
        assert resp.status_code == 404
        assert resp.json()["detail"] == "Scenario not found"
        assert client.post("/api/cases/draft", json={"sessionId": ""}).status_code == 422

    def test_assess(self, client):
        resp = client.post("/api/cases/assess", json=_valid_draft())
        assert resp.status_code == 200
        data = resp.json()
        assert data["validation"]["valid"] is True
        assert data["compliance"]["overallCompliance"] == "conditional"
        assert data["routing"]["routing"]["primaryApprover"] == "Regional Director"

    def test_submit(self, client):
        resp = client.post("/api/cases", json=_valid_draft())
        assert resp.status_code == 201
        data = resp.json()
        assert data["caseId"].startswith("CASE-")
        assert data["status"] == "Submitted"
        assert data["draft"]["title"] == "Enterprise discount exception"

    def test_submit_invalid_draft(self, client):
        resp = client.post("/api/cases", json={"description": "no title"})
        assert resp.status_code == 422
        assert resp.json()["detail"] == ["Title is required"]


class TestPoliciesRouter:
    def test_discount(self, client):
        data = client.get(
            "/api/policies/discount", params={"segment": "enterprise", "region": "apac"}
        ).json()
        assert data["success"] is True
        assert data["policy"]["max_discount"] == 20
        assert data["policy"]["effective_max"] == 27

    def test_discount_miss(self, client):
        data = client.get(
            "/api/policies/discount", params={"segment": "nobody", "dealType": "renewal"}
        ).json()
        assert data["success"] is False
        assert data["policy"] is None

    def test_minimums(self, client):
        data = client.get("/api/policies/minimums", params={"segment": "smb"}).json()
        assert data["policy"]["minimum_seats"] == 5

    def test_approval(self, client):
        data = client.get(
            "/api/policies/approval", params={"discount": 25, "dealValue": 300000}
        ).json()
        assert data["guidance"][-1] == (
            "This deal requires approval from both: Regional Director and VP Sales"
        )
        assert client.get("/api/policies/approval").status_code == 400

    def test_pilot(self, client):
        data = client.get("/api/policies/pilot/enterprise").json()
        assert data["policy"]["duration"] == "60 days"
        assert client.get("/api/policies/pilot/forever").json()["success"] is False


class TestScenariosRouter:
    def test_list(self, client):
        data = client.get("/api/scenarios").json()
        assert data["total"] == 6
        assert data["categories"][0] == "Compensation"
        legal = client.get("/api/scenarios", params={"category": "Legal"}).json()
        assert [item["id"] for item in legal["items"]] == ["legal-terms"]

    def test_get(self, client):
        data = client.get("/api/scenarios/hep-pricing").json()
        assert data["caseInfo"]["requiredFields"] == ["max_first_year_spend", "deal_length"]
        assert client.get("/api/scenarios/unknown").status_code == 404


class TestGetClientIp:
    """Tests for get_client_ip helper function."""

    def test_get_client_ip_from_forwarded_header(self):
        mock_request = MagicMock(spec=Request)
        mock_request.headers.get.return_value = "  192.168.1.1  , 10.0.0.1"
        mock_request.client.host = "127.0.0.1"
        assert get_client_ip(mock_request) == "192.168.1.1"

    def test_get_client_ip_from_client_host(self):
        mock_request = MagicMock(spec=Request)
        mock_request.headers.get.return_value = None
        mock_request.client.host = "127.0.0.1"
        assert get_client_ip(mock_request) == "127.0.0.1"

    def test_get_client_ip_without_client(self):
        mock_request = MagicMock(spec=Request)
        mock_request.headers.get.return_value = None
        mock_request.client = None
        assert get_client_ip(mock_request) == "unknown"
