"""
Configuration gating, production validation, error envelope and ops endpoints.
"""
import json
import logging

import pytest
from fastapi import APIRouter
from fastapi.testclient import TestClient

from core.config import settings, validate_production_config
from core.features import BILLING, INSIGHTS, log_feature_configuration, missing_credentials
from core.logging import JSONFormatter
from main import app
from services.insight_provider import get_insight_provider
from tests.helpers import auth_headers, make_user


class TestFeatureGating:
    def test_missing_openai_key_disables_insights(self, client, db_session, monkeypatch):
        monkeypatch.setattr(settings, "OPENAI_API_KEY", None)
        user = make_user(db_session, credits=50)

        resp = client.post(
            "/v1/insights", json={"relationships": [{"type": "friend"}]}, headers=auth_headers(user)
        )

        assert resp.status_code == 503
        assert resp.json() == {"error": "Insights is not configured on this server", "code": "CONFIGURATION_ERROR"}
        assert missing_credentials(INSIGHTS) == ["OPENAI_API_KEY"]

    def test_provider_dependency_refuses_without_key(self, monkeypatch):
        from core.exceptions import ConfigurationError

        monkeypatch.setattr(settings, "OPENAI_API_KEY", None)
        with pytest.raises(ConfigurationError):
            get_insight_provider()

    def test_missing_webhook_secret_disables_webhook(self, client, monkeypatch):
        monkeypatch.setattr(settings, "STRIPE_WEBHOOK_SECRET", None)
        resp = client.post("/v1/billing/webhooks/stripe", content=b"{}", headers={"stripe-signature": "x"})
        assert resp.status_code == 503
        assert missing_credentials(BILLING) == ["STRIPE_WEBHOOK_SECRET"]

    def test_other_routes_keep_working_without_credentials(self, client, headers, monkeypatch):
        monkeypatch.setattr(settings, "OPENAI_API_KEY", None)
        monkeypatch.setattr(settings, "STRIPE_SECRET_KEY", None)
        assert client.get("/v1/credits", headers=headers).status_code == 200
        assert client.get("/v1/insights/archive", headers=headers).status_code == 200

    def test_startup_report_logs_disabled_features(self, monkeypatch, caplog):
        monkeypatch.setattr(settings, "OPENAI_API_KEY", None)
        with caplog.at_level(logging.INFO, logger="core.features"):
            status = log_feature_configuration()

        assert status == {INSIGHTS: False, BILLING: True}
        assert any("Feature 'insights' disabled" in r.getMessage() for r in caplog.records)


class TestProductionValidation:
    def test_non_production_is_lenient(self):
        validate_production_config(
            environment="development", debug=True, cors_origins=None, missing_credentials=["OPENAI_API_KEY"]
        )

    def test_debug_in_production_fails(self):
        with pytest.raises(ValueError, match="DEBUG must be False"):
            validate_production_config(environment="production", debug=True, cors_origins="https://app.example.com")

    def test_missing_cors_in_production_fails(self):
        with pytest.raises(ValueError, match="CORS_ORIGINS"):
            validate_production_config(environment="production", debug=False, cors_origins=" ")

    def test_missing_credentials_in_production_fail(self):
        with pytest.raises(ValueError, match="Missing required credentials"):
            validate_production_config(
                environment="production",
                debug=False,
                cors_origins="https://app.example.com",
                missing_credentials=["STRIPE_SECRET_KEY"],
            )

    def test_complete_production_config_passes(self):
        validate_production_config(
            environment="production", debug=False, cors_origins="https://app.example.com", missing_credentials=[]
        )


class TestErrorEnvelope:
    def test_unknown_route(self, client):
        resp = client.get("/v1/nope")
        assert resp.status_code == 404
        assert resp.json() == {"error": "Not Found"}

    def test_unhandled_exception_is_opaque(self):
        router = APIRouter()

        @router.get("/__boom")
        def boom():
            raise RuntimeError("secret internals")

        app.include_router(router)
        try:
            resp = TestClient(app, raise_server_exceptions=False).get("/__boom")
        finally:
            app.router.routes = [r for r in app.router.routes if getattr(r, "path", None) != "/__boom"]

        assert resp.status_code == 500
        assert resp.json() == {"error": "Internal server error"}
        assert "secret" not in resp.text


class TestOps:
    def test_health(self, client):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.json()["status"] == "healthy"
        assert resp.json()["features"] == {"insights": True, "billing": True}

    def test_health_reports_disabled_feature_but_stays_healthy(self, client, monkeypatch):
        monkeypatch.setattr(settings, "STRIPE_SECRET_KEY", None)
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.json()["features"]["billing"] is False

    def test_ping(self, client):
        assert client.get("/ping").json() == {"pong": True}


def test_json_formatter_merges_extra_fields():
    record = logging.LogRecord("bodycount", logging.INFO, __file__, 1, "Credits debited", None, None)
    record.extra_fields = {"user_id": "u1", "amount": 10}

    payload = json.loads(JSONFormatter().format(record))

    assert payload["message"] == "Credits debited"
    assert payload["level"] == "INFO"
    assert payload["user_id"] == "u1"
    assert payload["amount"] == 10
