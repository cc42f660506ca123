"""Health probes, cross-cutting middleware and JSON error handlers."""

import pytest

from oversight import create_app
from oversight.config import ProductionConfig, config
from oversight.utils.errors import E


class TestHealth:
    def test_ready(self, client):
        res = client.get("/api/v1/health/ready")
        assert res.status_code == 200
        assert res.get_json() == {"status": "ok"}

    def test_health_checks(self, client):
        res = client.get("/api/v1/health")
        assert res.status_code == 200
        data = res.get_json()
        assert data["status"] == "healthy"
        assert data["checks"]["database"]["status"] == "ok"
        assert data["checks"]["cache"] == {"status": "ok", "backend": "memory"}
        assert data["checks"]["app"]["env"] == "testing"


class TestMiddleware:
    def test_security_and_timing_headers(self, client):
        res = client.get("/api/v1/health/ready")
        assert res.headers["X-Content-Type-Options"] == "nosniff"
        assert res.headers["X-Frame-Options"] == "DENY"
        assert "X-Request-Duration-Ms" in res.headers

    def test_request_id_propagated(self, client):
        res = client.get("/api/v1/health/ready", headers={"X-Request-ID": "abc123"})
        assert res.headers["X-Request-ID"] == "abc123"

    def test_non_json_body_rejected(self, client, pm, headers):
        res = client.post("/api/v1/objectives", headers={**headers(pm), "Content-Type": "text/plain"},
                          data="title=x")
        assert res.status_code == 415


class TestErrorHandlers:
    def test_unknown_route_is_json_404(self, client):
        res = client.get("/api/v1/nowhere")
        assert res.status_code == 404
        assert res.get_json()["path"] == "/api/v1/nowhere"

    def test_wrong_method_is_json_405(self, client):
        res = client.delete("/api/v1/health/ready")
        assert res.status_code == 405
        assert res.get_json() == {"error": "Method not allowed"}

    def test_service_not_found_shape(self, client, pm, headers):
        res = client.get("/api/v1/objectives/404", headers=headers(pm))
        assert res.status_code == 404
        body = res.get_json()
        assert body["error"] == "InvestmentObjective not found"
        assert body["code"] == E.NOT_FOUND

    def test_bad_token(self, client):
        res = client.get("/api/v1/dashboard/kpis", headers={"Authorization": "Bearer not-a-jwt"})
        assert res.status_code == 401


class TestProductionConfig:
    def test_missing_database_url_refuses_to_start(self, monkeypatch):
        monkeypatch.setattr(ProductionConfig, "SQLALCHEMY_DATABASE_URI", None)
        monkeypatch.setenv("SECRET_KEY", "prod-secret")
        with pytest.raises(RuntimeError, match="DATABASE_URL"):
            create_app("production")

    def test_missing_secret_key_refuses_to_start(self, monkeypatch):
        monkeypatch.setattr(ProductionConfig, "SQLALCHEMY_DATABASE_URI", "postgresql://db/oversight")
        monkeypatch.delenv("SECRET_KEY", raising=False)
        with pytest.raises(RuntimeError, match="SECRET_KEY"):
            create_app("production")

    def test_complete_environment_accepted(self, monkeypatch):
        monkeypatch.setattr(config["production"], "SQLALCHEMY_DATABASE_URI", "postgresql://db/oversight")
        monkeypatch.setenv("SECRET_KEY", "prod-secret")
        assert config["production"]().SQLALCHEMY_DATABASE_URI == "postgresql://db/oversight"
