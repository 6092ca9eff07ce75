"""
Tests for the FastAPI application factory.
"""

from __future__ import annotations

from fastapi import FastAPI
from fastapi.testclient import TestClient

from docgate import __version__
from docgate.api.app import create_app
from docgate.api.deps import get_settings
from docgate.core.settings import GatewaySettings
from docgate.stores.sqlite import SQLiteDocumentStore


class TestCreateApp:
    def test_returns_fastapi_instance(self, settings, store):
        assert isinstance(create_app(settings=settings, store=store), FastAPI)

    def test_routes_registered(self, store):
        settings = GatewaySettings(collections=["widgets", "users"], api_prefix="/v2/", rpc_path="/jsonrpc", _env_file=None)
        app = create_app(settings=settings, store=store)
        paths = [r.path for r in app.routes]
        assert "/v2/widgets" in paths
        assert "/v2/users/{target_id:path}" in paths
        assert "/jsonrpc" in paths
        assert "/health" in paths

    def test_rpc_method_prefix(self, store):
        settings = GatewaySettings(collections=["widgets"], rpc_method_prefix="db.", _env_file=None)
        app = create_app(settings=settings, store=store)
        assert "db.widgets:find" in app.state.rpc_server.methods

    def test_settings_on_state(self, store):
        settings = GatewaySettings(debug=True, _env_file=None)
        app = create_app(settings=settings, store=store)
        assert app.state.settings.debug is True
        assert app.dependency_overrides[get_settings]() is settings

    def test_owned_store_closed_on_shutdown(self, tmp_path):
        settings = GatewaySettings(database_path=str(tmp_path / "gw.db"), _env_file=None)
        app = create_app(settings=settings)
        assert isinstance(app.state.store, SQLiteDocumentStore)
        with TestClient(app) as client:
            assert client.post("/api/documents", json={"fields": {"a": 1}}).status_code == 201
        assert app.state.owns_store is True


class TestHealthAndMiddleware:
    def test_health(self, client):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.json() == {
            "status": "healthy",
            "service": "docgate",
            "version": __version__,
            "collections": ["widgets"],
        }

    def test_request_id_generated(self, client):
        assert client.get("/health").headers["x-request-id"]

    def test_request_id_propagated(self, client):
        resp = client.get("/api/widgets", headers={"X-Request-ID": "req-42"})
        assert resp.headers["x-request-id"] == "req-42"
