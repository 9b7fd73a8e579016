from ems_api import create_app
from ems_api.config import DevelopmentConfig, ProductionConfig, get_config
from ems_api.extensions import normalize_db_url


def test_health(client):
    resp = client.get("/api/health")
    assert resp.status_code == 200
    assert resp.get_json() == {"success": True, "data": {"status": "ok"}}


def test_unknown_route_uses_failure_envelope(client):
    resp = client.get("/api/nope")
    assert resp.status_code == 404
    body = resp.get_json()
    assert body["success"] is False
    assert body["message"]


def test_get_config_by_name(monkeypatch):
    assert get_config("production") is ProductionConfig
    monkeypatch.setenv("EMS_ENV", "prod")
    assert get_config() is ProductionConfig
    monkeypatch.delenv("EMS_ENV")
    assert get_config() is DevelopmentConfig
    assert get_config("unheard-of") is DevelopmentConfig


def test_bad_config_object_is_ignored():
    app = create_app("ems_api.config.DoesNotExist")
    assert app.config["SQLALCHEMY_TRACK_MODIFICATIONS"] is False


def test_normalize_db_url():
    assert normalize_db_url("postgres://u:p@h/db") == "postgresql+psycopg://u:p@h/db"
    assert normalize_db_url("postgresql://u:p@h/db") == "postgresql+psycopg://u:p@h/db"
    assert normalize_db_url("sqlite:///:memory:") == "sqlite:///:memory:"
    assert normalize_db_url("") == ""
