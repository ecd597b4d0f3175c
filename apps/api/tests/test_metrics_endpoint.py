from __future__ import annotations

from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from crm_authz.authz.entities import EntityRegistry
from crm_authz.authz.seed import initialize_permissions
from crm_authz.authz.service import AuthorizationService, entity_registry, set_authorization_service
from crm_authz.authz.store import InMemoryPermissionStore
from crm_authz.core.auth import issue_token
from crm_authz.core.config import get_settings
from crm_authz.core.database import Base, get_db
from crm_authz.crm.repositories import register_crm_entities
from crm_authz.main import app


@pytest.fixture()
def db_session() -> Generator[Session, None, None]:
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def configure_env(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    monkeypatch.setenv("METRICS_ENABLED", "true")
    get_settings.cache_clear()
    yield
    set_authorization_service(AuthorizationService(InMemoryPermissionStore(), entity_registry))
    get_settings.cache_clear()


@pytest.fixture()
def client(db_session: Session) -> Generator[TestClient, None, None]:
    registry = EntityRegistry()
    register_crm_entities(registry, sessionmaker(bind=db_session.bind, autocommit=False, autoflush=False))
    service = AuthorizationService(InMemoryPermissionStore(), registry)
    initialize_permissions(service.store)
    set_authorization_service(service)

    def override_get_db() -> Generator[Session, None, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def _headers(user_id: int, role: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {issue_token(user_id, role)}"}


def test_metrics_endpoint_exposes_http_and_authz_metrics(client: TestClient) -> None:
    health = client.get("/health")
    assert health.status_code == 200

    lead = client.post("/api/crm/leads", json={"name": "Metrics Lead"}, headers=_headers(3, "User"))
    assert lead.status_code == 201

    denied = client.get(f"/api/crm/leads/{lead.json()['id']}", headers=_headers(4, "User"))
    assert denied.status_code == 403

    metrics = client.get("/metrics", headers=_headers(1, "Admin"))
    assert metrics.status_code == 200
    body = metrics.text

    assert "http_requests_total" in body
    assert "http_request_duration_seconds" in body
    assert "authz_decisions_total" in body
    assert "authz_seed_runs_total" in body

    assert 'path="/health"' in body
    assert 'path="/api/crm/leads/{id}"' in body
    assert 'check="permission",outcome="allow"' in body
    assert 'check="entity",outcome="deny"' in body


def test_metrics_endpoint_requires_settings_view(client: TestClient) -> None:
    anonymous = client.get("/metrics")
    assert anonymous.status_code == 401

    read_only = client.get("/metrics", headers=_headers(5, "ReadOnly"))
    assert read_only.status_code == 403


def test_metrics_endpoint_hidden_when_disabled(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("METRICS_ENABLED", "false")
    get_settings.cache_clear()

    response = client.get("/metrics", headers=_headers(1, "Admin"))
    assert response.status_code == 404
