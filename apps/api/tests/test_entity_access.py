from __future__ import annotations

from collections.abc import Generator

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from crm_authz.authz.entities import EntityAccessResolver, EntityRegistry, OwnedEntity
from crm_authz.authz.store import ASSIGNED_TO_TEAM, ASSIGNED_TO_USER, DbPermissionStore
from crm_authz.core.database import Base
from crm_authz.crm.models import CRMAccount, CRMLead, CRMOpportunity
from crm_authz.crm.repositories import register_crm_entities


@pytest.fixture()
def session_factory() -> Generator[sessionmaker[Session], None, None]:
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    Base.metadata.create_all(bind=engine)
    try:
        yield SessionLocal
    finally:
        Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def registry(session_factory: sessionmaker[Session]) -> EntityRegistry:
    registry = EntityRegistry()
    register_crm_entities(registry, session_factory)
    return registry


@pytest.fixture()
def resolver(session_factory: sessionmaker[Session], registry: EntityRegistry) -> EntityAccessResolver:
    return EntityAccessResolver(DbPermissionStore(session_factory), registry)


def _add(session_factory: sessionmaker[Session], row: CRMLead | CRMAccount | CRMOpportunity) -> int:
    with session_factory() as session:
        session.add(row)
        session.commit()
        return row.id


def test_registry_knows_crm_entity_types(registry: EntityRegistry) -> None:
    assert registry.known_types() == ["account", "contact", "lead", "opportunity"]
    assert "lead" in registry
    assert "invoice" not in registry


def test_lookup_returns_uniform_owner_view(session_factory: sessionmaker[Session], registry: EntityRegistry) -> None:
    lead_id = _add(session_factory, CRMLead(name="Acme lead", owner_id=7))
    account_id = _add(session_factory, CRMAccount(name="Acme", owner_id=None))

    assert registry.get_entity_by_id("lead", lead_id) == OwnedEntity(entity_type="lead", entity_id=lead_id, owner_id=7)
    assert registry.get_entity_by_id("account", account_id) == OwnedEntity(
        entity_type="account",
        entity_id=account_id,
        owner_id=None,
    )
    assert registry.get_entity_by_id("lead", 9999) is None
    assert registry.get_entity_by_id("invoice", lead_id) is None


def test_set_owner_transfers_ownership(session_factory: sessionmaker[Session], registry: EntityRegistry) -> None:
    opportunity_id = _add(session_factory, CRMOpportunity(name="Renewal", owner_id=1))

    assert registry.set_owner("opportunity", opportunity_id, 8) is True
    entity = registry.get_entity_by_id("opportunity", opportunity_id)
    assert entity is not None
    assert entity.owner_id == 8

    assert registry.set_owner("opportunity", 9999, 8) is False
    assert registry.set_owner("invoice", opportunity_id, 8) is False


def test_unregister_removes_entity_type(registry: EntityRegistry) -> None:
    registry.unregister("contact")
    assert "contact" not in registry
    assert registry.get_entity_by_id("contact", 1) is None


def test_user_access_through_ownership_or_direct_assignment(
    session_factory: sessionmaker[Session],
    resolver: EntityAccessResolver,
) -> None:
    owned_id = _add(session_factory, CRMLead(name="Owned", owner_id=3))
    foreign_id = _add(session_factory, CRMLead(name="Foreign", owner_id=4))
    store = DbPermissionStore(session_factory)

    assert resolver.check_user_entity_access(3, "lead", owned_id) is True
    assert resolver.check_user_entity_access(3, "lead", foreign_id) is False

    store.create_assignment(
        entity_type="lead",
        entity_id=foreign_id,
        assigned_to_type=ASSIGNED_TO_USER,
        assigned_to_id=3,
        assigned_by_id=1,
        notes=None,
    )
    assert resolver.check_user_entity_access(3, "lead", foreign_id) is True
    assert resolver.check_team_entity_access(3, "lead", foreign_id) is False


def test_team_access_uses_full_team_set(session_factory: sessionmaker[Session], resolver: EntityAccessResolver) -> None:
    lead_id = _add(session_factory, CRMLead(name="Team lead", owner_id=None))
    store = DbPermissionStore(session_factory)

    first = store.create_team("North", None, None)
    second = store.create_team("South", None, None)
    store.add_team_member(first.id, 5, "Member")
    store.add_team_member(second.id, 5, "Member")
    store.create_assignment(
        entity_type="lead",
        entity_id=lead_id,
        assigned_to_type=ASSIGNED_TO_TEAM,
        assigned_to_id=second.id,
        assigned_by_id=1,
        notes=None,
    )

    assert resolver.check_team_entity_access(5, "lead", lead_id) is True
    assert resolver.check_team_entity_access(6, "lead", lead_id) is False

    assert store.delete_team(second.id) is True
    assert store.list_team_ids_for_user(5) == [first.id]
    assert resolver.check_team_entity_access(5, "lead", lead_id) is False
