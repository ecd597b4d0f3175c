from __future__ import annotations

import logging
import threading
from collections.abc import Generator

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from crm_authz.authz.catalog import ModuleDefinition
from crm_authz.authz.entities import EntityRegistry, OwnedEntity
from crm_authz.authz.errors import (
    DuplicateTeamError,
    DuplicateTeamMemberError,
    EntityAccessDeniedError,
    PermissionDeniedError,
)
from crm_authz.authz.seed import initialize_permissions
from crm_authz.authz.service import AuthorizationService
from crm_authz.authz.store import (
    ASSIGNED_TO_TEAM,
    ASSIGNED_TO_USER,
    DbPermissionStore,
    InMemoryPermissionStore,
    PermissionStore,
)
from crm_authz.core.auth import Caller
from crm_authz.core.database import Base


ADMIN = Caller(user_id=1, role="Admin")
MANAGER = Caller(user_id=2, role="Manager")
USER = Caller(user_id=3, role="User")
OTHER_USER = Caller(user_id=4, role="User")
READ_ONLY = Caller(user_id=5, role="ReadOnly")


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


@pytest.fixture(params=["inmemory", "db"])
def store(request: pytest.FixtureRequest, session_factory: sessionmaker[Session]) -> PermissionStore:
    if request.param == "db":
        return DbPermissionStore(session_factory)
    return InMemoryPermissionStore()


@pytest.fixture()
def leads() -> dict[int, OwnedEntity]:
    return {
        10: OwnedEntity(entity_type="lead", entity_id=10, owner_id=USER.user_id),
        11: OwnedEntity(entity_type="lead", entity_id=11, owner_id=OTHER_USER.user_id),
        12: OwnedEntity(entity_type="lead", entity_id=12, owner_id=None),
    }


@pytest.fixture()
def registry(leads: dict[int, OwnedEntity]) -> EntityRegistry:
    registry = EntityRegistry()
    registry.register("lead", leads.get)
    return registry


@pytest.fixture()
def service(store: PermissionStore, registry: EntityRegistry) -> AuthorizationService:
    initialize_permissions(store)
    return AuthorizationService(store, registry)


def _module_id(store: PermissionStore, name: str) -> int:
    module = store.get_module_by_name(name)
    assert module is not None
    return module.id


class _FailingStore(InMemoryPermissionStore):
    def get_module_by_name(self, name: str):  # type: ignore[no-untyped-def]
        raise RuntimeError("database unavailable")

    def has_user_assignment(self, user_id: int, entity_type: str, entity_id: int) -> bool:
        raise RuntimeError("database unavailable")


def test_admin_bypasses_every_check_without_any_rows(registry: EntityRegistry) -> None:
    service = AuthorizationService(InMemoryPermissionStore(), registry)

    assert service.has_permission(ADMIN, "invoices", "delete") is True
    assert service.has_permission(ADMIN, "nonexistent-module", "view") is True
    assert service.has_entity_access(ADMIN, "lead", 11) is True
    assert service.has_entity_access(ADMIN, "unknown-type", 999) is True


def test_override_wins_over_role_policy_in_both_directions(service: AuthorizationService) -> None:
    invoices_id = _module_id(service.store, "invoices")
    contacts_id = _module_id(service.store, "contacts")

    assert service.has_permission(USER, "invoices", "delete") is False
    service.store.set_user_permission(USER.user_id, invoices_id, "delete", True)
    assert service.has_permission(USER, "invoices", "delete") is True

    assert service.has_permission(USER, "contacts", "create") is True
    service.store.set_user_permission(USER.user_id, contacts_id, "create", False)
    assert service.has_permission(USER, "contacts", "create") is False

    assert service.has_permission(OTHER_USER, "invoices", "delete") is False
    assert service.has_permission(OTHER_USER, "contacts", "create") is True


def test_removing_override_falls_back_to_role_policy(service: AuthorizationService) -> None:
    contacts_id = _module_id(service.store, "contacts")
    service.store.set_user_permission(USER.user_id, contacts_id, "create", False)
    assert service.has_permission(USER, "contacts", "create") is False

    assert service.store.delete_user_permission(USER.user_id, contacts_id, "create") is True
    assert service.has_permission(USER, "contacts", "create") is True


def test_default_deny_without_policy_or_override(store: PermissionStore, registry: EntityRegistry) -> None:
    store.add_modules([ModuleDefinition("reports", "Reports", None, 1, None)])
    service = AuthorizationService(store, registry)

    assert service.has_permission(USER, "reports", "view") is False
    assert service.has_permission(MANAGER, "reports", "export") is False


def test_unknown_module_and_action_deny(service: AuthorizationService) -> None:
    assert service.has_permission(USER, "nonexistent-module", "view") is False
    assert service.has_permission(MANAGER, "contacts", "approve") is False


def test_seeded_role_matrix(service: AuthorizationService) -> None:
    assert service.has_permission(USER, "contacts", "create") is True
    assert service.has_permission(USER, "invoices", "delete") is False
    assert service.has_permission(USER, "settings", "view") is True
    assert service.has_permission(MANAGER, "users", "delete") is False
    assert service.has_permission(MANAGER, "invoices", "delete") is True
    assert service.has_permission(READ_ONLY, "reports", "view") is True
    assert service.has_permission(READ_ONLY, "settings", "view") is False


def test_role_policy_change_takes_effect(service: AuthorizationService) -> None:
    invoices_id = _module_id(service.store, "invoices")
    service.store.set_role_permission("User", invoices_id, "export", True)

    assert service.has_permission(USER, "invoices", "export") is True
    assert service.has_permission(READ_ONLY, "invoices", "export") is False


def test_unauthenticated_caller_is_denied(service: AuthorizationService) -> None:
    assert service.has_permission(None, "contacts", "view") is False
    assert service.has_entity_access(None, "lead", 10) is False
    assert service.has_entity_access(None, "lead", 12) is False


def test_owner_has_entity_access_without_assignments(service: AuthorizationService) -> None:
    assert service.has_entity_access(USER, "lead", 10) is True
    assert service.has_entity_access(USER, "lead", 11) is False
    assert service.has_entity_access(OTHER_USER, "lead", 11) is True


def test_direct_user_assignment_grants_access(service: AuthorizationService) -> None:
    assert service.has_entity_access(USER, "lead", 12) is False

    service.store.create_assignment(
        entity_type="lead",
        entity_id=12,
        assigned_to_type=ASSIGNED_TO_USER,
        assigned_to_id=USER.user_id,
        assigned_by_id=ADMIN.user_id,
        notes=None,
    )

    assert service.has_entity_access(USER, "lead", 12) is True
    assert service.has_entity_access(OTHER_USER, "lead", 12) is False


def test_team_assignment_grants_access_until_membership_removed(service: AuthorizationService) -> None:
    team = service.store.create_team("East", None, ADMIN.user_id)
    member = service.store.add_team_member(team.id, USER.user_id, "Member")
    service.store.create_assignment(
        entity_type="lead",
        entity_id=11,
        assigned_to_type=ASSIGNED_TO_TEAM,
        assigned_to_id=team.id,
        assigned_by_id=ADMIN.user_id,
        notes="shared",
    )

    assert service.has_entity_access(USER, "lead", 11) is True

    assert service.store.remove_team_member(member.id) is True
    assert service.has_entity_access(USER, "lead", 11) is False


def test_team_assignment_checks_every_team_of_the_user(service: AuthorizationService) -> None:
    first = service.store.create_team("Alpha", None, None)
    second = service.store.create_team("Beta", None, None)
    service.store.add_team_member(first.id, USER.user_id, "Member")
    service.store.add_team_member(second.id, USER.user_id, "Member")
    service.store.create_assignment(
        entity_type="lead",
        entity_id=12,
        assigned_to_type=ASSIGNED_TO_TEAM,
        assigned_to_id=second.id,
        assigned_by_id=None,
        notes=None,
    )

    assert service.store.list_team_ids_for_user(USER.user_id) == [first.id, second.id]
    assert service.has_entity_access(USER, "lead", 12) is True


def test_assignment_does_not_leak_to_other_entities(service: AuthorizationService) -> None:
    service.store.create_assignment(
        entity_type="lead",
        entity_id=12,
        assigned_to_type=ASSIGNED_TO_USER,
        assigned_to_id=USER.user_id,
        assigned_by_id=None,
        notes=None,
    )

    assert service.has_entity_access(USER, "contact", 12) is False
    assert service.has_entity_access(USER, "lead", 11) is False


def test_manager_blanket_entity_access_is_configurable(store: PermissionStore, registry: EntityRegistry) -> None:
    initialize_permissions(store)

    with_blanket = AuthorizationService(store, registry)
    assert with_blanket.has_entity_access(MANAGER, "lead", 11) is True

    scoped = AuthorizationService(store, registry, manager_entity_access=False)
    assert scoped.has_entity_access(MANAGER, "lead", 11) is False


def test_unknown_entity_type_denies_non_admins(service: AuthorizationService) -> None:
    assert service.has_entity_access(USER, "invoice", 10) is False
    assert service.has_entity_access(READ_ONLY, "lead", 999) is False


def test_lookup_failure_resolves_to_deny_and_is_logged(
    registry: EntityRegistry,
    caplog: pytest.LogCaptureFixture,
) -> None:
    caplog.set_level(logging.INFO)
    service = AuthorizationService(_FailingStore(), registry)

    assert service.has_permission(USER, "contacts", "view") is False
    assert service.has_entity_access(USER, "lead", 12) is False
    assert service.has_permission(ADMIN, "contacts", "view") is True

    failures = [record for record in caplog.records if record.getMessage() == "authz.lookup_failed"]
    assert len(failures) == 2
    assert all(record.levelno == logging.ERROR and record.exc_info for record in failures)


def test_registry_lookup_failure_resolves_to_deny() -> None:
    def broken_lookup(entity_id: int) -> OwnedEntity | None:
        raise RuntimeError("lookup failed")

    registry = EntityRegistry()
    registry.register("lead", broken_lookup)
    service = AuthorizationService(InMemoryPermissionStore(), registry, manager_entity_access=False)

    assert service.has_entity_access(USER, "lead", 10) is False


def test_ensure_helpers_raise_typed_errors(service: AuthorizationService) -> None:
    service.ensure_permission(USER, "contacts", "create")
    service.ensure_entity_access(USER, "lead", 10)

    with pytest.raises(PermissionDeniedError) as permission_error:
        service.ensure_permission(USER, "invoices", "delete")
    assert permission_error.value.module == "invoices"
    assert permission_error.value.action == "delete"
    assert str(permission_error.value) == "You don't have permission to delete in the invoices module"

    with pytest.raises(EntityAccessDeniedError) as access_error:
        service.ensure_entity_access(USER, "lead", 11)
    assert access_error.value.entity_id == 11
    assert str(access_error.value) == "You don't have access to this lead"


def test_denials_are_logged_with_module(service: AuthorizationService, caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO)

    assert service.has_permission(USER, "invoices", "delete") is False

    records = [record for record in caplog.records if record.getMessage() == "authz.permission_denied"]
    assert records
    assert getattr(records[-1], "authz_module", None) == "invoices"
    assert getattr(records[-1], "action", None) == "delete"
    assert getattr(records[-1], "user_id", None) == USER.user_id


def test_team_created_with_leader_in_one_write(store: PermissionStore) -> None:
    team = store.create_team("Key Accounts", "Top customers", USER.user_id, leader_role="Leader")

    members = store.list_team_members(team.id)
    assert [(member.user_id, member.role) for member in members] == [(USER.user_id, "Leader")]
    assert store.list_team_ids_for_user(USER.user_id) == [team.id]

    with pytest.raises(DuplicateTeamError):
        store.create_team("Key Accounts", None, OTHER_USER.user_id, leader_role="Leader")

    with pytest.raises(DuplicateTeamMemberError):
        store.add_team_member(team.id, USER.user_id, "Member")
    assert [row.name for row in store.list_teams()] == ["Key Accounts"]
    assert store.list_team_ids_for_user(OTHER_USER.user_id) == []

    renamed = store.create_team("Partners", None, None)
    assert store.list_team_members(renamed.id) == []
    with pytest.raises(DuplicateTeamError):
        store.update_team(renamed.id, {"name": "Key Accounts"})
    assert store.get_team(renamed.id).name == "Partners"

def test_in_memory_reads_stay_consistent_during_concurrent_admin_writes(
    registry: EntityRegistry, caplog: pytest.LogCaptureFixture
) -> None:
    store = InMemoryPermissionStore()
    service = AuthorizationService(store, registry)
    initialize_permissions(store)

    for entity_id in range(1000, 6000):
        store.create_assignment(
            entity_type="lead",
            entity_id=entity_id,
            assigned_to_type=ASSIGNED_TO_USER,
            assigned_to_id=OTHER_USER.user_id,
            assigned_by_id=ADMIN.user_id,
            notes=None,
        )
    store.create_assignment(
        entity_type="lead",
        entity_id=12,
        assigned_to_type=ASSIGNED_TO_USER,
        assigned_to_id=USER.user_id,
        assigned_by_id=ADMIN.user_id,
        notes=None,
    )
    team = store.create_team("Night Shift", None, None)
    store.add_team_member(team.id, USER.user_id, "Member")
    store.create_assignment(
        entity_type="lead",
        entity_id=11,
        assigned_to_type=ASSIGNED_TO_TEAM,
        assigned_to_id=team.id,
        assigned_by_id=ADMIN.user_id,
        notes=None,
    )
    crowd = store.create_team("Crowd", None, None)

    stop = threading.Event()
    writer_errors: list[Exception] = []

    def admin_writes() -> None:
        next_id = 10_000
        try:
            while not stop.is_set() and next_id < 30_000:
                store.create_assignment(
                    entity_type="lead",
                    entity_id=next_id,
                    assigned_to_type=ASSIGNED_TO_USER,
                    assigned_to_id=OTHER_USER.user_id,
                    assigned_by_id=ADMIN.user_id,
                    notes=None,
                )
                store.add_team_member(crowd.id, next_id, "Member")
                next_id += 1
        except Exception as exc:
            writer_errors.append(exc)

    caplog.set_level(logging.ERROR, logger="crm_authz.authz")
    writer = threading.Thread(target=admin_writes)
    writer.start()
    try:
        direct = [service.has_entity_access(USER, "lead", 12) for _ in range(200)]
        via_team = [service.has_entity_access(USER, "lead", 11) for _ in range(200)]
        listed = [len(store.list_assignments("lead", 12)) for _ in range(50)]
    finally:
        stop.set()
        writer.join(timeout=10)

    assert not writer.is_alive()
    assert writer_errors == []
    assert all(direct)
    assert all(via_team)
    assert listed == [1] * 50
    assert not [record for record in caplog.records if record.getMessage() == "authz.lookup_failed"]
