from __future__ import annotations

from collections import Counter
from collections.abc import Generator

import pytest
from sqlalchemy import create_engine, func, select
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from crm_authz.authz.catalog import DEFAULT_MODULES, Action, Role, default_role_policy
from crm_authz.authz.models import PermissionModule, RolePermission
from crm_authz.authz.seed import initialize_permissions
from crm_authz.authz.store import DbPermissionStore, InMemoryPermissionStore, PermissionStore
from crm_authz.core.database import Base


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


def test_default_module_catalog_is_ordered_and_unique() -> None:
    names = [definition.name for definition in DEFAULT_MODULES]
    assert len(names) == 18
    assert len(set(names)) == len(names)
    assert [definition.order for definition in DEFAULT_MODULES] == list(range(1, 19))
    assert names[0] == "contacts"
    assert "purchase-orders" in names
    assert "api-keys" in names


@pytest.mark.parametrize(
    ("role", "module", "action", "expected"),
    [
        (Role.ADMIN, "settings", Action.DELETE, True),
        (Role.MANAGER, "invoices", Action.DELETE, True),
        (Role.MANAGER, "users", Action.DELETE, False),
        (Role.MANAGER, "settings", Action.DELETE, False),
        (Role.MANAGER, "subscriptions", Action.DELETE, False),
        (Role.MANAGER, "subscriptions", Action.EXPORT, True),
        (Role.USER, "invoices", Action.VIEW, True),
        (Role.USER, "contacts", Action.CREATE, True),
        (Role.USER, "communications", Action.UPDATE, True),
        (Role.USER, "invoices", Action.CREATE, False),
        (Role.USER, "contacts", Action.DELETE, False),
        (Role.USER, "leads", Action.EXPORT, False),
        (Role.READ_ONLY, "reports", Action.VIEW, True),
        (Role.READ_ONLY, "settings", Action.VIEW, False),
        (Role.READ_ONLY, "users", Action.VIEW, False),
        (Role.READ_ONLY, "contacts", Action.UPDATE, False),
    ],
)
def test_default_role_policy_matrix(role: Role, module: str, action: Action, expected: bool) -> None:
    assert default_role_policy(role, module, action) is expected


def test_seed_creates_catalog_and_full_policy_grid(store: PermissionStore) -> None:
    assert store.has_modules() is False

    assert initialize_permissions(store) is True

    modules = store.list_modules()
    assert [module.name for module in modules] == [definition.name for definition in DEFAULT_MODULES]
    assert all(module.is_active for module in modules)

    for role in Role:
        rows = store.list_role_permissions(role.value)
        assert len(rows) == len(DEFAULT_MODULES) * len(Action)

    invoices = store.get_module_by_name("invoices")
    assert invoices is not None
    policy = store.get_role_permission("User", invoices.id, "delete")
    assert policy is not None
    assert policy.is_allowed is False


def test_seed_runs_once(store: PermissionStore) -> None:
    assert initialize_permissions(store) is True
    assert initialize_permissions(store) is False

    for role in Role:
        rows = store.list_role_permissions(role.value)
        keys = Counter((row.module_id, row.action) for row in rows)
        assert keys
        assert max(keys.values()) == 1
    assert len(store.list_modules()) == len(DEFAULT_MODULES)


def test_seed_skips_when_any_module_row_exists(session_factory: sessionmaker[Session]) -> None:
    with session_factory() as session:
        session.add(PermissionModule(name="contacts", display_name="Contacts", order=1))
        session.commit()

    store = DbPermissionStore(session_factory)
    assert initialize_permissions(store) is False

    with session_factory() as session:
        assert session.scalar(select(func.count()).select_from(PermissionModule)) == 1
        assert session.scalar(select(func.count()).select_from(RolePermission)) == 0


def test_seed_is_idempotent_across_store_instances(session_factory: sessionmaker[Session]) -> None:
    assert initialize_permissions(DbPermissionStore(session_factory)) is True
    assert initialize_permissions(DbPermissionStore(session_factory)) is False

    with session_factory() as session:
        total = session.scalar(select(func.count()).select_from(RolePermission))
        distinct = session.execute(
            select(RolePermission.role, RolePermission.module_id, RolePermission.action).distinct()
        ).all()
    assert total == len(Role) * len(DEFAULT_MODULES) * len(Action)
    assert len(distinct) == total
