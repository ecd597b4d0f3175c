from __future__ import annotations

import itertools
from collections.abc import Iterable, Sequence
from dataclasses import replace
from datetime import datetime, timezone
from threading import RLock
from typing import Any, Protocol

from sqlalchemy import and_, delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from crm_authz.authz.catalog import ModuleDefinition
from crm_authz.authz.errors import DuplicateTeamError, DuplicateTeamMemberError
from crm_authz.authz.models import (
    Assignment,
    PermissionModule,
    RolePermission,
    Team,
    TeamMember,
    UserPermission,
)
from crm_authz.authz.records import (
    AssignmentRecord,
    ModuleRecord,
    RolePolicyRecord,
    TeamMemberRecord,
    TeamRecord,
    UserOverrideRecord,
)
from crm_authz.core.database import SessionLocal


ASSIGNED_TO_USER = "user"
ASSIGNED_TO_TEAM = "team"

RolePolicyRow = tuple[str, int, str, bool]

_TEAM_FIELDS = {"name", "description", "is_active", "leader_id"}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PermissionStore(Protocol):
    """Storage interface for modules, policies, overrides, teams and assignments."""

    def has_modules(self) -> bool:
        ...

    def get_module_by_name(self, name: str) -> ModuleRecord | None:
        ...

    def get_module(self, module_id: int) -> ModuleRecord | None:
        ...

    def list_modules(self) -> list[ModuleRecord]:
        ...

    def add_modules(self, definitions: Sequence[ModuleDefinition]) -> list[ModuleRecord]:
        ...

    def get_role_permission(self, role: str, module_id: int, action: str) -> RolePolicyRecord | None:
        ...

    def add_role_permissions(self, rows: Iterable[RolePolicyRow]) -> int:
        ...

    def list_role_permissions(self, role: str) -> list[RolePolicyRecord]:
        ...

    def set_role_permission(self, role: str, module_id: int, action: str, is_allowed: bool) -> RolePolicyRecord:
        ...

    def get_user_permission(self, user_id: int, module_id: int, action: str) -> UserOverrideRecord | None:
        ...

    def list_user_permissions(self, user_id: int) -> list[UserOverrideRecord]:
        ...

    def set_user_permission(self, user_id: int, module_id: int, action: str, is_allowed: bool) -> UserOverrideRecord:
        ...

    def delete_user_permission(self, user_id: int, module_id: int, action: str) -> bool:
        ...

    def create_team(
        self,
        name: str,
        description: str | None,
        leader_id: int | None,
        *,
        leader_role: str | None = None,
    ) -> TeamRecord:
        """Create a team; with ``leader_role`` the leader joins it in the same write.

        Raises ``DuplicateTeamError`` when the name is taken.
        """
        ...

    def get_team(self, team_id: int) -> TeamRecord | None:
        ...

    def get_team_by_name(self, name: str) -> TeamRecord | None:
        ...

    def list_teams(self) -> list[TeamRecord]:
        ...

    def update_team(self, team_id: int, changes: dict[str, Any]) -> TeamRecord | None:
        ...

    def delete_team(self, team_id: int) -> bool:
        ...

    def list_team_ids_for_user(self, user_id: int) -> list[int]:
        ...

    def add_team_member(self, team_id: int, user_id: int, role: str) -> TeamMemberRecord:
        ...

    def get_team_member(self, member_id: int) -> TeamMemberRecord | None:
        ...

    def get_team_membership(self, team_id: int, user_id: int) -> TeamMemberRecord | None:
        ...

    def list_team_members(self, team_id: int) -> list[TeamMemberRecord]:
        ...

    def update_team_member(self, member_id: int, role: str) -> TeamMemberRecord | None:
        ...

    def remove_team_member(self, member_id: int) -> bool:
        ...

    def create_assignment(
        self,
        *,
        entity_type: str,
        entity_id: int,
        assigned_to_type: str,
        assigned_to_id: int,
        assigned_by_id: int | None,
        notes: str | None,
    ) -> AssignmentRecord:
        ...

    def list_assignments(self, entity_type: str, entity_id: int) -> list[AssignmentRecord]:
        ...

    def delete_assignment(self, assignment_id: int) -> bool:
        ...

    def has_user_assignment(self, user_id: int, entity_type: str, entity_id: int) -> bool:
        ...

    def has_team_assignment(self, team_ids: Sequence[int], entity_type: str, entity_id: int) -> bool:
        ...


class InMemoryPermissionStore:
    """Process-local store used by tests and local development.

    Every read and write holds one re-entrant lock, so lookups never iterate a
    dict while an administrative edit is resizing it.
    """

    def __init__(self) -> None:
        self._lock = RLock()
        self._ids = itertools.count(1)
        self._modules: dict[int, ModuleRecord] = {}
        self._role_permissions: dict[tuple[str, int, str], RolePolicyRecord] = {}
        self._user_permissions: dict[tuple[int, int, str], UserOverrideRecord] = {}
        self._teams: dict[int, TeamRecord] = {}
        self._members: dict[int, TeamMemberRecord] = {}
        self._assignments: dict[int, AssignmentRecord] = {}

    def _next_id(self) -> int:
        return next(self._ids)

    def has_modules(self) -> bool:
        with self._lock:
            return bool(self._modules)

    def get_module_by_name(self, name: str) -> ModuleRecord | None:
        with self._lock:
            return next((module for module in self._modules.values() if module.name == name), None)

    def get_module(self, module_id: int) -> ModuleRecord | None:
        with self._lock:
            return self._modules.get(module_id)

    def list_modules(self) -> list[ModuleRecord]:
        with self._lock:
            return sorted(self._modules.values(), key=lambda module: (module.order, module.id))

    def add_modules(self, definitions: Sequence[ModuleDefinition]) -> list[ModuleRecord]:
        created: list[ModuleRecord] = []
        with self._lock:
            for definition in definitions:
                if self.get_module_by_name(definition.name) is not None:
                    raise ValueError(f"module already exists: {definition.name}")
                module = ModuleRecord(
                    id=self._next_id(),
                    name=definition.name,
                    display_name=definition.display_name,
                    description=definition.description,
                    order=definition.order,
                    icon=definition.icon,
                    is_active=True,
                )
                self._modules[module.id] = module
                created.append(module)
        return created

    def get_role_permission(self, role: str, module_id: int, action: str) -> RolePolicyRecord | None:
        with self._lock:
            return self._role_permissions.get((role, module_id, action))

    def add_role_permissions(self, rows: Iterable[RolePolicyRow]) -> int:
        count = 0
        with self._lock:
            for role, module_id, action, is_allowed in rows:
                key = (role, module_id, action)
                if key in self._role_permissions:
                    continue
                self._role_permissions[key] = RolePolicyRecord(
                    id=self._next_id(),
                    role=role,
                    module_id=module_id,
                    action=action,
                    is_allowed=is_allowed,
                )
                count += 1
        return count

    def list_role_permissions(self, role: str) -> list[RolePolicyRecord]:
        with self._lock:
            rows = [row for row in self._role_permissions.values() if row.role == role]
            return sorted(rows, key=lambda row: row.id)

    def set_role_permission(self, role: str, module_id: int, action: str, is_allowed: bool) -> RolePolicyRecord:
        key = (role, module_id, action)
        with self._lock:
            current = self._role_permissions.get(key)
            if current is None:
                current = RolePolicyRecord(id=self._next_id(), role=role, module_id=module_id, action=action, is_allowed=is_allowed)
            else:
                current = replace(current, is_allowed=is_allowed, updated_at=_utcnow())
            self._role_permissions[key] = current
        return current

    def get_user_permission(self, user_id: int, module_id: int, action: str) -> UserOverrideRecord | None:
        with self._lock:
            return self._user_permissions.get((user_id, module_id, action))

    def list_user_permissions(self, user_id: int) -> list[UserOverrideRecord]:
        with self._lock:
            rows = [row for row in self._user_permissions.values() if row.user_id == user_id]
            return sorted(rows, key=lambda row: row.id)

    def set_user_permission(self, user_id: int, module_id: int, action: str, is_allowed: bool) -> UserOverrideRecord:
        key = (user_id, module_id, action)
        with self._lock:
            current = self._user_permissions.get(key)
            if current is None:
                current = UserOverrideRecord(
                    id=self._next_id(),
                    user_id=user_id,
                    module_id=module_id,
                    action=action,
                    is_allowed=is_allowed,
                )
            else:
                current = replace(current, is_allowed=is_allowed, updated_at=_utcnow())
            self._user_permissions[key] = current
        return current

    def delete_user_permission(self, user_id: int, module_id: int, action: str) -> bool:
        with self._lock:
            return self._user_permissions.pop((user_id, module_id, action), None) is not None

    def create_team(
        self,
        name: str,
        description: str | None,
        leader_id: int | None,
        *,
        leader_role: str | None = None,
    ) -> TeamRecord:
        with self._lock:
            if any(team.name == name for team in self._teams.values()):
                raise DuplicateTeamError(name)
            team = TeamRecord(
                id=self._next_id(),
                name=name,
                description=description,
                is_active=True,
                leader_id=leader_id,
                created_at=_utcnow(),
            )
            self._teams[team.id] = team
            if leader_role is not None and leader_id is not None:
                member = TeamMemberRecord(
                    id=self._next_id(), team_id=team.id, user_id=leader_id, role=leader_role, joined_at=_utcnow()
                )
                self._members[member.id] = member
        return team

    def get_team(self, team_id: int) -> TeamRecord | None:
        with self._lock:
            return self._teams.get(team_id)

    def get_team_by_name(self, name: str) -> TeamRecord | None:
        with self._lock:
            return next((team for team in self._teams.values() if team.name == name), None)

    def list_teams(self) -> list[TeamRecord]:
        with self._lock:
            return sorted(self._teams.values(), key=lambda team: team.name)

    def update_team(self, team_id: int, changes: dict[str, Any]) -> TeamRecord | None:
        with self._lock:
            team = self._teams.get(team_id)
            if team is None:
                return None
            values = {key: value for key, value in changes.items() if key in _TEAM_FIELDS}
            new_name = values.get("name")
            if new_name is not None and any(other.name == new_name and other.id != team_id for other in self._teams.values()):
                raise DuplicateTeamError(new_name)
            team = replace(team, **values, updated_at=_utcnow())
            self._teams[team_id] = team
        return team

    def delete_team(self, team_id: int) -> bool:
        with self._lock:
            if self._teams.pop(team_id, None) is None:
                return False
            for member_id in [member.id for member in self._members.values() if member.team_id == team_id]:
                del self._members[member_id]
        return True

    def list_team_ids_for_user(self, user_id: int) -> list[int]:
        with self._lock:
            return sorted({member.team_id for member in self._members.values() if member.user_id == user_id})

    def add_team_member(self, team_id: int, user_id: int, role: str) -> TeamMemberRecord:
        with self._lock:
            if self.get_team_membership(team_id, user_id) is not None:
                raise DuplicateTeamMemberError(team_id, user_id)
            member = TeamMemberRecord(id=self._next_id(), team_id=team_id, user_id=user_id, role=role, joined_at=_utcnow())
            self._members[member.id] = member
        return member

    def get_team_member(self, member_id: int) -> TeamMemberRecord | None:
        with self._lock:
            return self._members.get(member_id)

    def get_team_membership(self, team_id: int, user_id: int) -> TeamMemberRecord | None:
        with self._lock:
            return next(
                (member for member in self._members.values() if member.team_id == team_id and member.user_id == user_id),
                None,
            )

    def list_team_members(self, team_id: int) -> list[TeamMemberRecord]:
        with self._lock:
            members = [member for member in self._members.values() if member.team_id == team_id]
            return sorted(members, key=lambda member: member.id)

    def update_team_member(self, member_id: int, role: str) -> TeamMemberRecord | None:
        with self._lock:
            member = self._members.get(member_id)
            if member is None:
                return None
            member = replace(member, role=role)
            self._members[member_id] = member
        return member

    def remove_team_member(self, member_id: int) -> bool:
        with self._lock:
            return self._members.pop(member_id, None) is not None

    def create_assignment(
        self,
        *,
        entity_type: str,
        entity_id: int,
        assigned_to_type: str,
        assigned_to_id: int,
        assigned_by_id: int | None,
        notes: str | None,
    ) -> AssignmentRecord:
        with self._lock:
            assignment = AssignmentRecord(
                id=self._next_id(),
                entity_type=entity_type,
                entity_id=entity_id,
                assigned_to_type=assigned_to_type,
                assigned_to_id=assigned_to_id,
                assigned_by_id=assigned_by_id,
                assigned_at=_utcnow(),
                notes=notes,
            )
            self._assignments[assignment.id] = assignment
        return assignment

    def list_assignments(self, entity_type: str, entity_id: int) -> list[AssignmentRecord]:
        with self._lock:
            rows = [
                row
                for row in self._assignments.values()
                if row.entity_type == entity_type and row.entity_id == entity_id
            ]
            return sorted(rows, key=lambda row: row.id)

    def delete_assignment(self, assignment_id: int) -> bool:
        with self._lock:
            return self._assignments.pop(assignment_id, None) is not None

    def has_user_assignment(self, user_id: int, entity_type: str, entity_id: int) -> bool:
        with self._lock:
            return any(
                row.entity_type == entity_type
                and row.entity_id == entity_id
                and row.assigned_to_type == ASSIGNED_TO_USER
                and row.assigned_to_id == user_id
                for row in self._assignments.values()
            )

    def has_team_assignment(self, team_ids: Sequence[int], entity_type: str, entity_id: int) -> bool:
        with self._lock:
            wanted = set(team_ids)
            return any(
                row.entity_type == entity_type
                and row.entity_id == entity_id
                and row.assigned_to_type == ASSIGNED_TO_TEAM
                and row.assigned_to_id in wanted
                for row in self._assignments.values()
            )


def _module_record(row: PermissionModule) -> ModuleRecord:
    return ModuleRecord(
        id=row.id,
        name=row.name,
        display_name=row.display_name,
        description=row.description,
        order=row.order,
        icon=row.icon,
        is_active=row.is_active,
    )


def _role_record(row: RolePermission) -> RolePolicyRecord:
    return RolePolicyRecord(
        id=row.id,
        role=row.role,
        module_id=row.module_id,
        action=row.action,
        is_allowed=row.is_allowed,
        updated_at=row.updated_at,
    )


def _user_record(row: UserPermission) -> UserOverrideRecord:
    return UserOverrideRecord(
        id=row.id,
        user_id=row.user_id,
        module_id=row.module_id,
        action=row.action,
        is_allowed=row.is_allowed,
        updated_at=row.updated_at,
    )


def _team_record(row: Team) -> TeamRecord:
    return TeamRecord(
        id=row.id,
        name=row.name,
        description=row.description,
        is_active=row.is_active,
        leader_id=row.leader_id,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _member_record(row: TeamMember) -> TeamMemberRecord:
    return TeamMemberRecord(id=row.id, team_id=row.team_id, user_id=row.user_id, role=row.role, joined_at=row.joined_at)


def _assignment_record(row: Assignment) -> AssignmentRecord:
    return AssignmentRecord(
        id=row.id,
        entity_type=row.entity_type,
        entity_id=row.entity_id,
        assigned_to_type=row.assigned_to_type,
        assigned_to_id=row.assigned_to_id,
        assigned_by_id=row.assigned_by_id,
        assigned_at=row.assigned_at,
        notes=row.notes,
    )


class DbPermissionStore:
    """Store backed by the relational database through SQLAlchemy sessions."""

    def __init__(self, session_factory: sessionmaker[Session] | None = None) -> None:
        self._session_factory = session_factory or SessionLocal

    def has_modules(self) -> bool:
        with self._session_factory() as session:
            return session.scalar(select(PermissionModule.id).limit(1)) is not None

    def get_module_by_name(self, name: str) -> ModuleRecord | None:
        with self._session_factory() as session:
            row = session.scalar(select(PermissionModule).where(PermissionModule.name == name))
            return _module_record(row) if row is not None else None

    def get_module(self, module_id: int) -> ModuleRecord | None:
        with self._session_factory() as session:
            row = session.get(PermissionModule, module_id)
            return _module_record(row) if row is not None else None

    def list_modules(self) -> list[ModuleRecord]:
        with self._session_factory() as session:
            rows = session.scalars(select(PermissionModule).order_by(PermissionModule.order.asc(), PermissionModule.id.asc())).all()
            return [_module_record(row) for row in rows]

    def add_modules(self, definitions: Sequence[ModuleDefinition]) -> list[ModuleRecord]:
        with self._session_factory() as session:
            rows = [
                PermissionModule(
                    name=definition.name,
                    display_name=definition.display_name,
                    description=definition.description,
                    order=definition.order,
                    icon=definition.icon,
                    is_active=True,
                )
                for definition in definitions
            ]
            session.add_all(rows)
            session.commit()
            return [_module_record(row) for row in rows]

    def get_role_permission(self, role: str, module_id: int, action: str) -> RolePolicyRecord | None:
        with self._session_factory() as session:
            row = session.scalar(
                select(RolePermission).where(
                    and_(
                        RolePermission.role == role,
                        RolePermission.module_id == module_id,
                        RolePermission.action == action,
                    )
                )
            )
            return _role_record(row) if row is not None else None

    def add_role_permissions(self, rows: Iterable[RolePolicyRow]) -> int:
        with self._session_factory() as session:
            mappings = [
                RolePermission(role=role, module_id=module_id, action=action, is_allowed=is_allowed)
                for role, module_id, action, is_allowed in rows
            ]
            session.add_all(mappings)
            session.commit()
            return len(mappings)

    def list_role_permissions(self, role: str) -> list[RolePolicyRecord]:
        with self._session_factory() as session:
            rows = session.scalars(
                select(RolePermission).where(RolePermission.role == role).order_by(RolePermission.id.asc())
            ).all()
            return [_role_record(row) for row in rows]

    def set_role_permission(self, role: str, module_id: int, action: str, is_allowed: bool) -> RolePolicyRecord:
        with self._session_factory() as session:
            row = session.scalar(
                select(RolePermission).where(
                    and_(
                        RolePermission.role == role,
                        RolePermission.module_id == module_id,
                        RolePermission.action == action,
                    )
                )
            )
            if row is None:
                row = RolePermission(role=role, module_id=module_id, action=action, is_allowed=is_allowed)
                session.add(row)
            else:
                row.is_allowed = is_allowed
                row.updated_at = _utcnow()
            session.commit()
            session.refresh(row)
            return _role_record(row)

    def get_user_permission(self, user_id: int, module_id: int, action: str) -> UserOverrideRecord | None:
        with self._session_factory() as session:
            row = session.scalar(
                select(UserPermission).where(
                    and_(
                        UserPermission.user_id == user_id,
                        UserPermission.module_id == module_id,
                        UserPermission.action == action,
                    )
                )
            )
            return _user_record(row) if row is not None else None

    def list_user_permissions(self, user_id: int) -> list[UserOverrideRecord]:
        with self._session_factory() as session:
            rows = session.scalars(
                select(UserPermission).where(UserPermission.user_id == user_id).order_by(UserPermission.id.asc())
            ).all()
            return [_user_record(row) for row in rows]

    def set_user_permission(self, user_id: int, module_id: int, action: str, is_allowed: bool) -> UserOverrideRecord:
        with self._session_factory() as session:
            row = session.scalar(
                select(UserPermission).where(
                    and_(
                        UserPermission.user_id == user_id,
                        UserPermission.module_id == module_id,
                        UserPermission.action == action,
                    )
                )
            )
            if row is None:
                row = UserPermission(user_id=user_id, module_id=module_id, action=action, is_allowed=is_allowed)
                session.add(row)
            else:
                row.is_allowed = is_allowed
                row.updated_at = _utcnow()
            session.commit()
            session.refresh(row)
            return _user_record(row)

    def delete_user_permission(self, user_id: int, module_id: int, action: str) -> bool:
        with self._session_factory() as session:
            result = session.execute(
                delete(UserPermission).where(
                    and_(
                        UserPermission.user_id == user_id,
                        UserPermission.module_id == module_id,
                        UserPermission.action == action,
                    )
                )
            )
            session.commit()
            return result.rowcount > 0

    def create_team(
        self,
        name: str,
        description: str | None,
        leader_id: int | None,
        *,
        leader_role: str | None = None,
    ) -> TeamRecord:
        with self._session_factory() as session:
            team = Team(name=name, description=description, leader_id=leader_id, is_active=True)
            session.add(team)
            try:
                session.flush()
                if leader_role is not None and leader_id is not None:
                    session.add(TeamMember(team_id=team.id, user_id=leader_id, role=leader_role))
                session.commit()
            except IntegrityError as exc:
                session.rollback()
                raise DuplicateTeamError(name) from exc
            session.refresh(team)
            return _team_record(team)

    def get_team(self, team_id: int) -> TeamRecord | None:
        with self._session_factory() as session:
            row = session.get(Team, team_id)
            return _team_record(row) if row is not None else None

    def get_team_by_name(self, name: str) -> TeamRecord | None:
        with self._session_factory() as session:
            row = session.scalar(select(Team).where(Team.name == name))
            return _team_record(row) if row is not None else None

    def list_teams(self) -> list[TeamRecord]:
        with self._session_factory() as session:
            rows = session.scalars(select(Team).order_by(Team.name.asc())).all()
            return [_team_record(row) for row in rows]

    def update_team(self, team_id: int, changes: dict[str, Any]) -> TeamRecord | None:
        with self._session_factory() as session:
            team = session.get(Team, team_id)
            if team is None:
                return None
            for key, value in changes.items():
                if key in _TEAM_FIELDS:
                    setattr(team, key, value)
            team.updated_at = _utcnow()
            try:
                session.commit()
            except IntegrityError as exc:
                session.rollback()
                raise DuplicateTeamError(str(changes.get("name"))) from exc
            session.refresh(team)
            return _team_record(team)

    def delete_team(self, team_id: int) -> bool:
        with self._session_factory() as session:
            team = session.get(Team, team_id)
            if team is None:
                return False
            session.execute(delete(TeamMember).where(TeamMember.team_id == team_id))
            session.delete(team)
            session.commit()
            return True

    def list_team_ids_for_user(self, user_id: int) -> list[int]:
        with self._session_factory() as session:
            rows = session.scalars(
                select(TeamMember.team_id).where(TeamMember.user_id == user_id).distinct().order_by(TeamMember.team_id.asc())
            ).all()
            return list(rows)

    def add_team_member(self, team_id: int, user_id: int, role: str) -> TeamMemberRecord:
        with self._session_factory() as session:
            member = TeamMember(team_id=team_id, user_id=user_id, role=role)
            session.add(member)
            try:
                session.commit()
            except IntegrityError as exc:
                session.rollback()
                raise DuplicateTeamMemberError(team_id, user_id) from exc
            session.refresh(member)
            return _member_record(member)

    def get_team_member(self, member_id: int) -> TeamMemberRecord | None:
        with self._session_factory() as session:
            row = session.get(TeamMember, member_id)
            return _member_record(row) if row is not None else None

    def get_team_membership(self, team_id: int, user_id: int) -> TeamMemberRecord | None:
        with self._session_factory() as session:
            row = session.scalar(
                select(TeamMember).where(and_(TeamMember.team_id == team_id, TeamMember.user_id == user_id))
            )
            return _member_record(row) if row is not None else None

    def list_team_members(self, team_id: int) -> list[TeamMemberRecord]:
        with self._session_factory() as session:
            rows = session.scalars(
                select(TeamMember).where(TeamMember.team_id == team_id).order_by(TeamMember.id.asc())
            ).all()
            return [_member_record(row) for row in rows]

    def update_team_member(self, member_id: int, role: str) -> TeamMemberRecord | None:
        with self._session_factory() as session:
            member = session.get(TeamMember, member_id)
            if member is None:
                return None
            member.role = role
            session.commit()
            session.refresh(member)
            return _member_record(member)

    def remove_team_member(self, member_id: int) -> bool:
        with self._session_factory() as session:
            result = session.execute(delete(TeamMember).where(TeamMember.id == member_id))
            session.commit()
            return result.rowcount > 0

    def create_assignment(
        self,
        *,
        entity_type: str,
        entity_id: int,
        assigned_to_type: str,
        assigned_to_id: int,
        assigned_by_id: int | None,
        notes: str | None,
    ) -> AssignmentRecord:
        with self._session_factory() as session:
            assignment = Assignment(
                entity_type=entity_type,
                entity_id=entity_id,
                assigned_to_type=assigned_to_type,
                assigned_to_id=assigned_to_id,
                assigned_by_id=assigned_by_id,
                notes=notes,
            )
            session.add(assignment)
            session.commit()
            session.refresh(assignment)
            return _assignment_record(assignment)

    def list_assignments(self, entity_type: str, entity_id: int) -> list[AssignmentRecord]:
        with self._session_factory() as session:
            rows = session.scalars(
                select(Assignment)
                .where(and_(Assignment.entity_type == entity_type, Assignment.entity_id == entity_id))
                .order_by(Assignment.id.asc())
            ).all()
            return [_assignment_record(row) for row in rows]

    def delete_assignment(self, assignment_id: int) -> bool:
        with self._session_factory() as session:
            result = session.execute(delete(Assignment).where(Assignment.id == assignment_id))
            session.commit()
            return result.rowcount > 0

    def has_user_assignment(self, user_id: int, entity_type: str, entity_id: int) -> bool:
        with self._session_factory() as session:
            row = session.scalar(
                select(Assignment.id)
                .where(
                    and_(
                        Assignment.entity_type == entity_type,
                        Assignment.entity_id == entity_id,
                        Assignment.assigned_to_type == ASSIGNED_TO_USER,
                        Assignment.assigned_to_id == user_id,
                    )
                )
                .limit(1)
            )
            return row is not None

    def has_team_assignment(self, team_ids: Sequence[int], entity_type: str, entity_id: int) -> bool:
        if not team_ids:
            return False
        with self._session_factory() as session:
            row = session.scalar(
                select(Assignment.id)
                .where(
                    and_(
                        Assignment.entity_type == entity_type,
                        Assignment.entity_id == entity_id,
                        Assignment.assigned_to_type == ASSIGNED_TO_TEAM,
                        Assignment.assigned_to_id.in_(list(team_ids)),
                    )
                )
                .limit(1)
            )
            return row is not None
