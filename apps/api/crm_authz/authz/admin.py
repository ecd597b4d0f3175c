from __future__ import annotations

import logging

from fastapi import HTTPException, status

from crm_authz.authz.catalog import Action, Role, is_valid_role
from crm_authz.authz.errors import DuplicateTeamError, DuplicateTeamMemberError
from crm_authz.authz.schemas import (
    AssignmentCreate,
    AssignmentRead,
    ModuleRead,
    RolePermissionRead,
    RolePermissionUpdate,
    TeamCreate,
    TeamMemberCreate,
    TeamMemberRead,
    TeamMemberUpdate,
    TeamRead,
    TeamUpdate,
    UserPermissionRead,
    UserPermissionUpdate,
)
from crm_authz.authz.service import AuthorizationService
from crm_authz.authz.store import ASSIGNED_TO_TEAM, ASSIGNED_TO_USER


logger = logging.getLogger("crm_authz.authz.admin")

DEFAULT_MEMBER_ROLE = "Member"
LEADER_MEMBER_ROLE = "Leader"
_DUPLICATE_TEAM_DETAIL = "A team with this name already exists"
_DUPLICATE_MEMBER_DETAIL = "User is already a member of this team"


class AuthorizationAdminService:
    def list_modules(self, authz: AuthorizationService) -> list[ModuleRead]:
        return [ModuleRead.model_validate(row) for row in authz.store.list_modules()]

    def list_role_permissions(self, authz: AuthorizationService, role: str) -> list[RolePermissionRead]:
        self._require_role(role)
        return [RolePermissionRead.model_validate(row) for row in authz.store.list_role_permissions(role)]

    def set_role_permission(self, authz: AuthorizationService, role: str, dto: RolePermissionUpdate) -> RolePermissionRead:
        self._require_role(role)
        if role == Role.ADMIN and dto.action == Action.VIEW and not dto.is_allowed:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Cannot remove view permission from Admin role")
        self._require_module(authz, dto.module_id)

        row = authz.store.set_role_permission(role, dto.module_id, dto.action.value, dto.is_allowed)
        logger.info(
            "authz.role_permission.updated",
            extra={"role": role, "authz_module": dto.module_id, "action": dto.action.value, "decision": dto.is_allowed},
        )
        return RolePermissionRead.model_validate(row)

    def list_user_permissions(self, authz: AuthorizationService, user_id: int) -> list[UserPermissionRead]:
        return [UserPermissionRead.model_validate(row) for row in authz.store.list_user_permissions(user_id)]

    def set_user_permission(self, authz: AuthorizationService, user_id: int, dto: UserPermissionUpdate) -> UserPermissionRead:
        self._require_module(authz, dto.module_id)

        row = authz.store.set_user_permission(user_id, dto.module_id, dto.action.value, dto.is_allowed)
        logger.info(
            "authz.user_permission.updated",
            extra={"user_id": user_id, "authz_module": dto.module_id, "action": dto.action.value, "decision": dto.is_allowed},
        )
        return UserPermissionRead.model_validate(row)

    def delete_user_permission(self, authz: AuthorizationService, user_id: int, module_id: int, action: Action) -> None:
        if not authz.store.delete_user_permission(user_id, module_id, action.value):
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="user permission not found")

    def list_teams(self, authz: AuthorizationService) -> list[TeamRead]:
        return [TeamRead.model_validate(row) for row in authz.store.list_teams()]

    def create_team(self, authz: AuthorizationService, dto: TeamCreate, *, actor_user_id: int) -> TeamRead:
        name = dto.name.strip()
        if authz.store.get_team_by_name(name) is not None:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=_DUPLICATE_TEAM_DETAIL)

        try:
            team = authz.store.create_team(name, dto.description, actor_user_id, leader_role=LEADER_MEMBER_ROLE)
        except DuplicateTeamError as exc:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=_DUPLICATE_TEAM_DETAIL) from exc
        return TeamRead.model_validate(team)

    def update_team(self, authz: AuthorizationService, team_id: int, dto: TeamUpdate) -> TeamRead:
        existing = authz.store.get_team(team_id)
        if existing is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Team not found")

        changes = dto.model_dump(exclude_unset=True)
        for key in ("name", "is_active", "leader_id"):
            if key in changes and changes[key] is None:
                changes.pop(key)

        if "name" in changes:
            changes["name"] = changes["name"].strip()
            if changes["name"] != existing.name:
                conflict = authz.store.get_team_by_name(changes["name"])
                if conflict is not None and conflict.id != team_id:
                    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=_DUPLICATE_TEAM_DETAIL)

        try:
            team = authz.store.update_team(team_id, changes)
        except DuplicateTeamError as exc:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=_DUPLICATE_TEAM_DETAIL) from exc
        if team is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Team not found")
        return TeamRead.model_validate(team)

    def delete_team(self, authz: AuthorizationService, team_id: int) -> None:
        if not authz.store.delete_team(team_id):
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Team not found")

    def list_team_members(self, authz: AuthorizationService, team_id: int) -> list[TeamMemberRead]:
        if authz.store.get_team(team_id) is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Team not found")
        return [TeamMemberRead.model_validate(row) for row in authz.store.list_team_members(team_id)]

    def add_team_member(self, authz: AuthorizationService, team_id: int, dto: TeamMemberCreate) -> TeamMemberRead:
        if authz.store.get_team(team_id) is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Team not found")
        if authz.store.get_team_membership(team_id, dto.user_id) is not None:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=_DUPLICATE_MEMBER_DETAIL)

        try:
            member = authz.store.add_team_member(team_id, dto.user_id, dto.role or DEFAULT_MEMBER_ROLE)
        except DuplicateTeamMemberError as exc:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=_DUPLICATE_MEMBER_DETAIL) from exc
        return TeamMemberRead.model_validate(member)

    def update_team_member(
        self,
        authz: AuthorizationService,
        team_id: int,
        member_id: int,
        dto: TeamMemberUpdate,
    ) -> TeamMemberRead:
        self._require_member(authz, team_id, member_id)
        member = authz.store.update_team_member(member_id, dto.role)
        if member is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Team member not found")
        return TeamMemberRead.model_validate(member)

    def remove_team_member(self, authz: AuthorizationService, team_id: int, member_id: int) -> None:
        self._require_member(authz, team_id, member_id)
        authz.store.remove_team_member(member_id)

    def create_assignment(self, authz: AuthorizationService, dto: AssignmentCreate, *, actor_user_id: int) -> AssignmentRead:
        if dto.entity_type not in authz.registry:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid entity type")
        if dto.assigned_to_type not in {ASSIGNED_TO_USER, ASSIGNED_TO_TEAM}:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid assignment target type")

        if authz.registry.get_entity_by_id(dto.entity_type, dto.entity_id) is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"{dto.entity_type.capitalize()} not found")
        if dto.assigned_to_type == ASSIGNED_TO_TEAM and authz.store.get_team(dto.assigned_to_id) is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Team not found")

        assignment = authz.store.create_assignment(
            entity_type=dto.entity_type,
            entity_id=dto.entity_id,
            assigned_to_type=dto.assigned_to_type,
            assigned_to_id=dto.assigned_to_id,
            assigned_by_id=actor_user_id,
            notes=dto.notes,
        )

        if dto.assigned_to_type == ASSIGNED_TO_USER:
            try:
                authz.registry.set_owner(dto.entity_type, dto.entity_id, dto.assigned_to_id)
            except Exception as exc:
                logger.exception(
                    "authz.assignment.owner_update_failed",
                    extra={"entity_type": dto.entity_type, "entity_id": dto.entity_id, "error": str(exc)[:500]},
                )

        return AssignmentRead.model_validate(assignment)

    def list_assignments(self, authz: AuthorizationService, entity_type: str, entity_id: int) -> list[AssignmentRead]:
        return [AssignmentRead.model_validate(row) for row in authz.store.list_assignments(entity_type, entity_id)]

    def delete_assignment(self, authz: AuthorizationService, assignment_id: int) -> None:
        if not authz.store.delete_assignment(assignment_id):
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="assignment not found")

    @staticmethod
    def _require_role(role: str) -> None:
        if not is_valid_role(role):
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="role not found")

    @staticmethod
    def _require_module(authz: AuthorizationService, module_id: int) -> None:
        if authz.store.get_module(module_id) is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="module not found")

    @staticmethod
    def _require_member(authz: AuthorizationService, team_id: int, member_id: int) -> None:
        member = authz.store.get_team_member(member_id)
        if member is None or member.team_id != team_id:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Team member not found")


authorization_admin_service = AuthorizationAdminService()
