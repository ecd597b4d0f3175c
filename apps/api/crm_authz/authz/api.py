from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Response, status

from crm_authz.authz.admin import authorization_admin_service
from crm_authz.authz.catalog import Action
from crm_authz.authz.guards import get_authz, require_caller, require_permission
from crm_authz.authz.schemas import (
    AssignmentCreate,
    AssignmentRead,
    EntityAccessCheckRead,
    ModuleRead,
    PermissionCheckRead,
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
from crm_authz.core.auth import Caller


settings_router = APIRouter(prefix="/api/settings", tags=["settings.permissions"])
assignments_router = APIRouter(prefix="/api/assignments", tags=["assignments"])
permissions_router = APIRouter(prefix="/api/permissions", tags=["permissions"])


@settings_router.get("/modules", response_model=list[ModuleRead])
def list_modules(
    authz: AuthorizationService = Depends(get_authz),
    _caller: Caller = Depends(require_permission("settings", "view")),
) -> list[ModuleRead]:
    return authorization_admin_service.list_modules(authz)


@settings_router.get("/permissions/roles/{role}", response_model=list[RolePermissionRead])
def list_role_permissions(
    role: str,
    authz: AuthorizationService = Depends(get_authz),
    _caller: Caller = Depends(require_permission("settings", "view")),
) -> list[RolePermissionRead]:
    return authorization_admin_service.list_role_permissions(authz, role)


@settings_router.patch("/permissions/roles/{role}", response_model=RolePermissionRead)
def update_role_permission(
    role: str,
    dto: RolePermissionUpdate,
    authz: AuthorizationService = Depends(get_authz),
    _caller: Caller = Depends(require_permission("settings", "update")),
) -> RolePermissionRead:
    return authorization_admin_service.set_role_permission(authz, role, dto)


@settings_router.get("/permissions/users/{user_id}", response_model=list[UserPermissionRead])
def list_user_permissions(
    user_id: int,
    authz: AuthorizationService = Depends(get_authz),
    _caller: Caller = Depends(require_permission("settings", "view")),
) -> list[UserPermissionRead]:
    return authorization_admin_service.list_user_permissions(authz, user_id)


@settings_router.patch("/permissions/users/{user_id}", response_model=UserPermissionRead)
def update_user_permission(
    user_id: int,
    dto: UserPermissionUpdate,
    authz: AuthorizationService = Depends(get_authz),
    _caller: Caller = Depends(require_permission("settings", "update")),
) -> UserPermissionRead:
    return authorization_admin_service.set_user_permission(authz, user_id, dto)


@settings_router.delete("/permissions/users/{user_id}/{module_id}/{action}", status_code=status.HTTP_204_NO_CONTENT)
def delete_user_permission(
    user_id: int,
    module_id: int,
    action: Action,
    authz: AuthorizationService = Depends(get_authz),
    _caller: Caller = Depends(require_permission("settings", "update")),
) -> Response:
    authorization_admin_service.delete_user_permission(authz, user_id, module_id, action)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@settings_router.get("/teams", response_model=list[TeamRead])
def list_teams(
    authz: AuthorizationService = Depends(get_authz),
    _caller: Caller = Depends(require_permission("settings", "view")),
) -> list[TeamRead]:
    return authorization_admin_service.list_teams(authz)


@settings_router.post("/teams", response_model=TeamRead, status_code=status.HTTP_201_CREATED)
def create_team(
    dto: TeamCreate,
    authz: AuthorizationService = Depends(get_authz),
    caller: Caller = Depends(require_permission("settings", "create")),
) -> TeamRead:
    return authorization_admin_service.create_team(authz, dto, actor_user_id=caller.user_id)


@settings_router.patch("/teams/{team_id}", response_model=TeamRead)
def update_team(
    team_id: int,
    dto: TeamUpdate,
    authz: AuthorizationService = Depends(get_authz),
    _caller: Caller = Depends(require_permission("settings", "update")),
) -> TeamRead:
    return authorization_admin_service.update_team(authz, team_id, dto)


@settings_router.delete("/teams/{team_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_team(
    team_id: int,
    authz: AuthorizationService = Depends(get_authz),
    _caller: Caller = Depends(require_permission("settings", "delete")),
) -> Response:
    authorization_admin_service.delete_team(authz, team_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@settings_router.get("/teams/{team_id}/members", response_model=list[TeamMemberRead])
def list_team_members(
    team_id: int,
    authz: AuthorizationService = Depends(get_authz),
    _caller: Caller = Depends(require_permission("settings", "view")),
) -> list[TeamMemberRead]:
    return authorization_admin_service.list_team_members(authz, team_id)


@settings_router.post("/teams/{team_id}/members", response_model=TeamMemberRead, status_code=status.HTTP_201_CREATED)
def add_team_member(
    team_id: int,
    dto: TeamMemberCreate,
    authz: AuthorizationService = Depends(get_authz),
    _caller: Caller = Depends(require_permission("settings", "update")),
) -> TeamMemberRead:
    return authorization_admin_service.add_team_member(authz, team_id, dto)


@settings_router.patch("/teams/{team_id}/members/{member_id}", response_model=TeamMemberRead)
def update_team_member(
    team_id: int,
    member_id: int,
    dto: TeamMemberUpdate,
    authz: AuthorizationService = Depends(get_authz),
    _caller: Caller = Depends(require_permission("settings", "update")),
) -> TeamMemberRead:
    return authorization_admin_service.update_team_member(authz, team_id, member_id, dto)


@settings_router.delete("/teams/{team_id}/members/{member_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_team_member(
    team_id: int,
    member_id: int,
    authz: AuthorizationService = Depends(get_authz),
    _caller: Caller = Depends(require_permission("settings", "update")),
) -> Response:
    authorization_admin_service.remove_team_member(authz, team_id, member_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@assignments_router.post("", response_model=AssignmentRead, status_code=status.HTTP_201_CREATED)
def create_assignment(
    dto: AssignmentCreate,
    authz: AuthorizationService = Depends(get_authz),
    caller: Caller = Depends(require_permission("settings", "assign")),
) -> AssignmentRead:
    return authorization_admin_service.create_assignment(authz, dto, actor_user_id=caller.user_id)


@assignments_router.get("/{entity_type}/{entity_id}", response_model=list[AssignmentRead])
def list_assignments(
    entity_type: str,
    entity_id: int,
    authz: AuthorizationService = Depends(get_authz),
    _caller: Caller = Depends(require_permission("settings", "view")),
) -> list[AssignmentRead]:
    return authorization_admin_service.list_assignments(authz, entity_type, entity_id)


@assignments_router.delete("/{assignment_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_assignment(
    assignment_id: int,
    authz: AuthorizationService = Depends(get_authz),
    _caller: Caller = Depends(require_permission("settings", "assign")),
) -> Response:
    authorization_admin_service.delete_assignment(authz, assignment_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@permissions_router.get("/check", response_model=PermissionCheckRead)
def check_permission(
    module: str = Query(min_length=1),
    action: str = Query(min_length=1),
    authz: AuthorizationService = Depends(get_authz),
    caller: Caller = Depends(require_caller),
) -> PermissionCheckRead:
    return PermissionCheckRead(module=module, action=action, allowed=authz.has_permission(caller, module, action))


@permissions_router.get("/entities/{entity_type}/{entity_id}", response_model=EntityAccessCheckRead)
def check_entity_access(
    entity_type: str,
    entity_id: int,
    authz: AuthorizationService = Depends(get_authz),
    caller: Caller = Depends(require_caller),
) -> EntityAccessCheckRead:
    return EntityAccessCheckRead(
        entity_type=entity_type,
        entity_id=entity_id,
        allowed=authz.has_entity_access(caller, entity_type, entity_id),
    )
