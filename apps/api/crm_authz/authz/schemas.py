from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from crm_authz.authz.catalog import Action


class ModuleRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    display_name: str
    description: str | None
    order: int
    icon: str | None
    is_active: bool


class RolePermissionUpdate(BaseModel):
    module_id: int
    action: Action
    is_allowed: bool


class RolePermissionRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    role: str
    module_id: int
    action: str
    is_allowed: bool
    updated_at: datetime | None


class UserPermissionUpdate(BaseModel):
    module_id: int
    action: Action
    is_allowed: bool


class UserPermissionRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    module_id: int
    action: str
    is_allowed: bool
    updated_at: datetime | None


class TeamCreate(BaseModel):
    name: str = Field(min_length=1)
    description: str | None = None


class TeamUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1)
    description: str | None = None
    is_active: bool | None = None
    leader_id: int | None = None


class TeamRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: str | None
    is_active: bool
    leader_id: int | None
    created_at: datetime
    updated_at: datetime | None


class TeamMemberCreate(BaseModel):
    user_id: int
    role: str | None = None


class TeamMemberUpdate(BaseModel):
    role: str = Field(min_length=1)


class TeamMemberRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    team_id: int
    user_id: int
    role: str
    joined_at: datetime


class AssignmentCreate(BaseModel):
    entity_type: str = Field(min_length=1)
    entity_id: int
    assigned_to_type: str
    assigned_to_id: int
    notes: str | None = None


class AssignmentRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    entity_type: str
    entity_id: int
    assigned_to_type: str
    assigned_to_id: int
    assigned_by_id: int | None
    assigned_at: datetime
    notes: str | None


class PermissionCheckRead(BaseModel):
    module: str
    action: str
    allowed: bool


class EntityAccessCheckRead(BaseModel):
    entity_type: str
    entity_id: int
    allowed: bool
