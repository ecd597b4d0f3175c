from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(slots=True)
class ModuleRecord:
    id: int
    name: str
    display_name: str
    description: str | None
    order: int
    icon: str | None
    is_active: bool


@dataclass(slots=True)
class RolePolicyRecord:
    id: int
    role: str
    module_id: int
    action: str
    is_allowed: bool
    updated_at: datetime | None = None


@dataclass(slots=True)
class UserOverrideRecord:
    id: int
    user_id: int
    module_id: int
    action: str
    is_allowed: bool
    updated_at: datetime | None = None


@dataclass(slots=True)
class TeamRecord:
    id: int
    name: str
    description: str | None
    is_active: bool
    leader_id: int | None
    created_at: datetime
    updated_at: datetime | None = None


@dataclass(slots=True)
class TeamMemberRecord:
    id: int
    team_id: int
    user_id: int
    role: str
    joined_at: datetime


@dataclass(slots=True)
class AssignmentRecord:
    id: int
    entity_type: str
    entity_id: int
    assigned_to_type: str
    assigned_to_id: int
    assigned_by_id: int | None
    assigned_at: datetime
    notes: str | None = None
