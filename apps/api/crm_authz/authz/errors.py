from __future__ import annotations


class AuthorizationError(Exception):
    """Base authorization error for permission and entity access denials."""


class PermissionDeniedError(AuthorizationError):
    """Raised when a caller lacks a module/action permission."""

    def __init__(self, module: str, action: str) -> None:
        self.module = module
        self.action = action
        super().__init__(f"You don't have permission to {action} in the {module} module")


class EntityAccessDeniedError(AuthorizationError):
    """Raised when a caller cannot access a specific entity."""

    def __init__(self, entity_type: str, entity_id: int) -> None:
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"You don't have access to this {entity_type}")


class DuplicateTeamError(ValueError):
    """Raised by a permission store when a team name is already taken."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"team already exists: {name}")


class DuplicateTeamMemberError(ValueError):
    """Raised by a permission store when the user already belongs to the team."""

    def __init__(self, team_id: int, user_id: int) -> None:
        self.team_id = team_id
        self.user_id = user_id
        super().__init__(f"user {user_id} is already a member of team {team_id}")
