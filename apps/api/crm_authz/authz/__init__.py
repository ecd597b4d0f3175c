from crm_authz.authz.catalog import Action, Role
from crm_authz.authz.entities import EntityAccessResolver, EntityRegistry, OwnedEntity
from crm_authz.authz.errors import (
    AuthorizationError,
    DuplicateTeamError,
    DuplicateTeamMemberError,
    EntityAccessDeniedError,
    PermissionDeniedError,
)
from crm_authz.authz.seed import initialize_permissions
from crm_authz.authz.service import (
    AuthorizationService,
    entity_registry,
    get_authorization_service,
    set_authorization_service,
)
from crm_authz.authz.store import DbPermissionStore, InMemoryPermissionStore, PermissionStore

__all__ = [
    "Action",
    "Role",
    "AuthorizationError",
    "PermissionDeniedError",
    "EntityAccessDeniedError",
    "DuplicateTeamError",
    "DuplicateTeamMemberError",
    "OwnedEntity",
    "EntityRegistry",
    "EntityAccessResolver",
    "PermissionStore",
    "InMemoryPermissionStore",
    "DbPermissionStore",
    "AuthorizationService",
    "entity_registry",
    "get_authorization_service",
    "set_authorization_service",
    "initialize_permissions",
]
