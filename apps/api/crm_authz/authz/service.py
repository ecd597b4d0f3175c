from __future__ import annotations

import logging
from threading import Lock

from crm_authz.authz.catalog import Role, is_valid_action
from crm_authz.authz.entities import EntityAccessResolver, EntityRegistry
from crm_authz.authz.errors import EntityAccessDeniedError, PermissionDeniedError
from crm_authz.authz.store import InMemoryPermissionStore, PermissionStore
from crm_authz.core.auth import Caller
from crm_authz.metrics import observe_authz_decision, observe_authz_lookup_failure
from crm_authz.otel import authz_span


logger = logging.getLogger("crm_authz.authz")


def _caller_identity(caller: Caller | None) -> tuple[int | None, str | None]:
    if caller is None:
        return None, None
    return caller.user_id, caller.role


class AuthorizationService:
    """Combines module catalog, user overrides, role policy and entity access.

    Both predicates answer with a plain boolean. A failing lookup is logged and
    resolves to deny; nothing raised by the store escapes.
    """

    def __init__(
        self,
        store: PermissionStore,
        registry: EntityRegistry | None = None,
        *,
        manager_entity_access: bool = True,
    ) -> None:
        self._store = store
        self._registry = registry if registry is not None else EntityRegistry()
        self._resolver = EntityAccessResolver(store, self._registry)
        self._manager_entity_access = manager_entity_access

    @property
    def store(self) -> PermissionStore:
        return self._store

    @property
    def registry(self) -> EntityRegistry:
        return self._registry

    @property
    def resolver(self) -> EntityAccessResolver:
        return self._resolver

    def has_permission(self, caller: Caller | None, module: str, action: str) -> bool:
        user_id, role = _caller_identity(caller)
        with authz_span("authz.has_permission", user_id, role, module=module, action=action) as span:
            allowed = self._evaluate_permission(caller, module, action)
            span.set_attribute("authz.allowed", allowed)

        observe_authz_decision("permission", allowed)
        if not allowed and caller is not None:
            logger.info(
                "authz.permission_denied",
                extra={"authz_module": module, "action": action, "user_id": caller.user_id, "role": caller.role},
            )
        return allowed

    def has_entity_access(self, caller: Caller | None, entity_type: str, entity_id: int) -> bool:
        user_id, role = _caller_identity(caller)
        with authz_span("authz.has_entity_access", user_id, role, entity_type=entity_type, entity_id=entity_id) as span:
            allowed = self._evaluate_entity_access(caller, entity_type, entity_id)
            span.set_attribute("authz.allowed", allowed)

        observe_authz_decision("entity", allowed)
        if not allowed and caller is not None:
            logger.info(
                "authz.entity_access_denied",
                extra={"entity_type": entity_type, "entity_id": entity_id, "user_id": caller.user_id, "role": caller.role},
            )
        return allowed

    def ensure_permission(self, caller: Caller | None, module: str, action: str) -> None:
        if not self.has_permission(caller, module, action):
            raise PermissionDeniedError(module, action)

    def ensure_entity_access(self, caller: Caller | None, entity_type: str, entity_id: int) -> None:
        if not self.has_entity_access(caller, entity_type, entity_id):
            raise EntityAccessDeniedError(entity_type, entity_id)

    def _evaluate_permission(self, caller: Caller | None, module: str, action: str) -> bool:
        if caller is None:
            return False
        if caller.role == Role.ADMIN:
            return True
        if not is_valid_action(action):
            return False

        try:
            module_record = self._store.get_module_by_name(module)
            if module_record is None:
                return False

            override = self._store.get_user_permission(caller.user_id, module_record.id, action)
            if override is not None:
                return override.is_allowed

            policy = self._store.get_role_permission(caller.role, module_record.id, action)
            if policy is not None:
                return policy.is_allowed

            return False
        except Exception as exc:
            observe_authz_lookup_failure("permission")
            logger.exception(
                "authz.lookup_failed",
                extra={"authz_module": module, "action": action, "user_id": caller.user_id, "error": str(exc)[:500]},
            )
            return False

    def _evaluate_entity_access(self, caller: Caller | None, entity_type: str, entity_id: int) -> bool:
        if caller is None:
            return False
        if caller.role == Role.ADMIN:
            return True

        try:
            if self._resolver.check_user_entity_access(caller.user_id, entity_type, entity_id):
                return True
            if self._resolver.check_team_entity_access(caller.user_id, entity_type, entity_id):
                return True
        except Exception as exc:
            observe_authz_lookup_failure("entity")
            logger.exception(
                "authz.lookup_failed",
                extra={
                    "entity_type": entity_type,
                    "entity_id": entity_id,
                    "user_id": caller.user_id,
                    "error": str(exc)[:500],
                },
            )
            return False

        if caller.role == Role.MANAGER and self._manager_entity_access:
            # TODO: restrict to entities owned by or assigned to the manager's reports once reporting lines exist.
            logger.info(
                "authz.manager_blanket_access",
                extra={"entity_type": entity_type, "entity_id": entity_id, "user_id": caller.user_id},
            )
            return True

        return False


entity_registry = EntityRegistry()

_AUTHORIZATION_SERVICE = AuthorizationService(InMemoryPermissionStore(), entity_registry)
_SERVICE_LOCK = Lock()


def get_authorization_service() -> AuthorizationService:
    """Get the active authorization service instance."""

    return _AUTHORIZATION_SERVICE


def set_authorization_service(service: AuthorizationService) -> None:
    """Set the active authorization service instance."""

    global _AUTHORIZATION_SERVICE
    with _SERVICE_LOCK:
        _AUTHORIZATION_SERVICE = service
