from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from threading import Lock

from crm_authz.authz.store import PermissionStore


@dataclass(frozen=True, slots=True)
class OwnedEntity:
    entity_type: str
    entity_id: int
    owner_id: int | None


EntityLookup = Callable[[int], OwnedEntity | None]
OwnerUpdater = Callable[[int, int], bool]


@dataclass(frozen=True, slots=True)
class _EntityRegistration:
    lookup: EntityLookup
    set_owner: OwnerUpdater | None


class EntityRegistry:
    """Maps entity-type tags to lookups that return a uniform ownership view.

    Entity modules register themselves at startup; an unknown tag behaves as
    "not found" rather than raising.
    """

    def __init__(self) -> None:
        self._lock = Lock()
        self._registrations: dict[str, _EntityRegistration] = {}

    def register(self, entity_type: str, lookup: EntityLookup, *, set_owner: OwnerUpdater | None = None) -> None:
        with self._lock:
            self._registrations[entity_type] = _EntityRegistration(lookup=lookup, set_owner=set_owner)

    def unregister(self, entity_type: str) -> None:
        with self._lock:
            self._registrations.pop(entity_type, None)

    def known_types(self) -> list[str]:
        return sorted(self._registrations)

    def __contains__(self, entity_type: object) -> bool:
        return entity_type in self._registrations

    def get_entity_by_id(self, entity_type: str, entity_id: int) -> OwnedEntity | None:
        registration = self._registrations.get(entity_type)
        if registration is None:
            return None
        return registration.lookup(entity_id)

    def set_owner(self, entity_type: str, entity_id: int, owner_id: int) -> bool:
        registration = self._registrations.get(entity_type)
        if registration is None or registration.set_owner is None:
            return False
        return registration.set_owner(entity_id, owner_id)


class EntityAccessResolver:
    """Ownership, direct assignment and team assignment checks, independent of role."""

    def __init__(self, store: PermissionStore, registry: EntityRegistry) -> None:
        self._store = store
        self._registry = registry

    @property
    def registry(self) -> EntityRegistry:
        return self._registry

    def get_entity_by_id(self, entity_type: str, entity_id: int) -> OwnedEntity | None:
        return self._registry.get_entity_by_id(entity_type, entity_id)

    def check_user_entity_access(self, user_id: int, entity_type: str, entity_id: int) -> bool:
        entity = self.get_entity_by_id(entity_type, entity_id)
        if entity is not None and entity.owner_id == user_id:
            return True
        return self._store.has_user_assignment(user_id, entity_type, entity_id)

    def check_team_entity_access(self, user_id: int, entity_type: str, entity_id: int) -> bool:
        team_ids = self._store.list_team_ids_for_user(user_id)
        if not team_ids:
            return False
        return self._store.has_team_assignment(team_ids, entity_type, entity_id)
