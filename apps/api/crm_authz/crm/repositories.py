from __future__ import annotations

from collections.abc import Callable
from typing import Any

from sqlalchemy.orm import Session

from crm_authz.authz.entities import EntityRegistry, OwnedEntity
from crm_authz.crm.models import CRMAccount, CRMContact, CRMLead, CRMOpportunity


SessionFactory = Callable[[], Session]

ENTITY_MODELS: dict[str, type[Any]] = {
    "lead": CRMLead,
    "contact": CRMContact,
    "account": CRMAccount,
    "opportunity": CRMOpportunity,
}


class CRMEntityRepository:
    """Ownership lookup and ownership transfer for one CRM table."""

    def __init__(self, entity_type: str, model: type[Any], session_factory: SessionFactory) -> None:
        self.entity_type = entity_type
        self.model = model
        self._session_factory = session_factory

    def get_owned(self, entity_id: int) -> OwnedEntity | None:
        with self._session_factory() as session:
            row = session.get(self.model, entity_id)
            if row is None:
                return None
            return OwnedEntity(entity_type=self.entity_type, entity_id=row.id, owner_id=row.owner_id)

    def set_owner(self, entity_id: int, owner_id: int) -> bool:
        with self._session_factory() as session:
            row = session.get(self.model, entity_id)
            if row is None:
                return False
            row.owner_id = owner_id
            session.commit()
            return True


def build_repositories(session_factory: SessionFactory) -> dict[str, CRMEntityRepository]:
    return {
        entity_type: CRMEntityRepository(entity_type, model, session_factory)
        for entity_type, model in ENTITY_MODELS.items()
    }


def register_crm_entities(registry: EntityRegistry, session_factory: SessionFactory) -> dict[str, CRMEntityRepository]:
    repositories = build_repositories(session_factory)
    for entity_type, repository in repositories.items():
        registry.register(entity_type, repository.get_owned, set_owner=repository.set_owner)
    return repositories
