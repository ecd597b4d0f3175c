from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from crm_authz.authz.guards import require_entity_access, require_permission
from crm_authz.core.auth import Caller
from crm_authz.core.database import get_db
from crm_authz.crm.models import CRMAccount, CRMContact, CRMLead, CRMOpportunity
from crm_authz.crm.schemas import CRMEntityCreate, CRMEntityRead


leads_router = APIRouter(prefix="/api/crm", tags=["crm.leads"])
contacts_router = APIRouter(prefix="/api/crm", tags=["crm.contacts"])
accounts_router = APIRouter(prefix="/api/crm", tags=["crm.accounts"])
opportunities_router = APIRouter(prefix="/api/crm", tags=["crm.opportunities"])


def _create(db: Session, model: type[Any], dto: CRMEntityCreate, caller: Caller) -> CRMEntityRead:
    row = model(name=dto.name.strip(), owner_id=caller.user_id)
    db.add(row)
    db.commit()
    db.refresh(row)
    return CRMEntityRead.model_validate(row)


def _get(db: Session, model: type[Any], entity_id: int, label: str) -> CRMEntityRead:
    row = db.get(model, entity_id)
    if row is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"{label} not found")
    return CRMEntityRead.model_validate(row)


@leads_router.post("/leads", response_model=CRMEntityRead, status_code=status.HTTP_201_CREATED)
def create_lead(
    dto: CRMEntityCreate,
    db: Session = Depends(get_db),
    caller: Caller = Depends(require_permission("leads", "create")),
) -> CRMEntityRead:
    return _create(db, CRMLead, dto, caller)


@leads_router.get("/leads/{lead_id}", response_model=CRMEntityRead)
def get_lead(
    lead_id: int,
    db: Session = Depends(get_db),
    _caller: Caller = Depends(require_permission("leads", "view")),
    _access: Caller = Depends(require_entity_access("lead", id_param="lead_id")),
) -> CRMEntityRead:
    return _get(db, CRMLead, lead_id, "Lead")


@contacts_router.post("/contacts", response_model=CRMEntityRead, status_code=status.HTTP_201_CREATED)
def create_contact(
    dto: CRMEntityCreate,
    db: Session = Depends(get_db),
    caller: Caller = Depends(require_permission("contacts", "create")),
) -> CRMEntityRead:
    return _create(db, CRMContact, dto, caller)


@contacts_router.get("/contacts/{contact_id}", response_model=CRMEntityRead)
def get_contact(
    contact_id: int,
    db: Session = Depends(get_db),
    _caller: Caller = Depends(require_permission("contacts", "view")),
    _access: Caller = Depends(require_entity_access("contact", id_param="contact_id")),
) -> CRMEntityRead:
    return _get(db, CRMContact, contact_id, "Contact")


@accounts_router.post("/accounts", response_model=CRMEntityRead, status_code=status.HTTP_201_CREATED)
def create_account(
    dto: CRMEntityCreate,
    db: Session = Depends(get_db),
    caller: Caller = Depends(require_permission("accounts", "create")),
) -> CRMEntityRead:
    return _create(db, CRMAccount, dto, caller)


@accounts_router.get("/accounts/{account_id}", response_model=CRMEntityRead)
def get_account(
    account_id: int,
    db: Session = Depends(get_db),
    _caller: Caller = Depends(require_permission("accounts", "view")),
    _access: Caller = Depends(require_entity_access("account", id_param="account_id")),
) -> CRMEntityRead:
    return _get(db, CRMAccount, account_id, "Account")


@opportunities_router.post("/opportunities", response_model=CRMEntityRead, status_code=status.HTTP_201_CREATED)
def create_opportunity(
    dto: CRMEntityCreate,
    db: Session = Depends(get_db),
    caller: Caller = Depends(require_permission("opportunities", "create")),
) -> CRMEntityRead:
    return _create(db, CRMOpportunity, dto, caller)


@opportunities_router.get("/opportunities/{opportunity_id}", response_model=CRMEntityRead)
def get_opportunity(
    opportunity_id: int,
    db: Session = Depends(get_db),
    _caller: Caller = Depends(require_permission("opportunities", "view")),
    _access: Caller = Depends(require_entity_access("opportunity", id_param="opportunity_id")),
) -> CRMEntityRead:
    return _get(db, CRMOpportunity, opportunity_id, "Opportunity")
