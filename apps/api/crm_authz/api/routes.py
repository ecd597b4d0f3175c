from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import Response

from crm_authz.authz.api import assignments_router, permissions_router, settings_router
from crm_authz.authz.guards import require_caller, require_permission
from crm_authz.core.auth import Caller
from crm_authz.core.config import get_settings
from crm_authz.crm.api import accounts_router, contacts_router, leads_router, opportunities_router
from crm_authz.metrics import generate_metrics_payload, metrics_content_type

router = APIRouter()
router.include_router(settings_router)
router.include_router(assignments_router)
router.include_router(permissions_router)
router.include_router(leads_router)
router.include_router(contacts_router)
router.include_router(accounts_router)
router.include_router(opportunities_router)


@router.get("/health", tags=["system"])
def health() -> dict[str, str]:
    settings = get_settings()
    return {
        "status": "ok",
        "service": settings.app_name,
        "environment": settings.app_env,
    }


@router.get("/me", tags=["auth"])
def me(caller: Caller = Depends(require_caller)) -> dict[str, int | str]:
    return {
        "user_id": caller.user_id,
        "role": caller.role,
    }


@router.get("/metrics", tags=["system"])
def metrics(_caller: Caller = Depends(require_permission("settings", "view"))) -> Response:
    settings = get_settings()
    if not settings.metrics_enabled:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="not found")
    return Response(content=generate_metrics_payload(), media_type=metrics_content_type())
