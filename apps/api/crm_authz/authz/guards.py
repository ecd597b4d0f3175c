from collections.abc import Callable

from fastapi import Depends, HTTPException, Request, status

from crm_authz.authz.service import AuthorizationService, get_authorization_service
from crm_authz.core.auth import Caller, get_current_caller


def get_authz() -> AuthorizationService:
    return get_authorization_service()


def require_caller(caller: Caller | None = Depends(get_current_caller)) -> Caller:
    if caller is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    return caller


def require_permission(module: str, action: str) -> Callable[..., Caller]:
    def checker(
        caller: Caller | None = Depends(get_current_caller),
        authz: AuthorizationService = Depends(get_authz),
    ) -> Caller:
        if caller is None:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
        if not authz.has_permission(caller, module, action):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"You don't have permission to {action} in the {module} module",
            )
        return caller

    return checker


def require_entity_access(
    entity_type: str | None = None,
    *,
    id_param: str = "entity_id",
    type_param: str = "entity_type",
) -> Callable[..., Caller]:
    """Guard a route on access to the entity named by its path parameters.

    With ``entity_type`` left unset the type tag is read from the ``type_param``
    path parameter.
    """

    def checker(
        request: Request,
        caller: Caller | None = Depends(get_current_caller),
        authz: AuthorizationService = Depends(get_authz),
    ) -> Caller:
        if caller is None:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")

        resolved_type = entity_type or request.path_params.get(type_param)
        if not resolved_type:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid entity type")

        try:
            entity_id = int(request.path_params.get(id_param))
        except (TypeError, ValueError):
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid entity ID")

        if not authz.has_entity_access(caller, resolved_type, entity_id):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"You don't have access to this {resolved_type}",
            )
        return caller

    return checker
