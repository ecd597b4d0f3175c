from dataclasses import dataclass

from jose import JWTError, jwt
from starlette.requests import Request

from crm_authz.context import bind_caller
from crm_authz.core.config import get_settings


@dataclass(frozen=True)
class Caller:
    user_id: int
    role: str


def decode_caller(token: str) -> Caller | None:
    settings = get_settings()
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except JWTError:
        return None

    try:
        user_id = int(payload.get("sub"))
    except (TypeError, ValueError):
        return None

    role = payload.get("role")
    if not isinstance(role, str) or not role:
        return None
    return Caller(user_id=user_id, role=role)


def issue_token(user_id: int, role: str) -> str:
    settings = get_settings()
    return jwt.encode({"sub": str(user_id), "role": role}, settings.jwt_secret, algorithm=settings.jwt_algorithm)


async def get_current_caller(request: Request) -> Caller | None:
    auth_header = request.headers.get("authorization", "")
    token = auth_header.replace("Bearer ", "") if auth_header.startswith("Bearer ") else ""
    if not token:
        return None

    caller = decode_caller(token)
    if caller is not None:
        bind_caller(caller.user_id, caller.role)
    return caller
