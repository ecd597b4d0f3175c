from __future__ import annotations

from contextvars import ContextVar, Token
from dataclasses import dataclass
from typing import Any


@dataclass
class RequestContext:
    """Per-request state shared by middleware, guards and log records.

    The instance is bound once by the correlation middleware; the caller fields
    are filled in place when authentication resolves, so copies of the context
    made for worker threads and child tasks see the same caller.
    """

    correlation_id: str
    user_id: int | None = None
    role: str | None = None


request_context_var: ContextVar[RequestContext | None] = ContextVar("request_context", default=None)


def bind_request_context(correlation_id: str) -> Token[RequestContext | None]:
    return request_context_var.set(RequestContext(correlation_id=correlation_id))


def reset_request_context(token: Token[RequestContext | None]) -> None:
    request_context_var.reset(token)


def get_correlation_id() -> str | None:
    context = request_context_var.get()
    return context.correlation_id if context is not None else None


def bind_caller(user_id: int, role: str) -> None:
    context = request_context_var.get()
    if context is None:
        return
    context.user_id = user_id
    context.role = role


def get_log_context() -> dict[str, Any]:
    context = request_context_var.get()
    if context is None:
        return {"correlation_id": None, "caller": None}
    caller = None
    if context.user_id is not None:
        caller = {"user_id": context.user_id, "role": context.role}
    return {"correlation_id": context.correlation_id, "caller": caller}
