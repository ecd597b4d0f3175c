from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor

from crm_authz.api.routes import router as api_router
from crm_authz.authz.seed import initialize_permissions
from crm_authz.authz.service import (
    AuthorizationService,
    entity_registry,
    get_authorization_service,
    set_authorization_service,
)
from crm_authz.authz.store import DbPermissionStore, InMemoryPermissionStore, PermissionStore
from crm_authz.core.config import get_settings
from crm_authz.core.database import SessionLocal
from crm_authz.crm.repositories import register_crm_entities
from crm_authz.logging import configure_logging
from crm_authz.metrics import observe_authz_seed_run
from crm_authz.middleware.correlation_id import CorrelationIdMiddleware
from crm_authz.middleware.request_logging import RequestLoggingMiddleware
from crm_authz.otel import get_fastapi_server_request_hook, setup_otel


configure_logging()
logger = logging.getLogger("crm_authz.lifecycle")


def build_permission_store(backend: str, app_env: str) -> PermissionStore:
    backend_choice = backend.lower()
    if backend_choice == "auto":
        backend_choice = "db" if app_env.lower() in {"prod", "production"} else "inmemory"

    if backend_choice == "db":
        return DbPermissionStore(SessionLocal)
    return InMemoryPermissionStore()


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    if settings.authz_seed_on_startup:
        try:
            initialize_permissions(get_authorization_service().store)
        except Exception as exc:
            observe_authz_seed_run("failed")
            logger.exception("authz.seed.failed", extra={"error": str(exc)[:500]})
    logger.info("system_started")
    yield


app = FastAPI(title="CRM Authorization API", version="0.1.0", lifespan=lifespan)
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(CorrelationIdMiddleware)
app.include_router(api_router)

settings = get_settings()
register_crm_entities(entity_registry, SessionLocal)
set_authorization_service(
    AuthorizationService(
        build_permission_store(settings.authz_storage_backend, settings.app_env),
        entity_registry,
        manager_entity_access=settings.authz_manager_entity_access,
    )
)

if settings.otel_enabled:
    setup_otel("api", True)

if not getattr(app, "_is_instrumented_by_opentelemetry", False):
    FastAPIInstrumentor().instrument_app(app, server_request_hook=get_fastapi_server_request_hook())
