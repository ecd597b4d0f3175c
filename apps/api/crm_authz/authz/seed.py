from __future__ import annotations

import logging

from crm_authz.authz.catalog import DEFAULT_MODULES, Action, Role, default_role_policy
from crm_authz.authz.store import PermissionStore, RolePolicyRow
from crm_authz.metrics import observe_authz_seed_run


logger = logging.getLogger("crm_authz.authz.seed")


def initialize_permissions(store: PermissionStore) -> bool:
    """Seed the module catalog and default role policies once.

    Returns False when any module row already exists; the check runs against
    the store so the guard holds across process restarts.
    """

    if store.has_modules():
        observe_authz_seed_run("skipped")
        logger.info("authz.seed.skipped")
        return False

    modules = store.add_modules(DEFAULT_MODULES)

    rows: list[RolePolicyRow] = []
    for role in Role:
        for module in modules:
            for action in Action:
                rows.append((role.value, module.id, action.value, default_role_policy(role, module.name, action)))
    inserted = store.add_role_permissions(rows)

    observe_authz_seed_run("completed")
    logger.info("authz.seed.completed", extra={"modules": len(modules), "policies": inserted})
    return True
