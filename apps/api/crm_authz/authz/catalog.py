"""Static permission catalog: modules, actions, roles and the default role policy."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum


class Action(StrEnum):
    VIEW = "view"
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    EXPORT = "export"
    IMPORT = "import"
    ASSIGN = "assign"


class Role(StrEnum):
    ADMIN = "Admin"
    MANAGER = "Manager"
    USER = "User"
    READ_ONLY = "ReadOnly"


@dataclass(frozen=True, slots=True)
class ModuleDefinition:
    name: str
    display_name: str
    description: str
    order: int
    icon: str


DEFAULT_MODULES: tuple[ModuleDefinition, ...] = (
    ModuleDefinition("contacts", "Contacts", "Manage contacts", 1, "users"),
    ModuleDefinition("accounts", "Accounts", "Manage accounts/companies", 2, "building"),
    ModuleDefinition("leads", "Leads", "Manage leads", 3, "user-plus"),
    ModuleDefinition("opportunities", "Opportunities", "Manage sales opportunities", 4, "trending-up"),
    ModuleDefinition("tasks", "Tasks", "Manage tasks", 5, "check-square"),
    ModuleDefinition("events", "Events", "Manage calendar events", 6, "calendar"),
    ModuleDefinition("communications", "Communications", "Manage customer communications", 7, "message-square"),
    ModuleDefinition("products", "Products", "Manage products", 8, "package"),
    ModuleDefinition("inventory", "Inventory", "Manage inventory", 9, "box"),
    ModuleDefinition("invoices", "Invoices", "Manage invoices", 10, "file-text"),
    ModuleDefinition("purchase-orders", "Purchase Orders", "Manage purchase orders", 11, "shopping-cart"),
    ModuleDefinition("reports", "Reports", "View and export reports", 12, "bar-chart-2"),
    ModuleDefinition("workflows", "Workflows", "Manage automation workflows", 13, "git-branch"),
    ModuleDefinition("settings", "Settings", "System settings and configuration", 14, "settings"),
    ModuleDefinition("users", "Users", "Manage system users", 15, "users"),
    ModuleDefinition("api-keys", "API Keys", "Manage API integrations", 16, "key"),
    ModuleDefinition("subscriptions", "Subscriptions", "Manage subscription packages", 17, "credit-card"),
    ModuleDefinition("proposals", "Proposals", "Create and manage proposals/contracts", 18, "file"),
)

MANAGER_DELETE_DENIED_MODULES = frozenset({"users", "settings", "subscriptions"})
USER_EDITABLE_MODULES = frozenset({"contacts", "leads", "opportunities", "tasks", "events", "communications"})
READ_ONLY_HIDDEN_MODULES = frozenset({"settings", "users"})


def is_valid_action(value: str) -> bool:
    return value in {action.value for action in Action}


def is_valid_role(value: str) -> bool:
    return value in {role.value for role in Role}


def default_role_policy(role: Role, module_name: str, action: Action) -> bool:
    """Return the seeded allow/deny value for a (role, module, action) triple."""

    if role == Role.ADMIN:
        return True
    if role == Role.MANAGER:
        return action != Action.DELETE or module_name not in MANAGER_DELETE_DENIED_MODULES
    if role == Role.USER:
        if action == Action.VIEW:
            return True
        return action in {Action.CREATE, Action.UPDATE} and module_name in USER_EDITABLE_MODULES
    if role == Role.READ_ONLY:
        return action == Action.VIEW and module_name not in READ_ONLY_HIDDEN_MODULES
    return False
