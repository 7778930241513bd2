"""Role-based authorization policy.

One place answers "may this role do that?" for both API actions and page
routes, so handlers never inline their own role checks.
"""
from typing import Dict, FrozenSet, Optional, Tuple

from exceptions import PermissionDeniedError
from models import Role

MANAGE_USERS = "manage_users"
MANAGE_PRODUCTS = "manage_products"
MANAGE_ORDERS = "manage_orders"
MANAGE_TRUST = "manage_trust"
VIEW_ANALYTICS = "view_analytics"
MANAGE_OWN_PRODUCTS = "manage_own_products"
VIEW_OWN_ORDERS = "view_own_orders"
UPDATE_PROFILE = "update_profile"
PLACE_ORDERS = "place_orders"
REVIEW_ORDERS = "review_orders"

ROLE_PERMISSIONS: Dict[Role, Tuple[str, ...]] = {
    Role.ADMIN: (MANAGE_USERS, MANAGE_PRODUCTS, MANAGE_ORDERS, MANAGE_TRUST, VIEW_ANALYTICS),
    Role.VENDOR: (MANAGE_OWN_PRODUCTS, VIEW_OWN_ORDERS, UPDATE_PROFILE),
    Role.CUSTOMER: (PLACE_ORDERS, VIEW_OWN_ORDERS, REVIEW_ORDERS, UPDATE_PROFILE),
}

# Route prefix -> roles allowed; an empty set means "any signed-in actor"
ROUTE_RULES: Tuple[Tuple[str, FrozenSet[Role]], ...] = (
    ("/admin", frozenset({Role.ADMIN})),
    ("/vendor", frozenset({Role.VENDOR})),
    ("/account", frozenset()),
    ("/checkout", frozenset()),
    ("/cart", frozenset()),
    ("/order-confirmation", frozenset()),
)


def permissions_for(role: Role | str) -> list[str]:
    return list(ROLE_PERMISSIONS[Role(role)])


def is_allowed(role: Role | str, action: str) -> bool:
    return action in ROLE_PERMISSIONS[Role(role)]


def authorize(role: Role | str, action: str) -> None:
    """Raise PermissionDeniedError unless ``role`` may perform ``action``."""
    if not is_allowed(role, action):
        raise PermissionDeniedError(f"Role '{Role(role).value}' may not {action.replace('_', ' ')}")


def can_access_route(role: Optional[Role | str], path: str) -> bool:
    """Decide whether a visitor with ``role`` (None when anonymous) may open ``path``."""
    for prefix, roles in ROUTE_RULES:
        if path == prefix or path.startswith(prefix + "/"):
            if role is None:
                return False
            return not roles or Role(role) in roles
    return True
