# adminhub/core/permissions.py
"""
Permission catalogue.

The resource tree mirrors the admin console navigation. Every resource (parent
and child) is paired with every action in PERMISSION_ACTIONS when the
permissions collection is synchronised at startup.
"""
from typing import Dict, List, Any

PERMISSION_RESOURCES: List[Dict[str, Any]] = [
    {"name": "Dashboard", "path": "/dashboard"},
    {
        "name": "User",
        "path": "/user-management",
        "children": [
            {"name": "User List", "path": "/user-management/list"},
            {"name": "Invitation", "path": "/user-management/invitations"},
        ],
    },
    {
        "name": "Creator",
        "path": "/academic-management",
        "children": [
            {"name": "Creator Management", "path": "/academic-management/students"},
            {"name": "Account Management", "path": "/academic-management/account-managers"},
            {"name": "Brand Management", "path": "/corporate-management/brands"},
        ],
    },
    {
        "name": "Roles & Permissions",
        "path": "/roles-permissions",
        "children": [
            {"name": "Role Management", "path": "/roles-permissions/roles"},
            {"name": "User Type", "path": "/roles-permissions/user-type"},
            {"name": "Notification Control Center", "path": "/roles-permissions/notifications"},
        ],
    },
    {"name": "Content", "path": "/content"},
    {"name": "Campaign", "path": "/campaign"},
    {"name": "Analytics", "path": "/analytics"},
    {"name": "Brand", "path": "/corporate-management/brands"},
    {"name": "Role", "path": "/roles-permissions/roles"},
    {"name": "User Types", "path": "/roles-permissions/user-type"},
    {"name": "Notification Control Center", "path": "/roles-permissions/notifications"},
    {"name": "KYC", "path": "/kyc"},
    {"name": "Get To Know", "path": "/get-to-know"},
    {"name": "Data Board", "path": "/data-board"},
    {
        "name": "Canvas Creator",
        "path": "/canvas-creator",
        "children": [
            {"name": "Pages", "path": "/canvas-creator/pages"},
            {"name": "Storefront", "path": "/canvas-creator/storefront"},
        ],
    },
    {
        "name": "Love",
        "path": "/love",
        "children": [
            {"name": "LearnLoop", "path": "/love/learnloop"},
            {"name": "VibeLab", "path": "/love/vibelab"},
            {"name": "GlowCall", "path": "/love/glowcall"},
            {"name": "IRL Meet", "path": "/love/irl-meet"},
            {"name": "TapIn", "path": "/love/tapin"},
        ],
    },
    {
        "name": "Revenue Desk",
        "path": "/revenue-desk",
        "children": [
            {"name": "Earnings", "path": "/revenue-desk/earnings"},
            {"name": "Transactions", "path": "/revenue-desk/transactions"},
            {"name": "Subscriptions", "path": "/revenue-desk/subscriptions"},
            {"name": "Withdrawals", "path": "/revenue-desk/withdrawals"},
        ],
    },
    {
        "name": "PromoBoost",
        "path": "/promoboost",
        "children": [
            {"name": "Lead Generation", "path": "/promoboost/lead-generation"},
            {"name": "Broadcasts", "path": "/promoboost/broadcasts"},
            {"name": "Coupons", "path": "/promoboost/coupons"},
            {"name": "Unsubscribed Users", "path": "/promoboost/unsubscribed-users"},
        ],
    },
    {
        "name": "Subscription Center",
        "path": "/subscription-center",
        "children": [
            {"name": "Tiers", "path": "/subscription-center/tiers"},
            {"name": "TaxDeck", "path": "/subscription-center/taxdeck"},
        ],
    },
    {"name": "Fan Fund & Donations", "path": "/fan-fund-donations"},
]

PERMISSION_ACTIONS: List[str] = ["View", "Create", "Edit", "Delete"]

# Wildcard action on a role grant, satisfies any requested action
ACTION_ALL = "All"

SUPERADMIN_ROLE = "superadmin"

# Holders of View/All on any of these may open any user's KYC documents
KYC_VIEW_ANY_RESOURCES = frozenset({
    "Creator",
    "Creator Management",
    "Account Management",
    "Brand Management",
})

# Fixed user type names exposed to the role editor
ROLE_USER_TYPES: List[str] = ["employee", "creator", "brand", "accountmanager", "admin", "superadmin"]


def _collect_resource_names() -> List[str]:
    parents = [resource["name"] for resource in PERMISSION_RESOURCES]
    children = [
        child["name"]
        for resource in PERMISSION_RESOURCES
        for child in resource.get("children", [])
    ]
    # Preserve order, drop duplicates ("Notification Control Center" is listed twice)
    return list(dict.fromkeys(parents + children))


ALL_RESOURCES: List[str] = _collect_resource_names()


def permission_key(resource: str, action: str) -> str:
    return f"{resource}:{action}"


def catalogue_permission_keys() -> List[str]:
    """Every `resource:action` pair the permissions collection should hold."""
    return [permission_key(resource, action) for resource in ALL_RESOURCES for action in PERMISSION_ACTIONS]
