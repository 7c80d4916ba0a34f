"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  Path Resolver                                                               ║
║                                                                              ║
║  Every record lives under  {tenant}/{collection}[/{key}]                     ║
║  Two isolated tenants: electronics and furniture                             ║
║  Brand hierarchies exist for the electronics tenant only                     ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

from enum import Enum
from typing import Optional, Union

from services.errors import ValidationError


class UserType(str, Enum):
    """Tenants - strict partitioning"""
    ELECTRONICS = "electronics"
    FURNITURE = "furniture"


class Collection(str, Enum):
    CUSTOMERS = "customers"
    EMPLOYEES = "employees"
    COMPLAINTS = "complaints"
    COMPLAINT_NOTIFICATIONS = "complaintNotifications"
    SALES = "sales"
    QUOTATIONS = "quotations"
    BRAND_HIERARCHIES = "brandHierarchies"
    DEFAULT_HIERARCHY = "defaultHierarchy"


ELECTRONICS_ONLY = {Collection.BRAND_HIERARCHIES, Collection.DEFAULT_HIERARCHY}

# Complaint number prefix per tenant
COMPLAINT_PREFIX = {
    UserType.ELECTRONICS: "ECM",
    UserType.FURNITURE: "FCM",
}

# Short code used by invoice / quotation numbers
TENANT_CODE = {
    UserType.ELECTRONICS: "EL",
    UserType.FURNITURE: "FN",
}

SESSIONS_ROOT = "sessions"


def validate_user_type(user_type: str) -> bool:
    return user_type in [u.value for u in UserType]


def get_user_type_or_raise(user_type: Union[str, UserType]) -> UserType:
    """Return the UserType or raise ValidationError"""
    if isinstance(user_type, UserType):
        return user_type
    if not validate_user_type(user_type):
        raise ValidationError(
            f"Invalid user type: '{user_type}'. Must be electronics or furniture",
            field="userType",
        )
    return UserType(user_type)


def supports_brand_hierarchy(user_type: Union[str, UserType]) -> bool:
    return get_user_type_or_raise(user_type) == UserType.ELECTRONICS


def collection_path(
    user_type: Union[str, UserType],
    collection: Union[str, Collection],
    key: Optional[str] = None,
) -> str:
    """
    Tenant-scoped storage path.

        collection_path("electronics", "complaints")          -> electronics/complaints
        collection_path("electronics", "complaints", "k1")    -> electronics/complaints/k1
    """
    tenant = get_user_type_or_raise(user_type)

    try:
        coll = Collection(collection)
    except ValueError:
        raise ValidationError(f"Unknown collection: '{collection}'", field="collection")

    if coll in ELECTRONICS_ONLY and tenant != UserType.ELECTRONICS:
        raise ValidationError(
            f"'{coll.value}' is only available for the electronics tenant",
            field="userType",
        )

    path = f"{tenant.value}/{coll.value}"
    if key:
        if "/" in key:
            raise ValidationError(f"Invalid record key: '{key}'", field="id")
        path = f"{path}/{key}"
    return path


def session_path(token: str) -> str:
    if not token or "/" in token:
        raise ValidationError("Invalid session token", field="token")
    return f"{SESSIONS_ROOT}/{token}"
