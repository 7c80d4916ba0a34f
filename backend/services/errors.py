"""
Error taxonomy shared by every service.

ValidationError / NotFoundError are caller errors, surfaced as-is and never
retried. StoreError wraps a storage failure with the operation context and
keeps the original exception as __cause__.
"""

from typing import Optional


class ShowroomError(Exception):
    """Base class for service errors"""
    pass


class ValidationError(ShowroomError):
    """Caller-supplied data violates a field rule"""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.field = field


class DuplicatePhoneError(ValidationError):
    """Another customer of the tenant already uses this phone number"""

    def __init__(self, phone: str, existing_id: Optional[str] = None):
        super().__init__(
            "A customer with this phone number already exists. Please use a different phone number.",
            field="phone",
        )
        self.phone = phone
        self.existing_id = existing_id


class InvalidTransitionError(ValidationError):
    """Complaint status change not allowed from the stored status"""

    def __init__(self, from_status: str, to_status: str, allowed):
        super().__init__(
            f"Invalid status transition: '{from_status}' -> '{to_status}'. "
            f"Allowed from '{from_status}': {sorted(allowed)}",
            field="status",
        )
        self.from_status = from_status
        self.to_status = to_status


class NotFoundError(ShowroomError):
    """Referenced record absent at operation time"""

    def __init__(self, kind: str, key: str):
        super().__init__(f"{kind} not found: {key}")
        self.kind = kind
        self.key = key


class StoreError(ShowroomError):
    """Transient storage failure (network, driver, server)"""
    pass
