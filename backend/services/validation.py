"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  Validation Layer                                                            ║
║                                                                              ║
║  Field rules checked before any write. The first broken rule raises          ║
║  ValidationError; nothing is written.                                        ║
║                                                                              ║
║  create  -> required fields + format rules                                   ║
║  update  -> format rules on the fields present in the patch only             ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

import re
from datetime import date
from enum import Enum
from typing import Any, Dict, Optional

import config
from services.complaint_status import ComplaintStatus
from services.dates import parse_date
from services.errors import ValidationError

# 10 digits, first digit 6-9 (mobile numbers)
PHONE_PATTERN = re.compile(r"^[6-9]\d{9}$")
EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
EMPLOYEE_PHONE_PATTERN = re.compile(r"^[\d\-\+\(\)]{10,15}$")

TITLE_MAX_LENGTH = 100
DESCRIPTION_MIN_LENGTH = 10
DESCRIPTION_MAX_LENGTH = 1000
SERVICE_PERSON_NAME_MIN_LENGTH = 2

ASSIGNMENT_FIELDS = frozenset({
    "assigneeType", "assignedEmployeeId", "assignedEmployeeName",
    "servicePersonName", "servicePersonContact",
})


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class AssigneeType(str, Enum):
    EMPLOYEE = "employee"
    SERVICE_PERSON = "service_person"


class CustomerType(str, Enum):
    WHOLESALER = "wholesaler"
    RETAILER = "retailer"


class CustomerCategory(str, Enum):
    INDIVIDUAL = "individual"
    FIRM = "firm"
    SCHOOL = "school"


def _values(enum_cls) -> set:
    return {e.value for e in enum_cls}


def _blank(value: Any) -> bool:
    return value is None or str(value).strip() == ""


def digits_only(phone: Any) -> str:
    return "".join(filter(str.isdigit, str(phone or "")))


def is_valid_phone(phone: Any) -> bool:
    """True when phone is exactly 10 digits starting with 6-9"""
    return isinstance(phone, str) and bool(PHONE_PATTERN.match(phone))


def is_valid_email(email: Any) -> bool:
    return isinstance(email, str) and bool(EMAIL_PATTERN.match(email))


# ════════════════════════════════════════════════════════════════════════════
# COMPLAINTS
# ════════════════════════════════════════════════════════════════════════════

def validate_service_person_contact(contact: Any) -> None:
    if not is_valid_phone(contact):
        raise ValidationError(
            "Valid service person contact number is required (10 digits starting with 6-9)",
            field="servicePersonContact",
        )


def validate_assignment(record: Dict[str, Any], patch: Dict[str, Any]) -> None:
    """
    Assignee rules on the complaint as it will be stored. record is the
    merged complaint, patch the keys being written.
    """
    assignee_type = record.get("assigneeType")
    if assignee_type is not None and assignee_type not in _values(AssigneeType):
        raise ValidationError("Invalid assignee type", field="assigneeType")

    if assignee_type == AssigneeType.SERVICE_PERSON.value:
        name = (record.get("servicePersonName") or "").strip()
        if len(name) < SERVICE_PERSON_NAME_MIN_LENGTH:
            raise ValidationError(
                f"Service person name must be at least {SERVICE_PERSON_NAME_MIN_LENGTH} characters",
                field="servicePersonName",
            )
        validate_service_person_contact(record.get("servicePersonContact"))
    elif not _blank(patch.get("servicePersonContact")):
        validate_service_person_contact(patch.get("servicePersonContact"))


def validate_complaint_data(
    data: Dict[str, Any],
    is_create: bool = True,
    today: Optional[date] = None,
    allow_past_due_date: bool = False,
    title_min_length: Optional[int] = None,
    existing: Optional[Dict[str, Any]] = None,
) -> None:
    """
    Complaint field rules.

    On update only the keys present in data are checked, with the same
    rules as on create. Assignee rules run against existing merged with
    data whenever data touches an assignee field.
    """
    title_min = title_min_length if title_min_length is not None else config.COMPLAINT_TITLE_MIN_LENGTH

    if is_create:
        if _blank(data.get("customerId")):
            raise ValidationError("Customer is required", field="customerId")
        if _blank(data.get("expectedResolutionDate")):
            raise ValidationError("Expected resolution date is required", field="expectedResolutionDate")

    if "customerId" in data and _blank(data.get("customerId")):
        raise ValidationError("Customer is required", field="customerId")

    if is_create or "title" in data:
        title = (data.get("title") or "").strip()
        if len(title) < title_min:
            raise ValidationError(f"Title must be at least {title_min} characters", field="title")
        if len(title) > TITLE_MAX_LENGTH:
            raise ValidationError(f"Title cannot exceed {TITLE_MAX_LENGTH} characters", field="title")

    if is_create or "description" in data:
        description = (data.get("description") or "").strip()
        if len(description) < DESCRIPTION_MIN_LENGTH:
            raise ValidationError(
                f"Description must be at least {DESCRIPTION_MIN_LENGTH} characters", field="description"
            )
        if len(description) > DESCRIPTION_MAX_LENGTH:
            raise ValidationError(
                f"Description cannot exceed {DESCRIPTION_MAX_LENGTH} characters", field="description"
            )

    if "expectedResolutionDate" in data:
        expected = parse_date(data.get("expectedResolutionDate"))
        if expected is None:
            raise ValidationError("Invalid expected resolution date", field="expectedResolutionDate")
        if not allow_past_due_date and expected < (today or config.today_local()):
            raise ValidationError(
                "Expected resolution date cannot be in the past", field="expectedResolutionDate"
            )

    if is_create or ASSIGNMENT_FIELDS.intersection(data):
        validate_assignment({**(existing or {}), **data}, data)

    if data.get("severity") is not None and data["severity"] not in _values(Severity):
        raise ValidationError("Invalid severity level", field="severity")

    if data.get("status") is not None and data["status"] not in _values(ComplaintStatus):
        raise ValidationError("Invalid complaint status", field="status")


# ════════════════════════════════════════════════════════════════════════════
# CUSTOMERS
# ════════════════════════════════════════════════════════════════════════════

CUSTOMER_REQUIRED_FIELDS = ["name", "phone", "customerType", "category"]


def validate_customer_data(data: Dict[str, Any], is_create: bool = True) -> None:
    if is_create:
        for field in CUSTOMER_REQUIRED_FIELDS:
            if _blank(data.get(field)):
                raise ValidationError(f"{field} is required", field=field)
    elif "phone" in data and _blank(data.get("phone")):
        raise ValidationError("phone is required", field="phone")

    if not _blank(data.get("email")) and not is_valid_email(data["email"].strip()):
        raise ValidationError("Invalid email format", field="email")

    if data.get("phone"):
        clean = digits_only(data["phone"])
        if len(clean) != 10:
            raise ValidationError("Phone number must be exactly 10 digits", field="phone")
        if not is_valid_phone(clean):
            raise ValidationError(
                "Invalid phone number format. Must start with 6-9 and be 10 digits", field="phone"
            )

    if data.get("customerType") and data["customerType"] not in _values(CustomerType):
        raise ValidationError("Invalid customer type", field="customerType")

    if data.get("category") and data["category"] not in _values(CustomerCategory):
        raise ValidationError("Invalid customer category", field="category")


# ════════════════════════════════════════════════════════════════════════════
# EMPLOYEES
# ════════════════════════════════════════════════════════════════════════════

EMPLOYEE_REQUIRED_FIELDS = ["name", "phone", "role"]


def validate_employee_data(data: Dict[str, Any], is_create: bool = True, today: Optional[date] = None) -> None:
    if is_create:
        for field in EMPLOYEE_REQUIRED_FIELDS:
            if _blank(data.get(field)):
                raise ValidationError(f"{field} is required", field=field)
        if _blank(data.get("joinedDate")):
            raise ValidationError("joinedDate is required", field="joinedDate")

    if not _blank(data.get("email")) and not is_valid_email(data["email"].strip()):
        raise ValidationError("Invalid email format", field="email")

    if data.get("phone") and not EMPLOYEE_PHONE_PATTERN.match(str(data["phone"]).replace(" ", "")):
        raise ValidationError("Invalid phone number format", field="phone")

    if data.get("employeeId") is not None and len(str(data["employeeId"]).strip()) < 3:
        raise ValidationError("Employee ID must be at least 3 characters", field="employeeId")

    salary = data.get("salary")
    if salary is not None:
        try:
            if float(salary) < 0:
                raise ValueError(salary)
        except (TypeError, ValueError):
            raise ValidationError("Invalid salary amount", field="salary")

    if not _blank(data.get("joinedDate")):
        joined = parse_date(data["joinedDate"])
        if joined is None:
            raise ValidationError("Invalid joining date", field="joinedDate")
        if joined > (today or config.today_local()):
            raise ValidationError("Date of joining cannot be in the future", field="joinedDate")


# ════════════════════════════════════════════════════════════════════════════
# BRAND HIERARCHY
# ════════════════════════════════════════════════════════════════════════════

def validate_hierarchy_level(level: Dict[str, Any], index: Optional[int] = None) -> None:
    """One escalation level: {name, contact}"""
    suffix = f" for level {index + 1}" if index is not None else ""
    if not isinstance(level, dict) or _blank(level.get("name")):
        raise ValidationError(f"Name is required{suffix}", field="hierarchy")
    if _blank(level.get("contact")):
        raise ValidationError(f"Contact is required{suffix}", field="hierarchy")
    if not is_valid_phone(str(level["contact"]).strip()):
        raise ValidationError(
            f"Invalid contact number{suffix}. Must be 10 digits starting with 6-9", field="hierarchy"
        )
