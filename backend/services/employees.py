"""
Employees - CRUD, generated employee ids, lookup by key / employeeId / email.

The employee record carries the userId of the linked identity; complaint
notifications for an assigned employee go to that userId.
"""

import logging
from typing import Any, Dict, List, Optional

from config import now_iso, timestamp, today_local
from services.errors import NotFoundError, ValidationError
from services.paths import Collection, collection_path, get_user_type_or_raise
from services.query import FullScanRecordQuery, ListQuery, QueryShape, matches_search
from services.store import TreeStore
from services.validation import validate_employee_data

logger = logging.getLogger("employees")

EMPLOYEE_SEARCH_FIELDS = ("name", "email", "phone", "employeeId", "department")
EMPLOYEE_SHAPE = QueryShape(
    search_fields=EMPLOYEE_SEARCH_FIELDS,
    date_fields=("createdAt", "updatedAt", "joinedDate"),
    matchers={"isActive": lambda e, v: (e.get("isActive") is not False) == (v in (True, "true", "1"))},
)
EMPLOYEE_ID_ATTEMPTS = 5


def employee_id_base(name: str, department: Optional[str]) -> str:
    """DEPT3 + initials, e.g. ('Ravi Kumar', 'sales') -> SALRK"""
    initials = "".join(part[0].upper() for part in (name or "").split() if part)
    prefix = department[:3].upper() if department else "EMP"
    return f"{prefix}{initials}"


class EmployeeService:
    """Employees of one tenant"""

    def __init__(self, store: TreeStore, user_type: str):
        self.store = store
        self.user_type = get_user_type_or_raise(user_type)
        self.query_engine = FullScanRecordQuery(store, self._path(), EMPLOYEE_SHAPE)

    def _path(self, key: Optional[str] = None) -> str:
        return collection_path(self.user_type, Collection.EMPLOYEES, key)

    # ==================== READ ====================

    async def list(self, query: Optional[ListQuery] = None) -> Dict[str, Any]:
        """Filters: role, department, isActive. Default order: name asc."""
        query = query or ListQuery(sort_by="name", sort_order="asc")
        if not query.sort_by:
            query.sort_by = "name"
        return (await self.query_engine.run(query)).to_dict("employees")

    async def get_by_id(self, key: str) -> Optional[Dict[str, Any]]:
        employee = await self.store.get(self._path(key))
        if not employee:
            return None
        return {**employee, "id": key}

    async def _find(self, field: str, value: Any) -> Optional[Dict[str, Any]]:
        if value is None or value == "":
            return None
        wanted = str(value).strip().lower()
        for employee in await self.query_engine.fetch_all():
            if str(employee.get(field) or "").strip().lower() == wanted:
                return employee
        return None

    async def get_by_employee_id(self, employee_id: str) -> Optional[Dict[str, Any]]:
        return await self._find("employeeId", employee_id)

    async def get_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        return await self._find("email", email)

    async def get_by_user_id(self, user_id: str) -> Optional[Dict[str, Any]]:
        return await self._find("userId", user_id)

    async def get_by_role(self, role: str) -> List[Dict[str, Any]]:
        return (await self.query_engine.run(ListQuery(filters={"role": role}, sort_by="name", sort_order="asc"))).items

    async def suggestions(self, term: Optional[str], limit: int = 10) -> List[Dict[str, Any]]:
        if not term or not term.strip():
            return []
        found = [e for e in await self.query_engine.fetch_all()
                 if e.get("isActive") is not False and matches_search(e, term, EMPLOYEE_SEARCH_FIELDS)]
        return [
            {
                "id": e["id"],
                "label": f"{e.get('name')} ({e.get('employeeId')})",
                "value": e["id"],
                "name": e.get("name"),
                "employeeId": e.get("employeeId"),
                "role": e.get("role"),
                "userId": e.get("userId"),
            }
            for e in found[:limit]
        ]

    async def stats(self) -> Dict[str, Any]:
        stats = {"total": 0, "active": 0, "inactive": 0, "byRole": {}, "byDepartment": {}}
        for employee in await self.query_engine.fetch_all():
            stats["total"] += 1
            if employee.get("isActive") is not False:
                stats["active"] += 1
            else:
                stats["inactive"] += 1
            role = employee.get("role")
            if role:
                stats["byRole"][role] = stats["byRole"].get(role, 0) + 1
            department = employee.get("department")
            if department:
                stats["byDepartment"][department] = stats["byDepartment"].get(department, 0) + 1
        return stats

    # ==================== WRITE ====================

    async def generate_employee_id(self, name: str, department: Optional[str]) -> str:
        """
        {DEPT3}{INITIALS}{seq:03d}, first free sequence among 5 tries,
        then a timestamp suffix.
        """
        base = employee_id_base(name, department)
        for sequence in range(1, EMPLOYEE_ID_ATTEMPTS + 1):
            candidate = f"{base}{sequence:03d}"
            if not await self.get_by_employee_id(candidate):
                return candidate
        initials = employee_id_base(name, None)[3:]
        return f"EMP{initials}{str(timestamp())[-6:]}"

    async def create(self, data: Dict[str, Any]) -> Dict[str, Any]:
        validate_employee_data(data, is_create=True, today=today_local())

        employee_id = (data.get("employeeId") or "").strip()
        if employee_id:
            if await self.get_by_employee_id(employee_id):
                raise ValidationError("Employee ID is already in use", field="employeeId")
        else:
            employee_id = await self.generate_employee_id(data["name"], data.get("department"))

        if data.get("email") and await self.get_by_email(data["email"]):
            raise ValidationError("Email is already in use by another employee", field="email")

        now = now_iso()
        record = {k: v for k, v in data.items() if k != "id"}
        record.update({
            "employeeId": employee_id,
            "isActive": data.get("isActive", True),
            "createdAt": now,
            "updatedAt": now,
        })
        if record.get("email"):
            record["email"] = record["email"].strip().lower()

        key = await self.store.push(self._path(), record)
        logger.info(f"[EMPLOYEE] Created {record.get('name')} ({employee_id}) id={key}")
        return {**record, "id": key}

    async def update(self, key: str, updates: Dict[str, Any]) -> Dict[str, Any]:
        if not await self.store.get(self._path(key)):
            raise NotFoundError("Employee", key)

        validate_employee_data(updates, is_create=False, today=today_local())

        if updates.get("employeeId"):
            other = await self.get_by_employee_id(updates["employeeId"])
            if other and other["id"] != key:
                raise ValidationError("Employee ID is already in use", field="employeeId")
        if updates.get("email"):
            other = await self.get_by_email(updates["email"])
            if other and other["id"] != key:
                raise ValidationError("Email is already in use by another employee", field="email")

        patch = {k: v for k, v in updates.items() if k != "id"}
        patch["updatedAt"] = now_iso()
        await self.store.update(self._path(key), patch)
        logger.info(f"[EMPLOYEE] Updated {key}")
        return await self.get_by_id(key)

    async def delete(self, key: str) -> None:
        if not await self.store.get(self._path(key)):
            raise NotFoundError("Employee", key)
        await self.store.remove(self._path(key))
        logger.info(f"[EMPLOYEE] Deleted {key}")
