"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  Complaint Repository                                                        ║
║                                                                              ║
║  CRUD + list / search / stats over {tenant}/complaints                       ║
║                                                                              ║
║  RULES:                                                                      ║
║  - complaintNumber = {ECM|FCM}{year}{count+1:04d}  (count = collection size, ║
║    no reservation: two concurrent creators can get the same number)          ║
║  - only the assignee fields selected by assigneeType are kept                ║
║  - a status change needs remarks and is appended to statusHistory            ║
║  - isOverdue is derived on read, never stored                                ║
║  - notifications are advisory: their failures never fail the complaint       ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

import logging
from datetime import date
from typing import Any, Callable, Dict, List, Optional

import config
from config import now_iso, today_local
from services.brand_hierarchy import BrandHierarchyService, EscalationOption
from services.complaint_notifications import ComplaintNotificationService
from services.complaint_status import (
    ComplaintStatus,
    SETTLED_STATUSES,
    coerce_status,
    is_overdue,
    validate_transition,
)
from services.dates import parse_date, to_epoch_millis
from services.errors import NotFoundError, ValidationError
from services.events import RefreshBus
from services.paths import COMPLAINT_PREFIX, Collection, collection_path, get_user_type_or_raise
from services.query import FullScanRecordQuery, ListQuery, QueryShape, matches_search
from services.store import TreeStore, records_from
from services.validation import AssigneeType, Severity, validate_complaint_data

logger = logging.getLogger("complaints")

REFRESH_SOURCE = "complaints"

EMPLOYEE_FIELDS = ("assignedEmployeeId", "assignedEmployeeName")
SERVICE_PERSON_FIELDS = (
    "servicePersonName", "servicePersonContact",
    "companyComplaintNumber", "companyRecordedDate",
)
# Never persisted as-is
TRANSIENT_FIELDS = ("id", "isOverdue", "statusRemarks", "statusHistory", "complaintNumber")

COMPLAINT_SEARCH_FIELDS = ("complaintNumber", "title", "customerName", "customerPhone", "description")


def _assigned_to(complaint: Dict[str, Any], value: Any) -> bool:
    return complaint.get("assignedEmployeeId") == value or complaint.get("servicePersonContact") == value


COMPLAINT_SHAPE = QueryShape(
    search_fields=COMPLAINT_SEARCH_FIELDS,
    date_fields=("createdAt", "updatedAt", "expectedResolutionDate"),
    matchers={
        "assignedTo": _assigned_to,
        "isOverdue": lambda c, v: bool(c.get("isOverdue")) == (v in (True, "true", "1")),
    },
)


def _user_stamp(user: Optional[Dict[str, Any]], prefix: str) -> Dict[str, Any]:
    if not user:
        return {}
    return {f"{prefix}By": user.get("uid"), f"{prefix}ByName": user.get("name")}


class ComplaintService:
    """Complaints of one tenant"""

    def __init__(
        self,
        store: TreeStore,
        user_type: str,
        notifications: Optional[ComplaintNotificationService] = None,
        refresh_bus: Optional[RefreshBus] = None,
        brands: Optional[BrandHierarchyService] = None,
        today_provider: Callable[[], date] = today_local,
        title_min_length: Optional[int] = None,
    ):
        self.store = store
        self.user_type = get_user_type_or_raise(user_type)
        self.today_provider = today_provider
        self.notifications = notifications or ComplaintNotificationService(
            store, self.user_type, today_provider=today_provider
        )
        self.refresh_bus = refresh_bus
        self.brands = brands or BrandHierarchyService(store, self.user_type)
        self.title_min_length = title_min_length if title_min_length is not None else config.COMPLAINT_TITLE_MIN_LENGTH
        self.query_engine = FullScanRecordQuery(store, self._path(), COMPLAINT_SHAPE, decorate=self._with_overdue)

    def _path(self, complaint_id: Optional[str] = None) -> str:
        return collection_path(self.user_type, Collection.COMPLAINTS, complaint_id)

    def _with_overdue(self, complaint: Dict[str, Any]) -> Dict[str, Any]:
        return {**complaint, "isOverdue": is_overdue(complaint, self.today_provider())}

    async def _refresh(self):
        if self.refresh_bus:
            await self.refresh_bus.publish(REFRESH_SOURCE)

    # ==================== NUMBERING ====================

    async def generate_complaint_number(self) -> str:
        """{PREFIX}{year}{sequence:04d}, sequence = current collection size + 1"""
        count = len(records_from(await self.store.get(self._path())))
        year = self.today_provider().year
        return f"{COMPLAINT_PREFIX[self.user_type]}{year}{count + 1:04d}"

    # ==================== READ ====================

    async def get_by_id(self, complaint_id: str) -> Optional[Dict[str, Any]]:
        complaint = await self.store.get(self._path(complaint_id))
        if not complaint:
            return None
        return self._with_overdue({**complaint, "id": complaint_id})

    async def get_or_raise(self, complaint_id: str) -> Dict[str, Any]:
        complaint = await self.get_by_id(complaint_id)
        if complaint is None:
            raise NotFoundError("Complaint", complaint_id)
        return complaint

    async def list(self, query: Optional[ListQuery] = None) -> Dict[str, Any]:
        """
        Filters: status, severity, assignedTo, isOverdue.
        Default order: createdAt desc. No limit -> one page.
        """
        query = query or ListQuery()
        if not query.sort_by:
            query.sort_by = "createdAt"
        page = await self.query_engine.run(query)
        return page.to_dict("complaints")

    async def search(self, term: Optional[str], limit: Optional[int] = None) -> List[Dict[str, Any]]:
        """Number-prefix matches first, then newest first"""
        if not term or not term.strip():
            return []
        needle = term.strip().lower()
        found = [c for c in await self.query_engine.fetch_all()
                 if matches_search(c, needle, COMPLAINT_SEARCH_FIELDS)]

        found.sort(key=lambda c: to_epoch_millis(c.get("createdAt")), reverse=True)
        found.sort(key=lambda c: 0 if (c.get("complaintNumber") or "").lower().startswith(needle) else 1)

        return found[:limit] if limit else found

    async def get_assigned(self, assignee: str) -> List[Dict[str, Any]]:
        """Complaints assigned to an employee id or a service person contact"""
        page = await self.query_engine.run(ListQuery(filters={"assignedTo": assignee}, sort_by="createdAt"))
        return page.items

    async def get_overdue(self) -> List[Dict[str, Any]]:
        page = await self.query_engine.run(
            ListQuery(filters={"isOverdue": True}, sort_by="expectedResolutionDate", sort_order="asc")
        )
        return page.items

    async def stats(self) -> Dict[str, Any]:
        complaints = await self.query_engine.fetch_all()
        stats = {
            "total": len(complaints),
            "open": 0,
            "inProgress": 0,
            "resolved": 0,
            "closed": 0,
            "escalated": 0,
            "overdue": 0,
            "bySeverity": {s.value: 0 for s in Severity},
        }
        status_keys = {
            ComplaintStatus.OPEN: "open",
            ComplaintStatus.IN_PROGRESS: "inProgress",
            ComplaintStatus.RESOLVED: "resolved",
            ComplaintStatus.CLOSED: "closed",
            ComplaintStatus.ESCALATED: "escalated",
        }
        for complaint in complaints:
            status = coerce_status(complaint.get("status"))
            if status is not None:
                stats[status_keys[status]] += 1
            if complaint.get("severity") in stats["bySeverity"]:
                stats["bySeverity"][complaint["severity"]] += 1
            if complaint["isOverdue"]:
                stats["overdue"] += 1
        return stats

    # ==================== WRITE ====================

    @staticmethod
    def _assignment_patch(data: Dict[str, Any], for_update: bool) -> Dict[str, Any]:
        """Drop (create) or clear (update) the assignee fields of the other type"""
        patch = dict(data)
        assignee_type = data.get("assigneeType")
        if assignee_type == AssigneeType.SERVICE_PERSON.value:
            other = EMPLOYEE_FIELDS
        elif assignee_type == AssigneeType.EMPLOYEE.value:
            other = SERVICE_PERSON_FIELDS
        else:
            return patch
        for field in other:
            if for_update:
                patch[field] = None
            else:
                patch.pop(field, None)
        return patch

    async def create(
        self,
        data: Dict[str, Any],
        user: Optional[Dict[str, Any]] = None,
        allow_past_due_date: bool = False,
    ) -> Dict[str, Any]:
        """
        Validate, number and persist a complaint, then run the immediate
        due/overdue check. allow_past_due_date lets back-office staff record
        a complaint whose resolution date already passed.
        """
        data = {k: v for k, v in data.items() if k not in TRANSIENT_FIELDS}
        data.setdefault("assigneeType", AssigneeType.EMPLOYEE.value)
        data.setdefault("severity", Severity.MEDIUM.value)
        data.pop("status", None)

        validate_complaint_data(
            data,
            is_create=True,
            today=self.today_provider(),
            allow_past_due_date=allow_past_due_date,
            title_min_length=self.title_min_length,
        )

        record = self._assignment_patch(data, for_update=False)
        record.update(_user_stamp(user, "created"))
        for field in ("title", "description"):
            record[field] = record[field].strip()

        now = now_iso()
        record.update({
            "complaintNumber": await self.generate_complaint_number(),
            "status": ComplaintStatus.OPEN.value,
            "createdAt": now,
            "updatedAt": now,
            "statusHistory": [{
                "status": ComplaintStatus.OPEN.value,
                "changedAt": now,
                "changedBy": record.get("createdBy"),
                "changedByName": record.get("createdByName"),
                "remarks": "Complaint created",
            }],
        })

        complaint_id = await self.store.push(self._path(), record)
        created = self._with_overdue({**record, "id": complaint_id})
        logger.info(f"[COMPLAINT] Created {created['complaintNumber']} id={complaint_id}")

        try:
            await self.notifications.check_immediate(created)
        except Exception as e:
            logger.warning(f"[COMPLAINT] Immediate notification check failed for {complaint_id}: {e}")

        await self._refresh()
        return created

    async def update(
        self,
        complaint_id: str,
        updates: Dict[str, Any],
        user: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        existing = await self.store.get(self._path(complaint_id))
        if not existing:
            raise NotFoundError("Complaint", complaint_id)

        validate_complaint_data(
            updates,
            is_create=False,
            today=self.today_provider(),
            title_min_length=self.title_min_length,
            existing=existing,
        )

        patch = {k: v for k, v in updates.items() if k not in TRANSIENT_FIELDS}
        patch = self._assignment_patch(patch, for_update=True)
        patch.update(_user_stamp(user, "updated"))
        now = now_iso()
        patch["updatedAt"] = now

        new_status = updates.get("status")
        status_changed = new_status is not None and new_status != existing.get("status")
        if status_changed:
            validate_transition(existing.get("status"), new_status)
            remarks = (updates.get("statusRemarks") or "").strip()
            if not remarks:
                raise ValidationError("Remarks are required when changing the status", field="statusRemarks")
            history = list(existing.get("statusHistory") or [])
            history.append({
                "status": new_status,
                "changedAt": now,
                "changedBy": patch.get("updatedBy"),
                "changedByName": patch.get("updatedByName"),
                "remarks": remarks,
            })
            patch["statusHistory"] = history

        await self.store.update(self._path(complaint_id), patch)
        updated = await self.get_or_raise(complaint_id)
        logger.info(
            f"[COMPLAINT] Updated {updated.get('complaintNumber')} fields={sorted(k for k in patch if k != 'updatedAt')}"
        )

        new_due = updates.get("expectedResolutionDate")
        if new_due and parse_date(new_due) != parse_date(existing.get("expectedResolutionDate")):
            try:
                await self.notifications.handle_due_date_change(complaint_id, updated)
            except Exception as e:
                logger.warning(f"[COMPLAINT] Due-date notification refresh failed for {complaint_id}: {e}")

        if status_changed and coerce_status(new_status) in SETTLED_STATUSES:
            try:
                await self.notifications.cleanup_for_complaint(complaint_id)
            except Exception as e:
                logger.warning(f"[COMPLAINT] Notification cleanup failed for {complaint_id}: {e}")

        await self._refresh()
        return updated

    async def delete(self, complaint_id: str) -> None:
        if not await self.store.get(self._path(complaint_id)):
            raise NotFoundError("Complaint", complaint_id)

        try:
            await self.notifications.cleanup_for_complaint(complaint_id)
        except Exception as e:
            logger.warning(f"[COMPLAINT] Notification cleanup failed for {complaint_id}: {e}")

        await self.store.remove(self._path(complaint_id))
        logger.info(f"[COMPLAINT] Deleted {complaint_id}")
        await self._refresh()

    # ==================== ESCALATION ====================

    async def escalation_options(self, complaint_id: str, brand_name: Optional[str] = None) -> EscalationOption:
        complaint = await self.get_or_raise(complaint_id)
        return await self.brands.resolve_escalation(
            complaint.get("servicePersonContact"),
            brand_name=brand_name,
            title=complaint.get("title"),
        )

    async def escalate(
        self,
        complaint_id: str,
        user: Optional[Dict[str, Any]] = None,
        brand_name: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Hand the complaint to the next brand level (or the default
        hierarchy once the chain is exhausted) and mark it escalated.
        """
        option = await self.escalation_options(complaint_id, brand_name)
        if not option.available:
            raise ValidationError("No escalation level available for this complaint", field="servicePersonContact")

        target = option.target
        if option.action == EscalationOption.NEXT_LEVEL:
            remarks = f"Escalated to level {target['level']}: {target['name']} ({target['contact']})"
        else:
            remarks = f"Escalated to default hierarchy: {target['name']} ({target['contact']})"

        complaint = await self.get_or_raise(complaint_id)
        updates = {
            "assigneeType": AssigneeType.SERVICE_PERSON.value,
            "servicePersonName": target["name"],
            "servicePersonContact": target["contact"],
        }
        if complaint.get("status") != ComplaintStatus.ESCALATED.value:
            updates["status"] = ComplaintStatus.ESCALATED.value
            updates["statusRemarks"] = remarks

        logger.info(f"[COMPLAINT] {complaint.get('complaintNumber')}: {remarks}")
        return await self.update(complaint_id, updates, user=user)
