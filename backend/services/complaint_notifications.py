"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  Complaint Notification Engine                                               ║
║                                                                              ║
║  Per (complaint, recipient):  none -> due_today | overdue -> retracted       ║
║                                                                              ║
║  daysDiff = expected day 00:00 - today 00:00 (in days)                       ║
║    settled (resolved / closed)  -> never notified                            ║
║    daysDiff < 0                 -> complaint_overdue                         ║
║    daysDiff == 0                -> complaint_due_today                       ║
║    daysDiff > 0                 -> not due                                   ║
║                                                                              ║
║  DEDUP: at most one due/overdue notification per (complaintId, userId).      ║
║  The store has no unique constraint: every generator pre-reads all the       ║
║  tenant's notifications first (check-then-act).                              ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

import logging
from datetime import date
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Set, Tuple

from config import now_iso, today_local
from services.complaint_status import is_settled
from services.dates import days_until, to_epoch_millis
from services.errors import NotFoundError, ShowroomError
from services.paths import Collection, collection_path, get_user_type_or_raise
from services.store import TreeStore, records_from
from services.validation import AssigneeType

logger = logging.getLogger("complaint_notifications")

NOTIFICATION_CATEGORY = "complaints"


class NotificationType(str, Enum):
    DUE_TODAY = "complaint_due_today"
    OVERDUE = "complaint_overdue"
    ASSIGNED = "complaint_assigned"
    RESOLVED = "complaint_resolved"


DUE_TYPES = {NotificationType.DUE_TODAY.value, NotificationType.OVERDUE.value}


class DueState(str, Enum):
    NOT_DUE = "not_due"
    DUE_TODAY = "due_today"
    OVERDUE = "overdue"
    SETTLED = "settled"


class NotificationPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    NORMAL = "normal"


SEVERITY_PRIORITY = {
    "critical": NotificationPriority.HIGH,
    "high": NotificationPriority.HIGH,
    "medium": NotificationPriority.MEDIUM,
    "low": NotificationPriority.LOW,
}


def priority_from_severity(severity: Optional[str]) -> str:
    return SEVERITY_PRIORITY.get(severity or "medium", NotificationPriority.MEDIUM).value


def classify(complaint: Dict[str, Any], today: date) -> Tuple[DueState, Optional[int]]:
    """Due state of a complaint and its daysDiff (None when it has no date)"""
    if is_settled(complaint.get("status")):
        return DueState.SETTLED, None
    diff = days_until(complaint.get("expectedResolutionDate"), today)
    if diff is None or diff > 0:
        return DueState.NOT_DUE, diff
    if diff < 0:
        return DueState.OVERDUE, diff
    return DueState.DUE_TODAY, diff


def pair_key(complaint_id: str, user_id: str) -> str:
    return f"{complaint_id}_{user_id}"


def is_due_notification(notification: Dict[str, Any]) -> bool:
    return notification.get("type") in DUE_TYPES


def build_due_content(
    complaint: Dict[str, Any],
    state: DueState,
    days_diff: int,
    primary: bool = True,
    extra: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """title / message / type / priority / data for one recipient"""
    number = complaint.get("complaintNumber") or ""
    customer = complaint.get("customerName") or ""

    if state == DueState.OVERDUE:
        days_overdue = abs(days_diff)
        plural = "s" if days_overdue > 1 else ""
        notification_type = NotificationType.OVERDUE
        title = "Complaint Overdue" if primary else "Your Assigned Overdue Complaint"
        message = f"Complaint #{number} from {customer} is {days_overdue} day{plural} overdue"
        priority = NotificationPriority.HIGH.value
    else:
        days_overdue = 0
        notification_type = NotificationType.DUE_TODAY
        title = "Complaint Due Today" if primary else "Your Assigned Due Complaint"
        message = f"Complaint #{number} from {customer} is due for resolution today"
        priority = priority_from_severity(complaint.get("severity"))

    data = {
        "complaintId": complaint.get("id"),
        "complaintNumber": number,
        "customerName": customer,
        "customerPhone": complaint.get("customerPhone") or "",
        "title": complaint.get("title") or "",
        "severity": complaint.get("severity") or "medium",
        "status": complaint.get("status") or "open",
        "expectedResolutionDate": complaint.get("expectedResolutionDate") or "",
        "assigneeType": complaint.get("assigneeType") or "",
        "assignedEmployeeName": complaint.get("assignedEmployeeName") or "",
        "assignedEmployeeId": complaint.get("assignedEmployeeId") or "",
        "servicePersonName": complaint.get("servicePersonName") or "",
        "servicePersonContact": complaint.get("servicePersonContact") or "",
        "daysOverdue": days_overdue,
        "isDueToday": state == DueState.DUE_TODAY,
        "isOverdue": state == DueState.OVERDUE,
        "notificationDate": now_iso(),
    }
    if extra:
        data.update(extra)

    return {
        "title": title,
        "message": message,
        "type": notification_type.value,
        "priority": priority,
        "data": data,
    }


class ProcessResult:
    """Outcome of a bulk reconciliation run"""

    def __init__(self):
        self.generated = 0
        self.cleaned_up = 0
        self.due_today = 0
        self.overdue = 0
        self.errors: List[Dict[str, Any]] = []

    def to_dict(self) -> Dict[str, Any]:
        return {
            "generated": self.generated,
            "cleanedUp": self.cleaned_up,
            "dueToday": self.due_today,
            "overdue": self.overdue,
            "errors": self.errors,
            "summary": (
                f"Generated {self.generated} notifications, "
                f"cleaned up {self.cleaned_up} resolved notifications"
            ),
        }


class ComplaintNotificationService:
    """Due / overdue complaint notifications for one tenant"""

    def __init__(
        self,
        store: TreeStore,
        user_type: str,
        today_provider: Callable[[], date] = today_local,
    ):
        self.store = store
        self.user_type = get_user_type_or_raise(user_type)
        self.today_provider = today_provider

    def _path(self, notification_id: Optional[str] = None) -> str:
        return collection_path(self.user_type, Collection.COMPLAINT_NOTIFICATIONS, notification_id)

    # ════════════════════════════════════════════════════════════════════════
    # PLAIN VALUE OPERATIONS
    # ════════════════════════════════════════════════════════════════════════

    async def create_notification(self, notification: Dict[str, Any]) -> Dict[str, Any]:
        now = now_iso()
        record = {
            "title": notification.get("title", ""),
            "message": notification.get("message", ""),
            "type": notification.get("type"),
            "userId": notification.get("userId"),
            "userType": self.user_type.value,
            "read": False,
            "data": notification.get("data") or {},
            "priority": notification.get("priority") or NotificationPriority.NORMAL.value,
            "category": NOTIFICATION_CATEGORY,
            "createdAt": now,
            "updatedAt": now,
        }
        notification_id = await self.store.push(self._path(), record)
        return {**record, "id": notification_id}

    async def get_all(self) -> List[Dict[str, Any]]:
        return records_from(await self.store.get(self._path()))

    async def list_for_user(self, user_id: str) -> List[Dict[str, Any]]:
        """Recipient's notifications, newest first"""
        snapshot = await self.store.query(self._path(), order_by="userId", equal_to=user_id)
        notifications = records_from(snapshot)
        notifications.sort(
            key=lambda n: to_epoch_millis(n.get("createdAt")),
            reverse=True,
        )
        return notifications

    async def get_notification(self, notification_id: str) -> Dict[str, Any]:
        notification = await self.store.get(self._path(notification_id))
        if not notification:
            raise NotFoundError("Notification", notification_id)
        return {**notification, "id": notification_id}

    async def mark_as_read(self, notification_id: str) -> None:
        await self.get_notification(notification_id)
        now = now_iso()
        await self.store.update(self._path(notification_id), {"read": True, "readAt": now, "updatedAt": now})

    async def mark_all_as_read(self, user_id: str) -> int:
        unread = [n for n in await self.list_for_user(user_id) if not n.get("read")]
        now = now_iso()
        for notification in unread:
            await self.store.update(
                self._path(notification["id"]), {"read": True, "readAt": now, "updatedAt": now}
            )
        return len(unread)

    async def delete_notification(self, notification_id: str) -> None:
        await self.store.remove(self._path(notification_id))

    async def get_stats(self, user_id: str) -> Dict[str, int]:
        notifications = await self.list_for_user(user_id)

        def count(notification_type):
            return len([n for n in notifications if n.get("type") == notification_type.value])

        return {
            "total": len(notifications),
            "dueToday": count(NotificationType.DUE_TODAY),
            "overdue": count(NotificationType.OVERDUE),
            "resolved": count(NotificationType.RESOLVED),
            "assigned": count(NotificationType.ASSIGNED),
            "unread": len([n for n in notifications if not n.get("read")]),
        }

    async def delete_old_notifications(self, user_id: str, days_old: int = 30) -> int:
        """Purge the recipient's READ notifications older than days_old"""
        today = self.today_provider()
        deleted = 0
        for notification in await self.list_for_user(user_id):
            if not notification.get("read"):
                continue
            age = days_until(notification.get("createdAt"), today)
            if age is not None and -age > days_old:
                await self.delete_notification(notification["id"])
                deleted += 1
        if deleted:
            logger.info(f"[NOTIF] Purged {deleted} old notifications for user {user_id}")
        return deleted

    # ════════════════════════════════════════════════════════════════════════
    # DUE / OVERDUE ENGINE
    # ════════════════════════════════════════════════════════════════════════

    async def _existing_pairs(self) -> Set[str]:
        pairs = set()
        for notification in await self.get_all():
            complaint_id = (notification.get("data") or {}).get("complaintId")
            if complaint_id and is_due_notification(notification):
                pairs.add(pair_key(complaint_id, notification.get("userId")))
        return pairs

    async def _employee_user_id(self, employee_id: Optional[str]) -> Optional[str]:
        """Identity linked to an employee record, if any"""
        if not employee_id:
            return None
        employee = await self.store.get(
            collection_path(self.user_type, Collection.EMPLOYEES, employee_id)
        )
        if not employee:
            return None
        return employee.get("userId")

    async def _recipients(self, complaint: Dict[str, Any], primary_user_id: Optional[str]) -> List[Tuple[str, bool]]:
        """[(userId, is_primary)] - primary recipient first, then the assigned employee's user"""
        recipients = []
        if primary_user_id:
            recipients.append((primary_user_id, True))

        if complaint.get("assigneeType") == AssigneeType.EMPLOYEE.value and complaint.get("assignedEmployeeId"):
            try:
                employee_user = await self._employee_user_id(complaint["assignedEmployeeId"])
            except ShowroomError as e:
                logger.warning(f"[NOTIF] Employee lookup failed for {complaint.get('assignedEmployeeId')}: {e}")
                employee_user = None
            if employee_user and employee_user != primary_user_id:
                recipients.append((employee_user, False))

        return recipients

    async def _emit(
        self,
        complaint: Dict[str, Any],
        primary_user_id: Optional[str],
        existing: Optional[Set[str]],
        extra: Optional[Dict[str, Any]] = None,
    ) -> Tuple[DueState, int]:
        """Create missing due/overdue notifications for one complaint"""
        state, diff = classify(complaint, self.today_provider())
        if state not in (DueState.DUE_TODAY, DueState.OVERDUE):
            return state, 0

        created = 0
        for user_id, primary in await self._recipients(complaint, primary_user_id):
            key = pair_key(complaint["id"], user_id)
            if existing is not None and key in existing:
                continue
            content = build_due_content(complaint, state, diff, primary=primary, extra=extra)
            await self.create_notification({**content, "userId": user_id})
            created += 1
            if existing is not None:
                existing.add(key)

        if created:
            logger.info(
                f"[NOTIF] {state.value} x{created} for complaint {complaint.get('complaintNumber')} "
                f"(daysDiff={diff})"
            )
        return state, created

    async def check_immediate(self, complaint: Dict[str, Any]) -> int:
        """
        Right after a complaint is created: notify creator and assigned
        employee when it is already due or overdue.
        """
        state, _ = classify(complaint, self.today_provider())
        if state not in (DueState.DUE_TODAY, DueState.OVERDUE):
            return 0
        existing = await self._existing_pairs()
        _, created = await self._emit(
            complaint, complaint.get("createdBy"), existing, extra={"immediateNotification": True}
        )
        return created

    async def _delete_for_complaint(self, complaint_id: str) -> int:
        stale = [
            n for n in await self.get_all()
            if is_due_notification(n) and (n.get("data") or {}).get("complaintId") == complaint_id
        ]
        for notification in stale:
            await self.delete_notification(notification["id"])
        return len(stale)

    async def cleanup_for_complaint(self, complaint_id: str) -> int:
        """Retract every due/overdue notification of a complaint"""
        deleted = await self._delete_for_complaint(complaint_id)
        if deleted:
            logger.info(f"[NOTIF] Retracted {deleted} notifications for complaint {complaint_id}")
        return deleted

    async def handle_due_date_change(self, complaint_id: str, complaint: Dict[str, Any]) -> int:
        """
        Drop every due/overdue notification of the complaint, then
        notify again against the new date if it is due or overdue.
        """
        deleted = await self._delete_for_complaint(complaint_id)
        complaint = {**complaint, "id": complaint_id}
        primary = complaint.get("updatedBy") or complaint.get("createdBy")
        _, created = await self._emit(complaint, primary, set(), extra={"dueDateUpdated": True})
        logger.info(
            f"[NOTIF] Due date changed for {complaint.get('complaintNumber')}: "
            f"-{deleted} +{created}"
        )
        return created

    async def cleanup_settled(self, complaints_by_id: Dict[str, Dict[str, Any]], result: ProcessResult) -> None:
        """Retract notifications whose complaint is settled or gone"""
        for notification in await self.get_all():
            if not is_due_notification(notification):
                continue
            complaint_id = (notification.get("data") or {}).get("complaintId")
            if not complaint_id:
                continue
            complaint = complaints_by_id.get(complaint_id)
            if complaint is not None and not is_settled(complaint.get("status")):
                continue
            try:
                await self.delete_notification(notification["id"])
                result.cleaned_up += 1
            except ShowroomError as e:
                result.errors.append({"notificationId": notification["id"], "complaintId": complaint_id, "error": str(e)})

    async def process_complaint_notifications(self, admin_user_id: Optional[str] = None) -> Dict[str, Any]:
        """
        Bulk reconciliation for the tenant:
        1. retract notifications of settled / deleted complaints
        2. notify every due / overdue complaint, skipping notified pairs
        One complaint failing never aborts the run.
        """
        result = ProcessResult()
        complaints = records_from(
            await self.store.get(collection_path(self.user_type, Collection.COMPLAINTS))
        )
        by_id = {c["id"]: c for c in complaints}

        await self.cleanup_settled(by_id, result)

        existing = await self._existing_pairs()
        for complaint in complaints:
            try:
                state, created = await self._emit(
                    complaint, admin_user_id or complaint.get("createdBy"), existing
                )
            except ShowroomError as e:
                logger.error(f"[NOTIF] Complaint {complaint.get('complaintNumber')} failed: {e}")
                result.errors.append({
                    "complaintId": complaint.get("id"),
                    "complaintNumber": complaint.get("complaintNumber"),
                    "error": str(e),
                })
                continue
            if state == DueState.OVERDUE:
                result.overdue += 1
            elif state == DueState.DUE_TODAY:
                result.due_today += 1
            result.generated += created

        logger.info(
            f"[NOTIF] {self.user_type.value}: generated={result.generated} cleaned={result.cleaned_up} "
            f"due_today={result.due_today} overdue={result.overdue} errors={len(result.errors)}"
        )
        return result.to_dict()
