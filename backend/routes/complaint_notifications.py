"""
Complaint notification routes - the caller's inbox plus the bulk sweep
"""

from fastapi import APIRouter, Depends, Query

from models.notification import NotificationCreate, ProcessRequest
from routes.deps import get_current_user, notification_service
from services.complaint_notifications import ComplaintNotificationService

router = APIRouter(prefix="/complaint-notifications", tags=["Complaint notifications"])


@router.get("")
async def my_notifications(
    service: ComplaintNotificationService = Depends(notification_service),
    user: dict = Depends(get_current_user),
):
    """Caller's notifications, newest first"""
    return {"notifications": await service.list_for_user(user["uid"])}


@router.get("/stats")
async def my_notification_stats(
    service: ComplaintNotificationService = Depends(notification_service),
    user: dict = Depends(get_current_user),
):
    return await service.get_stats(user["uid"])


@router.post("")
async def create_notification(
    data: NotificationCreate,
    service: ComplaintNotificationService = Depends(notification_service),
    user: dict = Depends(get_current_user),
):
    notification = await service.create_notification(data.model_dump())
    return {"success": True, "notification": notification}


@router.post("/process")
async def process_notifications(
    data: ProcessRequest,
    service: ComplaintNotificationService = Depends(notification_service),
    user: dict = Depends(get_current_user),
):
    """Run the due / overdue reconciliation for the tenant now"""
    return await service.process_complaint_notifications(data.adminUserId)


@router.post("/read-all")
async def mark_all_read(
    service: ComplaintNotificationService = Depends(notification_service),
    user: dict = Depends(get_current_user),
):
    updated = await service.mark_all_as_read(user["uid"])
    return {"success": True, "updated": updated}


@router.post("/purge")
async def purge_old_notifications(
    days_old: int = Query(30, ge=1),
    service: ComplaintNotificationService = Depends(notification_service),
    user: dict = Depends(get_current_user),
):
    deleted = await service.delete_old_notifications(user["uid"], days_old)
    return {"success": True, "deleted": deleted}


@router.post("/{notification_id}/read")
async def mark_read(
    notification_id: str,
    service: ComplaintNotificationService = Depends(notification_service),
    user: dict = Depends(get_current_user),
):
    await service.mark_as_read(notification_id)
    return {"success": True}


@router.delete("/{notification_id}")
async def delete_notification(
    notification_id: str,
    service: ComplaintNotificationService = Depends(notification_service),
    user: dict = Depends(get_current_user),
):
    await service.delete_notification(notification_id)
    return {"success": True}
