"""
Complaint routes - CRUD, listing, status changes and brand escalation
"""

from fastapi import APIRouter, Depends, HTTPException, Query

from models.complaint import ComplaintCreate, ComplaintUpdate, EscalateRequest
from routes.deps import complaint_service, get_current_user, list_query
from services.complaints import ComplaintService
from services.query import ListQuery

router = APIRouter(prefix="/complaints", tags=["Complaints"])


@router.get("")
async def list_complaints(
    status: str = None,
    severity: str = None,
    assigned_to: str = None,
    overdue: bool = None,
    query: ListQuery = Depends(list_query),
    service: ComplaintService = Depends(complaint_service),
    user: dict = Depends(get_current_user),
):
    """Filtered, sorted, optionally paginated listing"""
    query.filters = {"status": status, "severity": severity, "assignedTo": assigned_to}
    if overdue is not None:
        query.filters["isOverdue"] = overdue
    return await service.list(query)


@router.get("/search")
async def search_complaints(
    q: str = "",
    limit: int = Query(None, ge=1, le=100),
    service: ComplaintService = Depends(complaint_service),
    user: dict = Depends(get_current_user),
):
    return {"complaints": await service.search(q, limit)}


@router.get("/stats")
async def complaint_stats(
    service: ComplaintService = Depends(complaint_service),
    user: dict = Depends(get_current_user),
):
    return await service.stats()


@router.get("/overdue")
async def overdue_complaints(
    service: ComplaintService = Depends(complaint_service),
    user: dict = Depends(get_current_user),
):
    return {"complaints": await service.get_overdue()}


@router.get("/assigned/{assignee}")
async def assigned_complaints(
    assignee: str,
    service: ComplaintService = Depends(complaint_service),
    user: dict = Depends(get_current_user),
):
    """Complaints assigned to an employee id or a service person contact"""
    return {"complaints": await service.get_assigned(assignee)}


@router.get("/{complaint_id}")
async def get_complaint(
    complaint_id: str,
    service: ComplaintService = Depends(complaint_service),
    user: dict = Depends(get_current_user),
):
    complaint = await service.get_by_id(complaint_id)
    if not complaint:
        raise HTTPException(status_code=404, detail="Complaint not found")
    return complaint


@router.post("")
async def create_complaint(
    data: ComplaintCreate,
    allow_past_due_date: bool = False,
    service: ComplaintService = Depends(complaint_service),
    user: dict = Depends(get_current_user),
):
    payload = {k: v for k, v in data.model_dump().items() if v is not None}
    complaint = await service.create(payload, user=user, allow_past_due_date=allow_past_due_date)
    return {"success": True, "complaint": complaint}


@router.put("/{complaint_id}")
async def update_complaint(
    complaint_id: str,
    data: ComplaintUpdate,
    service: ComplaintService = Depends(complaint_service),
    user: dict = Depends(get_current_user),
):
    update_data = {k: v for k, v in data.model_dump().items() if v is not None}
    if not update_data:
        raise HTTPException(status_code=400, detail="No fields to update")
    complaint = await service.update(complaint_id, update_data, user=user)
    return {"success": True, "complaint": complaint}


@router.delete("/{complaint_id}")
async def delete_complaint(
    complaint_id: str,
    service: ComplaintService = Depends(complaint_service),
    user: dict = Depends(get_current_user),
):
    await service.delete(complaint_id)
    return {"success": True}


# ==================== ESCALATION ====================

@router.get("/{complaint_id}/escalation")
async def escalation_options(
    complaint_id: str,
    brand_name: str = None,
    service: ComplaintService = Depends(complaint_service),
    user: dict = Depends(get_current_user),
):
    option = await service.escalation_options(complaint_id, brand_name)
    return option.to_dict()


@router.post("/{complaint_id}/escalate")
async def escalate_complaint(
    complaint_id: str,
    data: EscalateRequest,
    service: ComplaintService = Depends(complaint_service),
    user: dict = Depends(get_current_user),
):
    complaint = await service.escalate(complaint_id, user=user, brand_name=data.brandName)
    return {"success": True, "complaint": complaint}
