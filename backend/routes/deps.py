"""
Shared route dependencies: caller identity and per-request services.

Services are cheap objects over app-owned resources (store, refresh bus,
customer listing cache); they are built for every request.
"""

from fastapi import Depends, HTTPException, Query, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from config import now_iso
from services.brand_hierarchy import BrandHierarchyService
from services.complaint_notifications import ComplaintNotificationService
from services.complaints import ComplaintService
from services.customers import CustomerService
from services.employees import EmployeeService
from services.errors import ValidationError
from services.paths import session_path
from services.query import ListQuery
from services.quotations import QuotationService
from services.sales import SalesService
from services.sales_stats import EmployeeAnalyticsService, SalesStatsService

security = HTTPBearer(auto_error=False)


def get_store(request: Request):
    return request.app.state.store


async def get_current_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials = Depends(security),
):
    """{uid, name} of the session behind the bearer token"""
    if not credentials:
        raise HTTPException(status_code=401, detail="Not authenticated")

    try:
        path = session_path(credentials.credentials)
    except ValidationError:
        raise HTTPException(status_code=401, detail="Invalid session")

    session = await get_store(request).get(path)
    if not session or not session.get("uid"):
        raise HTTPException(status_code=401, detail="Invalid session")

    expires_at = session.get("expiresAt")
    if expires_at and expires_at <= now_iso():
        raise HTTPException(status_code=401, detail="Session expired")

    return {"uid": session["uid"], "name": session.get("name")}


# ==================== SERVICES ====================

def complaint_service(request: Request, user_type: str = Query(...)) -> ComplaintService:
    return ComplaintService(get_store(request), user_type, refresh_bus=request.app.state.refresh_bus)


def brand_service(request: Request, user_type: str = Query(...)) -> BrandHierarchyService:
    return BrandHierarchyService(get_store(request), user_type)


def notification_service(request: Request, user_type: str = Query(...)) -> ComplaintNotificationService:
    return ComplaintNotificationService(get_store(request), user_type)


def customer_service(request: Request, user_type: str = Query(...)) -> CustomerService:
    return CustomerService(get_store(request), user_type, cache=request.app.state.customer_cache)


def employee_service(request: Request, user_type: str = Query(...)) -> EmployeeService:
    return EmployeeService(get_store(request), user_type)


def sales_service(request: Request, user_type: str = Query(...)) -> SalesService:
    return SalesService(get_store(request), user_type)


def quotation_service(request: Request, user_type: str = Query(...)) -> QuotationService:
    return QuotationService(get_store(request), user_type)


def sales_stats_service(request: Request, user_type: str = Query(...)) -> SalesStatsService:
    return SalesStatsService(get_store(request), user_type)


def employee_analytics_service(request: Request, user_type: str = Query(...)) -> EmployeeAnalyticsService:
    return EmployeeAnalyticsService(get_store(request), user_type)


def list_query(
    search: str = None,
    sort_by: str = None,
    sort_order: str = Query("desc", pattern="^(asc|desc)$"),
    limit: int = Query(None, ge=1, le=500),
    offset: int = Query(0, ge=0),
):
    """Common listing parameters; filters are added by each route"""
    return ListQuery(search=search, sort_by=sort_by, sort_order=sort_order, limit=limit, offset=offset)
