"""
Employee routes, including monthly sales analytics per salesperson
"""

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import Response

from models.customer import EmployeeCreate, EmployeeUpdate
from routes.deps import employee_analytics_service, employee_service, get_current_user, list_query
from services.employees import EmployeeService
from services.query import ListQuery
from services.sales_stats import EmployeeAnalyticsService

router = APIRouter(prefix="/employees", tags=["Employees"])


@router.get("")
async def list_employees(
    role: str = None,
    department: str = None,
    active: bool = None,
    query: ListQuery = Depends(list_query),
    service: EmployeeService = Depends(employee_service),
    user: dict = Depends(get_current_user),
):
    query.filters = {"role": role, "department": department}
    if active is not None:
        query.filters["isActive"] = active
    if not query.sort_by:
        query.sort_by, query.sort_order = "name", "asc"
    return await service.list(query)


@router.get("/suggestions")
async def employee_suggestions(
    q: str = "",
    limit: int = Query(10, ge=1, le=50),
    service: EmployeeService = Depends(employee_service),
    user: dict = Depends(get_current_user),
):
    return {"suggestions": await service.suggestions(q, limit)}


@router.get("/stats")
async def employee_stats(
    service: EmployeeService = Depends(employee_service),
    user: dict = Depends(get_current_user),
):
    return await service.stats()


# ==================== SALES ANALYTICS ====================

@router.get("/analytics/monthly")
async def monthly_analytics(
    year: int,
    month: int,
    service: EmployeeAnalyticsService = Depends(employee_analytics_service),
    user: dict = Depends(get_current_user),
):
    return await service.monthly_analytics(year, month)


@router.get("/analytics/comparison")
async def monthly_comparison(
    months_back: int = Query(6, ge=1, le=24),
    service: EmployeeAnalyticsService = Depends(employee_analytics_service),
    user: dict = Depends(get_current_user),
):
    return await service.monthly_comparison(months_back)


@router.get("/analytics/export")
async def export_analytics(
    year: int,
    month: int,
    service: EmployeeAnalyticsService = Depends(employee_analytics_service),
    user: dict = Depends(get_current_user),
):
    content = await service.export_csv(year, month)
    filename = f"employee_sales_{year}_{month:02d}.csv"
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )


@router.get("/{employee_key}/performance")
async def performance_over_time(
    employee_key: str,
    months_back: int = Query(12, ge=1, le=36),
    service: EmployeeAnalyticsService = Depends(employee_analytics_service),
    user: dict = Depends(get_current_user),
):
    return await service.performance_over_time(employee_key, months_back)


# ==================== CRUD ====================

@router.get("/{employee_key}")
async def get_employee(
    employee_key: str,
    service: EmployeeService = Depends(employee_service),
    user: dict = Depends(get_current_user),
):
    """By record key, falling back to the employeeId code"""
    employee = await service.get_by_id(employee_key) or await service.get_by_employee_id(employee_key)
    if not employee:
        raise HTTPException(status_code=404, detail="Employee not found")
    return employee


@router.post("")
async def create_employee(
    data: EmployeeCreate,
    service: EmployeeService = Depends(employee_service),
    user: dict = Depends(get_current_user),
):
    payload = {k: v for k, v in data.model_dump().items() if v is not None}
    return {"success": True, "employee": await service.create(payload)}


@router.put("/{employee_key}")
async def update_employee(
    employee_key: str,
    data: EmployeeUpdate,
    service: EmployeeService = Depends(employee_service),
    user: dict = Depends(get_current_user),
):
    update_data = {k: v for k, v in data.model_dump().items() if v is not None}
    if not update_data:
        raise HTTPException(status_code=400, detail="No fields to update")
    return {"success": True, "employee": await service.update(employee_key, update_data)}


@router.delete("/{employee_key}")
async def delete_employee(
    employee_key: str,
    service: EmployeeService = Depends(employee_service),
    user: dict = Depends(get_current_user),
):
    await service.delete(employee_key)
    return {"success": True}
