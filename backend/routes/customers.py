"""
Customer routes
"""

from fastapi import APIRouter, Depends, HTTPException, Query

from models.customer import CustomerCreate, CustomerUpdate
from routes.deps import customer_service, get_current_user, list_query, quotation_service, sales_service
from services.customers import CustomerService
from services.query import ListQuery
from services.quotations import QuotationService
from services.sales import SalesService

router = APIRouter(prefix="/customers", tags=["Customers"])


@router.get("")
async def list_customers(
    customer_type: str = None,
    category: str = None,
    query: ListQuery = Depends(list_query),
    service: CustomerService = Depends(customer_service),
    user: dict = Depends(get_current_user),
):
    query.filters = {"customerType": customer_type, "category": category}
    if not query.sort_by:
        query.sort_by, query.sort_order = "name", "asc"
    return await service.list(query)


@router.get("/search")
async def search_customers(
    q: str = "",
    limit: int = Query(None, ge=1, le=100),
    service: CustomerService = Depends(customer_service),
    user: dict = Depends(get_current_user),
):
    return {"customers": await service.search(q, limit)}


@router.get("/suggestions")
async def customer_suggestions(
    q: str = "",
    limit: int = Query(5, ge=1, le=20),
    service: CustomerService = Depends(customer_service),
    user: dict = Depends(get_current_user),
):
    return {"suggestions": await service.suggestions(q, limit)}


@router.get("/stats")
async def customer_stats(
    service: CustomerService = Depends(customer_service),
    user: dict = Depends(get_current_user),
):
    return await service.stats()


@router.get("/check-phone")
async def check_phone(
    phone: str,
    exclude_id: str = None,
    service: CustomerService = Depends(customer_service),
    user: dict = Depends(get_current_user),
):
    existing = await service.find_by_phone(phone, exclude_id)
    return {"duplicate": existing is not None, "customerId": existing["id"] if existing else None}


@router.get("/{customer_id}")
async def get_customer(
    customer_id: str,
    service: CustomerService = Depends(customer_service),
    user: dict = Depends(get_current_user),
):
    customer = await service.get_by_id(customer_id)
    if not customer:
        raise HTTPException(status_code=404, detail="Customer not found")
    return customer


@router.get("/{customer_id}/history")
async def customer_history(
    customer_id: str,
    sales: SalesService = Depends(sales_service),
    quotations: QuotationService = Depends(quotation_service),
    user: dict = Depends(get_current_user),
):
    """Invoices and quotations of one customer, newest first"""
    return {
        "sales": await sales.customer_history(customer_id),
        "quotations": await quotations.customer_history(customer_id),
    }


@router.post("")
async def create_customer(
    data: CustomerCreate,
    service: CustomerService = Depends(customer_service),
    user: dict = Depends(get_current_user),
):
    payload = {k: v for k, v in data.model_dump().items() if v is not None}
    return {"success": True, "customer": await service.create(payload)}


@router.put("/{customer_id}")
async def update_customer(
    customer_id: str,
    data: CustomerUpdate,
    service: CustomerService = Depends(customer_service),
    user: dict = Depends(get_current_user),
):
    update_data = {k: v for k, v in data.model_dump().items() if v is not None}
    if not update_data:
        raise HTTPException(status_code=400, detail="No fields to update")
    return {"success": True, "customer": await service.update(customer_id, update_data)}


@router.delete("/{customer_id}")
async def delete_customer(
    customer_id: str,
    service: CustomerService = Depends(customer_service),
    user: dict = Depends(get_current_user),
):
    await service.delete(customer_id)
    return {"success": True}
