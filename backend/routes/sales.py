"""
Sales / invoice routes
"""

from fastapi import APIRouter, Depends, HTTPException, Query

from models.sale import DeliveryStatusUpdate, PaymentRecord, PaymentStatusUpdate, SaleCreate, SaleUpdate
from routes.deps import get_current_user, list_query, sales_service
from services.query import ListQuery
from services.sales import SalesService

router = APIRouter(prefix="/sales", tags=["Sales"])


@router.get("")
async def list_sales(
    payment_status: str = None,
    delivery_status: str = None,
    customer_id: str = None,
    sales_person_id: str = None,
    item_name: str = None,
    query: ListQuery = Depends(list_query),
    service: SalesService = Depends(sales_service),
    user: dict = Depends(get_current_user),
):
    query.filters = {
        "paymentStatus": payment_status,
        "deliveryStatus": delivery_status,
        "customerId": customer_id,
        "salesPersonId": sales_person_id,
        "itemName": item_name,
    }
    return await service.list(query)


@router.get("/search")
async def search_sales(
    q: str = "",
    limit: int = Query(100, ge=1, le=500),
    service: SalesService = Depends(sales_service),
    user: dict = Depends(get_current_user),
):
    return {"sales": await service.search(q, limit)}


@router.get("/stats")
async def sales_stats(
    service: SalesService = Depends(sales_service),
    user: dict = Depends(get_current_user),
):
    return await service.stats()


@router.get("/date-range")
async def sales_by_date_range(
    start: str,
    end: str,
    service: SalesService = Depends(sales_service),
    user: dict = Depends(get_current_user),
):
    return {"sales": await service.by_date_range(start, end)}


@router.get("/pending-emi")
async def pending_emi(
    service: SalesService = Depends(sales_service),
    user: dict = Depends(get_current_user),
):
    return {"sales": await service.pending_emi()}


@router.get("/pending-deliveries")
async def pending_deliveries(
    service: SalesService = Depends(sales_service),
    user: dict = Depends(get_current_user),
):
    return {"sales": await service.pending_deliveries()}


@router.get("/next-number")
async def next_invoice_number(
    include_gst: bool = True,
    service: SalesService = Depends(sales_service),
    user: dict = Depends(get_current_user),
):
    return {"invoiceNumber": await service.generate_invoice_number(include_gst)}


@router.get("/{sale_id}")
async def get_sale(
    sale_id: str,
    service: SalesService = Depends(sales_service),
    user: dict = Depends(get_current_user),
):
    sale = await service.get_by_id(sale_id)
    if not sale:
        raise HTTPException(status_code=404, detail="Invoice not found")
    return sale


@router.post("")
async def create_sale(
    data: SaleCreate,
    service: SalesService = Depends(sales_service),
    user: dict = Depends(get_current_user),
):
    payload = {k: v for k, v in data.model_dump().items() if v is not None}
    return {"success": True, "sale": await service.create(payload, user=user)}


@router.put("/{sale_id}")
async def update_sale(
    sale_id: str,
    data: SaleUpdate,
    service: SalesService = Depends(sales_service),
    user: dict = Depends(get_current_user),
):
    update_data = {k: v for k, v in data.model_dump().items() if v is not None}
    if not update_data:
        raise HTTPException(status_code=400, detail="No fields to update")
    return {"success": True, "sale": await service.update(sale_id, update_data)}


@router.delete("/{sale_id}")
async def delete_sale(
    sale_id: str,
    service: SalesService = Depends(sales_service),
    user: dict = Depends(get_current_user),
):
    await service.delete(sale_id)
    return {"success": True}


# ==================== PAYMENT / DELIVERY ====================

@router.put("/{sale_id}/payment-status")
async def update_payment_status(
    sale_id: str,
    data: PaymentStatusUpdate,
    service: SalesService = Depends(sales_service),
    user: dict = Depends(get_current_user),
):
    sale = await service.update_payment_status(sale_id, data.paymentStatus, data.details)
    return {"success": True, "sale": sale}


@router.put("/{sale_id}/delivery-status")
async def update_delivery_status(
    sale_id: str,
    data: DeliveryStatusUpdate,
    service: SalesService = Depends(sales_service),
    user: dict = Depends(get_current_user),
):
    sale = await service.update_delivery_status(sale_id, data.deliveryStatus, data.details)
    return {"success": True, "sale": sale}


@router.post("/{sale_id}/payments")
async def record_payment(
    sale_id: str,
    data: PaymentRecord,
    service: SalesService = Depends(sales_service),
    user: dict = Depends(get_current_user),
):
    details = {k: v for k, v in data.model_dump().items() if v is not None and k != "amount"}
    sale = await service.record_payment(sale_id, data.amount, details, user=user)
    return {"success": True, "sale": sale}


@router.post("/{sale_id}/emi/{emi_index}/pay")
async def pay_emi(
    sale_id: str,
    emi_index: int,
    service: SalesService = Depends(sales_service),
    user: dict = Depends(get_current_user),
):
    sale = await service.update_emi_payment(sale_id, emi_index)
    return {"success": True, "sale": sale}
