"""
Quotation routes
"""

from fastapi import APIRouter, Depends, HTTPException, Query

from models.sale import ConvertQuotation, QuotationCreate, QuotationUpdate
from routes.deps import get_current_user, list_query, quotation_service
from services.query import ListQuery
from services.quotations import QuotationService

router = APIRouter(prefix="/quotations", tags=["Quotations"])


@router.get("")
async def list_quotations(
    status: str = None,
    customer_id: str = None,
    query: ListQuery = Depends(list_query),
    service: QuotationService = Depends(quotation_service),
    user: dict = Depends(get_current_user),
):
    query.filters = {"status": status, "customerId": customer_id}
    return await service.list(query)


@router.get("/search")
async def search_quotations(
    q: str = "",
    limit: int = Query(100, ge=1, le=500),
    service: QuotationService = Depends(quotation_service),
    user: dict = Depends(get_current_user),
):
    return {"quotations": await service.search(q, limit)}


@router.get("/stats")
async def quotation_stats(
    service: QuotationService = Depends(quotation_service),
    user: dict = Depends(get_current_user),
):
    return await service.stats()


@router.get("/{quotation_id}")
async def get_quotation(
    quotation_id: str,
    service: QuotationService = Depends(quotation_service),
    user: dict = Depends(get_current_user),
):
    quotation = await service.get_by_id(quotation_id)
    if not quotation:
        raise HTTPException(status_code=404, detail="Quotation not found")
    return quotation


@router.post("")
async def create_quotation(
    data: QuotationCreate,
    service: QuotationService = Depends(quotation_service),
    user: dict = Depends(get_current_user),
):
    payload = {k: v for k, v in data.model_dump().items() if v is not None}
    return {"success": True, "quotation": await service.create(payload, user=user)}


@router.put("/{quotation_id}")
async def update_quotation(
    quotation_id: str,
    data: QuotationUpdate,
    service: QuotationService = Depends(quotation_service),
    user: dict = Depends(get_current_user),
):
    update_data = {k: v for k, v in data.model_dump().items() if v is not None}
    if not update_data:
        raise HTTPException(status_code=400, detail="No fields to update")
    return {"success": True, "quotation": await service.update(quotation_id, update_data)}


@router.delete("/{quotation_id}")
async def delete_quotation(
    quotation_id: str,
    service: QuotationService = Depends(quotation_service),
    user: dict = Depends(get_current_user),
):
    await service.delete(quotation_id)
    return {"success": True}


@router.post("/{quotation_id}/convert")
async def convert_quotation(
    quotation_id: str,
    data: ConvertQuotation,
    service: QuotationService = Depends(quotation_service),
    user: dict = Depends(get_current_user),
):
    """Mark the quotation as turned into the given invoice"""
    quotation = await service.convert_to_invoice(quotation_id, data.invoiceId)
    return {"success": True, "quotation": quotation}
