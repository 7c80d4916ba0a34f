"""
Dashboard statistics routes
"""

from fastapi import APIRouter, Depends

from routes.deps import get_current_user, sales_stats_service
from services.sales_stats import SalesStatsService

router = APIRouter(prefix="/stats", tags=["Statistics"])


@router.get("/sales")
async def comprehensive_sales_stats(
    period: str = "all",  # daily | weekly | monthly | all
    date: str = None,
    service: SalesStatsService = Depends(sales_stats_service),
    user: dict = Depends(get_current_user),
):
    """Period breakdown, registrations, invoices, dues and payment methods"""
    return await service.comprehensive_stats(period, date)


@router.get("/sales/range")
async def sales_stats_by_range(
    from_date: str,
    to_date: str,
    service: SalesStatsService = Depends(sales_stats_service),
    user: dict = Depends(get_current_user),
):
    return await service.stats_by_date_range(from_date, to_date)


@router.get("/pending-payments")
async def pending_payments(
    service: SalesStatsService = Depends(sales_stats_service),
    user: dict = Depends(get_current_user),
):
    return await service.detailed_pending_payments()
