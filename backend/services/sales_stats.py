"""
Sales and employee-performance statistics for one tenant.

Both services fetch whole collections once and hand them to the reducers in
services.analytics.
"""

import logging
from datetime import date
from typing import Any, Callable, Dict, List, Optional

from config import today_local
from services import analytics
from services.dates import add_days, parse_date, start_of_day
from services.errors import ValidationError
from services.paths import Collection, collection_path, get_user_type_or_raise
from services.store import TreeStore, records_from

logger = logging.getLogger("sales_stats")


class _TenantReader:

    def __init__(self, store: TreeStore, user_type: str, today_provider: Callable[[], date] = today_local):
        self.store = store
        self.user_type = get_user_type_or_raise(user_type)
        self.today_provider = today_provider

    async def _fetch(self, collection: Collection) -> List[Dict[str, Any]]:
        return records_from(await self.store.get(collection_path(self.user_type, collection)))


class SalesStatsService(_TenantReader):
    """Dashboard statistics: period breakdowns, registrations, dues"""

    async def comprehensive_stats(self, period: str = "all", reference: Optional[Any] = None) -> Dict[str, Any]:
        if period not in analytics.PERIODS:
            raise ValidationError(f"Invalid period: {period}", field="period")

        sales = await self._fetch(Collection.SALES)
        customers = await self._fetch(Collection.CUSTOMERS)

        reference_day = parse_date(reference) or self.today_provider()
        ranges = analytics.get_date_ranges(reference_day)
        period_sales = analytics.filter_sales_by_period(sales, period, ranges)

        logger.info(f"[STATS] {self.user_type.value} {period}: {len(period_sales)}/{len(sales)} sales")
        return {
            "periodSales": analytics.period_sales_breakdown(period_sales),
            "customerStats": analytics.customer_stats(customers, ranges),
            "invoiceStats": analytics.invoice_stats(sales, ranges),
            "pendingPayments": analytics.pending_payments(sales),
            "paymentMethodBreakdown": analytics.payment_method_breakdown(period_sales),
            "summary": analytics.sales_summary(period_sales),
            "dateRange": ranges[period].to_dict(),
        }

    async def stats_by_date_range(self, from_date: Any, to_date: Any) -> Dict[str, Any]:
        """Same shape as comprehensive_stats, over [from_date, to_date] inclusive"""
        start, end = parse_date(from_date), parse_date(to_date)
        if start is None or end is None:
            raise ValidationError("Both fromDate and toDate are required", field="fromDate")
        if start > end:
            raise ValidationError("fromDate cannot be after toDate", field="fromDate")

        sales = await self._fetch(Collection.SALES)
        customers = await self._fetch(Collection.CUSTOMERS)

        date_range = analytics.DateRange(start_of_day(start), start_of_day(add_days(end, 1)))
        range_sales = [s for s in sales if date_range.contains(analytics.sale_moment(s))]

        return {
            "periodSales": analytics.period_sales_breakdown(range_sales),
            "customerStats": analytics.customer_stats_for_range(customers, date_range),
            "invoiceStats": analytics.invoice_stats_for_range(sales, date_range),
            "pendingPayments": analytics.pending_payments(range_sales),
            "paymentMethodBreakdown": analytics.payment_method_breakdown(range_sales),
            "summary": analytics.sales_summary(range_sales),
            "dateRange": {**date_range.to_dict(), "fromDate": start.isoformat(), "toDate": end.isoformat()},
        }

    async def detailed_pending_payments(self) -> Dict[str, Any]:
        pending = analytics.pending_payments(await self._fetch(Collection.SALES))
        return {**pending, "table": analytics.format_pending_payments_table(pending)}


def _months_back(today: date, count: int) -> List[date]:
    """First day of the current month and the count-1 before it, newest first"""
    months = []
    year, month = today.year, today.month
    for _ in range(count):
        months.append(date(year, month, 1))
        month -= 1
        if month == 0:
            year, month = year - 1, 12
    return months


class EmployeeAnalyticsService(_TenantReader):
    """Monthly salesperson rankings and their evolution"""

    async def _inputs(self):
        return await self._fetch(Collection.SALES), await self._fetch(Collection.EMPLOYEES)

    async def monthly_analytics(self, year: int, month: int) -> Dict[str, Any]:
        if not 1 <= int(month) <= 12:
            raise ValidationError("Month must be between 1 and 12", field="month")
        sales, employees = await self._inputs()
        result = analytics.employee_sales_analytics(sales, employees, year, month)
        logger.info(
            f"[ANALYTICS] {self.user_type.value} {year}-{int(month):02d}: "
            f"{result['totalInvoices']} invoices, {result['summary']['totalActiveEmployees']} active sellers"
        )
        return result

    async def monthly_comparison(self, months_back: int = 6) -> Dict[str, Any]:
        sales, employees = await self._inputs()
        monthly_data = []
        for first in reversed(_months_back(self.today_provider(), months_back)):
            result = analytics.employee_sales_analytics(sales, employees, first.year, first.month)
            monthly_data.append({
                "period": f"{first.year}-{first.month:02d}",
                "year": result["period"]["year"],
                "month": result["period"]["month"],
                "monthName": result["period"]["monthName"],
                "totalSales": result["totalSales"],
                "totalEmployees": result["totalEmployees"],
                "top3": result["top3Performers"],
                "averagePerEmployee": result["averagePerEmployee"],
            })
        return {"monthlyData": monthly_data, "trends": analytics.calculate_trends(monthly_data)}

    async def performance_over_time(self, employee_id: str, months_back: int = 12) -> Dict[str, Any]:
        sales, employees = await self._inputs()
        performance_data = []
        for first in reversed(_months_back(self.today_provider(), months_back)):
            result = analytics.employee_sales_analytics(sales, employees, first.year, first.month)
            entry = next((e for e in result["employeePerformance"] if e["employeeId"] == employee_id), None) or {}
            performance_data.append({
                "period": f"{first.year}-{first.month:02d}",
                "year": result["period"]["year"],
                "month": result["period"]["month"],
                "monthName": result["period"]["monthName"],
                "totalSales": entry.get("totalSales", 0),
                "totalInvoices": entry.get("totalInvoices", 0),
                "averageInvoiceValue": entry.get("averageInvoiceValue", 0),
                "rank": entry.get("rank"),
                "performancePercentage": entry.get("performancePercentage", 0),
            })
        return {
            "employeeId": employee_id,
            "performanceData": performance_data,
            "trends": analytics.calculate_employee_trends(performance_data),
        }

    async def export_csv(self, year: int, month: int) -> str:
        return analytics.export_employee_analytics_csv(await self.monthly_analytics(year, month))
