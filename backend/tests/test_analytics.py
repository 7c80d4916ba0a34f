"""
Showroom - Analytics aggregators and statistics services tests
Run: cd backend && pytest tests/test_analytics.py -v
"""

from datetime import date

import pytest

from services import analytics
from services.errors import ValidationError
from services.sales_stats import EmployeeAnalyticsService, SalesStatsService

from tests.conftest import TODAY

SALES = [
    {"invoiceNumber": "EL_GST_001", "customerName": "Asha", "saleDate": "2025-06-15",
     "createdAt": "2025-06-15T05:00:00+00:00", "grandTotal": 10000, "paymentStatus": "paid",
     "salesPersonId": "e1", "paymentDetails": {"paymentMethod": "UPI"}},
    {"invoiceNumber": "EL_GST_002", "customerName": "Bharat", "saleDate": "2025-06-10",
     "createdAt": "2025-06-10T05:00:00+00:00", "grandTotal": 30000, "paymentStatus": "pending",
     "salesPersonId": "e2"},
    {"invoiceNumber": "EL_GST_003", "customerName": "Asha", "saleDate": "2025-06-02",
     "createdAt": "2025-06-02T05:00:00+00:00", "grandTotal": 20000, "paymentStatus": "emi",
     "salesPersonId": "e1",
     "emiDetails": {"totalRemaining": 15000, "totalPaid": 5000, "numberOfInstallments": 4,
                    "schedule": [{"paid": True}, {"paid": False}]}},
    {"invoiceNumber": "EL_GST_004", "customerName": "Chirag", "saleDate": "2025-05-30",
     "createdAt": "2025-05-30T05:00:00+00:00", "grandTotal": 50000, "paymentStatus": "finance",
     "salesPersonId": "e2",
     "paymentDetails": {"financeCompany": "Bajaj", "remainingBalance": 40000, "downPayment": 10000}},
]

CUSTOMERS = [
    {"name": "Asha", "phone": "9000000001", "createdAt": "2025-06-15T04:00:00+00:00"},
    # 01:30 on the 15th in India
    {"name": "Bharat", "phone": "9000000002", "createdAt": "2025-06-14T20:00:00+00:00"},
    {"name": "Chirag", "phone": "9000000003", "createdAt": "2025-06-01T00:00:00+00:00"},
    {"name": "Dev", "phone": "9000000004", "createdAt": "2025-05-01T00:00:00+00:00"},
]

EMPLOYEES = [
    {"id": "e1", "name": "Ravi", "employeeId": "SALRK001", "department": "sales"},
    {"id": "e2", "name": "Meera"},
    {"id": "e3", "name": "Kiran"},
]


async def seed(store):
    for index, sale in enumerate(SALES):
        await store.set(f"electronics/sales/s{index}", sale)
    for index, customer in enumerate(CUSTOMERS):
        await store.set(f"electronics/customers/c{index}", customer)
    for employee in EMPLOYEES:
        await store.set(f"electronics/employees/{employee['id']}", {k: v for k, v in employee.items() if k != "id"})


# ═══════════════════════════════════════════════════════════════
# 1. PERIODS
# ═══════════════════════════════════════════════════════════════

class TestPeriods:

    def test_filter_sales_by_period(self):
        ranges = analytics.get_date_ranges(TODAY)
        counts = {p: len(analytics.filter_sales_by_period(SALES, p, ranges)) for p in analytics.PERIODS}
        assert counts == {"daily": 1, "weekly": 2, "monthly": 3, "all": 4}
        print(f"✓ Period counts: {counts}")

    def test_ranges_are_half_open(self):
        ranges = analytics.get_date_ranges(TODAY)
        assert ranges["daily"].contains("2025-06-15")
        assert not ranges["daily"].contains("2025-06-16")
        assert ranges["weekly"].contains("2025-06-09")
        assert not ranges["weekly"].contains("2025-06-08")
        assert ranges["monthly"].contains("2025-06-30T23:59:00+05:30")
        assert not ranges["monthly"].contains("2025-07-01")
        assert ranges["all"].to_dict() == {"start": None, "end": None}

    def test_december_month_range(self):
        december = analytics.month_range(2024, 12)
        assert december.contains("2024-12-31")
        assert not december.contains("2025-01-01")

    @pytest.mark.parametrize("day,week", [(1, 1), (7, 1), (8, 2), (28, 4), (31, 5)])
    def test_week_of_month(self, day, week):
        assert analytics.week_of_month(date(2025, 5, day)) == week


# ═══════════════════════════════════════════════════════════════
# 2. SALES REDUCERS
# ═══════════════════════════════════════════════════════════════

class TestSalesReducers:

    def test_period_breakdown(self):
        ranges = analytics.get_date_ranges(TODAY)
        breakdown = analytics.period_sales_breakdown(analytics.filter_sales_by_period(SALES, "monthly", ranges))
        assert breakdown["fullPayment"]["count"] == 1
        assert breakdown["pendingPayment"]["totalAmount"] == 30000
        assert breakdown["emiPayment"]["items"][0]["invoiceNumber"] == "EL_GST_003"
        assert breakdown["financePayment"]["count"] == 0

    def test_pending_payments(self):
        pending = analytics.pending_payments(SALES)
        assert pending["emi"]["totalPending"] == 15000
        assert pending["emi"]["details"][0]["installmentsCompleted"] == 1
        assert pending["finance"]["byCompany"]["Bajaj"]["totalPending"] == 40000
        assert pending["pending"]["byCustomer"]["Bharat"]["totalPending"] == 30000
        assert pending["total"] == 85000

    def test_pending_table(self):
        rows = analytics.format_pending_payments_table(analytics.pending_payments(SALES))
        assert [r["type"] for r in rows] == ["EMI", "Finance", "Pending"]
        assert rows[0]["description"] == "Total EMI payment pending from Asha is ₹15k"
        assert rows[1]["company"] == "Bajaj"

    def test_payment_methods_and_summary(self):
        methods = analytics.payment_method_breakdown(SALES)
        assert methods["upi"] == {"count": 1, "amount": 10000}
        assert methods["finance"]["count"] == 1
        assert methods["cash"]["count"] == 0

        summary = analytics.sales_summary(SALES)
        assert summary == {
            "totalSales": 4,
            "totalAmount": 110000,
            "averageOrderValue": 27500,
            "completedPayments": 1,
            "partialPayments": 2,
            "pendingPayments": 1,
        }

    def test_customer_registrations_use_business_day(self):
        stats = analytics.customer_stats(CUSTOMERS, analytics.get_date_ranges(TODAY))
        assert stats["daily"]["count"] == 2
        assert stats["weekly"]["count"] == 2
        assert stats["monthly"]["count"] == 3
        assert stats["total"] == 4


# ═══════════════════════════════════════════════════════════════
# 3. EMPLOYEE PERFORMANCE
# ═══════════════════════════════════════════════════════════════

class TestEmployeeAnalytics:

    def test_monthly_ranking(self):
        result = analytics.employee_sales_analytics(SALES, EMPLOYEES, 2025, 6)
        assert result["period"] == {"year": "2025", "month": "06", "monthName": "June"}
        assert result["totalSales"] == 60000
        assert result["totalInvoices"] == 3

        ranking = [(e["employeeId"], e["rank"], e["totalSales"]) for e in result["employeePerformance"]]
        # e1 and e2 tie; e1 sold first
        assert ranking == [("e1", 1, 30000), ("e2", 2, 30000), ("e3", 3, 0)]

        ravi = result["employeePerformance"][0]
        assert ravi["employeeName"] == "Ravi"
        assert ravi["salesByWeek"] == {3: 10000, 1: 20000}
        assert ravi["averageInvoiceValue"] == 15000
        assert ravi["performancePercentage"] == 50
        assert result["summary"]["totalActiveEmployees"] == 2
        assert result["summary"]["employeesWithNoSales"] == 1
        print(f"✓ Ranking: {ranking}")

    def test_empty_month(self):
        result = analytics.employee_sales_analytics(SALES, EMPLOYEES, 2025, 1)
        assert result["totalSales"] == 0
        assert all(e["performancePercentage"] == 0 for e in result["employeePerformance"])

    def test_trends(self):
        assert analytics.calculate_trends([{"totalSales": 1, "averagePerEmployee": 1}]) is None
        trends = analytics.calculate_trends([
            {"totalSales": 100, "averagePerEmployee": 50},
            {"totalSales": 150, "averagePerEmployee": 50},
        ])
        assert trends["salesGrowthPercentage"] == 50
        assert trends["averageGrowthPercentage"] == 0
        assert trends["trend"] == "upward"
        stable = analytics.calculate_trends([
            {"totalSales": 0, "averagePerEmployee": 0},
            {"totalSales": 150, "averagePerEmployee": 50},
        ])
        assert stable["trend"] == "stable"

    def test_consistency(self):
        def months(*values):
            return [{"totalSales": v} for v in values]

        assert analytics.calculate_consistency(months(100, 500)) == 100
        assert analytics.calculate_consistency(months(100, 100, 100)) == 100
        assert analytics.calculate_consistency(months(100, 0, 0)) == 0
        assert analytics.calculate_consistency(months(100, 200, 300)) == pytest.approx(59.175, abs=0.01)

    def test_csv_export(self):
        content = analytics.export_employee_analytics_csv(
            analytics.employee_sales_analytics(SALES, EMPLOYEES, 2025, 6)
        )
        lines = content.splitlines()
        assert lines[0] == ('"Rank","Employee Name","Employee ID","Department","Total Sales",'
                            '"Total Invoices","Average Invoice Value","Performance %"')
        assert lines[1] == '"1","Ravi","SALRK001","sales","30000.00","2","15000.00","50.00%"'
        assert lines[2] == '"2","Meera","N/A","N/A","30000.00","1","30000.00","50.00%"'
        assert len(lines) == 4


# ═══════════════════════════════════════════════════════════════
# 4. SERVICES OVER THE STORE
# ═══════════════════════════════════════════════════════════════

class TestSalesStatsService:

    @pytest.mark.asyncio
    async def test_comprehensive_stats(self, store, today):
        await seed(store)
        service = SalesStatsService(store, "electronics", today_provider=today)
        stats = await service.comprehensive_stats("monthly")
        assert stats["summary"]["totalSales"] == 3
        assert stats["customerStats"]["daily"]["count"] == 2
        assert stats["invoiceStats"]["total"]["count"] == 4
        assert stats["pendingPayments"]["total"] == 85000
        assert stats["dateRange"]["start"].startswith("2025-06-01T00:00:00")

        daily = await service.comprehensive_stats("daily", reference="2025-06-10")
        assert daily["summary"]["totalSales"] == 1
        print("✓ Comprehensive stats per period")

    @pytest.mark.asyncio
    async def test_invalid_period(self, store, today):
        service = SalesStatsService(store, "electronics", today_provider=today)
        with pytest.raises(ValidationError):
            await service.comprehensive_stats("yearly")

    @pytest.mark.asyncio
    async def test_date_range(self, store, today):
        await seed(store)
        service = SalesStatsService(store, "electronics", today_provider=today)
        stats = await service.stats_by_date_range("2025-06-01", "2025-06-10")
        assert stats["summary"]["totalSales"] == 2
        assert stats["customerStats"]["dateRange"]["count"] == 1
        assert stats["dateRange"]["toDate"] == "2025-06-10"
        with pytest.raises(ValidationError):
            await service.stats_by_date_range("2025-06-10", "2025-06-01")
        with pytest.raises(ValidationError):
            await service.stats_by_date_range(None, "2025-06-01")

    @pytest.mark.asyncio
    async def test_pending_payments_table(self, store, today):
        await seed(store)
        result = await SalesStatsService(store, "electronics", today_provider=today).detailed_pending_payments()
        assert len(result["table"]) == 3


class TestEmployeeAnalyticsService:

    @pytest.mark.asyncio
    async def test_monthly_comparison(self, store, today):
        await seed(store)
        service = EmployeeAnalyticsService(store, "electronics", today_provider=today)
        result = await service.monthly_comparison(3)
        assert [m["period"] for m in result["monthlyData"]] == ["2025-04", "2025-05", "2025-06"]
        assert [m["totalSales"] for m in result["monthlyData"]] == [0, 50000, 60000]
        assert result["trends"]["salesGrowthPercentage"] == pytest.approx(20)
        assert result["trends"]["isImproving"] is True

    @pytest.mark.asyncio
    async def test_performance_over_time(self, store, today):
        await seed(store)
        service = EmployeeAnalyticsService(store, "electronics", today_provider=today)
        result = await service.performance_over_time("e2", 2)
        assert [p["rank"] for p in result["performanceData"]] == [1, 2]
        assert result["trends"]["rankChange"] == -1
        assert result["trends"]["trend"] == "declining"
        assert result["trends"]["consistency"] == 100

    @pytest.mark.asyncio
    async def test_month_validation_and_export(self, store, today):
        await seed(store)
        service = EmployeeAnalyticsService(store, "electronics", today_provider=today)
        with pytest.raises(ValidationError):
            await service.monthly_analytics(2025, 13)
        content = await service.export_csv(2025, 6)
        assert content.startswith('"Rank"')
