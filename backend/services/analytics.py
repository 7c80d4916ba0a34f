"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  Analytics Aggregators                                                       ║
║                                                                              ║
║  Pure reducers over already-fetched sales / customers / employees lists.     ║
║  No storage access here: SalesStatsService and EmployeeAnalyticsService      ║
║  fetch, these functions compute.                                             ║
║                                                                              ║
║  Periods (business timezone, half-open [start, end)):                        ║
║  - daily   : today                                                           ║
║  - weekly  : today - 6 days .. today                                         ║
║  - monthly : calendar month of the reference day                             ║
║  - all     : everything                                                      ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

import calendar
import csv
import io
import math
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from services.dates import add_days, parse_date, parse_datetime, start_of_day

PERIODS = ("daily", "weekly", "monthly", "all")

CSV_COLUMNS = [
    "Rank",
    "Employee Name",
    "Employee ID",
    "Department",
    "Total Sales",
    "Total Invoices",
    "Average Invoice Value",
    "Performance %",
]

PAID = "paid"
PENDING = "pending"
EMI = "emi"
FINANCE_STATUSES = ("finance", "bank_transfer")


# ════════════════════════════════════════════════════════════════════════════
# HELPERS
# ════════════════════════════════════════════════════════════════════════════

class DateRange:
    """Half-open [start, end) in the business timezone; None bounds are open"""

    def __init__(self, start: Optional[datetime], end: Optional[datetime]):
        self.start = start
        self.end = end

    def contains(self, value: Any) -> bool:
        moment = parse_datetime(value)
        if moment is None:
            return False
        if self.start is not None and moment < self.start:
            return False
        if self.end is not None and moment >= self.end:
            return False
        return True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "start": self.start.isoformat() if self.start else None,
            "end": self.end.isoformat() if self.end else None,
        }


def invoice_amount(sale: Dict[str, Any]) -> float:
    return float(sale.get("grandTotal") or sale.get("totalAmount") or 0)


def sale_moment(sale: Dict[str, Any]) -> Any:
    return sale.get("saleDate") or sale.get("createdAt")


def is_fully_paid(sale: Dict[str, Any]) -> bool:
    return sale.get("paymentStatus") == PAID or bool(sale.get("fullyPaid"))


def _first_of_next_month(day: date) -> date:
    if day.month == 12:
        return date(day.year + 1, 1, 1)
    return date(day.year, day.month + 1, 1)


def month_range(year: int, month: int) -> DateRange:
    first = date(int(year), int(month), 1)
    return DateRange(start_of_day(first), start_of_day(_first_of_next_month(first)))


def get_date_ranges(reference: date) -> Dict[str, DateRange]:
    today = parse_date(reference)
    tomorrow = add_days(today, 1)
    month_start = today.replace(day=1)
    return {
        "daily": DateRange(start_of_day(today), start_of_day(tomorrow)),
        "weekly": DateRange(start_of_day(add_days(today, -6)), start_of_day(tomorrow)),
        "monthly": DateRange(start_of_day(month_start), start_of_day(_first_of_next_month(month_start))),
        "all": DateRange(None, None),
    }


def filter_sales_by_period(sales: List[Dict[str, Any]], period: str,
                           ranges: Dict[str, DateRange]) -> List[Dict[str, Any]]:
    if period == "all" or period not in ranges:
        return list(sales)
    date_range = ranges[period]
    return [s for s in sales if date_range.contains(sale_moment(s))]


# ════════════════════════════════════════════════════════════════════════════
# SALES STATS
# ════════════════════════════════════════════════════════════════════════════

def period_sales_breakdown(sales: List[Dict[str, Any]]) -> Dict[str, Any]:
    """Sales bucketed by how they are being paid"""
    breakdown = {
        bucket: {"count": 0, "totalAmount": 0, "items": []}
        for bucket in ("fullPayment", "emiPayment", "financePayment", "pendingPayment")
    }

    for sale in sales:
        status = sale.get("paymentStatus")
        if is_fully_paid(sale):
            bucket = "fullPayment"
        elif status == EMI:
            bucket = "emiPayment"
        elif status in FINANCE_STATUSES:
            bucket = "financePayment"
        elif status == PENDING:
            bucket = "pendingPayment"
        else:
            continue

        amount = invoice_amount(sale)
        breakdown[bucket]["count"] += 1
        breakdown[bucket]["totalAmount"] += amount
        breakdown[bucket]["items"].append({
            "invoiceNumber": sale.get("invoiceNumber"),
            "customerName": sale.get("customerName"),
            "amount": amount,
            "date": sale_moment(sale),
        })

    return breakdown


def _customer_info(customer: Dict[str, Any]) -> Dict[str, Any]:
    return {"name": customer.get("name"), "phone": customer.get("phone"), "date": customer.get("createdAt")}


def _invoice_info(sale: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "invoiceNumber": sale.get("invoiceNumber"),
        "customerName": sale.get("customerName"),
        "amount": invoice_amount(sale),
        "date": sale.get("createdAt"),
    }


def customer_stats(customers: List[Dict[str, Any]], ranges: Dict[str, DateRange]) -> Dict[str, Any]:
    """New customer registrations per period"""
    stats = {period: {"count": 0, "customers": []} for period in ("daily", "weekly", "monthly")}
    stats["total"] = len(customers)
    for customer in customers:
        for period in ("daily", "weekly", "monthly"):
            if ranges[period].contains(customer.get("createdAt")):
                stats[period]["count"] += 1
                stats[period]["customers"].append(_customer_info(customer))
    return stats


def invoice_stats(sales: List[Dict[str, Any]], ranges: Dict[str, DateRange]) -> Dict[str, Any]:
    """Invoices created per period (by createdAt)"""
    stats = {period: {"count": 0, "totalAmount": 0, "invoices": []} for period in ("daily", "weekly", "monthly")}
    stats["total"] = {"count": len(sales), "totalAmount": 0}
    for sale in sales:
        amount = invoice_amount(sale)
        stats["total"]["totalAmount"] += amount
        for period in ("daily", "weekly", "monthly"):
            if ranges[period].contains(sale.get("createdAt")):
                stats[period]["count"] += 1
                stats[period]["totalAmount"] += amount
                stats[period]["invoices"].append(_invoice_info(sale))
    return stats


def customer_stats_for_range(customers: List[Dict[str, Any]], date_range: DateRange) -> Dict[str, Any]:
    found = [c for c in customers if date_range.contains(c.get("createdAt"))]
    return {
        "dateRange": {"count": len(found), "customers": [_customer_info(c) for c in found]},
        "total": len(customers),
    }


def invoice_stats_for_range(sales: List[Dict[str, Any]], date_range: DateRange) -> Dict[str, Any]:
    found = [s for s in sales if date_range.contains(s.get("createdAt"))]
    return {
        "dateRange": {
            "count": len(found),
            "totalAmount": sum(invoice_amount(s) for s in found),
            "invoices": [_invoice_info(s) for s in found],
        },
        "total": {"count": len(sales), "totalAmount": sum(invoice_amount(s) for s in sales)},
    }


def _add_to_group(groups: Dict[str, Any], key: str, amount: float, invoice: Dict[str, Any]) -> None:
    group = groups.setdefault(key, {"totalPending": 0, "invoices": []})
    group["totalPending"] += amount
    group["invoices"].append(invoice)


def pending_payments(sales: List[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Money still owed, by kind:
    - emi: emiDetails.totalRemaining
    - finance (and bank transfer): paymentDetails.remainingBalance, by finance company
    - pending: the whole invoice, unless already fully paid
    """
    result = {
        "emi": {"totalPending": 0, "byCustomer": {}, "details": []},
        "finance": {"totalPending": 0, "byCompany": {}, "byCustomer": {}, "details": []},
        "pending": {"totalPending": 0, "byCustomer": {}, "details": []},
        "total": 0,
    }

    for sale in sales:
        total = invoice_amount(sale)
        status = sale.get("paymentStatus")
        customer = sale.get("customerName")

        emi = sale.get("emiDetails")
        if status == EMI and emi:
            remaining = float(emi.get("totalRemaining") or 0)
            if remaining > 0:
                paid = emi.get("totalPaid") or 0
                result["emi"]["totalPending"] += remaining
                result["total"] += remaining
                _add_to_group(result["emi"]["byCustomer"], customer, remaining, {
                    "invoiceNumber": sale.get("invoiceNumber"),
                    "totalAmount": total,
                    "pendingAmount": remaining,
                    "paidAmount": paid,
                })
                result["emi"]["details"].append({
                    "invoiceNumber": sale.get("invoiceNumber"),
                    "customerName": customer,
                    "customerPhone": sale.get("customerPhone"),
                    "totalAmount": total,
                    "pendingAmount": remaining,
                    "paidAmount": paid,
                    "installmentsCompleted": len([i for i in emi.get("schedule") or [] if i.get("paid")]),
                    "totalInstallments": emi.get("numberOfInstallments") or 0,
                })

        payment = sale.get("paymentDetails")
        if status in FINANCE_STATUSES and payment:
            remaining = float(payment.get("remainingBalance") or 0)
            if remaining > 0:
                company = payment.get("financeCompany") or "Unknown"
                down_payment = payment.get("downPayment") or 0
                result["finance"]["totalPending"] += remaining
                result["total"] += remaining
                _add_to_group(result["finance"]["byCompany"], company, remaining, {
                    "invoiceNumber": sale.get("invoiceNumber"),
                    "customerName": customer,
                    "totalAmount": total,
                    "pendingAmount": remaining,
                    "downPayment": down_payment,
                })
                _add_to_group(result["finance"]["byCustomer"], customer, remaining, {
                    "invoiceNumber": sale.get("invoiceNumber"),
                    "financeCompany": company,
                    "totalAmount": total,
                    "pendingAmount": remaining,
                    "downPayment": down_payment,
                })
                result["finance"]["details"].append({
                    "invoiceNumber": sale.get("invoiceNumber"),
                    "customerName": customer,
                    "customerPhone": sale.get("customerPhone"),
                    "financeCompany": company,
                    "totalAmount": total,
                    "pendingAmount": remaining,
                    "downPayment": down_payment,
                })

        if status == PENDING and not sale.get("fullyPaid"):
            result["pending"]["totalPending"] += total
            result["total"] += total
            _add_to_group(result["pending"]["byCustomer"], customer, total, {
                "invoiceNumber": sale.get("invoiceNumber"),
                "totalAmount": total,
                "date": sale_moment(sale),
            })
            result["pending"]["details"].append({
                "invoiceNumber": sale.get("invoiceNumber"),
                "customerName": customer,
                "customerPhone": sale.get("customerPhone"),
                "totalAmount": total,
                "date": sale_moment(sale),
            })

    return result


def payment_method_breakdown(sales: List[Dict[str, Any]]) -> Dict[str, Dict[str, float]]:
    breakdown = {m: {"count": 0, "amount": 0} for m in ("cash", "card", "upi", "finance", "emi", "pending")}
    for sale in sales:
        status = sale.get("paymentStatus")
        method = ((sale.get("paymentDetails") or {}).get("paymentMethod") or "cash").lower()
        if status == EMI:
            key = "emi"
        elif status in FINANCE_STATUSES:
            key = "finance"
        elif status == PENDING:
            key = "pending"
        elif "card" in method:
            key = "card"
        elif "upi" in method:
            key = "upi"
        else:
            key = "cash"
        breakdown[key]["count"] += 1
        breakdown[key]["amount"] += invoice_amount(sale)
    return breakdown


def sales_summary(sales: List[Dict[str, Any]]) -> Dict[str, Any]:
    total = sum(invoice_amount(s) for s in sales)
    return {
        "totalSales": len(sales),
        "totalAmount": total,
        "averageOrderValue": total / len(sales) if sales else 0,
        "completedPayments": len([s for s in sales if is_fully_paid(s)]),
        "partialPayments": len([
            s for s in sales
            if (s.get("paymentStatus") == EMI or s.get("paymentStatus") in FINANCE_STATUSES)
            and not s.get("fullyPaid")
        ]),
        "pendingPayments": len([s for s in sales if s.get("paymentStatus") == PENDING]),
    }


def _thousands(amount: float) -> str:
    return f"₹{amount / 1000:.0f}k"


def format_pending_payments_table(pending: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Flat rows for display: EMI by customer, finance by company, pending by customer"""
    rows = []
    for customer, data in pending["emi"]["byCustomer"].items():
        rows.append({
            "type": "EMI",
            "customer": customer,
            "company": "-",
            "pendingAmount": data["totalPending"],
            "description": f"Total EMI payment pending from {customer} is {_thousands(data['totalPending'])}",
            "invoiceCount": len(data["invoices"]),
        })
    for company, data in pending["finance"]["byCompany"].items():
        rows.append({
            "type": "Finance",
            "customer": "-",
            "company": company,
            "pendingAmount": data["totalPending"],
            "description": f"Remaining finance payment pending from {company} is {_thousands(data['totalPending'])}",
            "invoiceCount": len(data["invoices"]),
        })
    for customer, data in pending["pending"]["byCustomer"].items():
        rows.append({
            "type": "Pending",
            "customer": customer,
            "company": "-",
            "pendingAmount": data["totalPending"],
            "description": f"Pending payment from {customer} is {_thousands(data['totalPending'])}",
            "invoiceCount": len(data["invoices"]),
        })
    return rows


# ════════════════════════════════════════════════════════════════════════════
# EMPLOYEE PERFORMANCE
# ════════════════════════════════════════════════════════════════════════════

def week_of_month(day: Any) -> int:
    """1 for days 1-7, 2 for days 8-14, ..."""
    parsed = parse_date(day)
    return (parsed.day - 1) // 7 + 1


def _blank_performance(employee_id: Any, name: str, employee: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    return {
        "employeeId": employee_id,
        "employeeName": name,
        "employeeDetails": employee,
        "totalSales": 0,
        "totalInvoices": 0,
        "averageInvoiceValue": 0,
        "salesByWeek": {},
        "salesList": [],
    }


def employee_sales_analytics(sales: List[Dict[str, Any]], employees: List[Dict[str, Any]],
                             year: int, month: int) -> Dict[str, Any]:
    """
    Per-salesperson totals for one calendar month (by saleDate).

    Every employee appears, including those without a sale. Ranked by total
    sales descending; ties keep first-seen order.
    """
    year, month = int(year), int(month)
    in_month = month_range(year, month)
    month_sales = [s for s in sales if in_month.contains(s.get("saleDate"))]
    lookup = {e.get("id"): e for e in employees}

    performance: Dict[Any, Dict[str, Any]] = {}
    total_sales = 0.0
    for sale in month_sales:
        person = sale.get("salesPersonId")
        amount = invoice_amount(sale)
        total_sales += amount

        if person not in performance:
            employee = lookup.get(person)
            name = sale.get("salesPersonName") or (employee or {}).get("name") or "Unknown"
            performance[person] = _blank_performance(person, name, employee)

        entry = performance[person]
        entry["totalSales"] += amount
        entry["totalInvoices"] += 1
        entry["salesList"].append({
            "invoiceNumber": sale.get("invoiceNumber"),
            "amount": amount,
            "customerName": sale.get("customerName"),
            "date": sale.get("saleDate"),
            "paymentStatus": sale.get("paymentStatus"),
        })
        week = week_of_month(sale.get("saleDate"))
        entry["salesByWeek"][week] = entry["salesByWeek"].get(week, 0) + amount

    for employee in employees:
        if employee.get("id") not in performance:
            performance[employee.get("id")] = _blank_performance(employee.get("id"), employee.get("name"), employee)

    ranked = list(performance.values())
    for entry in ranked:
        entry["averageInvoiceValue"] = entry["totalSales"] / entry["totalInvoices"] if entry["totalInvoices"] else 0
        entry["performancePercentage"] = entry["totalSales"] / total_sales * 100 if total_sales > 0 else 0

    ranked.sort(key=lambda e: e["totalSales"], reverse=True)
    for index, entry in enumerate(ranked):
        entry["rank"] = index + 1

    return {
        "period": {"year": f"{year}", "month": f"{month:02d}", "monthName": calendar.month_name[month]},
        "totalEmployees": len(ranked),
        "totalSales": total_sales,
        "totalInvoices": len(month_sales),
        "averagePerEmployee": total_sales / len(ranked) if ranked else 0,
        "employeePerformance": ranked,
        "top3Performers": ranked[:3],
        "summary": {
            "bestPerformer": ranked[0] if ranked else None,
            "totalActiveEmployees": len([e for e in ranked if e["totalSales"] > 0]),
            "employeesWithNoSales": len([e for e in ranked if e["totalSales"] == 0]),
        },
    }


def _growth(latest: float, previous: float) -> float:
    return (latest - previous) / previous * 100 if previous > 0 else 0


def calculate_trends(monthly_data: List[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Latest month against the one before (list is oldest first)"""
    if len(monthly_data) < 2:
        return None
    latest, previous = monthly_data[-1], monthly_data[-2]
    sales_growth = _growth(latest["totalSales"], previous["totalSales"])
    return {
        "salesGrowthPercentage": sales_growth,
        "averageGrowthPercentage": _growth(latest["averagePerEmployee"], previous["averagePerEmployee"]),
        "trend": "upward" if sales_growth > 0 else "downward" if sales_growth < 0 else "stable",
        "isImproving": sales_growth > 0,
    }


def calculate_consistency(performance_data: List[Dict[str, Any]]) -> float:
    """
    0-100, higher when monthly sales vary less (100 - coefficient of
    variation %). Fewer than 3 months: 100. Fewer than 2 months with sales: 0.
    """
    if len(performance_data) < 3:
        return 100
    values = [p["totalSales"] for p in performance_data if p["totalSales"] > 0]
    if len(values) < 2:
        return 0
    average = sum(values) / len(values)
    variance = sum((v - average) ** 2 for v in values) / len(values)
    variation = math.sqrt(variance) / average if average > 0 else 1
    return max(0.0, min(100.0, 100 - variation * 100))


def calculate_employee_trends(performance_data: List[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if len(performance_data) < 2:
        return None
    latest, previous = performance_data[-1], performance_data[-2]
    sales_growth = _growth(latest["totalSales"], previous["totalSales"])
    # positive = moved up the ranking
    rank_change = previous["rank"] - latest["rank"] if previous.get("rank") and latest.get("rank") else 0
    return {
        "salesGrowthPercentage": sales_growth,
        "rankChange": rank_change,
        "rankImprovement": rank_change > 0,
        "trend": "improving" if sales_growth > 0 else "declining" if sales_growth < 0 else "stable",
        "consistency": calculate_consistency(performance_data),
    }


def export_employee_analytics_csv(analytics: Dict[str, Any]) -> str:
    output = io.StringIO()
    writer = csv.DictWriter(output, fieldnames=CSV_COLUMNS, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writeheader()

    for entry in analytics.get("employeePerformance", []):
        details = entry.get("employeeDetails") or {}
        writer.writerow({
            "Rank": entry["rank"],
            "Employee Name": entry["employeeName"],
            "Employee ID": details.get("employeeId") or "N/A",
            "Department": details.get("department") or "N/A",
            "Total Sales": f"{entry['totalSales']:.2f}",
            "Total Invoices": entry["totalInvoices"],
            "Average Invoice Value": f"{entry['averageInvoiceValue']:.2f}",
            "Performance %": f"{entry['performancePercentage']:.2f}%",
        })

    return output.getvalue()
