"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  Sales / Invoices                                                            ║
║                                                                              ║
║  RULES:                                                                      ║
║  - invoiceNumber = {EL|FN}_{GST|NGST}_{seq:03d}, seq = max existing + 1      ║
║    for that prefix (no reservation, racy like complaint numbering)           ║
║  - items are GST-processed on write (Gujarat: CGST+SGST, else IGST)          ║
║  - grandTotal = round(subtotal + totalGST); netPayable defaults to it        ║
║  - fullyPaid follows paymentStatus == paid, or a zero remaining balance      ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

import logging
import re
from datetime import date
from enum import Enum
from typing import Any, Dict, List, Optional

from config import now_iso, today_local
from services.dates import parse_date
from services.errors import NotFoundError, ValidationError
from services.gst import calculate_totals, is_valid_gst_number
from services.paths import TENANT_CODE, Collection, collection_path, get_user_type_or_raise
from services.query import FullScanRecordQuery, ListQuery, QueryShape, apply_list_query
from services.store import TreeStore

logger = logging.getLogger("sales")

SEQUENCE_SUFFIX = re.compile(r"(\d{3})$")
SALE_SEARCH_FIELDS = ("invoiceNumber", "customerName", "customerPhone")
TRANSIENT_FIELDS = ("id", "invoiceNumber")


class PaymentStatus(str, Enum):
    PAID = "paid"
    PENDING = "pending"
    EMI = "emi"
    FINANCE = "finance"
    BANK_TRANSFER = "bank_transfer"


class DeliveryStatus(str, Enum):
    DELIVERED = "delivered"
    PENDING = "pending"
    SCHEDULED = "scheduled"


def _items_match(sale: Dict[str, Any], value: Any) -> bool:
    needle = str(value).lower()
    return any(needle in str(item.get("name") or "").lower() for item in sale.get("items") or [])


SALE_SHAPE = QueryShape(
    search_fields=SALE_SEARCH_FIELDS,
    date_fields=("createdAt", "updatedAt", "saleDate"),
    matchers={"itemName": _items_match},
)


def sale_amount(sale: Dict[str, Any]) -> float:
    """Amount billed: netPayable, then grandTotal, then totalAmount"""
    return float(sale.get("netPayable") or sale.get("grandTotal") or sale.get("totalAmount") or 0)


def amount_paid(sale: Dict[str, Any]) -> float:
    """What the customer has actually paid so far"""
    status = sale.get("paymentStatus")
    if status in (PaymentStatus.FINANCE.value, PaymentStatus.BANK_TRANSFER.value, PaymentStatus.PENDING.value):
        return float((sale.get("paymentDetails") or {}).get("downPayment") or 0)
    if status == PaymentStatus.PAID.value or sale.get("fullyPaid"):
        return sale_amount(sale)
    if status == PaymentStatus.EMI.value:
        schedule = (sale.get("emiDetails") or {}).get("schedule") or []
        return float(sum(e.get("paidAmount") or e.get("amount") or 0 for e in schedule if e.get("paid")))
    return 0.0


class SalesService:
    """Invoices of one tenant"""

    def __init__(self, store: TreeStore, user_type: str):
        self.store = store
        self.user_type = get_user_type_or_raise(user_type)
        self.query_engine = FullScanRecordQuery(store, self._path(), SALE_SHAPE)

    def _path(self, sale_id: Optional[str] = None) -> str:
        return collection_path(self.user_type, Collection.SALES, sale_id)

    def invoice_prefix(self, include_gst: bool = True) -> str:
        return f"{TENANT_CODE[self.user_type]}_{'GST' if include_gst else 'NGST'}_"

    async def generate_invoice_number(self, include_gst: bool = True) -> str:
        prefix = self.invoice_prefix(include_gst)
        max_sequence = 0
        for sale in await self.query_engine.fetch_all():
            number = sale.get("invoiceNumber") or ""
            if not number.startswith(prefix):
                continue
            match = SEQUENCE_SUFFIX.search(number)
            if match:
                max_sequence = max(max_sequence, int(match.group(1)))
        return f"{prefix}{max_sequence + 1:03d}"

    # ==================== READ ====================

    async def list(self, query: Optional[ListQuery] = None) -> Dict[str, Any]:
        """Filters: paymentStatus, deliveryStatus, customerId, salesPersonId, itemName"""
        query = query or ListQuery(sort_by="createdAt")
        if not query.sort_by:
            query.sort_by = "createdAt"
        return (await self.query_engine.run(query)).to_dict("sales")

    async def get_by_id(self, sale_id: str) -> Optional[Dict[str, Any]]:
        sale = await self.store.get(self._path(sale_id))
        if not sale:
            return None
        return {**sale, "id": sale_id}

    async def get_or_raise(self, sale_id: str) -> Dict[str, Any]:
        sale = await self.get_by_id(sale_id)
        if not sale:
            raise NotFoundError("Invoice", sale_id)
        return sale

    async def search(self, term: Optional[str], limit: int = 100) -> List[Dict[str, Any]]:
        """Invoice number, customer name or any item name"""
        recent = (await self.query_engine.run(ListQuery(sort_by="createdAt", limit=limit))).items
        if not term or not term.strip():
            return recent
        needle = term.strip().lower()
        return [
            s for s in recent
            if needle in (s.get("invoiceNumber") or "").lower()
            or needle in (s.get("customerName") or "").lower()
            or _items_match(s, needle)
        ]

    async def by_date_range(self, start: Any, end: Any) -> List[Dict[str, Any]]:
        """Sales whose saleDate falls in [start, end] (calendar days), newest first"""
        start_day, end_day = parse_date(start), parse_date(end)
        if start_day is None or end_day is None:
            raise ValidationError("Valid start and end dates are required", field="dateRange")
        if start_day > end_day:
            raise ValidationError("Start date cannot be after end date", field="dateRange")
        found = []
        for sale in await self.query_engine.fetch_all():
            day = parse_date(sale.get("saleDate"))
            if day is not None and start_day <= day <= end_day:
                found.append(sale)
        return self._sorted(found, "saleDate")

    @staticmethod
    def _sorted(sales: List[Dict[str, Any]], field: str) -> List[Dict[str, Any]]:
        return apply_list_query(sales, ListQuery(sort_by=field), SALE_SHAPE).items

    async def customer_history(self, customer_id: str) -> List[Dict[str, Any]]:
        return (await self.query_engine.run(
            ListQuery(filters={"customerId": customer_id}, sort_by="createdAt")
        )).items

    async def pending_emi(self) -> List[Dict[str, Any]]:
        return (await self.query_engine.run(
            ListQuery(filters={"paymentStatus": PaymentStatus.EMI.value}, sort_by="createdAt")
        )).items

    async def pending_deliveries(self) -> List[Dict[str, Any]]:
        sales = await self.query_engine.fetch_all()
        pending = [s for s in sales if s.get("deliveryStatus") != DeliveryStatus.DELIVERED.value]
        return self._sorted(pending, "createdAt")

    async def stats(self, today: Optional[date] = None) -> Dict[str, Any]:
        today = today or today_local()
        sales = await self.query_engine.fetch_all()
        todays = [s for s in sales if (parse_date(s.get("saleDate")) or date.min) >= today]

        by_category: Dict[str, Dict[str, Any]] = {}
        for sale in sales:
            category = sale.get("originalPaymentCategory") or "unknown"
            bucket = by_category.setdefault(category, {"count": 0, "totalAmount": 0.0, "paidAmount": 0.0})
            bucket["count"] += 1
            bucket["totalAmount"] += sale_amount(sale)
            bucket["paidAmount"] += amount_paid(sale)

        def count_status(status: PaymentStatus) -> int:
            return len([s for s in sales if s.get("paymentStatus") == status.value])

        return {
            "totalSales": len(sales),
            "totalAmount": sum(sale_amount(s) for s in sales),
            "totalAmountPaid": sum(amount_paid(s) for s in sales),
            "todaysSales": len(todays),
            "todaysAmount": sum(sale_amount(s) for s in todays),
            "todaysAmountPaid": sum(amount_paid(s) for s in todays),
            "pendingPayments": count_status(PaymentStatus.PENDING),
            "pendingDeliveries": len([s for s in sales if s.get("deliveryStatus") == DeliveryStatus.PENDING.value]),
            "paidInvoices": len([s for s in sales if s.get("paymentStatus") == PaymentStatus.PAID.value or s.get("fullyPaid")]),
            "emiInvoices": count_status(PaymentStatus.EMI),
            "financeInvoices": count_status(PaymentStatus.FINANCE),
            "bankTransferInvoices": count_status(PaymentStatus.BANK_TRANSFER),
            "outstandingAmount": sum(max(0.0, sale_amount(s) - amount_paid(s)) for s in sales),
            "statsByCategory": by_category,
        }

    # ==================== WRITE ====================

    @staticmethod
    def _validate(data: Dict[str, Any], is_create: bool) -> None:
        if is_create:
            if not (data.get("customerName") or "").strip():
                raise ValidationError("Customer name is required", field="customerName")
            if not data.get("items"):
                raise ValidationError("At least one item is required", field="items")
        for index, item in enumerate(data.get("items") or []):
            if not (item.get("name") or "").strip():
                raise ValidationError(f"Item name is required for item {index + 1}", field="items")
            try:
                if float(item.get("price") or 0) < 0 or float(item.get("quantity") or 1) <= 0:
                    raise ValueError(item)
            except (TypeError, ValueError):
                raise ValidationError(f"Invalid price or quantity for item {index + 1}", field="items")
        if data.get("paymentStatus") and data["paymentStatus"] not in {s.value for s in PaymentStatus}:
            raise ValidationError("Invalid payment status", field="paymentStatus")
        if data.get("deliveryStatus") and data["deliveryStatus"] not in {s.value for s in DeliveryStatus}:
            raise ValidationError("Invalid delivery status", field="deliveryStatus")
        if not is_valid_gst_number(data.get("customerGSTNumber")):
            raise ValidationError("Invalid GST number format", field="customerGSTNumber")

    @staticmethod
    def _priced(data: Dict[str, Any], include_gst: bool, customer_state: Optional[str]) -> Dict[str, Any]:
        totals = calculate_totals(data.get("items") or [], customer_state, include_gst)
        return {
            "items": totals["items"],
            "includeGST": include_gst,
            "subtotal": totals["subtotal"],
            "totalGST": totals["totalGST"],
            "grandTotal": totals["grandTotal"],
            "totalAmount": totals["grandTotal"],
        }

    async def create(self, data: Dict[str, Any], user: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        self._validate(data, is_create=True)

        include_gst = data.get("includeGST", True) is not False
        invoice_number = await self.generate_invoice_number(include_gst)

        now = now_iso()
        record = {k: v for k, v in data.items() if k not in TRANSIENT_FIELDS}
        record.update(self._priced(data, include_gst, data.get("customerState")))
        record.update({
            "invoiceNumber": invoice_number,
            "saleDate": data.get("saleDate") or now,
            "netPayable": float(data.get("netPayable") or record["grandTotal"]),
            "paymentStatus": data.get("paymentStatus") or PaymentStatus.PENDING.value,
            "deliveryStatus": data.get("deliveryStatus") or DeliveryStatus.PENDING.value,
            "status": "active",
            "createdAt": now,
            "updatedAt": now,
        })
        record["fullyPaid"] = record["paymentStatus"] == PaymentStatus.PAID.value

        if record["paymentStatus"] == PaymentStatus.EMI.value and data.get("emiDetails"):
            down_payment = float((data.get("paymentDetails") or {}).get("downPayment") or 0)
            emi = data["emiDetails"]
            record["emiDetails"] = {
                **emi,
                "numberOfInstallments": int(emi.get("numberOfInstallments") or 1),
                "downPayment": down_payment,
                "totalAmount": record["netPayable"],
                "emiAmount": record["netPayable"] - down_payment,
            }

        if user:
            record.update({"createdBy": user.get("uid"), "createdByName": user.get("name")})

        sale_id = await self.store.push(self._path(), record)
        logger.info(f"[SALE] Created {invoice_number} ({record['grandTotal']}) id={sale_id}")
        return {**record, "id": sale_id}

    async def update(self, sale_id: str, updates: Dict[str, Any]) -> Dict[str, Any]:
        """Re-prices the items when items, includeGST or customerState change"""
        existing = await self.get_or_raise(sale_id)
        self._validate(updates, is_create=False)

        patch = {k: v for k, v in updates.items() if k not in TRANSIENT_FIELDS}
        if any(k in patch for k in ("items", "includeGST", "customerState")):
            include_gst = patch.get("includeGST", existing.get("includeGST", True)) is not False
            state = patch.get("customerState", existing.get("customerState"))
            items = patch.get("items", existing.get("items"))
            patch.update(self._priced({"items": items}, include_gst, state))
            if "netPayable" not in updates:
                patch["netPayable"] = patch["grandTotal"]

        if patch.get("paymentStatus") == PaymentStatus.PAID.value:
            patch["fullyPaid"] = True
            patch.setdefault("paymentDate", now_iso())

        patch["updatedAt"] = now_iso()
        await self.store.update(self._path(sale_id), patch)
        logger.info(f"[SALE] Updated {existing.get('invoiceNumber')}")
        return await self.get_by_id(sale_id)

    async def delete(self, sale_id: str) -> None:
        existing = await self.get_or_raise(sale_id)
        await self.store.remove(self._path(sale_id))
        logger.info(f"[SALE] Deleted {existing.get('invoiceNumber')}")

    async def update_payment_status(self, sale_id: str, payment_status: str,
                                    details: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        return await self.update(sale_id, {**(details or {}), "paymentStatus": payment_status})

    async def update_delivery_status(self, sale_id: str, delivery_status: str,
                                     details: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        updates = {**(details or {}), "deliveryStatus": delivery_status}
        if delivery_status == DeliveryStatus.DELIVERED.value:
            updates["deliveryDate"] = now_iso()
        return await self.update(sale_id, updates)

    async def record_payment(self, sale_id: str, amount: float,
                             details: Optional[Dict[str, Any]] = None,
                             user: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Additional payment against the balance; fullyPaid once nothing remains"""
        details = details or {}
        try:
            amount = float(amount)
        except (TypeError, ValueError):
            raise ValidationError("Invalid payment amount", field="amount")
        if amount <= 0:
            raise ValidationError("Payment amount must be greater than zero", field="amount")

        sale = await self.get_or_raise(sale_id)
        total = sale_amount(sale)
        payment = sale.get("paymentDetails") or {
            "downPayment": 0, "remainingBalance": total, "paymentMethod": "cash", "paymentHistory": [],
        }
        paid = float(payment.get("downPayment") or 0) + amount
        remaining = max(0.0, total - paid)
        paid_at = details.get("paymentDate") or now_iso()

        entry = {
            "amount": amount,
            "date": paid_at,
            "method": details.get("paymentMethod") or "cash",
            "reference": details.get("reference") or "",
            "type": "pending_payment" if sale.get("paymentStatus") == PaymentStatus.PENDING.value else "additional_payment",
            "notes": details.get("notes") or "",
        }
        if user:
            entry.update({"recordedBy": user.get("uid"), "recordedByName": user.get("name")})

        patch = {
            "paymentDetails": {
                **payment,
                "downPayment": paid,
                "remainingBalance": remaining,
                "paymentHistory": list(payment.get("paymentHistory") or []) + [entry],
            },
            "updatedAt": now_iso(),
        }
        if remaining == 0:
            patch.update({"fullyPaid": True, "paymentDate": paid_at})

        await self.store.update(self._path(sale_id), patch)
        logger.info(f"[SALE] Payment {amount} on {sale.get('invoiceNumber')} (remaining {remaining})")
        return await self.get_by_id(sale_id)

    async def update_emi_payment(self, sale_id: str, emi_index: int,
                                 details: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Mark one installment paid; fullyPaid once every installment is"""
        sale = await self.get_or_raise(sale_id)
        emi = sale.get("emiDetails") or {}
        schedule = list(emi.get("schedule") or [])
        if not schedule:
            raise ValidationError("EMI schedule not found", field="emiDetails")
        if not 0 <= emi_index < len(schedule):
            raise ValidationError("Invalid EMI index", field="emiIndex")

        schedule[emi_index] = {**schedule[emi_index], "paid": True, "paymentDate": now_iso(), **(details or {})}
        patch = {"emiDetails": {**emi, "schedule": schedule}, "updatedAt": now_iso()}
        if all(e.get("paid") for e in schedule):
            patch.update({"fullyPaid": True, "paymentDate": now_iso()})

        await self.store.update(self._path(sale_id), patch)
        logger.info(f"[SALE] EMI #{emi_index + 1} paid on {sale.get('invoiceNumber')}")
        return await self.get_by_id(sale_id)

