"""
Quotations - priced offers that can later be converted into an invoice.

Number format: QT_{company code | EL | FN}_{seq:03d}, seq = max existing + 1.
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
from services.query import FullScanRecordQuery, ListQuery, QueryShape
from services.store import TreeStore

logger = logging.getLogger("quotations")

SEQUENCE_SUFFIX = re.compile(r"(\d{3})$")
QUOTATION_SHAPE = QueryShape(
    search_fields=("quotationNumber", "customerName", "customerPhone"),
    date_fields=("createdAt", "updatedAt", "quotationDate", "validUntil"),
)
TRANSIENT_FIELDS = ("id", "quotationNumber", "converted", "convertedInvoiceId", "convertedAt")


class QuotationStatus(str, Enum):
    ACTIVE = "active"
    CONVERTED = "converted"
    EXPIRED = "expired"
    CANCELLED = "cancelled"


def _priced(items, customer_state, include_gst) -> Dict[str, Any]:
    totals = calculate_totals(items or [], customer_state, include_gst)
    grand_total = round(totals["subtotal"] + totals["totalGST"], 2)
    return {
        "items": totals["items"],
        "subtotal": totals["subtotal"],
        "totalGST": totals["totalGST"],
        "grandTotal": grand_total,
        "totalAmount": grand_total,
    }


def is_expired(quotation: Dict[str, Any], today: date) -> bool:
    """Still active but past validUntil"""
    valid_until = parse_date(quotation.get("validUntil"))
    return (
        valid_until is not None
        and valid_until < today
        and quotation.get("status") == QuotationStatus.ACTIVE.value
    )


class QuotationService:
    """Quotations of one tenant"""

    def __init__(self, store: TreeStore, user_type: str):
        self.store = store
        self.user_type = get_user_type_or_raise(user_type)
        self.query_engine = FullScanRecordQuery(store, self._path(), QUOTATION_SHAPE)

    def _path(self, quotation_id: Optional[str] = None) -> str:
        return collection_path(self.user_type, Collection.QUOTATIONS, quotation_id)

    async def generate_quotation_number(self, company_code: Optional[str] = None) -> str:
        prefix = f"QT_{company_code or TENANT_CODE[self.user_type]}_"
        max_sequence = 0
        for quotation in await self.query_engine.fetch_all():
            number = quotation.get("quotationNumber") or ""
            match = SEQUENCE_SUFFIX.search(number) if number.startswith(prefix) else None
            if match:
                max_sequence = max(max_sequence, int(match.group(1)))
        return f"{prefix}{max_sequence + 1:03d}"

    # ==================== READ ====================

    async def list(self, query: Optional[ListQuery] = None) -> Dict[str, Any]:
        query = query or ListQuery(sort_by="createdAt")
        if not query.sort_by:
            query.sort_by = "createdAt"
        return (await self.query_engine.run(query)).to_dict("quotations")

    async def get_by_id(self, quotation_id: str) -> Optional[Dict[str, Any]]:
        quotation = await self.store.get(self._path(quotation_id))
        if not quotation:
            return None
        return {**quotation, "id": quotation_id}

    async def get_or_raise(self, quotation_id: str) -> Dict[str, Any]:
        quotation = await self.get_by_id(quotation_id)
        if not quotation:
            raise NotFoundError("Quotation", quotation_id)
        return quotation

    async def search(self, term: Optional[str], limit: int = 100) -> List[Dict[str, Any]]:
        recent = (await self.query_engine.run(ListQuery(sort_by="createdAt", limit=limit))).items
        if not term or not term.strip():
            return recent
        needle = term.strip().lower()
        return [
            q for q in recent
            if needle in (q.get("quotationNumber") or "").lower()
            or needle in (q.get("customerName") or "").lower()
            or any(needle in (i.get("name") or "").lower() for i in q.get("items") or [])
        ]

    async def customer_history(self, customer_id: str) -> List[Dict[str, Any]]:
        return (await self.query_engine.run(
            ListQuery(filters={"customerId": customer_id}, sort_by="createdAt")
        )).items

    async def stats(self, today: Optional[date] = None) -> Dict[str, Any]:
        today = today or today_local()
        quotations = await self.query_engine.fetch_all()
        todays = [q for q in quotations if (parse_date(q.get("quotationDate")) or date.min) >= today]
        converted = len([q for q in quotations if q.get("converted") is True])

        def amount(q):
            return float(q.get("grandTotal") or q.get("totalAmount") or 0)

        return {
            "totalQuotations": len(quotations),
            "totalAmount": sum(amount(q) for q in quotations),
            "todaysQuotations": len(todays),
            "todaysAmount": sum(amount(q) for q in todays),
            "activeQuotations": len([q for q in quotations if q.get("status") == QuotationStatus.ACTIVE.value]),
            "convertedQuotations": converted,
            "expiredQuotations": len([q for q in quotations if is_expired(q, today)]),
            "conversionRate": round(converted / len(quotations) * 100, 1) if quotations else 0,
        }

    # ==================== WRITE ====================

    @staticmethod
    def _validate(data: Dict[str, Any], is_create: bool) -> None:
        if is_create and not (data.get("customerName") or "").strip():
            raise ValidationError("Customer name is required", field="customerName")
        if is_create and not data.get("items"):
            raise ValidationError("At least one item is required", field="items")
        if data.get("status") and data["status"] not in {s.value for s in QuotationStatus}:
            raise ValidationError("Invalid quotation status", field="status")
        if not is_valid_gst_number(data.get("customerGSTNumber")):
            raise ValidationError("Invalid GST number format", field="customerGSTNumber")
        quotation_date = parse_date(data.get("quotationDate"))
        valid_until = parse_date(data.get("validUntil"))
        if quotation_date and valid_until and valid_until < quotation_date:
            raise ValidationError("Valid until date cannot be before the quotation date", field="validUntil")

    async def create(self, data: Dict[str, Any], user: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        self._validate(data, is_create=True)

        company = data.get("company") or {}
        quotation_number = await self.generate_quotation_number(company.get("code"))
        include_gst = data.get("includeGST", True) is not False

        now = now_iso()
        record = {k: v for k, v in data.items() if k not in TRANSIENT_FIELDS}
        record.update(_priced(data.get("items"), data.get("customerState"), include_gst))
        record.update({
            "quotationNumber": quotation_number,
            "quotationDate": data.get("quotationDate") or today_local().isoformat(),
            "includeGST": include_gst,
            "customerGSTNumber": data.get("customerGSTNumber") or "",
            "termsAndConditions": data.get("termsAndConditions") or "",
            "remarks": data.get("remarks") or "",
            "status": QuotationStatus.ACTIVE.value,
            "converted": False,
            "convertedInvoiceId": None,
            "createdAt": now,
            "updatedAt": now,
        })
        if user:
            record.update({"createdBy": user.get("uid"), "createdByName": user.get("name")})

        quotation_id = await self.store.push(self._path(), record)
        logger.info(f"[QUOTATION] Created {quotation_number} id={quotation_id}")
        return {**record, "id": quotation_id}

    async def update(self, quotation_id: str, updates: Dict[str, Any]) -> Dict[str, Any]:
        """quotationNumber never changes; totals are recomputed when items change"""
        existing = await self.get_or_raise(quotation_id)
        self._validate(updates, is_create=False)

        patch = {k: v for k, v in updates.items() if k not in TRANSIENT_FIELDS}
        if "items" in patch:
            state = patch.get("customerState") or existing.get("customerState")
            include_gst = patch.get("includeGST", existing.get("includeGST", True)) is not False
            patch.update(_priced(patch["items"], state, include_gst))

        patch["updatedAt"] = now_iso()
        await self.store.update(self._path(quotation_id), patch)
        logger.info(f"[QUOTATION] Updated {existing.get('quotationNumber')}")
        return await self.get_by_id(quotation_id)

    async def delete(self, quotation_id: str) -> None:
        existing = await self.get_or_raise(quotation_id)
        await self.store.remove(self._path(quotation_id))
        logger.info(f"[QUOTATION] Deleted {existing.get('quotationNumber')}")

    async def convert_to_invoice(self, quotation_id: str, invoice_id: str) -> Dict[str, Any]:
        existing = await self.get_or_raise(quotation_id)
        if existing.get("converted"):
            raise ValidationError("Quotation has already been converted", field="status")
        now = now_iso()
        await self.store.update(self._path(quotation_id), {
            "converted": True,
            "convertedInvoiceId": invoice_id,
            "convertedAt": now,
            "status": QuotationStatus.CONVERTED.value,
            "updatedAt": now,
        })
        logger.info(f"[QUOTATION] {existing.get('quotationNumber')} converted to invoice {invoice_id}")
        return await self.get_by_id(quotation_id)
