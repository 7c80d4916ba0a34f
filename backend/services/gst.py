"""
GST computation for invoice and quotation items.

Customers in the showroom's home state (Gujarat) pay CGST + SGST (half the
rate each); every other state pays IGST at the full rate.
"""

import re
from enum import Enum
from typing import Any, Dict, List, Optional

HOME_STATE = "gujarat"
DEFAULT_GST_RATE = 18
GST_SLABS = (0, 5, 12, 18, 28)
GST_NUMBER_PATTERN = re.compile(r"^[0-9]{2}[A-Z]{5}[0-9]{4}[A-Z][1-9A-Z]Z[0-9A-Z]$")


class GSTType(str, Enum):
    NO_GST = "no_gst"
    CGST_SGST = "cgst_sgst"
    IGST = "igst"


def _money(value: float) -> float:
    return round(value + 0.0, 2)


def is_home_state(customer_state: Optional[str]) -> bool:
    return (customer_state or "").strip().lower() == HOME_STATE


def is_valid_gst_number(gst_number: Optional[str]) -> bool:
    """Empty is valid (GST number is optional)"""
    if not gst_number or not gst_number.strip():
        return True
    return bool(GST_NUMBER_PATTERN.match(gst_number.strip().upper()))


def calculate_gst(
    amount: float,
    customer_state: Optional[str] = "",
    include_gst: bool = True,
    rate: float = DEFAULT_GST_RATE,
) -> Dict[str, Any]:
    base = float(amount or 0)
    if not include_gst or base <= 0 or not rate:
        return {
            "baseAmount": _money(base),
            "gstType": GSTType.NO_GST.value,
            "cgstAmount": 0.0,
            "sgstAmount": 0.0,
            "igstAmount": 0.0,
            "totalGstAmount": 0.0,
            "totalAmount": _money(base),
            "gstBreakdown": {
                "cgst": {"rate": 0, "amount": 0.0},
                "sgst": {"rate": 0, "amount": 0.0},
                "igst": {"rate": 0, "amount": 0.0},
            },
        }

    cgst_rate = sgst_rate = igst_rate = 0
    if is_home_state(customer_state):
        gst_type = GSTType.CGST_SGST
        cgst_rate = sgst_rate = rate / 2
    else:
        gst_type = GSTType.IGST
        igst_rate = rate

    cgst = base * cgst_rate / 100
    sgst = base * sgst_rate / 100
    igst = base * igst_rate / 100
    total_gst = cgst + sgst + igst

    return {
        "baseAmount": _money(base),
        "gstType": gst_type.value,
        "cgstAmount": _money(cgst),
        "sgstAmount": _money(sgst),
        "igstAmount": _money(igst),
        "totalGstAmount": _money(total_gst),
        "totalAmount": _money(base + total_gst),
        "gstBreakdown": {
            "cgst": {"rate": cgst_rate, "amount": _money(cgst)},
            "sgst": {"rate": sgst_rate, "amount": _money(sgst)},
            "igst": {"rate": igst_rate, "amount": _money(igst)},
        },
    }


def calculate_item(item: Dict[str, Any], customer_state: Optional[str], include_gst: bool = True) -> Dict[str, Any]:
    """price x quantity, taxed at the item's gstRate (default 18)"""
    quantity = float(item.get("quantity") or 1)
    price = float(item.get("price") or 0)
    rate = item.get("gstRate")
    rate = DEFAULT_GST_RATE if rate is None else float(rate)
    result = calculate_gst(price * quantity, customer_state, include_gst, rate)
    return {
        **item,
        "gstRate": rate if include_gst else 0,
        "hsnCode": item.get("hsnCode") or "",
        "baseAmount": result["baseAmount"],
        "gstAmount": result["totalGstAmount"],
        "totalAmount": result["totalAmount"],
        "gstBreakdown": result["gstBreakdown"],
    }


def calculate_totals(items: List[Dict[str, Any]], customer_state: Optional[str], include_gst: bool = True) -> Dict[str, Any]:
    """Processed items + subtotal / totalGST / grandTotal (rounded to the rupee)"""
    processed = [calculate_item(item, customer_state, include_gst) for item in items or []]
    subtotal = sum(i["baseAmount"] for i in processed)
    total_gst = sum(i["gstAmount"] for i in processed)
    return {
        "items": processed,
        "subtotal": _money(subtotal),
        "totalGST": _money(total_gst),
        "grandTotal": float(round(subtotal + total_gst)),
    }
