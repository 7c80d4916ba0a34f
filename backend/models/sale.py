"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  Invoice / quotation request bodies                                          ║
║                                                                              ║
║  Totals (subtotal, totalGST, grandTotal) are always computed server side;    ║
║  any value sent by the client is ignored.                                    ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field


class LineItem(BaseModel):
    name: str
    quantity: float = 1
    price: float = 0
    gstRate: Optional[float] = None
    hsnCode: Optional[str] = ""
    brand: Optional[str] = None
    model: Optional[str] = None


class PaymentDetails(BaseModel):
    paymentMethod: Optional[str] = None
    downPayment: float = 0
    remainingBalance: Optional[float] = None
    financeCompany: Optional[str] = None


class SaleBase(BaseModel):
    saleDate: Optional[str] = None
    customerId: Optional[str] = None
    customerName: Optional[str] = None
    customerPhone: Optional[str] = None
    customerAddress: Optional[str] = None
    customerState: Optional[str] = None
    customerGSTNumber: Optional[str] = None
    salesPersonId: Optional[str] = None
    salesPersonName: Optional[str] = None
    items: Optional[List[LineItem]] = None
    includeGST: Optional[bool] = None
    netPayable: Optional[float] = None
    paymentStatus: Optional[str] = None
    paymentDetails: Optional[PaymentDetails] = None
    emiDetails: Optional[Dict[str, Any]] = None
    deliveryStatus: Optional[str] = None
    remarks: Optional[str] = None


class SaleCreate(SaleBase):
    pass


class SaleUpdate(SaleBase):
    pass


class PaymentStatusUpdate(BaseModel):
    paymentStatus: str
    details: Dict[str, Any] = {}


class DeliveryStatusUpdate(BaseModel):
    deliveryStatus: str
    details: Dict[str, Any] = {}


class PaymentRecord(BaseModel):
    amount: float = Field(gt=0)
    paymentMethod: Optional[str] = None
    reference: Optional[str] = None
    notes: Optional[str] = None
    paymentDate: Optional[str] = None


class QuotationBase(BaseModel):
    quotationDate: Optional[str] = None
    validUntil: Optional[str] = None
    customerId: Optional[str] = None
    customerName: Optional[str] = None
    customerPhone: Optional[str] = None
    customerAddress: Optional[str] = None
    customerState: Optional[str] = None
    customerGSTNumber: Optional[str] = None
    company: Optional[Dict[str, Any]] = None
    items: Optional[List[LineItem]] = None
    includeGST: Optional[bool] = None
    termsAndConditions: Optional[str] = None
    remarks: Optional[str] = None
    status: Optional[str] = None


class QuotationCreate(QuotationBase):
    pass


class QuotationUpdate(QuotationBase):
    pass


class ConvertQuotation(BaseModel):
    invoiceId: str
