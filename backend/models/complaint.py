"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  Complaint request bodies                                                    ║
║                                                                              ║
║  Field rules (lengths, phone format, due date) are enforced by               ║
║  services.validation so that every entry point reports them the same way.    ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

from typing import Optional
from pydantic import BaseModel, field_validator


class ComplaintCreate(BaseModel):
    customerId: Optional[str] = None
    customerName: Optional[str] = None
    customerPhone: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    severity: Optional[str] = None
    assigneeType: Optional[str] = None
    assignedEmployeeId: Optional[str] = None
    assignedEmployeeName: Optional[str] = None
    servicePersonName: Optional[str] = None
    servicePersonContact: Optional[str] = None
    companyComplaintNumber: Optional[str] = None
    companyRecordedDate: Optional[str] = None
    expectedResolutionDate: Optional[str] = None
    brandName: Optional[str] = None

    @field_validator("servicePersonContact", "customerPhone")
    @classmethod
    def strip_phone(cls, v):
        return v.strip() if isinstance(v, str) else v


class ComplaintUpdate(ComplaintCreate):
    status: Optional[str] = None
    statusRemarks: Optional[str] = None


class EscalateRequest(BaseModel):
    brandName: Optional[str] = None
