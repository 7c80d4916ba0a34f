"""Customers and employees"""

from typing import Optional
from pydantic import BaseModel, field_validator


class CustomerCreate(BaseModel):
    name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    pincode: Optional[str] = None
    gstNumber: Optional[str] = None
    customerType: Optional[str] = None
    category: Optional[str] = None

    @field_validator("gstNumber")
    @classmethod
    def upper_gst(cls, v):
        return v.strip().upper() if isinstance(v, str) else v


class CustomerUpdate(CustomerCreate):
    pass


class EmployeeCreate(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    employeeId: Optional[str] = None
    department: Optional[str] = None
    role: Optional[str] = None
    userId: Optional[str] = None
    joinedDate: Optional[str] = None
    salary: Optional[float] = None
    isActive: Optional[bool] = None
    address: Optional[str] = None


class EmployeeUpdate(EmployeeCreate):
    pass
