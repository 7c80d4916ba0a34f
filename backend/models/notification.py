"""Complaint notification request bodies"""

from typing import Any, Dict, Optional
from pydantic import BaseModel


class NotificationCreate(BaseModel):
    title: str
    message: str
    type: str
    userId: str
    priority: Optional[str] = None
    data: Dict[str, Any] = {}


class ProcessRequest(BaseModel):
    adminUserId: Optional[str] = None
