"""Brand escalation hierarchies (electronics tenant)"""

from typing import List
from pydantic import BaseModel


class HierarchyLevel(BaseModel):
    name: str
    contact: str


class BrandSave(BaseModel):
    brandName: str
    hierarchy: List[HierarchyLevel] = []


class DefaultHierarchySave(BaseModel):
    name: str
    contact: str
