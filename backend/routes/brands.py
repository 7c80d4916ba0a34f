"""
Brand hierarchy routes (electronics tenant only)
"""

from fastapi import APIRouter, Depends, HTTPException

from models.brand import BrandSave, DefaultHierarchySave
from routes.deps import brand_service, get_current_user
from services.brand_hierarchy import BrandHierarchyService

router = APIRouter(prefix="/brands", tags=["Brand hierarchy"])


@router.get("")
async def list_brands(
    service: BrandHierarchyService = Depends(brand_service),
    user: dict = Depends(get_current_user),
):
    return {"brands": await service.list_brands()}


# ==================== DEFAULT HIERARCHY ====================

@router.get("/default-hierarchy")
async def get_default_hierarchy(
    service: BrandHierarchyService = Depends(brand_service),
    user: dict = Depends(get_current_user),
):
    return {"defaultHierarchy": await service.get_default_hierarchy()}


@router.put("/default-hierarchy")
async def save_default_hierarchy(
    data: DefaultHierarchySave,
    service: BrandHierarchyService = Depends(brand_service),
    user: dict = Depends(get_current_user),
):
    saved = await service.save_default_hierarchy(data.model_dump())
    return {"success": True, "defaultHierarchy": saved}


@router.delete("/default-hierarchy")
async def delete_default_hierarchy(
    service: BrandHierarchyService = Depends(brand_service),
    user: dict = Depends(get_current_user),
):
    await service.delete_default_hierarchy()
    return {"success": True}


# ==================== ESCALATION ====================

@router.get("/escalation")
async def resolve_escalation(
    current_contact: str = None,
    brand_name: str = None,
    title: str = None,
    service: BrandHierarchyService = Depends(brand_service),
    user: dict = Depends(get_current_user),
):
    """Next level (or default hierarchy) for a service person contact"""
    option = await service.resolve_escalation(current_contact, brand_name=brand_name, title=title)
    return option.to_dict()


@router.get("/detect")
async def detect_brand(
    title: str,
    service: BrandHierarchyService = Depends(brand_service),
    user: dict = Depends(get_current_user),
):
    return {"brand": await service.detect_brand_from_title(title)}


# ==================== BRANDS ====================

@router.get("/{brand_id}")
async def get_brand(
    brand_id: str,
    service: BrandHierarchyService = Depends(brand_service),
    user: dict = Depends(get_current_user),
):
    brand = await service.get_brand(brand_id)
    if not brand:
        raise HTTPException(status_code=404, detail="Brand not found")
    return brand


@router.post("")
async def create_brand(
    data: BrandSave,
    service: BrandHierarchyService = Depends(brand_service),
    user: dict = Depends(get_current_user),
):
    brand = await service.save_brand(data.model_dump())
    return {"success": True, "brand": brand}


@router.put("/{brand_id}")
async def update_brand(
    brand_id: str,
    data: BrandSave,
    service: BrandHierarchyService = Depends(brand_service),
    user: dict = Depends(get_current_user),
):
    brand = await service.save_brand({**data.model_dump(), "id": brand_id})
    return {"success": True, "brand": brand}


@router.delete("/{brand_id}")
async def delete_brand(
    brand_id: str,
    service: BrandHierarchyService = Depends(brand_service),
    user: dict = Depends(get_current_user),
):
    await service.delete_brand(brand_id)
    return {"success": True}
