"""
Showroom - Brand hierarchy resolver tests
Run: cd backend && pytest tests/test_brand_hierarchy.py -v
"""

import pytest

from services.brand_hierarchy import (
    BrandHierarchyService,
    EscalationOption,
    extract_potential_brand_name,
    is_last_level,
    next_level,
)
from services.errors import NotFoundError, ValidationError

from tests.conftest import SAMSUNG

HIERARCHY = [
    {"name": "L1", "contact": "9000000001"},
    {"name": "L2", "contact": "9000000002"},
    {"name": "L3", "contact": "9000000003"},
]


# ═══════════════════════════════════════════════════════════════
# 1. PURE HELPERS
# ═══════════════════════════════════════════════════════════════

class TestLevelHelpers:
    """next_level / is_last_level over an N-level chain"""

    def test_next_level_annotates_position(self):
        assert next_level(HIERARCHY, "9000000001") == {"name": "L2", "contact": "9000000002", "level": 2}
        assert next_level(HIERARCHY, "9000000002") == {"name": "L3", "contact": "9000000003", "level": 3}
        assert next_level(HIERARCHY, "9000000003") is None

    def test_only_last_index_is_last_level(self):
        flags = [is_last_level(HIERARCHY, level["contact"]) for level in HIERARCHY]
        assert flags == [False, False, True]
        print("✓ Only the last contact is at last level")

    def test_unknown_contact(self):
        assert next_level(HIERARCHY, "9999999999") is None
        assert is_last_level(HIERARCHY, "9999999999") is False
        assert is_last_level([], "9000000001") is False

    def test_pure_and_repeatable(self):
        first = next_level(HIERARCHY, "9000000001")
        second = next_level(HIERARCHY, "9000000001")
        assert first == second
        assert HIERARCHY[1] == {"name": "L2", "contact": "9000000002"}

    def test_potential_brand_name(self):
        assert extract_potential_brand_name("Samsung TV not turning on") == "Samsung TV not"
        assert extract_potential_brand_name("LG fridge") == "LG fridge"
        assert extract_potential_brand_name("   ") == ""
        long_title = "Supercalifragilistic Expialidocious Refrigerator Issue"
        assert extract_potential_brand_name(long_title) == "Supercalifragilistic"


# ═══════════════════════════════════════════════════════════════
# 2. SERVICE
# ═══════════════════════════════════════════════════════════════

class TestBrandService:
    """Brand records for the electronics tenant"""

    @pytest.mark.asyncio
    async def test_detection_and_levels(self, store):
        service = BrandHierarchyService(store, "electronics")
        await service.save_brand(SAMSUNG)

        brand = await service.detect_brand_from_title("Samsung TV not turning on")
        assert brand["brandName"] == "Samsung"
        assert await service.is_at_last_level("Samsung", "9000000002") is True
        assert await service.get_next_level("Samsung", "9000000002") is None
        assert await service.get_next_level("samsung", "9000000001") == {
            "name": "L2", "contact": "9000000002", "level": 2,
        }
        assert await service.get_first_level("Samsung") == {"name": "L1", "contact": "9000000001", "level": 1}
        print("✓ Samsung detected, L2 is the last level")

    @pytest.mark.asyncio
    async def test_detection_uses_storage_order(self, store):
        service = BrandHierarchyService(store, "electronics")
        await service.save_brand({"brandName": "LG", "hierarchy": []})
        await service.save_brand({"brandName": "Samsung", "hierarchy": []})
        brand = await service.detect_brand_from_title("Samsung and LG remote mixup")
        assert brand["brandName"] == "LG"
        assert [b["brandName"] for b in await service.list_brands()] == ["LG", "Samsung"]

    @pytest.mark.asyncio
    async def test_duplicate_name_rejected(self, store):
        service = BrandHierarchyService(store, "electronics")
        created = await service.save_brand(SAMSUNG)
        with pytest.raises(ValidationError):
            await service.save_brand({"brandName": " samsung ", "hierarchy": []})
        renamed = await service.save_brand({**SAMSUNG, "id": created["id"], "brandName": "Samsung India"})
        assert renamed["brandName"] == "Samsung India"
        assert renamed["createdAt"] == created["createdAt"]

    @pytest.mark.asyncio
    async def test_invalid_level_rejected(self, store):
        service = BrandHierarchyService(store, "electronics")
        with pytest.raises(ValidationError):
            await service.save_brand({"brandName": "Sony", "hierarchy": [{"name": "L1", "contact": "123"}]})
        assert await service.list_brands() == []

    @pytest.mark.asyncio
    async def test_update_and_delete_missing_brand(self, store):
        service = BrandHierarchyService(store, "electronics")
        with pytest.raises(NotFoundError):
            await service.save_brand({**SAMSUNG, "id": "missing"})
        with pytest.raises(NotFoundError):
            await service.delete_brand("missing")

    @pytest.mark.asyncio
    async def test_furniture_tenant_has_no_brands(self, store):
        service = BrandHierarchyService(store, "furniture")
        assert await service.list_brands() == []
        assert await service.detect_brand_from_title("Samsung TV") is None
        assert await service.get_default_hierarchy() is None
        assert not (await service.resolve_escalation("9000000001", "Samsung")).available
        with pytest.raises(ValidationError):
            await service.save_brand(SAMSUNG)
        print("✓ Furniture tenant reads empty, writes rejected")


class TestResolveEscalation:
    """Next level, then the default hierarchy once the chain is exhausted"""

    @pytest.mark.asyncio
    async def test_next_level_option(self, store):
        service = BrandHierarchyService(store, "electronics")
        brand = await service.save_brand(SAMSUNG)
        option = await service.resolve_escalation("9000000001", title="Samsung TV not turning on")
        assert option.action == EscalationOption.NEXT_LEVEL
        assert option.to_dict() == {
            "brandId": brand["id"],
            "brandName": "Samsung",
            "action": "next_level",
            "target": {"name": "L2", "contact": "9000000002", "level": 2},
            "atLastLevel": False,
        }

    @pytest.mark.asyncio
    async def test_default_hierarchy_after_last_level(self, store):
        service = BrandHierarchyService(store, "electronics")
        await service.save_brand(SAMSUNG)

        option = await service.resolve_escalation("9000000002", brand_name="Samsung")
        assert option.at_last_level is True
        assert option.available is False

        await service.save_default_hierarchy({"name": "Head Office", "contact": "9111111111"})
        option = await service.resolve_escalation("9000000002", brand_name="Samsung")
        assert option.action == EscalationOption.DEFAULT
        assert option.target["contact"] == "9111111111"
        print("✓ Default hierarchy offered after last level")

    @pytest.mark.asyncio
    async def test_default_not_offered_when_already_current(self, store):
        service = BrandHierarchyService(store, "electronics")
        await service.save_brand({"brandName": "Sony", "hierarchy": [{"name": "Head", "contact": "9111111111"}]})
        await service.save_default_hierarchy({"name": "Head Office", "contact": "9111111111"})
        option = await service.resolve_escalation("9111111111", brand_name="Sony")
        assert option.at_last_level is True
        assert option.available is False

    @pytest.mark.asyncio
    async def test_unknown_contact_or_brand(self, store):
        service = BrandHierarchyService(store, "electronics")
        await service.save_brand(SAMSUNG)
        await service.save_default_hierarchy({"name": "Head Office", "contact": "9111111111"})
        option = await service.resolve_escalation("9999999999", brand_name="Samsung")
        assert option.available is False
        assert option.at_last_level is False
        option = await service.resolve_escalation("9000000001", title="Whirlpool washer leaking")
        assert option.to_dict()["brandName"] is None

    @pytest.mark.asyncio
    async def test_delete_default_hierarchy(self, store):
        service = BrandHierarchyService(store, "electronics")
        await service.save_default_hierarchy({"name": "Head Office", "contact": "9111111111"})
        await service.delete_default_hierarchy()
        assert await service.get_default_hierarchy() is None
