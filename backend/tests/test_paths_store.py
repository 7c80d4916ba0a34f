"""
Showroom - Path resolver and tree store tests
Run: cd backend && pytest tests/test_paths_store.py -v
"""

import pytest

from services.errors import ValidationError
from services.paths import (
    Collection,
    UserType,
    collection_path,
    get_user_type_or_raise,
    session_path,
    supports_brand_hierarchy,
)
from services.store import MemoryTreeStore, records_from


# ═══════════════════════════════════════════════════════════════
# 1. PATH RESOLVER
# ═══════════════════════════════════════════════════════════════

class TestCollectionPath:
    """Tenant-scoped paths"""

    def test_collection_root(self):
        assert collection_path("electronics", "complaints") == "electronics/complaints"
        assert collection_path(UserType.FURNITURE, Collection.SALES) == "furniture/sales"
        print("✓ Collection roots resolve per tenant")

    def test_record_path(self):
        path = collection_path("furniture", Collection.COMPLAINT_NOTIFICATIONS, "n1")
        assert path == "furniture/complaintNotifications/n1"

    def test_unknown_user_type_rejected(self):
        with pytest.raises(ValidationError) as exc:
            collection_path("garden", "complaints")
        assert exc.value.field == "userType"
        print("✓ Unknown tenant rejected")

    def test_unknown_collection_rejected(self):
        with pytest.raises(ValidationError):
            collection_path("electronics", "invoices")

    def test_brand_hierarchy_electronics_only(self):
        assert collection_path("electronics", "brandHierarchies") == "electronics/brandHierarchies"
        with pytest.raises(ValidationError):
            collection_path("furniture", "brandHierarchies")
        with pytest.raises(ValidationError):
            collection_path("furniture", Collection.DEFAULT_HIERARCHY)
        assert supports_brand_hierarchy("electronics") is True
        assert supports_brand_hierarchy("furniture") is False
        print("✓ Brand hierarchies restricted to electronics")

    def test_key_with_slash_rejected(self):
        with pytest.raises(ValidationError):
            collection_path("electronics", "complaints", "a/b")

    def test_session_path(self):
        assert session_path("abc123") == "sessions/abc123"
        for token in ("", "../electronics/employees/e1", "x/y"):
            with pytest.raises(ValidationError):
                session_path(token)

    def test_get_user_type(self):
        assert get_user_type_or_raise("electronics") is UserType.ELECTRONICS
        assert get_user_type_or_raise(UserType.FURNITURE) is UserType.FURNITURE


# ═══════════════════════════════════════════════════════════════
# 2. MEMORY TREE STORE
# ═══════════════════════════════════════════════════════════════

class TestMemoryTreeStore:
    """The six store primitives"""

    @pytest.mark.asyncio
    async def test_push_and_get(self):
        store = MemoryTreeStore()
        key = await store.push("electronics/customers", {"name": "Asha"})
        assert await store.get(f"electronics/customers/{key}") == {"name": "Asha"}
        snapshot = await store.get("electronics/customers")
        assert list(snapshot) == [key]
        print(f"✓ push generated key {key}")

    @pytest.mark.asyncio
    async def test_get_missing_returns_none(self):
        store = MemoryTreeStore()
        assert await store.get("electronics/customers") is None
        assert await store.get("electronics/customers/nope") is None

    @pytest.mark.asyncio
    async def test_update_merges_and_none_deletes(self):
        store = MemoryTreeStore()
        await store.set("electronics/customers/c1", {"name": "Asha", "city": "Surat"})
        await store.update("electronics/customers/c1", {"city": None, "phone": "9876543210"})
        assert await store.get("electronics/customers/c1") == {"name": "Asha", "phone": "9876543210"}

    @pytest.mark.asyncio
    async def test_values_are_copied(self):
        store = MemoryTreeStore()
        value = {"items": [1]}
        await store.set("electronics/sales/s1", value)
        value["items"].append(2)
        fetched = await store.get("electronics/sales/s1")
        fetched["items"].append(3)
        assert (await store.get("electronics/sales/s1"))["items"] == [1]

    @pytest.mark.asyncio
    async def test_remove_is_idempotent(self):
        store = MemoryTreeStore()
        await store.set("electronics/customers/c1", {"name": "Asha"})
        await store.remove("electronics/customers/c1")
        await store.remove("electronics/customers/c1")
        assert await store.get("electronics/customers/c1") is None

    @pytest.mark.asyncio
    async def test_query_equal_to(self):
        store = MemoryTreeStore()
        await store.set("electronics/complaintNotifications/a", {"userId": "u1", "n": 1})
        await store.set("electronics/complaintNotifications/b", {"userId": "u2", "n": 2})
        await store.set("electronics/complaintNotifications/c", {"userId": "u1", "n": 3})
        result = await store.query("electronics/complaintNotifications", order_by="userId", equal_to="u1")
        assert sorted(result) == ["a", "c"]
        print("✓ query(order_by, equal_to) filters children")

    @pytest.mark.asyncio
    async def test_query_limit_to_last(self):
        store = MemoryTreeStore()
        for index in range(5):
            await store.set(f"electronics/sales/s{index}", {"n": index})
        result = await store.query("electronics/sales", order_by="n", limit=2, limit_to_last=True)
        assert [v["n"] for v in result.values()] == [3, 4]

    def test_records_from_snapshot(self):
        records = records_from({"k1": {"name": "A"}, "k2": {"name": "B"}, "bad": "scalar"})
        assert records == [{"name": "A", "id": "k1"}, {"name": "B", "id": "k2"}]
        assert records_from(None) == []
