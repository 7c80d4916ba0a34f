"""
Showroom - Customer and employee tests
Run: cd backend && pytest tests/test_customers_employees.py -v
"""

import warnings
from pathlib import Path

import pytest

import services.customers
from services.customers import CustomerService, ListingCache
from services.employees import EmployeeService, employee_id_base
from services.errors import DuplicatePhoneError, NotFoundError, ValidationError
from services.query import ListQuery


def customer(**overrides):
    data = {
        "name": "Asha Patel",
        "phone": "9876543210",
        "customerType": "retailer",
        "category": "individual",
        "state": "Gujarat",
    }
    data.update(overrides)
    return data


def employee(**overrides):
    data = {
        "name": "Ravi Kumar",
        "phone": "9876543210",
        "role": "sales",
        "department": "sales",
        "joinedDate": "2024-01-10",
    }
    data.update(overrides)
    return data


# ═══════════════════════════════════════════════════════════════
# 1. CUSTOMERS
# ═══════════════════════════════════════════════════════════════

class TestCustomerDedupe:
    """Phone numbers are unique within a tenant"""

    @pytest.mark.asyncio
    async def test_duplicate_phone(self, store):
        service = CustomerService(store, "electronics")
        first = await service.create(customer())

        with pytest.raises(DuplicatePhoneError) as exc:
            await service.create(customer(name="Other Person", phone="98765 43210"))
        assert exc.value.existing_id == first["id"]
        assert exc.value.field == "phone"

        updated = await service.update(first["id"], {"phone": "9876543210"})
        assert updated["phone"] == "9876543210"
        print("✓ Duplicate phone rejected, own phone accepted on update")

    @pytest.mark.asyncio
    async def test_same_phone_in_other_tenant(self, store):
        await CustomerService(store, "electronics").create(customer())
        created = await CustomerService(store, "furniture").create(customer())
        assert created["phone"] == "9876543210"

    @pytest.mark.asyncio
    async def test_update_to_taken_phone(self, store):
        service = CustomerService(store, "electronics")
        await service.create(customer())
        second = await service.create(customer(name="Bharat", phone="9123456789"))
        with pytest.raises(DuplicatePhoneError):
            await service.update(second["id"], {"phone": "9876543210"})
        assert await service.is_phone_duplicate("9876543210", exclude_id=second["id"]) is True

    @pytest.mark.asyncio
    async def test_phone_stored_as_digits(self, store):
        service = CustomerService(store, "electronics")
        created = await service.create(customer(phone="98765-43210"))
        assert created["phone"] == "9876543210"


class TestCustomerReads:

    @pytest.mark.asyncio
    async def test_search_suggestions_stats(self, store):
        service = CustomerService(store, "electronics")
        await service.create(customer(name="Mehta Traders", phone="9000000011", customerType="wholesaler", category="firm"))
        await service.create(customer(name="Amit Mehta", phone="9000000012"))
        await service.create(customer(name="Sunrise School", phone="9000000013", category="school"))

        found = await service.search("mehta")
        assert [c["name"] for c in found] == ["Mehta Traders", "Amit Mehta"]

        suggestions = await service.suggestions("mehta", limit=1)
        assert suggestions[0]["label"] == "Mehta Traders (9000000011)"

        stats = await service.stats()
        assert stats == {"total": 3, "wholesalers": 1, "retailers": 2, "individuals": 1, "firms": 1, "schools": 1}

        page = await service.list(ListQuery(filters={"category": "school"}))
        assert [c["name"] for c in page["customers"]] == ["Sunrise School"]

    @pytest.mark.asyncio
    async def test_listing_cache_invalidated_on_write(self, store):
        cache = ListingCache(ttl_seconds=300)
        service = CustomerService(store, "electronics", cache=cache)
        await service.create(customer())
        assert (await service.list())["total"] == 1

        # a write through another path is not seen until the entry expires
        await store.push("electronics/customers", customer(name="Direct", phone="9000000099"))
        assert (await service.list())["total"] == 1

        await service.create(customer(name="Bharat", phone="9123456789"))
        assert (await service.list())["total"] == 3
        print("✓ Cached listing dropped on write")

    @pytest.mark.asyncio
    async def test_cache_expiry(self, store):
        cache = ListingCache(ttl_seconds=0)
        service = CustomerService(store, "electronics", cache=cache)
        await service.create(customer())
        await service.list()
        await store.push("electronics/customers", customer(name="Direct", phone="9000000099"))
        assert (await service.list())["total"] == 2

    @pytest.mark.asyncio
    async def test_delete_missing(self, store):
        with pytest.raises(NotFoundError):
            await CustomerService(store, "electronics").delete("missing")

    def test_module_compiles_without_warnings(self):
        source_file = services.customers.__file__
        with warnings.catch_warnings():
            warnings.simplefilter("error")
            compile(Path(source_file).read_text(encoding="utf-8"), source_file, "exec")


# ═══════════════════════════════════════════════════════════════
# 2. EMPLOYEES
# ═══════════════════════════════════════════════════════════════

class TestEmployees:

    def test_employee_id_base(self):
        assert employee_id_base("Ravi Kumar", "sales") == "SALRK"
        assert employee_id_base("Meera", None) == "EMPM"

    @pytest.mark.asyncio
    async def test_generated_ids(self, store):
        service = EmployeeService(store, "electronics")
        first = await service.create(employee())
        second = await service.create(employee(name="Rohit Kapoor", phone="9123456789"))
        assert first["employeeId"] == "SALRK001"
        assert second["employeeId"] == "SALRK002"
        assert first["isActive"] is True
        print(f"✓ Employee ids: {first['employeeId']}, {second['employeeId']}")

    @pytest.mark.asyncio
    async def test_unique_employee_id_and_email(self, store):
        service = EmployeeService(store, "electronics")
        await service.create(employee(employeeId="EMP100", email="Ravi@Shop.in"))
        with pytest.raises(ValidationError):
            await service.create(employee(name="Other", employeeId="emp100"))
        with pytest.raises(ValidationError):
            await service.create(employee(name="Other", email="ravi@shop.in"))

    @pytest.mark.asyncio
    async def test_lookups(self, store):
        service = EmployeeService(store, "electronics")
        created = await service.create(employee(email="ravi@shop.in", userId="user-ravi"))
        assert (await service.get_by_employee_id("salrk001"))["id"] == created["id"]
        assert (await service.get_by_email("RAVI@shop.in"))["id"] == created["id"]
        assert (await service.get_by_user_id("user-ravi"))["id"] == created["id"]
        assert [e["id"] for e in await service.get_by_role("sales")] == [created["id"]]

    @pytest.mark.asyncio
    async def test_stats_and_suggestions(self, store):
        service = EmployeeService(store, "electronics")
        await service.create(employee())
        inactive = await service.create(employee(name="Rohit Kapoor", role="technician", department="service", isActive=False))
        stats = await service.stats()
        assert stats["total"] == 2
        assert stats["inactive"] == 1
        assert stats["byRole"] == {"sales": 1, "technician": 1}
        suggestions = await service.suggestions("r")
        assert inactive["id"] not in [s["id"] for s in suggestions]

    @pytest.mark.asyncio
    async def test_update_conflicts(self, store):
        service = EmployeeService(store, "electronics")
        first = await service.create(employee(email="ravi@shop.in"))
        second = await service.create(employee(name="Rohit Kapoor", email="rohit@shop.in"))
        with pytest.raises(ValidationError):
            await service.update(second["id"], {"email": "ravi@shop.in"})
        updated = await service.update(first["id"], {"email": "ravi@shop.in", "salary": 25000})
        assert updated["salary"] == 25000
        with pytest.raises(NotFoundError):
            await service.update("missing", {"salary": 1})
