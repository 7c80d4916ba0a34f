r"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  Customers                                                                   ║
║                                                                              ║
║  RULES:                                                                      ║
║  - phone: 10 digits, ^[6-9]\d{9}$, unique within the tenant                  ║
║  - uniqueness is checked by scanning the whole collection right before       ║
║    the write (no storage constraint, racy under concurrent creators)         ║
║  - listing results are cached for CUSTOMER_CACHE_TTL_SECONDS, and the        ║
║    tenant's cache is dropped on every write                                  ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

import logging
import time
from typing import Any, Dict, List, Optional, Tuple

import config
from config import now_iso
from services.errors import DuplicatePhoneError, NotFoundError
from services.paths import Collection, collection_path, get_user_type_or_raise
from services.query import FullScanRecordQuery, ListQuery, QueryShape, matches_search
from services.store import TreeStore, records_from
from services.validation import CustomerCategory, CustomerType, digits_only, validate_customer_data

logger = logging.getLogger("customers")

CUSTOMER_SEARCH_FIELDS = ("name", "phone", "email", "address", "gstNumber")
CUSTOMER_SHAPE = QueryShape(search_fields=CUSTOMER_SEARCH_FIELDS)
TRANSIENT_FIELDS = ("id", "internalId")


class ListingCache:
    """
    Time-boxed cache of customer listings, shared by all requests.
    Keyed by tenant + listing options.
    """

    def __init__(self, ttl_seconds: Optional[int] = None):
        self.ttl_seconds = ttl_seconds if ttl_seconds is not None else config.CUSTOMER_CACHE_TTL_SECONDS
        self._entries: Dict[Tuple, Tuple[float, Any]] = {}

    @staticmethod
    def key_for(user_type: str, query: ListQuery) -> Tuple:
        return (
            user_type,
            query.search or "",
            tuple(sorted((k, str(v)) for k, v in query.filters.items())),
            query.sort_by,
            query.sort_order,
            query.limit,
            query.offset,
        )

    def get(self, key: Tuple) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        stored_at, value = entry
        if time.monotonic() - stored_at >= self.ttl_seconds:
            del self._entries[key]
            return None
        return value

    def put(self, key: Tuple, value: Any) -> None:
        self._entries[key] = (time.monotonic(), value)

    def clear(self, user_type: Optional[str] = None) -> None:
        if user_type is None:
            self._entries.clear()
            return
        for key in [k for k in self._entries if k[0] == user_type]:
            del self._entries[key]


class CustomerService:
    """Customers of one tenant"""

    def __init__(self, store: TreeStore, user_type: str, cache: Optional[ListingCache] = None):
        self.store = store
        self.user_type = get_user_type_or_raise(user_type)
        self.cache = cache
        self.query_engine = FullScanRecordQuery(store, self._path(), CUSTOMER_SHAPE)

    def _path(self, customer_id: Optional[str] = None) -> str:
        return collection_path(self.user_type, Collection.CUSTOMERS, customer_id)

    def _invalidate(self):
        if self.cache:
            self.cache.clear(self.user_type.value)

    async def find_by_phone(self, phone: str, exclude_id: Optional[str] = None) -> Optional[Dict[str, Any]]:
        """Customer whose phone has the same digits, other than exclude_id"""
        wanted = digits_only(phone)
        if not wanted:
            return None
        for customer in await self.query_engine.fetch_all():
            if customer["id"] == exclude_id:
                continue
            if digits_only(customer.get("phone")) == wanted:
                return customer
        return None

    async def is_phone_duplicate(self, phone: str, exclude_id: Optional[str] = None) -> bool:
        return await self.find_by_phone(phone, exclude_id) is not None

    # ==================== READ ====================

    async def list(self, query: Optional[ListQuery] = None) -> Dict[str, Any]:
        """Filters: customerType, category. Default order: name asc."""
        query = query or ListQuery(sort_by="name", sort_order="asc")
        if not query.sort_by:
            query.sort_by = "name"

        key = ListingCache.key_for(self.user_type.value, query)
        if self.cache:
            cached = self.cache.get(key)
            if cached is not None:
                return cached

        result = (await self.query_engine.run(query)).to_dict("customers")
        if self.cache:
            self.cache.put(key, result)
        return result

    async def get_by_id(self, customer_id: str) -> Optional[Dict[str, Any]]:
        customer = await self.store.get(self._path(customer_id))
        if not customer:
            return None
        return {**customer, "id": customer_id}

    async def search(self, term: Optional[str], limit: Optional[int] = None) -> List[Dict[str, Any]]:
        """Name-prefix matches first"""
        if not term or not term.strip():
            return []
        needle = term.strip().lower()
        found = [c for c in await self.query_engine.fetch_all()
                 if matches_search(c, needle, CUSTOMER_SEARCH_FIELDS)]
        found.sort(key=lambda c: 0 if (c.get("name") or "").lower().startswith(needle) else 1)
        return found[:limit] if limit else found

    async def suggestions(self, term: Optional[str], limit: int = 5) -> List[Dict[str, Any]]:
        return [
            {
                "id": c["id"],
                "label": f"{c.get('name')} ({c.get('phone')})",
                "value": c["id"],
                "name": c.get("name"),
                "phone": c.get("phone"),
                "address": c.get("address"),
                "customerType": c.get("customerType"),
                "category": c.get("category"),
                "state": c.get("state"),
                "gstNumber": c.get("gstNumber") or "",
            }
            for c in await self.search(term, limit)
        ]

    async def stats(self) -> Dict[str, int]:
        customers = await self.query_engine.fetch_all()

        def count(field, value):
            return len([c for c in customers if c.get(field) == value.value])

        return {
            "total": len(customers),
            "wholesalers": count("customerType", CustomerType.WHOLESALER),
            "retailers": count("customerType", CustomerType.RETAILER),
            "individuals": count("category", CustomerCategory.INDIVIDUAL),
            "firms": count("category", CustomerCategory.FIRM),
            "schools": count("category", CustomerCategory.SCHOOL),
        }

    # ==================== WRITE ====================

    async def create(self, data: Dict[str, Any]) -> Dict[str, Any]:
        validate_customer_data(data, is_create=True)

        existing = await self.find_by_phone(data["phone"])
        if existing:
            raise DuplicatePhoneError(data["phone"], existing["id"])

        now = now_iso()
        record = {k: v for k, v in data.items() if k not in TRANSIENT_FIELDS}
        record["phone"] = digits_only(record["phone"])
        record.update({"createdAt": now, "updatedAt": now})

        customer_id = await self.store.push(self._path(), record)
        self._invalidate()
        logger.info(f"[CUSTOMER] Created {record.get('name')} id={customer_id}")
        return {**record, "id": customer_id}

    async def update(self, customer_id: str, updates: Dict[str, Any]) -> Dict[str, Any]:
        if not await self.store.get(self._path(customer_id)):
            raise NotFoundError("Customer", customer_id)

        validate_customer_data(updates, is_create=False)

        patch = {k: v for k, v in updates.items() if k not in TRANSIENT_FIELDS}
        if patch.get("phone"):
            existing = await self.find_by_phone(patch["phone"], exclude_id=customer_id)
            if existing:
                raise DuplicatePhoneError(patch["phone"], existing["id"])
            patch["phone"] = digits_only(patch["phone"])

        patch["updatedAt"] = now_iso()
        await self.store.update(self._path(customer_id), patch)
        self._invalidate()
        logger.info(f"[CUSTOMER] Updated {customer_id}")
        return await self.get_by_id(customer_id)

    async def delete(self, customer_id: str) -> None:
        if not await self.store.get(self._path(customer_id)):
            raise NotFoundError("Customer", customer_id)
        await self.store.remove(self._path(customer_id))
        self._invalidate()
        logger.info(f"[CUSTOMER] Deleted {customer_id}")
