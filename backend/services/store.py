"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  Tree Store - hierarchical document storage                                  ║
║                                                                              ║
║  Records are addressed by slash paths:  {tenant}/{collection}[/{key}]        ║
║  Services only use six primitives:                                           ║
║    push / set / update / get / query / remove                                ║
║  No transactions, no unique constraints, no listeners.                       ║
║                                                                              ║
║  MongoTreeStore   -> motor, one Mongo collection per parent path             ║
║  MemoryTreeStore  -> nested dicts, insertion ordered (dev / tests)           ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

import copy
import logging
import uuid
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from pymongo.errors import PyMongoError

from services.errors import StoreError

logger = logging.getLogger("store")

_MISSING = object()


def new_key() -> str:
    """Generated storage key"""
    return uuid.uuid4().hex


def split_path(path: str) -> List[str]:
    segments = [s for s in (path or "").split("/") if s]
    if not segments:
        raise StoreError(f"Invalid store path: '{path}'")
    return segments


def records_from(snapshot: Optional[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """
    Turn a collection snapshot {key: value} into a list of records,
    each carrying its storage key as "id". Storage order is preserved.
    """
    if not snapshot:
        return []
    records = []
    for key, value in snapshot.items():
        if isinstance(value, dict):
            records.append({**value, "id": key})
    return records


def _sort_key(value: Any):
    # nulls first, then booleans, numbers, strings
    if value is None:
        return (0, 0)
    if isinstance(value, bool):
        return (1, value)
    if isinstance(value, (int, float)):
        return (2, value)
    if isinstance(value, str):
        return (3, value)
    return (4, str(value))


def apply_range(
    items: List[tuple],
    order_by: Optional[str],
    equal_to: Any = _MISSING,
    start_at: Any = None,
    end_at: Any = None,
    limit: Optional[int] = None,
    limit_to_last: bool = False,
) -> Dict[str, Any]:
    """Ordering / range semantics shared by the store implementations"""
    if order_by:
        def child(item):
            value = item[1]
            return value.get(order_by) if isinstance(value, dict) else None

        if equal_to is not _MISSING:
            items = [i for i in items if child(i) == equal_to]
        if start_at is not None:
            items = [i for i in items if _sort_key(child(i)) >= _sort_key(start_at)]
        if end_at is not None:
            items = [i for i in items if _sort_key(child(i)) <= _sort_key(end_at)]
        items = sorted(items, key=lambda i: _sort_key(child(i)))

    if limit is not None:
        items = items[-limit:] if limit_to_last else items[:limit]

    return dict(items)


class TreeStore(ABC):
    """The six primitives every service is written against"""

    @abstractmethod
    async def push(self, path: str, value: Dict[str, Any]) -> str:
        """Create a child under path with a generated key, return the key"""

    @abstractmethod
    async def set(self, path: str, value: Any) -> None:
        """Replace the node at path"""

    @abstractmethod
    async def update(self, path: str, patch: Dict[str, Any]) -> None:
        """Merge patch into the node at path (None values delete the field)"""

    @abstractmethod
    async def get(self, path: str) -> Any:
        """Node at path, children dict for a collection, None when absent"""

    @abstractmethod
    async def query(
        self,
        path: str,
        order_by: Optional[str] = None,
        equal_to: Any = _MISSING,
        start_at: Any = None,
        end_at: Any = None,
        limit: Optional[int] = None,
        limit_to_last: bool = False,
    ) -> Dict[str, Any]:
        """Children of path, ordered by a child field, optionally ranged"""

    @abstractmethod
    async def remove(self, path: str) -> None:
        """Delete the node at path (no-op when absent)"""


# ════════════════════════════════════════════════════════════════════════════
# IN-MEMORY
# ════════════════════════════════════════════════════════════════════════════

class MemoryTreeStore(TreeStore):
    """Nested dict tree. Values are deep-copied in and out."""

    def __init__(self, initial: Optional[Dict[str, Any]] = None):
        self._root: Dict[str, Any] = copy.deepcopy(initial) if initial else {}

    def _walk(self, segments: List[str], create: bool = False):
        node = self._root
        for segment in segments:
            child = node.get(segment) if isinstance(node, dict) else None
            if not isinstance(child, dict):
                if not create:
                    return None
                child = {}
                node[segment] = child
            node = child
        return node

    async def push(self, path: str, value: Dict[str, Any]) -> str:
        parent = self._walk(split_path(path), create=True)
        key = new_key()
        parent[key] = copy.deepcopy(value)
        return key

    async def set(self, path: str, value: Any) -> None:
        segments = split_path(path)
        if value is None:
            await self.remove(path)
            return
        parent = self._walk(segments[:-1], create=True)
        parent[segments[-1]] = copy.deepcopy(value)

    async def update(self, path: str, patch: Dict[str, Any]) -> None:
        node = self._walk(split_path(path), create=True)
        for field, value in patch.items():
            if value is None:
                node.pop(field, None)
            else:
                node[field] = copy.deepcopy(value)

    async def get(self, path: str) -> Any:
        segments = split_path(path)
        parent = self._walk(segments[:-1])
        if parent is None or segments[-1] not in parent:
            return None
        value = parent[segments[-1]]
        if value == {}:
            return None
        return copy.deepcopy(value)

    async def query(self, path, order_by=None, equal_to=_MISSING, start_at=None,
                    end_at=None, limit=None, limit_to_last=False):
        snapshot = await self.get(path)
        if not isinstance(snapshot, dict):
            return {}
        return apply_range(list(snapshot.items()), order_by, equal_to,
                           start_at, end_at, limit, limit_to_last)

    async def remove(self, path: str) -> None:
        segments = split_path(path)
        parent = self._walk(segments[:-1])
        if parent is not None:
            parent.pop(segments[-1], None)


# ════════════════════════════════════════════════════════════════════════════
# MONGODB (motor)
# ════════════════════════════════════════════════════════════════════════════

class MongoTreeStore(TreeStore):
    """
    Path mapping:
        electronics/complaints/k1  -> collection "electronics.complaints", doc id "k1"
        electronics/defaultHierarchy -> collection "electronics", doc id "defaultHierarchy"
        sessions/abc               -> collection "sessions", doc id "abc"

    Documents are stored as {"id": key, "value": {...}}; the Mongo _id is
    never returned and gives the insertion order.
    """

    def __init__(self, db):
        self.db = db

    @staticmethod
    def _locate(segments: List[str]):
        if len(segments) == 1:
            return segments[0], None
        return ".".join(segments[:-1]), segments[-1]

    async def push(self, path: str, value: Dict[str, Any]) -> str:
        collection = ".".join(split_path(path))
        key = new_key()
        try:
            await self.db[collection].insert_one({"id": key, "value": value})
        except PyMongoError as e:
            raise StoreError(f"push {path} failed: {e}") from e
        return key

    async def set(self, path: str, value: Any) -> None:
        collection, doc_id = self._locate(split_path(path))
        if doc_id is None:
            raise StoreError(f"set {path} failed: cannot replace a collection root")
        if value is None:
            await self.remove(path)
            return
        try:
            await self.db[collection].replace_one(
                {"id": doc_id}, {"id": doc_id, "value": value}, upsert=True
            )
        except PyMongoError as e:
            raise StoreError(f"set {path} failed: {e}") from e

    async def update(self, path: str, patch: Dict[str, Any]) -> None:
        collection, doc_id = self._locate(split_path(path))
        if doc_id is None:
            raise StoreError(f"update {path} failed: cannot merge into a collection root")

        to_set = {f"value.{k}": v for k, v in patch.items() if v is not None}
        to_unset = {f"value.{k}": "" for k, v in patch.items() if v is None}
        operation = {}
        if to_set:
            operation["$set"] = to_set
        if to_unset:
            operation["$unset"] = to_unset
        if not operation:
            return

        try:
            await self.db[collection].update_one({"id": doc_id}, operation, upsert=True)
        except PyMongoError as e:
            raise StoreError(f"update {path} failed: {e}") from e

    async def get(self, path: str) -> Any:
        segments = split_path(path)
        collection, doc_id = self._locate(segments)
        try:
            if doc_id is not None:
                doc = await self.db[collection].find_one({"id": doc_id}, {"_id": 0})
                if doc is not None:
                    return doc.get("value")
            children = await self._children(".".join(segments), None, [("_id", 1)], None)
        except PyMongoError as e:
            raise StoreError(f"get {path} failed: {e}") from e
        return children or None

    async def _children(self, collection, mongo_filter, sort, limit) -> Dict[str, Any]:
        cursor = self.db[collection].find(mongo_filter or {}, {"_id": 0}).sort(sort)
        if limit:
            cursor = cursor.limit(limit)
        docs = await cursor.to_list(None)
        return {d["id"]: d.get("value") for d in docs}

    async def query(self, path, order_by=None, equal_to=_MISSING, start_at=None,
                    end_at=None, limit=None, limit_to_last=False):
        collection = ".".join(split_path(path))
        mongo_filter: Dict[str, Any] = {}
        sort = [("_id", -1 if limit_to_last else 1)]

        if order_by:
            field = f"value.{order_by}"
            if equal_to is not _MISSING:
                mongo_filter[field] = equal_to
            bounds = {}
            if start_at is not None:
                bounds["$gte"] = start_at
            if end_at is not None:
                bounds["$lte"] = end_at
            if bounds:
                mongo_filter[field] = {**bounds, **({"$eq": equal_to} if equal_to is not _MISSING else {})}
            sort = [(field, -1 if limit_to_last else 1), ("_id", 1)]

        try:
            children = await self._children(collection, mongo_filter, sort, limit)
        except PyMongoError as e:
            raise StoreError(f"query {path} failed: {e}") from e

        if limit_to_last:
            children = dict(reversed(list(children.items())))
        return children

    async def remove(self, path: str) -> None:
        segments = split_path(path)
        collection, doc_id = self._locate(segments)
        try:
            if doc_id is not None:
                result = await self.db[collection].delete_one({"id": doc_id})
                if result.deleted_count:
                    return
            await self.db.drop_collection(".".join(segments))
        except PyMongoError as e:
            raise StoreError(f"remove {path} failed: {e}") from e
