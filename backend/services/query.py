"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  List queries - filter / search / sort / paginate                            ║
║                                                                              ║
║  The store has no secondary indexes, so listing is a full fetch followed     ║
║  by in-process filtering. Services only see RecordQuery.run(ListQuery);      ║
║  a store with native querying can provide another RecordQuery.               ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

import math
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Iterable, List, Optional

from services.dates import to_epoch_millis
from services.store import TreeStore, records_from

# Filter values meaning "no filter"
NO_FILTER = (None, "", "all")


class ListQuery:
    """Filters, free-text search, sort and optional limit/offset"""

    def __init__(
        self,
        search: Optional[str] = None,
        filters: Optional[Dict[str, Any]] = None,
        sort_by: Optional[str] = None,
        sort_order: str = "desc",
        limit: Optional[int] = None,
        offset: int = 0,
    ):
        self.search = search
        self.filters = filters or {}
        self.sort_by = sort_by
        self.sort_order = sort_order
        self.limit = limit
        self.offset = offset or 0


class Page:
    """One page of results"""

    def __init__(self, items: List[Dict[str, Any]], total: int, query: ListQuery):
        self.items = items
        self.total = total
        if query.limit:
            self.has_more = query.offset + query.limit < total
            self.current_page = query.offset // query.limit + 1
            self.total_pages = math.ceil(total / query.limit)
        else:
            self.has_more = False
            self.current_page = 1
            self.total_pages = 1

    def to_dict(self, items_key: str = "items") -> Dict[str, Any]:
        return {
            items_key: self.items,
            "total": self.total,
            "hasMore": self.has_more,
            "currentPage": self.current_page,
            "totalPages": self.total_pages,
        }


class QueryShape:
    """
    How a collection is searched and sorted.

    search_fields: fields scanned by free-text search
    date_fields: fields compared as epoch millis when sorting
    matchers: filter key -> predicate(record, value), for filters that do not
              map to a single field
    """

    def __init__(
        self,
        search_fields: Iterable[str],
        date_fields: Iterable[str] = ("createdAt", "updatedAt"),
        matchers: Optional[Dict[str, Callable[[Dict[str, Any], Any], bool]]] = None,
    ):
        self.search_fields = tuple(search_fields)
        self.date_fields = set(date_fields)
        self.matchers = matchers or {}


def matches_search(record: Dict[str, Any], term: str, fields: Iterable[str]) -> bool:
    term = term.strip().lower()
    if not term:
        return True
    for field in fields:
        value = record.get(field)
        if value is not None and term in str(value).lower():
            return True
    return False


def _sort_value(record: Dict[str, Any], field: str, date_fields) -> tuple:
    value = record.get(field)
    if field in date_fields:
        return (0, to_epoch_millis(value))
    if value is None:
        return (0, 0)
    if isinstance(value, str):
        return (2, value.lower())
    if isinstance(value, (int, float)):
        return (1, value)
    return (3, str(value).lower())


def apply_list_query(records: List[Dict[str, Any]], query: ListQuery, shape: QueryShape) -> Page:
    """Filter, search, sort and paginate an already-fetched record list"""
    result = records

    for key, value in query.filters.items():
        if value in NO_FILTER:
            continue
        matcher = shape.matchers.get(key)
        if matcher:
            result = [r for r in result if matcher(r, value)]
        else:
            result = [r for r in result if r.get(key) == value]

    if query.search:
        result = [r for r in result if matches_search(r, query.search, shape.search_fields)]

    if query.sort_by:
        result = sorted(
            result,
            key=lambda r: _sort_value(r, query.sort_by, shape.date_fields),
            reverse=(query.sort_order == "desc"),
        )

    total = len(result)
    if query.limit:
        result = result[query.offset:query.offset + query.limit]

    return Page(result, total, query)


class RecordQuery(ABC):
    """Runs a ListQuery against one collection"""

    @abstractmethod
    async def run(self, query: ListQuery) -> Page:
        ...

    @abstractmethod
    async def fetch_all(self) -> List[Dict[str, Any]]:
        ...


class FullScanRecordQuery(RecordQuery):
    """Fetch the whole collection, then filter in process"""

    def __init__(self, store: TreeStore, path: str, shape: QueryShape,
                 decorate: Optional[Callable[[Dict[str, Any]], Dict[str, Any]]] = None):
        self.store = store
        self.path = path
        self.shape = shape
        self.decorate = decorate

    async def fetch_all(self) -> List[Dict[str, Any]]:
        records = records_from(await self.store.get(self.path))
        if self.decorate:
            records = [self.decorate(r) for r in records]
        return records

    async def run(self, query: ListQuery) -> Page:
        return apply_list_query(await self.fetch_all(), query, self.shape)
