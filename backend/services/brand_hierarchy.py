"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  Brand Hierarchy Resolver (electronics tenant only)                          ║
║                                                                              ║
║  A brand carries an ordered escalation chain  hierarchy[{name, contact}]     ║
║  index 0 = first line, last index = last level                               ║
║                                                                              ║
║  ESCALATION:                                                                 ║
║  - current contact found at i < last  -> next level = hierarchy[i+1],        ║
║                                          annotated level = i + 2             ║
║  - found at last index                -> no next level, at last level        ║
║  - not found                          -> no next level, NOT at last level    ║
║  - at last level -> tenant default hierarchy, unless it is the current       ║
║                     contact already                                          ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

import logging
from typing import Any, Dict, List, Optional

from config import now_iso
from services.errors import NotFoundError, ValidationError
from services.paths import Collection, collection_path, get_user_type_or_raise, supports_brand_hierarchy
from services.store import TreeStore, records_from
from services.validation import validate_hierarchy_level

logger = logging.getLogger("brand_hierarchy")

BRAND_NAME_CANDIDATE_MAX_LENGTH = 30


# ════════════════════════════════════════════════════════════════════════════
# PURE ESCALATION HELPERS
# ════════════════════════════════════════════════════════════════════════════

def find_level_index(hierarchy: List[Dict[str, Any]], contact: Optional[str]) -> int:
    """Index of the level whose contact equals contact exactly, -1 if absent"""
    if not contact:
        return -1
    for index, level in enumerate(hierarchy or []):
        if level.get("contact") == contact:
            return index
    return -1


def next_level(hierarchy: List[Dict[str, Any]], contact: Optional[str]) -> Optional[Dict[str, Any]]:
    index = find_level_index(hierarchy, contact)
    if index == -1 or index == len(hierarchy) - 1:
        return None
    return {**hierarchy[index + 1], "level": index + 2}


def is_last_level(hierarchy: List[Dict[str, Any]], contact: Optional[str]) -> bool:
    if not hierarchy:
        return False
    index = find_level_index(hierarchy, contact)
    return index != -1 and index == len(hierarchy) - 1


def extract_potential_brand_name(title: Optional[str]) -> str:
    """First 3, 2 or 1 words of a title, whichever fits in 30 characters"""
    if not title or not title.strip():
        return ""
    words = title.split()
    for count in (3, 2):
        if len(words) >= count:
            candidate = " ".join(words[:count])
            if len(candidate) <= BRAND_NAME_CANDIDATE_MAX_LENGTH:
                return candidate
    return words[0]


class EscalationOption:
    """What the caller can do next for a complaint's current contact"""

    NEXT_LEVEL = "next_level"
    DEFAULT = "default"

    def __init__(
        self,
        brand: Optional[Dict[str, Any]] = None,
        action: Optional[str] = None,
        target: Optional[Dict[str, Any]] = None,
        at_last_level: bool = False,
    ):
        self.brand = brand
        self.action = action
        self.target = target
        self.at_last_level = at_last_level

    @property
    def available(self) -> bool:
        return self.action is not None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "brandId": self.brand.get("id") if self.brand else None,
            "brandName": self.brand.get("brandName") if self.brand else None,
            "action": self.action,
            "target": self.target,
            "atLastLevel": self.at_last_level,
        }


# ════════════════════════════════════════════════════════════════════════════
# SERVICE
# ════════════════════════════════════════════════════════════════════════════

class BrandHierarchyService:
    """
    Brand records and the default hierarchy for one tenant.
    Readers return None / [] / False for tenants without brand hierarchies;
    writers raise ValidationError.
    """

    def __init__(self, store: TreeStore, user_type: str):
        self.store = store
        self.user_type = get_user_type_or_raise(user_type)
        self.enabled = supports_brand_hierarchy(self.user_type)

    def _require_enabled(self):
        if not self.enabled:
            raise ValidationError(
                "Brand hierarchy is only available for electronics usertype", field="userType"
            )

    def _brands_path(self, brand_id: Optional[str] = None) -> str:
        return collection_path(self.user_type, Collection.BRAND_HIERARCHIES, brand_id)

    def _default_path(self) -> str:
        return collection_path(self.user_type, Collection.DEFAULT_HIERARCHY)

    # ==================== BRANDS ====================

    async def _brands_in_storage_order(self) -> List[Dict[str, Any]]:
        if not self.enabled:
            return []
        return records_from(await self.store.get(self._brands_path()))

    async def list_brands(self) -> List[Dict[str, Any]]:
        """All brands, sorted by name"""
        brands = await self._brands_in_storage_order()
        return sorted(brands, key=lambda b: (b.get("brandName") or "").lower())

    async def get_brand(self, brand_id: str) -> Optional[Dict[str, Any]]:
        if not self.enabled:
            return None
        brand = await self.store.get(self._brands_path(brand_id))
        if not brand:
            return None
        return {**brand, "id": brand_id}

    async def find_brand_by_name(self, brand_name: Optional[str]) -> Optional[Dict[str, Any]]:
        """Case-insensitive exact match on the trimmed name"""
        if not brand_name or not brand_name.strip():
            return None
        wanted = brand_name.strip().lower()
        for brand in await self._brands_in_storage_order():
            if (brand.get("brandName") or "").strip().lower() == wanted:
                return brand
        return None

    async def detect_brand_from_title(self, title: Optional[str]) -> Optional[Dict[str, Any]]:
        """First brand, in storage order, whose name appears in the title"""
        if not title or not title.strip():
            return None
        title_lower = title.strip().lower()
        for brand in await self._brands_in_storage_order():
            name = (brand.get("brandName") or "").strip().lower()
            if name and name in title_lower:
                logger.info(f"[BRAND] Detected '{brand.get('brandName')}' in title '{title}'")
                return brand
        return None

    async def save_brand(self, brand_data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Create (no id) or update (id) a brand.
        Names are unique per tenant, case-insensitive.
        """
        self._require_enabled()

        brand_name = (brand_data.get("brandName") or "").strip()
        if not brand_name:
            raise ValidationError("Brand name is required", field="brandName")

        brand_id = brand_data.get("id")
        existing = await self.find_brand_by_name(brand_name)
        if existing and existing["id"] != brand_id:
            raise ValidationError("A brand with this name already exists", field="brandName")

        hierarchy = []
        for index, level in enumerate(brand_data.get("hierarchy") or []):
            validate_hierarchy_level(level, index)
            hierarchy.append({"name": level["name"].strip(), "contact": str(level["contact"]).strip()})

        now = now_iso()
        to_save = {
            "brandName": brand_name,
            "hierarchy": hierarchy,
            "createdAt": brand_data.get("createdAt") or now,
            "updatedAt": now,
        }

        if brand_id:
            current = await self.store.get(self._brands_path(brand_id))
            if not current:
                raise NotFoundError("Brand", brand_id)
            to_save["createdAt"] = current.get("createdAt") or to_save["createdAt"]
            await self.store.update(self._brands_path(brand_id), to_save)
            logger.info(f"[BRAND] Updated {brand_name} ({len(hierarchy)} levels)")
            return {**to_save, "id": brand_id}

        new_id = await self.store.push(self._brands_path(), to_save)
        logger.info(f"[BRAND] Created {brand_name} ({len(hierarchy)} levels) id={new_id}")
        return {**to_save, "id": new_id}

    async def delete_brand(self, brand_id: str) -> None:
        self._require_enabled()
        if not await self.store.get(self._brands_path(brand_id)):
            raise NotFoundError("Brand", brand_id)
        await self.store.remove(self._brands_path(brand_id))
        logger.info(f"[BRAND] Deleted {brand_id}")

    # ==================== LEVELS ====================

    async def _hierarchy_for(self, brand_name: Optional[str]) -> List[Dict[str, Any]]:
        brand = await self.find_brand_by_name(brand_name)
        if not brand:
            return []
        return brand.get("hierarchy") or []

    async def get_first_level(self, brand_name: str) -> Optional[Dict[str, Any]]:
        hierarchy = await self._hierarchy_for(brand_name)
        if not hierarchy:
            return None
        return {**hierarchy[0], "level": 1}

    async def get_next_level(self, brand_name: str, current_contact: str) -> Optional[Dict[str, Any]]:
        if not current_contact:
            return None
        return next_level(await self._hierarchy_for(brand_name), current_contact)

    async def is_at_last_level(self, brand_name: str, current_contact: str) -> bool:
        if not current_contact:
            return False
        return is_last_level(await self._hierarchy_for(brand_name), current_contact)

    # ==================== DEFAULT HIERARCHY ====================

    async def get_default_hierarchy(self) -> Optional[Dict[str, Any]]:
        if not self.enabled:
            return None
        return await self.store.get(self._default_path())

    async def save_default_hierarchy(self, data: Dict[str, Any]) -> Dict[str, Any]:
        self._require_enabled()
        validate_hierarchy_level(data)
        default = {
            "name": data["name"].strip(),
            "contact": str(data["contact"]).strip(),
            "updatedAt": now_iso(),
        }
        await self.store.set(self._default_path(), default)
        logger.info(f"[BRAND] Default hierarchy set to {default['name']} ({default['contact']})")
        return default

    async def delete_default_hierarchy(self) -> None:
        self._require_enabled()
        await self.store.remove(self._default_path())

    # ==================== ESCALATION ====================

    async def resolve_escalation(
        self,
        current_contact: Optional[str],
        brand_name: Optional[str] = None,
        title: Optional[str] = None,
    ) -> EscalationOption:
        """
        Next escalation step for a complaint. The brand is looked up by name,
        or detected from the complaint title when no name is given.
        """
        if not self.enabled:
            return EscalationOption()

        brand = await self.find_brand_by_name(brand_name) if brand_name else await self.detect_brand_from_title(title)
        if not brand:
            return EscalationOption()

        hierarchy = brand.get("hierarchy") or []
        following = next_level(hierarchy, current_contact)
        if following:
            return EscalationOption(brand, EscalationOption.NEXT_LEVEL, following, at_last_level=False)

        if not is_last_level(hierarchy, current_contact):
            return EscalationOption(brand)

        default = await self.get_default_hierarchy()
        if default and default.get("contact") and default.get("contact") != current_contact:
            return EscalationOption(brand, EscalationOption.DEFAULT, default, at_last_level=True)

        return EscalationOption(brand, at_last_level=True)
