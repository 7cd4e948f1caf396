"""Per-conversation state: collected contact info, search criteria, shown and active listings.

Every mutator only changes memory and marks the context dirty; nothing is durable until
``save()`` completes. Callers must hold the conversation's lock (see SessionManager) across
load, mutate and save.
"""

from __future__ import annotations

import re
from dataclasses import asdict, dataclass
from typing import Any, Optional

from rapidfuzz import fuzz

from estate_bot.log import get_logger
from estate_bot.storage.context_repo import ContextRepository
from estate_bot.storage.models import ContextRecord

logger = get_logger(__name__)

SEARCH_FIELDS = (
    "city",
    "neighborhood",
    "min_price",
    "max_price",
    "min_bedrooms",
    "min_bathrooms",
    "property_type",
    "min_sqft",
    "max_sqft",
    "sort_by",
    "sort_order",
)

CONTACT_FIELDS = ("name", "email", "phone", "preferences")

_ORDINALS = {
    "first": 1, "1st": 1,
    "second": 2, "2nd": 2,
    "third": 3, "3rd": 3,
    "fourth": 4, "4th": 4,
    "fifth": 5, "5th": 5,
}
_NUMERIC_REF = re.compile(r"^(?:#|number|no\.?|option)?\s*(\d+)$")
_ORDINAL_REF = re.compile(
    r"^(?:the\s+)?(first|second|third|fourth|fifth|last|\d+(?:st|nd|rd|th))"
    r"(?:\s+(?:one|property|listing|home|house))?$"
)
_PRICE_REF = re.compile(
    r"^(?:the\s+)?(cheapest|lowest price|least expensive|most expensive|highest price|priciest)"
    r"(?:\s+(?:one|property|listing|home|house))?$"
)
_CHEAPEST = ("cheapest", "lowest price", "least expensive")

FUZZY_MIN_SCORE = 80


@dataclass
class ShownEntity:
    index: int
    entity_id: str
    address: str = ""
    street: str = ""
    price: str = ""
    bedrooms: Optional[float] = None
    bathrooms: Optional[float] = None
    sqft: Optional[str] = None
    property_type: Optional[str] = None
    url: Optional[str] = None

    @property
    def numeric_price(self) -> float:
        try:
            return float(str(self.price).replace("$", "").replace(",", "") or 0)
        except ValueError:
            return 0.0


def _is_empty(value: Any) -> bool:
    return value is None or value == "" or value == [] or value == {}


class ConversationContext:
    def __init__(self, conversation_id: int, repo: Optional[ContextRepository] = None):
        self.conversation_id = conversation_id
        self._repo = repo
        self._collected_info: dict[str, Any] = {}
        self._search_criteria: dict[str, Any] = {}
        self._shown: list[ShownEntity] = []
        self._active_entity_id: Optional[str] = None
        self._active_entity: Optional[dict[str, Any]] = None
        self._dirty = False

    @classmethod
    async def load(cls, conversation_id: int, repo: ContextRepository) -> ConversationContext:
        ctx = cls(conversation_id, repo)
        record = await repo.load(conversation_id)
        if record is not None:
            ctx._collected_info = dict(record.collected_info)
            ctx._search_criteria = dict(record.search_criteria)
            ctx._shown = [ShownEntity(**item) for item in record.shown_entities]
            ctx._active_entity_id = record.active_entity_id
            ctx._active_entity = record.active_entity
        return ctx

    async def save(self) -> bool:
        """Persist if anything changed. Returns True when a write happened."""
        if not self._dirty:
            return False
        if self._repo is None:
            raise RuntimeError("ConversationContext has no repository to save to")
        await self._repo.save(self.to_record())
        self._dirty = False
        return True

    def to_record(self) -> ContextRecord:
        return ContextRecord(
            conversation_id=self.conversation_id,
            collected_info=dict(self._collected_info),
            search_criteria=dict(self._search_criteria),
            shown_entities=[asdict(e) for e in self._shown],
            active_entity_id=self._active_entity_id,
            active_entity=self._active_entity,
        )

    @property
    def dirty(self) -> bool:
        return self._dirty

    # -- collected info --------------------------------------------------

    @property
    def collected_info(self) -> dict[str, Any]:
        return dict(self._collected_info)

    def get_collected_field(self, field: str) -> Any:
        return self._collected_info.get(field)

    def set_collected_field(self, field: str, value: Any) -> bool:
        """Write-once: a field that already holds a value is never replaced."""
        if field not in CONTACT_FIELDS or _is_empty(value):
            return False
        if not _is_empty(self._collected_info.get(field)):
            return False
        self._collected_info[field] = value
        self._dirty = True
        return True

    def merge_collected_info(self, info: dict[str, Any]) -> list[str]:
        return [f for f, v in info.items() if self.set_collected_field(f, v)]

    def has_complete_contact_info(self) -> bool:
        info = self._collected_info
        return bool(info.get("name")) and bool(info.get("phone") or info.get("email"))

    # -- search criteria -------------------------------------------------

    @property
    def search_criteria(self) -> dict[str, Any]:
        return dict(self._search_criteria)

    def update_search_criteria(self, new_args: dict[str, Any]) -> dict[str, Any]:
        merged = dict(self._search_criteria)
        for key in SEARCH_FIELDS:
            value = new_args.get(key)
            if not _is_empty(value):
                merged[key] = value
        if merged != self._search_criteria:
            self._search_criteria = merged
            self._dirty = True
        return dict(merged)

    def clear_search_criteria(self) -> None:
        if self._search_criteria:
            self._search_criteria = {}
            self._dirty = True

    # -- shown entities --------------------------------------------------

    @property
    def shown_entities(self) -> list[ShownEntity]:
        return list(self._shown)

    def record_shown_entities(self, items: list[dict[str, Any]]) -> list[ShownEntity]:
        """Replace the shown list; indices are reassigned 1..N in the given order."""
        shown = []
        for position, item in enumerate(items, start=1):
            shown.append(
                ShownEntity(
                    index=position,
                    entity_id=str(item.get("entity_id") or item.get("listing_id")),
                    address=item.get("address", ""),
                    street=item.get("street", ""),
                    price=item.get("price", ""),
                    bedrooms=item.get("bedrooms"),
                    bathrooms=item.get("bathrooms"),
                    sqft=item.get("sqft"),
                    property_type=item.get("property_type"),
                    url=item.get("url") or item.get("property_url"),
                )
            )
        self._shown = shown
        self._dirty = True
        return list(shown)

    def _by_index(self, index: int) -> Optional[str]:
        if 1 <= index <= len(self._shown):
            return self._shown[index - 1].entity_id
        return None

    def resolve_reference(self, text: str) -> Optional[str]:
        """Map "2", "#3", "the first one", "70 Phillips", "cheapest" to a shown entity id."""
        if not self._shown:
            return None
        ref = " ".join(text.strip().lower().split())
        if not ref:
            return None

        numeric = _NUMERIC_REF.match(ref)
        if numeric:
            return self._by_index(int(numeric.group(1)))

        ordinal = _ORDINAL_REF.match(ref)
        if ordinal:
            word = ordinal.group(1)
            if word == "last":
                return self._by_index(len(self._shown))
            if word in _ORDINALS:
                return self._by_index(_ORDINALS[word])
            return self._by_index(int(re.sub(r"\D", "", word)))

        by_price = _PRICE_REF.match(ref)
        if by_price:
            priced = [e for e in self._shown if e.numeric_price > 0]
            if not priced:
                return None
            pick = min if by_price.group(1) in _CHEAPEST else max
            return pick(priced, key=lambda e: e.numeric_price).entity_id

        for entity in self._shown:
            if (entity.address and ref in entity.address.lower()) or (
                entity.street and ref in entity.street.lower()
            ):
                return entity.entity_id

        best_id, best_score = None, 0.0
        for entity in self._shown:
            for candidate in (entity.address, entity.street):
                if not candidate:
                    continue
                score = fuzz.partial_ratio(ref, candidate.lower())
                if score > best_score:
                    best_id, best_score = entity.entity_id, score
        if best_score >= FUZZY_MIN_SCORE:
            return best_id
        return None

    def get_shown_entity(self, entity_id: str) -> Optional[ShownEntity]:
        return next((e for e in self._shown if e.entity_id == entity_id), None)

    # -- active entity ---------------------------------------------------

    @property
    def active_entity_id(self) -> Optional[str]:
        return self._active_entity_id

    @property
    def active_entity(self) -> Optional[dict[str, Any]]:
        return self._active_entity

    def set_active_entity(self, entity_id: str, snapshot: dict[str, Any]) -> None:
        self._active_entity_id = str(entity_id)
        self._active_entity = dict(snapshot)
        self._dirty = True

    def clear_active_entity(self) -> None:
        if self._active_entity_id is not None:
            self._active_entity_id = None
            self._active_entity = None
            self._dirty = True

    # -- prompt helpers --------------------------------------------------

    def cache_key_context(self) -> dict[str, Any]:
        """The part of the context that changes what a good answer looks like."""
        key: dict[str, Any] = {}
        if self._search_criteria:
            key["criteria"] = self._search_criteria
        if self._active_entity_id:
            key["active"] = self._active_entity_id
        if self._shown:
            key["shown"] = [e.entity_id for e in self._shown]
        return key

    def build_ai_context_string(self) -> str:
        parts = []

        info = self._collected_info
        user_lines = [
            f"{label}: {info[key]}"
            for key, label in (("name", "Name"), ("phone", "Phone"), ("email", "Email"))
            if info.get(key)
        ]
        if user_lines:
            parts.append(
                "## User Contact Info (ALREADY COLLECTED - DO NOT ASK AGAIN)\n" + "\n".join(user_lines)
            )

        criteria = self._search_criteria
        search_lines = []
        if criteria.get("city"):
            search_lines.append(f"Location: {criteria['city']}")
        if criteria.get("neighborhood"):
            search_lines.append(f"Neighborhood: {criteria['neighborhood']}")
        if criteria.get("min_price") or criteria.get("max_price"):
            low = int(criteria.get("min_price") or 0)
            high = int(criteria.get("max_price") or 999_999_999)
            search_lines.append(f"Price Range: ${low:,} - ${high:,}")
        if criteria.get("min_bedrooms"):
            search_lines.append(f"Bedrooms: {criteria['min_bedrooms']}+")
        if criteria.get("property_type"):
            search_lines.append(f"Type: {criteria['property_type']}")
        if search_lines:
            parts.append(
                "## Active Search Criteria (KEEP these when user refines search)\n" + "\n".join(search_lines)
            )

        if self._shown:
            lines = [f"#{e.index}: {e.address} - {e.price} (ID: {e.entity_id})" for e in self._shown]
            parts.append(
                '## Recently Shown Properties (use to resolve references like "number 3")\n'
                + "\n".join(lines)
            )

        if self._active_entity_id:
            parts.append(
                "## Active Property Being Discussed\n"
                f"Listing ID: {self._active_entity_id}\n"
                "Full property data is available. You can answer detailed questions about this property."
            )

        return "\n\n".join(parts)
