"""Lead form field data: typed container and normalization."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Iterator

from .geo import state_for_city

STATE_FIELD_NAMES = ("state", "states")


def _unique_strings(values: Iterable[Any]) -> list[str]:
    out: list[str] = []
    seen: set[str] = set()
    for value in values:
        if value is None:
            continue
        text = str(value)
        if text in seen:
            continue
        seen.add(text)
        out.append(text)
    return out


@dataclass
class FieldEntry:
    name: str
    values: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {"name": self.name, "values": list(self.values)}


class FieldBag:
    """Ordered (name, values) pairs as submitted through a lead form."""

    def __init__(self, entries: Iterable[FieldEntry] | None = None):
        self._entries: list[FieldEntry] = list(entries or [])

    def __iter__(self) -> Iterator[FieldEntry]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"FieldBag({self._entries!r})"

    def names(self) -> list[str]:
        return [entry.name for entry in self._entries]

    def get(self, name: str) -> list[str]:
        """Values of the first entry called ``name`` (empty when missing)."""
        for entry in self._entries:
            if entry.name == name:
                return list(entry.values)
        return []

    def has(self, name: str) -> bool:
        """True when ``name`` is present with at least one value."""
        return bool(self.get(name))

    def first(self, name: str) -> str | None:
        values = self.get(name)
        return values[0] if values else None

    def append(self, name: str, values: Iterable[Any]) -> FieldEntry:
        entry = FieldEntry(name=name, values=_unique_strings(values))
        self._entries.append(entry)
        return entry

    def to_list(self) -> list[dict]:
        return [entry.to_dict() for entry in self._entries]

    @classmethod
    def from_list(cls, items: Any) -> "FieldBag":
        bag = cls()
        if not isinstance(items, list):
            return bag
        for item in items:
            if not isinstance(item, dict):
                continue
            name = str(item.get("name") or "").strip().lower()
            if not name:
                continue
            raw_values = item.get("values")
            bag.append(name, raw_values if isinstance(raw_values, list) else [])
        return bag


def normalize_field_data(
    raw: Any,
    *,
    lead_source: str = "Facebook",
    country: str = "IN",
) -> FieldBag:
    """Convert the platform's ``field_data`` into the CRM field shape.

    Names are lower-cased and values stringified and de-duplicated. When a
    city was submitted, a ``state`` is derived from it (if no state was
    given) and a ``location`` mirroring it is added (if absent). A
    ``lead_source`` entry is added when the form did not carry one.
    """
    bag = FieldBag.from_list(raw)

    city = bag.first("city")
    if city:
        if not any(bag.has(name) for name in STATE_FIELD_NAMES):
            state = state_for_city(city, country)
            if state:
                bag.append("state", [state])
        if not bag.has("location"):
            bag.append("location", [city])

    if not bag.has("lead_source") and lead_source:
        bag.append("lead_source", [lead_source])

    return bag
