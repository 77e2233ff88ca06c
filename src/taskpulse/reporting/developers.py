"""Developer resolution from the developer dropdown custom field.

ClickUp hands back the dropdown value as an order index, an option UUID, a
numeric string, an embedded object or a list depending on the endpoint. Raw
values are first classified into one of the variants below, then resolved by
a single branch per variant.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional, Tuple, Union

from taskpulse.clickup.models import CustomField, Task

UNASSIGNED = "Unassigned"
UNKNOWN = "Unknown"


@dataclass(frozen=True)
class EmptyValue:
    pass


@dataclass(frozen=True)
class IndexValue:
    index: int


@dataclass(frozen=True)
class TextValue:
    text: str


@dataclass(frozen=True)
class NamedValue:
    name: Optional[str]


@dataclass(frozen=True)
class OptionRefValue:
    option_id: Any


@dataclass(frozen=True)
class ListValue:
    items: Tuple[Any, ...]


@dataclass(frozen=True)
class OtherValue:
    raw: Any


DeveloperValue = Union[EmptyValue, IndexValue, TextValue, NamedValue, OptionRefValue, ListValue, OtherValue]


def classify_developer_value(raw: Any) -> DeveloperValue:
    if raw is None:
        return EmptyValue()
    if isinstance(raw, bool):
        return OtherValue(raw)
    if isinstance(raw, int):
        return IndexValue(raw)
    if isinstance(raw, float) and raw.is_integer():
        return IndexValue(int(raw))
    if isinstance(raw, str):
        return TextValue(raw)
    if isinstance(raw, dict) and "name" in raw:
        return NamedValue(raw.get("name"))
    if isinstance(raw, dict) and "id" in raw:
        return OptionRefValue(raw["id"])
    if isinstance(raw, (list, tuple)):
        return ListValue(tuple(raw))
    return OtherValue(raw)


class DeveloperMap:
    """Lookup from dropdown order index or option UUID to display name"""

    def __init__(self, entries: Optional[Dict[str, str]] = None):
        self._names: Dict[str, str] = {str(key): value for key, value in (entries or {}).items()}

    @classmethod
    def from_field(cls, developer_field: Optional[CustomField]) -> "DeveloperMap":
        entries: Dict[str, str] = {}
        if developer_field is not None and developer_field.is_dropdown:
            for option in developer_field.options:
                if option.orderindex is not None:
                    entries[str(option.orderindex)] = option.name
                if option.id:
                    entries[option.id] = option.name
        return cls(entries)

    @classmethod
    def from_custom_fields(cls, custom_fields: Iterable[CustomField]) -> "DeveloperMap":
        return cls.from_field(find_developer_field(custom_fields))

    def get(self, key: Any) -> Optional[str]:
        return self._names.get(str(key))

    def names(self) -> list[str]:
        """Distinct display names in option order."""
        return list(dict.fromkeys(self._names.values()))

    def __len__(self) -> int:
        return len(self._names)


def find_developer_field(custom_fields: Iterable[CustomField]) -> Optional[CustomField]:
    for custom_field in custom_fields:
        if custom_field.is_developer_field:
            return custom_field
    return None


def _is_number(text: str) -> bool:
    try:
        float(text)
    except ValueError:
        return False
    return text.strip() != ""


def resolve_developer_name(raw: Any, developers: DeveloperMap) -> str:
    """Turn a raw developer field value into a display name.

    Unmatched order indexes become ``Developer N``; unmatched non-numeric
    strings (option UUIDs), unmatched option objects and anything else
    unrecognised become ``Unassigned`` so opaque ids never reach a report.
    """
    value = classify_developer_value(raw)
    if isinstance(value, EmptyValue):
        return UNASSIGNED
    if isinstance(value, IndexValue):
        return developers.get(value.index) or f"Developer {value.index}"
    if isinstance(value, TextValue):
        mapped = developers.get(value.text)
        if mapped:
            return mapped
        if _is_number(value.text):
            return f"Developer {value.text.strip()}"
        return UNASSIGNED
    if isinstance(value, NamedValue):
        return value.name or UNKNOWN
    if isinstance(value, ListValue):
        if not value.items:
            return UNASSIGNED
        return resolve_developer_name(value.items[0], developers)
    if isinstance(value, OptionRefValue):
        return developers.get(value.option_id) or UNASSIGNED
    return UNASSIGNED


def task_developer(task: Task, developers: DeveloperMap) -> str:
    """Resolve the developer assigned to a task, ``Unassigned`` when there is no field."""
    developer_field = task.developer_field
    if developer_field is None:
        return UNASSIGNED
    return resolve_developer_name(developer_field.value, developers)


def chat_handle(name: str) -> str:
    """``Jordan Lee`` -> ``jordan.lee``"""
    return re.sub(r"\s+", ".", name.strip().lower())
