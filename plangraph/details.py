"""
Resource Details

Attribute diffs and list filtering for normalized resources.
"""

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional

from .parser import ActionType, ResourceNode

ADD = "add"
REMOVE = "remove"
CHANGE = "change"
SAME = "same"

_CHANGE_ORDER = {ADD: 0, REMOVE: 1, CHANGE: 2, SAME: 3}

_MISSING = object()


@dataclass(frozen=True)
class AttributeChange:
    """Before/after values of one top-level attribute."""
    key: str
    change_type: str  # 'add', 'remove', 'change', 'same'
    before: Any = None
    after: Any = None

    @property
    def is_changed(self) -> bool:
        return self.change_type != SAME


def attribute_changes(resource: ResourceNode) -> List[AttributeChange]:
    """Diff the before and after attributes of a resource.

    Missing mappings count as empty. Changed attributes come first (added,
    removed, changed), then unchanged ones.
    """
    before = resource.before or {}
    after = resource.after or {}

    keys = list(before)
    keys.extend(k for k in after if k not in before)

    changes = []
    for key in keys:
        before_val = before.get(key, _MISSING)
        after_val = after.get(key, _MISSING)

        if before_val is _MISSING:
            changes.append(AttributeChange(key, ADD, after=after_val))
        elif after_val is _MISSING:
            changes.append(AttributeChange(key, REMOVE, before=before_val))
        elif before_val != after_val:
            changes.append(AttributeChange(key, CHANGE, before_val, after_val))
        else:
            changes.append(AttributeChange(key, SAME, before_val, after_val))

    # sorted() is stable, so keys keep their order within a change type
    return sorted(changes, key=lambda c: _CHANGE_ORDER[c.change_type])


def filter_resources(
    resources: Iterable[ResourceNode],
    action: Optional[ActionType] = None,
    search: str = "",
) -> List[ResourceNode]:
    """Resources matching an action and a case-insensitive search text.

    The search text is matched against type, name and address.
    """
    needle = search.lower()
    result = []
    for resource in resources:
        if action is not None and resource.action != action:
            continue
        if needle and not (
            needle in resource.type.lower()
            or needle in resource.name.lower()
            or needle in resource.address.lower()
        ):
            continue
        result.append(resource)
    return result


def group_by_type(resources: Iterable[ResourceNode]) -> Dict[str, List[ResourceNode]]:
    grouped: Dict[str, List[ResourceNode]] = {}
    for resource in resources:
        grouped.setdefault(resource.type, []).append(resource)
    return grouped
