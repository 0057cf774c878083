"""
Segment filter evaluator.

A segment's filter tree is parsed into a small tagged union before any
event is looked at, so malformed trees fail at the boundary:

    Leaf(field, operator, value) | And(children) | Or(children)

Serialized forms:
- leaf:  {"field": "country", "operator": "equals", "value": "DE"}
- group: {"and": [node, ...]} or {"or": [node, ...]}
- legacy flat list: [{"field", "operator", "value", "logic"}, ...] where
  `logic` (AND/OR) joins an entry to the next one, folded left to right

Matching is case-sensitive. A null field never satisfies equals, contains
or starts_with, and always satisfies not_equals.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from footprint.core.entities import Event

from .models import AnalyticsQueryError

# Serialized field name -> Event attribute
SEGMENT_FIELDS: dict[str, str] = {
    "browser": "browser",
    "os": "os",
    "device": "device",
    "country": "country",
    "city": "city",
    "path": "path",
    "referrer": "referrer",
    "eventType": "event_type",
    "event_type": "event_type",
    "eventName": "event_name",
    "event_name": "event_name",
}

SEGMENT_OPERATORS: frozenset[str] = frozenset({"equals", "not_equals", "contains", "starts_with"})


@dataclass(frozen=True)
class Leaf:
    field: str
    operator: str
    value: str


@dataclass(frozen=True)
class And:
    children: tuple[FilterNode, ...]


@dataclass(frozen=True)
class Or:
    children: tuple[FilterNode, ...]


FilterNode = Leaf | And | Or


# --- Parsing ---


def _invalid(message: str, field_name: str = "filter_tree") -> AnalyticsQueryError:
    return AnalyticsQueryError(code="INVALID_SEGMENT", message=message, field_name=field_name)


def _parse_leaf(raw: Mapping[str, Any]) -> Leaf:
    field = raw.get("field")
    operator = raw.get("operator")
    value = raw.get("value")

    if field not in SEGMENT_FIELDS:
        raise _invalid(f"Unknown segment field: {field!r}", "field")
    if operator not in SEGMENT_OPERATORS:
        raise _invalid(f"Unknown segment operator: {operator!r}", "operator")
    if value is None:
        raise _invalid(f"Missing value for segment field {field!r}", "value")

    return Leaf(field=SEGMENT_FIELDS[field], operator=operator, value=str(value))


def parse_filter_tree(raw: Any) -> FilterNode:
    """
    Parse a serialized filter tree.

    Raises:
        AnalyticsQueryError: Unknown field/operator, bad node shape or
            empty group
    """
    if isinstance(raw, list):
        return parse_flat_filters(raw)
    if not isinstance(raw, Mapping):
        raise _invalid(f"Filter node must be an object, got {type(raw).__name__}")

    group_keys = [k for k in ("and", "or") if k in raw]
    if group_keys:
        if len(group_keys) > 1 or "field" in raw:
            raise _invalid("Filter node must be exactly one of leaf, 'and' or 'or'")
        key = group_keys[0]
        children = raw[key]
        if not isinstance(children, list) or not children:
            raise _invalid(f"'{key}' group must be a non-empty list")
        parsed = tuple(parse_filter_tree(child) for child in children)
        return And(parsed) if key == "and" else Or(parsed)

    if "field" in raw:
        return _parse_leaf(raw)

    raise _invalid("Filter node has neither a field nor an 'and'/'or' group")


def parse_flat_filters(entries: list[Any]) -> FilterNode:
    """
    Convert a legacy flat filter list into a tree.

    Each entry's `logic` joins it to the following entry; the fold is left
    to right, so [a AND, b OR, c] becomes Or(And(a, b), c).
    """
    if not entries:
        raise _invalid("Filter list must not be empty")

    tree: FilterNode | None = None
    pending_logic = "AND"
    for entry in entries:
        if not isinstance(entry, Mapping):
            raise _invalid(f"Filter entry must be an object, got {type(entry).__name__}")
        leaf = _parse_leaf(entry)
        if tree is None:
            tree = leaf
        elif pending_logic == "OR":
            tree = Or((tree, leaf))
        else:
            tree = And((tree, leaf))

        pending_logic = str(entry.get("logic") or "AND").upper()
        if pending_logic not in ("AND", "OR"):
            raise _invalid(f"Unknown filter logic: {entry.get('logic')!r}", "logic")

    assert tree is not None
    return tree


# --- Evaluation ---


def _match_leaf(leaf: Leaf, event: Event) -> bool:
    actual = getattr(event, leaf.field)
    if actual is None:
        return leaf.operator == "not_equals"

    if leaf.operator == "equals":
        return actual == leaf.value
    if leaf.operator == "not_equals":
        return actual != leaf.value
    if leaf.operator == "contains":
        return leaf.value in actual
    return actual.startswith(leaf.value)


def evaluate(node: FilterNode, event: Event) -> bool:
    """Evaluate the tree against one event. Groups short-circuit."""
    if isinstance(node, Leaf):
        return _match_leaf(node, event)
    if isinstance(node, And):
        return all(evaluate(child, event) for child in node.children)
    return any(evaluate(child, event) for child in node.children)


def apply_segment(events: Iterable[Event], node: FilterNode) -> list[Event]:
    """Events matching the tree, original order preserved."""
    return [e for e in events if evaluate(node, e)]
