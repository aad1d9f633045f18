"""Machine-readable schema specs for Exam Season story tables."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
import json
from typing import Any, Callable, Dict, List, Mapping, MutableMapping, Sequence, Tuple

from .clock import is_time_label
from .stats import STAT_KEYS, as_number, canonical_stat

ConditionValidator = Callable[[Mapping[str, Any], str], List[str]]

RESOLVE_NEXT_DAY = "resolve_next_day"
TIME_EFFECT = "time"
EXAM_ACTIONS = ("write", "guess", "cheat")
EFFECT_KEYS = frozenset(STAT_KEYS) | {TIME_EFFECT}


def path(*parts: object) -> str:
    path_str = ""
    for part in parts:
        if isinstance(part, int):
            path_str = f"{path_str}[{part}]"
            continue
        if not isinstance(part, str):
            part = str(part)
        if part.isidentifier():
            path_str = f"{path_str}.{part}" if path_str else part
        else:
            path_str = f'{path_str}[{json.dumps(part)}]'
    return path_str


def format_validation_message(path_str: str, context: str, message: str) -> str:
    if context:
        return f"{path_str}: {context}: {message}"
    return f"{path_str}: {message}"


def is_non_empty_str(value: Any) -> bool:
    return isinstance(value, str) and value.strip() != ""


def str_or_str_list(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip() != ""
    if isinstance(value, list) and value:
        return all(isinstance(item, str) and item.strip() != "" for item in value)
    return False


def is_number(value: Any) -> bool:
    return as_number(value) is not None


def normalize_nodes(
    raw_nodes: Any, ctx: Any | None = None
) -> Tuple[Dict[str, Dict[str, Any]], List[str]]:
    """Return ``{id: node}`` for either an id-keyed object or a list of entries.

    Every returned node carries its own ``id`` field; declaration order is
    preserved so "first node of the day" lookups stay deterministic.
    """
    nodes: Dict[str, Dict[str, Any]] = {}
    errors: List[str] = []
    node_ids: List[str] = []

    def add_error(context: str, path_parts: Sequence[object], message: str) -> None:
        path_str = path(*path_parts)
        errors.append(format_validation_message(path_str, context, message))
        if ctx is not None:
            ctx.add(context, path_str, message)

    if isinstance(raw_nodes, dict):
        for node_id, payload in raw_nodes.items():
            if not is_non_empty_str(node_id):
                add_error("Nodes", ("nodes",), "node identifiers must be non-empty strings.")
                continue
            if not isinstance(payload, dict):
                add_error(
                    "Nodes",
                    ("nodes", node_id),
                    f"node '{node_id}' must be an object.",
                )
                continue
            declared = payload.get("id")
            if declared is not None and declared != node_id:
                add_error(
                    "Nodes",
                    ("nodes", node_id, "id"),
                    f"declares id '{declared}' under key '{node_id}'.",
                )
                continue
            entry = dict(payload)
            entry["id"] = node_id
            nodes[node_id] = entry
        node_ids = list(nodes.keys())
    elif isinstance(raw_nodes, list):
        for idx, entry in enumerate(raw_nodes, start=1):
            if not isinstance(entry, MutableMapping):
                add_error(
                    f"Node entry {idx}",
                    ("nodes", idx - 1),
                    "must be an object.",
                )
                continue
            node_id = entry.get("id")
            if not is_non_empty_str(node_id):
                add_error(
                    f"Node entry {idx}",
                    ("nodes", idx - 1, "id"),
                    "is missing a valid 'id'.",
                )
                continue
            node_ids.append(node_id)
            nodes[node_id] = dict(entry)
    else:
        add_error(
            "Story data",
            ("nodes",),
            "must be an object mapping IDs to node definitions or a list of node entries.",
        )

    duplicates = [node_id for node_id, count in Counter(node_ids).items() if count > 1]
    if duplicates:
        dup_list = ", ".join(sorted(set(duplicates)))
        add_error("Nodes", ("nodes",), f"duplicate node IDs found: {dup_list}.")

    return nodes, errors


@dataclass(frozen=True)
class ConditionSpec:
    required_fields: Tuple[str, ...]
    optional_fields: Tuple[str, ...]
    field_rules: Mapping[str, str]
    validate: ConditionValidator


def _validate_flag(condition: Mapping[str, Any], context: str, name: str) -> List[str]:
    errors: List[str] = []
    if not is_non_empty_str(condition.get("flag")):
        errors.append(f"{context}: '{name}' requires a non-empty string 'flag'.")
    return errors


def _validate_any_flag(condition: Mapping[str, Any], context: str) -> List[str]:
    errors: List[str] = []
    if not str_or_str_list(condition.get("flags")):
        errors.append(f"{context}: 'any_flag' requires a flag or list of flags in 'flags'.")
    return errors


def _validate_stat_compare(condition: Mapping[str, Any], context: str, name: str) -> List[str]:
    errors: List[str] = []
    stat = condition.get("stat")
    if not is_non_empty_str(stat) or canonical_stat(stat) not in STAT_KEYS:
        errors.append(f"{context}: '{name}' requires 'stat' to be one of {', '.join(STAT_KEYS)}.")
    if not is_number(condition.get("value")):
        errors.append(f"{context}: '{name}' requires a numeric 'value'.")
    return errors


def _validate_stat_between(condition: Mapping[str, Any], context: str) -> List[str]:
    errors: List[str] = []
    stat = condition.get("stat")
    if not is_non_empty_str(stat) or canonical_stat(stat) not in STAT_KEYS:
        errors.append(
            f"{context}: 'stat_between' requires 'stat' to be one of {', '.join(STAT_KEYS)}."
        )
    low = condition.get("min")
    high = condition.get("max")
    if not is_number(low) or not is_number(high):
        errors.append(f"{context}: 'stat_between' requires numeric 'min' and 'max'.")
    elif as_number(low) > as_number(high):
        errors.append(f"{context}: 'stat_between' has 'min' greater than 'max'.")
    return errors


def _validate_day_threshold(condition: Mapping[str, Any], context: str, name: str) -> List[str]:
    errors: List[str] = []
    if not isinstance(condition.get("value"), int) or isinstance(condition.get("value"), bool):
        errors.append(f"{context}: '{name}' requires an integer 'value'.")
    return errors


def _validate_time_at_least(condition: Mapping[str, Any], context: str) -> List[str]:
    errors: List[str] = []
    if not is_time_label(condition.get("value")):
        errors.append(f"{context}: 'time_at_least' requires an HH:MM 'value'.")
    return errors


def _validate_nested_list(condition: Mapping[str, Any], context: str, name: str) -> List[str]:
    errors: List[str] = []
    nested = condition.get("conditions")
    if not isinstance(nested, list) or not nested:
        errors.append(f"{context}: '{name}' requires a non-empty list 'conditions'.")
    return errors


def _validate_not(condition: Mapping[str, Any], context: str) -> List[str]:
    errors: List[str] = []
    nested = condition.get("condition")
    if not isinstance(nested, (dict, list)) or not nested:
        errors.append(f"{context}: 'not' requires a nested 'condition'.")
    return errors


CONDITION_SPECS: Dict[str, ConditionSpec] = {
    "flag_set": ConditionSpec(
        required_fields=("flag",),
        optional_fields=(),
        field_rules={"flag": "non-empty string"},
        validate=lambda condition, context: _validate_flag(condition, context, "flag_set"),
    ),
    "flag_unset": ConditionSpec(
        required_fields=("flag",),
        optional_fields=(),
        field_rules={"flag": "non-empty string"},
        validate=lambda condition, context: _validate_flag(condition, context, "flag_unset"),
    ),
    "any_flag": ConditionSpec(
        required_fields=("flags",),
        optional_fields=(),
        field_rules={"flags": "flag string or non-empty list of flag strings"},
        validate=_validate_any_flag,
    ),
    "stat_gte": ConditionSpec(
        required_fields=("stat", "value"),
        optional_fields=(),
        field_rules={"stat": "stat name", "value": "number"},
        validate=lambda condition, context: _validate_stat_compare(condition, context, "stat_gte"),
    ),
    "stat_gt": ConditionSpec(
        required_fields=("stat", "value"),
        optional_fields=(),
        field_rules={"stat": "stat name", "value": "number"},
        validate=lambda condition, context: _validate_stat_compare(condition, context, "stat_gt"),
    ),
    "stat_lte": ConditionSpec(
        required_fields=("stat", "value"),
        optional_fields=(),
        field_rules={"stat": "stat name", "value": "number"},
        validate=lambda condition, context: _validate_stat_compare(condition, context, "stat_lte"),
    ),
    "stat_lt": ConditionSpec(
        required_fields=("stat", "value"),
        optional_fields=(),
        field_rules={"stat": "stat name", "value": "number"},
        validate=lambda condition, context: _validate_stat_compare(condition, context, "stat_lt"),
    ),
    "stat_between": ConditionSpec(
        required_fields=("stat", "min", "max"),
        optional_fields=(),
        field_rules={"stat": "stat name", "min": "number", "max": "number"},
        validate=_validate_stat_between,
    ),
    "day_at_least": ConditionSpec(
        required_fields=("value",),
        optional_fields=(),
        field_rules={"value": "integer day"},
        validate=lambda condition, context: _validate_day_threshold(
            condition, context, "day_at_least"
        ),
    ),
    "day_at_most": ConditionSpec(
        required_fields=("value",),
        optional_fields=(),
        field_rules={"value": "integer day"},
        validate=lambda condition, context: _validate_day_threshold(
            condition, context, "day_at_most"
        ),
    ),
    "time_at_least": ConditionSpec(
        required_fields=("value",),
        optional_fields=(),
        field_rules={"value": "HH:MM time label"},
        validate=_validate_time_at_least,
    ),
    "all_of": ConditionSpec(
        required_fields=("conditions",),
        optional_fields=(),
        field_rules={"conditions": "non-empty list of conditions"},
        validate=lambda condition, context: _validate_nested_list(condition, context, "all_of"),
    ),
    "any_of": ConditionSpec(
        required_fields=("conditions",),
        optional_fields=(),
        field_rules={"conditions": "non-empty list of conditions"},
        validate=lambda condition, context: _validate_nested_list(condition, context, "any_of"),
    ),
    "not": ConditionSpec(
        required_fields=("condition",),
        optional_fields=(),
        field_rules={"condition": "nested condition"},
        validate=_validate_not,
    ),
}

# Nested condition fields walked by the validator.
NESTED_CONDITION_FIELDS: Mapping[str, str] = {
    "all_of": "conditions",
    "any_of": "conditions",
    "not": "condition",
}
