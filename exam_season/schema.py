"""Shared schema validation utilities for Exam Season story tables."""

from __future__ import annotations

from typing import Any, Iterable, List, Mapping, Sequence

from .clock import is_time_label
from .stats import STAT_KEYS, canonical_stat
from .story_schema import (
    CONDITION_SPECS,
    EFFECT_KEYS,
    EXAM_ACTIONS,
    NESTED_CONDITION_FIELDS,
    RESOLVE_NEXT_DAY,
    format_validation_message,
    is_non_empty_str,
    is_number,
    normalize_nodes,
    path,
)


class ValidationContext:
    """Utility container for accumulating validation errors."""

    def __init__(self) -> None:
        self.errors: List[str] = []

    def add(self, context: str, path_str: str, message: str) -> None:
        self.errors.append(format_validation_message(path_str, context, message))

    def extend_with_path(self, messages: Iterable[str], path_str: str) -> None:
        for message in messages:
            self.errors.append(f"{path_str}: {message}")


def require(condition: bool, context: str, path_str: str, message: str, ctx: ValidationContext) -> None:
    if not condition:
        ctx.add(context, path_str, message)


def _is_list(value: Any) -> bool:
    return isinstance(value, Sequence) and not isinstance(value, (str, bytes, Mapping))


def validate_condition(
    condition: Any, context: str, path_parts: Sequence[object], ctx: ValidationContext
) -> None:
    if condition in (None, {}):
        return
    if callable(condition):
        # In-process content only; nothing to check statically.
        return
    if _is_list(condition):
        if not condition:
            ctx.add(context, path(*path_parts), "condition list must not be empty.")
            return
        for idx, sub in enumerate(condition, start=1):
            validate_condition(sub, f"{context} (entry {idx})", (*path_parts, idx - 1), ctx)
        return
    if not isinstance(condition, Mapping):
        ctx.add(context, path(*path_parts), "condition must be an object or null.")
        return

    cond_type = condition.get("type")
    spec = CONDITION_SPECS.get(cond_type)
    if spec is None:
        ctx.add(context, path(*path_parts, "type"), f"unsupported condition type '{cond_type}'.")
        return
    messages = spec.validate(condition, context)
    ctx.extend_with_path(messages, path(*path_parts))
    if messages:
        return

    nested_field = NESTED_CONDITION_FIELDS.get(cond_type)
    if nested_field is None:
        return
    nested = condition.get(nested_field)
    if _is_list(nested):
        for idx, sub in enumerate(nested, start=1):
            validate_condition(
                sub,
                f"{context} ({cond_type} entry {idx})",
                (*path_parts, nested_field, idx - 1),
                ctx,
            )
    else:
        validate_condition(nested, f"{context} ({cond_type})", (*path_parts, nested_field), ctx)


def validate_effects(
    effects: Any, context: str, path_parts: Sequence[object], ctx: ValidationContext
) -> None:
    if effects is None:
        return
    if not isinstance(effects, Mapping):
        ctx.add(context, path(*path_parts), "'effects' must be an object of stat deltas.")
        return
    for key, value in effects.items():
        name = canonical_stat(str(key))
        if name not in EFFECT_KEYS:
            ctx.add(context, path(*path_parts, key), f"unknown effect '{key}'.")
            continue
        if not is_number(value):
            ctx.add(context, path(*path_parts, key), f"effect '{key}' must be numeric.")


def validate_choice(
    choice: Any,
    node_id: str,
    index: int,
    nodes: Mapping[str, Any],
    path_parts: Sequence[object],
    ctx: ValidationContext,
) -> None:
    context = f"Choice {index} in node '{node_id}'"
    if not isinstance(choice, Mapping):
        ctx.add(context, path(*path_parts), "must be an object.")
        return

    if not is_non_empty_str(choice.get("id")):
        ctx.add(context, path(*path_parts, "id"), "requires a non-empty 'id'.")
    if not is_non_empty_str(choice.get("text")):
        ctx.add(context, path(*path_parts, "text"), "requires non-empty 'text'.")

    target = choice.get("next_event")
    if target is not None:
        if not is_non_empty_str(target):
            ctx.add(
                context,
                path(*path_parts, "next_event"),
                "must use a non-empty string 'next_event' when present.",
            )
        elif target != RESOLVE_NEXT_DAY and target not in nodes:
            ctx.add(
                context,
                path(*path_parts, "next_event"),
                f"targets unknown node '{target}'.",
            )

    flags = choice.get("flags")
    if flags is not None and not is_non_empty_str(flags):
        if not _is_list(flags) or not all(is_non_empty_str(flag) for flag in flags):
            ctx.add(context, path(*path_parts, "flags"), "'flags' must be a flag name or a list of flag names.")

    action = choice.get("exam")
    if action is not None and action not in EXAM_ACTIONS:
        ctx.add(
            context,
            path(*path_parts, "exam"),
            f"'exam' must be one of: {', '.join(EXAM_ACTIONS)}.",
        )

    validate_condition(choice.get("condition"), context, (*path_parts, "condition"), ctx)
    validate_effects(choice.get("effects"), context, (*path_parts, "effects"), ctx)


def _validate_predicate_entries(
    entries: Any, section: str, label_field: str, ctx: ValidationContext
) -> List[str]:
    ids: List[str] = []
    if entries is None:
        return ids
    if not _is_list(entries):
        ctx.add("Story data", path(section), f"'{section}' must be a list in priority order.")
        return ids
    for idx, entry in enumerate(entries):
        context = f"{section[:-1].title()} entry {idx + 1}"
        if not isinstance(entry, Mapping):
            ctx.add(context, path(section, idx), "must be an object.")
            continue
        entry_id = entry.get("id")
        if not is_non_empty_str(entry_id):
            ctx.add(context, path(section, idx, "id"), "requires a non-empty 'id'.")
            continue
        if entry_id in ids:
            ctx.add(context, path(section, idx, "id"), f"duplicate id '{entry_id}'.")
        ids.append(entry_id)
        if not is_non_empty_str(entry.get(label_field)):
            ctx.add(context, path(section, idx, label_field), f"requires non-empty '{label_field}'.")
        if "condition" not in entry or entry.get("condition") in (None, {}, []):
            ctx.add(context, path(section, idx, "condition"), "requires a 'condition'.")
            continue
        validate_condition(entry.get("condition"), context, (section, idx, "condition"), ctx)
    return ids


def _validate_stat_block(block: Any, context: str, path_parts: Sequence[object], ctx: ValidationContext) -> None:
    if block is None:
        return
    if not isinstance(block, Mapping):
        ctx.add(context, path(*path_parts), "must be an object of stat values.")
        return
    for key, value in block.items():
        if canonical_stat(str(key)) not in STAT_KEYS:
            ctx.add(context, path(*path_parts, key), f"unknown stat '{key}'.")
        elif not is_number(value):
            ctx.add(context, path(*path_parts, key), f"stat '{key}' must be numeric.")


def validate_story(story: Mapping[str, Any]) -> List[str]:
    ctx = ValidationContext()

    require(
        is_non_empty_str(story.get("title")),
        "Story data",
        path("title"),
        "must include a non-empty 'title'.",
        ctx,
    )
    require(
        "nodes" in story,
        "Story data",
        path("nodes"),
        "must include a 'nodes' section.",
        ctx,
    )
    max_day = story.get("max_day", 7)
    if isinstance(max_day, bool) or not isinstance(max_day, int) or max_day < 1:
        ctx.add("Story data", path("max_day"), "'max_day' must be a positive integer.")
        max_day = None

    default_time = story.get("default_time")
    if default_time is not None and not is_time_label(default_time):
        ctx.add("Story data", path("default_time"), "'default_time' must be an HH:MM label.")

    _validate_stat_block(story.get("initial_stats"), "Story data", ("initial_stats",), ctx)

    conventions = story.get("conventions")
    if conventions is not None:
        if not isinstance(conventions, Mapping):
            ctx.add("Story data", path("conventions"), "'conventions' must be an object.")
        else:
            for key in ("start_node", "recovery_node"):
                value = conventions.get(key)
                if value is not None and (not is_non_empty_str(value) or "{day}" not in value):
                    ctx.add(
                        "Conventions",
                        path("conventions", key),
                        f"'{key}' must be a pattern containing '{{day}}'.",
                    )

    hospital = story.get("hospitalization")
    if hospital is not None:
        if not isinstance(hospital, Mapping):
            ctx.add("Story data", path("hospitalization"), "'hospitalization' must be an object.")
        else:
            _validate_stat_block(hospital.get("set"), "Hospitalization", ("hospitalization", "set"), ctx)
            _validate_stat_block(
                hospital.get("delta"), "Hospitalization", ("hospitalization", "delta"), ctx
            )
            reset = hospital.get("reset_sleepless")
            if reset is not None and not isinstance(reset, bool):
                ctx.add(
                    "Hospitalization",
                    path("hospitalization", "reset_sleepless"),
                    "'reset_sleepless' must be true or false.",
                )
            flag = hospital.get("flag")
            if flag is not None and not is_non_empty_str(flag):
                ctx.add("Hospitalization", path("hospitalization", "flag"), "'flag' must be a string.")

    exam = story.get("exam")
    if exam is not None:
        if not isinstance(exam, Mapping):
            ctx.add("Story data", path("exam"), "'exam' must be an object.")
        else:
            for key in ("cheat_flag", "attempt_flag", "caught_flag", "success_flag", "crash_flag"):
                value = exam.get(key)
                if value is not None and not is_non_empty_str(value):
                    ctx.add("Exam", path("exam", key), f"'{key}' must be a flag name.")
            for key in ("bonus_flags", "penalty_flags"):
                value = exam.get(key)
                if value is not None and (
                    not _is_list(value) or not all(is_non_empty_str(flag) for flag in value)
                ):
                    ctx.add("Exam", path("exam", key), f"'{key}' must be a list of flag names.")

    nodes, _node_errors = normalize_nodes(story.get("nodes"), ctx)

    for node_id, node in nodes.items():
        context = f"Node '{node_id}'"
        day = node.get("day")
        if isinstance(day, bool) or not isinstance(day, int):
            ctx.add(context, path("nodes", node_id, "day"), "requires an integer 'day'.")
        elif day < 1 or (max_day is not None and day > max_day):
            ctx.add(context, path("nodes", node_id, "day"), f"day {day} is outside 1..{max_day}.")
        time_label = node.get("time")
        if time_label is not None and not is_time_label(time_label):
            ctx.add(context, path("nodes", node_id, "time"), f"invalid time label '{time_label}'.")
        validate_condition(node.get("condition"), context, ("nodes", node_id, "condition"), ctx)

        choices = node.get("choices")
        if choices is None:
            continue
        if not _is_list(choices):
            ctx.add(context, path("nodes", node_id, "choices"), "choices must be provided as a list.")
            continue
        seen_choice_ids = set()
        for index, choice in enumerate(choices, start=1):
            validate_choice(
                choice,
                node_id,
                index,
                nodes,
                ("nodes", node_id, "choices", index - 1),
                ctx,
            )
            choice_id = choice.get("id") if isinstance(choice, Mapping) else None
            if is_non_empty_str(choice_id):
                if choice_id in seen_choice_ids:
                    ctx.add(
                        context,
                        path("nodes", node_id, "choices", index - 1, "id"),
                        f"duplicate choice id '{choice_id}'.",
                    )
                seen_choice_ids.add(choice_id)

    ending_ids = _validate_predicate_entries(story.get("endings"), "endings", "title", ctx)
    _validate_predicate_entries(story.get("achievements"), "achievements", "name", ctx)

    default_ending = story.get("default_ending")
    if default_ending is not None:
        if isinstance(default_ending, str):
            if default_ending in ending_ids:
                ctx.add(
                    "Story data",
                    path("default_ending"),
                    "default ending must not also be a conditional ending.",
                )
        elif not isinstance(default_ending, Mapping) or not is_non_empty_str(default_ending.get("id")):
            ctx.add(
                "Story data",
                path("default_ending"),
                "'default_ending' must be an id or an object with an 'id'.",
            )

    return ctx.errors
