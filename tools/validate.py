#!/usr/bin/env python3
"""Validate Exam Season story data for common authoring mistakes."""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any, Dict, List, Mapping, Sequence

REPO_ROOT = Path(__file__).resolve().parents[1]
DEFAULT_STORY = REPO_ROOT / "exam_season" / "data" / "exam_week.json"

if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from exam_season.content import DEFAULT_MAX_DAY, DEFAULT_START_PATTERN
from exam_season.schema import validate_story
from exam_season.story_schema import CONDITION_SPECS, normalize_nodes, path


def load_json(path: Path) -> Dict[str, Any]:
    with path.open("r", encoding="utf-8") as handle:
        return json.load(handle)


def _is_gated(condition: Any) -> bool:
    return condition not in (None, {}, [])


def analyze_dead_ends(story: Mapping[str, Any]) -> List[str]:
    """Warn about places a player can get stuck or a day cannot start."""
    nodes, _ = normalize_nodes(story.get("nodes"))
    warnings: List[str] = []
    for node_id, node in nodes.items():
        choices = node.get("choices") or []
        if not choices:
            warnings.append(
                f"{path('nodes', node_id, 'choices')}: node has no choices; the day ends as soon as it is reached."
            )
            continue
        if all(isinstance(choice, Mapping) and _is_gated(choice.get("condition")) for choice in choices):
            warnings.append(
                f"{path('nodes', node_id, 'choices')}: every choice is conditional; "
                "some states may see no options."
            )

    max_day = story.get("max_day", DEFAULT_MAX_DAY)
    conventions = story.get("conventions") or {}
    pattern = conventions.get("start_node") or DEFAULT_START_PATTERN
    if isinstance(max_day, int):
        for day in range(1, max_day + 1):
            start_id = pattern.format(day=day)
            if start_id in nodes:
                continue
            if any(node.get("day") == day for node in nodes.values()):
                warnings.append(f"{path('nodes')}: day {day} has no '{start_id}' node; the first node of the day is used.")
            else:
                warnings.append(f"{path('nodes')}: day {day} has no nodes; the story ends when it is reached.")
    return warnings


def describe_conditions() -> List[str]:
    """Render the condition reference used in the authoring notes."""
    lines: List[str] = []
    for name, spec in sorted(CONDITION_SPECS.items()):
        fields = ", ".join(
            f"{field} ({spec.field_rules.get(field, 'any')})" for field in spec.required_fields
        )
        optional = ", ".join(spec.optional_fields)
        line = f"{name}: {fields}"
        if optional:
            line = f"{line}; optional: {optional}"
        lines.append(line)
    return lines


def parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Validate Exam Season story content.")
    parser.add_argument(
        "story_path",
        nargs="?",
        default=str(DEFAULT_STORY),
        help="Path to the story JSON file.",
    )
    parser.add_argument(
        "--conditions",
        action="store_true",
        help="Print the supported condition types and exit.",
    )
    return parser.parse_args(argv)


def main(argv: Sequence[str]) -> None:
    args = parse_args(argv[1:])
    if args.conditions:
        for line in describe_conditions():
            print(line)
        return
    story_path = Path(args.story_path).resolve()
    try:
        story = load_json(story_path)
    except json.JSONDecodeError as exc:
        print(f"Failed to parse JSON from {story_path}: {exc}")
        sys.exit(1)
    if not isinstance(story, dict):
        print(f"Story data in {story_path} must be a JSON object.")
        sys.exit(1)

    errors = validate_story(story)
    if errors:
        print("Validation failed (path: message):")
        for err in errors:
            print(f" - {err}")
        sys.exit(1)

    warnings = analyze_dead_ends(story)
    if warnings:
        print("Dead-end warnings (path: message):")
        for warning in warnings:
            print(f" - {warning}")

    print(f"Validation passed for {story_path}.")


if __name__ == "__main__":
    main(sys.argv)
