"""List story nodes no playthrough can reach.

Edges come from choice ``next_event`` targets plus the implicit day
rollover: a choice without a target (or with ``resolve_next_day``) can
land on the next day's start node or its hospital recovery node.
"""

import json
import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
DEFAULT_STORY_PATH = REPO_ROOT / "exam_season" / "data" / "exam_week.json"

if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from exam_season.content import DEFAULT_RECOVERY_PATTERN, DEFAULT_START_PATTERN
from exam_season.story_schema import RESOLVE_NEXT_DAY, normalize_nodes


def load_story(path: Path) -> dict:
    with path.open("r", encoding="utf-8") as f:
        return json.load(f)


def _day_entry_points(nodes: dict, day, conventions: dict) -> list:
    if not isinstance(day, int):
        return []
    next_day = day + 1
    start_id = (conventions.get("start_node") or DEFAULT_START_PATTERN).format(day=next_day)
    recovery_id = (conventions.get("recovery_node") or DEFAULT_RECOVERY_PATTERN).format(day=next_day)
    targets = []
    if start_id in nodes:
        targets.append(start_id)
    else:
        for node_id, node in nodes.items():
            if node.get("day") == next_day:
                targets.append(node_id)
                break
    if recovery_id in nodes:
        targets.append(recovery_id)
    return targets


def build_graph(story: dict) -> tuple:
    nodes, _ = normalize_nodes(story.get("nodes"))
    conventions = story.get("conventions") or {}
    graph = {node_id: [] for node_id in nodes}
    missing_targets = []
    for node_id, node in nodes.items():
        for choice in node.get("choices", []) or []:
            target = choice.get("next_event")
            if isinstance(target, str) and target != RESOLVE_NEXT_DAY:
                if target in nodes:
                    graph[node_id].append(target)
                    continue
                missing_targets.append(
                    f"{node_id} -> choice '{choice.get('id')}' targets missing node {target}"
                )
            # Missing targets fall back to the rollover at runtime.
            for rollover_target in _day_entry_points(nodes, node.get("day"), conventions):
                if rollover_target not in graph[node_id]:
                    graph[node_id].append(rollover_target)
    return graph, missing_targets


def traverse_from(start_node: str, graph: dict) -> set:
    if start_node not in graph:
        return set()
    visited = set()
    stack = [start_node]
    while stack:
        current = stack.pop()
        if current in visited:
            continue
        visited.add(current)
        stack.extend(graph.get(current, []))
    return visited


def first_start(story: dict, graph: dict):
    conventions = story.get("conventions") or {}
    start_id = (conventions.get("start_node") or DEFAULT_START_PATTERN).format(day=1)
    if start_id in graph:
        return start_id
    nodes, _ = normalize_nodes(story.get("nodes"))
    for node_id, node in nodes.items():
        if node.get("day") == 1:
            return node_id
    return None


def main() -> None:
    story_path = Path(sys.argv[1]) if len(sys.argv) > 1 else DEFAULT_STORY_PATH
    story = load_story(story_path)
    graph, missing_targets = build_graph(story)

    start = first_start(story, graph)
    all_reached = traverse_from(start, graph) if start else set()
    unreachable = sorted(set(graph.keys()) - all_reached)

    print(f"Story file: {story_path}")
    print(f"Total nodes: {len(graph)}")
    print(f"Reachable nodes: {len(all_reached)}")
    for message in missing_targets:
        print(f"[!] {message}")
    if unreachable:
        print("Unreachable nodes:")
        for node_id in unreachable:
            print(f"  - {node_id}")
    else:
        print("All nodes reachable from the first day.")


if __name__ == "__main__":
    main()
