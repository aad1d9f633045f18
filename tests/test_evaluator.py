from exam_season.content import StoryContent
from exam_season.evaluator import evaluate_achievements, evaluate_ending
from exam_season.state import GameState


def build_content(**overrides) -> StoryContent:
    story = {
        "title": "Endings",
        "nodes": [{"id": "day-1-start", "day": 1, "choices": []}],
        "endings": [
            {"id": "collapse", "title": "Collapse", "condition": {"type": "stat_lte", "stat": "health", "value": 0}},
            {"id": "top", "title": "Top", "condition": {"type": "stat_gte", "stat": "knowledge", "value": 80}},
            {"id": "pass", "title": "Pass", "condition": {"type": "stat_gte", "stat": "knowledge", "value": 50}},
        ],
        "achievements": [
            {"id": "bookworm", "name": "Bookworm", "condition": {"type": "stat_gte", "stat": "knowledge", "value": 80}},
            {"id": "night_owl", "name": "Night Owl", "condition": {"type": "flag_set", "flag": "all_nighter"}},
            {"id": "broke", "name": "Broke", "condition": {"type": "stat_lte", "stat": "money", "value": 0}},
        ],
    }
    story.update(overrides)
    return StoryContent.from_dict(story)


def test_first_matching_ending_wins() -> None:
    content = build_content()
    state = GameState(stats={"knowledge": 90, "health": 0})
    assert evaluate_ending(content, state)["id"] == "collapse"
    state.stats["health"] = 40
    assert evaluate_ending(content, state)["id"] == "top"


def test_ending_selection_is_deterministic() -> None:
    content = build_content()
    state = GameState(stats={"knowledge": 60})
    results = {evaluate_ending(content, state)["id"] for _ in range(10)}
    assert results == {"pass"}


def test_default_ending_when_nothing_matches() -> None:
    content = build_content()
    ending = evaluate_ending(content, GameState(stats={"knowledge": 10}))
    assert ending["id"] == "normal_end"


def test_raising_condition_is_skipped() -> None:
    def broken(state):
        raise RuntimeError("bad content")

    endings = [
        {"id": "broken", "title": "Broken", "condition": broken},
        {"id": "fallback", "title": "Fallback", "condition": lambda state: True},
    ]
    messages = []
    content = build_content(endings=endings)
    ending = evaluate_ending(content, GameState(), print_func=messages.append)
    assert ending["id"] == "fallback"
    assert any("broken" in message for message in messages)


def test_achievements_skip_already_unlocked() -> None:
    content = build_content()
    state = GameState(stats={"knowledge": 85})
    state.set_flag("all_nighter")

    unlocked = evaluate_achievements(content, state)
    assert [entry["id"] for entry in unlocked] == ["bookworm", "night_owl"]

    again = evaluate_achievements(content, state, already_unlocked={"bookworm"})
    assert [entry["id"] for entry in again] == ["night_owl"]
    assert evaluate_achievements(content, state, already_unlocked={"bookworm", "night_owl"}) == []
