from pathlib import Path

import pytest

from exam_season.content import StoryContent
from exam_season.engine import StoryEngine
from exam_season.settings import Settings


def make_story() -> dict:
    return {
        "title": "Engine Test",
        "max_day": 2,
        "default_time": "07:30",
        "nodes": [
            {
                "id": "day-1-start",
                "day": 1,
                "time": "08:00",
                "choices": [
                    {"id": "study", "text": "Study", "effects": {"knowledge": 40, "time": 3}, "next_event": "day-1-evening"},
                    {"id": "skip", "text": "Skip", "flags": ["skipped"], "next_event": "resolve_next_day"},
                ],
            },
            {
                "id": "day-1-evening",
                "day": 1,
                "time": "19:00",
                "choices": [{"id": "sleep", "text": "Sleep", "effects": {"sleepless_count": 0}}],
            },
            {
                "id": "day-2-start",
                "day": 2,
                "choices": [{"id": "exam", "text": "Sit the exam", "flags": ["exam_written"]}],
            },
        ],
        "endings": [
            {"id": "honours", "title": "Honours", "condition": {"type": "stat_gte", "stat": "knowledge", "value": 90}}
        ],
        "default_ending": {"id": "normal_end", "title": "Just Another Exam"},
        "achievements": [
            {"id": "finisher", "name": "Finisher", "condition": {"type": "flag_set", "flag": "exam_written"}},
            {"id": "slacker", "name": "Slacker", "condition": {"type": "flag_set", "flag": "skipped"}},
        ],
    }


def make_engine(tmp_path: Path, story=None, **settings_kwargs):
    messages = []
    settings = Settings(save_dir=str(tmp_path), **settings_kwargs)
    content = StoryContent.from_dict(story or make_story(), print_func=messages.append)
    engine = StoryEngine(content, settings=settings, print_func=messages.append)
    return engine, messages


def test_initial_state(tmp_path: Path) -> None:
    engine, _ = make_engine(tmp_path)
    assert engine.get_day() == 1
    assert engine.get_time() == "08:00"
    assert engine.get_current_node()["id"] == "day-1-start"
    assert engine.get_stats()["knowledge"] == 50
    assert engine.get_flags() == {}
    assert engine.get_history() == []
    assert not engine.is_finished()
    assert engine.get_ending() is None
    assert [choice["id"] for choice in engine.get_available_choices()] == ["study", "skip"]


def test_reads_return_copies(tmp_path: Path) -> None:
    engine, _ = make_engine(tmp_path)
    engine.get_stats()["knowledge"] = 0
    engine.get_flags()["hacked"] = True
    assert engine.get_stats()["knowledge"] == 50
    assert engine.get_flags() == {}


def test_choice_autosaves_and_continue_restores(tmp_path: Path) -> None:
    engine, _ = make_engine(tmp_path)
    assert engine.select_choice("study")
    assert engine.get_current_node()["id"] == "day-1-evening"
    assert engine.get_time() == "19:00"

    resumed, _ = make_engine(tmp_path)
    assert resumed.continue_game()
    assert resumed.snapshot() == engine.snapshot()


def test_autosave_can_be_disabled(tmp_path: Path) -> None:
    engine, _ = make_engine(tmp_path, autosave=False)
    engine.select_choice("study")
    assert not engine.save_manager.exists()
    assert engine.save()
    assert engine.save_manager.exists()


def test_continue_without_save(tmp_path: Path) -> None:
    engine, _ = make_engine(tmp_path)
    assert engine.continue_game() is False
    assert engine.get_current_node()["id"] == "day-1-start"


def test_unknown_choice_is_refused(tmp_path: Path) -> None:
    engine, _ = make_engine(tmp_path)
    before = engine.snapshot()
    assert engine.select_choice("fly") is False
    assert engine.snapshot() == before
    assert not engine.save_manager.exists()


def test_condition_callbacks_cannot_reenter(tmp_path: Path) -> None:
    story = make_story()
    results = []
    holder = {}

    def reenter(state) -> bool:
        engine = holder["engine"]
        results.append(engine.processing)
        results.append(engine.select_choice("skip"))
        results.append(engine.resolve_next_day())
        return True

    story["nodes"][0]["choices"].append({"id": "peek", "text": "Peek", "condition": reenter, "next_event": "day-1-evening"})
    engine, _ = make_engine(tmp_path, story)
    holder["engine"] = engine

    assert engine.select_choice("peek")
    assert results == [True, False, False]
    assert engine.get_day() == 1
    assert engine.get_current_node()["id"] == "day-1-evening"
    assert not engine.processing


def test_exception_in_action_releases_the_guard(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    engine, messages = make_engine(tmp_path)

    def explode(state, choice_id):
        raise RuntimeError("resolver exploded")

    monkeypatch.setattr(engine.resolver, "apply_choice", explode)
    assert engine.select_choice("study") is False
    assert not engine.processing
    assert any("resolver exploded" in message for message in messages)

    monkeypatch.undo()
    assert engine.select_choice("study")


def test_debug_edits_go_through_the_guard(tmp_path: Path) -> None:
    story = make_story()
    results = []
    holder = {}

    def reenter(state) -> bool:
        engine = holder["engine"]
        results.append(engine.debug_set_stat("knowledge", 99))
        results.append(engine.debug_set_flag("cheater"))
        results.append(engine.debug_clear_flag("skipped"))
        return True

    story["nodes"][0]["choices"].append({"id": "peek", "text": "Peek", "condition": reenter, "next_event": "day-1-evening"})
    engine, _ = make_engine(tmp_path, story)
    holder["engine"] = engine

    assert engine.select_choice("peek")
    assert results == [False, False, False]
    assert engine.get_stats()["knowledge"] == 50
    assert "cheater" not in engine.get_flags()


def test_debug_edits(tmp_path: Path) -> None:
    engine, _ = make_engine(tmp_path)
    assert engine.debug_set_stat("knowledge", 150)
    assert engine.get_stats()["knowledge"] == 100
    assert engine.debug_set_stat("sleeplessCount", 1)
    assert engine.get_stats()["sleepless_count"] == 1
    assert engine.debug_set_stat("charisma", 5) is False
    assert engine.debug_set_stat("health", "lots") is False
    assert engine.debug_set_flag("lucky")
    assert engine.get_flags() == {"lucky": True}
    assert engine.debug_clear_flag("lucky")
    assert engine.debug_clear_flag("lucky") is False
    assert engine.get_flags() == {}


def test_duplicate_midnight_trigger_is_ignored(tmp_path: Path) -> None:
    engine, _ = make_engine(tmp_path)
    assert engine.resolve_next_day(from_day=1)
    assert engine.get_day() == 2
    assert engine.get_time() == "07:30"
    assert engine.resolve_next_day(from_day=1) is False
    assert engine.get_day() == 2
    assert engine.get_current_node()["id"] == "day-2-start"


def test_finishing_unlocks_achievements_and_freezes_state(tmp_path: Path) -> None:
    engine, _ = make_engine(tmp_path)
    engine.select_choice("skip")
    engine.select_choice("exam")

    assert engine.is_finished()
    assert engine.get_ending_id() == "normal_end"
    assert engine.get_ending()["title"] == "Just Another Exam"
    assert engine.get_available_choices() == []

    unlocked = engine.drain_unlocked_achievements()
    assert [entry["id"] for entry in unlocked] == ["finisher", "slacker"]
    assert engine.drain_unlocked_achievements() == []
    assert engine.achievements.seen_endings == ["normal_end"]

    frozen = engine.snapshot()
    assert engine.select_choice("exam") is False
    assert engine.resolve_next_day() is False
    assert engine.snapshot() == frozen


def test_achievements_are_not_unlocked_twice(tmp_path: Path) -> None:
    first, _ = make_engine(tmp_path)
    first.select_choice("skip")
    first.select_choice("exam")
    first.drain_unlocked_achievements()

    second, _ = make_engine(tmp_path)
    assert second.new_game()
    second.select_choice("study")
    second.select_choice("sleep")
    second.select_choice("exam")
    assert second.get_ending_id() == "honours"
    assert second.drain_unlocked_achievements() == []


def test_new_game_resets_state_and_deletes_save(tmp_path: Path) -> None:
    engine, _ = make_engine(tmp_path)
    engine.select_choice("skip")
    assert engine.save_manager.exists()

    assert engine.new_game()
    assert engine.get_day() == 1
    assert engine.get_flags() == {}
    assert not engine.save_manager.exists()


def test_continue_with_missing_node_falls_back(tmp_path: Path) -> None:
    engine, _ = make_engine(tmp_path)
    engine.select_choice("study")

    story = make_story()
    story["nodes"][1]["id"] = "day-1-night"
    resumed, messages = make_engine(tmp_path, story)
    assert resumed.continue_game()
    assert resumed.get_current_node()["id"] == "day-1-start"
    assert resumed.get_stats()["knowledge"] == 90
    assert any("day-1-evening" in message for message in messages)
