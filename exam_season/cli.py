#!/usr/bin/env python3
"""
Exam Season: text runner
- Plays a story table in the terminal through the StoryEngine facade.
- Choices are shown only if their conditions pass.
- Autosave after every choice; "continue" resumes the last run.
Usage: exam-season [story.json] [--new] [--debug]
"""

from __future__ import annotations

import argparse
import asyncio
import sys
import textwrap
from pathlib import Path

if __package__ in (None, ""):
    sys.path.insert(0, str(Path(__file__).resolve().parent.parent))
    from exam_season.clock import is_midnight
    from exam_season.conditions import summarize_condition
    from exam_season.content import DEFAULT_STORY_PATH, load_story
    from exam_season.engine import StoryEngine
    from exam_season.settings import load_settings
    from exam_season.stats import STAT_KEYS, format_stats
else:
    from .clock import is_midnight
    from .conditions import summarize_condition
    from .content import DEFAULT_STORY_PATH, load_story
    from .engine import StoryEngine
    from .settings import load_settings
    from .stats import STAT_KEYS, format_stats

LINE_WIDTH = 78


def emit_print(*args, **kwargs) -> None:
    print(*args, **kwargs)


async def read_input(prompt: str = "") -> str:
    return await asyncio.to_thread(input, prompt)


def render_node(engine: StoryEngine, *, debug: bool = False) -> list:
    node = engine.get_current_node() or {}
    emit_print("\n" + "=" * LINE_WIDTH)
    emit_print(f"Day {engine.get_day()} {engine.get_time()} | {node.get('title', engine.content.title)}")
    emit_print("-" * LINE_WIDTH)
    for field in ("description", "narration"):
        body = node.get(field) or ""
        for paragraph in str(body).split("\n"):
            if paragraph.strip():
                for line in textwrap.wrap(paragraph, width=LINE_WIDTH):
                    emit_print(line)
        if body:
            emit_print("")
    emit_print(format_stats(engine.get_stats()))
    emit_print("-" * LINE_WIDTH)
    visible = engine.get_available_choices()
    for idx, choice in enumerate(visible, start=1):
        text = choice.get("text", f"Choice {idx}")
        if debug:
            target = choice.get("next_event") or "next day"
            text = f"{text} (Target: {target} | Req: {summarize_condition(choice.get('condition'))})"
        emit_print(f"  {idx}. {text}")
    emit_print("  S. Save    L. Load    I. Status    H. History    Q. Quit")
    if debug:
        emit_print("  DEBUG: /next, /set <stat> <value>, /flag <name>, /unflag <name>")
    return visible


def show_history(engine: StoryEngine) -> None:
    history = engine.get_history()
    if not history:
        emit_print("No history yet.")
        return
    emit_print("\n=== History ===")
    for idx, entry in enumerate(history, start=1):
        emit_print(f"{idx}. Day {entry.get('day')} | {entry.get('node_id')} -> {entry.get('choice_id')}")


def show_ending(engine: StoryEngine) -> None:
    ending = engine.get_ending() or {"title": engine.get_ending_id(), "description": ""}
    emit_print(f"\n*** Ending reached: {ending.get('title')} ***")
    if ending.get("description"):
        for line in textwrap.wrap(str(ending["description"]), width=LINE_WIDTH):
            emit_print(line)
    exam = engine.get_exam_result()
    if exam is not None:
        if exam.get("crashed"):
            emit_print("You collapsed before finishing the paper.")
        elif exam.get("caught"):
            emit_print("Caught cheating. Exam score: 0/10.")
        else:
            emit_print(f"Exam score: {exam.get('score')}/10 ({exam.get('mode')} paper).")
    emit_print(format_stats(engine.get_stats()))
    for achievement in engine.drain_unlocked_achievements():
        icon = achievement.get("icon") or "*"
        emit_print(f"[Achievement] {icon} {achievement.get('name')}: {achievement.get('description', '')}")


def handle_debug(engine: StoryEngine, raw: str) -> None:
    parts = raw.split()
    command = parts[0].lower()
    if command == "/next":
        if not engine.resolve_next_day():
            emit_print("[!] Could not advance the day.")
        return
    if command == "/set":
        if len(parts) < 3 or parts[1] not in STAT_KEYS:
            emit_print(f"Usage: /set <{'|'.join(STAT_KEYS)}> <value>")
            return
        try:
            value = int(parts[2])
        except ValueError:
            emit_print("Value must be an integer.")
            return
        if not engine.debug_set_stat(parts[1], value):
            emit_print(f"[!] Could not set {parts[1]}.")
            return
        emit_print(f"[#] Debug: {parts[1]} set to {engine.get_stats()[parts[1]]}.")
        return
    if command == "/flag":
        if len(parts) < 2 or not engine.debug_set_flag(parts[1]):
            emit_print("Usage: /flag <name>")
            return
        emit_print(f"[#] Debug: flag '{parts[1]}' set.")
        return
    if command == "/unflag":
        if len(parts) < 2 or not engine.debug_clear_flag(parts[1]):
            emit_print("Usage: /unflag <name> (flag must be set)")
            return
        emit_print(f"[#] Debug: flag '{parts[1]}' cleared.")
        return
    emit_print("Unknown debug command.")


async def play(engine: StoryEngine, *, debug: bool = False) -> None:
    while not engine.is_finished():
        visible = render_node(engine, debug=debug)
        if not visible:
            reason = "Midnight." if is_midnight(engine.get_time()) else "Nothing left to do today."
            emit_print(f"[#] {reason} The day ends.")
            if not engine.resolve_next_day():
                emit_print("[!] The story cannot continue. Exiting.")
                return
            continue

        raw_choice = (await read_input("> ")).strip()
        choice = raw_choice.lower()
        if debug and raw_choice.startswith("/"):
            handle_debug(engine, raw_choice)
            continue
        if choice == "q":
            engine.save()
            emit_print("[Saved] Progress stored. Bye.")
            return
        if choice == "s":
            if engine.save():
                emit_print("[Saved] Progress stored.")
            continue
        if choice == "l":
            if engine.continue_game():
                emit_print("[Loaded] Save restored.")
            else:
                emit_print("[!] No usable save found.")
            continue
        if choice == "i":
            emit_print(format_stats(engine.get_stats()))
            flags = ", ".join(sorted(engine.get_flags())) or "none"
            emit_print(f"Flags: {flags}")
            continue
        if choice == "h":
            show_history(engine)
            continue
        if not choice.isdigit():
            emit_print("Enter a number or S/L/I/H/Q.")
            continue
        idx = int(choice)
        if not (1 <= idx <= len(visible)):
            emit_print("Pick a valid choice number.")
            continue
        if not engine.select_choice(visible[idx - 1]["id"]):
            emit_print("[!] That choice could not be applied.")
    show_ending(engine)


async def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Play an Exam Season story in the terminal.")
    parser.add_argument("story", nargs="?", default=str(DEFAULT_STORY_PATH))
    parser.add_argument("--new", action="store_true", help="Start over instead of continuing.")
    parser.add_argument("--save-dir", help="Directory for saves and achievements.")
    parser.add_argument("--debug", action="store_true", help="Enable debug commands.")
    args = parser.parse_args(argv)

    settings = load_settings()
    if args.save_dir:
        settings.save_dir = args.save_dir
    debug_mode = args.debug or settings.debug

    try:
        content = load_story(args.story, validate=settings.validate_content)
    except (OSError, ValueError) as exc:
        print(f"[!] {exc}", file=sys.stderr)
        return 1

    engine = StoryEngine(content, settings=settings)
    emit_print(f"\n=== {content.title} ===")
    if args.new or not engine.continue_game():
        engine.new_game()
    elif engine.is_finished():
        emit_print("[#] The saved run already ended; starting a new one.")
        engine.new_game()
    else:
        emit_print(f"[Loaded] Continuing on day {engine.get_day()}.")

    await play(engine, debug=debug_mode)
    return 0


def run() -> None:
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        emit_print("\n[Interrupted] Bye.")


if __name__ == "__main__":
    run()
