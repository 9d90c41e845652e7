#!/usr/bin/env python3
"""
py rotation_cli.py -c 2 -p 14

  ―  doubles court rotation, interactive CLI

Usage:
    python rotation_cli.py -c 3 -p 16 --seed 7
        -c / --courts  : number of courts
        -p / --players : numbered demo players to seed the roster with

Type a command after the prompt ("h" lists them); the board is
reprinted after every accepted command. Ctrl-C quits.
"""

from typing import Callable, List, Optional, Tuple
import argparse
import logging
import random

from coach_commentary import get_match_analysis
from rotation_engine import COURT, QUEUE, CourtRotation, RotationConfig, TIER_SCORES

HELP = """\
  a <court>                 send the next queued match to a court
  f <court>                 finish the match on a court (records games)
  x <court>                 clear a court without recording
  m <player> <c#|q#> <1-4>  move a player into a seat (swaps with the occupant)
  b <player> <q#> <1-4>     queue a resting player (refused if already playing or queued)
  fill <c#|q#> [1-4]        auto-fill a whole match or one seat
  sub <c#|q#> <out> <in>    substitute a player
  add <name> <level> [male|female]
  rm <player>               remove from the roster
  p <player>                pause / resume
  ai <court>                coach commentary for a court
  s                         show the board
  reset                     clear all stats and the schedule
  q                         quit"""


# ─────────────────────────────────────────────────────────
#  Helpers
# ─────────────────────────────────────────────────────────
def seed_roster(engine: CourtRotation, count: int, rng: random.Random):
    for i in range(1, count + 1):
        level = str(rng.randint(1, 18))
        gender = "female" if i % 2 == 0 else "male"
        engine.add_player(f"P{i}", level=level, gender=gender)


def find_player(engine: CourtRotation, token: str):
    if token in engine.players:
        return engine.players[token]
    token = token.lower()
    return next((p for p in engine.players.values() if p.name.lower() == token), None)


def parse_target(engine: CourtRotation, token: str) -> Optional[Tuple[str, object]]:
    """'c2' -> court 2, 'q1' -> first queued match."""
    token = token.lower()
    if len(token) < 2 or not token[1:].isdigit():
        return None
    n = int(token[1:])
    if token[0] == "c" and engine.court(n) is not None:
        return COURT, n
    if token[0] == "q" and 1 <= n <= len(engine.queue):
        return QUEUE, engine.queue[n - 1].id
    return None


def _ask(prompt: str) -> bool:
    return input(prompt).strip().lower() in ("y", "yes")


def print_board(engine: CourtRotation):
    print()
    for court in engine.courts:
        if court.current_match:
            print(f"{court.name}: {engine.describe(court.current_match)}")
        else:
            print(f"{court.name}: (idle)")
    for i, match in enumerate(engine.queue, start=1):
        label = "draft" if match.is_draft else engine.describe(match)
        print(f"  Q{i}: {label}")

    busy = engine.on_court_ids() | engine.queued_ids()
    bench: List[str] = []
    for p in engine.players.values():
        if p.id in busy:
            continue
        bench.append(f"{p.name}(zz)" if p.is_paused else p.name)
    if bench:
        print("Rest: " + ", ".join(bench))
    print("-" * 32)


# ─────────────────────────────────────────────────────────
#  Commands
# ─────────────────────────────────────────────────────────
def run_command(engine: CourtRotation, line: str,
                confirm: Callable[[str], bool] = _ask) -> Tuple[bool, str]:
    args = line.split()
    if not args:
        return False, ""
    cmd, rest = args[0].lower(), args[1:]

    if cmd in ("a", "f", "x", "ai"):
        if len(rest) != 1 or not rest[0].isdigit():
            return False, f"usage: {cmd} <court>"
        court_id = int(rest[0])
        if cmd == "a":
            return engine.assign_next_match(court_id)
        if cmd == "f":
            return engine.finish_match(court_id)
        if cmd == "x":
            return engine.clear_court(court_id)
        return True, get_match_analysis(engine.court_lineup(court_id))

    if cmd in ("m", "b"):
        if len(rest) != 3 or not rest[2].isdigit():
            return False, f"usage: {cmd} <player> <c#|q#> <1-4>"
        player = find_player(engine, rest[0])
        target = parse_target(engine, rest[1])
        if player is None or target is None:
            return False, "unknown player or target"
        kind, container_id = target
        slot = int(rest[2]) - 1
        if kind == QUEUE:
            return engine.drop_into_queue(player.id, container_id, slot, from_bench=cmd == "b")
        if cmd == "b":
            return False, "b only queues players; use m for courts"
        return engine.drop_player(player.id, container_id, slot)

    if cmd == "fill":
        if not rest or len(rest) > 2:
            return False, "usage: fill <c#|q#> [1-4]"
        target = parse_target(engine, rest[0])
        if target is None:
            return False, "unknown target"
        match = engine.match_at(*target)
        if match is None:
            return False, "nothing to fill there"
        if len(rest) == 2:
            if not rest[1].isdigit():
                return False, "usage: fill <c#|q#> [1-4]"
            return engine.auto_fill_slot(match.id, int(rest[1]) - 1)
        return engine.auto_fill_match(match.id)

    if cmd == "sub":
        if len(rest) != 3:
            return False, "usage: sub <c#|q#> <out> <in>"
        target = parse_target(engine, rest[0])
        out_player = find_player(engine, rest[1])
        in_player = find_player(engine, rest[2])
        if target is None or out_player is None or in_player is None:
            return False, "unknown target or player"
        return engine.substitute(target[0], target[1], out_player.id, in_player.id)

    if cmd == "add":
        if len(rest) not in (2, 3):
            return False, "usage: add <name> <level> [male|female]"
        gender = rest[2].lower() if len(rest) == 3 else "male"
        try:
            engine.add_player(rest[0], level=rest[1], gender=gender)
        except ValueError as e:
            return False, str(e)
        return True, ""

    if cmd in ("rm", "p"):
        if len(rest) != 1:
            return False, f"usage: {cmd} <player>"
        player = find_player(engine, rest[0])
        if player is None:
            return False, "unknown player"
        if cmd == "rm":
            return engine.remove_player(player.id)
        return engine.toggle_pause(player.id)

    if cmd == "reset":
        if not confirm("Reset all games and the schedule? [y/N]: "):
            return False, "reset cancelled"
        engine.reset()
        return True, ""

    if cmd == "s":
        return True, ""
    if cmd == "h":
        return False, HELP
    return False, f"unknown command {cmd!r} (h for help)"


# ─────────────────────────────────────────────────────────
#  CLI
# ─────────────────────────────────────────────────────────
def main():
    parser = argparse.ArgumentParser(description="Doubles court rotation (interactive)")
    parser.add_argument("-c", "--courts", type=int, default=2, help="number of courts")
    parser.add_argument("-p", "--players", type=int, default=0, help="numbered demo players to add")
    parser.add_argument("--seed", type=int, default=None, help="random seed")
    parser.add_argument("--debug", action="store_true", help="log scheduling decisions")
    args = parser.parse_args()

    logging.basicConfig(level=logging.DEBUG if args.debug else logging.INFO,
                        format='%(asctime)s - %(levelname)s - %(message)s')

    engine = CourtRotation(RotationConfig(court_count=args.courts, random_seed=args.seed))
    seed_roster(engine, args.players, random.Random(args.seed))
    print(f"Ready. Levels are 1-18 or one of: {', '.join(TIER_SCORES)}. 'h' for help, Ctrl+C to quit.")
    print_board(engine)

    try:
        while True:
            line = input("> ").strip()
            if line.lower() == "q":
                break
            ok, msg = run_command(engine, line)
            if msg:
                print(msg)
            if ok:
                print_board(engine)
    except (KeyboardInterrupt, EOFError):
        pass
    print("\nRotation closed. Good games!")


if __name__ == "__main__":
    main()
