#!/usr/bin/env python3
"""
rotation_engine.py

  ―  doubles court rotation engine

Keeps a fixed set of courts busy from a rotating pool of players:

    engine = CourtRotation(RotationConfig(court_count=2))
    engine.add_player("Ann", level="12")
    ...
    engine.assign_next_match(1)     # queue head -> court 1
    engine.finish_match(1)          # court 1 -> idle, stats updated

The queue refills itself after every accepted change. Manual placement
(drop, auto-fill, substitution) always goes through ``place`` so a player
never sits in two slots at once.
"""

from collections import defaultdict
from dataclasses import dataclass, field
from itertools import combinations
from ortools.sat.python import cp_model
from typing import Callable, Dict, List, NamedTuple, Optional, Sequence, Set, Tuple, Union
import logging
import random
import time
import uuid

logger = logging.getLogger(__name__)

SLOTS_PER_MATCH = 4
COURT = "court"
QUEUE = "queue"

TIER_SCORES = {
    "beginner": 3,
    "intermediate": 8,
    "advanced": 14,
    "pro": 18,
}
MIN_LEVEL, MAX_LEVEL = 1, 18
GENDERS = ("male", "female")

# the three ways to split four players into two pairs
PARTITIONS = (
    ((0, 1), (2, 3)),
    ((0, 2), (1, 3)),
    ((0, 3), (1, 2)),
)
SCALE = 100  # CP-SAT only takes integer coefficients


# ─────────────────────────────────────────────────────────
#  Data model
# ─────────────────────────────────────────────────────────
def level_score(level) -> int:
    """Numeric skill for a level string: "1".."18" or a tier name."""
    try:
        return int(level)
    except (TypeError, ValueError):
        return TIER_SCORES.get(str(level).lower(), 1)


def is_valid_level(level) -> bool:
    if str(level).lower() in TIER_SCORES:
        return True
    try:
        return MIN_LEVEL <= int(level) <= MAX_LEVEL
    except (TypeError, ValueError):
        return False


def _new_id(prefix: str = "") -> str:
    token = uuid.uuid4().hex
    return f"{prefix}-{token[:12]}" if prefix else token


@dataclass
class Player:
    id: str
    name: str
    level: str = "8"
    gender: str = "male"
    games_played: int = 0
    last_match_time: Optional[float] = None
    is_paused: bool = False

    @property
    def level_score(self) -> int:
        return level_score(self.level)


@dataclass
class Match:
    """Four seats; ``None`` marks an empty seat.

    Seat order is team A player 1, team A player 2, team B player 1,
    team B player 2. ``court_id`` stays 0 while the match is queued.
    """

    id: str
    court_id: int = 0
    slots: List[Optional[str]] = field(default_factory=lambda: [None] * SLOTS_PER_MATCH)
    start_time: float = 0.0

    @property
    def team_a(self) -> Tuple[Optional[str], Optional[str]]:
        return self.slots[0], self.slots[1]

    @property
    def team_b(self) -> Tuple[Optional[str], Optional[str]]:
        return self.slots[2], self.slots[3]

    @property
    def participants(self) -> List[str]:
        return [pid for pid in self.slots if pid is not None]

    @property
    def empty_slots(self) -> List[int]:
        return [i for i, pid in enumerate(self.slots) if pid is None]

    @property
    def is_draft(self) -> bool:
        return all(pid is None for pid in self.slots)

    @property
    def is_full(self) -> bool:
        return all(pid is not None for pid in self.slots)


@dataclass
class Court:
    id: int
    name: str
    current_match: Optional[Match] = None

    @property
    def is_busy(self) -> bool:
        return self.current_match is not None


class Location(NamedTuple):
    kind: str                       # COURT or QUEUE
    container_id: Union[int, str]   # court id or queued match id
    slot: int


@dataclass
class RotationConfig:
    court_count: int = 2
    history_limit: int = 20
    repeat_window: int = 10
    repeat_penalty: int = 50
    level_weight: int = 2
    jitter_max: float = 5.0
    queue_target_busy: int = 4
    queue_target_idle: int = 6
    queue_spacing: float = 1_000_000
    solver_time_limit: float = 2.0
    solver_workers: int = 8
    random_seed: Optional[int] = None
    auto_reconcile: bool = True

    def __post_init__(self):
        if self.court_count <= 0:
            raise ValueError("court_count must be positive")
        if self.history_limit < self.repeat_window or self.repeat_window < 0:
            raise ValueError("repeat_window must be between 0 and history_limit")
        if self.queue_target_busy < 0 or self.queue_target_idle < 0:
            raise ValueError("queue targets cannot be negative")
        if self.jitter_max < 0 or self.queue_spacing <= 0:
            raise ValueError("jitter_max and queue_spacing must be positive")
        if self.solver_workers <= 0 or self.solver_time_limit <= 0:
            raise ValueError("solver limits must be positive")


# ─────────────────────────────────────────────────────────
#  Pair signatures / pairing
# ─────────────────────────────────────────────────────────
def pair_signature(a: str, b: str) -> str:
    return "-".join(sorted((a, b)))


def match_signature(match: Match) -> str:
    pair_a = pair_signature(*match.team_a)
    pair_b = pair_signature(*match.team_b)
    return f"|{pair_a}|vs|{pair_b}|"


def recent_pairs(history: Sequence[str], window: int) -> Set[str]:
    """Pair signatures found in the last ``window`` history entries."""
    pairs: Set[str] = set()
    if window <= 0:
        return pairs
    for sig in history[-window:]:
        pairs.update(part for part in sig.strip("|").split("|vs|") if part)
    return pairs


TieBreak = Callable[[Sequence[Tuple[Tuple[str, str], Tuple[str, str]]]], List[float]]


def random_tie_break(rng: Optional[random.Random] = None, upper: float = 5.0) -> TieBreak:
    rng = rng or random.Random()

    def _jitter(partitions):
        return [rng.random() * upper for _ in partitions]

    return _jitter


def ordered_tie_break(partitions) -> List[float]:
    """Deterministic jitter: rank of each partition's sorted signature."""
    keys = [tuple(sorted(pair_signature(*pair) for pair in part)) for part in partitions]
    order = sorted(range(len(keys)), key=lambda i: keys[i])
    jitter = [0.0] * len(keys)
    for rank, i in enumerate(order):
        jitter[i] = rank * 0.01
    return jitter


def partition_penalty(team_a: Sequence[Player], team_b: Sequence[Player],
                      seen_pairs: Set[str], config: RotationConfig) -> int:
    """Penalty of one split without the tie-break term."""
    level_diff = abs(sum(p.level_score for p in team_a) - sum(p.level_score for p in team_b))
    repeated = (pair_signature(team_a[0].id, team_a[1].id) in seen_pairs
                or pair_signature(team_b[0].id, team_b[1].id) in seen_pairs)
    return level_diff * config.level_weight + (config.repeat_penalty if repeated else 0)


def choose_teams(players: Sequence[Player], seen_pairs: Set[str], config: RotationConfig,
                 tie_break: TieBreak) -> Tuple[Tuple[Player, Player], Tuple[Player, Player]]:
    """Split four players into the two teams with the lowest penalty."""
    if len(players) != SLOTS_PER_MATCH:
        raise ValueError("choose_teams needs exactly four players")

    ids = [p.id for p in players]
    partitions = [((ids[a], ids[b]), (ids[c], ids[d])) for (a, b), (c, d) in PARTITIONS]
    jitter = [min(max(j, 0.0), config.jitter_max) for j in tie_break(partitions)]
    levels = [p.level_score for p in players]

    model = cp_model.CpModel()
    y = {(p, t): model.NewBoolVar(f"y_{p}_{t}") for p in range(4) for t in range(2)}
    for p in range(4):
        model.Add(y[p, 0] + y[p, 1] == 1)
    for t in range(2):
        model.Add(sum(y[p, t] for p in range(4)) == 2)
    model.Add(y[0, 0] == 1)

    pair_vars = {}
    for i, j in combinations(range(4), 2):
        z_ij_t = []
        for t in range(2):
            z = model.NewBoolVar(f"z_{i}_{j}_{t}")
            z_ij_t.append(z)
            model.Add(z <= y[i, t])
            model.Add(z <= y[j, t])
            model.Add(z >= y[i, t] + y[j, t] - 1)
        pair = model.NewBoolVar(f"pair_{i}_{j}")
        model.Add(pair == sum(z_ij_t))
        pair_vars[(i, j)] = pair

    diff = model.NewIntVar(0, sum(levels), "level_diff")
    model.AddAbsEquality(diff, sum(levels[p] * y[p, 0] for p in range(4))
                         - sum(levels[p] * y[p, 1] for p in range(4)))

    repeat = model.NewBoolVar("repeat")
    for (i, j), var in pair_vars.items():
        if pair_signature(ids[i], ids[j]) in seen_pairs:
            model.Add(repeat >= var)

    objective = [diff * (config.level_weight * SCALE), repeat * (config.repeat_penalty * SCALE)]
    for k, ((_, partner), _) in enumerate(PARTITIONS):
        objective.append(pair_vars[(0, partner)] * int(round(jitter[k] * SCALE)))
    model.Minimize(sum(objective))

    solver = cp_model.CpSolver()
    solver.parameters.max_time_in_seconds = config.solver_time_limit
    solver.parameters.num_search_workers = config.solver_workers
    status = solver.Solve(model)
    if status not in (cp_model.OPTIMAL, cp_model.FEASIBLE):
        raise RuntimeError("Could not split players into teams.")

    team_a = [players[p] for p in range(4) if solver.BooleanValue(y[p, 0])]
    team_b = [players[p] for p in range(4) if solver.BooleanValue(y[p, 1])]
    if logger.isEnabledFor(logging.DEBUG):
        for k, ((a, b), (c, d)) in enumerate(PARTITIONS):
            pen = partition_penalty((players[a], players[b]), (players[c], players[d]), seen_pairs, config)
            logger.debug("split %s/%s vs %s/%s penalty=%d jitter=%.2f", players[a].name,
                         players[b].name, players[c].name, players[d].name, pen, jitter[k])
    return (team_a[0], team_a[1]), (team_b[0], team_b[1])


# ─────────────────────────────────────────────────────────
#  Engine
# ─────────────────────────────────────────────────────────
class CourtRotation:
    def __init__(self, config: Optional[RotationConfig] = None,
                 clock: Callable[[], float] = time.time,
                 tie_break: Optional[TieBreak] = None):
        self.config = config or RotationConfig()
        self.clock = clock
        self.rng = random.Random(self.config.random_seed)
        self.tie_break = tie_break or random_tie_break(self.rng, self.config.jitter_max)

        self.players: Dict[str, Player] = {}
        self.courts: List[Court] = [
            Court(id=c, name=f"Court {c}") for c in range(1, self.config.court_count + 1)
        ]
        self.queue: List[Match] = []
        self.history: List[str] = []

    # ── roster ──
    def add_player(self, name: str, level="8", gender: str = "male",
                   player_id: Optional[str] = None) -> Player:
        name = name.strip()
        if not name:
            raise ValueError("Player name cannot be empty.")
        if not is_valid_level(level):
            raise ValueError(f"Unknown level {level!r}.")
        if gender not in GENDERS:
            raise ValueError(f"Gender must be one of {', '.join(GENDERS)}.")
        player_id = player_id or _new_id()
        # "|" delimits history signatures
        if "|" in player_id:
            raise ValueError("Player id cannot contain '|'.")
        if player_id in self.players:
            raise ValueError(f"Player id {player_id} already exists.")

        player = Player(id=player_id, name=name, level=str(level), gender=gender)
        self.players[player_id] = player
        logger.info("added %s (level %s)", name, player.level)
        self._after_change()
        return player

    def update_player(self, player_id: str, name: Optional[str] = None, level=None,
                      gender: Optional[str] = None) -> Tuple[bool, str]:
        player = self.players.get(player_id)
        if player is None:
            return False, "Unknown player."
        if name is not None and not name.strip():
            return False, "Player name cannot be empty."
        if level is not None and not is_valid_level(level):
            return False, f"Unknown level {level!r}."
        if gender is not None and gender not in GENDERS:
            return False, f"Gender must be one of {', '.join(GENDERS)}."

        if name is not None:
            player.name = name.strip()
        if level is not None:
            player.level = str(level)
        if gender is not None:
            player.gender = gender
        self._after_change()
        return True, ""

    def remove_player(self, player_id: str) -> Tuple[bool, str]:
        """Drop a player from the roster and empty every seat they held."""
        player = self.players.pop(player_id, None)
        if player is None:
            return False, "Unknown player."
        for match in self._all_matches():
            match.slots = [None if pid == player_id else pid for pid in match.slots]
        logger.info("removed %s", player.name)
        self._after_change()
        return True, ""

    def toggle_pause(self, player_id: str) -> Tuple[bool, str]:
        player = self.players.get(player_id)
        if player is None:
            return False, "Unknown player."
        player.is_paused = not player.is_paused
        logger.info("%s %s", player.name, "paused" if player.is_paused else "back")
        self._after_change()
        return True, ""

    # ── lookups ──
    def court(self, court_id) -> Optional[Court]:
        return next((c for c in self.courts if c.id == court_id), None)

    def queued_match(self, match_id: str) -> Optional[Match]:
        return next((m for m in self.queue if m.id == match_id), None)

    def find_match(self, match_id: str) -> Optional[Tuple[str, Union[int, str], Match]]:
        for c in self.courts:
            if c.current_match is not None and c.current_match.id == match_id:
                return COURT, c.id, c.current_match
        match = self.queued_match(match_id)
        if match is not None:
            return QUEUE, match.id, match
        return None

    def match_at(self, kind: str, container_id) -> Optional[Match]:
        if kind == COURT:
            c = self.court(container_id)
            return c.current_match if c else None
        if kind == QUEUE:
            return self.queued_match(container_id)
        return None

    def lineup(self, match: Optional[Match]) -> List[Optional[Player]]:
        if match is None:
            return [None] * SLOTS_PER_MATCH
        return [self.players.get(pid) if pid else None for pid in match.slots]

    def court_lineup(self, court_id) -> List[Optional[Player]]:
        c = self.court(court_id)
        return self.lineup(c.current_match if c else None)

    def locate(self, player_id: str) -> Optional[Location]:
        """Court seats first, then queue seats; ``None`` means the bench."""
        for c in self.courts:
            if c.current_match is not None and player_id in c.current_match.slots:
                return Location(COURT, c.id, c.current_match.slots.index(player_id))
        for m in self.queue:
            if player_id in m.slots:
                return Location(QUEUE, m.id, m.slots.index(player_id))
        return None

    def player_location(self, player_id: str) -> Optional[str]:
        loc = self.locate(player_id)
        if loc is None:
            return None
        if loc.kind == COURT:
            return self.court(loc.container_id).name
        index = next(i for i, m in enumerate(self.queue) if m.id == loc.container_id)
        return f"Queue {index + 1}"

    def on_court_ids(self) -> Set[str]:
        return {pid for c in self.courts if c.current_match for pid in c.current_match.participants}

    def queued_ids(self) -> Set[str]:
        return {pid for m in self.queue for pid in m.participants}

    def available_count(self) -> int:
        busy = self.on_court_ids() | self.queued_ids()
        return sum(1 for p in self.players.values() if not p.is_paused and p.id not in busy)

    # ── fairness ──
    def projected_state(self) -> Tuple[Dict[str, int], Dict[str, float]]:
        """Game counts and last-play times as if every active and queued match had run."""
        games: Dict[str, int] = defaultdict(int)
        last: Dict[str, float] = defaultdict(float)
        for p in self.players.values():
            games[p.id] = p.games_played
            last[p.id] = p.last_match_time or 0

        for c in self.courts:
            if c.current_match:
                for pid in c.current_match.participants:
                    games[pid] += 1

        now = self.clock()
        for index, m in enumerate(self.queue):
            simulated = now + (index + 1) * self.config.queue_spacing
            for pid in m.participants:
                games[pid] += 1
                last[pid] = simulated
        return dict(games), dict(last)

    def ranked_candidates(self) -> List[Player]:
        busy = self.on_court_ids() | self.queued_ids()
        games, last = self.projected_state()
        pool = [p for p in self.players.values() if not p.is_paused and p.id not in busy]
        return sorted(pool, key=lambda p: (games[p.id], last[p.id]))

    def target_queue_size(self) -> int:
        if all(c.is_busy for c in self.courts):
            return self.config.queue_target_busy
        return self.config.queue_target_idle

    # ── queue maintenance ──
    def build_match(self, four: Sequence[Player]) -> Match:
        seen = recent_pairs(self.history, self.config.repeat_window)
        (a, b), (c, d) = choose_teams(four, seen, self.config, self.tie_break)
        return Match(id=_new_id(QUEUE), slots=[a.id, b.id, c.id, d.id])

    def replenish(self) -> bool:
        """One maintenance step; returns True if the queue changed."""
        if len(self.players) < SLOTS_PER_MATCH:
            return False
        target = self.target_queue_size()
        draft_idx = next((i for i, m in enumerate(self.queue) if m.is_draft), None)
        candidates = self.ranked_candidates()

        if len(candidates) < SLOTS_PER_MATCH:
            if len(self.queue) < target:
                self.queue.append(Match(id=_new_id("draft")))
                logger.debug("queue: draft appended (%d idle)", len(candidates))
                return True
            return False

        if draft_idx is None and len(self.queue) >= target:
            return False
        match = self.build_match(candidates[:SLOTS_PER_MATCH])
        if draft_idx is not None:
            self.queue[draft_idx] = match
            logger.debug("queue: draft %d filled", draft_idx + 1)
        else:
            self.queue.append(match)
            logger.debug("queue: match appended at %d", len(self.queue))
        return True

    def reconcile(self) -> int:
        """Run maintenance steps until the queue is stable."""
        steps = 0
        while self.replenish():
            steps += 1
        return steps

    def _after_change(self):
        if self.config.auto_reconcile:
            self.reconcile()

    # ── move / swap ──
    def _place(self, player_id: str, kind: str, container_id, slot: int) -> Tuple[bool, str]:
        if not isinstance(slot, int) or not 0 <= slot < SLOTS_PER_MATCH:
            return False, f"Slot {slot} is out of range."
        if player_id not in self.players:
            return False, "Unknown player."

        court = None
        if kind == COURT:
            court = self.court(container_id)
            if court is None:
                return False, f"Unknown court {container_id}."
            target = court.current_match
        elif kind == QUEUE:
            target = self.queued_match(container_id)
            if target is None:
                return False, "That match is no longer queued."
        else:
            return False, f"Unknown location {kind!r}."

        source = self.locate(player_id)
        if source == Location(kind, container_id, slot):
            return True, ""

        if target is None:
            target = Match(id=_new_id("manual"), court_id=court.id, start_time=self.clock())
            court.current_match = target

        displaced = target.slots[slot]
        target.slots[slot] = player_id
        if source is not None:
            self.match_at(source.kind, source.container_id).slots[source.slot] = displaced
        logger.debug("placed %s at %s %s/%d (from %s)", self.players[player_id].name, kind,
                     container_id, slot, "bench" if source is None else source.kind)
        return True, ""

    def place(self, player_id: str, kind: str, container_id, slot: int) -> Tuple[bool, str]:
        """Put a player into a seat, swapping whoever sat there into the vacated seat."""
        ok, msg = self._place(player_id, kind, container_id, slot)
        if ok:
            self._after_change()
        return ok, msg

    def drop_player(self, player_id: str, court_id: int, slot: int) -> Tuple[bool, str]:
        return self.place(player_id, COURT, court_id, slot)

    def drop_into_queue(self, player_id: str, match_id: str, slot: int,
                        from_bench: bool = False) -> Tuple[bool, str]:
        if from_bench:
            player = self.players.get(player_id)
            if player is None:
                return False, "Unknown player."
            if player_id in self.on_court_ids():
                return False, f"{player.name} is playing on a court."
            if player_id in self.queued_ids():
                return False, f"{player.name} is already queued."
        return self.place(player_id, QUEUE, match_id, slot)

    def auto_fill_slot(self, match_id: str, slot: int) -> Tuple[bool, str]:
        found = self.find_match(match_id)
        if found is None:
            return False, "Unknown match."
        kind, container_id, match = found
        if not isinstance(slot, int) or not 0 <= slot < SLOTS_PER_MATCH:
            return False, f"Slot {slot} is out of range."
        if match.slots[slot] is not None:
            return False, "That seat is taken."
        candidates = self.ranked_candidates()
        if not candidates:
            return False, "No players available."
        return self.place(candidates[0].id, kind, container_id, slot)

    def auto_fill_match(self, match_id: str) -> Tuple[bool, str]:
        found = self.find_match(match_id)
        if found is None:
            return False, "Unknown match."
        kind, container_id, match = found
        empty = match.empty_slots
        if not empty:
            return False, "Match is already full."
        candidates = self.ranked_candidates()
        if not candidates:
            return False, "No players available."
        for slot, player in zip(empty, candidates):
            self._place(player.id, kind, container_id, slot)
        self._after_change()
        return True, ""

    def substitute(self, kind: str, container_id, outgoing_id: str,
                   incoming_id: str) -> Tuple[bool, str]:
        match = self.match_at(kind, container_id)
        if match is None or outgoing_id not in match.slots:
            return False, "Player is not in that match."
        if incoming_id not in self.players:
            return False, "Unknown player."
        return self.place(incoming_id, kind, container_id, match.slots.index(outgoing_id))

    # ── match lifecycle ──
    def assign_next_match(self, court_id: int) -> Tuple[bool, str]:
        court = self.court(court_id)
        if court is None:
            return False, f"Unknown court {court_id}."
        if court.is_busy:
            return False, f"{court.name} is still playing."
        if not self.queue:
            return False, "Queue is empty."

        match = self.queue.pop(0)
        if match.is_full:
            self.history.append(match_signature(match))
            self.history = self.history[-self.config.history_limit:]
        match.court_id = court.id
        match.start_time = self.clock()
        court.current_match = match
        logger.info("%s: %s", court.name, self.describe(match))
        self._after_change()
        return True, ""

    def finish_match(self, court_id: int) -> Tuple[bool, str]:
        court = self.court(court_id)
        if court is None:
            return False, f"Unknown court {court_id}."
        if not court.is_busy:
            return False, f"{court.name} is idle."
        now = self.clock()
        for pid in court.current_match.participants:
            player = self.players.get(pid)
            if player is not None:
                player.games_played += 1
                player.last_match_time = now
        logger.info("%s finished: %s", court.name, self.describe(court.current_match))
        court.current_match = None
        self._after_change()
        return True, ""

    def clear_court(self, court_id: int) -> Tuple[bool, str]:
        court = self.court(court_id)
        if court is None:
            return False, f"Unknown court {court_id}."
        if not court.is_busy:
            return False, f"{court.name} is idle."
        logger.info("%s cleared", court.name)
        court.current_match = None
        self._after_change()
        return True, ""

    def reset(self):
        """Zero every stat and empty courts, queue and history."""
        for p in self.players.values():
            p.games_played = 0
            p.last_match_time = None
        for c in self.courts:
            c.current_match = None
        self.queue = []
        self.history = []
        logger.info("session reset")
        self._after_change()

    # ── helpers ──
    def _all_matches(self) -> List[Match]:
        return [c.current_match for c in self.courts if c.current_match] + list(self.queue)

    def describe(self, match: Match) -> str:
        names = [p.name if p else "___" for p in self.lineup(match)]
        return f"{names[0]}-{names[1]}  vs  {names[2]}-{names[3]}"
