"""Builders shared by the rotation tests."""
from rotation_engine import Match


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float = 600.0):
        self.now += seconds


def all_seated_ids(engine):
    ids = []
    for c in engine.courts:
        if c.current_match:
            ids.extend(c.current_match.participants)
    for m in engine.queue:
        ids.extend(m.participants)
    return ids


def court_match(engine, court_id, slots, match_id=None):
    match = Match(id=match_id or f"court-{court_id}", court_id=court_id, slots=list(slots))
    engine.court(court_id).current_match = match
    return match


def queue_match(engine, match_id, slots):
    match = Match(id=match_id, slots=list(slots))
    engine.queue.append(match)
    return match
