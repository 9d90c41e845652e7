"""
Tests for the match lifecycle and roster edits.

Covers:
- Assigning the queue head to a court and recording history
- Finishing and clearing courts
- Reset
- Add / update / remove / pause players
"""
import pytest

from helpers import court_match, queue_match
from rotation_engine import RotationConfig, level_score


class TestAssignNextMatch:
    """Tests for assign_next_match."""

    def test_full_match_recorded(self, manual_engine, clock):
        queue_match(manual_engine, "q1", ["p01", "p02", "p04", "p03"])
        ok, _ = manual_engine.assign_next_match(1)
        assert ok
        match = manual_engine.court(1).current_match
        assert match.id == "q1"
        assert match.court_id == 1
        assert match.start_time == clock.now
        assert manual_engine.queue == []
        assert manual_engine.history == ["|p01-p02|vs|p03-p04|"]

    def test_strict_fifo_even_for_drafts(self, manual_engine):
        queue_match(manual_engine, "draft-1", [None] * 4)
        queue_match(manual_engine, "q2", ["p01", "p02", "p03", "p04"])
        manual_engine.assign_next_match(2)
        assert manual_engine.court(2).current_match.id == "draft-1"
        assert [m.id for m in manual_engine.queue] == ["q2"]
        assert manual_engine.history == []

    def test_partial_match_not_recorded(self, manual_engine):
        queue_match(manual_engine, "q1", ["p01", "p02", None, "p03"])
        manual_engine.assign_next_match(1)
        assert manual_engine.history == []

    def test_history_trimmed_oldest_first(self, manual_engine):
        for i in range(25):
            queue_match(manual_engine, f"m{i}", [f"a{i}", f"b{i}", f"c{i}", f"d{i}"])
            manual_engine.assign_next_match(1)
            manual_engine.clear_court(1)
        assert len(manual_engine.history) == 20
        assert manual_engine.history[0] == "|a5-b5|vs|c5-d5|"
        assert manual_engine.history[-1] == "|a24-b24|vs|c24-d24|"

    def test_declines(self, manual_engine):
        assert manual_engine.assign_next_match(1)[0] is False
        queue_match(manual_engine, "q1", ["p01", "p02", "p03", "p04"])
        assert manual_engine.assign_next_match(5)[0] is False
        court_match(manual_engine, 1, ["p05", "p06", "p07", "p08"])
        ok, msg = manual_engine.assign_next_match(1)
        assert not ok and "Court 1" in msg
        assert len(manual_engine.queue) == 1

    def test_queue_refills_after_assign(self, make_engine):
        engine = make_engine(courts=2, players=10)
        assert len(engine.queue) == 6
        engine.assign_next_match(1)
        engine.assign_next_match(2)
        assert engine.target_queue_size() == 4
        assert all(c.current_match.is_full for c in engine.courts)
        assert len(engine.queue) == 5
        assert all(m.is_draft for m in engine.queue)


class TestFinishAndClear:
    """Tests for finish_match and clear_court."""

    def test_finish_updates_stats(self, manual_engine, clock):
        court_match(manual_engine, 1, ["p01", "p02", "p03", "p04"])
        clock.advance()
        ok, _ = manual_engine.finish_match(1)
        assert ok
        for pid in ("p01", "p02", "p03", "p04"):
            assert manual_engine.players[pid].games_played == 1
            assert manual_engine.players[pid].last_match_time == clock.now
        assert manual_engine.players["p05"].games_played == 0
        assert manual_engine.court(1).current_match is None

    def test_finish_skips_empty_seats(self, manual_engine):
        court_match(manual_engine, 1, ["p01", None, "p03", "p04"])
        manual_engine.finish_match(1)
        assert manual_engine.players["p02"].games_played == 0
        assert manual_engine.players["p01"].games_played == 1

    def test_finish_idle_declined(self, manual_engine):
        assert manual_engine.finish_match(1)[0] is False
        assert manual_engine.finish_match(9)[0] is False

    def test_clear_keeps_stats(self, manual_engine):
        court_match(manual_engine, 1, ["p01", "p02", "p03", "p04"])
        ok, _ = manual_engine.clear_court(1)
        assert ok
        assert manual_engine.court(1).current_match is None
        assert all(p.games_played == 0 for p in manual_engine.players.values())
        assert manual_engine.clear_court(1)[0] is False

    def test_finished_players_wait_behind_rested(self, make_engine):
        engine = make_engine(courts=2, players=10)
        engine.assign_next_match(1)
        engine.assign_next_match(2)
        engine.finish_match(1)
        assert sorted(engine.queue[0].participants) == ["p01", "p02", "p09", "p10"]
        assert len(engine.queue) == 6


class TestReset:
    """Tests for reset."""

    def test_reset_clears_everything(self, manual_engine):
        manual_engine.players["p01"].games_played = 4
        manual_engine.players["p01"].last_match_time = 99.0
        court_match(manual_engine, 1, ["p01", "p02", "p03", "p04"])
        queue_match(manual_engine, "q1", ["p05", "p06", "p07", "p08"])
        manual_engine.history = ["|p01-p02|vs|p03-p04|"]
        manual_engine.reset()
        assert manual_engine.players["p01"].games_played == 0
        assert manual_engine.players["p01"].last_match_time is None
        assert all(c.current_match is None for c in manual_engine.courts)
        assert manual_engine.queue == []
        assert manual_engine.history == []

    def test_reset_refills_queue(self, make_engine):
        engine = make_engine(players=8)
        engine.assign_next_match(1)
        engine.reset()
        assert engine.history == []
        assert len(engine.queue) == 6
        assert sum(m.is_full for m in engine.queue) == 2


class TestRoster:
    """Tests for roster edits."""

    def test_add_player_defaults(self, make_engine):
        engine = make_engine()
        player = engine.add_player("Ann", level="pro", gender="female")
        assert player.id in engine.players
        assert player.games_played == 0
        assert player.last_match_time is None
        assert player.level_score == 18

    @pytest.mark.parametrize("name,level,gender", [
        ("", "8", "male"),
        ("Bob", "19", "male"),
        ("Bob", "wizard", "male"),
        ("Bob", "8", "other"),
    ])
    def test_add_player_validation(self, make_engine, name, level, gender):
        engine = make_engine()
        with pytest.raises(ValueError):
            engine.add_player(name, level=level, gender=gender)
        assert engine.players == {}

    def test_duplicate_id_rejected(self, make_engine):
        engine = make_engine(players=1)
        with pytest.raises(ValueError):
            engine.add_player("Again", player_id="p01")

    def test_signature_delimiter_rejected_in_id(self, make_engine):
        engine = make_engine(players=4)
        with pytest.raises(ValueError):
            engine.add_player("Pipe", player_id="a|vs|b")
        assert len(engine.players) == 4

    def test_update_player(self, manual_engine):
        assert manual_engine.update_player("p01", name="Zed", level="advanced", gender="female") == (True, "")
        player = manual_engine.players["p01"]
        assert (player.name, player.level_score, player.gender) == ("Zed", 14, "female")
        assert manual_engine.update_player("p01", level="0")[0] is False
        assert manual_engine.update_player("ghost", name="x")[0] is False

    def test_remove_purges_queue_seat(self, manual_engine):
        queue_match(manual_engine, "m", ["p01", "p02", "p05", "p03"])
        ok, _ = manual_engine.remove_player("p05")
        assert ok
        assert manual_engine.queue[0].slots == ["p01", "p02", None, "p03"]
        assert "p05" not in manual_engine.players

    def test_remove_purges_court_seat(self, manual_engine):
        court_match(manual_engine, 1, ["p01", "p02", "p03", "p04"])
        manual_engine.remove_player("p02")
        assert manual_engine.court(1).current_match.slots == ["p01", None, "p03", "p04"]
        manual_engine.finish_match(1)
        assert manual_engine.players["p01"].games_played == 1

    def test_remove_unknown(self, manual_engine):
        assert manual_engine.remove_player("ghost")[0] is False

    def test_pause_excludes_from_ranking(self, manual_engine):
        manual_engine.toggle_pause("p01")
        assert "p01" not in [p.id for p in manual_engine.ranked_candidates()]
        manual_engine.toggle_pause("p01")
        assert manual_engine.ranked_candidates()[0].id == "p01"


class TestLevelsAndConfig:
    """Tests for level scores and config validation."""

    @pytest.mark.parametrize("level,score", [
        ("1", 1), ("18", 18), ("beginner", 3), ("Intermediate", 8), ("advanced", 14), ("pro", 18), ("?", 1),
    ])
    def test_level_score(self, level, score):
        assert level_score(level) == score

    @pytest.mark.parametrize("kwargs", [
        {"court_count": 0},
        {"repeat_window": 30},
        {"queue_target_busy": -1},
        {"solver_workers": 0},
    ])
    def test_config_validation(self, kwargs):
        with pytest.raises(ValueError):
            RotationConfig(**kwargs)
