"""
Tests for engine/ball_processor.py
Covers counters, ledgers, extras, wickets, strike, buffers and rejection paths.
"""

import pytest

from conftest import BOWLERS, bowl, bowl_over, next_batter
from engine import lifecycle
from engine.ball_processor import assign_batsmen, assign_bowler
from engine.errors import (
    BowlerNotAvailable,
    InningsNotActive,
    InvalidDelivery,
    MatchNotActive,
    NoActiveBatter,
    OverInProgress,
    ValidationError,
)


class TestLegalDeliveries:
    """Counters and batting/bowling figures for ordinary balls."""

    def test_first_ball_starts_match(self, make_match):
        match = make_match()
        assert match.status == "upcoming"
        bowl(match, runs=1)
        assert match.status == "in-progress"
        assert match.current.current_state.current_bowler == "B1"

    def test_runs_and_boundaries(self, make_match):
        match = make_match()
        bowl(match, runs=4)
        bowl(match, runs=6)
        innings = match.current
        striker = innings.batting["A1"]
        assert innings.total_runs == 10
        assert innings.balls == 2
        assert striker.runs == 10 and striker.balls == 2
        assert striker.fours == 1 and striker.sixes == 1
        assert innings.bowling["B1"].runs == 10
        assert innings.current_state.current_ball == 2

    def test_over_completion(self, make_match):
        """Sixth legal ball closes the over and clears the bowler slot."""
        match = make_match()
        for _ in range(5):
            event = bowl(match, runs=0)
            assert event.over_completed is False
        event = bowl(match, runs=2)
        state = match.current.current_state
        assert event.over_completed is True
        assert state.current_over == 1
        assert state.current_ball == 0
        assert state.current_bowler is None
        assert match.bowler_rotation.last_bowler == "B1"
        assert match.current.overs_notation == "1"
        assert match.current.bowling["B1"].overs == 1.0

    def test_overs_notation_mid_over(self, make_match):
        match = make_match()
        bowl_over(match, "B1")
        bowl_over(match, "B2")
        bowl_over(match, "B1")
        for _ in range(4):
            bowl(match, runs=0, bowler="B2")
        assert match.current.balls == 22
        assert match.current.overs_notation == "3.4"
        assert match.current.overs == 3.4

    def test_maiden_counted(self, make_match):
        match = make_match()
        bowl_over(match, "B1")
        assert match.current.bowling["B1"].maidens == 1
        assert match.current.over_history[0].is_maiden

    def test_byes_keep_maiden(self, make_match):
        """Byes are not charged to the bowler, so the over is still a maiden."""
        match = make_match()
        bowl(match, runs=0, extras={"type": "bye", "runs": 4})
        for _ in range(5):
            bowl(match, runs=0)
        assert match.current.total_runs == 4
        assert match.current.bowling["B1"].runs == 0
        assert match.current.bowling["B1"].maidens == 1

    def test_ball_record_returned(self, make_match):
        match = make_match()
        event = bowl(match, runs=4)
        assert event.legal is True
        assert event.record.label == "4"
        assert event.record.batsman_id == "A1"
        assert event.to_dict()["ball"]["sequence"] == 1


class TestExtras:
    """Wides, no-balls, byes and leg-byes."""

    def test_wide_worth_one(self, make_match):
        """A wide adds a run but no ball for the innings, bowler or batter."""
        match = make_match()
        event = bowl(match, runs=0, extras={"type": "wide", "runs": 1})
        innings = match.current
        assert event.legal is False
        assert innings.total_runs == 1
        assert innings.balls == 0
        assert innings.bowling["B1"].runs == 1
        assert innings.bowling["B1"].balls == 0
        assert innings.bowling["B1"].wides == 1
        assert innings.batting["A1"].balls == 0
        assert innings.extras.wides == 1 and innings.extras.total == 1
        assert innings.current_state.current_ball == 0
        assert event.record.label == "1wd"

    def test_no_ball_with_boundary(self, make_match):
        """Bat runs off a no-ball go to the batter; the bowler is charged everything."""
        match = make_match()
        bowl(match, runs=4, extras={"type": "no-ball", "runs": 1})
        innings = match.current
        assert innings.total_runs == 5
        assert innings.balls == 0
        assert innings.batting["A1"].runs == 4
        assert innings.batting["A1"].balls == 0
        assert innings.batting["A1"].fours == 1
        assert innings.bowling["B1"].runs == 5
        assert innings.bowling["B1"].no_balls == 1
        assert innings.extras.no_balls == 1

    def test_leg_byes_are_legal(self, make_match):
        match = make_match()
        bowl(match, runs=0, extras={"type": "leg-bye", "runs": 1})
        innings = match.current
        assert innings.balls == 1
        assert innings.batting["A1"].balls == 1
        assert innings.bowling["B1"].runs == 0
        assert innings.extras.leg_byes == 1
        # only bat runs move the strike
        assert innings.current_state.on_strike == "A1"

    def test_seven_deliveries_in_over_with_a_wide(self, make_match):
        match = make_match()
        bowl(match, runs=0, extras={"type": "wide", "runs": 1})
        for _ in range(5):
            bowl(match, runs=0)
        assert match.current.current_state.current_ball == 5
        event = bowl(match, runs=0)
        assert event.over_completed is True
        assert match.current.over_history[0].labels == ["1wd", "0", "0", "0", "0", "0", "0"]


class TestStrike:
    def test_single_swaps(self, make_match):
        match = make_match()
        bowl(match, runs=1)
        state = match.current.current_state
        assert state.on_strike == "A2" and state.off_strike == "A1"

    def test_six_even_deliveries(self, make_match):
        """After an even-run over the same two batters remain, ends swapped by the over change."""
        match = make_match()
        bowl_over(match, "B1", runs=(0, 2, 4, 6, 2, 0))
        state = match.current.current_state
        assert {state.on_strike, state.off_strike} == {"A1", "A2"}
        assert state.on_strike == "A2"

    def test_single_off_last_ball(self, make_match):
        """Odd-run swap then over swap: the same batter keeps strike."""
        match = make_match()
        bowl_over(match, "B1", runs=(0, 0, 0, 0, 0, 1))
        assert match.current.current_state.on_strike == "A1"

    def test_parity_rule(self, make_match):
        """Striker follows (odd-run balls + completed overs) mod 2."""
        match = make_match()
        sequence = [1, 0, 3, 2, 1, 4, 1, 1, 0, 6, 2, 3, 1, 0]
        bowlers = ["B1"] * 6 + ["B2"] * 6 + ["B1"] * 2
        for runs, bowler in zip(sequence, bowlers):
            bowl(match, runs=runs, bowler=bowler)
        flips = sum(1 for r in sequence if r % 2) + match.current.balls // 6
        expected = "A1" if flips % 2 == 0 else "A2"
        assert match.current.current_state.on_strike == expected


class TestWickets:
    def test_bowled_vacates_striker(self, make_match):
        match = make_match()
        bowl(match, runs=0, is_wicket=True, dismissal_type="bowled")
        innings = match.current
        out = innings.batting["A1"]
        assert innings.wickets == 1
        assert out.is_out and out.dismissal_type == "bowled"
        assert out.dismissed_by == "B1"
        assert innings.bowling["B1"].wickets == 1
        assert innings.current_state.on_strike is None
        assert innings.current_state.off_strike == "A2"

    def test_next_ball_needs_new_batter(self, make_match):
        match = make_match()
        bowl(match, runs=0, is_wicket=True, dismissal_type="caught", fielder_id="B4")
        with pytest.raises(NoActiveBatter):
            bowl(match, runs=0)
        next_batter(match, "A3")
        bowl(match, runs=1)
        assert match.current.batting["A3"].runs == 1

    def test_run_out_not_credited_to_bowler(self, make_match):
        """Non-striker run out going for a second: bowler wicket count unchanged."""
        match = make_match()
        bowl(
            match, runs=1, is_wicket=True, dismissal_type="run out",
            dismissed_player_id="A2", fielder_id="B5",
        )
        innings = match.current
        assert innings.wickets == 1
        assert innings.batting["A2"].is_out
        assert innings.batting["A2"].fielder_id == "B5"
        assert innings.batting["A1"].runs == 1
        assert innings.bowling["B1"].wickets == 0
        # no crossing on a wicket ball; the incoming batter takes the non-striker's end
        assert innings.current_state.on_strike == "A1"
        assert innings.current_state.off_strike is None

    def test_striker_run_out_on_single_keeps_slot(self, make_match):
        """The striker run out on a single leaves the striker slot empty."""
        match = make_match()
        bowl(match, runs=1, is_wicket=True, dismissal_type="run out", fielder_id="B5")
        state = match.current.current_state
        assert state.on_strike is None
        assert state.off_strike == "A2"
        next_batter(match, "A3")
        assert state.on_strike == "A3"

    def test_wicket_on_last_ball_still_changes_ends(self, make_match):
        """The end-of-over swap still applies on a wicket ball, odd runs or not."""
        match = make_match()
        bowl_over(match, "B1", runs=(0, 0, 0, 0, 0))
        bowl(match, runs=1, is_wicket=True, dismissal_type="run out", dismissed_player_id="A2")
        state = match.current.current_state
        assert state.on_strike is None
        assert state.off_strike == "A1"

    def test_tenth_wicket_ends_innings(self, make_match):
        """Scenario A: 150/9 after 110 balls, a wicket closes the innings at 18.3 overs."""
        match = make_match()
        match.status = "in-progress"
        innings = match.current
        innings.sequence = 120
        innings.total_runs, innings.wickets, innings.balls = 150, 9, 110
        state = innings.current_state
        state.current_over, state.current_ball, state.current_bowler = 18, 2, "B1"

        event = bowl(match, runs=0, is_wicket=True, dismissal_type="lbw")
        assert event.innings_completed is True
        assert innings.is_completed
        assert innings.wickets == 10
        assert innings.overs_notation == "18.3"
        assert match.status == "in-progress"

        next_batter(match, "A11")
        with pytest.raises(InningsNotActive):
            bowl(match, runs=1)
        assert innings.balls == 111

    def test_overs_exhausted_ends_innings(self, make_match):
        match = make_match(total_overs=1)
        bowl_over(match, "B1")
        assert match.current.is_completed
        with pytest.raises(InningsNotActive):
            bowl(match, runs=0, bowler="B2")


class TestBuffers:
    def test_current_over_cleared_each_over(self, make_match):
        match = make_match()
        bowl_over(match, "B1")
        assert match.current.current_over_balls == []
        bowl(match, runs=2, bowler="B2")
        assert [b.label for b in match.current.current_over_balls] == ["2"]

    def test_recent_balls_window(self, make_match):
        match = make_match()
        bowl_over(match, "B1")
        bowl_over(match, "B2")
        bowl(match, runs=0, bowler="B1")
        bowl(match, runs=0, bowler="B1")
        bowl(match, runs=0, bowler="B1")
        recent = match.current.recent_balls
        assert len(recent) == 12
        assert recent[0].sequence == 4
        assert recent[-1].sequence == 15


class TestRejections:
    """A rejected ball must leave the aggregate untouched."""

    def test_wrong_batter_rejected(self, make_match):
        match = make_match()
        before = match.to_dict()
        with pytest.raises(InvalidDelivery, match="not on strike"):
            bowl(match, runs=1, batsman_id="A2")
        assert match.to_dict() == before

    def test_bowler_cannot_change_mid_over(self, make_match):
        match = make_match()
        bowl(match, runs=0)
        before = match.to_dict()
        with pytest.raises(InvalidDelivery, match="bowling this over"):
            bowl(match, runs=0, bowler="B2")
        assert match.to_dict() == before

    def test_batter_cannot_bowl(self, make_match):
        match = make_match()
        with pytest.raises(InvalidDelivery):
            bowl(match, runs=0, bowler="A2")
        assert match.status == "upcoming"

    def test_bowler_outside_roster(self, make_match):
        match = make_match()
        with pytest.raises(InvalidDelivery, match="bowling side"):
            bowl(match, runs=0, bowler="X1", roster=BOWLERS)

    def test_dismissed_player_must_be_at_crease(self, make_match):
        match = make_match()
        with pytest.raises(InvalidDelivery):
            bowl(match, runs=0, is_wicket=True, dismissal_type="run out", dismissed_player_id="A5")

    @pytest.mark.parametrize("payload", [
        {"runs": 7, "bowler_id": "B1"},
        {"runs": -1, "bowler_id": "B1"},
        {"runs": "2", "bowler_id": "B1"},
        {"runs": 1},
        {"runs": 0, "bowler_id": "B1", "extras": {"type": "penalty", "runs": 5}},
        {"runs": 1, "bowler_id": "B1", "extras": {"type": "wide", "runs": 1}},
        {"runs": 0, "bowler_id": "B1", "is_wicket": "yes"},
        {"runs": 0, "bowler_id": "B1", "is_wicket": True, "dismissal_type": "retired"},
        {"runs": 0, "bowler_id": "B1", "dismissal_type": "bowled"},
    ])
    def test_malformed_payloads(self, payload):
        from engine.scoring_models import Delivery
        with pytest.raises(InvalidDelivery):
            Delivery.from_payload(payload)

    def test_completed_match_rejects_balls(self, make_match):
        """A match finished by play takes no further deliveries and is left untouched."""
        match = make_match(total_overs=1)
        bowl_over(match, "B1")
        chase = lifecycle.start_second_innings(match)
        chase.current_state.on_strike, chase.current_state.off_strike = "B1", "B2"
        event = bowl(match, runs=1, bowler="A1")
        assert event.match_completed is True
        assert match.status == "completed"

        before = match.to_dict()
        with pytest.raises(MatchNotActive):
            bowl(match, runs=4, bowler="A1")
        assert match.to_dict() == before

    def test_abandoned_match_rejects_balls(self, make_match):
        """An abandoned match takes no further deliveries."""
        match = make_match()
        bowl(match, runs=0)
        lifecycle.abandon(match)
        with pytest.raises(MatchNotActive):
            bowl(match, runs=0)


class TestAssignments:
    def test_assign_batsmen(self, make_match):
        match = make_match()
        bowl(match, runs=0, is_wicket=True, dismissal_type="bowled")
        assign_batsmen(match, "A3", "A2")
        state = match.current.current_state
        assert (state.on_strike, state.off_strike) == ("A3", "A2")

    def test_assign_batsmen_rejects_dismissed(self, make_match):
        match = make_match()
        bowl(match, runs=0, is_wicket=True, dismissal_type="bowled")
        with pytest.raises(ValidationError, match="already out"):
            assign_batsmen(match, "A1", "A2")

    def test_assign_batsmen_rejects_same_player(self, make_match):
        with pytest.raises(ValidationError, match="different"):
            assign_batsmen(make_match(), "A3", "A3")

    def test_assign_batsmen_checks_roster(self, make_match):
        with pytest.raises(ValidationError, match="batting side"):
            assign_batsmen(make_match(), "A1", "Z9", roster=["A1", "A2", "A3"])

    def test_assign_bowler_mid_over(self, make_match):
        match = make_match()
        bowl(match, runs=0)
        with pytest.raises(OverInProgress):
            assign_bowler(match, "B2", roster=BOWLERS)

    def test_assign_bowler_after_wide_only(self, make_match):
        """An over that has only seen a wide is already under way."""
        match = make_match()
        bowl(match, runs=0, extras={"type": "wide", "runs": 1})
        with pytest.raises(OverInProgress):
            assign_bowler(match, "B2", roster=BOWLERS)

    def test_assign_bowler_at_boundary(self, make_match):
        match = make_match()
        bowl_over(match, "B1")
        assign_bowler(match, "B2", roster=BOWLERS)
        assert match.current.current_state.current_bowler == "B2"
        with pytest.raises(InvalidDelivery):
            bowl(match, runs=0, bowler="B3")
        bowl(match, runs=0, bowler="B2")

    def test_assign_bowler_fresh_without_roster(self, make_match):
        """A bowler who has not bowled can open the innings."""
        match = make_match()
        assign_bowler(match, "B7")
        assert match.current.current_state.current_bowler == "B7"

    def test_assign_bowler_consecutive(self, make_match):
        match = make_match()
        bowl_over(match, "B1")
        with pytest.raises(BowlerNotAvailable):
            assign_bowler(match, "B1", roster=BOWLERS)
