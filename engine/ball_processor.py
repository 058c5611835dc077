"""
engine/ball_processor.py
========================

Applies one delivery to an in-memory ``LiveMatch``.

The processor validates everything first and only then mutates, so a
rejected ball leaves the aggregate exactly as it was.  Persisting the result
(and retrying on a concurrent write) is the job of
``engine.live_scoring.LiveScoringService``.

Order of application
--------------------
 1. status / innings / crease / bowler checks (no mutation)
 2. legal-delivery detection (wides and no-balls are not legal)
 3. ball and over counters; at the sixth legal ball the over closes, the
    bowler becomes ``last_bowler`` and the bowler slot is cleared
 4. striker's batting figures
 5. wicket: dismissed batter marked out and their slot vacated
 6. bowler's figures (byes and leg-byes are not charged to the bowler)
 7. extras breakdown and team total
 8. strike rotation (odd runs, then end of over)
 9. current-over and recent-ball buffers
10. innings / match lifecycle
"""

import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from engine import lifecycle
from engine.bowler_manager import BowlerRotationAdvisor
from engine.errors import (
    InningsNotActive,
    InvalidDelivery,
    MatchNotActive,
    NoActiveBatter,
    OverInProgress,
    ValidationError,
)
from engine.overs import BALLS_PER_OVER
from engine.scoring_models import (
    NON_BOWLER_DISMISSALS,
    UNCHARGED_EXTRAS,
    BallRecord,
    Delivery,
    LiveMatch,
    OverRecord,
)
from engine.strike import StrikeTracker

logger = logging.getLogger(__name__)


@dataclass
class BallEvent:
    """What happened on one processed delivery."""
    record: BallRecord
    legal: bool
    over_completed: bool = False
    innings_completed: bool = False
    match_completed: bool = False

    def to_dict(self) -> dict:
        return {
            "ball": self.record.to_dict(),
            "legal": self.legal,
            "over_completed": self.over_completed,
            "innings_completed": self.innings_completed,
            "match_completed": self.match_completed,
        }


def _ensure_accepting(match: LiveMatch, allow_upcoming: bool) -> None:
    if match.status == "in-progress":
        return
    if match.status == "upcoming" and allow_upcoming:
        return
    raise MatchNotActive(f"Match is {match.status} and is not accepting scoring updates")


class BallProcessor:
    """
    Validates and applies deliveries for one match.

    Parameters
    ----------
    match  : the aggregate to mutate.
    roster : optional bowling-side player ids, used for bowler checks.
    """

    def __init__(self, match: LiveMatch, roster: Optional[Iterable[str]] = None):
        self.match = match
        self.roster = [str(pid) for pid in roster] if roster else []

    def advisor(self) -> BowlerRotationAdvisor:
        return BowlerRotationAdvisor(
            self.match.settings, self.match.bowler_rotation, self.match.current, roster=self.roster
        )

    def process(self, delivery: Delivery) -> BallEvent:
        self.validate(delivery)
        return self._apply(delivery)

    # ------------------------------------------------------------------ #
    # Validation                                                           #
    # ------------------------------------------------------------------ #

    def validate(self, delivery: Delivery) -> None:
        match = self.match
        innings = match.current
        # Only the very first ball may move an upcoming match into play
        first_ball = all(inn.sequence == 0 for inn in match.innings)
        _ensure_accepting(match, allow_upcoming=first_ball)

        if innings.is_completed:
            raise InningsNotActive("Innings is complete; start the next innings before scoring")

        state = innings.current_state
        if state.on_strike is None:
            raise NoActiveBatter("No batter on strike; select the incoming batter first")
        if state.off_strike is None:
            raise NoActiveBatter("No non-striker at the crease; select the incoming batter first")

        if delivery.batsman_id is not None and delivery.batsman_id != state.on_strike:
            raise InvalidDelivery(
                f"Batter {delivery.batsman_id} is not on strike (striker is {state.on_strike})"
            )
        if delivery.dismissed_player_id is not None and delivery.dismissed_player_id not in (
            state.on_strike, state.off_strike,
        ):
            raise InvalidDelivery(f"Player {delivery.dismissed_player_id} is not at the crease")

        if delivery.bowler_id in (state.on_strike, state.off_strike):
            raise InvalidDelivery("A batter at the crease cannot bowl")
        if self.roster and delivery.bowler_id not in self.roster:
            raise InvalidDelivery(f"Bowler {delivery.bowler_id} is not in the bowling side")

        if state.current_bowler is None:
            # First ball of an over with no bowler chosen: adopt the delivery's
            # bowler if the rotation rules allow it
            self.advisor().check_rules(delivery.bowler_id)
        elif delivery.bowler_id != state.current_bowler:
            raise InvalidDelivery(
                f"Bowler {state.current_bowler} is bowling this over, not {delivery.bowler_id}"
            )

    # ------------------------------------------------------------------ #
    # Application                                                          #
    # ------------------------------------------------------------------ #

    def _apply(self, d: Delivery) -> BallEvent:
        match = self.match
        innings = match.current
        state = innings.current_state
        strike = StrikeTracker(innings)

        if match.status == "upcoming":
            match.status = "in-progress"
            logger.info("Match %s is now in progress", match.match_id)
        if state.current_bowler is None:
            state.current_bowler = d.bowler_id

        striker = state.on_strike
        over_index = state.current_over
        legal = d.is_legal
        innings.sequence += 1

        # 3. counters
        if legal:
            innings.balls += 1
            state.current_ball += 1
        over_completed = legal and state.current_ball >= BALLS_PER_OVER

        record = BallRecord(
            sequence=innings.sequence,
            over=over_index,
            ball=state.current_ball if legal else state.current_ball + 1,
            batsman_id=striker,
            bowler_id=d.bowler_id,
            runs=d.runs,
            extra_type=d.extra_type,
            extra_runs=d.extra_runs,
            is_wicket=d.is_wicket,
            dismissal_type=d.dismissal_type,
            dismissed_player_id=(d.dismissed_player_id or striker) if d.is_wicket else None,
            fielder_id=d.fielder_id,
        )

        # 4. batting
        batter = innings.batter(striker)
        batter.runs += d.runs
        if legal:
            batter.balls += 1
        if d.runs == 4:
            batter.fours += 1
        elif d.runs == 6:
            batter.sixes += 1

        # 5. wicket
        if d.is_wicket:
            out = innings.batter(record.dismissed_player_id)
            out.is_out = True
            out.dismissal_type = d.dismissal_type
            out.dismissed_by = d.bowler_id
            out.fielder_id = d.fielder_id
            innings.wickets += 1
            strike.vacate(out.player_id)

        # 6. bowling
        charged = d.runs if d.extra_type in UNCHARGED_EXTRAS else d.total_runs
        bowler = innings.bowler(d.bowler_id)
        bowler.runs += charged
        if legal:
            bowler.balls += 1
        if d.extra_type == "wide":
            bowler.wides += 1
        elif d.extra_type == "no-ball":
            bowler.no_balls += 1
        if d.is_wicket and d.dismissal_type not in NON_BOWLER_DISMISSALS:
            bowler.wickets += 1

        # 7. extras and team total
        if d.extra_type:
            innings.extras.add(d.extra_type, d.extra_runs)
        innings.total_runs += d.total_runs

        over = innings.current_over_record()
        if over is None:
            over = OverRecord(over_number=over_index, bowler_id=d.bowler_id)
            innings.over_history.append(over)
        over.runs += d.total_runs
        over.runs_conceded += charged
        over.legal_balls += int(legal)
        over.wickets += int(d.is_wicket)
        over.labels.append(record.label)

        if over_completed:
            state.current_over += 1
            state.current_ball = 0
            state.current_bowler = None
            match.bowler_rotation.last_bowler = d.bowler_id
            if over.is_maiden:
                bowler.maidens += 1
            logger.debug(
                "Match %s: over %d complete (%s), %d/%d",
                match.match_id, over_index + 1, " ".join(over.labels),
                innings.total_runs, innings.wickets,
            )

        # 8. strike
        strike.rotate_after_delivery(d.runs, over_completed, wicket=d.is_wicket)
        state.last_ball_runs = d.runs
        state.last_ball_extra = d.extra_type

        # 9. buffers
        innings.current_over_balls.append(record)
        if over_completed:
            innings.current_over_balls = []
        innings.recent_balls.append(record)
        window = match.settings.recent_balls_window
        if len(innings.recent_balls) > window:
            innings.recent_balls = innings.recent_balls[-window:]

        # 10. lifecycle
        outcome = lifecycle.evaluate(match)
        return BallEvent(
            record=record,
            legal=legal,
            over_completed=over_completed,
            innings_completed=outcome.innings_completed,
            match_completed=outcome.match_completed,
        )


# ---------------------------------------------------------------------------
# Explicit crease / bowler assignments
# ---------------------------------------------------------------------------

def assign_batsmen(match: LiveMatch, on_strike_id, off_strike_id, roster: Optional[Iterable[str]] = None) -> None:
    """Put two not-out batters at the crease (innings start, after a wicket, corrections)."""
    _ensure_accepting(match, allow_upcoming=True)
    innings = match.current
    if innings.is_completed:
        raise InningsNotActive("Innings is complete; start the next innings first")

    on_strike_id = str(on_strike_id) if on_strike_id is not None else None
    off_strike_id = str(off_strike_id) if off_strike_id is not None else None
    if not on_strike_id or not off_strike_id:
        raise ValidationError("Both the striker and the non-striker are required")
    if on_strike_id == off_strike_id:
        raise ValidationError("Striker and non-striker must be different players")

    allowed = {str(pid) for pid in roster} if roster else None
    for pid in (on_strike_id, off_strike_id):
        stats = innings.batting.get(pid)
        if stats is not None and stats.is_out:
            raise ValidationError(f"Batter {pid} is already out")
        if allowed is not None and pid not in allowed:
            raise ValidationError(f"Player {pid} is not in the batting side")
        if pid == innings.current_state.current_bowler:
            raise ValidationError(f"Player {pid} is bowling this over")

    StrikeTracker(innings).assign(on_strike_id, off_strike_id)


def assign_bowler(match: LiveMatch, bowler_id, roster: Optional[Iterable[str]] = None) -> None:
    """Choose the bowler for the over about to start."""
    _ensure_accepting(match, allow_upcoming=True)
    innings = match.current
    if innings.is_completed:
        raise InningsNotActive("Innings is complete; start the next innings first")
    state = innings.current_state
    if state.current_ball != 0 or innings.current_over_record() is not None:
        raise OverInProgress(
            f"Over {state.current_over + 1} is in progress ({state.current_ball} balls bowled)"
        )

    bowler_id = str(bowler_id) if bowler_id is not None else None
    if not bowler_id:
        raise ValidationError("bowler_id is required")
    if bowler_id in (state.on_strike, state.off_strike):
        raise ValidationError("A batter at the crease cannot bowl")

    processor = BallProcessor(match, roster=roster)
    processor.advisor().check_can_start(bowler_id)
    state.current_bowler = bowler_id
    state.current_ball = 0
