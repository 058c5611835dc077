"""
engine/live_scoring.py
======================

Atomic live-scoring operations on top of a match store.

Every mutating call is load -> apply in memory -> save with the version that
was read.  When the save loses a race the whole operation is re-run against
a fresh copy of the match, up to ``max_retries`` times, after which the
``ConcurrentUpdateConflict`` reaches the caller.  Validation errors raised by
the engine propagate immediately and nothing is written.

The store only needs ``load_match``, ``save_match``, ``insert_match``,
``bowling_roster``, ``batting_roster``, ``team_names`` and ``player_names``
(see ``database.match_store.MatchStore``).
"""

import logging
import uuid
from typing import Any, Callable, Optional, Tuple

from engine import lifecycle
from engine.ball_processor import BallEvent, BallProcessor, assign_batsmen, assign_bowler
from engine.bowler_manager import BowlerRotationAdvisor, BowlerRotationResult
from engine.errors import ConcurrentUpdateConflict, ValidationError
from engine.scorecard import match_summary
from engine.scoring_models import (
    DEFAULT_MAX_PLAYERS,
    DEFAULT_RECENT_BALLS_WINDOW,
    Delivery,
    LiveMatch,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_RETRIES = 3


class LiveScoringService:
    def __init__(
        self,
        store,
        max_retries: int = DEFAULT_MAX_RETRIES,
        recent_balls_window: int = DEFAULT_RECENT_BALLS_WINDOW,
        max_players_per_team: int = DEFAULT_MAX_PLAYERS,
    ):
        self.store = store
        self.max_retries = max(0, int(max_retries))
        self.recent_balls_window = recent_balls_window
        self.max_players_per_team = max_players_per_team

    def _mutate(self, match_id: str, apply: Callable[[LiveMatch], Any]) -> Tuple[LiveMatch, Any]:
        conflicts = 0
        while True:
            match, version = self.store.load_match(match_id)
            outcome = apply(match)
            try:
                self.store.save_match(match, version)
            except ConcurrentUpdateConflict:
                conflicts += 1
                if conflicts > self.max_retries:
                    logger.error(
                        "Match %s: giving up after %d conflicting writes", match_id, conflicts
                    )
                    raise
                logger.warning(
                    "Match %s: version %d was superseded, retrying (%d/%d)",
                    match_id, version, conflicts, self.max_retries,
                )
                continue
            return match, outcome

    # ------------------------------------------------------------------ #
    # Deliveries                                                           #
    # ------------------------------------------------------------------ #

    def process_ball_with_event(self, match_id: str, payload) -> Tuple[LiveMatch, BallEvent]:
        delivery = Delivery.from_payload(payload)

        def apply(match: LiveMatch) -> BallEvent:
            roster = self.store.bowling_roster(match)
            return BallProcessor(match, roster=roster).process(delivery)

        match, event = self._mutate(match_id, apply)
        logger.info(
            "Match %s: ball %s -> %d/%d (%s ov)",
            match_id, event.record.label, match.current.total_runs,
            match.current.wickets, match.current.overs_notation,
        )
        return match, event

    def process_ball(self, match_id: str, payload) -> LiveMatch:
        match, _ = self.process_ball_with_event(match_id, payload)
        return match

    # ------------------------------------------------------------------ #
    # Bowler and batter selection                                          #
    # ------------------------------------------------------------------ #

    def get_bowler_rotation(self, match_id: str) -> BowlerRotationResult:
        match, _ = self.store.load_match(match_id)
        advisor = BowlerRotationAdvisor(
            match.settings,
            match.bowler_rotation,
            match.current,
            roster=self.store.bowling_roster(match),
        )
        return advisor.advise()

    def start_new_over(self, match_id: str, bowler_id) -> LiveMatch:
        def apply(match: LiveMatch) -> None:
            assign_bowler(match, bowler_id, roster=self.store.bowling_roster(match))

        match, _ = self._mutate(match_id, apply)
        logger.info(
            "Match %s: over %d to bowler %s",
            match_id, match.current.current_state.current_over + 1, bowler_id,
        )
        return match

    def update_batsmen(self, match_id: str, on_strike_id, off_strike_id) -> LiveMatch:
        def apply(match: LiveMatch) -> None:
            assign_batsmen(
                match, on_strike_id, off_strike_id, roster=self.store.batting_roster(match)
            )

        match, _ = self._mutate(match_id, apply)
        return match

    # ------------------------------------------------------------------ #
    # Match lifecycle                                                      #
    # ------------------------------------------------------------------ #

    def create_match(
        self,
        team1_id,
        team2_id,
        total_overs: int,
        user_id: Optional[str] = None,
        toss_winner=None,
        toss_decision: Optional[str] = None,
        venue: Optional[str] = None,
        match_id: Optional[str] = None,
    ) -> LiveMatch:
        match = lifecycle.new_match(
            match_id or str(uuid.uuid4()),
            team1_id,
            team2_id,
            total_overs,
            team_names=self.store.team_names([team1_id, team2_id]),
            toss_winner=toss_winner,
            toss_decision=toss_decision,
            venue=venue,
            max_players_per_team=self.max_players_per_team,
            recent_balls_window=self.recent_balls_window,
        )
        self.store.insert_match(match, user_id)
        return match

    def start_second_innings(self, match_id: str) -> LiveMatch:
        match, _ = self._mutate(match_id, lifecycle.start_second_innings)
        return match

    def abandon_match(self, match_id: str) -> LiveMatch:
        match, _ = self._mutate(match_id, lifecycle.abandon)
        return match

    def update_details(self, match_id: str, venue=None) -> LiveMatch:
        if venue is not None and not isinstance(venue, str):
            raise ValidationError("venue must be a string")

        def apply(match: LiveMatch) -> None:
            if venue is not None:
                match.venue = venue.strip() or None

        match, _ = self._mutate(match_id, apply)
        return match

    # ------------------------------------------------------------------ #
    # Reads                                                                #
    # ------------------------------------------------------------------ #

    def get_match(self, match_id: str) -> LiveMatch:
        match, _ = self.store.load_match(match_id)
        return match

    def get_summary(self, match_id: str) -> str:
        match, _ = self.store.load_match(match_id)
        return match_summary(match, self.store.player_names(match))
