"""
engine/bowler_manager.py
========================

Bowler selection rules for the over about to start.

Rules enforced
--------------
1. No-consecutive: the bowler of the immediately preceding over may not
   bowl the next one.
2. Bowling quota: a bowler may not bowl more than
   ``MatchSettings.overs_per_bowler`` complete overs in an
   innings (20% of the innings, 1 to 4 overs).

Candidate pool
--------------
Bowlers who have already bowled in the innings come first, in the order
they first bowled.  When the bowling side's roster is known it is appended
(roster order) so a bowler who has not bowled yet can be recommended and
started.  Without a roster only bowlers already in the ledger are
considered.

Usage
-----
    advisor = BowlerRotationAdvisor(match.settings, match.bowler_rotation,
                                    match.current, roster=player_ids)
    result = advisor.advise()          # for the UI
    advisor.check_can_start(bowler_id) # raises BowlerNotAvailable
"""

import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Optional

from engine.errors import BowlerNotAvailable
from engine.scoring_models import BowlerRotationState, Innings, MatchSettings

logger = logging.getLogger(__name__)

NO_BOWLERS_REASON = "No bowlers available within rotation rules"


@dataclass
class BowlerRotationResult:
    available_bowlers: List[str] = field(default_factory=list)
    recommended_bowler: Optional[str] = None
    can_bowl: bool = False
    reason: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "available_bowlers": list(self.available_bowlers),
            "recommended_bowler": self.recommended_bowler,
            "can_bowl": self.can_bowl,
            "reason": self.reason,
        }


class BowlerRotationAdvisor:
    """
    Computes the legal bowlers for the next over of one innings.

    Parameters
    ----------
    settings : MatchSettings carrying ``overs_per_bowler``.
    rotation : BowlerRotationState carrying ``last_bowler``.
    innings  : the innings being bowled (its bowling ledger is the source
               of overs bowled per bowler).
    roster   : optional bowling-side player ids.
    """

    def __init__(
        self,
        settings: MatchSettings,
        rotation: BowlerRotationState,
        innings: Innings,
        roster: Optional[Iterable[str]] = None,
    ):
        self.settings = settings
        self.rotation = rotation
        self.innings = innings
        self.roster = [str(pid) for pid in roster] if roster else []

    # ------------------------------------------------------------------ #
    # Public query interface                                               #
    # ------------------------------------------------------------------ #

    def candidates(self) -> List[str]:
        seen = list(self.innings.bowling.keys())
        for pid in self.roster:
            if pid not in self.innings.bowling:
                seen.append(pid)
        return seen

    def overs_bowled(self, bowler_id: str) -> int:
        stats = self.innings.bowling.get(bowler_id)
        return stats.completed_overs if stats else 0

    def at_quota(self, bowler_id: str) -> bool:
        return self.overs_bowled(bowler_id) >= self.settings.overs_per_bowler

    def is_consecutive(self, bowler_id: str) -> bool:
        return bowler_id == self.rotation.last_bowler

    def rejection_reason(self, bowler_id: str) -> Optional[str]:
        """Why this bowler may not start the next over, or None if allowed."""
        if self.is_consecutive(bowler_id):
            return f"Bowler {bowler_id} bowled the previous over"
        if self.at_quota(bowler_id):
            return (
                f"Bowler {bowler_id} has already bowled "
                f"{self.settings.overs_per_bowler} overs"
            )
        return None

    def available(self) -> List[str]:
        return [pid for pid in self.candidates() if self.rejection_reason(pid) is None]

    def advise(self) -> BowlerRotationResult:
        available = self.available()
        if not available:
            logger.info(
                "BowlerRotationAdvisor: no legal bowler (last=%s, cap=%d)",
                self.rotation.last_bowler, self.settings.overs_per_bowler,
            )
            return BowlerRotationResult(reason=NO_BOWLERS_REASON)

        # min() keeps the first of equal values, i.e. the earliest candidate
        recommended = min(available, key=self._balls_bowled)
        return BowlerRotationResult(
            available_bowlers=available,
            recommended_bowler=recommended,
            can_bowl=True,
        )

    def check_can_start(self, bowler_id: str) -> None:
        """Raise BowlerNotAvailable unless bowler_id may bowl the next over."""
        if self.roster and bowler_id not in self.roster:
            raise BowlerNotAvailable(f"Bowler {bowler_id} is not in the bowling side")
        self.check_rules(bowler_id)

    def check_rules(self, bowler_id: str) -> None:
        """Rotation rules only, without the roster check."""
        reason = self.rejection_reason(bowler_id)
        if reason:
            raise BowlerNotAvailable(reason)

    # ------------------------------------------------------------------ #

    def _balls_bowled(self, bowler_id: str) -> int:
        stats = self.innings.bowling.get(bowler_id)
        return stats.balls if stats else 0
