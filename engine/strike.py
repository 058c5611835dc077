"""
Strike rotation for the two batters at the crease.

Rules
-----
1. Odd bat runs (1, 3) swap the striker and non-striker.
2. Completing a legal over swaps them again, independently of rule 1.
3. A wicket never swaps by itself and cancels the odd-run swap of its own
   delivery.  The dismissed batter's slot is left empty for the incoming
   batter; only the end-of-over swap can still move it.

Rules 1 and 2 are applied as two separate swaps; on the last ball of an
over a single therefore leaves the same batter on strike for the next over.
"""

import logging
from typing import Optional

from engine.scoring_models import Innings

logger = logging.getLogger(__name__)


class StrikeTracker:
    """Mutates the strike slots of one innings."""

    def __init__(self, innings: Innings):
        self.innings = innings
        self.state = innings.current_state

    @property
    def on_strike(self) -> Optional[str]:
        return self.state.on_strike

    @property
    def off_strike(self) -> Optional[str]:
        return self.state.off_strike

    def swap(self) -> None:
        self.state.on_strike, self.state.off_strike = self.state.off_strike, self.state.on_strike
        self._sync_flags()

    def rotate_after_delivery(self, runs: int, over_completed: bool, wicket: bool = False) -> int:
        """Apply both swap rules for one delivery; returns the swap count."""
        swaps = 0
        if runs % 2 == 1 and not wicket:
            self.swap()
            swaps += 1
        if over_completed:
            self.swap()
            swaps += 1
        return swaps

    def vacate(self, player_id: str) -> None:
        """Empty whichever slot the dismissed batter occupies."""
        if self.state.on_strike == player_id:
            self.state.on_strike = None
        elif self.state.off_strike == player_id:
            self.state.off_strike = None
        else:
            logger.warning("vacate: %s is not at the crease", player_id)
        stats = self.innings.batting.get(player_id)
        if stats is not None:
            stats.is_on_strike = False

    def assign(self, on_strike: str, off_strike: str) -> None:
        self.state.on_strike = on_strike
        self.state.off_strike = off_strike
        self._sync_flags()

    def _sync_flags(self) -> None:
        for pid, stats in self.innings.batting.items():
            stats.is_on_strike = pid == self.state.on_strike
