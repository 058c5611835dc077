"""
Persistence boundary for the live-scoring aggregate.

A match row stores the whole ``LiveMatch`` as JSON in ``scoring_state`` next
to an integer ``version``.  ``save_match`` is a conditional UPDATE keyed on
the version that was read, so a concurrent writer makes it fail with
``ConcurrentUpdateConflict`` instead of silently overwriting a ball.
"""

import logging
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy import select, update

from database.models import Match as DBMatch, Player as DBPlayer, Team as DBTeam
from engine.errors import ConcurrentUpdateConflict, MatchNotFound
from engine.scoring_models import LiveMatch

logger = logging.getLogger(__name__)


def _int_or_none(value) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _mirror_columns(match: LiveMatch) -> dict:
    """Scalar columns kept in step with the JSON aggregate."""
    return {
        "status": match.status,
        "venue": match.venue,
        "result_description": match.result,
        "winner_team_id": _int_or_none(match.winner_team_id),
        "toss_winner_team_id": _int_or_none(match.toss_winner),
        "toss_decision": match.toss_decision,
        "overs_per_side": match.total_overs,
    }


class MatchStore:
    """Load and save ``LiveMatch`` aggregates through a SQLAlchemy session."""

    def __init__(self, session):
        self.session = session

    def load_match(self, match_id: str) -> Tuple[LiveMatch, int]:
        # Read the columns directly so a stale identity-map copy is never reused
        row = self.session.execute(
            select(DBMatch.scoring_state, DBMatch.version).where(DBMatch.id == str(match_id))
        ).first()
        if row is None:
            raise MatchNotFound(f"Match {match_id} not found")
        state, version = row
        return LiveMatch.from_dict(state), version

    def save_match(self, match: LiveMatch, expected_version: int) -> int:
        new_version = expected_version + 1
        result = self.session.execute(
            update(DBMatch)
            .where(DBMatch.id == match.match_id, DBMatch.version == expected_version)
            .values(
                scoring_state=match.to_dict(),
                version=new_version,
                updated_at=datetime.utcnow(),
                **_mirror_columns(match),
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            self.session.rollback()
            raise ConcurrentUpdateConflict(
                f"Match {match.match_id} was modified concurrently (expected version {expected_version})"
            )
        self.session.commit()
        return new_version

    def insert_match(self, match: LiveMatch, user_id: Optional[str]) -> int:
        row = DBMatch(
            id=match.match_id,
            user_id=user_id,
            home_team_id=_int_or_none(match.team1_id),
            away_team_id=_int_or_none(match.team2_id),
            scoring_state=match.to_dict(),
            version=1,
            **_mirror_columns(match),
        )
        self.session.add(row)
        self.session.commit()
        logger.info("Inserted match %s for user %s", match.match_id, user_id)
        return row.version

    def owner_of(self, match_id: str) -> Optional[str]:
        row = self.session.execute(
            select(DBMatch.id, DBMatch.user_id).where(DBMatch.id == str(match_id))
        ).first()
        if row is None:
            raise MatchNotFound(f"Match {match_id} not found")
        return row.user_id

    # ------------------------------------------------------------------ #
    # Squads                                                               #
    # ------------------------------------------------------------------ #

    def team_roster(self, team_id) -> List[str]:
        team_pk = _int_or_none(team_id)
        if team_pk is None:
            return []
        ids = self.session.execute(
            select(DBPlayer.id).where(DBPlayer.team_id == team_pk).order_by(DBPlayer.id)
        ).scalars()
        return [str(pid) for pid in ids]

    def bowling_roster(self, match: LiveMatch) -> List[str]:
        return self.team_roster(match.current.bowling_team_id)

    def batting_roster(self, match: LiveMatch) -> List[str]:
        return self.team_roster(match.current.batting_team_id)

    def team_names(self, team_ids: Iterable) -> Dict[str, str]:
        pks = [pk for pk in (_int_or_none(t) for t in team_ids) if pk is not None]
        if not pks:
            return {}
        rows = self.session.execute(select(DBTeam.id, DBTeam.name).where(DBTeam.id.in_(pks)))
        return {str(team_id): name for team_id, name in rows}

    def player_names(self, match: LiveMatch) -> Dict[str, str]:
        team_pks = [pk for pk in (_int_or_none(match.team1_id), _int_or_none(match.team2_id)) if pk is not None]
        if not team_pks:
            return {}
        rows = self.session.execute(
            select(DBPlayer.id, DBPlayer.name).where(DBPlayer.team_id.in_(team_pks))
        )
        return {str(pid): name for pid, name in rows}
