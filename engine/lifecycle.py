"""
Innings and match lifecycle.

``evaluate`` runs after every applied ball.  The first innings can only end
itself (all out or overs used up); the match can only be decided during the
second innings:

* target reached               -> chasing side wins by wickets in hand
* all out / overs used, behind -> side batting first wins by the run gap
* all out / overs used, level  -> tie

The other helpers build a new match from the toss, open the second innings
and abandon a match.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Optional

from engine.errors import InningsInProgress, MatchNotActive, ValidationError
from engine.scoring_models import (
    TOSS_DECISIONS,
    Innings,
    LiveMatch,
    MatchSettings,
)

logger = logging.getLogger(__name__)

TIE_RESULT = "Match ended in a tie"
ABANDONED_RESULT = "Match abandoned"


@dataclass
class LifecycleEvent:
    innings_completed: bool = False
    match_completed: bool = False


def _plural(count: int, word: str) -> str:
    return f"{count} {word}" if count == 1 else f"{count} {word}s"


def evaluate(match: LiveMatch) -> LifecycleEvent:
    """Close the innings and/or the match if a terminal condition holds."""
    innings = match.current
    if innings.is_completed:
        return LifecycleEvent()

    all_out = innings.wickets >= match.settings.all_out_wickets
    overs_done = innings.balls >= match.total_balls

    if not match.is_second_innings:
        if all_out or overs_done:
            innings.is_completed = True
            logger.info(
                "Match %s: first innings closed at %d/%d (%s ov)",
                match.match_id, innings.total_runs, innings.wickets, innings.overs_notation,
            )
            return LifecycleEvent(innings_completed=True)
        return LifecycleEvent()

    first = match.innings[0]
    target = innings.target if innings.target is not None else first.total_runs + 1

    if innings.total_runs >= target:
        wickets_left = match.settings.all_out_wickets - innings.wickets
        _complete(
            match,
            winner=innings.batting_team_id,
            result=f"{match.team_name(innings.batting_team_id)} won by {_plural(wickets_left, 'wicket')}",
        )
    elif all_out or overs_done:
        if innings.total_runs == first.total_runs:
            _complete(match, winner=None, result=TIE_RESULT)
        else:
            margin = first.total_runs - innings.total_runs
            _complete(
                match,
                winner=first.batting_team_id,
                result=f"{match.team_name(first.batting_team_id)} won by {_plural(margin, 'run')}",
            )
    else:
        return LifecycleEvent()

    return LifecycleEvent(innings_completed=True, match_completed=True)


def _complete(match: LiveMatch, winner: Optional[str], result: str) -> None:
    match.current.is_completed = True
    match.status = "completed"
    match.result = result
    match.winner_team_id = winner
    logger.info("Match %s completed: %s", match.match_id, result)


# ---------------------------------------------------------------------------
# Explicit transitions
# ---------------------------------------------------------------------------

def first_batting_team(team1_id: str, team2_id: str, toss_winner: Optional[str], toss_decision: Optional[str]) -> str:
    """Team batting first as decided at the toss (team1 when no toss is recorded)."""
    if toss_winner is None or toss_decision is None:
        return team1_id
    if toss_decision == "bat":
        return toss_winner
    return team2_id if toss_winner == team1_id else team1_id


def new_match(
    match_id: str,
    team1_id,
    team2_id,
    total_overs: int,
    team_names: Optional[Dict[str, str]] = None,
    toss_winner=None,
    toss_decision: Optional[str] = None,
    venue: Optional[str] = None,
    max_players_per_team: int = 11,
    recent_balls_window: int = 12,
) -> LiveMatch:
    """Build an ``upcoming`` match with its first innings in place."""
    team1_id, team2_id = str(team1_id), str(team2_id)
    toss_winner = str(toss_winner) if toss_winner is not None else None

    if team1_id == team2_id:
        raise ValidationError("Please select two different teams")
    if isinstance(total_overs, bool) or not isinstance(total_overs, int) or total_overs <= 0:
        raise ValidationError("Number of overs must be greater than 0")
    if toss_winner is not None and toss_winner not in (team1_id, team2_id):
        raise ValidationError("Toss winner must be one of the two teams")
    if toss_decision is not None and toss_decision not in TOSS_DECISIONS:
        raise ValidationError("Toss decision must be 'bat' or 'bowl'")

    batting = first_batting_team(team1_id, team2_id, toss_winner, toss_decision)
    bowling = team2_id if batting == team1_id else team1_id

    return LiveMatch(
        match_id=str(match_id),
        team1_id=team1_id,
        team2_id=team2_id,
        total_overs=total_overs,
        settings=MatchSettings.for_overs(
            total_overs,
            max_players_per_team=max_players_per_team,
            recent_balls_window=recent_balls_window,
        ),
        team_names={str(k): v for k, v in (team_names or {}).items()},
        toss_winner=toss_winner,
        toss_decision=toss_decision,
        venue=venue,
        innings=[Innings(batting_team_id=batting, bowling_team_id=bowling)],
    )


def start_second_innings(match: LiveMatch) -> Innings:
    """Append the chase with the teams swapped and the target set."""
    if match.status != "in-progress":
        raise MatchNotActive(f"Match is {match.status}; the second innings cannot start")
    if len(match.innings) > 1:
        raise InningsInProgress("Second innings has already started")
    first = match.innings[0]
    if not first.is_completed:
        raise InningsInProgress("First innings is still in progress")

    second = Innings(
        batting_team_id=first.bowling_team_id,
        bowling_team_id=first.batting_team_id,
        target=first.total_runs + 1,
    )
    match.innings.append(second)
    match.current_innings = 1
    match.bowler_rotation.last_bowler = None
    logger.info("Match %s: second innings started, target %d", match.match_id, second.target)
    return second


def abandon(match: LiveMatch) -> None:
    if match.status in ("completed", "abandoned"):
        raise MatchNotActive(f"Match is already {match.status}")
    match.status = "abandoned"
    match.result = ABANDONED_RESULT
    match.winner_team_id = None
    logger.info("Match %s abandoned", match.match_id)
