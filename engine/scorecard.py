"""Plain-text scorecards for a live or finished match."""

from typing import Dict, List, Optional

from tabulate import tabulate

from engine.overs import to_overs_notation
from engine.scoring_models import Innings, LiveMatch


def _name(player_names: Dict[str, str], player_id: Optional[str]) -> str:
    if player_id is None:
        return "-"
    return player_names.get(player_id, f"Player {player_id}")


def dismissal_text(stats, player_names: Dict[str, str]) -> str:
    if not stats.is_out:
        return "not out"
    how = stats.dismissal_type or "out"
    bowler = _name(player_names, stats.dismissed_by)
    if how == "caught":
        if stats.fielder_id is None:
            return f"caught b {bowler}"
        if stats.fielder_id == stats.dismissed_by:
            return f"c & b {bowler}"
        return f"c {_name(player_names, stats.fielder_id)} b {bowler}"
    if how == "run out":
        return f"run out ({_name(player_names, stats.fielder_id)})" if stats.fielder_id else "run out"
    if how == "stumped":
        return f"st {_name(player_names, stats.fielder_id)} b {bowler}"
    if how == "lbw":
        return f"lbw b {bowler}"
    if how == "hit wicket":
        return f"hit wicket b {bowler}"
    return f"b {bowler}"


def batting_table(innings: Innings, player_names: Dict[str, str]) -> str:
    headers = ["Batter", "Status", "Runs", "Balls", "4s", "6s", "SR"]
    rows = []
    for stats in innings.batting.values():
        name = _name(player_names, stats.player_id)
        if stats.is_on_strike:
            name += "*"
        rows.append([
            name,
            dismissal_text(stats, player_names),
            stats.runs,
            stats.balls,
            stats.fours,
            stats.sixes,
            f"{stats.strike_rate:.2f}",
        ])
    if not rows:
        rows.append(["No batting data available", "-", "-", "-", "-", "-", "-"])
    return tabulate(rows, headers=headers, tablefmt="grid")


def bowling_table(innings: Innings, player_names: Dict[str, str]) -> str:
    headers = ["Bowler", "Overs", "Maidens", "Runs", "Wickets", "Economy", "Wides", "No Balls"]
    rows = [
        [
            _name(player_names, stats.player_id),
            to_overs_notation(stats.balls),
            stats.maidens,
            stats.runs,
            stats.wickets,
            f"{stats.economy:.2f}",
            stats.wides,
            stats.no_balls,
        ]
        for stats in innings.bowling.values()
    ]
    if not rows:
        rows.append(["No bowling data available", "-", "-", "-", "-", "-", "-", "-"])
    return tabulate(rows, headers=headers, tablefmt="grid")


def innings_line(match: LiveMatch, index: int) -> str:
    innings = match.innings[index]
    return (
        f"Innings {index + 1}: {match.team_name(innings.batting_team_id)} "
        f"{innings.total_runs}/{innings.wickets} in {innings.overs_notation} overs"
    )


def match_summary(match: LiveMatch, player_names: Optional[Dict[str, str]] = None) -> str:
    """Header lines followed by the batting and bowling card of each innings."""
    player_names = player_names or {}
    lines: List[str] = [
        f"{match.team_name(match.team1_id)} vs {match.team_name(match.team2_id)}",
        f"Status: {match.status}",
    ]
    if match.venue:
        lines.append(f"Venue: {match.venue}")
    if match.result:
        lines.append(f"Result: {match.result}")

    for index, innings in enumerate(match.innings):
        extras = innings.extras
        lines.append("")
        lines.append(innings_line(match, index))
        if innings.target is not None:
            lines.append(f"Target: {innings.target}")
        lines.append(batting_table(innings, player_names))
        lines.append(
            f"Extras: {extras.total} (w {extras.wides}, nb {extras.no_balls}, "
            f"b {extras.byes}, lb {extras.leg_byes})"
        )
        lines.append(bowling_table(innings, player_names))
    return "\n".join(lines)
