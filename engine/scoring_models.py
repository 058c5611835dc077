"""
engine/scoring_models.py
========================

In-memory form of the live match aggregate.

A ``LiveMatch`` owns one or two ``Innings``; each innings owns its batting
and bowling ledgers, the current on-field state and the rolling ball
buffers.  The whole tree is persisted as one JSON document (see
``database/match_store.py``) so a ball is always applied to, and saved as,
a single unit.

Ledgers are dicts keyed by player id for O(1) lookup.  They are written out
as ordered lists so batting/bowling order survives the JSON round trip.
Every id inside the engine is an opaque string.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from engine.errors import InvalidDelivery
from engine.overs import completed_overs, overs_value, per_over_rate, to_overs_notation

# ---------------------------------------------------------------------------
# Vocabulary
# ---------------------------------------------------------------------------

MATCH_STATUSES = ("upcoming", "in-progress", "completed", "abandoned")
TOSS_DECISIONS = ("bat", "bowl")

EXTRA_TYPES = ("wide", "no-ball", "bye", "leg-bye")
ILLEGAL_EXTRAS = frozenset({"wide", "no-ball"})
# Byes and leg-byes go to the team total but are never charged to the bowler
UNCHARGED_EXTRAS = frozenset({"bye", "leg-bye"})
EXTRAS_FIELD = {
    "wide": "wides",
    "no-ball": "no_balls",
    "bye": "byes",
    "leg-bye": "leg_byes",
}
EXTRA_LABELS = {"wide": "wd", "no-ball": "nb", "bye": "b", "leg-bye": "lb"}

DISMISSAL_TYPES = ("bowled", "caught", "run out", "stumped", "lbw", "hit wicket")
# Dismissals that do not count towards the bowler's wickets
NON_BOWLER_DISMISSALS = frozenset({"run out"})

MAX_BAT_RUNS = 6
DEFAULT_MAX_PLAYERS = 11
DEFAULT_RECENT_BALLS_WINDOW = 12


def _opt_str(value) -> Optional[str]:
    if value is None or value == "":
        return None
    return str(value)


# ---------------------------------------------------------------------------
# Delivery input
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Delivery:
    """One ball as submitted by the scorer.

    ``runs`` are bat runs.  ``extra_runs`` are the runs credited as extras on
    top of them (a wide worth one is ``extra_type="wide", extra_runs=1``).
    """
    runs: int
    bowler_id: str
    batsman_id: Optional[str] = None
    extra_type: Optional[str] = None
    extra_runs: int = 0
    is_wicket: bool = False
    dismissal_type: Optional[str] = None
    dismissed_player_id: Optional[str] = None
    fielder_id: Optional[str] = None

    @property
    def is_legal(self) -> bool:
        return self.extra_type not in ILLEGAL_EXTRAS

    @property
    def total_runs(self) -> int:
        return self.runs + self.extra_runs

    @classmethod
    def from_payload(cls, payload: Any) -> "Delivery":
        """Validate a JSON payload; raises InvalidDelivery on any problem."""
        if not isinstance(payload, dict):
            raise InvalidDelivery("Delivery payload must be a JSON object")

        runs = payload.get("runs", 0)
        if isinstance(runs, bool) or not isinstance(runs, int):
            raise InvalidDelivery("runs must be an integer")
        if not 0 <= runs <= MAX_BAT_RUNS:
            raise InvalidDelivery(f"runs must be between 0 and {MAX_BAT_RUNS}, got {runs}")

        bowler_id = _opt_str(payload.get("bowler_id"))
        if bowler_id is None:
            raise InvalidDelivery("bowler_id is required")

        extra_type, extra_runs = None, 0
        extras = payload.get("extras")
        if extras is not None:
            if not isinstance(extras, dict):
                raise InvalidDelivery("extras must be an object with type and runs")
            extra_type = extras.get("type")
            if extra_type not in EXTRA_TYPES:
                raise InvalidDelivery(
                    f"extras.type must be one of {', '.join(EXTRA_TYPES)}, got {extra_type!r}"
                )
            extra_runs = extras.get("runs", 0)
            if isinstance(extra_runs, bool) or not isinstance(extra_runs, int) or extra_runs < 0:
                raise InvalidDelivery("extras.runs must be a non-negative integer")
            if extra_type == "wide" and runs != 0:
                raise InvalidDelivery("Bat runs cannot be scored off a wide")

        is_wicket = payload.get("is_wicket", False)
        if not isinstance(is_wicket, bool):
            raise InvalidDelivery("is_wicket must be a boolean")

        dismissal_type = payload.get("dismissal_type")
        dismissed_player_id = _opt_str(payload.get("dismissed_player_id"))
        if is_wicket:
            if dismissal_type is not None and dismissal_type not in DISMISSAL_TYPES:
                raise InvalidDelivery(
                    f"dismissal_type must be one of {', '.join(DISMISSAL_TYPES)}, got {dismissal_type!r}"
                )
        elif dismissal_type is not None or dismissed_player_id is not None:
            raise InvalidDelivery("dismissal details given for a delivery without a wicket")

        return cls(
            runs=runs,
            bowler_id=bowler_id,
            batsman_id=_opt_str(payload.get("batsman_id")),
            extra_type=extra_type,
            extra_runs=extra_runs,
            is_wicket=is_wicket,
            dismissal_type=dismissal_type,
            dismissed_player_id=dismissed_player_id,
            fielder_id=_opt_str(payload.get("fielder_id")),
        )


# ---------------------------------------------------------------------------
# Ledgers
# ---------------------------------------------------------------------------

@dataclass
class Extras:
    wides: int = 0
    no_balls: int = 0
    byes: int = 0
    leg_byes: int = 0
    total: int = 0

    def add(self, extra_type: str, runs: int) -> None:
        name = EXTRAS_FIELD[extra_type]
        setattr(self, name, getattr(self, name) + runs)
        self.total += runs

    def to_dict(self) -> dict:
        return {
            "wides": self.wides,
            "no_balls": self.no_balls,
            "byes": self.byes,
            "leg_byes": self.leg_byes,
            "total": self.total,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Extras":
        return cls(**{k: int(data.get(k, 0)) for k in ("wides", "no_balls", "byes", "leg_byes", "total")})


@dataclass
class BattingStats:
    player_id: str
    runs: int = 0
    balls: int = 0
    fours: int = 0
    sixes: int = 0
    is_out: bool = False
    dismissal_type: Optional[str] = None
    dismissed_by: Optional[str] = None
    fielder_id: Optional[str] = None
    is_on_strike: bool = False

    @property
    def strike_rate(self) -> float:
        if self.balls == 0:
            return 0.0
        return round(self.runs * 100 / self.balls, 2)

    def to_dict(self) -> dict:
        return {
            "player_id": self.player_id,
            "runs": self.runs,
            "balls": self.balls,
            "fours": self.fours,
            "sixes": self.sixes,
            "is_out": self.is_out,
            "dismissal_type": self.dismissal_type,
            "dismissed_by": self.dismissed_by,
            "fielder_id": self.fielder_id,
            "is_on_strike": self.is_on_strike,
            # display only, recomputed on load
            "strike_rate": self.strike_rate,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "BattingStats":
        return cls(
            player_id=str(data["player_id"]),
            runs=data.get("runs", 0),
            balls=data.get("balls", 0),
            fours=data.get("fours", 0),
            sixes=data.get("sixes", 0),
            is_out=data.get("is_out", False),
            dismissal_type=data.get("dismissal_type"),
            dismissed_by=data.get("dismissed_by"),
            fielder_id=data.get("fielder_id"),
            is_on_strike=data.get("is_on_strike", False),
        )


@dataclass
class BowlingStats:
    player_id: str
    balls: int = 0
    runs: int = 0
    wickets: int = 0
    wides: int = 0
    no_balls: int = 0
    maidens: int = 0

    @property
    def overs(self) -> float:
        return overs_value(self.balls)

    @property
    def completed_overs(self) -> int:
        return completed_overs(self.balls)

    @property
    def economy(self) -> float:
        return per_over_rate(self.runs, self.balls)

    def to_dict(self) -> dict:
        return {
            "player_id": self.player_id,
            "balls": self.balls,
            "overs": self.overs,
            "runs": self.runs,
            "wickets": self.wickets,
            "wides": self.wides,
            "no_balls": self.no_balls,
            "maidens": self.maidens,
            "economy": self.economy,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "BowlingStats":
        return cls(
            player_id=str(data["player_id"]),
            balls=data.get("balls", 0),
            runs=data.get("runs", 0),
            wickets=data.get("wickets", 0),
            wides=data.get("wides", 0),
            no_balls=data.get("no_balls", 0),
            maidens=data.get("maidens", 0),
        )


# ---------------------------------------------------------------------------
# Ball-by-ball records
# ---------------------------------------------------------------------------

@dataclass
class BallRecord:
    """Stored outcome of one delivery, used for commentary and over logs."""
    sequence: int
    over: int
    ball: int
    batsman_id: Optional[str]
    bowler_id: str
    runs: int = 0
    extra_type: Optional[str] = None
    extra_runs: int = 0
    is_wicket: bool = False
    dismissal_type: Optional[str] = None
    dismissed_player_id: Optional[str] = None
    fielder_id: Optional[str] = None

    @property
    def total_runs(self) -> int:
        return self.runs + self.extra_runs

    @property
    def label(self) -> str:
        """Short scorer's label: ``4``, ``W``, ``1wd``, ``2nb``, ``1lb``."""
        if self.extra_type:
            text = f"{self.total_runs}{EXTRA_LABELS[self.extra_type]}"
        else:
            text = str(self.runs)
        if self.is_wicket:
            return "W" if text == "0" else f"{text}+W"
        return text

    def to_dict(self) -> dict:
        extras = None
        if self.extra_type:
            extras = {"type": self.extra_type, "runs": self.extra_runs}
        return {
            "sequence": self.sequence,
            "over": self.over,
            "ball": self.ball,
            "batsman_id": self.batsman_id,
            "bowler_id": self.bowler_id,
            "runs": self.runs,
            "extras": extras,
            "is_wicket": self.is_wicket,
            "dismissal_type": self.dismissal_type,
            "dismissed_player_id": self.dismissed_player_id,
            "fielder_id": self.fielder_id,
            "label": self.label,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "BallRecord":
        extras = data.get("extras") or {}
        return cls(
            sequence=data["sequence"],
            over=data["over"],
            ball=data["ball"],
            batsman_id=data.get("batsman_id"),
            bowler_id=data["bowler_id"],
            runs=data.get("runs", 0),
            extra_type=extras.get("type"),
            extra_runs=extras.get("runs", 0),
            is_wicket=data.get("is_wicket", False),
            dismissal_type=data.get("dismissal_type"),
            dismissed_player_id=data.get("dismissed_player_id"),
            fielder_id=data.get("fielder_id"),
        )


@dataclass
class OverRecord:
    """Summary of one over, kept for the innings' over-by-over log."""
    over_number: int
    bowler_id: str
    runs: int = 0
    runs_conceded: int = 0
    wickets: int = 0
    legal_balls: int = 0
    labels: List[str] = field(default_factory=list)

    @property
    def is_complete(self) -> bool:
        return self.legal_balls >= 6

    @property
    def is_maiden(self) -> bool:
        return self.is_complete and self.runs_conceded == 0

    def to_dict(self) -> dict:
        return {
            "over_number": self.over_number,
            "bowler_id": self.bowler_id,
            "runs": self.runs,
            "runs_conceded": self.runs_conceded,
            "wickets": self.wickets,
            "legal_balls": self.legal_balls,
            "labels": list(self.labels),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "OverRecord":
        return cls(
            over_number=data["over_number"],
            bowler_id=data["bowler_id"],
            runs=data.get("runs", 0),
            runs_conceded=data.get("runs_conceded", 0),
            wickets=data.get("wickets", 0),
            legal_balls=data.get("legal_balls", 0),
            labels=list(data.get("labels", [])),
        )


# ---------------------------------------------------------------------------
# Innings
# ---------------------------------------------------------------------------

@dataclass
class CurrentState:
    current_over: int = 0
    current_ball: int = 0
    on_strike: Optional[str] = None
    off_strike: Optional[str] = None
    current_bowler: Optional[str] = None
    last_ball_runs: int = 0
    last_ball_extra: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "current_over": self.current_over,
            "current_ball": self.current_ball,
            "on_strike": self.on_strike,
            "off_strike": self.off_strike,
            "current_bowler": self.current_bowler,
            "last_ball_runs": self.last_ball_runs,
            "last_ball_extra": self.last_ball_extra,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "CurrentState":
        return cls(
            current_over=data.get("current_over", 0),
            current_ball=data.get("current_ball", 0),
            on_strike=data.get("on_strike"),
            off_strike=data.get("off_strike"),
            current_bowler=data.get("current_bowler"),
            last_ball_runs=data.get("last_ball_runs", 0),
            last_ball_extra=data.get("last_ball_extra"),
        )


@dataclass
class Innings:
    batting_team_id: str
    bowling_team_id: str
    total_runs: int = 0
    wickets: int = 0
    balls: int = 0
    is_completed: bool = False
    target: Optional[int] = None
    sequence: int = 0
    extras: Extras = field(default_factory=Extras)
    batting: Dict[str, BattingStats] = field(default_factory=dict)
    bowling: Dict[str, BowlingStats] = field(default_factory=dict)
    current_state: CurrentState = field(default_factory=CurrentState)
    current_over_balls: List[BallRecord] = field(default_factory=list)
    recent_balls: List[BallRecord] = field(default_factory=list)
    over_history: List[OverRecord] = field(default_factory=list)

    @property
    def overs(self) -> float:
        return overs_value(self.balls)

    @property
    def overs_notation(self) -> str:
        return to_overs_notation(self.balls)

    @property
    def run_rate(self) -> float:
        return per_over_rate(self.total_runs, self.balls)

    def required_run_rate(self, total_overs: int) -> Optional[float]:
        if self.target is None:
            return None
        balls_left = total_overs * 6 - self.balls
        runs_needed = max(0, self.target - self.total_runs)
        if balls_left <= 0:
            return None
        return round(runs_needed * 6 / balls_left, 2)

    # -- ledger access ----------------------------------------------------

    def batter(self, player_id: str) -> BattingStats:
        """Return the batter's row, creating it on first appearance."""
        stats = self.batting.get(player_id)
        if stats is None:
            stats = BattingStats(player_id=player_id)
            self.batting[player_id] = stats
        return stats

    def bowler(self, player_id: str) -> BowlingStats:
        """Return the bowler's row, creating it on first ball."""
        stats = self.bowling.get(player_id)
        if stats is None:
            stats = BowlingStats(player_id=player_id)
            self.bowling[player_id] = stats
        return stats

    def current_over_record(self) -> Optional[OverRecord]:
        if self.over_history and not self.over_history[-1].is_complete:
            return self.over_history[-1]
        return None

    def to_dict(self, total_overs: Optional[int] = None) -> dict:
        data = {
            "batting_team_id": self.batting_team_id,
            "bowling_team_id": self.bowling_team_id,
            "total_runs": self.total_runs,
            "wickets": self.wickets,
            "balls": self.balls,
            "overs": self.overs,
            "overs_notation": self.overs_notation,
            "run_rate": self.run_rate,
            "is_completed": self.is_completed,
            "target": self.target,
            "sequence": self.sequence,
            "extras": self.extras.to_dict(),
            "batting_stats": [s.to_dict() for s in self.batting.values()],
            "bowling_stats": [s.to_dict() for s in self.bowling.values()],
            "current_state": self.current_state.to_dict(),
            "current_over_balls": [b.to_dict() for b in self.current_over_balls],
            "recent_balls": [b.to_dict() for b in self.recent_balls],
            "over_history": [o.to_dict() for o in self.over_history],
        }
        if total_overs is not None:
            data["required_run_rate"] = self.required_run_rate(total_overs)
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "Innings":
        batting = [BattingStats.from_dict(d) for d in data.get("batting_stats", [])]
        bowling = [BowlingStats.from_dict(d) for d in data.get("bowling_stats", [])]
        return cls(
            batting_team_id=str(data["batting_team_id"]),
            bowling_team_id=str(data["bowling_team_id"]),
            total_runs=data.get("total_runs", 0),
            wickets=data.get("wickets", 0),
            balls=data.get("balls", 0),
            is_completed=data.get("is_completed", False),
            target=data.get("target"),
            sequence=data.get("sequence", 0),
            extras=Extras.from_dict(data.get("extras", {})),
            batting={s.player_id: s for s in batting},
            bowling={s.player_id: s for s in bowling},
            current_state=CurrentState.from_dict(data.get("current_state", {})),
            current_over_balls=[BallRecord.from_dict(b) for b in data.get("current_over_balls", [])],
            recent_balls=[BallRecord.from_dict(b) for b in data.get("recent_balls", [])],
            over_history=[OverRecord.from_dict(o) for o in data.get("over_history", [])],
        )


# ---------------------------------------------------------------------------
# Match aggregate
# ---------------------------------------------------------------------------

@dataclass
class MatchSettings:
    overs_per_bowler: int
    max_players_per_team: int = DEFAULT_MAX_PLAYERS
    recent_balls_window: int = DEFAULT_RECENT_BALLS_WINDOW

    @staticmethod
    def bowler_cap(total_overs: int) -> int:
        """20% of the innings, never below 1 or above 4 overs."""
        return max(1, min(4, int(round(total_overs * 0.2))))

    @classmethod
    def for_overs(cls, total_overs: int, **kwargs) -> "MatchSettings":
        return cls(overs_per_bowler=cls.bowler_cap(total_overs), **kwargs)

    @property
    def all_out_wickets(self) -> int:
        return max(1, min(10, self.max_players_per_team - 1))

    def to_dict(self) -> dict:
        return {
            "overs_per_bowler": self.overs_per_bowler,
            "max_players_per_team": self.max_players_per_team,
            "recent_balls_window": self.recent_balls_window,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "MatchSettings":
        return cls(
            overs_per_bowler=data["overs_per_bowler"],
            max_players_per_team=data.get("max_players_per_team", DEFAULT_MAX_PLAYERS),
            recent_balls_window=data.get("recent_balls_window", DEFAULT_RECENT_BALLS_WINDOW),
        )


@dataclass
class BowlerRotationState:
    """Who bowled the last completed over.

    Overs per bowler are read from the innings' bowling ledger instead of a
    second counter that could drift from it.
    """
    last_bowler: Optional[str] = None

    @staticmethod
    def overs_by_bowler(innings: Innings) -> Dict[str, int]:
        return {pid: stats.completed_overs for pid, stats in innings.bowling.items()}

    def to_dict(self) -> dict:
        return {"last_bowler": self.last_bowler}

    @classmethod
    def from_dict(cls, data: dict) -> "BowlerRotationState":
        return cls(last_bowler=data.get("last_bowler"))


@dataclass
class LiveMatch:
    match_id: str
    team1_id: str
    team2_id: str
    total_overs: int
    settings: MatchSettings
    team_names: Dict[str, str] = field(default_factory=dict)
    status: str = "upcoming"
    toss_winner: Optional[str] = None
    toss_decision: Optional[str] = None
    venue: Optional[str] = None
    innings: List[Innings] = field(default_factory=list)
    current_innings: int = 0
    result: Optional[str] = None
    winner_team_id: Optional[str] = None
    bowler_rotation: BowlerRotationState = field(default_factory=BowlerRotationState)

    @property
    def current(self) -> Innings:
        return self.innings[self.current_innings]

    @property
    def total_balls(self) -> int:
        return self.total_overs * 6

    @property
    def is_second_innings(self) -> bool:
        return self.current_innings == 1

    def team_name(self, team_id: Optional[str]) -> str:
        if team_id is None:
            return "Unknown Team"
        return self.team_names.get(team_id, f"Team {team_id}")

    def to_dict(self) -> dict:
        return {
            "match_id": self.match_id,
            "team1_id": self.team1_id,
            "team2_id": self.team2_id,
            "team_names": dict(self.team_names),
            "total_overs": self.total_overs,
            "status": self.status,
            "toss_winner": self.toss_winner,
            "toss_decision": self.toss_decision,
            "venue": self.venue,
            "innings": [inn.to_dict(self.total_overs) for inn in self.innings],
            "current_innings": self.current_innings,
            "result": self.result,
            "winner_team_id": self.winner_team_id,
            "settings": self.settings.to_dict(),
            "bowler_rotation": {
                **self.bowler_rotation.to_dict(),
                # derived, for display only
                "overs_by_bowler": BowlerRotationState.overs_by_bowler(self.current) if self.innings else {},
            },
        }

    @classmethod
    def from_dict(cls, data: dict) -> "LiveMatch":
        status = data.get("status", "upcoming")
        if status not in MATCH_STATUSES:
            raise ValueError(f"Unknown match status {status!r}")
        return cls(
            match_id=str(data["match_id"]),
            team1_id=str(data["team1_id"]),
            team2_id=str(data["team2_id"]),
            total_overs=data["total_overs"],
            settings=MatchSettings.from_dict(data["settings"]),
            team_names={str(k): v for k, v in data.get("team_names", {}).items()},
            status=status,
            toss_winner=data.get("toss_winner"),
            toss_decision=data.get("toss_decision"),
            venue=data.get("venue"),
            innings=[Innings.from_dict(d) for d in data.get("innings", [])],
            current_innings=data.get("current_innings", 0),
            result=data.get("result"),
            winner_team_id=data.get("winner_team_id"),
            bowler_rotation=BowlerRotationState.from_dict(data.get("bowler_rotation", {})),
        )
