"""
Typed records for parsed feed data and sync results.

Storage records (teams, games, seasons) stay plain dictionaries; these
dataclasses describe what comes out of the upstream feed and what a sync
run reports back.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from .errors import MalformedRecord


@dataclass
class TeamDescriptor:
    """One competitor's team as described by the feed."""
    code: Optional[str]
    name: Optional[str]
    display_name: Optional[str] = None
    city: Optional[str] = None
    color: Optional[str] = None
    alternate_color: Optional[str] = None
    logo: Optional[str] = None
    external_id: Optional[str] = None


@dataclass
class Competitor:
    home_away: Optional[str]
    team: TeamDescriptor
    score: Optional[int] = None


@dataclass
class GameStatus:
    status_type: str = "STATUS_SCHEDULED"
    status_detail: Optional[str] = None
    completed: bool = False


@dataclass
class FetchedGame:
    """One scoreboard event, in the order the feed returned it."""
    external_id: Optional[str]
    week: int
    season_type: int
    game_date: Optional[str]
    start_time: Optional[str]
    status: GameStatus = field(default_factory=GameStatus)
    competitors: List[Competitor] = field(default_factory=list)
    name: Optional[str] = None
    season_year: Optional[str] = None

    def require_sides(self) -> Tuple[Competitor, Competitor]:
        """
        Return (home, away).

        Raises:
            MalformedRecord: Fewer than two competitors, or no home/away side
        """
        if len(self.competitors) < 2:
            raise MalformedRecord(
                f"Game {self.external_id or self.name or '?'} has {len(self.competitors)} competitor(s)"
            )
        home = next((c for c in self.competitors if c.home_away == "home"), None)
        away = next((c for c in self.competitors if c.home_away == "away"), None)
        if home is None or away is None:
            raise MalformedRecord(
                f"Game {self.external_id or self.name or '?'} is missing a home or away competitor"
            )
        return home, away


class ReconcileOutcome(str, Enum):
    """Terminal states of one game's reconciliation."""
    CREATED = "created"
    UPDATED = "updated"
    SKIPPED = "skipped"


@dataclass
class WeekResult:
    week: int
    season_type: int
    created: int = 0
    updated: int = 0
    skipped: int = 0
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "week": self.week,
            "season_type": self.season_type,
            "created": self.created,
            "updated": self.updated,
            "skipped": self.skipped,
        }
        if self.error:
            data["error"] = self.error
        return data


@dataclass
class SyncResult:
    """Aggregate counts of a sync run; a best-effort lower bound."""
    created: int = 0
    updated: int = 0
    skipped: int = 0
    failed_weeks: List[Tuple[int, int]] = field(default_factory=list)
    weeks: List[WeekResult] = field(default_factory=list)

    def record(self, outcome: ReconcileOutcome, week_result: Optional[WeekResult] = None) -> None:
        attr = outcome.value
        setattr(self, attr, getattr(self, attr) + 1)
        if week_result is not None:
            setattr(week_result, attr, getattr(week_result, attr) + 1)

    def add_week(self, week_result: WeekResult) -> None:
        self.weeks.append(week_result)
        if week_result.error:
            self.failed_weeks.append((week_result.season_type, week_result.week))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "created": self.created,
            "updated": self.updated,
            "skipped": self.skipped,
            "failed_weeks": [{"season_type": st, "week": w} for st, w in self.failed_weeks],
            "weeks": [w.to_dict() for w in self.weeks],
        }
