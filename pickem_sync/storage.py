"""
Storage contract consumed by the sync engine.

The engine depends only on this narrow async interface; PickemDatabase in
database.py is the SQLite implementation, and any other backend that
provides these coroutines can be injected instead.
"""

from typing import Any, Dict, List, Optional, Protocol, runtime_checkable


@runtime_checkable
class NFLDataStore(Protocol):
    """Async persistence operations for seasons, teams and games."""

    async def get_team_by_code(self, team_code: str) -> Optional[Dict[str, Any]]:
        ...

    async def create_or_update_team(self, team_data: Dict[str, Any]) -> Dict[str, Any]:
        """Insert a team keyed by ``team_code`` or update the given fields of an existing one."""
        ...

    async def find_football_game(
        self, season_id: str, week: int, home_team_id: str, away_team_id: str
    ) -> Optional[Dict[str, Any]]:
        ...

    async def create_football_game(self, game_data: Dict[str, Any]) -> Dict[str, Any]:
        """Insert a game; raises DuplicateGameError if its natural key already exists."""
        ...

    async def update_football_game(self, game_id: str, updates: Dict[str, Any]) -> None:
        ...

    async def get_current_season(self) -> Optional[Dict[str, Any]]:
        ...

    async def get_games_by_season_and_week(self, season_id: str, week: int) -> List[Dict[str, Any]]:
        ...
