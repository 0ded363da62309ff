"""
Reconcile one fetched game against local storage.

Each fetched game ends in exactly one of CREATED, UPDATED or SKIPPED:

- an existing game always gets fresh scores, status and scores_updated_at;
  its schedule (game_date, start_time, season_type) is only touched outside
  score-only mode;
- a missing game is created in full-sync mode and skipped in score-only mode;
- malformed games and unresolvable competitors are skipped.
"""

import logging
from datetime import datetime, UTC
from typing import Any, Callable, Dict, Optional

from .errors import DuplicateGameError, MalformedRecord, TeamResolutionFailure
from .metrics import get_metrics_collector
from .models import FetchedGame, ReconcileOutcome
from .storage import NFLDataStore
from .team_resolver import TeamResolver

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(UTC)


class GameReconciler:
    """Decides create/update/skip for fetched games and applies it through the store."""

    def __init__(
        self,
        store: NFLDataStore,
        team_resolver: TeamResolver,
        now: Callable[[], datetime] = _utc_now,
    ):
        self.store = store
        self.team_resolver = team_resolver
        self._now = now

    async def reconcile(self, game: FetchedGame, season_id: str, scores_only: bool = False) -> ReconcileOutcome:
        outcome = await self._reconcile(game, season_id, scores_only)
        get_metrics_collector().increment_counter(
            "games_reconciled_total", outcome=outcome.value, scores_only=str(scores_only).lower()
        )
        return outcome

    async def _reconcile(self, game: FetchedGame, season_id: str, scores_only: bool) -> ReconcileOutcome:
        try:
            home, away = game.require_sides()
        except MalformedRecord as e:
            logger.warning(f"Skipping malformed game: {e}")
            return ReconcileOutcome.SKIPPED

        try:
            home_team = await self.team_resolver.resolve(home.team, scores_only=scores_only)
            away_team = await self.team_resolver.resolve(away.team, scores_only=scores_only)
        except TeamResolutionFailure as e:
            logger.warning(f"Skipping game {game.external_id or game.name}: {e}")
            return ReconcileOutcome.SKIPPED

        if home_team is None or away_team is None:
            return ReconcileOutcome.SKIPPED

        existing = await self.store.find_football_game(season_id, game.week, home_team["id"], away_team["id"])
        if existing is not None:
            await self._update(existing, game, home.score, away.score, scores_only)
            return ReconcileOutcome.UPDATED

        if scores_only:
            logger.debug(
                f"No local game for {away_team['team_code']} at {home_team['team_code']} "
                f"week {game.week}; score-only sync does not create games"
            )
            return ReconcileOutcome.SKIPPED

        try:
            await self.store.create_football_game({
                "season_id": season_id,
                "week": game.week,
                "home_team_id": home_team["id"],
                "away_team_id": away_team["id"],
                "home_score": home.score or 0,
                "away_score": away.score or 0,
                "game_date": game.game_date,
                "start_time": game.start_time,
                "status": game.status.status_type,
                "season_type": game.season_type,
                "scores_updated_at": self._now().isoformat(),
            })
        except DuplicateGameError:
            # Another run inserted the same game between our lookup and insert
            existing = await self.store.find_football_game(season_id, game.week, home_team["id"], away_team["id"])
            if existing is None:
                raise
            await self._update(existing, game, home.score, away.score, scores_only)
            return ReconcileOutcome.UPDATED

        return ReconcileOutcome.CREATED

    async def _update(
        self,
        existing: Dict[str, Any],
        game: FetchedGame,
        home_score: Optional[int],
        away_score: Optional[int],
        scores_only: bool,
    ) -> None:
        updates: Dict[str, Any] = {
            "home_score": home_score or 0,
            "away_score": away_score or 0,
            "status": game.status.status_type,
            "scores_updated_at": self._now().isoformat(),
        }
        if not scores_only:
            updates["season_type"] = game.season_type
            if game.game_date:
                updates["game_date"] = game.game_date
            if game.start_time:
                updates["start_time"] = game.start_time
        await self.store.update_football_game(existing["id"], updates)
