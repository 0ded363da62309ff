"""Command-line runner for ad hoc and scheduled syncs.

Usage:
    pickem-sync sync --week 5 --season-type 2 --year 2024
    pickem-sync sync                 # full season, preseason included
    pickem-sync scores               # score-only, current and previous week
    pickem-sync refresh --week 5     # score-only, only if stored scores are stale
    pickem-sync status               # current upstream season/week

Exit codes:
    0 - Success
    1 - Failure (check logs for details)
"""

import argparse
import asyncio
import json
import logging
import os
import sys
from typing import List, Optional

from .config_manager import get_config_manager
from .database import PickemDatabase
from .errors import PickemSyncError, SyncDeadlineExceeded
from .espn_service import ESPNService
from .logging_config import setup_logging
from .metrics import get_metrics_collector
from .score_refresh import ScoreRefreshService
from .sync_orchestrator import SyncOrchestrator

logger = logging.getLogger("pickem_sync.cli")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="pickem-sync", description="Sync NFL schedules and scores from ESPN")
    parser.add_argument("--db", default=os.getenv("PICKEM_SYNC_DB_PATH", "pickem.db"), help="SQLite database path")
    parser.add_argument("--log-level", default=os.getenv("PICKEM_SYNC_LOG_LEVEL", "INFO"))
    parser.add_argument("--deadline", type=float, default=None, help="Abort the run after this many seconds")
    sub = parser.add_subparsers(dest="command", required=True)

    sync = sub.add_parser("sync", help="Full sync of one week or the whole season")
    sync.add_argument("--season-id", help="Local season id (defaults to the current season)")
    sync.add_argument("--week", type=int)
    sync.add_argument("--season-type", type=int, choices=(1, 2, 3))
    sync.add_argument("--year", help="Upstream season year")
    sync.add_argument("--scores-only", action="store_true")
    sync.add_argument("--no-preseason", action="store_true")

    sub.add_parser("scores", help="Score-only sync of the current and previous week")

    refresh = sub.add_parser("refresh", help="Score-only sync if the stored scores are stale")
    refresh.add_argument("--week", type=int, help="Week to check (defaults to the current week)")

    sub.add_parser("status", help="Show the upstream's current season and week")
    return parser


async def _run(args: argparse.Namespace) -> dict:
    store = PickemDatabase(args.db)
    try:
        async with ESPNService(get_config_manager()) as espn:
            orchestrator = SyncOrchestrator(store, espn)

            if args.command == "status":
                return await espn.get_current_season_status()

            if args.command == "scores":
                return (await orchestrator.update_game_scores(deadline=args.deadline)).to_dict()

            if args.command == "refresh":
                refresher = ScoreRefreshService(store, orchestrator)
                if args.week is None:
                    return await refresher.update_current_week_if_stale()
                season = await store.get_current_season()
                if not season:
                    raise PickemSyncError("No current season set")
                return await refresher.update_scores_if_stale(season["id"], args.week)

            season_id = args.season_id
            year = args.year
            if not season_id:
                season = await store.get_current_season()
                if not season:
                    raise PickemSyncError("No current season set; pass --season-id")
                season_id = season["id"]
                year = year or season.get("season")
            result = await orchestrator.update_nfl_games(
                season_id,
                week=args.week,
                season_type=args.season_type,
                scores_only=args.scores_only,
                year=year,
                include_preseason=not args.no_preseason,
                deadline=args.deadline,
            )
            return result.to_dict()
    finally:
        store.close()


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(log_level=args.log_level.upper(), structured=False)

    try:
        output = asyncio.run(_run(args))
    except SyncDeadlineExceeded as e:
        logger.error(str(e))
        print(json.dumps(e.result.to_dict(), indent=2, default=str))
        return 1
    except (PickemSyncError, ValueError) as e:
        logger.error(f"Sync failed: {e}")
        return 1
    finally:
        metrics = get_metrics_collector()
        logger.debug(
            f"ESPN requests: {metrics.counter_total('espn_cache_requests_total')}, "
            f"games reconciled: {metrics.counter_total('games_reconciled_total')}"
        )

    print(json.dumps(output, indent=2, default=str))
    return 0


def run() -> None:
    sys.exit(main())


if __name__ == "__main__":
    run()
