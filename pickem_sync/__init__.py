"""
Pick'em Sync Package

Keeps a pick'em league's NFL teams, games and scores in step with the ESPN scoreboard feed.
"""

from .database import PickemDatabase
from .espn_service import ESPNService
from .score_refresh import ScoreRefreshService
from .sync_orchestrator import SyncOrchestrator

__version__ = "0.1.0"
__all__ = ["PickemDatabase", "ESPNService", "ScoreRefreshService", "SyncOrchestrator"]
