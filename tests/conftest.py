"""
Shared builders for ESPN scoreboard payloads and temporary databases.
"""

import tempfile
from pathlib import Path

import httpx
import pytest

from pickem_sync.config_manager import ConfigManager
from pickem_sync.database import PickemDatabase
from pickem_sync.metrics import get_metrics_collector


# 28 distinct teams, enough for a full 14-game week
TEAM_CODES = [
    "ARI", "ATL", "BAL", "BUF", "CAR", "CHI", "CIN", "CLE", "DAL", "DEN",
    "DET", "GB", "HOU", "IND", "JAX", "KC", "LV", "LAC", "LAR", "MIA",
    "MIN", "NE", "NO", "NYG", "NYJ", "PHI", "PIT", "SEA",
]


def make_team(code, name=None, location=None, color="112233", alternate_color="445566", logo=None):
    return {
        "id": code.lower(),
        "abbreviation": code,
        "name": name or f"{code} Team",
        "displayName": f"{location or code} {name or 'Team'}",
        "location": location or f"{code} City",
        "color": color,
        "alternateColor": alternate_color,
        "logo": logo or f"https://a.espncdn.com/i/teamlogos/nfl/500/{code.lower()}.png",
    }


def make_event(event_id, home, away, home_score="0", away_score="0", week=1,
               status="STATUS_SCHEDULED", date="2024-09-08T17:00Z"):
    """Build one scoreboard event; ``home``/``away`` are team codes or team dicts."""
    home_team = home if isinstance(home, dict) else make_team(home)
    away_team = away if isinstance(away, dict) else make_team(away)
    return {
        "id": str(event_id),
        "name": f"{away_team['displayName']} at {home_team['displayName']}",
        "date": date,
        "week": {"number": week},
        "status": {"type": {"name": status, "detail": status, "completed": status == "STATUS_FINAL"}},
        "competitions": [{
            "date": date,
            "competitors": [
                {"homeAway": "home", "score": home_score, "team": home_team},
                {"homeAway": "away", "score": away_score, "team": away_team},
            ],
        }],
    }


def make_full_week(week=1, scores=None, status="STATUS_SCHEDULED"):
    """Fourteen games pairing TEAM_CODES in order; ``scores`` maps game index to (home, away)."""
    scores = scores or {}
    events = []
    for index in range(14):
        home, away = TEAM_CODES[2 * index], TEAM_CODES[2 * index + 1]
        home_score, away_score = scores.get(index, ("0", "0"))
        events.append(make_event(
            f"{week}{index:02d}", home, away, home_score, away_score, week=week, status=status
        ))
    return events


def scoreboard_transport(events_by_week, season=None, requests=None, fail_weeks=()):
    """
    MockTransport serving /scoreboard.

    Week requests answer from ``events_by_week`` (week -> events list); a
    request without a week answers with the season block. Weeks listed in
    ``fail_weeks`` always return HTTP 500. Every request is appended to
    ``requests`` when given.
    """
    season = season or {"year": 2024, "type": 2}

    def handler(request: httpx.Request) -> httpx.Response:
        if requests is not None:
            requests.append(request)
        week = request.url.params.get("week")
        if week is None:
            return httpx.Response(200, json={"season": season, "events": []})
        week = int(week)
        if week in fail_weeks:
            return httpx.Response(500, json={"error": "upstream down"})
        return httpx.Response(200, json={"season": season, "events": events_by_week.get(week, [])})

    return httpx.MockTransport(handler)


@pytest.fixture
def config_manager():
    manager = ConfigManager(enable_hot_reload=False)
    yield manager
    manager.stop()


@pytest.fixture
def temp_db():
    handle = tempfile.NamedTemporaryFile(delete=False, suffix=".db")
    handle.close()
    db = PickemDatabase(handle.name)
    yield db
    db.close()
    for suffix in ("", "-wal", "-shm"):
        Path(handle.name + suffix).unlink(missing_ok=True)


@pytest.fixture(autouse=True)
def reset_metrics():
    get_metrics_collector().reset()
    yield
