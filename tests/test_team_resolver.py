"""
Tests for team resolution: aliases, lazy creation and color policies.
"""

import pytest
from unittest.mock import AsyncMock

from pickem_sync.errors import TeamResolutionFailure
from pickem_sync.models import TeamDescriptor
from pickem_sync.team_resolver import TeamResolver, normalize_color


def _washington(**overrides):
    values = dict(
        code="WSH", name="Commanders", display_name="Washington Commanders", city="Washington",
        color="5a1414", alternate_color="ffb612", logo="https://a.espncdn.com/i/teamlogos/nfl/500/wsh.png",
    )
    values.update(overrides)
    return TeamDescriptor(**values)


class TestNormalizeColor:
    def test_normalize(self):
        assert normalize_color("e31837") == "#E31837"
        assert normalize_color("#ffb612") == "#FFB612"
        assert normalize_color("") is None
        assert normalize_color(None) is None


class TestTeamResolver:
    """Test resolution against a real SQLite store."""

    @pytest.mark.asyncio
    async def test_alias_resolves_to_existing_team(self, temp_db):
        """A feed WSH resolves to the stored WAS team without creating a new one."""
        stored = await temp_db.create_or_update_team({"team_code": "WAS", "team_name": "Commanders"})
        resolver = TeamResolver(temp_db, aliases={"WSH": "WAS"})

        team = await resolver.resolve(_washington())

        assert team["id"] == stored["id"]
        assert await temp_db.get_team_by_code("WSH") is None
        assert temp_db.get_team_count() == 1

    @pytest.mark.asyncio
    async def test_absent_team_created_with_placeholders(self, temp_db):
        resolver = TeamResolver(temp_db, aliases={"WSH": "WAS"})

        team = await resolver.resolve(_washington())

        assert team["team_code"] == "WAS"
        assert team["team_name"] == "Commanders"
        assert team["team_city"] == "Washington"
        assert team["team_conference"] == "Unknown"
        assert team["team_division"] == "Unknown"
        assert team["team_primary_color"] == "#5A1414"
        assert team["team_secondary_color"] == "#FFB612"
        assert team["team_logo"] is None

    @pytest.mark.asyncio
    async def test_backfill_policy_keeps_curated_colors(self, temp_db):
        await temp_db.create_or_update_team({
            "team_code": "WAS", "team_name": "Commanders", "team_primary_color": "#773141",
        })
        resolver = TeamResolver(temp_db, aliases={"WSH": "WAS"}, color_policy="backfill")

        team = await resolver.resolve(_washington())

        assert team["team_primary_color"] == "#773141"
        assert team["team_secondary_color"] == "#FFB612"
        assert team["team_logo"] is None

    @pytest.mark.asyncio
    async def test_authoritative_policy_overwrites_colors(self, temp_db):
        await temp_db.create_or_update_team({
            "team_code": "WAS", "team_name": "Commanders", "team_primary_color": "#773141",
        })
        resolver = TeamResolver(temp_db, aliases={"WSH": "WAS"}, color_policy="authoritative")

        team = await resolver.resolve(_washington())

        assert team["team_primary_color"] == "#5A1414"
        assert team["team_logo"].endswith("wsh.png")

    @pytest.mark.asyncio
    async def test_missing_code_fails(self, temp_db):
        resolver = TeamResolver(temp_db)
        with pytest.raises(TeamResolutionFailure):
            await resolver.resolve(_washington(code=None))
        with pytest.raises(TeamResolutionFailure):
            await resolver.resolve(_washington(code="  "))

    @pytest.mark.asyncio
    async def test_missing_name_fails(self, temp_db):
        resolver = TeamResolver(temp_db)
        with pytest.raises(TeamResolutionFailure):
            await resolver.resolve(_washington(name=None, display_name=None))
        assert temp_db.get_team_count() == 0

    def test_unknown_color_policy(self, temp_db):
        with pytest.raises(ValueError):
            TeamResolver(temp_db, color_policy="merge")


class TestScoreOnlyResolution:
    """Score-only resolution never writes a team."""

    def setup_method(self):
        self.store = AsyncMock()

    @pytest.mark.asyncio
    async def test_absent_team_returns_none_without_writing(self):
        self.store.get_team_by_code.return_value = None
        resolver = TeamResolver(self.store, aliases={"WSH": "WAS"})

        assert await resolver.resolve(_washington(), scores_only=True) is None
        self.store.get_team_by_code.assert_awaited_once_with("WAS")
        self.store.create_or_update_team.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_existing_team_is_not_backfilled(self):
        stored = {"id": "t1", "team_code": "WAS", "team_primary_color": None, "team_logo": None}
        self.store.get_team_by_code.return_value = stored
        resolver = TeamResolver(self.store, aliases={"WSH": "WAS"})

        assert await resolver.resolve(_washington(), scores_only=True) is stored
        self.store.create_or_update_team.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unchanged_team_is_not_rewritten_in_full_mode(self):
        stored = {
            "id": "t1", "team_code": "WAS",
            "team_primary_color": "#5A1414", "team_secondary_color": "#FFB612",
            "team_logo": "https://a.espncdn.com/i/teamlogos/nfl/500/wsh.png",
        }
        self.store.get_team_by_code.return_value = stored
        resolver = TeamResolver(self.store, aliases={"WSH": "WAS"})

        assert await resolver.resolve(_washington()) is stored
        self.store.create_or_update_team.assert_not_awaited()
