"""
Resolve feed competitors to internal team records.

Feed abbreviations are translated through a configurable alias table before
lookup (the feed calls Washington "WSH", the pick'em schema calls it "WAS").
Unknown teams are created lazily; conference and division are not supplied
by the scoreboard feed, so new teams get an explicit placeholder. New teams
get no logo; the app serves its own team logos.
"""

import logging
from typing import Any, Dict, Mapping, Optional

from .errors import TeamResolutionFailure
from .models import TeamDescriptor
from .storage import NFLDataStore

logger = logging.getLogger(__name__)

COLOR_POLICY_BACKFILL = "backfill"
COLOR_POLICY_AUTHORITATIVE = "authoritative"


def normalize_color(value: Optional[str]) -> Optional[str]:
    """Turn a feed color like ``e31837`` into ``#E31837``."""
    if not value:
        return None
    value = value.strip().lstrip("#")
    if not value:
        return None
    return f"#{value.upper()}"


class TeamResolver:
    """Maps TeamDescriptors to stored teams, creating or backfilling them."""

    def __init__(
        self,
        store: NFLDataStore,
        aliases: Optional[Mapping[str, str]] = None,
        color_policy: str = COLOR_POLICY_BACKFILL,
        unknown_placeholder: str = "Unknown",
    ):
        if color_policy not in (COLOR_POLICY_BACKFILL, COLOR_POLICY_AUTHORITATIVE):
            raise ValueError(f"Unknown team color policy: {color_policy}")
        self.store = store
        self.aliases = {k.upper(): v.upper() for k, v in (aliases or {}).items()}
        self.color_policy = color_policy
        self.unknown_placeholder = unknown_placeholder

    def canonical_code(self, code: str) -> str:
        code = code.strip().upper()
        return self.aliases.get(code, code)

    async def resolve(self, descriptor: TeamDescriptor, scores_only: bool = False) -> Optional[Dict[str, Any]]:
        """
        Resolve one competitor to a stored team.

        Args:
            descriptor: Team as described by the feed
            scores_only: Look up only; never create or write a team

        Returns:
            The stored team row, or None when scores_only is set and the team
            is not stored yet

        Raises:
            TeamResolutionFailure: The descriptor lacks a code or name
        """
        if not descriptor.code or not descriptor.code.strip():
            raise TeamResolutionFailure(f"Competitor '{descriptor.display_name or descriptor.name}' has no team code")
        if not (descriptor.name or descriptor.display_name):
            raise TeamResolutionFailure(f"Competitor '{descriptor.code}' has no team name")

        code = self.canonical_code(descriptor.code)
        team = await self.store.get_team_by_code(code)

        if team is None:
            if scores_only:
                logger.debug(f"Team {code} not stored yet; score-only lookup skips it")
                return None
            team = await self.store.create_or_update_team({
                "team_code": code,
                "team_name": descriptor.name or descriptor.display_name,
                "team_city": descriptor.city or "",
                "team_conference": self.unknown_placeholder,
                "team_division": self.unknown_placeholder,
                "team_primary_color": normalize_color(descriptor.color),
                "team_secondary_color": normalize_color(descriptor.alternate_color),
                "team_logo": None,
            })
            logger.info(f"Created new team: {descriptor.city or ''} {descriptor.name or code}".strip())
            return team

        if scores_only:
            return team

        updates = self._feed_updates(team, descriptor)
        if updates:
            team = await self.store.create_or_update_team({"team_code": code, **updates})
            logger.debug(f"Updated team {code} from feed: {sorted(updates)}")
        return team

    def _feed_updates(self, team: Dict[str, Any], descriptor: TeamDescriptor) -> Dict[str, Any]:
        """Fields the feed should change on an existing team under the color policy."""
        feed_values = {
            "team_primary_color": normalize_color(descriptor.color),
            "team_secondary_color": normalize_color(descriptor.alternate_color),
        }
        authoritative = self.color_policy == COLOR_POLICY_AUTHORITATIVE
        # Logos are served locally; only the authoritative policy takes the feed's
        if authoritative:
            feed_values["team_logo"] = descriptor.logo
        updates = {}
        for column, feed_value in feed_values.items():
            if feed_value is None or team.get(column) == feed_value:
                continue
            if authoritative or not team.get(column):
                updates[column] = feed_value
        return updates
