"""Session-scoped memo of player-team links known to exist."""

import logging
from typing import Dict, Iterable, List, Optional, Tuple

from .models import CatalogId, Player, PlayerMention, PlayerTeamLink, Team

logger = logging.getLogger(__name__)


def placeholder_id(player_id: CatalogId, team_id: CatalogId) -> str:
    return f"existing_{player_id}_{team_id}"


class EntityResolutionCache:
    """Remembers which (player, team) links are confirmed in the catalog.

    One instance belongs to one import session. It is filled from create or
    fetch responses, from links already attached to mentions, and from the
    ``teams`` a catalog player carried before the import began, so the
    reconciler never asks the catalog twice for the same pair.
    """

    def __init__(self) -> None:
        self._links: Dict[Tuple[CatalogId, CatalogId], PlayerTeamLink] = {}

    def __len__(self) -> int:
        return len(self._links)

    def __contains__(self, key) -> bool:
        return key in self._links

    def has(self, player_id: CatalogId, team_id: CatalogId) -> bool:
        return (player_id, team_id) in self._links

    def lookup(self, player_id: CatalogId, team_id: CatalogId) -> Optional[PlayerTeamLink]:
        return self._links.get((player_id, team_id))

    def record(self, link: PlayerTeamLink) -> PlayerTeamLink:
        """Remember ``link``; recording a known pair again keeps one entry.

        A real id replaces an ``existing_`` placeholder for the same pair.
        Returns the entry now held for the pair.
        """
        current = self._links.get(link.key)
        if current is None or (current.is_placeholder and not link.is_placeholder):
            self._links[link.key] = link
            return link
        return current

    def record_all(self, links: Iterable[PlayerTeamLink]) -> None:
        for link in links:
            self.record(link)

    def links_for(self, player_id: CatalogId) -> List[PlayerTeamLink]:
        return [link for key, link in self._links.items() if key[0] == player_id]

    def synthesize_existing(self, player: Player, team: Team) -> PlayerTeamLink:
        """Record a placeholder for a link the catalog reported as already existing."""
        link = PlayerTeamLink(
            player_team_id=placeholder_id(player.player_id, team.team_id),
            player_id=player.player_id,
            team_id=team.team_id,
            player_name=player.player_name,
            team_name=team.team_name,
        )
        return self.record(link)

    def seed_from_player(self, player: Player) -> None:
        """Ingest the associations a catalog player already had."""
        for ref in player.teams:
            self.record(
                PlayerTeamLink(
                    player_team_id=ref.player_team_id or placeholder_id(player.player_id, ref.team_id),
                    player_id=player.player_id,
                    team_id=ref.team_id,
                    player_name=player.player_name,
                    team_name=ref.team_name,
                )
            )

    def seed_from_mention(self, mention: PlayerMention) -> None:
        self.record_all(mention.player_team_matches)
        if mention.selected_player is not None:
            self.seed_from_player(mention.selected_player)

    def clear(self) -> None:
        logger.debug(f"Clearing {len(self._links)} cached player-team links")
        self._links.clear()
