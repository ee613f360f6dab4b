"""Dataclasses for checklist import reconciliation."""

from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional, Union

CatalogId = Union[int, str]

FLAG_FIELDS = ("is_rc", "is_autograph", "is_relic", "is_short_print")

EDITABLE_FIELDS = FLAG_FIELDS + ("card_number", "print_run", "color_id", "notes")


@dataclass
class Team:
    team_id: CatalogId
    team_name: str
    abbreviation: Optional[str] = None
    primary_color: Optional[str] = None
    secondary_color: Optional[str] = None
    organization: Optional[CatalogId] = None

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "Team":
        return cls(
            team_id=data["teamId"],
            team_name=data.get("teamName") or "",
            abbreviation=data.get("abbreviation"),
            primary_color=data.get("primaryColor"),
            secondary_color=data.get("secondaryColor"),
            organization=data.get("organizationId", data.get("organization")),
        )


@dataclass
class PlayerTeamRef:
    """An association a player already had in the catalog before the import."""
    team_id: CatalogId
    player_team_id: Optional[CatalogId] = None
    team_name: str = ""


@dataclass
class Player:
    player_id: CatalogId
    player_name: str
    first_name: str = ""
    last_name: str = ""
    teams: List[PlayerTeamRef] = field(default_factory=list)

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "Player":
        first = data.get("firstName") or ""
        last = data.get("lastName") or ""
        name = data.get("playerName") or f"{first} {last}".strip()
        teams = [
            PlayerTeamRef(
                team_id=t["teamId"],
                player_team_id=t.get("playerTeamId"),
                team_name=t.get("teamName") or "",
            )
            for t in data.get("teams") or []
        ]
        return cls(
            player_id=data["playerId"],
            player_name=name,
            first_name=first,
            last_name=last,
            teams=teams,
        )


@dataclass
class PlayerTeamLink:
    """A player-team association confirmed to exist in the catalog.

    Links synthesized after an "already exists" response carry the
    placeholder id ``existing_{player_id}_{team_id}``; they are treated the
    same as links returned by a create call.
    """
    player_team_id: CatalogId
    player_id: CatalogId
    team_id: CatalogId
    player_name: str = ""
    team_name: str = ""

    @property
    def key(self):
        return (self.player_id, self.team_id)

    @property
    def is_placeholder(self) -> bool:
        return str(self.player_team_id).startswith("existing_")

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "PlayerTeamLink":
        return cls(
            player_team_id=data["playerTeamId"],
            player_id=data["playerId"],
            team_id=data["teamId"],
            player_name=data.get("playerName") or "",
            team_name=data.get("teamName") or "",
        )


@dataclass
class MatchSet:
    """Exact and fuzzy catalog candidates for one free-text mention."""
    exact: list = field(default_factory=list)
    fuzzy: list = field(default_factory=list)

    def find(self, entity_id: CatalogId, id_attr: str):
        for candidate in self.exact + self.fuzzy:
            if getattr(candidate, id_attr) == entity_id:
                return candidate
        return None

    def copy(self) -> "MatchSet":
        return MatchSet(exact=list(self.exact), fuzzy=list(self.fuzzy))


@dataclass
class PlayerMention:
    """One player reference on a card, with its resolution state."""
    name: str
    player_matches: MatchSet = field(default_factory=MatchSet)
    selected_player: Optional[Player] = None
    team_names: List[str] = field(default_factory=list)
    team_matches: MatchSet = field(default_factory=MatchSet)
    selected_teams: List[Optional[Team]] = field(default_factory=list)
    player_team_check_teams: MatchSet = field(default_factory=MatchSet)
    player_team_matches: List[PlayerTeamLink] = field(default_factory=list)
    selected_player_teams: List[PlayerTeamLink] = field(default_factory=list)

    def required_teams(self) -> List[Team]:
        """Teams this mention's player-team links are checked against."""
        return list(self.player_team_check_teams.exact)

    def link_targets(self) -> List[Team]:
        """Teams to confirm links for once a player is selected.

        Falls back to the mention's resolved teams when no position-based
        set was supplied.
        """
        return list(self.player_team_check_teams.exact or self.team_matches.exact)

    def has_link(self, player_id: CatalogId, team_id: CatalogId) -> bool:
        return any(
            link.player_id == player_id and link.team_id == team_id
            for link in self.player_team_matches
        )

    def with_links(self, links: List[PlayerTeamLink]) -> "PlayerMention":
        """Return a copy with ``links`` added to both link lists, skipping known pairs."""
        matches = list(self.player_team_matches)
        selected = list(self.selected_player_teams)
        seen = {link.key for link in matches}
        selected_seen = {link.key for link in selected}
        for link in links:
            if link.key not in seen:
                matches.append(link)
                seen.add(link.key)
            if link.key not in selected_seen:
                selected.append(link)
                selected_seen.add(link.key)
        return replace(self, player_team_matches=matches, selected_player_teams=selected)


@dataclass
class ParsedRow:
    """A card from the imported checklist.

    ``sort_order`` is the row identity; display order can be re-sorted and
    filtered independently, so lookups never use list positions.
    """
    sort_order: int
    card_number: str = ""
    players: List[PlayerMention] = field(default_factory=list)
    team_names: List[str] = field(default_factory=list)
    team_matches: MatchSet = field(default_factory=MatchSet)
    is_rc: bool = False
    is_autograph: bool = False
    is_relic: bool = False
    is_short_print: bool = False
    print_run: Optional[int] = None
    color_id: Optional[int] = None
    notes: str = ""

    def with_player(self, index: int, mention: PlayerMention) -> "ParsedRow":
        players = list(self.players)
        players[index] = mention
        return replace(self, players=players)


@dataclass
class Readiness:
    ready: bool
    reason: Optional[str] = None


@dataclass
class Summary:
    ready_count: int
    needs_work_count: int


@dataclass
class LinkOutcome:
    """Result of one check-or-create attempt for a (player, team) pair."""
    player_id: CatalogId
    team_id: CatalogId
    link: Optional[PlayerTeamLink] = None
    created: bool = False
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.link is not None


@dataclass
class OperationResult:
    """What one operator action changed across the working set."""
    updated_mentions: int = 0
    created_links: List[PlayerTeamLink] = field(default_factory=list)
    failures: List[LinkOutcome] = field(default_factory=list)
    player: Optional[Player] = None
    team: Optional[Team] = None
