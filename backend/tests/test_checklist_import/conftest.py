"""Test fixtures for checklist_import tests."""

import itertools
from typing import List, Optional
from unittest.mock import AsyncMock

import pytest

from checklist_import.models import (
    MatchSet,
    ParsedRow,
    Player,
    PlayerMention,
    PlayerTeamLink,
    PlayerTeamRef,
    Team,
)


@pytest.fixture
def angels() -> Team:
    return Team(team_id=1, team_name="Los Angeles Angels", abbreviation="LAA")


@pytest.fixture
def dodgers() -> Team:
    return Team(team_id=2, team_name="Los Angeles Dodgers", abbreviation="LAD")


@pytest.fixture
def yankees() -> Team:
    return Team(team_id=3, team_name="New York Yankees", abbreviation="NYY")


@pytest.fixture
def mariners() -> Team:
    return Team(team_id=4, team_name="Seattle Mariners", abbreviation="SEA")


@pytest.fixture
def teams(angels, dodgers, yankees, mariners) -> List[Team]:
    return [angels, dodgers, yankees, mariners]


@pytest.fixture
def ohtani() -> Player:
    return Player(player_id=10, player_name="Shohei Ohtani", first_name="Shohei", last_name="Ohtani")


@pytest.fixture
def trout() -> Player:
    """Already linked to the Angels in the catalog."""
    return Player(
        player_id=11,
        player_name="Mike Trout",
        first_name="Mike",
        last_name="Trout",
        teams=[PlayerTeamRef(team_id=1, player_team_id=501, team_name="Los Angeles Angels")],
    )


@pytest.fixture
def ichiro() -> Player:
    return Player(player_id=12, player_name="Ichiro Suzuki", first_name="Ichiro", last_name="Suzuki")


@pytest.fixture
def acuna() -> Player:
    return Player(player_id=13, player_name="Ronald Acuña Jr.", first_name="Ronald", last_name="Acuña Jr.")


@pytest.fixture
def judge() -> Player:
    return Player(player_id=14, player_name="Aaron Judge", first_name="Aaron", last_name="Judge")


@pytest.fixture
def players(ohtani, trout, ichiro, acuna, judge) -> List[Player]:
    return [ohtani, trout, ichiro, acuna, judge]


@pytest.fixture
def make_mention():
    """Build a mention naming ``teams`` (all resolved) and offering ``candidates``."""
    def _make(
        name: str,
        candidates: Optional[List[Player]] = None,
        teams: Optional[List[Team]] = None,
        selected: Optional[Player] = None,
        links: Optional[List[PlayerTeamLink]] = None,
    ) -> PlayerMention:
        teams = teams or []
        return PlayerMention(
            name=name,
            player_matches=MatchSet(exact=list(candidates or [])),
            selected_player=selected,
            team_names=[t.team_name for t in teams],
            team_matches=MatchSet(exact=list(teams)),
            selected_teams=list(teams),
            player_team_check_teams=MatchSet(exact=list(teams)),
            player_team_matches=list(links or []),
            selected_player_teams=list(links or []),
        )

    return _make


@pytest.fixture
def make_row():
    def _make(sort_order: int, mentions: List[PlayerMention], teams: Optional[List[Team]] = None,
              card_number: Optional[str] = None, **kwargs) -> ParsedRow:
        teams = teams or []
        return ParsedRow(
            sort_order=sort_order,
            card_number=card_number if card_number is not None else str(sort_order),
            players=mentions,
            team_names=[t.team_name for t in teams],
            team_matches=MatchSet(exact=list(teams)),
            **kwargs,
        )

    return _make


@pytest.fixture
def catalog():
    """Catalog double whose link creation succeeds with increasing ids."""
    ids = itertools.count(9001)

    async def create_link(player_id, team_id):
        return PlayerTeamLink(player_team_id=next(ids), player_id=player_id, team_id=team_id)

    mock = AsyncMock()
    mock.create_or_fetch_player_team = AsyncMock(side_effect=create_link)
    mock.search_players = AsyncMock(return_value=[])
    mock.search_teams = AsyncMock(return_value=[])
    return mock
