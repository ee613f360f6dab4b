import pytest
from unittest.mock import AsyncMock
from fastapi.testclient import TestClient

from checklist_import.models import Player, PlayerTeamLink, PlayerTeamRef, Team
from main import app, get_catalog, sessions


@pytest.fixture
def catalog_teams():
    return [
        Team(team_id=1, team_name="Los Angeles Angels", abbreviation="LAA"),
        Team(team_id=2, team_name="Los Angeles Dodgers", abbreviation="LAD"),
        Team(team_id=3, team_name="New York Yankees", abbreviation="NYY"),
    ]


@pytest.fixture
def catalog_players():
    return [
        Player(player_id=10, player_name="Shohei Ohtani", first_name="Shohei", last_name="Ohtani"),
        Player(
            player_id=11,
            player_name="Mike Trout",
            first_name="Mike",
            last_name="Trout",
            teams=[PlayerTeamRef(team_id=1, player_team_id=501, team_name="Los Angeles Angels")],
        ),
        Player(player_id=14, player_name="Aaron Judge", first_name="Aaron", last_name="Judge"),
    ]


@pytest.fixture
def mock_catalog(catalog_players, catalog_teams):
    """Catalog service double used in place of the HTTP client."""
    async def create_link(player_id, team_id):
        return PlayerTeamLink(player_team_id=9000 + player_id * 10 + team_id, player_id=player_id, team_id=team_id)

    catalog = AsyncMock()
    catalog.search_players = AsyncMock(return_value=catalog_players)
    catalog.search_teams = AsyncMock(return_value=catalog_teams)
    catalog.create_or_fetch_player_team = AsyncMock(side_effect=create_link)
    return catalog


@pytest.fixture(scope="function")
def client(mock_catalog):
    """Create test client with catalog override."""
    app.dependency_overrides[get_catalog] = lambda: mock_catalog
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
    sessions.clear()


@pytest.fixture
def checklist_text():
    return (
        "Card #\tPlayer\tTeam\tRC\n"
        "1\tShohei Ohtani\tLos Angeles Angels\tRC\n"
        "2\tMike Trout\tLos Angeles Angels\t\n"
        "10\tAaron Judge\tNew York Yankees\t\n"
        "11\tNew Prospect\tHalos\tRC\n"
    )


@pytest.fixture
def session_id(client, checklist_text):
    """Open an import session and return its id."""
    response = client.post(
        "/api/import/sessions",
        json={"checklist": checklist_text, "organization_id": 1},
    )
    assert response.status_code == 200
    return response.json()["session_id"]
