"""Tests for import sessions."""

import pytest

from checklist_import.checklist import RawCard
from checklist_import.models import Team
from checklist_import.session import ImportSession


@pytest.fixture
def raw_cards():
    return [
        RawCard(sort_order=1, card_number="1", player_names=["Shohei Ohtani"], team_names=["Los Angeles Angels"]),
        RawCard(sort_order=2, card_number="2", player_names=["Mike Trout"], team_names=["Los Angeles Angels"]),
        RawCard(sort_order=3, card_number="3", player_names=["Shohei Otani"], team_names=["Los Angeles Angels"]),
    ]


class TestImportSession:
    @pytest.mark.asyncio
    async def test_from_checklist_fetches_catalog(self, catalog, raw_cards, players, teams):
        catalog.search_players.return_value = players
        catalog.search_teams.return_value = teams

        session = await ImportSession.from_checklist(raw_cards, catalog, organization_id=3)

        catalog.search_players.assert_called_once_with(3)
        catalog.search_teams.assert_any_call(3)
        assert len(session.rows) == 3
        assert session.reconciler.organization_id == 3

    @pytest.mark.asyncio
    async def test_existing_links_seed_cache(self, catalog, raw_cards, players, teams):
        catalog.search_players.return_value = players
        catalog.search_teams.return_value = teams

        session = await ImportSession.from_checklist(raw_cards, catalog)

        # Trout was already linked to the Angels in the catalog
        assert session.cache.lookup(11, 1).player_team_id == 501
        summary = session.summarize()
        assert summary.ready_count == 1
        assert summary.needs_work_count == 2
        assert session.first_unready() == 1

    @pytest.mark.asyncio
    async def test_resolving_rows_updates_summary(self, catalog, raw_cards, players, teams, ohtani):
        catalog.search_players.return_value = players
        catalog.search_teams.return_value = teams
        session = await ImportSession.from_checklist(raw_cards, catalog)
        updates = []
        session.on_update(lambda rows: updates.append(rows))

        await session.reconciler.select_player(1, 0, ohtani.player_id)
        await session.reconciler.select_player(3, 0, ohtani.player_id)

        assert session.summarize().ready_count == 3
        assert session.first_unready() is None
        assert catalog.create_or_fetch_player_team.call_count == 1
        assert len(updates) == 2

    @pytest.mark.asyncio
    async def test_first_unready_follows_display_order(self, catalog, raw_cards, players, teams):
        catalog.search_players.return_value = players
        catalog.search_teams.return_value = teams
        session = await ImportSession.from_checklist(raw_cards, catalog)

        assert session.first_unready(sort="card_number", direction="desc") == 3

    @pytest.mark.asyncio
    async def test_close_clears_cache(self, catalog, raw_cards, players, teams):
        catalog.search_players.return_value = players
        catalog.search_teams.return_value = teams
        session = await ImportSession.from_checklist(raw_cards, catalog)

        session.close()

        assert len(session.cache) == 0
        assert session.closed

    @pytest.mark.asyncio
    async def test_unresolved_team_is_not_linked_to_teammate_team(self, catalog, players, teams, mariners):
        catalog.search_players.return_value = players
        catalog.search_teams.return_value = teams
        card = RawCard(sort_order=1, card_number="1", player_names=["Mike Trout", "Ichiro Suzuki"],
                       team_names=["Angels", "Seattle Marinrs"])
        session = await ImportSession.from_checklist([card], catalog)

        await session.reconciler.select_player(1, 1, 12)
        catalog.create_or_fetch_player_team.assert_not_called()

        await session.reconciler.select_team(1, 1, 0, mariners.team_id)

        catalog.create_or_fetch_player_team.assert_called_once_with(12, 4)
        assert session.summarize().ready_count == 1

    @pytest.mark.asyncio
    async def test_placeholder_teams_fetched_without_organization(self, catalog, players, teams):
        no_team = Team(team_id=90, team_name="No Team Assigned")
        catalog.search_players.return_value = players
        catalog.search_teams.side_effect = lambda organization_id=None: teams if organization_id else teams + [no_team]
        card = RawCard(sort_order=1, card_number="1", player_names=["Aaron Judge"])

        session = await ImportSession.from_checklist([card], catalog, organization_id=3)

        assert session.rows[0].players[0].player_team_check_teams.exact == [no_team]
        await session.reconciler.select_player(1, 0, 14)
        catalog.create_or_fetch_player_team.assert_called_once_with(14, 90)
        assert session.first_unready() is None
