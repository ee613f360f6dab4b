"""Tests for checklist loading and match seeding."""

import pandas as pd
import pytest

from checklist_import.checklist import (
    RawCard,
    guess_team_slots,
    is_truthy_flag,
    load_checklist,
    match_card,
    match_cards,
    no_team_placeholders,
    split_names,
)
from checklist_import.models import Team
from checklist_import.readiness import is_ready


@pytest.fixture
def pasted_with_header() -> str:
    return (
        "Card #\tPlayer\tTeam\tRC\tAuto\tPrint Run\tNotes\n"
        "1\tShohei Ohtani\tLos Angeles Angels\tRC\t\t/99\t(Gold)\n"
        "2\tMike Trout, Shohei Ohtani\tAngels, Angels\t\tyes\t\t\n"
        "\tLeft blank\tNo card number\t\t\t\t\n"
        "3\tAaron Judge\tNew York Yankees\t\t\t\t\n"
    )


@pytest.fixture
def pasted_positional() -> str:
    return (
        "1\tShohei Ohtani\tLos Angeles Angels\tRC\n"
        "DH-1\tMike Trout\tLos Angeles Angels\t\tDual\n"
        "DH-1\tAaron Judge\tNew York Yankees\t\tDual\n"
    )


class TestHelpers:
    def test_split_names(self):
        assert split_names("Mike Trout / Shohei Ohtani; Aaron Judge & Juan Soto") == [
            "Mike Trout", "Shohei Ohtani", "Aaron Judge", "Juan Soto",
        ]

    def test_split_blank(self):
        assert split_names("") == []

    @pytest.mark.parametrize("cell,expected", [
        ("Y", True),
        ("x", True),
        ("RC", True),
        ("Rookie Debut", True),
        ("1", True),
        ("", False),
        ("no", False),
    ])
    def test_truthy_flags(self, cell, expected):
        assert is_truthy_flag(cell) is expected


class TestLoadChecklist:
    def test_header_row(self, pasted_with_header):
        cards = load_checklist(pasted_with_header)

        assert [card.card_number for card in cards] == ["1", "2", "3"]
        assert [card.sort_order for card in cards] == [1, 2, 3]
        first = cards[0]
        assert first.player_names == ["Shohei Ohtani"]
        assert first.is_rc
        assert first.print_run == 99
        assert first.notes == "Gold"
        assert cards[1].player_names == ["Mike Trout", "Shohei Ohtani"]
        assert cards[1].team_names == ["Angels", "Angels"]
        assert cards[1].is_autograph
        assert not cards[1].is_rc

    def test_positional_columns_and_consecutive_merge(self, pasted_positional):
        cards = load_checklist(pasted_positional)

        assert len(cards) == 2
        dual = cards[1]
        assert dual.sort_order == 2
        assert dual.player_names == ["Mike Trout", "Aaron Judge"]
        assert dual.team_names == ["Los Angeles Angels", "New York Yankees"]
        assert dual.notes == "Dual"
        assert cards[0].is_rc

    def test_csv_file(self, tmp_path):
        path = tmp_path / "checklist.csv"
        pd.DataFrame([
            {"Card Number": "5", "Players": "Aaron Judge", "Teams": "New York Yankees", "SP": "x"},
        ]).to_csv(path, index=False)

        cards = load_checklist(path)

        assert len(cards) == 1
        assert cards[0].player_names == ["Aaron Judge"]
        assert cards[0].is_short_print

    def test_empty(self):
        with pytest.raises(ValueError):
            load_checklist("   \n  ")


class TestMatchCards:
    def test_auto_selects_single_exact_match(self, players, teams, ohtani, angels):
        card = RawCard(sort_order=1, card_number="1", player_names=["Shohei Ohtani"],
                       team_names=["Los Angeles Angels"])

        row = match_card(card, players, teams)

        mention = row.players[0]
        assert mention.selected_player == ohtani
        assert mention.selected_teams == [angels]
        assert mention.player_team_check_teams.exact == [angels]
        assert row.team_matches.exact == [angels]

    def test_no_auto_select(self, players, teams):
        card = RawCard(sort_order=1, card_number="1", player_names=["Shohei Ohtani"])

        row = match_card(card, players, teams, auto_select=False)

        assert row.players[0].selected_player is None

    def test_existing_links_recorded(self, players, teams, trout):
        card = RawCard(sort_order=1, card_number="1", player_names=["Mike Trout"],
                       team_names=["Los Angeles Angels"])

        row = match_card(card, players, teams)

        links = row.players[0].player_team_matches
        assert [(link.player_id, link.team_id, link.player_team_id) for link in links] == [(11, 1, 501)]

    def test_position_based_check_teams(self, players, teams, angels, yankees):
        card = RawCard(sort_order=1, card_number="1", player_names=["Mike Trout", "Aaron Judge"],
                       team_names=["Los Angeles Angels", "New York Yankees"])

        row = match_card(card, players, teams)

        assert row.players[0].player_team_check_teams.exact == [angels]
        assert row.players[1].player_team_check_teams.exact == [yankees]

    def test_uneven_counts_pair_first_and_last_players_with_end_teams(self, players, teams, angels, yankees):
        card = RawCard(sort_order=1, card_number="1", player_names=["Mike Trout", "Aaron Judge", "Ichiro Suzuki"],
                       team_names=["Los Angeles Angels", "New York Yankees"])

        row = match_card(card, players, teams)

        checks = [mention.player_team_check_teams.exact for mention in row.players]
        assert checks == [[angels], [angels, yankees], [yankees]]

    def test_unresolved_team_stays_with_its_player(self, players, teams, angels, mariners):
        card = RawCard(sort_order=1, card_number="1", player_names=["Mike Trout", "Ichiro Suzuki"],
                       team_names=["Angels", "Seattle Marinrs"])

        row = match_card(card, players, teams)

        trout_mention, ichiro_mention = row.players
        assert trout_mention.player_team_check_teams.exact == [angels]
        assert ichiro_mention.team_names == ["Seattle Marinrs"]
        assert ichiro_mention.player_team_check_teams.exact == []
        assert mariners in ichiro_mention.player_team_check_teams.fuzzy
        assert ichiro_mention.link_targets() == []

    def test_single_team_covers_every_player(self, players, teams, yankees):
        card = RawCard(sort_order=1, card_number="1", player_names=["Aaron Judge", "Ichiro Suzuki"],
                       team_names=["New York Yankees"])

        row = match_card(card, players, teams)

        for mention in row.players:
            assert mention.player_team_check_teams.exact == [yankees]
            assert mention.team_names == ["New York Yankees"]

    def test_no_team_checks_against_placeholder(self, players, teams, judge):
        no_team = Team(team_id=90, team_name="No Team Assigned")
        none_team = Team(team_id=91, team_name="None")
        card = RawCard(sort_order=1, card_number="1", player_names=["Aaron Judge"])

        row = match_cards([card], players, teams + [none_team, no_team])[0]

        mention = row.players[0]
        assert mention.selected_player == judge
        assert mention.player_team_check_teams.exact == [no_team]
        assert mention.player_team_check_teams.fuzzy == [none_team]
        assert not is_ready(row)

    def test_no_team_without_placeholders(self, players, teams):
        card = RawCard(sort_order=1, card_number="1", player_names=["Aaron Judge"])

        row = match_card(card, players, teams)

        assert row.players[0].player_team_check_teams.exact == []

    def test_fuzzy_team(self, players, teams, angels):
        card = RawCard(sort_order=1, card_number="1", player_names=["Shohei Ohtani"],
                       team_names=["Los Angeles Angles"])

        row = match_card(card, players, teams)

        assert row.team_matches.exact == []
        assert angels in row.team_matches.fuzzy
        assert row.players[0].selected_teams == [None]

    def test_match_cards_keeps_order(self, players, teams):
        cards = [
            RawCard(sort_order=1, card_number="1", player_names=["Aaron Judge"]),
            RawCard(sort_order=2, card_number="2", player_names=["Unknown Prospect"]),
        ]

        rows = match_cards(cards, players, teams)

        assert [row.sort_order for row in rows] == [1, 2]
        assert rows[1].players[0].selected_player is None


class TestGuessTeamSlots:
    @pytest.mark.parametrize("player_index,player_count,team_count,expected", [
        (1, 2, 2, [1]),
        (2, 3, 1, [0]),
        (0, 3, 2, [0]),
        (2, 3, 2, [1]),
        (1, 3, 2, [0, 1]),
        (1, 2, 3, [1]),
        (0, 1, 0, []),
    ])
    def test_slots(self, player_index, player_count, team_count, expected):
        assert guess_team_slots(player_index, player_count, team_count) == expected


class TestNoTeamPlaceholders:
    def test_prefers_no_team_names(self, teams):
        none_team = Team(team_id=91, team_name="None")
        no_team = Team(team_id=90, team_name="No Team Assigned")
        scoped = Team(team_id=92, team_name="No Team", organization=5)

        assert no_team_placeholders(teams + [none_team, scoped, no_team]) == [no_team, none_team]
