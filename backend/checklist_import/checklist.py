"""Checklist loading and the matching pass that seeds import rows."""

import csv
import io
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Union

import pandas as pd

from .models import MatchSet, ParsedRow, Player, PlayerMention, PlayerTeamLink, Team
from .name_matcher import match_players, match_teams, normalize_name
from .working_set import coerce_optional_int

logger = logging.getLogger(__name__)

# Checklists without a recognizable header row use this column order.
POSITIONAL_COLUMNS = ("card_number", "players", "teams", "is_rc", "notes")

HEADER_ALIASES = {
    "card_number": ("card number", "card #", "card no", "card", "number", "no", "#"),
    "players": ("player", "players", "player name", "player names", "name"),
    "teams": ("team", "teams", "team name", "team names"),
    "is_rc": ("rc", "rookie", "rookie card"),
    "is_autograph": ("auto", "autograph", "au"),
    "is_relic": ("relic", "mem", "memorabilia"),
    "is_short_print": ("sp", "short print"),
    "print_run": ("print run", "serial", "serial number", "numbered"),
    "notes": ("notes", "note", "comments"),
}

TRUTHY_FLAGS = {"y", "yes", "x", "true", "1", "rc", "auto", "relic", "sp"}

NAME_SEPARATORS = re.compile(r"[,;/&]")

TABULAR_SUFFIXES = {".csv", ".tsv", ".txt", ".xlsx", ".xls"}

# Catalog names of the organization-less teams for mascots, stadiums and
# other subjects that belong to no team.
NO_TEAM_NAMES = {"", "no name", "no team", "no team assigned", "none"}


@dataclass
class RawCard:
    """One checklist line before catalog matching."""
    sort_order: int
    card_number: str
    player_names: List[str] = field(default_factory=list)
    team_names: List[str] = field(default_factory=list)
    is_rc: bool = False
    is_autograph: bool = False
    is_relic: bool = False
    is_short_print: bool = False
    print_run: Optional[int] = None
    notes: str = ""


def split_names(cell: str) -> List[str]:
    """'Mike Trout / Shohei Ohtani' -> ['Mike Trout', 'Shohei Ohtani']"""
    return [name.strip() for name in NAME_SEPARATORS.split(cell or "") if name.strip()]


def is_truthy_flag(cell: str) -> bool:
    value = (cell or "").strip().lower()
    return value in TRUTHY_FLAGS or "rookie" in value


def _header_key(cell: str) -> Optional[str]:
    value = re.sub(r"\s+", " ", str(cell).strip().lower())
    for key, aliases in HEADER_ALIASES.items():
        if value in aliases:
            return key
    return None


def _looks_like_source_path(source: Union[str, Path]) -> bool:
    if isinstance(source, Path):
        return True
    if "\n" in source or "\t" in source:
        return False
    return Path(source).suffix.lower() in TABULAR_SUFFIXES and Path(source).exists()


def _read_pasted(text: str) -> pd.DataFrame:
    lines = [line for line in text.strip().splitlines() if line.strip()]
    if not lines:
        raise ValueError("No data provided")
    width = max(line.count("\t") + 1 for line in lines)
    return pd.read_csv(
        io.StringIO("\n".join(lines)),
        sep="\t",
        header=None,
        names=list(range(width)),
        dtype=str,
        keep_default_na=False,
        quoting=csv.QUOTE_NONE,
    ).fillna("")


def read_checklist_frame(source: Union[str, Path]) -> pd.DataFrame:
    """Load a checklist file or pasted tab-separated text as an all-string frame.

    No header is assumed; the first row is kept as data.
    """
    if not _looks_like_source_path(source):
        return _read_pasted(str(source))

    path = Path(source)
    suffix = path.suffix.lower()
    if suffix in (".xlsx", ".xls"):
        df = pd.read_excel(path, header=None, dtype=str)
    elif suffix == ".csv":
        df = pd.read_csv(path, header=None, dtype=str)
    else:
        return _read_pasted(path.read_text())
    return df.fillna("")


def _column_map(first_row: Sequence[str]) -> Optional[Dict[str, int]]:
    columns: Dict[str, int] = {}
    for index, cell in enumerate(first_row):
        key = _header_key(cell)
        if key is not None and key not in columns:
            columns[key] = index
    if "players" in columns:
        return columns
    return None


def _merge_consecutive(cards: List[RawCard]) -> List[RawCard]:
    """Fold lines that repeat the previous card number into that card."""
    merged: List[RawCard] = []
    for card in cards:
        previous = merged[-1] if merged else None
        if previous is None or previous.card_number != card.card_number:
            merged.append(card)
            continue
        previous.player_names.extend(card.player_names)
        known = {name.lower() for name in previous.team_names}
        for team in card.team_names:
            if team.lower() not in known:
                previous.team_names.append(team)
                known.add(team.lower())
        previous.is_rc = previous.is_rc or card.is_rc
        previous.is_autograph = previous.is_autograph or card.is_autograph
        previous.is_relic = previous.is_relic or card.is_relic
        previous.is_short_print = previous.is_short_print or card.is_short_print
        if previous.print_run is None:
            previous.print_run = card.print_run
        if card.notes and card.notes != previous.notes:
            previous.notes = f"{previous.notes}; {card.notes}" if previous.notes else card.notes

    for sort_order, card in enumerate(merged, start=1):
        card.sort_order = sort_order
    return merged


def load_checklist(source: Union[str, Path]) -> List[RawCard]:
    """Read a checklist into raw cards numbered from 1 in source order.

    ``source`` is a path to a .csv/.tsv/.txt/.xlsx file or pasted
    tab-separated text. A first row naming a player column is treated as
    the header (case-insensitive); otherwise columns are read as card
    number, players, teams, RC, notes. Lines without a card number are
    skipped and consecutive lines with the same card number are merged.
    """
    df = read_checklist_frame(source)
    if df.empty:
        raise ValueError("No data found in checklist")

    records = df.astype(str).values.tolist()
    columns = _column_map(records[0])
    if columns is None:
        columns = {key: index for index, key in enumerate(POSITIONAL_COLUMNS)}
    else:
        records = records[1:]

    def cell(record: List[str], key: str) -> str:
        index = columns.get(key)
        if index is None or index >= len(record):
            return ""
        return str(record[index]).strip()

    cards = []
    for record in records:
        card_number = cell(record, "card_number")
        if not card_number:
            continue
        cards.append(
            RawCard(
                sort_order=len(cards) + 1,
                card_number=card_number,
                player_names=split_names(cell(record, "players")),
                team_names=split_names(cell(record, "teams")),
                is_rc=is_truthy_flag(cell(record, "is_rc")),
                is_autograph=is_truthy_flag(cell(record, "is_autograph")),
                is_relic=is_truthy_flag(cell(record, "is_relic")),
                is_short_print=is_truthy_flag(cell(record, "is_short_print")),
                print_run=coerce_optional_int(cell(record, "print_run")),
                notes=re.sub(r"[()]", "", cell(record, "notes")),
            )
        )

    result = _merge_consecutive(cards)
    logger.info(f"Loaded {len(records)} checklist lines into {len(result)} cards")
    return result


def _merge_matches(match_sets: Sequence[MatchSet]) -> MatchSet:
    exact: List[Team] = []
    fuzzy: List[Team] = []
    seen = set()
    for matches in match_sets:
        for team in matches.exact:
            if team.team_id not in seen:
                seen.add(team.team_id)
                exact.append(team)
    for matches in match_sets:
        for team in matches.fuzzy:
            if team.team_id not in seen:
                seen.add(team.team_id)
                fuzzy.append(team)
    return MatchSet(exact=exact, fuzzy=fuzzy)


def _existing_links(player: Player, teams: Sequence[Team]) -> List[PlayerTeamLink]:
    wanted = {team.team_id: team for team in teams}
    return [
        PlayerTeamLink(
            player_team_id=ref.player_team_id or f"existing_{player.player_id}_{ref.team_id}",
            player_id=player.player_id,
            team_id=ref.team_id,
            player_name=player.player_name,
            team_name=ref.team_name or wanted[ref.team_id].team_name,
        )
        for ref in player.teams
        if ref.team_id in wanted
    ]


def guess_team_slots(player_index: int, player_count: int, team_count: int) -> List[int]:
    """Positions in the card's team list a player most likely plays for.

    Players pair with teams one-to-one when the counts agree; a single team
    covers everyone; the first and last players take the first and last
    teams. Anything else is ambiguous and offers every team.
    """
    if team_count == 0:
        return []
    if team_count == player_count:
        return [player_index]
    if team_count == 1:
        return [0]
    if player_index == 0:
        return [0]
    if player_index == player_count - 1 and player_index >= team_count:
        return [team_count - 1]
    if player_index < team_count and player_count <= team_count:
        return [player_index]
    return list(range(team_count))


def no_team_placeholders(teams: Sequence[Team]) -> List[Team]:
    """Organization-less catalog teams used for players carded without a team.

    "No Team ..." entries come first, then catalog order.
    """
    placeholders = [
        team for team in teams
        if team.organization is None and normalize_name(team.team_name) in NO_TEAM_NAMES
    ]
    return sorted(placeholders, key=lambda team: not normalize_name(team.team_name).startswith("no team"))


def match_card(
    card: RawCard,
    players: Sequence[Player],
    teams: Sequence[Team],
    auto_select: bool = True,
    placeholder_teams: Sequence[Team] = (),
) -> ParsedRow:
    """Seed one row's player and team matches from the catalog."""
    per_team = [match_teams(name, teams) for name in card.team_names]
    card_matches = _merge_matches(per_team)

    mentions = []
    for index, name in enumerate(card.player_names):
        player_matches = match_players(name, players)
        slots = guess_team_slots(index, len(card.player_names), len(card.team_names))
        slot_matches = [per_team[slot] for slot in slots]
        team_matches = _merge_matches(slot_matches)
        if slots:
            check = team_matches.copy()
        elif placeholder_teams:
            check = MatchSet(exact=[placeholder_teams[0]], fuzzy=list(placeholder_teams[1:]))
        else:
            check = MatchSet()
        mention = PlayerMention(
            name=name,
            player_matches=player_matches,
            team_names=[card.team_names[slot] for slot in slots],
            team_matches=team_matches,
            selected_teams=[m.exact[0] if len(m.exact) == 1 else None for m in slot_matches],
            player_team_check_teams=check,
        )
        if auto_select and len(player_matches.exact) == 1:
            selected = player_matches.exact[0]
            mention.selected_player = selected
            mention = mention.with_links(_existing_links(selected, check.exact))
        mentions.append(mention)

    return ParsedRow(
        sort_order=card.sort_order,
        card_number=card.card_number,
        players=mentions,
        team_names=list(card.team_names),
        team_matches=card_matches,
        is_rc=card.is_rc,
        is_autograph=card.is_autograph,
        is_relic=card.is_relic,
        is_short_print=card.is_short_print,
        print_run=card.print_run,
        notes=card.notes,
    )


def match_cards(
    raw_cards: Sequence[RawCard],
    players: Sequence[Player],
    teams: Sequence[Team],
    auto_select: bool = True,
    placeholder_teams: Optional[Sequence[Team]] = None,
) -> List[ParsedRow]:
    """Match every card; players carded without a team are checked against
    ``placeholder_teams``, picked from ``teams`` when not given."""
    if placeholder_teams is None:
        placeholder_teams = no_team_placeholders(teams)
    rows = [
        match_card(card, players, teams, auto_select=auto_select, placeholder_teams=placeholder_teams)
        for card in raw_cards
    ]
    selected = sum(1 for row in rows for m in row.players if m.selected_player is not None)
    total = sum(len(row.players) for row in rows)
    logger.info(f"Matched {len(rows)} cards; {selected}/{total} players auto-selected")
    return rows
