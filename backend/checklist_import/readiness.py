"""Import readiness of checklist rows.

A row is ready when, in order:

1. every player mention has a selected player (``MISSING_PLAYER``),
2. every card-level team name is covered by a resolved team (``MISSING_TEAM``),
3. every selected player is linked to each team it is checked against
   (``MISSING_LINK``).

The functions here only read rows.
"""

from typing import List, Optional, Sequence, Tuple

from .models import ParsedRow, PlayerMention, Readiness, Summary, Team
from .name_matcher import covers

MISSING_PLAYER = "MISSING_PLAYER"
MISSING_TEAM = "MISSING_TEAM"
MISSING_LINK = "MISSING_LINK"


def evaluate(row: ParsedRow) -> Readiness:
    if not all(mention.selected_player is not None for mention in row.players):
        return Readiness(ready=False, reason=MISSING_PLAYER)

    for team_name in row.team_names:
        if not any(covers(team.team_name, team_name) for team in row.team_matches.exact):
            return Readiness(ready=False, reason=MISSING_TEAM)

    for mention in row.players:
        player_id = mention.selected_player.player_id
        for team in mention.required_teams():
            if not mention.has_link(player_id, team.team_id):
                return Readiness(ready=False, reason=MISSING_LINK)

    return Readiness(ready=True)


def is_ready(row: ParsedRow) -> bool:
    return evaluate(row).ready


def summarize(rows: Sequence[ParsedRow]) -> Summary:
    ready = sum(1 for row in rows if is_ready(row))
    return Summary(ready_count=ready, needs_work_count=len(rows) - ready)


def first_unready(ordered_rows: Sequence[ParsedRow]) -> Optional[int]:
    """Position of the first row needing work in the displayed order."""
    for position, row in enumerate(ordered_rows):
        if not is_ready(row):
            return position
    return None


def link_teams(mention: PlayerMention, row: ParsedRow) -> List[Team]:
    """Teams offered for a mention's player-team links, one per team id.

    Position-matched teams win; with none, every resolved card team is offered.
    """
    teams = mention.player_team_check_teams.exact or row.team_matches.exact
    unique = []
    seen = set()
    for team in teams:
        if team.team_id not in seen:
            seen.add(team.team_id)
            unique.append(team)
    return unique


def link_status(mention: PlayerMention, row: ParsedRow) -> List[Tuple[Team, bool]]:
    """Each offered team paired with whether the selected player is linked to it."""
    if mention.selected_player is None:
        return []
    player_id = mention.selected_player.player_id
    return [(team, mention.has_link(player_id, team.team_id)) for team in link_teams(mention, row)]
