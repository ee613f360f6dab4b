"""Broadcast one resolution to every matching mention in the working set.

Each function takes the full list of rows and returns a new list (plus what
it touched) in a single pass, so one operator decision becomes one working
set update. Propagation only fills gaps: a mention that already has a
different selection keeps it. The operator's own target mention, passed as
``origin``, is always updated.
"""

from dataclasses import replace
from typing import Dict, Iterable, List, Optional, Set, Tuple

from .models import MatchSet, ParsedRow, Player, PlayerMention, PlayerTeamLink, Team
from .name_matcher import covers

MentionRef = Tuple[int, int]  # (sort_order, mention index)


def same_text(a: Optional[str], b: Optional[str]) -> bool:
    """Raw mention key comparison: case-insensitive equality, not fuzzy."""
    return (a or "").strip().lower() == (b or "").strip().lower()


def with_exact(matches: MatchSet, entity, id_attr: str) -> MatchSet:
    """Copy of ``matches`` with ``entity`` moved (or added) into ``exact``."""
    entity_id = getattr(entity, id_attr)
    exact = list(matches.exact)
    if not any(getattr(e, id_attr) == entity_id for e in exact):
        exact.append(entity)
    fuzzy = [e for e in matches.fuzzy if getattr(e, id_attr) != entity_id]
    return MatchSet(exact=exact, fuzzy=fuzzy)


def broadcast_player(
    rows: List[ParsedRow],
    raw_name: str,
    player: Player,
    origin: Optional[MentionRef] = None,
    replace_matches: bool = False,
) -> Tuple[List[ParsedRow], List[MentionRef]]:
    """Select ``player`` for every unresolved mention named ``raw_name``.

    With ``replace_matches`` the candidates become just ``player``, as for a
    freshly created catalog entry.
    """
    touched: List[MentionRef] = []
    result = []
    for row in rows:
        players = list(row.players)
        changed = False
        for index, mention in enumerate(players):
            is_origin = origin == (row.sort_order, index)
            if not is_origin and (mention.selected_player is not None or not same_text(mention.name, raw_name)):
                continue
            if replace_matches:
                matches = MatchSet(exact=[player], fuzzy=[])
            else:
                matches = with_exact(mention.player_matches, player, "player_id")
            kept = [link for link in mention.selected_player_teams if link.player_id == player.player_id]
            players[index] = replace(
                mention, selected_player=player, player_matches=matches, selected_player_teams=kept
            )
            touched.append((row.sort_order, index))
            changed = True
        result.append(replace(row, players=players) if changed else row)
    return result, touched


def _resolve_mention_team(mention: PlayerMention, raw_name: str, team: Team,
                          origin_team_index: Optional[int]) -> Optional[PlayerMention]:
    indexes = [i for i, name in enumerate(mention.team_names) if same_text(name, raw_name)]
    if origin_team_index is not None and origin_team_index not in indexes:
        indexes.append(origin_team_index)
    if not indexes:
        return None

    selected = list(mention.selected_teams)
    width = max(len(mention.team_names), max(indexes) + 1)
    selected.extend([None] * (width - len(selected)))
    for i in indexes:
        if selected[i] is None or i == origin_team_index:
            selected[i] = team

    check = mention.player_team_check_teams
    if not any(t.team_id == team.team_id for t in check.exact):
        check = MatchSet(exact=check.exact + [team], fuzzy=[t for t in check.fuzzy if t.team_id != team.team_id])

    return replace(
        mention,
        team_matches=with_exact(mention.team_matches, team, "team_id"),
        selected_teams=selected,
        player_team_check_teams=check,
    )


def _resolve_card_team(row: ParsedRow, raw_name: str, team: Team,
                       origin_team_index: Optional[int]) -> Optional[ParsedRow]:
    indexes = [i for i, name in enumerate(row.team_names) if same_text(name, raw_name)]
    if origin_team_index is not None and origin_team_index not in indexes:
        indexes.append(origin_team_index)
    if not indexes:
        return None
    team_names = list(row.team_names)
    for i in indexes:
        if i < len(team_names) and not covers(team.team_name, team_names[i]):
            team_names[i] = team.team_name
    return replace(row, team_names=team_names, team_matches=with_exact(row.team_matches, team, "team_id"))


def broadcast_team(
    rows: List[ParsedRow],
    raw_name: str,
    team: Team,
    origin: Optional[MentionRef] = None,
    origin_team_index: Optional[int] = None,
    origin_card_level: bool = False,
) -> Tuple[List[ParsedRow], List[MentionRef]]:
    """Resolve the team text ``raw_name`` to ``team`` wherever it appears.

    Card-level team names gain ``team`` as an exact match, and are rewritten
    to the canonical name when it would not otherwise cover them. Mentions
    naming the team gain it as an exact match and as a team to link, and
    fill an empty selected-team slot. Returns the mentions that gained it.
    """
    touched: List[MentionRef] = []
    result = []
    for row in rows:
        card_index = origin_team_index if origin_card_level and origin and origin[0] == row.sort_order else None
        updated_row = _resolve_card_team(row, raw_name, team, card_index) or row

        players = list(updated_row.players)
        changed = False
        for index, mention in enumerate(players):
            is_origin = not origin_card_level and origin == (row.sort_order, index)
            updated = _resolve_mention_team(mention, raw_name, team, origin_team_index if is_origin else None)
            if updated is None:
                continue
            players[index] = updated
            touched.append((row.sort_order, index))
            changed = True
        if changed:
            updated_row = replace(updated_row, players=players)
        result.append(updated_row)
    return result, touched


def attach_links(rows: List[ParsedRow], placements: Iterable[Tuple[int, int, PlayerTeamLink]]) -> List[ParsedRow]:
    """Add each link to its target mention if that mention still selects the link's player."""
    by_mention: Dict[MentionRef, List[PlayerTeamLink]] = {}
    for sort_order, index, link in placements:
        by_mention.setdefault((sort_order, index), []).append(link)
    if not by_mention:
        return list(rows)

    result = []
    for row in rows:
        players = list(row.players)
        changed = False
        for index, mention in enumerate(players):
            links = by_mention.get((row.sort_order, index))
            if not links or mention.selected_player is None:
                continue
            player_id = mention.selected_player.player_id
            matching = [link for link in links if link.player_id == player_id]
            if matching:
                players[index] = mention.with_links(matching)
                changed = True
        result.append(replace(row, players=players) if changed else row)
    return result


def broadcast_links(
    rows: List[ParsedRow],
    links: Iterable[PlayerTeamLink],
    narrow: bool = False,
) -> Tuple[List[ParsedRow], int]:
    """Attach confirmed links to every mention of the same player that needs them.

    A mention needs a link when its selected player matches and the team is
    one it links against. With ``narrow`` the mention's check teams shrink
    to the teams it is now linked to, which retires the other offers.
    """
    by_player: Dict[object, List[PlayerTeamLink]] = {}
    for link in links:
        by_player.setdefault(link.player_id, []).append(link)
    if not by_player:
        return list(rows), 0

    count = 0
    result = []
    for row in rows:
        players = list(row.players)
        changed = False
        for index, mention in enumerate(players):
            if mention.selected_player is None:
                continue
            player_id = mention.selected_player.player_id
            wanted: Set[object] = {t.team_id for t in mention.link_targets()}
            relevant = [link for link in by_player.get(player_id, []) if link.team_id in wanted]
            new_links = [link for link in relevant if not mention.has_link(player_id, link.team_id)]
            if not new_links and not (narrow and relevant):
                continue
            updated = mention.with_links(new_links)
            if narrow:
                linked = {link.team_id for link in updated.player_team_matches}
                updated = replace(
                    updated,
                    player_team_check_teams=MatchSet(
                        exact=[t for t in updated.link_targets() if t.team_id in linked],
                        fuzzy=[],
                    ),
                )
            players[index] = updated
            changed = True
            count += 1
        result.append(replace(row, players=players) if changed else row)
    return result, count
