"""Operator actions that resolve player and team mentions on checklist rows.

Every action follows the same shape:

1. stage the resolution as a pure ``rows -> rows`` transform and preview it
   against the current rows to learn which (player, team) links it needs,
2. check those links against the session cache and create the missing ones
   concurrently, one remote call per distinct pair,
3. once every call has settled, commit a single update that re-applies the
   staged transform to the *latest* rows and attaches the confirmed links.

Re-applying the transform at commit time keeps batches that finish out of
order from overwriting each other's results.
"""

import asyncio
import logging
from dataclasses import replace
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from . import propagation
from .api_client import CatalogService
from .cache import EntityResolutionCache
from .errors import BatchLinkError, CatalogError, ErrorKind, is_already_exists
from .models import (
    CatalogId,
    LinkOutcome,
    OperationResult,
    ParsedRow,
    Player,
    PlayerMention,
    PlayerTeamLink,
    Team,
)
from .readiness import link_teams
from .working_set import ImportWorkingSet

logger = logging.getLogger(__name__)

Stage = Callable[[List[ParsedRow]], Tuple[List[ParsedRow], List[Tuple[int, int]]]]
LinkTarget = Tuple[int, int, Team]  # (sort_order, mention index, team)
Pair = Tuple[CatalogId, CatalogId]


def split_player_name(raw_name: str) -> Tuple[str, str]:
    """First token is the first name, the rest the last name.

    Single-word names ("Ichiro") get an empty last name.
    """
    parts = raw_name.split()
    if not parts:
        return "", ""
    return parts[0], " ".join(parts[1:])


def _mention(rows: Sequence[ParsedRow], sort_order: int, mention_index: int) -> PlayerMention:
    for row in rows:
        if row.sort_order == sort_order:
            try:
                return row.players[mention_index]
            except IndexError:
                raise IndexError(f"Card {sort_order} has no player at position {mention_index}") from None
    raise KeyError(f"No row with sort order {sort_order}")


class RowReconciler:
    """Resolves mentions on rows of an :class:`ImportWorkingSet`.

    Rows are addressed by ``sort_order`` and mentions by their position on
    the row, never by display position.
    """

    def __init__(
        self,
        working_set: ImportWorkingSet,
        catalog: CatalogService,
        cache: Optional[EntityResolutionCache] = None,
        organization_id: Optional[CatalogId] = None,
    ) -> None:
        self.working_set = working_set
        self.catalog = catalog
        self.cache = cache if cache is not None else EntityResolutionCache()
        self.organization_id = organization_id
        self._inflight: Dict[Pair, "asyncio.Future[LinkOutcome]"] = {}

    # Link resolution

    async def _create_link(self, player: Player, team: Team) -> LinkOutcome:
        try:
            link = await self.catalog.create_or_fetch_player_team(player.player_id, team.team_id)
        except CatalogError as e:
            if is_already_exists(e):
                logger.info(f"Player-team already exists: {player.player_name} - {team.team_name}")
                link = self.cache.synthesize_existing(player, team)
                return LinkOutcome(player.player_id, team.team_id, link=link)
            logger.warning(f"Could not link {player.player_name} - {team.team_name}: {e}")
            return LinkOutcome(player.player_id, team.team_id, error=e)
        if not link.player_name:
            link = replace(link, player_name=player.player_name)
        if not link.team_name:
            link = replace(link, team_name=team.team_name)
        link = self.cache.record(link)
        logger.info(f"Created player-team: {link.player_name} - {link.team_name}")
        return LinkOutcome(player.player_id, team.team_id, link=link, created=True)

    def _known_link(self, mention: PlayerMention, player: Player, team: Team) -> Optional[PlayerTeamLink]:
        for link in mention.player_team_matches:
            if link.player_id == player.player_id and link.team_id == team.team_id:
                return self.cache.record(link)
        cached = self.cache.lookup(player.player_id, team.team_id)
        if cached is not None:
            return cached
        if any(ref.team_id == team.team_id for ref in player.teams):
            self.cache.seed_from_player(player)
            return self.cache.lookup(player.player_id, team.team_id)
        return None

    async def _check_or_create(self, mention: PlayerMention, player: Player, team: Team) -> LinkOutcome:
        known = self._known_link(mention, player, team)
        if known is not None:
            logger.debug(f"Player-team cached: {player.player_name} - {team.team_name}")
            return LinkOutcome(player.player_id, team.team_id, link=known)

        pair = (player.player_id, team.team_id)
        pending = self._inflight.get(pair)
        if pending is None:
            pending = asyncio.ensure_future(self._create_link(player, team))
            self._inflight[pair] = pending
            pending.add_done_callback(lambda _: self._inflight.pop(pair, None))
        return await pending

    async def _resolve_targets(self, rows: List[ParsedRow], targets: Sequence[LinkTarget]):
        """Settle every link in ``targets``; one attempt per distinct pair."""
        # look every mention up before starting any attempt
        resolved = [(sort_order, index, _mention(rows, sort_order, index), team)
                    for sort_order, index, team in targets]

        attempts: Dict[Pair, Tuple[PlayerMention, Player, Team]] = {}
        placements: List[Tuple[int, int, Pair]] = []
        for sort_order, index, mention, team in resolved:
            player = mention.selected_player
            if player is None:
                continue
            pair = (player.player_id, team.team_id)
            attempts.setdefault(pair, (mention, player, team))
            placements.append((sort_order, index, pair))

        pairs = list(attempts)
        settled = await asyncio.gather(*(self._check_or_create(*attempt) for attempt in attempts.values()))
        outcomes: Dict[Pair, LinkOutcome] = dict(zip(pairs, settled))
        return outcomes, placements

    def _targets_for(self, rows: List[ParsedRow], refs: Sequence[Tuple[int, int]]) -> List[LinkTarget]:
        """Unlinked teams of each referenced mention that has a selected player."""
        targets: List[LinkTarget] = []
        for sort_order, index in refs:
            mention = _mention(rows, sort_order, index)
            if mention.selected_player is None:
                continue
            player_id = mention.selected_player.player_id
            for team in mention.link_targets():
                if not mention.has_link(player_id, team.team_id):
                    targets.append((sort_order, index, team))
        return targets

    async def _run(
        self,
        stage: Stage,
        extra_targets: Callable[[List[ParsedRow]], List[LinkTarget]] = lambda rows: [],
        result: Optional[OperationResult] = None,
        narrow: bool = False,
    ) -> OperationResult:
        result = result or OperationResult()
        preview, touched = stage(self.working_set.rows)
        targets = self._targets_for(preview, touched) + extra_targets(preview)
        outcomes, placements = await self._resolve_targets(preview, targets)

        links = [o.link for o in outcomes.values() if o.ok]
        failures = [o for o in outcomes.values() if not o.ok]

        def commit(rows: List[ParsedRow]) -> List[ParsedRow]:
            rows, _ = stage(rows)
            rows = propagation.attach_links(
                rows,
                [(so, idx, outcomes[pair].link) for so, idx, pair in placements if outcomes[pair].ok],
            )
            rows, _ = propagation.broadcast_links(rows, links, narrow=narrow)
            return rows

        self.working_set.apply_update(commit)

        result.updated_mentions += len(touched)
        result.created_links.extend(o.link for o in outcomes.values() if o.created)
        result.failures.extend(failures)
        if result.created_links:
            logger.info(f"Auto-created {len(result.created_links)} player-team combinations")
        if failures:
            raise BatchLinkError(failures, result)
        return result

    # Operator actions

    async def select_player(self, sort_order: int, mention_index: int, player_id: CatalogId) -> OperationResult:
        """Select a candidate player and confirm its links to the mention's teams.

        The choice also fills every other unresolved mention with the same
        raw name.
        """
        mention = _mention(self.working_set.rows, sort_order, mention_index)
        player = mention.player_matches.find(player_id, "player_id")
        if player is None:
            raise CatalogError(
                ErrorKind.VALIDATION, f"Player {player_id} is not a candidate for {mention.name!r}"
            )
        self.cache.seed_from_player(player)

        def stage(rows):
            return propagation.broadcast_player(rows, mention.name, player, origin=(sort_order, mention_index))

        return await self._run(stage, result=OperationResult(player=player))

    async def select_team(
        self, sort_order: int, mention_index: int, team_index: int, team_id: CatalogId
    ) -> OperationResult:
        """Resolve one of a mention's team names, promoting a fuzzy match to exact."""
        mention = _mention(self.working_set.rows, sort_order, mention_index)
        team = mention.team_matches.find(team_id, "team_id")
        if team is None:
            raise CatalogError(ErrorKind.VALIDATION, f"Team {team_id} is not a candidate for {mention.name!r}")
        raw_name = mention.team_names[team_index] if team_index < len(mention.team_names) else team.team_name

        def stage(rows):
            return propagation.broadcast_team(
                rows, raw_name, team, origin=(sort_order, mention_index), origin_team_index=team_index
            )

        def selected_pair(rows):
            return [(sort_order, mention_index, team)]

        return await self._run(stage, extra_targets=selected_pair, result=OperationResult(team=team))

    async def promote_fuzzy_team(self, sort_order: int, team_name_index: int, team_id: CatalogId) -> OperationResult:
        """Accept a card-level fuzzy team match for ``team_names[team_name_index]``.

        The card's team name becomes the canonical name, and every mention on
        the card with a selected player has its links reconciled.
        """
        row = self.working_set.get(sort_order)
        if not 0 <= team_name_index < len(row.team_names):
            raise IndexError(f"Card {sort_order} has no team at position {team_name_index}")
        team = row.team_matches.find(team_id, "team_id")
        if team is None:
            raise CatalogError(ErrorKind.VALIDATION, f"Team {team_id} is not a candidate on card {sort_order}")
        raw_name = row.team_names[team_name_index]

        def stage(rows):
            return propagation.broadcast_team(
                rows, raw_name, team,
                origin=(sort_order, None), origin_team_index=team_name_index, origin_card_level=True,
            )

        def origin_row_links(rows):
            origin_row = _row(rows, sort_order)
            targets = []
            for index, m in enumerate(origin_row.players):
                if m.selected_player is None:
                    continue
                for t in link_teams(m, origin_row):
                    if not m.has_link(m.selected_player.player_id, t.team_id):
                        targets.append((sort_order, index, t))
            return targets

        return await self._run(stage, extra_targets=origin_row_links, result=OperationResult(team=team))

    async def create_player(self, sort_order: int, mention_index: int, raw_name: str) -> OperationResult:
        """Create a catalog player from ``raw_name`` and select it everywhere it is unresolved."""
        _mention(self.working_set.rows, sort_order, mention_index)
        first_name, last_name = split_player_name(raw_name)
        if not first_name:
            raise CatalogError(ErrorKind.VALIDATION, "Player name is required")

        player = await self.catalog.create_player(first_name, last_name)
        player = replace(player, teams=[])
        logger.info(f"Created player: {player.player_name}")

        def stage(rows):
            return propagation.broadcast_player(
                rows, raw_name, player, origin=(sort_order, mention_index), replace_matches=True
            )

        result = await self._run(stage, result=OperationResult(player=player))
        logger.info(f"Updated {result.updated_mentions} mentions of {raw_name!r}")
        return result

    async def create_team(
        self,
        sort_order: int,
        mention_index: Optional[int],
        team_index: int,
        raw_team_name: str,
        organization_id: Optional[CatalogId] = None,
    ) -> OperationResult:
        """Create a catalog team and resolve ``raw_team_name`` to it on every row.

        ``mention_index`` is ``None`` when the team was created from the
        card-level team list.
        """
        organization_id = organization_id if organization_id is not None else self.organization_id
        if organization_id is None:
            raise CatalogError(ErrorKind.VALIDATION, "Organization ID not available - cannot create team")
        if not raw_team_name or not raw_team_name.strip():
            raise CatalogError(ErrorKind.VALIDATION, "Team name is required")
        self.working_set.get(sort_order)

        team = await self.catalog.create_team(raw_team_name.strip(), organization_id)
        logger.info(f"Created new team: {team.team_name}")

        card_level = mention_index is None

        def stage(rows):
            return propagation.broadcast_team(
                rows, raw_team_name, team,
                origin=(sort_order, mention_index), origin_team_index=team_index,
                origin_card_level=card_level,
            )

        return await self._run(stage, result=OperationResult(team=team))

    async def create_player_team(self, sort_order: int, mention_index: int, team_id: CatalogId) -> OperationResult:
        """Confirm the link between a mention's selected player and one team.

        Every mention of the same player offered that team receives the
        link, and its offered teams narrow to the ones it is linked to.
        """
        rows = self.working_set.rows
        mention = _mention(rows, sort_order, mention_index)
        if mention.selected_player is None:
            raise CatalogError(ErrorKind.VALIDATION, f"No player selected for {mention.name!r}")
        row = _row(rows, sort_order)
        candidates = mention.link_targets() + row.team_matches.exact
        team = next((t for t in candidates if t.team_id == team_id), None)
        if team is None:
            raise CatalogError(ErrorKind.VALIDATION, f"Team {team_id} is not offered on card {sort_order}")

        def stage(rows):
            return rows, []

        def chosen(rows):
            return [(sort_order, mention_index, team)]

        return await self._run(stage, extra_targets=chosen, result=OperationResult(team=team), narrow=True)

    # Field edits

    def toggle_flag(self, sort_order: int, flag: str) -> ParsedRow:
        return self.working_set.toggle_flag(sort_order, flag)

    def set_field(self, sort_order: int, field_name: str, value: Any) -> ParsedRow:
        return self.working_set.set_field(sort_order, field_name, value)

    def bulk_set_field(self, field_name: str, value: Any) -> List[ParsedRow]:
        return self.working_set.bulk_set_field(field_name, value)


def _row(rows: Sequence[ParsedRow], sort_order: int) -> ParsedRow:
    for row in rows:
        if row.sort_order == sort_order:
            return row
    raise KeyError(f"No row with sort order {sort_order}")
