"""One operator's bulk-import review session."""

import logging
import uuid
from typing import Any, Callable, List, Optional, Sequence

from . import readiness
from .api_client import CatalogService
from .cache import EntityResolutionCache
from .checklist import RawCard, match_cards, no_team_placeholders
from .models import CatalogId, ParsedRow, Summary
from .reconciler import RowReconciler
from .working_set import ImportWorkingSet

logger = logging.getLogger(__name__)


class ImportSession:
    """Working set, link cache and reconciler for one checklist import.

    The cache is owned by the session and cleared when it closes, so
    nothing learned about the catalog outlives the import.
    """

    def __init__(
        self,
        rows: Sequence[ParsedRow],
        catalog: CatalogService,
        organization_id: Optional[CatalogId] = None,
        session_id: Optional[str] = None,
    ) -> None:
        self.session_id = session_id or uuid.uuid4().hex
        self.organization_id = organization_id
        self.working_set = ImportWorkingSet(rows)
        self.cache = EntityResolutionCache()
        for row in rows:
            for mention in row.players:
                self.cache.seed_from_mention(mention)
        self.reconciler = RowReconciler(self.working_set, catalog, self.cache, organization_id)
        self.closed = False

    @classmethod
    async def from_checklist(
        cls,
        raw_cards: Sequence[RawCard],
        catalog: CatalogService,
        organization_id: Optional[CatalogId] = None,
        auto_select: bool = True,
    ) -> "ImportSession":
        """Fetch the catalog and match every card against it."""
        players = await catalog.search_players(organization_id)
        teams = await catalog.search_teams(organization_id)
        placeholders = no_team_placeholders(teams)
        if not placeholders and organization_id is not None:
            # placeholder teams belong to no organization
            placeholders = no_team_placeholders(await catalog.search_teams())
        logger.info(
            f"Matching {len(raw_cards)} cards against {len(players)} players and {len(teams)} teams"
        )
        rows = match_cards(
            raw_cards, players, teams, auto_select=auto_select, placeholder_teams=placeholders
        )
        return cls(rows, catalog, organization_id=organization_id)

    @property
    def rows(self) -> List[ParsedRow]:
        return self.working_set.rows

    def on_update(self, listener: Callable[[List[ParsedRow]], Any]) -> Callable[[], None]:
        return self.working_set.subscribe(listener)

    def view(self, query: str = "", sort: str = "sort_order", direction: str = "asc") -> List[ParsedRow]:
        return self.working_set.view(query, sort, direction)

    def summarize(self) -> Summary:
        return readiness.summarize(self.working_set.rows)

    def first_unready(self, query: str = "", sort: str = "sort_order", direction: str = "asc") -> Optional[int]:
        """``sort_order`` of the first row needing work in display order."""
        ordered = self.view(query, sort, direction)
        position = readiness.first_unready(ordered)
        return None if position is None else ordered[position].sort_order

    def close(self) -> None:
        self.cache.clear()
        self.closed = True
        logger.info(f"Closed import session {self.session_id}")
