"""Checklist bulk-import reconciliation."""

from .models import (
    MatchSet,
    OperationResult,
    ParsedRow,
    Player,
    PlayerMention,
    PlayerTeamLink,
    Readiness,
    Summary,
    Team,
)
from .errors import BatchLinkError, CatalogError, ErrorKind
from .cache import EntityResolutionCache
from .working_set import ImportWorkingSet
from .reconciler import RowReconciler
from .checklist import RawCard, guess_team_slots, load_checklist, match_cards, no_team_placeholders
from .session import ImportSession
from .api_client import CatalogClient, CatalogConfig

__all__ = [
    "MatchSet",
    "OperationResult",
    "ParsedRow",
    "Player",
    "PlayerMention",
    "PlayerTeamLink",
    "Readiness",
    "Summary",
    "Team",
    "BatchLinkError",
    "CatalogError",
    "ErrorKind",
    "EntityResolutionCache",
    "ImportWorkingSet",
    "RowReconciler",
    "RawCard",
    "guess_team_slots",
    "load_checklist",
    "match_cards",
    "no_team_placeholders",
    "ImportSession",
    "CatalogClient",
    "CatalogConfig",
]
