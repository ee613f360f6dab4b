"""Error taxonomy for catalog calls and reconciliation operations."""

from enum import Enum
from typing import List, Optional


class ErrorKind(str, Enum):
    VALIDATION = "VALIDATION"
    DUPLICATE = "DUPLICATE"
    ALREADY_EXISTS = "ALREADY_EXISTS"
    NOT_FOUND = "NOT_FOUND"
    NETWORK = "NETWORK"
    PARTIAL_BATCH_FAILURE = "PARTIAL_BATCH_FAILURE"


class CatalogError(Exception):
    """A catalog call or operator action failed.

    ``ALREADY_EXISTS`` is raised by the link-creation capability but is
    handled by the reconciler as a success; every other kind reaches the
    operator.
    """

    def __init__(self, kind: ErrorKind, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.status_code = status_code

    @property
    def retryable(self) -> bool:
        return self.kind in (ErrorKind.NOT_FOUND, ErrorKind.NETWORK)

    def __repr__(self) -> str:
        return f"CatalogError({self.kind.value}, {self.message!r})"


class BatchLinkError(CatalogError):
    """Some link attempts of one operation failed while others were committed.

    ``failures`` holds the failed ``LinkOutcome`` entries; ``result`` is the
    ``OperationResult`` of the committed part.
    """

    def __init__(self, failures: List, result=None):
        pairs = ", ".join(f"{f.player_id}/{f.team_id}" for f in failures)
        super().__init__(
            ErrorKind.PARTIAL_BATCH_FAILURE,
            f"{len(failures)} player-team link(s) failed: {pairs}",
        )
        self.failures = failures
        self.result = result


def is_already_exists(error: BaseException) -> bool:
    return isinstance(error, CatalogError) and error.kind == ErrorKind.ALREADY_EXISTS
