"""The ordered collection of rows under review in one import session."""

import logging
import re
from dataclasses import replace
from typing import Any, Callable, List, Optional, Sequence, Tuple, Union

from .models import EDITABLE_FIELDS, FLAG_FIELDS, ParsedRow

logger = logging.getLogger(__name__)

RowsUpdate = Union[Sequence[ParsedRow], Callable[[List[ParsedRow]], List[ParsedRow]]]
Listener = Callable[[List[ParsedRow]], None]

INT_FIELDS = ("print_run", "color_id")

SORT_FIELDS = ("sort_order",) + EDITABLE_FIELDS


def coerce_optional_int(value: Any) -> Optional[int]:
    """'' / None -> None, '/99' or '99' -> 99; anything else unparseable -> None."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    text = str(value).strip().lstrip("/")
    match = re.match(r"^\d+", text)
    return int(match.group(0)) if match else None


def coerce_field(field_name: str, value: Any) -> Any:
    if field_name not in EDITABLE_FIELDS:
        raise ValueError(f"Field is not editable: {field_name}")
    if field_name in INT_FIELDS:
        return coerce_optional_int(value)
    if field_name in FLAG_FIELDS:
        return bool(value)
    return "" if value is None else str(value)


def _is_plain_int(value: str) -> bool:
    return bool(re.fullmatch(r"-?\d+", value)) and str(int(value)) == value


def _value_key(value: Any) -> Tuple[int, Any, str]:
    if value is None:
        return (0, 0, "")
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return (1, value, "")
    return (2, 0, str(value).lower())


def _card_number_key(card_number: str) -> Tuple[int, int, str]:
    card_number = card_number or ""
    if _is_plain_int(card_number):
        return (0, int(card_number), "")
    return (1, 0, card_number.lower())


def _row_mentions_text(row: ParsedRow) -> List[str]:
    texts = [row.card_number, row.notes]
    texts.extend(row.team_names)
    for mention in row.players:
        texts.append(mention.name)
        texts.extend(mention.team_names)
    return [t for t in texts if t]


class ImportWorkingSet:
    """Rows of one import plus the single mutation entry point.

    Every change goes through :meth:`apply_update`. Passing a function lets
    a caller compute its change against the rows current at commit time,
    so async batches that finish out of order compose instead of
    overwriting each other.
    """

    def __init__(self, rows: Optional[Sequence[ParsedRow]] = None) -> None:
        self._rows: List[ParsedRow] = list(rows or [])
        self._listeners: List[Listener] = []

    def __len__(self) -> int:
        return len(self._rows)

    @property
    def rows(self) -> List[ParsedRow]:
        return list(self._rows)

    def get(self, sort_order: int) -> ParsedRow:
        for row in self._rows:
            if row.sort_order == sort_order:
                return row
        raise KeyError(f"No row with sort order {sort_order}")

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register an ``on_update`` listener; returns a function that removes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def apply_update(self, update: RowsUpdate) -> List[ParsedRow]:
        if callable(update):
            next_rows = update(list(self._rows))
        else:
            next_rows = list(update)
        self._rows = list(next_rows)
        for listener in list(self._listeners):
            listener(self.rows)
        return self.rows

    def update_row(self, sort_order: int, fn: Callable[[ParsedRow], ParsedRow]) -> ParsedRow:
        """Replace the row identified by ``sort_order`` with ``fn(row)``."""
        self.get(sort_order)

        def _update(rows: List[ParsedRow]) -> List[ParsedRow]:
            return [fn(row) if row.sort_order == sort_order else row for row in rows]

        self.apply_update(_update)
        return self.get(sort_order)

    def set_field(self, sort_order: int, field_name: str, value: Any) -> ParsedRow:
        value = coerce_field(field_name, value)
        return self.update_row(sort_order, lambda row: replace(row, **{field_name: value}))

    def toggle_flag(self, sort_order: int, flag: str) -> ParsedRow:
        if flag not in FLAG_FIELDS:
            raise ValueError(f"Not a flag: {flag}")
        return self.update_row(sort_order, lambda row: replace(row, **{flag: not getattr(row, flag)}))

    def bulk_set_field(self, field_name: str, value: Any) -> List[ParsedRow]:
        value = coerce_field(field_name, value)
        logger.info(f"Applying {field_name}={value!r} to {len(self._rows)} rows")
        return self.apply_update(lambda rows: [replace(row, **{field_name: value}) for row in rows])

    def toggle_all_flag(self, flag: str) -> List[ParsedRow]:
        """Clear ``flag`` everywhere if every row has it, otherwise set it everywhere."""
        if flag not in FLAG_FIELDS:
            raise ValueError(f"Not a flag: {flag}")
        all_set = bool(self._rows) and all(getattr(row, flag) for row in self._rows)
        return self.bulk_set_field(flag, not all_set)

    def search(self, query: str, rows: Optional[Sequence[ParsedRow]] = None) -> List[ParsedRow]:
        """Rows whose card number, player, team or notes contain ``query``."""
        rows = self._rows if rows is None else rows
        needle = (query or "").strip().lower()
        if not needle:
            return list(rows)
        return [
            row for row in rows
            if any(needle in text.lower() for text in _row_mentions_text(row))
        ]

    def sort(
        self,
        field_name: str = "sort_order",
        direction: str = "asc",
        rows: Optional[Sequence[ParsedRow]] = None,
    ) -> List[ParsedRow]:
        """Sorted copy of the rows; ties keep source order.

        Card numbers that are plain integers sort numerically ("1", "2",
        "10") and come before every other card number, which sort as
        lowercase text.
        """
        if field_name not in SORT_FIELDS:
            raise ValueError(f"Cannot sort by {field_name}")
        rows = self._rows if rows is None else rows
        descending = direction.lower() == "desc"

        def key(row: ParsedRow):
            if field_name == "card_number":
                return _card_number_key(row.card_number)
            return _value_key(getattr(row, field_name))

        # reverse=True keeps equal keys in their existing (source) order
        source_order = sorted(rows, key=lambda row: row.sort_order)
        return sorted(source_order, key=key, reverse=descending)

    def view(self, query: str = "", field_name: str = "sort_order", direction: str = "asc") -> List[ParsedRow]:
        """Display order: filtered by ``query`` and then sorted."""
        return self.sort(field_name, direction, rows=self.search(query))
