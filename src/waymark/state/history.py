"""Append-only JSONL journal of committed state transitions."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from pydantic import ValidationError

from waymark.state.errors import InvalidParameterError, StateStorageError
from waymark.state.models import EventType, HistoryEvent, ensure_utc

_LOGGER = logging.getLogger(__name__)

DEFAULT_HISTORY_LIMIT = 50
MAX_HISTORY_LIMIT = 500


@dataclass(frozen=True)
class ParsedLine:
    """Outcome of decoding one journal line."""

    line_number: int
    event: HistoryEvent | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        """Whether the line decoded into an event."""
        return self.event is not None


@dataclass(frozen=True)
class HistoryQueryResult:
    """Filtered events (newest first) plus the count of skipped lines."""

    events: tuple[HistoryEvent, ...]
    invalid_lines: int = 0
    total_lines: int = 0


def parse_line(line_number: int, raw: bytes | str) -> ParsedLine:
    """Decode one journal line without raising.

    Args:
        line_number: 1-based line number, for diagnostics.
        raw: Line bytes or text without the trailing newline.

    Returns:
        Parsed event or the reason it could not be decoded.
    """
    if isinstance(raw, bytes):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            return ParsedLine(line_number, error=f"invalid UTF-8: {exc.reason}")
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        return ParsedLine(line_number, error=f"invalid JSON: {exc.msg}")
    if not isinstance(payload, dict):
        return ParsedLine(line_number, error="expected JSON object")
    try:
        return ParsedLine(line_number, event=HistoryEvent.model_validate(payload))
    except ValidationError as exc:
        return ParsedLine(line_number, error=f"invalid event: {exc.error_count()} errors")


def parse_since(value: datetime | str | None) -> datetime | None:
    """Normalize a ``since`` bound to an aware UTC datetime.

    Raises:
        InvalidParameterError: If a string bound is not ISO 8601.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return ensure_utc(value)
    try:
        return ensure_utc(datetime.fromisoformat(value.strip()))
    except ValueError as exc:
        raise InvalidParameterError(
            f"since must be an ISO 8601 timestamp, got {value!r}.",
            data={"since": value},
        ) from exc


class HistoryLog:
    """Append events to and query the project's history journal."""

    def __init__(
        self,
        *,
        history_path: Path,
        default_limit: int = DEFAULT_HISTORY_LIMIT,
        max_limit: int = MAX_HISTORY_LIMIT,
    ) -> None:
        """Store journal location and retrieval bounds.

        Args:
            history_path: JSONL journal path.
            default_limit: Events returned when no limit is given.
            max_limit: Upper bound on a requested limit.
        """
        self._history_path = history_path
        self._default_limit = default_limit
        self._max_limit = max_limit

    @property
    def path(self) -> Path:
        """Journal path."""
        return self._history_path

    def append(self, event: HistoryEvent) -> None:
        """Append one event as a single complete line.

        Args:
            event: Event to record.
        """
        try:
            self._history_path.parent.mkdir(parents=True, exist_ok=True)
            with self._history_path.open("a", encoding="utf-8") as handle:
                handle.write(event.to_line() + "\n")
        except OSError as exc:
            raise StateStorageError(
                f"Cannot append to history journal {self._history_path}: {exc}",
                path=self._history_path,
            ) from exc
        _LOGGER.debug("Appended %s event to %s", event.type.value, self._history_path)

    def iter_lines(self) -> Iterator[ParsedLine]:
        """Yield a parse result for every non-blank journal line."""
        if not self._history_path.exists():
            return
        try:
            handle = self._history_path.open("rb")
        except OSError as exc:
            raise StateStorageError(
                f"Cannot read history journal {self._history_path}: {exc}",
                path=self._history_path,
            ) from exc
        # Decoded per line: an undecodable line is counted, never raised.
        with handle:
            for line_number, raw in enumerate(handle, start=1):
                text = raw.strip()
                if not text:
                    continue
                yield parse_line(line_number, text)

    def query(
        self,
        *,
        limit: int | None = None,
        since: datetime | str | None = None,
        types: Iterable[EventType | str] | None = None,
        feature: str | None = None,
    ) -> HistoryQueryResult:
        """Read, filter, and order journal events.

        Args:
            limit: Maximum events returned (1..max_limit).
            since: Exclusive lower bound on event timestamp.
            types: Allow-list of event types.
            feature: Match only events whose diff sets ``current_feature`` to it.

        Returns:
            Matching events newest-first and the number of skipped lines.

        Raises:
            InvalidParameterError: If limit, since, or types are out of range.
        """
        effective_limit = self._resolve_limit(limit)
        lower_bound = parse_since(since)
        allowed = _resolve_types(types)

        matched: list[tuple[int, HistoryEvent]] = []
        invalid = 0
        total = 0
        for parsed in self.iter_lines():
            total += 1
            if parsed.event is None:
                invalid += 1
                _LOGGER.warning(
                    "Skipping history line %d in %s: %s",
                    parsed.line_number,
                    self._history_path,
                    parsed.error,
                )
                continue
            if _matches(parsed.event, lower_bound, allowed, feature):
                matched.append((parsed.line_number, parsed.event))

        # Later lines win ties so same-instant events still read newest-first.
        matched.sort(key=lambda item: (item[1].timestamp, item[0]), reverse=True)
        return HistoryQueryResult(
            events=tuple(event for _, event in matched[:effective_limit]),
            invalid_lines=invalid,
            total_lines=total,
        )

    def _resolve_limit(self, limit: int | None) -> int:
        if limit is None:
            return self._default_limit
        if limit < 1 or limit > self._max_limit:
            raise InvalidParameterError(
                f"limit must be between 1 and {self._max_limit}, got {limit}.",
                data={"limit": limit},
            )
        return limit


def _resolve_types(types: Iterable[EventType | str] | None) -> frozenset[EventType] | None:
    if types is None:
        return None
    resolved: set[EventType] = set()
    for item in types:
        try:
            resolved.add(EventType(item))
        except ValueError as exc:
            raise InvalidParameterError(
                f"Unknown history event type: {item!r}.", data={"type": str(item)}
            ) from exc
    return frozenset(resolved)


def _matches(
    event: HistoryEvent,
    since: datetime | None,
    types: frozenset[EventType] | None,
    feature: str | None,
) -> bool:
    if since is not None and event.timestamp <= since:
        return False
    if types is not None and event.type not in types:
        return False
    if feature is not None and event.changed_feature() != feature:
        return False
    return True
