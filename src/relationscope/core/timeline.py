"""Timeline reconstruction.

Merges a report's point-in-time events and date-ranged phases into a single
chronologically ordered sequence. Events are keyed by ``date`` and phases by
``startDate``. Ordering is stable: items sharing a date keep their input
order, and events precede phases.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Sequence, Union

from relationscope.core.errors import InvalidDateError
from relationscope.core.models import TimelineEvent, TimelinePhase

logger = logging.getLogger(__name__)


class TimelineItemKind(str, Enum):
    EVENT = "event"
    PHASE = "phase"


@dataclass(frozen=True)
class TimelineItem:
    """One entry of the merged timeline.

    Attributes:
        kind: Whether ``source`` is an event or a phase.
        sort_date: The parsed date used for ordering.
        source: The untouched event or phase.
        end_date: Parsed ``endDate`` for phases, None for events.
    """

    kind: TimelineItemKind
    sort_date: date
    source: Union[TimelineEvent, TimelinePhase]
    end_date: date | None = None

    @property
    def is_event(self) -> bool:
        return self.kind is TimelineItemKind.EVENT

    @property
    def is_phase(self) -> bool:
        return self.kind is TimelineItemKind.PHASE

    @property
    def is_inverted(self) -> bool:
        """True for a phase whose end date precedes its start date."""
        return self.end_date is not None and self.end_date < self.sort_date


def parse_iso_date(value: str) -> date:
    """Parse ``YYYY-MM-DD`` or an ISO-8601 datetime into a date.

    Raises:
        ValueError: If ``value`` is not ISO-parseable.
    """
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"Not an ISO date: {value!r}")

    text = value.strip()
    try:
        return date.fromisoformat(text)
    except ValueError:
        pass

    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return datetime.fromisoformat(text).date()


class TimelineReconstructor:
    """Build the merged timeline view from events and phases.

    Inputs are never mutated; results are immutable tuples.

    Example:
        >>> items = TimelineReconstructor().merge(events, phases)
        >>> [item.kind.value for item in items]
        ['event', 'phase', 'event']
    """

    def _event_item(self, index: int, event: TimelineEvent) -> TimelineItem:
        try:
            sort_date = parse_iso_date(event.date)
        except ValueError as e:
            raise InvalidDateError("event", index, "date", event.date) from e
        return TimelineItem(kind=TimelineItemKind.EVENT, sort_date=sort_date, source=event)

    def _phase_item(self, index: int, phase: TimelinePhase) -> TimelineItem:
        try:
            start = parse_iso_date(phase.start_date)
        except ValueError as e:
            raise InvalidDateError("phase", index, "startDate", phase.start_date) from e
        try:
            end = parse_iso_date(phase.end_date)
        except ValueError as e:
            raise InvalidDateError("phase", index, "endDate", phase.end_date) from e

        item = TimelineItem(
            kind=TimelineItemKind.PHASE, sort_date=start, source=phase, end_date=end
        )
        if item.is_inverted:
            logger.warning(
                f"Phase #{index} ({phase.name!r}) ends before it starts: "
                f"{phase.start_date} > {phase.end_date}"
            )
        return item

    @staticmethod
    def _sorted(items: list[TimelineItem]) -> tuple[TimelineItem, ...]:
        return tuple(sorted(items, key=lambda item: item.sort_date))

    def merge(
        self,
        events: Sequence[TimelineEvent],
        phases: Sequence[TimelinePhase],
    ) -> tuple[TimelineItem, ...]:
        """Merge events and phases into one ascending sequence.

        Raises:
            InvalidDateError: On the first item whose date cannot be parsed.
        """
        items = [self._event_item(i, event) for i, event in enumerate(events)]
        items.extend(self._phase_item(i, phase) for i, phase in enumerate(phases))
        return self._sorted(items)

    def merge_valid(
        self,
        events: Sequence[TimelineEvent],
        phases: Sequence[TimelinePhase],
    ) -> tuple[tuple[TimelineItem, ...], list[InvalidDateError]]:
        """Merge every parseable item and collect one error per failing item.

        Returns:
            Tuple of (merged items, errors) where errors are in input order,
            events first.
        """
        items: list[TimelineItem] = []
        errors: list[InvalidDateError] = []

        for i, event in enumerate(events):
            try:
                items.append(self._event_item(i, event))
            except InvalidDateError as e:
                errors.append(e)

        for i, phase in enumerate(phases):
            try:
                items.append(self._phase_item(i, phase))
            except InvalidDateError as e:
                errors.append(e)

        if errors:
            logger.warning(f"Skipped {len(errors)} timeline item(s) with invalid dates")
        return self._sorted(items), errors
