"""
Duration inference for parsed note entries.

Each entry's duration is the time since its chronological predecessor.
The first entry is measured from the baseline (last import or last
synchronized entry) when there is one, otherwise it gets zero.
"""

import logging
from dataclasses import dataclass

from .dsl import ParsedEntry, parse_timestamp

logger = logging.getLogger(__name__)

MIN_DURATION_MINUTES = 0


@dataclass(frozen=True)
class TimedEntry:
    """A parsed entry with its inferred duration."""
    entry: ParsedEntry
    duration_minutes: int


def round_minutes(seconds: float) -> int:
    """Round seconds to whole minutes, halves rounding up."""
    return int(seconds // 60 + (1 if seconds % 60 >= 30 else 0))


def calculate_durations(entries: list[ParsedEntry], baseline: str | None = None) -> list[TimedEntry]:
    """Return entries sorted by timestamp, each annotated with its duration.

    Ties keep file order. Negative deltas are clamped to MIN_DURATION_MINUTES
    with a warning.

    Raises:
        ValueError: if an entry or the baseline has an unparseable timestamp
    """
    stamped = []
    for entry in entries:
        when = parse_timestamp(entry.timestamp)
        if when is None:
            raise ValueError(f"Line {entry.line_number}: invalid timestamp '{entry.timestamp}'")
        stamped.append((when, entry))

    # sorted() is stable, so equal timestamps stay in file order
    stamped.sort(key=lambda pair: pair[0])

    previous = None
    if baseline is not None:
        previous = parse_timestamp(baseline)
        if previous is None:
            raise ValueError(f"Invalid baseline timestamp '{baseline}'")

    timed = []
    for when, entry in stamped:
        if previous is None:
            minutes = 0
        else:
            minutes = round_minutes((when - previous).total_seconds())
            if minutes < MIN_DURATION_MINUTES:
                logger.warning(
                    f"[TIME] Line {entry.line_number}: {entry.timestamp} is {-minutes} min "
                    f"before its predecessor, duration clamped to {MIN_DURATION_MINUTES}"
                )
                minutes = MIN_DURATION_MINUTES
        timed.append(TimedEntry(entry=entry, duration_minutes=minutes))
        previous = when

    return timed
