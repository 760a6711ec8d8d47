"""
Note file parser for wosync.

Extracts service entries from a work order's note file. Each line is
classified once into one of a small set of shapes:

    [Verb] (YYYY-MM-DD HH:MM) => notes           service
    [Verb, Noun] (YYYY-MM-DD HH-MM) => notes     service with noun
    ... ||                                       already synchronized
    IMPORTED FROM MM ON YYYY-MM-DD at HH:MM:SS   import header (baseline)
    START/RESUME TIME: HH:MM                     resume time (baseline)

Anything else is free text and ignored. A trailing =| on the last entry
asks for the work order to be closed once its services are pushed.
"""

import logging
import re
from collections import Counter
from dataclasses import dataclass, field
from datetime import date, datetime, time
from enum import Enum
from pathlib import Path
from typing import Iterable

from .codes import CodeResolver
from .constants import CLOSE_TOKEN, PROCESSED_MARKER, TIMESTAMP_FORMAT
from .errors import CodeNotFound, MisplacedCloseDirective

logger = logging.getLogger(__name__)

SERVICE_RE = re.compile(r'^\s*\[\s*([^\],]*?)\s*(?:,\s*([^\]]*?)\s*)?\]\s*\(([^)]*)\)\s*=>\s*(.*?)\s*$')
TIMESTAMP_RE = re.compile(r'^(\d{4})-(\d{2})-(\d{2})\s+(\d{1,2})[:-](\d{2})(?:[:-](\d{2}))?$')
IMPORT_RE = re.compile(r'IMPORTED FROM MM ON (\d{4}-\d{2}-\d{2})(?:\s+at\s+(\d{1,2}:\d{2}(?::\d{2})?))?')
RESUME_RE = re.compile(r'START/RESUME TIME:\s*(\d{1,2}:\d{2}(?::\d{2})?)')


class LineKind(Enum):
    PROCESSED = "processed"
    SERVICE = "service"
    SERVICE_WITH_NOUN = "service_with_noun"
    IMPORT_HEADER = "import_header"
    RESUME_TIME = "resume_time"
    OTHER = "other"


@dataclass(frozen=True)
class ClassifiedLine:
    kind: LineKind
    verb: str | None = None
    noun: str | None = None
    raw_timestamp: str | None = None
    notes: str = ""
    header_date: str | None = None
    header_time: str | None = None


@dataclass(frozen=True)
class ParsedEntry:
    """One service line from a note file."""
    verb: str
    noun: str | None
    timestamp: str  # YYYY-MM-DD HH:MM
    notes: str
    close_directive: bool
    line_number: int


@dataclass(frozen=True)
class DroppedEntry:
    """A service line excluded from staging, with the reason."""
    line_number: int
    reason: str
    line: str = ""


@dataclass
class ParseResult:
    entries: list[ParsedEntry] = field(default_factory=list)
    baseline: str | None = None
    dropped: list[DroppedEntry] = field(default_factory=list)
    skipped_processed: int = 0

    @property
    def close_requested(self) -> bool:
        return bool(self.entries) and self.entries[-1].close_directive


def parse_timestamp(value: str | None) -> datetime | None:
    """Parse a note timestamp, or None if it isn't a real date and time.

    Accepts YYYY-MM-DD HH:MM and YYYY-MM-DD HH-MM, with optional seconds.
    """
    if not value:
        return None
    match = TIMESTAMP_RE.match(value.strip())
    if not match:
        return None
    year, month, day, hour, minute, second = match.groups()
    try:
        return datetime(int(year), int(month), int(day), int(hour), int(minute), int(second or 0))
    except ValueError:
        return None


def format_timestamp(value: datetime) -> str:
    """Format a timestamp the way the stack stores it. Seconds kept only if set."""
    if value.second:
        return value.strftime(TIMESTAMP_FORMAT + ":%S")
    return value.strftime(TIMESTAMP_FORMAT)


def _parse_clock(value: str) -> time | None:
    parts = [int(p) for p in value.split(":")]
    try:
        return time(*parts)
    except (TypeError, ValueError):
        return None


def classify_line(line: str) -> ClassifiedLine:
    """Classify a single note file line."""
    service = SERVICE_RE.match(line)
    is_service = bool(service and service.group(1))

    if PROCESSED_MARKER in line:
        if is_service:
            return ClassifiedLine(
                LineKind.PROCESSED,
                verb=service.group(1),
                noun=service.group(2) or None,
                raw_timestamp=service.group(3).strip(),
            )
        return ClassifiedLine(LineKind.PROCESSED)

    if is_service:
        noun = service.group(2) or None
        return ClassifiedLine(
            LineKind.SERVICE_WITH_NOUN if noun else LineKind.SERVICE,
            verb=service.group(1),
            noun=noun,
            raw_timestamp=service.group(3).strip(),
            notes=service.group(4),
        )

    header = IMPORT_RE.search(line)
    if header:
        return ClassifiedLine(LineKind.IMPORT_HEADER, header_date=header.group(1), header_time=header.group(2))

    resume = RESUME_RE.search(line)
    if resume:
        return ClassifiedLine(LineKind.RESUME_TIME, header_time=resume.group(1))

    return ClassifiedLine(LineKind.OTHER)


def _split_close_token(notes: str) -> tuple[str, bool]:
    stripped = notes.rstrip()
    if stripped.endswith(CLOSE_TOKEN):
        return stripped[:-len(CLOSE_TOKEN)].rstrip(), True
    return stripped, False


def parse_notes(text: str) -> ParseResult:
    """Parse note file text into entries and an optional baseline.

    The baseline is the last anchor in file order: an import header, a
    resume time (combined with the import date), or the timestamp of an
    already-synchronized line.

    Raises:
        MisplacedCloseDirective: if =| appears on any entry but the last
    """
    result = ParseResult()
    baseline: datetime | None = None
    import_date: date | None = None
    service_lines: list[tuple[int, str, ClassifiedLine]] = []

    for lineno, line in enumerate(text.splitlines(), 1):
        info = classify_line(line)

        if info.kind == LineKind.PROCESSED:
            result.skipped_processed += 1
            processed_at = parse_timestamp(info.raw_timestamp)
            if processed_at:
                baseline = processed_at
        elif info.kind == LineKind.IMPORT_HEADER:
            try:
                import_date = date.fromisoformat(info.header_date)
            except ValueError:
                logger.warning(f"[PARSE] Line {lineno}: invalid import date '{info.header_date}', ignored")
                continue
            clock = _parse_clock(info.header_time) if info.header_time else None
            if clock:
                baseline = datetime.combine(import_date, clock)
        elif info.kind == LineKind.RESUME_TIME:
            clock = _parse_clock(info.header_time)
            if import_date is None:
                logger.warning(f"[PARSE] Line {lineno}: resume time without an import date, ignored")
            elif clock:
                baseline = datetime.combine(import_date, clock)
        elif info.kind in (LineKind.SERVICE, LineKind.SERVICE_WITH_NOUN):
            service_lines.append((lineno, line, info))

    last = len(service_lines) - 1
    for i, (lineno, line, info) in enumerate(service_lines):
        notes, has_close = _split_close_token(info.notes)
        if i != last and CLOSE_TOKEN in info.notes:
            raise MisplacedCloseDirective(lineno, line)

        when = parse_timestamp(info.raw_timestamp)
        if when is None:
            reason = f"malformed timestamp '{info.raw_timestamp}'"
            logger.warning(f"[PARSE] Line {lineno}: {reason}, entry dropped")
            result.dropped.append(DroppedEntry(lineno, reason, line))
            if has_close:
                logger.warning(f"[PARSE] Line {lineno}: close token lost with dropped entry")
            continue

        result.entries.append(ParsedEntry(
            verb=info.verb,
            noun=info.noun,
            timestamp=when.strftime(TIMESTAMP_FORMAT),
            notes=notes,
            close_directive=has_close,
            line_number=lineno,
        ))

    result.baseline = format_timestamp(baseline) if baseline else None
    logger.debug(
        f"[PARSE] {len(result.entries)} entries, {len(result.dropped)} dropped, "
        f"{result.skipped_processed} already processed"
    )
    return result


def parse_notes_file(filepath: str | Path) -> ParseResult:
    """Read and parse a note file."""
    path = Path(filepath)
    if not path.exists():
        raise FileNotFoundError(f"Notes file not found: {filepath}")
    return parse_notes(path.read_text())


def mark_processed(
    filepath: str | Path,
    synced: Iterable[tuple[str, int, int | None]],
    resolver: CodeResolver,
) -> int:
    """Append the processed marker to the service lines that were synchronized.

    synced holds (timestamp, verb code, noun code) keys. A line matches when
    its own keywords resolve to the same key, so an unsynchronized line
    sharing the minute is left alone. Each key marks at most one line.
    Only lines not already marked are touched. Returns the number of lines
    marked.
    """
    path = Path(filepath)
    if not path.exists():
        return 0

    remaining = Counter(synced)
    content = path.read_text()
    lines = content.splitlines()
    marked = 0

    for i, line in enumerate(lines):
        info = classify_line(line)
        if info.kind not in (LineKind.SERVICE, LineKind.SERVICE_WITH_NOUN):
            continue
        when = parse_timestamp(info.raw_timestamp)
        if when is None:
            continue
        try:
            verb_code, noun_code = resolver.resolve(info.verb, info.noun)
        except CodeNotFound:
            continue

        key = (when.strftime(TIMESTAMP_FORMAT), verb_code, noun_code)
        if remaining[key] > 0:
            remaining[key] -= 1
            lines[i] = f"{line.rstrip()} {PROCESSED_MARKER}"
            marked += 1

    if marked:
        trailing = "\n" if content.endswith("\n") else ""
        path.write_text("\n".join(lines) + trailing)
    return marked
