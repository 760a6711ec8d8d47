"""
Staging: turn a work order's note file into a stacked work order.

note text -> parse_notes -> calculate_durations -> CodeResolver -> StackedWorkOrder

Unresolvable entries are dropped and reported; the rest still stage.
A misplaced close token fails the whole file.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path

from .codes import CodeResolver
from .dsl import DroppedEntry, parse_notes
from .errors import CodeNotFound, MisplacedCloseDirective, UnknownWorkOrder
from .stack import StackableEntry, StackedWorkOrder, StackStore
from .timecalc import TimedEntry, calculate_durations
from .workorders import WorkOrderLookup, validate_work_order_number

logger = logging.getLogger(__name__)


@dataclass
class StageResult:
    work_order: StackedWorkOrder
    dropped: list[DroppedEntry] = field(default_factory=list)
    skipped_processed: int = 0
    staged: bool = False
    replaced: bool = False


def combine_notes(services: list[StackableEntry]) -> str:
    """Combined notes: one "timestamp\\nnotes" block per service."""
    return "\n\n".join(f"{s.timestamp}\n{s.notes}" for s in services)


def resolve_entries(
    timed: list[TimedEntry],
    resolver: CodeResolver,
) -> tuple[list[StackableEntry], list[DroppedEntry]]:
    """Resolve codes for timed entries, dropping the ones that can't be resolved."""
    services = []
    dropped = []

    for item in timed:
        entry = item.entry
        try:
            verb_code, noun_code = resolver.resolve(entry.verb, entry.noun)
        except CodeNotFound as e:
            logger.error(f"[STAGE] Line {entry.line_number}: {e}, entry dropped")
            dropped.append(DroppedEntry(entry.line_number, str(e)))
            continue

        if entry.noun and noun_code is None:
            logger.warning(
                f"[STAGE] Line {entry.line_number}: verb '{entry.verb}' takes no noun, "
                f"ignoring '{entry.noun}'"
            )

        services.append(StackableEntry(
            verb_code=verb_code,
            noun_code=noun_code,
            timestamp=entry.timestamp,
            notes=entry.notes,
            duration_minutes=item.duration_minutes,
        ))

    return services, dropped


def stage_work_order(
    work_order_number: str,
    text: str,
    resolver: CodeResolver,
    workorders: WorkOrderLookup,
) -> StageResult:
    """Build a StackedWorkOrder from note file text. Does not persist.

    Raises:
        InvalidWorkOrderNumber: if the number isn't 7 digits
        UnknownWorkOrder: if the local store doesn't know the number
        MisplacedCloseDirective: if =| isn't on the last entry
    """
    number = validate_work_order_number(work_order_number)
    record = workorders.get_work_order(number)
    if record is None:
        raise UnknownWorkOrder(number)
    if not record.open:
        logger.warning(f"[STAGE] Work order {number} is closed in the local store")

    parsed = parse_notes(text)
    timed = calculate_durations(parsed.entries, parsed.baseline)

    # The close entry is last in the file; it must also be last in time
    for position, item in enumerate(timed):
        if item.entry.close_directive and position != len(timed) - 1:
            raise MisplacedCloseDirective(item.entry.line_number)

    services, dropped = resolve_entries(timed, resolver)
    close_on_push = bool(timed) and timed[-1].entry.close_directive
    if close_on_push and any(d.line_number == timed[-1].entry.line_number for d in dropped):
        logger.warning(f"[STAGE] {number}: close token dropped with its entry, work order will not be closed")
        close_on_push = False

    work_order = StackedWorkOrder(
        work_order_number=number,
        control_number=record.control_number,
        services=services,
        notes=combine_notes(services),
        close_on_push=close_on_push,
    )

    return StageResult(
        work_order=work_order,
        dropped=parsed.dropped + dropped,
        skipped_processed=parsed.skipped_processed,
    )


def stage_note_file(
    work_order_number: str,
    notes_path: Path,
    resolver: CodeResolver,
    workorders: WorkOrderLookup,
    store: StackStore,
) -> StageResult:
    """Stage a work order's note file and upsert it into the stack.

    Nothing is written when no entry survives parsing and resolution.
    """
    if not notes_path.exists():
        raise FileNotFoundError(f"Notes file for work order {work_order_number} not found: {notes_path}")

    result = stage_work_order(work_order_number, notes_path.read_text(), resolver, workorders)
    if not result.work_order.services:
        logger.info(f"[STAGE] {result.work_order.work_order_number}: nothing to stage")
        return result

    result.replaced = store.upsert(result.work_order)
    result.staged = True
    return result
