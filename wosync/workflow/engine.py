"""Sync engine: push staged services to the remote work-order system.

For each staged work order:
1. List the services the remote side already has (once)
2. For each pending service, in chronological order:
   skip it if it matches an existing service, else SUBMIT -> VERIFY
3. Close the work order if asked to and every service made it

A failed service never stops the run; it stays pending for the next one.
The stack is saved at the end so pushed services are not pushed again.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date
from enum import Enum

from wosync.channel.base import ExistingService, RemoteFormChannel
from wosync.channel.session import channel_session
from wosync.lib.config import (
    DEFAULT_DUPLICATE_TOLERANCE_DAYS,
    DEFAULT_RETRY_ATTEMPTS,
    DEFAULT_RETRY_DELAY_SECONDS,
    Config,
)
from wosync.lib.stack import StackableEntry, StackedWorkOrder, StackStore
from wosync.workflow.fsm import EntryFSM
from wosync.workflow.remote_cache import RemoteServiceCache
from wosync.workflow.tasks import ChannelOps

logger = logging.getLogger(__name__)


@dataclass
class SyncOptions:
    dry_run: bool = False
    retry_attempts: int = DEFAULT_RETRY_ATTEMPTS
    retry_delay_seconds: float = DEFAULT_RETRY_DELAY_SECONDS
    duplicate_tolerance_days: int = DEFAULT_DUPLICATE_TOLERANCE_DAYS

    @classmethod
    def from_config(cls, config: Config, dry_run: bool = False) -> "SyncOptions":
        return cls(
            dry_run=dry_run,
            retry_attempts=config.retry_attempts,
            retry_delay_seconds=config.retry_delay_seconds,
            duplicate_tolerance_days=config.duplicate_tolerance_days,
        )


class ProblemKind(Enum):
    LISTING_ERROR = "listing_error"
    SUBMISSION_ERROR = "submission_error"
    VERIFICATION_FAILURE = "verification_failure"
    CLOSURE_BLOCKED = "closure_blocked"
    CLOSURE_FAILURE = "closure_failure"


@dataclass
class SyncProblem:
    kind: ProblemKind
    work_order_number: str
    message: str
    timestamp: str | None = None  # entry timestamp, None for work-order level problems

    def __str__(self):
        where = self.work_order_number + (f" {self.timestamp}" if self.timestamp else "")
        return f"[{self.kind.value}] {where}: {self.message}"


@dataclass
class PlannedEntry:
    """What a dry run would do with one service."""
    work_order_number: str
    entry: StackableEntry
    action: str  # "submit" or "skip_duplicate"


@dataclass
class SyncReport:
    dry_run: bool = False
    pushed: int = 0
    skipped_duplicate: int = 0
    failed: int = 0
    would_submit: int = 0
    closed: list[str] = field(default_factory=list)
    problems: list[SyncProblem] = field(default_factory=list)
    # (timestamp, verb code, noun code) of services now on the remote side, per work order
    synced: dict[str, list[tuple[str, int, int | None]]] = field(default_factory=lambda: defaultdict(list))
    planned: list[PlannedEntry] = field(default_factory=list)

    def summary(self) -> str:
        if self.dry_run:
            return (
                f"Dry run: would push {self.would_submit} service(s), "
                f"{self.skipped_duplicate} already present."
            )
        text = (
            f"Push completed. {self.pushed} pushed, "
            f"{self.skipped_duplicate} skipped as duplicates, {self.failed} failed."
        )
        if self.closed:
            text += f" Closed: {', '.join(self.closed)}."
        return text


def find_duplicate(
    entry: StackableEntry,
    existing: list[ExistingService],
    tolerance_days: int = DEFAULT_DUPLICATE_TOLERANCE_DAYS,
) -> int | None:
    """Index of the first existing service matching the entry, or None.

    A match has the same verb code and a date within tolerance_days.
    """
    entry_date = date.fromisoformat(entry.date)
    for i, service in enumerate(existing):
        if service.code == entry.verb_code and abs((service.date - entry_date).days) <= tolerance_days:
            return i
    return None


def _needs_work(work_order: StackedWorkOrder) -> bool:
    return bool(work_order.pending) or (work_order.close_on_push and not work_order.closed)


def _push_entry(ops: ChannelOps, number: str, fsm: EntryFSM, report: SyncReport) -> bool:
    """SUBMIT -> VERIFY for one entry. Returns True if it ended up pushed."""
    entry = fsm.entry
    fsm.start_submit()

    try:
        ops.submit_service(number, entry)
    except Exception as e:
        fsm.fail(reason=f"submission failed: {e}")
        report.failed += 1
        report.problems.append(SyncProblem(ProblemKind.SUBMISSION_ERROR, number, str(e), entry.timestamp))
        return False

    fsm.submitted()

    try:
        present = ops.verify_service_present(number, entry)
        reason = "service not found after submission"
    except Exception as e:
        present = False
        reason = f"verification error: {e}"

    if not present:
        fsm.fail(reason=reason)
        report.failed += 1
        report.problems.append(SyncProblem(ProblemKind.VERIFICATION_FAILURE, number, reason, entry.timestamp))
        return False

    fsm.confirm()
    report.pushed += 1
    return True


def _close_work_order(ops: ChannelOps, work_order: StackedWorkOrder, report: SyncReport) -> None:
    number = work_order.work_order_number

    not_pushed = work_order.pending
    if not_pushed:
        message = f"{len(not_pushed)} service(s) not pushed, work order left open"
        logger.warning(f"[SYNC] {number}: {message}")
        report.problems.append(SyncProblem(ProblemKind.CLOSURE_BLOCKED, number, message))
        return

    try:
        ops.close_work_order(number)
        closed = ops.is_closed(number)
        message = "work order still open after close"
    except Exception as e:
        closed = False
        message = f"close failed: {e}"

    if closed:
        work_order.closed = True
        report.closed.append(number)
        logger.info(f"[SYNC] {number}: closed")
    else:
        logger.warning(f"[SYNC] {number}: {message}")
        report.problems.append(SyncProblem(ProblemKind.CLOSURE_FAILURE, number, message))


def sync_work_order(
    ops: ChannelOps,
    work_order: StackedWorkOrder,
    options: SyncOptions,
    report: SyncReport,
    listings: dict[str, list[ExistingService]],
) -> None:
    """Push one work order's pending services, then close it if requested."""
    number = work_order.work_order_number
    pending = work_order.pending
    logger.info(f"[SYNC] {number}: {len(pending)} pending service(s)")

    if pending:
        try:
            existing = ops.list_existing_services(number)
            listing_error = None
        except Exception as e:
            existing = []
            listing_error = f"could not list existing services: {e}"
            report.problems.append(SyncProblem(ProblemKind.LISTING_ERROR, number, listing_error))

        # Each existing service can only account for one local entry
        available = list(existing)
        confirmed = []

        for entry in pending:
            fsm = EntryFSM(entry, number)
            fsm.check_duplicates()

            if listing_error:
                # Without a listing a submit could create a duplicate
                fsm.fail(reason=listing_error)
                report.failed += 1
                continue

            match = find_duplicate(entry, available, options.duplicate_tolerance_days)
            if match is not None:
                available.pop(match)
                fsm.mark_duplicate()
                report.skipped_duplicate += 1
            elif _push_entry(ops, number, fsm, report):
                confirmed.append(ExistingService(date.fromisoformat(entry.date), entry.verb_code, entry.notes))

            if fsm.is_done:
                report.synced[number].append(entry.key)

        if not listing_error:
            listings[number] = list(existing) + confirmed

    if work_order.close_on_push and not work_order.closed:
        _close_work_order(ops, work_order, report)


def preview_work_order(
    work_order: StackedWorkOrder,
    cached: list[ExistingService] | None,
    options: SyncOptions,
    report: SyncReport,
) -> None:
    """Dry run for one work order. Never touches the channel or the entries."""
    number = work_order.work_order_number
    available = list(cached) if cached is not None else None

    for entry in work_order.pending:
        action = "submit"
        if available is not None:
            match = find_duplicate(entry, available, options.duplicate_tolerance_days)
            if match is not None:
                available.pop(match)
                action = "skip_duplicate"

        if action == "submit":
            report.would_submit += 1
        else:
            report.skipped_duplicate += 1
        report.planned.append(PlannedEntry(number, entry, action))


def sync_stack(
    store: StackStore,
    channel: RemoteFormChannel | None,
    options: SyncOptions | None = None,
    cache: RemoteServiceCache | None = None,
) -> SyncReport:
    """Push every staged work order through the channel.

    One remote session is opened for the whole run and released on every
    exit path. The stack is saved even if the run is cut short, so services
    already pushed are not pushed again.

    A dry run opens no session, makes no channel calls and saves nothing.
    """
    options = options or SyncOptions()
    report = SyncReport(dry_run=options.dry_run)

    stack = store.load()
    work = [wo for wo in stack if _needs_work(wo)]
    if not work:
        logger.info("[SYNC] Nothing to push")
        return report

    if options.dry_run:
        cached = cache.load() if cache else {}
        for work_order in work:
            preview_work_order(work_order, cached.get(work_order.work_order_number), options, report)
        logger.info(f"[SYNC] {report.summary()}")
        return report

    if channel is None:
        raise ValueError("A remote channel is required unless dry_run is set")

    ops = ChannelOps(channel, options.retry_attempts, options.retry_delay_seconds)
    listings: dict[str, list[ExistingService]] = {}

    try:
        with channel_session(channel):
            for work_order in work:
                sync_work_order(ops, work_order, options, report, listings)
    finally:
        store.save(stack)
        if cache is not None and listings:
            cache.update(listings)

    logger.info(f"[SYNC] {report.summary()}")
    return report
