"""
wos push - Push the service stack to the remote work-order system.
"""

import logging

from wosync.channel import ChannelLoadError, create_channel
from wosync.lib.codes import CodeResolver
from wosync.lib.dsl import mark_processed
from wosync.lib.errors import CodeTableError, WosyncError
from wosync.lib.stack import StackStore
from wosync.runner.locking import LockTimeout, sync_lock
from wosync.workflow.engine import SyncOptions, SyncReport, sync_stack
from wosync.workflow.remote_cache import RemoteServiceCache

logger = logging.getLogger(__name__)


def mark_synced_lines(report: SyncReport, config) -> int:
    """Mark every synchronized service line in its note file.

    Lines are matched on timestamp, verb code and noun code, so a service
    that failed is left unmarked even when a synced one shares its minute.
    """
    resolver = CodeResolver(config.tables_dir)
    total = 0
    for number, keys in report.synced.items():
        notes_path = config.notes_path(number)
        try:
            marked = mark_processed(notes_path, keys, resolver)
        except (OSError, CodeTableError) as e:
            print(f"  [WARN] Could not mark {notes_path}: {e}")
            continue
        logger.debug(f"[PUSH] {number}: marked {marked} line(s) in {notes_path}")
        total += marked
    return total


def print_report(report: SyncReport) -> None:
    if report.dry_run and report.planned:
        print("Planned")
        print("-" * 60)
        for item in report.planned:
            action = "submit" if item.action == "submit" else "skip (already present)"
            print(f"  {item.work_order_number}  {item.entry.timestamp}  verb {item.entry.verb_code:<6} {action}")
        print()

    if report.problems:
        print("Problems")
        print("-" * 60)
        for problem in report.problems:
            print(f"  {problem}")
        print()

    print(report.summary())


def cmd_push(args, config) -> int:
    """Run the sync engine over the stack."""
    options = SyncOptions.from_config(config, dry_run=args.dry_run)
    store = StackStore(config.stack_path)
    cache = RemoteServiceCache(config.remote_cache_path)

    channel = None
    if not args.dry_run:
        if not config.channel_factory:
            print("ERROR: CHANNEL_FACTORY is not configured (use --dry-run to preview)")
            return 2
        try:
            channel = create_channel(config.channel_factory, config)
        except ChannelLoadError as e:
            print(f"ERROR: {e}")
            return 2

    try:
        with sync_lock(config.data_dir, timeout=config.lock_timeout):
            report = sync_stack(store, channel, options, cache)
    except LockTimeout:
        print("ERROR: Another push is running")
        return 1
    except WosyncError as e:
        print(f"ERROR: {e}")
        return 1

    print_report(report)

    if not args.dry_run and not args.no_mark and report.synced:
        marked = mark_synced_lines(report, config)
        print(f"Marked {marked} line(s) as processed")

    return 1 if report.failed or report.problems else 0
