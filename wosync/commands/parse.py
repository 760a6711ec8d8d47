"""
wos parse - Preview a work order's note file without staging it.
"""

from wosync.lib.codes import CodeResolver
from wosync.lib.dsl import parse_notes_file
from wosync.lib.errors import ParseError, WosyncError
from wosync.lib.staging import resolve_entries
from wosync.lib.timecalc import calculate_durations
from wosync.lib.workorders import validate_work_order_number


def cmd_parse(args, config) -> int:
    """Show parsed entries with durations and resolved codes."""
    try:
        number = validate_work_order_number(args.wo)
    except WosyncError as e:
        print(f"ERROR: {e}")
        return 2

    notes_path = config.notes_path(number)
    try:
        parsed = parse_notes_file(notes_path)
    except FileNotFoundError as e:
        print(f"ERROR: {e}")
        return 2
    except ParseError as e:
        print(f"ERROR: {e}")
        return 1

    timed = calculate_durations(parsed.entries, parsed.baseline)
    try:
        services, unresolved = resolve_entries(timed, CodeResolver(config.tables_dir))
    except WosyncError as e:
        print(f"ERROR: {e}")
        return 1

    print(f"Work order {number}")
    print(f"  Notes:     {notes_path}")
    print(f"  Baseline:  {parsed.baseline or '(none)'}")
    print(f"  Processed: {parsed.skipped_processed} line(s) already synchronized")
    print()

    unresolved_lines = {d.line_number for d in unresolved}
    remaining = iter(services)
    if timed:
        print("Entries")
        print("-" * 60)
        for item in timed:
            entry = item.entry
            service = None if entry.line_number in unresolved_lines else next(remaining)
            codes = f"{service.verb_code}/{service.noun_code or '-'}" if service else "unresolved"
            keywords = entry.verb + (f", {entry.noun}" if entry.noun else "")
            close = "  [close]" if entry.close_directive else ""
            print(f"  {entry.timestamp}  {item.duration_minutes:>4} min  {keywords:<24} {codes}{close}")
        print()
    else:
        print("Entries: none")
        print()

    dropped = parsed.dropped + unresolved
    if dropped:
        print("Dropped")
        print("-" * 60)
        for d in sorted(dropped, key=lambda d: d.line_number):
            print(f"  line {d.line_number}: {d.reason}")

    return 0
