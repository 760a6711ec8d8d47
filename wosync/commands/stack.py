"""
wos stack - Stage work orders and manage the service stack.

    wos stack <wo>          stage a work order (replaces an earlier staging)
    wos stack show          show the stack
    wos stack remove <wo>   drop one work order
    wos stack clear         empty the stack
"""

from wosync.lib.codes import CodeResolver
from wosync.lib.errors import ParseError, WosyncError
from wosync.lib.stack import StackStore
from wosync.lib.staging import stage_note_file
from wosync.lib.workorders import SqliteWorkOrderLookup, validate_work_order_number


def cmd_stack(args, config) -> int:
    """Dispatch `wos stack <wo>` and `wos stack <action> ...`."""
    action = STACK_ACTIONS.get(args.target)
    if action:
        return action(args, config)
    if args.extra:
        print(f"ERROR: Unexpected arguments: {' '.join(args.extra)}")
        return 2
    return cmd_stack_add(args, config)


def cmd_stack_add(args, config) -> int:
    """Stage one work order from its note file."""
    if config.database_path is None:
        print("ERROR: DATABASE_PATH is not configured")
        return 2

    try:
        number = validate_work_order_number(args.target)
        result = stage_note_file(
            number,
            config.notes_path(number),
            CodeResolver(config.tables_dir),
            SqliteWorkOrderLookup(config.database_path),
            StackStore(config.stack_path),
        )
    except FileNotFoundError as e:
        print(f"ERROR: {e}")
        return 2
    except ParseError as e:
        print(f"ERROR: {e}")
        print("Nothing was staged.")
        return 1
    except WosyncError as e:
        print(f"ERROR: {e}")
        return 1

    for d in result.dropped:
        print(f"  [WARN] Line {d.line_number}: {d.reason}, entry dropped")

    wo = result.work_order
    if not result.staged:
        print(f"Nothing to stage for work order {wo.work_order_number}")
        return 0

    action = "Replaced" if result.replaced else "Staged"
    close = ", close on push" if wo.close_on_push else ""
    print(f"{action} work order {wo.work_order_number}: {len(wo.services)} service(s){close}")
    return 0


def cmd_stack_show(args, config) -> int:
    """Print every staged work order and its services."""
    try:
        stack = StackStore(config.stack_path).load()
    except WosyncError as e:
        print(f"ERROR: {e}")
        return 1

    if not stack:
        print("Stack: empty")
        return 0

    for wo in stack:
        flags = []
        if wo.close_on_push:
            flags.append("closed" if wo.closed else "close on push")
        if wo.fully_pushed:
            flags.append("pushed")
        suffix = f"  [{', '.join(flags)}]" if flags else ""
        print(f"Work order {wo.work_order_number}  control {wo.control_number or '-'}{suffix}")
        print("-" * 60)
        for s in wo.services:
            mark = "x" if s.pushed else " "
            noun = s.noun_code if s.noun_code is not None else "-"
            print(f"  [{mark}] {s.timestamp}  {s.duration_minutes:>4} min  {s.verb_code}/{noun}  {s.notes}")
        print()

    pending = sum(len(wo.pending) for wo in stack)
    print(f"{len(stack)} work order(s), {pending} service(s) pending")
    return 0


def cmd_stack_remove(args, config) -> int:
    """Remove one work order from the stack."""
    if len(args.extra) != 1:
        print("ERROR: Usage: wos stack remove <wo>")
        return 2

    try:
        number = validate_work_order_number(args.extra[0])
        removed = StackStore(config.stack_path).remove(number)
    except WosyncError as e:
        print(f"ERROR: {e}")
        return 1

    if not removed:
        print(f"ERROR: Work order {number} is not staged")
        return 1
    print(f"Removed work order {number}")
    return 0


def cmd_stack_clear(args, config) -> int:
    """Empty the stack."""
    try:
        StackStore(config.stack_path).clear()
    except WosyncError as e:
        print(f"ERROR: {e}")
        return 1
    print("Stack cleared")
    return 0


STACK_ACTIONS = {
    "show": cmd_stack_show,
    "remove": cmd_stack_remove,
    "clear": cmd_stack_clear,
}
