"""
Exception types for wosync.

Hard failures are raised. Soft outcomes (dropped entries, failed pushes,
blocked closures) are recorded as data and summarized at the end of a run.
"""


class WosyncError(Exception):
    """Base class for wosync errors."""
    pass


class ParseError(WosyncError):
    """Note file could not be parsed as a whole."""
    pass


class MisplacedCloseDirective(ParseError):
    """Close token found on an entry other than the last one."""

    def __init__(self, line_number: int, line: str = ""):
        self.line_number = line_number
        self.line = line
        super().__init__(
            f"Line {line_number}: close token =| is only allowed on the last entry"
            + (f": {line.strip()}" if line else "")
        )


class InvalidWorkOrderNumber(WosyncError):
    """Work order number is not exactly 7 digits."""
    pass


class UnknownWorkOrder(WosyncError):
    """Work order is not known to the local store."""

    def __init__(self, work_order_number: str):
        self.work_order_number = work_order_number
        super().__init__(f"Work order {work_order_number} not found in the database")


class CodeNotFound(WosyncError):
    """Verb or noun keyword has no code."""

    def __init__(self, kind: str, keyword: str):
        self.kind = kind
        self.keyword = keyword
        super().__init__(f"{kind.capitalize()} \"{keyword}\" not found in lookup table")


class CodeTableError(WosyncError):
    """Code reference data is missing or malformed."""
    pass


class StackError(WosyncError):
    """Stack file unreadable or invalid."""
    pass


class SubmissionError(WosyncError):
    """Remote channel failed to submit a service."""
    pass
