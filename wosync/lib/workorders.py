"""
Work order lookups against the local bookkeeping store.

The store itself (creating, opening and closing work orders) belongs to
another tool. Staging only needs to know whether a number exists and what
its control number is, so this module provides a read-only view.
"""

import logging
import sqlite3
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from .constants import CONTROL_NUMBER_PATTERN, WO_NUMBER_PATTERN
from .errors import InvalidWorkOrderNumber

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WorkOrderRecord:
    work_order_number: str
    control_number: str | None
    open: bool


class WorkOrderLookup(Protocol):
    def get_work_order(self, work_order_number: str) -> WorkOrderRecord | None:
        ...


def validate_work_order_number(work_order_number: str) -> str:
    """Return the trimmed number, or raise if it isn't exactly 7 digits."""
    number = (work_order_number or "").strip()
    if not number:
        raise InvalidWorkOrderNumber("Work order number is required")
    if not WO_NUMBER_PATTERN.match(number):
        raise InvalidWorkOrderNumber(f"Work order number must be exactly 7 digits: '{number}'")
    return number


class SqliteWorkOrderLookup:
    """Reads the WOs table of the local SQLite store."""

    def __init__(self, database_path: Path):
        self.database_path = Path(database_path)

    def get_work_order(self, work_order_number: str) -> WorkOrderRecord | None:
        if not self.database_path.exists():
            raise FileNotFoundError(f"Work order database not found: {self.database_path}")

        # Read-only so a lookup can never modify the bookkeeping store
        uri = f"file:{self.database_path}?mode=ro"
        conn = sqlite3.connect(uri, uri=True)
        try:
            row = conn.execute(
                "SELECT workOrderNumber, controlNumber, open FROM WOs WHERE workOrderNumber = ?",
                (work_order_number,),
            ).fetchone()
        finally:
            conn.close()

        if row is None:
            return None

        control = str(row[1]).strip() if row[1] is not None else None
        if control and not CONTROL_NUMBER_PATTERN.match(control):
            logger.warning(f"[WO] {work_order_number}: ignoring malformed control number '{control}'")
            control = None

        return WorkOrderRecord(
            work_order_number=str(row[0]),
            control_number=control or None,
            open=bool(row[2]),
        )
