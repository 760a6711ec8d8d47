"""
The service stack: staged work orders waiting to be pushed.

The whole stack is persisted as one JSON snapshot. Writes go to a temp
file next to the stack file and are moved into place, so a crash never
leaves a half-written stack behind.
"""

import json
import logging
import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path

from .errors import StackError
from .validate import ValidationError, validate, validate_before_write

logger = logging.getLogger(__name__)


@dataclass
class StackableEntry:
    """A service with codes and duration, ready to push."""
    verb_code: int
    noun_code: int | None
    timestamp: str  # YYYY-MM-DD HH:MM
    notes: str
    duration_minutes: int
    pushed: bool = False

    @property
    def date(self) -> str:
        return self.timestamp.split(" ")[0]

    @property
    def key(self) -> tuple[str, int, int | None]:
        """Identifies the note line this service was staged from."""
        return (self.timestamp, self.verb_code, self.noun_code)

    def to_dict(self) -> dict:
        return {
            "verbCode": self.verb_code,
            "nounCode": self.noun_code,
            "datetime": self.timestamp,
            "notes": self.notes,
            "computedDurationMinutes": self.duration_minutes,
            "pushed": 1 if self.pushed else 0,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "StackableEntry":
        return cls(
            verb_code=data["verbCode"],
            noun_code=data.get("nounCode"),
            timestamp=data["datetime"],
            notes=data["notes"],
            duration_minutes=data["computedDurationMinutes"],
            pushed=bool(data.get("pushed", 0)),
        )


@dataclass
class StackedWorkOrder:
    """All staged services for one work order."""
    work_order_number: str
    control_number: str | None
    services: list[StackableEntry] = field(default_factory=list)
    notes: str = ""
    close_on_push: bool = False
    closed: bool = False

    @property
    def pending(self) -> list[StackableEntry]:
        return [s for s in self.services if not s.pushed]

    @property
    def fully_pushed(self) -> bool:
        return all(s.pushed for s in self.services)

    def to_dict(self) -> dict:
        return {
            "workOrderNumber": self.work_order_number,
            "controlNumber": self.control_number,
            "services": [s.to_dict() for s in self.services],
            "notes": self.notes,
            "closeOnPush": self.close_on_push,
            "closed": self.closed,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "StackedWorkOrder":
        return cls(
            work_order_number=data["workOrderNumber"],
            control_number=data.get("controlNumber"),
            services=[StackableEntry.from_dict(s) for s in data.get("services", [])],
            notes=data.get("notes", ""),
            close_on_push=data.get("closeOnPush", False),
            closed=data.get("closed", False),
        )


def stack_to_data(stack: list[StackedWorkOrder]) -> list[dict]:
    return [wo.to_dict() for wo in stack]


class StackStore:
    """Load and save the stack file.

    No caching: every operation reads or writes the file, so the file is
    the single source of truth between staging and pushing.
    """

    def __init__(self, path: Path):
        self.path = Path(path)

    def load(self) -> list[StackedWorkOrder]:
        """Load the stack. A missing file is an empty stack.

        Raises:
            StackError: if the file is not valid JSON or fails the schema
        """
        if not self.path.exists():
            return []

        try:
            data = json.loads(self.path.read_text())
        except json.JSONDecodeError as e:
            raise StackError(f"Invalid JSON in {self.path}: {e}") from None

        try:
            validate(data, "stack")
        except ValidationError as e:
            raise StackError(f"Stack file {self.path} is invalid: {e}") from None

        return [StackedWorkOrder.from_dict(item) for item in data]

    def save(self, stack: list[StackedWorkOrder]) -> None:
        """Write the whole stack atomically."""
        data = stack_to_data(stack)
        validate_before_write(data, "stack", self.path)

        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w") as f:
                json.dump(data, f, indent=2)
                f.write("\n")
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

        logger.debug(f"[STACK] Saved {len(stack)} work order(s) to {self.path}")

    def get(self, work_order_number: str) -> StackedWorkOrder | None:
        for wo in self.load():
            if wo.work_order_number == work_order_number:
                return wo
        return None

    def upsert(self, work_order: StackedWorkOrder) -> bool:
        """Add a work order, replacing any staged entry with the same number.

        Replacement is wholesale; previously staged services (and their
        pushed flags) are discarded. Returns True if an entry was replaced.
        """
        stack = self.load()
        replaced = False
        for i, existing in enumerate(stack):
            if existing.work_order_number == work_order.work_order_number:
                stack[i] = work_order
                replaced = True
                break
        if not replaced:
            stack.append(work_order)

        self.save(stack)
        action = "Replaced" if replaced else "Added"
        logger.info(f"[STACK] {action} work order {work_order.work_order_number} ({len(work_order.services)} services)")
        return replaced

    def remove(self, work_order_number: str) -> bool:
        """Remove one work order. Returns False if it wasn't staged."""
        stack = self.load()
        remaining = [wo for wo in stack if wo.work_order_number != work_order_number]
        if len(remaining) == len(stack):
            return False
        self.save(remaining)
        logger.info(f"[STACK] Removed work order {work_order_number}")
        return True

    def clear(self) -> None:
        self.save([])
        logger.info("[STACK] Cleared")
