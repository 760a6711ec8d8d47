"""
The remote channel protocol.

A channel is whatever actually talks to the remote work-order system
(for the production system, a logged-in browser session). The sync engine
only sees these operations.
"""

from dataclasses import dataclass
from datetime import date
from typing import Protocol

from wosync.lib.stack import StackableEntry


@dataclass(frozen=True)
class ExistingService:
    """A service already recorded on the remote work order."""
    date: date
    code: int
    description: str = ""

    def to_dict(self) -> dict:
        return {"date": self.date.isoformat(), "code": self.code, "description": self.description}

    @classmethod
    def from_dict(cls, data: dict) -> "ExistingService":
        return cls(
            date=date.fromisoformat(data["date"]),
            code=int(data["code"]),
            description=data.get("description", ""),
        )


class RemoteFormChannel(Protocol):
    """Operations the sync engine needs from the remote system.

    Calls are blocking and must not be issued concurrently. Failures are
    reported by raising (SubmissionError where the channel can tell).
    """

    def open(self) -> None:
        """Start the remote session (log in, open the browser...)."""
        ...

    def close(self) -> None:
        """Release the remote session."""
        ...

    def list_existing_services(self, work_order_number: str) -> list[ExistingService]:
        ...

    def submit_service(self, work_order_number: str, entry: StackableEntry) -> None:
        ...

    def verify_service_present(self, work_order_number: str, entry: StackableEntry) -> bool:
        ...

    def close_work_order(self, work_order_number: str) -> None:
        ...

    def is_closed(self, work_order_number: str) -> bool:
        ...
