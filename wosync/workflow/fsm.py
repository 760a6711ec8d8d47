"""Per-entry push state machine using the transitions library.

Every staged service moves through:

    pending -> duplicate_check -> skipped_duplicate
                               -> submitting -> verifying -> pushed
                                             -> failed    -> failed

skipped_duplicate and pushed set the entry's pushed flag. failed leaves it
unset so the entry is retried on a later run.

Usage:
    fsm = EntryFSM(entry, work_order_number="1234567")
    fsm.check_duplicates()
    fsm.start_submit()
    fsm.submitted()
    fsm.confirm()
"""

import logging

from transitions import Machine

from wosync.lib.stack import StackableEntry

logger = logging.getLogger(__name__)


STATES = [
    "pending",
    "duplicate_check",
    "skipped_duplicate",
    "submitting",
    "verifying",
    "pushed",
    "failed",
]

# States that mean the remote side has the service
DONE_STATES = {"skipped_duplicate", "pushed"}

TRANSITIONS = [
    {"trigger": "check_duplicates", "source": "pending", "dest": "duplicate_check"},

    # Duplicate check outcome
    {"trigger": "mark_duplicate", "source": "duplicate_check", "dest": "skipped_duplicate"},
    {"trigger": "start_submit", "source": "duplicate_check", "dest": "submitting"},

    # Submission and verification
    {"trigger": "submitted", "source": "submitting", "dest": "verifying"},
    {"trigger": "confirm", "source": "verifying", "dest": "pushed"},

    # Any non-terminal step after pending can fail
    {"trigger": "fail", "source": ["duplicate_check", "submitting", "verifying"], "dest": "failed"},
]


class EntryFSM:
    """State machine for one staged service during a push run.

    Wraps the transitions library:
    - Starts in pending if the entry isn't pushed yet
    - Flips entry.pushed on reaching pushed or skipped_duplicate
    - Keeps the failure reason passed to fail(reason=...)
    """

    def __init__(self, entry: StackableEntry, work_order_number: str = ""):
        self.entry = entry
        self.work_order_number = work_order_number
        self.reason: str | None = None

        initial = "pushed" if entry.pushed else "pending"

        self.machine = Machine(
            model=self,
            states=STATES,
            transitions=TRANSITIONS,
            initial=initial,
            auto_transitions=False,
            send_event=True,
            after_state_change="on_state_change",
        )

    @property
    def label(self) -> str:
        return f"{self.work_order_number} {self.entry.timestamp} verb {self.entry.verb_code}"

    def on_state_change(self, event) -> None:
        """Callback after any transition: update the entry and log."""
        from_state = event.transition.source
        to_state = event.transition.dest
        trigger = event.event.name

        if to_state == "failed":
            self.reason = event.kwargs.get("reason")

        if to_state in DONE_STATES:
            self.entry.pushed = True

        logger.info(
            f"[FSM] {self.label}: {from_state} -> {to_state} ({trigger})"
            + (f": {self.reason}" if to_state == "failed" and self.reason else "")
        )

    @property
    def is_done(self) -> bool:
        return self.state in DONE_STATES
