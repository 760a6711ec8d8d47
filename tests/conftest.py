"""Shared fixtures for wosync tests."""

import sqlite3
from datetime import date

import pytest
from prefect.testing.utilities import prefect_test_harness

from wosync.channel.base import ExistingService
from wosync.lib.codes import CodeResolver, CodeTable, VerbCode
from wosync.lib.errors import SubmissionError
from wosync.lib.workorders import WorkOrderRecord


@pytest.fixture(autouse=True, scope="session")
def prefect_harness():
    """Run channel tasks against a throwaway Prefect backend."""
    with prefect_test_harness():
        yield


class FakeChannel:
    """In-memory remote system that records every call.

    Failures are injected per operation with the fail_* attributes:
    fail_submit holds timestamps or (timestamp, verb code) pairs whose
    submit always raises,
    flaky_submit counts how many times submit raises before succeeding.
    """

    def __init__(self, existing=None, closed=()):
        self.remote: dict[str, list[ExistingService]] = {k: list(v) for k, v in (existing or {}).items()}
        self.closed: set[str] = set(closed)
        self.calls: list[tuple] = []
        self.opened = False
        self.released = False

        self.fail_list: set[str] = set()
        self.fail_submit: set[str] = set()
        self.flaky_submit = 0
        self.drop_on_submit: set[str] = set()
        self.fail_close = False
        self.ignore_close = False

    def calls_to(self, name: str) -> list[tuple]:
        return [c for c in self.calls if c[0] == name]

    def open(self):
        self.calls.append(("open",))
        self.opened = True

    def close(self):
        self.calls.append(("close",))
        self.released = True

    def list_existing_services(self, work_order_number):
        self.calls.append(("list_existing_services", work_order_number))
        if work_order_number in self.fail_list:
            raise ConnectionError("listing page did not load")
        return list(self.remote.get(work_order_number, []))

    def submit_service(self, work_order_number, entry):
        self.calls.append(("submit_service", work_order_number, entry.timestamp))
        if entry.timestamp in self.fail_submit or (entry.timestamp, entry.verb_code) in self.fail_submit:
            raise SubmissionError("form submit timed out")
        if self.flaky_submit:
            self.flaky_submit -= 1
            raise ConnectionError("transient submit error")
        if entry.timestamp in self.drop_on_submit:
            return
        self.remote.setdefault(work_order_number, []).append(
            ExistingService(date.fromisoformat(entry.date), entry.verb_code, entry.notes)
        )

    def verify_service_present(self, work_order_number, entry):
        self.calls.append(("verify_service_present", work_order_number, entry.timestamp))
        return any(
            s.code == entry.verb_code and s.date == date.fromisoformat(entry.date)
            for s in self.remote.get(work_order_number, [])
        )

    def close_work_order(self, work_order_number):
        self.calls.append(("close_work_order", work_order_number))
        if self.fail_close:
            raise ConnectionError("close button missing")
        if not self.ignore_close:
            self.closed.add(work_order_number)

    def is_closed(self, work_order_number):
        self.calls.append(("is_closed", work_order_number))
        return work_order_number in self.closed


class FakeWorkOrders:
    """WorkOrderLookup over a dict."""

    def __init__(self, records=None):
        self.records = records or {}

    def get_work_order(self, work_order_number):
        return self.records.get(work_order_number)


@pytest.fixture
def code_table():
    return CodeTable(
        verbs={
            "Inspect": VerbCode(12, False),
            "Repair": VerbCode(30, True),
            "Travel": VerbCode(5, False),
            "Close": VerbCode(99, False),
        },
        nouns={"Pump": 401, "Valve": 402},
    )


@pytest.fixture
def resolver(code_table):
    return CodeResolver(table=code_table)


@pytest.fixture
def workorders():
    return FakeWorkOrders({
        "1234567": WorkOrderRecord("1234567", "20240001", True),
        "7654321": WorkOrderRecord("7654321", None, True),
    })


@pytest.fixture
def wo_database(tmp_path):
    """A local work order store with a WOs table."""
    db_path = tmp_path / "workorders.db"
    conn = sqlite3.connect(db_path)
    conn.execute("CREATE TABLE WOs (workOrderNumber TEXT PRIMARY KEY, controlNumber TEXT, open INTEGER)")
    conn.executemany(
        "INSERT INTO WOs VALUES (?, ?, ?)",
        [("1234567", "20240001", 1), ("2222222", None, 0), ("3333333", "bogus", 1)],
    )
    conn.commit()
    conn.close()
    return db_path
