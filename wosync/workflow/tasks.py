"""Prefect task wrappers for remote channel operations.

Each channel call is a task so it gets:
- Automatic retry with a fixed delay, scoped to that one call
- Structured logging
- Observability (when connected to Prefect server)

A failed verify never re-runs submit: they are separate tasks. A verify
that returns False is an answer, not an error, and is not retried.
"""

from prefect import task
from prefect.cache_policies import NO_CACHE

from wosync.channel.base import ExistingService, RemoteFormChannel
from wosync.lib.config import DEFAULT_RETRY_ATTEMPTS, DEFAULT_RETRY_DELAY_SECONDS
from wosync.lib.stack import StackableEntry

DEFAULT_RETRIES = DEFAULT_RETRY_ATTEMPTS - 1


@task(
    retries=DEFAULT_RETRIES,
    retry_delay_seconds=DEFAULT_RETRY_DELAY_SECONDS,
    cache_policy=NO_CACHE,
    name="list_existing_services",
    description="List services already on the remote work order",
)
def task_list_existing_services(channel: RemoteFormChannel, work_order_number: str) -> list[ExistingService]:
    return list(channel.list_existing_services(work_order_number))


@task(
    retries=DEFAULT_RETRIES,
    retry_delay_seconds=DEFAULT_RETRY_DELAY_SECONDS,
    cache_policy=NO_CACHE,
    name="submit_service",
    description="Submit one service to the remote work order",
)
def task_submit_service(channel: RemoteFormChannel, work_order_number: str, entry: StackableEntry) -> None:
    channel.submit_service(work_order_number, entry)


@task(
    retries=DEFAULT_RETRIES,
    retry_delay_seconds=DEFAULT_RETRY_DELAY_SECONDS,
    cache_policy=NO_CACHE,
    name="verify_service_present",
    description="Check a submitted service shows up remotely",
)
def task_verify_service_present(channel: RemoteFormChannel, work_order_number: str, entry: StackableEntry) -> bool:
    return bool(channel.verify_service_present(work_order_number, entry))


@task(
    retries=DEFAULT_RETRIES,
    retry_delay_seconds=DEFAULT_RETRY_DELAY_SECONDS,
    cache_policy=NO_CACHE,
    name="close_work_order",
    description="Close the remote work order",
)
def task_close_work_order(channel: RemoteFormChannel, work_order_number: str) -> None:
    channel.close_work_order(work_order_number)


@task(
    retries=DEFAULT_RETRIES,
    retry_delay_seconds=DEFAULT_RETRY_DELAY_SECONDS,
    cache_policy=NO_CACHE,
    name="is_closed",
    description="Check whether the remote work order is closed",
)
def task_is_closed(channel: RemoteFormChannel, work_order_number: str) -> bool:
    return bool(channel.is_closed(work_order_number))


class ChannelOps:
    """A channel's operations bound to one retry policy.

    attempts counts the first try, so attempts=3 means up to two retries.
    """

    def __init__(
        self,
        channel: RemoteFormChannel,
        attempts: int = DEFAULT_RETRY_ATTEMPTS,
        delay_seconds: float = DEFAULT_RETRY_DELAY_SECONDS,
    ):
        self.channel = channel
        options = {"retries": max(attempts - 1, 0), "retry_delay_seconds": delay_seconds}
        self._list = task_list_existing_services.with_options(**options)
        self._submit = task_submit_service.with_options(**options)
        self._verify = task_verify_service_present.with_options(**options)
        self._close = task_close_work_order.with_options(**options)
        self._is_closed = task_is_closed.with_options(**options)

    def list_existing_services(self, work_order_number: str) -> list[ExistingService]:
        return self._list(self.channel, work_order_number)

    def submit_service(self, work_order_number: str, entry: StackableEntry) -> None:
        self._submit(self.channel, work_order_number, entry)

    def verify_service_present(self, work_order_number: str, entry: StackableEntry) -> bool:
        return self._verify(self.channel, work_order_number, entry)

    def close_work_order(self, work_order_number: str) -> None:
        self._close(self.channel, work_order_number)

    def is_closed(self, work_order_number: str) -> bool:
        return self._is_closed(self.channel, work_order_number)
