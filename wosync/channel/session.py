"""Scoped remote session handling."""

import logging
from contextlib import contextmanager
from typing import Iterator

from wosync.lib.errors import WosyncError

from .base import RemoteFormChannel

logger = logging.getLogger(__name__)


class ChannelSessionError(WosyncError):
    """The remote session could not be opened."""
    pass


def _release(channel: RemoteFormChannel) -> None:
    try:
        channel.close()
        logger.info("[SESSION] Remote session closed")
    except Exception as e:
        logger.warning(f"[SESSION] Could not close remote session cleanly: {e}")


@contextmanager
def channel_session(channel: RemoteFormChannel) -> Iterator[RemoteFormChannel]:
    """
    Open the channel, yield it, close it on exit.

    The session is released on every exit path, including a failed open.
    A failure while closing is logged rather than raised so it never hides
    the error that ended the run.

    Raises:
        ChannelSessionError: open() raised
    """
    logger.info("[SESSION] Opening remote session")
    try:
        channel.open()
    except Exception as e:
        logger.error(f"[SESSION] Could not open remote session: {e}")
        _release(channel)
        raise ChannelSessionError(f"Could not open remote session: {e}") from e

    try:
        yield channel
    finally:
        _release(channel)
