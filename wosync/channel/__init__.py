"""Remote channel interface for wosync.

The sync engine talks to the remote work-order system only through a
RemoteFormChannel. Concrete channels live outside this package and are
plugged in with CHANNEL_FACTORY="package.module:callable".
"""

from wosync.channel.base import (
    ExistingService,
    RemoteFormChannel,
)
from wosync.channel.session import ChannelSessionError, channel_session
from wosync.channel.loader import (
    ChannelLoadError,
    create_channel,
    load_channel_factory,
)

__all__ = [
    "ExistingService",
    "RemoteFormChannel",
    "channel_session",
    "ChannelSessionError",
    "ChannelLoadError",
    "create_channel",
    "load_channel_factory",
]
