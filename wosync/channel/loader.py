"""Load a channel implementation from a "module:callable" path."""

import importlib
from typing import Any

from wosync.lib.errors import WosyncError

from .base import RemoteFormChannel


class ChannelLoadError(WosyncError):
    """Channel factory could not be imported or called."""
    pass


def load_channel_factory(spec: str):
    """Import the callable named by "package.module:callable"."""
    module_name, sep, attr = spec.partition(":")
    if not sep or not module_name or not attr:
        raise ChannelLoadError(f"Channel factory must look like 'module:callable', got '{spec}'")

    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise ChannelLoadError(f"Cannot import channel module '{module_name}': {e}") from e

    factory = getattr(module, attr, None)
    if factory is None or not callable(factory):
        raise ChannelLoadError(f"'{attr}' in {module_name} is not callable")
    return factory


def create_channel(spec: str, config: Any) -> RemoteFormChannel:
    """Create a channel by calling the configured factory with the Config."""
    factory = load_channel_factory(spec)
    try:
        return factory(config)
    except Exception as e:
        raise ChannelLoadError(f"Channel factory '{spec}' failed: {e}") from e
