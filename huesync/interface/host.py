"""
Host characteristic sink.

The host (an accessory framework, an MQTT bridge, a test) receives every
HostView change through a sink passed to the bridge and its resources.
"""

import logging
from typing import Any, Optional, Protocol, runtime_checkable

from ..api.types import Characteristic


@runtime_checkable
class HostSink(Protocol):
    def update(self, resource: Any, characteristic: Characteristic, value: Any, index: Optional[int] = None) -> None:
        """Push one characteristic value to the host. Must not block."""
        ...


class NullSink:
    """Discards updates"""
    def update(self, resource: Any, characteristic: Characteristic, value: Any, index: Optional[int] = None) -> None:
        pass


class LoggingSink:
    """Logs updates, for scripts without a real host"""
    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)

    def update(self, resource: Any, characteristic: Characteristic, value: Any, index: Optional[int] = None) -> None:
        suffix = f" [{index}]" if index is not None else ""
        self.logger.info(f"{resource}: {characteristic.value}{suffix} = {value!r}")
