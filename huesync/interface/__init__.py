"""
High-level interface models and client.

This module contains models that belong to the interface layer:
- HueControl (main client for high-level usage, one or more bridges)
- HueBridge (one bridge session: connect, authenticate, discover, heartbeat)
- HueLight, HueGroup, HueSensor, HueSchedule, HueRule (mirrored resources)
- WriteCoalescer and Heartbeat (write batching and state reconciliation)
- HostSink (where host characteristic updates are delivered)
"""

from .interface import HueControl
from .bridge import HueBridge
from .resources import HueResource, HueLight, HueGroup
from .sensors import HueSensor, SensorKind, Button
from .schedules import HueSchedule, HueRule
from .coalescer import WriteCoalescer
from .heartbeat import Heartbeat
from .host import HostSink, NullSink, LoggingSink

__all__ = [
    # High-level client
    "HueControl",
    "HueBridge",

    # High-level models
    "HueResource",
    "HueLight",
    "HueGroup",
    "HueSensor",
    "SensorKind",
    "Button",
    "HueSchedule",
    "HueRule",

    # Machinery
    "WriteCoalescer",
    "Heartbeat",

    # Host
    "HostSink",
    "NullSink",
    "LoggingSink",
]
