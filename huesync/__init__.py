"""
huesync Python Library

Mirrors the lights, groups, sensors, schedules and rules of one or more Hue
compatible bridges into a host (an accessory framework, an MQTT broker, a script).

This library provides three distinct layers of abstraction:

1. **huesync.io**: Wire-level client (HTTP, concurrency gate, error classification)
2. **huesync.api**: Bridge API calls using huesync.io, plus colour math and device capabilities
3. **huesync.interface**: Pythonic resource objects kept in sync by a heartbeat

Example usage:
    import huesync

    config = huesync.HueConfig.load("config.yaml")
    async with huesync.HueControl.from_config(config, sink=huesync.LoggingSink()) as hue:
        await hue.start()
        for light in hue.get_lights():
            await light.set_brightness(50)
"""

# High-level interface (recommended for most users)
from .interface import HueControl, HueBridge

# High-level models
from .interface import (HueResource, HueLight, HueGroup, HueSensor, SensorKind, Button,
                        HueSchedule, HueRule, WriteCoalescer, Heartbeat,
                        HostSink, NullSink, LoggingSink)

# API-level models
from .api import HueProtocol, BridgeIdentity, ResourceRef, Gamut, Capability

# Low-level models
from .io import HueClient, Request

# Shared types and exceptions
from .api.types import ResourceKind, SessionState, WriteState, Characteristic, ButtonEvent, HueErrorType, Const
from .exceptions import (HueError, HueTransportError, HueHTTPStatusError, HueResourceError,
                         HueAuthorizationPending, HueResponseError, HueConfigurationError, HueStateError,
                         HueUnknownModelWarning)

# Configuration
from .config import HueConfig, CredentialStore, MemoryCredentialStore, YamlCredentialStore

# Utilities
from .utils import run_with_keyboard_interrupt, setup_logging

__version__ = "0.1.0"

__all__ = [
    # High-level interface (recommended)
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
    "WriteCoalescer",
    "Heartbeat",
    "HostSink",
    "NullSink",
    "LoggingSink",

    # API-level models (for advanced users)
    "HueProtocol",
    "BridgeIdentity",
    "ResourceRef",
    "Gamut",
    "Capability",

    # Low-level models (for advanced users)
    "HueClient",
    "Request",

    # Exceptions
    "HueError",
    "HueTransportError",
    "HueHTTPStatusError",
    "HueResourceError",
    "HueAuthorizationPending",
    "HueResponseError",
    "HueConfigurationError",
    "HueStateError",
    "HueUnknownModelWarning",

    # Types and enums
    "ResourceKind",
    "SessionState",
    "WriteState",
    "Characteristic",
    "ButtonEvent",
    "HueErrorType",
    "Const",

    # Configuration
    "HueConfig",
    "CredentialStore",
    "MemoryCredentialStore",
    "YamlCredentialStore",

    # Utilities
    "run_with_keyboard_interrupt",
    "setup_logging",
]
