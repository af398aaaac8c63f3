"""
huesync configuration.

Configuration is read from a YAML file with a `hue` section (or from a plain dict),
validated, and turned into a HueConfig. Bridge usernames are kept in a credential
store keyed by bridge id.

Example config.yaml:

    hue:
      hosts: ["192.0.2.10"]
      lights: true
      groups: true
      sensors: true
      heartrate: 5
"""

import logging
import os
from dataclasses import dataclass, field, fields
from typing import Any, Optional, Protocol, Self

import yaml

from .api.types import Const
from .exceptions import HueConfigurationError


@dataclass
class HueConfig:
    hosts: list[str]
    heartrate: int = Const.DEFAULT_HEARTRATE
    timeout: float = 5.0
    wait_time_resend: float = Const.WAIT_TIME_RESEND
    wait_time_update: float = Const.WAIT_TIME_UPDATE
    wait_time_link: float = Const.WAIT_TIME_LINK
    parallel_requests: Optional[int] = None
    lights: bool = False
    philips_lights: bool = False
    groups: bool = False
    group0: bool = False
    rooms: bool = False
    sensors: bool = False
    exclude_sensor_types: dict[str, bool] = field(default_factory=dict)
    schedules: bool = False
    rules: bool = False
    wall_switch: bool = False
    linkbutton: bool = False
    low_battery: int = Const.LOW_BATTERY
    transition_time: float = Const.DEFAULT_TRANSITION_TIME
    users: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Self:
        if not isinstance(data, dict):
            raise HueConfigurationError("hue config must be a mapping")
        known = {f.name for f in fields(cls)}
        unknown = [k for k in data if k not in known]
        if unknown:
            raise HueConfigurationError(f"Unknown hue config fields: {', '.join(sorted(unknown))}")
        if "hosts" not in data:
            raise HueConfigurationError("Missing hue config field: hosts")
        config = cls(**data)
        config.validate()
        return config

    @classmethod
    def load(cls, path: str, section: str = "hue") -> Self:
        try:
            with open(path) as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise HueConfigurationError(f"Cannot read config file {path}: {e}") from e
        if section:
            if section not in data:
                raise HueConfigurationError(f"Missing required config section: {section}")
            data = data[section]
        return cls.from_dict(data)

    def validate(self) -> None:
        if isinstance(self.hosts, str):
            self.hosts = [self.hosts]
        if not isinstance(self.hosts, list) or not self.hosts:
            raise HueConfigurationError("hosts must be a non-empty list")
        for i, host in enumerate(self.hosts):
            if not isinstance(host, str) or not host:
                raise HueConfigurationError(f"Invalid host in entry {i}: {host!r}")
        if not isinstance(self.heartrate, int) or self.heartrate < 1:
            raise HueConfigurationError(f"heartrate must be a positive integer, got {self.heartrate!r}")
        for name in ("timeout", "wait_time_resend", "wait_time_update", "wait_time_link", "transition_time"):
            value = getattr(self, name)
            if not isinstance(value, (int, float)) or value < 0:
                raise HueConfigurationError(f"{name} must be a non-negative number, got {value!r}")
        if self.parallel_requests is not None and (not isinstance(self.parallel_requests, int) or self.parallel_requests < 1):
            raise HueConfigurationError(f"parallel_requests must be a positive integer, got {self.parallel_requests!r}")
        if not isinstance(self.low_battery, int) or not 0 <= self.low_battery <= 100:
            raise HueConfigurationError(f"low_battery must be between 0 and 100, got {self.low_battery!r}")
        if not isinstance(self.exclude_sensor_types, dict):
            raise HueConfigurationError("exclude_sensor_types must be a mapping of sensor type to bool")
        if not isinstance(self.users, dict):
            raise HueConfigurationError("users must be a mapping of bridge id to username")

    def excludes_sensor(self, sensor_type: str) -> bool:
        """True when a sensor of this type is filtered out (CLIP matches every CLIP* type)"""
        if self.exclude_sensor_types.get(sensor_type):
            return True
        return sensor_type.startswith("CLIP") and bool(self.exclude_sensor_types.get("CLIP"))


# ============================
# Credentials
# ============================

class CredentialStore(Protocol):
    def get(self, bridge_id: str) -> Optional[str]: ...
    def set(self, bridge_id: str, username: str) -> None: ...


class MemoryCredentialStore:
    def __init__(self, users: Optional[dict[str, str]] = None):
        self.users: dict[str, str] = dict(users or {})

    def get(self, bridge_id: str) -> Optional[str]:
        return self.users.get(bridge_id)

    def set(self, bridge_id: str, username: str) -> None:
        self.users[bridge_id] = username


class YamlCredentialStore:
    """Usernames kept in a YAML file, `{bridge_id: username}`"""

    def __init__(self, path: str, logger: Optional[logging.Logger] = None):
        self.path = path
        self.logger = logger or logging.getLogger(__name__)

    def _read(self) -> dict[str, str]:
        if not os.path.exists(self.path):
            return {}
        with open(self.path) as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise HueConfigurationError(f"Credential file {self.path} must contain a mapping")
        return {str(k): str(v) for k, v in data.items()}

    def get(self, bridge_id: str) -> Optional[str]:
        return self._read().get(bridge_id)

    def set(self, bridge_id: str, username: str) -> None:
        users = self._read()
        users[bridge_id] = username
        with open(self.path, "w") as f:
            yaml.safe_dump(users, f, sort_keys=True)
        self.logger.info(f"Stored username for bridge {bridge_id} in {self.path}")
