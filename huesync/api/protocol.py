import logging
import socket
from typing import Any, Optional

from ..io import HueClient
from .models import ResourceRef
from .types import ResourceKind, Const
from ..exceptions import HueResponseError

"""
===================================================================================
This module implements the bridge resource API using huesync.io.
===================================================================================
"""

class HueProtocol:

    # Resource paths, relative to /api/<username>
    PATH: dict[str, str] = {
        "ALL": "/",                                 # Full resource tree in one call
        "CONFIG": "/config",                        # Bridge configuration
        "LIGHTS": "/lights",                        # All lights
        "GROUPS": "/groups",                        # All groups (excluding group 0)
        "GROUP0": "/groups/0",                      # The "all lights" group
        "SENSORS": "/sensors",                      # All sensors
        "SCHEDULES": "/schedules",                  # All schedules
        "RULES": "/rules",                          # All rules
    }

    def __init__(self,
                 client: HueClient,
                 logger: Optional[logging.Logger] = None):
        self.client = client
        self.logger = logger or logging.getLogger(__name__)

    @property
    def username(self) -> Optional[str]:
        return self.client.username

    @username.setter
    def username(self, value: Optional[str]) -> None:
        self.client.username = value

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()

    async def aclose(self):
        await self.client.close()

    # ============================
    # Bridge
    # ============================

    async def get_config(self) -> dict:
        """Bridge configuration. Without a username the bridge returns the public subset."""
        return expect(await self.client.send("GET", self.PATH["CONFIG"]), dict, self.PATH["CONFIG"])

    async def put_config(self, body: dict) -> list:
        return expect(await self.client.send("PUT", self.PATH["CONFIG"], body), list, self.PATH["CONFIG"])

    async def get_all(self) -> dict:
        return expect(await self.client.send("GET", self.PATH["ALL"]), dict, self.PATH["ALL"])

    async def create_user(self, devicetype: Optional[str] = None) -> str:
        """
        Ask the bridge for a new username.

        Raises HueAuthorizationPending until the link button has been pressed.
        """
        if devicetype is None:
            devicetype = f"{Const.DEVICETYPE_PREFIX}{socket.gethostname().split('.')[0]}"
        devicetype = devicetype[:Const.DEVICETYPE_MAX_LENGTH]
        response = await self.client.send("POST", "/", {"devicetype": devicetype}, anonymous=True)
        try:
            return response[0]["success"]["username"]
        except (IndexError, KeyError, TypeError) as e:
            raise HueResponseError(f"unexpected response to user creation: {response!r}") from e

    # ============================
    # Resource collections
    # ============================

    async def get_lights(self) -> dict:
        return expect(await self.client.send("GET", self.PATH["LIGHTS"]), dict, self.PATH["LIGHTS"])

    async def get_groups(self) -> dict:
        return expect(await self.client.send("GET", self.PATH["GROUPS"]), dict, self.PATH["GROUPS"])

    async def get_group(self, index: str | int) -> dict:
        path = ResourceRef(ResourceKind.GROUP, index).path
        return expect(await self.client.send("GET", path), dict, path)

    async def get_sensors(self) -> dict:
        return expect(await self.client.send("GET", self.PATH["SENSORS"]), dict, self.PATH["SENSORS"])

    async def get_schedules(self) -> dict:
        return expect(await self.client.send("GET", self.PATH["SCHEDULES"]), dict, self.PATH["SCHEDULES"])

    async def get_rules(self) -> dict:
        return expect(await self.client.send("GET", self.PATH["RULES"]), dict, self.PATH["RULES"])

    # ============================
    # Resource writes
    # ============================

    async def put_resource(self, path: str, body: dict) -> list:
        return expect(await self.client.send("PUT", path, body), list, path)

    async def put_light_state(self, index: str | int, body: dict) -> list:
        return await self.put_resource(ResourceRef(ResourceKind.LIGHT, index).state_path, body)

    async def put_group_action(self, index: str | int, body: dict) -> list:
        return await self.put_resource(ResourceRef(ResourceKind.GROUP, index).state_path, body)

    async def put_sensor_state(self, index: str | int, body: dict) -> list:
        return await self.put_resource(ResourceRef(ResourceKind.SENSOR, index).state_path, body)

    async def put_sensor_config(self, index: str | int, body: dict) -> list:
        return await self.put_resource(f"{ResourceRef(ResourceKind.SENSOR, index).path}/config", body)

    async def put_schedule(self, index: str | int, body: dict) -> list:
        return await self.put_resource(ResourceRef(ResourceKind.SCHEDULE, index).path, body)

    async def put_rule(self, index: str | int, body: dict) -> list:
        return await self.put_resource(ResourceRef(ResourceKind.RULE, index).path, body)


def expect(body: Any, kind: type, path: str) -> Any:
    """Return the decoded body, or raise HueResponseError when it is not of the expected type"""
    if not isinstance(body, kind):
        raise HueResponseError(f"unexpected response to {path}: {body!r:.200}")
    return body
