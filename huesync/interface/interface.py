import asyncio
import logging
from typing import Optional

import aiohttp

from ..config import HueConfig, CredentialStore, MemoryCredentialStore
from .bridge import HueBridge
from .host import HostSink, NullSink
from .resources import HueLight, HueGroup
from .sensors import HueSensor


class HueControl:
    def __init__(self,
                 config: HueConfig,
                 sink: Optional[HostSink] = None,
                 credentials: Optional[CredentialStore] = None,
                 session: Optional[aiohttp.ClientSession] = None,
                 print_traffic: bool = False,
                 logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)
        self.config = config
        self.sink: HostSink = sink or NullSink()
        self.credentials: CredentialStore = credentials or MemoryCredentialStore()
        self.session = session
        self.print_traffic = print_traffic
        self.bridges: list[HueBridge] = []

    @classmethod
    def from_config(cls, config: HueConfig, **kwargs) -> "HueControl":
        """A HueControl with one bridge per configured host"""
        control = cls(config, **kwargs)
        for host in config.hosts:
            control.add_bridge(host)
        return control

    # ============================
    # Setup / Start / Stop
    # ============================

    def add_bridge(self, host: str) -> HueBridge:
        bridge = HueBridge(
            host,
            self.config,
            sink=self.sink,
            credentials=self.credentials,
            session=self.session,
            print_traffic=self.print_traffic,
            logger=self.logger,
        )
        self.bridges.append(bridge)
        return bridge

    async def start(self) -> None:
        await asyncio.gather(*(bridge.start() for bridge in self.bridges))

    async def stop(self) -> None:
        for bridge in self.bridges:
            await bridge.close()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.stop()

    # ============================
    # Convenience
    # ============================

    def get_lights(self) -> list[HueLight]:
        return [light for bridge in self.bridges for light in bridge.lights.values()]

    def get_groups(self) -> list[HueGroup]:
        groups = []
        for bridge in self.bridges:
            if bridge.group0 is not None: groups.append(bridge.group0)
            groups.extend(bridge.groups.values())
        return groups

    def get_sensors(self) -> list[HueSensor]:
        return [sensor for bridge in self.bridges for sensor in bridge.sensors.values()]
