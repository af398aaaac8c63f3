import asyncio
import logging
from typing import TYPE_CHECKING, Awaitable, Callable, Optional

from ..api.types import Const
from ..exceptions import HueError, HueResponseError
from .resources import HueResource

if TYPE_CHECKING:
    from .bridge import HueBridge

"""
===================================================================================
Heartbeat: periodic reconciliation of the mirror with the bridge.

Every `interval` seconds the counter ticks. On every `heartrate`-th tick a pass
runs its stages in order; a failing stage ends that pass only.

  config -> sensors -> lights -> groups -> group 0 -> schedules -> rules
===================================================================================
"""

Stage = Callable[[], Awaitable[None]]


class Heartbeat:
    def __init__(self,
                 bridge: "HueBridge",
                 interval: float = Const.HEARTBEAT_INTERVAL,
                 heartrate: int = Const.DEFAULT_HEARTRATE,
                 logger: Optional[logging.Logger] = None):
        self.bridge = bridge
        self.interval = interval
        self.counter = 0
        self.passes = 0
        self.logger = logger or logging.getLogger(__name__)
        self._heartrate = 1
        self.heartrate = heartrate
        self._task: Optional[asyncio.Task] = None
        self._pass: Optional[asyncio.Task] = None

    @property
    def heartrate(self) -> int:
        return self._heartrate

    @heartrate.setter
    def heartrate(self, value: int) -> None:
        value = int(value)
        if value < 1:
            raise ValueError(f"heartrate must be at least 1, got {value}")
        self._heartrate = value

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    # ============================
    # Scheduling
    # ============================

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        for task in (self._task, self._pass):
            if task is not None and not task.done():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
        self._task = None
        self._pass = None

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            self.beat()

    def beat(self) -> Optional[asyncio.Task]:
        """Advance one tick. Returns the pass task when this tick starts a pass."""
        self.counter += 1
        if self.counter % self.heartrate != 0:
            return None
        if self._pass is not None and not self._pass.done():
            self.logger.debug(f"{self.bridge.name}: heartbeat {self.counter}: previous pass still running, skipped")
            return None
        self._pass = asyncio.create_task(self.run_pass())
        self._pass.add_done_callback(self._pass_done)
        return self._pass

    def _pass_done(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        e = task.exception()
        if e is not None:
            self.logger.error(f"{self.bridge.name}: heartbeat pass crashed: {type(e).__name__}: {e}")

    # ============================
    # Pass
    # ============================

    def stages(self) -> list[tuple[str, Stage]]:
        config = self.bridge.config
        stages: list[tuple[str, Stage]] = [("config", self.heartbeat_config)]
        if self.bridge.sensors: stages.append(("sensors", self.heartbeat_sensors))
        if self.bridge.lights: stages.append(("lights", self.heartbeat_lights))
        if self.bridge.groups: stages.append(("groups", self.heartbeat_groups))
        if self.bridge.group0 is not None: stages.append(("group0", self.heartbeat_group0))
        if config.schedules and self.bridge.schedules: stages.append(("schedules", self.heartbeat_schedules))
        if config.rules and self.bridge.rules: stages.append(("rules", self.heartbeat_rules))
        return stages

    async def run_pass(self) -> bool:
        """Run every stage in order. Returns False when a stage failed and the pass was abandoned."""
        self.passes += 1
        for name, stage in self.stages():
            try:
                await stage()
            except HueError as e:
                self.logger.error(f"{self.bridge.name}: heartbeat {self.counter}: {name} failed, pass abandoned: {e}")
                return False
        return True

    async def heartbeat_config(self) -> None:
        obj = await self.bridge.protocol.get_config()
        await self.bridge.config_heartbeat(obj)

    async def heartbeat_sensors(self) -> None:
        self._feed(self.bridge.sensors, await self.bridge.protocol.get_sensors())

    async def heartbeat_lights(self) -> None:
        self._feed(self.bridge.lights, await self.bridge.protocol.get_lights())

    async def heartbeat_groups(self) -> None:
        self._feed(self.bridge.groups, await self.bridge.protocol.get_groups())

    async def heartbeat_group0(self) -> None:
        obj = await self.bridge.protocol.get_group(0)
        self.bridge.group0.heartbeat(obj)

    async def heartbeat_schedules(self) -> None:
        self._feed(self.bridge.schedules, await self.bridge.protocol.get_schedules())

    async def heartbeat_rules(self) -> None:
        self._feed(self.bridge.rules, await self.bridge.protocol.get_rules())

    def _feed(self, resources: dict[str, HueResource], objs: dict) -> None:
        for index, obj in (objs or {}).items():
            resource = resources.get(str(index))
            if resource is None:
                continue
            if not isinstance(obj, dict):
                raise HueResponseError(f"unexpected {resource.ref.path} object: {obj!r:.200}")
            resource.heartbeat(obj)
