import asyncio
import json
import logging
import re
from typing import Any, Iterator, Optional

import aiohttp

from ..api import HueProtocol, BridgeIdentity
from ..api.types import Const, SessionState, Characteristic, ButtonEvent
from ..io import HueClient
from ..config import HueConfig, CredentialStore, MemoryCredentialStore
from ..exceptions import HueAuthorizationPending, HueResponseError, HueStateError
from .coalescer import WriteCoalescer
from .heartbeat import Heartbeat
from .host import HostSink, NullSink
from .resources import HueResource, HueLight, HueGroup
from .schedules import HueSchedule, HueRule
from .sensors import HueSensor, sensor_kind

"""
===================================================================================
One session with one bridge.

  connect()       read the public config, identify the bridge
  authenticate()  UNAUTHENTICATED -> AUTHENTICATING -> READY
  discover()      build the resource model (READY only)
  start()         all of the above, then the heartbeat
===================================================================================
"""

_MISSING = object()


class HueBridge:
    def __init__(self,
                 host: str,
                 config: HueConfig,
                 sink: Optional[HostSink] = None,
                 credentials: Optional[CredentialStore] = None,
                 session: Optional[aiohttp.ClientSession] = None,
                 heartbeat_interval: float = Const.HEARTBEAT_INTERVAL,
                 print_traffic: bool = False,
                 logger: Optional[logging.Logger] = None):
        self.host = host
        self.name = host
        self.config = config
        self.sink: HostSink = sink or NullSink()
        self.credentials: CredentialStore = credentials or MemoryCredentialStore()
        self.logger = logger or logging.getLogger(__name__)
        base_url = host.rstrip('/') if host.startswith(("http://", "https://")) else f"http://{host}/api"
        self.client = HueClient(
            base_url,
            parallel_requests=config.parallel_requests or Const.PARALLEL_REQUESTS,
            timeout=config.timeout,
            wait_time_resend=config.wait_time_resend,
            session=session,
            name=host,
            print_traffic=print_traffic,
            logger=self.logger,
        )
        self.protocol = HueProtocol(self.client, logger=self.logger)
        self.coalescer = WriteCoalescer(
            wait_time_update=config.wait_time_update,
            default_transition_time=config.transition_time,
            logger=self.logger,
        )
        self.heartbeat = Heartbeat(self, interval=heartbeat_interval, heartrate=config.heartrate, logger=self.logger)
        self.touchlink_reset: float = Const.TOUCHLINK_RESET
        self._reset()

    def _reset(self) -> None:
        self.state = SessionState.UNAUTHENTICATED
        self.bridge_id: Optional[str] = None
        self.identity: Optional[BridgeIdentity] = None
        self.obj: dict = {}
        self.model: Optional[str] = None
        self.manufacturer: Optional[str] = None
        self.api_version: Optional[str] = None
        self.linkbutton: bool = self.config.linkbutton
        self.view: dict[Characteristic, Any] = {}
        self.lights: dict[str, HueLight] = {}
        self.groups: dict[str, HueGroup] = {}
        self.group0: Optional[HueGroup] = None
        self.sensors: dict[str, HueSensor] = {}
        self.schedules: dict[str, HueSchedule] = {}
        self.rules: dict[str, HueRule] = {}
        self._touchlink = False
        self._touchlink_task: Optional[asyncio.Task] = None

    def __repr__(self) -> str:
        return f"HueBridge<{self.name}>"

    @property
    def resources(self) -> Iterator[HueResource]:
        yield from self.lights.values()
        yield from self.groups.values()
        if self.group0 is not None:
            yield self.group0
        yield from self.sensors.values()
        yield from self.schedules.values()
        yield from self.rules.values()

    # ============================
    # Setup / Start / Stop
    # ============================

    async def connect(self) -> dict:
        """Read the unauthenticated config and identify the bridge"""
        obj = await self.protocol.get_config()
        self.name = obj.get("name") or self.host
        self.client.name = self.name
        self.bridge_id = obj.get("bridgeid")
        self.api_version = obj.get("apiversion")
        parallel_requests = Const.PARALLEL_REQUESTS
        match obj.get("modelid"):
            case "BSB001" | "BSB002" as model:
                if model == "BSB001":   # round v1 bridge
                    parallel_requests = Const.PARALLEL_REQUESTS_V1
                obj["manufacturername"] = "Philips"
                self._check_api_version(self.api_version)
            case None:
                # deCONZ before v2.04.40 reports no model; key it by mac
                obj["modelid"] = "deCONZ"
                obj["manufacturername"] = "dresden elektronik"
                self.bridge_id = obj.get("mac")
                self.linkbutton = False
            case "deCONZ":
                obj["manufacturername"] = "dresden elektronik"
                self.linkbutton = False
            case _:
                self.logger.error(f"{self.name}: ignoring unknown bridge type {obj.get('modelid')!r}")
        if self.config.parallel_requests is None:
            self.client.parallel_requests = parallel_requests
        if not self.bridge_id:
            raise HueStateError(f"{self.name}: bridge did not report an id")
        self.model = obj["modelid"]
        self.manufacturer = obj.get("manufacturername")
        obj["linkbutton"] = False
        self.obj = obj
        self.refresh()
        self.logger.info(f"{self.name}: {self.model} bridge, api v{self.api_version}")
        return obj

    def _check_api_version(self, version: Optional[str]) -> None:
        try:
            major, minor = (int(v) for v in (version or "").split('.')[:2])
        except ValueError:
            self.logger.warning(f"{self.name}: warning: unparseable api version {version!r}")
            return
        if major != 1 or not Const.MIN_API_MINOR <= minor <= Const.MAX_API_MINOR:
            self.logger.warning(f"{self.name}: warning: api version {version}")

    async def authenticate(self) -> BridgeIdentity:
        """Obtain a username, creating one (link button) if none is stored"""
        if self.state == SessionState.READY:
            return self.identity
        if self.bridge_id is None:
            raise HueStateError(f"{self.name}: connect() before authenticate()")
        username = self.config.users.get(self.bridge_id) or self.credentials.get(self.bridge_id)
        if not username:
            self.state = SessionState.AUTHENTICATING
            try:
                username = await self._create_user()
            except BaseException:
                self.state = SessionState.UNAUTHENTICATED
                raise
            self.credentials.set(self.bridge_id, username)
        self.client.username = username
        self.identity = BridgeIdentity(id=self.bridge_id, base_url=self.client.base_url, api_user=username)
        self.state = SessionState.READY
        return self.identity

    async def _create_user(self) -> str:
        while True:
            try:
                username = await self.protocol.create_user()
            except HueAuthorizationPending:
                self.logger.info(f"{self.name}: press link button on the bridge to create a user")
                await asyncio.sleep(self.config.wait_time_link)
                continue
            self.logger.info(f"{self.name}: created user {username}")
            return username

    async def discover(self) -> None:
        """Build the resource model from the full resource tree"""
        if self.state != SessionState.READY:
            raise HueStateError(f"{self.name}: discover() requires an authenticated session")
        self._close_resources()
        tree = await self.protocol.get_all()
        config = self.config

        if config.lights:
            for index, obj in (tree.get("lights") or {}).items():
                if obj.get("manufacturer") and not obj.get("manufacturername"):
                    obj["manufacturername"] = obj["manufacturer"]
                if config.philips_lights or obj.get("manufacturername") != "Philips":
                    self.logger.debug(f"{self.name}: /lights/{index}: {obj.get('manufacturername')} {obj.get('modelid')} ({obj.get('type')}) \"{obj.get('name')}\"")
                    self.lights[index] = HueLight(self, index, obj, sink=self.sink, logger=self.logger)
                else:
                    self.logger.debug(f"{self.name}: /lights/{index}: ignoring {obj.get('manufacturername')} {obj.get('modelid')} \"{obj.get('name')}\"")
        self.logger.debug(f"{self.name}: {len(self.lights)} lights")

        if config.groups:
            if config.group0:
                obj = await self.protocol.get_group(0)
                self.group0 = HueGroup(self, 0, obj, sink=self.sink, logger=self.logger)
            for index, obj in (tree.get("groups") or {}).items():
                if config.rooms or obj.get("type") != "Room":
                    self.groups[index] = HueGroup(self, index, obj, sink=self.sink, logger=self.logger)
                else:
                    self.logger.debug(f"{self.name}: /groups/{index}: ignoring {obj.get('type')} \"{obj.get('name')}\"")
        self.logger.debug(f"{self.name}: {len(self.groups)} groups")

        if config.sensors:
            for index, obj in (tree.get("sensors") or {}).items():
                sensor_type = obj.get("type", "")
                if config.excludes_sensor(sensor_type):
                    self.logger.debug(f"{self.name}: /sensors/{index}: ignoring {sensor_type} sensor \"{obj.get('name')}\"")
                elif sensor_kind(obj) is None:
                    self.logger.warning(f"{self.name}: /sensors/{index}: warning: ignoring unsupported sensor {sensor_type} {obj.get('manufacturername')!r} {obj.get('modelid')!r}")
                else:
                    self.sensors[index] = HueSensor(self, index, obj, sink=self.sink, logger=self.logger)
        self.logger.debug(f"{self.name}: {len(self.sensors)} sensors")

        if config.schedules:
            for index, obj in (tree.get("schedules") or {}).items():
                self.schedules[index] = HueSchedule(self, index, obj, sink=self.sink, logger=self.logger)
        if config.rules:
            for index, obj in (tree.get("rules") or {}).items():
                self.rules[index] = HueRule(self, index, obj, sink=self.sink, logger=self.logger)
        self.logger.debug(f"{self.name}: {len(self.schedules)} schedules, {len(self.rules)} rules")

    async def start(self) -> None:
        if self.bridge_id is None:
            await self.connect()
        await self.authenticate()
        await self.discover()
        self.heartbeat.start()

    async def close(self) -> None:
        await self.heartbeat.stop()
        self._cancel_touchlink_reset()
        self._close_resources()
        await self.client.close()

    def _close_resources(self) -> None:
        for resource in list(self.resources):
            resource.close()
        self.lights, self.groups, self.sensors = {}, {}, {}
        self.schedules, self.rules = {}, {}
        self.group0 = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    # ============================
    # Bridge host view
    # ============================

    def compute_view(self) -> dict[Characteristic, Any]:
        utc = self.obj.get("UTC") or self.obj.get("utc")
        return {
            Characteristic.HEARTRATE: self.heartbeat.heartrate,
            Characteristic.LAST_UPDATED: utc.replace('T', ' ') if utc else "n/a",
            Characteristic.LINK: bool(self.obj.get("linkbutton")),
            Characteristic.TOUCHLINK: self._touchlink,
        }

    def refresh(self) -> None:
        old = self.view
        self.view = self.compute_view()
        for characteristic, value in self.view.items():
            previous = old.get(characteristic, _MISSING)
            if previous != value:
                if previous is not _MISSING:
                    self.logger.info(f"{self.name}: set host {characteristic.value} from {previous!r} to {value!r}")
                self.sink.update(self, characteristic, value)

    async def config_heartbeat(self, obj: dict) -> None:
        if not isinstance(obj, dict):
            raise HueResponseError(f"{self.name}: unexpected config {obj!r:.200}")
        old_link = self.obj.get("linkbutton")
        self.obj = obj
        if obj.get("linkbutton") != old_link:
            if self.linkbutton and obj.get("linkbutton"):
                # A failed reset leaves the bridge button pressed; the next pass sees it again
                try:
                    await self.protocol.put_config({"linkbutton": False})
                finally:
                    self.obj["linkbutton"] = False
                self.logger.info(f"{self.name}: link button single press")
                self.sink.update(self, Characteristic.PROGRAMMABLE_SWITCH_EVENT, ButtonEvent.SINGLE_PRESS)
            else:
                self.logger.debug(f"{self.name}: bridge linkbutton changed from {old_link} to {obj.get('linkbutton')}")
        self.refresh()

    # ============================
    # Host commands
    # ============================

    def set_heartrate(self, rate: int) -> None:
        self.logger.info(f"{self.name}: host heartrate changed from {self.heartbeat.heartrate} to {rate}")
        self.heartbeat.heartrate = rate
        self.refresh()

    def set_transition_time(self, seconds: float) -> None:
        self.coalescer.set_transition_time(seconds)

    async def set_link(self, link: bool) -> None:
        link = bool(link)
        self.logger.info(f"{self.name}: host link changed from {self.view.get(Characteristic.LINK)} to {link}")
        await self.protocol.put_config({"linkbutton": link})
        self.obj["linkbutton"] = link
        self.refresh()

    async def set_touchlink(self, touchlink: bool) -> None:
        """Start a touchlink scan. The host switch turns itself off after a while."""
        touchlink = bool(touchlink)
        self.logger.info(f"{self.name}: host touchlink changed from {self._touchlink} to {touchlink}")
        if not touchlink:
            self._cancel_touchlink_reset()
            self._touchlink = False
            self.refresh()
            return
        await self.protocol.put_config({"touchlink": True})
        self._touchlink = True
        self.refresh()
        self._cancel_touchlink_reset()
        self._touchlink_task = asyncio.create_task(self._touchlink_reset())

    async def _touchlink_reset(self) -> None:
        await asyncio.sleep(self.touchlink_reset)
        self._touchlink_task = None
        self._touchlink = False
        self.refresh()

    def _cancel_touchlink_reset(self) -> None:
        if self._touchlink_task is not None:
            self._touchlink_task.cancel()
            self._touchlink_task = None

    async def dump(self, path: str) -> str:
        """Write the full resource tree to path as JSON, with addresses and usernames masked"""
        tree = await self.protocol.get_all()
        self.logger.info(f"{self.name}: dumping masked state to {path}")
        text = mask_tree(tree)
        with open(path, "w") as f:
            f.write(text)
        return text


def mask_tree(tree: dict) -> str:
    config = tree.get("config") or {}
    if "bridgeid" in config: config["bridgeid"] = "xxxxxxFFFExxxxxx"
    if "mac" in config: config["mac"] = "xx:xx:xx:xx:xx:xx"
    if "ipaddress" in config: config["ipaddress"] = "xxx.xxx.xxx.xxx"
    if "gateway" in config: config["gateway"] = "xxx.xxx.xxx.xxx"
    if config.get("proxyaddress", "none") != "none":
        config["proxyaddress"] = "xxx.xxx.xxx.xxx"
    text = json.dumps(tree)
    for i, username in enumerate(config.get("whitelist") or {}, start=1):
        mask = ('x' * len(username) + str(i))[-len(username):]
        text = re.sub(re.escape(username), mask, text)
    return text
