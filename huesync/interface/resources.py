import asyncio
import copy
import logging
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Coroutine, Mapping, Optional

from ..api.models import ResourceRef, Capability
from ..api.types import ResourceKind, Characteristic, WriteState
from ..api.capabilities import lookup_capability, merged_state
from ..api.colour import (xy_to_hue_sat, hue_sat_to_xy, bri_to_percent, percent_to_bri,
                          hue_to_degrees, degrees_to_hue, sat_to_percent, percent_to_sat)
from ..exceptions import HueStateError
from .host import HostSink, NullSink

if TYPE_CHECKING:
    from .bridge import HueBridge
    from .coalescer import DesiredState

"""
===================================================================================
Resource model: one object per mirrored bridge resource.

Each resource keeps the last fetched raw object (observed state), derives the
host view from it, and pushes every changed host value to the sink.
===================================================================================
"""

_MISSING = object()


class HueResource:
    kind: ResourceKind

    def __init__(self,
                 bridge: "HueBridge",
                 index: str | int,
                 obj: dict,
                 sink: Optional[HostSink] = None,
                 logger: Optional[logging.Logger] = None):
        self.bridge = bridge
        self.ref = ResourceRef(self.kind, index)
        self.obj: dict = copy.deepcopy(obj)
        self.name: str = obj.get("name", str(self.ref))
        self.sink: HostSink = sink or NullSink()
        self.logger = logger or logging.getLogger(__name__)
        self.write_state = WriteState.IDLE
        self.view: dict[Characteristic, Any] = {}
        self._desired: Optional["DesiredState"] = None
        self._writes_outstanding = 0
        self._write_lock = asyncio.Lock()
        self._tasks: set[asyncio.Task] = set()
        self._closed = False

    def __repr__(self) -> str:
        return f"{type(self).__name__}<{self.bridge.name} {self.ref.path}: {self.name}>"

    @property
    def observed(self) -> Mapping[str, Any]:
        """Read-only view of the last fetched raw object"""
        return MappingProxyType(self.obj)

    @property
    def updating(self) -> bool:
        return self.write_state == WriteState.WRITING

    @property
    def closed(self) -> bool:
        return self._closed

    # ============================
    # Host view
    # ============================

    def compute_view(self) -> dict[Characteristic, Any]:
        raise NotImplementedError

    def refresh(self) -> None:
        """Recompute the host view from the observed state and publish what changed"""
        old = self.view
        self.view = self.compute_view()
        self.publish(old, self.view)

    def publish(self, old: dict[Characteristic, Any], new: dict[Characteristic, Any]) -> None:
        for characteristic, value in new.items():
            previous = old.get(characteristic, _MISSING)
            if previous == value:
                continue
            if previous is _MISSING:
                self.logger.debug(f"{self.name}: set host {characteristic.value} to {value!r}")
            else:
                self.logger.info(f"{self.name}: set host {characteristic.value} from {previous!r} to {value!r}")
            self.sink.update(self, characteristic, value)

    def heartbeat(self, obj: dict) -> bool:
        """Replace the observed state with a fresh snapshot. Returns False when the diff was suppressed."""
        if self._closed:
            return False
        if self.write_state == WriteState.WRITING:
            self.logger.debug(f"{self.name}: write in flight, ignoring heartbeat")
            return False
        self.log_changes(self.obj, obj)
        self.obj = copy.deepcopy(obj)
        self.refresh()
        return True

    def log_changes(self, old: dict, new: dict) -> None:
        for section in ("state", "action", "config"):
            before = old.get(section) or {}
            after = new.get(section) or {}
            for key, value in after.items():
                if before.get(key) != value:
                    self.logger.debug(f"{self.name}: {section} {key} changed from {before.get(key)!r} to {value!r}")

    # ============================
    # Writes
    # ============================

    def begin_write(self) -> None:
        self._writes_outstanding += 1
        self.write_state = WriteState.WRITING

    def end_write(self) -> None:
        self._writes_outstanding = max(0, self._writes_outstanding - 1)
        if self._writes_outstanding == 0:
            self.write_state = WriteState.IDLE

    def put_state(self, body: dict) -> Awaitable[list]:
        raise NotImplementedError

    async def write(self, put: Callable[[dict], Awaitable[list]], body: dict) -> list:
        """Direct PUT through `put`, holding the resource in WRITING until it completes"""
        if self._closed:
            raise HueStateError(f"{self}: resource is closed")
        self.begin_write()
        try:
            async with self._write_lock:
                return await put(body)
        finally:
            self.end_write()

    # ============================
    # Lifetime
    # ============================

    def create_task(self, coro: Coroutine) -> asyncio.Task:
        """Start a task owned by this resource; it is cancelled by close()"""
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def close(self) -> None:
        self._closed = True
        for task in list(self._tasks):
            task.cancel()
        self._tasks.clear()
        self._desired = None
        self._writes_outstanding = 0
        self.write_state = WriteState.IDLE


class HueLight(HueResource):
    kind = ResourceKind.LIGHT

    def __init__(self,
                 bridge: "HueBridge",
                 index: str | int,
                 obj: dict,
                 sink: Optional[HostSink] = None,
                 logger: Optional[logging.Logger] = None):
        super().__init__(bridge, index, obj, sink=sink, logger=logger)
        self.capability: Capability = lookup_capability(
            self.obj,
            self.kind,
            bridge_id=bridge.identity.id if bridge.identity else "",
            resource_path=self.ref.path,
            wall_switch=bridge.config.wall_switch,
            logger=self.logger,
        )
        # Host-requested hue/saturation not yet confirmed by the bridge
        self._requested: dict[Characteristic, int] = {}
        self.view = self.compute_view()

    @property
    def state(self) -> dict:
        return merged_state(self.obj)

    def compute_view(self) -> dict[Characteristic, Any]:
        state = self.state
        cap = self.capability
        view: dict[Characteristic, Any] = {}
        reachable = state.get("reachable", True)
        view[Characteristic.ON] = bool(state.get("on")) and (reachable or cap.ignore_reachable)
        view[Characteristic.STATUS_FAULT] = not reachable
        self._view_colour(state, view)
        return view

    def _view_colour(self, state: dict, view: dict[Characteristic, Any]) -> None:
        cap = self.capability
        if cap.bri and state.get("bri") is not None:
            view[Characteristic.BRIGHTNESS] = bri_to_percent(state["bri"])
        if cap.ct and state.get("ct") is not None:
            view[Characteristic.COLOR_TEMPERATURE] = min(cap.max_ct, max(cap.min_ct, state["ct"]))
        if cap.xy and state.get("xy") is not None:
            hue, sat = xy_to_hue_sat(state["xy"], cap.gamut)
            view[Characteristic.HUE] = hue
            view[Characteristic.SATURATION] = sat
        elif cap.hs and state.get("hue") is not None:
            view[Characteristic.HUE] = hue_to_degrees(state["hue"])
            view[Characteristic.SATURATION] = sat_to_percent(state.get("sat") or 0)

    def heartbeat(self, obj: dict) -> bool:
        reachable_before = self.state.get("reachable", True)
        changed = super().heartbeat(obj)
        if changed and reachable_before and not self.state.get("reachable", True) and not self.capability.ignore_reachable:
            self.logger.info(f"{self.name}: not reachable, host power forced off")
        return changed

    def apply_write(self, fields: dict) -> None:
        """Copy confirmed write fields into the observed state"""
        state = self.obj.setdefault("state", {})
        for key, value in fields.items():
            if key != "transitiontime":
                state[key] = value

    def put_state(self, body: dict) -> Awaitable[list]:
        return self.bridge.protocol.put_light_state(self.ref.index, body)

    def write_finished(self) -> None:
        if not self.updating:
            self._requested.clear()

    # ============================
    # Host commands
    # ============================

    async def _request(self, field: str, value: Any, **extra: Any) -> bool:
        return await self.bridge.coalescer.request_fields(self, {field: value, **extra})

    async def set_on(self, on: bool) -> bool:
        on = bool(on)
        if on != self.view.get(Characteristic.ON):
            self.logger.info(f"{self.name}: host power changed from {self.view.get(Characteristic.ON)} to {on}")
        if self.capability.no_transition_time and not on:
            return await self._request("on", on, transitiontime=0)
        return await self._request("on", on)

    async def set_brightness(self, percent: int) -> bool:
        self.logger.info(f"{self.name}: host brightness changed from {self.view.get(Characteristic.BRIGHTNESS)}% to {percent}%")
        return await self._request("bri", percent_to_bri(percent))

    async def set_colour_temperature(self, mired: int) -> bool:
        ct = min(self.capability.max_ct, max(self.capability.min_ct, int(mired)))
        self.logger.info(f"{self.name}: host colour temperature changed from {self.view.get(Characteristic.COLOR_TEMPERATURE)} mired to {ct} mired")
        return await self._request("ct", ct)

    async def set_hue(self, degrees: int) -> bool:
        self.logger.info(f"{self.name}: host hue changed from {self.view.get(Characteristic.HUE)}˚ to {degrees}˚")
        self._requested[Characteristic.HUE] = degrees
        if self.capability.xy:
            return await self._request("xy", self._requested_xy())
        return await self._request("hue", degrees_to_hue(degrees))

    async def set_saturation(self, percent: int) -> bool:
        self.logger.info(f"{self.name}: host saturation changed from {self.view.get(Characteristic.SATURATION)}% to {percent}%")
        self._requested[Characteristic.SATURATION] = percent
        if self.capability.xy:
            return await self._request("xy", self._requested_xy())
        return await self._request("sat", percent_to_sat(percent))

    def _requested_xy(self) -> list[float]:
        hue = self._requested.get(Characteristic.HUE, self.view.get(Characteristic.HUE, 0))
        sat = self._requested.get(Characteristic.SATURATION, self.view.get(Characteristic.SATURATION, 0))
        x, y = hue_sat_to_xy(hue, sat, self.capability.gamut)
        return [x, y]

    async def identify(self) -> None:
        self.logger.info(f"{self.name}: identify")
        if self.capability.no_alert:
            return
        await self.write(self.put_state, {"alert": "select"})


class HueGroup(HueLight):
    kind = ResourceKind.GROUP

    def compute_view(self) -> dict[Characteristic, Any]:
        state = self.state
        view: dict[Characteristic, Any] = {
            Characteristic.ON: bool(state.get("all_on")),
            Characteristic.ANY_ON: bool(state.get("any_on")),
        }
        self._view_colour(state, view)
        return view

    def put_state(self, body: dict) -> Awaitable[list]:
        return self.bridge.protocol.put_group_action(self.ref.index, body)

    def apply_write(self, fields: dict) -> None:
        action = self.obj.setdefault("action", {})
        for key, value in fields.items():
            if key != "transitiontime":
                action[key] = value
        if "on" in fields:
            state = self.obj.setdefault("state", {})
            state["any_on"] = fields["on"]
            state["all_on"] = fields["on"]

    async def set_any_on(self, on: bool) -> bool:
        on = bool(on)
        self.logger.info(f"{self.name}: host any on changed from {self.view.get(Characteristic.ANY_ON)} to {on}")
        return await self._request("on", on)
