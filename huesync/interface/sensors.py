import asyncio
import logging
import warnings
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Optional

from ..api.types import ResourceKind, Characteristic, ButtonEvent, Const
from ..api.colour import round_half_up
from ..exceptions import HueStateError, HueUnknownModelWarning
from .host import HostSink
from .resources import HueResource, _MISSING

if TYPE_CHECKING:
    from .bridge import HueBridge

"""
===================================================================================
Sensors. Every supported bridge sensor type maps to one SensorKind; the kind's
SensorBehaviour says which state field carries the reading and how it is shown
to the host.
===================================================================================
"""


class SensorKind(Enum):
    TAP_SWITCH = "tap_switch"
    DIMMER_SWITCH = "dimmer_switch"
    PRESENCE = "presence"
    TEMPERATURE = "temperature"
    LIGHT_LEVEL = "light_level"
    DAYLIGHT = "daylight"
    OPEN_CLOSE = "open_close"
    OCCUPANCY = "occupancy"
    HUMIDITY = "humidity"
    GENERIC_FLAG = "generic_flag"
    GENERIC_STATUS = "generic_status"


# Bridge sensor type -> kind
SENSOR_TYPES: dict[str, SensorKind] = {
    "ZGPSwitch": SensorKind.TAP_SWITCH,
    "ZLLSwitch": SensorKind.DIMMER_SWITCH,
    "ZHASwitch": SensorKind.DIMMER_SWITCH,
    "ZLLPresence": SensorKind.PRESENCE,
    "ZHAPresence": SensorKind.PRESENCE,
    "ZLLTemperature": SensorKind.TEMPERATURE,
    "ZHATemperature": SensorKind.TEMPERATURE,
    "CLIPTemperature": SensorKind.TEMPERATURE,
    "ZLLLightLevel": SensorKind.LIGHT_LEVEL,
    "ZHALight": SensorKind.LIGHT_LEVEL,
    "CLIPLightLevel": SensorKind.LIGHT_LEVEL,
    "Daylight": SensorKind.DAYLIGHT,
    "CLIPOpenClose": SensorKind.OPEN_CLOSE,
    "CLIPPresence": SensorKind.OCCUPANCY,
    "Geofence": SensorKind.OCCUPANCY,
    "CLIPHumidity": SensorKind.HUMIDITY,
    "CLIPGenericFlag": SensorKind.GENERIC_FLAG,
    "CLIPGenericStatus": SensorKind.GENERIC_STATUS,
}

# Types whose only known model is this (manufacturer, model)
EXPECTED_MODELS: dict[str, tuple[str, str]] = {
    "ZGPSwitch": ("Philips", "ZGPSWITCH"),
    "ZLLPresence": ("Philips", "SML001"),
    "ZHAPresence": ("Philips", "SML001"),
    "ZLLTemperature": ("Philips", "SML001"),
    "ZHATemperature": ("Philips", "SML001"),
    "ZLLLightLevel": ("Philips", "SML001"),
    "ZHALight": ("Philips", "SML001"),
    "Daylight": ("Philips", "PHDL00"),
}


# ============================
# Value transforms
# ============================

def light_level(v: Optional[int]) -> float:
    """Bridge lightlevel (10000 * log10(lux) + 1) to lux"""
    lux = 10 ** ((v - 1) / 10000) if v else Const.MIN_LIGHT_LEVEL
    lux = round_half_up(lux * 10000) / 10000
    return min(Const.MAX_LIGHT_LEVEL, max(Const.MIN_LIGHT_LEVEL, lux))

def temperature(v: Optional[int]) -> float:
    """Centidegrees to degrees, one decimal"""
    return round_half_up(v / 10) / 10 if v else 0

def humidity(v: Optional[int]) -> int:
    return round_half_up(v / 100) if v else 0

def contact_state(v: Optional[bool]) -> int:
    # CLIPOpenClose "open" maps to 0, closed to 1
    return 0 if v else 1

def daylight_level(v: Optional[bool]) -> float:
    return Const.MAX_LIGHT_LEVEL if v else Const.MIN_LIGHT_LEVEL

def status_value(v: Optional[int]) -> int:
    return min(255, max(0, v or 0))

def tap_button(v: Optional[int]) -> Optional[int]:
    return {34: 1, 16: 2, 17: 3, 18: 4}.get(v)

def tap_action(value: Optional[int], old_value: Optional[int]) -> Optional[ButtonEvent]:
    return ButtonEvent.SINGLE_PRESS

def switch_button(v: Optional[int]) -> Optional[int]:
    return v // 1000 if v else None

def switch_action(value: int, old_value: Optional[int]) -> Optional[ButtonEvent]:
    """
    One host event per press/hold/release series.

    The bridge is polled, so not every buttonevent is seen: a press (x000) waits for
    the hold or release, a short release (x002) is a single press, and the first
    hold (x001) or long release (x003) of a series is a long press.
    """
    button, event = divmod(value, 1000)
    match event:
        case 0:
            return None
        case 2:
            return ButtonEvent.SINGLE_PRESS
        case 1 | 3:
            if old_value is not None:
                old_button, old_event = divmod(old_value, 1000)
                if button == old_button and old_event == 1:
                    return None
            return ButtonEvent.LONG_PRESS
        case _:
            return None


@dataclass(frozen=True)
class SensorBehaviour:
    key: str
    characteristic: Characteristic
    name: str
    host_value: Callable[[Any], Any]
    bridge_value: Optional[Callable[[Any], Any]] = None
    action: Optional[Callable[[Any, Any], Optional[ButtonEvent]]] = None
    unit: str = ""


BEHAVIOURS: dict[SensorKind, SensorBehaviour] = {
    SensorKind.TAP_SWITCH: SensorBehaviour("buttonevent", Characteristic.PROGRAMMABLE_SWITCH_EVENT, "button", tap_button, action=tap_action),
    SensorKind.DIMMER_SWITCH: SensorBehaviour("buttonevent", Characteristic.PROGRAMMABLE_SWITCH_EVENT, "button", switch_button, action=switch_action),
    SensorKind.PRESENCE: SensorBehaviour("presence", Characteristic.MOTION_DETECTED, "motion", bool),
    SensorKind.TEMPERATURE: SensorBehaviour("temperature", Characteristic.CURRENT_TEMPERATURE, "temperature", temperature, unit="˚C"),
    SensorKind.LIGHT_LEVEL: SensorBehaviour("lightlevel", Characteristic.CURRENT_AMBIENT_LIGHT_LEVEL, "light level", light_level, unit=" lux"),
    SensorKind.DAYLIGHT: SensorBehaviour("daylight", Characteristic.CURRENT_AMBIENT_LIGHT_LEVEL, "light level", daylight_level, unit=" lux"),
    SensorKind.OPEN_CLOSE: SensorBehaviour("open", Characteristic.CONTACT_SENSOR_STATE, "contact", contact_state),
    SensorKind.OCCUPANCY: SensorBehaviour("presence", Characteristic.OCCUPANCY_DETECTED, "occupancy", bool),
    SensorKind.HUMIDITY: SensorBehaviour("humidity", Characteristic.CURRENT_RELATIVE_HUMIDITY, "humidity", humidity, unit="%"),
    SensorKind.GENERIC_FLAG: SensorBehaviour("flag", Characteristic.ON, "power", bool, bridge_value=bool),
    SensorKind.GENERIC_STATUS: SensorBehaviour("status", Characteristic.STATUS, "status", status_value, bridge_value=int),
}


@dataclass(frozen=True)
class Button:
    index: int
    name: str
    long_press: bool = False


def button_layout(obj: dict) -> Optional[dict[int, Button]]:
    """Buttons of a known switch model, or None for an unknown switch"""
    manufacturer = obj.get("manufacturername")
    model = obj.get("modelid")
    match obj.get("type"), manufacturer, model:
        case "ZGPSwitch", "Philips", "ZGPSWITCH":
            names = [("1", False), ("2", False), ("3", False), ("4", False)]
        case "ZLLSwitch" | "ZHASwitch", "Philips", "RWL020" | "RWL021":
            names = [("On", True), ("Dim Up", True), ("Dim Down", True), ("Off", True)]
        case "ZLLSwitch" | "ZHASwitch", "IKEA of Sweden", "TRADFRI remote control":
            names = [("On/Off", False), ("Dim Up", True), ("Dim Down", True), ("Previous", False), ("Next", False)]
        case _:
            return None
    return {i: Button(i, name, long_press) for i, (name, long_press) in enumerate(names, start=1)}


def sensor_kind(obj: dict) -> Optional[SensorKind]:
    """Kind of a raw sensor object, or None when it cannot be mirrored"""
    kind = SENSOR_TYPES.get(obj.get("type", ""))
    if kind in (SensorKind.TAP_SWITCH, SensorKind.DIMMER_SWITCH) and button_layout(obj) is None:
        return None
    return kind


class HueSensor(HueResource):
    kind = ResourceKind.SENSOR

    def __init__(self,
                 bridge: "HueBridge",
                 index: str | int,
                 obj: dict,
                 sink: Optional[HostSink] = None,
                 logger: Optional[logging.Logger] = None):
        super().__init__(bridge, index, obj, sink=sink, logger=logger)
        sensor_type = self.obj.get("type", "")
        kind = sensor_kind(self.obj)
        if kind is None:
            raise HueStateError(f"{self.ref.path}: unsupported sensor type {sensor_type!r}")
        self.sensor_kind: SensorKind = kind
        self.behaviour: SensorBehaviour = BEHAVIOURS[kind]
        self.buttons: Optional[dict[int, Button]] = button_layout(self.obj) if self.behaviour.action else None

        if sensor_type.startswith('Z') or sensor_type == "Daylight":
            self.manufacturer = self.obj.get("manufacturername", "")
            self.model = self.obj.get("modelid", "")
        else:
            self.manufacturer = "Philips"
            self.model = sensor_type
        uniqueid = self.obj.get("uniqueid") or ""
        if sensor_type.startswith('Z') and uniqueid:
            self.serial = uniqueid.split('-')[0]
        else:
            self.serial = f"{bridge.identity.id if bridge.identity else ''}{self.ref.path}"

        expected = EXPECTED_MODELS.get(sensor_type)
        if expected and (self.obj.get("manufacturername"), self.obj.get("modelid")) != expected:
            message = f"{self.ref.path}: unknown {sensor_type} sensor {self.obj.get('manufacturername')!r} {self.obj.get('modelid')!r}"
            self.logger.warning(message)
            warnings.warn(HueUnknownModelWarning(message), stacklevel=2)

        self.status_max = 255
        if self.sensor_kind == SensorKind.GENERIC_STATUS and self.obj.get("modelid") == "PHCLGS":
            try:
                swversion = int(self.obj.get("swversion", ""))
            except ValueError:
                swversion = 0
            if 0 < swversion <= 255:
                self.status_max = swversion

        # Minutes a falling reading is held back from the host
        self.duration: float = 0
        self._hold_task: Optional[asyncio.Task] = None
        self.view = self.compute_view()

    @property
    def state(self) -> dict:
        return self.obj.get("state") or {}

    @property
    def config(self) -> dict:
        return self.obj.get("config") or {}

    @property
    def value(self) -> Any:
        return self.state.get(self.behaviour.key)

    def compute_view(self) -> dict[Characteristic, Any]:
        state, config = self.state, self.config
        view: dict[Characteristic, Any] = {}
        if self.buttons is None:
            value = self.behaviour.host_value(state.get(self.behaviour.key))
            if self.sensor_kind == SensorKind.GENERIC_STATUS:
                value = min(value, self.status_max)
            view[self.behaviour.characteristic] = value
        if "dark" in state:
            view[Characteristic.DARK] = bool(state["dark"])
        if "daylight" in state:
            view[Characteristic.DAYLIGHT] = bool(state["daylight"])
        lastupdated = state.get("lastupdated")
        view[Characteristic.LAST_UPDATED] = "n/a" if lastupdated in (None, "none") else lastupdated.replace('T', ' ')
        enabled = bool(config.get("on", True))
        view[Characteristic.ENABLED] = enabled
        view[Characteristic.STATUS_ACTIVE] = enabled
        if "reachable" in config:
            view[Characteristic.STATUS_FAULT] = not config["reachable"]
        if "sensitivity" in config:
            view[Characteristic.SENSITIVITY] = config["sensitivity"]
            view[Characteristic.DURATION] = self.duration
        if "battery" in config:
            battery = config["battery"] if config["battery"] is not None else 100
            view[Characteristic.BATTERY_LEVEL] = battery
            view[Characteristic.STATUS_LOW_BATTERY] = battery <= self.bridge.config.low_battery
        return view

    # ============================
    # Bridge events
    # ============================

    def heartbeat(self, obj: dict) -> bool:
        old_state = dict(self.state)
        if not super().heartbeat(obj):
            return False
        if self.buttons is not None:
            self._button_event(old_state, self.state)
        return True

    def _button_event(self, old: dict, new: dict) -> None:
        if new.get("lastupdated") == old.get("lastupdated"):
            return
        value = new.get(self.behaviour.key)
        if value is None:
            return
        self.logger.debug(f"{self.name}: sensor buttonevent {value} on {new.get('lastupdated')}")
        button = self.behaviour.host_value(value)
        action = self.behaviour.action(value, old.get(self.behaviour.key))
        if button in self.buttons and action is not None:
            self.logger.info(f"{self.name} {self.buttons[button].name}: host button {action.name.lower().replace('_', ' ')}")
            self.sink.update(self, Characteristic.PROGRAMMABLE_SWITCH_EVENT, action, index=button)

    def publish(self, old: dict[Characteristic, Any], new: dict[Characteristic, Any]) -> None:
        characteristic = self.behaviour.characteristic
        previous = old.get(characteristic, _MISSING)
        if self.buttons is None and previous is not _MISSING and new.get(characteristic) != previous:
            self._cancel_hold()
            if self.duration > 0 and not new[characteristic]:
                self.logger.debug(f"{self.name}: keep host {self.behaviour.name} on {previous}{self.behaviour.unit} for {self.duration} min")
                self._hold_task = self.create_task(self._hold(characteristic, new[characteristic]))
                super().publish(old, {k: v for k, v in new.items() if k != characteristic})
                return
        super().publish(old, new)

    async def _hold(self, characteristic: Characteristic, value: Any) -> None:
        await asyncio.sleep(self.hold_seconds)
        self._hold_task = None
        self.logger.info(f"{self.name}: set host {self.behaviour.name} to {value}{self.behaviour.unit}, {self.duration} min after last update")
        self.sink.update(self, characteristic, value)

    def _cancel_hold(self) -> None:
        if self._hold_task is not None:
            self._hold_task.cancel()
            self._hold_task = None

    def put_state(self, body: dict) -> Awaitable[list]:
        return self.bridge.protocol.put_sensor_state(self.ref.index, body)

    def put_config(self, body: dict) -> Awaitable[list]:
        return self.bridge.protocol.put_sensor_config(self.ref.index, body)

    # ============================
    # Host commands
    # ============================

    async def set_value(self, value: Any) -> None:
        if self.behaviour.bridge_value is None:
            raise HueStateError(f"{self}: {self.behaviour.name} is read-only")
        self.logger.info(f"{self.name}: host {self.behaviour.name} changed from {self.view.get(self.behaviour.characteristic)} to {value}")
        bridge_value = self.behaviour.bridge_value(value)
        await self.write(self.put_state, {self.behaviour.key: bridge_value})
        self.obj.setdefault("state", {})[self.behaviour.key] = bridge_value
        self.refresh()

    async def set_enabled(self, enabled: bool) -> None:
        enabled = bool(enabled)
        self.logger.info(f"{self.name}: host enabled changed from {self.view.get(Characteristic.ENABLED)} to {enabled}")
        await self.write(self.put_config, {"on": enabled})
        self.obj.setdefault("config", {})["on"] = enabled
        self.refresh()

    async def set_sensitivity(self, sensitivity: int) -> None:
        self.logger.info(f"{self.name}: host sensitivity changed from {self.view.get(Characteristic.SENSITIVITY)} to {sensitivity}")
        await self.write(self.put_config, {"sensitivity": sensitivity})
        self.obj.setdefault("config", {})["sensitivity"] = sensitivity
        self.refresh()

    @property
    def hold_seconds(self) -> float:
        return self.duration * 60

    def set_duration(self, minutes: float) -> None:
        """Hold a falling reading back from the host for this many minutes; local only"""
        if minutes < 0:
            raise ValueError(f"duration must not be negative, got {minutes}")
        self.logger.info(f"{self.name}: host duration changed from {self.duration} to {minutes} min")
        self.duration = minutes
        self.refresh()

    async def identify(self) -> None:
        self.logger.info(f"{self.name}: identify")
        if "alert" not in self.config:
            return
        await self.write(self.put_config, {"alert": "select"})

    def close(self) -> None:
        self._cancel_hold()
        super().close()
