from typing import Any, Awaitable

from ..api.types import ResourceKind, Characteristic
from .resources import HueResource


def _timestamp(value: Any) -> str:
    if not value or value == "none":
        return "n/a"
    return str(value).replace('T', ' ')


class HueSchedule(HueResource):
    """Passive mirror of a bridge schedule; only its enabled status can be changed"""
    kind = ResourceKind.SCHEDULE

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.view = self.compute_view()

    def compute_view(self) -> dict[Characteristic, Any]:
        return {
            Characteristic.ENABLED: self.obj.get("status") == "enabled",
            Characteristic.LAST_TRIGGERED: _timestamp(self.obj.get("starttime")),
        }

    def put_state(self, body: dict) -> Awaitable[list]:
        return self.bridge.protocol.put_schedule(self.ref.index, body)

    def log_changes(self, old: dict, new: dict) -> None:
        for key, value in new.items():
            if isinstance(value, (str, int, bool)) and old.get(key) != value:
                self.logger.debug(f"{self.name}: {self.kind.value[:-1]} {key} changed from {old.get(key)!r} to {value!r}")

    async def set_enabled(self, enabled: bool) -> None:
        status = "enabled" if enabled else "disabled"
        self.logger.info(f"{self.name}: host enabled changed from {self.view.get(Characteristic.ENABLED)} to {bool(enabled)}")
        await self.write(self.put_state, {"status": status})
        self.obj["status"] = status
        self.refresh()


class HueRule(HueSchedule):
    kind = ResourceKind.RULE

    def put_state(self, body: dict) -> Awaitable[list]:
        return self.bridge.protocol.put_rule(self.ref.index, body)

    def compute_view(self) -> dict[Characteristic, Any]:
        return {
            Characteristic.ENABLED: self.obj.get("status") == "enabled",
            Characteristic.LAST_TRIGGERED: _timestamp(self.obj.get("lasttriggered")),
            Characteristic.TIMES_TRIGGERED: self.obj.get("timestriggered", 0),
        }
