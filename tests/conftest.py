"""
In-memory bridge for the test suite.

FakeSession plays the aiohttp ClientSession role for HueClient: it routes
`session.request(method, url, json=...)` to a FakeBridge which keeps a small
resource tree, records every request, and can be scripted to fail or stall.
"""

import asyncio
import copy
from typing import Any, Optional

import pytest

from huesync import HueConfig, HueBridge, Characteristic


BASE_URL = "http://bridge.test/api"
USERNAME = "testuser0123456789"
BRIDGE_ID = "001788FFFE012345"


def light(name: str = "Desk", on: bool = True, bri: int = 254, xy=(0.4, 0.4), ct: int = 366,
          reachable: bool = True, modelid: str = "LCT010", **state) -> dict:
    return {
        "name": name,
        "type": "Extended color light",
        "manufacturername": "Philips",
        "modelid": modelid,
        "uniqueid": "00:17:88:01:00:aa:bb:cc-0b",
        "swversion": "1.29.0",
        "state": {"on": on, "bri": bri, "xy": list(xy), "ct": ct, "colormode": "xy",
                  "alert": "none", "reachable": reachable, **state},
    }


def group(name: str = "Living", any_on: bool = False, all_on: bool = False, type: str = "LightGroup") -> dict:
    return {
        "name": name,
        "type": type,
        "lights": ["1"],
        "state": {"any_on": any_on, "all_on": all_on},
        "action": {"on": all_on, "bri": 127, "ct": 300, "xy": [0.4, 0.4], "alert": "none"},
    }


def dimmer_switch(name: str = "Dimmer", buttonevent: int = 1002, lastupdated: str = "2026-01-01T10:00:00") -> dict:
    return {
        "name": name,
        "type": "ZLLSwitch",
        "manufacturername": "Philips",
        "modelid": "RWL021",
        "uniqueid": "00:17:88:01:10:aa:bb:cc-02-fc00",
        "state": {"buttonevent": buttonevent, "lastupdated": lastupdated},
        "config": {"on": True, "battery": 90, "reachable": True},
    }


def motion_sensor(name: str = "Hall motion", presence: bool = False, lastupdated: str = "2026-01-01T10:00:00") -> dict:
    return {
        "name": name,
        "type": "ZLLPresence",
        "manufacturername": "Philips",
        "modelid": "SML001",
        "uniqueid": "00:17:88:01:02:aa:bb:cc-02-0406",
        "state": {"presence": presence, "lastupdated": lastupdated},
        "config": {"on": True, "battery": 20, "reachable": True, "alert": "none", "sensitivity": 2},
    }


def default_tree() -> dict:
    return {
        "config": {
            "name": "Test Bridge",
            "bridgeid": BRIDGE_ID,
            "modelid": "BSB002",
            "apiversion": "1.17.0",
            "mac": "00:17:88:01:23:45",
            "ipaddress": "192.0.2.10",
            "gateway": "192.0.2.1",
            "proxyaddress": "none",
            "linkbutton": False,
            "UTC": "2026-01-01T10:00:00",
            "whitelist": {USERNAME: {"name": "huesync#test"}},
        },
        "lights": {"1": light()},
        "groups": {"1": group(), "2": group(name="Kitchen", type="Room")},
        "sensors": {"5": dimmer_switch(), "6": motion_sensor(), "7": {"name": "Phone", "type": "CLIPSwitch", "state": {}}},
        "schedules": {"1": {"name": "Wake up", "status": "enabled", "starttime": "2026-01-01T07:00:00"}},
        "rules": {"1": {"name": "Motion on", "status": "enabled", "lasttriggered": "none", "timestriggered": 0}},
    }


class FakeResponse:
    def __init__(self, status: int, body: Any):
        self.status = status
        self.body = body

    async def json(self, content_type: Optional[str] = None) -> Any:
        if isinstance(self.body, Exception):
            raise self.body
        return self.body


class _RequestContext:
    def __init__(self, bridge: "FakeBridge", method: str, url: str, body: Any):
        self.bridge = bridge
        self.method = method
        self.url = url
        self.body = body

    async def __aenter__(self) -> FakeResponse:
        return await self.bridge.handle(self.method, self.url, self.body)

    async def __aexit__(self, exc_type, exc, tb):
        return False


class FakeSession:
    def __init__(self, bridge: "FakeBridge"):
        self.bridge = bridge
        self.closed = False

    def request(self, method: str, url: str, json: Any = None, timeout: Any = None) -> _RequestContext:
        return _RequestContext(self.bridge, method, url, copy.deepcopy(json))

    async def close(self) -> None:
        self.closed = True


class FakeBridge:
    def __init__(self, tree: Optional[dict] = None, username: str = USERNAME):
        self.tree = tree if tree is not None else default_tree()
        self.username = username
        self.link_pressed = True
        self.requests: list[tuple[str, str, Any]] = []
        self.scripted: list[Any] = []   # next responses: exceptions, (status, body) tuples or callables
        self.gate: Optional[asyncio.Event] = None
        self.in_flight = 0
        self.max_in_flight = 0

    def puts(self, path: Optional[str] = None) -> list[tuple[str, Any]]:
        return [(p, b) for m, p, b in self.requests if m == "PUT" and (path is None or p == path)]

    def gets(self, path: Optional[str] = None) -> list[str]:
        return [p for m, p, b in self.requests if m == "GET" and (path is None or p == path)]

    async def handle(self, method: str, url: str, body: Any) -> FakeResponse:
        assert url.startswith(BASE_URL), url
        path = url[len(BASE_URL):] or "/"
        parts = [p for p in path.split('/') if p]
        authenticated = bool(parts) and parts[0] == self.username
        if authenticated:
            parts = parts[1:]
        resource_path = "/" + "/".join(parts)
        self.requests.append((method, resource_path, body))

        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.gate is not None:
                await self.gate.wait()
            if self.scripted:
                action = self.scripted.pop(0)
                if isinstance(action, BaseException):
                    raise action
                if callable(action):
                    action = action(method, resource_path, body)
                if action is not None:
                    return FakeResponse(*action)
            return FakeResponse(200, self.route(method, parts, body, authenticated))
        finally:
            self.in_flight -= 1

    def route(self, method: str, parts: list[str], body: Any, authenticated: bool) -> Any:
        if method == "POST" and not parts:
            if not self.link_pressed:
                return [{"error": {"type": 101, "address": "", "description": "link button not pressed"}}]
            return [{"success": {"username": self.username}}]
        if parts == ["config"] and method == "GET" and not authenticated:
            config = self.tree["config"]
            return {k: config[k] for k in ("name", "bridgeid", "modelid", "apiversion", "mac") if k in config}
        if not authenticated:
            return [{"error": {"type": 1, "address": "/" + "/".join(parts), "description": "unauthorized user"}}]
        if method == "GET" and parts == ["groups", "0"]:
            return {"name": "Group 0", "type": "LightGroup", "lights": list(self.tree["lights"]),
                    "state": {"any_on": True, "all_on": False}, "action": {"on": True, "bri": 254, "alert": "none"}}
        if method == "GET":
            node: Any = self.tree
            for part in parts:
                node = node[part]
            return copy.deepcopy(node)
        if method == "PUT":
            node = self.tree
            for part in parts:
                node = node.setdefault(part, {})
            node.update(body)
            prefix = "/" + "/".join(parts)
            return [{"success": {f"{prefix}/{k}": v}} for k, v in body.items()]
        raise AssertionError(f"unexpected {method} /{'/'.join(parts)}")


class RecordingSink:
    def __init__(self):
        self.updates: list[tuple[Any, Characteristic, Any, Optional[int]]] = []

    def update(self, resource: Any, characteristic: Characteristic, value: Any, index: Optional[int] = None) -> None:
        self.updates.append((resource, characteristic, value, index))

    def values(self, resource: Any, characteristic: Characteristic) -> list[Any]:
        return [v for r, c, v, i in self.updates if r is resource and c == characteristic]

    def clear(self) -> None:
        self.updates.clear()


@pytest.fixture
def fake_bridge() -> FakeBridge:
    return FakeBridge()


@pytest.fixture
def session(fake_bridge) -> FakeSession:
    return FakeSession(fake_bridge)


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def config() -> HueConfig:
    return HueConfig(
        hosts=["bridge.test"],
        lights=True,
        philips_lights=True,
        groups=True,
        group0=False,
        rooms=False,
        sensors=True,
        schedules=True,
        rules=True,
        linkbutton=True,
        wait_time_update=0.01,
        wait_time_resend=0.001,
        wait_time_link=0.001,
        users={BRIDGE_ID: USERNAME},
    )


@pytest.fixture
async def bridge(config, session, sink):
    """A discovered bridge with the heartbeat not running"""
    bridge = HueBridge(BASE_URL, config, sink=sink, session=session)
    await bridge.connect()
    await bridge.authenticate()
    await bridge.discover()
    yield bridge
    await bridge.close()
