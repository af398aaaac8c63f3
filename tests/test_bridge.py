import asyncio
import json
import logging

import pytest

from huesync import (HueBridge, HueControl, HueConfig, SessionState, Characteristic, HueStateError,
                     HueResourceError, MemoryCredentialStore)

from conftest import BASE_URL, BRIDGE_ID, USERNAME


def make_bridge(config, session, sink=None, **kwargs) -> HueBridge:
    return HueBridge(BASE_URL, config, sink=sink, session=session, **kwargs)


async def test_connect(config, session):
    bridge = make_bridge(config, session)
    await bridge.connect()
    assert bridge.name == "Test Bridge"
    assert bridge.bridge_id == BRIDGE_ID
    assert bridge.model == "BSB002"
    assert bridge.client.parallel_requests == 10
    assert bridge.state == SessionState.UNAUTHENTICATED
    await bridge.close()


async def test_round_bridge_gets_fewer_parallel_requests(config, fake_bridge, session):
    fake_bridge.tree["config"]["modelid"] = "BSB001"
    bridge = make_bridge(config, session)
    await bridge.connect()
    assert bridge.client.parallel_requests == 3
    await bridge.close()


async def test_parallel_requests_override(config, fake_bridge, session):
    fake_bridge.tree["config"]["modelid"] = "BSB001"
    config.parallel_requests = 5
    bridge = make_bridge(config, session)
    await bridge.connect()
    assert bridge.client.parallel_requests == 5
    await bridge.close()


async def test_unsupported_api_version_warns(config, fake_bridge, session, caplog):
    fake_bridge.tree["config"]["apiversion"] = "1.30.0"
    bridge = make_bridge(config, session)
    with caplog.at_level(logging.WARNING):
        await bridge.connect()
    assert "api version 1.30.0" in caplog.text
    await bridge.close()


async def test_deconz_without_model_uses_mac(config, fake_bridge, session):
    del fake_bridge.tree["config"]["modelid"]
    del fake_bridge.tree["config"]["bridgeid"]
    bridge = make_bridge(config, session)
    await bridge.connect()
    assert bridge.bridge_id == "00:17:88:01:23:45"
    assert bridge.model == "deCONZ"
    assert bridge.linkbutton is False
    await bridge.close()


async def test_authenticate_with_stored_user(config, fake_bridge, session):
    bridge = make_bridge(config, session)
    await bridge.connect()
    identity = await bridge.authenticate()
    assert bridge.state == SessionState.READY
    assert identity.id == BRIDGE_ID
    assert identity.api_user == USERNAME
    assert identity.url == f"{BASE_URL}/{USERNAME}"
    assert [m for m, p, b in fake_bridge.requests if m == "POST"] == []
    await bridge.close()


async def test_authenticate_waits_for_link_button(config, fake_bridge, session):
    config.users = {}
    credentials = MemoryCredentialStore()
    fake_bridge.link_pressed = False
    bridge = make_bridge(config, session, credentials=credentials)
    await bridge.connect()
    task = asyncio.create_task(bridge.authenticate())
    await asyncio.sleep(0.02)
    assert bridge.state == SessionState.AUTHENTICATING
    assert not task.done()
    fake_bridge.link_pressed = True
    await task
    assert bridge.state == SessionState.READY
    assert credentials.get(BRIDGE_ID) == USERNAME
    await bridge.close()


async def test_user_creation_error_propagates(config, fake_bridge, session):
    config.users = {}
    bridge = make_bridge(config, session)
    await bridge.connect()
    fake_bridge.scripted = [(200, [{"error": {"type": 7, "address": "/devicetype", "description": "invalid value"}}])]
    with pytest.raises(HueResourceError):
        await bridge.authenticate()
    assert bridge.state == SessionState.UNAUTHENTICATED
    await bridge.close()


async def test_authenticate_before_connect(config, session):
    bridge = make_bridge(config, session)
    with pytest.raises(HueStateError):
        await bridge.authenticate()
    await bridge.close()


async def test_discover_requires_ready(config, session):
    bridge = make_bridge(config, session)
    await bridge.connect()
    with pytest.raises(HueStateError):
        await bridge.discover()
    await bridge.close()


async def test_discovery_filters(bridge):
    assert list(bridge.lights) == ["1"]
    # Rooms are excluded by default
    assert list(bridge.groups) == ["1"]
    assert bridge.group0 is None
    # CLIPSwitch is unsupported
    assert sorted(bridge.sensors) == ["5", "6"]
    assert list(bridge.schedules) == ["1"]
    assert list(bridge.rules) == ["1"]


async def test_discovery_options(config, fake_bridge, session, caplog):
    config.philips_lights = False
    config.rooms = True
    config.exclude_sensor_types = {"ZLLPresence": True}
    config.schedules = False
    bridge = make_bridge(config, session)
    await bridge.connect()
    await bridge.authenticate()
    with caplog.at_level(logging.WARNING):
        await bridge.discover()
    assert bridge.lights == {}
    assert sorted(bridge.groups) == ["1", "2"]
    assert list(bridge.sensors) == ["5"]
    assert bridge.schedules == {}
    assert "CLIPSwitch" in caplog.text
    await bridge.close()


def test_clip_prefix_excludes_every_clip_type():
    config = HueConfig(hosts=["h"], exclude_sensor_types={"CLIP": True})
    assert config.excludes_sensor("CLIPGenericFlag")
    assert config.excludes_sensor("CLIPPresence")
    assert not config.excludes_sensor("ZLLPresence")


async def test_rediscovery_replaces_resources(bridge):
    old = bridge.lights["1"]
    await bridge.discover()
    assert old.closed
    assert bridge.lights["1"] is not old


async def test_bridge_view(bridge):
    assert bridge.view[Characteristic.HEARTRATE] == 5
    assert bridge.view[Characteristic.LINK] is False
    assert bridge.view[Characteristic.TOUCHLINK] is False
    bridge.set_heartrate(2)
    assert bridge.heartbeat.heartrate == 2
    assert bridge.view[Characteristic.HEARTRATE] == 2


async def test_set_link(bridge, fake_bridge):
    await bridge.set_link(True)
    assert fake_bridge.puts() == [("/config", {"linkbutton": True})]
    assert bridge.view[Characteristic.LINK] is True


async def test_touchlink_resets_itself(bridge, fake_bridge, sink):
    bridge.touchlink_reset = 0.02
    sink.clear()
    await bridge.set_touchlink(True)
    assert fake_bridge.puts() == [("/config", {"touchlink": True})]
    assert bridge.view[Characteristic.TOUCHLINK] is True
    await asyncio.sleep(0.05)
    assert bridge.view[Characteristic.TOUCHLINK] is False
    assert sink.values(bridge, Characteristic.TOUCHLINK) == [True, False]


async def test_close_cancels_touchlink_reset(bridge, sink):
    bridge.touchlink_reset = 0.02
    await bridge.set_touchlink(True)
    desk = bridge.lights["1"]
    await bridge.close()
    sink.clear()
    await asyncio.sleep(0.05)
    assert sink.values(bridge, Characteristic.TOUCHLINK) == []
    assert desk.closed


async def test_dump_masks_identifiers(bridge, tmp_path):
    path = tmp_path / "dump.json"
    await bridge.dump(str(path))
    text = path.read_text()
    assert USERNAME not in text
    assert BRIDGE_ID not in text
    assert "192.0.2.10" not in text
    tree = json.loads(text)
    assert tree["config"]["mac"] == "xx:xx:xx:xx:xx:xx"
    assert tree["config"]["proxyaddress"] == "none"
    assert tree["lights"]["1"]["name"] == "Desk"


async def test_control_runs_several_bridges(config, session):
    control = HueControl(config, session=session)
    control.add_bridge("bridge.test")
    control.add_bridge("bridge.test")
    async with control:
        await control.start()
        assert all(b.state == SessionState.READY for b in control.bridges)
        assert all(b.heartbeat.running for b in control.bridges)
        assert len(control.get_lights()) == 2
        assert len(control.get_groups()) == 2
        assert len(control.get_sensors()) == 4
    assert not any(b.heartbeat.running for b in control.bridges)
    assert control.get_lights() == []


async def test_control_from_config(config, session):
    control = HueControl.from_config(config, session=session)
    assert [b.host for b in control.bridges] == ["bridge.test"]
    await control.stop()
