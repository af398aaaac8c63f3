import asyncio

import pytest

from huesync import Characteristic, ButtonEvent, Heartbeat, HueBridge

from conftest import light


def test_heartrate_must_be_positive(bridge):
    with pytest.raises(ValueError):
        bridge.heartbeat.heartrate = 0


async def test_pass_runs_on_every_heartrate_tick(bridge, fake_bridge):
    heartbeat = bridge.heartbeat
    heartbeat.heartrate = 3
    started = []
    for _ in range(6):
        task = heartbeat.beat()
        started.append(task is not None)
        if task is not None:
            await task
    assert started == [False, False, True, False, False, True]
    assert heartbeat.passes == 2


async def test_stage_order(bridge, fake_bridge):
    fake_bridge.requests.clear()
    assert await bridge.heartbeat.run_pass() is True
    assert fake_bridge.gets() == ["/config", "/sensors", "/lights", "/groups", "/schedules", "/rules"]


async def test_group0_stage(config, session, sink):
    config.group0 = True
    bridge = HueBridge("http://bridge.test/api", config, sink=sink, session=session)
    await bridge.start()
    try:
        await bridge.heartbeat.stop()
        assert bridge.group0 is not None
        assert [name for name, _ in bridge.heartbeat.stages()] == [
            "config", "sensors", "lights", "groups", "group0", "schedules", "rules"]
    finally:
        await bridge.close()


async def test_failed_stage_abandons_pass(bridge, fake_bridge):
    fake_bridge.requests.clear()
    fake_bridge.scripted = [None, (500, None)]   # config ok, sensors fail
    assert await bridge.heartbeat.run_pass() is False
    assert fake_bridge.gets() == ["/config", "/sensors"]
    # The next pass starts again from the top
    assert await bridge.heartbeat.run_pass() is True


async def test_overlapping_pass_is_skipped(bridge, fake_bridge):
    heartbeat = bridge.heartbeat
    heartbeat.heartrate = 1
    fake_bridge.gate = asyncio.Event()
    first = heartbeat.beat()
    await asyncio.sleep(0)
    assert heartbeat.beat() is None
    fake_bridge.gate.set()
    await first
    assert heartbeat.passes == 1


async def test_changes_are_pushed_to_host(bridge, fake_bridge, sink):
    desk = bridge.lights["1"]
    fake_bridge.tree["lights"]["1"] = light(bri=127)
    sink.clear()
    await bridge.heartbeat.run_pass()
    assert sink.values(desk, Characteristic.BRIGHTNESS) == [50]
    # No change, no update
    sink.clear()
    await bridge.heartbeat.run_pass()
    assert sink.values(desk, Characteristic.BRIGHTNESS) == []


async def test_unreachable_light_is_off_with_wall_switch(config, session, sink, fake_bridge):
    config.wall_switch = True
    bridge = HueBridge("http://bridge.test/api", config, sink=sink, session=session)
    await bridge.connect()
    await bridge.authenticate()
    await bridge.discover()
    try:
        desk = bridge.lights["1"]
        assert desk.view[Characteristic.ON] is True
        fake_bridge.tree["lights"]["1"] = light(reachable=False)
        await bridge.heartbeat.run_pass()
        assert desk.view[Characteristic.ON] is False
        assert desk.view[Characteristic.STATUS_FAULT] is True
        # Not written to the bridge
        assert fake_bridge.puts() == []
    finally:
        await bridge.close()


async def test_unreachable_light_stays_on_without_wall_switch(bridge, fake_bridge):
    desk = bridge.lights["1"]
    fake_bridge.tree["lights"]["1"] = light(reachable=False)
    await bridge.heartbeat.run_pass()
    assert desk.view[Characteristic.ON] is True
    assert desk.view[Characteristic.STATUS_FAULT] is True


async def test_link_button_press_event(bridge, fake_bridge, sink):
    fake_bridge.tree["config"]["linkbutton"] = True
    sink.clear()
    await bridge.heartbeat.run_pass()
    assert sink.values(bridge, Characteristic.PROGRAMMABLE_SWITCH_EVENT) == [ButtonEvent.SINGLE_PRESS]
    assert fake_bridge.puts("/config") == [("/config", {"linkbutton": False})]
    # Reset on the bridge, so no second event
    sink.clear()
    await bridge.heartbeat.run_pass()
    assert sink.values(bridge, Characteristic.PROGRAMMABLE_SWITCH_EVENT) == []


async def test_bridge_last_updated(bridge, fake_bridge):
    fake_bridge.tree["config"]["UTC"] = "2026-01-01T10:00:05"
    await bridge.heartbeat.run_pass()
    assert bridge.view[Characteristic.LAST_UPDATED] == "2026-01-01 10:00:05"


async def test_start_and_stop(bridge, fake_bridge):
    heartbeat = Heartbeat(bridge, interval=0.005, heartrate=1)
    heartbeat.start()
    assert heartbeat.running
    await asyncio.sleep(0.1)
    await heartbeat.stop()
    assert not heartbeat.running
    assert heartbeat.passes >= 1


async def test_unreadable_config_only_abandons_that_pass(bridge, fake_bridge, sink):
    desk = bridge.lights["1"]
    fake_bridge.scripted = [(200, ValueError("Expecting value"))]
    assert await bridge.heartbeat.run_pass() is False
    assert isinstance(bridge.obj, dict)
    fake_bridge.tree["lights"]["1"] = light(bri=127)
    sink.clear()
    assert await bridge.heartbeat.run_pass() is True
    assert sink.values(desk, Characteristic.BRIGHTNESS) == [50]


async def test_unexpected_config_shape_keeps_last_config(bridge, fake_bridge):
    fake_bridge.scripted = [(200, ["not", "a", "config"])]
    assert await bridge.heartbeat.run_pass() is False
    assert bridge.obj["name"] == "Test Bridge"
    assert await bridge.heartbeat.run_pass() is True


async def test_malformed_resource_entry_abandons_pass(bridge, fake_bridge):
    fake_bridge.tree["lights"]["1"] = "garbage"
    assert await bridge.heartbeat.run_pass() is False
    fake_bridge.tree["lights"]["1"] = light()
    assert await bridge.heartbeat.run_pass() is True


async def test_link_button_reset_is_retried(bridge, fake_bridge, sink):
    fake_bridge.tree["config"]["linkbutton"] = True
    sink.clear()
    fake_bridge.scripted = [None, (500, None)]   # config ok, reset fails
    assert await bridge.heartbeat.run_pass() is False
    assert sink.values(bridge, Characteristic.PROGRAMMABLE_SWITCH_EVENT) == []
    assert bridge.obj["linkbutton"] is False
    # Still pressed on the bridge, so the next pass resets it and reports the press once
    assert await bridge.heartbeat.run_pass() is True
    assert sink.values(bridge, Characteristic.PROGRAMMABLE_SWITCH_EVENT) == [ButtonEvent.SINGLE_PRESS]
    assert fake_bridge.puts("/config") == [("/config", {"linkbutton": False})] * 2
    assert fake_bridge.tree["config"]["linkbutton"] is False
