import asyncio

import pytest

from huesync import Characteristic, WriteState, HueResourceError, HueResponseError, HueStateError, HueLight
from huesync.api import GAMUT_C
from huesync.api.colour import hue_sat_to_xy

from conftest import light


async def test_writes_in_window_are_merged(bridge, fake_bridge):
    desk = bridge.lights["1"]
    results = await asyncio.gather(desk.set_on(True), desk.set_brightness(50))
    assert results == [True, True]
    assert fake_bridge.puts() == [("/lights/1/state", {"on": True, "bri": 127})]


async def test_last_write_wins_per_field(bridge, fake_bridge):
    desk = bridge.lights["1"]
    await asyncio.gather(desk.set_brightness(10), desk.set_brightness(100))
    assert fake_bridge.puts() == [("/lights/1/state", {"bri": 254})]


async def test_hue_and_saturation_combine(bridge, fake_bridge):
    desk = bridge.lights["1"]
    await asyncio.gather(desk.set_hue(120), desk.set_saturation(100))
    [(path, body)] = fake_bridge.puts()
    assert path == "/lights/1/state"
    assert body == {"xy": list(hue_sat_to_xy(120, 100, GAMUT_C))}


async def test_confirmed_write_updates_view(bridge, sink):
    desk = bridge.lights["1"]
    sink.clear()
    await desk.set_brightness(50)
    assert desk.view[Characteristic.BRIGHTNESS] == 50
    assert desk.observed["state"]["bri"] == 127
    assert sink.values(desk, Characteristic.BRIGHTNESS) == [50]
    assert desk.write_state == WriteState.IDLE


async def test_transition_time_is_one_shot(bridge, fake_bridge):
    desk = bridge.lights["1"]
    bridge.set_transition_time(1.0)
    await desk.set_on(False)
    await desk.set_on(True)
    assert fake_bridge.puts() == [
        ("/lights/1/state", {"on": False, "transitiontime": 10}),
        ("/lights/1/state", {"on": True}),
    ]


async def test_failed_write_raises_and_clears_writing(bridge, fake_bridge):
    desk = bridge.lights["1"]
    fake_bridge.scripted = [(200, [{"error": {"type": 201, "address": "/lights/1/state/bri", "description": "device is set to off"}}])]
    with pytest.raises(HueResourceError):
        await desk.set_brightness(30)
    assert desk.write_state == WriteState.IDLE
    # Observed state untouched
    assert desk.observed["state"]["bri"] == 254


async def test_unreadable_write_response_is_not_confirmed(bridge, fake_bridge):
    desk = bridge.lights["1"]
    fake_bridge.scripted = [(200, ValueError("truncated body"))]
    with pytest.raises(HueResponseError):
        await desk.set_brightness(10)
    assert desk.write_state == WriteState.IDLE
    assert desk.observed["state"]["bri"] == 254
    assert desk.view[Characteristic.BRIGHTNESS] == 100


async def test_heartbeat_is_ignored_while_writing(bridge, fake_bridge):
    desk = bridge.lights["1"]
    fake_bridge.gate = asyncio.Event()
    task = asyncio.create_task(desk.set_brightness(50))
    await asyncio.sleep(0.03)
    assert desk.updating
    assert desk.heartbeat(light(bri=1)) is False
    assert desk.view[Characteristic.BRIGHTNESS] == 100
    fake_bridge.gate.set()
    await task
    assert not desk.updating
    assert desk.heartbeat(light(bri=1)) is True
    assert desk.view[Characteristic.BRIGHTNESS] == 0


async def test_flushes_for_one_resource_are_ordered(bridge, fake_bridge):
    desk = bridge.lights["1"]
    fake_bridge.gate = asyncio.Event()
    first = asyncio.create_task(desk.set_brightness(10))
    await asyncio.sleep(0.03)
    second = asyncio.create_task(desk.set_brightness(20))
    await asyncio.sleep(0.03)
    # Second flush waits for the first to complete
    assert fake_bridge.in_flight == 1
    fake_bridge.gate.set()
    await asyncio.gather(first, second)
    assert [body for _, body in fake_bridge.puts()] == [{"bri": 25}, {"bri": 51}]


async def test_close_cancels_pending_write(bridge, fake_bridge):
    desk = bridge.lights["1"]
    task = asyncio.create_task(desk.set_on(False))
    await asyncio.sleep(0)
    desk.close()
    with pytest.raises(asyncio.CancelledError):
        await task
    await asyncio.sleep(0.03)
    assert fake_bridge.puts() == []


async def test_closed_resource_refuses_writes(bridge):
    desk = bridge.lights["1"]
    desk.close()
    with pytest.raises(HueStateError):
        await desk.set_on(True)


async def test_no_transition_time_quirk(bridge, fake_bridge):
    obj = light(name="Garden", modelid="Classic A60 RGBW")
    obj["manufacturername"] = "OSRAM"
    obj["swversion"] = "V1.03.07"
    garden = HueLight(bridge, "9", obj)
    assert garden.capability.no_transition_time
    await garden.set_on(False)
    assert fake_bridge.puts() == [("/lights/9/state", {"on": False, "transitiontime": 0})]
    garden.close()
