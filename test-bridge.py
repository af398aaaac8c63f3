import asyncio
import time

import huesync


async def main():
    huesync.setup_logging()
    config = huesync.HueConfig.load("test-config.yaml")
    credentials = huesync.YamlCredentialStore("test-users.yaml")

    async with huesync.HueControl.from_config(config, sink=huesync.LoggingSink(), credentials=credentials) as hue:
        timer_start = time.time()
        await hue.start()
        print(f"Time taken: {time.time() - timer_start} seconds")

        for bridge in hue.bridges:
            print(f"{bridge} {bridge.model} api v{bridge.api_version}")
            for characteristic, value in bridge.view.items():
                print(f"      = {characteristic.value}: {value}")

        print("Lights")
        for light in hue.get_lights():
            print(f"  • {light}")
            print(f"      = {'on' if light.view.get(huesync.Characteristic.ON) else 'off'}")

        print("Groups")
        for group in hue.get_groups():
            print(f"  • {group}")

        print("Sensors")
        for sensor in hue.get_sensors():
            print(f"  • {sensor} ({sensor.sensor_kind.value})")

        print("Watching for changes, ctrl-c to stop")
        while True:
            await asyncio.sleep(1)


huesync.run_with_keyboard_interrupt(main)
