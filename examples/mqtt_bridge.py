import asyncio
import json
import re
import yaml
from typing import Optional, Any
import huesync
from huesync import (HueControl, HueConfig, HueBridge, HueSensor, HueError,
                     YamlCredentialStore, Characteristic, ButtonEvent)
import aiomqtt
import logging


class Const:

    # MQTT settings
    MQTT_RECONNECT_MIN_DELAY = 1
    MQTT_RECONNECT_MAX_DELAY = 10
    MQTT_SERVICE_PREFIX = "huesync"

    # Logging
    LOG_FILE = 'mqtt.log'
    DEBUG_FILE = 'mqtt.debug.log'

    # Where created bridge usernames are kept
    CREDENTIALS_FILE = 'examples/users.yaml'


# Host command -> resource method
SETTERS: dict[Characteristic, str] = {
    Characteristic.ON: "set_on",
    Characteristic.ANY_ON: "set_any_on",
    Characteristic.BRIGHTNESS: "set_brightness",
    Characteristic.COLOR_TEMPERATURE: "set_colour_temperature",
    Characteristic.HUE: "set_hue",
    Characteristic.SATURATION: "set_saturation",
    Characteristic.ENABLED: "set_enabled",
    Characteristic.SENSITIVITY: "set_sensitivity",
    Characteristic.DURATION: "set_duration",
    Characteristic.HEARTRATE: "set_heartrate",
    Characteristic.LINK: "set_link",
    Characteristic.TOUCHLINK: "set_touchlink",
}


def slug(name: str) -> str:
    return re.sub(r'[^A-Za-z0-9]+', '_', name).strip('_').lower() or "unnamed"


def encode_payload(value: Any) -> str:
    if isinstance(value, ButtonEvent):
        return json.dumps({"event_type": value.name.lower()})
    if isinstance(value, bool):
        return "ON" if value else "OFF"
    return json.dumps(value)


def decode_payload(payload: str) -> Any:
    if payload in ("ON", "OFF"):
        return payload == "ON"
    try:
        return json.loads(payload)
    except json.JSONDecodeError:
        return payload


class MqttSink:
    """HostSink that turns characteristic updates into retained MQTT state topics"""

    def __init__(self, prefix: str):
        self.prefix = prefix
        self.queue: asyncio.Queue[tuple[str, str, bool]] = asyncio.Queue()
        self.states: dict[str, str] = {}  # Last payload per state topic
        self.topic_object: dict[str, Any] = {}  # Map of base topics to objects

    def base_topic(self, obj: Any) -> str:
        if isinstance(obj, HueBridge):
            topic = f"{self.prefix}/{slug(obj.name)}/bridge"
        else:
            topic = f"{self.prefix}/{slug(obj.bridge.name)}/{obj.ref.kind.value}/{obj.ref.index}"
        self.topic_object[topic] = obj
        return topic

    def update(self, resource: Any, characteristic: Characteristic, value: Any, index: Optional[int] = None) -> None:
        topic = f"{self.base_topic(resource)}/{characteristic.value}"
        if index is not None:
            topic = f"{topic}/{index}"
        payload = encode_payload(value)
        # Events are not state and are not retained
        retain = characteristic != Characteristic.PROGRAMMABLE_SWITCH_EVENT
        if retain:
            self.states[topic] = payload
        self.queue.put_nowait((topic, payload, retain))


class HueMQTTBridge:
    """Bridge between Hue bridges and MQTT.

    Every host characteristic is published to `<prefix>/<bridge>/<kind>/<index>/<characteristic>`
    and commands are accepted on the same topic with `/set` appended.
    """

    # ================================
    #          INIT & RUN
    # ================================

    def __init__(self, config_path: str = "examples/config.yaml") -> None:
        self.config: dict[str, Any]
        with open(config_path) as f:
            self.config = yaml.safe_load(f)

        self.logger: logging.Logger
        self.hue: Optional[HueControl] = None
        self.mqttc: Optional[aiomqtt.Client] = None
        self.sink: MqttSink
        self.mqtt_task: Optional[asyncio.Task] = None
        self.publish_task: Optional[asyncio.Task] = None

    async def run(self) -> None:
        self.setup_logging()
        self.setup_config()
        self.logger.info("==================================== Starting HueMQTTBridge ====================================")
        self.sink = MqttSink(self.config['mqtt'].get('prefix', Const.MQTT_SERVICE_PREFIX))
        self.hue = HueControl.from_config(
            HueConfig.from_dict(self.config['hue']),
            sink=self.sink,
            credentials=YamlCredentialStore(Const.CREDENTIALS_FILE, logger=self.logger),
            logger=self.logger,
        )

        self.publish_task = asyncio.create_task(self._publisher())
        self.mqtt_task = asyncio.create_task(self._mqtt_message_handler())

        try:
            await self.hue.start()
        except HueError as e:
            self.logger.fatal(f"Aborting - cannot start Hue bridges: {e}")
            return

        for bridge in self.hue.bridges:
            self.logger.info(f"{bridge.name}: {len(bridge.lights)} lights, {len(bridge.groups)} groups, {len(bridge.sensors)} sensors")

        while True:
            await asyncio.sleep(1)

    async def stop(self) -> None:
        """Clean shutdown of the bridge"""
        if self.hue is not None:
            await self.hue.stop()
        for task in (self.mqtt_task, self.publish_task):
            if task is not None:
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
        # MQTT connection is automatically closed by the context manager

    # ================================
    #            CONFIG
    # ================================

    def setup_config(self) -> None:
        try:
            required_sections = ['mqtt', 'hue']
            missing = [s for s in required_sections if s not in self.config]
            if missing:
                raise ValueError(f"Missing required config sections: {', '.join(missing)}")

            mqtt_required = ['host', 'port', 'user', 'password', 'keepalive']
            missing = [f for f in mqtt_required if f not in self.config['mqtt']]
            if missing:
                raise ValueError(f"Missing MQTT config fields: {', '.join(missing)}")

            port = self.config['mqtt']['port']
            if not isinstance(port, int) or port < 1 or port > 65535:
                raise ValueError(f"Invalid MQTT port number: {port}")

            # Raises HueConfigurationError with the offending field
            HueConfig.from_dict(self.config['hue'])

        except (ValueError, HueError) as e:
            self.logger.error(f"Failed to load config file: {e}")
            raise

    # ================================
    #             LOGGING
    # ================================

    def setup_logging(self) -> None:
        """Configure logging with both file and console handlers."""
        self.logger = huesync.setup_logging('HueMQTTBridge', log_file=Const.LOG_FILE, debug_file=Const.DEBUG_FILE)

    # ================================
    #              MQTT
    # ================================

    async def _publisher(self) -> None:
        """Drain the sink queue. While disconnected, state is only kept for the next connect."""
        while True:
            topic, payload, retain = await self.sink.queue.get()
            if self.mqttc is None:
                continue
            try:
                await self.mqttc.publish(topic, payload, retain=retain)
            except aiomqtt.MqttError as e:
                self.logger.warning(f"MQTT publish of {topic} failed: {e}")

    async def _mqtt_message_handler(self) -> None:
        """Handle incoming MQTT messages with automatic reconnection per aiomqtt docs."""
        interval = Const.MQTT_RECONNECT_MIN_DELAY
        mqtt_config = self.config["mqtt"]
        availability = f"{self.sink.prefix}/availability"

        while True:
            try:
                client = aiomqtt.Client(
                    hostname=mqtt_config["host"],
                    port=mqtt_config["port"],
                    username=mqtt_config["user"],
                    password=mqtt_config["password"],
                    keepalive=mqtt_config["keepalive"],
                    will=aiomqtt.Will(topic=availability, payload="offline", retain=True),
                )

                async with client:
                    self.mqttc = client
                    await client.subscribe(f"{self.sink.prefix}/#")
                    await client.publish(availability, "online", retain=True)
                    # Catch up on state that changed while disconnected
                    for topic, payload in list(self.sink.states.items()):
                        await client.publish(topic, payload, retain=True)

                    self.logger.info("Successfully connected to MQTT broker")

                    async for message in client.messages:
                        await self._mqtt_on_message(message)

            except asyncio.CancelledError:
                self.logger.info("MQTT message handler cancelled")
                self.mqttc = None
                break
            except aiomqtt.MqttError as e:
                self.mqttc = None
                self.logger.warning(f"MQTT connection lost: {e}")
                self.logger.info(f"Reconnecting in {interval} seconds...")
                await asyncio.sleep(interval)
                interval = Const.MQTT_RECONNECT_MIN_DELAY
            except Exception as e:
                self.mqttc = None
                self.logger.error(f"Unexpected error in MQTT message handler: {e}")
                self.logger.info(f"Retrying in {interval} seconds...")
                await asyncio.sleep(interval)
                # Exponential backoff for unexpected errors
                interval = min(interval * 2, Const.MQTT_RECONNECT_MAX_DELAY)

    async def _mqtt_on_message(self, msg: aiomqtt.Message) -> None:
        topic_str = str(msg.topic)

        # Only set commands
        if not topic_str.endswith("/set"):
            return

        base_topic, characteristic_name = topic_str[:-len("/set")].rsplit('/', 1)
        target = self.sink.topic_object.get(base_topic)
        if target is None:
            self.logger.debug(f"No matching object found for {base_topic}")
            return

        try:
            characteristic = Characteristic(characteristic_name)
        except ValueError:
            self.logger.debug(f"Ignoring unknown characteristic {characteristic_name} on {base_topic}")
            return

        payload = msg.payload.decode('UTF-8') if isinstance(msg.payload, (bytes, bytearray)) else str(msg.payload or "")
        value = decode_payload(payload)
        self.logger.debug(f"Command from MQTT: {target} {characteristic.value} set to {value!r}")

        if isinstance(target, HueSensor) and characteristic == target.behaviour.characteristic:
            setter = "set_value"
        else:
            setter = SETTERS.get(characteristic)
        if setter is None or not hasattr(target, setter):
            self.logger.warning(f"{target}: {characteristic.value} is read-only")
            return

        try:
            result = getattr(target, setter)(value)
            if asyncio.iscoroutine(result):
                await result
        except (HueError, ValueError, TypeError) as e:
            self.logger.error(f"{target}: cannot set {characteristic.value} to {value!r}: {e}")


# Usage
async def main_async():
    bridge = HueMQTTBridge()
    try:
        await bridge.run()
    finally:
        await bridge.stop()


def main():
    huesync.run_with_keyboard_interrupt(main_async)


if __name__ == "__main__":
    main()
