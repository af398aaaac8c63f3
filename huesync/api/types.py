"""
API-level type definitions.

This module contains types and enums that belong to the API layer:
- Resource kinds, session and write states
- Host characteristics and button events
- Bridge error codes
- Constants used by the API layer
"""

from enum import Enum, IntEnum


class ResourceKind(Enum):
    LIGHT = "lights"
    GROUP = "groups"
    SENSOR = "sensors"
    SCHEDULE = "schedules"
    RULE = "rules"


class SessionState(Enum):
    UNAUTHENTICATED = 0
    AUTHENTICATING = 1
    READY = 2


class WriteState(Enum):
    IDLE = 0
    WRITING = 1


class Characteristic(Enum):
    # Lights and groups
    ON = "on"
    ANY_ON = "any_on"
    BRIGHTNESS = "brightness"
    COLOR_TEMPERATURE = "color_temperature"
    HUE = "hue"
    SATURATION = "saturation"
    STATUS_FAULT = "status_fault"
    # Sensors
    PROGRAMMABLE_SWITCH_EVENT = "programmable_switch_event"
    MOTION_DETECTED = "motion_detected"
    CURRENT_TEMPERATURE = "current_temperature"
    CURRENT_AMBIENT_LIGHT_LEVEL = "current_ambient_light_level"
    CONTACT_SENSOR_STATE = "contact_sensor_state"
    OCCUPANCY_DETECTED = "occupancy_detected"
    CURRENT_RELATIVE_HUMIDITY = "current_relative_humidity"
    STATUS = "status"
    DARK = "dark"
    DAYLIGHT = "daylight"
    LAST_UPDATED = "last_updated"
    ENABLED = "enabled"
    STATUS_ACTIVE = "status_active"
    SENSITIVITY = "sensitivity"
    DURATION = "duration"
    BATTERY_LEVEL = "battery_level"
    STATUS_LOW_BATTERY = "status_low_battery"
    # Schedules and rules
    LAST_TRIGGERED = "last_triggered"
    TIMES_TRIGGERED = "times_triggered"
    # Bridge
    HEARTRATE = "heartrate"
    LINK = "link"
    TOUCHLINK = "touchlink"


class ButtonEvent(IntEnum):
    SINGLE_PRESS = 0
    DOUBLE_PRESS = 1
    LONG_PRESS = 2


class HueErrorType(IntEnum):
    UNAUTHORIZED_USER = 1
    INVALID_JSON = 2
    RESOURCE_NOT_AVAILABLE = 3
    METHOD_NOT_AVAILABLE = 4
    MISSING_PARAMETERS = 5
    PARAMETER_NOT_AVAILABLE = 6
    INVALID_VALUE = 7
    PARAMETER_NOT_MODIFIABLE = 8
    TOO_MANY_ITEMS = 11
    PORTAL_CONNECTION_REQUIRED = 12
    LINK_BUTTON_NOT_PRESSED = 101
    DEVICE_OFF = 201
    INTERNAL_ERROR = 901


# API-level constants
class Const:
    """API-level constants"""
    # Bridge value ranges
    MAX_BRI = 254
    MAX_HUE = 65535
    MAX_SAT = 254
    MIN_CT = 153  # ~6500K
    MAX_CT = 500  # 2000K

    # Concurrency gate
    PARALLEL_REQUESTS = 10
    PARALLEL_REQUESTS_V1 = 3  # BSB001 round bridge

    # Supported api versions for Philips bridges (1.minor)
    MIN_API_MINOR = 15
    MAX_API_MINOR = 18

    # Timers (seconds)
    WAIT_TIME_RESEND = 0.3
    WAIT_TIME_UPDATE = 0.02
    WAIT_TIME_LINK = 15.0
    TOUCHLINK_RESET = 15.0
    HEARTBEAT_INTERVAL = 1.0
    DEFAULT_HEARTRATE = 5
    DEFAULT_TRANSITION_TIME = 0.4

    # Sensors
    LOW_BATTERY = 25
    MAX_LIGHT_LEVEL = 100000.0
    MIN_LIGHT_LEVEL = 0.0001

    # devicetype sent when creating a user
    DEVICETYPE_PREFIX = "huesync#"
    DEVICETYPE_MAX_LENGTH = 40
