"""
Capability lookup for lights and groups.

Capabilities are derived once, when a resource is registered: the presence of
`bri`, `ct` and `xy` in the reported state tells which host characteristics to
expose, and a per-model table supplies the colour gamut, colour temperature
range and known quirks.
"""

import dataclasses
import logging
import warnings
from typing import Any, Optional

from .models import Capability, GAMUT_DEFAULT, GAMUT_A, GAMUT_B, GAMUT_C
from .types import ResourceKind
from ..exceptions import HueUnknownModelWarning


_GAMUT_A_MODELS = (
    "LLC006",   # Living Colors Gen3 Iris
    "LLC007",   # Living Colors Gen3 Bloom, Aura
    "LLC010",   # Hue Living Colors Iris
    "LLC011",   # Hue Living Colors Bloom
    "LLC012",   # Hue Living Colors Bloom
    "LLC013",   # Disney Living Colors
    "LST001",   # Hue LightStrips
)
_GAMUT_B_MODELS = (
    "LCT001",   # Hue bulb A19
    "LCT002",   # Hue Spot BR30
    "LCT003",   # Hue Spot GU10
    "LCT007",   # Hue bulb A19
    "LLM001",   # Color Light Module
)
_GAMUT_C_MODELS = (
    "LCT010",   # Hue bulb A19
    "LCT011",   # Hue BR30
    "LCT012",   # Hue Color Candle
    "LCT014",   # Hue bulb A19
    "LLC020",   # Hue Go
    "LST002",   # Hue LightStrips Plus
)
_WHITE_AMBIANCE_MODELS = (
    "LTW001", "LTW004", "LTW012", "LTW013", "LTW014",
    "LLM010", "LLM011", "LLM012",   # Color Temperature Module
)
_WHITE_MODELS = ("LWB004", "LWB006", "LWB007", "LWB010", "LWB014")


def _build_model_table() -> dict[tuple[str, str], dict[str, Any]]:
    table: dict[tuple[str, str], dict[str, Any]] = {}
    for model in _GAMUT_A_MODELS:
        table[("Philips", model)] = {"gamut": GAMUT_A}
    for model in _GAMUT_B_MODELS:
        table[("Philips", model)] = {"gamut": GAMUT_B}
    for model in _GAMUT_C_MODELS:
        table[("Philips", model)] = {"gamut": GAMUT_C}
    for model in _WHITE_AMBIANCE_MODELS:
        table[("Philips", model)] = {"max_ct": 454}
    for model in _WHITE_MODELS:
        table[("Philips", model)] = {}
    table[("Philips", "LLC001")] = {"gamut": GAMUT_A, "ignore_reachable": True, "xy": False, "hs": True}
    table[("Philips", "LWL001")] = {"ignore_reachable": True}    # Dimmable plug-in unit
    table[("OSRAM", "Plug - LIGHTIFY")] = {"ignore_reachable": True}
    table[("OSRAM", "Plug 01")] = {"ignore_reachable": True}
    table[("OSRAM", "Gardenspot RGB")] = {"gamut": GAMUT_DEFAULT, "max_ct": 370}
    table[("OSRAM", "Classic A60 RGBW")] = {"gamut": GAMUT_DEFAULT, "max_ct": 370}
    table[("OSRAM", "PAR16 50 TW")] = {"max_ct": 370}
    table[("OSRAM", "Classic B40 TW - LIGHTIFY")] = {"max_ct": 370}
    for model in ("FL 110", "PL 110", "ST 110", "UC 110", "SL 110", "DL 110"):
        table[("innr", model)] = {"no_alert": True}
    for model in ("RB 162", "RB 165", "RS 125"):
        table[("innr", model)] = {}
    for model in ("FLS-PP3", "FLS-PP3 White", "FLS-CT"):
        table[("dresden elektronik", model)] = {}
    table[("Busch-Jaeger", "RM01")] = {}
    table[("GE_Appliances", "ZLL Light")] = {}
    table[("CREE ", "Connected A-19 60W Equivalent ")] = {}
    table[("IKEA of Sweden", "TRADFRI bulb E27 WS�opal 980lm")] = {"min_ct": 250, "max_ct": 454}
    table[("IKEA of Sweden", "TRADFRI bulb E27 WS opal 980lm")] = {"min_ct": 250, "max_ct": 454}
    table[("IKEA of Sweden", "TRADFRI bulb E27 opal 1000lm")] = {}
    table[("ubisys", "D1 (5503)")] = {}
    return table


MODEL_TABLE = _build_model_table()


def merged_state(obj: dict) -> dict:
    """Flatten a light (state) or group (state + action) object into one dict"""
    state = dict(obj.get("state") or {})
    state.update(obj.get("action") or {})
    return state


def lookup_capability(obj: dict,
                      kind: ResourceKind,
                      bridge_id: str = "",
                      resource_path: str = "",
                      wall_switch: bool = False,
                      logger: Optional[logging.Logger] = None) -> Capability:
    """Derive the capability of a light or group from its raw bridge object."""
    logger = logger or logging.getLogger(__name__)
    state = merged_state(obj)
    base = {
        "bri": "bri" in state,
        "ct": "ct" in state,
        "xy": "xy" in state,
    }

    if kind == ResourceKind.GROUP:
        return Capability(
            manufacturer="Philips",
            model=obj.get("type", "LightGroup"),
            serial=f"{bridge_id}{resource_path}",
            ignore_reachable=True,
            **base,
        )

    manufacturer = obj.get("manufacturername") or obj.get("manufacturer") or ""
    model = obj.get("modelid", "")
    uniqueid = obj.get("uniqueid", "")
    serial = uniqueid.split('-')[0] if uniqueid else f"{bridge_id}{resource_path}"
    overrides = MODEL_TABLE.get((manufacturer, model))

    if overrides is None:
        message = f"{resource_path}: unknown light model {manufacturer!r} {model!r}"
        logger.warning(message)
        warnings.warn(HueUnknownModelWarning(message), stacklevel=2)
        return Capability(
            manufacturer=manufacturer,
            model=model,
            serial=serial,
            ignore_reachable=not wall_switch,
            known=False,
            **base,
        )

    capability = Capability(
        manufacturer=manufacturer,
        model=model,
        serial=serial,
        ignore_reachable=not wall_switch,
        **base,
    )
    capability = dataclasses.replace(capability, **overrides)

    # Quirks that depend on more than manufacturer and model
    if (manufacturer, model) == ("Philips", "LLC001") and uniqueid == "ff:ff:ff:ff:ff:ff:ff:ff-0b":
        capability = dataclasses.replace(capability, serial=f"{bridge_id}{resource_path}")
    if manufacturer == "OSRAM" and capability.max_ct == 370 and obj.get("swversion") == "V1.03.07":
        capability = dataclasses.replace(capability, no_transition_time=True)
    if manufacturer == "dresden elektronik" and model.startswith("FLS-PP3") and "-" in uniqueid:
        capability = dataclasses.replace(capability, subtype=uniqueid.split('-')[1])
    return capability
