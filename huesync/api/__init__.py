"""
API-level models and protocol implementation.

This module contains models and types that belong to the API layer:
- BridgeIdentity, ResourceRef (addressing the bridge resource tree)
- Gamut, Capability (per-device calibration data)
- HueProtocol (typed endpoint calls over HueClient)
- Colour conversions between bridge xy and host hue/saturation
- Types and enums used by the API layer
"""

from .models import BridgeIdentity, ResourceRef, Gamut, Capability, GAMUT_DEFAULT, GAMUT_A, GAMUT_B, GAMUT_C
from .protocol import HueProtocol
from .types import ResourceKind, SessionState, WriteState, Characteristic, ButtonEvent, HueErrorType, Const
from .colour import closest_point_in_gamut, in_gamut, xy_to_hue_sat, hue_sat_to_xy
from .capabilities import lookup_capability

__all__ = [
    # API-level models
    "BridgeIdentity",
    "ResourceRef",
    "Gamut",
    "Capability",
    "GAMUT_DEFAULT",
    "GAMUT_A",
    "GAMUT_B",
    "GAMUT_C",
    "HueProtocol",

    # API-level types
    "ResourceKind",
    "SessionState",
    "WriteState",
    "Characteristic",
    "ButtonEvent",
    "HueErrorType",
    "Const",

    # Colour math
    "closest_point_in_gamut",
    "in_gamut",
    "xy_to_hue_sat",
    "hue_sat_to_xy",
    "lookup_capability",
]
