"""
huesync API-level models.

This module contains models that belong to the api layer:
- BridgeIdentity, ResourceRef (addressing the bridge resource tree)
- Gamut, Capability (per-device calibration data)
"""

from dataclasses import dataclass
from typing import Optional, Self

from .types import ResourceKind, Const


@dataclass(frozen=True)
class BridgeIdentity:
    """Represents an authenticated bridge"""
    id: str
    base_url: str
    api_user: str

    @property
    def url(self) -> str:
        return f"{self.base_url}/{self.api_user}"


@dataclass(frozen=True)
class ResourceRef:
    """Represents a stable key into the bridge resource tree"""
    kind: ResourceKind
    index: str

    def __post_init__(self):
        if not isinstance(self.kind, ResourceKind):
            raise ValueError(f"Resource kind must be a ResourceKind, got {self.kind!r}")
        object.__setattr__(self, "index", str(self.index))

    @property
    def path(self) -> str:
        return f"/{self.kind.value}/{self.index}"

    @property
    def state_path(self) -> str:
        """Path of the writable property bag (groups use action, not state)"""
        match self.kind:
            case ResourceKind.GROUP:
                return f"{self.path}/action"
            case ResourceKind.LIGHT | ResourceKind.SENSOR:
                return f"{self.path}/state"
            case _:
                return self.path

    @classmethod
    def from_path(cls, path: str) -> Self:
        parts = [p for p in path.split('/') if p]
        if len(parts) < 2:
            raise ValueError(f"Not a resource path: {path}")
        return cls(kind=ResourceKind(parts[0]), index=parts[1])

    def __str__(self) -> str:
        return self.path


Point = tuple[float, float]


@dataclass(frozen=True)
class Gamut:
    """Triangle of chromaticity coordinates a device can render"""
    r: Point
    g: Point
    b: Point

    def __post_init__(self):
        for name in ("r", "g", "b"):
            x, y = getattr(self, name)
            if not (0.0 <= x <= 1.0 and 0.0 <= y <= 1.0):
                raise ValueError(f"Gamut point {name} must lie within [0, 1], got {(x, y)}")

    @property
    def vertices(self) -> tuple[Point, Point, Point]:
        return (self.r, self.g, self.b)


# Colour gamuts as published by the bridge vendor.
GAMUT_DEFAULT = Gamut(r=(1.0000, 0.0000), g=(0.0000, 1.0000), b=(0.0000, 0.0000))
GAMUT_A = Gamut(r=(0.7040, 0.2960), g=(0.2151, 0.7106), b=(0.1380, 0.0800))
GAMUT_B = Gamut(r=(0.6750, 0.3220), g=(0.4090, 0.5180), b=(0.1670, 0.0400))
GAMUT_C = Gamut(r=(0.6920, 0.3080), g=(0.1700, 0.7000), b=(0.1530, 0.0480))


@dataclass(frozen=True)
class Capability:
    """Per-device capability and calibration data, fixed at registration"""
    manufacturer: str = "Philips"
    model: str = ""
    serial: str = ""
    subtype: Optional[str] = None
    bri: bool = False
    ct: bool = False
    xy: bool = False
    hs: bool = False
    min_ct: int = Const.MIN_CT
    max_ct: int = Const.MAX_CT
    gamut: Gamut = GAMUT_DEFAULT
    ignore_reachable: bool = False
    no_alert: bool = False
    no_transition_time: bool = False
    known: bool = True
