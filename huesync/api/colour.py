"""
Colour conversions between the bridge and the host.

The bridge describes colour as CIE xy chromaticity, clipped to the gamut
triangle of each light; the host expects hue (degrees) and saturation
(percent). See the vendor's RGB/xy conversion notes for the matrices used
below (wide gamut RGB, D65).
"""

import math

from .models import Gamut, GAMUT_DEFAULT, Point
from .types import Const


# XYZ -> linear RGB
_XYZ_TO_RGB = (
    (1.656492, -0.354851, -0.255038),
    (-0.707196, 1.655397, 0.036152),
    (0.051713, -0.121364, 1.011530),
)

# linear RGB -> XYZ
_RGB_TO_XYZ = (
    (0.664511, 0.154324, 0.162028),
    (0.283881, 0.668433, 0.047685),
    (0.000088, 0.072310, 0.986039),
)


def round_half_up(value: float) -> int:
    """Round half up, as the bridge and host apps do"""
    return int(math.floor(value + 0.5))


def _cross(p1: Point, p2: Point) -> float:
    return p1[0] * p2[1] - p1[1] * p2[0]


def _distance(p1: Point, p2: Point) -> float:
    return math.hypot(p1[0] - p2[0], p1[1] - p2[1])


def _closest_on_segment(a: Point, b: Point, p: Point) -> Point:
    ap = (p[0] - a[0], p[1] - a[1])
    ab = (b[0] - a[0], b[1] - a[1])
    denominator = ab[0] * ab[0] + ab[1] * ab[1]
    if denominator == 0.0:
        return a
    t = (ap[0] * ab[0] + ap[1] * ab[1]) / denominator
    t = min(1.0, max(0.0, t))
    return (a[0] + t * ab[0], a[1] + t * ab[1])


def in_gamut(p: Point, gamut: Gamut) -> bool:
    """Barycentric test of p against the gamut triangle"""
    r, g, b = gamut.vertices
    v1 = (g[0] - r[0], g[1] - r[1])
    v2 = (b[0] - r[0], b[1] - r[1])
    v = _cross(v1, v2)
    if v == 0.0:
        return False
    q = (p[0] - r[0], p[1] - r[1])
    s = _cross(q, v2) / v
    t = _cross(v1, q) / v
    return s >= 0.0 and t >= 0.0 and s + t <= 1.0


def closest_point_in_gamut(p: Point, gamut: Gamut = GAMUT_DEFAULT) -> Point:
    """Return p if it lies inside the gamut, else the nearest point on its boundary."""
    p = (float(p[0]), float(p[1]))
    if in_gamut(p, gamut):
        return p
    r, g, b = gamut.vertices
    candidates = (
        _closest_on_segment(r, g, p),
        _closest_on_segment(g, b, p),
        _closest_on_segment(b, r, p),
    )
    # Ties resolve to the earliest edge (RG, GB, BR)
    return min(candidates, key=lambda c: _distance(p, c))


def _compand(v: float) -> float:
    """Inverse gamma correction (sRGB companding)"""
    return 12.92 * v if v <= 0.0031308 else (1.0 + 0.055) * math.pow(v, 1.0 / 2.4) - 0.055


def _inverse_compand(v: float) -> float:
    """Gamma correction (inverse sRGB companding)"""
    return math.pow((v + 0.055) / (1.0 + 0.055), 2.4) if v > 0.04045 else v / 12.92


def _rescale(r: float, g: float, b: float) -> tuple[float, float, float]:
    # Scale down so the dominant channel is 1.0, keeping the ratios
    if r > g and r > b and r > 1.0:
        return 1.0, g / r, b / r
    if g > r and g > b and g > 1.0:
        return r / g, 1.0, b / g
    if b > r and b > g and b > 1.0:
        return r / b, g / b, 1.0
    return r, g, b


def xy_to_hue_sat(xy, gamut: Gamut = GAMUT_DEFAULT) -> tuple[int, int]:
    """
    Transform bridge xy values [0.0000, 1.0000] into host hue [0, 360] and saturation [0, 100].
    """
    x, y = closest_point_in_gamut((xy[0], xy[1]), gamut)
    if y == 0.0:
        y = 0.0001
    z = 1.0 - x - y
    Y = 1.0
    X = (Y / y) * x
    Z = (Y / y) * z
    r = X * _XYZ_TO_RGB[0][0] + Y * _XYZ_TO_RGB[0][1] + Z * _XYZ_TO_RGB[0][2]
    g = X * _XYZ_TO_RGB[1][0] + Y * _XYZ_TO_RGB[1][1] + Z * _XYZ_TO_RGB[1][2]
    b = X * _XYZ_TO_RGB[2][0] + Y * _XYZ_TO_RGB[2][1] + Z * _XYZ_TO_RGB[2][2]
    r, g, b = _rescale(r, g, b)
    r, g, b = _compand(r), _compand(g), _compand(b)
    r, g, b = _rescale(r, g, b)

    # RGB to HSV
    M = max(r, g, b)
    m = min(r, g, b)
    C = M - m
    S = 0.0 if M == 0.0 else C / M
    S = min(S, 1.0)  # negative RGB
    if C == 0.0:
        H = 0.0
    elif M == r:
        H = (g - b) / C
        if H < 0.0:
            H += 6.0
    elif M == g:
        H = (b - r) / C + 2.0
    else:
        H = (r - g) / C + 4.0
    H /= 6.0
    hue = min(360, max(0, round_half_up(H * 360.0)))
    sat = min(100, max(0, round_half_up(S * 100.0)))
    return hue, sat


def hue_sat_to_xy(hue: float, sat: float, gamut: Gamut = GAMUT_DEFAULT) -> tuple[float, float]:
    """
    Transform host hue [0, 360] and saturation [0, 100] into bridge xy values, rounded to 4 decimals.
    """
    # HSV to RGB, full value
    H = (hue / 360.0) * 6.0
    S = sat / 100.0
    V = 1.0
    C = V * S
    m = V - C
    x = C * (1.0 - abs((H % 2.0) - 1.0))
    match int(math.floor(H)) % 6:
        case 0: r, g, b = C + m, x + m, m
        case 1: r, g, b = x + m, C + m, m
        case 2: r, g, b = m, C + m, x + m
        case 3: r, g, b = m, x + m, C + m
        case 4: r, g, b = x + m, m, C + m
        case _: r, g, b = C + m, m, x + m

    # RGB to XYZ to xy
    lr, lg, lb = _inverse_compand(r), _inverse_compand(g), _inverse_compand(b)
    X = lr * _RGB_TO_XYZ[0][0] + lg * _RGB_TO_XYZ[0][1] + lb * _RGB_TO_XYZ[0][2]
    Y = lr * _RGB_TO_XYZ[1][0] + lg * _RGB_TO_XYZ[1][1] + lb * _RGB_TO_XYZ[1][2]
    Z = lr * _RGB_TO_XYZ[2][0] + lg * _RGB_TO_XYZ[2][1] + lb * _RGB_TO_XYZ[2][2]
    total = X + Y + Z
    p = (0.0, 0.0) if total == 0.0 else (X / total, Y / total)
    q = closest_point_in_gamut(p, gamut)
    return (round(q[0], 4), round(q[1], 4))


# Scalar conversions between bridge and host ranges

def bri_to_percent(bri: int) -> int:
    return round_half_up(bri * 100.0 / Const.MAX_BRI)

def percent_to_bri(percent: int) -> int:
    return min(Const.MAX_BRI, max(0, round_half_up(percent * Const.MAX_BRI / 100.0)))

def hue_to_degrees(hue: int) -> int:
    return round_half_up(hue * 360.0 / Const.MAX_HUE)

def degrees_to_hue(degrees: int) -> int:
    return min(Const.MAX_HUE, max(0, round_half_up(degrees * Const.MAX_HUE / 360.0)))

def sat_to_percent(sat: int) -> int:
    return round_half_up(sat * 100.0 / Const.MAX_SAT)

def percent_to_sat(percent: int) -> int:
    return min(Const.MAX_SAT, max(0, round_half_up(percent * Const.MAX_SAT / 100.0)))
