# sg_colormaps.py
import colorsys

import numpy as np


def field_to_u8(field, lo: int = 0, hi: int = 255) -> np.ndarray:
    """
    Min/max normalize a real 2D field to uint8 in [lo, hi].
    A flat field maps to the middle gray.
    """
    field = np.asarray(field, dtype=np.float64)
    minv = float(field.min())
    maxv = float(field.max())
    rng = maxv - minv

    if abs(rng) <= 1.0e-12:
        return np.full(field.shape, (lo + hi + 1) // 2, dtype=np.uint8)

    norm = (field - minv) / rng
    pix = np.rint(lo + norm * (hi - lo))
    return np.clip(pix, lo, hi).astype(np.uint8)


# Simple helper: build a 256x3 uint8 LUT from color stops in 0..1
# stops: list of (pos, (r,g,b)) with pos in [0,1], r,g,b in [0,255]
def _make_lut_from_stops(stops, size: int = 256) -> np.ndarray:
    stops = sorted(stops, key=lambda s: s[0])
    positions = np.array([p for p, _ in stops], dtype=np.float64) * (size - 1)
    colors = np.array([c for _, c in stops], dtype=np.float64)

    idx = np.arange(size, dtype=np.float64)
    lut = np.empty((size, 3), dtype=np.uint8)
    for ch in range(3):
        lut[:, ch] = np.interp(idx, positions, colors[:, ch]).astype(np.uint8)
    return lut


def _make_gray_lut() -> np.ndarray:
    ramp = np.arange(256, dtype=np.uint8)
    return np.stack([ramp, ramp, ramp], axis=1)


def _make_fire_lut() -> np.ndarray:
    """'fire' palette via HSL ramp: red → yellow, brightening."""
    lut = np.zeros((256, 3), dtype=np.uint8)
    for x in range(256):
        h = (85.0 * (x / 255.0)) / 360.0
        l = min(1.0, x / 128.0)
        r, g, b = colorsys.hls_to_rgb(h, l, 1.0)
        lut[x] = (int(r * 255), int(g * 255), int(b * 255))
    return lut


def _make_seismic_lut() -> np.ndarray:
    # diverging blue → white → red, good for signed fields like u_t
    return _make_lut_from_stops([
        (0.0, (0, 0, 76)),
        (0.25, (0, 0, 255)),
        (0.5, (255, 255, 255)),
        (0.75, (255, 0, 0)),
        (1.0, (128, 0, 0)),
    ])


def _make_viridis_lut() -> np.ndarray:
    return _make_lut_from_stops([
        (0.0,  (68,  1, 84)),
        (0.25, (59, 82, 139)),
        (0.50, (33, 145, 140)),
        (0.75, (94, 201, 98)),
        (1.0,  (253, 231, 37)),
    ])


def _make_inferno_lut() -> np.ndarray:
    return _make_lut_from_stops([
        (0.0,  (0,   0,   4)),
        (0.25, (87,  15, 109)),
        (0.50, (187, 55,  84)),
        (0.75, (249, 142, 8)),
        (1.0,  (252, 255, 164)),
    ])


def _make_turbo_lut() -> np.ndarray:
    return _make_lut_from_stops([
        (0.0,  (48,  18,  59)),
        (0.25, (31,  120, 180)),
        (0.50, (78,  181, 75)),
        (0.75, (241, 208, 29)),
        (1.0,  (133, 32,  26)),
    ])


COLOR_MAPS = {
    "Gray": _make_gray_lut(),
    "Seismic": _make_seismic_lut(),
    "Viridis": _make_viridis_lut(),
    "Inferno": _make_inferno_lut(),
    "Turbo": _make_turbo_lut(),
    "Fire": _make_fire_lut(),
}

DEFAULT_CMAP_NAME = "Seismic"


def apply_lut(pixels: np.ndarray, name: str) -> np.ndarray:
    """H×W uint8 → H×W×3 uint8 through a named colormap (gray if unknown)."""
    lut = COLOR_MAPS.get(name, COLOR_MAPS["Gray"])
    return lut[np.asarray(pixels, dtype=np.uint8)]
