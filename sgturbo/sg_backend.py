"""
sg_backend.py — NumPy / CuPy backend selection for sgturbo

  • CPU:  NumPy arrays, scipy.fft transforms
  • GPU:  CuPy arrays (if installed and CUDA is usable), cupyx.scipy.fft

Everything downstream works through the `xp` alias returned by get_xp().
"""

from typing import Literal

import numpy as _np
import scipy.fft as _spfft

try:
    import cupy as _cp
except ImportError:  # CuPy is optional
    _cp = None

try:
    import cupyx.scipy.fft as _cpfft  # type: ignore
except ImportError:
    _cpfft = None

BACKENDS = ("cpu", "gpu", "auto")

# Device count seen by the first probe; None until probed.
_DEVICE_COUNT = None


def _cupy_is_usable() -> bool:
    """
    True when the sine-Gordon kernels can run on CuPy: the import worked and
    the CUDA runtime reports at least one device. Probed once per process.
    """
    global _DEVICE_COUNT

    if _DEVICE_COUNT is None:
        if _cp is None:
            _DEVICE_COUNT = 0
        else:
            try:
                _DEVICE_COUNT = int(_cp.cuda.runtime.getDeviceCount())
            except Exception:  # no driver, no runtime libraries, or a driver too old
                _DEVICE_COUNT = 0

    return _DEVICE_COUNT > 0


def get_xp(backend: Literal["cpu", "gpu", "auto"] = "auto"):
    """
    Resolve a requested backend to (array module, effective backend name).

    "auto" prefers the GPU and quietly falls back to NumPy; an explicit "gpu"
    request that cannot be met is an error.
    """
    if backend not in BACKENDS:
        raise ValueError(f"unknown backend {backend!r} (expected cpu, gpu or auto)")

    if backend == "cpu":
        return _np, "cpu"

    if _cupy_is_usable():
        return _cp, "gpu"

    if backend == "auto":
        return _np, "cpu"

    if _cp is None:
        raise RuntimeError("backend='gpu' requested but CuPy is not installed")
    raise RuntimeError("backend='gpu' requested but CuPy finds no usable CUDA device")


def get_fft_module(backend: str):
    """FFT module for a backend: scipy.fft on CPU, cupyx.scipy.fft on GPU."""
    if backend == "gpu":
        return _cpfft
    return _spfft


def to_host(a) -> _np.ndarray:
    """
    Device → host copy. Always a fresh NumPy array, also for NumPy input, so
    the result never aliases a live solver buffer.
    """
    if _cp is not None and isinstance(a, _cp.ndarray):
        return _cp.asnumpy(a)
    return _np.array(a, copy=True)
