"""
sg_grid.py — grid, wavenumbers and initial conditions

Domain: x ∈ [−π·Lx, π·Lx), y ∈ [−π·Ly, π·Ly), doubly periodic.

Wavenumbers follow the FFT frequency ordering

    0, 1, …, N/2, −N/2+1, …, −1      (times 2π / (2π·L) = 1/L)

with the Nyquist entry kept positive. Arrays are returned on the host; the
driver moves what it needs onto the device once.
"""

from dataclasses import dataclass

import numpy as np
import scipy.fft as _spfft


@dataclass
class SgGrid:
    Nx: int
    Ny: int
    Lx: float
    Ly: float

    x: np.ndarray           # (Nx,)
    y: np.ndarray           # (Ny,)
    kx: np.ndarray          # (Nx,)
    ky: np.ndarray          # (Ny,)

    @property
    def dx(self) -> float:
        return 2.0 * np.pi * self.Lx / self.Nx

    @property
    def dy(self) -> float:
        return 2.0 * np.pi * self.Ly / self.Ny

    @property
    def cell_area(self) -> float:
        """Geometric area of one grid cell."""
        return self.dx * self.dy

    @property
    def energy_measure(self) -> float:
        """Per-cell weight of the energy sums: Lx·Ly / (Nx·Ny)."""
        return self.Lx * self.Ly / (self.Nx * self.Ny)

    @property
    def NK(self) -> int:
        return self.Nx // 2 + 1

    @property
    def kx_half(self) -> np.ndarray:
        """kx restricted to the non-negative half kept by the real transform."""
        return self.kx[: self.NK]

    def mesh(self):
        """(X, Y), both of shape (Ny, Nx)."""
        return np.meshgrid(self.x, self.y, indexing="xy")


def fft_wavenumbers(N: int, L: float) -> np.ndarray:
    """Integer FFT ordering (0..N/2, −N/2+1..−1) scaled by 1/L."""
    m = np.arange(N)
    m = np.where(m <= N // 2, m, m - N)
    return m.astype(np.float64) / float(L)


def make_grid(Nx: int, Ny: int, Lx: float, Ly: float) -> SgGrid:
    if Lx <= 0.0 or Ly <= 0.0:
        raise ValueError(f"domain multipliers must be positive, got Lx={Lx}, Ly={Ly}")

    x = (-1.0 + 2.0 * np.arange(Nx) / Nx) * np.pi * Lx
    y = (-1.0 + 2.0 * np.arange(Ny) / Ny) * np.pi * Ly

    return SgGrid(
        Nx=int(Nx),
        Ny=int(Ny),
        Lx=float(Lx),
        Ly=float(Ly),
        x=x,
        y=y,
        kx=fft_wavenumbers(Nx, Lx),
        ky=fft_wavenumbers(Ny, Ly),
    )


def laplacian_symbol(grid: SgGrid, xp=np):
    """
    Eigenvalues of the spectral Laplacian on the half-spectrum, shape (Ny, NK):

        λ(j, i) = −(kx[i]² + ky[j]²)
    """
    kx = xp.asarray(grid.kx_half)
    ky = xp.asarray(grid.ky)
    return -(kx[None, :] * kx[None, :] + ky[:, None] * ky[:, None])


def derivative_wavenumbers(grid: SgGrid):
    """
    (kx_half, ky) for first derivatives, Nyquist entries zeroed.

    An odd derivative of a real field has no representable Nyquist component.
    """
    kx = grid.kx_half.copy()
    ky = grid.ky.copy()
    kx[grid.Nx // 2] = 0.0
    ky[grid.Ny // 2] = 0.0
    return kx, ky


# ---------------------------------------------------------------------------
# Initial conditions
# ---------------------------------------------------------------------------

def _spectral_laplacian(u: np.ndarray, grid: SgGrid) -> np.ndarray:
    uh = _spfft.rfft2(u)
    return _spfft.irfft2(laplacian_symbol(grid) * uh, s=u.shape)


def taylor_history(u: np.ndarray, grid: SgGrid, dt: float) -> np.ndarray:
    """
    u(−dt) for a field released from rest:

        u(−dt) = u + ½·dt²·(Δu − sin u) + O(dt⁴)
    """
    return u + 0.5 * dt * dt * (_spectral_laplacian(u, grid) - np.sin(u))


def gaussian(grid: SgGrid, amplitude: float = 0.5):
    X, Y = grid.mesh()
    return amplitude * np.exp(-(X * X + Y * Y))


def ring(grid: SgGrid, radius: float = 3.0):
    X, Y = grid.mesh()
    r = np.sqrt(X * X + Y * Y)
    return 4.0 * np.arctan(np.exp(radius - r))


def single_mode(grid: SgGrid, dt: float, eps: float = 1.0e-3, mx: int = 1, my: int = 1):
    """
    ε·cos(kx·x)·cos(ky·y) standing wave and its value one step back, taken from
    the linear dispersion relation ω² = 1 + kx² + ky².
    """
    X, Y = grid.mesh()
    kx = mx / grid.Lx
    ky = my / grid.Ly
    omega = np.sqrt(1.0 + kx * kx + ky * ky)
    shape = np.cos(kx * X) * np.cos(ky * Y)
    u = eps * shape
    uold = eps * np.cos(omega * dt) * shape
    return u, uold


INITIAL_CONDITIONS = ("gaussian", "zero", "single_mode", "ring")


def initial_condition(name: str, grid: SgGrid, dt: float, start: str = "copy", **params):
    """
    Build (u, uold), both host float64 arrays of shape (Ny, Nx).

    start = "copy"   → uold = u (released from rest, first-order start)
    start = "taylor" → uold = taylor_history(u) (second-order start)

    single_mode ignores `start`: its history level is exact for the linear
    problem.
    """
    if name == "single_mode":
        return single_mode(grid, dt, **params)

    if name == "gaussian":
        u = gaussian(grid, **params)
    elif name == "zero":
        u = np.zeros((grid.Ny, grid.Nx), dtype=np.float64)
    elif name == "ring":
        u = ring(grid, **params)
    else:
        raise ValueError(f"unknown initial condition {name!r}, expected one of {INITIAL_CONDITIONS}")

    if start == "copy":
        uold = u.copy()
    elif start == "taylor":
        uold = taylor_history(u, grid, dt)
    else:
        raise ValueError(f"unknown start {start!r}, expected 'copy' or 'taylor'")

    return u, uold
