"""
sg_simulator.py — 2D sine-Gordon spectral solver (NumPy / CuPy)

    u_tt − u_xx − u_yy = −sin(u)      doubly periodic, x ∈ [−πLx, πLx), y ∈ [−πLy, πLy)

Layout:
  • u, uold          : shape (Ny, Nx)         real     — physical field, one step apart
  • v, vold          : shape (Ny, Nx//2 + 1)  complex  — unnormalized rfft2 of u, uold
  • nonlinhat        : shape (Ny, Nx//2 + 1)  complex  — rfft2(sin u), rebuilt every step
  • lap4             : shape (Ny, Nx//2 + 1)  real     — −¼(kx² + ky²)

Time step (semi-implicit, second order): linear term averaged over three
levels with weights ¼, ½, ¼ and solved per mode in closed form, sin(u) explicit:

    vnew = [ ¼λ(2v + vold) + (2v − vold)/dt² − N̂ ] / (1/dt² − ¼λ),   λ = −|k|²

The denominator is ≥ 1/dt², so the division is always defined.

Backends:
  • CPU:  NumPy + scipy.fft
  • GPU:  CuPy + cuFFT plans (if installed); same code through the `xp` alias.
"""

import math
import sys
import time
from dataclasses import dataclass
from typing import Literal, Optional

import numpy as np

from sgturbo.sg_backend import get_xp, to_host
from sgturbo.sg_energy import EnergySample, sg_energy
from sgturbo.sg_errors import AllocationError, NumericalInstabilityError
from sgturbo.sg_fft import FftPlanPair
from sgturbo.sg_grid import INITIAL_CONDITIONS, SgGrid, initial_condition, laplacian_symbol, make_grid
from sgturbo.sg_io import EnergySeries, NullSink, SnapshotWriter


# ---------------------------------------------------------------------------
# Run configuration
# ---------------------------------------------------------------------------

@dataclass
class SgConfig:
    Nx: int = 128
    Ny: int = 128
    Nt: int = 500
    plotgap: int = 50
    Lx: float = 5.0
    Ly: float = 5.0
    dt: float = 0.001

    backend: Literal["cpu", "gpu", "auto"] = "auto"
    ic: str = "gaussian"
    start: str = "copy"
    ic_params: Optional[dict] = None

    outdir: Optional[str] = None
    snapshot_format: str = "datbin"
    check_finite: bool = True
    workers: Optional[int] = None

    def validate(self) -> None:
        if self.Nt < 0:
            raise ValueError(f"Nt must be >= 0, got {self.Nt}")
        if self.plotgap < 1:
            raise ValueError(f"plotgap must be >= 1, got {self.plotgap}")
        if not (self.dt > 0.0) or not math.isfinite(self.dt):
            raise ValueError(f"dt must be a positive finite number, got {self.dt}")
        if self.Lx <= 0.0 or self.Ly <= 0.0:
            raise ValueError(f"Lx, Ly must be positive, got Lx={self.Lx}, Ly={self.Ly}")
        if self.ic not in INITIAL_CONDITIONS:
            raise ValueError(f"unknown initial condition {self.ic!r}, expected one of {INITIAL_CONDITIONS}")


# ---------------------------------------------------------------------------
# Solver state
# ---------------------------------------------------------------------------

@dataclass
class SgState:
    xp: any                 # numpy or cupy module
    backend: str            # "cpu" or "gpu"

    Nx: int
    Ny: int
    NK: int                 # Nx//2 + 1
    dt: float
    grid: SgGrid

    t: float = 0.0
    it: int = 0
    scale: float = 1.0      # 1/(Nx*Ny)

    # Physical fields (device)
    u: any = None           # (Ny, Nx) float64
    uold: any = None        # (Ny, Nx) float64

    # Spectral fields (device)
    v: any = None           # (Ny, NK) complex128
    vold: any = None        # (Ny, NK) complex128
    nonlinhat: any = None   # (Ny, NK) complex128
    vnew: any = None        # (Ny, NK) complex128, scratch

    # Per-mode coefficients of the implicit update (device)
    lap4: any = None        # ¼λ
    denom: any = None       # 1/dt² − ¼λ
    inv_dt2: float = 0.0

    # FFT plan pairs: device (hot loop) and host (diagnostics)
    plans: Optional[FftPlanPair] = None
    host_plans: Optional[FftPlanPair] = None

    def sync(self):
        """For a CuPy backend, force synchronization at convenient checkpoints."""
        if self.backend == "gpu":
            self.xp.cuda.Stream.null.synchronize()  # type: ignore[attr-defined]

    def release(self) -> None:
        """Drop plans and buffers. Safe to call more than once."""
        for pair in (self.plans, self.host_plans):
            if pair is not None:
                pair.release()
        self.u = self.uold = None
        self.v = self.vold = self.nonlinhat = self.vnew = None
        self.lap4 = self.denom = None


def _alloc(xp, shape, dtype, what: str):
    try:
        return xp.zeros(shape, dtype=dtype)
    except MemoryError as e:  # cupy's OutOfMemoryError is a MemoryError too
        raise AllocationError(f"cannot allocate {what} {shape} {np.dtype(dtype).name}: {e}") from e


def create_sg_state(cfg: SgConfig, verbose: bool = True) -> SgState:
    """
    Init: validate, build plans, allocate buffers, load the initial condition
    and transform it. Every failure here is fatal; plans built before a
    failure are released before the exception propagates.
    """
    cfg.validate()
    xp, effective_backend = get_xp(cfg.backend)
    if verbose:
        print(f" requested = {cfg.backend}")
        print(f" effective = {effective_backend} (xp = {'cupy' if effective_backend == 'gpu' else 'numpy'})")

    plans = FftPlanPair(xp, effective_backend, cfg.Nx, cfg.Ny, name="device")
    host_plans = None
    try:
        host_plans = FftPlanPair(np, "cpu", cfg.Nx, cfg.Ny, workers=cfg.workers, name="host")

        Nx, Ny = plans.Nx, plans.Ny
        NK = plans.NK
        grid = make_grid(Nx, Ny, cfg.Lx, cfg.Ly)

        S = SgState(
            xp=xp,
            backend=effective_backend,
            Nx=Nx,
            Ny=Ny,
            NK=NK,
            dt=float(cfg.dt),
            grid=grid,
            scale=1.0 / float(Nx * Ny),
            inv_dt2=1.0 / (float(cfg.dt) * float(cfg.dt)),
            plans=plans,
            host_plans=host_plans,
        )

        S.u = _alloc(xp, (Ny, Nx), xp.float64, "u")
        S.uold = _alloc(xp, (Ny, Nx), xp.float64, "uold")
        S.v = _alloc(xp, (Ny, NK), xp.complex128, "v")
        S.vold = _alloc(xp, (Ny, NK), xp.complex128, "vold")
        S.nonlinhat = _alloc(xp, (Ny, NK), xp.complex128, "nonlinhat")
        S.vnew = _alloc(xp, (Ny, NK), xp.complex128, "vnew")

        try:
            S.lap4 = 0.25 * laplacian_symbol(grid, xp)
            S.denom = S.inv_dt2 - S.lap4

            u0, uold0 = initial_condition(cfg.ic, grid, cfg.dt, start=cfg.start, **(cfg.ic_params or {}))
            load_initial_field(S, u0, uold0)
        except MemoryError as e:
            raise AllocationError(f"cannot build coefficients or initial field for {Nx}x{Ny}: {e}") from e
    except BaseException:
        plans.release()
        if host_plans is not None:
            host_plans.release()
        raise

    return S


def load_initial_field(S: SgState, u0, uold0) -> None:
    """Host → device copy of (u, uold) and the matching spectra v, vold."""
    xp = S.xp
    S.u[...] = xp.asarray(u0, dtype=xp.float64)
    S.uold[...] = xp.asarray(uold0, dtype=xp.float64)
    S.v[...] = S.plans.forward(S.u)
    S.vold[...] = S.plans.forward(S.uold)
    S.t = 0.0
    S.it = 0


# ---------------------------------------------------------------------------
# One time step
# ---------------------------------------------------------------------------

def sg_step(S: SgState) -> None:
    """
    (u, uold, v, vold) → (u', u, v', v)

    u doubles as scratch for sin(u) between the history copy and the inverse
    transform; read uold or v for the previous field in that window.
    """
    xp = S.xp
    plans = S.plans

    # 1) history
    S.uold[...] = S.u

    # 2) nonlinearity, in place
    xp.sin(S.u, out=S.u)

    # 3) N̂ = F[sin u]
    S.nonlinhat[...] = plans.forward(S.u)

    # 4) closed-form implicit solve per mode (unnormalized spectra throughout)
    v = S.v
    vold = S.vold
    S.vnew[...] = (
        S.lap4 * (2.0 * v + vold)
        + (2.0 * v - vold) * S.inv_dt2
        - S.nonlinhat
    ) / S.denom

    # 5) shift spectral history
    vold[...] = v
    v[...] = S.vnew

    # 6) u = F⁻¹[scale · v]; the one normalization of this round trip
    S.vnew *= S.scale
    S.u[...] = plans.inverse(S.vnew)

    S.t += S.dt
    S.it += 1


# ---------------------------------------------------------------------------
# Diagnostics hook
# ---------------------------------------------------------------------------

def sg_sample(S: SgState, check_finite: bool = True):
    """
    Device → host copy of u, uold and their energy.

    Returns (EnergySample, u_host).
    """
    u_h = to_host(S.u)
    uold_h = to_host(S.uold)

    if check_finite and not (np.isfinite(u_h).all() and np.isfinite(uold_h).all()):
        raise NumericalInstabilityError(
            f"non-finite field at step {S.it} (t={S.t:g}); reduce dt or increase resolution"
        )

    return sg_energy(u_h, uold_h, S.grid, S.dt, S.host_plans), u_h


# ---------------------------------------------------------------------------
# Main driver
# ---------------------------------------------------------------------------

@dataclass
class SgRunResult:
    series: EnergySeries
    u: np.ndarray           # final field (host)
    uold: np.ndarray        # final previous field (host)
    t: float
    steps: int
    elapsed: float
    backend: str


def _print_sample(plotnum: int, t: float, e: EnergySample) -> None:
    print(f" PLOT {plotnum:5d} T={t:10.4f} EN={e.total:14.8e} "
          f"KIN={e.kinetic:12.5e} STR={e.strain:12.5e} POT={e.potential:12.5e}")


def run_sg(cfg: SgConfig, sink=None, verbose: bool = True) -> SgRunResult:
    if verbose:
        print("--- INITIALIZING SGTURBO (NumPy/CuPy) ---")
        print(f" Nx  = {cfg.Nx}")
        print(f" Ny  = {cfg.Ny}")
        print(f" Lx  = {cfg.Lx}")
        print(f" Ly  = {cfg.Ly}")
        print(f" dt  = {cfg.dt}")
        print(f" Nt  = {cfg.Nt}")
        print(f" plotgap = {cfg.plotgap}")
        print(f" ic  = {cfg.ic} ({cfg.start})")

    if sink is None:
        sink = SnapshotWriter(cfg.outdir, cfg.snapshot_format) if cfg.outdir else NullSink()

    S = create_sg_state(cfg, verbose=verbose)
    try:
        series = EnergySeries.for_run(cfg.Nt, cfg.plotgap)

        e0, _ = sg_sample(S, cfg.check_finite)
        series.append(0, S.t, e0)
        if verbose:
            _print_sample(0, S.t, e0)

        plotnum = 0
        t0 = time.perf_counter()

        for n in range(1, cfg.Nt + 1):
            sg_step(S)

            if n % cfg.plotgap == 0:
                plotnum += 1
                e, u_h = sg_sample(S, cfg.check_finite)
                series.append(plotnum, S.t, e)
                sink.write_snapshot(plotnum, u_h)
                if verbose:
                    _print_sample(plotnum, S.t, e)

        S.sync()
        elap = time.perf_counter() - t0

        e_final, u_final = sg_sample(S, cfg.check_finite)
        series.append(plotnum + 1, S.t, e_final)
        uold_final = to_host(S.uold)

        if verbose:
            fps = (cfg.Nt / elap) if elap > 0 else 0.0
            print(f" Elapsed time for {cfg.Nt} steps (s) = {elap:8g}")
            print(f" Final T={S.t:8g}  EN={e_final.total:14.8e}  dEN={e_final.total - e0.total:10.3e}")
            print(f" FPS = {fps:7g}")

        sink.write_energy(series)

        return SgRunResult(
            series=series,
            u=u_final,
            uold=uold_final,
            t=S.t,
            steps=S.it,
            elapsed=elap,
            backend=S.backend,
        )
    finally:
        S.release()


def main():
    args = sys.argv[1:]
    Nx = int(args[0]) if len(args) > 0 else 128
    Ny = int(args[1]) if len(args) > 1 else Nx
    Nt = int(args[2]) if len(args) > 2 else 500
    plotgap = int(args[3]) if len(args) > 3 else 50
    Lx = float(args[4]) if len(args) > 4 else 5.0
    Ly = float(args[5]) if len(args) > 5 else Lx
    dt = float(args[6]) if len(args) > 6 else 0.001

    BACK = args[7].lower() if len(args) > 7 else "auto"
    if BACK not in ("cpu", "gpu", "auto"):
        BACK = "auto"

    ic = args[8] if len(args) > 8 else "gaussian"
    outdir = args[9] if len(args) > 9 else None

    cfg = SgConfig(
        Nx=Nx, Ny=Ny, Nt=Nt, plotgap=plotgap,
        Lx=Lx, Ly=Ly, dt=dt,
        backend=BACK, ic=ic, outdir=outdir,
    )
    run_sg(cfg)


if __name__ == "__main__":
    main()
