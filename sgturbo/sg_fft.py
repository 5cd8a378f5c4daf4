"""
sg_fft.py — real ↔ complex 2D transform pair for a fixed (Nx, Ny)

Layout (C order, x fastest):
  • physical  : (Ny, Nx)          real
  • spectral  : (Ny, Nx//2 + 1)   complex, Hermitian half-spectrum along x

Both directions are UNNORMALIZED, like cuFFT:

    inverse(forward(f)) == Nx * Ny * f

On the GPU the pair holds two reusable cuFFT plans (R2C / C2R) built once via
cupyx.scipy.fft.get_fft_plan. On the CPU scipy.fft is used with a fixed worker
count; there is no plan object to keep, but the pair has the same lifecycle so
the driver treats both backends identically.
"""

from sgturbo.sg_backend import get_fft_module
from sgturbo.sg_errors import PlanCreationError


def _is_pow2(n: int) -> bool:
    return n > 0 and (n & (n - 1)) == 0


class FftPlanPair:
    """
    Forward/inverse plan pair bound to one grid size and one memory space.

    Use as a context manager, or call release() exactly once when done.
    """

    def __init__(self, xp, backend: str, Nx: int, Ny: int, workers=None, name: str = "device"):
        self.xp = xp
        self.backend = backend
        self.name = name
        self.workers = workers

        if int(Nx) != Nx or int(Ny) != Ny:
            raise PlanCreationError(f"[{name}] grid size must be integral, got Nx={Nx}, Ny={Ny}")
        Nx, Ny = int(Nx), int(Ny)
        if Nx < 2 or Ny < 2 or Nx % 2 or Ny % 2:
            raise PlanCreationError(
                f"[{name}] cannot plan a real 2D FFT for Nx={Nx}, Ny={Ny} "
                "(both sizes must be even and >= 2)"
            )
        if not (_is_pow2(Nx) and _is_pow2(Ny)):
            print(f" [FFT] warning: Nx={Nx}, Ny={Ny} not powers of two; transforms will be slower")

        self.Nx = Nx
        self.Ny = Ny
        self.NK = Nx // 2 + 1
        self.real_shape = (Ny, Nx)
        self.spec_shape = (Ny, self.NK)

        self._fft = get_fft_module(backend)
        if self._fft is None:
            raise PlanCreationError(f"[{name}] no FFT module available for backend={backend!r}")

        self._plan_r2c = None
        self._plan_c2r = None
        self._released = False

        if backend == "gpu":
            try:
                self._plan_r2c = self._fft.get_fft_plan(
                    xp.empty(self.real_shape, dtype=xp.float64),
                    axes=(-2, -1),
                    value_type="R2C",
                )
                self._plan_c2r = self._fft.get_fft_plan(
                    xp.empty(self.spec_shape, dtype=xp.complex128),
                    shape=self.real_shape,
                    axes=(-2, -1),
                    value_type="C2R",
                )
            except Exception as e:
                raise PlanCreationError(f"[{name}] cuFFT plan creation failed for {self.real_shape}: {e}") from e

    # ------------------------------------------------------------------

    @property
    def released(self) -> bool:
        return self._released

    def _kwargs(self, plan):
        if self.backend == "gpu":
            return {"plan": plan}
        return {"workers": self.workers}

    def _check_live(self):
        if self._released:
            raise PlanCreationError(f"[{self.name}] FFT plan for {self.real_shape} used after release")

    def forward(self, u):
        """Real (Ny, Nx) → complex (Ny, Nx//2+1), unnormalized."""
        self._check_live()
        if tuple(u.shape) != self.real_shape:
            raise ValueError(f"forward: expected shape {self.real_shape}, got {tuple(u.shape)}")
        return self._fft.rfft2(u, axes=(-2, -1), **self._kwargs(self._plan_r2c))

    def inverse(self, v):
        """Complex (Ny, Nx//2+1) → real (Ny, Nx), unnormalized."""
        self._check_live()
        if tuple(v.shape) != self.spec_shape:
            raise ValueError(f"inverse: expected shape {self.spec_shape}, got {tuple(v.shape)}")
        # norm="forward" puts the 1/N on the forward side, i.e. none here
        return self._fft.irfft2(
            v,
            s=self.real_shape,
            axes=(-2, -1),
            norm="forward",
            **self._kwargs(self._plan_c2r),
        )

    def release(self) -> None:
        if self._released:
            return
        self._plan_r2c = None
        self._plan_c2r = None
        self._released = True

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.release()
        return False

    def __repr__(self) -> str:
        state = "released" if self._released else "live"
        return f"FftPlanPair({self.name}, {self.backend}, Nx={self.Nx}, Ny={self.Ny}, {state})"
