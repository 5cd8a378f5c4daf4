# sg_wrapper.py
import numpy as np

from sgturbo.sg_backend import to_host
from sgturbo.sg_colormaps import field_to_u8
from sgturbo.sg_energy import energy_density
from sgturbo.sg_simulator import SgConfig, create_sg_state, load_initial_field, sg_sample, sg_step
from sgturbo.sg_grid import initial_condition


class SineGordonSimulator:
    """
    Stepping front-end for the viewer: owns one SgState and turns the
    current field into uint8 frames.
    """

    VAR_U = 0
    VAR_UT = 1
    VAR_ENERGY = 2

    def __init__(
        self,
        N: int = 256,
        L: float = 10.0,
        dt: float = 0.02,
        ic: str = "ring",
        backend: str = "auto",
        max_steps: int = 5000,
    ) -> None:
        self.N = int(N)
        self.L = float(L)
        self.dt = float(dt)
        self.ic = ic
        self.backend = backend
        self.max_steps = int(max_steps)
        self.variable = self.VAR_U

        self.state = None
        self._build()

    # ------------------------------------------------------------------
    def _config(self) -> SgConfig:
        return SgConfig(
            Nx=self.N, Ny=self.N,
            Lx=self.L, Ly=self.L,
            dt=self.dt,
            Nt=self.max_steps,
            backend=self.backend,
            ic=self.ic,
        )

    def _build(self) -> None:
        S = create_sg_state(self._config(), verbose=False)
        if self.state is not None:
            self.state.release()
        self.state = S

    @property
    def px(self) -> int:
        return self.N

    @property
    def py(self) -> int:
        return self.N

    # ------------------------------------------------------------------
    def step(self, n: int = 1) -> None:
        for _ in range(n):
            sg_step(self.state)

    def reset_field(self) -> None:
        S = self.state
        u0, uold0 = initial_condition(self.ic, S.grid, S.dt)
        load_initial_field(S, u0, uold0)

    def _rebuild_with(self, name: str, value) -> None:
        prev = getattr(self, name)
        setattr(self, name, value)
        try:
            self._build()
        except Exception:
            setattr(self, name, prev)
            raise

    def set_N(self, N: int) -> None:
        self._rebuild_with("N", int(N))

    def set_ic(self, ic: str) -> None:
        self._rebuild_with("ic", ic)

    def set_variable(self, var: int) -> None:
        self.variable = var

    def get_time(self) -> float:
        return float(self.state.t)

    def get_iteration(self) -> int:
        return int(self.state.it)

    def energy(self) -> float:
        sample, _ = sg_sample(self.state, check_finite=False)
        return sample.total

    def get_field(self) -> np.ndarray:
        S = self.state
        u = to_host(S.u)
        if self.variable == self.VAR_UT:
            return (u - to_host(S.uold)) / S.dt
        if self.variable == self.VAR_ENERGY:
            return energy_density(u, to_host(S.uold), S.grid, S.dt, S.host_plans)
        return u

    def get_frame_pixels(self) -> np.ndarray:
        """H×W uint8, y increasing upwards."""
        return np.ascontiguousarray(field_to_u8(self.get_field())[::-1, :])

    def close(self) -> None:
        if self.state is not None:
            self.state.release()
            self.state = None
