import os
import sys

import numpy as np
import pytest

import sgturbo.sg_simulator as sim
from sgturbo.sg_backend import _cupy_is_usable, get_xp, to_host
from sgturbo.sg_errors import AllocationError, NumericalInstabilityError, PlanCreationError
from sgturbo.sg_fft import FftPlanPair
from sgturbo.sg_io import load_energy_csv, read_datbin
from sgturbo.sg_simulator import SgConfig, run_sg, sg_sample, sg_step


class RecordingSink:
    def __init__(self):
        self.snapshots = []
        self.energy_calls = 0

    def write_snapshot(self, plotnum, field):
        self.snapshots.append((plotnum, field))

    def write_energy(self, series):
        self.energy_calls += 1


class FailingSink(RecordingSink):
    def write_snapshot(self, plotnum, field):
        raise OSError("disk full")


def capture_states(monkeypatch):
    created = []
    real = sim.create_sg_state

    def spy(cfg, verbose=True):
        S = real(cfg, verbose=verbose)
        created.append(S)
        return S

    monkeypatch.setattr(sim, "create_sg_state", spy)
    return created


def capture_plans(monkeypatch):
    created = []

    class RecordingPlans(FftPlanPair):
        def __init__(self, *args, **kwargs):
            super().__init__(*args, **kwargs)
            created.append(self)

    monkeypatch.setattr(sim, "FftPlanPair", RecordingPlans)
    return created


class _OutOfMemory:
    @staticmethod
    def zeros(shape, dtype=None):
        raise MemoryError("out of memory")


def drift_of(series):
    en = series.view()["en"]
    return np.abs(en - en[0]).max() / abs(en[0])


# ---------------------------------------------------------------------------

def test_zero_initial_condition_stays_zero(make_cfg):
    cfg = make_cfg(Nx=64, Ny=64, Lx=5.0, Ly=5.0, dt=0.001, Nt=10, plotgap=11, ic="zero")
    res = run_sg(cfg, verbose=False)

    assert not res.u.any()
    assert len(res.series) == 2
    assert not res.series.view()["en"].any()
    assert res.steps == 10
    assert res.t == pytest.approx(0.01)
    assert res.backend == "cpu"


def test_snapshot_cadence(make_cfg):
    sink = RecordingSink()
    cfg = make_cfg(Nx=16, Ny=16, Lx=1.0, Ly=1.0, dt=0.01, Nt=10, plotgap=3)
    res = run_sg(cfg, sink=sink, verbose=False)

    d = res.series.view()
    np.testing.assert_array_equal(d["plot"], [0, 1, 2, 3, 4])
    np.testing.assert_allclose(d["t"], [0.0, 0.03, 0.06, 0.09, 0.10], atol=1e-12)

    assert [p for p, _ in sink.snapshots] == [1, 2, 3]
    assert all(f.shape == (16, 16) for _, f in sink.snapshots)
    assert sink.energy_calls == 1


def test_snapshots_are_independent_host_copies(make_cfg):
    sink = RecordingSink()
    cfg = make_cfg(Nx=16, Ny=16, Lx=1.0, Ly=1.0, dt=0.01, Nt=4, plotgap=1)
    res = run_sg(cfg, sink=sink, verbose=False)

    fields = [f for _, f in sink.snapshots]
    assert len(fields) == 4
    assert fields[0] is not fields[-1]
    assert not np.shares_memory(fields[0], fields[-1])
    assert np.abs(fields[0] - fields[-1]).max() > 0.0
    # the last plotgap snapshot is the final field, but not the same buffer
    np.testing.assert_array_equal(fields[-1], res.u)
    assert not np.shares_memory(fields[-1], res.u)


def test_no_plotgap_sample_when_nt_is_zero(make_cfg):
    sink = RecordingSink()
    res = run_sg(make_cfg(Nx=8, Ny=8, Lx=1.0, Ly=1.0, Nt=0, plotgap=1), sink=sink, verbose=False)

    np.testing.assert_array_equal(res.series.view()["plot"], [0, 1])
    assert sink.snapshots == []
    assert res.steps == 0


def test_plans_released_after_run(make_cfg, monkeypatch):
    created = capture_states(monkeypatch)
    run_sg(make_cfg(Nx=16, Ny=16, Lx=1.0, Ly=1.0, Nt=3, plotgap=1), verbose=False)

    (S,) = created
    assert S.plans.released
    assert S.host_plans.released
    assert S.u is None


def test_plans_released_when_sink_fails(make_cfg, monkeypatch):
    created = capture_states(monkeypatch)
    with pytest.raises(OSError, match="disk full"):
        run_sg(make_cfg(Nx=16, Ny=16, Lx=1.0, Ly=1.0, Nt=3, plotgap=1), sink=FailingSink(), verbose=False)

    (S,) = created
    assert S.plans.released
    assert S.host_plans.released


def test_runs_are_deterministic(make_cfg):
    kw = dict(Nx=32, Ny=16, Lx=2.0, Ly=1.0, dt=0.01, Nt=20, plotgap=5, ic="ring",
              ic_params={"radius": 2.0})
    a = run_sg(make_cfg(**kw), verbose=False)
    b = run_sg(make_cfg(**kw), verbose=False)

    np.testing.assert_array_equal(a.u, b.u)
    np.testing.assert_array_equal(a.series.view()["en"], b.series.view()["en"])


def test_verbose_run_prints_header(make_cfg, capsys):
    run_sg(make_cfg(Nx=8, Ny=8, Lx=1.0, Ly=1.0, Nt=2, plotgap=1), verbose=True)
    out = capsys.readouterr().out

    assert "--- INITIALIZING SGTURBO" in out
    assert " effective = cpu" in out
    assert " PLOT     2" in out
    assert "FPS" in out


# ---------------------------------------------------------------------------
# Accuracy
# ---------------------------------------------------------------------------

class TestAccuracy:
    def test_energy_is_conserved_to_second_order(self, make_cfg):
        T = 2.0
        drifts = []
        for dt in (0.02, 0.01):
            Nt = int(round(T / dt))
            cfg = make_cfg(Nx=32, Ny=32, Lx=2.0, Ly=2.0, dt=dt, Nt=Nt,
                           plotgap=Nt // 20, start="taylor")
            drifts.append(drift_of(run_sg(cfg, verbose=False).series))

        assert drifts[1] < 1e-3
        assert drifts[0] / drifts[1] > 2.5

    def test_second_order_in_time(self, make_cfg):
        T = 0.4

        def final_field(dt):
            Nt = int(round(T / dt))
            cfg = make_cfg(Nx=32, Ny=32, Lx=2.0, Ly=2.0, dt=dt, Nt=Nt,
                           plotgap=Nt, start="taylor")
            return run_sg(cfg, verbose=False).u

        ref = final_field(0.0025)
        err_coarse = np.abs(final_field(0.04) - ref).max()
        err_fine = np.abs(final_field(0.02) - ref).max()

        assert 3.0 < err_coarse / err_fine < 5.0


# ---------------------------------------------------------------------------
# Failure modes
# ---------------------------------------------------------------------------

def test_non_finite_field_is_reported(make_state):
    S = make_state(Nx=16, Ny=16, Lx=1.0, Ly=1.0, dt=0.01)
    S.u[3, 4] = np.nan

    with pytest.raises(NumericalInstabilityError, match="non-finite"):
        sg_sample(S)

    e, _ = sg_sample(S, check_finite=False)
    assert np.isnan(e.total)

    sg_step(S)
    assert np.isnan(S.u).all()


@pytest.mark.parametrize("kw,msg", [
    ({"Nt": -1}, "Nt"),
    ({"plotgap": 0}, "plotgap"),
    ({"dt": 0.0}, "dt"),
    ({"dt": float("nan")}, "dt"),
    ({"Lx": -1.0}, "positive"),
    ({"ic": "breather"}, "unknown initial condition"),
])
def test_config_validation(make_cfg, kw, msg):
    cfg = make_cfg(Nx=8, Ny=8, **kw)
    with pytest.raises(ValueError, match=msg):
        run_sg(cfg, verbose=False)


def test_allocation_failure_releases_plans(make_cfg, monkeypatch):
    plans = capture_plans(monkeypatch)
    real_alloc = sim._alloc

    def alloc(xp, shape, dtype, what):
        if what == "vold":
            return real_alloc(_OutOfMemory, shape, dtype, what)
        return real_alloc(xp, shape, dtype, what)

    monkeypatch.setattr(sim, "_alloc", alloc)
    with pytest.raises(AllocationError, match="vold"):
        run_sg(make_cfg(Nx=16, Ny=16, Lx=1.0, Ly=1.0, Nt=2, plotgap=1), verbose=False)

    assert [p.name for p in plans] == ["device", "host"]
    assert all(p.released for p in plans)


@pytest.mark.parametrize("target", ["laplacian_symbol", "initial_condition"])
def test_memory_error_during_init_is_an_allocation_error(make_cfg, monkeypatch, target):
    plans = capture_plans(monkeypatch)

    def out_of_memory(*args, **kwargs):
        raise MemoryError("out of memory")

    monkeypatch.setattr(sim, target, out_of_memory)
    with pytest.raises(AllocationError, match="16x16"):
        run_sg(make_cfg(Nx=16, Ny=16, Lx=1.0, Ly=1.0, Nt=2, plotgap=1), verbose=False)

    assert len(plans) == 2
    assert all(p.released for p in plans)


def test_odd_grid_fails_plan_creation(make_cfg):
    with pytest.raises(PlanCreationError):
        run_sg(make_cfg(Nx=63, Ny=64, Nt=1, plotgap=1), verbose=False)


def test_unknown_backend():
    with pytest.raises(ValueError, match="backend"):
        get_xp("tpu")


@pytest.mark.skipif(_cupy_is_usable(), reason="a CUDA device is available")
def test_gpu_backend_unavailable():
    with pytest.raises(RuntimeError):
        get_xp("gpu")


def test_to_host_copies_numpy_input():
    a = np.arange(6.0).reshape(2, 3)
    h = to_host(a)

    np.testing.assert_array_equal(h, a)
    assert not np.shares_memory(h, a)
    a[0, 0] = -1.0
    assert h[0, 0] == 0.0


def test_auto_backend_falls_back_to_cpu():
    if _cupy_is_usable():
        pytest.skip("a CUDA device is available")
    xp, backend = get_xp("auto")
    assert xp is np
    assert backend == "cpu"


# ---------------------------------------------------------------------------
# Output directory and CLI
# ---------------------------------------------------------------------------

def test_outdir_snapshots_and_energy(make_cfg, tmp_path):
    out = tmp_path / "run"
    cfg = make_cfg(Nx=16, Ny=8, Lx=1.0, Ly=0.5, dt=0.01, Nt=4, plotgap=2, outdir=str(out))
    res = run_sg(cfg, verbose=False)

    assert sorted(os.listdir(out)) == ["energy.csv", "u00000001.datbin", "u00000002.datbin"]
    np.testing.assert_array_equal(read_datbin(str(out / "u00000002.datbin"), 16, 8), res.u)

    d = load_energy_csv(str(out / "energy.csv"))
    np.testing.assert_array_equal(d["plot"], [0, 1, 2, 3])
    np.testing.assert_array_equal(d["en"], res.series.view()["en"])


def test_pgm_snapshots(make_cfg, tmp_path):
    out = tmp_path / "pgm"
    cfg = make_cfg(Nx=16, Ny=16, Lx=1.0, Ly=1.0, dt=0.01, Nt=2, plotgap=1,
                   outdir=str(out), snapshot_format="pgm")
    run_sg(cfg, verbose=False)

    assert (out / "u00000001.pgm").exists()
    assert (out / "u00000002.pgm").exists()


def test_main_reads_positional_arguments(monkeypatch, tmp_path, capsys):
    out = tmp_path / "cli"
    monkeypatch.setattr(sys, "argv", [
        "sgturbo", "16", "8", "4", "2", "1.0", "0.5", "0.01", "cpu", "single_mode", str(out),
    ])
    sim.main()

    text = capsys.readouterr().out
    assert " Nx  = 16" in text
    assert " Ny  = 8" in text
    assert " ic  = single_mode (copy)" in text
    assert (out / "energy.csv").exists()
    assert (out / "u00000002.datbin").exists()


def test_main_defaults(monkeypatch):
    seen = {}

    def fake_run(cfg, sink=None, verbose=True):
        seen["cfg"] = cfg

    monkeypatch.setattr(sim, "run_sg", fake_run)
    monkeypatch.setattr(sys, "argv", ["sgturbo"])
    sim.main()

    cfg = seen["cfg"]
    assert isinstance(cfg, SgConfig)
    assert (cfg.Nx, cfg.Ny, cfg.Nt, cfg.plotgap) == (128, 128, 500, 50)
    assert (cfg.Lx, cfg.Ly, cfg.dt) == (5.0, 5.0, 0.001)
    assert cfg.ic == "gaussian"
    assert cfg.outdir is None
