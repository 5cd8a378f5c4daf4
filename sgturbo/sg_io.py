"""
sg_io.py — snapshot and energy-series persistence

Files written under `outdir`:

  u00000050.datbin   raw float64 field, C order (Ny, Nx)     fmt="datbin"
  u00000050.pgm      8-bit grayscale image of the field       fmt="pgm"
  energy.csv         plot,t,en,enstr,enkin,enpot
"""

import csv
import os

import numpy as np

from sgturbo.sg_colormaps import field_to_u8

ENERGY_COLUMNS = ("plot", "t", "en", "enstr", "enkin", "enpot")


class EnergySeries:
    """Preallocated, append-only energy history indexed by plot number."""

    def __init__(self, capacity: int):
        capacity = int(capacity)
        if capacity < 1:
            raise ValueError(f"energy series capacity must be >= 1, got {capacity}")
        self.capacity = capacity
        self.count = 0

        self.plot = np.zeros(capacity, dtype=np.int64)
        self.t = np.zeros(capacity, dtype=np.float64)
        self.en = np.zeros(capacity, dtype=np.float64)
        self.enstr = np.zeros(capacity, dtype=np.float64)
        self.enkin = np.zeros(capacity, dtype=np.float64)
        self.enpot = np.zeros(capacity, dtype=np.float64)

    @classmethod
    def for_run(cls, Nt: int, plotgap: int) -> "EnergySeries":
        # step 0 + every plotgap-th step + the final sample
        return cls(Nt // plotgap + 2)

    def append(self, plotnum: int, t: float, sample) -> None:
        n = self.count
        if n >= self.capacity:
            raise IndexError(f"energy series full ({self.capacity} samples)")
        self.plot[n] = plotnum
        self.t[n] = t
        self.en[n] = sample.total
        self.enstr[n] = sample.strain
        self.enkin[n] = sample.kinetic
        self.enpot[n] = sample.potential
        self.count = n + 1

    def __len__(self) -> int:
        return self.count

    def view(self) -> dict:
        n = self.count
        return {name: getattr(self, name)[:n] for name in ENERGY_COLUMNS}


class NullSink:
    """Persistence sink that keeps nothing."""

    def write_snapshot(self, plotnum: int, field) -> None:
        pass

    def write_energy(self, series: EnergySeries) -> None:
        pass


class SnapshotWriter:
    def __init__(self, outdir: str, fmt: str = "datbin"):
        if fmt not in ("datbin", "pgm"):
            raise ValueError(f"unknown snapshot format {fmt!r} (expected datbin or pgm)")
        self.outdir = outdir
        self.fmt = fmt
        os.makedirs(outdir, exist_ok=True)

    def snapshot_path(self, plotnum: int) -> str:
        return os.path.join(self.outdir, f"u{plotnum:08d}.{self.fmt}")

    def write_snapshot(self, plotnum: int, field) -> None:
        path = self.snapshot_path(plotnum)
        field = np.asarray(field, dtype=np.float64)
        if self.fmt == "datbin":
            np.ascontiguousarray(field).tofile(path)
        else:
            dump_field_as_pgm(field, path)

    def write_energy(self, series: EnergySeries) -> None:
        path = os.path.join(self.outdir, "energy.csv")
        write_energy_csv(series, path)
        print(f" [IO] Wrote {path} ({len(series)} samples)")


def read_datbin(path: str, Nx: int, Ny: int) -> np.ndarray:
    return np.fromfile(path, dtype=np.float64).reshape(Ny, Nx)


def dump_field_as_pgm(field, filename: str) -> None:
    """Binary PGM (P5), pixel values 1..255 spanning min..max of the field."""
    field = np.asarray(field, dtype=np.float64)
    h, w = field.shape
    pixels = field_to_u8(field, lo=1, hi=255)

    with open(filename, "wb") as f:
        f.write(f"P5\n{w} {h}\n255\n".encode("ascii"))
        f.write(pixels.tobytes())


def write_energy_csv(series: EnergySeries, path: str) -> None:
    cols = series.view()
    with open(path, "w", newline="") as f:
        wr = csv.writer(f)
        wr.writerow(ENERGY_COLUMNS)
        for i in range(len(series)):
            wr.writerow([int(cols["plot"][i])] + [repr(float(cols[c][i])) for c in ENERGY_COLUMNS[1:]])


def load_energy_csv(path: str) -> dict:
    out = {name: [] for name in ENERGY_COLUMNS}
    with open(path, newline="") as f:
        r = csv.DictReader(f)
        for row in r:
            out["plot"].append(int(row["plot"]))
            for name in ENERGY_COLUMNS[1:]:
                out[name].append(float(row[name]))
    return {name: np.asarray(vals) for name, vals in out.items()}
