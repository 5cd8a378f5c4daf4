#!/usr/bin/env python3
import os
import sys
from glob import glob
from typing import List

import matplotlib.pyplot as plt
import numpy as np

from sgturbo.sg_io import load_energy_csv

# Default: every run directory below the current one, e.g. ./data/energy.csv
CSV_GLOB = "*/energy.csv"
OUT_PNG = "energy.png"


def label_from_path(path: str) -> str:
    return os.path.basename(os.path.dirname(os.path.abspath(path)))


def relative_drift(en: np.ndarray) -> np.ndarray:
    e0 = en[0]
    if e0 == 0.0:
        return en - e0
    return (en - e0) / abs(e0)


def main(argv: List[str] = None) -> None:
    argv = sys.argv[1:] if argv is None else argv
    files = argv if argv else sorted(glob(CSV_GLOB))
    if not files:
        raise SystemExit(f"No CSV files found matching {CSV_GLOB}")

    markers = ["o", "s", "^", "D", "v", "x", "*", "+"]
    fig, (ax1, ax2) = plt.subplots(1, 2, figsize=(12, 5))
    fig.canvas.manager.set_window_title("energy_plot")

    for i, fn in enumerate(files):
        d = load_energy_csv(fn)
        lbl = label_from_path(fn)
        m = markers[i % len(markers)]

        # Plot 1: components
        ax1.plot(d["t"], d["en"], marker=m, label=f"{lbl} total")
        ax1.plot(d["t"], d["enkin"], linestyle="--", label=f"{lbl} kinetic")
        ax1.plot(d["t"], d["enstr"], linestyle=":", label=f"{lbl} strain")
        ax1.plot(d["t"], d["enpot"], linestyle="-.", label=f"{lbl} potential")

        # Plot 2: relative drift of the total
        ax2.plot(d["t"], np.abs(relative_drift(d["en"])) + 1e-300, marker=m, label=lbl)

    ax1.set_xlabel("t")
    ax1.set_ylabel("energy")
    ax1.set_title("components")
    ax1.grid(True, linestyle="--", alpha=0.5)
    ax1.legend(loc="best", fontsize="small")

    ax2.set_yscale("log")
    ax2.set_xlabel("t")
    ax2.set_ylabel("|E(t) - E(0)| / |E(0)|")
    ax2.set_title("relative drift")
    ax2.grid(True, which="both", linestyle="--", alpha=0.5)
    ax2.legend(loc="best")

    fig.suptitle("sine-Gordon energy history")
    fig.tight_layout(rect=[0, 0, 1, 0.93])
    fig.savefig(OUT_PNG, dpi=150)
    plt.show()


if __name__ == "__main__":
    main()
