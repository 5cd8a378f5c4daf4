# sg_main.py
import sys
import time
from typing import Optional

import numpy as np
from PyQt6.QtCore import Qt, QSize, QTimer
from PyQt6.QtGui import QImage, QPixmap, QFontDatabase, QIcon
from PyQt6.QtWidgets import (
    QApplication,
    QMainWindow,
    QWidget,
    QLabel,
    QPushButton,
    QFileDialog,
    QVBoxLayout,
    QHBoxLayout,
    QComboBox,
    QStatusBar,
)

from sgturbo.sg_colormaps import COLOR_MAPS, DEFAULT_CMAP_NAME, apply_lut
from sgturbo.sg_grid import INITIAL_CONDITIONS
from sgturbo.sg_wrapper import SineGordonSimulator


class MainWindow(QMainWindow):
    def __init__(self, sim: SineGordonSimulator) -> None:
        super().__init__()

        self.sim = sim
        self.current_cmap_name = DEFAULT_CMAP_NAME

        # --- central image label ---
        self.image_label = QLabel()
        self.image_label.setMinimumSize(1, 1)
        self.image_label.setAlignment(Qt.AlignmentFlag.AlignCenter)

        # --- small icon buttons ---
        self.start_button = QPushButton()
        self.start_button.setIcon(QIcon.fromTheme("media-playback-start"))
        self.start_button.setToolTip("Start simulation")
        self.start_button.setFixedSize(36, 36)
        self.start_button.setIconSize(QSize(24, 24))

        self.stop_button = QPushButton()
        self.stop_button.setIcon(QIcon.fromTheme("media-playback-stop"))
        self.stop_button.setToolTip("Stop simulation")
        self.stop_button.setFixedSize(36, 36)
        self.stop_button.setIconSize(QSize(24, 24))

        self.reset_button = QPushButton("Reset")
        self.save_button = QPushButton("Save")

        self._status_update_counter = 0

        # Variable selector
        self.variable_combo = QComboBox()
        self.variable_combo.addItems(["u", "u_t", "E"])

        # Grid-size selector (N)
        self.n_combo = QComboBox()
        self.n_combo.addItems(["64", "128", "256", "512", "1024"])
        self.n_combo.setCurrentText(str(self.sim.N))

        # Initial condition selector
        self.ic_combo = QComboBox()
        self.ic_combo.addItems([name for name in INITIAL_CONDITIONS if name != "zero"])
        self.ic_combo.setCurrentText(self.sim.ic)

        # Colormap selector
        self.cmap_combo = QComboBox()
        self.cmap_combo.addItems(list(COLOR_MAPS.keys()))
        self.cmap_combo.setCurrentText(DEFAULT_CMAP_NAME)

        # Steps selector
        self.steps_combo = QComboBox()
        self.steps_combo.addItems(["1000", "2000", "5000", "20000"])
        self.steps_combo.setCurrentText(str(self.sim.max_steps))

        # --- layout ---
        row1 = QHBoxLayout()
        row1.addWidget(self.start_button)
        row1.addWidget(self.stop_button)
        row1.addWidget(self.reset_button)
        row1.addWidget(self.save_button)
        row1.addWidget(self.steps_combo)
        row1.addStretch()

        row2 = QHBoxLayout()
        row2.addWidget(self.variable_combo)
        row2.addWidget(self.cmap_combo)
        row2.addWidget(self.n_combo)
        row2.addWidget(self.ic_combo)
        row2.addStretch()

        central = QWidget()
        layout = QVBoxLayout(central)
        layout.addWidget(self.image_label, stretch=0)
        layout.addLayout(row1)
        layout.addLayout(row2)
        self.setCentralWidget(central)

        # --- status bar ---
        self.status = QStatusBar()
        self.setStatusBar(self.status)
        mono = QFontDatabase.systemFont(QFontDatabase.SystemFont.FixedFont)
        self.status.setFont(mono)

        # Timer-based simulation (no QThread)
        self.timer = QTimer(self)
        self.timer.setInterval(0)
        self.timer.timeout.connect(self._on_timer)

        # signal connections
        self.start_button.clicked.connect(self.on_start_clicked)
        self.stop_button.clicked.connect(self.on_stop_clicked)
        self.reset_button.clicked.connect(self.on_reset_clicked)
        self.save_button.clicked.connect(self.on_save_clicked)
        self.variable_combo.currentIndexChanged.connect(self.on_variable_changed)
        self.cmap_combo.currentTextChanged.connect(self.on_cmap_changed)
        self.n_combo.currentTextChanged.connect(self.on_n_changed)
        self.ic_combo.currentTextChanged.connect(self.on_ic_changed)
        self.steps_combo.currentTextChanged.connect(self.on_steps_changed)

        title_backend = "CuPy" if self.sim.state.backend == "gpu" else "NumPy"
        self.setWindowTitle(f"2D sine-Gordon ({title_backend})")
        self.resize(self.sim.px + 40, self.sim.py + 120)

        self._last_pixels_rgb: Optional[np.ndarray] = None
        self._restart_fps_clock()

        self._update_image(self.sim.get_frame_pixels())
        self._update_status(None)

        self.timer.start()

    # ------------------------------------------------------------------
    def _restart_fps_clock(self) -> None:
        self._sim_start_time = time.time()
        self._sim_start_iter = self.sim.get_iteration()

    def _redraw(self) -> None:
        self._update_image(self.sim.get_frame_pixels())
        self._update_status(None)

    def on_start_clicked(self) -> None:
        if not self.timer.isActive():
            self.timer.start()

    def on_stop_clicked(self) -> None:
        if self.timer.isActive():
            self.timer.stop()

    def on_reset_clicked(self) -> None:
        self.on_stop_clicked()
        self.sim.reset_field()
        self._restart_fps_clock()
        self._redraw()

    def on_save_clicked(self) -> None:
        path, _ = QFileDialog.getSaveFileName(
            self,
            "Save frame",
            "frame.png",
            "PNG images (*.png);;All files (*)",
        )
        if path:
            pm = self.image_label.pixmap()
            if pm:
                pm.save(path, "PNG")

    def on_variable_changed(self, index: int) -> None:
        mapping = {
            0: self.sim.VAR_U,
            1: self.sim.VAR_UT,
            2: self.sim.VAR_ENERGY,
        }
        self.sim.set_variable(mapping.get(index, self.sim.VAR_U))
        self._update_image(self.sim.get_frame_pixels())

    def on_cmap_changed(self, name: str) -> None:
        if name in COLOR_MAPS:
            self.current_cmap_name = name
            self._update_image(self.sim.get_frame_pixels())

    def on_n_changed(self, value: str) -> None:
        self.sim.set_N(int(value))
        self._restart_fps_clock()
        self._redraw()

        # let the window shrink to the new image
        self.setMinimumSize(0, 0)
        self.setMaximumSize(16777215, 16777215)
        self.resize(self.image_label.pixmap().width() + 40, self.image_label.pixmap().height() + 120)

        screen = QApplication.primaryScreen().availableGeometry()
        g = self.geometry()
        g.moveCenter(screen.center())
        self.setGeometry(g)

    def on_ic_changed(self, name: str) -> None:
        self.sim.set_ic(name)
        self._restart_fps_clock()
        self._redraw()

    def on_steps_changed(self, value: str) -> None:
        self.sim.max_steps = int(value)

    # ------------------------------------------------------------------
    def _on_timer(self) -> None:
        self.sim.step()
        self._status_update_counter += 1

        # Update GUI only every 10 frames
        UPDATE_INTERVAL = 10
        if self._status_update_counter >= UPDATE_INTERVAL:
            self._update_image(self.sim.get_frame_pixels())

            elapsed = time.time() - self._sim_start_time
            steps = self.sim.get_iteration() - self._sim_start_iter
            fps = (steps / elapsed) if elapsed > 0 and steps > 0 else None
            self._update_status(fps)

            self._status_update_counter = 0

        # auto-reset using STEPS combo
        if self.sim.get_iteration() >= self.sim.max_steps:
            self.sim.reset_field()
            self._restart_fps_clock()

    # ------------------------------------------------------------------
    def _update_image(self, pixels: np.ndarray) -> None:
        """Map H×W uint8 pixels through the colormap and show them."""
        pixels = np.asarray(pixels, dtype=np.uint8)
        if pixels.ndim != 2:
            return

        rgb = np.ascontiguousarray(apply_lut(pixels, self.current_cmap_name))
        h, w, _ = rgb.shape
        self._last_pixels_rgb = rgb  # keep alive
        qimg = QImage(rgb.data, w, h, 3 * w, QImage.Format.Format_RGB888)

        self.image_label.setPixmap(QPixmap.fromImage(qimg))
        self.image_label.adjustSize()

    def _update_status(self, fps: Optional[float]) -> None:
        fps_str = f"{fps:4.0f}" if fps is not None else " N/a"
        txt = (
            f"FPS: {fps_str} | Iter: {self.sim.get_iteration():5d} "
            f"| T: {self.sim.get_time():7.3f} | E: {self.sim.energy():10.5f}"
        )
        self.status.showMessage(txt)

    # ------------------------------------------------------------------
    def keyPressEvent(self, event) -> None:
        rotations = {
            Qt.Key.Key_P: self.variable_combo,
            Qt.Key.Key_C: self.cmap_combo,
            Qt.Key.Key_S: self.n_combo,
            Qt.Key.Key_I: self.ic_combo,
        }
        combo = rotations.get(event.key())
        if combo is not None:
            combo.setCurrentIndex((combo.currentIndex() + 1) % combo.count())
            return

        super().keyPressEvent(event)

    def closeEvent(self, event) -> None:
        self.timer.stop()
        self.sim.close()
        super().closeEvent(event)


# ----------------------------------------------------------------------
def main() -> None:
    args = sys.argv[1:]
    N = int(args[0]) if len(args) > 0 else 256
    backend = args[1].lower() if len(args) > 1 else "auto"
    if backend not in ("cpu", "gpu", "auto"):
        backend = "auto"

    app = QApplication(sys.argv)
    sim = SineGordonSimulator(N=N, backend=backend)
    window = MainWindow(sim)
    screen = app.primaryScreen().availableGeometry()
    g = window.geometry()
    g.moveCenter(screen.center())
    window.setGeometry(g)
    window.show()
    sys.exit(app.exec())


if __name__ == "__main__":
    main()
