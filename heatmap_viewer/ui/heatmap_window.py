"""
Heatmap GUI using PyQt6 - pops out as a standalone window.

Displays the newest "orderbook-update" frame from a QueueEventSink:
- Header with coin and frame counters
- SVG heatmap scaled to the window
"""

from __future__ import annotations

import logging
import sys

from PyQt6.QtCore import QByteArray, QTimer
from PyQt6.QtGui import QColor, QFont
from PyQt6.QtSvgWidgets import QSvgWidget
from PyQt6.QtWidgets import QApplication, QLabel, QMainWindow, QVBoxLayout, QWidget

from ..engine.events import ORDERBOOK_UPDATE_EVENT, QueueEventSink

logger = logging.getLogger(__name__)

# Colors
BG_COLOR = QColor(0, 0, 0)
HEADER_BG = QColor(30, 41, 59)
TEXT_COLOR = QColor(248, 250, 252)

POLL_INTERVAL_MS = 50


class HeatmapWindow(QMainWindow):
    """Main heatmap window."""

    def __init__(self, sink: QueueEventSink, coin: str) -> None:
        super().__init__()
        self.sink = sink
        self.coin = coin
        self._frames: int = 0

        self.setWindowTitle(f"Order Book Heatmap - {coin}")
        self.setMinimumSize(960, 540)
        self.setStyleSheet(f"background-color: {BG_COLOR.name()}; color: {TEXT_COLOR.name()};")

        self._setup_ui()
        self._setup_timer()

    def _setup_ui(self) -> None:
        """Build the UI."""
        central = QWidget()
        self.setCentralWidget(central)
        layout = QVBoxLayout(central)
        layout.setContentsMargins(0, 0, 0, 0)

        self.header = QLabel("Connecting...")
        self.header.setFont(QFont("Consolas", 12, QFont.Weight.Bold))
        self.header.setStyleSheet(f"background-color: {HEADER_BG.name()}; padding: 6px;")
        layout.addWidget(self.header)

        self.svg_widget = QSvgWidget()
        layout.addWidget(self.svg_widget, stretch=1)

    def _setup_timer(self) -> None:
        """Setup timer to poll the frame queue."""
        self.timer = QTimer()
        self.timer.timeout.connect(self._poll_frames)
        self.timer.start(POLL_INTERVAL_MS)

    def _poll_frames(self) -> None:
        """Show the newest frame, skipping any that piled up in between."""
        event = self.sink.latest()
        if event is None or event.name != ORDERBOOK_UPDATE_EVENT:
            return

        svg = event.payload.get('svg')
        if not svg:
            return

        self._frames += 1
        self.svg_widget.load(QByteArray(svg.encode('utf-8')))
        self.header.setText(
            f"  {self.coin}  │  Frames: {self._frames}  │  Dropped: {self.sink.dropped}"
        )


def run_gui(sink: QueueEventSink, coin: str) -> None:
    """Run the GUI application (blocking)."""
    app = QApplication(sys.argv)
    app.setStyle("Fusion")

    window = HeatmapWindow(sink, coin)
    window.show()

    app.exec()
