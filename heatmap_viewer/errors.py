"""
Exception hierarchy for Heatmap Viewer.

Everything raised inside the engine derives from HeatmapViewerError so that
callers can tell engine failures apart from programming errors.
"""

from __future__ import annotations


class HeatmapViewerError(Exception):
    """Base class for all engine errors."""


class TransportError(HeatmapViewerError):
    """Connect, send or receive failed on the feed connection. Recoverable."""


class MessageDecodeError(HeatmapViewerError):
    """Inbound message is not valid JSON or lacks required book fields."""


class LevelParseError(MessageDecodeError):
    """A single price level could not be parsed into a valid (price, size)."""


class ChannelClosed(HeatmapViewerError):
    """The update channel was closed by either side."""
