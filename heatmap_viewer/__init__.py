"""
Heatmap Viewer - Order book liquidity heatmap for Hyperliquid L2 books.

Architecture:
- datafeed/: WebSocket transport, wire decoding, local order book + history window
- engine/: Aggregation loop, SVG heatmap rendering, event sinks
- ui/: Standalone PyQt6 window displaying the latest heatmap frame
"""

__version__ = "0.1.0"
