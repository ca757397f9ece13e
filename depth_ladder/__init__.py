"""
Depth Ladder - Live price ladder aggregation for a single instrument.

Architecture:
- datafeed/: WebSocket connection and message decoding
- engine/: Ladder aggregation (sparse depth levels -> dense price rows)
- ui/: Ladder visualization (Textual TUI)
"""

__version__ = "0.1.0"
