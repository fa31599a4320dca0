"""DualFM: dual-pane terminal file manager with archive browsing."""

__version__ = "0.1.0"
