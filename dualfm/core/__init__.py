"""Core (UI-independent) layer of DualFM."""
