"""Curses widgets used by DualFM."""
