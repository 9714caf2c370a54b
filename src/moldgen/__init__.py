"""Moldgen: displaced double-layer mold cavity meshes from implicit fields."""

__version__ = "0.1.0"
