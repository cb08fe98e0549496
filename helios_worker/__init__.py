"""Helios-style job worker: handler dispatch and completion contract."""

__version__ = "0.1.0"
