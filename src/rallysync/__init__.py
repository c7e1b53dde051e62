"""RallySync: synchronized attack timing with voice countdowns."""

__version__ = "2.0.0"
