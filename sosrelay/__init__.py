"""sosrelay - offline-durable emergency alert relay."""

__version__ = "1.0.0"
