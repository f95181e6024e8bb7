"""Package version, read by hatchling during builds."""

__version__ = "0.1.0"
