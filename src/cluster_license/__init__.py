"""Engine license verification and distribution."""

__version__ = "0.1.0"
