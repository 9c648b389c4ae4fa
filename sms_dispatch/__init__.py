"""SMS dispatch: carrier fallback routing plus a hardware gateway adapter."""

__version__ = "0.1.0"
