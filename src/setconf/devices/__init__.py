"""Device session interface consumed by the config engine."""
from .base import DeviceSession

__all__ = [
    "DeviceSession",
]
