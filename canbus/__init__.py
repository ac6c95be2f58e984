"""CAN/CAN FD frames, buffering, signal packing and an abstract scheduling bus."""

__version__ = "0.1.0"
__all__ = ["types", "buffer", "timer", "matrix", "devices", "base"]