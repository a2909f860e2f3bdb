"""Software FSK modem: Bell 103/202 style modulation and demodulation."""

__version__ = "0.1.0"
