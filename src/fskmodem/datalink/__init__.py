"""Data Link Layer - 8N1 byte framing and bit synchronization."""

from .framer import ByteFramer, CountdownSync, CounterSync, SyncPolicy

__all__ = ["ByteFramer", "CountdownSync", "CounterSync", "SyncPolicy"]
