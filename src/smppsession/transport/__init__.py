"""
SMPP Transport Layer

This module provides the transport contract consumed by the session and an
in-memory implementation of it.
"""

from .channel import TransportChannel
from .memory import AutoAckPeer, MemoryChannel

__all__ = [
    'TransportChannel',
    'MemoryChannel',
    'AutoAckPeer',
]
