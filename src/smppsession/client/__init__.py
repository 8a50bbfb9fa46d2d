"""
SMPP Client Module

Caller-facing transceiver client built on the session state machine.
"""

from .client import Message, PartResult, SMPPClient

__all__ = ['SMPPClient', 'Message', 'PartResult']
