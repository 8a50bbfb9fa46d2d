"""
SMPP Session Module

The session state machine and the request/response correlation it relies
on.
"""

from .correlator import Correlator, PendingRequest, SequenceGenerator
from .session import Credentials, Session, SessionState

__all__ = [
    'Session',
    'SessionState',
    'Credentials',
    'Correlator',
    'PendingRequest',
    'SequenceGenerator',
]
