"""
SMPP Transport Channel

This module defines the contract between the session and whatever carries
PDUs to the SMSC. A channel owns the byte stream and the PDU codec; the
session only sees decoded ``Pdu`` events and hands back ``Pdu`` values to
send.

Events are delivered through optional callback attributes, in the order the
channel observes them, on the event loop thread:

- ``on_connect()`` once the connection is established
- ``on_pdu(pdu)`` for every decoded inbound PDU
- ``on_error(error)`` for transport failures
- ``on_close()`` when the peer closes the connection
"""

import logging
from abc import ABC, abstractmethod
from typing import Callable, Optional

from ..protocol import Pdu

logger = logging.getLogger(__name__)


class TransportChannel(ABC):
    """Abstract PDU transport used by the session"""

    def __init__(self) -> None:
        self.on_connect: Optional[Callable[[], None]] = None
        self.on_pdu: Optional[Callable[[Pdu], None]] = None
        self.on_error: Optional[Callable[[Exception], None]] = None
        self.on_close: Optional[Callable[[], None]] = None

    @property
    @abstractmethod
    def is_open(self) -> bool:
        """True while the channel can accept PDUs for sending"""

    @abstractmethod
    def open(self, host: str, port: int) -> None:
        """Start connecting to ``host:port``; completion is signalled by ``on_connect``"""

    @abstractmethod
    def send(self, pdu: Pdu) -> None:
        """Encode and write a PDU"""

    @abstractmethod
    def close(self) -> None:
        """Tear down the connection; must be safe to call more than once"""

    def _emit_connect(self) -> None:
        if self.on_connect:
            try:
                self.on_connect()
            except Exception as e:
                logger.exception(f'Error in connect handler: {e}')

    def _emit_pdu(self, pdu: Pdu) -> None:
        if self.on_pdu:
            try:
                self.on_pdu(pdu)
            except Exception as e:
                logger.exception(f'Error in PDU handler: {e}')
        else:
            logger.debug(f'Dropping {pdu!r}: no PDU handler')

    def _emit_error(self, error: Exception) -> None:
        if self.on_error:
            try:
                self.on_error(error)
            except Exception as e:
                logger.exception(f'Error in transport error handler: {e}')

    def _emit_close(self) -> None:
        if self.on_close:
            try:
                self.on_close()
            except Exception as e:
                logger.exception(f'Error in close handler: {e}')
