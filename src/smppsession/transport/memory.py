"""
In-Memory Transport Channel

A ``TransportChannel`` that keeps PDUs as Python values instead of bytes.
Outbound PDUs are recorded and optionally answered by a scripted peer;
inbound PDUs are scheduled on the event loop one at a time, which keeps the
single sequential event stream the session expects.

Used by the test suite and by the scenario driver's demo mode.
"""

import asyncio
import itertools
import logging
import time
from typing import Callable, Iterable, List, Optional

from ..exceptions import SMPPConnectionException
from ..protocol import CommandId, CommandStatus, EsmClass, Pdu, RegisteredDelivery
from ..utils import format_smpp_time, generate_message_id
from .channel import TransportChannel

logger = logging.getLogger(__name__)


class AutoAckPeer:
    """
    Scripted SMSC stand-in.

    Answers bind, submit_sm, enquire_link and unbind requests. Statuses are
    configurable so tests can reject binds or individual submits, and
    commands listed in ``silent_commands`` are swallowed to provoke timeouts.
    With ``send_receipts`` enabled every accepted submit_sm that asked for a
    receipt is followed by a delivery receipt deliver_sm.
    """

    def __init__(
        self,
        bind_status: int = CommandStatus.ESME_ROK,
        submit_status: Optional[Callable[[Pdu], int]] = None,
        send_receipts: bool = False,
        silent_commands: Iterable[int] = (),
        system_id: str = 'MEMSMSC',
    ):
        self.bind_status = bind_status
        self.submit_status = submit_status
        self.send_receipts = send_receipts
        self.silent_commands = set(silent_commands)
        self.system_id = system_id
        self.received: List[Pdu] = []
        self._sequence = itertools.count(1)

    def handle(self, pdu: Pdu) -> List[Pdu]:
        """Return the PDUs the peer sends back in reaction to ``pdu``."""
        self.received.append(pdu)

        if pdu.command_id in self.silent_commands or pdu.is_response:
            return []

        if pdu.command_id == CommandId.BIND_TRANSCEIVER:
            return [pdu.make_response(self.bind_status, system_id=self.system_id)]

        if pdu.command_id == CommandId.SUBMIT_SM:
            return self._handle_submit_sm(pdu)

        if pdu.command_id in (CommandId.ENQUIRE_LINK, CommandId.UNBIND):
            return [pdu.make_response()]

        return [
            Pdu(
                CommandId.GENERIC_NACK,
                sequence_number=pdu.sequence_number,
                command_status=CommandStatus.ESME_RINVCMDID,
            )
        ]

    def _handle_submit_sm(self, pdu: Pdu) -> List[Pdu]:
        status = (
            self.submit_status(pdu) if self.submit_status else CommandStatus.ESME_ROK
        )
        if status != CommandStatus.ESME_ROK:
            return [pdu.make_response(status, message_id='')]

        message_id = generate_message_id()
        replies = [pdu.make_response(message_id=message_id)]

        wants_receipt = pdu.get('registered_delivery', 0) & RegisteredDelivery.SUCCESS_FAILURE
        if self.send_receipts and wants_receipt:
            replies.append(self.delivery_receipt(pdu, message_id))
        return replies

    def delivery_receipt(self, submit: Pdu, message_id: str, stat: str = 'DELIVRD') -> Pdu:
        """Build a deliver_sm receipt for a previously accepted submit_sm."""
        now = format_smpp_time(time.time())[:10]
        text = (
            f'id:{message_id} sub:001 dlvrd:001 '
            f'submit date:{now} done date:{now} '
            f'stat:{stat} err:000 text:'
        )
        return Pdu(
            CommandId.DELIVER_SM,
            sequence_number=next(self._sequence),
            fields={
                'source_addr': submit.get('destination_addr', ''),
                'destination_addr': submit.get('source_addr', ''),
                'esm_class': EsmClass.DELIVERY_RECEIPT,
                'data_coding': 0,
                'short_message': text.encode('ascii'),
                'receipted_message_id': message_id,
            },
        )


class MemoryChannel(TransportChannel):
    """
    Transport channel backed by Python objects.

    Args:
        peer: Optional scripted peer answering outbound PDUs
        auto_connect: Emit ``on_connect`` after ``open()`` without being told to
        connect_delay: Seconds between ``open()`` and the automatic connect
    """

    def __init__(
        self,
        peer: Optional[AutoAckPeer] = None,
        auto_connect: bool = True,
        connect_delay: float = 0.0,
    ):
        super().__init__()
        self.peer = peer
        self.auto_connect = auto_connect
        self.connect_delay = connect_delay
        self.host: Optional[str] = None
        self.port: Optional[int] = None
        self.sent: List[Pdu] = []

        self._open = False
        self._connecting = False
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._connect_handle: Optional[asyncio.TimerHandle] = None

    @property
    def is_open(self) -> bool:
        return self._open

    def open(self, host: str, port: int) -> None:
        if self._open or self._connecting:
            raise SMPPConnectionException(
                'Channel already open', host=host, port=port
            )

        self._loop = asyncio.get_running_loop()
        self.host = host
        self.port = port
        self._connecting = True
        logger.debug(f'Opening in-memory channel to {host}:{port}')

        if self.auto_connect:
            self._connect_handle = self._loop.call_later(
                self.connect_delay, self.accept
            )

    def accept(self) -> None:
        """Complete a pending connection attempt."""
        self._connect_handle = None
        if not self._connecting:
            return
        self._connecting = False
        self._open = True
        self._emit_connect()

    def send(self, pdu: Pdu) -> None:
        if not self._open:
            raise SMPPConnectionException(
                'Channel not open', host=self.host, port=self.port
            )

        self.sent.append(pdu)
        logger.debug(f'Sent {pdu!r}')

        if self.peer is not None:
            for reply in self.peer.handle(pdu):
                self.deliver(reply)

    def deliver(self, pdu: Pdu) -> None:
        """Queue an inbound PDU as if it had just been decoded off the wire."""
        self._call_soon(self._receive, pdu)

    def fail(self, error: Exception) -> None:
        """Queue a transport error event."""
        self._call_soon(self._emit_error, error)

    def drop(self) -> None:
        """Simulate the peer closing the connection."""
        self._call_soon(self._peer_closed)

    def close(self) -> None:
        if self._connect_handle is not None:
            self._connect_handle.cancel()
            self._connect_handle = None
        self._connecting = False
        self._open = False

    def sent_commands(self, command_id: int) -> List[Pdu]:
        """All outbound PDUs with the given command id, in send order."""
        return [pdu for pdu in self.sent if pdu.command_id == command_id]

    def _receive(self, pdu: Pdu) -> None:
        if self._open:
            logger.debug(f'Received {pdu!r}')
            self._emit_pdu(pdu)

    def _peer_closed(self) -> None:
        if not self._open:
            return
        self._open = False
        self._emit_close()

    def _call_soon(self, callback: Callable, *args) -> None:
        loop = self._loop or asyncio.get_running_loop()
        loop.call_soon_threadsafe(callback, *args)

    def __repr__(self) -> str:
        return f'MemoryChannel(host={self.host}, port={self.port}, open={self._open})'
