"""
SMPP Session State Machine

The session owns the connection lifecycle of a single transceiver bind:

    DISCONNECTED -> CONNECTING -> CONNECTED -> BINDING -> BOUND -> UNBINDING -> CLOSED

with FAILED reachable from any state on an unrecoverable error. It submits
correlated requests, dispatches every inbound PDU and fails whatever is
still outstanding when the connection goes away.
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from ..delivery import DeliveryReportHandler
from ..exceptions import (
    BindRejected,
    ConnectionTimeout,
    NotBound,
    RequestRejected,
    SessionClosed,
    SMPPConnectionException,
    SMPPException,
    SMPPInvalidStateException,
)
from ..keepalive import KeepaliveMonitor
from ..protocol import (
    DEFAULT_INTERFACE_VERSION,
    CommandId,
    Pdu,
    get_error_message,
)
from ..protocol import pdu as pdus
from ..transport import TransportChannel
from ..utils import mask_sensitive_data
from .correlator import Correlator

logger = logging.getLogger(__name__)


class SessionState(Enum):
    """SMPP Session States"""

    DISCONNECTED = 'DISCONNECTED'
    CONNECTING = 'CONNECTING'
    CONNECTED = 'CONNECTED'
    BINDING = 'BINDING'
    BOUND = 'BOUND'
    UNBINDING = 'UNBINDING'
    CLOSED = 'CLOSED'
    FAILED = 'FAILED'


_CONNECTED_STATES = (
    SessionState.CONNECTED,
    SessionState.BINDING,
    SessionState.BOUND,
    SessionState.UNBINDING,
)
_TERMINAL_STATES = (SessionState.CLOSED, SessionState.FAILED)


@dataclass
class Credentials:
    """Bind credentials"""

    system_id: str
    password: str
    system_type: str = ''
    interface_version: int = DEFAULT_INTERFACE_VERSION

    def __repr__(self) -> str:
        return (
            f'Credentials(system_id={self.system_id!r}, '
            f'password={mask_sensitive_data(self.password, "password")!r})'
        )


class Session:
    """
    Single SMPP transceiver session over a ``TransportChannel``.

    Args:
        transport: Channel that carries PDUs to and from the SMSC
        host: SMSC host name or address
        port: SMSC port
        connect_timeout: Seconds to wait for the transport to connect
        bind_timeout: Seconds to wait for bind_transceiver_resp
        response_timeout: Default seconds to wait for any other response
        unbind_timeout: Upper bound on the unbind step of ``shutdown()``
        enquire_link_interval: Seconds between keepalive pings while bound
    """

    def __init__(
        self,
        transport: TransportChannel,
        host: str,
        port: int,
        connect_timeout: float = 10.0,
        bind_timeout: float = 30.0,
        response_timeout: float = 30.0,
        unbind_timeout: float = 5.0,
        enquire_link_interval: float = 10.0,
        correlator: Optional[Correlator] = None,
    ):
        self.transport = transport
        self.host = host
        self.port = port
        self.connect_timeout = connect_timeout
        self.bind_timeout = bind_timeout
        self.response_timeout = response_timeout
        self.unbind_timeout = unbind_timeout
        self.credentials: Optional[Credentials] = None

        self._state = SessionState.DISCONNECTED
        self._correlator = correlator or Correlator()
        self._connect_future: Optional[asyncio.Future] = None

        self.keepalive = KeepaliveMonitor(
            self, interval=enquire_link_interval, timeout=response_timeout
        )
        self.delivery = DeliveryReportHandler(self)

        # Event handlers
        self.on_state_changed: Optional[
            Callable[[SessionState, SessionState], None]
        ] = None
        self.on_connection_lost: Optional[Callable[[Exception], None]] = None
        self.on_keepalive_failure: Optional[Callable[[Exception], None]] = None

        transport.on_connect = self._handle_connect
        transport.on_pdu = self.dispatch
        transport.on_error = self._handle_error
        transport.on_close = self._handle_close

    @property
    def state(self) -> SessionState:
        """Get current session state"""
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state in _CONNECTED_STATES

    @property
    def is_bound(self) -> bool:
        return self._state == SessionState.BOUND

    @property
    def pending_count(self) -> int:
        """Number of requests still waiting for a response"""
        return len(self._correlator)

    def _set_state(self, new_state: SessionState) -> None:
        """Set session state and trigger state change event"""
        old_state = self._state
        if old_state != new_state:
            self._state = new_state
            logger.debug(
                f'Session state changed: {old_state.value} -> {new_state.value}'
            )
            if self.on_state_changed:
                try:
                    self.on_state_changed(old_state, new_state)
                except Exception as e:
                    logger.exception(f'Error in state change handler: {e}')

    async def connect(self) -> None:
        """Open the transport and wait for it to report the connection"""
        if self._state != SessionState.DISCONNECTED:
            raise SMPPInvalidStateException(
                f'Cannot connect from state {self._state.value}',
                current_state=self._state.value,
                expected_state=SessionState.DISCONNECTED.value,
                operation='connect',
            )

        logger.info(f'Connecting to SMSC at {self.host}:{self.port}')
        self._connect_future = asyncio.get_running_loop().create_future()
        self._set_state(SessionState.CONNECTING)

        try:
            self.transport.open(self.host, self.port)
            await asyncio.wait_for(self._connect_future, timeout=self.connect_timeout)
        except asyncio.TimeoutError:
            self._abort_connect()
            raise ConnectionTimeout(
                f'Connection timeout after {self.connect_timeout} seconds',
                timeout_duration=self.connect_timeout,
                operation='connect',
            ) from None
        except SMPPException:
            self._abort_connect()
            raise
        except Exception as e:
            self._abort_connect()
            raise SMPPConnectionException(
                f'Failed to connect to {self.host}:{self.port}: {e}',
                host=self.host,
                port=self.port,
                original_error=e,
            ) from e
        finally:
            self._connect_future = None

        logger.info('Connected to SMSC')

    async def bind(self, credentials: Credentials) -> Pdu:
        """Bind as transceiver; returns the bind_transceiver_resp PDU"""
        if self._state != SessionState.CONNECTED:
            raise SMPPInvalidStateException(
                f'Cannot bind from state {self._state.value}',
                current_state=self._state.value,
                expected_state=SessionState.CONNECTED.value,
                operation='bind',
            )

        self.credentials = credentials
        logger.info(f'Binding as transceiver (system_id={credentials.system_id})')
        self._set_state(SessionState.BINDING)

        bind_pdu = pdus.bind_transceiver(
            system_id=credentials.system_id,
            password=credentials.password,
            system_type=credentials.system_type,
            interface_version=credentials.interface_version,
        )

        try:
            response = await self._send_request(bind_pdu, self.bind_timeout)
        except RequestRejected as e:
            if self._state == SessionState.BINDING:
                self._set_state(SessionState.CONNECTED)
            raise BindRejected(
                f'Bind failed: {get_error_message(e.status)}',
                command_status=e.status,
                system_id=credentials.system_id,
            ) from e
        except SMPPException:
            if self._state == SessionState.BINDING:
                self._terminate(SessionState.FAILED)
            raise

        self._set_state(SessionState.BOUND)
        logger.info('Successfully bound as transceiver')
        self.keepalive.start()
        return response

    def send_request(self, pdu: Pdu, timeout: Optional[float] = None) -> 'asyncio.Future[Pdu]':
        """
        Send a correlated request without waiting for its response.

        The PDU receives a fresh sequence number. The returned future
        resolves with the response PDU, or fails with ``RequestRejected``,
        ``RequestTimeout`` or ``SessionClosed``.
        """
        self._require_bound(pdu.name)
        if timeout is None:
            timeout = self.response_timeout
        return self._send_request(pdu, timeout)

    async def submit(self, pdu: Pdu, timeout: Optional[float] = None) -> Pdu:
        """Send a correlated request and wait for its response"""
        future = self.send_request(pdu, timeout)
        try:
            return await future
        except asyncio.CancelledError:
            self._correlator.discard(pdu.sequence_number)
            raise

    async def unbind(self) -> None:
        """Unbind from the SMSC; the transport stays open"""
        self._require_bound('unbind')

        logger.info('Unbinding from SMSC')
        self._set_state(SessionState.UNBINDING)
        await self.keepalive.stop()

        try:
            await self._send_request(pdus.unbind(), self.response_timeout)
        finally:
            if self._state == SessionState.UNBINDING:
                self._set_state(SessionState.CONNECTED)

        logger.info('Unbound from SMSC')

    async def close(self) -> None:
        """Close the transport and fail every outstanding request"""
        await self.keepalive.stop()

        if self._state == SessionState.CLOSED:
            return

        logger.info('Closing session')
        final_state = (
            SessionState.FAILED
            if self._state == SessionState.FAILED
            else SessionState.CLOSED
        )
        self._terminate(final_state)
        logger.info('Session closed')

    async def shutdown(self, unbind_timeout: Optional[float] = None) -> None:
        """
        Orderly termination: unbind if bound (bounded by ``unbind_timeout``),
        then close the transport and fail anything still pending.
        """
        if unbind_timeout is None:
            unbind_timeout = self.unbind_timeout

        if self.is_bound:
            try:
                await asyncio.wait_for(self.unbind(), timeout=unbind_timeout)
            except asyncio.TimeoutError:
                logger.warning(f'Unbind did not complete within {unbind_timeout} seconds')
            except SMPPException as e:
                logger.warning(f'Error during unbind: {e}')

        await self.close()

    def send_response(self, pdu: Pdu) -> None:
        """Send an uncorrelated PDU, typically a response to an inbound request"""
        if not self.transport.is_open:
            raise SessionClosed(
                f'Cannot send {pdu.name}: transport closed',
                connection_state=self._state.value,
            )
        try:
            self.transport.send(pdu)
        except Exception as e:
            raise SMPPConnectionException(
                f'Failed to send {pdu.name}: {e}',
                connection_state=self._state.value,
                original_error=e,
            ) from e

    def dispatch(self, pdu: Pdu) -> None:
        """Route an inbound PDU; wired as the transport's ``on_pdu`` handler"""
        logger.debug(f'Received {pdus.describe(pdu)}')

        if pdu.is_response:
            if not self._correlator.resolve(pdu):
                logger.warning(f'Unexpected response {pdu!r}: no matching request')
            return

        if pdu.command_id == CommandId.ENQUIRE_LINK:
            self.keepalive.respond(pdu)
        elif pdu.command_id == CommandId.DELIVER_SM:
            self.delivery.handle(pdu)
        elif pdu.command_id == CommandId.UNBIND:
            self._handle_peer_unbind(pdu)
        else:
            logger.warning(f'Received unsupported request {pdu!r}')
            try:
                self.send_response(pdus.generic_nack(pdu.sequence_number))
            except SMPPException as e:
                logger.error(f'Failed to send generic_nack: {e}')

    def report_keepalive_failure(self, error: Exception) -> None:
        """Called by the keepalive monitor when a ping fails"""
        if self.on_keepalive_failure:
            try:
                self.on_keepalive_failure(error)
            except Exception as e:
                logger.exception(f'Error in keepalive failure handler: {e}')

    def _send_request(self, pdu: Pdu, timeout: Optional[float]) -> 'asyncio.Future[Pdu]':
        pending = self._correlator.register(pdu, timeout)
        try:
            self.transport.send(pdu)
        except Exception as e:
            self._correlator.discard(pending.sequence_number)
            raise SMPPConnectionException(
                f'Failed to send {pdu.name}: {e}',
                connection_state=self._state.value,
                original_error=e,
            ) from e
        logger.debug(f'Sent {pdus.describe(pdu)}')
        return pending.future

    def _require_bound(self, operation: str) -> None:
        if self._state == SessionState.BOUND:
            return
        if self._state in _TERMINAL_STATES or self._state == SessionState.UNBINDING:
            raise SessionClosed(
                f'Cannot {operation}: session is {self._state.value}',
                connection_state=self._state.value,
            )
        raise NotBound(
            f'Cannot {operation}: session is not bound',
            current_state=self._state.value,
            operation=operation,
        )

    def _terminate(
        self, final_state: SessionState, error: Optional[Exception] = None
    ) -> None:
        """Stop keepalive, close the transport and fail everything pending"""
        self.keepalive.cancel()
        try:
            self.transport.close()
        except Exception as e:
            logger.warning(f'Error closing transport: {e}')

        if self._connect_future is not None and not self._connect_future.done():
            self._connect_future.set_exception(
                SessionClosed('Session closed while connecting', original_error=error)
            )

        self._set_state(final_state)

        reason = f'Session {final_state.value.lower()}'
        if error is not None:
            reason = f'{reason}: {error}'
        self._correlator.fail_all(
            lambda: SessionClosed(
                reason, connection_state=final_state.value, original_error=error
            )
        )
        self.delivery.cancel_pending()

    def _abort_connect(self) -> None:
        # close() during connect already moved the session to a terminal state
        if self._state not in _TERMINAL_STATES:
            self._terminate(SessionState.FAILED)

    def _handle_connect(self) -> None:
        future = self._connect_future
        if self._state != SessionState.CONNECTING or future is None or future.done():
            logger.debug(f'Ignoring connect event in state {self._state.value}')
            return
        self._set_state(SessionState.CONNECTED)
        future.set_result(None)

    def _handle_error(self, error: Exception) -> None:
        if self._state in _TERMINAL_STATES:
            logger.debug(f'Ignoring transport error after close: {error}')
            return

        future = self._connect_future
        if self._state == SessionState.CONNECTING and future is not None:
            if not future.done():
                future.set_exception(
                    SMPPConnectionException(
                        f'Failed to connect to {self.host}:{self.port}: {error}',
                        host=self.host,
                        port=self.port,
                        original_error=error,
                    )
                )
            return

        logger.error(f'Transport error: {error}')
        self._terminate(SessionState.FAILED, error)
        self._notify_connection_lost(error)

    def _handle_close(self) -> None:
        if self._state in _TERMINAL_STATES or self._state == SessionState.DISCONNECTED:
            return

        error = SMPPConnectionException(
            'Connection closed by peer',
            host=self.host,
            port=self.port,
            connection_state=self._state.value,
        )
        future = self._connect_future
        if self._state == SessionState.CONNECTING and future is not None:
            if not future.done():
                future.set_exception(error)
            return

        logger.warning('Connection closed by peer')
        self._terminate(SessionState.CLOSED, error)
        self._notify_connection_lost(error)

    def _handle_peer_unbind(self, pdu: Pdu) -> None:
        logger.info('Received unbind request from SMSC')
        try:
            self.send_response(pdus.unbind_resp(pdu.sequence_number))
        except SMPPException as e:
            logger.error(f'Failed to send unbind_resp: {e}')

        error = SessionClosed('Unbound by SMSC', connection_state=self._state.value)
        self._terminate(SessionState.CLOSED, error)
        self._notify_connection_lost(error)

    def _notify_connection_lost(self, error: Exception) -> None:
        if self.on_connection_lost:
            try:
                self.on_connection_lost(error)
            except Exception as e:
                logger.exception(f'Error in connection lost handler: {e}')

    def __repr__(self) -> str:
        return (
            f'Session(host={self.host}, port={self.port}, '
            f'state={self._state.value}, pending={len(self._correlator)})'
        )
