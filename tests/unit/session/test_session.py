"""
Unit tests for the session state machine.

Tests connection and bind lifecycle, request submission, inbound dispatch,
shutdown and the reaction to transport events.
"""

import asyncio
from unittest.mock import Mock

import pytest

from smppsession.exceptions import (
    BindRejected,
    ConnectionTimeout,
    NotBound,
    RequestRejected,
    RequestTimeout,
    SessionClosed,
    SMPPConnectionException,
    SMPPInvalidStateException,
)
from smppsession.protocol import CommandId, CommandStatus, Pdu
from smppsession.protocol import pdu as pdus
from smppsession.session import Credentials, SessionState
from smppsession.transport import AutoAckPeer, MemoryChannel

from conftest import settle


class TestSessionInitialization:
    """Tests for Session construction."""

    def test_initial_state(self, make_session, channel):
        session = make_session()

        assert session.state == SessionState.DISCONNECTED
        assert not session.is_connected
        assert not session.is_bound
        assert session.pending_count == 0
        assert session.credentials is None

    def test_wires_transport_callbacks(self, make_session, channel):
        session = make_session()

        assert channel.on_pdu == session.dispatch
        assert channel.on_connect is not None
        assert channel.on_error is not None
        assert channel.on_close is not None

    def test_repr(self, make_session):
        assert 'state=DISCONNECTED' in repr(make_session())

    def test_credentials_repr_masks_password(self):
        credentials = Credentials('client', 'secret')
        assert 'secret' not in repr(credentials)
        assert '******' in repr(credentials)


class TestConnect:
    """Tests for Session.connect()."""

    @pytest.mark.asyncio
    async def test_connect_success(self, make_session, channel):
        session = make_session()

        await session.connect()

        assert session.state == SessionState.CONNECTED
        assert session.is_connected
        assert channel.is_open
        assert (channel.host, channel.port) == ('localhost', 2775)

    @pytest.mark.asyncio
    async def test_connect_timeout(self, make_session):
        channel = MemoryChannel(auto_connect=False)
        session = make_session(transport=channel, connect_timeout=0.05)

        with pytest.raises(ConnectionTimeout) as exc_info:
            await session.connect()

        assert exc_info.value.timeout_duration == 0.05
        assert session.state == SessionState.FAILED
        assert not channel.is_open

    @pytest.mark.asyncio
    async def test_connect_transport_error(self, make_session):
        channel = MemoryChannel(auto_connect=False)
        session = make_session(transport=channel)

        task = asyncio.ensure_future(session.connect())
        await settle()
        channel.fail(OSError('connection refused'))

        with pytest.raises(SMPPConnectionException) as exc_info:
            await task

        assert isinstance(exc_info.value.original_error, OSError)
        assert session.state == SessionState.FAILED

    @pytest.mark.asyncio
    async def test_connect_twice_is_invalid(self, make_session):
        session = make_session()
        await session.connect()

        with pytest.raises(SMPPInvalidStateException):
            await session.connect()

    @pytest.mark.asyncio
    async def test_close_while_connecting(self, make_session):
        channel = MemoryChannel(auto_connect=False)
        session = make_session(transport=channel)

        task = asyncio.ensure_future(session.connect())
        await settle()
        await session.close()

        with pytest.raises(SessionClosed):
            await task
        assert session.state == SessionState.CLOSED

    @pytest.mark.asyncio
    async def test_state_transitions_reported(self, make_session, bind):
        session = make_session()
        transitions = []
        session.on_state_changed = lambda old, new: transitions.append((old, new))

        await bind(session)

        assert transitions == [
            (SessionState.DISCONNECTED, SessionState.CONNECTING),
            (SessionState.CONNECTING, SessionState.CONNECTED),
            (SessionState.CONNECTED, SessionState.BINDING),
            (SessionState.BINDING, SessionState.BOUND),
        ]
        await session.close()

    @pytest.mark.asyncio
    async def test_state_handler_error_is_contained(self, make_session):
        session = make_session()
        session.on_state_changed = Mock(side_effect=RuntimeError('boom'))

        await session.connect()

        assert session.state == SessionState.CONNECTED


class TestBind:
    """Tests for Session.bind()."""

    @pytest.mark.asyncio
    async def test_bind_success(self, make_session, channel, credentials):
        session = make_session()
        await session.connect()

        response = await session.bind(credentials)

        assert response.command_id == CommandId.BIND_TRANSCEIVER_RESP
        assert session.state == SessionState.BOUND
        assert session.is_bound
        assert session.keepalive.running
        assert session.credentials is credentials

        bind_pdu = channel.sent_commands(CommandId.BIND_TRANSCEIVER)[0]
        assert bind_pdu.sequence_number == 1
        assert bind_pdu.get('system_id') == 'test_client'
        assert bind_pdu.get('password') == 'secret'
        await session.close()

    @pytest.mark.asyncio
    async def test_bind_rejected(self, make_session, credentials):
        channel = MemoryChannel(AutoAckPeer(bind_status=CommandStatus.ESME_RINVPASWD))
        session = make_session(transport=channel)
        await session.connect()

        with pytest.raises(BindRejected) as exc_info:
            await session.bind(credentials)

        assert exc_info.value.status == CommandStatus.ESME_RINVPASWD
        assert isinstance(exc_info.value.__cause__, RequestRejected)
        assert session.state == SessionState.CONNECTED
        assert not session.keepalive.running

    @pytest.mark.asyncio
    async def test_bind_timeout_fails_session(self, make_session, credentials):
        channel = MemoryChannel(AutoAckPeer(silent_commands={CommandId.BIND_TRANSCEIVER}))
        session = make_session(transport=channel, bind_timeout=0.05)
        await session.connect()

        with pytest.raises(RequestTimeout):
            await session.bind(credentials)

        assert session.state == SessionState.FAILED
        assert not channel.is_open

    @pytest.mark.asyncio
    async def test_bind_requires_connection(self, make_session, credentials):
        session = make_session()

        with pytest.raises(SMPPInvalidStateException) as exc_info:
            await session.bind(credentials)

        assert exc_info.value.current_state == 'DISCONNECTED'
        assert exc_info.value.expected_state == 'CONNECTED'

    @pytest.mark.asyncio
    async def test_bind_twice_is_invalid(self, make_session, bind, credentials):
        session = await bind(make_session())

        with pytest.raises(SMPPInvalidStateException):
            await session.bind(credentials)
        await session.close()


class TestSubmit:
    """Tests for correlated request submission."""

    @pytest.mark.asyncio
    async def test_submit_before_bind(self, make_session, channel):
        session = make_session()
        await session.connect()

        with pytest.raises(NotBound):
            await session.submit(pdus.enquire_link())
        assert channel.sent == []

    @pytest.mark.asyncio
    async def test_submit_after_close(self, make_session, bind):
        session = await bind(make_session())
        await session.close()

        with pytest.raises(SessionClosed):
            await session.submit(pdus.enquire_link())

    @pytest.mark.asyncio
    async def test_submit_returns_response(self, make_session, bind):
        session = await bind(make_session())

        response = await session.submit(pdus.submit_sm(short_message=b'hi'))

        assert response.command_id == CommandId.SUBMIT_SM_RESP
        assert response.get('message_id')
        assert session.pending_count == 0
        await session.close()

    @pytest.mark.asyncio
    async def test_submit_rejected(self, make_session, bind):
        peer = AutoAckPeer(submit_status=lambda pdu: CommandStatus.ESME_RINVDSTADR)
        session = await bind(make_session(transport=MemoryChannel(peer)))

        with pytest.raises(RequestRejected) as exc_info:
            await session.submit(pdus.submit_sm())

        assert exc_info.value.status == CommandStatus.ESME_RINVDSTADR
        await session.close()

    @pytest.mark.asyncio
    async def test_submit_timeout(self, make_session, bind):
        peer = AutoAckPeer(silent_commands={CommandId.SUBMIT_SM})
        session = await bind(make_session(transport=MemoryChannel(peer)))

        with pytest.raises(RequestTimeout):
            await session.submit(pdus.submit_sm(), timeout=0.05)

        # a timed out request does not take the session down
        assert session.state == SessionState.BOUND
        await session.close()

    @pytest.mark.asyncio
    async def test_concurrent_requests(self, make_session, bind):
        session = await bind(make_session())

        futures = [session.send_request(pdus.submit_sm()) for _ in range(5)]
        assert session.pending_count == 5

        responses = await asyncio.gather(*futures)

        sequence_numbers = [response.sequence_number for response in responses]
        assert len(set(sequence_numbers)) == 5
        assert session.pending_count == 0
        await session.close()

    @pytest.mark.asyncio
    async def test_send_failure_discards_request(self, make_session, bind, channel):
        session = await bind(make_session())
        channel.send = Mock(side_effect=OSError('broken pipe'))

        with pytest.raises(SMPPConnectionException):
            await session.submit(pdus.submit_sm())

        assert session.pending_count == 0
        await session.close()

    @pytest.mark.asyncio
    async def test_cancelled_submit_discards_request(self, make_session, bind):
        peer = AutoAckPeer(silent_commands={CommandId.SUBMIT_SM})
        session = await bind(make_session(transport=MemoryChannel(peer)))

        task = asyncio.ensure_future(session.submit(pdus.submit_sm()))
        await settle()
        assert session.pending_count == 1

        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        assert session.pending_count == 0
        await session.close()


class TestInboundDispatch:
    """Tests for routing of PDUs initiated by the SMSC."""

    @pytest.mark.asyncio
    async def test_enquire_link_answered_when_bound(self, make_session, bind, channel):
        session = await bind(make_session())

        channel.deliver(Pdu(CommandId.ENQUIRE_LINK, sequence_number=7))
        await settle()

        responses = channel.sent_commands(CommandId.ENQUIRE_LINK_RESP)
        assert len(responses) == 1
        assert responses[0].sequence_number == 7
        assert session.pending_count == 0
        await session.close()

    @pytest.mark.asyncio
    async def test_enquire_link_answered_when_connected(self, make_session, channel):
        session = make_session()
        await session.connect()

        channel.deliver(Pdu(CommandId.ENQUIRE_LINK, sequence_number=7))
        await settle()

        responses = channel.sent_commands(CommandId.ENQUIRE_LINK_RESP)
        assert [r.sequence_number for r in responses] == [7]
        assert session.state == SessionState.CONNECTED

    @pytest.mark.asyncio
    async def test_deliver_sm_acknowledged_before_observer(
        self, make_session, bind, channel, deliver_sm
    ):
        session = await bind(make_session())
        acks_seen_by_observer = []

        def observer(report):
            acks_seen_by_observer.append(
                [p.sequence_number for p in channel.sent_commands(CommandId.DELIVER_SM_RESP)]
            )

        session.delivery.add_observer(observer)
        channel.deliver(deliver_sm(sequence_number=42))
        await settle()

        assert acks_seen_by_observer == [[42]]
        assert len(channel.sent_commands(CommandId.DELIVER_SM_RESP)) == 1
        await session.close()

    @pytest.mark.asyncio
    async def test_unsupported_request_gets_generic_nack(self, make_session, bind, channel):
        session = await bind(make_session())

        channel.deliver(Pdu(0x00000002, sequence_number=13))  # bind_transmitter
        await settle()

        nacks = channel.sent_commands(CommandId.GENERIC_NACK)
        assert len(nacks) == 1
        assert nacks[0].sequence_number == 13
        assert nacks[0].command_status == CommandStatus.ESME_RINVCMDID
        await session.close()

    @pytest.mark.asyncio
    async def test_unmatched_response_is_dropped(self, make_session, bind, channel):
        session = await bind(make_session())

        channel.deliver(Pdu(CommandId.SUBMIT_SM_RESP, sequence_number=999))
        await settle()

        assert session.state == SessionState.BOUND
        await session.close()

    @pytest.mark.asyncio
    async def test_peer_unbind(self, make_session, bind):
        peer = AutoAckPeer(silent_commands={CommandId.SUBMIT_SM})
        channel = MemoryChannel(peer)
        session = await bind(make_session(transport=channel))
        lost = Mock()
        session.on_connection_lost = lost

        pending = session.send_request(pdus.submit_sm())
        channel.deliver(Pdu(CommandId.UNBIND, sequence_number=21))
        await settle()

        responses = channel.sent_commands(CommandId.UNBIND_RESP)
        assert [r.sequence_number for r in responses] == [21]
        assert session.state == SessionState.CLOSED
        assert not channel.is_open
        lost.assert_called_once()
        assert isinstance(lost.call_args[0][0], SessionClosed)
        with pytest.raises(SessionClosed):
            await pending


class TestUnbindAndClose:
    """Tests for unbind, close and shutdown."""

    @pytest.mark.asyncio
    async def test_unbind(self, make_session, bind, channel, credentials):
        session = await bind(make_session())

        await session.unbind()

        assert session.state == SessionState.CONNECTED
        assert not session.keepalive.running
        assert channel.is_open
        assert len(channel.sent_commands(CommandId.UNBIND)) == 1

        # the connection can be bound again
        await session.bind(credentials)
        assert session.is_bound
        await session.close()

    @pytest.mark.asyncio
    async def test_unbind_requires_bound(self, make_session):
        session = make_session()
        await session.connect()

        with pytest.raises(NotBound):
            await session.unbind()

    @pytest.mark.asyncio
    async def test_close_fails_pending(self, make_session, bind):
        peer = AutoAckPeer(silent_commands={CommandId.SUBMIT_SM})
        session = await bind(make_session(transport=MemoryChannel(peer)))
        pending = session.send_request(pdus.submit_sm())

        await session.close()

        assert session.state == SessionState.CLOSED
        assert not session.keepalive.running
        with pytest.raises(SessionClosed):
            await pending

    @pytest.mark.asyncio
    async def test_close_is_idempotent(self, make_session, bind, channel):
        session = await bind(make_session())
        transitions = []
        session.on_state_changed = lambda old, new: transitions.append(new)

        await session.close()
        await session.close()

        assert transitions == [SessionState.CLOSED]
        assert not channel.is_open

    @pytest.mark.asyncio
    async def test_close_keeps_failed_state(self, make_session):
        channel = MemoryChannel(auto_connect=False)
        session = make_session(transport=channel, connect_timeout=0.01)
        with pytest.raises(ConnectionTimeout):
            await session.connect()

        await session.close()

        assert session.state == SessionState.FAILED

    @pytest.mark.asyncio
    async def test_close_cancels_running_observers(
        self, make_session, bind, channel, deliver_sm
    ):
        session = await bind(make_session())
        release = asyncio.Event()
        started = []
        finished = []

        async def observer(report):
            started.append(report.sequence_number)
            await release.wait()
            finished.append(report.sequence_number)

        session.delivery.add_observer(observer)
        channel.deliver(deliver_sm(sequence_number=5))
        await settle()
        assert started == [5]
        tasks = list(session.delivery._tasks)

        await session.close()
        release.set()
        await settle()

        assert finished == []
        assert all(task.cancelled() for task in tasks)
        assert not session.delivery._tasks

    @pytest.mark.asyncio
    async def test_peer_close_cancels_running_observers(
        self, make_session, bind, deliver_sm
    ):
        channel = MemoryChannel(AutoAckPeer())
        session = await bind(make_session(transport=channel))
        release = asyncio.Event()

        async def observer(report):
            await release.wait()

        session.delivery.add_observer(observer)
        channel.deliver(deliver_sm())
        await settle()
        tasks = list(session.delivery._tasks)

        channel.drop()
        await settle()

        assert session.state == SessionState.CLOSED
        assert tasks and all(task.cancelled() for task in tasks)

    @pytest.mark.asyncio
    async def test_shutdown_fails_all_pending(self, make_session, bind):
        peer = AutoAckPeer(silent_commands={CommandId.SUBMIT_SM})
        channel = MemoryChannel(peer)
        session = await bind(make_session(transport=channel))

        pending = [session.send_request(pdus.submit_sm()) for _ in range(4)]
        await session.shutdown()

        results = await asyncio.gather(*pending, return_exceptions=True)
        assert len(results) == 4
        assert all(isinstance(result, SessionClosed) for result in results)
        assert len(channel.sent_commands(CommandId.UNBIND)) == 1
        assert session.state == SessionState.CLOSED
        assert not channel.is_open

    @pytest.mark.asyncio
    async def test_shutdown_when_unbind_hangs(self, make_session, bind):
        peer = AutoAckPeer(silent_commands={CommandId.UNBIND})
        channel = MemoryChannel(peer)
        session = await bind(make_session(transport=channel))

        await session.shutdown(unbind_timeout=0.05)

        assert session.state == SessionState.CLOSED
        assert session.pending_count == 0
        assert not channel.is_open

    @pytest.mark.asyncio
    async def test_shutdown_when_not_bound(self, make_session, channel):
        session = make_session()
        await session.connect()

        await session.shutdown()

        assert channel.sent_commands(CommandId.UNBIND) == []
        assert session.state == SessionState.CLOSED


class TestTransportEvents:
    """Tests for errors and closes reported by the transport."""

    @pytest.mark.asyncio
    async def test_transport_error_fails_session(self, make_session, bind):
        peer = AutoAckPeer(silent_commands={CommandId.SUBMIT_SM})
        channel = MemoryChannel(peer)
        session = await bind(make_session(transport=channel))
        lost = Mock()
        session.on_connection_lost = lost
        pending = session.send_request(pdus.submit_sm())

        error = OSError('connection reset')
        channel.fail(error)
        await settle()

        assert session.state == SessionState.FAILED
        assert not session.keepalive.running
        lost.assert_called_once_with(error)
        with pytest.raises(SessionClosed) as exc_info:
            await pending
        assert exc_info.value.original_error is error

    @pytest.mark.asyncio
    async def test_peer_close(self, make_session, bind):
        channel = MemoryChannel(AutoAckPeer())
        session = await bind(make_session(transport=channel))
        lost = Mock()
        session.on_connection_lost = lost

        channel.drop()
        await settle()

        assert session.state == SessionState.CLOSED
        lost.assert_called_once()
        assert isinstance(lost.call_args[0][0], SMPPConnectionException)

    @pytest.mark.asyncio
    async def test_connection_lost_handler_error_is_contained(self, make_session, bind):
        channel = MemoryChannel(AutoAckPeer())
        session = await bind(make_session(transport=channel))
        session.on_connection_lost = Mock(side_effect=RuntimeError('boom'))

        channel.drop()
        await settle()

        assert session.state == SessionState.CLOSED

    @pytest.mark.asyncio
    async def test_send_response_on_closed_transport(self, make_session):
        session = make_session()

        with pytest.raises(SessionClosed):
            session.send_response(pdus.enquire_link_resp(1))
