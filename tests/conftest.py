"""
Shared test fixtures and configuration for smppsession tests.
"""

import asyncio
from unittest.mock import MagicMock

import pytest

from smppsession.protocol import CommandId, Pdu
from smppsession.session import Credentials, Session
from smppsession.transport import AutoAckPeer, MemoryChannel


async def settle(rounds: int = 5) -> None:
    """Let callbacks scheduled with call_soon run."""
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture
def peer():
    """Scripted SMSC that accepts everything."""
    return AutoAckPeer()


@pytest.fixture
def channel(peer):
    """In-memory channel answered by ``peer``."""
    return MemoryChannel(peer)


@pytest.fixture
def credentials():
    return Credentials(system_id='test_client', password='secret')


@pytest.fixture
def make_session(channel):
    """Factory for sessions over the shared channel with short timeouts."""

    def factory(**kwargs):
        transport = kwargs.pop('transport', channel)
        options = {
            'host': 'localhost',
            'port': 2775,
            'connect_timeout': 0.5,
            'bind_timeout': 0.5,
            'response_timeout': 0.5,
            'unbind_timeout': 0.2,
            'enquire_link_interval': 60.0,
        }
        options.update(kwargs)
        return Session(transport, **options)

    return factory


@pytest.fixture
def bind(credentials):
    """Coroutine function that connects and binds a session."""

    async def connect_and_bind(session):
        await session.connect()
        await session.bind(credentials)
        return session

    return connect_and_bind


@pytest.fixture
def settle_loop():
    return settle


@pytest.fixture
def deliver_sm():
    """Factory for inbound deliver_sm PDUs."""

    def factory(sequence_number=42, **fields):
        body = {
            'source_addr': '1234567890',
            'destination_addr': 'TestSender',
            'esm_class': 0,
            'data_coding': 0,
            'short_message': b'hello',
        }
        body.update(fields)
        return Pdu(CommandId.DELIVER_SM, sequence_number=sequence_number, fields=body)

    return factory


@pytest.fixture
def mock_logger():
    """Mock logger for testing log output."""
    return MagicMock()
