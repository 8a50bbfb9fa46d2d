"""
smppsession - Async SMPP v3.4 ESME Session Client

An asyncio SMPP transceiver session: connect over a pluggable transport,
bind, correlate requests with their responses, split long text into
segmented parts, keep the link alive with enquire_link and acknowledge
inbound delivery reports.

This package provides:
- A session state machine with request/response correlation
- Keepalive probing and automatic enquire_link answers
- SAR-based segmentation of long messages
- Parsed delivery receipts delivered to observers
- Validated configuration from files, environment and keyword arguments

Quick Start:
    from smppsession import Message, SMPPClient, create_client_config

    config = create_client_config(
        host="localhost",
        port=2775,
        system_id="test_client",
        password="password"
    )

    async with SMPPClient(transport, config) as client:
        client.on_delivery_report(print)
        results = await client.send_message(
            Message("1234", "5678", "Hello World!", request_delivery_receipt=True)
        )
"""

from .client import Message, PartResult, SMPPClient
from .config import (
    BaseConfig,
    ClientConfig,
    LoggingConfig,
    create_client_config,
    create_client_config_from_sources,
    load_config_from_env,
    load_config_from_file,
)
from .delivery import DeliveryReport, DeliveryReportHandler
from .exceptions import (
    BindRejected,
    ConnectionTimeout,
    NotBound,
    PartialSendFailure,
    RequestRejected,
    RequestTimeout,
    SessionClosed,
    SMPPBindException,
    SMPPConnectionException,
    SMPPErrorCode,
    SMPPException,
    SMPPInvalidStateException,
    SMPPMessageException,
    SMPPTimeoutException,
    SMPPValidationException,
)
from .keepalive import KeepaliveMonitor
from .protocol import (
    CommandId,
    CommandStatus,
    DataCoding,
    EsmClass,
    InterfaceVersion,
    MessageState,
    OptionalTag,
    Pdu,
    RegisteredDelivery,
    get_error_message,
)
from .segmentation import (
    DEFAULT_LENGTH_LIMITS,
    MessagePart,
    segment,
    split_text,
)
from .session import Credentials, Session, SessionState
from .transport import AutoAckPeer, MemoryChannel, TransportChannel

__version__ = '0.1.0'

__all__ = [
    # Main classes
    'SMPPClient',
    'Message',
    'PartResult',
    'Session',
    'SessionState',
    'Credentials',
    'KeepaliveMonitor',
    'DeliveryReport',
    'DeliveryReportHandler',
    # Segmentation
    'MessagePart',
    'DEFAULT_LENGTH_LIMITS',
    'segment',
    'split_text',
    # Protocol
    'Pdu',
    'CommandId',
    'CommandStatus',
    'DataCoding',
    'EsmClass',
    'InterfaceVersion',
    'MessageState',
    'OptionalTag',
    'RegisteredDelivery',
    'get_error_message',
    # Transport
    'TransportChannel',
    'MemoryChannel',
    'AutoAckPeer',
    # Configuration
    'BaseConfig',
    'ClientConfig',
    'LoggingConfig',
    'create_client_config',
    'create_client_config_from_sources',
    'load_config_from_env',
    'load_config_from_file',
    # Exceptions
    'SMPPException',
    'SMPPErrorCode',
    'SMPPConnectionException',
    'SMPPTimeoutException',
    'SMPPBindException',
    'SMPPInvalidStateException',
    'SMPPMessageException',
    'SMPPValidationException',
    'ConnectionTimeout',
    'BindRejected',
    'RequestRejected',
    'RequestTimeout',
    'SessionClosed',
    'NotBound',
    'PartialSendFailure',
]

# Module-level configuration
import logging  # noqa: E402

# Set up default logging to reduce noise unless explicitly configured
logging.getLogger(__name__).addHandler(logging.NullHandler())
