"""
SMPP Protocol Definitions

Constants, status codes and the decoded PDU value exchanged with the
transport layer.
"""

from . import pdu
from .constants import (
    DEFAULT_INTERFACE_VERSION,
    FLASH_MESSAGE_CLASS,
    MAX_REFERENCE_NUMBER,
    MAX_SAR_SEGMENTS,
    MAX_SEQUENCE_NUMBER,
    MIN_SEQUENCE_NUMBER,
    CommandId,
    CommandStatus,
    DataCoding,
    EsmClass,
    InterfaceVersion,
    MessageState,
    OptionalTag,
    RegisteredDelivery,
    get_command_name,
    get_error_message,
    get_response_command_id,
    is_response_command,
)
from .pdu import Pdu

__all__ = [
    'pdu',
    'Pdu',
    'CommandId',
    'CommandStatus',
    'DataCoding',
    'EsmClass',
    'InterfaceVersion',
    'MessageState',
    'OptionalTag',
    'RegisteredDelivery',
    'DEFAULT_INTERFACE_VERSION',
    'FLASH_MESSAGE_CLASS',
    'MAX_REFERENCE_NUMBER',
    'MAX_SAR_SEGMENTS',
    'MAX_SEQUENCE_NUMBER',
    'MIN_SEQUENCE_NUMBER',
    'get_command_name',
    'get_error_message',
    'get_response_command_id',
    'is_response_command',
]
