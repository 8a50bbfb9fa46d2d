"""
SMPP v3.4 Protocol Constants and Enumerations

Only the part of the protocol a transceiver ESME session touches: the PDUs
it exchanges, the status codes it reports and the field values it sets or
inspects on submit_sm and deliver_sm.
"""

from enum import IntEnum
from typing import Dict

RESPONSE_BIT = 0x80000000


class CommandId(IntEnum):
    """Command IDs exchanged by a transceiver session"""

    GENERIC_NACK = RESPONSE_BIT

    # session management
    BIND_TRANSCEIVER = 0x00000009
    BIND_TRANSCEIVER_RESP = RESPONSE_BIT | 0x09
    UNBIND = 0x00000006
    UNBIND_RESP = RESPONSE_BIT | 0x06
    ENQUIRE_LINK = 0x00000015
    ENQUIRE_LINK_RESP = RESPONSE_BIT | 0x15

    # messaging
    SUBMIT_SM = 0x00000004
    SUBMIT_SM_RESP = RESPONSE_BIT | 0x04
    DELIVER_SM = 0x00000005
    DELIVER_SM_RESP = RESPONSE_BIT | 0x05


class CommandStatus(IntEnum):
    """command_status values; see ``get_error_message`` for their text"""

    ESME_ROK = 0x00
    ESME_RINVMSGLEN = 0x01
    ESME_RINVCMDLEN = 0x02
    ESME_RINVCMDID = 0x03
    ESME_RINVBNDSTS = 0x04
    ESME_RALYBND = 0x05
    ESME_RINVPASWD = 0x06
    ESME_RINVSYSID = 0x07
    ESME_RSYSERR = 0x08
    ESME_RINVSRCADR = 0x0A
    ESME_RINVDSTADR = 0x0B
    ESME_RBINDFAIL = 0x0D
    ESME_RMSGQFUL = 0x14
    ESME_RSUBMITFAIL = 0x45
    ESME_RTHROTTLED = 0x58
    ESME_RINVEXPIRY = 0x62
    ESME_RINVOPTPARAMVAL = 0xC4
    ESME_RUNKNOWNERR = 0xFF


_STATUS_TEXT = {
    'ESME_ROK': 'No Error',
    'ESME_RINVMSGLEN': 'Message Length is invalid',
    'ESME_RINVCMDLEN': 'Command Length is invalid',
    'ESME_RINVCMDID': 'Invalid Command ID',
    'ESME_RINVBNDSTS': 'Incorrect BIND Status for given command',
    'ESME_RALYBND': 'ESME Already in Bound State',
    'ESME_RINVPASWD': 'Invalid Password',
    'ESME_RINVSYSID': 'Invalid System ID',
    'ESME_RSYSERR': 'System Error',
    'ESME_RINVSRCADR': 'Invalid Source Address',
    'ESME_RINVDSTADR': 'Invalid Dest Addr',
    'ESME_RBINDFAIL': 'Bind Failed',
    'ESME_RMSGQFUL': 'Message Queue Full',
    'ESME_RSUBMITFAIL': 'submit_sm failed',
    'ESME_RTHROTTLED': 'Throttling error',
    'ESME_RINVEXPIRY': 'Invalid message validity period',
    'ESME_RINVOPTPARAMVAL': 'Invalid Optional Parameter Value',
    'ESME_RUNKNOWNERR': 'Unknown Error',
}

ERROR_MESSAGES: Dict[int, str] = {
    CommandStatus[name]: text for name, text in _STATUS_TEXT.items()
}


class DataCoding(IntEnum):
    """data_coding schemes the session can encode"""

    DEFAULT = 0x00
    IA5_ASCII = 0x01
    LATIN_1 = 0x03
    OCTET_UNSPECIFIED = 0x04
    UCS2 = 0x08


# data_coding bit selecting message class 0, displayed immediately (flash)
FLASH_MESSAGE_CLASS = 0x10


class EsmClass(IntEnum):
    DEFAULT = 0x00
    DELIVERY_RECEIPT = 0x04
    UDHI = 0x40


class RegisteredDelivery(IntEnum):
    NO_RECEIPT = 0x00
    SUCCESS_FAILURE = 0x01
    FAILURE_ONLY = 0x02


class InterfaceVersion(IntEnum):
    VERSION_3_3 = 0x33
    VERSION_3_4 = 0x34


class MessageState(IntEnum):
    """message_state TLV values found on delivery receipts"""

    ENROUTE = 1
    DELIVERED = 2
    EXPIRED = 3
    DELETED = 4
    UNDELIVERABLE = 5
    ACCEPTED = 6
    UNKNOWN = 7
    REJECTED = 8


class OptionalTag(IntEnum):
    """TLV tags for concatenation (SAR) and receipts"""

    RECEIPTED_MESSAGE_ID = 0x001E
    SAR_MSG_REF_NUM = 0x020C
    SAR_TOTAL_SEGMENTS = 0x020E
    SAR_SEGMENT_SEQNUM = 0x020F
    MESSAGE_STATE = 0x0427


DEFAULT_INTERFACE_VERSION = InterfaceVersion.VERSION_3_4

# sequence numbers wrap within 1..0x7FFFFFFF
MIN_SEQUENCE_NUMBER = 1
MAX_SEQUENCE_NUMBER = 0x7FFFFFFF

# sar_msg_ref_num is a 16-bit field
MAX_REFERENCE_NUMBER = 0xFFFF

# sar_total_segments is a single octet
MAX_SAR_SEGMENTS = 255

# C-octet string sizes, terminating NUL included
MAX_SYSTEM_ID_LENGTH = 16
MAX_PASSWORD_LENGTH = 9


def get_error_message(status_code: int) -> str:
    """Text for a command_status, with a hex fallback for unknown codes"""
    text = ERROR_MESSAGES.get(status_code)
    if text is None:
        return f'Unknown error code: 0x{status_code:08X}'
    return text


def is_response_command(command_id: int) -> bool:
    return bool(command_id & RESPONSE_BIT)


def get_response_command_id(command_id: int) -> int:
    """Command id of the response answering ``command_id``"""
    return command_id | RESPONSE_BIT


def get_command_name(command_id: int) -> str:
    """Lower-case protocol name of a command, e.g. ``submit_sm_resp``"""
    try:
        return CommandId(command_id).name.lower()
    except ValueError:
        return f'command_0x{command_id:08X}'
