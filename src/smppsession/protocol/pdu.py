"""
SMPP PDU Events

The session never touches the wire format. A transport hands it decoded
``Pdu`` values and accepts ``Pdu`` values to encode and write; this module
defines that value type and constructors for every PDU the ESME emits.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from .constants import (
    DEFAULT_INTERFACE_VERSION,
    CommandId,
    CommandStatus,
    get_command_name,
    get_response_command_id,
    is_response_command,
)


@dataclass
class Pdu:
    """A decoded SMPP PDU: header values plus named body fields."""

    command_id: int
    sequence_number: int = 0
    command_status: int = CommandStatus.ESME_ROK
    fields: Dict[str, Any] = field(default_factory=dict)

    @property
    def name(self) -> str:
        """Protocol name of the command, e.g. ``deliver_sm``"""
        return get_command_name(self.command_id)

    @property
    def is_response(self) -> bool:
        return is_response_command(self.command_id)

    @property
    def is_ok(self) -> bool:
        return self.command_status == CommandStatus.ESME_ROK

    def get(self, key: str, default: Any = None) -> Any:
        return self.fields.get(key, default)

    def make_response(
        self,
        command_status: int = CommandStatus.ESME_ROK,
        **fields: Any,
    ) -> 'Pdu':
        """Build the response PDU that answers this request."""
        return Pdu(
            command_id=get_response_command_id(self.command_id),
            sequence_number=self.sequence_number,
            command_status=command_status,
            fields=dict(fields),
        )

    def __repr__(self) -> str:
        return (
            f'Pdu({self.name}, seq={self.sequence_number}, '
            f'status=0x{self.command_status:08X})'
        )


def bind_transceiver(
    system_id: str,
    password: str,
    system_type: str = '',
    interface_version: int = DEFAULT_INTERFACE_VERSION,
) -> Pdu:
    return Pdu(
        CommandId.BIND_TRANSCEIVER,
        fields={
            'system_id': system_id,
            'password': password,
            'system_type': system_type,
            'interface_version': interface_version,
            'addr_ton': 0,
            'addr_npi': 0,
            'address_range': '',
        },
    )


def submit_sm(**fields: Any) -> Pdu:
    return Pdu(CommandId.SUBMIT_SM, fields=dict(fields))


def unbind() -> Pdu:
    return Pdu(CommandId.UNBIND)


def enquire_link() -> Pdu:
    return Pdu(CommandId.ENQUIRE_LINK)


def enquire_link_resp(sequence_number: int) -> Pdu:
    return Pdu(CommandId.ENQUIRE_LINK_RESP, sequence_number=sequence_number)


def deliver_sm_resp(sequence_number: int) -> Pdu:
    return Pdu(
        CommandId.DELIVER_SM_RESP,
        sequence_number=sequence_number,
        fields={'message_id': ''},
    )


def unbind_resp(sequence_number: int) -> Pdu:
    return Pdu(CommandId.UNBIND_RESP, sequence_number=sequence_number)


def generic_nack(
    sequence_number: int,
    command_status: int = CommandStatus.ESME_RINVCMDID,
) -> Pdu:
    return Pdu(
        CommandId.GENERIC_NACK,
        sequence_number=sequence_number,
        command_status=command_status,
    )


def describe(pdu: Optional[Pdu]) -> str:
    """Short log-friendly description of a PDU."""
    if pdu is None:
        return '<none>'
    return f'{pdu.name}(seq={pdu.sequence_number})'
