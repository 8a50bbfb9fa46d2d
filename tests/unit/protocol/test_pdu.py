"""
Unit tests for the PDU value type, protocol constants and text codecs.
"""

import pytest

from smppsession.protocol import (
    CommandId,
    CommandStatus,
    DataCoding,
    FLASH_MESSAGE_CLASS,
    InterfaceVersion,
    Pdu,
    get_command_name,
    get_error_message,
    get_response_command_id,
    is_response_command,
)
from smppsession.protocol import pdu as pdus
from smppsession.protocol.text import decode_text, encode_text, get_encoding


class TestConstants:
    """Tests for constant helpers."""

    def test_response_detection(self):
        assert is_response_command(CommandId.SUBMIT_SM_RESP)
        assert is_response_command(CommandId.GENERIC_NACK)
        assert not is_response_command(CommandId.SUBMIT_SM)
        assert not is_response_command(CommandId.ENQUIRE_LINK)

    def test_response_command_id(self):
        assert get_response_command_id(CommandId.BIND_TRANSCEIVER) == (
            CommandId.BIND_TRANSCEIVER_RESP
        )
        assert get_response_command_id(CommandId.ENQUIRE_LINK) == (
            CommandId.ENQUIRE_LINK_RESP
        )

    def test_command_name(self):
        assert get_command_name(CommandId.DELIVER_SM) == 'deliver_sm'
        assert get_command_name(CommandId.SUBMIT_SM_RESP) == 'submit_sm_resp'
        assert get_command_name(0x00000099) == 'command_0x00000099'

    def test_error_message(self):
        assert get_error_message(CommandStatus.ESME_ROK) == 'No Error'
        assert get_error_message(CommandStatus.ESME_RINVPASWD) == 'Invalid Password'
        assert 'Unknown error code' in get_error_message(0x12345)


class TestPdu:
    """Tests for the Pdu dataclass."""

    def test_defaults(self):
        pdu = Pdu(CommandId.ENQUIRE_LINK)

        assert pdu.sequence_number == 0
        assert pdu.command_status == CommandStatus.ESME_ROK
        assert pdu.fields == {}
        assert pdu.name == 'enquire_link'
        assert not pdu.is_response
        assert pdu.is_ok

    def test_get_field(self):
        pdu = Pdu(CommandId.SUBMIT_SM, fields={'source_addr': '1234'})

        assert pdu.get('source_addr') == '1234'
        assert pdu.get('missing') is None
        assert pdu.get('missing', 'x') == 'x'

    def test_make_response_keeps_sequence(self):
        request = Pdu(CommandId.SUBMIT_SM, sequence_number=17)

        response = request.make_response(message_id='abc')

        assert response.command_id == CommandId.SUBMIT_SM_RESP
        assert response.sequence_number == 17
        assert response.is_ok
        assert response.get('message_id') == 'abc'

    def test_make_error_response(self):
        request = Pdu(CommandId.BIND_TRANSCEIVER, sequence_number=3)

        response = request.make_response(CommandStatus.ESME_RBINDFAIL)

        assert response.is_response
        assert not response.is_ok
        assert response.command_status == CommandStatus.ESME_RBINDFAIL

    def test_repr(self):
        pdu = Pdu(CommandId.UNBIND, sequence_number=5)
        assert repr(pdu) == 'Pdu(unbind, seq=5, status=0x00000000)'


class TestPduConstructors:
    """Tests for the PDU constructor functions."""

    def test_bind_transceiver(self):
        pdu = pdus.bind_transceiver('client', 'secret', system_type='VMS')

        assert pdu.command_id == CommandId.BIND_TRANSCEIVER
        assert pdu.get('system_id') == 'client'
        assert pdu.get('password') == 'secret'
        assert pdu.get('system_type') == 'VMS'
        assert pdu.get('interface_version') == InterfaceVersion.VERSION_3_4

    def test_responses_carry_sequence(self):
        assert pdus.enquire_link_resp(7).sequence_number == 7
        assert pdus.deliver_sm_resp(42).command_id == CommandId.DELIVER_SM_RESP
        assert pdus.deliver_sm_resp(42).sequence_number == 42
        assert pdus.unbind_resp(9).command_id == CommandId.UNBIND_RESP

    def test_generic_nack(self):
        nack = pdus.generic_nack(11)

        assert nack.command_id == CommandId.GENERIC_NACK
        assert nack.sequence_number == 11
        assert nack.command_status == CommandStatus.ESME_RINVCMDID

    def test_submit_sm_copies_fields(self):
        fields = {'short_message': b'hi'}
        pdu = pdus.submit_sm(**fields)
        fields['short_message'] = b'changed'

        assert pdu.get('short_message') == b'hi'

    def test_describe(self):
        assert pdus.describe(None) == '<none>'
        assert pdus.describe(Pdu(CommandId.DELIVER_SM, 4)) == 'deliver_sm(seq=4)'


class TestText:
    """Tests for short message text encoding."""

    @pytest.mark.parametrize(
        'data_coding,expected',
        [
            (DataCoding.DEFAULT, 'latin-1'),
            (DataCoding.IA5_ASCII, 'ascii'),
            (DataCoding.LATIN_1, 'latin-1'),
            (DataCoding.UCS2, 'utf-16-be'),
            (DataCoding.OCTET_UNSPECIFIED, 'latin-1'),
            (0x06, 'utf-8'),
        ],
    )
    def test_get_encoding(self, data_coding, expected):
        assert get_encoding(data_coding) == expected

    def test_flash_bit_is_ignored(self):
        assert get_encoding(DataCoding.UCS2 | FLASH_MESSAGE_CLASS) == 'utf-16-be'
        assert get_encoding(DataCoding.DEFAULT | FLASH_MESSAGE_CLASS) == 'latin-1'

    def test_encode_ucs2(self):
        assert encode_text('你好', DataCoding.UCS2) == '你好'.encode('utf-16-be')
        assert len(encode_text('ab', DataCoding.UCS2)) == 4

    def test_encode_default_rejects_wide_characters(self):
        with pytest.raises(UnicodeEncodeError):
            encode_text('你好', DataCoding.DEFAULT)

    def test_decode(self):
        assert decode_text(None, DataCoding.DEFAULT) == ''
        assert decode_text('already text', DataCoding.DEFAULT) == 'already text'
        assert decode_text('héllo'.encode('latin-1'), DataCoding.DEFAULT) == 'héllo'
        assert decode_text('世界'.encode('utf-16-be'), DataCoding.UCS2) == '世界'

    def test_decode_replaces_invalid_bytes(self):
        assert decode_text(b'\xff', DataCoding.IA5_ASCII) == '�'
