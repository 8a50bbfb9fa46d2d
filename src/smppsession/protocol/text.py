"""
Short message text encoding helpers.
"""

from typing import Union

from .constants import FLASH_MESSAGE_CLASS, DataCoding


def get_encoding(data_coding: int) -> str:
    """Get the Python codec for a data_coding value

    The message class bits (e.g. flash) are ignored.
    """
    coding = data_coding & ~FLASH_MESSAGE_CLASS
    if coding == DataCoding.DEFAULT:
        return 'latin-1'  # GSM 7-bit approximation
    elif coding == DataCoding.IA5_ASCII:
        return 'ascii'
    elif coding in (DataCoding.LATIN_1, DataCoding.OCTET_UNSPECIFIED):
        return 'latin-1'
    elif coding == DataCoding.UCS2:
        return 'utf-16-be'
    else:
        return 'utf-8'


def encode_text(text: str, data_coding: int) -> bytes:
    """Encode text for the short_message field; raises UnicodeEncodeError"""
    return text.encode(get_encoding(data_coding))


def decode_text(data: Union[bytes, str, None], data_coding: int) -> str:
    """Decode a short_message field, replacing undecodable bytes"""
    if data is None:
        return ''
    if isinstance(data, str):
        return data
    return data.decode(get_encoding(data_coding), errors='replace')
