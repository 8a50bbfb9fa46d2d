"""
Message Segmentation

Splits text longer than the per-encoding limit into parts that share a
random reference number and carry their position through the SAR optional
parameters.
"""

import logging
import random
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional

from .exceptions import SMPPValidationException
from .protocol import FLASH_MESSAGE_CLASS, MAX_REFERENCE_NUMBER, DataCoding

logger = logging.getLogger(__name__)

# Characters per short message
DEFAULT_LENGTH_LIMITS: Dict[int, int] = {
    DataCoding.DEFAULT: 140,
    DataCoding.UCS2: 70,
}


@dataclass(frozen=True)
class MessagePart:
    """One segment of a logical message"""

    reference_number: int
    total_segments: int
    segment_number: int
    text: str

    @property
    def is_multipart(self) -> bool:
        return self.total_segments > 1

    def sar_fields(self) -> Dict[str, int]:
        """SAR optional parameters for this part; empty for a single part"""
        if not self.is_multipart:
            return {}
        return {
            'sar_msg_ref_num': self.reference_number,
            'sar_total_segments': self.total_segments,
            'sar_segment_seqnum': self.segment_number,
        }


def new_reference_number() -> int:
    return random.randint(0, MAX_REFERENCE_NUMBER)


def split_text(text: str, limit: int) -> List[str]:
    """
    Split text into consecutive chunks of at most ``limit`` characters.

    Text that fits, including the empty string, comes back as a single
    chunk. Joining the chunks reproduces the input.
    """
    if limit < 1:
        raise SMPPValidationException(
            f'Length limit must be at least 1, got {limit}',
            field_name='limit',
            field_value=str(limit),
            validation_rule='min_value',
        )
    if len(text) <= limit:
        return [text]
    return [text[i:i + limit] for i in range(0, len(text), limit)]


def segment(
    text: str, limit: int, reference_number: Optional[int] = None
) -> List[MessagePart]:
    """Split text into ``MessagePart`` objects numbered from 1"""
    chunks = split_text(text, limit)
    if reference_number is None:
        reference_number = new_reference_number()
    elif not 0 <= reference_number <= MAX_REFERENCE_NUMBER:
        raise SMPPValidationException(
            f'Reference number out of range: {reference_number}',
            field_name='reference_number',
            field_value=str(reference_number),
            validation_rule='range',
        )

    total = len(chunks)
    if total > 1:
        logger.debug(f'Split {len(text)} characters into {total} parts (ref={reference_number})')

    return [
        MessagePart(
            reference_number=reference_number,
            total_segments=total,
            segment_number=index,
            text=chunk,
        )
        for index, chunk in enumerate(chunks, start=1)
    ]


def length_limit_for(
    data_coding: int, limits: Optional[Mapping[int, int]] = None
) -> int:
    """Characters per part for a data coding; unknown codings use the 7-bit limit"""
    if limits is None:
        limits = DEFAULT_LENGTH_LIMITS
    coding = data_coding & ~FLASH_MESSAGE_CLASS
    if coding in limits:
        return limits[coding]
    return limits.get(DataCoding.DEFAULT, DEFAULT_LENGTH_LIMITS[DataCoding.DEFAULT])


__all__ = [
    'DEFAULT_LENGTH_LIMITS',
    'MessagePart',
    'new_reference_number',
    'split_text',
    'segment',
    'length_limit_for',
]
