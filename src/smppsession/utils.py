"""
SMPP Session Utilities

Helper functions shared by the session, the client facade and the demo
transport: logging setup, secret masking, SMPP time formatting and message
id generation.
"""

import itertools
import logging
import time
from datetime import datetime, timedelta, timezone
from typing import Optional

_message_counter = itertools.count(1)


def generate_message_id() -> str:
    """Generate a unique message ID."""
    return f'{int(time.time() * 1000) % 0x7FFFFFFF:x}{next(_message_counter):04x}'


def mask_sensitive_data(text: str, field_name: str = '') -> str:
    """Mask sensitive data for logging."""
    if 'password' in field_name.lower():
        return '*' * min(len(text), 8) if text else ''
    return text


def setup_logging(
    level: str = 'INFO',
    format: str = '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    log_file: Optional[str] = None,
    enable_console: bool = True,
) -> None:
    """Set up root logging from logging settings."""
    handlers: list = []
    if enable_console:
        handlers.append(logging.StreamHandler())
    if log_file:
        handlers.append(logging.FileHandler(log_file, encoding='utf-8'))

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=format,
        handlers=handlers or None,
        force=True,
    )


def format_smpp_time(timestamp: Optional[float] = None) -> str:
    """Format an absolute UTC time for SMPP protocol (YYMMDDhhmmsstnnp)."""
    if timestamp is None:
        timestamp = time.time()
    return time.strftime('%y%m%d%H%M%S000+', time.gmtime(timestamp))


def format_relative_smpp_time(delta: timedelta) -> str:
    """Format a relative SMPP time (YYMMDDhhmmss000R) from a timedelta."""
    if delta.total_seconds() < 0:
        raise ValueError(f'Relative time cannot be negative: {delta}')

    total_seconds = int(delta.total_seconds())
    days, remainder = divmod(total_seconds, 86400)
    hours, remainder = divmod(remainder, 3600)
    minutes, seconds = divmod(remainder, 60)
    years, days = divmod(days, 365)
    months, days = divmod(days, 30)

    if years > 99:
        raise ValueError(f'Relative time too large: {delta}')

    return (
        f'{years:02d}{months:02d}{days:02d}'
        f'{hours:02d}{minutes:02d}{seconds:02d}000R'
    )


def format_validity_period(value) -> str:
    """
    Convert a validity period to its SMPP string form.

    Accepts an aware or naive (treated as UTC) ``datetime`` for absolute
    time, a ``timedelta`` for relative time, or an already formatted string.
    """
    if value is None:
        return ''
    if isinstance(value, str):
        return value
    if isinstance(value, timedelta):
        return format_relative_smpp_time(value)
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return format_smpp_time(value.timestamp())
    raise TypeError(f'Unsupported validity period type: {type(value).__name__}')


def parse_smpp_time(smpp_time: Optional[str]) -> Optional[float]:
    """Parse the YYMMDDhhmm[ss] prefix of an SMPP time string as a UTC timestamp."""
    if not smpp_time or len(smpp_time) < 10:
        return None
    digits = smpp_time[:12] if smpp_time[10:12].isdigit() else smpp_time[:10] + '00'
    try:
        parsed = datetime.strptime(f'20{digits}', '%Y%m%d%H%M%S')
    except ValueError:
        return None
    return parsed.replace(tzinfo=timezone.utc).timestamp()


__all__ = [
    'generate_message_id',
    'mask_sensitive_data',
    'setup_logging',
    'format_smpp_time',
    'format_relative_smpp_time',
    'format_validity_period',
    'parse_smpp_time',
]
