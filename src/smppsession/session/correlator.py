"""
Request/Response Correlation

Outstanding requests are kept in a table keyed by sequence number. Each
entry owns an ``asyncio.Future`` that is resolved exactly once: by the
matching response, by its timeout, or by the sweep that runs when the
session closes.

The table and the sequence counter are guarded by a lock so a transport
that delivers events from another thread cannot corrupt them. Futures are
always completed on their own event loop.
"""

import asyncio
import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from ..exceptions import RequestRejected, RequestTimeout, SMPPException
from ..protocol import (
    MAX_SEQUENCE_NUMBER,
    MIN_SEQUENCE_NUMBER,
    CommandStatus,
    Pdu,
    get_command_name,
    get_error_message,
)

logger = logging.getLogger(__name__)


class SequenceGenerator:
    """Monotonically increasing sequence numbers that wrap within the SMPP range."""

    def __init__(
        self, min_num: int = MIN_SEQUENCE_NUMBER, max_num: int = MAX_SEQUENCE_NUMBER
    ):
        if not MIN_SEQUENCE_NUMBER <= min_num <= max_num <= MAX_SEQUENCE_NUMBER:
            raise ValueError(
                f'Sequence range {min_num}-{max_num} is outside of '
                f'{MIN_SEQUENCE_NUMBER}-{MAX_SEQUENCE_NUMBER}'
            )
        self.min_num = min_num
        self.max_num = max_num
        self._current = min_num - 1

    def next_sequence(self) -> int:
        if self._current >= self.max_num:
            self._current = self.min_num
        else:
            self._current += 1
        return self._current


@dataclass
class PendingRequest:
    """One in-flight request awaiting its response"""

    sequence_number: int
    command_id: int
    future: 'asyncio.Future[Pdu]'
    created_at: float = field(default_factory=time.monotonic)
    deadline: Optional[float] = None
    timer: Optional[asyncio.TimerHandle] = None

    @property
    def command_name(self) -> str:
        return get_command_name(self.command_id)

    def cancel_timer(self) -> None:
        if self.timer is not None:
            self.timer.cancel()
            self.timer = None


class Correlator:
    """Table of outstanding requests keyed by sequence number"""

    def __init__(self, sequence: Optional[SequenceGenerator] = None):
        self._sequence = sequence or SequenceGenerator()
        self._pending: Dict[int, PendingRequest] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._pending)

    def __contains__(self, sequence_number: int) -> bool:
        return sequence_number in self._pending

    @property
    def pending(self) -> List[PendingRequest]:
        with self._lock:
            return list(self._pending.values())

    def register(self, pdu: Pdu, timeout: Optional[float] = None) -> PendingRequest:
        """
        Assign ``pdu`` a fresh sequence number and start tracking it.

        The sequence number is written back into the PDU. Numbers still in
        use after a wrap-around are skipped so concurrent requests never
        share one. With a ``timeout`` the request fails with
        ``RequestTimeout`` if no response has arrived by then.
        """
        loop = asyncio.get_running_loop()
        with self._lock:
            sequence_number = self._sequence.next_sequence()
            while sequence_number in self._pending:
                sequence_number = self._sequence.next_sequence()

            pdu.sequence_number = sequence_number
            pending = PendingRequest(
                sequence_number=sequence_number,
                command_id=pdu.command_id,
                future=loop.create_future(),
            )
            if timeout is not None:
                pending.deadline = pending.created_at + timeout
                pending.timer = loop.call_later(
                    timeout, self._expire, sequence_number, timeout
                )
            self._pending[sequence_number] = pending

        return pending

    def resolve(self, response: Pdu) -> bool:
        """
        Complete the request matching ``response``.

        Returns False when no request is waiting for that sequence number.
        """
        pending = self.discard(response.sequence_number)
        if pending is None:
            return False

        if pending.future.done():
            return True

        if response.command_status == CommandStatus.ESME_ROK:
            pending.future.set_result(response)
        else:
            pending.future.set_exception(
                RequestRejected(
                    f'{pending.command_name} rejected: '
                    f'{get_error_message(response.command_status)}',
                    command_status=response.command_status,
                    command_id=pending.command_id,
                    sequence_number=pending.sequence_number,
                )
            )
        return True

    def discard(self, sequence_number: int) -> Optional[PendingRequest]:
        """Stop tracking a request without completing it."""
        with self._lock:
            pending = self._pending.pop(sequence_number, None)
        if pending is not None:
            pending.cancel_timer()
        return pending

    def fail(self, sequence_number: int, error: SMPPException) -> bool:
        """Fail a single outstanding request."""
        pending = self.discard(sequence_number)
        if pending is None or pending.future.done():
            return False
        pending.future.set_exception(error)
        _consume_exception(pending.future)
        return True

    def fail_all(self, make_error: Callable[[], SMPPException]) -> int:
        """
        Fail every outstanding request with a fresh error from ``make_error``.

        Returns how many requests were failed.
        """
        with self._lock:
            pending_requests = list(self._pending.values())
            self._pending.clear()

        failed = 0
        for pending in pending_requests:
            pending.cancel_timer()
            if not pending.future.done():
                pending.future.set_exception(make_error())
                _consume_exception(pending.future)
                failed += 1

        if failed:
            logger.debug(f'Failed {failed} pending requests')
        return failed

    def _expire(self, sequence_number: int, timeout: float) -> None:
        pending = self._pending.get(sequence_number)
        if pending is None:
            return
        pending.timer = None
        logger.debug(
            f'{pending.command_name} (seq={sequence_number}) timed out after {timeout}s'
        )
        self.fail(
            sequence_number,
            RequestTimeout(
                f'No response to {pending.command_name} within {timeout} seconds',
                sequence_number=sequence_number,
                timeout_duration=timeout,
                operation=pending.command_name,
            ),
        )


def _consume_exception(future: asyncio.Future) -> None:
    # Mark the exception retrieved so futures nobody awaits do not log warnings
    future.exception()
