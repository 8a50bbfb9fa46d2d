"""
Keepalive Monitor

Sends enquire_link pings on a fixed interval while the session is bound and
answers enquire_link requests from the SMSC.

A failed ping is counted and reported to the session; it never tears the
session down. Whether to reconnect is the caller's decision.
"""

import asyncio
import logging
from typing import TYPE_CHECKING, Optional

from .exceptions import SessionClosed, SMPPException
from .protocol import Pdu
from .protocol import pdu as pdus

if TYPE_CHECKING:
    from .session import Session

logger = logging.getLogger(__name__)


class KeepaliveMonitor:
    """Periodic enquire_link sender and enquire_link responder"""

    def __init__(
        self,
        session: 'Session',
        interval: float = 10.0,
        timeout: Optional[float] = None,
    ):
        self.session = session
        self.interval = interval
        self.timeout = timeout
        self.pings_sent = 0
        self.failures = 0
        self.last_error: Optional[Exception] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        task = self._task
        self._task = None
        if task is None or task.done():
            return
        task.cancel()
        if task is asyncio.current_task():
            return
        await asyncio.gather(task, return_exceptions=True)

    def cancel(self) -> None:
        """Cancel the ping loop without waiting for it to finish"""
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    async def ping(self) -> bool:
        """Send one enquire_link and wait for the answer."""
        self.pings_sent += 1
        try:
            await self.session.submit(pdus.enquire_link(), timeout=self.timeout)
        except SessionClosed as e:
            logger.debug(f'Enquire_link abandoned: {e}')
            return False
        except SMPPException as e:
            self.failures += 1
            self.last_error = e
            logger.warning(f'Enquire_link failed: {e}')
            self.session.report_keepalive_failure(e)
            return False
        return True

    def respond(self, pdu: Pdu) -> None:
        """Answer an inbound enquire_link with the same sequence number."""
        try:
            self.session.send_response(pdus.enquire_link_resp(pdu.sequence_number))
        except SMPPException as e:
            logger.error(f'Failed to send enquire_link_resp: {e}')

    async def _run(self) -> None:
        logger.debug('Starting enquire_link loop')
        try:
            while True:
                await asyncio.sleep(self.interval)
                if not self.session.is_bound:
                    break
                logger.debug('Sending enquire_link')
                await self.ping()
        except asyncio.CancelledError:
            pass
        finally:
            logger.debug('Enquire_link loop ended')
