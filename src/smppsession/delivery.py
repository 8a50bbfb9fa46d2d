"""
Delivery Report Handling

Inbound deliver_sm PDUs arrive unsolicited. Each one is acknowledged with a
deliver_sm_resp carrying the same sequence number before anything else
happens, then parsed into a ``DeliveryReport`` and handed to the registered
observers. Observer failures are logged and never affect the
acknowledgement.
"""

import asyncio
import inspect
import logging
import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Dict, List, Optional, Set, Union

from .exceptions import SMPPException
from .protocol import EsmClass, MessageState, Pdu
from .protocol import pdu as pdus
from .protocol.text import decode_text
from .utils import parse_smpp_time

if TYPE_CHECKING:
    from .session import Session

logger = logging.getLogger(__name__)

DeliveryObserver = Callable[['DeliveryReport'], Union[None, Awaitable[None]]]

# id:XXXXXXXXXX sub:SSS dlvrd:DDD submit date:YYMMDDhhmm done date:YYMMDDhhmm stat:DDDDDDD err:EEE text:...
_RECEIPT_PATTERNS = {
    'id': r'id:(\S+)',
    'sub': r'sub:(\d+)',
    'dlvrd': r'dlvrd:(\d+)',
    'submit_date': r'submit date:(\d+)',
    'done_date': r'done date:(\d+)',
    'stat': r'stat:(\w+)',
    'err': r'err:(\w+)',
    'text': r'text:(.*)$',
}


def parse_receipt_text(receipt_text: str) -> Dict[str, str]:
    """Parse the conventional SMSC delivery receipt text into its fields"""
    receipt_data = {}
    for key, pattern in _RECEIPT_PATTERNS.items():
        match = re.search(pattern, receipt_text, re.IGNORECASE | re.DOTALL)
        if match:
            receipt_data[key] = match.group(1).strip()
    return receipt_data


@dataclass
class DeliveryReport:
    """A deliver_sm as seen by the application"""

    sequence_number: int
    source_addr: str = ''
    destination_addr: str = ''
    esm_class: int = 0
    data_coding: int = 0
    text: str = ''
    is_receipt: bool = False
    message_id: Optional[str] = None
    state: Optional[str] = None
    error_code: Optional[str] = None
    submitted: Optional[int] = None
    delivered: Optional[int] = None
    submit_date: Optional[str] = None
    done_date: Optional[str] = None
    submitted_at: Optional[float] = None
    done_at: Optional[float] = None
    fields: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_pdu(cls, pdu: Pdu) -> 'DeliveryReport':
        esm_class = int(pdu.get('esm_class', 0) or 0)
        data_coding = int(pdu.get('data_coding', 0) or 0)
        payload = pdu.get('short_message') or pdu.get('message_payload')
        text = decode_text(payload, data_coding)

        report = cls(
            sequence_number=pdu.sequence_number,
            source_addr=pdu.get('source_addr', ''),
            destination_addr=pdu.get('destination_addr', ''),
            esm_class=esm_class,
            data_coding=data_coding,
            text=text,
            is_receipt=bool(esm_class & EsmClass.DELIVERY_RECEIPT),
            fields=dict(pdu.fields),
        )
        if report.is_receipt:
            report._apply_receipt(pdu)
        return report

    def _apply_receipt(self, pdu: Pdu) -> None:
        receipt = parse_receipt_text(self.text)
        self.message_id = receipt.get('id')
        self.state = receipt.get('stat')
        self.error_code = receipt.get('err')
        self.submit_date = receipt.get('submit_date')
        self.done_date = receipt.get('done_date')
        self.submitted_at = parse_smpp_time(self.submit_date)
        self.done_at = parse_smpp_time(self.done_date)
        if 'sub' in receipt:
            self.submitted = int(receipt['sub'])
        if 'dlvrd' in receipt:
            self.delivered = int(receipt['dlvrd'])

        # Optional parameters are authoritative when present
        receipted_id = pdu.get('receipted_message_id')
        if receipted_id:
            self.message_id = receipted_id
        message_state = pdu.get('message_state')
        if message_state is not None:
            try:
                self.state = MessageState(message_state).name
            except ValueError:
                logger.debug(f'Unknown message_state {message_state!r}')

    @property
    def delivered_ok(self) -> bool:
        return self.is_receipt and (self.state or '').upper() in ('DELIVRD', 'DELIVERED')


class DeliveryReportHandler:
    """Acknowledges deliver_sm PDUs and fans reports out to observers"""

    def __init__(self, session: 'Session'):
        self.session = session
        self.reports_received = 0
        self._observers: List[DeliveryObserver] = []
        self._tasks: Set[asyncio.Future] = set()

    def add_observer(self, observer: DeliveryObserver) -> None:
        self._observers.append(observer)

    def remove_observer(self, observer: DeliveryObserver) -> None:
        if observer in self._observers:
            self._observers.remove(observer)

    def handle(self, pdu: Pdu) -> None:
        try:
            self.session.send_response(pdus.deliver_sm_resp(pdu.sequence_number))
        except SMPPException as e:
            logger.error(f'Failed to send deliver_sm_resp: {e}')

        self.reports_received += 1

        try:
            report = DeliveryReport.from_pdu(pdu)
        except Exception as e:
            logger.exception(f'Failed to parse {pdus.describe(pdu)}: {e}')
            return

        if report.is_receipt:
            logger.info(
                f'Delivery receipt for {report.message_id}: {report.state} '
                f'(err={report.error_code})'
            )
        else:
            logger.info(
                f'Message received from {report.source_addr} to {report.destination_addr}'
            )

        for observer in list(self._observers):
            self._notify(observer, report)

    def _notify(self, observer: DeliveryObserver, report: DeliveryReport) -> None:
        try:
            result = observer(report)
        except Exception as e:
            logger.exception(f'Error in delivery report observer: {e}')
            return

        if inspect.isawaitable(result):
            task = asyncio.ensure_future(result)
            self._tasks.add(task)
            task.add_done_callback(self._observer_done)

    def cancel_pending(self) -> None:
        """Cancel async observers still running; called when the session ends"""
        if not self._tasks:
            return
        logger.debug(f'Cancelling {len(self._tasks)} pending delivery report observers')
        for task in list(self._tasks):
            task.cancel()
        self._tasks.clear()

    def _observer_done(self, task: asyncio.Future) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(f'Error in delivery report observer: {error}')
