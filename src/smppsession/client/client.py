"""
SMPP Client (ESME) Facade

This module provides the caller-facing client: it owns a ``Session``,
binds with the configured credentials, splits outgoing text into parts and
submits them, and surfaces delivery reports to registered observers.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional, Union

from ..config import ClientConfig, create_client_config
from ..delivery import DeliveryObserver
from ..exceptions import (
    NotBound,
    PartialSendFailure,
    SMPPException,
    SMPPMessageException,
    SMPPValidationException,
)
from ..protocol import (
    FLASH_MESSAGE_CLASS,
    MAX_SAR_SEGMENTS,
    DataCoding,
    EsmClass,
    Pdu,
    RegisteredDelivery,
)
from ..protocol import pdu as pdus
from ..protocol.text import encode_text
from ..segmentation import MessagePart, length_limit_for, segment
from ..session import Credentials, Session, SessionState
from ..transport import TransportChannel
from ..utils import format_validity_period

logger = logging.getLogger(__name__)

ValidityPeriod = Union[None, str, datetime, timedelta]

# alphabet bits of the general data coding group, keyed by data_coding
_FLASH_ALPHABETS = {
    DataCoding.DEFAULT: 0x00,
    DataCoding.OCTET_UNSPECIFIED: 0x04,
    DataCoding.UCS2: 0x08,
}


@dataclass
class Message:
    """A logical text message to send"""

    source_addr: str
    destination_addr: str
    text: str
    data_coding: int = DataCoding.DEFAULT
    flash: bool = False
    validity_period: ValidityPeriod = None
    request_delivery_receipt: bool = False

    @property
    def effective_data_coding(self) -> int:
        """
        data_coding to put on the wire.

        A flash message uses the general data coding group with message
        class 0, which only exists for the default, 8-bit and UCS2 alphabets.

        Raises:
            SMPPValidationException: If flash is requested for another coding
        """
        if not self.flash:
            return self.data_coding
        alphabet = _FLASH_ALPHABETS.get(self.data_coding)
        if alphabet is None:
            raise SMPPValidationException(
                f'Flash messages cannot use data_coding 0x{self.data_coding:02X}',
                field_name='data_coding',
                field_value=str(self.data_coding),
                validation_rule='flash_alphabet',
            )
        return FLASH_MESSAGE_CLASS | alphabet


@dataclass
class PartResult:
    """Outcome of one accepted submit_sm"""

    part: MessagePart
    sequence_number: int
    message_id: Optional[str]


class SMPPClient:
    """
    Async SMPP transceiver client.

    Args:
        transport: Channel that carries PDUs to and from the SMSC
        config: Client configuration; built from ``overrides`` when omitted
        **overrides: Configuration values applied on top of ``config``
    """

    def __init__(
        self,
        transport: TransportChannel,
        config: Optional[ClientConfig] = None,
        **overrides: Any,
    ):
        if config is None:
            config = create_client_config(**overrides)
        elif overrides:
            config = create_client_config(**{**config.to_dict(), **overrides})
        self.config = config

        self.length_limits: Dict[int, int] = {
            DataCoding.DEFAULT: config.default_length_limit,
            DataCoding.UCS2: config.unicode_length_limit,
        }

        self.session = Session(
            transport,
            host=config.host,
            port=config.port,
            connect_timeout=config.connect_timeout,
            bind_timeout=config.bind_timeout,
            response_timeout=config.response_timeout,
            unbind_timeout=config.unbind_timeout,
            enquire_link_interval=config.enquire_link_interval,
        )

        # Event handlers
        self.on_connection_lost: Optional[Callable[['SMPPClient', Exception], None]] = (
            None
        )
        self.session.on_connection_lost = self._handle_connection_lost

    @property
    def state(self) -> SessionState:
        return self.session.state

    @property
    def is_connected(self) -> bool:
        """Check if client is connected to SMSC"""
        return self.session.is_connected

    @property
    def is_bound(self) -> bool:
        """Check if client is bound to SMSC"""
        return self.session.is_bound

    async def connect(self) -> None:
        """Connect to SMSC server"""
        await self.session.connect()

    async def bind(self, credentials: Optional[Credentials] = None) -> Pdu:
        """Bind as transceiver with the given or configured credentials"""
        if credentials is None:
            credentials = Credentials(
                system_id=self.config.system_id,
                password=self.config.password,
                system_type=self.config.system_type,
                interface_version=self.config.interface_version,
            )
        return await self.session.bind(credentials)

    async def unbind(self) -> None:
        await self.session.unbind()

    async def close(self) -> None:
        await self.session.close()

    async def shutdown(self, unbind_timeout: Optional[float] = None) -> None:
        """Unbind if bound, then close the connection"""
        await self.session.shutdown(unbind_timeout)

    def on_delivery_report(self, observer: DeliveryObserver) -> DeliveryObserver:
        """
        Register an observer for inbound deliver_sm reports.

        The observer may be a plain callable or a coroutine function. Returns
        the observer so this can be used as a decorator.
        """
        self.session.delivery.add_observer(observer)
        return observer

    async def send_message(self, message: Message) -> List[PartResult]:
        """
        Send a text message, splitting it into parts when it is too long.

        Parts are submitted one at a time, each acknowledged before the next
        is sent.

        Returns:
            One ``PartResult`` per part, in order

        Raises:
            NotBound: If the session is not bound; nothing is sent
            SMPPValidationException: If flash is requested for an unsupported
                coding or the text needs more parts than SAR can number;
                nothing is sent
            SMPPMessageException: If the text cannot be encoded
            RequestRejected: The SMSC rejected a single-part message
            RequestTimeout: No response for a single-part message
            PartialSendFailure: A part of a multi-part message failed
        """
        if not self.session.is_bound:
            raise NotBound(
                'Cannot send message: session is not bound',
                current_state=self.session.state.value,
                operation='send_message',
            )

        data_coding = message.effective_data_coding
        limit = length_limit_for(data_coding, self.length_limits)
        parts = segment(message.text, limit)
        if len(parts) > MAX_SAR_SEGMENTS:
            raise SMPPValidationException(
                f'Message needs {len(parts)} segments, at most '
                f'{MAX_SAR_SEGMENTS} are allowed',
                field_name='text',
                field_value=str(len(message.text)),
                validation_rule='max_segments',
            )
        base_fields = self._build_base_fields(message, data_coding)

        encoded = [self._encode(message, part.text, data_coding) for part in parts]

        if len(parts) > 1:
            logger.info(
                f'Sending {len(message.text)} characters to {message.destination_addr} '
                f'in {len(parts)} parts'
            )
        else:
            logger.debug(f'Sending message to {message.destination_addr}')

        results: List[PartResult] = []
        for part, short_message in zip(parts, encoded):
            submit = pdus.submit_sm(
                short_message=short_message, **base_fields, **part.sar_fields()
            )
            try:
                response = await self.session.submit(submit)
            except SMPPException as e:
                if not part.is_multipart:
                    raise
                logger.error(
                    f'Part {part.segment_number}/{part.total_segments} '
                    f'to {message.destination_addr} failed: {e}'
                )
                raise PartialSendFailure(
                    f'Part {part.segment_number} of {part.total_segments} failed: {e}',
                    succeeded_parts=results,
                    failed_part=part,
                    first_failure=e,
                    destination=message.destination_addr,
                ) from e

            result = PartResult(
                part=part,
                sequence_number=submit.sequence_number,
                message_id=response.get('message_id'),
            )
            results.append(result)
            if part.is_multipart:
                logger.debug(
                    f'Sent part {part.segment_number} of {part.total_segments} '
                    f'(message_id={result.message_id})'
                )

        return results

    def _build_base_fields(self, message: Message, data_coding: int) -> Dict[str, Any]:
        try:
            validity_period = format_validity_period(message.validity_period)
        except (TypeError, ValueError) as e:
            raise SMPPValidationException(
                f'Invalid validity period: {e}',
                field_name='validity_period',
                field_value=str(message.validity_period),
                validation_rule='smpp_time',
                original_error=e,
            ) from e

        registered_delivery = (
            RegisteredDelivery.SUCCESS_FAILURE
            if message.request_delivery_receipt
            else RegisteredDelivery.NO_RECEIPT
        )
        return {
            'source_addr': message.source_addr,
            'destination_addr': message.destination_addr,
            'esm_class': EsmClass.DEFAULT,
            'data_coding': data_coding,
            'registered_delivery': registered_delivery,
            'validity_period': validity_period,
        }

    def _encode(self, message: Message, text: str, data_coding: int) -> bytes:
        try:
            return encode_text(text, data_coding)
        except UnicodeEncodeError as e:
            raise SMPPMessageException(
                f'Text cannot be encoded with data_coding 0x{data_coding:02X}: {e}',
                destination=message.destination_addr,
                original_error=e,
            ) from e

    def _handle_connection_lost(self, error: Exception) -> None:
        """Handle connection lost event"""
        logger.error(f'Connection lost: {error}')

        if self.on_connection_lost:
            try:
                self.on_connection_lost(self, error)
            except Exception as e:
                logger.exception(f'Error in connection lost handler: {e}')

    async def __aenter__(self) -> 'SMPPClient':
        """Async context manager entry - connect and bind."""
        await self.connect()
        try:
            await self.bind()
        except BaseException:
            await self.close()
            raise
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit - unbind and close."""
        await self.shutdown()

    def __repr__(self) -> str:
        return (
            f'SMPPClient(host={self.config.host}, port={self.config.port}, '
            f'system_id={self.config.system_id}, state={self.session.state.value})'
        )
