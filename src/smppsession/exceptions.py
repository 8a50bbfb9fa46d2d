"""
SMPP Session Exception Classes

Everything the session, the send orchestration and the configuration layer
raise derives from ``SMPPException``. Each family fills ``context`` with the
values that identify the failure so that ``str(exc)`` is enough for a log
line.
"""

from enum import IntEnum
from typing import Any, Dict, List, Optional, Union


class SMPPErrorCode(IntEnum):
    """Library error categories, independent of SMPP command status codes."""

    UNKNOWN = 0
    CONNECTION_FAILED = 1000
    BIND_FAILED = 1001
    TIMEOUT = 1003
    REQUEST_REJECTED = 1004
    VALIDATION_ERROR = 1005
    MESSAGE_ERROR = 1008
    INVALID_STATE = 1009
    SESSION_CLOSED = 1012


def _context(**values: Any) -> Dict[str, str]:
    """Keep the values that are set, as strings."""
    return {key: str(value) for key, value in values.items() if value not in (None, '')}


class SMPPException(Exception):
    """
    Root of the exception hierarchy.

    Args:
        message: Human readable description
        command_status: SMPP status from the PDU that caused the error, if any
        error_code: Library error category
        context: Identifying values rendered by ``__str__``
        original_error: Lower-level exception this one wraps
    """

    default_code: Optional[SMPPErrorCode] = None

    def __init__(
        self,
        message: str,
        command_status: Optional[int] = None,
        error_code: Optional[Union[str, SMPPErrorCode]] = None,
        context: Optional[Dict[str, Any]] = None,
        original_error: Optional[BaseException] = None,
    ):
        super().__init__(message)
        self.command_status = command_status
        self.error_code = error_code if error_code is not None else self.default_code
        self.context = dict(context) if context else {}
        self.original_error = original_error

    def __str__(self) -> str:
        text = super().__str__()
        details = []

        code = self.error_code
        if isinstance(code, SMPPErrorCode):
            details.append(f'Error Code: {code.name} ({code.value})')
        elif code:
            details.append(f'Error Code: {code}')

        if self.command_status is not None:
            details.append(f'Command Status: 0x{self.command_status:08X}')

        if self.context:
            pairs = ', '.join(f'{key}={value}' for key, value in self.context.items())
            details.append(f'Context: {pairs}')

        return ' | '.join([text] + details)


class SMPPConnectionException(SMPPException):
    """The transport could not be opened, was lost or refused a PDU."""

    default_code = SMPPErrorCode.CONNECTION_FAILED

    def __init__(
        self,
        message: str,
        host: Optional[str] = None,
        port: Optional[int] = None,
        connection_state: Optional[str] = None,
        original_error: Optional[BaseException] = None,
        error_code: Optional[SMPPErrorCode] = None,
    ):
        super().__init__(
            message,
            error_code=error_code,
            context=_context(host=host, port=port or None, state=connection_state),
            original_error=original_error,
        )
        self.host = host
        self.port = port
        self.connection_state = connection_state


class SessionClosed(SMPPConnectionException):
    """Raised for operations attempted after or during session shutdown,
    and used to fail requests still outstanding when the session closes."""

    def __init__(
        self,
        message: str = 'Session closed',
        connection_state: Optional[str] = None,
        original_error: Optional[BaseException] = None,
    ):
        super().__init__(
            message,
            connection_state=connection_state,
            original_error=original_error,
            error_code=SMPPErrorCode.SESSION_CLOSED,
        )


class SMPPTimeoutException(SMPPException):
    default_code = SMPPErrorCode.TIMEOUT

    def __init__(
        self,
        message: str,
        timeout_duration: Optional[float] = None,
        operation: Optional[str] = None,
        original_error: Optional[BaseException] = None,
    ):
        super().__init__(
            message,
            context=_context(timeout_duration=timeout_duration, operation=operation),
            original_error=original_error,
        )
        self.timeout_duration = timeout_duration
        self.operation = operation


class ConnectionTimeout(SMPPTimeoutException):
    """The transport did not report a connection within the connect timeout."""


class RequestTimeout(SMPPTimeoutException):
    """No response arrived for a correlated request within its timeout."""

    def __init__(
        self,
        message: str,
        sequence_number: Optional[int] = None,
        timeout_duration: Optional[float] = None,
        operation: Optional[str] = None,
    ):
        super().__init__(
            message, timeout_duration=timeout_duration, operation=operation
        )
        self.sequence_number = sequence_number
        self.context.update(_context(sequence_number=sequence_number))


class RequestRejected(SMPPException):
    """A correlated request was answered with a non-zero command status."""

    default_code = SMPPErrorCode.REQUEST_REJECTED

    def __init__(
        self,
        message: str,
        command_status: int,
        command_id: Optional[int] = None,
        sequence_number: Optional[int] = None,
    ):
        super().__init__(
            message,
            command_status=command_status,
            context=_context(
                command_id=None if command_id is None else f'0x{command_id:08X}',
                sequence_number=sequence_number,
            ),
        )
        self.command_id = command_id
        self.sequence_number = sequence_number

    @property
    def status(self) -> int:
        return self.command_status  # type: ignore[return-value]


class SMPPBindException(SMPPException):
    default_code = SMPPErrorCode.BIND_FAILED

    def __init__(
        self,
        message: str,
        bind_type: Optional[str] = None,
        system_id: Optional[str] = None,
        command_status: Optional[int] = None,
        original_error: Optional[BaseException] = None,
    ):
        super().__init__(
            message,
            command_status=command_status,
            context=_context(bind_type=bind_type, system_id=system_id),
            original_error=original_error,
        )
        self.bind_type = bind_type
        self.system_id = system_id


class BindRejected(SMPPBindException):
    """The SMSC answered bind_transceiver with a non-zero status."""

    def __init__(self, message: str, command_status: int, system_id: Optional[str] = None):
        super().__init__(
            message,
            bind_type='transceiver',
            system_id=system_id,
            command_status=command_status,
        )

    @property
    def status(self) -> int:
        return self.command_status  # type: ignore[return-value]


class SMPPInvalidStateException(SMPPException):
    """The session is in the wrong state for the requested operation."""

    default_code = SMPPErrorCode.INVALID_STATE

    def __init__(
        self,
        message: str,
        current_state: Optional[str] = None,
        expected_state: Optional[str] = None,
        operation: Optional[str] = None,
        original_error: Optional[BaseException] = None,
    ):
        super().__init__(
            message,
            context=_context(
                current_state=current_state,
                expected_state=expected_state,
                operation=operation,
            ),
            original_error=original_error,
        )
        self.current_state = current_state
        self.expected_state = expected_state
        self.operation = operation


class NotBound(SMPPInvalidStateException):
    """An operation that needs a bound session was attempted before bind completed."""

    def __init__(
        self,
        message: str = 'Not bound to SMSC',
        current_state: Optional[str] = None,
        operation: Optional[str] = None,
    ):
        super().__init__(
            message,
            current_state=current_state,
            expected_state='BOUND',
            operation=operation,
        )


class SMPPMessageException(SMPPException):
    """A message could not be built or sent."""

    default_code = SMPPErrorCode.MESSAGE_ERROR

    def __init__(
        self,
        message: str,
        message_id: Optional[str] = None,
        destination: Optional[str] = None,
        original_error: Optional[BaseException] = None,
    ):
        super().__init__(
            message,
            context=_context(message_id=message_id, destination=destination),
            original_error=original_error,
        )
        self.message_id = message_id
        self.destination = destination


class PartialSendFailure(SMPPMessageException):
    """
    A segmented message failed part-way through.

    Parts listed in ``succeeded_parts`` were accepted by the SMSC and stay
    accepted; ``failed_part`` is the first part that failed and the
    remaining parts were never submitted.
    """

    def __init__(
        self,
        message: str,
        succeeded_parts: List[Any],
        failed_part: Any,
        first_failure: BaseException,
        destination: Optional[str] = None,
    ):
        super().__init__(
            message, destination=destination, original_error=first_failure
        )
        self.succeeded_parts = succeeded_parts
        self.failed_part = failed_part
        self.first_failure = first_failure
        self.context['succeeded'] = str(len(succeeded_parts))


class SMPPValidationException(SMPPException):
    """A configuration value or call argument is out of range or malformed."""

    default_code = SMPPErrorCode.VALIDATION_ERROR

    def __init__(
        self,
        message: str,
        field_name: Optional[str] = None,
        field_value: Optional[str] = None,
        validation_rule: Optional[str] = None,
        original_error: Optional[BaseException] = None,
    ):
        super().__init__(
            message,
            context=_context(
                field_name=field_name,
                field_value=field_value,
                validation_rule=validation_rule,
            ),
            original_error=original_error,
        )
        self.field_name = field_name
        self.field_value = field_value
        self.validation_rule = validation_rule
