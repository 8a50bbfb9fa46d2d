"""
Scenario Driver

Connects, binds and sends a fixed set of demonstration messages: plain
text, Unicode, flash, a long message that needs segmentation and one with a
relative validity period. Every message asks for a delivery receipt and
incoming reports are logged.

Run with ``python -m smppsession.scenarios``. Without a real transport the
driver talks to the in-memory demo peer.
"""

import argparse
import asyncio
import logging
import signal
import sys
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .client import Message, PartResult, SMPPClient
from .config import ClientConfig, create_client_config_from_sources
from .delivery import DeliveryReport
from .exceptions import SMPPException
from .protocol import DataCoding
from .transport import AutoAckPeer, MemoryChannel, TransportChannel
from .utils import setup_logging

logger = logging.getLogger(__name__)

SOURCE_ADDR = 'TestSender'
DESTINATION_ADDR = '1234567890'

LONG_TEXT = (
    'This is a very long message that exceeds the standard SMS length. '
    'It will demonstrate how the SMPP protocol handles messages that need to '
    'be split into multiple parts. The message continues with more text to '
    'ensure it goes beyond the standard 160 characters limit for a single SMS.'
)

SCENARIOS: List[Tuple[str, Message]] = [
    (
        'Simple text message',
        Message(
            SOURCE_ADDR,
            DESTINATION_ADDR,
            'Hello from the Python SMPP client!',
            request_delivery_receipt=True,
        ),
    ),
    (
        'Unicode message',
        Message(
            SOURCE_ADDR,
            DESTINATION_ADDR,
            '你好，世界！',
            data_coding=DataCoding.UCS2,
            request_delivery_receipt=True,
        ),
    ),
    (
        'Flash message',
        Message(
            SOURCE_ADDR,
            DESTINATION_ADDR,
            'This is a flash message!',
            flash=True,
            request_delivery_receipt=True,
        ),
    ),
    (
        'Long message',
        Message(SOURCE_ADDR, DESTINATION_ADDR, LONG_TEXT, request_delivery_receipt=True),
    ),
    (
        'Message with validity period',
        Message(
            SOURCE_ADDR,
            DESTINATION_ADDR,
            'This message has a validity period of 1 hour',
            validity_period=timedelta(hours=1),
            request_delivery_receipt=True,
        ),
    ),
]


@dataclass
class ScenarioResult:
    name: str
    parts: List[PartResult] = field(default_factory=list)
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def log_delivery_report(report: DeliveryReport) -> None:
    if report.is_receipt:
        logger.info(
            f'Received delivery report for {report.message_id}: '
            f'stat={report.state} err={report.error_code}'
        )
    else:
        logger.info(f'Received message from {report.source_addr}: {report.text}')


async def run_scenarios(
    client: SMPPClient,
    pause: float = 2.0,
    scenarios: Sequence[Tuple[str, Message]] = SCENARIOS,
    stop_event: Optional[asyncio.Event] = None,
) -> List[ScenarioResult]:
    """
    Send each scenario message in order, pausing between them.

    A failing scenario is logged and the driver moves on. Setting
    ``stop_event`` ends the run before the next scenario.
    """
    results: List[ScenarioResult] = []
    logger.info('=== Running Test Scenarios ===')

    for index, (name, message) in enumerate(scenarios, start=1):
        if stop_event is not None and stop_event.is_set():
            logger.info('Stop requested, skipping remaining scenarios')
            break

        logger.info(f'Scenario {index}: {name}')
        result = ScenarioResult(name)
        try:
            result.parts = await client.send_message(message)
        except SMPPException as e:
            result.error = e
            logger.error(f'Scenario {index} failed: {e}')
        else:
            ids = ', '.join(str(part.message_id) for part in result.parts)
            logger.info(f'Scenario {index} sent in {len(result.parts)} part(s): {ids}')
        results.append(result)

        if index < len(scenarios) and pause > 0:
            await _pause(pause, stop_event)

    logger.info('=== Test Scenarios Completed ===')
    return results


async def _pause(seconds: float, stop_event: Optional[asyncio.Event]) -> None:
    if stop_event is None:
        await asyncio.sleep(seconds)
        return
    try:
        await asyncio.wait_for(stop_event.wait(), timeout=seconds)
    except asyncio.TimeoutError:
        pass


def demo_transport() -> MemoryChannel:
    """In-memory channel answered by a peer that also sends receipts"""
    return MemoryChannel(AutoAckPeer(send_receipts=True))


async def run(
    config: ClientConfig,
    transport: Optional[TransportChannel] = None,
    pause: float = 2.0,
    stop_event: Optional[asyncio.Event] = None,
) -> int:
    """
    Connect, bind, run the scenarios and shut down.

    Returns:
        Process exit code: 0 on completion, 1 if connect or bind failed
    """
    if transport is None:
        transport = demo_transport()

    client = SMPPClient(transport, config)
    client.on_delivery_report(log_delivery_report)

    try:
        await client.connect()
        logger.info(f'Connected to SMPP server at {config.host}:{config.port}')
        await client.bind()
        logger.info('Successfully bound to SMPP server')
    except SMPPException as e:
        logger.error(f'Connection error: {e}')
        try:
            await client.close()
        except SMPPException as close_error:
            logger.error(f'Error while closing session: {close_error}')
        return 1

    try:
        await run_scenarios(client, pause=pause, stop_event=stop_event)
    finally:
        logger.info('Unbinding and closing connection')
        await client.shutdown()

    return 0


def _install_signal_handlers(
    loop: asyncio.AbstractEventLoop, stop_event: asyncio.Event
) -> Dict[int, Any]:
    def signal_handler(signum, frame):
        logger.info(f'Received signal {signum}, initiating shutdown')
        if not loop.is_closed():
            loop.call_soon_threadsafe(stop_event.set)

    original_handlers: Dict[int, Any] = {}
    for sig in (signal.SIGTERM, signal.SIGINT):
        try:
            original_handlers[sig] = signal.signal(sig, signal_handler)
        except (ValueError, OSError) as e:
            logger.debug(f'Could not register signal handler for {sig}: {e}')
    return original_handlers


def _restore_signal_handlers(original_handlers: Dict[int, Any]) -> None:
    for sig, handler in original_handlers.items():
        try:
            signal.signal(sig, handler)
        except (ValueError, OSError) as e:
            logger.debug(f'Could not restore signal handler for {sig}: {e}')


async def _main(config: ClientConfig, pause: float) -> int:
    stop_event = asyncio.Event()
    handlers = _install_signal_handlers(asyncio.get_running_loop(), stop_event)
    try:
        return await run(config, pause=pause, stop_event=stop_event)
    finally:
        _restore_signal_handlers(handlers)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='smppsession-scenarios',
        description='Send the demonstration SMS scenarios over an SMPP session',
    )
    parser.add_argument('--config', help='JSON configuration file')
    parser.add_argument(
        '--env-prefix', default='SMPP_', help='Environment variable prefix'
    )
    parser.add_argument(
        '--pause', type=float, default=2.0, help='Seconds between scenarios'
    )
    parser.add_argument('--log-level', help='Override the configured log level')
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    overrides: Dict[str, Any] = {}
    if args.log_level:
        overrides['logging'] = {'level': args.log_level}

    try:
        config = create_client_config_from_sources(
            file_path=args.config, env_prefix=args.env_prefix, **overrides
        )
    except SMPPException as e:
        print(f'Invalid configuration: {e}', file=sys.stderr)
        return 2

    setup_logging(
        level=config.logging.level,
        format=config.logging.format,
        log_file=config.logging.log_file,
        enable_console=config.logging.enable_console,
    )
    logger.info(f'Starting SMPP client with {config!r}')

    return asyncio.run(_main(config, args.pause))


if __name__ == '__main__':
    sys.exit(main())
