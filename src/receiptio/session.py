"""
Print Sessions.

A PrintSession runs one print or status request against one printer and
resolves with a single ResultCode. Every failure, from an unparsable
destination to a printer that never answers, comes back as a result code
rather than an exception.
"""

import asyncio
import logging
from typing import Callable, Optional, Union

from .connection import Connection, create_connection
from .destination import Destination, parse_destination
from .errors import DestinationError
from .options import PrintOptions, PrinterFamily
from .protocol import ProtocolStateMachine, Session, create_decoder
from .result import ResultCode

logger = logging.getLogger(__name__)


class PrintSession:
    """
    Orchestrates a single request: open the transport, run the protocol,
    release everything.

    Args:
        connection_factory: Creates the transport for a destination
        scheduler: Timer scheduler with asyncio-style call_later
            (default: the running event loop)
    """

    def __init__(
        self,
        connection_factory: Callable[[Destination], Connection] = create_connection,
        scheduler=None,
    ):
        self._connection_factory = connection_factory
        self._scheduler = scheduler
        self.machine: Optional[ProtocolStateMachine] = None

    async def run(
        self,
        destination: Union[str, Destination, None],
        family: Union[PrinterFamily, str],
        command: bytes,
        options: Optional[PrintOptions] = None,
    ) -> Union[ResultCode, bytes]:
        """
        Print a command buffer or inquire printer status.

        Args:
            destination: Printer address; empty to get the command back
            family: Printer family or printer control language name
            command: Pre-rendered printer commands
            options: Print options (status_only, drawer, timeout, ...)

        Returns:
            The command buffer unchanged when destination is empty,
            otherwise the ResultCode of the session
        """
        if not destination:
            return command

        options = options or PrintOptions()
        if not isinstance(family, PrinterFamily):
            family = PrinterFamily.from_language(family)

        if isinstance(destination, str):
            try:
                destination = parse_destination(destination)
            except DestinationError as e:
                logger.warning("%s", e)
                return ResultCode.DISCONNECT

        loop = asyncio.get_running_loop()
        result: asyncio.Future = loop.create_future()

        def resolve(code: ResultCode):
            if not result.done():
                result.set_result(code)

        connection = self._connection_factory(destination)
        session = Session(destination=destination, family=family, command=command)
        machine = ProtocolStateMachine(
            session,
            create_decoder(family),
            connection,
            on_result=resolve,
            options=options,
            scheduler=self._scheduler or loop,
        )
        self.machine = machine

        connection.on_data = machine.receive
        connection.on_drain = machine.drained
        connection.on_error = machine.fail

        logger.debug("Opening %s (%s)", destination, family.value)
        if not await connection.open():
            machine.close(ResultCode.DISCONNECT)
            return await result

        machine.start()
        return await result


async def print_receipt(
    destination: Union[str, Destination, None],
    command: bytes,
    language: str = "escpos",
    options: Optional[PrintOptions] = None,
) -> Union[ResultCode, bytes]:
    """
    Convenience function to print a command buffer.

    Args:
        destination: Printer address (empty returns the command unchanged)
        command: Pre-rendered printer commands
        language: Printer control language
        options: Print options

    Returns:
        ResultCode, or the command buffer when destination is empty
    """
    return await PrintSession().run(destination, language, command, options)


async def get_status(
    destination: Union[str, Destination],
    language: str = "escpos",
    drawer: bool = False,
) -> ResultCode:
    """
    Convenience function to inquire printer (or cash drawer) status.

    Returns:
        online, drawerclosed/draweropen, or the fault / liveness result
    """
    if not destination:
        return ResultCode.DISCONNECT
    options = PrintOptions(status_only=True, drawer=drawer)
    return await PrintSession().run(destination, language, b"", options)
