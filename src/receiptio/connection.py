"""
Printer Transports.

Three transports share one callback contract:

- on_data(bytes): fired for every inbound chunk
- on_drain(): fired when the outbound buffer empties
- on_error(exc): fired on any transport fault after a successful open

write() returns True while the transport accepts more data without
queuing (drain semantics). close() is safe to call any number of times.
"""

import asyncio
import logging
import os
import select
import stat
from collections import deque
from typing import Callable, Optional

import serial
from serial.tools import list_ports

from .destination import (
    Destination,
    FlowControl,
    NetworkAddress,
    Parity,
    SerialPath,
    UsbDevicePath,
)
from .errors import ConnectionError

logger = logging.getLogger(__name__)


class Connection:
    """Base class for printer transports."""

    def __init__(self):
        self.on_data: Optional[Callable[[bytes], None]] = None
        self.on_drain: Optional[Callable[[], None]] = None
        self.on_error: Optional[Callable[[Exception], None]] = None
        self._closed = False

    async def open(self) -> bool:
        """Open the transport. Returns False if the device is unreachable."""
        raise NotImplementedError

    def write(self, data: bytes) -> bool:
        """Queue data for sending. Returns True if the send buffer is drained."""
        raise NotImplementedError

    def close(self):
        """Release all resources."""
        raise NotImplementedError

    @property
    def is_closed(self) -> bool:
        return self._closed

    def _emit_data(self, data: bytes):
        if not self._closed and self.on_data:
            self.on_data(data)

    def _emit_drain(self):
        if not self._closed and self.on_drain:
            self.on_drain()

    def _emit_error(self, exc: Exception):
        if not self._closed and self.on_error:
            self.on_error(exc)


# --- TCP ---


class _RawPrintProtocol(asyncio.Protocol):
    """asyncio protocol forwarding events to a TCPConnection."""

    def __init__(self, connection: "TCPConnection"):
        self.connection = connection

    def data_received(self, data: bytes):
        logger.debug("RX %s", data.hex())
        self.connection._emit_data(data)

    def pause_writing(self):
        self.connection._paused = True

    def resume_writing(self):
        self.connection._paused = False
        self.connection._emit_drain()

    def connection_lost(self, exc: Optional[Exception]):
        self.connection._connection_lost(exc)


class TCPConnection(Connection):
    """Raw TCP connection (port 9100) to a network printer."""

    # Send buffer size above which write() reports backpressure
    HIGH_WATER_MARK = 16 * 1024

    def __init__(self, address: NetworkAddress):
        super().__init__()
        self.address = address
        self._transport: Optional[asyncio.Transport] = None
        self._paused = False

    async def open(self) -> bool:
        loop = asyncio.get_running_loop()
        try:
            transport, _ = await loop.create_connection(
                lambda: _RawPrintProtocol(self),
                self.address.host,
                self.address.port,
            )
        except OSError as e:
            logger.warning("Connection to %s:%d failed: %s", self.address.host, self.address.port, e)
            return False

        self._transport = transport
        transport.set_write_buffer_limits(high=self.HIGH_WATER_MARK)
        logger.debug("Connected to %s:%d", self.address.host, self.address.port)
        return True

    def write(self, data: bytes) -> bool:
        if self._closed or self._transport is None or self._transport.is_closing():
            return False
        self._transport.write(data)
        return not self._paused

    def close(self):
        if self._closed:
            return
        self._closed = True
        if self._transport is not None:
            self._transport.abort()
            self._transport = None

    def _connection_lost(self, exc: Optional[Exception]):
        if self._closed:
            return
        logger.warning("Connection to %s lost: %s", self.address.host, exc or "closed by peer")
        self._emit_error(exc or ConnectionError("Connection closed by printer"))


# --- Polled devices ---


class PollingConnection(Connection):
    """
    Transport for device files that are not event-driven.

    Input is polled at POLL_INTERVAL and delivered through on_data.
    By default writes are blocking calls that complete before write()
    returns, so the send buffer is always reported as drained.
    """

    POLL_INTERVAL = 0.1

    def __init__(self):
        super().__init__()
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._poll_handle: Optional[asyncio.TimerHandle] = None

    async def open(self) -> bool:
        try:
            self._open_device()
        except (ConnectionError, OSError) as e:
            logger.warning("Cannot open %s: %s", self, e)
            return False

        self._loop = asyncio.get_running_loop()
        self._schedule_poll()
        logger.debug("Opened %s", self)
        return True

    def write(self, data: bytes) -> bool:
        if self._closed:
            return False
        try:
            self._write_all(data)
        except OSError as e:
            logger.warning("Write to %s failed: %s", self, e)
            self._loop.call_soon(self._emit_error, e)
            return False
        return True

    def close(self):
        if self._closed:
            return
        self._closed = True
        if self._poll_handle is not None:
            self._poll_handle.cancel()
            self._poll_handle = None
        try:
            self._release()
        except OSError as e:
            logger.debug("Error while closing %s: %s", self, e)

    def _schedule_poll(self):
        self._poll_handle = self._loop.call_later(self.POLL_INTERVAL, self._poll)

    def _poll(self):
        self._poll_handle = None
        if self._closed:
            return
        try:
            data = self._read_available()
        except OSError as e:
            logger.warning("Read from %s failed: %s", self, e)
            self._emit_error(e)
            return
        if data:
            logger.debug("RX %s", data.hex())
            self._emit_data(data)
        if not self._closed:
            self._schedule_poll()

    # Device specific hooks

    def _open_device(self):
        raise NotImplementedError

    def _read_available(self) -> bytes:
        raise NotImplementedError

    def _write_all(self, data: bytes):
        raise NotImplementedError

    def _release(self):
        raise NotImplementedError


class SerialConnection(PollingConnection):
    """
    Serial port connection using pyserial.

    Writes run in the loop's default executor: write() queues the data and
    reports the send buffer as busy; on_drain fires once the queue is
    written out.
    """

    POLL_INTERVAL = 0.02

    PARITIES = {
        Parity.NONE: serial.PARITY_NONE,
        Parity.EVEN: serial.PARITY_EVEN,
        Parity.ODD: serial.PARITY_ODD,
    }
    BYTE_SIZES = {7: serial.SEVENBITS, 8: serial.EIGHTBITS}
    STOP_BITS = {1: serial.STOPBITS_ONE, 2: serial.STOPBITS_TWO}

    def __init__(self, destination: SerialPath, port_lister: Callable = list_ports.comports):
        super().__init__()
        self.destination = destination
        self._port_lister = port_lister
        self._serial: Optional[serial.Serial] = None
        self._pending: deque = deque()
        self._writer: Optional[asyncio.Task] = None

    def __str__(self) -> str:
        return f"serial port {self.destination.path}"

    def write(self, data: bytes) -> bool:
        if self._closed:
            return False
        self._pending.append(bytes(data))
        if self._writer is None:
            self._writer = self._loop.create_task(self._write_pending())
        return False

    def close(self):
        if self._writer is not None:
            self._writer.cancel()
            self._writer = None
        self._pending.clear()
        super().close()

    async def _write_pending(self):
        while self._pending and not self._closed:
            data = self._pending.popleft()
            try:
                await self._loop.run_in_executor(None, self._write_all, data)
            except OSError as e:
                self._writer = None
                if not self._closed:
                    logger.warning("Write to %s failed: %s", self, e)
                    self._emit_error(e)
                return
        self._writer = None
        self._emit_drain()

    def is_present(self) -> bool:
        """Check that the port is currently enumerated by the system."""
        path = self.destination.path.lower()
        return any(port.device.lower() == path for port in self._port_lister())

    def _open_device(self):
        if not self.is_present():
            raise ConnectionError(f"Serial port not found: {self.destination.path}")

        dest = self.destination
        self._serial = serial.Serial(
            port=dest.path,
            baudrate=dest.baud_rate,
            bytesize=self.BYTE_SIZES[dest.data_bits],
            parity=self.PARITIES[dest.parity],
            stopbits=self.STOP_BITS[dest.stop_bits],
            rtscts=dest.flow_control == FlowControl.RTSCTS,
            xonxoff=dest.flow_control == FlowControl.XONXOFF,
            timeout=0,
        )

    def _read_available(self) -> bytes:
        waiting = self._serial.in_waiting
        if not waiting:
            return b""
        return self._serial.read(waiting)

    def _write_all(self, data: bytes):
        self._serial.write(data)
        self._serial.flush()

    def _release(self):
        if self._serial is not None:
            self._serial.close()
            self._serial = None


class UsbConnection(PollingConnection):
    """USB printer class device (/dev/usb/lp*)."""

    POLL_INTERVAL = 0.1
    READ_SIZE = 1024

    def __init__(self, destination: UsbDevicePath):
        super().__init__()
        self.destination = destination
        self._fd: Optional[int] = None

    def __str__(self) -> str:
        return f"USB device {self.destination.path}"

    def _open_device(self):
        fd = os.open(self.destination.path, os.O_RDWR)
        if not stat.S_ISCHR(os.fstat(fd).st_mode):
            os.close(fd)
            raise ConnectionError(f"Not a character device: {self.destination.path}")
        self._fd = fd

    def _read_available(self) -> bytes:
        readable, _, _ = select.select([self._fd], [], [], 0)
        if not readable:
            return b""
        return os.read(self._fd, self.READ_SIZE)

    def _write_all(self, data: bytes):
        view = memoryview(data)
        while view:
            written = os.write(self._fd, view)
            view = view[written:]

    def _release(self):
        if self._fd is not None:
            os.close(self._fd)
            self._fd = None


def create_connection(destination: Destination) -> Connection:
    """Create the transport matching a parsed destination."""
    if isinstance(destination, NetworkAddress):
        return TCPConnection(destination)
    if isinstance(destination, UsbDevicePath):
        return UsbConnection(destination)
    if isinstance(destination, SerialPath):
        return SerialConnection(destination)
    raise TypeError(f"Unsupported destination: {destination!r}")
