"""
Destination Parsing.

A destination is an IP address (raw TCP on port 9100), a USB line printer
device, or a serial port with optional line parameters:

    <path>[:<baud>[,<parity>[,<databits>[,<stopbits>[,<flowcontrol>]]]]]

Commas between parameters are optional, so "COM1:9600N81R" and
"COM1:9600,N,8,1,R" are equivalent.
"""

import ipaddress
import re
from dataclasses import dataclass
from enum import Enum
from typing import Union

from .errors import DestinationError

RAW_PRINT_PORT = 9100

USB_DEVICE_PATTERN = re.compile(r"^/dev/usb/lp\d+$")

SERIAL_PARAMS_PATTERN = re.compile(
    r"^(\d+)?,?([neo])?,?([78])?,?([12])?,?([nrx])?$",
    re.IGNORECASE,
)


class Parity(str, Enum):
    NONE = "N"
    EVEN = "E"
    ODD = "O"


class FlowControl(str, Enum):
    NONE = "N"
    RTSCTS = "R"
    XONXOFF = "X"


@dataclass(frozen=True)
class NetworkAddress:
    """IPv4 or IPv6 printer address."""

    host: str
    port: int = RAW_PRINT_PORT

    def __str__(self) -> str:
        return self.host


@dataclass(frozen=True)
class SerialPath:
    """Serial port with line parameters."""

    path: str
    baud_rate: int = 115200
    parity: Parity = Parity.NONE
    data_bits: int = 8
    stop_bits: int = 1
    flow_control: FlowControl = FlowControl.NONE

    def __str__(self) -> str:
        return (
            f"{self.path}:{self.baud_rate},{self.parity.value},"
            f"{self.data_bits},{self.stop_bits},{self.flow_control.value}"
        )


@dataclass(frozen=True)
class UsbDevicePath:
    """USB printer class character device."""

    path: str

    def __str__(self) -> str:
        return self.path


Destination = Union[NetworkAddress, SerialPath, UsbDevicePath]


def parse_destination(text: str) -> Destination:
    """
    Parse a destination string.

    Args:
        text: IP address, USB device path, or serial port specification

    Returns:
        NetworkAddress, UsbDevicePath or SerialPath

    Raises:
        DestinationError: If the destination is empty or the baud rate is zero
    """
    text = (text or "").strip()
    if not text:
        raise DestinationError("Destination is empty")

    try:
        ipaddress.ip_address(text)
    except ValueError:
        pass
    else:
        return NetworkAddress(text)

    if USB_DEVICE_PATTERN.match(text):
        return UsbDevicePath(text)

    return _parse_serial(text)


def _parse_serial(text: str) -> SerialPath:
    path, sep, params = text.rpartition(":")
    match = SERIAL_PARAMS_PATTERN.match(params) if sep else None
    if not path or match is None:
        # No parameter suffix (or one we don't understand): it is all path
        return SerialPath(text)

    baud, parity, data_bits, stop_bits, flow = match.groups()
    if baud is not None and int(baud) == 0:
        raise DestinationError(f"Invalid baud rate in destination: {text}")

    return SerialPath(
        path=path,
        baud_rate=int(baud) if baud else 115200,
        parity=Parity(parity.upper()) if parity else Parity.NONE,
        data_bits=int(data_bits) if data_bits else 8,
        stop_bits=int(stop_bits) if stop_bits else 1,
        flow_control=FlowControl(flow.upper()) if flow else FlowControl.NONE,
    )
