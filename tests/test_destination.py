"""Tests for destination parsing."""

import pytest

from receiptio.destination import (
    FlowControl,
    NetworkAddress,
    Parity,
    SerialPath,
    UsbDevicePath,
    parse_destination,
)
from receiptio.errors import DestinationError


class TestNetworkAddress:
    """IP literals select raw TCP on port 9100."""

    def test_ipv4(self):
        assert parse_destination("192.168.192.168") == NetworkAddress("192.168.192.168", 9100)

    def test_ipv6(self):
        assert parse_destination("fe80::1") == NetworkAddress("fe80::1")

    def test_hostname_is_not_network(self):
        """Only literals are network addresses."""
        assert isinstance(parse_destination("printer"), SerialPath)


class TestUsbDevice:
    def test_usb_lp(self):
        assert parse_destination("/dev/usb/lp0") == UsbDevicePath("/dev/usb/lp0")

    def test_other_usb_path_is_serial(self):
        assert isinstance(parse_destination("/dev/usb/lpx"), SerialPath)


class TestSerialPath:
    """Serial ports with optional line parameters."""

    def test_defaults(self):
        dest = parse_destination("/dev/ttyS0")
        assert dest == SerialPath("/dev/ttyS0", 115200, Parity.NONE, 8, 1, FlowControl.NONE)

    def test_full_parameters_with_commas(self):
        dest = parse_destination("COM1:9600,E,7,2,X")
        assert dest == SerialPath("COM1", 9600, Parity.EVEN, 7, 2, FlowControl.XONXOFF)

    def test_parameters_without_commas(self):
        """Commas between parameters are optional."""
        assert parse_destination("COM1:9600N81R") == parse_destination("COM1:9600,N,8,1,R")

    def test_lowercase_parameters(self):
        dest = parse_destination("/dev/ttyUSB0:19200,o")
        assert dest.parity == Parity.ODD
        assert dest.baud_rate == 19200

    def test_baud_only(self):
        dest = parse_destination("/dev/ttyS1:38400")
        assert dest.path == "/dev/ttyS1"
        assert dest.baud_rate == 38400
        assert dest.data_bits == 8

    def test_parity_only(self):
        dest = parse_destination("COM2:E")
        assert dest.baud_rate == 115200
        assert dest.parity == Parity.EVEN

    def test_unparsable_suffix_is_path(self):
        """A colon not followed by line parameters is part of the path."""
        dest = parse_destination("/dev/odd:name")
        assert dest.path == "/dev/odd:name"
        assert dest.baud_rate == 115200

    def test_zero_baud_rejected(self):
        with pytest.raises(DestinationError):
            parse_destination("COM1:0")

    def test_str_round_trip(self):
        dest = SerialPath("COM1", 9600, Parity.EVEN, 7, 2, FlowControl.RTSCTS)
        assert str(dest) == "COM1:9600,E,7,2,R"
        assert parse_destination(str(dest)) == dest


class TestEmpty:
    @pytest.mark.parametrize("text", ["", "   ", None])
    def test_empty_rejected(self, text):
        with pytest.raises(DestinationError):
            parse_destination(text)
