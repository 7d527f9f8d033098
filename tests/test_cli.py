"""Tests for CLI functionality."""

import logging
from unittest.mock import AsyncMock

import click
import pytest
from click.testing import CliRunner
from PIL import Image

from receiptio.cli import main, validate_destination, validate_margins
from receiptio.destination import NetworkAddress, SerialPath
from receiptio.options import PrintOptions
from receiptio.result import ResultCode


@pytest.fixture
def runner():
    """Create CLI test runner."""
    return CliRunner()


@pytest.fixture
def print_receipt(mocker):
    """Replace the print engine; returns SUCCESS unless reconfigured."""
    return mocker.patch("receiptio.cli.print_receipt", new=AsyncMock(return_value=ResultCode.SUCCESS))


class TestValidateDestination:
    """Test CLI destination validation."""

    def test_network(self):
        assert validate_destination(None, None, "10.0.0.5") == NetworkAddress("10.0.0.5")

    def test_serial(self):
        result = validate_destination(None, None, "COM1:9600")
        assert isinstance(result, SerialPath)
        assert result.baud_rate == 9600

    def test_none_returns_none(self):
        """Without a destination the command buffer goes to stdout."""
        assert validate_destination(None, None, None) is None

    def test_invalid_raises_bad_parameter(self):
        with pytest.raises(click.BadParameter):
            validate_destination(None, None, "COM1:0")


class TestValidateMargins:
    def test_left_only(self):
        assert validate_margins(None, None, "3") == (3, 0)

    def test_left_and_right(self):
        assert validate_margins(None, None, "2,4") == (2, 4)

    def test_default(self):
        assert validate_margins(None, None, None) == (0, 0)

    @pytest.mark.parametrize("value", ["x", "1,y", "1,2,3"])
    def test_invalid(self, value):
        with pytest.raises(click.BadParameter):
            validate_margins(None, None, value)


class TestStdoutOutput:
    """Without --destination, commands write the printer buffer to stdout."""

    def test_text(self, runner):
        result = runner.invoke(main, ["text", "Hello", "World"])
        assert result.exit_code == 0
        assert result.stdout_bytes.startswith(b"\x1b@\x1da\x00")
        assert b"Hello\n" in result.stdout_bytes
        assert b"World\n" in result.stdout_bytes

    def test_text_from_stdin(self, runner):
        result = runner.invoke(main, ["text", "-p", "star"], input="line one\nline two\n")
        assert result.exit_code == 0
        assert result.stdout_bytes.startswith(b"\x1b@\x1b\x1ea\x00")
        assert b"line two\n" in result.stdout_bytes

    def test_text_bold_with_rules(self, runner):
        result = runner.invoke(main, ["text", "--bold", "--rule", "-c", "24", "X"])
        assert result.exit_code == 0
        assert b"\x1bE\x01\x1dB\x00\x1d!\x00X" in result.stdout_bytes
        assert result.stdout_bytes.count(b"\xc4" * 24) == 2

    def test_no_cut(self, runner):
        result = runner.invoke(main, ["text", "-n", "X"])
        assert result.stdout_bytes.endswith(b"\x1bd\x01\x1dr1")

    def test_print_passes_through(self, runner):
        result = runner.invoke(main, ["print"], input=b"\x1b@abc")
        assert result.exit_code == 0
        assert result.stdout_bytes == b"\x1b@abc"

    def test_barcode(self, runner):
        result = runner.invoke(main, ["barcode", "12345678", "--hri"])
        assert result.exit_code == 0
        assert b"\x1dkI\x06{C" in result.stdout_bytes

    def test_barcode_height_range(self, runner):
        result = runner.invoke(main, ["barcode", "123", "--height", "10"])
        assert result.exit_code == 2

    def test_qr(self, runner):
        result = runner.invoke(main, ["qr", "hello", "--level", "h"])
        assert result.exit_code == 0
        assert b"\x1d(k\x03\x001E3" in result.stdout_bytes

    def test_image(self, runner, tmp_path):
        path = tmp_path / "logo.png"
        Image.new("L", (16, 2), color=0).save(path)
        result = runner.invoke(main, ["image", str(path), "-b", "128"])
        assert result.exit_code == 0
        assert b"\x1dv0\x00\x02\x00\x02\x00" + b"\xff" * 4 in result.stdout_bytes

    def test_landscape(self, runner):
        result = runner.invoke(main, ["text", "-v", "-r", "180", "X"])
        assert b"\x1dP\xb4\xb4\x1bL" in result.stdout_bytes

    def test_composition_error_exits_1(self, runner):
        result = runner.invoke(main, ["barcode", "012345678905", "-s", "upce", "-i"])
        assert result.exit_code == 1
        assert "Error:" in result.output


class TestPrinterCommands:
    """Commands with --destination run the print engine."""

    def test_print_file(self, runner, print_receipt, tmp_path):
        path = tmp_path / "receipt.bin"
        path.write_bytes(b"\x1b@\x1da\x00hello")
        result = runner.invoke(main, ["print", "-d", "192.168.1.20", "-p", "sii", "-t", "60", str(path)])

        assert result.exit_code == 0
        destination, command, language, options = print_receipt.call_args.args
        assert destination == NetworkAddress("192.168.1.20")
        assert command == b"\x1b@\x1da\x00hello"
        assert language == "sii"
        assert options.timeout == 60

    def test_exit_code_is_result(self, runner, print_receipt):
        print_receipt.return_value = ResultCode.COVEROPEN
        result = runner.invoke(main, ["text", "-d", "/dev/usb/lp0", "X"])
        assert result.exit_code == 101
        assert "coveropen" in result.output

    def test_status(self, runner, print_receipt):
        print_receipt.return_value = ResultCode.DRAWERCLOSED
        result = runner.invoke(main, ["status", "-d", "COM3", "--drawer"])

        assert result.exit_code == 107
        options = print_receipt.call_args.args[3]
        assert isinstance(options, PrintOptions)
        assert options.status_only and options.drawer
        assert print_receipt.call_args.args[1] == b""

    def test_status_requires_destination(self, runner):
        result = runner.invoke(main, ["status"])
        assert result.exit_code == 2
        assert "requires --destination" in result.output

    def test_invalid_destination(self, runner):
        result = runner.invoke(main, ["status", "-d", "COM1:0"])
        assert result.exit_code == 2

    def test_unknown_language(self, runner):
        result = runner.invoke(main, ["status", "-d", "COM1", "-p", "zpl"])
        assert result.exit_code == 2


class TestDebug:
    def test_debug_configures_logging(self, runner, mocker):
        basic_config = mocker.patch("receiptio.cli.logging.basicConfig")
        result = runner.invoke(main, ["--debug", "text", "X"])
        assert result.exit_code == 0
        assert basic_config.call_args.kwargs["level"] == logging.DEBUG

    def test_no_debug_leaves_logging_alone(self, runner, mocker):
        basic_config = mocker.patch("receiptio.cli.logging.basicConfig")
        runner.invoke(main, ["text", "X"])
        basic_config.assert_not_called()


class TestHelp:
    def test_main_help(self, runner):
        result = runner.invoke(main, ["--help"])
        assert result.exit_code == 0
        for command in ("print", "status", "image", "text", "barcode", "qr"):
            assert command in result.output
