"""
Command-Line Interface for receiptio.

Usage:
    receiptio print -d DEST FILE      - Send a pre-rendered command file
    receiptio status -d DEST          - Inquire printer status
    receiptio image -d DEST IMAGE     - Print an image
    receiptio text -d DEST [LINE...]  - Print lines of text
    receiptio barcode -d DEST DATA    - Print a barcode
    receiptio qr -d DEST DATA         - Print a QR code

Without -d, the command buffer is written to stdout instead of a printer.
The exit status is the result code: success(0), online(100),
coveropen(101), paperempty(102), error(103), offline(104),
disconnect(105), timeout(106), drawerclosed(107), draweropen(108).
"""

import asyncio
import logging
import sys

import click

from .barcodes import Symbology
from .composer import CommandComposer, Decoration, create_composer
from .destination import parse_destination
from .errors import DestinationError, PrinterError
from .options import LANGUAGES, PrintOptions
from .result import ResultCode
from .session import print_receipt


def validate_destination(ctx, param, value):
    """Validate destination syntax.

    Accepts:
        - IPv4/IPv6 address (raw TCP, port 9100)
        - USB device: /dev/usb/lpN
        - Serial port: PATH[:BAUD[,PARITY[,DATABITS[,STOPBITS[,FLOW]]]]]

    Returns:
        The parsed Destination, or None when omitted

    Raises:
        click.BadParameter: If the destination cannot be parsed
    """
    if not value:
        return None
    try:
        return parse_destination(value)
    except DestinationError as e:
        raise click.BadParameter(str(e)) from None


def validate_margins(ctx, param, value):
    """Parse LEFT[,RIGHT] margins in character cells."""
    if value is None:
        return (0, 0)
    parts = value.split(",")
    try:
        left = int(parts[0] or 0)
        right = int(parts[1] or 0) if len(parts) > 1 else 0
    except ValueError:
        raise click.BadParameter(f"Invalid margins: '{value}'. Expected LEFT[,RIGHT]") from None
    if len(parts) > 2:
        raise click.BadParameter(f"Invalid margins: '{value}'. Expected LEFT[,RIGHT]")
    return (left, right)


def printer_options(func):
    """Options shared by every command that talks to a printer."""
    func = click.option(
        "--timeout", "-t", default=300, help="Print timeout in seconds (0-3600, 0 = none)"
    )(func)
    func = click.option(
        "--printer",
        "-p",
        "language",
        type=click.Choice(LANGUAGES, case_sensitive=False),
        default="escpos",
        help="Printer control language",
    )(func)
    func = click.option(
        "--destination",
        "-d",
        callback=validate_destination,
        help="IP address, serial port or USB device of the printer",
    )(func)
    return func


def layout_options(func):
    """Options for commands that compose the receipt themselves."""
    decorators = [
        click.option("--cpl", "-c", default=48, help="Characters per line (24-96)"),
        click.option(
            "--margin", "-m", callback=validate_margins, help="Margins LEFT[,RIGHT] in characters (0-24)"
        ),
        click.option("--upside-down", "-u", is_flag=True, help="Print upside down"),
        click.option("--landscape", "-v", is_flag=True, help="Rotate 90 degrees (page mode)"),
        click.option(
            "--resolution",
            "-r",
            type=click.Choice(["180", "203"]),
            default="203",
            help="Print resolution for landscape (dpi)",
        ),
        click.option("--no-cut", "-n", is_flag=True, help="Do not cut the paper"),
        click.option("--as-image", "-i", is_flag=True, help="Print barcodes and QR codes as images"),
        click.option("--threshold", "-b", type=click.IntRange(0, 255), help="Image threshold (0-255)"),
        click.option("--gamma", "-g", type=float, help="Image gamma correction (0.1-10.0)"),
    ]
    for decorator in reversed(decorators):
        func = decorator(func)
    return func


def build_options(timeout, cpl=48, margin=(0, 0), upside_down=False, landscape=False,
                  resolution="203", no_cut=False, as_image=False, threshold=None,
                  gamma=None, **kwargs) -> PrintOptions:
    return PrintOptions(
        timeout=timeout,
        cpl=cpl,
        margin_left=margin[0],
        margin_right=margin[1],
        upside_down=upside_down,
        landscape=landscape,
        resolution=int(resolution),
        cutting=not no_cut,
        as_image=as_image,
        threshold=threshold,
        gamma=gamma,
        **kwargs,
    )


def send(destination, language: str, command: bytes, options: PrintOptions):
    """Send a command buffer (or write it to stdout) and exit with the result."""
    result = asyncio.run(print_receipt(destination, command, language, options))

    if isinstance(result, bytes):
        stdout = click.get_binary_stream("stdout")
        stdout.write(result)
        stdout.flush()
        sys.exit(0)

    click.echo(str(result), err=result != ResultCode.SUCCESS)
    sys.exit(result.exit_code)


def compose(language: str, options: PrintOptions, build) -> bytes:
    """Run build(composer) between open() and close()."""
    composer: CommandComposer = create_composer(language, options)
    composer.open()
    try:
        build(composer)
    except (PrinterError, ValueError) as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    return composer.close()


@click.group()
@click.option("--debug/--no-debug", default=False, help="Enable debug output")
def main(debug):
    """Receipt printer driver for ESC/POS, SII and Star printers."""
    if debug:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s %(name)s %(levelname)s %(message)s",
        )


@main.command("print")
@click.argument("source", type=click.File("rb"), default="-")
@printer_options
def print_file(source, destination, language, timeout):
    """Send a pre-rendered printer command file (or stdin)."""
    command = source.read()
    send(destination, language, command, PrintOptions(timeout=timeout))


@main.command()
@printer_options
@click.option("--drawer", is_flag=True, help="Report the cash drawer state")
def status(destination, language, timeout, drawer):
    """Inquire printer status.

    Exits with online(100), drawerclosed(107) or draweropen(108) when the
    printer is ready, otherwise with the fault or liveness result.
    """
    if destination is None:
        raise click.UsageError("status requires --destination")
    send(destination, language, b"", PrintOptions(status_only=True, drawer=drawer, timeout=timeout))


@main.command()
@click.argument("image", type=click.Path(exists=True, dir_okay=False))
@printer_options
@layout_options
def image(image, destination, language, timeout, **layout):
    """Print an image file."""
    options = build_options(timeout, **layout)
    command = compose(language, options, lambda c: c.image(image))
    send(destination, language, command, options)


@main.command()
@click.argument("lines", nargs=-1)
@printer_options
@layout_options
@click.option("--bold", is_flag=True, help="Emphasized text")
@click.option("--underline", is_flag=True, help="Underlined text")
@click.option("--invert", is_flag=True, help="White on black text")
@click.option("--wide", is_flag=True, help="Double width text")
@click.option("--high", is_flag=True, help="Double height text")
@click.option("--rule", is_flag=True, help="Draw horizontal rules above and below")
def text(lines, destination, language, timeout, bold, underline, invert, wide, high, rule, **layout):
    """Print lines of text (from arguments or stdin)."""
    if not lines:
        lines = click.get_text_stream("stdin").read().splitlines()

    decoration = Decoration.NONE
    for flag, value in (
        (bold, Decoration.EMPHASIS),
        (underline, Decoration.UNDERLINE),
        (invert, Decoration.INVERT),
        (wide, Decoration.WIDE),
        (high, Decoration.HIGH),
    ):
        if flag:
            decoration |= value

    def build(composer):
        if rule:
            composer.horizontal_rule()
        for line in lines:
            composer.text(line, decoration)
        if rule:
            composer.horizontal_rule()

    options = build_options(timeout, **layout)
    send(destination, language, compose(language, options, build), options)


@main.command()
@click.argument("data")
@printer_options
@layout_options
@click.option(
    "--symbology",
    "-s",
    type=click.Choice([s.value for s in Symbology]),
    default=Symbology.CODE128.value,
    help="Barcode type",
)
@click.option("--height", default=72, type=click.IntRange(24, 240), help="Bar height in dots")
@click.option("--module", default=2, type=click.IntRange(2, 4), help="Narrow bar width in dots")
@click.option("--hri", is_flag=True, help="Print human readable text")
def barcode(data, destination, language, timeout, symbology, height, module, hri, **layout):
    """Print a barcode."""
    options = build_options(timeout, **layout)
    command = compose(
        language,
        options,
        lambda c: c.barcode(data, Symbology(symbology), height=height, module=module, hri=hri),
    )
    send(destination, language, command, options)


@main.command()
@click.argument("data")
@printer_options
@layout_options
@click.option("--cell", default=3, type=click.IntRange(3, 8), help="Cell size in dots")
@click.option(
    "--level",
    type=click.Choice(["L", "M", "Q", "H"], case_sensitive=False),
    default="L",
    help="Error correction level",
)
def qr(data, destination, language, timeout, cell, level, **layout):
    """Print a QR code."""
    options = build_options(timeout, **layout)
    command = compose(language, options, lambda c: c.qrcode(data, cell=cell, level=level.upper()))
    send(destination, language, command, options)


if __name__ == "__main__":
    main()
