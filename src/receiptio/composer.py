"""
Receipt Command Composer.

Builds complete printer command buffers for text, ruled lines, images,
barcodes and QR codes. Portrait receipts are streamed line by line.
Landscape receipts are laid out in page mode: the body is buffered while
a running Y position advances, and close() prepends the page header once
the extent of the body is known.

Every buffer starts with the family's reset sequence, which the print
engine adapts before sending (see protocol.StatusDecoder.prepare).
"""

from enum import IntFlag
from typing import List, Optional, Sequence, Union

from PIL import Image

from .barcodes import (
    IMAGE_BARCODE_TYPES,
    Symbology,
    generate_barcode,
    generate_qr,
    transform,
)
from .image import HalftoneEncoder, MonochromeBitmap, RasterImage
from .options import PrintOptions, PrinterFamily


class Decoration(IntFlag):
    """Text attributes."""

    NONE = 0
    UNDERLINE = 1
    EMPHASIS = 2
    INVERT = 4
    WIDE = 8
    HIGH = 16


# Box drawing glyph for each (up, down, left, right) connectivity
JUNCTIONS = {
    (False, False, False, False): "─",
    (False, False, False, True): "─",
    (False, False, True, False): "─",
    (False, False, True, True): "─",
    (False, True, False, False): "│",
    (False, True, False, True): "┌",
    (False, True, True, False): "┐",
    (False, True, True, True): "┬",
    (True, False, False, False): "│",
    (True, False, False, True): "└",
    (True, False, True, False): "┘",
    (True, False, True, True): "┴",
    (True, True, False, False): "│",
    (True, True, False, True): "├",
    (True, True, True, False): "┤",
    (True, True, True, True): "┼",
}

VERTICAL_RULE = "│"

ImageSource = Union[RasterImage, MonochromeBitmap, Image.Image, str, bytes]


def le16(value: int) -> bytes:
    """Two byte little endian parameter."""
    return bytes((value & 0xFF, value >> 8 & 0xFF))


class CommandComposer:
    """
    Family independent layout on top of family specific commands.

    Subclasses provide the command primitives; this class tracks the
    layout (printable columns, landscape position and extent) and the
    order in which commands are emitted.
    """

    FAMILY: PrinterFamily
    ENCODING = "cp437"

    # Font A cell in dots
    CHAR_WIDTH = 12
    LINE_HEIGHT = 24
    # Distance from the bottom of a text cell to the baseline
    DESCENT = 4

    MAX_SCAN_LINES = 2047
    DIFFUSION_RIGHT = 8
    NATIVE_QRCODE = True

    def __init__(self, options: Optional[PrintOptions] = None):
        self.options = options or PrintOptions()
        self.encoder = HalftoneEncoder(self.DIFFUSION_RIGHT)
        self._commands: List[bytes] = []
        self._y = 0
        self._extent = 0

    @property
    def columns(self) -> int:
        """Printable character cells per line."""
        return self.options.cpl - self.options.margin_left - self.options.margin_right

    @property
    def print_width(self) -> int:
        """Printable width in dots."""
        return self.columns * self.CHAR_WIDTH

    @property
    def landscape(self) -> bool:
        return self.options.landscape

    def clear(self):
        """Clear all queued commands."""
        self._commands.clear()
        self._y = 0
        self._extent = 0

    def get_commands(self) -> bytes:
        """Get all commands as a single byte string."""
        return b"".join(self._commands)

    def _add_raw(self, data: bytes):
        """Add raw bytes."""
        self._commands.append(data)

    # ---- Receipt structure ----

    def open(self):
        """Start a receipt. Landscape headers are deferred to close()."""
        self.clear()
        if self.landscape:
            return
        self._add_raw(self.reset())
        self._add_raw(self.code_page())
        self._add_raw(self.margins(self.options.margin_left, self.options.margin_right))
        if self.options.upside_down:
            self._add_raw(self.upside_down())

    def close(self) -> bytes:
        """Finish the receipt and return the command buffer."""
        if self.landscape:
            body = self._commands[:]
            self._commands.clear()
            self._add_raw(self.reset())
            self._add_raw(self.code_page())
            self._add_raw(self.page_begin())
            self._add_raw(self.page_direction(self.options.upside_down))
            self._add_raw(
                self.page_area(
                    self.options.margin_left * self.CHAR_WIDTH,
                    0,
                    self.print_width,
                    self._extent,
                )
            )
            self._commands.extend(body)
            self._add_raw(self.page_print())
        else:
            self._add_raw(self.feed_lines(1))

        if self.options.cutting:
            self._add_raw(self.cut())
        self._add_raw(self.end())
        return self.get_commands()

    # ---- Content ----

    def text(self, line: str, decoration: Decoration = Decoration.NONE):
        """Print one line of text."""
        width_scale = 2 if decoration & Decoration.WIDE else 1
        height_scale = 2 if decoration & Decoration.HIGH else 1
        data = self.decorate(decoration) + line.encode(self.ENCODING, "replace")
        data += self.decorate(Decoration.NONE)

        if self.landscape:
            self._y += self.LINE_HEIGHT * height_scale
            self._extend(len(line) * self.CHAR_WIDTH * width_scale)
            self._add_raw(self.position(0, self._y - self.DESCENT * height_scale))
            self._add_raw(data)
        else:
            self._add_raw(data + b"\n")

    def rule_line(
        self,
        left: int = 0,
        right: int = 0,
        above: Sequence[int] = (),
        below: Sequence[int] = (),
    ) -> str:
        """
        Horizontal rule as box drawing glyphs.

        Args:
            left: Cells skipped at the left end
            right: Cells skipped at the right end
            above: Columns where a vertical rule joins from above
            below: Columns where a vertical rule continues below
        """
        start, end = left, self.columns - 1 - right
        cells = []
        for column in range(self.columns):
            if column < start or column > end:
                cells.append(" ")
                continue
            key = (column in above, column in below, column > start, column < end)
            cells.append(JUNCTIONS[key])
        return "".join(cells).rstrip()

    def horizontal_rule(
        self,
        left: int = 0,
        right: int = 0,
        above: Sequence[int] = (),
        below: Sequence[int] = (),
    ):
        """Print a horizontal rule, joining vertical rules above and below."""
        self.text(self.rule_line(left, right, above, below))

    def vertical_rules(self, columns: Sequence[int], cells: Sequence[str] = ()):
        """
        Print one line with vertical rules at the given columns.

        cells[i] is placed after columns[i] and clipped at the next rule.
        """
        line = [" "] * self.columns
        for column in columns:
            if 0 <= column < self.columns:
                line[column] = VERTICAL_RULE
        bounds = list(columns) + [self.columns]
        for index, cell in enumerate(cells[:len(columns)]):
            start = bounds[index] + 1
            stop = min(bounds[index + 1], self.columns)
            for offset, char in enumerate(cell[:max(0, stop - start)]):
                line[start + offset] = char
        self.text("".join(line).rstrip())

    def image(self, source: ImageSource):
        """Print an image, halftoned with the current threshold and gamma."""
        if isinstance(source, MonochromeBitmap):
            self.bitmap(source)
            return
        if not isinstance(source, RasterImage):
            source = RasterImage.load(source, max_width=self.print_width)
        self.bitmap(
            self.encoder.encode(
                source,
                threshold=self.options.image_threshold,
                gamma=self.options.gamma,
                error_diffusion=self.options.error_diffusion,
            )
        )

    def bitmap(self, bitmap: MonochromeBitmap):
        """Print a monochrome bitmap in bands of at most MAX_SCAN_LINES rows."""
        for y in range(0, bitmap.height, self.MAX_SCAN_LINES):
            band = bitmap.slice(y, self.MAX_SCAN_LINES)
            if self.landscape:
                self._y += band.height
                self._extend(band.width)
                self._add_raw(self.position(0, self._y))
            self._add_raw(self.raster(band))

    def barcode(
        self,
        data: str,
        symbology: Symbology = Symbology.CODE128,
        height: int = 72,
        module: int = 2,
        hri: bool = False,
    ):
        """
        Print a barcode.

        In print-as-image and landscape modes, symbologies that can be
        rendered locally are printed as images.
        """
        symbology = Symbology(symbology)
        renderable = symbology in IMAGE_BARCODE_TYPES or symbology == Symbology.UPCE
        if renderable and (self.options.as_image or self.landscape):
            img = generate_barcode(data, symbology, height=height, module_width=module, include_text=hri)
            self.image(img)
            return

        payload = transform(symbology, data, self.FAMILY)
        if self.landscape:
            self._y += height
            self._add_raw(self.position(0, self._y))
        self._add_raw(self.barcode_command(symbology, payload, height, module, hri))
        if not self.landscape:
            self._add_raw(b"\n")

    def qrcode(self, data: str, cell: int = 3, level: str = "L"):
        """Print a QR code."""
        if self.options.as_image or self.landscape or not self.NATIVE_QRCODE:
            self.image(generate_qr(data, cell_size=cell, error_correction=level))
            return
        self._add_raw(self.qrcode_command(data.encode("utf-8"), cell, level))
        self._add_raw(b"\n")

    def feed(self, lines: int = 1):
        """Advance the paper by a number of text lines."""
        if self.landscape:
            self._y += lines * self.LINE_HEIGHT
        else:
            self._add_raw(self.feed_lines(lines))

    def _extend(self, width: int):
        self._extent = max(self._extent, width)

    # ---- Family commands ----

    def reset(self) -> bytes:
        raise NotImplementedError

    def code_page(self) -> bytes:
        raise NotImplementedError

    def margins(self, left: int, right: int) -> bytes:
        raise NotImplementedError

    def upside_down(self) -> bytes:
        raise NotImplementedError

    def decorate(self, decoration: Decoration) -> bytes:
        raise NotImplementedError

    def raster(self, bitmap: MonochromeBitmap) -> bytes:
        raise NotImplementedError

    def barcode_command(self, symbology: Symbology, payload: bytes, height: int, module: int, hri: bool) -> bytes:
        raise NotImplementedError

    def qrcode_command(self, data: bytes, cell: int, level: str) -> bytes:
        raise NotImplementedError

    def feed_lines(self, lines: int) -> bytes:
        raise NotImplementedError

    def cut(self) -> bytes:
        raise NotImplementedError

    def end(self) -> bytes:
        return b""

    def page_begin(self) -> bytes:
        raise NotImplementedError

    def page_direction(self, upside_down: bool) -> bytes:
        raise NotImplementedError

    def page_area(self, x: int, y: int, width: int, height: int) -> bytes:
        raise NotImplementedError

    def position(self, x: int, y: int) -> bytes:
        raise NotImplementedError

    def page_print(self) -> bytes:
        raise NotImplementedError


class EscPosComposer(CommandComposer):
    """ESC/POS commands."""

    FAMILY = PrinterFamily.ESCPOS

    # GS k function B symbology numbers
    BARCODE_TYPES = {
        Symbology.UPCA: 65,
        Symbology.UPCE: 66,
        Symbology.EAN13: 67,
        Symbology.EAN8: 68,
        Symbology.CODE39: 69,
        Symbology.ITF: 70,
        Symbology.CODABAR: 71,
        Symbology.CODE93: 72,
        Symbology.CODE128: 73,
    }
    QR_LEVELS = {"L": 48, "M": 49, "Q": 50, "H": 51}

    def reset(self) -> bytes:
        # ESC @ GS a 0
        return b"\x1b@\x1da\x00"

    def code_page(self) -> bytes:
        # ESC t 0: PC437
        return b"\x1bt\x00"

    def margins(self, left: int, right: int) -> bytes:
        # GS L left margin, GS W print area width (dots)
        return b"\x1dL" + le16(left * self.CHAR_WIDTH) + b"\x1dW" + le16(self.print_width)

    def upside_down(self) -> bytes:
        return b"\x1b{\x01"

    def decorate(self, decoration: Decoration) -> bytes:
        size = (0x10 if decoration & Decoration.WIDE else 0) | (0x01 if decoration & Decoration.HIGH else 0)
        return (
            b"\x1b-" + bytes((1 if decoration & Decoration.UNDERLINE else 0,))
            + b"\x1bE" + bytes((1 if decoration & Decoration.EMPHASIS else 0,))
            + b"\x1dB" + bytes((1 if decoration & Decoration.INVERT else 0,))
            + b"\x1d!" + bytes((size,))
        )

    def raster(self, bitmap: MonochromeBitmap) -> bytes:
        # GS v 0 m xL xH yL yH d1...dk
        return b"\x1dv0\x00" + le16(bitmap.bytes_per_row) + le16(bitmap.height) + bitmap.data

    def barcode_command(self, symbology: Symbology, payload: bytes, height: int, module: int, hri: bool) -> bytes:
        return (
            b"\x1dh" + bytes((max(1, min(height, 255)),))
            + b"\x1dw" + bytes((max(2, min(module, 6)),))
            + b"\x1dH" + bytes((2 if hri else 0,))
            + b"\x1dk" + bytes((self.BARCODE_TYPES[symbology], len(payload)))
            + payload
        )

    def qrcode_command(self, data: bytes, cell: int, level: str) -> bytes:
        # GS ( k: model 2, module size, error correction, store, print
        return (
            b"\x1d(k\x04\x001A2\x00"
            + b"\x1d(k\x03\x001C" + bytes((max(1, min(cell, 16)),))
            + b"\x1d(k\x03\x001E" + bytes((self.QR_LEVELS.get(level, 48),))
            + b"\x1d(k" + le16(len(data) + 3) + b"1P0" + data
            + b"\x1d(k\x03\x001Q0"
        )

    def feed_lines(self, lines: int) -> bytes:
        return b"\x1bd" + bytes((max(0, min(lines, 255)),))

    def cut(self) -> bytes:
        # GS V 66 0: feed to the cutter and partial cut
        return b"\x1dVB\x00"

    def end(self) -> bytes:
        # GS r 1: transmit paper sensor status, answered once printing is done
        return b"\x1dr1"

    def page_begin(self) -> bytes:
        # GS P x y: motion units in dots at the print resolution, ESC L: page mode
        resolution = self.options.resolution
        return b"\x1dP" + bytes((resolution, resolution)) + b"\x1bL"

    def page_direction(self, upside_down: bool) -> bytes:
        # ESC T 3: top to bottom, ESC T 1: bottom to top
        return b"\x1bT" + bytes((1 if upside_down else 3,))

    def page_area(self, x: int, y: int, width: int, height: int) -> bytes:
        return b"\x1bW" + le16(x) + le16(y) + le16(width) + le16(height)

    def position(self, x: int, y: int) -> bytes:
        # ESC $ absolute horizontal, GS $ absolute vertical
        return b"\x1b$" + le16(x) + b"\x1d$" + le16(y)

    def page_print(self) -> bytes:
        # FF: print the page and return to standard mode
        return b"\x0c"


class SiiComposer(EscPosComposer):
    """SII printers: ESC/POS commands, QR codes printed as images."""

    FAMILY = PrinterFamily.SII
    NATIVE_QRCODE = False


class StarComposer(CommandComposer):
    """Star Line Mode commands."""

    FAMILY = PrinterFamily.STAR
    MAX_SCAN_LINES = 1200
    DIFFUSION_RIGHT = 10

    # ESC b n1: symbology
    BARCODE_TYPES = {
        Symbology.UPCE: b"0",
        Symbology.UPCA: b"1",
        Symbology.EAN8: b"2",
        Symbology.EAN13: b"3",
        Symbology.CODE39: b"4",
        Symbology.ITF: b"5",
        Symbology.CODE128: b"6",
        Symbology.CODE93: b"7",
        Symbology.CODABAR: b"8",
    }
    QR_LEVELS = {"L": 0, "M": 1, "Q": 2, "H": 3}

    def reset(self) -> bytes:
        # ESC @, ESC RS a 0: automatic status off
        return b"\x1b@\x1b\x1ea\x00"

    def code_page(self) -> bytes:
        # ESC GS t 1: PC437
        return b"\x1b\x1dt\x01"

    def margins(self, left: int, right: int) -> bytes:
        # ESC l left margin, ESC Q right margin (columns from the left edge)
        return b"\x1bl" + bytes((left,)) + b"\x1bQ" + bytes((self.options.cpl - right,))

    def upside_down(self) -> bytes:
        # SI
        return b"\x0f"

    def decorate(self, decoration: Decoration) -> bytes:
        return (
            b"\x1b-" + bytes((1 if decoration & Decoration.UNDERLINE else 0,))
            + (b"\x1bE" if decoration & Decoration.EMPHASIS else b"\x1bF")
            + (b"\x1b4" if decoration & Decoration.INVERT else b"\x1b5")
            + b"\x1bi"
            + bytes((1 if decoration & Decoration.HIGH else 0, 1 if decoration & Decoration.WIDE else 0))
        )

    def raster(self, bitmap: MonochromeBitmap) -> bytes:
        # ESC GS S m xL xH yL yH n d1...dk
        return (
            b"\x1b\x1dS\x01" + le16(bitmap.bytes_per_row) + le16(bitmap.height) + b"\x00" + bitmap.data
        )

    def barcode_command(self, symbology: Symbology, payload: bytes, height: int, module: int, hri: bool) -> bytes:
        # ESC b n1 n2 n3 n4 d1...dk RS
        mode = str(max(1, min(module - 1, 3))).encode("ascii")
        return (
            b"\x1bb" + self.BARCODE_TYPES[symbology]
            + (b"2" if hri else b"1")
            + mode
            + bytes((max(1, min(height, 255)),))
            + payload
            + b"\x1e"
        )

    def qrcode_command(self, data: bytes, cell: int, level: str) -> bytes:
        # ESC GS y S: model 2, error correction, cell size; D: store; P: print
        return (
            b"\x1b\x1dyS0\x02"
            + b"\x1b\x1dyS1" + bytes((self.QR_LEVELS.get(level, 0),))
            + b"\x1b\x1dyS2" + bytes((max(1, min(cell, 8)),))
            + b"\x1b\x1dyD1\x00" + le16(len(data)) + data
            + b"\x1b\x1dyP"
        )

    def feed_lines(self, lines: int) -> bytes:
        return b"\x1ba" + bytes((max(0, min(lines, 127)),))

    def cut(self) -> bytes:
        # ESC d 3: feed to the cutter and partial cut
        return b"\x1bd\x03"

    def end(self) -> bytes:
        # ESC ACK SOH: status request, replaced by ETB before sending
        return b"\x1b\x06\x01"

    def page_begin(self) -> bytes:
        # ESC GS P 0: page mode
        return b"\x1b\x1dP0"

    def page_direction(self, upside_down: bool) -> bytes:
        # ESC GS P 2 n: 1 rotates 90 degrees clockwise, 3 counterclockwise
        return b"\x1b\x1dP2" + bytes((3 if upside_down else 1,))

    def page_area(self, x: int, y: int, width: int, height: int) -> bytes:
        return b"\x1b\x1dP3" + le16(x) + le16(y) + le16(width) + le16(height)

    def position(self, x: int, y: int) -> bytes:
        # ESC GS P 4 absolute horizontal, ESC GS P 6 absolute vertical
        return b"\x1b\x1dP4" + le16(x) + b"\x1b\x1dP6" + le16(y)

    def page_print(self) -> bytes:
        # ESC GS P 7: print the page and return to standard mode
        return b"\x1b\x1dP7"


COMPOSERS = {
    PrinterFamily.ESCPOS: EscPosComposer,
    PrinterFamily.SII: SiiComposer,
    PrinterFamily.STAR: StarComposer,
}


def create_composer(
    family: Union[PrinterFamily, str], options: Optional[PrintOptions] = None
) -> CommandComposer:
    """Create the command composer for a printer family or language name."""
    if not isinstance(family, PrinterFamily):
        family = PrinterFamily.from_language(family)
    return COMPOSERS[family](options)
