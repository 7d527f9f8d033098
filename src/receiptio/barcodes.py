"""
Barcode Payloads and Symbol Rendering.

Printers draw barcodes themselves from a payload whose format depends on
the symbology and the printer family. The transforms here turn the
user-facing data into that payload. For print-as-image mode, symbols are
rendered to PIL images with python-barcode and qrcode instead.
"""

from enum import Enum
from io import BytesIO
from typing import List, Literal, Optional, Tuple

import barcode
import qrcode
from barcode.writer import ImageWriter
from PIL import Image, ImageDraw
from qrcode.constants import (
    ERROR_CORRECT_H,
    ERROR_CORRECT_L,
    ERROR_CORRECT_M,
    ERROR_CORRECT_Q,
)

from .options import PrinterFamily

# Longest payload any family's barcode command accepts
MAX_PAYLOAD = 255

# QR code error correction levels
QRErrorCorrection = Literal["L", "M", "Q", "H"]


class Symbology(str, Enum):
    """Barcode symbologies printers render natively."""

    UPCA = "upca"
    UPCE = "upce"
    EAN13 = "ean13"
    EAN8 = "ean8"
    CODE39 = "code39"
    ITF = "itf"
    CODABAR = "codabar"
    CODE93 = "code93"
    CODE128 = "code128"


# --- UPC-E ---

# Odd (L) and even (G) parity patterns of the digits 0-9
UPC_ODD = (
    "0001101", "0011001", "0010011", "0111101", "0100011",
    "0110001", "0101111", "0111011", "0110111", "0001011",
)
UPC_EVEN = (
    "0100111", "0110011", "0011011", "0100001", "0011101",
    "0111001", "0000101", "0010001", "0001001", "0010111",
)

# Parity of the six UPC-E digits for number system 0, indexed by check digit
UPCE_PARITY = (
    "EEEOOO", "EEOEOO", "EEOOEO", "EEOOOE", "EOEEOO",
    "EOOEEO", "EOOOEE", "EOEOEO", "EOEOOE", "EOOEOE",
)


def upc_check_digit(digits: str) -> int:
    """Modulo 10 check digit of the first 11 UPC-A digits."""
    odd = sum(int(d) for d in digits[0:11:2])
    even = sum(int(d) for d in digits[1:11:2])
    return (10 - (odd * 3 + even) % 10) % 10


def upce(payload: str) -> bytes:
    """
    Compress an 11 or 12 digit UPC-A payload to UPC-E.

    Returns number system, six digits and check digit (8 ASCII digits),
    or the payload unchanged if it has no zero-suppressed form.
    """
    if not payload.isdigit() or len(payload) not in (11, 12) or payload[0] not in "01":
        return payload.encode("ascii", "ignore")

    ns = payload[0]
    m = payload[1:6]  # manufacturer
    p = payload[6:11]  # product
    check = upc_check_digit(payload)

    if m[2] in "012" and m[3:] == "00" and p[:2] == "00":
        short = m[:2] + p[2:] + m[2]
    elif m[3:] == "00" and p[:3] == "000":
        short = m[:3] + p[3:] + "3"
    elif m[4] == "0" and p[:4] == "0000":
        short = m[:4] + p[4] + "4"
    elif m[4] != "0" and p[:4] == "0000" and p[4] in "56789":
        short = m + p[4]
    else:
        return payload.encode("ascii")

    return f"{ns}{short}{check}".encode("ascii")


def upce_parity(number_system: int, check: int) -> str:
    """Odd (O) / even (E) parity of the six UPC-E digits."""
    pattern = UPCE_PARITY[check]
    if number_system == 1:
        pattern = pattern.translate(str.maketrans("EO", "OE"))
    return pattern


def upce_modules(payload: str) -> Optional[str]:
    """Bar pattern ("1" = bar) of a UPC-E symbol, None if not compressible."""
    short = upce(payload).decode("ascii")
    if len(short) != 8 or short == payload[:8]:
        return None
    parity = upce_parity(int(short[0]), int(short[7]))
    bars = "101"
    for digit, side in zip(short[1:7], parity):
        bars += (UPC_EVEN if side == "E" else UPC_ODD)[int(digit)]
    return bars + "010101"


# --- CODE128 ---

CODE128_START = {"A": 103, "B": 104, "C": 105}
CODE128_SWITCH = {"A": 101, "B": 100, "C": 99}


def _in_subset(char: str, subset: str) -> bool:
    code = ord(char)
    if subset == "A":
        return code < 96
    return 32 <= code < 128


def _code128_segments(data: str) -> List[Tuple[str, str]]:
    """
    Split data into (subset, text) runs using the fewest symbols.

    Dynamic programming over positions: cost[i][s] is the number of
    symbols needed for data[i:] while subset s is active.
    """
    n = len(data)
    subsets = ("B", "C", "A")
    inf = float("inf")
    cost = [{s: inf for s in subsets} for _ in range(n + 1)]
    step = [{s: None for s in subsets} for _ in range(n + 1)]
    for s in subsets:
        cost[n][s] = 0

    for i in range(n - 1, -1, -1):
        # Staying in the current subset
        stay = {}
        for s in subsets:
            if s == "C":
                if data[i:i + 2].isdigit() and len(data[i:i + 2]) == 2:
                    stay[s] = (1 + cost[i + 2][s], (s, 2))
            elif _in_subset(data[i], s):
                stay[s] = (1 + cost[i + 1][s], (s, 1))
        # Switching costs one symbol before continuing in the other subset
        for s in subsets:
            best = stay.get(s, (inf, None))
            for other, (value, move) in stay.items():
                if other != s and value + 1 < best[0]:
                    best = (value + 1, move)
            cost[i][s], step[i][s] = best

    start = min(subsets, key=lambda s: cost[0][s])
    if n and cost[0][start] == inf:
        raise ValueError("CODE128 data must be ASCII")

    segments: List[Tuple[str, str]] = []
    i, current = 0, start
    while i < n:
        subset, width = step[i][current]
        if segments and segments[-1][0] == subset:
            segments[-1] = (subset, segments[-1][1] + data[i:i + width])
        else:
            segments.append((subset, data[i:i + width]))
        current = subset
        i += width
    return segments or [(start, "")]


def code128_symbols(data: str) -> List[int]:
    """Start symbol, data and subset switch symbols, and check symbol."""
    segments = _code128_segments(data)
    symbols = [CODE128_START[segments[0][0]]]
    for index, (subset, text) in enumerate(segments):
        if index:
            symbols.append(CODE128_SWITCH[subset])
        if subset == "C":
            symbols.extend(int(text[j:j + 2]) for j in range(0, len(text), 2))
        else:
            for char in text:
                code = ord(char)
                symbols.append(code + 64 if code < 32 else code - 32)

    check = symbols[0] + sum(i * s for i, s in enumerate(symbols[1:], 1))
    symbols.append(check % 103)
    return symbols


def code128(data: str, family: PrinterFamily) -> bytes:
    """
    CODE128 payload for a family's barcode command.

    ESC/POS and SII take a stream with {A {B {C subset selectors (a literal
    brace is doubled) and digit pairs as single bytes in subset C. Star
    printers select subsets themselves from plain ASCII.
    """
    data = "".join(c for c in data if ord(c) < 128)
    if family == PrinterFamily.STAR:
        return data.encode("ascii")

    payload = bytearray()
    for subset, text in _code128_segments(data):
        payload += b"{" + subset.encode("ascii")
        if subset == "C":
            payload += bytes(int(text[j:j + 2]) for j in range(0, len(text), 2))
        else:
            payload += text.replace("{", "{{").encode("ascii")
    return bytes(payload)


# --- Codabar / Code93 ---

CODABAR_MARKERS = "ABCD"


def codabar(data: str, family: PrinterFamily) -> bytes:
    """Codabar payload with start/stop markers (A-D)."""
    data = data.upper()
    if family != PrinterFamily.STAR:
        if not data or data[0] not in CODABAR_MARKERS:
            data = "A" + data
        if len(data) < 2 or data[-1] not in CODABAR_MARKERS:
            data += "A"
    return data.encode("ascii", "ignore")


def code93(data: str, family: PrinterFamily) -> bytes:
    """Code93 payload. Printers add start/stop and check characters."""
    data = "".join(c for c in data if ord(c) < 128)
    if family == PrinterFamily.STAR:
        data = data.upper()
    return data.encode("ascii")


TRANSFORMS = {
    Symbology.UPCE: lambda data, family: upce(data),
    Symbology.CODE128: code128,
    Symbology.CODABAR: codabar,
    Symbology.CODE93: code93,
}


def transform(symbology: Symbology, data: str, family: PrinterFamily) -> bytes:
    """Barcode command payload, truncated to MAX_PAYLOAD bytes."""
    encode = TRANSFORMS.get(Symbology(symbology))
    if encode is None:
        payload = data.encode("ascii", "ignore")
    else:
        payload = encode(data, family)
    return payload[:MAX_PAYLOAD]


# --- Image rendering ---

# Symbologies python-barcode can render
IMAGE_BARCODE_TYPES = {
    Symbology.UPCA: "upca",
    Symbology.EAN13: "ean13",
    Symbology.EAN8: "ean8",
    Symbology.CODE39: "code39",
    Symbology.ITF: "itf",
    Symbology.CODABAR: "codabar",
    Symbology.CODE128: "code128",
}


def _draw_modules(modules: str, module_width: int, height: int) -> Image.Image:
    quiet = 9 * module_width
    img = Image.new("1", (len(modules) * module_width + 2 * quiet, height), color=1)
    draw = ImageDraw.Draw(img)
    for i, bar in enumerate(modules):
        if bar == "1":
            x = quiet + i * module_width
            draw.rectangle((x, 0, x + module_width - 1, height - 1), fill=0)
    return img


def generate_barcode(
    data: str,
    symbology: Symbology = Symbology.CODE128,
    width: Optional[int] = None,
    height: int = 72,
    module_width: int = 2,
    include_text: bool = True,
) -> Image.Image:
    """
    Generate a barcode image.

    Args:
        data: The data to encode in the barcode
        symbology: Barcode type
        width: Target width in pixels (None for auto-sizing)
        height: Height of barcode bars in pixels
        module_width: Narrow bar width in pixels (UPC-E only)
        include_text: Whether to include human-readable text below barcode

    Returns:
        PIL Image in 1-bit mode (black and white)

    Raises:
        ValueError: If the symbology cannot be rendered or data cannot be encoded
    """
    symbology = Symbology(symbology)

    if symbology == Symbology.UPCE:
        modules = upce_modules(data)
        if modules is None:
            raise ValueError(f"Cannot encode {data!r} as UPC-E")
        img = _draw_modules(modules, module_width, height)
    else:
        if symbology not in IMAGE_BARCODE_TYPES:
            raise ValueError(
                f"Invalid barcode type: {symbology.value}. "
                f"Supported types: {[s.value for s in IMAGE_BARCODE_TYPES]}"
            )
        barcode_class = barcode.get_barcode_class(IMAGE_BARCODE_TYPES[symbology])

        writer = ImageWriter()
        options = {
            "module_height": height / 10,  # Convert pixels to mm (approx)
            "write_text": include_text,
            "font_size": 8 if include_text else 0,
            "text_distance": 2,
            "quiet_zone": 2,
        }

        bc = barcode_class(data, writer=writer)
        buffer = BytesIO()
        bc.write(buffer, options=options)
        buffer.seek(0)
        img = Image.open(buffer).convert("L")

    if width is not None:
        ratio = width / img.width
        new_height = int(img.height * ratio)
        img = img.convert("L").resize((width, new_height), Image.Resampling.LANCZOS)

    return img.convert("L").point(lambda x: 0 if x < 128 else 255, mode="1")


def generate_qr(
    data: str,
    cell_size: int = 3,
    error_correction: QRErrorCorrection = "L",
) -> Image.Image:
    """
    Generate a QR code image.

    Args:
        data: The data to encode (URL, text, etc.)
        cell_size: Module size in pixels (3-8)
        error_correction: Error correction level (L=7%, M=15%, Q=25%, H=30%)

    Returns:
        PIL Image in 1-bit mode (black and white)
    """
    ec_map = {
        "L": ERROR_CORRECT_L,
        "M": ERROR_CORRECT_M,
        "Q": ERROR_CORRECT_Q,
        "H": ERROR_CORRECT_H,
    }
    if error_correction not in ec_map:
        raise ValueError(f"Invalid error correction level: {error_correction}")

    qr = qrcode.QRCode(
        version=None,  # Auto-detect version based on data
        error_correction=ec_map[error_correction],
        box_size=cell_size,
        border=4,
    )
    qr.add_data(data)
    qr.make(fit=True)

    img = qr.make_image(fill_color="black", back_color="white")

    # qrcode returns a PilImage wrapper
    if hasattr(img, "get_image"):
        img = img.get_image()

    if img.mode != "1":
        img = img.convert("1")

    return img
