"""Receipt printer driver for ESC/POS, SII and Star printers."""

__version__ = "0.1.0"

from .errors import PrinterError, DestinationError, ConnectionError, ImageError
from .result import ResultCode
from .options import PrintOptions, PrinterFamily
from .destination import (
    NetworkAddress,
    SerialPath,
    UsbDevicePath,
    parse_destination,
)
from .connection import TCPConnection, SerialConnection, UsbConnection, create_connection
from .protocol import ProtocolStateMachine, SessionState, create_decoder
from .session import PrintSession, print_receipt, get_status
from .image import (
    HalftoneEncoder,
    MonochromeBitmap,
    RasterImage,
    ImageSizeError,
    MAX_IMAGE_DIMENSION,
    MAX_IMAGE_PIXELS,
)
from .barcodes import Symbology, generate_barcode, generate_qr
from .composer import Decoration, create_composer

__all__ = [
    "PrinterError",
    "DestinationError",
    "ConnectionError",
    "ImageError",
    "ResultCode",
    "PrintOptions",
    "PrinterFamily",
    "NetworkAddress",
    "SerialPath",
    "UsbDevicePath",
    "parse_destination",
    "TCPConnection",
    "SerialConnection",
    "UsbConnection",
    "create_connection",
    "ProtocolStateMachine",
    "SessionState",
    "create_decoder",
    "PrintSession",
    "print_receipt",
    "get_status",
    "HalftoneEncoder",
    "MonochromeBitmap",
    "RasterImage",
    "ImageSizeError",
    "MAX_IMAGE_DIMENSION",
    "MAX_IMAGE_PIXELS",
    "Symbology",
    "generate_barcode",
    "generate_qr",
    "Decoration",
    "create_composer",
]
