"""Exception classes for receiptio."""


class PrinterError(Exception):
    """Base exception for all printer errors."""

    pass


class DestinationError(PrinterError):
    """Destination string cannot be parsed."""

    pass


class ConnectionError(PrinterError):
    """Error opening or communicating with the printer transport."""

    pass


class ImageError(PrinterError):
    """Error processing image for printing."""

    pass
