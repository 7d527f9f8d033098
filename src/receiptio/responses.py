"""
Status Frame Parsers.

Printers report their state as bit fields in short binary frames. Each
parser returns None when the bytes are not (or not yet) a complete frame
of its kind, so callers can skip a byte and rescan.

Fault priority is the same for every family: cover open, then paper
empty, then any other error.
"""

from dataclasses import dataclass
from typing import Optional

from .result import ResultCode


@dataclass
class StatusFrame:
    """Fields common to every decoded status frame."""

    cover_open: bool
    paper_empty: bool
    error: bool
    drawer_closed: bool
    length: int
    raw_data: bytes = b""

    @property
    def fault(self) -> Optional[ResultCode]:
        """Result code for the highest priority fault, or None if clean."""
        if self.cover_open:
            return ResultCode.COVEROPEN
        if self.paper_empty:
            return ResultCode.PAPEREMPTY
        if self.error:
            return ResultCode.ERROR
        return None


@dataclass
class EscPosRealtimeStatus:
    """
    Response to DLE EOT 2 (transmit offline status).

    Single byte, fixed bits 0x12 set and 0x81 clear:
        Bit 2 (0x04): cover open
        Bit 5 (0x20): printing stopped by paper end
        Bit 6 (0x40): error occurred
    """

    value: int

    @classmethod
    def parse(cls, data: bytes) -> Optional["EscPosRealtimeStatus"]:
        if not data:
            return None
        return cls(value=data[0])

    @property
    def cover_open(self) -> bool:
        return (self.value & 0x97) == 0x16

    @property
    def paper_empty(self) -> bool:
        return (self.value & 0xB3) == 0x32

    @property
    def error(self) -> bool:
        return (self.value & 0xD3) == 0x52

    @property
    def online(self) -> bool:
        return (self.value & 0x93) == 0x12


class EscPosAutomaticStatus(StatusFrame):
    """
    ESC/POS Automatic Status Back frame (enabled by GS a).

    Frame structure (4 bytes):
        Offset  Mask    Field
        0       0x93    Header, must equal 0x10
        0       0x04    Drawer kick-out connector pin 3 high
        0       0x20    Cover open
        1       0x2C    Recoverable / unrecoverable / autocutter error
        2       0x0C    Roll paper end
        1-3     0x90    Must be clear in every trailing byte
    """

    LENGTH = 4

    @staticmethod
    def is_header(value: int) -> bool:
        return (value & 0x93) == 0x10

    @classmethod
    def parse(cls, data: bytes) -> Optional["EscPosAutomaticStatus"]:
        if len(data) < cls.LENGTH or not cls.is_header(data[0]):
            return None
        if any(b & 0x90 for b in data[1:cls.LENGTH]):
            return None
        return cls(
            cover_open=bool(data[0] & 0x20),
            paper_empty=(data[2] & 0x0C) == 0x0C,
            error=bool(data[1] & 0x2C),
            drawer_closed=bool(data[0] & 0x04),
            length=cls.LENGTH,
            raw_data=bytes(data[:cls.LENGTH]),
        )


class SiiAutomaticStatus(StatusFrame):
    """
    SII automatic status frame.

    Frame structure (8 bytes):
        Offset  Mask    Field
        0       0xF0    Header, must equal 0xC0
        0       0x0B    Error bits
        1       0xF8    Equals 0xD8 when the cover is open
        1       0xF1    Equals 0xD1 when paper is empty
        1       0x04    Drawer sensor
    """

    LENGTH = 8

    @staticmethod
    def is_header(value: int) -> bool:
        return (value & 0xF0) == 0xC0

    @classmethod
    def parse(cls, data: bytes) -> Optional["SiiAutomaticStatus"]:
        if len(data) < cls.LENGTH or not cls.is_header(data[0]):
            return None
        return cls(
            cover_open=(data[1] & 0xF8) == 0xD8,
            paper_empty=(data[1] & 0xF1) == 0xD1,
            error=bool(data[0] & 0x0B),
            drawer_closed=bool(data[1] & 0x04),
            length=cls.LENGTH,
            raw_data=bytes(data[:cls.LENGTH]),
        )


class StarStatus(StatusFrame):
    """
    Star ASB / realtime status frame.

    Variable length. The header byte encodes the frame length in bits
    1-3 and 5, the second byte adds 2 when its bit 7 is set.

        Offset  Mask    Field
        0       0xF1    Header, must equal 0x21
        2       0x20    Cover open
        2       0x04    Compulsion switch (drawer)
        3       0x2C    Cutter / mechanical / unrecoverable error
        4       0x0A    Receive buffer overflow / head temperature error
        5       0x08    Paper empty
    """

    MIN_LENGTH = 6

    @staticmethod
    def is_header(value: int) -> bool:
        return (value & 0xF1) == 0x21

    @staticmethod
    def frame_length(data: bytes) -> Optional[int]:
        """Total frame length, or None until the first two bytes arrived."""
        if len(data) < 2:
            return None
        return ((data[0] >> 2 & 0x08) | (data[0] >> 1 & 0x07)) + (data[1] >> 6 & 0x02)

    @classmethod
    def parse(cls, data: bytes) -> Optional["StarStatus"]:
        if not data or not cls.is_header(data[0]):
            return None
        length = cls.frame_length(data)
        if length is None or length < cls.MIN_LENGTH or len(data) < length:
            return None
        return cls(
            cover_open=bool(data[2] & 0x20),
            paper_empty=bool(data[5] & 0x08),
            error=bool(data[3] & 0x2C or data[4] & 0x0A),
            drawer_closed=bool(data[2] & 0x04),
            length=length,
            raw_data=bytes(data[:length]),
        )
