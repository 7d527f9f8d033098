"""Tests for status frame parsing."""

from receiptio.responses import (
    EscPosAutomaticStatus,
    EscPosRealtimeStatus,
    SiiAutomaticStatus,
    StarStatus,
)
from receiptio.result import ResultCode


class TestEscPosRealtimeStatus:
    """DLE EOT 2 reply."""

    def test_online(self):
        status = EscPosRealtimeStatus.parse(b"\x12")
        assert status.online
        assert not (status.cover_open or status.paper_empty or status.error)

    def test_cover_open(self):
        assert EscPosRealtimeStatus.parse(b"\x16").cover_open

    def test_paper_end(self):
        assert EscPosRealtimeStatus.parse(b"\x32").paper_empty

    def test_error(self):
        assert EscPosRealtimeStatus.parse(b"\x52").error

    def test_fixed_bits_violated(self):
        status = EscPosRealtimeStatus.parse(b"\x92")
        assert not status.online

    def test_empty(self):
        assert EscPosRealtimeStatus.parse(b"") is None


class TestEscPosAutomaticStatus:
    """4-byte Automatic Status Back."""

    def test_clean_frame(self):
        frame = EscPosAutomaticStatus.parse(b"\x10\x00\x00\x00")
        assert frame.fault is None
        assert frame.length == 4
        assert frame.raw_data == b"\x10\x00\x00\x00"

    def test_fields(self):
        frame = EscPosAutomaticStatus.parse(b"\x34\x04\x0c\x00")
        assert frame.cover_open
        assert frame.error
        assert frame.paper_empty
        assert frame.drawer_closed
        assert frame.fault == ResultCode.COVEROPEN

    def test_near_end_is_not_paper_empty(self):
        """Only roll paper end (both bits) counts."""
        frame = EscPosAutomaticStatus.parse(b"\x10\x00\x03\x00")
        assert not frame.paper_empty

    def test_short(self):
        assert EscPosAutomaticStatus.parse(b"\x10\x00\x00") is None

    def test_bad_header(self):
        assert EscPosAutomaticStatus.parse(b"\x12\x00\x00\x00") is None

    def test_bad_trailer(self):
        assert EscPosAutomaticStatus.parse(b"\x10\x00\x10\x00") is None


class TestSiiAutomaticStatus:
    def test_clean(self):
        frame = SiiAutomaticStatus.parse(b"\xc0\x00\x00\x00\x00\x00\x00\x00")
        assert frame.fault is None
        assert frame.length == 8

    def test_error_bits(self):
        frame = SiiAutomaticStatus.parse(b"\xc1\x00\x00\x00\x00\x00\x00\x00")
        assert frame.fault == ResultCode.ERROR

    def test_paper_empty(self):
        frame = SiiAutomaticStatus.parse(b"\xc0\xd1\x00\x00\x00\x00\x00\x00")
        assert frame.fault == ResultCode.PAPEREMPTY

    def test_short(self):
        assert SiiAutomaticStatus.parse(b"\xc0\x00") is None


class TestStarStatus:
    """Variable length Star status."""

    def test_frame_length(self):
        assert StarStatus.frame_length(b"\x23\x00") == 9
        assert StarStatus.frame_length(b"\x2f\x00") == 15
        assert StarStatus.frame_length(b"\x23\x80") == 11
        assert StarStatus.frame_length(b"\x23") is None

    def test_clean(self):
        frame = StarStatus.parse(b"\x23" + bytes(8))
        assert frame.fault is None
        assert frame.length == 9

    def test_incomplete(self):
        assert StarStatus.parse(b"\x23" + bytes(7)) is None

    def test_cover_open(self):
        frame = StarStatus.parse(b"\x23\x00\x20" + bytes(6))
        assert frame.fault == ResultCode.COVEROPEN

    def test_mechanical_error(self):
        frame = StarStatus.parse(b"\x23\x00\x00\x08" + bytes(5))
        assert frame.fault == ResultCode.ERROR

    def test_paper_empty(self):
        frame = StarStatus.parse(b"\x23\x00\x00\x00\x00\x08" + bytes(3))
        assert frame.fault == ResultCode.PAPEREMPTY

    def test_bad_header(self):
        assert StarStatus.parse(b"\x22" + bytes(8)) is None
