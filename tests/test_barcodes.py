"""Tests for barcode payloads and barcode / QR code rendering."""

import pytest
from PIL import Image

from receiptio.barcodes import (
    MAX_PAYLOAD,
    Symbology,
    code128,
    code128_symbols,
    codabar,
    code93,
    generate_barcode,
    generate_qr,
    transform,
    upc_check_digit,
    upce,
    upce_modules,
    upce_parity,
)
from receiptio.options import PrinterFamily

# Mark all tests as requiring barcode dependencies
pytestmark = pytest.mark.barcodes


class TestUpcE:
    """UPC-A to UPC-E zero suppression."""

    def test_check_digit(self):
        assert upc_check_digit("04210000526") == 4

    def test_manufacturer_ending_in_000(self):
        assert upce("042100005264") == b"04252614"

    def test_eleven_digits(self):
        """Check digit is computed when omitted."""
        assert upce("04210000526") == b"04252614"

    def test_four_digit_manufacturer(self):
        assert upce("01234000005") == b"01234543"

    def test_five_digit_manufacturer(self):
        assert upce("01234500007") == b"01234572"

    def test_not_compressible(self):
        assert upce("012345678905") == b"012345678905"

    def test_not_digits(self):
        assert upce("ABC") == b"ABC"

    def test_parity(self):
        assert upce_parity(0, 4) == "EOEEOO"
        assert upce_parity(1, 4) == "OEOOEE"

    def test_modules(self):
        modules = upce_modules("042100005264")
        assert len(modules) == 3 + 6 * 7 + 6
        assert modules.startswith("101")
        assert modules.endswith("010101")

    def test_modules_not_compressible(self):
        assert upce_modules("012345678905") is None


class TestCode128:
    """Subset selection and payload streams."""

    def test_digits_use_subset_c(self):
        assert code128_symbols("12345678") == [105, 12, 34, 56, 78, 47]

    def test_switch_to_subset_c(self):
        assert code128_symbols("ABC123456") == [104, 33, 34, 35, 99, 12, 34, 56, 23]

    def test_escpos_stream(self):
        assert code128("12345678", PrinterFamily.ESCPOS) == b"{C" + bytes([12, 34, 56, 78])

    def test_escpos_mixed_stream(self):
        assert code128("ABC123456", PrinterFamily.ESCPOS) == b"{BABC{C" + bytes([12, 34, 56])

    def test_brace_escaped(self):
        assert code128("AB{", PrinterFamily.SII) == b"{BAB{{"

    def test_control_character_uses_subset_a(self):
        assert code128("\tX", PrinterFamily.ESCPOS).startswith(b"{A")

    def test_star_plain_ascii(self):
        assert code128("ab12", PrinterFamily.STAR) == b"ab12"

    def test_non_ascii_dropped(self):
        assert code128("é1", PrinterFamily.STAR) == b"1"


class TestCodabarAndCode93:
    def test_codabar_markers_added(self):
        assert codabar("12345", PrinterFamily.ESCPOS) == b"A12345A"

    def test_codabar_markers_kept(self):
        assert codabar("b123c", PrinterFamily.SII) == b"B123C"

    def test_codabar_star_unchanged(self):
        assert codabar("a123b", PrinterFamily.STAR) == b"A123B"
        assert codabar("123", PrinterFamily.STAR) == b"123"

    def test_code93_star_upper(self):
        assert code93("abc", PrinterFamily.STAR) == b"ABC"
        assert code93("abc", PrinterFamily.ESCPOS) == b"abc"


class TestTransform:
    def test_dispatch(self):
        assert transform(Symbology.UPCE, "042100005264", PrinterFamily.STAR) == b"04252614"
        assert transform("codabar", "1", PrinterFamily.ESCPOS) == b"A1A"

    def test_passthrough(self):
        assert transform(Symbology.EAN13, "490123456789", PrinterFamily.ESCPOS) == b"490123456789"

    def test_truncated(self):
        payload = transform(Symbology.CODE39, "X" * 300, PrinterFamily.ESCPOS)
        assert len(payload) == MAX_PAYLOAD

    def test_unknown_symbology(self):
        with pytest.raises(ValueError):
            transform("pdf417", "1", PrinterFamily.ESCPOS)


class TestGenerateBarcode:
    """Test barcode generation functionality."""

    def test_generate_code128(self):
        img = generate_barcode("12345", Symbology.CODE128)

        assert isinstance(img, Image.Image)
        assert img.mode == "1"
        assert img.width > 0
        assert img.height > 0

    def test_generate_code39(self):
        img = generate_barcode("HELLO", Symbology.CODE39)
        assert img.mode == "1"

    def test_generate_ean13(self):
        # EAN-13 requires 12-13 digits
        img = generate_barcode("123456789012", Symbology.EAN13, include_text=False)
        assert img.mode == "1"

    def test_generate_upce(self):
        img = generate_barcode("042100005264", Symbology.UPCE, height=40, module_width=2)
        assert img.mode == "1"
        assert img.height == 40
        assert img.width == (51 + 18) * 2

    def test_upce_not_compressible(self):
        with pytest.raises(ValueError):
            generate_barcode("012345678905", Symbology.UPCE)

    def test_code93_not_rendered(self):
        with pytest.raises(ValueError, match="Invalid barcode type"):
            generate_barcode("ABC", Symbology.CODE93)

    def test_custom_width(self):
        img = generate_barcode("12345", Symbology.CODE128, width=200)
        assert img.width == 200


class TestGenerateQR:
    """Test QR code generation functionality."""

    def test_generate_basic(self):
        img = generate_qr("https://example.com")

        assert isinstance(img, Image.Image)
        assert img.mode == "1"
        assert img.width == img.height

    def test_cell_size_scales(self):
        small = generate_qr("test", cell_size=3)
        large = generate_qr("test", cell_size=6)
        assert large.width == small.width * 2

    @pytest.mark.parametrize("level", ["L", "M", "Q", "H"])
    def test_error_correction_levels(self, level):
        assert generate_qr("test", error_correction=level).mode == "1"

    def test_invalid_error_correction(self):
        with pytest.raises(ValueError, match="Invalid error correction"):
            generate_qr("test", error_correction="X")
