"""
Image Processing for Receipt Printers.

Converts RGBA rasters to 1-bit monochrome bitmaps, either by plain
thresholding or by error diffusion. Encoding is integer arithmetic on
top of a gamma lookup table, so the same input always produces the same
bitmap on every platform.
"""

from dataclasses import dataclass
from io import BytesIO
from pathlib import Path
from typing import Iterator, Optional, Union

from PIL import Image, UnidentifiedImageError

from .errors import ImageError

# Image size limits to prevent memory exhaustion from malicious/malformed images
MAX_IMAGE_DIMENSION = 10000  # Maximum width or height in pixels
MAX_IMAGE_PIXELS = 10_000_000  # Maximum total pixels (10 megapixels)


class ImageSizeError(ImageError, ValueError):
    """Image dimensions exceed safety limits."""

    pass


@dataclass(frozen=True)
class RasterImage:
    """Decoded image: width x height pixels, 4 bytes (RGBA) per pixel."""

    width: int
    height: int
    pixels: bytes

    def __post_init__(self):
        if len(self.pixels) != self.width * self.height * 4:
            raise ImageError(
                f"Pixel buffer has {len(self.pixels)} bytes, "
                f"expected {self.width * self.height * 4}"
            )

    @classmethod
    def from_pil(cls, image: Image.Image) -> "RasterImage":
        if image.mode != "RGBA":
            image = image.convert("RGBA")
        return cls(image.width, image.height, image.tobytes())

    @classmethod
    def load(
        cls,
        source: Union[str, Path, bytes, Image.Image],
        max_width: Optional[int] = None,
    ) -> "RasterImage":
        """
        Load an image from various sources.

        Args:
            source: File path, encoded image bytes, or PIL Image
            max_width: Scale down (keeping the aspect ratio) if wider

        Returns:
            RasterImage

        Raises:
            ImageSizeError: If image dimensions exceed safety limits
            ImageError: If the source cannot be decoded
        """
        try:
            if isinstance(source, Image.Image):
                img = source
            elif isinstance(source, (str, Path)):
                img = Image.open(source)
            elif isinstance(source, bytes):
                img = Image.open(BytesIO(source))
            else:
                raise ImageError(f"Unsupported source type: {type(source)}")
        except (UnidentifiedImageError, OSError) as e:
            raise ImageError(f"Cannot read image: {e}") from e

        # Validate image dimensions to prevent memory exhaustion
        if img.width > MAX_IMAGE_DIMENSION or img.height > MAX_IMAGE_DIMENSION:
            raise ImageSizeError(
                f"Image dimensions ({img.width}x{img.height}) exceed maximum "
                f"({MAX_IMAGE_DIMENSION}x{MAX_IMAGE_DIMENSION})"
            )
        if img.width * img.height > MAX_IMAGE_PIXELS:
            raise ImageSizeError(
                f"Image pixel count ({img.width * img.height:,}) exceeds "
                f"maximum ({MAX_IMAGE_PIXELS:,})"
            )

        if max_width is not None and img.width > max_width:
            ratio = max_width / img.width
            new_height = max(1, int(img.height * ratio))
            img = img.convert("RGBA").resize((max_width, new_height), Image.Resampling.LANCZOS)

        return cls.from_pil(img)


@dataclass(frozen=True)
class MonochromeBitmap:
    """
    Packed 1-bit image.

    Each row takes bytes_per_row bytes, 8 pixels per byte, MSB is the
    leftmost pixel. A 1 bit is a dark (printed) dot.
    """

    width: int
    height: int
    data: bytes

    @property
    def bytes_per_row(self) -> int:
        return (self.width + 7) // 8

    def row(self, y: int) -> bytes:
        start = y * self.bytes_per_row
        return self.data[start:start + self.bytes_per_row]

    def iter_rows(self) -> Iterator[bytes]:
        for y in range(self.height):
            yield self.row(y)

    def slice(self, y: int, height: int) -> "MonochromeBitmap":
        """Horizontal band of at most height rows starting at row y."""
        height = max(0, min(height, self.height - y))
        start = y * self.bytes_per_row
        end = start + height * self.bytes_per_row
        return MonochromeBitmap(self.width, height, self.data[start:end])


class HalftoneEncoder:
    """
    Convert RasterImages to MonochromeBitmaps.

    With error diffusion, the quantization residual of each pixel is split
    in sixteenths: diffusion_right/16 goes to the next pixel in the row, the
    rest to the pixel directly below.
    """

    def __init__(self, diffusion_right: int = 8):
        """
        Initialize encoder.

        Args:
            diffusion_right: Sixteenths of the residual passed to the right (0-16)
        """
        if not 0 <= diffusion_right <= 16:
            raise ValueError(f"diffusion_right must be 0-16, got {diffusion_right}")
        self.diffusion_right = diffusion_right

    @staticmethod
    def gamma_table(gamma: float) -> list:
        """256-entry lookup table for v -> 255 * (v / 255) ** (1 / gamma)."""
        return [round(255 * (v / 255) ** (1 / gamma)) for v in range(256)]

    def luminance(self, image: RasterImage, gamma: float = 1.0) -> list:
        """Gamma corrected gray levels (0 black - 255 white), row major."""
        table = self.gamma_table(gamma)
        pixels = image.pixels
        levels = []
        for i in range(0, len(pixels), 4):
            r, g, b, a = pixels[i], pixels[i + 1], pixels[i + 2], pixels[i + 3]
            gray = (r * 299 + g * 587 + b * 114) // 1000
            # Composite against a white background
            gray = (gray * a + 255 * (255 - a)) // 255
            levels.append(table[gray])
        return levels

    def encode(
        self,
        image: RasterImage,
        threshold: int = 128,
        gamma: float = 1.0,
        error_diffusion: bool = False,
    ) -> MonochromeBitmap:
        """
        Convert an image to a monochrome bitmap.

        Args:
            image: Source image
            threshold: Gray level below which a pixel prints dark (0-255)
            gamma: Gamma correction (0.1-10.0)
            error_diffusion: Diffuse the quantization error instead of
                thresholding each pixel independently

        Returns:
            MonochromeBitmap with the same dimensions
        """
        width, height = image.width, image.height
        levels = self.luminance(image, gamma)
        bytes_per_row = (width + 7) // 8
        result = bytearray(bytes_per_row * height)

        below = [0] * width
        for y in range(height):
            carry = 0
            next_below = [0] * width
            offset = y * bytes_per_row
            for x in range(width):
                value = levels[y * width + x]
                if error_diffusion:
                    value += carry + below[x]
                dark = value < threshold

                if dark:
                    result[offset + (x >> 3)] |= 0x80 >> (x & 7)

                if error_diffusion:
                    residual = value if dark else value - 255
                    carry = residual * self.diffusion_right // 16
                    next_below[x] = residual - carry
            below = next_below

        return MonochromeBitmap(width, height, bytes(result))
