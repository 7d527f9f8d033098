"""
Print Options and Printer Families.

Options mirror the command-line surface. Values outside their documented
range fall back to the default instead of raising, so a bad flag never
prevents a receipt from printing.
"""

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional

logger = logging.getLogger(__name__)


class PrinterFamily(str, Enum):
    """Wire protocol family of the target printer."""

    ESCPOS = "escpos"
    SII = "sii"
    STAR = "star"

    @classmethod
    def from_language(cls, name: Optional[str]) -> "PrinterFamily":
        """
        Select the family for a printer control language name.

        Args:
            name: Language such as "escpos", "citizen", "sii", "starline"

        Returns:
            Matching family; unknown names fall back to ESC/POS
        """
        language = (name or "").lower()
        if language == "sii":
            return cls.SII
        if STAR_LANGUAGE_PATTERN.match(language):
            return cls.STAR
        return cls.ESCPOS


# ESC/POS dialects accepted by the printer control language option
ESCPOS_LANGUAGES = ("escpos", "citizen", "fit", "impact", "impactb")

# StarPRNT, Star Line Mode and Star Graphic Mode, with optional code page suffix
STAR_LANGUAGE_PATTERN = re.compile(r"^((emu)?star(line)?(sbcs|mbcs2?)?|stargraphic)$")

LANGUAGES = ESCPOS_LANGUAGES + ("sii", "star", "starline", "emustarline", "stargraphic")


# Defaults and ranges
DEFAULT_TIMEOUT = 300
MAX_TIMEOUT = 3600
DEFAULT_CPL = 48
MIN_CPL = 24
MAX_CPL = 96
MAX_MARGIN = 24
DEFAULT_GAMMA = 1.0
DEFAULT_IMAGE_GAMMA = 1.8
RESOLUTIONS = (180, 203)
DEFAULT_RESOLUTION = 203


@dataclass
class PrintOptions:
    """
    Options shared by the print engine and the command composer.

    Attributes:
        status_only: Inquire printer status instead of printing
        drawer: With status_only, report the cash drawer state
        timeout: Print timeout in seconds (0 disables the deadline)
        cpl: Characters per line
        margin_left: Left margin in character cells
        margin_right: Right margin in character cells
        threshold: Image threshold (None selects error diffusion)
        gamma: Image gamma correction (None selects the mode default)
        upside_down: Rotate output 180 degrees
        landscape: Rotate output 90 degrees using page mode
        resolution: Print resolution for landscape layout (180 or 203 dpi)
        cutting: Cut the paper after printing
        as_image: Render barcodes and QR codes as raster images
    """

    status_only: bool = False
    drawer: bool = False
    timeout: int = DEFAULT_TIMEOUT
    cpl: int = DEFAULT_CPL
    margin_left: int = 0
    margin_right: int = 0
    threshold: Optional[int] = None
    gamma: Optional[float] = None
    upside_down: bool = False
    landscape: bool = False
    resolution: int = DEFAULT_RESOLUTION
    cutting: bool = True
    as_image: bool = False

    def __post_init__(self):
        self.timeout = _clamp_int(self.timeout, 0, MAX_TIMEOUT, DEFAULT_TIMEOUT, "timeout")
        self.cpl = _clamp_int(self.cpl, MIN_CPL, MAX_CPL, DEFAULT_CPL, "cpl")
        self.margin_left = _clamp_int(self.margin_left, 0, MAX_MARGIN, 0, "margin_left")
        self.margin_right = _clamp_int(self.margin_right, 0, MAX_MARGIN, 0, "margin_right")

        if self.threshold is not None:
            self.threshold = _clamp_int(self.threshold, 0, 255, None, "threshold")

        default_gamma = DEFAULT_IMAGE_GAMMA if self.as_image else DEFAULT_GAMMA
        if self.gamma is None or not 0.1 <= self.gamma <= 10.0:
            if self.gamma is not None:
                logger.debug("gamma %r out of range, using %s", self.gamma, default_gamma)
            self.gamma = default_gamma

        if self.resolution not in RESOLUTIONS:
            logger.debug("resolution %r unsupported, using %d", self.resolution, DEFAULT_RESOLUTION)
            self.resolution = DEFAULT_RESOLUTION

        if self.margin_left + self.margin_right >= self.cpl:
            logger.debug("margins leave no printable cells, ignoring them")
            self.margin_left = 0
            self.margin_right = 0

    @property
    def error_diffusion(self) -> bool:
        """True when images are halftoned by error diffusion."""
        return self.threshold is None

    @property
    def image_threshold(self) -> int:
        """Threshold used for image conversion (midpoint when diffusing)."""
        return 128 if self.threshold is None else self.threshold


def _clamp_int(value, low: int, high: int, default, name: str):
    """Return value truncated to int when inside [low, high], else default."""
    try:
        number = int(value)
    except (TypeError, ValueError):
        logger.debug("%s %r is not a number, using %r", name, value, default)
        return default
    if low <= number <= high:
        return number
    logger.debug("%s %r out of range, using %r", name, value, default)
    return default
