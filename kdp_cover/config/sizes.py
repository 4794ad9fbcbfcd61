# KDP trim sizes and print constants (inches unless noted).
# Covers are rendered at 300 DPI; 72 points = 1 inch for PDF output.

import logging
from dataclasses import dataclass
from enum import Enum

logger = logging.getLogger(__name__)

DPI = 300
POINTS_PER_INCH = 72.0

# Bleed per outer edge. A full wrap adds it on left/right and top/bottom.
BLEED_IN = 0.125

# KDP paperback page limits
MIN_PAGE_COUNT = 24
MAX_PAGE_COUNT = 828

# Below this the spine is too thin for legible text
SPINE_TEXT_MIN_IN = 0.25
MAX_SPINE_TEXT_LEN = 50

MAX_INTERIOR_PREVIEWS = 6
MAX_PREVIEW_BYTES = 2 * 1024 * 1024


class PaperType(str, Enum):
    WHITE = "white"
    CREAM = "cream"
    COLOR = "color"

    @classmethod
    def coerce(cls, value) -> "PaperType":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            logger.warning("Unknown paper type %r, using white", value)
            return cls.WHITE


# Spine thickness per page (inches) per KDP guidance
SPINE_IN_PER_PAGE = {
    PaperType.WHITE: 0.002252,
    PaperType.CREAM: 0.0025,
    PaperType.COLOR: 0.002347,
}


@dataclass(frozen=True)
class TrimSize:
    key: str
    width_in: float
    height_in: float
    label: str
    popular: bool = False


TRIM_SIZES = {
    t.key: t
    for t in (
        TrimSize("5x8", 5.0, 8.0, '5" x 8" (12.7 x 20.32 cm)'),
        TrimSize("5.25x8", 5.25, 8.0, '5.25" x 8" (13.34 x 20.32 cm)'),
        TrimSize("5.5x8.5", 5.5, 8.5, '5.5" x 8.5" (13.97 x 21.59 cm)'),
        TrimSize("6x9", 6.0, 9.0, '6" x 9" (15.24 x 22.86 cm)', popular=True),
        TrimSize("7x10", 7.0, 10.0, '7" x 10" (17.78 x 25.4 cm)'),
        TrimSize("8x10", 8.0, 10.0, '8" x 10" (20.32 x 25.4 cm)'),
        TrimSize("8.5x11", 8.5, 11.0, '8.5" x 11" (21.59 x 27.94 cm)'),
    )
}

DEFAULT_TRIM = "6x9"

TRIM_RECOMMENDATIONS = {
    "5x8": "Perfect for romance novels and poetry",
    "5.25x8": "Great for novellas and short story collections",
    "5.5x8.5": "Ideal for fiction and memoirs",
    "6x9": "Most popular - perfect for novels and non-fiction",
    "7x10": "Excellent for textbooks and workbooks",
    "8x10": "Great for manuals and illustrated books",
    "8.5x11": "Perfect for large format books and technical manuals",
}


def trim_recommendation(trim_key: str) -> str:
    return TRIM_RECOMMENDATIONS.get(trim_key, "Standard paperback dimensions")
