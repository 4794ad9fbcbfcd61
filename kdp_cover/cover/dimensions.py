import logging
import math
import re
from dataclasses import asdict, dataclass, replace
from typing import Optional, Tuple, Union

from kdp_cover.config.sizes import (
    BLEED_IN,
    DEFAULT_TRIM,
    DPI,
    MAX_PAGE_COUNT,
    MIN_PAGE_COUNT,
    SPINE_IN_PER_PAGE,
    SPINE_TEXT_MIN_IN,
    TRIM_SIZES,
    PaperType,
)

logger = logging.getLogger(__name__)

_TRIM_RE = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*[x×]\s*(\d+(?:\.\d+)?)\s*$", re.IGNORECASE)


def inches_to_px(inches: float, dpi: int = DPI) -> int:
    # half-up, per axis
    return int(math.floor(inches * dpi + 0.5))


def px_to_inches(pixels: int, dpi: int = DPI) -> float:
    return pixels / dpi


def parse_trim_size(trim: str) -> Tuple[float, float]:
    """Resolve a trim key like "6x9" to (width, height) in inches.

    Catalog keys win; otherwise the string is parsed as WxH. Anything
    unparseable falls back to 6x9.
    """
    conf = TRIM_SIZES.get(str(trim).strip().lower())
    if conf is not None:
        return conf.width_in, conf.height_in
    m = _TRIM_RE.match(str(trim))
    if m:
        w, h = float(m.group(1)), float(m.group(2))
        if w > 0 and h > 0:
            return w, h
    logger.warning("Unparseable trim size %r, using %s", trim, DEFAULT_TRIM)
    conf = TRIM_SIZES[DEFAULT_TRIM]
    return conf.width_in, conf.height_in


def clamp_page_count(page_count, max_pages: Optional[int] = None) -> int:
    ceiling = max(MIN_PAGE_COUNT, max_pages or MAX_PAGE_COUNT)
    try:
        pages = int(page_count)
    except OverflowError:
        logger.warning("Page count %r out of range, clamped to %d", page_count, ceiling)
        return ceiling if page_count > 0 else MIN_PAGE_COUNT
    except (TypeError, ValueError):
        logger.warning("Invalid page count %r, using %d", page_count, MIN_PAGE_COUNT)
        return MIN_PAGE_COUNT
    if pages < MIN_PAGE_COUNT:
        logger.info("Page count %d below KDP minimum, clamped to %d", pages, MIN_PAGE_COUNT)
        return MIN_PAGE_COUNT
    if pages > ceiling:
        logger.info("Page count %d above maximum, clamped to %d", pages, ceiling)
        return ceiling
    return pages


def spine_width_in(page_count: int, paper: Union[PaperType, str]) -> float:
    return page_count * SPINE_IN_PER_PAGE[PaperType.coerce(paper)]


def spine_text_viable(spine_in: float) -> bool:
    return spine_in >= SPINE_TEXT_MIN_IN


@dataclass(frozen=True)
class BookSpec:
    trim_size: str = DEFAULT_TRIM
    page_count: int = 120
    paper_type: PaperType = PaperType.WHITE
    include_bleed: bool = True

    def normalized(self, max_pages: Optional[int] = None) -> "BookSpec":
        return replace(
            self,
            page_count=clamp_page_count(self.page_count, max_pages),
            paper_type=PaperType.coerce(self.paper_type),
            include_bleed=bool(self.include_bleed),
        )


@dataclass(frozen=True)
class Dimensions:
    trim_size: str
    page_count: int
    paper_type: str
    include_bleed: bool
    dpi: int
    bleed_in: float
    front_width_in: float
    front_height_in: float
    spine_width_in: float
    full_wrap_width_in: float
    full_wrap_height_in: float
    front_width_px: int
    front_height_px: int
    spine_width_px: int
    bleed_px: int
    full_wrap_width_px: int
    full_wrap_height_px: int

    @property
    def bleed_allowance_in(self) -> float:
        return 2 * self.bleed_in

    @property
    def spine_text_viable(self) -> bool:
        return spine_text_viable(self.spine_width_in)

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "Dimensions":
        return cls(**{k: data[k] for k in cls.__dataclass_fields__})


def calculate_dimensions(spec: BookSpec, max_pages: Optional[int] = None) -> Dimensions:
    spec = spec.normalized(max_pages)
    width_in, height_in = parse_trim_size(spec.trim_size)

    spine_in = spine_width_in(spec.page_count, spec.paper_type)
    bleed = BLEED_IN if spec.include_bleed else 0.0

    # Bleed on both outer edges of each axis
    full_w = (2 * width_in) + spine_in + 2 * bleed
    full_h = height_in + 2 * bleed

    return Dimensions(
        trim_size=str(spec.trim_size),
        page_count=spec.page_count,
        paper_type=spec.paper_type.value,
        include_bleed=spec.include_bleed,
        dpi=DPI,
        bleed_in=bleed,
        front_width_in=width_in,
        front_height_in=height_in,
        spine_width_in=spine_in,
        full_wrap_width_in=full_w,
        full_wrap_height_in=full_h,
        front_width_px=inches_to_px(width_in),
        front_height_px=inches_to_px(height_in),
        spine_width_px=inches_to_px(spine_in),
        bleed_px=inches_to_px(bleed),
        full_wrap_width_px=inches_to_px(full_w),
        full_wrap_height_px=inches_to_px(full_h),
    )


Box = Tuple[int, int, int, int]


@dataclass(frozen=True)
class CoverRegions:
    """Pixel boxes (left, top, right, bottom) of the three wrap regions."""
    back: Box
    spine: Box
    front: Box
    back_trim: Box
    front_trim: Box


def cover_regions(dims: Dimensions) -> CoverRegions:
    w, h = dims.full_wrap_width_px, dims.full_wrap_height_px
    back_right = min(w, dims.bleed_px + dims.front_width_px)
    spine_right = min(w, back_right + dims.spine_width_px)
    b = dims.bleed_px
    # Front takes whatever rounding left over so the regions tile the canvas
    return CoverRegions(
        back=(0, 0, back_right, h),
        spine=(back_right, 0, spine_right, h),
        front=(spine_right, 0, w, h),
        back_trim=(b, b, back_right, h - b),
        front_trim=(spine_right, b, w - b, h - b),
    )


def provider_image_size(width_px: int, height_px: int, max_side: int = 1024) -> Tuple[int, int]:
    """Scale a target size down to an image provider's limit, keeping aspect ratio."""
    if width_px <= max_side and height_px <= max_side:
        return width_px, height_px
    if width_px >= height_px:
        return max_side, max(1, round(height_px / width_px * max_side))
    return max(1, round(width_px / height_px * max_side)), max_side


def format_dimensions(dims: Dimensions) -> str:
    return (
        f'{dims.front_width_in:g}" x {dims.front_height_in:g}" '
        f'(Spine: {dims.spine_width_in:.3f}") '
        f'full wrap {dims.full_wrap_width_in:.4f}" x {dims.full_wrap_height_in:.4f}" '
        f"= {dims.full_wrap_width_px} x {dims.full_wrap_height_px} px @ {dims.dpi} DPI"
    )
