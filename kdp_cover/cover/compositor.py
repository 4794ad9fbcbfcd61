"""
Full-wrap cover assembly

Lays out back cover | spine | front cover on a single raster sized from
`Dimensions`. Region boxes come from `cover_regions()` only; source images
are stretched to fit whatever size they arrive in.
"""

import asyncio
import io
import logging
import math
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

from PIL import Image, ImageEnhance, ImageFilter

from kdp_cover.assets.loader import AssetLoader, ImageSource
from kdp_cover.config.sizes import MAX_INTERIOR_PREVIEWS, MAX_PREVIEW_BYTES, MAX_SPINE_TEXT_LEN
from kdp_cover.cover.colors import contrasting_text_color
from kdp_cover.cover.dimensions import CoverRegions, Dimensions, cover_regions, inches_to_px
from kdp_cover.cover.raster import Box, PillowSurface, RasterSurface
from kdp_cover.errors import AssemblyError, AssetLoadError

logger = logging.getLogger(__name__)

SPINE_FONT_CAP_PX = 72
SPINE_FONT_RATIO = 0.6
GUIDE_COLOR = (255, 0, 255, 255)
GUIDE_WIDTH = 3
GUIDE_DASH = (24, 12)
BACK_BLUR_RADIUS = 12
BACK_DARKEN = 0.55
BAND_COLOR = (0, 0, 0, 140)


@dataclass(frozen=True)
class SpineConfig:
    text: str = ""
    color: str = "#000000"

    def __post_init__(self):
        text = (self.text or "").strip()
        if len(text) > MAX_SPINE_TEXT_LEN:
            logger.info("Spine text truncated to %d characters", MAX_SPINE_TEXT_LEN)
            text = text[:MAX_SPINE_TEXT_LEN]
        object.__setattr__(self, "text", text)


@dataclass
class FullWrapComposite:
    """Assembled cover. `image` is print-safe; `preview` may carry guides."""
    image: Image.Image
    preview: Image.Image
    dimensions: Dimensions
    regions: CoverRegions
    warnings: List[str] = field(default_factory=list)
    spine_text_box: Optional[Box] = None

    @property
    def size(self) -> Tuple[int, int]:
        return self.image.size

    def to_png(self, preview: bool = False) -> bytes:
        buf = io.BytesIO()
        img = self.preview if preview else self.image
        img.save(buf, format="PNG", dpi=(self.dimensions.dpi, self.dimensions.dpi))
        return buf.getvalue()


def spine_font_size(spine_px: int) -> int:
    return max(1, min(SPINE_FONT_CAP_PX, int(spine_px * SPINE_FONT_RATIO)))


def stand_in_back_cover(front: Image.Image) -> Image.Image:
    """Blurred, darkened copy of the front art used when no back cover exists."""
    back = front.convert("RGB").filter(ImageFilter.GaussianBlur(radius=BACK_BLUR_RADIUS))
    return ImageEnhance.Brightness(back).enhance(BACK_DARKEN)


def preview_grid(count: int, box: Box, margin: int) -> List[Box]:
    """Up to two columns (three once there are more than four images)."""
    if count <= 0:
        return []
    cols = 1 if count == 1 else (2 if count <= 4 else 3)
    rows = math.ceil(count / cols)
    l, t, r, b = box
    cell_w = (r - l - margin * (cols - 1)) // cols
    cell_h = (b - t - margin * (rows - 1)) // rows
    cells = []
    for i in range(count):
        row, col = divmod(i, cols)
        x = l + col * (cell_w + margin)
        y = t + row * (cell_h + margin)
        cells.append((x, y, x + cell_w, y + cell_h))
    return cells


def _fit_within(src_size: Tuple[int, int], target_size: Tuple[int, int]) -> Tuple[int, int]:
    sw, sh = src_size
    tw, th = target_size
    scale = min(tw / sw, th / sh)
    return max(1, int(sw * scale)), max(1, int(sh * scale))


def _draw_spine(surface: RasterSurface, dims: Dimensions, regions: CoverRegions,
                spine: SpineConfig, warnings: List[str]) -> Optional[Box]:
    surface.fill_rect(regions.spine, spine.color)
    if not spine.text:
        return None
    if not dims.spine_text_viable:
        warnings.append(
            f'Spine is {dims.spine_width_in:.3f}" wide; text needs at least 0.25" '
            f"({dims.page_count} pages is too few). Spine text was left off."
        )
        return None
    l, t, r, b = regions.spine
    height = b - t
    usable = height - 2 * (dims.bleed_px + inches_to_px(0.25))
    return surface.draw_rotated_text(
        spine.text,
        center=((l + r) / 2, (t + b) / 2),
        size=spine_font_size(r - l),
        color=contrasting_text_color(spine.color),
        max_length=max(1, usable),
    )


def _draw_back(surface: RasterSurface, dims: Dimensions, regions: CoverRegions,
               front: Image.Image, back: Optional[Image.Image],
               previews: Sequence[Image.Image], title: str, author: str) -> None:
    if back is not None:
        surface.draw_image(back, regions.back)
    else:
        surface.draw_image(stand_in_back_cover(front), regions.back)
        lines = [s for s in (title, author) if s]
        if lines:
            l, t, r, b = regions.back_trim
            band_h = inches_to_px(0.5) * len(lines) + inches_to_px(0.2)
            band_top = t + inches_to_px(0.6)
            surface.fill_rect((l, band_top, r, band_top + band_h), BAND_COLOR)
            y = band_top + inches_to_px(0.1) + inches_to_px(0.25)
            for i, line in enumerate(lines):
                size = inches_to_px(0.3) if i == 0 else inches_to_px(0.2)
                surface.draw_text(line, ((l + r) / 2, y), size, "#ffffff")
                y += inches_to_px(0.5)

    if not previews:
        return
    l, t, r, b = regions.back_trim
    margin = inches_to_px(0.25)
    # lower half of the back trim area, clear of the title band
    area = (l + margin, t + (b - t) // 2, r - margin, b - inches_to_px(0.5))
    label_y = area[1] - inches_to_px(0.2)
    surface.draw_text("Interior Preview", ((l + r) / 2, label_y), inches_to_px(0.15), "#ffffff")
    for img, cell in zip(previews, preview_grid(len(previews), area, margin // 2)):
        fitted = _fit_within(img.size, (cell[2] - cell[0], cell[3] - cell[1]))
        x = cell[0] + (cell[2] - cell[0] - fitted[0]) // 2
        y = cell[1] + (cell[3] - cell[1] - fitted[1]) // 2
        surface.fill_rect((x - 6, y - 6, x + fitted[0] + 6, y + fitted[1] + 6), "#ffffff")
        surface.draw_image(img, (x, y, x + fitted[0], y + fitted[1]))


def draw_guides(surface: RasterSurface, regions: CoverRegions) -> List[Box]:
    """Preview-only trim and spine outlines."""
    surface.stroke_rect(regions.back_trim, GUIDE_COLOR, GUIDE_WIDTH, dash=GUIDE_DASH)
    surface.stroke_rect(regions.front_trim, GUIDE_COLOR, GUIDE_WIDTH, dash=GUIDE_DASH)
    surface.stroke_rect(regions.spine, GUIDE_COLOR, GUIDE_WIDTH)
    return [regions.back_trim, regions.front_trim, regions.spine]


def render_full_wrap(
    front: Image.Image,
    dims: Dimensions,
    spine: SpineConfig,
    back: Optional[Image.Image] = None,
    previews: Sequence[Image.Image] = (),
    show_guides: bool = False,
    title: str = "",
    author: str = "",
) -> FullWrapComposite:
    """Synchronous drawing step; each call owns a fresh surface."""
    regions = cover_regions(dims)
    surface = PillowSurface(dims.full_wrap_width_px, dims.full_wrap_height_px, background="white")
    warnings: List[str] = []

    surface.draw_image(front, regions.front)
    text_box = _draw_spine(surface, dims, regions, spine, warnings)
    _draw_back(surface, dims, regions, front, back, previews, title, author)

    preview = surface
    if show_guides:
        preview = surface.snapshot()
        draw_guides(preview, regions)

    for w in warnings:
        logger.warning(w)
    return FullWrapComposite(
        image=surface.to_image(),
        preview=preview.to_image(),
        dimensions=dims,
        regions=regions,
        warnings=warnings,
        spine_text_box=text_box,
    )


async def _load_named(loader: AssetLoader, name: str, source: ImageSource,
                      max_bytes: Optional[int] = None) -> Image.Image:
    try:
        return await loader.load_bitmap(source, max_bytes=max_bytes)
    except AssetLoadError as e:
        raise AssemblyError(e.reason, asset=name) from e


async def _load_all(loader: AssetLoader, named, timeout: float) -> List[Image.Image]:
    """Load (name, source, max_bytes) entries concurrently under one deadline.

    The first failure, or the first asset still pending at the deadline, is
    reported by name; unfinished loads are cancelled either way.
    """
    tasks = [asyncio.create_task(_load_named(loader, name, src, limit)) for name, src, limit in named]
    try:
        done, pending = await asyncio.wait(tasks, timeout=timeout, return_when=asyncio.FIRST_EXCEPTION)
    except asyncio.CancelledError:
        for task in tasks:
            task.cancel()
        raise
    for task in pending:
        task.cancel()
    if pending:
        await asyncio.gather(*pending, return_exceptions=True)

    for task in tasks:
        if task in done and task.exception() is not None:
            raise task.exception()
    if pending:
        late = next(name for (name, _, _), task in zip(named, tasks) if task in pending)
        raise AssemblyError(f"did not load within {timeout:g}s", asset=late)
    return [task.result() for task in tasks]


async def assemble_full_wrap(
    front: ImageSource,
    dimensions: Dimensions,
    spine: SpineConfig,
    back: Optional[ImageSource] = None,
    interior_previews: Sequence[ImageSource] = (),
    show_guides: bool = False,
    title: str = "",
    author: str = "",
    loader: Optional[AssetLoader] = None,
    timeout: Optional[float] = None,
) -> FullWrapComposite:
    """Load every asset concurrently, then draw the full wrap.

    Raises:
        AssemblyError: an asset failed to load or decode, the overall
            deadline passed, or more than six interior previews were given.
    """
    loader = loader or AssetLoader()
    timeout = loader.settings.assembly_timeout_s if timeout is None else timeout
    interior_previews = list(interior_previews or [])
    if len(interior_previews) > MAX_INTERIOR_PREVIEWS:
        raise AssemblyError(
            f"{len(interior_previews)} interior previews given, at most {MAX_INTERIOR_PREVIEWS} allowed",
            asset="interior previews",
        )

    named = [("front cover", front, None)]
    if back is not None:
        named.append(("back cover", back, None))
    for i, src in enumerate(interior_previews):
        named.append((f"interior preview {i + 1}", src, MAX_PREVIEW_BYTES))
    images = await _load_all(loader, named, timeout)

    front_img = images[0]
    back_img = images[1] if back is not None else None
    previews = images[2:] if back is not None else images[1:]

    return await asyncio.to_thread(
        render_full_wrap, front_img, dimensions, spine, back_img, previews,
        show_guides, title, author,
    )


def placeholder_front(dims: Dimensions, text: str = "Cover unavailable") -> Image.Image:
    size = (max(1, dims.front_width_px), max(1, dims.front_height_px))
    img = Image.new("RGB", size, "#9ca3af")
    surface = PillowSurface(*size, image=img.convert("RGBA"))
    surface.draw_text(text, (size[0] / 2, size[1] / 2), inches_to_px(0.3), "#ffffff")
    return surface.to_image()


def placeholder_composite(dims: Dimensions, spine: SpineConfig, show_guides: bool = False) -> FullWrapComposite:
    """Last resort when neither local nor remote assembly produced a cover."""
    composite = render_full_wrap(placeholder_front(dims), dims, spine, show_guides=show_guides)
    composite.warnings.append("Cover art could not be loaded; a placeholder was used.")
    return composite
