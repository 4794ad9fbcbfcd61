"""
Cover assembly orchestration

`build_full_wrap` runs the fallback chain (local composite with retries,
then the backend's assemble endpoint, then a placeholder). `CoverSession`
tracks one book's working state and drops results that were computed for
settings the user has since changed.
"""

import asyncio
import io
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

import httpx
from PIL import Image

from kdp_cover.assets.loader import AssetLoader, ImageSource, decode_data_uri, decode_image, to_data_uri
from kdp_cover.config.settings import Settings
from kdp_cover.config.sizes import MAX_INTERIOR_PREVIEWS
from kdp_cover.cover.colors import ExtractedPalette, extract_colors
from kdp_cover.cover.compositor import (
    FullWrapComposite,
    SpineConfig,
    assemble_full_wrap,
    draw_guides,
    placeholder_composite,
)
from kdp_cover.cover.dimensions import BookSpec, Dimensions, calculate_dimensions, cover_regions
from kdp_cover.cover.raster import PillowSurface
from kdp_cover.errors import AssemblyError, AssetLoadError, KDPCoverError
from kdp_cover.fallback import Strategy, retry_async, run_chain

logger = logging.getLogger(__name__)

ASSEMBLE_PATH = "/api/book-cover/assemble-full"


@dataclass
class AssemblyOutcome:
    composite: FullWrapComposite
    strategy: str
    errors: List[tuple] = field(default_factory=list)

    @property
    def degraded(self) -> bool:
        return self.strategy != "local"


def _as_reference(source: ImageSource) -> str:
    """Something JSON-safe the backend can load: URL, path or data URI."""
    if isinstance(source, Image.Image):
        buf = io.BytesIO()
        source.save(buf, format="PNG")
        return to_data_uri(buf.getvalue())
    if isinstance(source, bytes):
        return to_data_uri(source)
    return str(source)


async def remote_full_wrap(
    settings: Settings,
    front: ImageSource,
    dimensions: Dimensions,
    spine: SpineConfig,
    back: Optional[ImageSource] = None,
    interior_previews: Sequence[ImageSource] = (),
    show_guides: bool = False,
    title: str = "",
    author: str = "",
    client: Optional[httpx.AsyncClient] = None,
) -> FullWrapComposite:
    """Ask the backend to assemble the cover and decode its PNG."""
    if not settings.api_base_url:
        raise AssemblyError("no API base URL configured", asset="server composite")
    url = settings.api_base_url.rstrip("/") + ASSEMBLE_PATH
    payload = {
        "frontCoverUrl": _as_reference(front),
        "backCoverUrl": _as_reference(back) if back is not None else None,
        "dimensions": dimensions.to_dict(),
        "spineText": spine.text,
        "spineColor": spine.color,
        "interiorImagesUrls": [_as_reference(s) for s in interior_previews],
        "bookTitle": title,
        "authorName": author,
    }
    try:
        if client is not None:
            resp = await client.post(url, json=payload)
        else:
            async with httpx.AsyncClient(timeout=settings.assembly_timeout_s) as c:
                resp = await c.post(url, json=payload)
        resp.raise_for_status()
        data = resp.json()
    except (httpx.HTTPError, ValueError) as e:
        raise AssemblyError(str(e) or e.__class__.__name__, asset="server composite") from e

    try:
        image = decode_image(decode_data_uri(data["fullCover"]), "server composite").convert("RGB")
    except (KeyError, AssetLoadError) as e:
        raise AssemblyError(f"unusable response ({e})", asset="server composite") from e

    expected = (dimensions.full_wrap_width_px, dimensions.full_wrap_height_px)
    if image.size != expected:
        raise AssemblyError(f"server returned {image.size}, expected {expected}", asset="server composite")

    regions = cover_regions(dimensions)
    preview = image
    if show_guides:
        surface = PillowSurface(*image.size, image=image.convert("RGBA"))
        draw_guides(surface, regions)
        preview = surface.to_image()
    return FullWrapComposite(
        image=image,
        preview=preview,
        dimensions=dimensions,
        regions=regions,
        warnings=list(data.get("warnings") or []),
    )


async def build_full_wrap(
    front: ImageSource,
    dimensions: Dimensions,
    spine: SpineConfig,
    back: Optional[ImageSource] = None,
    interior_previews: Sequence[ImageSource] = (),
    show_guides: bool = False,
    title: str = "",
    author: str = "",
    settings: Optional[Settings] = None,
    loader: Optional[AssetLoader] = None,
    client: Optional[httpx.AsyncClient] = None,
    use_remote: bool = True,
) -> AssemblyOutcome:
    """Assemble with graceful degradation; never raises for asset problems."""
    if len(interior_previews) > MAX_INTERIOR_PREVIEWS:
        raise AssemblyError(
            f"{len(interior_previews)} interior previews given, at most {MAX_INTERIOR_PREVIEWS} allowed",
            asset="interior previews",
        )
    settings = settings or (loader.settings if loader else Settings())
    loader = loader or AssetLoader(settings)

    async def local():
        return await retry_async(
            lambda: assemble_full_wrap(
                front, dimensions, spine, back, interior_previews,
                show_guides, title, author, loader=loader,
            ),
            attempts=1 + settings.assembly_retries,
            retry_on=(AssemblyError,),
            label="Cover assembly",
        )

    async def remote():
        return await remote_full_wrap(
            settings, front, dimensions, spine, back, interior_previews,
            show_guides, title, author, client=client,
        )

    async def placeholder():
        return placeholder_composite(dimensions, spine, show_guides=show_guides)

    strategies = [Strategy("local", local)]
    if use_remote and settings.api_base_url:
        strategies.append(Strategy("server", remote))
    strategies.append(Strategy("placeholder", placeholder))

    result = await run_chain(strategies, retry_on=(KDPCoverError,))
    composite = result.value
    for name, err in result.errors:
        composite.warnings.append(f"{name} assembly failed: {err}")
    return AssemblyOutcome(composite=composite, strategy=result.strategy, errors=result.errors)


class CoverSession:
    """Working state for one book cover.

    Changing the book settings recomputes the dimensions and invalidates
    the composite; replacing the front cover also invalidates the palette.
    Results of work started before such a change are discarded.
    """

    def __init__(self, spec: BookSpec, settings: Optional[Settings] = None,
                 loader: Optional[AssetLoader] = None, use_remote: bool = False):
        self.settings = settings or Settings()
        self.loader = loader or AssetLoader(self.settings)
        self.use_remote = use_remote
        self.generation = 0
        self._front_version = 0
        self.spec = spec
        self.dimensions = calculate_dimensions(spec, self.settings.max_page_count)
        self.front: Optional[ImageSource] = None
        self.back: Optional[ImageSource] = None
        self.interior_previews: List[ImageSource] = []
        self.spine_text = ""
        self.spine_color: Optional[str] = None
        self.title = ""
        self.author = ""
        self.palette: Optional[ExtractedPalette] = None
        self.composite: Optional[FullWrapComposite] = None
        self.strategy: Optional[str] = None

    def _invalidate(self, palette: bool = False) -> None:
        self.generation += 1
        self.composite = None
        self.strategy = None
        if palette:
            self.palette = None

    def update_spec(self, spec: BookSpec) -> Dimensions:
        self.spec = spec
        self.dimensions = calculate_dimensions(spec, self.settings.max_page_count)
        self._invalidate()
        return self.dimensions

    def set_front_cover(self, source: ImageSource) -> None:
        self.front = source
        self._front_version += 1
        self._invalidate(palette=True)

    def set_back_cover(self, source: Optional[ImageSource]) -> None:
        self.back = source
        self._invalidate()

    def set_spine(self, text: str = "", color: Optional[str] = None) -> None:
        self.spine_text = text
        self.spine_color = color
        self._invalidate()

    @property
    def spine_config(self) -> SpineConfig:
        color = self.spine_color or (self.palette.dominant_color if self.palette else "#333333")
        return SpineConfig(text=self.spine_text, color=color)

    @property
    def ready(self) -> bool:
        return self.palette is not None and self.composite is not None

    async def extract_palette(self) -> Optional[ExtractedPalette]:
        if self.front is None:
            raise AssemblyError("no front cover set", asset="front cover")
        front_version = self._front_version
        palette = await extract_colors(self.front, self.loader)
        if front_version != self._front_version:
            logger.info("Front cover replaced during color sampling; palette discarded")
            return None
        self.palette = palette
        return palette

    async def assemble(self, show_guides: bool = False) -> Optional[FullWrapComposite]:
        if self.front is None:
            raise AssemblyError("no front cover set", asset="front cover")
        token = self.generation
        outcome = await build_full_wrap(
            self.front, self.dimensions, self.spine_config, self.back,
            self.interior_previews, show_guides, self.title, self.author,
            settings=self.settings, loader=self.loader, use_remote=self.use_remote,
        )
        if token != self.generation:
            logger.info("Cover inputs changed during assembly; result discarded")
            return None
        self.composite = outcome.composite
        self.strategy = outcome.strategy
        return outcome.composite

    async def prepare(self, show_guides: bool = False) -> bool:
        """Bring palette and composite up to date; True once the cover is ready.

        The spine defaults to the dominant cover color, so without an explicit
        spine color the palette has to land first. Otherwise both run
        concurrently.
        """
        if self.palette is None and self.spine_color is None:
            await self.extract_palette()
            await self.assemble(show_guides)
        elif self.palette is None:
            await asyncio.gather(self.extract_palette(), self.assemble(show_guides))
        else:
            await self.assemble(show_guides)
        return self.ready
