"""
Book cover API endpoints

Dimension calculation, full-wrap assembly, spine color suggestions and
print downloads.
"""

import asyncio
import logging
from typing import List

from fastapi import APIRouter, HTTPException, Query, Request
from fastapi.responses import Response

from kdp_cover.assets.loader import AssetLoader, is_local_reference, to_data_uri
from kdp_cover.config.sizes import MAX_INTERIOR_PREVIEWS, TRIM_SIZES, trim_recommendation
from kdp_cover.cover.colors import extract_colors, spine_color_suggestions
from kdp_cover.cover.compositor import SpineConfig, assemble_full_wrap
from kdp_cover.cover.dimensions import calculate_dimensions, format_dimensions
from kdp_cover.cover.export import pdf_bytes, png_bytes
from kdp_cover.errors import AssemblyError, AssetLoadError, ExportError
from web.backend.models.cover import (
    AssembleRequest,
    AssembleResponse,
    ColorsRequest,
    ColorsResponse,
    DimensionsRequest,
    DimensionsResponse,
    TrimSizeInfo,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def _loader(request: Request) -> AssetLoader:
    # the backend is the proxy; fetch remote images directly
    return AssetLoader(request.app.state.settings, use_proxy=False, allow_local=False)


def _reject_local(*sources) -> None:
    for src in sources:
        if src is not None and is_local_reference(src):
            raise HTTPException(status_code=400, detail=f"Local file references are not accepted: {src}")


@router.get("/trim-sizes", response_model=List[TrimSizeInfo], response_model_by_alias=True)
async def trim_sizes():
    """Supported KDP trim sizes, most popular flagged."""
    return [
        TrimSizeInfo(
            key=t.key,
            width_in=t.width_in,
            height_in=t.height_in,
            label=t.label,
            popular=t.popular,
            recommendation=trim_recommendation(t.key),
        )
        for t in TRIM_SIZES.values()
    ]


@router.post("/calculate-dimensions", response_model=DimensionsResponse, response_model_by_alias=True)
async def calculate(body: DimensionsRequest, request: Request):
    """
    Calculate full-wrap cover dimensions.

    Page counts outside KDP's range are clamped rather than rejected.
    """
    settings = request.app.state.settings
    dims = calculate_dimensions(body.to_spec(), settings.max_page_count)
    return DimensionsResponse(
        dimensions=dims.to_dict(),
        spine_text_viable=dims.spine_text_viable,
        summary=format_dimensions(dims),
        recommendation=trim_recommendation(dims.trim_size),
    )


@router.post("/assemble-full", response_model=AssembleResponse, response_model_by_alias=True)
async def assemble_full(body: AssembleRequest, request: Request):
    """
    Assemble back cover, spine and front cover into one print raster.

    Returns the PNG as a data URI together with the dimensions used.
    """
    settings = request.app.state.settings
    if len(body.interior_images_urls) > MAX_INTERIOR_PREVIEWS:
        raise HTTPException(
            status_code=422,
            detail=f"At most {MAX_INTERIOR_PREVIEWS} interior preview images are allowed",
        )
    try:
        dims = body.resolve_dimensions(settings.max_page_count)
    except (KeyError, TypeError, ValueError) as e:
        raise HTTPException(status_code=422, detail=f"Invalid dimensions: {e}")
    _reject_local(body.front_cover_url, body.back_cover_url, *body.interior_images_urls)

    spine = SpineConfig(text=body.spine_text, color=body.spine_color or "#333333")
    try:
        composite = await assemble_full_wrap(
            body.front_cover_url,
            dims,
            spine,
            back=body.back_cover_url,
            interior_previews=body.interior_images_urls,
            show_guides=body.show_guides,
            title=body.book_title,
            author=body.author_name,
            loader=_loader(request),
        )
    except AssemblyError as e:
        logger.warning("Assembly failed: %s", e)
        raise HTTPException(status_code=502, detail=str(e))

    return AssembleResponse(
        full_cover=to_data_uri(composite.to_png(preview=body.show_guides)),
        dimensions=dims.to_dict(),
        warnings=composite.warnings,
    )


@router.post("/spine-colors", response_model=ColorsResponse, response_model_by_alias=True)
async def spine_colors(body: ColorsRequest, request: Request):
    """Palette of the front cover plus suggested spine colors."""
    settings = request.app.state.settings
    palette = await extract_colors(body.image_url, _loader(request), timeout=settings.color_timeout_s)
    return ColorsResponse(
        colors=palette.colors,
        dominant_color=palette.dominant_color,
        suggestions=spine_color_suggestions(palette),
    )


@router.get("/download")
async def download(request: Request,
                   url: str = Query(..., description="Cover image URL or data URI"),
                   format: str = Query("png", pattern="^(png|pdf)$"),
                   filename: str = Query("kdp-cover")):
    """
    Download a cover as PNG or a single-page print PDF.
    """
    _reject_local(url)
    try:
        image = await _loader(request).load_bitmap(url)
    except AssetLoadError as e:
        raise HTTPException(status_code=502, detail=str(e))

    try:
        if format == "pdf":
            content = await asyncio.to_thread(pdf_bytes, image)
            media_type = "application/pdf"
        else:
            content = await asyncio.to_thread(png_bytes, image)
            media_type = "image/png"
    except ExportError as e:
        raise HTTPException(status_code=500, detail=str(e))

    return Response(
        content=content,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}.{format}"'},
    )
