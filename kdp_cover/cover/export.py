"""
Cover export

PNG is written straight from the print raster. PDF wraps the same raster in a
single reportlab page sized to the full wrap at 72 pt/in.
"""

import io
import logging
import os
from pathlib import Path
from typing import BinaryIO, Union

from PIL import Image
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

from kdp_cover.config.sizes import DPI, POINTS_PER_INCH
from kdp_cover.cover.compositor import FullWrapComposite
from kdp_cover.cover.dimensions import px_to_inches
from kdp_cover.errors import ExportError

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def _prepare(out_path: PathLike) -> Path:
    out_dir = os.path.dirname(str(out_path))
    if out_dir:
        os.makedirs(out_dir, exist_ok=True)
    return Path(out_path)


def write_pdf(image: Image.Image, target: Union[str, BinaryIO], dpi: int = DPI,
              title: str = "KDP cover") -> tuple:
    """Draw `image` edge to edge on one page of `image.size / dpi` inches."""
    width_pt = px_to_inches(image.width, dpi) * POINTS_PER_INCH
    height_pt = px_to_inches(image.height, dpi) * POINTS_PER_INCH
    c = canvas.Canvas(target, pagesize=(width_pt, height_pt))
    c.setTitle(title)
    c.drawImage(ImageReader(image.convert("RGB")), 0, 0, width=width_pt, height=height_pt)
    c.showPage()
    c.save()
    return width_pt, height_pt


def png_bytes(image: Image.Image, dpi: int = DPI) -> bytes:
    buf = io.BytesIO()
    image.convert("RGB").save(buf, format="PNG", dpi=(dpi, dpi))
    return buf.getvalue()


def pdf_bytes(image: Image.Image, dpi: int = DPI, title: str = "KDP cover") -> bytes:
    buf = io.BytesIO()
    try:
        write_pdf(image, buf, dpi, title)
    except (OSError, ValueError) as e:
        raise ExportError(f"Could not package PDF: {e}") from e
    return buf.getvalue()


def export_png(composite: FullWrapComposite, out_path: PathLike) -> Path:
    """Write the print raster (never the guide preview) with DPI metadata."""
    path = _prepare(out_path)
    dpi = composite.dimensions.dpi
    try:
        composite.image.save(path, format="PNG", dpi=(dpi, dpi))
    except (OSError, ValueError) as e:
        raise ExportError(f"Could not write PNG to {path}: {e}") from e
    logger.info("Wrote %s (%dx%d px)", path, *composite.size)
    return path


def export_pdf(composite: FullWrapComposite, out_path: PathLike) -> Path:
    path = _prepare(out_path)
    dims = composite.dimensions
    try:
        width_pt, height_pt = write_pdf(
            composite.image, str(path), dims.dpi,
            title=f"KDP cover {dims.trim_size} / {dims.page_count} pages",
        )
    except (OSError, ValueError) as e:
        raise ExportError(f"Could not write PDF to {path}: {e}") from e
    logger.info("Wrote %s (%.2f x %.2f pt)", path, width_pt, height_pt)
    return path
