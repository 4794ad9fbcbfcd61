"""
Spine color selection

Samples the front cover art and returns a small palette ordered by frequency.
Color choice is cosmetic, so every failure resolves to a neutral fallback.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

import numpy as np
from PIL import Image

from kdp_cover.assets.loader import AssetLoader, ImageSource
from kdp_cover.errors import AssetLoadError, ColorExtractionError

logger = logging.getLogger(__name__)

FALLBACK_COLOR = "#333333"
FALLBACK_SUGGESTIONS = ["#333333", "#000000", "#FFFFFF", "#660000", "#006600"]

SAMPLE_STRIDE = 4
ALPHA_THRESHOLD = 128
QUANT_STEP = 16
PALETTE_SIZE = 6


@dataclass
class ExtractedPalette:
    colors: List[str] = field(default_factory=list)
    dominant_color: str = FALLBACK_COLOR

    def to_dict(self) -> dict:
        return {"colors": list(self.colors), "dominantColor": self.dominant_color}


def palette_from_image(img: Image.Image, limit: int = PALETTE_SIZE) -> ExtractedPalette:
    rgba = np.asarray(img.convert("RGBA"), dtype=np.uint8).reshape(-1, 4)
    sampled = rgba[::SAMPLE_STRIDE]
    opaque = sampled[sampled[:, 3] >= ALPHA_THRESHOLD][:, :3]
    if opaque.size == 0:
        raise ColorExtractionError("no opaque pixels to sample")

    binned = (opaque // QUANT_STEP) * QUANT_STEP
    keys = (binned[:, 0].astype(np.uint32) << 16) | (binned[:, 1].astype(np.uint32) << 8) | binned[:, 2]
    values, counts = np.unique(keys, return_counts=True)
    # most frequent first, ties broken by the smaller color value
    order = np.lexsort((values, -counts))
    colors = [f"#{int(values[i]):06x}" for i in order[:limit]]
    return ExtractedPalette(colors=colors, dominant_color=colors[0])


async def extract_colors(
    source: ImageSource,
    loader: Optional[AssetLoader] = None,
    timeout: Optional[float] = None,
) -> ExtractedPalette:
    """Return the cover's palette, or the fallback palette on any failure."""
    loader = loader or AssetLoader()
    timeout = loader.settings.color_timeout_s if timeout is None else timeout
    try:
        img = await asyncio.wait_for(loader.load_bitmap(source, timeout=timeout), timeout=timeout)
        return palette_from_image(img)
    except asyncio.TimeoutError:
        logger.warning("Color extraction timed out after %ss", timeout)
    except (AssetLoadError, ColorExtractionError) as e:
        logger.warning("Color extraction failed: %s", e)
    except (OSError, ValueError) as e:
        logger.exception("Unexpected error sampling cover colors: %s", e)
    return ExtractedPalette()


def _hex_to_rgb(hex_color: str) -> Tuple[int, int, int]:
    h = hex_color.lstrip("#")
    if len(h) == 3:
        h = "".join(c * 2 for c in h)
    if len(h) != 6:
        raise ValueError(f"Invalid hex color {hex_color!r}")
    return int(h[0:2], 16), int(h[2:4], 16), int(h[4:6], 16)


def _rgb_to_hex(rgb) -> str:
    return "#" + "".join(f"{max(0, min(255, int(c))):02x}" for c in rgb)


def darken_hex(hex_color: str, amount: float) -> str:
    return _rgb_to_hex(int(c * (1 - amount)) for c in _hex_to_rgb(hex_color))


def lighten_hex(hex_color: str, amount: float) -> str:
    return _rgb_to_hex(int(c + (255 - c) * amount) for c in _hex_to_rgb(hex_color))


def contrasting_text_color(hex_color: str) -> str:
    r, g, b = _hex_to_rgb(hex_color)
    luminance = 0.2126 * r + 0.7152 * g + 0.0722 * b
    return "#000000" if luminance > 150 else "#ffffff"


def spine_color_suggestions(palette: ExtractedPalette) -> List[str]:
    if not palette.colors:
        return list(FALLBACK_SUGGESTIONS)
    dominant = palette.dominant_color
    return [
        dominant,
        darken_hex(dominant, 0.3),
        lighten_hex(dominant, 0.3),
        "#000000",
        "#ffffff",
    ]
