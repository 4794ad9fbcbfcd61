"""Full-wrap cover dimensions, colors, assembly and export"""

from kdp_cover.cover.dimensions import (
    BookSpec,
    CoverRegions,
    Dimensions,
    calculate_dimensions,
    cover_regions,
    spine_text_viable,
    spine_width_in,
)
from kdp_cover.cover.colors import ExtractedPalette, extract_colors
from kdp_cover.cover.compositor import FullWrapComposite, SpineConfig, assemble_full_wrap

__all__ = [
    "BookSpec",
    "CoverRegions",
    "Dimensions",
    "calculate_dimensions",
    "cover_regions",
    "spine_text_viable",
    "spine_width_in",
    "ExtractedPalette",
    "extract_colors",
    "FullWrapComposite",
    "SpineConfig",
    "assemble_full_wrap",
]
