"""Reference data and runtime settings"""

from kdp_cover.config.settings import Settings, load_settings
from kdp_cover.config.sizes import PaperType, TrimSize, TRIM_SIZES

__all__ = ["Settings", "load_settings", "PaperType", "TrimSize", "TRIM_SIZES"]
