"""Error types raised across cover dimension, assembly and export code."""

from typing import Optional


class KDPCoverError(Exception):
    """Base class; messages are safe to show to the user."""


class ConfigurationError(KDPCoverError):
    """Bad configuration. Out-of-range book fields are clamped instead of raising."""


class AssetLoadError(KDPCoverError):
    def __init__(self, source: str, reason: str):
        self.source = source
        self.reason = reason
        super().__init__(f"Could not load image {_short(source)}: {reason}")


class ColorExtractionError(KDPCoverError):
    """Absorbed by the color extractor; callers only ever see the fallback palette."""


class AssemblyError(KDPCoverError):
    def __init__(self, reason: str, asset: Optional[str] = None):
        self.asset = asset
        self.reason = reason
        msg = f"{asset} failed: {reason}" if asset else reason
        super().__init__(f"Cover assembly failed ({msg})")


class ExportError(KDPCoverError):
    """Packaging or writing the final cover failed."""


def _short(source: str, limit: int = 80) -> str:
    s = str(source)
    if s.startswith("data:"):
        return s.split(",", 1)[0] + ",..."
    return s if len(s) <= limit else s[: limit - 3] + "..."
