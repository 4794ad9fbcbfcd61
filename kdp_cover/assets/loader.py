"""
Asset acquisition

Turns an image reference (data URI, local path, remote URL, raw bytes or an
already-decoded PIL image) into a decoded bitmap. Remote URLs go through the
backend's image proxy when an API base URL is configured.
"""

import asyncio
import base64
import binascii
import io
import logging
from pathlib import Path
from typing import Optional, Union
from urllib.parse import unquote, urlparse

import httpx
from PIL import Image, UnidentifiedImageError

from kdp_cover.config.settings import Settings
from kdp_cover.errors import AssetLoadError

logger = logging.getLogger(__name__)

ImageSource = Union[str, bytes, Path, Image.Image]


def decode_data_uri(uri: str) -> bytes:
    header, _, payload = uri.partition(",")
    if not header.startswith("data:") or not payload:
        raise AssetLoadError(uri, "malformed data URI")
    try:
        if ";base64" in header:
            return base64.b64decode(payload, validate=False)
        return unquote(payload).encode("latin-1")
    except (binascii.Error, ValueError) as e:
        raise AssetLoadError(uri, f"bad data URI payload ({e})") from e


def decode_image(data: bytes, source: str = "<bytes>") -> Image.Image:
    try:
        img = Image.open(io.BytesIO(data))
        img.load()
    except (UnidentifiedImageError, OSError, ValueError) as e:
        raise AssetLoadError(source, f"not a decodable image ({e})") from e
    return img


def to_data_uri(data: bytes, mime: str = "image/png") -> str:
    return f"data:{mime};base64,{base64.b64encode(data).decode('ascii')}"


def is_local_reference(source) -> bool:
    """True for file:// URLs and bare filesystem paths."""
    if isinstance(source, Path):
        return True
    if not isinstance(source, str) or source.startswith("data:"):
        return False
    return urlparse(source).scheme not in ("http", "https")


class AssetLoader:
    """Loads bitmaps for color sampling and compositing.

    Args:
        settings: runtime settings (proxy URL and per-asset timeout)
        client: optional shared httpx client; one is created per fetch otherwise
        use_proxy: route http(s) URLs through the image proxy when configured
        allow_local: permit file paths and file:// URLs
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        client: Optional[httpx.AsyncClient] = None,
        use_proxy: bool = True,
        allow_local: bool = True,
    ):
        self.settings = settings or Settings()
        self.client = client
        self.use_proxy = use_proxy
        self.allow_local = allow_local

    def resolve_url(self, url: str) -> str:
        proxy = self.settings.proxy_url if self.use_proxy else None
        if not proxy:
            return url
        return str(httpx.URL(proxy, params={"url": url}))

    async def fetch_bytes(self, url: str, max_bytes: Optional[int] = None) -> bytes:
        target = self.resolve_url(url)
        logger.debug("Fetching %s via %s", url, target)
        try:
            if self.client is not None:
                resp = await self.client.get(target, follow_redirects=True)
            else:
                async with httpx.AsyncClient(timeout=self.settings.asset_timeout_s) as client:
                    resp = await client.get(target, follow_redirects=True)
            resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise AssetLoadError(url, f"HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise AssetLoadError(url, f"network error ({e.__class__.__name__})") from e
        data = resp.content
        _check_size(url, data, max_bytes)
        return data

    async def read_bytes(self, source: ImageSource, max_bytes: Optional[int] = None) -> bytes:
        if isinstance(source, bytes):
            _check_size("<bytes>", source, max_bytes)
            return source
        src = str(source)
        if src.startswith("data:"):
            data = decode_data_uri(src)
            _check_size(src, data, max_bytes)
            return data
        parsed = urlparse(src)
        if parsed.scheme in ("http", "https"):
            return await self.fetch_bytes(src, max_bytes)
        if not self.allow_local:
            raise AssetLoadError(src, "local files are not accepted")
        path = Path(unquote(parsed.path)) if parsed.scheme == "file" else Path(src)
        try:
            data = await asyncio.to_thread(path.read_bytes)
        except OSError as e:
            raise AssetLoadError(src, f"cannot read file ({e.strerror or e})") from e
        _check_size(src, data, max_bytes)
        return data

    async def load_bitmap(
        self,
        source: ImageSource,
        max_bytes: Optional[int] = None,
        timeout: Optional[float] = None,
    ) -> Image.Image:
        if isinstance(source, Image.Image):
            return source
        timeout = self.settings.asset_timeout_s if timeout is None else timeout
        label = "<bytes>" if isinstance(source, bytes) else str(source)
        try:
            data = await asyncio.wait_for(self.read_bytes(source, max_bytes), timeout=timeout)
        except asyncio.TimeoutError as e:
            raise AssetLoadError(label, f"timed out after {timeout:g}s") from e
        return decode_image(data, label)


def _check_size(source: str, data: bytes, max_bytes: Optional[int]) -> None:
    if max_bytes is not None and len(data) > max_bytes:
        raise AssetLoadError(source, f"{len(data)} bytes exceeds limit of {max_bytes}")
