"""
Raster drawing surface

The compositor only talks to `RasterSurface`, so the same layout code can
run against any 2D backend. `PillowSurface` is the implementation used by
the CLI and the web backend.
"""

from abc import ABC, abstractmethod
from functools import lru_cache
from pathlib import Path
from typing import Optional, Sequence, Tuple, Union

from PIL import Image, ImageColor, ImageDraw, ImageFont

Box = Tuple[int, int, int, int]
Color = Union[str, Tuple[int, ...]]

# User-supplied TTFs in ./fonts win over system fonts
SPINE_FONTS = [
    "fonts/Inter-Bold.ttf",
    "/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf",
    "/usr/share/fonts/dejavu/DejaVuSans-Bold.ttf",
    "/Library/Fonts/Arial Bold.ttf",
    "C:/Windows/Fonts/arialbd.ttf",
]


def pick_first_existing_font(candidates: Sequence[str]) -> Optional[str]:
    for p in candidates:
        if Path(p).exists():
            return p
    return None


@lru_cache(maxsize=32)
def load_font(size: int, path: Optional[str] = None):
    path = path or pick_first_existing_font(SPINE_FONTS)
    if path:
        return ImageFont.truetype(path, size)
    return ImageFont.load_default(size=size)


class RasterSurface(ABC):
    width: int
    height: int

    @abstractmethod
    def fill_rect(self, box: Box, color: Color) -> None:
        ...

    @abstractmethod
    def draw_image(self, img: Image.Image, box: Box) -> None:
        """Stretch `img` to exactly fill `box`."""

    @abstractmethod
    def draw_rotated_text(self, text: str, center: Tuple[float, float], size: int,
                          color: Color, angle: float = -90, max_length: Optional[int] = None) -> Box:
        """Draw text centred on `center`; returns the box actually covered."""

    @abstractmethod
    def draw_text(self, text: str, center: Tuple[float, float], size: int, color: Color) -> Box:
        ...

    @abstractmethod
    def stroke_rect(self, box: Box, color: Color, width: int = 1,
                    dash: Optional[Tuple[int, int]] = None) -> None:
        ...

    @abstractmethod
    def snapshot(self) -> "RasterSurface":
        """Independent copy; drawing on it leaves this surface untouched."""

    @abstractmethod
    def to_image(self) -> Image.Image:
        ...


class PillowSurface(RasterSurface):
    def __init__(self, width: int, height: int, background: Color = "white",
                 image: Optional[Image.Image] = None):
        self.image = image if image is not None else Image.new("RGBA", (width, height), background)
        self.width, self.height = self.image.size

    def fill_rect(self, box: Box, color: Color) -> None:
        if _empty(box):
            return
        rgba = _rgba(color)
        if rgba[3] == 255:
            self.image.paste(rgba, box)
        else:
            layer = Image.new("RGBA", (box[2] - box[0], box[3] - box[1]), rgba)
            self.image.alpha_composite(layer, box[:2])

    def draw_image(self, img: Image.Image, box: Box) -> None:
        if _empty(box):
            return
        size = (box[2] - box[0], box[3] - box[1])
        fitted = img.convert("RGBA").resize(size, Image.LANCZOS)
        self.image.alpha_composite(fitted, box[:2])

    def _text_layer(self, text: str, size: int, color: Color) -> Image.Image:
        font = load_font(size)
        measure = ImageDraw.Draw(Image.new("RGBA", (1, 1)))
        left, top, right, bottom = measure.textbbox((0, 0), text, font=font)
        layer = Image.new("RGBA", (max(1, right - left), max(1, bottom - top)), (0, 0, 0, 0))
        ImageDraw.Draw(layer).text((-left, -top), text, font=font, fill=color)
        return layer

    def _paste_centered(self, layer: Image.Image, center: Tuple[float, float]) -> Box:
        x = int(round(center[0] - layer.width / 2))
        y = int(round(center[1] - layer.height / 2))
        # clip to canvas; alpha_composite refuses out-of-bounds destinations
        sx, sy = max(0, -x), max(0, -y)
        dx, dy = max(0, x), max(0, y)
        w = min(layer.width - sx, self.width - dx)
        h = min(layer.height - sy, self.height - dy)
        if w <= 0 or h <= 0:
            return (dx, dy, dx, dy)
        self.image.alpha_composite(layer.crop((sx, sy, sx + w, sy + h)), (dx, dy))
        return (dx, dy, dx + w, dy + h)

    def draw_text(self, text: str, center: Tuple[float, float], size: int, color: Color) -> Box:
        return self._paste_centered(self._text_layer(text, size, color), center)

    def draw_rotated_text(self, text: str, center: Tuple[float, float], size: int,
                          color: Color, angle: float = -90, max_length: Optional[int] = None) -> Box:
        layer = self._text_layer(text, size, color)
        if max_length and layer.width > max_length:
            ratio = max_length / layer.width
            layer = layer.resize((max(1, int(layer.width * ratio)), max(1, int(layer.height * ratio))), Image.LANCZOS)
        # PIL rotates counter-clockwise; -90 reads top-to-bottom
        rotated = layer.rotate(angle, expand=True, resample=Image.BICUBIC)
        return self._paste_centered(rotated, center)

    def stroke_rect(self, box: Box, color: Color, width: int = 1,
                    dash: Optional[Tuple[int, int]] = None) -> None:
        draw = ImageDraw.Draw(self.image)
        l, t, r, b = box[0], box[1], box[2] - 1, box[3] - 1
        if dash is None:
            draw.rectangle((l, t, r, b), outline=color, width=width)
            return
        on, off = dash
        for y0, y1 in ((t, t + width - 1), (b - width + 1, b)):
            for pos in range(l, r + 1, on + off):
                draw.rectangle((pos, y0, min(pos + on - 1, r), y1), fill=color)
        for x0, x1 in ((l, l + width - 1), (r - width + 1, r)):
            for pos in range(t, b + 1, on + off):
                draw.rectangle((x0, pos, x1, min(pos + on - 1, b)), fill=color)

    def snapshot(self) -> "PillowSurface":
        return PillowSurface(self.width, self.height, image=self.image.copy())

    def to_image(self) -> Image.Image:
        return self.image.convert("RGB")


def _empty(box: Box) -> bool:
    return box[2] <= box[0] or box[3] <= box[1]


def _rgba(color: Color) -> Tuple[int, int, int, int]:
    if isinstance(color, str):
        return ImageColor.getcolor(color, "RGBA")
    if len(color) == 3:
        return (*color, 255)
    return tuple(color)
