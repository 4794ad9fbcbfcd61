import io
from pathlib import Path

import pytest
from PIL import Image

from kdp_cover.config.settings import Settings
from kdp_cover.cover.dimensions import BookSpec


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in ("KDP_API_BASE_URL", "KDP_MAX_PAGE_COUNT", "KDP_HISTORY_PATH", "IDEOGRAM_API_KEY"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        history_path=tmp_path / "history.json",
        exports_dir=tmp_path / "exports",
        assembly_retries=0,
    )


@pytest.fixture
def small_spec() -> BookSpec:
    # thin spine, no bleed: keeps rasters small
    return BookSpec(trim_size="5x8", page_count=24, include_bleed=False)


def make_png(color=(200, 40, 40), size=(120, 180), mode="RGB") -> bytes:
    buf = io.BytesIO()
    Image.new(mode, size, color).save(buf, format="PNG")
    return buf.getvalue()


def write_png(path: Path, color=(200, 40, 40), size=(120, 180)) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(make_png(color, size))
    return path
