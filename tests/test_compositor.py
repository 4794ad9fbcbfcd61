import asyncio
import time

import numpy as np
import pytest
from PIL import Image

from kdp_cover.assets.loader import AssetLoader
from kdp_cover.cover.compositor import (
    GUIDE_WIDTH,
    SpineConfig,
    assemble_full_wrap,
    placeholder_composite,
    preview_grid,
    render_full_wrap,
    spine_font_size,
)
from kdp_cover.cover.dimensions import BookSpec, calculate_dimensions
from kdp_cover.errors import AssemblyError

from tests.conftest import write_png


@pytest.fixture(scope="module")
def thick_dims():
    return calculate_dimensions(BookSpec("5x8", 300, "white", True))


@pytest.fixture(scope="module")
def front_art():
    return Image.new("RGB", (500, 800), (30, 160, 90))


def test_canvas_matches_dimensions(thick_dims, front_art):
    composite = render_full_wrap(front_art, thick_dims, SpineConfig())
    assert composite.size == (thick_dims.full_wrap_width_px, thick_dims.full_wrap_height_px)
    assert composite.image.mode == "RGB"
    l, _, r, _ = composite.regions.spine
    assert r - l == thick_dims.spine_width_px


def test_spine_is_solid_color_with_text(thick_dims, front_art):
    composite = render_full_wrap(front_art, thick_dims, SpineConfig("A Long Night", "#112233"))
    arr = np.asarray(composite.image)
    l, t, r, b = composite.regions.spine
    spine = arr[t:b, l:r]
    # ends of the spine stay clear of text
    assert (spine[:5] == (0x11, 0x22, 0x33)).all()
    assert (spine[-5:] == (0x11, 0x22, 0x33)).all()
    # light text on a dark spine
    assert (spine.astype(int).sum(axis=2) > 600).any()
    assert composite.spine_text_box is not None
    assert not composite.warnings


def test_front_art_fills_front_region(thick_dims, front_art):
    composite = render_full_wrap(front_art, thick_dims, SpineConfig())
    l, t, r, b = composite.regions.front
    assert composite.image.getpixel(((l + r) // 2, (t + b) // 2)) == (30, 160, 90)


def test_guides_only_touch_the_preview(thick_dims, front_art):
    plain = render_full_wrap(front_art, thick_dims, SpineConfig("Title", "#445566"))
    guided = render_full_wrap(front_art, thick_dims, SpineConfig("Title", "#445566"), show_guides=True)
    assert np.array_equal(np.asarray(plain.image), np.asarray(guided.image))

    diff = (np.asarray(guided.preview) != np.asarray(guided.image)).any(axis=2)
    assert diff.any()

    allowed = np.zeros_like(diff)
    regions = guided.regions
    for l, t, r, b in (regions.back_trim, regions.front_trim, regions.spine):
        allowed[t:t + GUIDE_WIDTH, l:r] = True
        allowed[b - GUIDE_WIDTH:b, l:r] = True
        allowed[t:b, l:l + GUIDE_WIDTH] = True
        allowed[t:b, r - GUIDE_WIDTH:r] = True
    assert not (diff & ~allowed).any()


def test_thin_spine_drops_text_with_warning(small_spec, front_art):
    dims = calculate_dimensions(small_spec)
    composite = render_full_wrap(front_art, dims, SpineConfig("Too thin", "#000000"))
    assert composite.spine_text_box is None
    assert len(composite.warnings) == 1
    assert "0.25" in composite.warnings[0]


def test_spine_text_truncated():
    assert len(SpineConfig("x" * 80).text) == 50
    assert SpineConfig("  padded  ").text == "padded"


def test_spine_font_size_is_capped():
    assert spine_font_size(500) == 72
    assert spine_font_size(60) == 36
    assert spine_font_size(0) == 1


def test_preview_grid_layout():
    assert preview_grid(0, (0, 0, 100, 100), 10) == []
    assert preview_grid(1, (0, 0, 100, 100), 10) == [(0, 0, 100, 100)]
    cells = preview_grid(6, (0, 0, 320, 210), 10)
    assert len(cells) == 6
    assert cells[0] == (0, 0, 100, 100)
    assert cells[5] == (220, 110, 320, 210)


def test_assemble_loads_assets(tmp_path, small_spec):
    dims = calculate_dimensions(small_spec)
    front = write_png(tmp_path / "front.png", (10, 20, 30))
    back = write_png(tmp_path / "back.png", (200, 200, 0))
    previews = [str(write_png(tmp_path / f"p{i}.png", (0, 0, 255))) for i in range(3)]

    composite = asyncio.run(assemble_full_wrap(
        str(front), dims, SpineConfig(color="#ff0000"), back=str(back),
        interior_previews=previews, loader=AssetLoader(),
    ))
    assert composite.size == (dims.full_wrap_width_px, dims.full_wrap_height_px)
    l, t, r, b = composite.regions.back
    assert composite.image.getpixel((l + 5, t + 5)) == (200, 200, 0)


def test_assemble_names_failing_asset(tmp_path, small_spec):
    dims = calculate_dimensions(small_spec)
    front = write_png(tmp_path / "front.png")
    with pytest.raises(AssemblyError) as exc:
        asyncio.run(assemble_full_wrap(
            str(front), dims, SpineConfig(), back=str(tmp_path / "missing.png"),
        ))
    assert exc.value.asset == "back cover"
    assert "back cover" in str(exc.value)


class _SlowLoader(AssetLoader):
    async def load_bitmap(self, source, max_bytes=None, timeout=None):
        if source == "slow":
            await asyncio.sleep(5)
        return await super().load_bitmap(source, max_bytes=max_bytes, timeout=timeout)


def test_assemble_deadline_names_the_pending_asset(small_spec, front_art):
    dims = calculate_dimensions(small_spec)
    started = time.monotonic()
    with pytest.raises(AssemblyError) as exc:
        asyncio.run(assemble_full_wrap(
            front_art, dims, SpineConfig(), back="slow", loader=_SlowLoader(), timeout=0.2,
        ))
    assert time.monotonic() - started < 1.0
    assert exc.value.asset == "back cover"
    assert "did not load within 0.2s" in str(exc.value)


def test_assemble_failure_cancels_slow_siblings(tmp_path, small_spec):
    dims = calculate_dimensions(small_spec)
    started = time.monotonic()
    with pytest.raises(AssemblyError) as exc:
        asyncio.run(assemble_full_wrap(
            "slow", dims, SpineConfig(), back=str(tmp_path / "missing.png"),
            loader=_SlowLoader(), timeout=10,
        ))
    assert time.monotonic() - started < 1.0
    assert exc.value.asset == "back cover"


def test_assemble_rejects_more_than_six_previews(tmp_path, small_spec):
    dims = calculate_dimensions(small_spec)
    front = write_png(tmp_path / "front.png")
    with pytest.raises(AssemblyError):
        asyncio.run(assemble_full_wrap(str(front), dims, SpineConfig(), interior_previews=[str(front)] * 7))


def test_placeholder_composite_has_right_size(small_spec):
    dims = calculate_dimensions(small_spec)
    composite = placeholder_composite(dims, SpineConfig(color="#333333"))
    assert composite.size == (dims.full_wrap_width_px, dims.full_wrap_height_px)
    assert composite.warnings


def test_six_by_nine_region_layout(front_art):
    dims = calculate_dimensions(BookSpec("6x9", 300, "white", True))
    composite = render_full_wrap(front_art, dims, SpineConfig())
    l, _, r, _ = composite.regions.spine
    assert r - l == round(300 * 0.002252 * 300) == 203
    assert composite.size == (round((6 * 2 + 300 * 0.002252 + 0.25) * 300), 2775)


def test_cream_book_end_to_end():
    dims = calculate_dimensions(BookSpec("6x9", 120, "cream", True))
    assert dims.spine_width_in == pytest.approx(0.30)
    assert dims.spine_text_viable

    composite = asyncio.run(assemble_full_wrap(
        Image.new("RGB", (1, 1), (255, 0, 0)), dims, SpineConfig("My Book", "#112233"),
        back=Image.new("RGB", (1, 1), (0, 0, 255)),
    ))
    assert composite.size == (dims.full_wrap_width_px, dims.full_wrap_height_px)

    arr = np.asarray(composite.image)
    l, t, r, b = composite.regions.spine
    spine = arr[t:b, l:r]
    is_spine_color = (spine == (0x11, 0x22, 0x33)).all(axis=2)
    tl, tt, tr, tb = composite.spine_text_box
    outside_text = np.ones_like(is_spine_color)
    outside_text[tt - t:tb - t, max(0, tl - l):tr - l] = False
    assert is_spine_color[outside_text].all()
    assert not is_spine_color[~outside_text].all()
    assert composite.image.getpixel((r + 10, 10)) == (255, 0, 0)
    assert composite.image.getpixel((10, 10)) == (0, 0, 255)
