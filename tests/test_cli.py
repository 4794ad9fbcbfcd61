import json

from click.testing import CliRunner
from PIL import Image

from kdp_cover.cover.dimensions import BookSpec, calculate_dimensions
from main import cli

from tests.conftest import write_png


def test_dimensions_command():
    result = CliRunner().invoke(cli, ["dimensions", "--trim", "6x9", "--pages", "300"])
    assert result.exit_code == 0, result.output
    dims = calculate_dimensions(BookSpec("6x9", 300))
    assert f"{dims.full_wrap_width_px} x {dims.full_wrap_height_px} px" in result.output


def test_dimensions_json_and_thin_spine_warning():
    result = CliRunner().invoke(cli, ["dimensions", "--pages", "40", "--paper", "cream", "--json"])
    assert result.exit_code == 0
    data = json.loads(result.output)
    assert data["paper_type"] == "cream"
    assert data["page_count"] == 40

    result = CliRunner().invoke(cli, ["dimensions", "--pages", "40"])
    assert "spine text will be left off" in result.output


def test_assemble_then_validate(tmp_path):
    front = write_png(tmp_path / "front.png", (40, 80, 160))
    out = tmp_path / "out" / "cover.png"
    runner = CliRunner()
    book = ["--trim", "5x8", "--pages", "24", "--no-bleed"]

    result = runner.invoke(cli, ["assemble", "--front", str(front), *book, "--out", str(out), "--show-guides"])
    assert result.exit_code == 0, result.output
    assert "Generated cover" in result.output
    assert (tmp_path / "out" / "cover.guides.png").exists()

    dims = calculate_dimensions(BookSpec("5x8", 24, include_bleed=False))
    with Image.open(out) as img:
        assert img.size == (dims.full_wrap_width_px, dims.full_wrap_height_px)

    result = runner.invoke(cli, ["validate", str(out), *book])
    assert result.exit_code == 0, result.output
    assert "No issues found" in result.output

    result = runner.invoke(cli, ["validate", str(out), "--trim", "6x9"])
    assert result.exit_code == 1


def test_assemble_pdf(tmp_path):
    front = write_png(tmp_path / "front.png")
    out = tmp_path / "cover.pdf"
    result = CliRunner().invoke(cli, [
        "assemble", "--front", str(front), "--trim", "5x8", "--pages", "24", "--no-bleed",
        "--spine-color", "#000000", "--out", str(out),
    ])
    assert result.exit_code == 0, result.output
    assert out.read_bytes().startswith(b"%PDF")


def test_colors_command(tmp_path):
    front = write_png(tmp_path / "front.png", (32, 64, 128))
    result = CliRunner().invoke(cli, ["colors", str(front)])
    assert result.exit_code == 0
    assert "Dominant: #204080" in result.output
