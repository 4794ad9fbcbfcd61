import asyncio
import json
import logging
import os

import click

from kdp_cover.assets.loader import AssetLoader
from kdp_cover.config.settings import load_settings
from kdp_cover.cover.colors import extract_colors, spine_color_suggestions
from kdp_cover.cover.compositor import SpineConfig
from kdp_cover.cover.cover_validator import validate_cover_pdf, validate_cover_png
from kdp_cover.cover.dimensions import BookSpec, calculate_dimensions, format_dimensions
from kdp_cover.cover.export import export_pdf, export_png
from kdp_cover.cover.pipeline import build_full_wrap
from kdp_cover.errors import KDPCoverError

TRIM_HELP = "Trim size key, e.g., 6x9 (raw WxH in inches also accepted)"
PAPER_CHOICE = click.Choice(["white", "cream", "color"], case_sensitive=False)


def book_options(f):
    f = click.option("--no-bleed", "no_bleed", is_flag=True, default=False, help="Compute without the 0.125in bleed on each outer edge")(f)
    f = click.option("--paper", type=PAPER_CHOICE, default="white", show_default=True, help="Paper type for spine width calc")(f)
    f = click.option("--pages", type=int, default=120, show_default=True, help="Interior page count (clamped to KDP limits)")(f)
    f = click.option("--trim", type=str, default="6x9", show_default=True, help=TRIM_HELP)(f)
    return f


def _spec(trim: str, pages: int, paper: str, no_bleed: bool) -> BookSpec:
    return BookSpec(trim_size=trim, page_count=pages, paper_type=paper.lower(), include_bleed=not no_bleed)


@click.group(help="Compute KDP paperback cover dimensions and assemble full-wrap covers.")
@click.option("--verbose", is_flag=True, default=False, help="Enable debug logging")
@click.option("--env-file", "env_file", type=str, default=None, help="Optional .env file with KDP_* settings")
@click.pass_context
def cli(ctx: click.Context, verbose: bool, env_file: str | None):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    try:
        ctx.obj = load_settings(env_file)
    except KDPCoverError as e:
        raise click.ClickException(str(e))


@cli.command(help="Print full-wrap dimensions for a book.")
@book_options
@click.option("--json", "as_json", is_flag=True, default=False, help="Print the dimensions as JSON")
@click.pass_obj
def dimensions(settings, trim: str, pages: int, paper: str, no_bleed: bool, as_json: bool):
    dims = calculate_dimensions(_spec(trim, pages, paper, no_bleed), settings.max_page_count)
    if as_json:
        click.echo(json.dumps(dims.to_dict(), indent=2))
        return
    click.echo(format_dimensions(dims))
    click.echo(f"Spine: {dims.spine_width_in:.4f} in ({dims.spine_width_px} px)")
    click.echo(f"Full wrap: {dims.full_wrap_width_in:.4f} x {dims.full_wrap_height_in:.4f} in "
               f"({dims.full_wrap_width_px} x {dims.full_wrap_height_px} px @ {dims.dpi} DPI)")
    if not dims.spine_text_viable:
        click.echo("⚠️  Spine is narrower than 0.25 in; spine text will be left off.")


@cli.command(help="Assemble a full-wrap cover from front (and optional back) art.")
@click.option("--front", required=True, type=str, help="Front cover image (path, URL or data URI)")
@click.option("--back", type=str, default=None, help="Back cover image; a blurred front is used if omitted")
@click.option("--preview", "previews", type=str, multiple=True, help="Interior preview image (up to 6, repeatable)")
@book_options
@click.option("--spine-text", "spine_text", type=str, default="", show_default=True, help="Spine text (max 50 characters)")
@click.option("--spine-color", "spine_color", type=str, default=None, help="Spine color hex; defaults to the dominant front color")
@click.option("--title", type=str, default="", show_default=True, help="Title for the stand-in back cover")
@click.option("--author", type=str, default="", show_default=True, help="Author for the stand-in back cover")
@click.option("--show-guides", "show_guides", is_flag=True, default=False, help="Also write a preview with trim and spine guides")
@click.option("--out", "out_path", type=str, default="outputs/cover.png", show_default=True, help="Output path (.png or .pdf)")
@click.pass_obj
def assemble(settings, front: str, back: str | None, previews: tuple, trim: str, pages: int, paper: str, no_bleed: bool,
             spine_text: str, spine_color: str | None, title: str, author: str, show_guides: bool, out_path: str):
    dims = calculate_dimensions(_spec(trim, pages, paper, no_bleed), settings.max_page_count)
    loader = AssetLoader(settings)

    async def run():
        color = spine_color
        if color is None:
            palette = await extract_colors(front, loader, timeout=settings.color_timeout_s)
            color = palette.dominant_color
        return await build_full_wrap(
            front, dims, SpineConfig(text=spine_text, color=color), back, list(previews),
            show_guides, title, author, settings=settings, loader=loader,
        )

    try:
        outcome = asyncio.run(run())
        composite = outcome.composite
        if out_path.lower().endswith(".pdf"):
            export_pdf(composite, out_path)
        else:
            export_png(composite, out_path)
        if show_guides:
            root, _ = os.path.splitext(out_path)
            guides_path = f"{root}.guides.png"
            composite.preview.save(guides_path, format="PNG", dpi=(dims.dpi, dims.dpi))
            click.echo(f"Preview with guides: {guides_path}")
    except KDPCoverError as e:
        raise click.ClickException(str(e))

    for w in composite.warnings:
        click.echo(f"WARNING: {w}")
    if outcome.degraded:
        click.echo(f"⚠️  Cover produced by {outcome.strategy} fallback")
    click.echo(f"✅ Generated cover {out_path} ({composite.size[0]} x {composite.size[1]} px) "
               f"for trim {dims.trim_size}, pages {dims.page_count}, paper {dims.paper_type}")


@cli.command(help="Extract a palette and spine color suggestions from an image.")
@click.argument("image", type=str)
@click.pass_obj
def colors(settings, image: str):
    palette = asyncio.run(extract_colors(image, AssetLoader(settings), timeout=settings.color_timeout_s))
    click.echo(f"Dominant: {palette.dominant_color}")
    click.echo(f"Palette:  {' '.join(palette.colors) or '(none)'}")
    click.echo(f"Spine suggestions: {' '.join(spine_color_suggestions(palette))}")


@cli.command(help="Validate a cover PDF or PNG against the expected full-wrap size.")
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
@book_options
@click.pass_obj
def validate(settings, path: str, trim: str, pages: int, paper: str, no_bleed: bool):
    spec = _spec(trim, pages, paper, no_bleed)
    if path.lower().endswith(".pdf"):
        report = validate_cover_pdf(path, spec, settings.max_page_count)
    else:
        report = validate_cover_png(path, spec, settings.max_page_count)
    click.echo(f"Cover validation for {path}")
    click.echo(f"Expected size: {report.expected_width:.2f} x {report.expected_height:.2f} {report.unit} "
               f"(spine {report.expected_spine:.2f} {report.unit})")
    click.echo(f"Actual size:   {report.width:.2f} x {report.height:.2f} {report.unit}")
    if not report.issues:
        click.echo("✅ No issues found.")
    else:
        for iss in report.issues:
            click.echo(f"{iss.level.upper()}: {iss.message}")
    if not report.ok:
        raise SystemExit(1)


if __name__ == "__main__":
    cli()
