from dataclasses import dataclass
from typing import List, Optional

from PIL import Image, UnidentifiedImageError
from pypdf import PdfReader
from pypdf.errors import PdfReadError

from kdp_cover.config.sizes import POINTS_PER_INCH
from kdp_cover.cover.dimensions import BookSpec, calculate_dimensions


@dataclass
class CoverIssue:
    level: str  # "error" | "warning" | "info"
    message: str


@dataclass
class CoverReport:
    ok: bool
    width: float
    height: float
    expected_width: float
    expected_height: float
    expected_spine: float
    unit: str  # "pt" | "px"
    issues: List[CoverIssue]


def _report(issues, unit, w, h, ew, eh, es) -> CoverReport:
    ok = not any(i.level == "error" for i in issues)
    return CoverReport(ok=ok, width=w, height=h, expected_width=ew, expected_height=eh,
                       expected_spine=es, unit=unit, issues=issues)


def validate_cover_pdf(pdf_path: str, spec: BookSpec, max_pages: Optional[int] = None) -> CoverReport:
    issues: List[CoverIssue] = []
    dims = calculate_dimensions(spec, max_pages)
    exp_w = dims.full_wrap_width_in * POINTS_PER_INCH
    exp_h = dims.full_wrap_height_in * POINTS_PER_INCH
    exp_spine = dims.spine_width_in * POINTS_PER_INCH

    try:
        reader = PdfReader(pdf_path)
        num_pages = len(reader.pages)
    except (OSError, ValueError, PdfReadError) as e:
        issues.append(CoverIssue("error", f"Could not read PDF: {e}"))
        return _report(issues, "pt", 0.0, 0.0, exp_w, exp_h, exp_spine)

    if num_pages != 1:
        issues.append(CoverIssue("error", f"Cover must be a single-page PDF. Found {num_pages} page(s)."))
    if num_pages == 0:
        return _report(issues, "pt", 0.0, 0.0, exp_w, exp_h, exp_spine)

    media = reader.pages[0].mediabox
    w = float(media.width)
    h = float(media.height)

    # Size match (within small tolerance)
    tol = 0.5
    if abs(w - exp_w) > tol or abs(h - exp_h) > tol:
        issues.append(CoverIssue(
            "error",
            f"Page size {w:.2f}x{h:.2f} pt does not match expected cover {exp_w:.2f}x{exp_h:.2f} pt."
        ))

    if getattr(reader, "is_encrypted", False):
        issues.append(CoverIssue("error", "PDF is encrypted. Covers must be unencrypted."))

    if not dims.spine_text_viable:
        issues.append(CoverIssue("info", f"Spine {dims.spine_width_in:.3f}\" is too thin for spine text."))

    return _report(issues, "pt", w, h, exp_w, exp_h, exp_spine)


def validate_cover_png(png_path: str, spec: BookSpec, max_pages: Optional[int] = None) -> CoverReport:
    issues: List[CoverIssue] = []
    dims = calculate_dimensions(spec, max_pages)
    exp_w, exp_h = dims.full_wrap_width_px, dims.full_wrap_height_px

    try:
        with Image.open(png_path) as img:
            w, h = img.size
            dpi = img.info.get("dpi")
            mode = img.mode
    except (OSError, UnidentifiedImageError) as e:
        issues.append(CoverIssue("error", f"Could not read image: {e}"))
        return _report(issues, "px", 0, 0, exp_w, exp_h, dims.spine_width_px)

    if (w, h) != (exp_w, exp_h):
        issues.append(CoverIssue("error", f"Image is {w}x{h} px, expected {exp_w}x{exp_h} px at {dims.dpi} DPI."))
    if dpi is None:
        issues.append(CoverIssue("warning", "Image carries no DPI metadata."))
    elif round(float(dpi[0])) != dims.dpi or round(float(dpi[1])) != dims.dpi:
        issues.append(CoverIssue("warning", f"Image DPI is {dpi[0]:.0f}x{dpi[1]:.0f}, expected {dims.dpi}."))
    if mode not in ("RGB", "CMYK", "L"):
        issues.append(CoverIssue("warning", f"Image mode {mode}; flatten transparency before upload."))

    return _report(issues, "px", w, h, exp_w, exp_h, dims.spine_width_px)
