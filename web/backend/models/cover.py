"""
Cover data models for the KDP cover backend

Request/response bodies use camelCase on the wire, matching the front end.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from kdp_cover.config.sizes import MAX_SPINE_TEXT_LEN, PaperType
from kdp_cover.cover.dimensions import BookSpec, Dimensions, calculate_dimensions

HEX_PATTERN = r"^#(?:[0-9a-fA-F]{3}){1,2}$"


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class DimensionsRequest(CamelModel):
    """Book settings used to compute cover dimensions"""
    trim_size: str = Field(default="6x9", description="Trim key, e.g. 6x9 or a raw WxH string")
    page_count: int = Field(default=120, description="Interior page count (clamped to KDP limits)")
    paper_color: PaperType = Field(default=PaperType.WHITE, description="white | cream | color")
    book_type: str = Field(default="paperback", description="paperback | hardcover")
    include_bleed: bool = Field(default=True, description="Add 0.125in bleed on every outer edge")

    @field_validator("paper_color", mode="before")
    @classmethod
    def _coerce_paper(cls, v):
        return PaperType.coerce(v)

    def to_spec(self) -> BookSpec:
        return BookSpec(
            trim_size=self.trim_size,
            page_count=self.page_count,
            paper_type=self.paper_color,
            include_bleed=self.include_bleed,
        )

    model_config = ConfigDict(
        json_schema_extra={
            "example": {"trimSize": "6x9", "pageCount": 300, "paperColor": "white", "includeBleed": True}
        },
    )


class TrimSizeInfo(CamelModel):
    key: str
    width_in: float
    height_in: float
    label: str
    popular: bool
    recommendation: str


class DimensionsResponse(CamelModel):
    dimensions: Dict[str, Any]
    spine_text_viable: bool
    summary: str
    recommendation: str


class AssembleRequest(CamelModel):
    """Full-wrap assembly request"""
    front_cover_url: str = Field(..., description="URL, data URI or local path of the front art")
    back_cover_url: Optional[str] = Field(None, description="Optional back art; a blurred front is used otherwise")
    dimensions: Optional[Dict[str, Any]] = Field(None, description="Dimensions as returned by calculate-dimensions")
    book: Optional[DimensionsRequest] = Field(None, description="Book settings, used when dimensions are omitted")
    spine_text: str = Field(default="", max_length=MAX_SPINE_TEXT_LEN)
    spine_color: Optional[str] = Field(None, pattern=HEX_PATTERN)
    interior_images_urls: List[str] = Field(default_factory=list)
    show_guides: bool = False
    book_title: str = ""
    author_name: str = ""

    def resolve_dimensions(self, max_pages: Optional[int] = None) -> Dimensions:
        """Dimensions recomputed from the book fields; derived values must agree."""
        if self.dimensions is None:
            return calculate_dimensions((self.book or DimensionsRequest()).to_spec(), max_pages)
        d = self.dimensions
        try:
            spec = BookSpec(
                trim_size=str(d["trim_size"]),
                page_count=d["page_count"],
                paper_type=d["paper_type"],
                include_bleed=bool(d["include_bleed"]),
            )
        except KeyError as e:
            raise ValueError(f"missing field {e}") from e
        dims = calculate_dimensions(spec, max_pages)
        expected = dims.to_dict()
        mismatched = sorted(k for k, v in d.items() if k in expected and v != expected[k])
        if mismatched:
            raise ValueError(f"fields do not match the book settings: {', '.join(mismatched)}")
        return dims


class AssembleResponse(CamelModel):
    full_cover: str = Field(..., description="PNG data URI")
    dimensions: Dict[str, Any]
    warnings: List[str] = Field(default_factory=list)


class ColorsRequest(CamelModel):
    image_url: str


class ColorsResponse(CamelModel):
    colors: List[str]
    dominant_color: str
    suggestions: List[str]


class HistoryRecord(CamelModel):
    """Saved cover, newest first in the history store"""
    id: Optional[str] = None
    image_url: Optional[str] = None
    full_cover_url: Optional[str] = None
    front_cover_url: Optional[str] = None
    prompt: str = ""
    style: str = ""
    trim_size: str = "6x9"
    page_count: int = 120
    paper_color: str = "white"
    book_type: str = "paperback"
    spine_text: str = ""
    spine_color: str = "#333333"
    colors: List[str] = Field(default_factory=list)
    dimensions: Optional[Dict[str, Any]] = None
    created_at: Optional[datetime] = None

    @field_validator("dimensions")
    @classmethod
    def _same_shape_as_calculator(cls, v):
        if v is None:
            return v
        try:
            return Dimensions.from_dict(v).to_dict()
        except (KeyError, TypeError) as e:
            raise ValueError(f"dimensions do not match calculator output: {e}") from e


class HistoryListResponse(CamelModel):
    success: bool
    records: List[HistoryRecord]
    total: int
