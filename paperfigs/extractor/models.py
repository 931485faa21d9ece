from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from .geometry_utils import BBox, _union_rect
from .text_utils import _join_lines_preserving_words

RGB = tuple[float, float, float]


class TextKind(str, Enum):
    BODY = "body"
    ABSTRACT = "abstract"
    SECTION_TITLE = "section_title"
    HEADER = "header"
    FOOTER = "footer"
    PAGE_NUMBER = "page_number"
    OTHER = "other"


class PrimitiveKind(str, Enum):
    VECTOR = "vector"
    IMAGE = "image"


class FigureKind(str, Enum):
    FIGURE = "Figure"
    TABLE = "Table"


class RegionKind(str, Enum):
    TEXT = "text"
    CAPTION = "caption"
    GRAPHIC = "graphic"
    WHITESPACE = "whitespace"


class FailureReason(str, Enum):
    EMPTY_BODY = "empty_body"  # caption text could not be delimited
    OVERLAP = "overlap"  # span collides with an earlier caption
    NO_GRAPHIC = "no_graphic"


# ---------------------------------------------------------------------------
# Page model (produced by the page-access collaborator, immutable)
# ---------------------------------------------------------------------------


class TextLine(BaseModel):
    model_config = ConfigDict(frozen=True)

    bbox: BBox
    text: str
    font_size: float = 0.0
    is_bold: bool = False
    invisible: bool = False  # OCR text layer drawn with render mode 3 / zero alpha


class TextBlock(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: TextKind = TextKind.BODY
    lines: tuple[TextLine, ...]
    continues_previous: bool = False

    @property
    def bbox(self) -> BBox:
        return _union_rect([ln.bbox for ln in self.lines])

    @property
    def text(self) -> str:
        return _join_lines_preserving_words([ln.text for ln in self.lines])

    @property
    def max_font_size(self) -> float:
        return max((ln.font_size for ln in self.lines), default=0.0)

    @property
    def is_bold(self) -> bool:
        return bool(self.lines) and all(ln.is_bold for ln in self.lines)


class DrawingPrimitive(BaseModel):
    model_config = ConfigDict(frozen=True)

    bbox: BBox
    kind: PrimitiveKind = PrimitiveKind.VECTOR
    fill: Optional[RGB] = None
    stroke: Optional[RGB] = None


class Page(BaseModel):
    model_config = ConfigDict(frozen=True)

    page_number: int
    width: float
    height: float
    background: RGB = (1.0, 1.0, 1.0)
    text_blocks: tuple[TextBlock, ...] = ()
    primitives: tuple[DrawingPrimitive, ...] = ()

    @property
    def paragraphs(self) -> list[TextBlock]:
        return [b for b in self.text_blocks if b.kind == TextKind.BODY]

    @property
    def abstract_blocks(self) -> list[TextBlock]:
        return [b for b in self.text_blocks if b.kind == TextKind.ABSTRACT]

    @property
    def area(self) -> float:
        return max(0.0, self.width) * max(0.0, self.height)


# ---------------------------------------------------------------------------
# Document layout
# ---------------------------------------------------------------------------


class Column(BaseModel):
    model_config = ConfigDict(frozen=True)

    x0: float  # left text margin of the column
    x1: float


class DocumentLayout(BaseModel):
    """Document-wide calibration shared read-only by every per-page stage."""

    model_config = ConfigDict(frozen=True)

    median_line_spacing: float
    body_font_size: float
    columns: tuple[Column, ...]

    @property
    def text_range(self) -> tuple[float, float]:
        return (self.columns[0].x0, self.columns[-1].x1)

    def column_index(self, bbox: BBox) -> Optional[int]:
        """
        Index of the column holding `bbox`, or None when the box spans
        more than one column.
        """
        x0, _, x1, _ = bbox
        hits: list[int] = []
        for i, col in enumerate(self.columns):
            ov = max(0.0, min(x1, col.x1) - max(x0, col.x0))
            col_w = max(1e-6, col.x1 - col.x0)
            if ov / col_w >= 0.3:
                hits.append(i)
        if len(hits) > 1:
            return None
        if len(hits) == 1:
            return hits[0]
        # Narrow box: fall back to the column containing its centre, else the nearest one.
        cx = (x0 + x1) / 2.0
        best_i = 0
        best_d: Optional[float] = None
        for i, col in enumerate(self.columns):
            if col.x0 <= cx <= col.x1:
                return i
            d = min(abs(cx - col.x0), abs(cx - col.x1))
            if best_d is None or d < best_d:
                best_i, best_d = i, d
        return best_i

    def column_range(self, bbox: BBox) -> tuple[float, float]:
        idx = self.column_index(bbox)
        if idx is None:
            return self.text_range
        col = self.columns[idx]
        return (col.x0, col.x1)


# ---------------------------------------------------------------------------
# Captions, graphics, regions, figures
# ---------------------------------------------------------------------------


class CaptionCandidate(BaseModel):
    model_config = ConfigDict(frozen=True)

    page_number: int
    kind: FigureKind
    name: str  # number token as printed, e.g. "3", "IV", "2a"
    number: Optional[int] = None
    anchor: tuple[float, float]
    block_index: int
    line_index: int
    opens_block: bool = True

    @property
    def label(self) -> str:
        return f"{self.kind.value} {self.name}"


class Caption(BaseModel):
    candidate: CaptionCandidate
    text: str
    bbox: BBox
    line_end: int  # exclusive index of the last consumed line in the source block

    @property
    def page_number(self) -> int:
        return self.candidate.page_number

    @property
    def line_count(self) -> int:
        return self.line_end - self.candidate.line_index


class FailedCaption(BaseModel):
    candidate: CaptionCandidate
    reason: FailureReason
    text: str = ""
    bbox: Optional[BBox] = None

    @property
    def page_number(self) -> int:
        return self.candidate.page_number


class GraphicsRegion(BaseModel):
    bbox: BBox
    page_number: int
    origin: PrimitiveKind = PrimitiveKind.VECTOR
    is_background: bool = False


class Region(BaseModel):
    bbox: BBox
    kind: RegionKind
    lines: list[TextLine] = Field(default_factory=list)
    caption_index: Optional[int] = None  # index into PageWithCaptions.captions


class Figure(BaseModel):
    kind: FigureKind
    name: str
    number: Optional[int] = None
    page_number: int
    caption: str
    caption_boundary: BBox
    region_boundaries: list[BBox]

    @property
    def region_boundary(self) -> BBox:
        return _union_rect(self.region_boundaries)


# ---------------------------------------------------------------------------
# Stage values
# ---------------------------------------------------------------------------


class PageWithGraphics(BaseModel):
    page: Page
    graphics: list[GraphicsRegion] = Field(default_factory=list)

    @property
    def page_number(self) -> int:
        return self.page.page_number


class PageWithCaptions(PageWithGraphics):
    captions: list[Caption] = Field(default_factory=list)
    failed_captions: list[FailedCaption] = Field(default_factory=list)


class PageWithRegions(PageWithCaptions):
    regions: list[Region] = Field(default_factory=list)


class PageWithFigures(BaseModel):
    page: Page
    figures: list[Figure] = Field(default_factory=list)
    failed_captions: list[FailedCaption] = Field(default_factory=list)
    # The page minus caption lines and text that belongs to figures.
    text_page: Optional[Page] = None

    @property
    def page_number(self) -> int:
        return self.page.page_number


# ---------------------------------------------------------------------------
# Produced outputs
# ---------------------------------------------------------------------------


class PdfText(BaseModel):
    paragraph: TextBlock
    page_number: int

    @property
    def text(self) -> str:
        return self.paragraph.text


class DocumentSection(BaseModel):
    title: Optional[PdfText] = None
    paragraphs: list[PdfText] = Field(default_factory=list)

    @property
    def title_text(self) -> Optional[str]:
        return self.title.text if self.title is not None else None


class FiguresInDocument(BaseModel):
    figures: list[Figure] = Field(default_factory=list)
    failed_captions: list[FailedCaption] = Field(default_factory=list)


class Document(BaseModel):
    figures: list[Figure] = Field(default_factory=list)
    abstract_text: Optional[PdfText] = None
    sections: list[DocumentSection] = Field(default_factory=list)
