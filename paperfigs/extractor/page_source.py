from __future__ import annotations

import re
from collections import Counter
from pathlib import Path
from typing import Optional

try:
    import fitz
except ImportError:
    fitz = None

from .models import DrawingPrimitive, Page, PrimitiveKind, TextBlock, TextKind, TextLine
from .text_utils import _normalize_text

_PAGE_NUMBER_RE = re.compile(r"^\(?\s*\d{1,4}\s*\)?$")
_ABSTRACT_RE = re.compile(r"^abstract\b", re.IGNORECASE)
_EDGE_RATIO = 0.08
_BOLD_FLAG = 16


def build_repeated_noise_texts(doc) -> set[str]:
    """
    Identify text that repeats on almost every page (headers/footers).
    """
    line_counts: Counter[str] = Counter()
    total_pages = len(doc)
    sample_pages = list(range(total_pages))
    if total_pages > 20:
        # Sample first 3, last 3, and some middle
        sample_pages = list(range(3)) + list(range(total_pages - 3, total_pages)) + list(range(10, 15))
        sample_pages = sorted(set(p for p in sample_pages if 0 <= p < total_pages))

    for i in sample_pages:
        seen_on_page = set()
        for line in doc[i].get_text("text").splitlines():
            t = _normalize_text(line)
            if len(t) < 4 or t in seen_on_page:
                continue
            seen_on_page.add(t)
            line_counts[t] += 1

    if len(sample_pages) < 3:
        return set()
    limit = max(2, int(len(sample_pages) * 0.6))
    return {line for line, count in line_counts.items() if count >= limit}


def _rgb(value) -> Optional[tuple[float, float, float]]:
    if value is None:
        return None
    try:
        r, g, b = (float(v) for v in value[:3])
    except (TypeError, ValueError):
        return None
    return (r, g, b)


def _line_from_spans(line: dict) -> Optional[TextLine]:
    spans = [s for s in (line.get("spans") or []) if (s.get("text") or "").strip()]
    if not spans:
        return None
    text = _normalize_text("".join(s.get("text", "") for s in line.get("spans") or []))
    if not text:
        return None
    return TextLine(
        bbox=tuple(float(v) for v in line["bbox"]),
        text=text,
        font_size=max(float(s.get("size", 0.0)) for s in spans),
        is_bold=all((int(s.get("flags", 0)) & _BOLD_FLAG) or ("bold" in str(s.get("font", "")).lower()) for s in spans),
        invisible=all(int(s.get("alpha", 255)) == 0 for s in spans),
    )


def _classify_block(lines: list[TextLine], *, page_index: int, page_height: float, noise: set[str]) -> TextKind:
    text = " ".join(ln.text for ln in lines)
    y0 = min(ln.bbox[1] for ln in lines)
    y1 = max(ln.bbox[3] for ln in lines)
    top = y1 <= page_height * _EDGE_RATIO
    bottom = y0 >= page_height * (1.0 - _EDGE_RATIO)
    if (top or bottom) and _PAGE_NUMBER_RE.match(text):
        return TextKind.PAGE_NUMBER
    if any(ln.text in noise for ln in lines):
        return TextKind.HEADER if y1 <= page_height / 2.0 else TextKind.FOOTER
    if page_index <= 1 and _ABSTRACT_RE.match(text) and len(text) > 40:
        return TextKind.ABSTRACT
    return TextKind.BODY


def _text_blocks(page, page_index: int, noise: set[str]) -> list[TextBlock]:
    height = float(page.rect.height)
    out: list[TextBlock] = []
    abstract_heading = False
    for b in page.get_text("dict").get("blocks", []):
        if b.get("type", 0) != 0:
            continue
        lines = [ln for ln in (_line_from_spans(l) for l in b.get("lines") or []) if ln is not None]
        if not lines:
            continue
        kind = _classify_block(lines, page_index=page_index, page_height=height, noise=noise)
        if abstract_heading and kind == TextKind.BODY:
            kind = TextKind.ABSTRACT
        abstract_heading = (
            page_index <= 1
            and len(lines) == 1
            and len(lines[0].text) <= 12
            and _ABSTRACT_RE.match(lines[0].text) is not None
        )
        out.append(TextBlock(kind=kind, lines=tuple(lines)))
    return out


def _primitives(page) -> list[DrawingPrimitive]:
    out: list[DrawingPrimitive] = []
    for d in page.get_drawings() or []:
        rect = d.get("rect")
        if rect is None:
            continue
        out.append(
            DrawingPrimitive(
                bbox=(float(rect.x0), float(rect.y0), float(rect.x1), float(rect.y1)),
                kind=PrimitiveKind.VECTOR,
                fill=_rgb(d.get("fill")),
                stroke=_rgb(d.get("color")),
            )
        )
    for info in page.get_image_info() or []:
        if "bbox" not in info:
            continue
        x0, y0, x1, y1 = (float(v) for v in info["bbox"])
        out.append(DrawingPrimitive(bbox=(x0, y0, x1, y1), kind=PrimitiveKind.IMAGE))
    return out


def load_pages(doc) -> list[Page]:
    """Materialise every page of an open PyMuPDF document as a `Page`."""
    if fitz is None:
        raise ImportError("PyMuPDF (fitz) not installed.")
    noise = build_repeated_noise_texts(doc)
    pages: list[Page] = []
    for i, page in enumerate(doc):
        pages.append(
            Page(
                page_number=i,
                width=float(page.rect.width),
                height=float(page.rect.height),
                text_blocks=tuple(_text_blocks(page, i, noise)),
                primitives=tuple(_primitives(page)),
            )
        )
    return pages


def open_pages(pdf_path: str | Path) -> list[Page]:
    if fitz is None:
        raise ImportError("PyMuPDF (fitz) not installed.")
    with fitz.open(str(pdf_path)) as doc:
        return load_pages(doc)
