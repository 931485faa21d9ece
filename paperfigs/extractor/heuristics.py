from __future__ import annotations

import re
from typing import Optional

from .models import FigureKind
from .text_utils import _is_letter, _normalize_text

_CAPTION_START_RE = re.compile(
    r"^(?P<word>Figure|FIGURE|Fig\.?|FIG\.?|Table|TABLE)\s*"
    r"(?P<name>\d{1,3}[A-Za-z]?|[IVXLC]{1,6})\s*"
    r"(?P<sep>[:.|\-\u2013\u2014])(?!\d)(?P<rest>.*)$"
)

_NUMBERED_HEADING_RE = re.compile(
    r"^(?P<num>\d+(?:\.\d+)*)(?:[.):]|\s)\s*(?P<rest>.+)$"
)
_APPENDIX_HEADING_RE = re.compile(
    r"^(?P<letter>[A-Z])(?P<suffix>(?:\.\d+)*)\s+(?P<rest>.+)$"
)

_COMMON_SECTION_HEADINGS = {
    "ABSTRACT",
    "INTRODUCTION",
    "RELATED WORK",
    "BACKGROUND",
    "PRELIMINARIES",
    "METHOD",
    "METHODS",
    "METHODOLOGY",
    "APPROACH",
    "EXPERIMENT",
    "EXPERIMENTS",
    "RESULTS",
    "DISCUSSION",
    "CONCLUSION",
    "CONCLUSIONS",
    "LIMITATIONS",
    "EVALUATION",
    "ACKNOWLEDGMENTS",
    "ACKNOWLEDGEMENTS",
    "REFERENCES",
    "APPENDIX",
}


def match_caption_start(text: str) -> Optional[tuple[FigureKind, str, str]]:
    """
    Return (kind, name, rest) when `text` opens like a figure/table caption:
    keyword, number, separator ("Figure 3:", "Fig. 2.", "Table IV -").
    """
    t = _normalize_text(text)
    m = _CAPTION_START_RE.match(t)
    if not m:
        return None
    word = m.group("word").lower()
    kind = FigureKind.TABLE if word.startswith("table") else FigureKind.FIGURE
    return kind, m.group("name"), m.group("rest").strip()


def _parse_caption_number(name: str) -> Optional[int]:
    m = re.match(r"^(\d+)", name or "")
    return int(m.group(1)) if m else None


def _is_caption_like_text(text: str) -> bool:
    t = _normalize_text(text or "").strip()
    if not t:
        return False
    return bool(
        re.match(
            r"^\s*(?:Fig\.|Figure|Table|Algorithm)\s*(?:\d+|[IVXLC]+)\b",
            t,
            flags=re.IGNORECASE,
        )
    )


def _looks_like_equation_text(s: str) -> bool:
    t = _normalize_text(s)
    if not t:
        return False
    if re.search(r"[=^_\\]", t):
        return True
    if re.search(r"[\u2200-\u22ff]", t):
        return True
    if re.search(r"\b(?:arg\s*min|arg\s*max|exp|log|sin|cos|tan)\b", t, flags=re.IGNORECASE):
        return True
    # function-like: G(x), f(\theta), etc.
    if re.match(r"^[A-Za-z]{1,6}\s*\([^)]*\)\s*[=+\-*/^_]", t):
        return True
    return False


def _parse_numbered_heading_level(title: str) -> Optional[int]:
    t = _normalize_text(title or "").strip()
    if not t:
        return None
    m = _NUMBERED_HEADING_RE.match(t)
    if not m:
        return None
    rest = (m.group("rest") or "").strip()
    if not rest or not _is_letter(rest[0]):
        return None
    if _looks_like_equation_text(rest):
        return None

    parts = (m.group("num") or "").split(".")
    try:
        first_n = int(parts[0])
    except ValueError:
        return None
    # Guard against year-like or DOI-like prefixes being mistaken as headings.
    if first_n <= 0 or first_n > 200:
        return None
    if len(parts) == 1 and len(parts[0]) > 2:
        return None
    if any((not p) or len(p) > 2 for p in parts[1:]):
        return None
    return len(parts)


def _parse_appendix_heading_level(title: str) -> Optional[int]:
    t = _normalize_text(title or "").strip()
    if not t:
        return None
    if t.upper() == "APPENDIX":
        return 1
    m = _APPENDIX_HEADING_RE.match(t)
    if not m:
        return None
    rest = (m.group("rest") or "").strip()
    if not rest or _looks_like_equation_text(rest):
        return None
    return 1 + int((m.group("suffix") or "").count("."))


def _strip_heading_prefix(text: str) -> str:
    t = _normalize_text(text or "").strip()
    t = re.sub(r"^\d+(?:\.\d+)*[.)]?\s*", "", t)
    t = re.sub(r"^[A-Z](?:\.\d+)*\s+", "", t)
    return t.strip()


def _is_common_section_heading(text: str) -> bool:
    t = re.sub(r"\s+", " ", _strip_heading_prefix(text)).strip().upper()
    return bool(t) and t in _COMMON_SECTION_HEADINGS


def _is_reasonable_heading_text(title: str) -> bool:
    t = _normalize_text(title or "").strip()
    if not t:
        return False
    if _is_caption_like_text(t):
        return False
    if _parse_numbered_heading_level(t) is not None or _parse_appendix_heading_level(t) is not None:
        return True
    if _is_common_section_heading(t):
        return True
    if _looks_like_equation_text(t):
        return False
    if re.search(r"\b(?:doi|arxiv|https?://)\b", t, flags=re.IGNORECASE):
        return False
    if re.search(r"\[[0-9,\-\s]+\]", t):
        return False
    if len(t) > 120:
        return False
    words = re.findall(r"[A-Za-z][A-Za-z0-9'\-]*", t)
    if not words or len(words) > 16:
        return False
    # Long sentence-like fragments are usually body text, not headings.
    if len(words) >= 7 and re.search(r"\b(?:we|our|this|that|these|those|is|are|was|were|have|has)\b", t, flags=re.IGNORECASE):
        return False
    if len(words) >= 8 and t.endswith("."):
        return False
    return t[:1].isupper() and len(words) <= 10


def suggest_heading_level(
    *,
    text: str,
    max_size: float,
    is_bold: bool,
    body_size: float,
) -> Optional[int]:
    """
    Heading level (1-3) for a block styled apart from body text, else None.

    Headings must stand out typographically: larger than the body font, or
    bold at (roughly) body size. Text that merely starts with a number is not
    enough.
    """
    t = _normalize_text(text or "").strip()
    if not t:
        return None
    delta = float(max_size) - float(body_size)
    styled = delta >= 0.55 or (is_bold and delta >= -0.25)
    if not styled:
        return None
    if not _is_reasonable_heading_text(t):
        return None

    numbered_level = _parse_numbered_heading_level(t)
    if numbered_level is not None:
        return max(1, min(3, int(numbered_level)))
    appendix_level = _parse_appendix_heading_level(t)
    if appendix_level is not None:
        return max(1, min(3, int(appendix_level)))
    if delta >= 1.6:
        return 1
    if delta >= 0.9:
        return 2
    return 3


def _looks_like_table_block(lines: list[str]) -> bool:
    if len(lines) < 3:
        return False
    if sum(1 for x in lines if "|" in x) >= 2:
        return True

    def split_cols(s: str) -> list[str]:
        return [c.strip() for c in re.split(r"\t+|\s{2,}", s.strip()) if c.strip()]

    col_counts = [len(split_cols(x)) for x in lines]
    if sum(1 for c in col_counts if c >= 3) >= 3:
        return True

    numeric_rows = 0
    for x in lines:
        cols = split_cols(x)
        if len(cols) >= 2:
            nums = sum(1 for c in cols if re.fullmatch(r"[0-9]+(?:\.[0-9]+)?%?", c))
            if nums >= 2:
                numeric_rows += 1
    return numeric_rows >= 3
