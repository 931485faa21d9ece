from __future__ import annotations

import re
import unicodedata

LIGATURES = {
    "\ufb01": "fi",
    "\ufb02": "fl",
    "\ufb00": "ff",
    "\ufb03": "ffi",
    "\ufb04": "ffl",
}

# Characters that close a sentence; a paragraph fragment ending in one of these is complete.
_TERMINAL_PUNCT = (".", "?", "!", ":")


def _normalize_text(s: str) -> str:
    if not s:
        return ""
    s = unicodedata.normalize("NFKC", s)
    for k, v in LIGATURES.items():
        s = s.replace(k, v)
    s = (
        s.replace("\u201c", "\"")
        .replace("\u201d", "\"")
        .replace("\u2018", "'")
        .replace("\u2019", "'")
        .replace("\u00ad", "-")
    )
    s = re.sub(r"[ \t]+", " ", s)
    return s.strip()


def _join_lines_preserving_words(lines: list[str]) -> str:
    out: list[str] = []
    for line in lines:
        line = _normalize_text(line)
        if not line:
            continue
        if not out:
            out.append(line)
            continue
        prev = out[-1]
        if prev.endswith("-") and line and line[0].islower():
            out[-1] = prev[:-1] + line
        else:
            out[-1] = prev + " " + line
    return _normalize_text(" ".join(out))


def _ends_sentence(text: str) -> bool:
    t = _normalize_text(text)
    if not t:
        return True
    if t.endswith("-"):
        return False
    return t.endswith(_TERMINAL_PUNCT)


def _is_letter(ch: str) -> bool:
    if not ch:
        return False
    try:
        return unicodedata.category(ch).startswith("L")
    except Exception:
        return False
