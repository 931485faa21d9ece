from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Optional


def _env_str(name: str, default: str = "") -> str:
    raw = (os.environ.get(name) or "").strip()
    # Users often set env vars with quotes (e.g. cmd.exe: set PAPERFIGS_ALLOW_OCR="true").
    if len(raw) >= 2 and raw[0] == raw[-1] and raw[0] in ("'", '"'):
        raw = raw[1:-1].strip()
    return raw or default


def _env_bool(name: str, default: bool) -> bool:
    raw = _env_str(name).lower()
    if not raw:
        return default
    if raw in ("1", "true", "yes", "on"):
        return True
    if raw in ("0", "false", "no", "off"):
        return False
    raise ValueError(f"{name} must be a boolean, got {raw!r}")


@dataclass(frozen=True)
class Settings:
    allow_ocr: bool
    ignore_white_graphics: bool
    detect_section_titles_first: bool
    rebuild_paragraphs: bool
    workers: int
    log_level: str


def load_settings() -> Settings:
    return Settings(
        allow_ocr=_env_bool("PAPERFIGS_ALLOW_OCR", False),
        ignore_white_graphics=_env_bool("PAPERFIGS_IGNORE_WHITE_GRAPHICS", True),
        detect_section_titles_first=_env_bool("PAPERFIGS_DETECT_SECTION_TITLES_FIRST", True),
        rebuild_paragraphs=_env_bool("PAPERFIGS_REBUILD_PARAGRAPHS", True),
        workers=int(_env_str("PAPERFIGS_WORKERS", "1")),
        log_level=_env_str("PAPERFIGS_LOG_LEVEL", "WARNING").upper(),
    )


def configure_logging(settings: Optional[Settings] = None) -> None:
    s = settings or load_settings()
    logging.basicConfig(
        level=getattr(logging, s.log_level, logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
