from dataclasses import FrozenInstanceError

import pytest

from paperfigs.config import Settings, load_settings
from paperfigs.extractor import ExtractorConfig, FigureExtractor

ENV_VARS = [
    "PAPERFIGS_ALLOW_OCR",
    "PAPERFIGS_IGNORE_WHITE_GRAPHICS",
    "PAPERFIGS_DETECT_SECTION_TITLES_FIRST",
    "PAPERFIGS_REBUILD_PARAGRAPHS",
    "PAPERFIGS_WORKERS",
    "PAPERFIGS_LOG_LEVEL",
]


@pytest.fixture
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


def test_defaults(clean_env):
    s = load_settings()
    assert s == Settings(
        allow_ocr=False,
        ignore_white_graphics=True,
        detect_section_titles_first=True,
        rebuild_paragraphs=True,
        workers=1,
        log_level="WARNING",
    )


def test_quoted_values_are_accepted(clean_env):
    clean_env.setenv("PAPERFIGS_ALLOW_OCR", '"true"')
    clean_env.setenv("PAPERFIGS_IGNORE_WHITE_GRAPHICS", "'off'")
    clean_env.setenv("PAPERFIGS_LOG_LEVEL", "debug")
    s = load_settings()
    assert s.allow_ocr is True
    assert s.ignore_white_graphics is False
    assert s.log_level == "DEBUG"


def test_bad_boolean_raises(clean_env):
    clean_env.setenv("PAPERFIGS_REBUILD_PARAGRAPHS", "maybe")
    with pytest.raises(ValueError):
        load_settings()


def test_extractor_reads_environment(clean_env):
    clean_env.setenv("PAPERFIGS_WORKERS", "3")
    clean_env.setenv("PAPERFIGS_DETECT_SECTION_TITLES_FIRST", "0")
    cfg = FigureExtractor().cfg
    assert cfg.workers == 3
    assert cfg.detect_section_titles_first is False


def test_from_settings_clamps_workers():
    s = Settings(
        allow_ocr=True,
        ignore_white_graphics=False,
        detect_section_titles_first=False,
        rebuild_paragraphs=False,
        workers=0,
        log_level="INFO",
    )
    cfg = ExtractorConfig.from_settings(s)
    assert cfg.allow_ocr and not cfg.ignore_white_graphics
    assert cfg.workers == 1


@pytest.mark.parametrize(
    "kw",
    [
        {"workers": 0},
        {"min_layout_lines": 0},
        {"caption_gap_k": -1.0},
        {"background_area_ratio": 0.0},
        {"background_area_ratio": 1.5},
    ],
)
def test_validate_rejects_nonsense(kw):
    with pytest.raises(ValueError):
        ExtractorConfig(**kw).validate()


def test_config_is_frozen():
    cfg = ExtractorConfig()
    with pytest.raises(FrozenInstanceError):
        cfg.workers = 4  # type: ignore[misc]
