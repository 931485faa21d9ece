"""Figure, table, caption and section recovery from scientific-paper page layouts."""

from .extractor import ExtractorConfig, FigureExtractor

__all__ = ["FigureExtractor", "ExtractorConfig"]
