from __future__ import annotations

import argparse
import json
import time
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Optional

from .config import configure_logging, load_settings
from .extractor import ExtractorConfig, FigureExtractionError, FigureExtractor, LoggingVisualLogger
from .extractor.page_source import open_pages


@dataclass(frozen=True)
class RunConfig:
    input_path: Path
    output_dir: Path
    pages: Optional[list[int]]
    with_text: bool
    verbose: bool
    extractor: ExtractorConfig


def parse_bool(value: str | bool) -> bool:
    if isinstance(value, bool):
        return value
    v = str(value).strip().lower()
    if v in {"1", "true", "yes", "y", "on"}:
        return True
    if v in {"0", "false", "no", "n", "off"}:
        return False
    raise argparse.ArgumentTypeError(f"Invalid boolean value: {value}")


def parse_pages(value: str) -> list[int]:
    """'0,2,5-7' -> [0, 2, 5, 6, 7]"""
    out: list[int] = []
    for part in (value or "").split(","):
        part = part.strip()
        if not part:
            continue
        try:
            if "-" in part:
                lo, hi = (int(x) for x in part.split("-", 1))
                out.extend(range(lo, hi + 1))
            else:
                out.append(int(part))
        except ValueError:
            raise argparse.ArgumentTypeError(f"Invalid page list: {value}") from None
    return sorted(set(out))


def parse_args(argv: Optional[list[str]] = None) -> RunConfig:
    base = ExtractorConfig.from_settings()
    ap = argparse.ArgumentParser(description="Extract figures, tables and their captions from research PDFs.")
    ap.add_argument("--input", required=True, help="Input PDF file or directory.")
    ap.add_argument("--output", required=True, help="Output directory for <pdf-stem>.json files.")
    ap.add_argument("--pages", type=parse_pages, default=None, help="0-based pages to search, e.g. '0,2,5-7'.")
    ap.add_argument("--with-text", type=parse_bool, default=False, help="Also emit abstract and sectioned text.")
    ap.add_argument("--allow-ocr", type=parse_bool, default=base.allow_ocr, help="Accept scanned (OCR-only) pages.")
    ap.add_argument(
        "--ignore-white-graphics",
        type=parse_bool,
        default=base.ignore_white_graphics,
        help="Drop graphics filled with the page background colour.",
    )
    ap.add_argument("--workers", type=int, default=base.workers, help="Pages processed in parallel.")
    ap.add_argument("--verbose", type=parse_bool, default=False, help="Log a summary of every stage per page.")
    args = ap.parse_args(argv)

    return RunConfig(
        input_path=Path(args.input).expanduser().resolve(),
        output_dir=Path(args.output).expanduser().resolve(),
        pages=args.pages,
        with_text=bool(args.with_text),
        verbose=bool(args.verbose),
        extractor=replace(
            base,
            allow_ocr=bool(args.allow_ocr),
            ignore_white_graphics=bool(args.ignore_white_graphics),
            workers=max(1, int(args.workers)),
        ),
    )


def collect_pdf_files(input_path: Path) -> list[Path]:
    if input_path.is_file() and input_path.suffix.lower() == ".pdf":
        return [input_path]
    if not input_path.is_dir():
        raise FileNotFoundError(f"Input path is neither PDF nor directory: {input_path}")
    return sorted([p for p in input_path.glob("*.pdf") if p.is_file()])


def extract_one(pdf_path: Path, cfg: RunConfig) -> Path:
    extractor = FigureExtractor(cfg.extractor)
    pages = open_pages(pdf_path)
    visual_logger = LoggingVisualLogger() if cfg.verbose else None
    if cfg.with_text:
        result = extractor.get_figures_with_text(pages, page_filter=cfg.pages, visual_logger=visual_logger)
    else:
        result = extractor.get_figures_with_errors(pages, page_filter=cfg.pages, visual_logger=visual_logger)
    out_path = cfg.output_dir / f"{pdf_path.stem}.json"
    out_path.write_text(json.dumps(result.model_dump(mode="json"), ensure_ascii=False, indent=2), encoding="utf-8")
    return out_path


def main(argv: Optional[list[str]] = None) -> None:
    configure_logging(load_settings())
    cfg = parse_args(argv)
    cfg.output_dir.mkdir(parents=True, exist_ok=True)

    pdf_files = collect_pdf_files(cfg.input_path)
    if not pdf_files:
        raise SystemExit("No PDF files found.")

    started = time.time()
    failures: list[tuple[Path, str]] = []
    for pdf_path in pdf_files:
        try:
            out_path = extract_one(pdf_path, cfg)
        except (FigureExtractionError, RuntimeError, ValueError) as e:
            failures.append((pdf_path, str(e)))
            print(f"[FAILED] {pdf_path.name}: {e}")
            continue
        print(f"[OK] {pdf_path.name} -> {out_path}")

    print(f"Done in {time.time() - started:.2f}s")
    if failures:
        raise SystemExit(1)


if __name__ == "__main__":
    main()
