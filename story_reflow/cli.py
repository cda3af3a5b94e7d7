from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Sequence

from . import config
from .docx_io import load_docx, save_docx
from .errors import HostError, SetupError
from .memory_host import InMemoryDocument, TemplateSpec
from .model import PageSide
from .pipeline import ReflowPipeline
from .settings import ReflowConfig, load_config
from .style_reader import read_page_setup, read_style_names
from .summary import format_run_summary

EXIT_OK = 0
EXIT_RUN_FAILED = 1
EXIT_BAD_INPUT = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="story-reflow",
        description="Flow a Word manuscript into a template layout and normalize its styles.",
    )
    parser.add_argument("source", type=Path, help="source manuscript (.docx)")
    parser.add_argument(
        "--template-docx",
        type=Path,
        required=True,
        help="template document providing styles and page geometry",
    )
    parser.add_argument("--config", type=Path, default=None, help="JSON config overrides")
    parser.add_argument(
        "--output",
        type=Path,
        default=None,
        help=f"result JSON path (default: {config.DEFAULT_RESULT_PATH})",
    )
    parser.add_argument("--export", type=Path, default=None, help="write the reflowed story to this .docx")
    parser.add_argument("--max-surfaces", type=int, default=None)
    parser.add_argument("--char-size-pt", type=float, default=10.5)
    parser.add_argument(
        "--log-retention-days",
        type=int,
        default=config.DEFAULT_LOG_RETENTION_DAYS,
    )
    return parser


def build_host(
    template_docx: Path,
    settings: ReflowConfig,
    char_size_pt: float = 10.5,
) -> InMemoryDocument:
    setup = read_page_setup(template_docx)
    if setup.facing_pages:
        sides: tuple[PageSide, ...] = (PageSide.LEFT, PageSide.RIGHT)
    else:
        sides = (PageSide.SINGLE,)
    template = TemplateSpec(
        template_id=settings.template_id,
        page_sides=sides,
        frames={side: (setup.text_frame(side),) for side in sides},
    )
    host = InMemoryDocument(
        page_width=setup.width,
        page_height=setup.height,
        facing_pages=setup.facing_pages,
        styles=read_style_names(template_docx),
        fonts=settings.target_font.names(),
        templates=(template,),
        char_size_pt=char_size_pt,
    )
    host.add_surface(settings.template_id)
    return host


def main(argv: Sequence[str] | None = None) -> int:
    _configure_stdio()
    args = build_parser().parse_args(argv)
    config.cleanup_logs(args.log_retention_days)
    try:
        settings = load_config(args.config)
        if args.max_surfaces is not None:
            settings = settings.with_overrides(max_surfaces=args.max_surfaces)
        host = build_host(args.template_docx, settings, args.char_size_pt)
        source = load_docx(args.source)
    except (FileNotFoundError, IsADirectoryError, PermissionError, ValueError) as exc:
        print(f"エラー: {exc}", file=sys.stderr)
        return EXIT_BAD_INPUT

    pipeline = ReflowPipeline(host, settings)
    try:
        result = pipeline.run(source.paragraphs, source.tables, source_path=args.source)
    except SetupError as exc:
        print(f"エラー: {exc}", file=sys.stderr)
        return EXIT_BAD_INPUT
    except HostError as exc:
        print(f"処理に失敗しました: {exc}", file=sys.stderr)
        return EXIT_RUN_FAILED

    output = pipeline.export_json(result, args.output)
    print(format_run_summary({"result": result.to_dict()}))
    print(f"結果: {output}")
    if args.export is not None and pipeline.last_unit is not None:
        exported = save_docx(
            pipeline.last_unit,
            args.export,
            template_path=args.template_docx,
            ordinal_role=settings.ordinal_role,
            number_prefix=settings.strip_ordinal_digits,
        )
        print(f"出力: {exported}")
    return EXIT_OK


def _configure_stdio() -> None:
    for stream in (sys.stdout, sys.stderr):
        if hasattr(stream, "reconfigure"):
            stream.reconfigure(encoding="utf-8", errors="replace")


if __name__ == "__main__":
    sys.exit(main())
