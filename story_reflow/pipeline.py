from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from time import perf_counter
from typing import Iterable

from . import config
from .annotator import ListAnnotator
from .classifier import ParagraphClassifier
from .embedded import EmbeddedTextStyler, find_orphan_markers
from .errors import HostError, SetupError
from .fonts import FontNormalizer, RoleRunFormatter
from .host import ReflowHost, suspended_redraw
from .model import ContentUnit, Paragraph, TableScope
from .ordinal import OrdinalListNormalizer
from .overflow import OverflowResolver
from .run_log import RunLogState, record_stage, warn, write_log
from .settings import ReflowConfig


@dataclass
class RunResult:
    surfaces_created: int = 0
    paragraphs_imported: int = 0
    styles_mapped: int = 0
    markers_stripped: int = 0
    symbols_added: dict[str, int] = field(default_factory=lambda: {"marker": 0, "bullet": 0})
    symbols_skipped: dict[str, int] = field(default_factory=lambda: {"marker": 0, "bullet": 0})
    inline_object_paragraphs: int = 0
    fonts_replaced: int = 0
    table_fonts_replaced: int = 0
    unreadable_fonts: int = 0
    font_target_missing: bool = False
    runs_formatted: dict[str, int] = field(default_factory=lambda: {"marker": 0, "bullet": 0})
    ordinal_lists_fixed: int = 0
    ordinal_resets: int = 0
    embedded_styled: int = 0
    orphan_markers: list[int] = field(default_factory=list)
    missing_styles: list[str] = field(default_factory=list)
    thread_failures: int = 0
    hit_surface_limit: bool = False
    overflow_aborted: bool = False
    warnings_count: int = 0
    elapsed_sec: float | None = None
    log_path: str | None = None

    def to_dict(self) -> dict[str, object]:
        return {
            "surfaces_created": self.surfaces_created,
            "paragraphs_imported": self.paragraphs_imported,
            "styles_mapped": self.styles_mapped,
            "markers_stripped": self.markers_stripped,
            "symbols_added": dict(self.symbols_added),
            "symbols_skipped": dict(self.symbols_skipped),
            "inline_object_paragraphs": self.inline_object_paragraphs,
            "fonts_replaced": self.fonts_replaced,
            "table_fonts_replaced": self.table_fonts_replaced,
            "unreadable_fonts": self.unreadable_fonts,
            "font_target_missing": self.font_target_missing,
            "runs_formatted": dict(self.runs_formatted),
            "ordinal_lists_fixed": self.ordinal_lists_fixed,
            "ordinal_resets": self.ordinal_resets,
            "embedded_styled": self.embedded_styled,
            "orphan_markers": list(self.orphan_markers),
            "missing_styles": list(self.missing_styles),
            "thread_failures": self.thread_failures,
            "hit_surface_limit": self.hit_surface_limit,
            "overflow_aborted": self.overflow_aborted,
            "warnings_count": self.warnings_count,
            "elapsed_sec": self.elapsed_sec,
            "log_path": self.log_path,
        }


class ReflowPipeline:
    def __init__(self, host: ReflowHost, settings: ReflowConfig | None = None) -> None:
        self.host = host
        self.settings = settings or ReflowConfig()
        self.settings.validate()
        self._last_log_state: RunLogState | None = None
        self._last_unit: ContentUnit | None = None

    @property
    def last_log_state(self) -> RunLogState | None:
        return self._last_log_state

    @property
    def last_unit(self) -> ContentUnit | None:
        return self._last_unit

    def check_setup(self) -> None:
        settings = self.settings
        if not self.host.has_template(settings.template_id):
            raise SetupError(f"template not found: {settings.template_id}")
        missing = [name for name in settings.effective_required_styles() if not self.host.has_style(name)]
        if missing:
            raise SetupError("required styles not found: " + ", ".join(missing))
        if self.host.last_page() is None:
            raise SetupError("document has no pages to place text on")

    def run(
        self,
        paragraphs: Iterable[Paragraph],
        tables: Iterable[TableScope] = (),
        source_path: str | Path | None = None,
    ) -> RunResult:
        started = perf_counter()
        log_state = RunLogState(
            source_path=Path(source_path) if source_path is not None else None,
            start_time=datetime.now(),
            template_id=self.settings.template_id,
        )
        try:
            self.check_setup()
            with suspended_redraw(self.host):
                result = self._run(list(paragraphs), list(tables), log_state)
        except Exception as exc:
            log_state.error = str(exc)
            log_state.elapsed_sec = perf_counter() - started
            write_log(log_state)
            self._last_log_state = log_state
            raise
        log_state.elapsed_sec = perf_counter() - started
        result.warnings_count = len(log_state.warnings)
        result.elapsed_sec = round(log_state.elapsed_sec, 3)
        result.log_path = str(write_log(log_state))
        self._last_log_state = log_state
        return result

    def export_json(self, result: RunResult, output_path: str | Path | None = None) -> Path:
        if output_path is None:
            config.ensure_base_dirs()
            output = config.DEFAULT_RESULT_PATH
        else:
            output = Path(output_path)
            output.parent.mkdir(parents=True, exist_ok=True)
        payload = {
            "result": result.to_dict(),
            "meta": {"config": self.settings.to_dict()},
        }
        with output.open("w", encoding="utf-8") as handle:
            json.dump(payload, handle, ensure_ascii=False, indent=2)
        return output

    def _run(
        self,
        paragraphs: list[Paragraph],
        tables: list[TableScope],
        log_state: RunLogState,
    ) -> RunResult:
        settings = self.settings
        result = RunResult()
        resolver = OverflowResolver(
            self.host,
            max_surfaces=settings.max_surfaces,
            fallback_margin=settings.fallback_margin,
            log_state=log_state,
        )
        page = self.host.last_page()
        container_id = resolver.obtain_container(page) if page is not None else None
        if container_id is None:
            raise HostError("no text container available on the last page")
        unit = self.host.place(container_id, paragraphs, tables)
        self._last_unit = unit
        result.paragraphs_imported = len(paragraphs)

        if self.host.overflows(container_id):
            if settings.auto_create_pages:
                overflow = resolver.resolve(container_id, settings.template_id)
                result.surfaces_created = overflow.surfaces_created
                result.thread_failures = len(overflow.failures)
                result.hit_surface_limit = overflow.hit_limit
                result.overflow_aborted = overflow.aborted
                record_stage(log_state, "overflow", overflow.to_dict())
            else:
                warn(log_state, stage="overflow", reason="text overflows and page creation is disabled")

        classified = ParagraphClassifier(self.host, log_state).classify(unit, settings.style_rules)
        result.styles_mapped = classified.mapped
        result.markers_stripped = classified.stripped
        result.missing_styles = list(classified.missing_styles)
        record_stage(log_state, "classify", classified.to_dict())

        annotator = ListAnnotator(log_state)
        for kind, role_name, symbol in (
            ("marker", settings.marker_role, settings.marker_symbol),
            ("bullet", settings.bullet_role, settings.bullet_symbol),
        ):
            annotated = annotator.annotate(unit, role_name, symbol)
            result.symbols_added[kind] = annotated.added
            result.symbols_skipped[kind] = annotated.skipped
            result.inline_object_paragraphs += annotated.inline_objects
            record_stage(log_state, f"annotate_{kind}", annotated.to_dict())

        ordinal = OrdinalListNormalizer(
            title_role=settings.title_role,
            ordinal_role=settings.ordinal_role,
            pattern=settings.compiled_ordinal_pattern(),
            strip_digits=settings.strip_ordinal_digits,
            log_state=log_state,
        ).normalize(unit)
        result.ordinal_lists_fixed = ordinal.fixed
        result.ordinal_resets = ordinal.resets
        record_stage(log_state, "ordinal", ordinal.to_dict())

        fonts = FontNormalizer(self.host, log_state).normalize(
            unit, settings.deny_patterns, settings.target_font
        )
        result.fonts_replaced = fonts.replaced
        result.unreadable_fonts = fonts.unreadable
        result.font_target_missing = fonts.target_missing
        record_stage(log_state, "fonts", fonts.to_dict())
        if not fonts.target_missing:
            table_normalizer = FontNormalizer(self.host, log_state, stage="table_fonts")
            for table in unit.tables:
                table_fonts = table_normalizer.normalize(
                    table, settings.table_deny_patterns, settings.target_font
                )
                result.table_fonts_replaced += table_fonts.replaced
                result.unreadable_fonts += table_fonts.unreadable

            formatter = RoleRunFormatter(self.host, log_state)
            for kind, role_name, bold in (
                ("marker", settings.marker_role, True),
                ("bullet", settings.bullet_role, False),
            ):
                formatted = formatter.apply(
                    unit, role_name, settings.target_font, bold=bold, point_size=settings.font_size
                )
                result.runs_formatted[kind] = formatted.formatted
                record_stage(log_state, f"format_{kind}", formatted.to_dict())

        if settings.code_style:
            embedded = EmbeddedTextStyler(self.host, log_state).apply(unit, settings.code_style)
            result.embedded_styled = embedded.styled
            record_stage(log_state, "embedded", embedded.to_dict())

        result.orphan_markers = find_orphan_markers(unit)
        for index in result.orphan_markers:
            warn(
                log_state,
                stage="orphan_marker",
                reason="isolated marker glyph, embedded table may not have converted",
                paragraph_index=index,
            )
        return result
