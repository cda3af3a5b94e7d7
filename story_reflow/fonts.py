from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Iterator, Protocol, Sequence

from .errors import HostError
from .host import FontCatalog
from .model import CharacterRun, Paragraph
from .outcome import ItemOutcome, OutcomeStatus
from .run_log import RunLogState, warn

_BOLD_MARKERS = ("Bold", "太字")
_FORMAT_STAGE = "role_format"


class RunScope(Protocol):
    def iter_runs(self) -> Iterator[CharacterRun]: ...


@dataclass(frozen=True)
class DenyPattern:
    required: tuple[str, ...]

    def validate(self) -> None:
        if not self.required:
            raise ValueError("deny pattern must list at least one substring")
        if any(not part for part in self.required):
            raise ValueError("deny pattern substrings must be non-empty")

    def matches(self, font_name: str) -> bool:
        return all(part in font_name for part in self.required)

    def to_list(self) -> list[str]:
        return list(self.required)


@dataclass(frozen=True)
class FontTarget:
    regular: tuple[str, ...]
    bold: tuple[str, ...] = ()

    def validate(self) -> None:
        if not self.regular:
            raise ValueError("font target needs at least one regular font name")
        if any(not name for name in self.regular + self.bold):
            raise ValueError("font target names must be non-empty")

    def names(self) -> tuple[str, ...]:
        return self.regular + self.bold

    def to_dict(self) -> dict[str, list[str]]:
        return {"regular": list(self.regular), "bold": list(self.bold)}


@dataclass(frozen=True)
class ResolvedTarget:
    regular: str
    bold: str


@dataclass
class FontResult:
    replaced: int = 0
    scanned: int = 0
    unreadable: int = 0
    target_missing: bool = False

    def to_dict(self) -> dict[str, int]:
        return {
            "replaced": self.replaced,
            "scanned": self.scanned,
            "unreadable": self.unreadable,
            "target_missing": int(self.target_missing),
        }


def resolve_font(catalog: FontCatalog, names: Sequence[str]) -> str | None:
    for name in names:
        found = catalog.find_font(name)
        if found:
            return found
    return None


def resolve_target(catalog: FontCatalog, target: FontTarget) -> ResolvedTarget | None:
    regular = resolve_font(catalog, target.regular)
    if regular is None:
        return None
    bold = resolve_font(catalog, target.bold) if target.bold else None
    return ResolvedTarget(regular=regular, bold=bold or regular)


def match_deny_pattern(font_name: str, patterns: Iterable[DenyPattern]) -> DenyPattern | None:
    for pattern in patterns:
        if pattern.matches(font_name):
            return pattern
    return None


def _is_bold_name(font_name: str) -> bool:
    return any(marker in font_name for marker in _BOLD_MARKERS)


class FontNormalizer:
    def __init__(
        self,
        fonts: FontCatalog,
        log_state: RunLogState | None = None,
        stage: str = "fonts",
    ) -> None:
        self.fonts = fonts
        self.log_state = log_state
        self.stage = stage

    def normalize(
        self,
        scope: RunScope,
        deny_patterns: Sequence[DenyPattern],
        target: FontTarget,
    ) -> FontResult:
        result = FontResult()
        resolved = resolve_target(self.fonts, target)
        if resolved is None:
            result.target_missing = True
            warn(
                self.log_state,
                stage=self.stage,
                reason="target font not found: " + ", ".join(target.regular),
            )
            return result
        for run in scope.iter_runs():
            outcome = self._normalize_run(run, deny_patterns, resolved)
            result.scanned += 1
            if outcome.status == OutcomeStatus.APPLIED:
                result.replaced += 1
            elif outcome.status == OutcomeStatus.FAILED:
                result.unreadable += 1
        if result.unreadable:
            warn(
                self.log_state,
                stage=self.stage,
                reason=f"unreadable font runs: {result.unreadable}",
            )
        return result

    def _normalize_run(
        self,
        run: CharacterRun,
        deny_patterns: Sequence[DenyPattern],
        resolved: ResolvedTarget,
    ) -> ItemOutcome:
        try:
            font_name = run.font_name
        except HostError as exc:
            return ItemOutcome.failed(f"font unreadable ({exc})")
        if not font_name:
            return ItemOutcome.skipped("no font")
        if match_deny_pattern(font_name, deny_patterns) is None:
            return ItemOutcome.skipped("allowed font")
        replacement = resolved.bold if _is_bold_name(font_name) else resolved.regular
        if font_name == replacement:
            return ItemOutcome.skipped("already target")
        try:
            run.font_name = replacement
        except HostError as exc:
            return ItemOutcome.failed(f"font not applied ({exc})")
        return ItemOutcome.applied()


@dataclass
class RoleFormatResult:
    formatted: int = 0
    already_formatted: int = 0
    failed: int = 0
    target_missing: bool = False

    def to_dict(self) -> dict[str, int]:
        return {
            "formatted": self.formatted,
            "already_formatted": self.already_formatted,
            "failed": self.failed,
            "target_missing": int(self.target_missing),
        }


class RoleRunFormatter:
    """Writes one font and size onto every run of paragraphs with a given role."""

    def __init__(self, fonts: FontCatalog, log_state: RunLogState | None = None) -> None:
        self.fonts = fonts
        self.log_state = log_state

    def apply(
        self,
        unit: Iterable[Paragraph],
        role_name: str,
        target: FontTarget,
        bold: bool = False,
        point_size: float | None = None,
    ) -> RoleFormatResult:
        result = RoleFormatResult()
        resolved = resolve_target(self.fonts, target)
        if resolved is None:
            result.target_missing = True
            warn(
                self.log_state,
                stage=_FORMAT_STAGE,
                reason="target font not found: " + ", ".join(target.regular),
                role=role_name,
            )
            return result
        font_name = resolved.bold if bold else resolved.regular
        for index, paragraph in enumerate(unit):
            if paragraph.role != role_name:
                continue
            outcome = self._format_paragraph(paragraph, font_name, point_size, index)
            if outcome.status == OutcomeStatus.APPLIED:
                result.formatted += 1
            elif outcome.status == OutcomeStatus.SKIPPED:
                result.already_formatted += 1
            else:
                result.failed += 1
                warn(
                    self.log_state,
                    stage=_FORMAT_STAGE,
                    reason=outcome.reason or "unknown",
                    role=role_name,
                    paragraph_index=index,
                )
        return result

    def _format_paragraph(
        self,
        paragraph: Paragraph,
        font_name: str,
        point_size: float | None,
        index: int,
    ) -> ItemOutcome:
        runs = [run for run in paragraph.runs if run.text]
        try:
            if all(_has_format(run, font_name, point_size) for run in runs):
                return ItemOutcome.skipped("already formatted", index=index)
            for run in runs:
                run.font_name = font_name
                if point_size is not None:
                    run.point_size = point_size
        except HostError as exc:
            return ItemOutcome.failed(f"format not applied ({exc})", index=index)
        return ItemOutcome.applied(index=index)


def _has_format(run: CharacterRun, font_name: str, point_size: float | None) -> bool:
    if run.font_name != font_name:
        return False
    return point_size is None or run.point_size == point_size
