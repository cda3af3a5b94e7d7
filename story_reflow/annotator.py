from __future__ import annotations

from dataclasses import dataclass

from .errors import HostError
from .model import ContentUnit, Paragraph
from .outcome import ItemOutcome, OutcomeStatus
from .run_log import RunLogState, warn

OBJECT_REPLACEMENT = "\ufffc"
_ALLOWED_CONTROLS = {"\t", "\n", "\r"}
_REASON_ALREADY_MARKED = "already marked"
_REASON_BLANK = "blank paragraph"
_REASON_INLINE_OBJECT = "inline object"


@dataclass
class AnnotateResult:
    added: int = 0
    skipped: int = 0
    already_marked: int = 0
    inline_objects: int = 0
    failed: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "added": self.added,
            "skipped": self.skipped,
            "already_marked": self.already_marked,
            "inline_objects": self.inline_objects,
            "failed": self.failed,
        }


def is_blank_text(text: str) -> bool:
    return not text.replace("　", "").strip()


def has_inline_content(paragraph: Paragraph) -> bool:
    if paragraph.has_inline_object or paragraph.anchored_items:
        return True
    for char in paragraph.text:
        if char == OBJECT_REPLACEMENT:
            return True
        if ord(char) < 0x20 and char not in _ALLOWED_CONTROLS:
            return True
    return False


def symbol_glyph(symbol: str) -> str:
    return symbol.rstrip(" 　\t") or symbol


class ListAnnotator:
    def __init__(self, log_state: RunLogState | None = None) -> None:
        self.log_state = log_state

    def annotate(self, unit: ContentUnit, role_name: str, symbol: str) -> AnnotateResult:
        if not symbol:
            raise ValueError("symbol must be non-empty")
        result = AnnotateResult()
        for index, paragraph in enumerate(unit.paragraphs):
            if paragraph.role != role_name:
                continue
            outcome = self._annotate_paragraph(paragraph, symbol, index)
            if outcome.status == OutcomeStatus.APPLIED:
                result.added += 1
            elif outcome.status == OutcomeStatus.FAILED:
                result.failed += 1
                warn(
                    self.log_state,
                    stage="annotate",
                    reason=outcome.reason or "unknown",
                    role=role_name,
                    paragraph_index=index,
                )
            elif outcome.reason == _REASON_ALREADY_MARKED:
                result.already_marked += 1
            else:
                result.skipped += 1
                if outcome.reason == _REASON_INLINE_OBJECT:
                    result.inline_objects += 1
                    warn(
                        self.log_state,
                        stage="annotate",
                        reason="paragraph holds inline object, symbol not added",
                        role=role_name,
                        paragraph_index=index,
                    )
        return result

    def _annotate_paragraph(self, paragraph: Paragraph, symbol: str, index: int) -> ItemOutcome:
        text = paragraph.text
        if text.startswith(symbol_glyph(symbol)):
            return ItemOutcome.skipped(_REASON_ALREADY_MARKED, index=index)
        if is_blank_text(text):
            return ItemOutcome.skipped(_REASON_BLANK, index=index)
        if has_inline_content(paragraph):
            return ItemOutcome.skipped(_REASON_INLINE_OBJECT, index=index)
        try:
            paragraph.insert_text(0, symbol)
        except HostError:
            try:
                paragraph.set_text(symbol + text)
            except HostError as exc:
                return ItemOutcome.failed(f"symbol not inserted ({exc})", index=index)
        return ItemOutcome.applied(index=index)
