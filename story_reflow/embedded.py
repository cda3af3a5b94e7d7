from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Iterator

from .annotator import is_blank_text
from .errors import HostError
from .host import StyleCatalog
from .model import ContentUnit, PageItem, Paragraph, iter_page_items
from .run_log import RunLogState, warn

ORPHAN_MARKERS = frozenset({"\u25a1", "\ufffd"})
_STAGE = "embedded"


@dataclass
class EmbeddedResult:
    styled: int = 0
    blank: int = 0
    failed: int = 0
    style_missing: bool = False

    def to_dict(self) -> dict[str, int]:
        return {
            "styled": self.styled,
            "blank": self.blank,
            "failed": self.failed,
            "style_missing": int(self.style_missing),
        }


def iter_text_bearing(items: Iterable[PageItem]) -> Iterator[list[Paragraph]]:
    for item in iter_page_items(items):
        yield item.paragraphs


def find_orphan_markers(unit: ContentUnit) -> list[int]:
    found: list[int] = []
    for index, paragraph in enumerate(unit.paragraphs):
        clean = paragraph.text.replace("\r", "").replace("\n", "")
        if clean in ORPHAN_MARKERS:
            found.append(index)
    return found


class EmbeddedTextStyler:
    def __init__(self, catalog: StyleCatalog, log_state: RunLogState | None = None) -> None:
        self.catalog = catalog
        self.log_state = log_state

    def apply(self, unit: ContentUnit, style_name: str) -> EmbeddedResult:
        result = EmbeddedResult()
        items = unit.anchored_items()
        if not items:
            return result
        if not self.catalog.has_style(style_name):
            result.style_missing = True
            warn(self.log_state, stage=_STAGE, reason=f"code style not found: {style_name}")
            return result
        for paragraphs in iter_text_bearing(items):
            for paragraph in paragraphs:
                if is_blank_text(paragraph.text):
                    result.blank += 1
                    continue
                try:
                    paragraph.role = style_name
                except HostError as exc:
                    result.failed += 1
                    warn(self.log_state, stage=_STAGE, reason=f"style not applied ({exc})")
                    continue
                result.styled += 1
        return result
