from __future__ import annotations

import re
from dataclasses import dataclass

from . import config
from .errors import HostError
from .model import ContentUnit, NumberingMark, Paragraph
from .outcome import ItemOutcome
from .run_log import RunLogState, warn

_STAGE = "ordinal"
_TRAILING_SPACE_PATTERN = re.compile(r"^[\s　]*")


@dataclass
class OrdinalResult:
    fixed: int = 0
    resets: int = 0
    failed: int = 0

    def to_dict(self) -> dict[str, int]:
        return {"fixed": self.fixed, "resets": self.resets, "failed": self.failed}


class OrdinalListNormalizer:
    def __init__(
        self,
        title_role: str = config.DEFAULT_TITLE_ROLE,
        ordinal_role: str = config.DEFAULT_ORDINAL_ROLE,
        pattern: str | re.Pattern[str] = config.DEFAULT_ORDINAL_PATTERN,
        strip_digits: bool = True,
        log_state: RunLogState | None = None,
    ) -> None:
        self.title_role = title_role
        self.ordinal_role = ordinal_role
        self.pattern = re.compile(pattern) if isinstance(pattern, str) else pattern
        self.strip_digits = strip_digits
        self.log_state = log_state

    def normalize(self, unit: ContentUnit) -> OrdinalResult:
        result = OrdinalResult()
        reset_pending = False
        for index, paragraph in enumerate(unit.paragraphs):
            if paragraph.role == self.title_role:
                reset_pending = True
                continue
            match = self.pattern.match(paragraph.text)
            if match is None:
                continue
            outcome = self._apply(paragraph, match, reset_pending, index)
            if not outcome.ok:
                result.failed += 1
                warn(self.log_state, stage=_STAGE, reason=outcome.reason or "unknown", paragraph_index=index)
                continue
            result.fixed += 1
            if reset_pending:
                result.resets += 1
                reset_pending = False
        return result

    def _apply(
        self,
        paragraph: Paragraph,
        match: re.Match[str],
        restart: bool,
        index: int,
    ) -> ItemOutcome:
        try:
            if self.strip_digits:
                rest = paragraph.text[match.end():]
                spaces = _TRAILING_SPACE_PATTERN.match(rest)
                paragraph.delete_leading(match.end() + (spaces.end() if spaces else 0))
            paragraph.role = self.ordinal_role
            paragraph.numbering = NumberingMark(restart=True, start_at=1) if restart else NumberingMark(restart=False)
        except HostError as exc:
            return ItemOutcome.failed(f"ordinal list not applied ({exc})", index=index)
        return ItemOutcome.applied(index=index)


def resolve_numbers(unit: ContentUnit, ordinal_role: str = config.DEFAULT_ORDINAL_ROLE) -> dict[int, int]:
    numbers: dict[int, int] = {}
    current = 0
    for index, paragraph in enumerate(unit.paragraphs):
        if paragraph.role != ordinal_role:
            continue
        mark = paragraph.numbering
        if mark is not None and mark.restart:
            current = mark.start_at
        else:
            current += 1
        numbers[index] = current
    return numbers
