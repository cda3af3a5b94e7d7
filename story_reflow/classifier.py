from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Iterable

from .errors import HostError
from .host import StyleCatalog
from .model import ContentUnit, Paragraph
from .outcome import ItemOutcome, OutcomeStatus
from .run_log import RunLogState, warn
from .style_rule import StyleRule, index_style_rules

_STAGE = "classify"
_LEADING_SPACE_PATTERN = re.compile(r"^[\s　]*")


@dataclass
class ClassifyResult:
    mapped: int = 0
    stripped: int = 0
    failed: int = 0
    missing_styles: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, int]:
        return {
            "mapped": self.mapped,
            "stripped": self.stripped,
            "failed": self.failed,
            "missing_styles": len(self.missing_styles),
        }


def leading_marker_length(text: str, marker: str) -> int:
    if not marker or not text.startswith(marker):
        return 0
    rest = text[len(marker):]
    spaces = _LEADING_SPACE_PATTERN.match(rest)
    return len(marker) + (spaces.end() if spaces else 0)


class ParagraphClassifier:
    def __init__(self, catalog: StyleCatalog, log_state: RunLogState | None = None) -> None:
        self.catalog = catalog
        self.log_state = log_state

    def classify(self, unit: ContentUnit, rules: Iterable[StyleRule]) -> ClassifyResult:
        indexed = index_style_rules(rules)
        result = ClassifyResult()
        known: dict[str, bool] = {}
        for index, paragraph in enumerate(unit.paragraphs):
            rule = indexed.get(paragraph.role)
            if rule is None:
                continue
            if rule.target_role not in known:
                known[rule.target_role] = self.catalog.has_style(rule.target_role)
            if not known[rule.target_role]:
                if rule.target_role not in result.missing_styles:
                    result.missing_styles.append(rule.target_role)
                    warn(
                        self.log_state,
                        stage=_STAGE,
                        reason=f"target style not found: {rule.target_role}",
                        role=rule.source_role,
                        paragraph_index=index,
                    )
                continue
            outcome, stripped = self._apply_rule(paragraph, rule, index)
            if outcome.status == OutcomeStatus.APPLIED:
                result.mapped += 1
                if stripped:
                    result.stripped += 1
            elif outcome.status == OutcomeStatus.FAILED:
                result.failed += 1
                warn(
                    self.log_state,
                    stage=_STAGE,
                    reason=outcome.reason or "unknown",
                    role=rule.source_role,
                    paragraph_index=index,
                )
        return result

    def _apply_rule(self, paragraph: Paragraph, rule: StyleRule, index: int) -> tuple[ItemOutcome, bool]:
        stripped = False
        try:
            if rule.strip_marker:
                length = leading_marker_length(paragraph.text, rule.strip_marker)
                if length:
                    paragraph.delete_leading(length)
                    stripped = True
            if not stripped and paragraph.role == rule.target_role:
                return ItemOutcome.skipped("already mapped", index=index), stripped
            paragraph.role = rule.target_role
        except HostError as exc:
            return ItemOutcome.failed(f"style not applied ({exc})", index=index), stripped
        return ItemOutcome.applied(index=index), stripped
