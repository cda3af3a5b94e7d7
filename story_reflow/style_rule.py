from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Mapping


@dataclass(frozen=True)
class StyleRule:
    source_role: str
    target_role: str
    strip_marker: str | None = None

    def validate(self) -> None:
        if not self.source_role.strip():
            raise ValueError("style rule source_role must be non-empty")
        if not self.target_role.strip():
            raise ValueError("style rule target_role must be non-empty")
        if self.strip_marker is not None and len(self.strip_marker) != 1:
            raise ValueError(
                f"strip_marker must be a single character, got {self.strip_marker!r}"
            )

    def to_dict(self) -> dict[str, object | None]:
        return {
            "source_role": self.source_role,
            "target_role": self.target_role,
            "strip_marker": self.strip_marker,
        }


def build_style_rules(
    mapping: Mapping[str, str],
    strip_markers: Mapping[tuple[str, str], str] | None = None,
) -> tuple[StyleRule, ...]:
    markers = dict(strip_markers or {})
    rules: list[StyleRule] = []
    for source_role, target_role in mapping.items():
        rule = StyleRule(
            source_role=source_role,
            target_role=target_role,
            strip_marker=markers.get((source_role, target_role)),
        )
        rule.validate()
        rules.append(rule)
    return tuple(rules)


def index_style_rules(rules: Iterable[StyleRule]) -> dict[str, StyleRule]:
    indexed: dict[str, StyleRule] = {}
    for rule in rules:
        rule.validate()
        existing = indexed.get(rule.source_role)
        if existing is not None and existing != rule:
            raise ValueError(
                f"conflicting style rules for source role {rule.source_role!r}: "
                f"{existing.target_role!r} vs {rule.target_role!r}"
            )
        indexed[rule.source_role] = rule
    return indexed


def serialize_style_rules(rules: Iterable[StyleRule]) -> list[dict[str, object | None]]:
    return [rule.to_dict() for rule in rules]


def parse_style_rules(payload: object) -> tuple[StyleRule, ...]:
    if isinstance(payload, dict):
        if not all(isinstance(key, str) and isinstance(value, str) for key, value in payload.items()):
            raise ValueError("style mapping keys and values must be strings")
        return build_style_rules(payload)
    if not isinstance(payload, list):
        raise ValueError("style rules must be a JSON object or list")
    rules: list[StyleRule] = []
    for item in payload:
        if not isinstance(item, dict):
            raise ValueError("style rule entries must be JSON objects")
        source_role = item.get("source_role")
        target_role = item.get("target_role")
        strip_marker = item.get("strip_marker")
        if not isinstance(source_role, str) or not isinstance(target_role, str):
            raise ValueError("style rule source_role and target_role must be strings")
        if strip_marker is not None and not isinstance(strip_marker, str):
            raise ValueError("style rule strip_marker must be a string")
        rule = StyleRule(
            source_role=source_role,
            target_role=target_role,
            strip_marker=strip_marker,
        )
        rule.validate()
        rules.append(rule)
    return tuple(rules)
