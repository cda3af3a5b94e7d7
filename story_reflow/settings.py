from __future__ import annotations

import json
import re
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

from . import config
from .fonts import DenyPattern, FontTarget, match_deny_pattern
from .model import Margins
from .style_rule import (
    StyleRule,
    build_style_rules,
    index_style_rules,
    parse_style_rules,
    serialize_style_rules,
)

_MARGIN_KEYS = ("top", "bottom", "inside", "outside")
_STRING_KEYS = (
    "template_id",
    "marker_role",
    "marker_symbol",
    "bullet_role",
    "bullet_symbol",
    "title_role",
    "ordinal_role",
    "ordinal_pattern",
)
_BOOL_KEYS = ("auto_create_pages", "strip_ordinal_digits")
_KNOWN_KEYS = set(_STRING_KEYS) | set(_BOOL_KEYS) | {
    "max_surfaces",
    "fallback_margin",
    "style_mapping",
    "strip_markers",
    "style_rules",
    "deny_patterns",
    "table_deny_patterns",
    "target_fonts",
    "target_bold_fonts",
    "code_style",
    "required_styles",
    "font_size",
}


def _default_margins() -> Margins:
    return Margins(**config.DEFAULT_FALLBACK_MARGIN)


def _default_style_rules() -> tuple[StyleRule, ...]:
    return build_style_rules(config.DEFAULT_STYLE_MAPPING, config.DEFAULT_STRIP_MARKERS)


def _deny_patterns(raw: tuple[tuple[str, ...], ...]) -> tuple[DenyPattern, ...]:
    return tuple(DenyPattern(required=tuple(parts)) for parts in raw)


def _default_target() -> FontTarget:
    return FontTarget(
        regular=config.DEFAULT_TARGET_FONTS,
        bold=config.DEFAULT_TARGET_BOLD_FONTS,
    )


@dataclass(frozen=True)
class ReflowConfig:
    template_id: str = config.DEFAULT_TEMPLATE_ID
    max_surfaces: int = config.DEFAULT_MAX_SURFACES
    auto_create_pages: bool = True
    fallback_margin: Margins = field(default_factory=_default_margins)
    style_rules: tuple[StyleRule, ...] = field(default_factory=_default_style_rules)
    marker_role: str = config.DEFAULT_MARKER_ROLE
    marker_symbol: str = config.DEFAULT_MARKER_SYMBOL
    bullet_role: str = config.DEFAULT_BULLET_ROLE
    bullet_symbol: str = config.DEFAULT_BULLET_SYMBOL
    title_role: str = config.DEFAULT_TITLE_ROLE
    ordinal_role: str = config.DEFAULT_ORDINAL_ROLE
    ordinal_pattern: str = config.DEFAULT_ORDINAL_PATTERN
    strip_ordinal_digits: bool = True
    deny_patterns: tuple[DenyPattern, ...] = field(
        default_factory=lambda: _deny_patterns(config.DEFAULT_DENY_PATTERNS)
    )
    table_deny_patterns: tuple[DenyPattern, ...] = field(
        default_factory=lambda: _deny_patterns(config.DEFAULT_TABLE_DENY_PATTERNS)
    )
    target_font: FontTarget = field(default_factory=_default_target)
    font_size: float | None = config.DEFAULT_FONT_SIZE
    code_style: str | None = config.DEFAULT_CODE_STYLE
    required_styles: tuple[str, ...] | None = None

    def validate(self) -> None:
        if not self.template_id.strip():
            raise ValueError("template_id must be non-empty")
        if self.max_surfaces < 0:
            raise ValueError(f"max_surfaces must be >= 0, got {self.max_surfaces}")
        for key in _MARGIN_KEYS:
            if getattr(self.fallback_margin, key) < 0:
                raise ValueError(f"fallback_margin.{key} must be >= 0")
        index_style_rules(self.style_rules)
        for name in ("marker_symbol", "bullet_symbol"):
            if not getattr(self, name).strip():
                raise ValueError(f"{name} must contain a visible glyph")
        for name in ("marker_role", "bullet_role", "title_role", "ordinal_role"):
            if not getattr(self, name).strip():
                raise ValueError(f"{name} must be non-empty")
        try:
            re.compile(self.ordinal_pattern)
        except re.error as exc:
            raise ValueError(f"invalid ordinal_pattern: {exc}") from exc
        for pattern in self.deny_patterns + self.table_deny_patterns:
            pattern.validate()
        self.target_font.validate()
        if self.font_size is not None and self.font_size <= 0:
            raise ValueError(f"font_size must be > 0, got {self.font_size}")
        for name in self.target_font.names():
            if match_deny_pattern(name, self.deny_patterns + self.table_deny_patterns):
                raise ValueError(f"target font {name!r} matches a deny pattern")

    def compiled_ordinal_pattern(self) -> re.Pattern[str]:
        return re.compile(self.ordinal_pattern)

    def effective_required_styles(self) -> tuple[str, ...]:
        if self.required_styles is not None:
            return tuple(self.required_styles)
        return (self.marker_role, self.bullet_role, self.ordinal_role)

    def with_overrides(self, **changes: Any) -> "ReflowConfig":
        updated = replace(self, **changes)
        updated.validate()
        return updated

    def to_dict(self) -> dict[str, object]:
        return {
            "template_id": self.template_id,
            "max_surfaces": self.max_surfaces,
            "auto_create_pages": self.auto_create_pages,
            "fallback_margin": {key: getattr(self.fallback_margin, key) for key in _MARGIN_KEYS},
            "style_rules": serialize_style_rules(self.style_rules),
            "marker_role": self.marker_role,
            "marker_symbol": self.marker_symbol,
            "bullet_role": self.bullet_role,
            "bullet_symbol": self.bullet_symbol,
            "title_role": self.title_role,
            "ordinal_role": self.ordinal_role,
            "ordinal_pattern": self.ordinal_pattern,
            "strip_ordinal_digits": self.strip_ordinal_digits,
            "deny_patterns": [pattern.to_list() for pattern in self.deny_patterns],
            "table_deny_patterns": [pattern.to_list() for pattern in self.table_deny_patterns],
            "target_fonts": list(self.target_font.regular),
            "target_bold_fonts": list(self.target_font.bold),
            "font_size": self.font_size,
            "code_style": self.code_style,
            "required_styles": list(self.effective_required_styles()),
        }


def load_config(path: str | Path | None) -> ReflowConfig:
    if path is None:
        result = ReflowConfig()
        result.validate()
        return result
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"config file not found: {config_path}")
    if not config_path.is_file():
        raise ValueError(f"config path is not a file: {config_path}")
    try:
        payload = json.loads(config_path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ValueError(f"invalid config JSON: {config_path} ({exc})") from exc
    return config_from_dict(payload)


def config_from_dict(payload: object) -> ReflowConfig:
    if not isinstance(payload, dict):
        raise ValueError("config must be a JSON object")
    unknown = sorted(key for key in payload if key not in _KNOWN_KEYS)
    if unknown:
        raise ValueError("unknown config keys: " + ", ".join(unknown))
    changes: dict[str, Any] = {}
    for key in _STRING_KEYS:
        if key in payload:
            changes[key] = _require_str(payload[key], key)
    for key in _BOOL_KEYS:
        if key in payload:
            value = payload[key]
            if not isinstance(value, bool):
                raise ValueError(f"{key} must be a boolean")
            changes[key] = value
    if "max_surfaces" in payload:
        value = payload["max_surfaces"]
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValueError("max_surfaces must be an integer")
        changes["max_surfaces"] = value
    if "fallback_margin" in payload:
        changes["fallback_margin"] = _parse_margins(payload["fallback_margin"])
    rules = _parse_rules(payload)
    if rules is not None:
        changes["style_rules"] = rules
    for key in ("deny_patterns", "table_deny_patterns"):
        if key in payload:
            changes[key] = _parse_deny_patterns(payload[key], key)
    if "target_fonts" in payload or "target_bold_fonts" in payload:
        default_target = _default_target()
        regular = (
            _require_str_list(payload["target_fonts"], "target_fonts")
            if "target_fonts" in payload
            else default_target.regular
        )
        bold = (
            _require_str_list(payload["target_bold_fonts"], "target_bold_fonts")
            if "target_bold_fonts" in payload
            else default_target.bold
        )
        changes["target_font"] = FontTarget(regular=regular, bold=bold)
    if "font_size" in payload:
        value = payload["font_size"]
        if value is not None and (isinstance(value, bool) or not isinstance(value, (int, float))):
            raise ValueError("font_size must be a number or null")
        changes["font_size"] = None if value is None else float(value)
    if "code_style" in payload:
        value = payload["code_style"]
        changes["code_style"] = None if value is None else _require_str(value, "code_style")
    if "required_styles" in payload:
        changes["required_styles"] = _require_str_list(payload["required_styles"], "required_styles")
    result = ReflowConfig(**changes)
    result.validate()
    return result


def _parse_rules(payload: dict[str, object]) -> tuple[StyleRule, ...] | None:
    if "style_rules" in payload:
        if "style_mapping" in payload or "strip_markers" in payload:
            raise ValueError("style_rules cannot be combined with style_mapping or strip_markers")
        return parse_style_rules(payload["style_rules"])
    if "style_mapping" not in payload and "strip_markers" not in payload:
        return None
    mapping = payload.get("style_mapping", config.DEFAULT_STYLE_MAPPING)
    if not isinstance(mapping, dict) or not all(
        isinstance(key, str) and isinstance(value, str) for key, value in mapping.items()
    ):
        raise ValueError("style_mapping must map strings to strings")
    if "strip_markers" in payload:
        markers = _parse_strip_markers(payload["strip_markers"])
    else:
        markers = dict(config.DEFAULT_STRIP_MARKERS)
    return build_style_rules(mapping, markers)


def _parse_strip_markers(value: object) -> dict[tuple[str, str], str]:
    if not isinstance(value, list):
        raise ValueError("strip_markers must be a list")
    markers: dict[tuple[str, str], str] = {}
    for item in value:
        if not isinstance(item, dict):
            raise ValueError("strip_markers entries must be JSON objects")
        source_role = item.get("source_role")
        target_role = item.get("target_role")
        marker = item.get("marker")
        if not all(isinstance(part, str) for part in (source_role, target_role, marker)):
            raise ValueError("strip_markers entries need source_role, target_role and marker strings")
        markers[(source_role, target_role)] = marker
    return markers


def _parse_margins(value: object) -> Margins:
    if not isinstance(value, dict):
        raise ValueError("fallback_margin must be a JSON object")
    base = config.DEFAULT_FALLBACK_MARGIN
    margins: dict[str, float] = {}
    for key in _MARGIN_KEYS:
        raw = value.get(key, base[key])
        if isinstance(raw, bool) or not isinstance(raw, (int, float)):
            raise ValueError(f"fallback_margin.{key} must be a number")
        margins[key] = float(raw)
    extra = sorted(key for key in value if key not in _MARGIN_KEYS)
    if extra:
        raise ValueError("unknown fallback_margin keys: " + ", ".join(extra))
    return Margins(**margins)


def _parse_deny_patterns(value: object, name: str) -> tuple[DenyPattern, ...]:
    if not isinstance(value, list):
        raise ValueError(f"{name} must be a list")
    patterns: list[DenyPattern] = []
    for item in value:
        if isinstance(item, str):
            parts = (item,)
        else:
            parts = _require_str_list(item, name)
        patterns.append(DenyPattern(required=parts))
    return tuple(patterns)


def _require_str(value: object, name: str) -> str:
    if not isinstance(value, str):
        raise ValueError(f"{name} must be a string")
    return value


def _require_str_list(value: object, name: str) -> tuple[str, ...]:
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise ValueError(f"{name} must be a list of strings")
    return tuple(value)

