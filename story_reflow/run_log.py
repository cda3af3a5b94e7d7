from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

from . import config


@dataclass
class WarningEntry:
    stage: str
    reason: str
    role: str | None = None
    paragraph_index: int | None = None
    container_id: int | None = None


@dataclass
class RunLogState:
    source_path: Path | None
    start_time: datetime
    template_id: str | None = None
    warnings: list[WarningEntry] = field(default_factory=list)
    stage_counts: dict[str, dict[str, int]] = field(default_factory=dict)
    error: str | None = None
    elapsed_sec: float | None = None


def warn(
    log_state: RunLogState | None,
    stage: str,
    reason: str,
    role: str | None = None,
    paragraph_index: int | None = None,
    container_id: int | None = None,
) -> None:
    if log_state is None:
        return
    log_state.warnings.append(
        WarningEntry(
            stage=stage,
            reason=reason,
            role=role,
            paragraph_index=paragraph_index,
            container_id=container_id,
        )
    )


def record_stage(log_state: RunLogState | None, stage: str, counts: dict[str, int]) -> None:
    if log_state is None:
        return
    log_state.stage_counts[stage] = dict(counts)


def write_log(log_state: RunLogState) -> Path:
    config.ensure_base_dirs()
    log_path = config.build_log_path(log_state.start_time)
    lines = [
        f"source_path: {log_state.source_path if log_state.source_path else 'unknown'}",
        f"template_id: {log_state.template_id or 'unknown'}",
        f"elapsed_sec: {log_state.elapsed_sec:.3f}"
        if log_state.elapsed_sec is not None
        else "elapsed_sec: unknown",
    ]
    for stage, counts in log_state.stage_counts.items():
        parts = [f"{key}={value}" for key, value in counts.items()]
        lines.append(f"stage[{stage}]: " + " ".join(parts))
    if log_state.error:
        lines.append(f"error: {log_state.error}")
    lines.append(f"warnings_count: {len(log_state.warnings)}")
    for warning in log_state.warnings:
        parts = [f"stage={warning.stage}", f"reason={warning.reason}"]
        if warning.role:
            parts.append(f"role={warning.role}")
        if warning.paragraph_index is not None:
            parts.append(f"paragraph_index={warning.paragraph_index}")
        if warning.container_id is not None:
            parts.append(f"container_id={warning.container_id}")
        lines.append("warning: " + " ".join(parts))
    log_path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return log_path
