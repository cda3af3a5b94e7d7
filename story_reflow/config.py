from __future__ import annotations

from datetime import datetime
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
OUTPUT_DIR = PROJECT_ROOT / "output"
LOG_DIR = PROJECT_ROOT / "logs"
DEFAULT_RESULT_PATH = OUTPUT_DIR / "reflow_result.json"

LOG_FILE_PREFIX = "story_reflow"
LOG_TIMESTAMP_FORMAT = "%Y%m%d_%H%M%S"

DEFAULT_TEMPLATE_ID = "H-本文マスター"
DEFAULT_MAX_SURFACES = 100
DEFAULT_FALLBACK_MARGIN = {
    "top": 36.0,
    "bottom": 36.0,
    "inside": 54.0,
    "outside": 36.0,
}

DEFAULT_STYLE_MAPPING = {
    "Heading 1": "大見出し1",
    "Heading 2": "大見出し1",
    "Heading 3": "見出し",
    "大項目": "大見出し1",
    "小項目": "小項目",
    "リスト": "リスト",
    "箇条書き": "リスト",
    "List Paragraph": "リスト",
    "リスト段落": "リスト段落",
    "Normal": "Normal",
    "BodyText": "Normal",
    "演習タイトル": "演習タイトル",
}
DEFAULT_STRIP_MARKERS = {
    ("大項目", "大見出し1"): "■",
}

DEFAULT_MARKER_ROLE = "小項目"
DEFAULT_MARKER_SYMBOL = "□　"
DEFAULT_BULLET_ROLE = "リスト"
DEFAULT_BULLET_SYMBOL = "・　"

DEFAULT_TITLE_ROLE = "演習タイトル"
DEFAULT_ORDINAL_ROLE = "番号リスト"
DEFAULT_ORDINAL_PATTERN = r"^[0-9]+[.)\s　]"

DEFAULT_DENY_PATTERNS = (
    ("MS", "明朝", "Bold"),
    ("ＭＳ", "明朝", "Bold"),
)
DEFAULT_TABLE_DENY_PATTERNS = (
    ("MS", "明朝"),
    ("ＭＳ", "明朝"),
    ("Mincho",),
)
DEFAULT_TARGET_FONTS = ("BIZ UDGothic\tRegular", "BIZ UDゴシック\tRegular")
DEFAULT_TARGET_BOLD_FONTS = ("BIZ UDGothic\tBold", "BIZ UDゴシック\tBold")
DEFAULT_FONT_SIZE = 10.5  # pt, 14.817Q

DEFAULT_CODE_STYLE = "コード・コマンド"
DEFAULT_LOG_RETENTION_DAYS = 5


def ensure_base_dirs() -> None:
    OUTPUT_DIR.mkdir(parents=True, exist_ok=True)
    LOG_DIR.mkdir(parents=True, exist_ok=True)


def build_log_path(ts: datetime | None = None) -> Path:
    if ts is None:
        ts = datetime.now()
    name = f"{LOG_FILE_PREFIX}_{ts.strftime(LOG_TIMESTAMP_FORMAT)}.log"
    return LOG_DIR / name


def cleanup_logs(retention_days: int = DEFAULT_LOG_RETENTION_DAYS, now: datetime | None = None) -> int:
    if retention_days <= 0:
        return 0
    try:
        LOG_DIR.mkdir(parents=True, exist_ok=True)
    except OSError:
        return 0
    base_time = now or datetime.now()
    cutoff = base_time.timestamp() - retention_days * 86400
    removed = 0
    for path in LOG_DIR.glob(f"{LOG_FILE_PREFIX}_*.log"):
        try:
            if path.stat().st_mtime < cutoff:
                path.unlink()
                removed += 1
        except OSError:
            continue
    return removed
