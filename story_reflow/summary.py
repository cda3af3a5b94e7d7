from __future__ import annotations

_RESULT_LABELS = (
    ("surfaces_created", "追加見開き"),
    ("paragraphs_imported", "段落数"),
    ("styles_mapped", "スタイル適用"),
    ("markers_stripped", "■記号削除"),
    ("fonts_replaced", "フォント置換"),
    ("table_fonts_replaced", "表フォント置換"),
    ("ordinal_lists_fixed", "番号リスト修正"),
    ("ordinal_resets", "番号リセット"),
    ("embedded_styled", "図内テキストスタイル"),
)
_SYMBOL_LABELS = (
    ("marker", "小項目記号追加"),
    ("bullet", "リスト記号追加"),
)
_FORMAT_LABELS = (
    ("marker", "小項目書式"),
    ("bullet", "リスト書式"),
)


def format_run_summary(payload: object) -> str:
    if not isinstance(payload, dict):
        return "結果の形式が不正です"
    result = payload.get("result") if isinstance(payload.get("result"), dict) else payload
    if not isinstance(result, dict):
        return "結果の形式が不正です"

    lines = ["【処理結果】"]
    for key, label in _RESULT_LABELS:
        lines.append(f"{label}: {_format_count(result.get(key))}")
    symbols_added = result.get("symbols_added")
    symbols_skipped = result.get("symbols_skipped")
    for kind, label in _SYMBOL_LABELS:
        added = symbols_added.get(kind) if isinstance(symbols_added, dict) else None
        skipped = symbols_skipped.get(kind) if isinstance(symbols_skipped, dict) else None
        line = f"{label}: {_format_count(added)}"
        if isinstance(skipped, int) and skipped:
            line += f" (スキップ {skipped}件)"
        lines.append(line)
    runs_formatted = result.get("runs_formatted")
    for kind, label in _FORMAT_LABELS:
        formatted = runs_formatted.get(kind) if isinstance(runs_formatted, dict) else None
        lines.append(f"{label}: {_format_count(formatted)}")
    elapsed = result.get("elapsed_sec")
    if isinstance(elapsed, (int, float)):
        lines.append(f"処理時間: {elapsed:.1f}秒")

    anomalies = _collect_anomalies(result)
    lines.append("")
    lines.append("【検出された問題】")
    if anomalies:
        lines.extend(f"・{item}" for item in anomalies)
    else:
        lines.append("なし")
    log_path = result.get("log_path")
    if isinstance(log_path, str) and log_path:
        lines.append("")
        lines.append(f"ログ: {log_path}")
    return "\n".join(lines)


def _collect_anomalies(result: dict[str, object]) -> list[str]:
    anomalies: list[str] = []
    if result.get("hit_surface_limit"):
        anomalies.append("見開きの追加上限に達しました(テキストがあふれています)")
    if result.get("overflow_aborted"):
        anomalies.append("テンプレートから使用可能なフレームを取得できませんでした")
    failures = result.get("thread_failures")
    if isinstance(failures, int) and failures:
        anomalies.append(f"フレーム連結エラー: {failures}件")
    missing = result.get("missing_styles")
    if isinstance(missing, list) and missing:
        anomalies.append("見つからないスタイル: " + "、".join(str(name) for name in missing))
    inline = result.get("inline_object_paragraphs")
    if isinstance(inline, int) and inline:
        anomalies.append(f"インラインオブジェクトを含む段落(記号未追加): {inline}件")
    if result.get("font_target_missing"):
        anomalies.append("置換先フォントが見つかりません")
    unreadable = result.get("unreadable_fonts")
    if isinstance(unreadable, int) and unreadable:
        anomalies.append(f"フォントを読み取れない文字: {unreadable}件")
    orphans = result.get("orphan_markers")
    if isinstance(orphans, list) and orphans:
        positions = "、".join(str(int(index) + 1) for index in orphans[:10])
        suffix = " ほか" if len(orphans) > 10 else ""
        anomalies.append(
            f"孤立した□文字(未変換の表の可能性): {len(orphans)}件 (段落 {positions}{suffix})"
        )
    return anomalies


def _format_count(value: object) -> str:
    if isinstance(value, bool) or not isinstance(value, int):
        return "-"
    return f"{value}件"
