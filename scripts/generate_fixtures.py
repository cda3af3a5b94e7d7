from __future__ import annotations

import sys
from pathlib import Path

from docx import Document
from docx.enum.style import WD_STYLE_TYPE
from docx.oxml import OxmlElement
from docx.oxml.ns import qn
from docx.shared import Mm, Pt

ROOT = Path(__file__).resolve().parents[1]
FIXTURES_DIR = ROOT / "samples"

if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from story_reflow import config  # noqa: E402

TEMPLATE_STYLES = (
    "大見出し1",
    "見出し",
    config.DEFAULT_MARKER_ROLE,
    config.DEFAULT_BULLET_ROLE,
    "リスト段落",
    config.DEFAULT_TITLE_ROLE,
    config.DEFAULT_ORDINAL_ROLE,
    config.DEFAULT_CODE_STYLE,
)
MANUSCRIPT_STYLES = ("大項目", "小項目", "リスト", "演習タイトル")


def _save(doc: Document, name: str) -> Path:
    FIXTURES_DIR.mkdir(parents=True, exist_ok=True)
    path = FIXTURES_DIR / name
    doc.save(str(path))
    return path


def _add_styles(doc: Document, names: tuple[str, ...]) -> None:
    existing = {style.name for style in doc.styles}
    for name in names:
        if name not in existing:
            doc.styles.add_style(name, WD_STYLE_TYPE.PARAGRAPH)


def _enable_mirror_margins(doc: Document) -> None:
    settings = doc.settings.element
    if settings.find(qn("w:mirrorMargins")) is not None:
        return
    mirror = OxmlElement("w:mirrorMargins")
    zoom = settings.find(qn("w:zoom"))
    if zoom is not None:
        zoom.addnext(mirror)
    else:
        settings.insert(0, mirror)


def build_template() -> Path:
    doc = Document()
    _add_styles(doc, TEMPLATE_STYLES)
    section = doc.sections[0]
    section.page_width = Mm(182)
    section.page_height = Mm(257)
    section.top_margin = Mm(20)
    section.bottom_margin = Mm(20)
    section.left_margin = Mm(22)
    section.right_margin = Mm(15)
    _enable_mirror_margins(doc)
    return _save(doc, "template.docx")


def build_manuscript() -> Path:
    doc = Document()
    _add_styles(doc, MANUSCRIPT_STYLES)
    doc.add_paragraph("■第1章 準備", style="大項目")
    doc.add_paragraph("作業環境", style="小項目")
    doc.add_paragraph("端末を起動します。", style="リスト")
    doc.add_paragraph("演習1", style="演習タイトル")
    doc.add_paragraph("1. 手順その一")
    doc.add_paragraph("2. 手順その二")
    doc.add_paragraph("演習2", style="演習タイトル")
    doc.add_paragraph("1. 別の手順")
    for index in range(40):
        paragraph = doc.add_paragraph(f"本文の段落 {index + 1}。" * 8)
        run = paragraph.add_run("強調")
        run.bold = True
        run.font.name = "ＭＳ 明朝"
        run.font.size = Pt(10.5)
    table = doc.add_table(rows=2, cols=2)
    for row in table.rows:
        for cell in row.cells:
            run = cell.paragraphs[0].add_run("表のセル")
            run.font.name = "MS Mincho"
    return _save(doc, "manuscript.docx")


def main() -> None:
    for path in (build_template(), build_manuscript()):
        print(path)


if __name__ == "__main__":
    main()
