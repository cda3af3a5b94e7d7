from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable, Iterator
from zipfile import BadZipFile

from docx import Document
from docx.enum.style import WD_STYLE_TYPE
from docx.opc.exceptions import PackageNotFoundError
from docx.oxml.ns import qn
from docx.shared import Pt
from docx.text.paragraph import Paragraph as DocxParagraph
from docx.text.run import Run
from lxml import etree

from . import config
from .model import (
    CharacterRun,
    ContentBearingItem,
    ContentUnit,
    GroupContainer,
    PageItem,
    Paragraph,
    TableScope,
    TextContainer,
)
from .ordinal import resolve_numbers
from .style_reader import ensure_readable_file

W_NS = "http://schemas.openxmlformats.org/wordprocessingml/2006/main"
NS = {
    "w": W_NS,
    "wp": "http://schemas.openxmlformats.org/drawingml/2006/wordprocessingDrawing",
    "wps": "http://schemas.microsoft.com/office/word/2010/wordprocessingShape",
    "wpg": "http://schemas.microsoft.com/office/word/2010/wordprocessingGroup",
    "mc": "http://schemas.openxmlformats.org/markup-compatibility/2006",
    "v": "urn:schemas-microsoft-com:vml",
}

_PARAGRAPH_RUNS = etree.XPath("./w:r | ./w:hyperlink/w:r | ./w:ins/w:r", namespaces=NS)
_GROUP_CHILDREN = etree.XPath("./wpg:grpSp | ./wps:wsp", namespaces=NS)
_TEXT_BOX_PARAGRAPHS = etree.XPath("./w:p", namespaces=NS)
_ANCHOR_TAGS = (f"{{{W_NS}}}drawing", f"{{{W_NS}}}pict")
_TEXT_BOX_TAG = f"{{{W_NS}}}txbxContent"
_GROUP_TAG = f"{{{NS['wpg']}}}wgp"
_GROUP_SHAPE_TAG = f"{{{NS['wpg']}}}grpSp"
_FALLBACK_TAG = f"{{{NS['mc']}}}Fallback"
_INLINE_TAGS = ("}drawing", "}pict", "}object")
_BOLD_STYLE = "Bold"
_REGULAR_STYLE = "Regular"


@dataclass
class LoadedDocument:
    paragraphs: list[Paragraph] = field(default_factory=list)
    tables: list[TableScope] = field(default_factory=list)


def load_docx(docx_path: str | Path) -> LoadedDocument:
    path = Path(docx_path)
    ensure_readable_file(path)
    document = _open_document(path)
    loaded = LoadedDocument()
    for kind, item in _iter_block_items(document):
        if kind == "paragraph":
            loaded.paragraphs.append(convert_paragraph(item))
        else:
            loaded.tables.append(convert_table(item))
    return loaded


def convert_paragraph(paragraph: Any) -> Paragraph:
    style = paragraph.style
    role = style.name if style is not None and style.name else "Normal"
    runs: list[CharacterRun] = []
    for r in _PARAGRAPH_RUNS(paragraph._p):
        run = Run(r, paragraph)
        if not run.text:
            continue
        size = run.font.size
        runs.append(
            CharacterRun(
                text=run.text,
                font_name=_run_font_name(run),
                point_size=size.pt if size is not None else None,
            )
        )
    anchored = _collect_anchored_items(paragraph)
    return Paragraph(
        role=role,
        runs=runs,
        has_inline_object=_paragraph_has_drawing(paragraph),
        anchored_items=anchored,
    )


def convert_table(table: Any) -> TableScope:
    rows: list[list[list[Paragraph]]] = []
    for row in table.rows:
        cells: list[list[Paragraph]] = []
        for cell in row.cells:
            cells.append([convert_paragraph(paragraph) for paragraph in cell.paragraphs])
        rows.append(cells)
    return TableScope(rows=rows)


def save_docx(
    unit: ContentUnit,
    output_path: str | Path,
    template_path: str | Path | None = None,
    ordinal_role: str = config.DEFAULT_ORDINAL_ROLE,
    number_prefix: bool = True,
) -> Path:
    if template_path is not None:
        template = Path(template_path)
        ensure_readable_file(template)
        document = _open_document(template)
    else:
        document = Document()
    style_names = {
        style.name for style in document.styles if style.type == WD_STYLE_TYPE.PARAGRAPH
    }
    numbers = resolve_numbers(unit, ordinal_role) if number_prefix else {}
    for index, paragraph in enumerate(unit.paragraphs):
        target = document.add_paragraph()
        if paragraph.role in style_names:
            target.style = document.styles[paragraph.role]
        if index in numbers:
            target.add_run(f"{numbers[index]}.\t")
        _write_runs(target, paragraph.runs)
    for table in unit.tables:
        _write_table(document, table, style_names)
    output = Path(output_path)
    output.parent.mkdir(parents=True, exist_ok=True)
    document.save(str(output))
    return output


def split_font_name(font_name: str) -> tuple[str, str | None]:
    family, sep, style = font_name.partition("\t")
    return family, style if sep else None


def _write_runs(target: Any, runs: Iterable[CharacterRun]) -> None:
    for run in runs:
        written = target.add_run(run.text)
        if run.font_name:
            _apply_font(written, run.font_name)
        if run.point_size is not None:
            written.font.size = Pt(run.point_size)


def _write_table(document: Any, table: TableScope, style_names: set[str]) -> None:
    if not table.rows:
        return
    columns = max(len(row) for row in table.rows)
    if columns == 0:
        return
    written = document.add_table(rows=len(table.rows), cols=columns)
    for row_index, row in enumerate(table.rows):
        for column_index, cell_paragraphs in enumerate(row):
            cell = written.cell(row_index, column_index)
            for position, paragraph in enumerate(cell_paragraphs):
                target = cell.paragraphs[0] if position == 0 else cell.add_paragraph()
                if paragraph.role in style_names:
                    target.style = document.styles[paragraph.role]
                _write_runs(target, paragraph.runs)


def _apply_font(run: Any, font_name: str) -> None:
    family, style = split_font_name(font_name)
    if not family:
        return
    run.font.name = family
    r_fonts = run._element.get_or_add_rPr().get_or_add_rFonts()
    r_fonts.set(qn("w:eastAsia"), family)
    if style == _BOLD_STYLE:
        run.bold = True


def _run_font_name(run: Any) -> str | None:
    family = None
    r_pr = getattr(run._element, "rPr", None)
    if r_pr is not None:
        r_fonts = r_pr.find("w:rFonts", namespaces=NS)
        if r_fonts is not None:
            family = (
                r_fonts.get(qn("w:eastAsia"))
                or r_fonts.get(qn("w:hAnsi"))
                or r_fonts.get(qn("w:ascii"))
            )
    if family is None:
        family = run.font.name
    if not family:
        return None
    return f"{family}\t{_BOLD_STYLE if run.bold else _REGULAR_STYLE}"


def _collect_anchored_items(paragraph: Any) -> list[PageItem]:
    items: list[PageItem] = []
    for index, anchor in enumerate(_iter_nested(paragraph._p, _ANCHOR_TAGS)):
        item_id = f"anchor{index}"
        groups = list(_iter_nested(anchor, (_GROUP_TAG,), stop_tags=(_GROUP_TAG, _TEXT_BOX_TAG)))
        if groups:
            for group_index, group in enumerate(groups):
                items.append(_convert_group(group, f"{item_id}-g{group_index}", paragraph))
            continue
        kind = "vml" if anchor.tag == _ANCHOR_TAGS[1] else "shape"
        for box_index, content in enumerate(_iter_nested(anchor, (_TEXT_BOX_TAG,))):
            paragraphs = _convert_text_box(content, paragraph)
            if kind == "vml":
                items.append(
                    ContentBearingItem(id=f"{item_id}-v{box_index}", paragraphs=paragraphs, kind=kind)
                )
            else:
                items.append(TextContainer(id=f"{item_id}-t{box_index}", paragraphs=paragraphs))
    return items


def _convert_group(group: etree._Element, item_id: str, parent: Any) -> GroupContainer:
    container = GroupContainer(id=item_id)
    for index, child in enumerate(_GROUP_CHILDREN(group)):
        child_id = f"{item_id}-{index}"
        if child.tag == _GROUP_SHAPE_TAG:
            container.children.append(_convert_group(child, child_id, parent))
            continue
        for box_index, content in enumerate(_iter_nested(child, (_TEXT_BOX_TAG,))):
            container.children.append(
                TextContainer(
                    id=f"{child_id}-t{box_index}",
                    paragraphs=_convert_text_box(content, parent),
                )
            )
    return container


def _iter_nested(
    root: etree._Element,
    tags: tuple[str, ...],
    stop_tags: tuple[str, ...] = (_TEXT_BOX_TAG,),
) -> Iterator[etree._Element]:
    for node in root.iter(*tags):
        if node is root:
            continue
        if not _has_ancestor(node, root, stop_tags + (_FALLBACK_TAG,)):
            yield node


def _has_ancestor(node: etree._Element, stop: etree._Element, tags: tuple[str, ...]) -> bool:
    parent = node.getparent()
    while parent is not None and parent is not stop:
        if parent.tag in tags:
            return True
        parent = parent.getparent()
    return False


def _convert_text_box(content: etree._Element, parent: Any) -> list[Paragraph]:
    return [convert_paragraph(DocxParagraph(p, parent)) for p in _TEXT_BOX_PARAGRAPHS(content)]


def _paragraph_has_drawing(paragraph: Any) -> bool:
    element = getattr(paragraph, "_element", None)
    if element is None:
        return False
    for node in element.iter():
        tag = getattr(node, "tag", "")
        if not isinstance(tag, str):
            continue
        if tag.endswith(_INLINE_TAGS):
            return True
    return False


def _iter_block_items(document: Any) -> Iterable[tuple[str, Any]]:
    from docx.oxml.table import CT_Tbl
    from docx.oxml.text.paragraph import CT_P
    from docx.table import Table

    parent = document
    for child in parent.element.body.iterchildren():
        if isinstance(child, CT_P):
            yield ("paragraph", DocxParagraph(child, parent))
        elif isinstance(child, CT_Tbl):
            yield ("table", Table(child, parent))


def _open_document(path: Path) -> Any:
    try:
        return Document(str(path))
    except (BadZipFile, PackageNotFoundError, KeyError) as exc:
        raise ValueError(f"invalid docx file: {path}") from exc

