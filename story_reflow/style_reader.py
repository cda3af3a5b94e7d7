from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from zipfile import BadZipFile, ZipFile

from docx.styles import BabelFish
from lxml import etree

from .model import Bounds, Margins, PageSide

W_NS = "http://schemas.openxmlformats.org/wordprocessingml/2006/main"
NS = {"w": W_NS}

_DEFAULT_PAGE_WIDTH_PT = 595.3
_DEFAULT_PAGE_HEIGHT_PT = 841.9
_DEFAULT_MARGIN_PT = 72.0


@dataclass(frozen=True)
class StyleEntry:
    style_id: str
    name: str
    style_type: str


@dataclass(frozen=True)
class PageSetup:
    width: float
    height: float
    margins: Margins
    facing_pages: bool

    def text_frame(self, side: PageSide) -> Bounds:
        if side == PageSide.LEFT:
            left = self.margins.outside
            right = self.width - self.margins.inside
        else:
            left = self.margins.inside
            right = self.width - self.margins.outside
        return Bounds(
            top=self.margins.top,
            left=left,
            bottom=self.height - self.margins.bottom,
            right=right,
        )


def read_styles(docx_path: str | Path) -> list[StyleEntry]:
    path = Path(docx_path)
    ensure_readable_file(path)
    styles_bytes = _read_part(path, "word/styles.xml")
    if styles_bytes is None:
        raise ValueError(f"missing required part in docx: word/styles.xml ({path})")
    return parse_styles(styles_bytes)


def read_style_names(docx_path: str | Path, style_type: str | None = "paragraph") -> set[str]:
    names: set[str] = set()
    for entry in read_styles(docx_path):
        if style_type is not None and entry.style_type != style_type:
            continue
        names.add(entry.name)
    return names


def parse_styles(xml_bytes: bytes) -> list[StyleEntry]:
    root = _parse_xml(xml_bytes, "styles.xml")
    entries: list[StyleEntry] = []
    for style in root.findall("w:style", namespaces=NS):
        style_id = style.get(_attr_name("styleId"))
        if not style_id:
            continue
        name_elem = style.find("w:name", namespaces=NS)
        raw_name = _attr(name_elem, "val") or style_id
        entries.append(
            StyleEntry(
                style_id=style_id,
                name=BabelFish.internal2ui(raw_name),
                style_type=style.get(_attr_name("type")) or "paragraph",
            )
        )
    return entries


def read_page_setup(docx_path: str | Path) -> PageSetup:
    path = Path(docx_path)
    ensure_readable_file(path)
    document_bytes = _read_part(path, "word/document.xml")
    if document_bytes is None:
        raise ValueError(f"missing required part in docx: word/document.xml ({path})")
    settings_bytes = _read_part(path, "word/settings.xml")
    return parse_page_setup(document_bytes, settings_bytes)


def parse_page_setup(document_bytes: bytes, settings_bytes: bytes | None = None) -> PageSetup:
    root = _parse_xml(document_bytes, "document.xml")
    sect_pr = root.find("w:body/w:sectPr", namespaces=NS)
    if sect_pr is None:
        found = root.findall(".//w:sectPr", namespaces=NS)
        sect_pr = found[-1] if found else None
    pg_sz = sect_pr.find("w:pgSz", namespaces=NS) if sect_pr is not None else None
    pg_mar = sect_pr.find("w:pgMar", namespaces=NS) if sect_pr is not None else None

    width = _twips_to_pt(_attr(pg_sz, "w")) or _DEFAULT_PAGE_WIDTH_PT
    height = _twips_to_pt(_attr(pg_sz, "h")) or _DEFAULT_PAGE_HEIGHT_PT
    top = _margin(pg_mar, "top")
    bottom = _margin(pg_mar, "bottom")
    left = _margin(pg_mar, "left")
    right = _margin(pg_mar, "right")
    gutter = _twips_to_pt(_attr(pg_mar, "gutter")) or 0.0

    facing_pages = False
    if settings_bytes is not None:
        settings_root = _parse_xml(settings_bytes, "settings.xml")
        mirror = settings_root.find("w:mirrorMargins", namespaces=NS)
        facing_pages = mirror is not None and _parse_on_off(mirror)
    return PageSetup(
        width=width,
        height=height,
        margins=Margins(top=top, bottom=bottom, inside=left + gutter, outside=right),
        facing_pages=facing_pages,
    )


def ensure_readable_file(path: Path) -> None:
    if not path.exists():
        raise FileNotFoundError(f"docx not found: {path}")
    if not path.is_file():
        raise IsADirectoryError(f"docx path is not a file: {path}")
    try:
        with path.open("rb"):
            pass
    except PermissionError as exc:
        raise PermissionError(f"docx is not readable: {path}") from exc


def _read_part(path: Path, part_name: str) -> bytes | None:
    try:
        with ZipFile(path) as archive:
            try:
                return archive.read(part_name)
            except KeyError:
                return None
    except BadZipFile as exc:
        raise ValueError(f"invalid docx file: {path}") from exc


def _parse_xml(xml_bytes: bytes, part_name: str) -> etree._Element:
    try:
        return etree.fromstring(xml_bytes)
    except etree.XMLSyntaxError as exc:
        raise ValueError(f"invalid {part_name}: {exc}") from exc


def _margin(elem: etree._Element | None, name: str) -> float:
    value = _twips_to_pt(_attr(elem, name))
    if value is None:
        return _DEFAULT_MARGIN_PT
    return abs(value)


def _attr(elem: etree._Element | None, name: str) -> str | None:
    if elem is None:
        return None
    return elem.get(_attr_name(name))


def _attr_name(name: str) -> str:
    return f"{{{W_NS}}}{name}"


def _parse_int(value: str | None) -> int | None:
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        return None


def _twips_to_pt(value: str | None) -> float | None:
    numeric = _parse_int(value)
    if numeric is None:
        return None
    return numeric / 20.0


def _parse_on_off(elem: etree._Element) -> bool:
    val = _attr(elem, "val")
    if val is None:
        return True
    return val.lower() not in {"0", "false", "off"}
