from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Iterator, Union

from .errors import ThreadingError


class PageSide(str, Enum):
    LEFT = "left"
    RIGHT = "right"
    SINGLE = "single"


@dataclass(frozen=True)
class Bounds:
    top: float
    left: float
    bottom: float
    right: float

    @property
    def width(self) -> float:
        return max(0.0, self.right - self.left)

    @property
    def height(self) -> float:
        return max(0.0, self.bottom - self.top)

    @property
    def area(self) -> float:
        return self.width * self.height


@dataclass(frozen=True)
class Margins:
    top: float
    bottom: float
    inside: float
    outside: float


@dataclass
class CharacterRun:
    text: str
    font_name: str | None = None
    point_size: float | None = None


@dataclass(frozen=True)
class NumberingMark:
    restart: bool
    start_at: int = 1


@dataclass
class Paragraph:
    role: str
    runs: list[CharacterRun] = field(default_factory=list)
    has_inline_object: bool = False
    anchored_items: list["PageItem"] = field(default_factory=list)
    numbering: NumberingMark | None = None

    @classmethod
    def from_text(
        cls,
        role: str,
        text: str,
        font_name: str | None = None,
        has_inline_object: bool = False,
    ) -> "Paragraph":
        return cls(
            role=role,
            runs=[CharacterRun(text=text, font_name=font_name)],
            has_inline_object=has_inline_object,
        )

    @property
    def text(self) -> str:
        return "".join(run.text for run in self.runs)

    def insert_text(self, offset: int, text: str) -> None:
        current = self.text
        if offset < 0 or offset > len(current):
            raise IndexError(f"insertion offset out of range: {offset}")
        if not self.runs:
            self.runs.append(CharacterRun(text=text))
            return
        position = 0
        for run in self.runs:
            end = position + len(run.text)
            if offset <= end:
                local = offset - position
                run.text = run.text[:local] + text + run.text[local:]
                return
            position = end

    def delete_leading(self, count: int) -> None:
        if count <= 0:
            return
        remaining = count
        for run in self.runs:
            if remaining <= 0:
                break
            taken = min(len(run.text), remaining)
            run.text = run.text[taken:]
            remaining -= taken
        kept = [run for run in self.runs if run.text]
        if not kept and self.runs:
            kept = [self.runs[0]]
        self.runs = kept

    def set_text(self, text: str) -> None:
        first = self.runs[0] if self.runs else CharacterRun(text="")
        self.runs = [CharacterRun(text=text, font_name=first.font_name, point_size=first.point_size)]


@dataclass
class TextContainer:
    id: str
    paragraphs: list[Paragraph] = field(default_factory=list)


@dataclass
class ContentBearingItem:
    id: str
    paragraphs: list[Paragraph] = field(default_factory=list)
    kind: str = "shape"


@dataclass
class GroupContainer:
    id: str
    children: list["PageItem"] = field(default_factory=list)


PageItem = Union[TextContainer, GroupContainer, ContentBearingItem]


def iter_page_items(items: Iterable[PageItem]) -> Iterator[TextContainer | ContentBearingItem]:
    for item in items:
        if isinstance(item, GroupContainer):
            yield from iter_page_items(item.children)
        else:
            yield item


@dataclass
class TableScope:
    rows: list[list[list[Paragraph]]] = field(default_factory=list)

    def iter_cells(self) -> Iterator[list[Paragraph]]:
        for row in self.rows:
            yield from row

    def iter_runs(self) -> Iterator[CharacterRun]:
        for cell in self.iter_cells():
            for paragraph in cell:
                yield from paragraph.runs


@dataclass
class ContentUnit:
    id: int
    paragraphs: list[Paragraph] = field(default_factory=list)
    tables: list[TableScope] = field(default_factory=list)

    def __iter__(self) -> Iterator[Paragraph]:
        return iter(self.paragraphs)

    def __len__(self) -> int:
        return len(self.paragraphs)

    def append(
        self,
        paragraphs: Iterable[Paragraph],
        tables: Iterable[TableScope] = (),
    ) -> int:
        added = list(paragraphs)
        self.paragraphs.extend(added)
        self.tables.extend(tables)
        return len(added)

    def iter_runs(self) -> Iterator[CharacterRun]:
        for paragraph in self.paragraphs:
            yield from paragraph.runs

    def anchored_items(self) -> list[PageItem]:
        items: list[PageItem] = []
        for paragraph in self.paragraphs:
            items.extend(paragraph.anchored_items)
        return items

    @property
    def text_length(self) -> int:
        return sum(len(paragraph.text) + 1 for paragraph in self.paragraphs)


@dataclass
class LayoutContainer:
    id: int
    page_id: int
    bounds: Bounds | None
    from_template: bool = False
    previous: int | None = None
    next: int | None = None
    story_id: int | None = None

    @property
    def threaded(self) -> bool:
        return self.previous is not None or self.next is not None


@dataclass
class SurfacePage:
    id: int
    side: PageSide
    width: float
    height: float
    container_ids: list[int] = field(default_factory=list)
    template_frames: list[Bounds] = field(default_factory=list)


@dataclass
class LayoutSurface:
    id: int
    template_id: str | None
    pages: list[SurfacePage] = field(default_factory=list)


class ContainerChain:
    def __init__(self) -> None:
        self._containers: list[LayoutContainer] = []

    def __len__(self) -> int:
        return len(self._containers)

    def __iter__(self) -> Iterator[LayoutContainer]:
        return iter(self._containers)

    def add(
        self,
        page_id: int,
        bounds: Bounds | None,
        from_template: bool = False,
    ) -> LayoutContainer:
        container = LayoutContainer(
            id=len(self._containers),
            page_id=page_id,
            bounds=bounds,
            from_template=from_template,
        )
        self._containers.append(container)
        return container

    def get(self, container_id: int) -> LayoutContainer:
        if container_id < 0 or container_id >= len(self._containers):
            raise KeyError(f"unknown container: {container_id}")
        return self._containers[container_id]

    def head(self, container_id: int) -> int:
        current = self.get(container_id)
        for _ in range(len(self._containers)):
            if current.previous is None:
                break
            current = self.get(current.previous)
        return current.id

    def tail(self, container_id: int) -> int:
        current = self.get(container_id)
        for _ in range(len(self._containers)):
            if current.next is None:
                break
            current = self.get(current.next)
        return current.id

    def iter_chain(self, container_id: int) -> Iterator[LayoutContainer]:
        current: LayoutContainer | None = self.get(self.head(container_id))
        seen: set[int] = set()
        while current is not None and current.id not in seen:
            seen.add(current.id)
            yield current
            current = self.get(current.next) if current.next is not None else None

    def link(self, previous_id: int, next_id: int) -> None:
        if previous_id == next_id:
            raise ThreadingError(f"cannot thread container {previous_id} to itself")
        previous = self.get(previous_id)
        following = self.get(next_id)
        if previous.next is not None:
            raise ThreadingError(f"container {previous_id} is already threaded forward")
        if following.previous is not None:
            raise ThreadingError(f"container {next_id} is already threaded backward")
        if any(item.id == next_id for item in self.iter_chain(previous_id)):
            raise ThreadingError(f"threading {previous_id} -> {next_id} would form a cycle")
        if following.story_id is not None and following.story_id != previous.story_id:
            raise ThreadingError(f"container {next_id} already holds another story")
        previous.next = next_id
        following.previous = previous_id
        for item in self.iter_chain(next_id):
            item.story_id = previous.story_id

    def unlink(self, container_id: int) -> None:
        container = self.get(container_id)
        if container.previous is not None:
            self.get(container.previous).next = container.next
        if container.next is not None:
            self.get(container.next).previous = container.previous
        container.previous = None
        container.next = None
        container.story_id = None
