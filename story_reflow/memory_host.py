from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Iterable

from .errors import HostError
from .model import (
    Bounds,
    ContainerChain,
    ContentUnit,
    LayoutContainer,
    LayoutSurface,
    PageSide,
    Paragraph,
    SurfacePage,
    TableScope,
)


@dataclass(frozen=True)
class TemplateSpec:
    template_id: str
    page_sides: tuple[PageSide, ...] = (PageSide.LEFT, PageSide.RIGHT)
    frames: dict[PageSide, tuple[Bounds, ...]] = field(default_factory=dict)


class InMemoryDocument:
    def __init__(
        self,
        page_width: float = 515.9,
        page_height: float = 728.5,
        facing_pages: bool = True,
        styles: Iterable[str] = (),
        fonts: Iterable[str] = (),
        templates: Iterable[TemplateSpec] = (),
        char_size_pt: float = 10.5,
        line_spacing: float = 1.5,
    ) -> None:
        if char_size_pt <= 0 or line_spacing <= 0:
            raise ValueError("char_size_pt and line_spacing must be positive")
        self.page_width = page_width
        self.page_height = page_height
        self.facing_pages = facing_pages
        self.char_size_pt = char_size_pt
        self.line_spacing = line_spacing
        self.chain = ContainerChain()
        self.surfaces: list[LayoutSurface] = []
        self.stories: dict[int, ContentUnit] = {}
        self.redraw_enabled = True
        self._pages: dict[int, SurfacePage] = {}
        self._styles: set[str] = set(styles)
        self._fonts: set[str] = set(fonts)
        self._templates: dict[str, TemplateSpec] = {}
        for template in templates:
            self.add_template(template)

    def has_style(self, name: str) -> bool:
        return name in self._styles

    def add_style(self, name: str) -> None:
        self._styles.add(name)

    def find_font(self, name: str) -> str | None:
        return name if name in self._fonts else None

    def add_font(self, name: str) -> None:
        self._fonts.add(name)

    def has_template(self, template_id: str) -> bool:
        return template_id in self._templates

    def add_template(self, template: TemplateSpec) -> None:
        self._templates[template.template_id] = template

    def add_surface(self, template_id: str) -> LayoutSurface:
        template = self._templates.get(template_id)
        if template is None:
            raise HostError(f"unknown template: {template_id}")
        surface = LayoutSurface(id=len(self.surfaces), template_id=template_id)
        for side in template.page_sides:
            page_side = side if self.facing_pages else PageSide.SINGLE
            page = SurfacePage(
                id=len(self._pages),
                side=page_side,
                width=self.page_width,
                height=self.page_height,
                template_frames=list(template.frames.get(side, ())),
            )
            self._pages[page.id] = page
            surface.pages.append(page)
        self.surfaces.append(surface)
        return surface

    def page(self, page_id: int) -> SurfacePage:
        try:
            return self._pages[page_id]
        except KeyError as exc:
            raise HostError(f"unknown page: {page_id}") from exc

    def last_page(self) -> SurfacePage | None:
        for surface in reversed(self.surfaces):
            if surface.pages:
                return surface.pages[-1]
        return None

    def page_containers(self, page: SurfacePage) -> list[LayoutContainer]:
        return [self.chain.get(container_id) for container_id in page.container_ids]

    def override_template_frame(self, page: SurfacePage) -> int | None:
        if not page.template_frames:
            return None
        bounds = page.template_frames.pop(0)
        container = self.chain.add(page.id, bounds, from_template=True)
        page.container_ids.append(container.id)
        return container.id

    def create_container(self, page: SurfacePage, bounds: Bounds) -> int:
        container = self.chain.add(page.id, bounds)
        page.container_ids.append(container.id)
        return container.id

    def thread(self, previous_id: int, next_id: int) -> None:
        self.chain.link(previous_id, next_id)

    def capacity(self, container_id: int) -> int:
        bounds = self.chain.get(container_id).bounds
        if bounds is None:
            return 0
        per_line = math.floor(bounds.width / self.char_size_pt)
        lines = math.floor(bounds.height / (self.char_size_pt * self.line_spacing))
        return max(0, per_line) * max(0, lines)

    def place(
        self,
        container_id: int,
        paragraphs: Iterable[Paragraph],
        tables: Iterable[TableScope] = (),
    ) -> ContentUnit:
        container = self.chain.get(container_id)
        if container.story_id is None:
            story = ContentUnit(id=len(self.stories))
            self.stories[story.id] = story
            for item in self.chain.iter_chain(container_id):
                item.story_id = story.id
        else:
            story = self.stories[container.story_id]
        story.append(paragraphs, tables)
        return story

    def overflows(self, container_id: int) -> bool:
        container = self.chain.get(container_id)
        if container.story_id is None or container.next is not None:
            return False
        story = self.stories[container.story_id]
        total = sum(self.capacity(item.id) for item in self.chain.iter_chain(container_id))
        return story.text_length > total
