from __future__ import annotations

from contextlib import contextmanager
from typing import Iterable, Iterator, Protocol

from .model import Bounds, ContainerChain, ContentUnit, LayoutSurface, Paragraph, SurfacePage, TableScope


class StyleCatalog(Protocol):
    def has_style(self, name: str) -> bool: ...


class FontCatalog(Protocol):
    def find_font(self, name: str) -> str | None: ...


class TemplateSurfaceFactory(Protocol):
    def has_template(self, template_id: str) -> bool: ...

    def add_surface(self, template_id: str) -> LayoutSurface: ...


class LayoutHost(TemplateSurfaceFactory, Protocol):
    chain: ContainerChain
    facing_pages: bool

    def overflows(self, container_id: int) -> bool: ...

    def thread(self, previous_id: int, next_id: int) -> None: ...

    def override_template_frame(self, page: SurfacePage) -> int | None: ...

    def create_container(self, page: SurfacePage, bounds: Bounds) -> int: ...

    def last_page(self) -> SurfacePage | None: ...

    def place(
        self,
        container_id: int,
        paragraphs: Iterable[Paragraph],
        tables: Iterable[TableScope] = (),
    ) -> ContentUnit: ...


class RedrawControl(Protocol):
    redraw_enabled: bool


@contextmanager
def suspended_redraw(host: RedrawControl) -> Iterator[None]:
    previous = host.redraw_enabled
    host.redraw_enabled = False
    try:
        yield
    finally:
        host.redraw_enabled = previous


class ReflowHost(LayoutHost, StyleCatalog, FontCatalog, RedrawControl, Protocol):
    pass
