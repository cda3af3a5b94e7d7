import unittest
from datetime import datetime

from story_reflow.errors import HostError, ThreadingError
from story_reflow.memory_host import InMemoryDocument, TemplateSpec
from story_reflow.model import Bounds, Margins, PageSide, Paragraph, SurfacePage
from story_reflow.overflow import OverflowResolver, fallback_bounds
from story_reflow.run_log import RunLogState

FRAME = Bounds(top=0, left=0, bottom=30, right=100)
MARGIN = Margins(top=10, bottom=20, inside=30, outside=40)


def _document(template: TemplateSpec | None = None) -> InMemoryDocument:
    template = template or TemplateSpec(
        template_id="body",
        frames={PageSide.LEFT: (FRAME,), PageSide.RIGHT: (FRAME,)},
    )
    return InMemoryDocument(
        page_width=200,
        page_height=300,
        templates=(template,),
        char_size_pt=10,
        line_spacing=1.5,
    )


def _start(document: InMemoryDocument, chars: int) -> int:
    page = document.add_surface("body").pages[-1]
    container_id = document.override_template_frame(page)
    document.place(container_id, [Paragraph.from_text("Normal", "x" * (chars - 1))])
    return container_id


class RejectingDocument(InMemoryDocument):
    def thread(self, previous_id: int, next_id: int) -> None:
        raise ThreadingError("container is locked")


class FailingOverrideDocument(InMemoryDocument):
    def override_template_frame(self, page: SurfacePage) -> int | None:
        raise HostError("master item is locked")


class FallbackBoundsTests(unittest.TestCase):
    def test_facing_pages_mirror_inside_margin(self) -> None:
        left = SurfacePage(id=0, side=PageSide.LEFT, width=200, height=300)
        right = SurfacePage(id=1, side=PageSide.RIGHT, width=200, height=300)
        self.assertEqual(fallback_bounds(left, MARGIN, True), Bounds(10, 40, 280, 170))
        self.assertEqual(fallback_bounds(right, MARGIN, True), Bounds(10, 30, 280, 160))

    def test_single_sided(self) -> None:
        page = SurfacePage(id=0, side=PageSide.SINGLE, width=200, height=300)
        self.assertEqual(fallback_bounds(page, MARGIN, False), Bounds(10, 40, 280, 170))


class OverflowResolverTests(unittest.TestCase):
    def test_resolves_overflow_with_template_frames(self) -> None:
        document = _document()
        head = _start(document, 50)
        result = OverflowResolver(document, max_surfaces=10).resolve(head, "body")
        self.assertEqual(result.surfaces_created, 1)
        self.assertEqual(result.containers_threaded, 2)
        self.assertFalse(result.hit_limit)
        self.assertFalse(document.overflows(result.tail_id))
        self.assertEqual(len(list(document.chain.iter_chain(head))), 3)

    def test_stops_after_first_page_when_overflow_clears(self) -> None:
        document = _document()
        head = _start(document, 30)
        result = OverflowResolver(document).resolve(head, "body")
        self.assertEqual(result.surfaces_created, 1)
        self.assertEqual(result.containers_threaded, 1)

    def test_no_overflow_is_noop(self) -> None:
        document = _document()
        head = _start(document, 5)
        result = OverflowResolver(document).resolve(head, "body")
        self.assertEqual(result.surfaces_created, 0)
        self.assertEqual(result.tail_id, head)

    def test_surface_limit(self) -> None:
        document = _document()
        head = _start(document, 500)
        log_state = RunLogState(source_path=None, start_time=datetime.now())
        result = OverflowResolver(document, max_surfaces=2, log_state=log_state).resolve(head, "body")
        self.assertEqual(result.surfaces_created, 2)
        self.assertTrue(result.hit_limit)
        self.assertTrue(document.overflows(result.tail_id))
        self.assertEqual(len(document.surfaces), 3)
        self.assertTrue(any("limit" in warning.reason for warning in log_state.warnings))

    def test_zero_limit_creates_nothing(self) -> None:
        document = _document()
        head = _start(document, 500)
        result = OverflowResolver(document, max_surfaces=0).resolve(head, "body")
        self.assertEqual(result.surfaces_created, 0)
        self.assertTrue(result.hit_limit)

    def test_negative_limit_rejected(self) -> None:
        with self.assertRaises(ValueError):
            OverflowResolver(_document(), max_surfaces=-1)

    def test_template_without_pages_aborts(self) -> None:
        document = _document()
        head = _start(document, 500)
        document.add_template(TemplateSpec(template_id="empty", page_sides=()))
        result = OverflowResolver(document).resolve(head, "empty")
        self.assertTrue(result.aborted)
        self.assertEqual(result.surfaces_created, 1)

    def test_unknown_template_aborts(self) -> None:
        document = _document()
        head = _start(document, 500)
        result = OverflowResolver(document).resolve(head, "missing")
        self.assertTrue(result.aborted)
        self.assertEqual(result.surfaces_created, 0)

    def test_threading_failure_recorded(self) -> None:
        template = TemplateSpec(
            template_id="body",
            frames={PageSide.LEFT: (FRAME,), PageSide.RIGHT: (FRAME,)},
        )
        document = RejectingDocument(page_width=200, page_height=300, templates=(template,), char_size_pt=10)
        head = _start(document, 500)
        result = OverflowResolver(document, max_surfaces=5).resolve(head, "body")
        self.assertEqual(len(result.failures), 1)
        self.assertEqual(result.failures[0].previous_id, head)
        self.assertIn("locked", result.failures[0].reason)
        self.assertEqual(result.surfaces_created, 1)
        self.assertEqual(result.tail_id, head)

    def test_prefers_largest_untouched_container(self) -> None:
        document = _document(TemplateSpec(template_id="body"))
        page = document.add_surface("body").pages[0]
        small = document.create_container(page, Bounds(0, 0, 10, 10))
        large = document.create_container(page, Bounds(0, 0, 100, 100))
        resolver = OverflowResolver(document)
        self.assertEqual(resolver.obtain_container(page), large)
        document.place(large, [Paragraph.from_text("Normal", "used")])
        self.assertEqual(resolver.obtain_container(page), small)

    def test_falls_back_to_margin_frame(self) -> None:
        document = _document(TemplateSpec(template_id="body"))
        page = document.add_surface("body").pages[0]
        resolver = OverflowResolver(document, fallback_margin=MARGIN)
        container_id = resolver.obtain_container(page)
        self.assertEqual(document.chain.get(container_id).bounds, Bounds(10, 40, 280, 170))

    def test_override_failure_falls_through(self) -> None:
        document = FailingOverrideDocument(
            page_width=200,
            page_height=300,
            templates=(TemplateSpec(template_id="body"),),
        )
        page = document.add_surface("body").pages[0]
        log_state = RunLogState(source_path=None, start_time=datetime.now())
        container_id = OverflowResolver(document, log_state=log_state).obtain_container(page)
        self.assertIsNotNone(container_id)
        self.assertEqual(len(log_state.warnings), 1)


if __name__ == "__main__":
    unittest.main()
