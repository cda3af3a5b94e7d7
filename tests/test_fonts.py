import unittest
from datetime import datetime

from story_reflow.errors import FontReadError
from story_reflow.fonts import (
    DenyPattern,
    FontNormalizer,
    FontTarget,
    RoleRunFormatter,
    match_deny_pattern,
    resolve_target,
)
from story_reflow.memory_host import InMemoryDocument
from story_reflow.model import CharacterRun, ContentUnit, Paragraph, TableScope
from story_reflow.run_log import RunLogState

STORY_DENY = (DenyPattern(("MS", "明朝", "Bold")), DenyPattern(("ＭＳ", "明朝", "Bold")))
TABLE_DENY = (DenyPattern(("MS", "明朝")), DenyPattern(("Mincho",)))
TARGET = FontTarget(
    regular=("BIZ UDGothic\tRegular", "BIZ UDゴシック\tRegular"),
    bold=("BIZ UDGothic\tBold", "BIZ UDゴシック\tBold"),
)


class UnreadableRun(CharacterRun):
    @property
    def font_name(self) -> str | None:
        raise FontReadError("font reference missing")

    @font_name.setter
    def font_name(self, value: str | None) -> None:
        pass


def _unit(*runs: CharacterRun) -> ContentUnit:
    return ContentUnit(id=0, paragraphs=[Paragraph(role="Normal", runs=list(runs))])


class FontHelperTests(unittest.TestCase):
    def test_deny_pattern_requires_every_part(self) -> None:
        self.assertTrue(DenyPattern(("MS", "明朝", "Bold")).matches("MS 明朝\tBold"))
        self.assertFalse(DenyPattern(("MS", "明朝", "Bold")).matches("MS 明朝\tRegular"))
        self.assertIsNone(match_deny_pattern("Meiryo\tBold", STORY_DENY))
        with self.assertRaises(ValueError):
            DenyPattern(()).validate()

    def test_resolve_target_prefers_first_available(self) -> None:
        catalog = InMemoryDocument(fonts=("BIZ UDゴシック\tRegular",))
        resolved = resolve_target(catalog, TARGET)
        self.assertEqual(resolved.regular, "BIZ UDゴシック\tRegular")
        self.assertEqual(resolved.bold, "BIZ UDゴシック\tRegular")
        self.assertIsNone(resolve_target(InMemoryDocument(), TARGET))


class FontNormalizerTests(unittest.TestCase):
    def setUp(self) -> None:
        self.catalog = InMemoryDocument(fonts=TARGET.names())

    def test_replaces_only_denied_fonts(self) -> None:
        unit = _unit(
            CharacterRun("a", "ＭＳ 明朝\tBold"),
            CharacterRun("b", "ＭＳ 明朝\tRegular"),
            CharacterRun("c", "Meiryo\tBold"),
            CharacterRun("d", None),
        )
        result = FontNormalizer(self.catalog).normalize(unit, STORY_DENY, TARGET)
        fonts = [run.font_name for run in unit.iter_runs()]
        self.assertEqual(fonts, ["BIZ UDGothic\tBold", "ＭＳ 明朝\tRegular", "Meiryo\tBold", None])
        self.assertEqual(result.replaced, 1)
        self.assertEqual(result.scanned, 4)

    def test_no_denied_font_remains(self) -> None:
        unit = _unit(
            CharacterRun("a", "MS 明朝\tBold"),
            CharacterRun("b", "MS 明朝\tRegular"),
            CharacterRun("c", "MS Mincho\tRegular"),
        )
        FontNormalizer(self.catalog).normalize(unit, TABLE_DENY, TARGET)
        for run in unit.iter_runs():
            self.assertIsNone(match_deny_pattern(run.font_name, TABLE_DENY))

    def test_second_pass_replaces_nothing(self) -> None:
        unit = _unit(CharacterRun("a", "ＭＳ 明朝\tBold"), CharacterRun("b", "MS 明朝\tBold"))
        normalizer = FontNormalizer(self.catalog)
        first = normalizer.normalize(unit, STORY_DENY, TARGET)
        fonts = [run.font_name for run in unit.iter_runs()]
        second = normalizer.normalize(unit, STORY_DENY, TARGET)
        self.assertEqual(first.replaced, 2)
        self.assertEqual(second.replaced, 0)
        self.assertEqual(second.scanned, 2)
        self.assertEqual([run.font_name for run in unit.iter_runs()], fonts)

    def test_table_scope(self) -> None:
        table = TableScope(rows=[[[Paragraph.from_text("Normal", "cell", "MS Mincho\tRegular")]]])
        result = FontNormalizer(self.catalog, stage="table_fonts").normalize(table, TABLE_DENY, TARGET)
        self.assertEqual(result.replaced, 1)
        self.assertEqual(next(table.iter_runs()).font_name, "BIZ UDGothic\tRegular")

    def test_missing_target_is_reported(self) -> None:
        unit = _unit(CharacterRun("a", "MS 明朝\tBold"))
        log_state = RunLogState(source_path=None, start_time=datetime.now())
        result = FontNormalizer(InMemoryDocument(), log_state).normalize(unit, STORY_DENY, TARGET)
        self.assertTrue(result.target_missing)
        self.assertEqual(result.replaced, 0)
        self.assertEqual(unit.paragraphs[0].runs[0].font_name, "MS 明朝\tBold")
        self.assertEqual(log_state.warnings[0].stage, "fonts")

    def test_unreadable_runs_counted(self) -> None:
        unit = _unit(UnreadableRun("a"), CharacterRun("b", "MS 明朝\tBold"))
        log_state = RunLogState(source_path=None, start_time=datetime.now())
        result = FontNormalizer(self.catalog, log_state).normalize(unit, STORY_DENY, TARGET)
        self.assertEqual(result.unreadable, 1)
        self.assertEqual(result.replaced, 1)
        self.assertEqual(len(log_state.warnings), 1)


class RoleRunFormatterTests(unittest.TestCase):
    def setUp(self) -> None:
        self.catalog = InMemoryDocument(fonts=TARGET.names())

    def _unit(self) -> ContentUnit:
        return ContentUnit(
            id=0,
            paragraphs=[
                Paragraph(
                    role="小項目",
                    runs=[CharacterRun("□　", "Meiryo\tRegular", 9.0), CharacterRun("準備", None)],
                ),
                Paragraph.from_text("リスト", "・　項目", "ＭＳ 明朝\tRegular"),
                Paragraph.from_text("Normal", "本文", "Meiryo\tRegular"),
            ],
        )

    def test_bold_target_and_size_on_every_run(self) -> None:
        unit = self._unit()
        result = RoleRunFormatter(self.catalog).apply(
            unit, "小項目", TARGET, bold=True, point_size=10.5
        )
        self.assertEqual(result.formatted, 1)
        runs = unit.paragraphs[0].runs
        self.assertEqual([run.font_name for run in runs], ["BIZ UDGothic\tBold"] * 2)
        self.assertEqual([run.point_size for run in runs], [10.5, 10.5])
        self.assertEqual(unit.paragraphs[2].runs[0].font_name, "Meiryo\tRegular")

    def test_regular_target_for_list_role(self) -> None:
        unit = self._unit()
        result = RoleRunFormatter(self.catalog).apply(unit, "リスト", TARGET, point_size=10.5)
        self.assertEqual(result.formatted, 1)
        run = unit.paragraphs[1].runs[0]
        self.assertEqual((run.font_name, run.point_size), ("BIZ UDGothic\tRegular", 10.5))

    def test_second_pass_formats_nothing(self) -> None:
        unit = self._unit()
        formatter = RoleRunFormatter(self.catalog)
        formatter.apply(unit, "小項目", TARGET, bold=True, point_size=10.5)
        second = formatter.apply(unit, "小項目", TARGET, bold=True, point_size=10.5)
        self.assertEqual(second.formatted, 0)
        self.assertEqual(second.already_formatted, 1)

    def test_size_left_alone_without_point_size(self) -> None:
        unit = self._unit()
        RoleRunFormatter(self.catalog).apply(unit, "小項目", TARGET, bold=True)
        self.assertEqual([run.point_size for run in unit.paragraphs[0].runs], [9.0, None])

    def test_missing_target_and_unreadable_runs(self) -> None:
        log_state = RunLogState(source_path=None, start_time=datetime.now())
        unit = self._unit()
        missing = RoleRunFormatter(InMemoryDocument(), log_state).apply(unit, "リスト", TARGET)
        self.assertTrue(missing.target_missing)
        self.assertEqual(unit.paragraphs[1].runs[0].font_name, "ＭＳ 明朝\tRegular")

        locked = ContentUnit(id=0, paragraphs=[Paragraph(role="リスト", runs=[UnreadableRun("a")])])
        result = RoleRunFormatter(self.catalog, log_state).apply(locked, "リスト", TARGET)
        self.assertEqual(result.failed, 1)
        self.assertEqual([entry.stage for entry in log_state.warnings], ["role_format", "role_format"])


if __name__ == "__main__":
    unittest.main()
