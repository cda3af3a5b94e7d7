import json
import unittest
from pathlib import Path
from tempfile import TemporaryDirectory

from story_reflow.fonts import DenyPattern
from story_reflow.model import Margins
from story_reflow.settings import ReflowConfig, config_from_dict, load_config


class ReflowConfigTests(unittest.TestCase):
    def test_defaults_validate(self) -> None:
        settings = ReflowConfig()
        settings.validate()
        self.assertEqual(settings.max_surfaces, 100)
        self.assertEqual(settings.effective_required_styles(), ("小項目", "リスト", "番号リスト"))
        self.assertTrue(settings.compiled_ordinal_pattern().match("12) step"))
        self.assertIsNone(settings.compiled_ordinal_pattern().match("step 1"))

    def test_load_config_none_returns_defaults(self) -> None:
        self.assertEqual(load_config(None), ReflowConfig())

    def test_validate_rejects_negative_limits(self) -> None:
        with self.assertRaises(ValueError):
            ReflowConfig(max_surfaces=-1).validate()
        with self.assertRaises(ValueError):
            ReflowConfig(fallback_margin=Margins(top=-1, bottom=0, inside=0, outside=0)).validate()

    def test_validate_rejects_invisible_symbol(self) -> None:
        with self.assertRaises(ValueError):
            ReflowConfig(marker_symbol="　").validate()

    def test_validate_rejects_bad_pattern(self) -> None:
        with self.assertRaises(ValueError):
            ReflowConfig(ordinal_pattern="^[0-9").validate()

    def test_validate_rejects_denied_target(self) -> None:
        settings = ReflowConfig(deny_patterns=(DenyPattern(required=("Gothic",)),))
        with self.assertRaises(ValueError):
            settings.validate()

    def test_with_overrides_validates(self) -> None:
        settings = ReflowConfig().with_overrides(max_surfaces=3)
        self.assertEqual(settings.max_surfaces, 3)
        with self.assertRaises(ValueError):
            ReflowConfig().with_overrides(max_surfaces=-5)

    def test_config_from_dict_overrides(self) -> None:
        settings = config_from_dict(
            {
                "max_surfaces": 4,
                "auto_create_pages": False,
                "fallback_margin": {"inside": 60},
                "style_mapping": {"見出し": "大見出し1"},
                "strip_markers": [{"source_role": "見出し", "target_role": "大見出し1", "marker": "◆"}],
                "table_deny_patterns": ["Mincho", ["MS", "明朝"]],
                "target_fonts": ["Noto Sans JP\tRegular"],
                "code_style": None,
                "required_styles": ["小項目"],
            }
        )
        self.assertEqual(settings.max_surfaces, 4)
        self.assertFalse(settings.auto_create_pages)
        self.assertEqual(settings.fallback_margin.inside, 60.0)
        self.assertEqual(settings.fallback_margin.top, 36.0)
        self.assertEqual(len(settings.style_rules), 1)
        self.assertEqual(settings.style_rules[0].strip_marker, "◆")
        self.assertEqual(
            settings.table_deny_patterns,
            (DenyPattern(required=("Mincho",)), DenyPattern(required=("MS", "明朝"))),
        )
        self.assertEqual(settings.target_font.regular, ("Noto Sans JP\tRegular",))
        self.assertEqual(settings.target_font.bold, ReflowConfig().target_font.bold)
        self.assertIsNone(settings.code_style)
        self.assertEqual(settings.effective_required_styles(), ("小項目",))

    def test_config_from_dict_rejects_unknown_and_bad_types(self) -> None:
        with self.assertRaises(ValueError):
            config_from_dict({"max_pages": 3})
        with self.assertRaises(ValueError):
            config_from_dict({"max_surfaces": "3"})
        with self.assertRaises(ValueError):
            config_from_dict({"max_surfaces": True})
        with self.assertRaises(ValueError):
            config_from_dict({"fallback_margin": {"gutter": 3}})
        with self.assertRaises(ValueError):
            config_from_dict({"style_rules": [], "style_mapping": {}})
        with self.assertRaises(ValueError):
            config_from_dict([])

    def test_font_size_override(self) -> None:
        self.assertEqual(ReflowConfig().font_size, 10.5)
        self.assertEqual(config_from_dict({"font_size": 12}).font_size, 12.0)
        self.assertIsNone(config_from_dict({"font_size": None}).font_size)
        with self.assertRaises(ValueError):
            config_from_dict({"font_size": "12pt"})
        with self.assertRaises(ValueError):
            config_from_dict({"font_size": 0})

    def test_to_dict_is_json_ready(self) -> None:
        payload = ReflowConfig().to_dict()
        json.dumps(payload, ensure_ascii=False)
        self.assertEqual(payload["marker_symbol"], "□　")
        self.assertEqual(payload["style_rules"][0]["source_role"], "Heading 1")

    def test_load_config_file_errors(self) -> None:
        with TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            with self.assertRaises(FileNotFoundError):
                load_config(root / "missing.json")
            with self.assertRaises(ValueError):
                load_config(root)
            broken = root / "broken.json"
            broken.write_text("{", encoding="utf-8")
            with self.assertRaises(ValueError):
                load_config(broken)
            valid = root / "valid.json"
            valid.write_text(json.dumps({"template_id": "B-本文"}), encoding="utf-8")
            self.assertEqual(load_config(valid).template_id, "B-本文")


if __name__ == "__main__":
    unittest.main()
