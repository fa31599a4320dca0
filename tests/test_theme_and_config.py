import sys
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from tests._support import make_fake_curses

sys.modules['curses'] = make_fake_curses()

from dualfm import theme, utils
from dualfm.core import config
from dualfm.core.models import SortMode


class ThemeTests(unittest.TestCase):
    def test_every_theme_covers_every_role(self):
        for item in theme.list_themes():
            self.assertEqual(set(item.pairs_base), set(theme.ROLE_TO_PAIR_ID), item.key)

    def test_unknown_theme_falls_back_to_default(self):
        self.assertEqual(theme.get_theme('nope').key, theme.DEFAULT_THEME)
        self.assertEqual(theme.get_theme(None).key, theme.DEFAULT_THEME)
        self.assertEqual(theme.get_theme('mono').key, 'mono')

    def test_init_colors_registers_every_pair(self):
        calls = []
        with mock.patch.object(utils.curses, 'init_pair', side_effect=lambda *args: calls.append(args), create=True):
            resolved = utils.init_colors('mono')
        self.assertTrue(resolved.monochrome)
        self.assertEqual({pair for pair, _, _ in calls}, set(theme.ROLE_TO_PAIR_ID.values()))

    def test_theme_attr_uses_role_pair(self):
        self.assertEqual(utils.theme_attr('status'), utils.curses.color_pair(theme.ROLE_TO_PAIR_ID['status']))


class ConfigTests(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmp.cleanup)
        self.path = Path(self.tmp.name) / 'cfg' / 'config.toml'

    def write(self, text):
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(text, encoding='utf-8')

    def test_missing_file_gives_defaults(self):
        self.assertEqual(config.load_config(self.path), config.AppConfig())

    def test_default_path_is_under_home(self):
        with mock.patch.object(config.Path, 'home', return_value=Path('/home/tester')):
            self.assertEqual(
                config.default_config_path(), Path('/home/tester/.config/dualfm/config.toml')
            )

    def test_values_are_read_from_sections(self):
        self.write(
            '[ui]\n'
            'theme = "mono"\n'
            'show_hidden = "yes"\n'
            'sort_mode = "SIZE_DESC"\n'
            'file_mask = "*.py :test_*"\n'
            '[archive]\n'
            'compression_level = 9\n'
            'extensions = ["zip", ".TAR.GZ", "zip"]\n'
            '[operations]\n'
            'timestamp_tolerance = 0.5\n'
            'split_part_size = 1024\n'
        )
        cfg = config.load_config(self.path)
        self.assertEqual(cfg.theme, 'mono')
        self.assertTrue(cfg.show_hidden)
        self.assertIs(cfg.sort_mode, SortMode.SIZE_DESC)
        self.assertEqual(cfg.file_mask, '*.py :test_*')
        self.assertEqual(cfg.compression_level, 9)
        self.assertEqual(cfg.archive_extensions, ('.zip', '.tar.gz'))
        self.assertEqual(cfg.timestamp_tolerance, 0.5)
        self.assertEqual(cfg.split_part_size, 1024)

    def test_invalid_values_fall_back(self):
        self.write(
            '[ui]\n'
            'theme = "neon"\n'
            'show_hidden = "maybe"\n'
            'sort_mode = "sideways"\n'
            '[archive]\n'
            'compression_level = 42\n'
            'extensions = "zip"\n'
            '[operations]\n'
            'timestamp_tolerance = -3\n'
            'split_part_size = true\n'
        )
        self.assertEqual(config.load_config(self.path), config.AppConfig())

    def test_broken_toml_gives_defaults(self):
        self.write('[ui\ntheme = ')
        with self.assertLogs('dualfm.core.config', level='WARNING'):
            self.assertEqual(config.load_config(self.path), config.AppConfig())

    def test_save_then_load(self):
        cfg = config.AppConfig(
            theme='mono',
            show_hidden=True,
            sort_mode=SortMode.DATE_ASC,
            file_mask='"quoted" *.md',
            compression_level=0,
            archive_extensions=('.zip',),
            timestamp_tolerance=3.0,
            split_part_size=2048,
        )
        written = config.save_config(cfg, self.path)
        self.assertEqual(written, self.path)
        self.assertTrue(self.path.read_text(encoding='utf-8').startswith('# DualFM user configuration'))
        self.assertEqual(config.load_config(self.path), cfg)

    def test_serialize_omits_unset_extensions(self):
        text = config.serialize_config(config.AppConfig())
        self.assertNotIn('extensions', text)
        self.assertIn('[operations]', text)


if __name__ == '__main__':
    unittest.main()
