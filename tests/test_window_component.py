import os
import sys
import tempfile
import unittest

from tests._support import FakeScreen, make_fake_curses, write_file

sys.modules['curses'] = make_fake_curses()

from dualfm.core.actions import ActionResult, ActionType
from dualfm.core.archives.registry import default_registry
from dualfm.core.pane import PaneState
from dualfm.ui import window as window_mod
from dualfm.ui.window import DualPaneWindow

curses = window_mod.curses


class DualPaneWindowTests(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmp.cleanup)
        self.left_dir = os.path.join(self.tmp.name, 'left')
        self.right_dir = os.path.join(self.tmp.name, 'right')
        for name in ('a.txt', 'b.txt', 'c.log'):
            write_file(self.left_dir, name, b'x' * 10)
        write_file(self.left_dir, 'sub/inner.txt')
        os.makedirs(self.right_dir)
        registry = default_registry()
        self.left = PaneState(self.left_dir, registry=registry)
        self.right = PaneState(self.right_dir, registry=registry)
        self.left.reload()
        self.right.reload()
        self.win = DualPaneWindow(self.left, self.right)

    def test_arrow_keys_move_cursor(self):
        self.assertEqual(self.win.handle_key(curses.KEY_DOWN), ActionResult(ActionType.REFRESH))
        self.assertEqual(self.left.cursor, 1)
        self.win.handle_key(curses.KEY_END)
        self.assertEqual(self.left.cursor, 3)
        self.win.handle_key(curses.KEY_PPAGE)
        self.assertEqual(self.left.cursor, 0)

    def test_tab_switches_active_pane(self):
        self.win.handle_key('\t')
        self.assertIs(self.win.active, self.right)
        self.assertIs(self.win.inactive, self.left)
        self.win.handle_key(curses.KEY_DOWN)
        self.assertEqual(self.left.cursor, 0)

    def test_enter_and_backspace_navigate(self):
        self.assertEqual(self.left.selected_entry.name, 'sub')
        self.assertEqual(self.win.handle_key('\n'), ActionResult(ActionType.REFRESH))
        self.assertEqual(self.left.directory, os.path.join(self.left_dir, 'sub'))
        self.win.handle_key(curses.KEY_BACKSPACE)
        self.assertEqual(self.left.directory, self.left_dir)
        self.assertEqual(self.left.selected_entry.name, 'sub')

    def test_enter_on_plain_file_is_ignored(self):
        self.left.cursor = 1
        self.assertIsNone(self.win.handle_key('\n'))

    def test_insert_marks_and_advances(self):
        self.left.cursor = 1
        self.win.handle_key(curses.KEY_IC)
        self.win.handle_key(' ')
        self.assertEqual([e.name for e in self.left.marked_entries()], ['a.txt', 'b.txt'])
        self.assertEqual(self.left.cursor, 3)
        self.win.handle_key('-')
        self.assertEqual(self.left.marked_entries(), [])
        self.win.handle_key('*')
        self.assertEqual(len(self.left.marked_entries()), 4)

    def test_function_keys_request_operations(self):
        expected = {
            curses.KEY_F2: ActionType.REQUEST_RENAME,
            curses.KEY_F5: ActionType.REQUEST_COPY,
            curses.KEY_F6: ActionType.REQUEST_MOVE,
            curses.KEY_F7: ActionType.REQUEST_MKDIR,
            curses.KEY_F8: ActionType.REQUEST_DELETE,
            curses.KEY_DC: ActionType.REQUEST_DELETE,
            curses.KEY_F10: ActionType.QUIT,
        }
        for key, action in expected.items():
            self.assertEqual(self.win.handle_key(key), ActionResult(action), key)

    def test_letter_shortcuts(self):
        expected = {
            's': ActionType.REQUEST_SPLIT,
            'j': ActionType.REQUEST_JOIN,
            'c': ActionType.REQUEST_COMPARE,
            'p': ActionType.REQUEST_PACK,
            'u': ActionType.REQUEST_UNPACK,
            'm': ActionType.REQUEST_MASK,
            '+': ActionType.REQUEST_MARK_MASK,
            'z': ActionType.REQUEST_DIR_SIZE,
            'q': ActionType.QUIT,
        }
        for key, action in expected.items():
            self.assertEqual(self.win.handle_key(key).type, action, key)
        self.assertIsNone(self.win.handle_key('x'))
        self.assertIsNone(self.win.handle_key(None))

    def test_sort_and_hidden_toggles_report_status(self):
        result = self.win.handle_key('o')
        self.assertEqual(result.type, ActionType.STATUS)
        self.assertEqual(result.payload, 'Sort: Name v')
        result = self.win.handle_key('h')
        self.assertEqual(result.payload, 'Hidden files hidden')

    def test_draw_renders_both_panes(self):
        self.left.toggle_mark(1)
        screen = FakeScreen(height=24, width=240)
        self.win.draw(screen)
        text = screen.text()
        self.assertIn(self.left_dir, text)
        self.assertIn(self.right_dir, text)
        self.assertIn('a.txt', text)
        self.assertIn('1 marked, 10B', text)
        self.assertIn('0 items', text)
        self.assertEqual(self.win.page_height, 24 - 2 - 3)

    def test_draw_on_tiny_terminal(self):
        screen = FakeScreen(height=10, width=30)
        self.win.draw(screen)
        self.assertIn('Terminal too small', screen.text())

    def test_draw_shows_listing_error(self):
        self.right.error_message = 'Permission denied'
        screen = FakeScreen(height=24, width=100)
        self.win.draw(screen)
        self.assertIn('Error: Permission denied', screen.text())


if __name__ == '__main__':
    unittest.main()
