import importlib
import sys
import types
import unittest
from unittest import mock


def _install_fake_curses():
    fake = types.ModuleType("curses")
    fake.KEY_RESIZE = 410
    fake.error = RuntimeError
    fake.doupdate = mock.Mock()
    fake.update_lines_cols = mock.Mock()
    return fake


class EventLoopTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls._prev_curses = sys.modules.get("curses")
        cls.fake_curses = _install_fake_curses()
        sys.modules["curses"] = cls.fake_curses
        sys.modules.pop("dualfm.core.event_loop", None)
        cls.event_loop = importlib.import_module("dualfm.core.event_loop")

    @classmethod
    def tearDownClass(cls):
        sys.modules.pop("dualfm.core.event_loop", None)
        if cls._prev_curses is not None:
            sys.modules["curses"] = cls._prev_curses
        else:
            sys.modules.pop("curses", None)

    def setUp(self):
        self.fake_curses.doupdate.reset_mock()
        self.fake_curses.update_lines_cols.reset_mock()

    def _make_app(self, keys=("a",)):
        stdscr = types.SimpleNamespace(
            erase=mock.Mock(),
            noutrefresh=mock.Mock(),
            get_wch=mock.Mock(side_effect=list(keys)),
        )
        app = types.SimpleNamespace(
            stdscr=stdscr,
            draw=mock.Mock(),
            handle_key=mock.Mock(),
            poll_background_operation=mock.Mock(),
            cleanup=mock.Mock(),
            running=True,
        )
        return app

    def test_draw_frame_erases_draws_and_flushes(self):
        app = self._make_app()

        self.event_loop.draw_frame(app)

        app.stdscr.erase.assert_called_once_with()
        app.draw.assert_called_once_with()
        app.stdscr.noutrefresh.assert_called_once_with()
        self.fake_curses.doupdate.assert_called_once_with()

    def test_read_input_key_returns_none_on_timeout(self):
        stdscr = types.SimpleNamespace(get_wch=mock.Mock(side_effect=RuntimeError("timeout")))

        self.assertIsNone(self.event_loop.read_input_key(stdscr))

    def test_dispatch_ignores_missing_key(self):
        app = self._make_app()

        self.event_loop.dispatch_input(app, None)

        app.handle_key.assert_not_called()

    def test_dispatch_resize_updates_terminal_size(self):
        app = self._make_app()

        self.event_loop.dispatch_input(app, self.fake_curses.KEY_RESIZE)

        self.fake_curses.update_lines_cols.assert_called_once_with()
        app.handle_key.assert_not_called()

    def test_dispatch_forwards_regular_keys(self):
        app = self._make_app()

        self.event_loop.dispatch_input(app, "q")

        app.handle_key.assert_called_once_with("q")

    def test_run_app_loop_until_app_stops(self):
        app = self._make_app(keys=("x", "q"))

        def handle_key(key):
            if key == "q":
                app.running = False

        app.handle_key.side_effect = handle_key

        self.event_loop.run_app_loop(app)

        self.assertEqual(app.handle_key.call_args_list, [mock.call("x"), mock.call("q")])
        self.assertEqual(app.draw.call_count, 2)
        self.assertEqual(app.poll_background_operation.call_count, 4)
        app.cleanup.assert_called_once_with()

    def test_run_app_loop_cleans_up_after_error(self):
        app = self._make_app()
        app.handle_key.side_effect = ValueError("boom")

        with self.assertRaises(ValueError):
            self.event_loop.run_app_loop(app)

        app.cleanup.assert_called_once_with()


if __name__ == "__main__":
    unittest.main()
