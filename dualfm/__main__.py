"""
Entry point for DualFM.
"""
import argparse
import curses
import locale
import logging
import os

from . import __version__
from .core.app import DualFM
from .core.config import AppConfig, default_config_path, load_config, save_config

# Ensure UTF-8
try:
    locale.setlocale(locale.LC_ALL, '')
except locale.Error:
    pass

LOGGER = logging.getLogger('dualfm')


def configure_logging(environ=None):
    """Enable debug logging when DUALFM_DEBUG is set; DUALFM_LOG names a log file."""
    environ = os.environ if environ is None else environ
    if not environ.get('DUALFM_DEBUG'):
        return False
    options = {
        'level': logging.DEBUG,
        'format': '[%(levelname)s] %(name)s: %(message)s',
    }
    if environ.get('DUALFM_LOG'):
        options['filename'] = environ['DUALFM_LOG']
    logging.basicConfig(**options)
    return True


def build_parser():
    parser = argparse.ArgumentParser(prog='dualfm', description='Dual-pane terminal file manager.')
    parser.add_argument('paths', nargs='*', help='Start directories for the left and right panes')
    parser.add_argument('--config', help=f'Config file (default: {default_config_path()})')
    parser.add_argument('--init-config', action='store_true', help='Write a default config file and exit')
    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')
    return parser


def main(stdscr, config=None, start_paths=()):
    app = DualFM(stdscr, config=config, start_paths=start_paths)
    app.run()


def run(argv=None):
    """Run DualFM and return process exit code."""
    args = build_parser().parse_args(argv)
    configure_logging()

    if args.init_config:
        path = save_config(AppConfig(), args.config)
        print(f'Wrote {path}')
        return 0

    for path in args.paths[:2]:
        if not os.path.isdir(os.path.expanduser(path)):
            print(f'Error: not a directory: {path}')
            return 2

    config = load_config(args.config)
    try:
        curses.wrapper(main, config, args.paths[:2])
        return 0
    except KeyboardInterrupt:
        return 130
    except Exception as e:
        # Any crash: restore the terminal, then report.
        LOGGER.error('DualFM crashed', exc_info=True)
        try:
            curses.endwin()
        except curses.error:
            pass
        print(f'\nError: {e}')
        import traceback
        traceback.print_exc()
        return 1


def main_cli():
    """Console script entrypoint."""
    return run()


if __name__ == '__main__':
    raise SystemExit(main_cli())
