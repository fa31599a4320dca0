"""
DualFM application: panes, dialogs and background file operations.
"""
import logging
import os
import re

from ..constants import INPUT_TIMEOUT_MS, KEY_BAR_ITEMS
from ..ui.dialog import ChoiceDialog, CollisionDialog, Dialog, InputDialog, ProgressDialog
from ..ui.window import DualPaneWindow
from ..utils import init_colors, safe_addstr, theme_attr
from . import staging
from .actions import ActionResult, ActionType
from .archives import default_registry
from .background import BackgroundOperation
from .bootstrap import configure_terminal
from .config import load_config
from .event_loop import run_app_loop
from .models import ComparisonCriteria, OperationResult, format_size
from .operations import FileOperations
from .pane import PaneState

LOGGER = logging.getLogger(__name__)

_SIZE_SUFFIXES = {'': 1, 'k': 1024, 'm': 1024 ** 2, 'g': 1024 ** 3}


def parse_size(text):
    """Parse ``1457664``, ``700k`` or ``1.5M`` into bytes; None if invalid."""
    match = re.fullmatch(r'\s*(\d+(?:\.\d+)?)\s*([kKmMgG]?)[bB]?\s*', str(text or ''))
    if not match:
        return None
    value = int(float(match.group(1)) * _SIZE_SUFFIXES[match.group(2).lower()])
    return value if value > 0 else None


def find_part_files(first_part):
    """Return the sorted sibling parts of ``name.001`` style files, and the joined name."""
    directory, name = os.path.split(first_part)
    base, dot, number = name.rpartition('.')
    if not dot or not number.isdigit():
        return [], None
    pattern = re.compile(re.escape(base) + r'\.\d{%d,}$' % len(number))
    parts = sorted(
        (os.path.join(directory, item) for item in os.listdir(directory or '.') if pattern.match(item)),
        key=lambda path: int(path.rpartition('.')[2]),
    )
    return parts, base


class DualFM:
    """Main application class."""

    def __init__(self, stdscr, config=None, start_paths=(), registry=None):
        self.stdscr = stdscr
        self.running = True
        self.dialog = None
        self.status_message = ''
        self.config = config if config is not None else load_config()
        self.registry = registry if registry is not None else default_registry(self.config.archive_extensions)
        self.engine = FileOperations()
        self._background_operation = None
        self._progress_dialog = None

        paths = [path for path in start_paths if path] or [os.getcwd()]
        left = self._make_pane(paths[0])
        right = self._make_pane(paths[1] if len(paths) > 1 else paths[0])
        self.window = DualPaneWindow(left, right)

        configure_terminal(stdscr, timeout_ms=INPUT_TIMEOUT_MS)
        self.theme = init_colors(self.config.theme)

    def _make_pane(self, path):
        pane = PaneState(
            path,
            registry=self.registry,
            sort_mode=self.config.sort_mode,
            mask=self.config.file_mask,
            show_hidden=self.config.show_hidden,
        )
        pane.reload(keep_marks=False)
        return pane

    @property
    def active_pane(self):
        return self.window.active

    @property
    def other_pane(self):
        return self.window.inactive

    def cleanup(self):
        """Cancel and wait for a running operation before the terminal is restored."""
        op = self._background_operation
        if op is None:
            return
        op.cancel()
        thread = op.thread
        if thread is not None and thread.is_alive():
            thread.join(timeout=op.JOIN_TIMEOUT)
            if thread.is_alive():
                LOGGER.warning(
                    'Background operation did not finish within %.1fs during shutdown.',
                    op.JOIN_TIMEOUT,
                )

    # ------------------------------------------------------------------
    # Drawing
    # ------------------------------------------------------------------

    def draw_statusbar(self):
        h, w = self.stdscr.getmaxyx()
        text = self.status_message or self.active_pane.current_path
        safe_addstr(self.stdscr, h - 2, 0, f' {text}'.ljust(w), theme_attr('status'))

    def draw_keybar(self):
        h, w = self.stdscr.getmaxyx()
        attr = theme_attr('keybar')
        safe_addstr(self.stdscr, h - 1, 0, ' ' * w, attr)
        x = 0
        for key, label in KEY_BAR_ITEMS:
            item = f'{key} {label}  '
            safe_addstr(self.stdscr, h - 1, x, item, attr)
            x += len(item)

    def draw(self):
        self.window.draw(self.stdscr)
        self.draw_statusbar()
        self.draw_keybar()
        if self.dialog:
            self.dialog.draw(self.stdscr)

    # ------------------------------------------------------------------
    # Input / dispatch
    # ------------------------------------------------------------------

    def handle_key(self, key):
        if self.dialog:
            self._handle_dialog_key(key)
            return
        self.status_message = ''
        self._dispatch_window_result(self.window.handle_key(key))

    def _handle_dialog_key(self, key):
        """Handle keyboard events when a modal dialog is open."""
        dialog = self.dialog
        result = dialog.handle_key(key)
        if result < 0:
            return
        op = self._background_operation
        if isinstance(dialog, ProgressDialog):
            if op is not None:
                op.cancel()
                self.status_message = 'Cancelling...'
            return
        if isinstance(dialog, CollisionDialog):
            if op is not None:
                op.prompt.answer(dialog.decision_for(result))
            self.dialog = self._progress_dialog
            return
        self._resolve_dialog_result(result)

    def _resolve_dialog_result(self, result_idx):
        """Apply dialog button result and run dialog callback when needed."""
        if result_idx < 0 or not self.dialog:
            return

        dialog = self.dialog
        callback = getattr(dialog, 'callback', None)
        callback_result = None

        if isinstance(dialog, ChoiceDialog):
            if result_idx < len(dialog.buttons) - 1 and callable(callback):
                callback_result = callback(result_idx)
        elif result_idx == 0 and callable(callback):
            if isinstance(dialog, InputDialog):
                callback_result = callback(dialog.value)
            else:
                callback_result = callback()

        if self.dialog is dialog:
            self.dialog = None
        if callback_result is not None:
            self._dispatch_window_result(callback_result)

    def _dispatch_window_result(self, result):
        if result is None:
            return
        if isinstance(result, OperationResult):
            self._finish_operation(result)
            return
        handlers = {
            ActionType.REQUEST_COPY: lambda: self.show_transfer_dialog(move=False),
            ActionType.REQUEST_MOVE: lambda: self.show_transfer_dialog(move=True),
            ActionType.REQUEST_DELETE: self.show_delete_confirm_dialog,
            ActionType.REQUEST_RENAME: self.show_rename_dialog,
            ActionType.REQUEST_MKDIR: self.show_new_dir_dialog,
            ActionType.REQUEST_SPLIT: self.show_split_dialog,
            ActionType.REQUEST_JOIN: self.show_join_dialog,
            ActionType.REQUEST_COMPARE: self.show_compare_dialog,
            ActionType.REQUEST_PACK: self.show_pack_dialog,
            ActionType.REQUEST_UNPACK: self.show_unpack_dialog,
            ActionType.REQUEST_MASK: self.show_mask_dialog,
            ActionType.REQUEST_MARK_MASK: self.show_mark_mask_dialog,
            ActionType.REQUEST_DIR_SIZE: self.show_directory_size,
        }
        if result.type == ActionType.REFRESH:
            return
        if result.type == ActionType.STATUS:
            self.status_message = str(result.payload or '')
        elif result.type == ActionType.ERROR:
            self.dialog = Dialog('Error', str(result.payload or 'Unknown error'), ['OK'], width=56)
        elif result.type == ActionType.QUIT:
            if self._background_operation is not None:
                self.status_message = 'Cancel the running operation first.'
            else:
                self.running = False
        elif result.type in handlers:
            outcome = handlers[result.type]()
            if outcome is not None:
                self._dispatch_window_result(outcome)

    def _error(self, message):
        return ActionResult(ActionType.ERROR, message)

    # ------------------------------------------------------------------
    # Background operations
    # ------------------------------------------------------------------

    def has_background_operation(self):
        return self._background_operation is not None

    def _start_background_operation(self, *, title, message, worker):
        """Run a blocking engine call in a worker thread and show progress."""
        if self._background_operation is not None:
            return self._error('Another operation is already running.')
        dialog = ProgressDialog(title, message, width=62)
        op = BackgroundOperation(worker, title)
        self._background_operation = op
        self._progress_dialog = dialog
        self.dialog = dialog
        op.start()
        return None

    def poll_background_operation(self):
        """Advance progress state, surface collision prompts and finish operations."""
        op = self._background_operation
        if op is None:
            return
        dialog = self._progress_dialog
        dialog.set_elapsed(op.elapsed)
        dialog.set_progress(op.progress)

        pending = op.prompt.pending_path
        if pending and self.dialog is dialog:
            self.dialog = CollisionDialog(pending)

        result = op.poll()
        if result is None:
            return
        if self.dialog is dialog or isinstance(self.dialog, CollisionDialog):
            self.dialog = None
        self._background_operation = None
        self._progress_dialog = None
        self._finish_operation(result, cancelled=op.token.is_cancelled)

    def _finish_operation(self, result, cancelled=False):
        for pane in self.window.panes:
            pane.reload(keep_marks=not result.success)
        self.status_message = result.message
        LOGGER.info('Operation finished: %s', result.message)
        if result.success or cancelled:
            return
        details = result.message
        if result.errors:
            shown = '\n'.join(result.errors[:5])
            details = f'{result.message}\n\n{shown}'
        self.dialog = Dialog('Operation failed', details, ['OK'], width=64)

    # ------------------------------------------------------------------
    # Dialog flows
    # ------------------------------------------------------------------

    def _selection_or_error(self, verb):
        entries = self.active_pane.entries_for_operation()
        if not entries:
            return None, self._error(f'Nothing selected to {verb}.')
        return entries, None

    @staticmethod
    def _describe(entries):
        if len(entries) == 1:
            return entries[0].name
        return f'{len(entries)} items'

    def show_transfer_dialog(self, move=False):
        verb = 'move' if move else 'copy'
        entries, error = self._selection_or_error(verb)
        if error:
            return error
        source = self.active_pane
        if move and source.is_in_virtual_folder:
            return self._error('Cannot move out of an archive; copy instead.')
        target_error = staging.real_target_error(self.other_pane)
        initial = '' if target_error else self.other_pane.directory
        title = 'Move' if move else 'Copy'
        dialog = InputDialog(title, f'{title} {self._describe(entries)} to:', initial_value=initial, width=64)
        dialog.callback = lambda dest: self.start_transfer(entries, source, dest, move=move)
        self.dialog = dialog
        return None

    def start_transfer(self, entries, source, dest, move=False):
        dest = os.path.abspath(os.path.expanduser(str(dest or '').strip() or '.'))
        if not os.path.isdir(dest):
            return self._error(f'Destination directory does not exist: {dest}')
        title = 'Moving' if move else 'Copying'
        message = f'{title} {self._describe(entries)}\nto {dest}'
        if source.is_in_virtual_folder:
            registry, engine = self.registry, self.engine

            def worker(op):
                return staging.copy_out_of_archive(
                    registry, engine, source, entries, dest,
                    token=op.token, on_collision=op.prompt, progress=op.report,
                )
        else:
            verb = self.engine.move if move else self.engine.copy

            def worker(op):
                return verb(entries, dest, token=op.token, on_collision=op.prompt, progress=op.report)

        return self._start_background_operation(title=title, message=message, worker=worker)

    def show_delete_confirm_dialog(self):
        entries, error = self._selection_or_error('delete')
        if error:
            return error
        pane = self.active_pane
        where = f'\nfrom {os.path.basename(pane.virtual_archive_path)}' if pane.is_in_virtual_folder else ''
        dialog = Dialog('Confirm Delete', f'Delete {self._describe(entries)}?{where}', ['Delete', 'Cancel'], width=56)
        dialog.callback = lambda: self.start_delete(entries, pane)
        self.dialog = dialog
        return None

    def start_delete(self, entries, pane):
        if pane.is_in_virtual_folder:
            registry = self.registry

            def worker(op):
                return staging.delete_from_archive(registry, pane, entries, token=op.token)
        else:
            def worker(op):
                return self.engine.delete(entries, token=op.token, progress=op.report)

        return self._start_background_operation(
            title='Deleting', message=f'Deleting {self._describe(entries)}', worker=worker
        )

    def show_rename_dialog(self):
        pane = self.active_pane
        if pane.is_in_virtual_folder:
            return self._error('Entries inside an archive cannot be renamed.')
        entries, error = self._selection_or_error('rename')
        if error:
            return error
        if len(entries) == 1:
            entry = entries[0]
            dialog = InputDialog('Rename', f'Rename:\n{entry.name}', initial_value=entry.name, width=60)
            dialog.callback = lambda new_name: self.engine.rename([entry], entry.name, new_name.strip())
        else:
            prompt = f'Rename {len(entries)} items.\nFind text, s/regex/repl/ or tr/abc/xyz/:'
            dialog = InputDialog('Rename', prompt, width=60)
            dialog.callback = lambda find: self._rename_pattern(entries, find)
        self.dialog = dialog
        return None

    def _rename_pattern(self, entries, find):
        if not find:
            return None
        if find.startswith(('s/', 'tr/')):
            return self.engine.rename(entries, find)
        dialog = InputDialog('Rename', f'Replace "{find}" with:', width=60)
        dialog.callback = lambda replace: self.engine.rename(entries, find, replace)
        self.dialog = dialog
        return None

    def show_new_dir_dialog(self):
        pane = self.active_pane
        if pane.is_in_virtual_folder:
            return self._error('Cannot create folders inside an archive.')
        dialog = InputDialog('New Folder', 'Enter folder name:', width=52)

        def _create(name):
            result = self.engine.create_directory(pane.directory, name)
            if result.success:
                pane.reload(focus_name=name.strip())
                self.status_message = result.message
                return None
            return self._error(result.message)

        dialog.callback = _create
        self.dialog = dialog
        return None

    def _real_selected_file(self, verb):
        pane = self.active_pane
        entry = pane.selected_entry
        if pane.is_in_virtual_folder or entry is None or entry.is_directory:
            return None, self._error(f'Select a file to {verb}.')
        return entry, None

    def show_split_dialog(self):
        entry, error = self._real_selected_file('split')
        if error:
            return error
        target_error = staging.real_target_error(self.other_pane)
        if target_error:
            return self._error(target_error.message)
        output_dir = self.other_pane.directory
        prompt = f'Split {entry.name} ({format_size(entry.size)})\ninto {output_dir}\n\nPart size (bytes, k, M):'
        dialog = InputDialog('Split', prompt, initial_value=str(self.config.split_part_size), width=60)
        dialog.callback = lambda text: self.start_split(entry, text, output_dir)
        self.dialog = dialog
        return None

    def start_split(self, entry, size_text, output_dir):
        part_size = parse_size(size_text)
        if part_size is None:
            return self._error(f'Invalid part size: {size_text}')

        def worker(op):
            return self.engine.split(entry.full_path, part_size, output_dir, token=op.token, progress=op.report)

        return self._start_background_operation(
            title='Splitting', message=f'Splitting {entry.name}', worker=worker
        )

    def show_join_dialog(self):
        entry, error = self._real_selected_file('join')
        if error:
            return error
        parts, base = find_part_files(entry.full_path)
        if not parts:
            return self._error('Select the first part of a split file (name.001).')
        target_error = staging.real_target_error(self.other_pane)
        if target_error:
            return self._error(target_error.message)
        dest_dir = self.other_pane.directory
        prompt = f'Join {len(parts)} parts into {dest_dir}\n\nFile name:'
        dialog = InputDialog('Join', prompt, initial_value=base, width=60)
        dialog.callback = lambda name: self.start_join(parts, os.path.join(dest_dir, name.strip() or base))
        self.dialog = dialog
        return None

    def start_join(self, parts, dest_file):
        if os.path.exists(dest_file):
            dialog = Dialog('Join', f'{os.path.basename(dest_file)} exists. Overwrite?', ['Overwrite', 'Cancel'], width=56)
            dialog.callback = lambda: self._run_join(parts, dest_file)
            self.dialog = dialog
            return None
        return self._run_join(parts, dest_file)

    def _run_join(self, parts, dest_file):
        def worker(op):
            return self.engine.join(parts, dest_file, token=op.token, progress=op.report)

        return self._start_background_operation(
            title='Joining', message=f'Joining into {os.path.basename(dest_file)}', worker=worker
        )

    def show_compare_dialog(self):
        criteria = (ComparisonCriteria.NAME, ComparisonCriteria.SIZE, ComparisonCriteria.TIMESTAMP)
        dialog = ChoiceDialog('Compare panes', 'Mark files that match by:', ['Name', 'Size', 'Time', 'Cancel'], width=56)
        dialog.callback = lambda idx: self.compare_panes(criteria[idx])
        self.dialog = dialog
        return None

    def compare_panes(self, criteria):
        left, right = self.window.panes
        result = self.engine.compare_files(left, right, criteria, tolerance=self.config.timestamp_tolerance)
        if not result.success:
            return self._error(result.message)
        return ActionResult(ActionType.STATUS, result.message)

    def show_pack_dialog(self):
        pane = self.active_pane
        if pane.is_in_virtual_folder:
            return self._error('Cannot pack entries that are inside an archive.')
        entries, error = self._selection_or_error('pack')
        if error:
            return error
        target_error = staging.real_target_error(self.other_pane)
        if target_error:
            return self._error(target_error.message)
        formats = self.registry.supported_formats()
        if not formats:
            return self._error('No writable archive formats available.')
        labels = [fmt.value for fmt in formats] + ['Cancel']
        dialog = ChoiceDialog('Pack', f'Pack {self._describe(entries)} as:', labels, width=max(56, sum(len(l) + 6 for l in labels) + 8))
        dialog.callback = lambda idx: self._ask_archive_name(entries, formats[idx])
        self.dialog = dialog
        return None

    def _ask_archive_name(self, entries, fmt):
        base = entries[0].name if len(entries) == 1 else os.path.basename(self.active_pane.directory) or 'archive'
        dest_dir = self.other_pane.directory
        dialog = InputDialog('Pack', f'Archive name in {dest_dir}:', initial_value=base + fmt.value, width=60)
        dialog.callback = lambda name: self.start_pack(entries, os.path.join(dest_dir, name.strip()), fmt)
        self.dialog = dialog
        return None

    def start_pack(self, entries, archive_path, fmt):
        if os.path.exists(archive_path):
            return self._error(f'{os.path.basename(archive_path)} already exists.')
        level = self.config.compression_level

        def worker(op):
            return self.registry.compress(
                entries, archive_path, fmt=fmt, compression_level=level, progress=op.report, token=op.token
            )

        return self._start_background_operation(
            title='Packing', message=f'Packing into {os.path.basename(archive_path)}', worker=worker
        )

    def show_unpack_dialog(self):
        pane = self.active_pane
        if pane.is_in_virtual_folder:
            return self.show_transfer_dialog(move=False)
        entry = pane.selected_entry
        if entry is None or not entry.is_archive:
            return self._error('Select an archive to unpack.')
        target_error = staging.real_target_error(self.other_pane)
        if target_error:
            return self._error(target_error.message)
        dest = self.other_pane.directory
        dialog = InputDialog('Unpack', f'Unpack {entry.name} to:', initial_value=dest, width=64)
        dialog.callback = lambda target: self.start_unpack(entry, target)
        self.dialog = dialog
        return None

    def start_unpack(self, entry, dest):
        dest = os.path.abspath(os.path.expanduser(str(dest or '').strip() or '.'))
        if not os.path.isdir(dest):
            return self._error(f'Destination directory does not exist: {dest}')
        registry, engine = self.registry, self.engine

        def worker(op):
            return staging.unpack_archive(
                registry, engine, entry.full_path, dest,
                token=op.token, on_collision=op.prompt, progress=op.report,
            )

        return self._start_background_operation(
            title='Unpacking', message=f'Unpacking {entry.name}', worker=worker
        )

    def show_mask_dialog(self):
        pane = self.active_pane
        prompt = 'File mask (e.g. *.txt :*.bak /^img\\d+/i):'
        dialog = InputDialog('Filter', prompt, initial_value=pane.mask, width=60)

        def _apply(mask):
            pane.set_mask(mask)
            return ActionResult(ActionType.STATUS, f'Mask: {pane.mask}')

        dialog.callback = _apply
        self.dialog = dialog
        return None

    def show_mark_mask_dialog(self):
        pane = self.active_pane
        dialog = InputDialog('Mark files', 'Mark entries matching:', initial_value='*', width=56)
        dialog.callback = lambda mask: ActionResult(
            ActionType.STATUS, f'Marked {pane.mark_by_mask(mask)} entries matching {mask}'
        )
        self.dialog = dialog
        return None

    def show_directory_size(self):
        pane = self.active_pane
        entry = pane.selected_entry
        if pane.is_in_virtual_folder or entry is None or not entry.is_directory:
            return self._error('Select a folder to measure.')

        def worker(op):
            size, files, dirs = self.engine.calculate_directory_size(entry.full_path, token=op.token)
            return OperationResult(
                True, f'{entry.name}: {format_size(size)} in {files} files, {dirs} folders',
                files_processed=files, bytes_processed=size,
            )

        return self._start_background_operation(
            title='Measuring', message=f'Measuring {entry.name}', worker=worker
        )

    def run(self):
        """Main event loop."""
        return run_app_loop(self)
