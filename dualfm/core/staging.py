"""
Glue between archive panes and the real-path operations engine.

Archive members are never copied directly: they are extracted into a
private staging directory and copied from there, so collision prompts and
progress look exactly like a copy between two real directories.
"""
import logging
import os
import tempfile
from dataclasses import replace

from .models import OperationResult

LOGGER = logging.getLogger(__name__)


def real_target_error(pane):
    """Failure result when ``pane`` cannot receive files, else None."""
    if pane.is_in_virtual_folder:
        return OperationResult.failure(
            f'Cannot write into {os.path.basename(pane.virtual_archive_path)}; '
            'pack files into a new archive instead.'
        )
    return None


def _extraction_progress(progress):
    """Relabel extraction events so the staging phase is visible in the dialog."""
    if progress is None:
        return None

    def report(event):
        progress(replace(event, current_file=f'Extracting {event.current_file}'))

    return report


def _stage_and_copy(registry, engine, archive_path, internal_paths, dest_dir, token, on_collision, progress):
    with tempfile.TemporaryDirectory(prefix='dualfm-stage-') as stage:
        extracted = registry.extract_entries(
            archive_path, internal_paths, stage, token=token, progress=_extraction_progress(progress)
        )
        if not extracted.success:
            return extracted
        sources = [os.path.join(stage, name) for name in sorted(os.listdir(stage))]
        LOGGER.debug('Staged %d item(s) from %s', len(sources), archive_path)
        if not sources:
            return OperationResult(True, 'Nothing to copy.')
        return engine.copy(sources, dest_dir, token=token, on_collision=on_collision, progress=progress)


def copy_out_of_archive(registry, engine, pane, entries, dest_dir, token=None, on_collision=None, progress=None):
    """Copy entries of a virtual pane into the real directory ``dest_dir``."""
    if not pane.is_in_virtual_folder:
        return engine.copy(entries, dest_dir, token=token, on_collision=on_collision, progress=progress)
    internal_paths = [entry.full_path for entry in entries]
    if not internal_paths:
        return OperationResult.failure('Nothing selected.')
    return _stage_and_copy(
        registry, engine, pane.virtual_archive_path, internal_paths, dest_dir, token, on_collision, progress
    )


def unpack_archive(registry, engine, archive_path, dest_dir, token=None, on_collision=None, progress=None):
    """Extract a whole archive into ``dest_dir`` asking about collisions."""
    return _stage_and_copy(registry, engine, archive_path, [''], dest_dir, token, on_collision, progress)


def delete_from_archive(registry, pane, entries, token=None):
    """Remove entries of a virtual pane from its archive."""
    internal_paths = [entry.full_path for entry in entries]
    if not internal_paths:
        return OperationResult.failure('Nothing selected.')
    return registry.delete_entries(pane.virtual_archive_path, internal_paths, token=token)
