import os
import tempfile
import unittest
import zipfile

from dualfm.core.archives.registry import default_registry
from dualfm.core.models import CollisionAction, CollisionDecision
from dualfm.core.operations import FileOperations
from dualfm.core.pane import PaneState
from dualfm.core.staging import copy_out_of_archive, delete_from_archive, real_target_error, unpack_archive
from tests._support import read_file, write_file


class StagingTests(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmp.cleanup)
        self.root = self.tmp.name
        self.archive = os.path.join(self.root, 'pack.zip')
        with zipfile.ZipFile(self.archive, 'w') as zf:
            zf.writestr('top.txt', b'top')
            zf.writestr('folder1/file2.txt', b'two')
            zf.writestr('folder1/subfolder/file3.txt', b'three')
        self.dest = os.path.join(self.root, 'dest')
        os.mkdir(self.dest)
        self.registry = default_registry()
        self.engine = FileOperations()
        self.pane = PaneState(self.root, registry=self.registry)
        self.pane.enter_archive(self.archive)

    def entries(self, *names):
        return [entry for entry in self.pane.entries if entry.name in names]

    def test_real_target_error_only_for_archives(self):
        self.assertIsNotNone(real_target_error(self.pane))
        self.assertIn('pack.zip', real_target_error(self.pane).message)
        self.assertIsNone(real_target_error(PaneState(self.root)))

    def test_copy_folder_out_of_archive(self):
        events = []
        result = copy_out_of_archive(
            self.registry, self.engine, self.pane, self.entries('folder1', 'top.txt'), self.dest,
            progress=events.append,
        )
        self.assertTrue(result.success, result.message)
        self.assertEqual(read_file(self.dest, 'folder1/subfolder/file3.txt'), b'three')
        self.assertEqual(read_file(self.dest, 'top.txt'), b'top')
        self.assertEqual(events[-1].total_files, 3)

    def test_copy_out_reports_extraction_before_copy(self):
        events = []
        result = copy_out_of_archive(
            self.registry, self.engine, self.pane, self.entries('top.txt'), self.dest, progress=events.append,
        )
        self.assertTrue(result.success, result.message)
        names = [event.current_file for event in events]
        self.assertEqual(names[0], 'Extracting top.txt')
        self.assertEqual(names[-1], 'top.txt')

    def test_copy_out_asks_about_collisions(self):
        write_file(self.dest, 'top.txt', b'mine')
        asked = []

        def on_collision(path):
            asked.append(path)
            return CollisionDecision(CollisionAction.SKIP)

        result = copy_out_of_archive(
            self.registry, self.engine, self.pane, self.entries('top.txt'), self.dest, on_collision=on_collision,
        )
        self.assertEqual(asked, [os.path.join(self.dest, 'top.txt')])
        self.assertEqual(result.files_skipped, 1)
        self.assertEqual(read_file(self.dest, 'top.txt'), b'mine')

    def test_copy_from_real_pane_goes_straight_to_engine(self):
        src = write_file(self.root, 'plain.txt', b'p')
        pane = PaneState(self.root, registry=self.registry)
        result = copy_out_of_archive(self.registry, self.engine, pane, [src], self.dest)
        self.assertTrue(result.success)
        self.assertEqual(read_file(self.dest, 'plain.txt'), b'p')

    def test_copy_out_nothing_selected(self):
        result = copy_out_of_archive(self.registry, self.engine, self.pane, [], self.dest)
        self.assertFalse(result.success)

    def test_unpack_whole_archive(self):
        result = unpack_archive(self.registry, self.engine, self.archive, self.dest)
        self.assertTrue(result.success, result.message)
        self.assertEqual(sorted(os.listdir(self.dest)), ['folder1', 'top.txt'])

    def test_unpack_corrupt_archive_fails(self):
        bad = write_file(self.root, 'bad.zip', b'junk')
        result = unpack_archive(self.registry, self.engine, bad, self.dest)
        self.assertFalse(result.success)
        self.assertEqual(os.listdir(self.dest), [])

    def test_delete_from_archive(self):
        result = delete_from_archive(self.registry, self.pane, self.entries('folder1'))
        self.assertTrue(result.success, result.message)
        self.pane.reload()
        self.assertEqual([e.name for e in self.pane.entries], ['top.txt'])


if __name__ == '__main__':
    unittest.main()
