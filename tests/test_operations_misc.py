import os
import re
import tempfile
import unittest

from dualfm.core.cancellation import CancellationToken
from dualfm.core.models import FileEntry
from dualfm.core.operations import FileOperations, apply_rename_pattern, invalid_name_reason
from tests._support import read_file, write_file


class OpsTestCase(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmp.cleanup)
        self.root = self.tmp.name
        self.ops = FileOperations()

    def path(self, *parts):
        return os.path.join(self.root, *parts)

    def entry(self, name):
        return FileEntry.from_path(self.path(name))


class DeleteTests(OpsTestCase):
    def test_delete_files_and_trees(self):
        write_file(self.root, 'a.txt', b'aaa')
        write_file(self.root, 'tree/b.txt', b'b')
        write_file(self.root, 'tree/deep/c.txt', b'c')
        events = []
        result = self.ops.delete([self.entry('a.txt'), self.entry('tree')], progress=events.append)
        self.assertTrue(result.success, result.message)
        self.assertEqual(result.files_processed, 2)
        self.assertEqual(os.listdir(self.root), [])
        self.assertEqual(events[-1].current_file_index, 3)
        self.assertEqual(events[-1].bytes_processed, 5)

    def test_already_missing_counts_as_done(self):
        result = self.ops.delete([self.path('ghost.txt')])
        self.assertTrue(result.success, result.message)
        self.assertEqual(result.files_processed, 1)

    def test_cancel_before_start(self):
        write_file(self.root, 'a.txt')
        token = CancellationToken()
        token.cancel()
        result = self.ops.delete([self.path('a.txt')], token=token)
        self.assertFalse(result.success)
        self.assertTrue(os.path.exists(self.path('a.txt')))
        self.assertIn('cancelled', result.message)

    def test_cancel_inside_tree(self):
        for idx in range(4):
            write_file(self.root, f'tree/{idx}.txt')
        token = CancellationToken()
        result = self.ops.delete([self.path('tree')], token=token, progress=lambda event: token.cancel())
        self.assertFalse(result.success)
        self.assertEqual(result.files_processed, 0)
        self.assertEqual(len(os.listdir(self.path('tree'))), 3)


class RenamePatternTests(unittest.TestCase):
    def test_plain_substring(self):
        self.assertEqual(apply_rename_pattern('photo_001.jpg', 'photo', 'img'), 'img_001.jpg')
        self.assertEqual(apply_rename_pattern('same.txt', ''), 'same.txt')

    def test_regex_substitution_with_groups(self):
        self.assertEqual(apply_rename_pattern('IMG_0042.JPG', r's/IMG_(\d+)/photo-$1/'), 'photo-0042.JPG')
        self.assertEqual(apply_rename_pattern('Report.TXT', 's/\\.txt$/.md/i'), 'Report.md')

    def test_transliteration(self):
        self.assertEqual(apply_rename_pattern('a b c.txt', 'tr/ /_/'), 'a_b_c.txt')

    def test_bad_regex_raises(self):
        with self.assertRaises(re.error):
            apply_rename_pattern('x', 's/(/y/')

    def test_invalid_names(self):
        self.assertIsNotNone(invalid_name_reason(''))
        self.assertIsNotNone(invalid_name_reason('..'))
        self.assertIsNotNone(invalid_name_reason('a/b'))
        self.assertIsNone(invalid_name_reason('fine name.txt'))


class RenameTests(OpsTestCase):
    def test_batch_rename(self):
        write_file(self.root, 'draft_1.txt')
        write_file(self.root, 'draft_2.txt')
        write_file(self.root, 'other.txt')
        entries = [self.entry(n) for n in ('draft_1.txt', 'draft_2.txt', 'other.txt')]
        result = self.ops.rename(entries, 'draft', 'final')
        self.assertTrue(result.success, result.message)
        self.assertEqual(result.files_processed, 3)
        self.assertEqual(sorted(os.listdir(self.root)), ['final_1.txt', 'final_2.txt', 'other.txt'])

    def test_collision_is_an_error_and_leaves_both(self):
        write_file(self.root, 'a.txt', b'a')
        write_file(self.root, 'b.txt', b'b')
        result = self.ops.rename([self.entry('a.txt')], 'a', 'b')
        self.assertFalse(result.success)
        self.assertEqual(read_file(self.root, 'a.txt'), b'a')
        self.assertEqual(read_file(self.root, 'b.txt'), b'b')

    def test_invalid_regex_fails_without_touching_files(self):
        write_file(self.root, 'a.txt')
        result = self.ops.rename([self.entry('a.txt')], 's/[/x/')
        self.assertFalse(result.success)
        self.assertIn('Invalid rename pattern', result.message)
        self.assertTrue(os.path.exists(self.path('a.txt')))

    def test_result_name_must_be_valid(self):
        write_file(self.root, 'a.txt')
        result = self.ops.rename([self.entry('a.txt')], 'a.txt', 'x/y')
        self.assertFalse(result.success)


class CreateDirectoryTests(OpsTestCase):
    def test_create(self):
        result = self.ops.create_directory(self.root, ' New Folder ')
        self.assertTrue(result.success)
        self.assertEqual(result.message, 'Created directory: New Folder')
        self.assertTrue(os.path.isdir(self.path('New Folder')))

    def test_errors(self):
        write_file(self.root, 'taken')
        self.assertEqual(self.ops.create_directory(self.root, '  ').message, 'Folder name cannot be empty.')
        self.assertEqual(
            self.ops.create_directory(self.root, 'taken').message,
            'A file or folder with that name already exists.',
        )
        self.assertFalse(self.ops.create_directory(self.root, 'a/b').success)
        self.assertFalse(self.ops.create_directory(self.path('missing'), 'x').success)


class SplitJoinTests(OpsTestCase):
    def setUp(self):
        super().setUp()
        self.data = bytes(range(256)) * 40
        self.source = write_file(self.root, 'big.bin', self.data)
        self.parts_dir = self.path('parts')

    def test_part_names_pad_to_sort_lexically(self):
        self.assertEqual(FileOperations.part_names('f', 3), ['f.001', 'f.002', 'f.003'])
        names = FileOperations.part_names('f', 1200)
        self.assertEqual(names[0], 'f.0001')
        self.assertEqual(sorted(names), names)

    def test_split_then_join(self):
        events = []
        result = self.ops.split(self.source, 4000, self.parts_dir, progress=events.append)
        self.assertTrue(result.success, result.message)
        self.assertEqual(result.files_processed, 3)
        parts = sorted(os.listdir(self.parts_dir))
        self.assertEqual(parts, ['big.bin.001', 'big.bin.002', 'big.bin.003'])
        sizes = [os.path.getsize(os.path.join(self.parts_dir, p)) for p in parts]
        self.assertEqual(sizes, [4000, 4000, 2240])
        self.assertEqual(events[-1].bytes_processed, len(self.data))

        joined = self.path('joined.bin')
        result = self.ops.join([os.path.join(self.parts_dir, p) for p in parts], joined)
        self.assertTrue(result.success, result.message)
        self.assertEqual(read_file(self.root, 'joined.bin'), self.data)

    def test_exact_multiple_has_no_empty_tail(self):
        source = write_file(self.root, 'even.bin', b'x' * 300)
        result = self.ops.split(source, 100, self.parts_dir)
        self.assertEqual(result.files_processed, 3)

    def test_split_rejects_bad_input(self):
        empty = write_file(self.root, 'empty.bin')
        self.assertEqual(self.ops.split(empty, 10, self.parts_dir).message, 'Cannot split an empty file.')
        self.assertFalse(self.ops.split(self.source, 0, self.parts_dir).success)
        self.assertFalse(self.ops.split(self.path('missing'), 10, self.parts_dir).success)

    def test_cancelled_split_keeps_written_parts(self):
        token = CancellationToken()
        result = self.ops.split(self.source, 1000, self.parts_dir, token=token, progress=lambda e: token.cancel())
        self.assertFalse(result.success)
        self.assertEqual(result.files_processed, 1)
        self.assertEqual(os.listdir(self.parts_dir), ['big.bin.001'])

    def test_cancelled_join_leaves_no_destination(self):
        self.ops.split(self.source, 1000, self.parts_dir)
        parts = [os.path.join(self.parts_dir, p) for p in sorted(os.listdir(self.parts_dir))]
        token = CancellationToken()
        dest = self.path('out.bin')
        result = self.ops.join(parts, dest, token=token, progress=lambda e: token.cancel())
        self.assertFalse(result.success)
        self.assertFalse(os.path.exists(dest))
        self.assertEqual([n for n in os.listdir(self.root) if n.startswith('.dualfm-')], [])

    def test_join_validation(self):
        self.assertFalse(self.ops.join([], self.path('x')).success)
        self.assertFalse(self.ops.join([self.path('missing.001')], self.path('x')).success)
        self.assertEqual(
            self.ops.join([self.source], self.source).message,
            'Destination cannot be one of the parts.',
        )


class DirectorySizeTests(OpsTestCase):
    def test_totals(self):
        write_file(self.root, 'a.txt', b'12345')
        write_file(self.root, 'sub/b.txt', b'123')
        write_file(self.root, 'sub/deeper/c.txt', b'1')
        self.assertEqual(self.ops.calculate_directory_size(self.root), (9, 3, 2))

    def test_cancelled_walk_stops(self):
        write_file(self.root, 'a.txt', b'12345')
        token = CancellationToken()
        token.cancel()
        self.assertEqual(self.ops.calculate_directory_size(self.root, token=token), (0, 0, 0))


if __name__ == '__main__':
    unittest.main()
