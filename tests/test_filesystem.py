import errno
import tempfile
import unittest
from pathlib import Path

from message_watcher.errors import DestinationExistsError, FileMoveError, SharingViolationError
from message_watcher.filesystem import FileSystemService, is_sharing_violation


class FileSystemServiceTests(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name)
        self.fs = FileSystemService()

    def tearDown(self):
        self._tmp.cleanup()

    def test_move_file(self):
        source = self.root / "a.request"
        source.write_text("x")
        destination = self.root / "b.request"
        self.fs.move_file(source, destination)
        self.assertFalse(source.exists())
        self.assertEqual(destination.read_text(), "x")

    def test_move_refuses_to_overwrite(self):
        source = self.root / "a.request"
        source.write_text("new")
        destination = self.root / "b.request"
        destination.write_text("old")
        with self.assertRaises(DestinationExistsError):
            self.fs.move_file(source, destination)
        self.assertTrue(source.exists())
        self.assertEqual(destination.read_text(), "old")

    def test_move_missing_source_is_a_plain_move_error(self):
        with self.assertRaises(FileMoveError) as ctx:
            self.fs.move_file(self.root / "missing.request", self.root / "b.request")
        self.assertNotIsInstance(ctx.exception, (DestinationExistsError, SharingViolationError))

    def test_list_files_matches_suffix_only(self):
        for name in ("b.request", "a.request", "a.data", "a.request.reason.txt"):
            (self.root / name).write_text("")
        (self.root / "sub.request").mkdir()
        names = [p.name for p in self.fs.list_files(self.root, ".request")]
        self.assertEqual(names, ["a.request", "b.request"])

    def test_exists_is_false_for_directories(self):
        self.assertFalse(self.fs.exists(self.root))
        self.assertTrue(self.fs.directory_exists(self.root))

    def test_delete_missing_file_is_quiet(self):
        self.fs.delete_file(self.root / "nothing")

    def test_sharing_violation_detection(self):
        self.assertTrue(is_sharing_violation(OSError(errno.EBUSY, "busy")))
        self.assertFalse(is_sharing_violation(OSError(errno.ENOENT, "missing")))
        windows_error = PermissionError(errno.EACCES, "in use")
        windows_error.winerror = 32
        self.assertTrue(is_sharing_violation(windows_error))


if __name__ == "__main__":
    unittest.main()
