import tempfile
import unittest
from pathlib import Path

from message_watcher.errors import FileMoveError, SharingViolationError
from message_watcher.filesystem import FileSystemService
from message_watcher.queue.models import MessageDirectories
from message_watcher.queue.mover import DurableMover


class LockedFileSystem(FileSystemService):
    """Reports the source as in use for the first few attempts."""

    def __init__(self, locked_attempts):
        self.locked_attempts = locked_attempts
        self.attempts = 0

    def move_file(self, source, destination):
        self.attempts += 1
        if self.attempts <= self.locked_attempts:
            raise SharingViolationError(source, destination)
        super().move_file(source, destination)


class BrokenFileSystem(FileSystemService):
    def move_file(self, source, destination):
        raise FileMoveError(source, destination, "disk on fire")


class DurableMoverTests(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name)
        self.directories = MessageDirectories.under(self.root)
        self.directories.errors.mkdir()
        self.directories.archive.mkdir()
        self.sleeps = []

    def tearDown(self):
        self._tmp.cleanup()

    def _mover(self, fs=None, is_running=lambda: True):
        return DurableMover(fs or FileSystemService(), self.directories, is_running, retry_delay=1, sleep=self.sleeps.append)

    def _file(self, name, text="x"):
        path = self.root / name
        path.write_text(text)
        return path

    def test_retries_sharing_violations_until_the_move_succeeds(self):
        fs = LockedFileSystem(locked_attempts=3)
        source = self._file("a.request")
        destination = self.directories.archive / "a.request"
        self.assertTrue(self._mover(fs).move_until_successful(source, destination))
        self.assertEqual(fs.attempts, 4)
        self.assertEqual(self.sleeps, [1, 1, 1])
        self.assertTrue(destination.exists())

    def test_existing_destination_counts_as_moved(self):
        source = self._file("a.request", "mine")
        destination = self.directories.archive / "a.request"
        destination.write_text("theirs")
        self.assertTrue(self._mover().move_until_successful(source, destination))
        self.assertFalse(source.exists())
        self.assertEqual(destination.read_text(), "theirs")

    def test_gives_up_quietly_when_stopping(self):
        running = [True, True, False]
        fs = LockedFileSystem(locked_attempts=100)
        source = self._file("a.request")
        moved = self._mover(fs, is_running=lambda: running.pop(0) if running else False).move_until_successful(
            source, self.directories.archive / "a.request"
        )
        self.assertFalse(moved)
        self.assertTrue(source.exists())

    def test_never_moves_when_not_running(self):
        source = self._file("a.request")
        self.assertFalse(self._mover(is_running=lambda: False).move_until_successful(source, self.root / "b.request"))
        self.assertTrue(source.exists())

    def test_other_failures_propagate(self):
        source = self._file("a.request")
        with self.assertRaises(FileMoveError):
            self._mover(BrokenFileSystem()).move_until_successful(source, self.root / "b.request")

    def test_archive_replaces_older_copies(self):
        header = self._file("a.request", "new header")
        data = self._file("a.data", "new data")
        (self.directories.archive / "a.request").write_text("old header")
        (self.directories.archive / "a.data").write_text("old data")

        self.assertTrue(self._mover().archive(header, data))
        self.assertEqual((self.directories.archive / "a.request").read_text(), "new header")
        self.assertEqual((self.directories.archive / "a.data").read_text(), "new data")
        self.assertFalse(header.exists())
        self.assertFalse(data.exists())

    def test_archive_without_data_file(self):
        header = self._file("a.request")
        self.assertTrue(self._mover().archive(header, self.root / "a.data"))
        self.assertTrue((self.directories.archive / "a.request").exists())
        self.assertFalse((self.directories.archive / "a.data").exists())

    def test_quarantine_writes_reason_with_detail(self):
        header = self._file("a.request")
        self.assertTrue(self._mover().quarantine(header, "=> Failed to process a.request", "boom"))
        self.assertTrue((self.directories.errors / "a.request").exists())
        reason = (self.directories.errors / "a.request.reason.txt").read_text()
        self.assertEqual(reason, "=> Failed to process a.request\nboom")

    def test_quarantine_failure_leaves_file_in_place(self):
        header = self._file("a.request")
        self.assertFalse(self._mover(BrokenFileSystem()).quarantine(header, "reason"))
        self.assertTrue(header.exists())
        self.assertFalse((self.directories.errors / "a.request.reason.txt").exists())


if __name__ == "__main__":
    unittest.main()
