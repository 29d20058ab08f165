import sys
import tempfile
import unittest
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))

from inbox_curator.locks import RunLockedError, run_lock  # noqa: E402


class RunLockTests(unittest.TestCase):
    def test_second_run_on_same_inbox_is_refused(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            state = Path(tmp) / "state"
            inbox = Path(tmp) / "inbox"
            with run_lock(state, [inbox]) as lock_files:
                self.assertEqual(len(lock_files), 1)
                with self.assertRaises(RunLockedError):
                    with run_lock(state, [inbox]):
                        pass
            with run_lock(state, [inbox]):
                pass

    def test_different_inboxes_do_not_conflict(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            state = Path(tmp) / "state"
            with run_lock(state, [Path(tmp) / "a"]):
                with run_lock(state, [Path(tmp) / "b"]) as lock_files:
                    self.assertEqual(len(lock_files), 1)


if __name__ == "__main__":
    unittest.main()
