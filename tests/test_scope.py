import sys
import unittest
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))

from inbox_curator.scope import (  # noqa: E402
    MANAGED,
    PROTECTED,
    classify_path,
    is_mutable,
    path_within,
)


class ScopeTests(unittest.TestCase):
    def test_path_equal_to_root_is_within(self) -> None:
        self.assertTrue(path_within("/data/inbox", "/data/inbox"))
        self.assertTrue(path_within("/data/inbox", "/data/inbox/"))

    def test_prefix_requires_separator(self) -> None:
        self.assertTrue(path_within("/data/inbox/a.jpg", "/data/inbox"))
        self.assertFalse(path_within("/data/inbox2/a.jpg", "/data/inbox"))

    def test_filesystem_root(self) -> None:
        self.assertTrue(path_within("/anything", "/"))

    def test_classify_path(self) -> None:
        roots = [Path("/data/inbox")]
        self.assertEqual(classify_path(Path("/data/inbox/x/y.txt"), roots), MANAGED)
        self.assertEqual(classify_path(Path("/data/library/y.txt"), roots), PROTECTED)
        self.assertEqual(classify_path(Path("/data/inbox/x"), []), PROTECTED)

    def test_is_mutable_switch(self) -> None:
        roots = [Path("/data/inbox")]
        self.assertFalse(is_mutable(Path("/data/library/y.txt"), roots))
        self.assertTrue(is_mutable(Path("/data/library/y.txt"), roots, only_inside_managed=False))


if __name__ == "__main__":
    unittest.main()
