import sys
import tempfile
import unittest
from datetime import datetime, timezone
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))

from inbox_curator.config import DEFAULT_CONFIG, CuratorSettings, settings_from_config  # noqa: E402
from inbox_curator.context import create_context  # noqa: E402
from inbox_curator.duplicates import (  # noqa: E402
    DuplicateGroup,
    group_duplicates,
    plan_duplicate_removal,
    removal_candidates,
    select_keeper,
    summarize_duplicates,
)
from inbox_curator.executor import execute  # noqa: E402
from inbox_curator.ledger import MODE_APPLY, MODE_SIMULATE  # noqa: E402
from inbox_curator.plans import ACTION_QUARANTINE, ACTION_SKIP  # noqa: E402
from inbox_curator.records import FileRecord  # noqa: E402

NOW = datetime(2026, 10, 17, 12, 0, tzinfo=timezone.utc)


def _settings(root: Path, **overrides) -> CuratorSettings:
    cfg = dict(DEFAULT_CONFIG)
    cfg.update(
        {
            "inbox_dirs": [str(root / "inbox")],
            "library_dirs": [str(root / "library")],
            "quarantine_dir": str(root / "quarantine"),
            "quarantine_strip_prefix": str(root),
            "review_dir": str(root / "inbox" / "_review_pending"),
            "reports_dir": str(root / "reports"),
            "logs_dir": str(root / "logs"),
            "state_dir": str(root / "state"),
        }
    )
    cfg.update(overrides)
    return settings_from_config(cfg)


def _touch(path: Path, text: str = "same") -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


class GroupExtractorTests(unittest.TestCase):
    def test_groups_in_first_seen_order_and_drops_singletons(self) -> None:
        records = [
            FileRecord(Path("/i/b1"), "B"),
            FileRecord(Path("/i/a1"), "A"),
            FileRecord(Path("/i/solo"), "S"),
            FileRecord(Path("/i/a2"), "A"),
            FileRecord(Path("/i/b2"), "B"),
            FileRecord(Path("/i/nohash"), None),
        ]
        groups = group_duplicates(records)
        self.assertEqual([g.checksum for g in groups], ["B", "A"])
        self.assertEqual([str(m.path) for m in groups[1].members], ["/i/a1", "/i/a2"])

    def test_empty_input(self) -> None:
        self.assertEqual(group_duplicates([]), [])

    def test_repeated_path_counts_once(self) -> None:
        records = [FileRecord(Path("/i/a"), "A"), FileRecord(Path("/i/a"), "A")]
        self.assertEqual(group_duplicates(records), [])


class KeeperSelectorTests(unittest.TestCase):
    def test_library_member_wins_over_original_flag(self) -> None:
        group = DuplicateGroup(
            "X",
            [
                FileRecord(Path("/data/inbox/b.jpg"), "X", is_original=True),
                FileRecord(Path("/data/library/a.jpg"), "X"),
            ],
        )
        keeper = select_keeper(group, [Path("/data/library")])
        self.assertEqual(keeper.path, Path("/data/library/a.jpg"))

    def test_original_flag_then_first_member(self) -> None:
        members = [
            FileRecord(Path("/data/inbox/1"), "X"),
            FileRecord(Path("/data/inbox/2"), "X", is_original=True),
        ]
        self.assertEqual(select_keeper(DuplicateGroup("X", members), []).path, Path("/data/inbox/2"))
        plain = [FileRecord(Path("/data/inbox/1"), "X"), FileRecord(Path("/data/inbox/2"), "X")]
        self.assertEqual(select_keeper(DuplicateGroup("X", plain), []).path, Path("/data/inbox/1"))

    def test_keeper_never_in_removal_set(self) -> None:
        members = [FileRecord(Path(f"/data/inbox/{i}"), "X") for i in range(4)]
        group = DuplicateGroup("X", members)
        keeper = select_keeper(group, [])
        removal = removal_candidates(group, keeper)
        self.assertEqual(len(removal), 3)
        self.assertNotIn(keeper, removal)

    def test_empty_group_raises(self) -> None:
        with self.assertRaises(ValueError):
            select_keeper(DuplicateGroup("X", []), [])


class DuplicateRemovalTests(unittest.TestCase):
    def test_library_copy_kept_inbox_copy_quarantined(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp)
            settings = _settings(root)
            a = _touch(root / "library" / "a.jpg")
            b = _touch(root / "inbox" / "b.jpg")
            ctx = create_context(settings, operation="dedupe", mode=MODE_APPLY, now=NOW)
            groups = group_duplicates([FileRecord(b, "X"), FileRecord(a, "X")])
            ledger = execute(plan_duplicate_removal(groups, ctx), ctx)
            self.assertTrue(a.exists())
            self.assertFalse(b.exists())
            quarantined = root / "quarantine" / "2026-10-17" / "inbox" / "b.jpg"
            self.assertTrue(quarantined.exists())
            self.assertEqual(ledger.counts()["quarantined"], 1)
            self.assertIn(f"KEEPER: {a}", ctx.audit.lines)
            self.assertIn(f"QUARANTINE: {b} -> {quarantined}", ctx.audit.lines)

    def test_three_inbox_copies_with_quarantine_collision(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp)
            settings = _settings(root)
            paths = [_touch(root / "inbox" / d / "photo.jpg") for d in ("a", "b", "c")]
            batch = root / "quarantine" / "2026-10-17" / "inbox"
            _touch(batch / "b" / "photo.jpg", "earlier run")
            ctx = create_context(settings, operation="dedupe", mode=MODE_APPLY, now=NOW)
            groups = group_duplicates([FileRecord(p, "X") for p in paths])
            ledger = execute(plan_duplicate_removal(groups, ctx), ctx)
            self.assertTrue(paths[0].exists())
            self.assertFalse(paths[1].exists())
            self.assertFalse(paths[2].exists())
            destinations = [entry.destination for entry in ledger.entries["quarantined"]]
            self.assertEqual(
                destinations,
                [str(batch / "b" / "photo_1.jpg"), str(batch / "c" / "photo.jpg")],
            )
            self.assertEqual((batch / "b" / "photo.jpg").read_text(encoding="utf-8"), "earlier run")

    def test_protected_duplicates_are_never_touched(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp)
            settings = _settings(root)
            lib1 = _touch(root / "library" / "one.jpg")
            lib2 = _touch(root / "library" / "two.jpg")
            other = _touch(root / "elsewhere" / "three.jpg")
            ctx = create_context(settings, operation="dedupe", mode=MODE_APPLY, now=NOW)
            groups = group_duplicates([FileRecord(p, "X") for p in (lib1, lib2, other)])
            plans = plan_duplicate_removal(groups, ctx)
            self.assertEqual({p.action for p in plans}, {ACTION_SKIP})
            ledger = execute(plans, ctx)
            self.assertTrue(lib2.exists())
            self.assertTrue(other.exists())
            self.assertEqual(ledger.counts()["skipped"], 2)
            self.assertIn(f"SKIP (protected): {lib2}", ctx.audit.lines)

    def test_protection_switch_off_allows_outside_paths(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp)
            settings = _settings(root, only_move_from_inbox=False)
            lib1 = _touch(root / "library" / "one.jpg")
            other = _touch(root / "elsewhere" / "three.jpg")
            ctx = create_context(settings, operation="dedupe", mode=MODE_SIMULATE, now=NOW)
            plans = plan_duplicate_removal(group_duplicates([FileRecord(lib1, "X"), FileRecord(other, "X")]), ctx)
            self.assertEqual([p.action for p in plans], [ACTION_QUARANTINE])
            self.assertEqual(plans[0].source, other)

    def test_missing_members_are_skipped(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp)
            settings = _settings(root)
            keeper = _touch(root / "inbox" / "keep.txt")
            gone = root / "inbox" / "gone.txt"
            ctx = create_context(settings, operation="dedupe", mode=MODE_APPLY, now=NOW)
            ledger = execute(plan_duplicate_removal(group_duplicates([FileRecord(keeper, "X"), FileRecord(gone, "X")]), ctx), ctx)
            self.assertEqual(ledger.entries["skipped"][0].reason, "source_missing")
            self.assertIn(f"SKIP (missing): {gone}", ctx.audit.lines)
            self.assertEqual(ledger.counts()["failed"], 0)

    def test_delete_policy_removes_instead_of_quarantine(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp)
            settings = _settings(root, delete_instead_of_quarantine=True)
            keeper = _touch(root / "library" / "a.jpg")
            dup = _touch(root / "inbox" / "a.jpg")
            ctx = create_context(settings, operation="dedupe", mode=MODE_APPLY, now=NOW)
            ledger = execute(plan_duplicate_removal(group_duplicates([FileRecord(keeper, "X"), FileRecord(dup, "X")]), ctx), ctx)
            self.assertFalse(dup.exists())
            self.assertFalse((root / "quarantine").exists())
            self.assertEqual(ledger.counts()["deleted"], 1)
            self.assertIn(f"DELETE: {dup}", ctx.audit.lines)


class SummaryTests(unittest.TestCase):
    def test_summarize_duplicates(self) -> None:
        records = [
            FileRecord(Path("/data/library/a.jpg"), "X", size_bytes=10),
            FileRecord(Path("/data/library/b.jpg"), "X", size_bytes=10),
            FileRecord(Path("/data/inbox/c.jpg"), "X", size_bytes=10),
            FileRecord(Path("/data/inbox/d.pdf"), "Y", size_bytes=5),
            FileRecord(Path("/data/inbox/e.pdf"), "Y", size_bytes=5),
        ]
        summary = summarize_duplicates(records, [Path("/data/library")])
        self.assertEqual(summary["groups"], 2)
        self.assertEqual(summary["files_in_groups"], 5)
        self.assertEqual(summary["removal_candidates"], 3)
        self.assertEqual(summary["library_internal_groups"], 1)
        self.assertEqual(summary["reclaimable_bytes"], 25)
        self.assertEqual(summary["top_extensions"][0], (".jpg", 3))


if __name__ == "__main__":
    unittest.main()
