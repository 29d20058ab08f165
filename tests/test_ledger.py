import json
import sys
import tempfile
import unittest
from datetime import datetime, timezone
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))

from inbox_curator.ledger import (  # noqa: E402
    EXIT_FAILURE,
    EXIT_NOTHING_TO_DO,
    EXIT_OK,
    FAILED,
    MODE_APPLY,
    MODE_SIMULATE,
    MOVED,
    QUARANTINED,
    SKIPPED,
    find_latest_ledger,
    ledger_path_for,
    load_ledger,
    new_ledger,
    render_summary,
    write_ledger,
)

NOW = datetime(2026, 10, 17, 12, 0, tzinfo=timezone.utc)


class LedgerTests(unittest.TestCase):
    def test_exit_status(self) -> None:
        ledger = new_ledger("organize", MODE_APPLY, NOW)
        self.assertEqual(ledger.exit_status(), EXIT_NOTHING_TO_DO)
        ledger.record(FAILED, Path("/a"), Path("/b"), "disk full")
        self.assertEqual(ledger.exit_status(), EXIT_FAILURE)
        ledger.record(MOVED, Path("/c"), Path("/d"))
        self.assertEqual(ledger.exit_status(), EXIT_OK)

    def test_to_dict_shape(self) -> None:
        ledger = new_ledger("dedupe", MODE_SIMULATE, NOW)
        ledger.record(QUARANTINED, Path("/in/a"), Path("/q/a"))
        ledger.record(SKIPPED, Path("/lib/a"), None, "protected")
        payload = ledger.to_dict()
        self.assertEqual(payload["timestamp"], "20261017T120000Z")
        self.assertEqual(payload["counts"]["quarantined"], 1)
        self.assertEqual(payload["skipped"], [{"from": "/lib/a", "to": None, "reason": "protected"}])

    def test_unknown_category_rejected(self) -> None:
        ledger = new_ledger("dedupe", MODE_SIMULATE, NOW)
        with self.assertRaises(ValueError):
            ledger.record("vanished", Path("/a"))
        with self.assertRaises(ValueError):
            new_ledger("dedupe", "maybe", NOW)

    def test_write_load_and_find_latest(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            reports = Path(tmp)
            older = new_ledger("dedupe", MODE_APPLY, datetime(2026, 10, 1, tzinfo=timezone.utc))
            newer = new_ledger("organize", MODE_APPLY, NOW)
            dry = new_ledger("organize", MODE_SIMULATE, datetime(2026, 12, 1, tzinfo=timezone.utc))
            for ledger in (older, newer, dry):
                write_ledger(ledger, ledger_path_for(ledger, reports))
            latest = find_latest_ledger(reports)
            self.assertEqual(latest, ledger_path_for(newer, reports))
            self.assertEqual(load_ledger(latest)["operation"], "organize")
            (reports / "other.json").write_text(json.dumps({"x": 1}), encoding="utf-8")
            with self.assertRaises(ValueError):
                load_ledger(reports / "other.json")

    def test_render_summary_counts_every_category(self) -> None:
        ledger = new_ledger("dedupe", MODE_APPLY, NOW)
        ledger.record(SKIPPED, Path("/a"), None, "protected")
        ledger.record(SKIPPED, Path("/b"), None, "source_missing")
        text = render_summary(ledger, "Deduplication Report", ["Policy: QUARANTINE"])
        self.assertIn("Policy: QUARANTINE", text)
        self.assertIn("Skipped: 2", text)
        self.assertIn("skipped (protected): 1", text)
        self.assertIn("Failed: 0", text)


if __name__ == "__main__":
    unittest.main()
