import json
import sys
import tempfile
import unittest
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))

from inbox_curator.classify import (  # noqa: E402
    MIXED_BUNDLE,
    ai_record,
    classify_inbox,
    rule_record,
    scan_inbox,
    type_group_for,
    write_classification_report,
)
from inbox_curator.config import DEFAULT_CONFIG, CuratorSettings, settings_from_config  # noqa: E402
from inbox_curator.records import BUNDLE_STANDALONE  # noqa: E402
from inbox_curator.reports import load_classification_report  # noqa: E402


def _settings(root: Path) -> CuratorSettings:
    cfg = dict(DEFAULT_CONFIG)
    cfg.update(
        {
            "inbox_dirs": [str(root / "inbox")],
            "library_dirs": [str(root / "library")],
            "review_dir": str(root / "inbox" / "_review_pending"),
            "reports_dir": str(root / "reports"),
        }
    )
    return settings_from_config(cfg)


def _touch(path: Path) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("x", encoding="utf-8")
    return path


class _DummyClient:
    def __init__(self, response: str = "", error: bool = False) -> None:
        self.response = response
        self.error = error
        self.calls = []

    def generate(self, **kwargs) -> str:
        self.calls.append(kwargs)
        if self.error:
            raise RuntimeError("offline")
        return self.response


class ClassifyTests(unittest.TestCase):
    def test_type_group_for_known_extensions(self) -> None:
        self.assertEqual(type_group_for(Path("a.JPG")), "Image")
        self.assertEqual(type_group_for(Path("b.pdf")), "Document")
        self.assertEqual(type_group_for(Path("c.xlsx")), "Spreadsheet")
        self.assertEqual(type_group_for(Path("noext")), "Other")

    def test_scan_inbox_skips_review_and_hidden(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp)
            settings = _settings(root)
            inbox = root / "inbox"
            _touch(inbox / "b.pdf")
            _touch(inbox / "a.jpg")
            _touch(inbox / ".DS_Store")
            _touch(inbox / "_review_pending" / "held.txt")
            items = scan_inbox(inbox, settings)
            self.assertEqual([item.name for item in items], ["a.jpg", "b.pdf"])

    def test_rule_record_for_file(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp)
            item = _touch(root / "inbox" / "Tax Return 2024.pdf")
            record = rule_record(item, _settings(root))
            self.assertEqual(record.bundle_type, BUNDLE_STANDALONE)
            self.assertEqual(record.recommended_path, "Documents/")
            self.assertEqual(record.suggested_name, "Tax_Return_2024")
            self.assertEqual(record.category, "Document")
            self.assertEqual(record.files[0].original_name, "Tax Return 2024.pdf")

    def test_rule_record_for_album_folder(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp)
            album = root / "inbox" / "Blue Train"
            for idx in range(4):
                _touch(album / f"0{idx}.mp3")
            _touch(album / ".hidden.mp3")
            record = rule_record(album, _settings(root))
            self.assertEqual(record.bundle_type, "MusicAlbum")
            self.assertEqual(record.recommended_path, "Music/")
            self.assertEqual(record.suggested_name, "Blue Train")
            self.assertEqual(len(record.files), 4)

    def test_rule_record_for_mixed_folder(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp)
            folder = root / "inbox" / "trip"
            _touch(folder / "a.jpg")
            _touch(folder / "notes.txt")
            _touch(folder / "clip.mp4")
            record = rule_record(folder, _settings(root))
            self.assertEqual(record.bundle_type, MIXED_BUNDLE)
            self.assertTrue(record.subfolder_plan.enabled)
            self.assertEqual(record.subfolder_plan.subfolder_for("Image", "Other"), "Images")

    def test_ai_record_falls_back_to_rules_when_unavailable(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp)
            settings = _settings(root)
            item = _touch(root / "inbox" / "scan.pdf")
            rule = rule_record(item, settings)
            client = _DummyClient(error=True)
            self.assertIs(ai_record(item, rule, client, "m"), rule)
            self.assertEqual(client.calls[0]["log_context"]["operation"], "classify")

    def test_ai_record_uses_model_answer(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp)
            settings = _settings(root)
            item = _touch(root / "inbox" / "IMG_0001.pdf")
            rule = rule_record(item, settings)
            answer = 'Sure: {"category": "note", "suggested_name": "Meeting Notes", "confidence": "high"}'
            record = ai_record(item, rule, _DummyClient(answer), "m")
            self.assertEqual(record.category, "Note")
            self.assertEqual(record.recommended_path, "Notes/")
            self.assertEqual(record.confidence, 0.9)
            self.assertEqual(record.files[0].rename_to, "Meeting Notes")

    def test_ai_record_ignores_unparseable_answer(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp)
            settings = _settings(root)
            item = _touch(root / "inbox" / "a.jpg")
            rule = rule_record(item, settings)
            self.assertIs(ai_record(item, rule, _DummyClient("no json here"), "m"), rule)

    def test_classification_report_is_readable_by_organizer(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp)
            settings = _settings(root)
            _touch(root / "inbox" / "a.jpg")
            _touch(root / "inbox" / "album" / "01.flac")
            records = classify_inbox(root / "inbox", settings)
            out = write_classification_report(records, root / "reports" / "classification.json")
            raw = json.loads(out.read_text(encoding="utf-8"))
            self.assertEqual(len(raw), 2)
            report = load_classification_report(out)
            self.assertEqual(len(report.records), 2)
            self.assertEqual(report.invalid, [])


if __name__ == "__main__":
    unittest.main()
