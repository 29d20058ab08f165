import argparse
import dataclasses
import json
from pathlib import Path
from typing import Callable, List, Optional

from .ai_log import resolve_log_path
from .audit import AuditLog, resolve_audit_path
from .classify import classify_inbox, write_classification_report
from .config import ConfigError, CuratorSettings, config_path, load_config, settings_from_config
from .context import RunContext, create_context
from .duplicates import (
    group_duplicates,
    plan_duplicate_removal,
    render_duplicate_summary,
    summarize_duplicates,
)
from .executor import execute
from .ledger import (
    EXIT_FAILURE,
    EXIT_NOTHING_TO_DO,
    EXIT_OK,
    MODE_APPLY,
    MODE_SIMULATE,
    find_latest_ledger,
    ledger_path_for,
    render_summary,
    write_ledger,
)
from .locks import RunLockedError, run_lock
from .notify import send_webhook
from .ollama import OllamaClient
from .planner import plan_records, plans_for_invalid
from .plans import RelocationPlan, write_plan_file
from .reports import (
    REPORT_FORMATS,
    InputMissingError,
    archive_report,
    load_classification_report,
    load_duplicate_report,
)
from .restore import RestoreError, restore_from_ledger
from .retention import purge
from .util import timestamp_slug, utc_now, write_json


def _config_file(args: argparse.Namespace) -> Optional[Path]:
    return Path(args.config).expanduser() if args.config else None


def _load_settings(args: argparse.Namespace) -> Optional[CuratorSettings]:
    try:
        return settings_from_config(load_config(_config_file(args)))
    except ConfigError as exc:
        print(f"Config error: {exc}")
        return None


def _open_audit(settings: CuratorSettings) -> AuditLog:
    return AuditLog(resolve_audit_path(settings.logs_dir))


def _run_plans(
    ctx: RunContext,
    build_plans: Callable[[], List[RelocationPlan]],
    plan_file: Optional[str],
) -> Optional[Path]:
    ledger_path = ledger_path_for(ctx.ledger, ctx.settings.reports_dir)
    try:
        with run_lock(ctx.settings.state_dir, ctx.settings.inbox_dirs):
            try:
                plans = build_plans()
                if plan_file:
                    write_plan_file(
                        plans,
                        Path(plan_file).expanduser(),
                        operation=ctx.ledger.operation,
                        now=ctx.now,
                    )
                execute(plans, ctx)
            finally:
                write_ledger(ctx.ledger, ledger_path)
    except RunLockedError as exc:
        print(f"{exc}; exiting.")
        return None
    print(f"Ledger written: {ledger_path}")
    return ledger_path


def _finish(ctx: RunContext, summary: str) -> int:
    ctx.audit.prefix = ""
    ctx.audit.block(summary)
    send_webhook(ctx.settings.webhook_url, summary, audit=ctx.audit)
    if ctx.simulate and ctx.ledger.successes():
        print("Dry run only. Use --apply to execute.")
    return ctx.ledger.exit_status()


def cmd_dedupe(args: argparse.Namespace) -> int:
    settings = _load_settings(args)
    if settings is None:
        return EXIT_FAILURE
    if args.delete:
        settings = dataclasses.replace(settings, delete_instead_of_quarantine=True)
    if args.allow_outside_inbox:
        settings = dataclasses.replace(settings, only_move_from_inbox=False)
    report_path = Path(args.report).expanduser() if args.report else settings.duplicate_report
    try:
        records = load_duplicate_report(report_path, args.format)
    except InputMissingError as exc:
        print(str(exc))
        return EXIT_FAILURE

    mode = MODE_APPLY if args.apply else MODE_SIMULATE
    ctx = create_context(settings, operation="dedupe", mode=mode, audit=_open_audit(settings))
    groups = group_duplicates(records)
    ctx.audit.write(f"Duplicate sets: {len(groups)} from {report_path}")
    if _run_plans(ctx, lambda: plan_duplicate_removal(groups, ctx), args.plan_file) is None:
        return EXIT_NOTHING_TO_DO

    if not args.no_purge:
        try:
            removed = purge(
                settings.quarantine_dir,
                settings.retention_days,
                ctx.now,
                dry_run=ctx.simulate,
                audit=ctx.audit,
            )
            ctx.audit.write(f"Expired quarantine batches: {len(removed)}")
        except OSError as exc:
            ctx.audit.write(f"PURGE FAILED: {exc}")

    policy = "DELETE" if settings.delete_instead_of_quarantine else "QUARANTINE"
    summary = render_summary(
        ctx.ledger,
        "Deduplication Report",
        [
            f"Report: {report_path}",
            f"Files in duplicate sets: {sum(len(g.members) for g in groups)}",
            f"Duplicate sets: {len(groups)}",
            f"Removal candidates: {sum(len(g.members) - 1 for g in groups)}",
            f"Quarantine path: {ctx.batch_dir()}",
            f"Retention: {settings.retention_days} days",
            f"Policy: {policy}",
        ],
    )
    return _finish(ctx, summary)


def cmd_organize(args: argparse.Namespace) -> int:
    settings = _load_settings(args)
    if settings is None:
        return EXIT_FAILURE
    report_path = Path(args.report).expanduser()
    try:
        report = load_classification_report(report_path)
    except InputMissingError as exc:
        print(str(exc))
        return EXIT_FAILURE

    mode = MODE_APPLY if args.apply else MODE_SIMULATE
    ctx = create_context(settings, operation="organize", mode=mode, audit=_open_audit(settings))
    ctx.audit.write(
        f"Classification records: {len(report.records)} valid, {len(report.invalid)} invalid"
    )

    def build() -> List[RelocationPlan]:
        return plans_for_invalid(report.invalid) + plan_records(report.records, ctx)

    if _run_plans(ctx, build, args.plan_file) is None:
        return EXIT_NOTHING_TO_DO
    if not ctx.simulate and not args.keep_report:
        archived = archive_report(report_path, ctx.now)
        print(f"Report archived: {archived}")

    summary = render_summary(
        ctx.ledger,
        "Organize Report",
        [
            f"Report: {report_path}",
            f"Library base: {settings.library_base}",
            f"Review area: {settings.review_dir}",
            f"Confidence threshold: {settings.confidence_threshold}",
        ],
    )
    return _finish(ctx, summary)


def cmd_classify(args: argparse.Namespace) -> int:
    settings = _load_settings(args)
    if settings is None:
        return EXIT_FAILURE
    inboxes = [Path(args.inbox).expanduser()] if args.inbox else settings.inbox_dirs
    client = None
    if args.ai:
        client = OllamaClient(
            settings.ollama_base_url,
            resolve_log_path(settings.ai_log_path, settings.logs_dir),
            fallback_model=settings.fallback_model,
            timeout=settings.ai_timeout_seconds,
        )
    records = []
    for inbox in inboxes:
        if not inbox.is_dir():
            print(f"Inbox not found: {inbox}")
            continue
        records.extend(classify_inbox(inbox, settings, client, args.model))
    if not records:
        print("Nothing to classify.")
        return EXIT_NOTHING_TO_DO
    out_path = (
        Path(args.out).expanduser()
        if args.out
        else settings.reports_dir / f"classification-{timestamp_slug(utc_now())}.json"
    )
    write_classification_report(records, out_path)
    print(f"Classified {len(records)} items. Report: {out_path}")
    return EXIT_OK


def cmd_purge(args: argparse.Namespace) -> int:
    settings = _load_settings(args)
    if settings is None:
        return EXIT_FAILURE
    days = settings.retention_days if args.days is None else args.days
    audit = _open_audit(settings)
    if args.dry_run:
        audit.prefix = "[dry-run] "
    try:
        removed = purge(settings.quarantine_dir, days, utc_now(), dry_run=args.dry_run, audit=audit)
    except (ValueError, OSError) as exc:
        print(f"Purge failed: {exc}")
        return EXIT_FAILURE
    print(f"Expired batches: {len(removed)} (retention {days} days)")
    return EXIT_OK if removed else EXIT_NOTHING_TO_DO


def cmd_restore(args: argparse.Namespace) -> int:
    settings = _load_settings(args)
    if settings is None:
        return EXIT_FAILURE
    if args.ledger:
        ledger_path: Optional[Path] = Path(args.ledger).expanduser()
    else:
        ledger_path = find_latest_ledger(settings.reports_dir)
    if not ledger_path or not ledger_path.exists():
        print("Ledger not found.")
        return EXIT_FAILURE
    try:
        result = restore_from_ledger(ledger_path, _open_audit(settings))
    except (RestoreError, ValueError) as exc:
        print(str(exc))
        return EXIT_FAILURE
    print(
        f"Restore complete. Moved: {result['moved']}, "
        f"Skipped: {result['skipped']}, Failed: {result['failed']}"
    )
    if result["moved"] == 0 and result["failed"]:
        return EXIT_FAILURE
    return EXIT_OK if result["moved"] else EXIT_NOTHING_TO_DO


def cmd_summarize(args: argparse.Namespace) -> int:
    settings = _load_settings(args)
    if settings is None:
        return EXIT_FAILURE
    report_path = Path(args.report).expanduser() if args.report else settings.duplicate_report
    try:
        records = load_duplicate_report(report_path, args.format)
    except InputMissingError as exc:
        print(str(exc))
        return EXIT_FAILURE
    summary = summarize_duplicates(records, settings.library_dirs)
    print(render_duplicate_summary(summary))
    if args.out:
        write_json(Path(args.out).expanduser(), summary)
        print(f"Summary written: {args.out}")
    return EXIT_OK if summary["groups"] else EXIT_NOTHING_TO_DO


def cmd_config(args: argparse.Namespace) -> int:
    try:
        cfg = load_config(_config_file(args))
    except ConfigError as exc:
        print(f"Config error: {exc}")
        return EXIT_FAILURE
    print(f"Config: {_config_file(args) or config_path()}")
    for key, value in cfg.items():
        print(f"{key}: {json.dumps(value)}")
    return EXIT_OK


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="inbox-curator")
    parser.add_argument("--config", type=str, default=None, help="Config JSON path override")
    sub = parser.add_subparsers(dest="command", required=True)

    dedupe = sub.add_parser("dedupe", help="Quarantine duplicate files found by a hashing tool")
    dedupe.add_argument("--report", type=str, default=None, help="Duplicate report path")
    dedupe.add_argument("--format", choices=REPORT_FORMATS, default="rmlint", help="Report format")
    dedupe.add_argument("--apply", action="store_true", help="Apply changes (default is dry-run)")
    dedupe.add_argument("--delete", action="store_true", help="Delete duplicates instead of quarantining")
    dedupe.add_argument(
        "--allow-outside-inbox",
        action="store_true",
        help="Allow removing duplicates outside inbox folders (dangerous)",
    )
    dedupe.add_argument("--no-purge", action="store_true", help="Skip the quarantine retention purge")
    dedupe.add_argument("--plan-file", type=str, default=None, help="Write plan JSON to file")
    dedupe.set_defaults(func=cmd_dedupe)

    organize = sub.add_parser("organize", help="Move classified inbox items into the library")
    organize.add_argument("report", help="Classification report path")
    organize.add_argument("--apply", action="store_true", help="Apply changes (default is dry-run)")
    organize.add_argument(
        "--keep-report", action="store_true", help="Do not archive the report after apply"
    )
    organize.add_argument("--plan-file", type=str, default=None, help="Write plan JSON to file")
    organize.set_defaults(func=cmd_organize)

    classify = sub.add_parser("classify", help="Write a classification report for inbox items")
    classify.add_argument("--inbox", type=str, default=None, help="Inbox folder override")
    classify.add_argument("--out", type=str, default=None, help="Report output path")
    classify.add_argument("--ai", action="store_true", help="Ask Ollama, falling back to rules")
    classify.add_argument("--model", type=str, default=None, help="Ollama model override")
    classify.set_defaults(func=cmd_classify)

    purge_cmd = sub.add_parser("purge", help="Remove expired quarantine batches")
    purge_cmd.add_argument("--days", type=int, default=None, help="Retention days override")
    purge_cmd.add_argument("--dry-run", action="store_true", help="List batches without removing")
    purge_cmd.set_defaults(func=cmd_purge)

    restore = sub.add_parser("restore", help="Undo an applied run from its ledger")
    restore.add_argument("--ledger", type=str, default=None, help="Ledger path (default: latest)")
    restore.set_defaults(func=cmd_restore)

    summarize = sub.add_parser("summarize", help="Summarize a duplicate report")
    summarize.add_argument("--report", type=str, default=None, help="Duplicate report path")
    summarize.add_argument("--format", choices=REPORT_FORMATS, default="rmlint", help="Report format")
    summarize.add_argument("--out", type=str, default=None, help="Write summary JSON to file")
    summarize.set_defaults(func=cmd_summarize)

    config = sub.add_parser("config", help="Show config")
    config.set_defaults(func=cmd_config)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    raise SystemExit(main())
