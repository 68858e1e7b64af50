from __future__ import annotations

import argparse
import getpass
import json
import sys
from datetime import datetime
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from offer_approval.config.loader import ConfigError, load_config
from offer_approval.excel.reader import OfferWorkbook, SheetHeaderError, read_offer_workbook
from offer_approval.excel.writer import write_offer_sheet
from offer_approval.logging.activity_log import ActivityLogBuffer
from offer_approval.logging.init import log_summary, setup_logging
from offer_approval.models.config_models import APPROVER_COMMENTS, WorkflowConfig
from offer_approval.models.offer_sheet import SheetBusyError
from offer_approval.services.bundle_service import find_all_bundle_errors, find_all_bundles
from offer_approval.services.corrections import (
    CorrectionError,
    apply_bundle_correction,
    dissolve_bundle,
    fix_bundle_gaps,
)
from offer_approval.services.metadata_store import InMemoryBundleDescriptorStore
from offer_approval.services.orchestrator import (
    ProcessingError,
    apply_approver_action,
    approve_all_rows,
    recalculate_all_rows,
    run_health_check,
)
from offer_approval.services.reconciler import BundleReconciler, ReconciliationError
from offer_approval.services.summary import render_summary_line

"""CLI entrypoint.

Subcommands (all take the workbook path first):
- recalc    recalculate every row, rebuild bundle metadata, write back
- bundles   report bundles and bundle errors (read only)
- correct   force Term/Quantity onto a bundle, then recalc
- fix-gaps  move bundle members together, then recalc
- dissolve  clear a bundle number from all members, then recalc
- action    apply an approver action to one row
- health-check  send finalized rows without an approval date back to Pending
- approve-all   approve every Pending/Revised row (proposal, else original price)

Exit codes: 0 ok, 1 fatal error, 2 bundle errors remain after the run.
"""

EXIT_SUCCESS = 0
EXIT_FATAL = 1
EXIT_BUNDLE_ERRORS = 2

_FATAL_ERRORS = (
    ConfigError,
    CorrectionError,
    ProcessingError,
    ReconciliationError,
    SheetBusyError,
    SheetHeaderError,
)


def _load_env_file(path: Path, override: bool = False) -> None:
    """Load .env using python-dotenv (OFFER_APPROVAL_CONFIG etc.)."""
    if path.exists():
        load_dotenv(dotenv_path=path, override=override)


def _number(text: str) -> int | float:
    value = float(text)
    return int(value) if value.is_integer() else value


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="offer-approval", description="Offer approval workflow tools")
    p.add_argument("--config", type=Path, default=None, help="Workflow config (default: config/workflow.yml)")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    sub = p.add_subparsers(dest="command", required=True)

    def workbook_parser(name: str, help_text: str) -> argparse.ArgumentParser:
        sp = sub.add_parser(name, help=help_text)
        sp.add_argument("workbook", type=Path, help="Offer workbook (.xlsx)")
        return sp

    def writing_options(sp: argparse.ArgumentParser) -> None:
        sp.add_argument("--output", type=Path, default=None, help="Write here instead of in place")
        sp.add_argument("--user", default=None, help="User recorded in the activity log")
        sp.add_argument(
            "--telekom-deal",
            choices=("yes", "no"),
            default=None,
            help="Override the deal flag read from the workbook",
        )

    recalc = workbook_parser("recalc", "Recalculate all rows")
    writing_options(recalc)
    recalc.add_argument(
        "--force-revision",
        action="store_true",
        help="Mark every finalized row 'Revised by AE' (use after the deal type changed)",
    )

    bundles = workbook_parser("bundles", "Report bundles and bundle errors")
    bundles.add_argument("--json", action="store_true", help="Print the report as JSON")

    correct = workbook_parser("correct", "Apply Term/Quantity to every member of a bundle")
    correct.add_argument("bundle", help="Bundle number")
    correct.add_argument("--term", type=_number, required=True)
    correct.add_argument("--quantity", type=_number, required=True)
    writing_options(correct)

    fix = workbook_parser("fix-gaps", "Move bundle members below the first member")
    fix.add_argument("bundle", help="Bundle number")
    writing_options(fix)

    dissolve = workbook_parser("dissolve", "Clear a bundle number from all members")
    dissolve.add_argument("bundle", help="Bundle number")
    writing_options(dissolve)

    action = workbook_parser("action", "Apply an approver action to one row")
    action.add_argument("row", type=int, help="Sheet row number")
    action.add_argument("choice", help="e.g. \"Approve Original Price\"")
    action.add_argument("--comment", default=None, help="Approver comment (required to reject)")
    writing_options(action)

    health = workbook_parser("health-check", "Revert finalized rows without an approval date to Pending")
    writing_options(health)

    approve_all = workbook_parser("approve-all", "Approve every Pending/Revised row")
    writing_options(approve_all)

    return p.parse_args(argv)


def _deal_flag(args: argparse.Namespace, workbook: OfferWorkbook) -> bool:
    if getattr(args, "telekom_deal", None) is None:
        return workbook.is_telekom_deal
    return args.telekom_deal == "yes"


def _user(args: argparse.Namespace) -> str:
    if getattr(args, "user", None):
        return args.user
    try:
        return getpass.getuser()
    except (KeyError, OSError):
        return ""


def _bundle_report(workbook: OfferWorkbook, cfg: WorkflowConfig) -> dict[str, Any]:
    rows = workbook.sheet.read_rows()
    return {
        "bundles": [
            {
                "bundle_id": b.bundle_id,
                "start_row": b.start_row,
                "end_row": b.end_row,
                "is_valid": b.is_valid,
                "error_code": b.error_code.value if b.error_code else None,
            }
            for b in find_all_bundles(rows, cfg.field_index, cfg.start_col)
        ],
        "errors": [e.to_dict() for e in find_all_bundle_errors(rows, cfg.field_index, cfg.start_col)],
    }


def _run_bundles(args: argparse.Namespace, cfg: WorkflowConfig) -> int:
    logger = setup_logging()
    workbook = read_offer_workbook(args.workbook, cfg)
    report = _bundle_report(workbook, cfg)
    if args.json:
        print(json.dumps(report, ensure_ascii=False, default=str))
    else:
        for b in report["bundles"]:
            state = "ok" if b["is_valid"] else b["error_code"]
            logger.info(f"bundle #{b['bundle_id']} rows {b['start_row']}-{b['end_row']} {state}")
        for e in report["errors"]:
            logger.warning(e["error_message"])
    return EXIT_BUNDLE_ERRORS if report["errors"] else EXIT_SUCCESS


def _run_recalc(args: argparse.Namespace, cfg: WorkflowConfig) -> int:
    logger = setup_logging()
    workbook = read_offer_workbook(args.workbook, cfg)
    sheet = workbook.sheet
    reconciler = BundleReconciler(sheet, InMemoryBundleDescriptorStore(), cfg.field_index, cfg.start_col)
    user = _user(args)

    if args.command == "correct":
        apply_bundle_correction(sheet, args.bundle, args.term, args.quantity, reconciler)
    elif args.command == "fix-gaps":
        fix_bundle_gaps(sheet, args.bundle, reconciler)
    elif args.command == "dissolve":
        dissolve_bundle(sheet, args.bundle, reconciler)

    activity_log = ActivityLogBuffer()
    result = recalculate_all_rows(
        sheet,
        cfg,
        _deal_flag(args, workbook),
        force_revision=getattr(args, "force_revision", False),
        activity_log=activity_log,
        user=user,
        reconciler=reconciler,
    )

    output = args.output or args.workbook
    write_offer_sheet(sheet, output, workbook.sheet_name)
    logger.info(f"written: {output}")
    log_path = activity_log.flush()
    if log_path is not None:
        logger.info(f"activity log: {log_path}")

    for error in result.bundle_errors:
        logger.warning(error.error_message)

    # log_summary が "SUMMARY " を付けるので先頭を落とす
    log_summary(render_summary_line(result)[len("SUMMARY "):])
    return EXIT_BUNDLE_ERRORS if result.bundle_errors else EXIT_SUCCESS


def _run_action(args: argparse.Namespace, cfg: WorkflowConfig) -> int:
    logger = setup_logging()
    workbook = read_offer_workbook(args.workbook, cfg)
    sheet = workbook.sheet
    approver = _user(args)
    if args.comment is not None:
        with sheet.exclusive():
            sheet.set(args.row, APPROVER_COMMENTS, args.comment)

    activity_log = ActivityLogBuffer()
    outcome = apply_approver_action(
        sheet,
        args.row,
        args.choice,
        cfg,
        approver,
        datetime.now(),
        _deal_flag(args, workbook),
        activity_log=activity_log,
    )
    if not outcome.accepted:
        logger.error(outcome.message or f"no action applied to row {args.row}")
        return EXIT_FATAL

    output = args.output or args.workbook
    write_offer_sheet(sheet, output, workbook.sheet_name)
    activity_log.flush()
    logger.info(f"row {args.row}: {cfg.statuses.text(outcome.new_status)} ({output})")
    return EXIT_SUCCESS


def _run_sheet_pass(args: argparse.Namespace, cfg: WorkflowConfig) -> int:
    logger = setup_logging()
    workbook = read_offer_workbook(args.workbook, cfg)
    sheet = workbook.sheet
    user = _user(args)

    activity_log = ActivityLogBuffer()
    if args.command == "health-check":
        touched = run_health_check(sheet, cfg, activity_log, user=user)
    else:
        touched = approve_all_rows(sheet, cfg, user, datetime.now(), _deal_flag(args, workbook), activity_log)

    # 変更がなければ元のブックには触らない
    if not touched and args.output is None:
        return EXIT_SUCCESS
    output = args.output or args.workbook
    write_offer_sheet(sheet, output, workbook.sheet_name)
    logger.info(f"written: {output}")
    log_path = activity_log.flush()
    if log_path is not None:
        logger.info(f"activity log: {log_path}")
    return EXIT_SUCCESS


def main(argv: list[str] | None = None) -> int:
    logger = setup_logging()

    # None のときのみシステム引数を読む (テストで main([]) を呼べるように)
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    _load_env_file(Path(".env"))

    if args.debug:
        logger = setup_logging(verbose=True)
        logger.debug("debug mode enabled")

    try:
        cfg = load_config(args.config)
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL

    if not args.workbook.exists():
        logger.error(f"workbook not found: {args.workbook}")
        return EXIT_FATAL

    try:
        if args.command == "bundles":
            return _run_bundles(args, cfg)
        if args.command == "action":
            return _run_action(args, cfg)
        if args.command in ("health-check", "approve-all"):
            return _run_sheet_pass(args, cfg)
        return _run_recalc(args, cfg)
    except IndexError as e:
        logger.error(f"{args.command}: {e}")
        return EXIT_FATAL
    except _FATAL_ERRORS as e:
        logger.error(f"{args.command}: {e}")
        return EXIT_FATAL


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
