from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path

from .adapters import load_ledger_rows, load_secondary_rows
from .engine import check_integrity, extract_diff, output_filename, scan_and_fill_ledger
from .outputs import write_diff_xlsx, write_integrity_xlsx
from .roster import JsonRosterStore, Roster, RosterPersistenceError
from .settings import DEFAULT_SETTINGS, current_month


def _load_inputs(args):
    s = DEFAULT_SETTINGS
    ledger = load_ledger_rows(Path(args.ledger), settings=s) if args.ledger else []
    secondary = load_secondary_rows(Path(args.secondary), settings=s) if args.secondary else []
    return ledger, secondary


def _out_path(args, kind: str) -> Path:
    if args.out:
        return Path(args.out)
    out_dir = Path(DEFAULT_SETTINGS.output_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    return out_dir / output_filename(kind)


def run_diff(args, roster: Roster) -> dict:
    ledger, secondary = _load_inputs(args)
    diff = extract_diff(roster, secondary, ledger)
    path = _out_path(args, "diff")
    write_diff_xlsx(path, diff)
    print(f"Wrote: {path}")
    summary = diff.to_dict()
    summary.pop("items")
    return summary


def run_scan(args, roster: Roster) -> dict:
    ledger, secondary = _load_inputs(args)
    month = args.month or current_month()
    result = scan_and_fill_ledger(roster, ledger, month, secondary, wait=True)
    alert = check_integrity(ledger, DEFAULT_SETTINGS.integrity_detail_limit)
    if alert.has_missing:
        path = _out_path(args, "integrity")
        write_integrity_xlsx(path, alert)
        print(f"Wrote: {path}")
    out = result.to_dict()
    out["integrity"] = {k: v for k, v in alert.to_dict().items() if k != "details"}
    return out


def run_integrity(args, roster: Roster) -> dict:
    ledger, _ = _load_inputs(args)
    alert = check_integrity(ledger, DEFAULT_SETTINGS.integrity_detail_limit)
    path = _out_path(args, "integrity")
    write_integrity_xlsx(path, alert)
    print(f"Wrote: {path}")
    return {k: v for k, v in alert.to_dict().items() if k != "details"}


def main(argv=None):
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    ap = argparse.ArgumentParser(description="Staff hierarchy reconciliation")
    ap.add_argument("mode", choices=["diff", "scan", "integrity"])
    ap.add_argument("--ledger", help="ledger workbook (.xlsx/.csv)")
    ap.add_argument("--secondary", help="HR / network export workbook")
    ap.add_argument("--store", default=DEFAULT_SETTINGS.store_path, help="roster JSON file")
    ap.add_argument("--month", type=int, choices=range(1, 13), metavar="1-12",
                    help="as-of month for the fill (default: current month)")
    ap.add_argument("--out", help="xlsx output path")
    args = ap.parse_args(argv)

    if args.mode in ("scan", "integrity") and not args.ledger:
        ap.error(f"{args.mode} needs --ledger")

    try:
        roster = Roster.load(JsonRosterStore(args.store))
    except RosterPersistenceError as e:
        ap.exit(1, f"error: {e}\n")
    if args.mode == "diff":
        out = run_diff(args, roster)
    elif args.mode == "scan":
        out = run_scan(args, roster)
    else:
        out = run_integrity(args, roster)
    print(json.dumps(out, ensure_ascii=False, indent=2))


if __name__ == "__main__":
    main()
