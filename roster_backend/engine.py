from __future__ import annotations

import logging
from concurrent.futures import Future
from datetime import datetime
from typing import Iterable, List, Optional, Sequence

from .applier import ApplyResult, apply_items
from .classifier import classify
from .extractors import extract_ledger, extract_secondary, extract_system
from .integrity import check_integrity
from .models import DIFF_KIND_ORDER, DiffItem, DiffResult, LedgerRow, Role, ScanResult, SecondaryRow
from .roster import Roster, RosterPersistenceError
from .scanner import NetworkIndex, fill_missing_attribution, scan_ledger
from .settings import DEFAULT_SETTINGS, RosterSettings, current_month

logger = logging.getLogger(__name__)

__all__ = [
    "extract_diff",
    "apply_resolutions",
    "scan_and_fill_ledger",
    "check_integrity",
    "output_filename",
]


# -----------------------------
# Three-way diff
# -----------------------------
def extract_diff(
    roster: Roster,
    secondary_rows: Optional[Iterable[SecondaryRow]] = None,
    ledger_rows: Optional[Iterable[LedgerRow]] = None,
    settings: RosterSettings = DEFAULT_SETTINGS,
) -> DiffResult:
    """Classify everyone seen in any of the three sources."""
    system = extract_system(roster)
    secondary = extract_secondary(secondary_rows or [], settings)
    ledger = extract_ledger(ledger_rows or [], settings)

    keys = set(system) | set(secondary) | set(ledger)
    result = DiffResult(
        existing_directors=roster.names(Role.DIRECTOR),
        existing_dept_managers=roster.names(Role.DEPT_MANAGER),
    )
    for role, name in keys:
        item = classify(role, name, system.get((role, name)), secondary.get((role, name)), ledger.get((role, name)))
        if item is None:
            result.consistent_count += 1
        else:
            result.items.append(item)

    result.items.sort(key=lambda i: (DIFF_KIND_ORDER[i.diff_kind], i.role.order, i.name))
    counts = result.counts_by_kind
    logger.info(
        "Staff diff: %d people, %d consistent, %s",
        len(keys), result.consistent_count,
        ", ".join(f"{k.value}={v}" for k, v in counts.items() if v),
    )
    return result


# -----------------------------
# Apply confirmed decisions
# -----------------------------
def apply_resolutions(
    roster: Roster,
    items: Sequence[DiffItem],
    as_of_month: Optional[int] = None,
    wait: bool = True,
    settings: RosterSettings = DEFAULT_SETTINGS,
) -> ApplyResult:
    """
    Write confirmed items to the roster and persist it.

    With wait=True a failed save raises RosterPersistenceError; the in-memory
    roster keeps the applied records either way.
    """
    month = as_of_month or current_month(settings)
    result = apply_items(roster, items, month, settings)
    if result.appended or result.changed_count:
        _persist(roster, wait)
    return result


# -----------------------------
# Ledger scan + fill
# -----------------------------
def scan_and_fill_ledger(
    roster: Roster,
    ledger_rows: List[LedgerRow],
    as_of_month: Optional[int] = None,
    secondary_rows: Optional[Iterable[SecondaryRow]] = None,
    wait: bool = False,
    settings: RosterSettings = DEFAULT_SETTINGS,
) -> ScanResult:
    """Record organic hierarchy changes, then fill blank attribution in ledger_rows."""
    month = as_of_month or current_month(settings)
    result = scan_ledger(roster, ledger_rows, settings)
    network = NetworkIndex.from_rows(secondary_rows or [], settings)
    result.fill = fill_missing_attribution(roster, ledger_rows, month, network, settings)
    if result.added or result.transferred or result.unchanged:
        _persist(roster, wait)
    return result


def _persist(roster: Roster, wait: bool) -> Optional[Future]:
    if roster.store is None:
        return None
    future = roster.save_async()
    if wait:
        exc = future.exception()
        if exc is not None:
            if isinstance(exc, RosterPersistenceError):
                raise exc
            raise RosterPersistenceError(str(exc)) from exc
    return future


# -----------------------------
# Outputs
# -----------------------------
def output_filename(kind: str, when: Optional[datetime] = None) -> str:
    when = when or datetime.now()
    return f"staff_{kind}_{when.strftime('%Y%m%d_%H%M%S')}.xlsx"
