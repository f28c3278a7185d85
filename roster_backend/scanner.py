"""
Ledger Scanner & Auto-Filler

scan_ledger walks the ledger month by month and records organic hierarchy
changes in the roster without operator review:
- a person never seen before is added at the month they first appear
- a person seen under a new parent gets a transferred/active pair at that
  month, unless the roster already has a record for that exact month

Because a processed month always leaves a record behind, scanning the same
ledger again changes nothing.

fill_missing_attribution repairs blank manager / director names in ledger
rows, trying in order: the roster record effective for the row's month, the
latest known mapping regardless of month, and the HR export's outlet-code
table. It only ever writes into blank fields.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

from .models import FillResult, LedgerRow, Role, ScanChange, ScanResult, SecondaryRow, StaffRecord, StaffStatus
from .roster import Roster
from .settings import DEFAULT_SETTINGS, RosterSettings
from .utils import clean_name, coalesce, safe_str

logger = logging.getLogger(__name__)


@dataclass
class _Sighting:
    name: str
    role: Role
    month: int
    code: str = ""
    parent_name: str = ""


# =============================================================================
# Scan
# =============================================================================

def _collect_sightings(rows: Iterable[LedgerRow], settings: RosterSettings) -> Tuple[List[_Sighting], int]:
    sightings: Dict[Tuple[int, Role, str], _Sighting] = {}
    scanned = 0
    for row in rows:
        month = row.month
        if month is None:
            continue
        scanned += 1
        director = clean_name(row.director, settings.placeholder_names)
        manager = clean_name(row.dept_manager, settings.placeholder_names)
        customer_manager = clean_name(row.customer_manager, settings.placeholder_names)
        chain = [
            (Role.DIRECTOR, director, row.director_code, ""),
            (Role.DEPT_MANAGER, manager, row.dept_manager_code, director),
            (Role.CUSTOMER_MANAGER, customer_manager, row.customer_manager_code, manager),
        ]
        for role, name, code, parent in chain:
            if not name:
                continue
            key = (month, role, name)
            s = sightings.get(key)
            if s is None:
                s = _Sighting(name=name, role=role, month=month)
                sightings[key] = s
            s.parent_name = coalesce(s.parent_name, parent)
            s.code = coalesce(s.code, safe_str(code))
    ordered = sorted(sightings.values(), key=lambda s: (s.month, s.role.order, s.name))
    return ordered, scanned


def scan_ledger(
    roster: Roster,
    rows: Iterable[LedgerRow],
    settings: RosterSettings = DEFAULT_SETTINGS,
) -> ScanResult:
    """Detect new people and transfers in the ledger and commit them to the roster."""
    sightings, scanned = _collect_sightings(rows, settings)
    result = ScanResult(total_scanned=scanned)
    txn = roster.begin()

    for s in sightings:
        existing = txn.records_for(s.name, s.role)
        if not existing:
            txn.append(StaffRecord(
                name=s.name, role=s.role, parent_name=s.parent_name, code=s.code,
                status=StaffStatus.ACTIVE, effective_month=s.month,
            ))
            result.added.append(ScanChange(name=s.name, role=s.role, month=s.month, new_parent=s.parent_name))
            continue

        at_month = txn.has_record_at(s.name, s.role, s.month)
        current = txn.lookup_effective(s.name, s.role, s.month)
        if current is None:
            if at_month:
                result.unchanged += 1
                continue
            txn.append(StaffRecord(
                name=s.name, role=s.role, parent_name=s.parent_name, code=s.code,
                status=StaffStatus.ACTIVE, effective_month=s.month,
            ))
            result.added.append(ScanChange(name=s.name, role=s.role, month=s.month, new_parent=s.parent_name))
            continue

        if s.parent_name and s.parent_name != current.parent_name:
            if at_month:
                result.unchanged += 1
                continue
            txn.transfer(current, s.parent_name, s.month, code=s.code)
            result.transferred.append(ScanChange(
                name=s.name, role=s.role, month=s.month,
                new_parent=s.parent_name, old_parent=current.parent_name,
            ))
            continue

        txn.backfill(current, parent_name=s.parent_name, code=s.code)
        result.unchanged += 1

    roster.commit(txn)
    logger.info(
        "Ledger scan: %d rows, +%d added, %d transferred, %d unchanged",
        scanned, len(result.added), len(result.transferred), result.unchanged,
    )
    return result


# =============================================================================
# Fill
# =============================================================================

@dataclass
class NetworkIndex:
    """Outlet code -> manager / director, from the HR export"""
    managers: Dict[str, str] = field(default_factory=dict)
    directors: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_rows(cls, rows: Iterable[SecondaryRow], settings: RosterSettings = DEFAULT_SETTINGS) -> "NetworkIndex":
        index = cls()
        for r in rows:
            code = safe_str(r.agency_code)
            if not code:
                continue
            manager = clean_name(r.dept_manager, settings.placeholder_names)
            director = clean_name(r.director, settings.placeholder_names)
            if manager:
                index.managers[code] = manager
            if director:
                index.directors[code] = director
        logger.info("Built network mapping: %d code->manager, %d code->director",
                    len(index.managers), len(index.directors))
        return index


def latest_parents(roster: Roster, role: Role) -> Dict[str, str]:
    """Most recent known parent per name, regardless of month."""
    best: Dict[str, StaffRecord] = {}
    for r in roster.records:
        if r.role != role or not r.is_active or not r.parent_name:
            continue
        cur = best.get(r.name)
        if cur is None or (r.effective_month, r.revision) > (cur.effective_month, cur.revision):
            best[r.name] = r
    return {name: r.parent_name for name, r in best.items()}


def _resolve(roster: Roster, global_map: Dict[str, str], name: str, role: Role, month: int) -> str:
    eff = roster.lookup_effective(name, role, month)
    if eff is not None and eff.parent_name:
        return eff.parent_name
    return global_map.get(name, "")


def fill_missing_attribution(
    roster: Roster,
    rows: Iterable[LedgerRow],
    as_of_month: int,
    network: Optional[NetworkIndex] = None,
    settings: RosterSettings = DEFAULT_SETTINGS,
) -> FillResult:
    """Fill blank dept_manager / director fields in place. Placeholder names count as blank."""
    network = network or NetworkIndex()
    manager_of = latest_parents(roster, Role.CUSTOMER_MANAGER)
    director_of = latest_parents(roster, Role.DEPT_MANAGER)
    placeholders = settings.placeholder_names
    result = FillResult()

    for row in rows:
        month = row.month or as_of_month
        customer_manager = clean_name(row.customer_manager, placeholders)
        network_code = safe_str(row.network_code)

        if not clean_name(row.dept_manager, placeholders) and customer_manager:
            manager = _resolve(roster, manager_of, customer_manager, Role.CUSTOMER_MANAGER, month)
            if not manager and network_code:
                manager = network.managers.get(network_code, "")
            if manager:
                row.dept_manager = manager
                result.filled_managers += 1

        if not clean_name(row.director, placeholders):
            manager = clean_name(row.dept_manager, placeholders)
            director = ""
            if manager:
                director = _resolve(roster, director_of, manager, Role.DEPT_MANAGER, month)
            if not director and network_code:
                director = network.directors.get(network_code, "")
            if director:
                row.director = director
                result.filled_directors += 1

    if result.filled_managers or result.filled_directors:
        logger.info("Filled missing attribution: %d manager fields, %d director fields",
                    result.filled_managers, result.filled_directors)
    return result
