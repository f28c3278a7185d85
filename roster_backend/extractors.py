"""
Source Extractors

Each extractor folds one source into a PersonView per (role, name):
- extract_system:    the effective-dated roster
- extract_secondary: the HR/network export
- extract_ledger:    the sales ledger (only rows with a readable date count)

All three merge repeat sightings the same way: the first non-empty parent and
code win (utils.coalesce). A malformed row only loses its own contribution.
"""
from __future__ import annotations

import logging
from collections import defaultdict
from typing import Dict, Iterable, List, Optional, Tuple

from .models import LedgerRow, PersonView, Role, SecondaryRow, StaffRecord
from .roster import Roster, effective_record
from .settings import DEFAULT_SETTINGS, RosterSettings
from .utils import clean_name, coalesce, safe_float, safe_str

logger = logging.getLogger(__name__)

PersonKey = Tuple[Role, str]


def _chain(row) -> List[Tuple[Role, str, str, str]]:
    """(role, name, code, parent) for the three hierarchy levels of a row."""
    return [
        (Role.DIRECTOR, row.director, row.director_code, ""),
        (Role.DEPT_MANAGER, row.dept_manager, row.dept_manager_code, row.director),
        (Role.CUSTOMER_MANAGER, row.customer_manager, row.customer_manager_code, row.dept_manager),
    ]


def _merge(views: Dict[PersonKey, PersonView], role: Role, name: str, code: str, parent: str) -> PersonView:
    key = (role, name)
    view = views.get(key)
    if view is None:
        view = PersonView(name=name, role=role)
        views[key] = view
    view.parent_name = coalesce(view.parent_name, parent)
    view.code = coalesce(view.code, code)
    return view


# =============================================================================
# System roster
# =============================================================================

def extract_system(roster: Roster) -> Dict[PersonKey, PersonView]:
    grouped: Dict[PersonKey, List[StaffRecord]] = defaultdict(list)
    for r in roster.records:
        if not r.name:
            continue
        grouped[(r.role, r.name)].append(r)

    views: Dict[PersonKey, PersonView] = {}
    for (role, name), records in grouped.items():
        months = {r.effective_month for r in records if r.effective_month}
        latest = max(months) if months else 0
        effective = effective_record(records, latest)
        newest = max(records, key=lambda r: (r.effective_month, r.revision))
        anchor = effective or newest
        views[(role, name)] = PersonView(
            name=name,
            role=role,
            code=coalesce(anchor.code, *(r.code for r in records)),
            parent_name=anchor.parent_name,
            status=anchor.status.value,
            months_observed=months,
        )
    return views


# =============================================================================
# Secondary roster (HR / network export)
# =============================================================================

def extract_secondary(
    rows: Iterable[SecondaryRow],
    settings: RosterSettings = DEFAULT_SETTINGS,
) -> Dict[PersonKey, PersonView]:
    views: Dict[PersonKey, PersonView] = {}
    skipped = 0
    for row in rows:
        try:
            if not safe_str(row.agency_name):
                skipped += 1
                continue
            for role, name, code, parent in _chain(row):
                name = clean_name(name, settings.placeholder_names)
                if not name:
                    continue
                parent = clean_name(parent, settings.placeholder_names)
                view = _merge(views, role, name, safe_str(code), parent)
                view.status = "active"
        except (AttributeError, TypeError, ValueError) as e:
            skipped += 1
            logger.debug("Skipping secondary row %r: %s", row, e)
    if skipped:
        logger.debug("Secondary extract skipped %d rows", skipped)
    return views


# =============================================================================
# Ledger
# =============================================================================

def _ledger_row_month(row: LedgerRow) -> Optional[int]:
    try:
        return row.month
    except (AttributeError, TypeError, ValueError):
        return None


def extract_ledger(
    rows: Iterable[LedgerRow],
    settings: RosterSettings = DEFAULT_SETTINGS,
) -> Dict[PersonKey, PersonView]:
    views: Dict[PersonKey, PersonView] = {}
    skipped = 0
    for row in rows:
        month = _ledger_row_month(row)
        # Undated rows are left out entirely: the snapshot is per month
        if month is None:
            skipped += 1
            continue
        try:
            amount = safe_float(row.amount)
            chain = [
                (role, clean_name(name, settings.placeholder_names), safe_str(code),
                 clean_name(parent, settings.placeholder_names))
                for role, name, code, parent in _chain(row)
            ]
        except (AttributeError, TypeError, ValueError) as e:
            skipped += 1
            logger.debug("Skipping ledger row %r: %s", row, e)
            continue
        for role, name, code, parent in chain:
            if not name:
                continue
            view = _merge(views, role, name, code, parent)
            view.policy_count += 1
            view.total_amount += amount
            view.months_observed.add(month)
            if parent:
                view.parents_by_month.setdefault(month, set()).add(parent)
    if skipped:
        logger.debug("Ledger extract skipped %d undated or malformed rows", skipped)
    return views
