"""
Resolution Applier

Turns operator-confirmed DiffItems into roster writes. A parent change never
overwrites history: it becomes a transferred-out record for the old parent and
an active record for the new one, both dated at the transition month.

Items are staged one by one; an item that cannot be applied is reported and
the rest still go through.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from .models import Action, DiffItem, Role, StaffRecord, StaffStatus
from .roster import Roster, RosterError, RosterTransaction
from .settings import DEFAULT_SETTINGS, RosterSettings

logger = logging.getLogger(__name__)


@dataclass
class ApplyResult:
    changed_count: int = 0
    failed: List[Dict[str, str]] = field(default_factory=list)
    appended: List[StaffRecord] = field(default_factory=list)

    def to_dict(self) -> Dict:
        return {
            "changed_count": self.changed_count,
            "failed": self.failed,
            "appended": [r.to_dict() for r in self.appended],
        }


def confirmed_parent(item: DiffItem, settings: RosterSettings = DEFAULT_SETTINGS) -> Optional[str]:
    """
    Parent the operator settled on, or None when the item makes no change.
    "" means company-direct (or a director, who has no parent).
    """
    if item.action == Action.REJECT:
        return None
    if item.action == Action.MODIFY:
        if not item.confirmed_parent:
            return None
        parent = item.confirmed_parent
    else:
        parent = item.confirmed_parent or item.suggested_parent
    if item.role == Role.DIRECTOR or parent == settings.company_direct_label:
        return ""
    return parent


def transition_month(item: DiffItem, parent: str, as_of_month: int) -> int:
    """First ledger month showing the new parent, else first ledger month, else as_of_month."""
    ledger = item.ledger
    if ledger is not None:
        matching = [m for m, ps in ledger.parents_by_month.items() if parent in ps]
        if matching:
            return min(matching)
        if ledger.months_observed:
            return min(ledger.months_observed)
    return as_of_month


def _apply_item(txn: RosterTransaction, item: DiffItem, parent: str, month: int) -> bool:
    """Stage the writes for one item. Returns True when the roster changes."""
    existing = txn.records_for(item.name, item.role)
    if not existing:
        txn.append(StaffRecord(
            name=item.name,
            role=item.role,
            parent_name=parent,
            code=item.code,
            status=StaffStatus.ACTIVE,
            effective_month=month,
        ))
        return True

    current = txn.lookup_effective(item.name, item.role, month)
    if current is None:
        # Known name but nothing active for that month (e.g. resigned earlier)
        txn.append(StaffRecord(
            name=item.name,
            role=item.role,
            parent_name=parent,
            code=item.code,
            status=StaffStatus.ACTIVE,
            effective_month=month,
        ))
        return True

    if current.parent_name == parent:
        return txn.backfill(current, code=item.code)

    txn.transfer(current, parent, month, code=item.code)
    return True


def apply_items(
    roster: Roster,
    items: Iterable[DiffItem],
    as_of_month: int,
    settings: RosterSettings = DEFAULT_SETTINGS,
) -> ApplyResult:
    """Stage and commit every applicable item. Persistence is the caller's concern."""
    result = ApplyResult()
    txn = roster.begin()
    for item in items:
        parent = confirmed_parent(item, settings)
        if parent is None:
            continue
        month = transition_month(item, parent, as_of_month)
        try:
            if _apply_item(txn, item, parent, month):
                result.changed_count += 1
        except RosterError as e:
            logger.warning("Could not apply %s %s: %s", item.role.value, item.name, e)
            result.failed.append({"id": item.id, "name": item.name, "role": item.role.value, "error": str(e)})
    result.appended = roster.commit(txn)
    logger.info(
        "Applied resolutions: %d changed, %d failed, %d records appended",
        result.changed_count, len(result.failed), len(result.appended),
    )
    return result
