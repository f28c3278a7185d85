"""Report ledger rows that are still missing a manager or director after the fill."""
from __future__ import annotations

from typing import Dict, Iterable, Tuple

from .models import IntegrityAlert, LedgerRow, MissingRecord, PersonMissing, Role
from .settings import DEFAULT_SETTINGS, RosterSettings
from .utils import clean_name, safe_float, safe_str


def check_integrity(
    rows: Iterable[LedgerRow],
    detail_limit: int = 100,
    settings: RosterSettings = DEFAULT_SETTINGS,
) -> IntegrityAlert:
    alert = IntegrityAlert()
    by_person: Dict[Tuple[Role, str], PersonMissing] = {}

    def bump(role: Role, name: str, missing_field: str, amount: float, month: int):
        key = (role, name)
        p = by_person.get(key)
        if p is None:
            p = PersonMissing(name=name, role=role, missing_field=missing_field)
            by_person[key] = p
        p.count += 1
        p.total_amount += amount
        if month:
            p.months.add(month)

    placeholders = settings.placeholder_names
    for row in rows:
        manager = clean_name(row.dept_manager, placeholders)
        director = clean_name(row.director, placeholders)
        if manager and director:
            continue

        customer_manager = clean_name(row.customer_manager, placeholders)
        amount = safe_float(row.amount)
        month = row.month or 0

        if not manager and not director:
            missing_field = "both"
            alert.missing_both_count += 1
        elif not manager:
            missing_field = "manager"
            alert.missing_manager_count += 1
        else:
            missing_field = "director"
            alert.missing_director_count += 1

        if len(alert.details) < detail_limit:
            alert.details.append(MissingRecord(
                policy_no=safe_str(row.policy_no),
                customer_manager=customer_manager,
                network_name=safe_str(row.network_name),
                bank=safe_str(row.bank),
                amount=amount,
                month=month,
                missing_field=missing_field,
            ))

        if not manager and customer_manager:
            bump(Role.CUSTOMER_MANAGER, customer_manager, "dept_manager", amount, month)
        if not director and manager:
            bump(Role.DEPT_MANAGER, manager, "director", amount, month)

    alert.missing_by_person = sorted(by_person.values(), key=lambda p: (-p.count, p.name))
    return alert
