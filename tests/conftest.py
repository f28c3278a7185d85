from datetime import date

import pytest

from roster_backend.models import LedgerRow, Role, SecondaryRow, StaffRecord, StaffStatus
from roster_backend.roster import JsonRosterStore, Roster


def make_ledger_row(cm="", mgr="", director="", month=1, day=15, amount=1000.0, **kw) -> LedgerRow:
    signed_on = date(2026, month, day) if month else kw.pop("signed_on", None)
    return LedgerRow(
        signed_on=signed_on,
        amount=amount,
        customer_manager=cm,
        dept_manager=mgr,
        director=director,
        **kw,
    )


def make_record(name, role=Role.CUSTOMER_MANAGER, parent="", month=0, status=StaffStatus.ACTIVE, code="") -> StaffRecord:
    return StaffRecord(name=name, role=role, parent_name=parent, effective_month=month, status=status, code=code)


@pytest.fixture
def ledger_row():
    return make_ledger_row


@pytest.fixture
def record():
    return make_record


@pytest.fixture
def secondary_row():
    def _make(cm="", mgr="", director="", agency="Outlet A", code="N001", **kw):
        return SecondaryRow(
            agency_name=agency,
            agency_code=code,
            customer_manager=cm,
            dept_manager=mgr,
            director=director,
            **kw,
        )
    return _make


@pytest.fixture
def store(tmp_path):
    return JsonRosterStore(tmp_path / "roster.json")


@pytest.fixture
def base_roster(store):
    """Director D1 > Mgr1 > A, all year-default records."""
    return Roster(
        [
            make_record("D1", Role.DIRECTOR),
            make_record("Mgr1", Role.DEPT_MANAGER, parent="D1"),
            make_record("Mgr2", Role.DEPT_MANAGER, parent="D1"),
            make_record("A", Role.CUSTOMER_MANAGER, parent="Mgr1"),
        ],
        store=store,
    )
