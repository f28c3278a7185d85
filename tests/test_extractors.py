from roster_backend.extractors import extract_ledger, extract_secondary, extract_system
from roster_backend.models import Role, StaffStatus
from roster_backend.roster import Roster


def test_ledger_accumulates_per_person(ledger_row):
    rows = [
        ledger_row("A", "Mgr1", "D1", month=1, amount=100),
        ledger_row("A", "Mgr1", "D1", month=3, amount=250),
        ledger_row("B", "Mgr1", "D1", month=3, amount=50),
    ]
    views = extract_ledger(rows)

    a = views[(Role.CUSTOMER_MANAGER, "A")]
    assert a.policy_count == 2
    assert a.total_amount == 350
    assert a.months_observed == {1, 3}
    assert a.parent_name == "Mgr1"

    mgr = views[(Role.DEPT_MANAGER, "Mgr1")]
    assert mgr.policy_count == 3
    assert mgr.parent_name == "D1"
    assert views[(Role.DIRECTOR, "D1")].parent_name == ""


def test_ledger_skips_undated_rows_entirely(ledger_row):
    rows = [
        ledger_row("A", "Mgr1", "D1", month=2, amount=100),
        ledger_row("A", "Mgr9", "D1", month=None, signed_on="not a date", amount=999),
        ledger_row("Ghost", "Mgr1", "D1", month=None, amount=5),
    ]
    views = extract_ledger(rows)
    a = views[(Role.CUSTOMER_MANAGER, "A")]
    assert a.policy_count == 1
    assert a.total_amount == 100
    assert (Role.CUSTOMER_MANAGER, "Ghost") not in views
    assert (Role.DEPT_MANAGER, "Mgr9") not in views


def test_ledger_first_non_empty_parent_and_code_win(ledger_row):
    rows = [
        ledger_row("A", "", "D1", month=1),
        ledger_row("A", "Mgr1", "D1", month=2, customer_manager_code="C01"),
        ledger_row("A", "Mgr2", "D1", month=4, customer_manager_code="C99"),
    ]
    a = extract_ledger(rows)[(Role.CUSTOMER_MANAGER, "A")]
    assert a.parent_name == "Mgr1"
    assert a.code == "C01"
    assert a.parents_by_month == {2: {"Mgr1"}, 4: {"Mgr2"}}


def test_ledger_accepts_excel_serial_and_string_dates(ledger_row):
    rows = [
        ledger_row("A", "Mgr1", "D1", month=None, signed_on=46054),        # 2026-02-01
        ledger_row("A", "Mgr1", "D1", month=None, signed_on="2026/05/20"),
    ]
    a = extract_ledger(rows)[(Role.CUSTOMER_MANAGER, "A")]
    assert a.months_observed == {2, 5}


def test_secondary_first_occurrence_wins(secondary_row):
    rows = [
        secondary_row("A", "Mgr1", "D1", customer_manager_code="C01"),
        secondary_row("A", "Mgr2", "D1", customer_manager_code="C99"),
    ]
    a = extract_secondary(rows)[(Role.CUSTOMER_MANAGER, "A")]
    assert a.parent_name == "Mgr1"
    assert a.code == "C01"
    assert a.status == "active"
    assert a.months_observed == set()


def test_secondary_skips_placeholders_and_rows_without_agency(secondary_row):
    rows = [
        secondary_row("#N/A", "Mgr1", "D1"),
        secondary_row("B", "Mgr1", "D1", agency=""),
    ]
    views = extract_secondary(rows)
    assert (Role.CUSTOMER_MANAGER, "#N/A") not in views
    assert (Role.CUSTOMER_MANAGER, "B") not in views
    assert (Role.DEPT_MANAGER, "Mgr1") in views


def test_secondary_survives_malformed_row(secondary_row):
    rows = [object(), secondary_row("A", "Mgr1", "D1")]
    views = extract_secondary(rows)
    assert (Role.CUSTOMER_MANAGER, "A") in views


def test_system_uses_latest_month_effective_parent(record):
    roster = Roster([
        record("A", parent="Mgr1", month=0, code="C01"),
        record("A", parent="Mgr1", month=4, status=StaffStatus.TRANSFERRED),
        record("A", parent="Mgr2", month=4),
    ])
    a = extract_system(roster)[(Role.CUSTOMER_MANAGER, "A")]
    assert a.parent_name == "Mgr2"
    assert a.months_observed == {4}
    assert a.code == "C01"
    assert a.status == "active"


def test_system_year_default_only(record):
    roster = Roster([record("A", parent="Mgr1")])
    a = extract_system(roster)[(Role.CUSTOMER_MANAGER, "A")]
    assert a.parent_name == "Mgr1"
    assert a.months_observed == set()


def test_system_person_with_no_active_record(record):
    roster = Roster([record("A", parent="Mgr1", status=StaffStatus.RESIGNED)])
    a = extract_system(roster)[(Role.CUSTOMER_MANAGER, "A")]
    assert a.status == "resigned"
    assert a.parent_name == "Mgr1"


def test_ledger_keeps_every_parent_seen_in_a_month(ledger_row):
    rows = [
        ledger_row("A", "Mgr1", "D1", month=4, day=1),
        ledger_row("A", "Mgr2", "D1", month=4, day=20),
    ]
    a = extract_ledger(rows)[(Role.CUSTOMER_MANAGER, "A")]
    assert a.parent_name == "Mgr1"
    assert a.parents_by_month == {4: {"Mgr1", "Mgr2"}}
