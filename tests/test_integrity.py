from roster_backend.engine import check_integrity
from roster_backend.models import Role


def test_complete_rows_raise_no_alert(ledger_row):
    alert = check_integrity([ledger_row("A", "Mgr1", "D1")])
    assert not alert.has_missing
    assert alert.details == []
    assert alert.missing_by_person == []


def test_counts_each_kind_of_gap(ledger_row):
    rows = [
        ledger_row("A", "", "", amount=100, policy_no="P1"),
        ledger_row("A", "", "D1", amount=200, month=3),
        ledger_row("B", "Mgr1", "", amount=50),
        ledger_row("C", "Mgr1", "D1"),
    ]
    alert = check_integrity(rows)

    assert alert.missing_both_count == 1
    assert alert.missing_manager_count == 1
    assert alert.missing_director_count == 1
    assert alert.total_missing == 3
    assert [d.missing_field for d in alert.details] == ["both", "manager", "director"]
    assert alert.details[0].policy_no == "P1"


def test_groups_by_person_most_rows_first(ledger_row):
    rows = [
        ledger_row("A", "", "D1", amount=100, month=1),
        ledger_row("A", "", "D1", amount=200, month=3),
        ledger_row("B", "Mgr1", "", amount=50, month=2),
    ]
    people = check_integrity(rows).missing_by_person

    assert [(p.role, p.name, p.missing_field) for p in people] == [
        (Role.CUSTOMER_MANAGER, "A", "dept_manager"),
        (Role.DEPT_MANAGER, "Mgr1", "director"),
    ]
    assert people[0].count == 2
    assert people[0].total_amount == 300
    assert people[0].months == {1, 3}


def test_row_without_customer_manager_counts_but_has_no_person(ledger_row):
    alert = check_integrity([ledger_row("", "", "", month=None)])
    assert alert.missing_both_count == 1
    assert alert.details[0].month == 0
    assert alert.missing_by_person == []


def test_detail_list_is_capped(ledger_row):
    rows = [ledger_row("A", "", "") for _ in range(5)]
    alert = check_integrity(rows, detail_limit=2)
    assert alert.missing_both_count == 5
    assert len(alert.details) == 2
    assert alert.missing_by_person[0].count == 5


def test_placeholder_names_count_as_missing(ledger_row):
    alert = check_integrity([
        ledger_row("#N/A", "", "D1", amount=10),
        ledger_row("A", "-", "D1", amount=20),
    ])
    assert alert.missing_manager_count == 2
    assert [p.name for p in alert.missing_by_person] == ["A"]
