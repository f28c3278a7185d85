from roster_backend.engine import scan_and_fill_ledger
from roster_backend.models import Role, StaffStatus
from roster_backend.roster import Roster
from roster_backend.scanner import NetworkIndex, fill_missing_attribution, latest_parents, scan_ledger

CM = Role.CUSTOMER_MANAGER


def test_scan_adds_unknown_people_at_first_month(base_roster, ledger_row):
    rows = [
        ledger_row("B", "Mgr1", "D1", month=3),
        ledger_row("B", "Mgr1", "D1", month=5),
    ]
    result = scan_ledger(base_roster, rows)

    assert [(c.name, c.month, c.new_parent) for c in result.added] == [("B", 3, "Mgr1")]
    assert result.transferred == []
    assert result.total_scanned == 2
    assert base_roster.lookup_effective("B", CM, 3).parent_name == "Mgr1"
    assert base_roster.lookup_effective("B", CM, 2) is None


def test_scan_records_transfer_pair(base_roster, ledger_row):
    rows = [ledger_row("A", "Mgr2", "D1", month=m) for m in (4, 4, 5, 6)]
    result = scan_ledger(base_roster, rows)

    assert len(result.transferred) == 1
    change = result.transferred[0]
    assert (change.name, change.month, change.old_parent, change.new_parent) == ("A", 4, "Mgr1", "Mgr2")
    pair = [r for r in base_roster.records_for("A", CM) if r.effective_month == 4]
    assert sorted(r.status for r in pair) == sorted([StaffStatus.ACTIVE, StaffStatus.TRANSFERRED])
    assert base_roster.lookup_effective("A", CM, 3).parent_name == "Mgr1"


def test_scan_new_person_then_move_in_one_pass(base_roster, ledger_row):
    rows = [
        ledger_row("B", "Mgr2", "D1", month=5),
        ledger_row("B", "Mgr1", "D1", month=2),
    ]
    result = scan_ledger(base_roster, rows)
    assert [c.month for c in result.added] == [2]
    assert [c.month for c in result.transferred] == [5]
    assert base_roster.lookup_effective("B", CM, 6).parent_name == "Mgr2"


def test_scan_backfills_blank_code(record, ledger_row):
    roster = Roster([record("A", parent="Mgr1")])
    scan_ledger(roster, [ledger_row("A", "Mgr1", "", month=2, customer_manager_code="C01")])
    assert roster.records_for("A", CM)[0].code == "C01"


def test_scan_does_not_touch_existing_month_record(record, ledger_row):
    roster = Roster([record("A", parent="Mgr1", month=4)])
    result = scan_ledger(roster, [ledger_row("A", "Mgr2", "", month=4)])
    assert result.transferred == []
    assert len(roster.records_for("A", CM)) == 1
    assert roster.lookup_effective("A", CM, 4).parent_name == "Mgr1"


def test_scan_ignores_undated_rows(base_roster, ledger_row):
    result = scan_ledger(base_roster, [ledger_row("Ghost", "Mgr1", "D1", month=None)])
    assert result.total_scanned == 0
    assert base_roster.records_for("Ghost", CM) == []


def test_scan_and_fill_is_idempotent(base_roster, ledger_row):
    def ledger():
        return [ledger_row("A", "Mgr2", "D1", month=m) for m in (4, 5)] + [ledger_row("B", "Mgr1", "D1", month=3)]

    first = scan_and_fill_ledger(base_roster, ledger(), as_of_month=6, wait=True)
    assert len(first.added) == 1
    assert len(first.transferred) == 1
    size = len(base_roster)

    second = scan_and_fill_ledger(base_roster, ledger(), as_of_month=6, wait=True)
    assert second.added == []
    assert second.transferred == []
    assert len(base_roster) == size


def test_transfer_then_fill_uses_new_manager(base_roster, ledger_row, store):
    rows = [ledger_row("A", "Mgr2", "D1", month=4) for _ in range(10)]
    rows.append(ledger_row("A", "", "", month=6))
    result = scan_and_fill_ledger(base_roster, rows, as_of_month=6, wait=True)

    assert rows[-1].dept_manager == "Mgr2"
    assert rows[-1].director == "D1"
    assert result.fill.filled_managers == 1
    assert result.fill.filled_directors == 1
    assert Roster.load(store).lookup_effective("A", CM, 6).parent_name == "Mgr2"


def test_fill_prefers_month_specific_record(record, ledger_row):
    roster = Roster([
        record("A", parent="Mgr1"),
        record("A", parent="Mgr2", month=6),
    ])
    march = ledger_row("A", "", "", month=3)
    july = ledger_row("A", "", "", month=7)
    fill_missing_attribution(roster, [march, july], as_of_month=12)
    assert march.dept_manager == "Mgr1"
    assert july.dept_manager == "Mgr2"


def test_fill_falls_back_to_latest_mapping(record, ledger_row):
    roster = Roster([record("A", parent="Mgr2", month=8)])
    row = ledger_row("A", "", "", month=3)
    fill_missing_attribution(roster, [row], as_of_month=12)
    assert row.dept_manager == "Mgr2"


def test_fill_undated_row_uses_as_of_month(record, ledger_row):
    roster = Roster([record("A", parent="Mgr1"), record("A", parent="Mgr2", month=9)])
    row = ledger_row("A", "", "", month=None)
    fill_missing_attribution(roster, [row], as_of_month=10)
    assert row.dept_manager == "Mgr2"


def test_fill_uses_outlet_code_table_last(secondary_row, ledger_row):
    network = NetworkIndex.from_rows([
        secondary_row("X", "Mgr7", "D7", code="N001"),
        secondary_row("Y", "#N/A", "D8", code="N002"),
    ])
    assert network.managers == {"N001": "Mgr7"}
    assert network.directors == {"N001": "D7", "N002": "D8"}

    unknown = ledger_row("Z", "", "", month=2, network_code="N001")
    orphan = ledger_row("", "", "", month=2, network_code="N002")
    result = fill_missing_attribution(Roster(), [unknown, orphan], as_of_month=2, network=network)
    assert (unknown.dept_manager, unknown.director) == ("Mgr7", "D7")
    assert (orphan.dept_manager, orphan.director) == ("", "D8")
    assert result.filled_managers == 1
    assert result.filled_directors == 2


def test_fill_never_overwrites(base_roster, ledger_row):
    row = ledger_row("A", "MgrX", "", month=2)
    result = fill_missing_attribution(base_roster, [row], as_of_month=2)
    assert row.dept_manager == "MgrX"
    assert row.director == ""
    assert result.filled_managers == 0
    assert result.filled_directors == 0


def test_latest_parents_skips_inactive_and_blank(record):
    roster = Roster([
        record("A", parent="Mgr1"),
        record("A", parent="Mgr1", month=5, status=StaffStatus.TRANSFERRED),
        record("A", parent="Mgr2", month=5),
        record("B", parent=""),
    ])
    assert latest_parents(roster, CM) == {"A": "Mgr2"}


def test_fill_treats_placeholder_names_as_blank(secondary_row, ledger_row):
    network = NetworkIndex.from_rows([secondary_row("X", "Mgr7", "D7", code="N001")])
    ghost = ledger_row("#N/A", "", "", month=2, network_code="N001")
    dashed = ledger_row("", "-", "", month=2, network_code="N001")
    result = fill_missing_attribution(Roster(), [ghost, dashed], as_of_month=2, network=network)

    assert ghost.dept_manager == ""
    assert ghost.director == "D7"
    assert dashed.director == "D7"
    assert result.filled_managers == 0
