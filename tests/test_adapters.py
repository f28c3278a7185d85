from datetime import datetime

import pandas as pd

from roster_backend.adapters import LedgerAdapter, load_ledger_rows, load_secondary_rows
from roster_backend.extractors import extract_secondary
from roster_backend.models import Role

LEDGER_HEADERS = [
    "保单号", "保单签单日期", "新约保费", "业绩归属网点代码",
    "营业区总监", "营业部经理名称", "业绩归属客户经理姓名", "业绩归属客户经理工号",
]


def _write_sheets(path, sheets):
    with pd.ExcelWriter(path, engine="openpyxl") as writer:
        for name, rows in sheets.items():
            pd.DataFrame(rows).to_excel(writer, sheet_name=name, header=False, index=False)


def test_ledger_xlsx_with_title_rows(tmp_path):
    path = tmp_path / "ledger.xlsx"
    _write_sheets(path, {"数据来源": [
        ["2026年保单明细"] + [None] * 7,
        [None] * 8,
        LEDGER_HEADERS,
        ["P001", datetime(2026, 3, 5), 1200.5, "N001", "D1", "Mgr1", "A", "C01"],
        [None] * 8,
        ["P002", datetime(2026, 4, 1), 800, "N002", "", "", "B", ""],
    ]})

    rows = load_ledger_rows(path)
    assert len(rows) == 2
    first, second = rows
    assert first.policy_no == "P001"
    assert first.month == 3
    assert first.amount == 1200.5
    assert (first.director, first.dept_manager, first.customer_manager) == ("D1", "Mgr1", "A")
    assert first.customer_manager_code == "C01"
    assert first.network_code == "N001"
    assert second.month == 4
    assert second.dept_manager == ""


def test_ledger_csv_bytes_with_english_headers():
    data = (
        "signed_on,amount,customer_manager,dept_manager,director\n"
        '2026-03-05,"1,200",A,Mgr1,D1\n'
        "not a date,(50),B,,\n"
    ).encode("utf-8")
    rows = load_ledger_rows(data, filename="ledger.csv")

    assert [r.customer_manager for r in rows] == ["A", "B"]
    assert rows[0].amount == 1200
    assert rows[0].month == 3
    assert rows[1].amount == -50
    assert rows[1].month is None


def test_unreadable_upload_yields_no_rows():
    assert load_ledger_rows(b"definitely not a workbook", filename="ledger.xlsx") == []


def test_secondary_picks_outlet_sheet(tmp_path):
    path = tmp_path / "hr.xlsx"
    _write_sheets(path, {
        "说明": [["read me"]],
        "网点信息": [
            ["代理机构名称", "代理机构代码", "营业区总监姓名", "营业部经理姓名", "客户经理姓名"],
            ["Outlet A", "N001", "D1", "Mgr1", "A"],
            ["Outlet B", "N002", "D1", "Mgr2", "#N/A"],
        ],
    })

    rows = load_secondary_rows(path)
    assert [(r.agency_code, r.dept_manager, r.customer_manager) for r in rows] == [
        ("N001", "Mgr1", "A"),
        ("N002", "Mgr2", "#N/A"),
    ]
    assert rows[0].agency_name == "Outlet A"
    assert rows[0].director == "D1"

    views = extract_secondary(rows)
    assert (Role.CUSTOMER_MANAGER, "#N/A") not in views
    assert views[(Role.DEPT_MANAGER, "Mgr2")].parent_name == "D1"


def test_column_mapping_prefers_exact_header():
    adapter = LedgerAdapter()
    df = pd.DataFrame(columns=["dept_manager_code", "dept_manager", "signed_on"])
    mapping = adapter._map_columns(df)
    assert mapping["dept_manager"] == "dept_manager"
    assert mapping["dept_manager_code"] == "dept_manager_code"
    assert mapping["signed_on"] == "signed_on"
