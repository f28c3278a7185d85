"""
Source Adapters

Each adapter turns one kind of upload into typed rows so the engine never
looks at raw header text.

Supported sources:
- Ledger (policy detail sheet)  -> LedgerRow
- HR / network export           -> SecondaryRow

Header rows are not always the first row: the adapter scans the top of the
sheet for the row that carries the most known column names.
"""
from __future__ import annotations

import io
import logging
import re
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import pandas as pd

from .models import LedgerRow, SecondaryRow
from .settings import DEFAULT_SETTINGS, RosterSettings
from .utils import safe_float, safe_str

logger = logging.getLogger(__name__)

Source = Union[Path, str, bytes]


def _norm_header(value: Any) -> str:
    return re.sub(r"\s+", "", safe_str(value)).lower()


# =============================================================================
# Base Adapter
# =============================================================================

class BaseAdapter(ABC):
    """Base class for all upload adapters"""

    # Preferred sheet names, in order
    SHEET_CANDIDATES: List[str] = []
    # Sheet name fragments tried when no candidate exists
    SHEET_HINTS: List[str] = []
    # Header row needs at least two of these
    HEADER_KEYWORDS: List[str] = []
    # canonical field -> header aliases
    COLUMNS: Dict[str, List[str]] = {}

    def __init__(self, settings: RosterSettings = DEFAULT_SETTINGS):
        self.settings = settings

    @abstractmethod
    def parse(self, source: Source, filename: str = "") -> list:
        """Parse an upload and return typed rows"""

    def _read_file(self, source: Source, filename: str = "") -> pd.DataFrame:
        """Read the relevant sheet without a header; empty frame on failure."""
        name = filename or (str(source) if not isinstance(source, bytes) else "")
        ext = Path(name).suffix.lower()
        data = io.BytesIO(source) if isinstance(source, bytes) else source
        # Only empty cells are NaN; "#N/A" stays text for settings.placeholder_names
        try:
            if ext == ".csv":
                return pd.read_csv(data, header=None, dtype=object, keep_default_na=False, na_values=[""])
            sheets = pd.read_excel(data, sheet_name=None, header=None, keep_default_na=False, na_values=[""])
        except Exception as e:
            # Unreadable upload: report it and let the engine see no rows
            logger.error("Failed to read %s: %s", name or "upload", e)
            return pd.DataFrame()
        sheet = self._choose_sheet(list(sheets))
        if sheet is None:
            return pd.DataFrame()
        return sheets[sheet]

    def _choose_sheet(self, names: List[str]) -> Optional[str]:
        for candidate in self.SHEET_CANDIDATES:
            if candidate in names:
                return candidate
        for hint in self.SHEET_HINTS:
            for n in names:
                if hint in n:
                    return n
        return names[0] if names else None

    def _detect_header_row(self, raw: pd.DataFrame) -> int:
        limit = min(len(raw), self.settings.header_scan_rows)
        for r in range(limit):
            cells = "|".join(safe_str(c) for c in raw.iloc[r].tolist())
            hits = sum(1 for kw in self.HEADER_KEYWORDS if kw in cells)
            if hits >= 2:
                return r
        return 0

    def _frame(self, source: Source, filename: str = "") -> pd.DataFrame:
        raw = self._read_file(source, filename)
        if raw.empty:
            return raw
        header_idx = self._detect_header_row(raw)
        df = raw.iloc[header_idx + 1:].copy()
        df.columns = [_norm_header(c) for c in raw.iloc[header_idx].tolist()]
        df = df.dropna(how="all")
        return df

    def _map_columns(self, df: pd.DataFrame) -> Dict[str, str]:
        """Exact alias matches first, then partial matches on unclaimed columns."""
        cols = [c for c in df.columns if c]
        mapping: Dict[str, str] = {}
        for fld, aliases in self.COLUMNS.items():
            for alias in aliases:
                a = _norm_header(alias)
                if a in cols and a not in mapping.values():
                    mapping[fld] = a
                    break
        for fld, aliases in self.COLUMNS.items():
            if fld in mapping:
                continue
            for alias in aliases:
                a = _norm_header(alias)
                hit = next((c for c in cols if a in c and c not in mapping.values()), None)
                if hit:
                    mapping[fld] = hit
                    break
        return mapping

    @staticmethod
    def _cell(row: pd.Series, mapping: Dict[str, str], fld: str) -> Any:
        col = mapping.get(fld)
        if col is None:
            return None
        value = row.get(col)
        # Duplicate headers come back as a Series
        if isinstance(value, pd.Series):
            value = value.iloc[0]
        return value


# =============================================================================
# Ledger Adapter
# =============================================================================

class LedgerAdapter(BaseAdapter):
    """
    Adapter for the policy-level sales ledger.

    Dates are kept as the raw cell; the engine derives the month and drops
    rows it cannot date.
    """

    SHEET_CANDIDATES = ["数据来源", "Sheet1", "保单明细"]
    HEADER_KEYWORDS = ["保单签单日期", "营业部经理", "客户经理", "新约保费"]
    COLUMNS = {
        "signed_on": ["保单签单日期", "签单日期", "signed_on", "sign_date"],
        "amount": ["新约保费", "期交保费", "amount", "premium"],
        "policy_no": ["保单号", "policy_no"],
        "bank": ["银行总行", "bank"],
        "network_code": ["业绩归属网点代码", "代理机构代码", "network_code"],
        "network_name": ["业绩归属网点名称", "network_name"],
        "director_code": ["营业区总监工号", "director_code"],
        "director": ["营业区总监", "营业区总监姓名", "director"],
        "dept_manager_code": ["营业部经理工号", "dept_manager_code"],
        "dept_manager": ["营业部经理名称", "营业部经理姓名", "dept_manager"],
        "customer_manager_code": ["业绩归属客户经理工号", "客户经理工号", "customer_manager_code"],
        "customer_manager": ["业绩归属客户经理姓名", "客户经理姓名", "customer_manager"],
    }

    def parse(self, source: Source, filename: str = "") -> List[LedgerRow]:
        df = self._frame(source, filename)
        if df.empty:
            return []
        mapping = self._map_columns(df)
        if "signed_on" not in mapping:
            logger.warning("Ledger upload has no policy date column; every row will be undated")

        rows: List[LedgerRow] = []
        for _, row in df.iterrows():
            rows.append(LedgerRow(
                signed_on=self._cell(row, mapping, "signed_on"),
                amount=safe_float(self._cell(row, mapping, "amount")),
                policy_no=safe_str(self._cell(row, mapping, "policy_no")),
                bank=safe_str(self._cell(row, mapping, "bank")),
                network_code=safe_str(self._cell(row, mapping, "network_code")),
                network_name=safe_str(self._cell(row, mapping, "network_name")),
                director=safe_str(self._cell(row, mapping, "director")),
                director_code=safe_str(self._cell(row, mapping, "director_code")),
                dept_manager=safe_str(self._cell(row, mapping, "dept_manager")),
                dept_manager_code=safe_str(self._cell(row, mapping, "dept_manager_code")),
                customer_manager=safe_str(self._cell(row, mapping, "customer_manager")),
                customer_manager_code=safe_str(self._cell(row, mapping, "customer_manager_code")),
            ))
        logger.info("Ledger upload: %d rows", len(rows))
        return rows


# =============================================================================
# Secondary Roster Adapter
# =============================================================================

class SecondaryRosterAdapter(BaseAdapter):
    """Adapter for the HR / network export (one row per outlet assignment)"""

    SHEET_CANDIDATES = ["网点", "Sheet1"]
    SHEET_HINTS = ["网点", "代理"]
    HEADER_KEYWORDS = ["代理机构名称", "代理机构代码", "营业部经理", "客户经理"]
    COLUMNS = {
        "agency_name": ["代理机构名称", "agency_name"],
        "agency_code": ["代理机构代码", "agency_code", "network_code"],
        "director_code": ["营业区总监工号", "director_code"],
        "director": ["营业区总监姓名", "营业区总监", "director"],
        "dept_manager_code": ["营业部经理工号", "dept_manager_code"],
        "dept_manager": ["营业部经理姓名", "营业部经理名称", "dept_manager"],
        "customer_manager_code": ["客户经理工号", "customer_manager_code"],
        "customer_manager": ["客户经理姓名", "customer_manager"],
    }

    def parse(self, source: Source, filename: str = "") -> List[SecondaryRow]:
        df = self._frame(source, filename)
        if df.empty:
            return []
        mapping = self._map_columns(df)
        rows: List[SecondaryRow] = []
        for _, row in df.iterrows():
            rows.append(SecondaryRow(**{
                fld: safe_str(self._cell(row, mapping, fld)) for fld in self.COLUMNS
            }))
        logger.info("HR export upload: %d rows", len(rows))
        return rows


def load_ledger_rows(source: Source, filename: str = "", settings: RosterSettings = DEFAULT_SETTINGS) -> List[LedgerRow]:
    return LedgerAdapter(settings).parse(source, filename)


def load_secondary_rows(source: Source, filename: str = "", settings: RosterSettings = DEFAULT_SETTINGS) -> List[SecondaryRow]:
    return SecondaryRosterAdapter(settings).parse(source, filename)
