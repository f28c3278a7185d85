"""
Effective-Dated Roster

The system-of-record staff hierarchy. Records are only ever appended; the
one in-place change allowed is filling a previously-blank parent or code.

Writers stage appends and backfills in a RosterTransaction (which already
sees its own staged writes) and hand it to Roster.commit. Persistence runs on
a background worker: reads reflect a commit immediately, durability only once
the future returned by save_async() resolves.
"""
from __future__ import annotations

import json
import logging
import os
import uuid
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import replace
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

from .models import Backfill, Role, StaffRecord, StaffStatus

logger = logging.getLogger(__name__)


class RosterError(Exception):
    """Base class for roster write failures"""


class DuplicateRecordError(RosterError):
    """An active record already exists for (name, role, effective_month)"""


class UnknownRecordError(RosterError):
    pass


class RosterPersistenceError(RosterError):
    """Loading or saving the roster file failed"""


def effective_record(records: Iterable[StaffRecord], as_of_month: int) -> Optional[StaffRecord]:
    """
    Pick the active record in force for as_of_month.

    Candidates are active records with effective_month 0 or <= as_of_month.
    The largest month wins (0 loses to any positive month); equal months go to
    the highest revision.
    """
    best: Optional[StaffRecord] = None
    for r in records:
        if not r.is_active:
            continue
        if r.effective_month and r.effective_month > as_of_month:
            continue
        if best is None or (r.effective_month, r.revision) > (best.effective_month, best.revision):
            best = r
    return best


def _check_unique(existing: Iterable[StaffRecord], record: StaffRecord) -> None:
    if not record.is_active:
        return
    for r in existing:
        if r.is_active and r.effective_month == record.effective_month:
            raise DuplicateRecordError(
                f"{record.role.value} {record.name} already has an active record "
                f"for month {record.effective_month} (id={r.id})"
            )


def new_record_id() -> str:
    return uuid.uuid4().hex[:12]


# =============================================================================
# Persistence
# =============================================================================

class JsonRosterStore:
    """Roster persisted as a JSON document: {"staff": [...]}"""

    def __init__(self, path: os.PathLike | str):
        self.path = Path(path)

    def load(self) -> List[StaffRecord]:
        if not self.path.exists():
            logger.info("No roster file at %s, starting empty", self.path)
            return []
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            raise RosterPersistenceError(f"Failed to read roster {self.path}: {e}") from e
        rows = data.get("staff", []) if isinstance(data, dict) else data
        records: List[StaffRecord] = []
        for i, row in enumerate(rows):
            try:
                records.append(StaffRecord.from_dict(row))
            except (AttributeError, KeyError, TypeError, ValueError) as e:
                raise RosterPersistenceError(f"Bad roster record #{i} in {self.path}: {e}") from e
        return records

    def save(self, records: Iterable[StaffRecord]) -> None:
        payload = {"staff": [r.to_dict() for r in records]}
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp, "w", encoding="utf-8") as f:
                json.dump(payload, f, ensure_ascii=False, indent=2)
            os.replace(tmp, self.path)
        except OSError as e:
            raise RosterPersistenceError(f"Failed to save roster {self.path}: {e}") from e
        logger.info("Saved %d roster records to %s", len(payload["staff"]), self.path)


# =============================================================================
# Transaction
# =============================================================================

class RosterTransaction:
    """
    Records to append and fields to backfill, committed together.

    Lookups go through committed records plus everything staged here, so a
    single pass sees its own writes.
    """

    def __init__(self, roster: "Roster"):
        self._roster = roster
        self.records: List[StaffRecord] = []
        self.backfills: List[Backfill] = []
        self._pending: Dict[str, Backfill] = {}

    def __len__(self) -> int:
        return len(self.records) + len(self.backfills)

    def _overlay(self, record: StaffRecord) -> StaffRecord:
        bf = self._pending.get(record.id)
        if bf is None:
            return record
        return replace(
            record,
            parent_name=record.parent_name or bf.parent_name,
            code=record.code or bf.code,
        )

    def records_for(self, name: str, role: Role) -> List[StaffRecord]:
        committed = [self._overlay(r) for r in self._roster.records_for(name, role)]
        staged = [r for r in self.records if r.name == name and r.role == role]
        return committed + staged

    def lookup_effective(self, name: str, role: Role, as_of_month: int) -> Optional[StaffRecord]:
        return effective_record(self.records_for(name, role), as_of_month)

    def has_record_at(self, name: str, role: Role, month: int) -> bool:
        return any(r.effective_month == month for r in self.records_for(name, role))

    def append(self, record: StaffRecord) -> StaffRecord:
        _check_unique(self.records_for(record.name, record.role), record)
        if not record.id:
            record.id = new_record_id()
        record.revision = self._roster._next_revision()
        self.records.append(record)
        return record

    def backfill(self, record: StaffRecord, parent_name: str = "", code: str = "") -> bool:
        """Stage filling blank fields on a record. Returns True if anything would change."""
        parent_name = "" if record.parent_name else parent_name
        code = "" if record.code else code
        if not parent_name and not code:
            return False
        staged = next((r for r in self.records if r.id == record.id), None)
        if staged is not None:
            staged.parent_name = staged.parent_name or parent_name
            staged.code = staged.code or code
            return True
        bf = self._pending.get(record.id)
        if bf is None:
            bf = Backfill(record_id=record.id)
            self._pending[record.id] = bf
            self.backfills.append(bf)
        bf.parent_name = bf.parent_name or parent_name
        bf.code = bf.code or code
        return True

    def transfer(self, current: StaffRecord, new_parent: str, month: int, code: str = "") -> Tuple[StaffRecord, StaffRecord]:
        """Stage the transferred-out / transferred-in pair for a parent change."""
        code = code or current.code
        in_record = StaffRecord(
            name=current.name,
            role=current.role,
            parent_name=new_parent,
            code=code,
            status=StaffStatus.ACTIVE,
            effective_month=month,
        )
        # Validate the active half before staging anything
        _check_unique(self.records_for(current.name, current.role), in_record)
        out_record = self.append(StaffRecord(
            name=current.name,
            role=current.role,
            parent_name=current.parent_name,
            code=code,
            status=StaffStatus.TRANSFERRED,
            effective_month=month,
        ))
        self.append(in_record)
        return out_record, in_record


# =============================================================================
# Roster
# =============================================================================

class Roster:
    """In-memory roster snapshot with an explicit load / save lifecycle"""

    _executor: Optional[ThreadPoolExecutor] = None

    def __init__(self, records: Optional[Iterable[StaffRecord]] = None, store: Optional[JsonRosterStore] = None):
        self.store = store
        self._records: List[StaffRecord] = []
        self._revision = 0
        for r in records or []:
            # Stored data is taken as-is; uniqueness is enforced on new writes only
            if not r.id:
                r.id = new_record_id()
            if not r.revision:
                r.revision = self._next_revision()
            self._revision = max(self._revision, r.revision)
            self._records.append(r)

    @classmethod
    def load(cls, store: JsonRosterStore) -> "Roster":
        roster = cls(store.load(), store=store)
        logger.info("Loaded roster: %d records", len(roster))
        return roster

    def __len__(self) -> int:
        return len(self._records)

    def _next_revision(self) -> int:
        self._revision += 1
        return self._revision

    @property
    def records(self) -> List[StaffRecord]:
        return list(self._records)

    def find(self, record_id: str) -> StaffRecord:
        for r in self._records:
            if r.id == record_id:
                return r
        raise UnknownRecordError(f"Unknown staff record: {record_id}")

    def records_for(self, name: str, role: Role) -> List[StaffRecord]:
        return [r for r in self._records if r.name == name and r.role == role]

    def lookup_effective(self, name: str, role: Role, as_of_month: int) -> Optional[StaffRecord]:
        return effective_record(self.records_for(name, role), as_of_month)

    def names(self, role: Role) -> List[str]:
        return sorted({r.name for r in self._records if r.role == role})

    def effective_staff(self, month: int) -> List[StaffRecord]:
        """Every person's effective active record for the month."""
        out: List[StaffRecord] = []
        seen = set()
        for r in self._records:
            key = (r.role, r.name)
            if key in seen:
                continue
            seen.add(key)
            eff = self.lookup_effective(r.name, r.role, month)
            if eff is not None:
                out.append(eff)
        out.sort(key=lambda r: (r.role.order, r.parent_name, r.name))
        return out

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    def begin(self) -> RosterTransaction:
        return RosterTransaction(self)

    def append(self, record: StaffRecord) -> StaffRecord:
        txn = self.begin()
        txn.append(record)
        self.commit(txn)
        return record

    def backfill(self, record_id: str, parent_name: str = "", code: str = "") -> bool:
        """Fill a blank parent_name and/or code. Never overwrites a value."""
        record = self.find(record_id)
        changed = False
        if parent_name and not record.parent_name:
            record.parent_name = parent_name
            changed = True
        if code and not record.code:
            record.code = code
            changed = True
        return changed

    def transfer(self, record_id: str, new_parent: str, month: int) -> Tuple[StaffRecord, StaffRecord]:
        """Operator move: close the current assignment and open a new one at month."""
        original = self.find(record_id)
        txn = self.begin()
        pair = txn.transfer(original, new_parent, month)
        self.commit(txn)
        return pair

    def commit(self, txn: RosterTransaction) -> List[StaffRecord]:
        """Apply every staged append and backfill. Staging already validated them."""
        if txn._roster is not self:
            raise RosterError("Transaction belongs to a different roster")
        for bf in txn.backfills:
            self.backfill(bf.record_id, parent_name=bf.parent_name, code=bf.code)
        self._records.extend(txn.records)
        appended = list(txn.records)
        txn.records = []
        txn.backfills = []
        txn._pending = {}
        if appended:
            logger.debug("Committed %d roster records", len(appended))
        return appended

    # -------------------------------------------------------------------------
    # Persistence
    # -------------------------------------------------------------------------

    def save(self) -> None:
        if self.store is None:
            raise RosterPersistenceError("Roster has no store attached")
        self.store.save(self._records)

    def save_async(self) -> Future:
        """Persist a snapshot on the background worker; resolve the future to confirm."""
        if self.store is None:
            raise RosterPersistenceError("Roster has no store attached")
        snapshot = [replace(r) for r in self._records]
        if Roster._executor is None:
            Roster._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="roster-save")
        future = Roster._executor.submit(self.store.save, snapshot)
        future.add_done_callback(_log_save_failure)
        return future


def _log_save_failure(future: Future) -> None:
    exc = future.exception()
    if exc is not None:
        logger.error("Roster save failed: %s", exc)
