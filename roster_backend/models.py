"""
Roster Reconciliation Data Models

This module defines the core data structures for the three-way hierarchy
reconciliation:
- System roster: effective-dated StaffRecord rows (the only persisted entity)
- Secondary roster: HR/network export rows (SecondaryRow)
- Ledger: sales transactions carrying the credited hierarchy (LedgerRow)

Key concepts:
- Every source is folded into one PersonView per (role, name)
- The classifier turns three PersonViews into at most one DiffItem
- Roster writes are staged in a RosterTransaction and committed together
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Set

from .utils import month_of, safe_float, safe_str


# =============================================================================
# Enums
# =============================================================================

class Role(str, Enum):
    """Positions in the sales hierarchy, top to bottom"""
    DIRECTOR = "director"
    DEPT_MANAGER = "deptManager"
    CUSTOMER_MANAGER = "customerManager"

    @property
    def label(self) -> str:
        return ROLE_LABELS[self]

    @property
    def order(self) -> int:
        return ROLE_ORDER[self]


ROLE_LABELS: Dict[Role, str] = {
    Role.DIRECTOR: "Director",
    Role.DEPT_MANAGER: "Dept Manager",
    Role.CUSTOMER_MANAGER: "Customer Manager",
}

ROLE_ORDER: Dict[Role, int] = {
    Role.DIRECTOR: 0,
    Role.DEPT_MANAGER: 1,
    Role.CUSTOMER_MANAGER: 2,
}


class StaffStatus(str, Enum):
    ACTIVE = "active"
    TRANSFERRED = "transferred"   # Old assignment closed by a transfer
    RESIGNED = "resigned"


class DiffKind(str, Enum):
    """Difference categories surfaced to the operator"""
    CONFLICT = "conflict"                 # Sources disagree on the parent
    MISSING_PARENT = "missing_parent"     # Ledger parent blank
    NEW_PERSON = "new_person"             # Not on the roster yet
    SECONDARY_ONLY = "secondary_only"     # Only in the HR export, never transacted
    INACTIVE = "inactive"                 # On the roster, absent from both uploads


# Review order: most urgent first
DIFF_KIND_ORDER: Dict[DiffKind, int] = {
    DiffKind.CONFLICT: 0,
    DiffKind.MISSING_PARENT: 1,
    DiffKind.NEW_PERSON: 2,
    DiffKind.SECONDARY_ONLY: 3,
    DiffKind.INACTIVE: 4,
}


class Action(str, Enum):
    """Operator decision on a DiffItem"""
    ACCEPT = "accept"
    REJECT = "reject"
    MODIFY = "modify"


# =============================================================================
# Roster
# =============================================================================

@dataclass
class StaffRecord:
    """
    One effective-dated assertion about a person's role and supervisor.

    effective_month 0 is the year-default; 1-12 pins the record to that month
    onward. revision is assigned by the Roster on append and breaks ties
    between records for the same month.
    """
    name: str
    role: Role
    parent_name: str = ""            # Supervisor's name; "" for directors / company-direct
    code: str = ""                   # Employee code, may be filled in later
    status: StaffStatus = StaffStatus.ACTIVE
    effective_month: int = 0
    id: str = ""
    revision: int = 0

    def __post_init__(self):
        self.role = Role(self.role)
        self.status = StaffStatus(self.status)
        if not 0 <= int(self.effective_month) <= 12:
            raise ValueError(f"effective_month out of range: {self.effective_month}")
        self.effective_month = int(self.effective_month)

    @property
    def is_active(self) -> bool:
        return self.status == StaffStatus.ACTIVE

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "code": self.code,
            "role": self.role.value,
            "parent_name": self.parent_name,
            "status": self.status.value,
            "effective_month": self.effective_month,
            "revision": self.revision,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StaffRecord":
        # Older settings files store the parent as parentId and the month as month
        parent = data.get("parent_name", data.get("parentId"))
        month = data.get("effective_month", data.get("month"))
        return cls(
            id=safe_str(data.get("id")),
            name=safe_str(data.get("name")),
            code=safe_str(data.get("code")),
            role=Role(data.get("role")),
            parent_name=safe_str(parent),
            status=StaffStatus(data.get("status") or StaffStatus.ACTIVE.value),
            effective_month=int(month or 0),
            revision=int(data.get("revision") or 0),
        )


@dataclass
class Backfill:
    """Fill a previously-blank field on an existing record"""
    record_id: str
    parent_name: str = ""
    code: str = ""


# =============================================================================
# Source rows (produced by adapters.py)
# =============================================================================

@dataclass
class LedgerRow:
    """
    One sales transaction. The hierarchy fields are mutable: the auto-filler
    writes missing manager / director names back into the row.
    """
    signed_on: Any = None            # Raw date cell; month derived on demand
    amount: float = 0.0
    policy_no: str = ""
    bank: str = ""
    network_code: str = ""
    network_name: str = ""
    director: str = ""
    director_code: str = ""
    dept_manager: str = ""
    dept_manager_code: str = ""
    customer_manager: str = ""
    customer_manager_code: str = ""

    @property
    def month(self) -> Optional[int]:
        return month_of(self.signed_on)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "signed_on": safe_str(self.signed_on),
            "month": self.month,
            "amount": self.amount,
            "policy_no": self.policy_no,
            "bank": self.bank,
            "network_code": self.network_code,
            "network_name": self.network_name,
            "director": self.director,
            "director_code": self.director_code,
            "dept_manager": self.dept_manager,
            "dept_manager_code": self.dept_manager_code,
            "customer_manager": self.customer_manager,
            "customer_manager_code": self.customer_manager_code,
        }


@dataclass
class SecondaryRow:
    """One staff-to-outlet assignment from the HR/network export"""
    agency_name: str = ""
    agency_code: str = ""            # Outlet / network code
    director: str = ""
    director_code: str = ""
    dept_manager: str = ""
    dept_manager_code: str = ""
    customer_manager: str = ""
    customer_manager_code: str = ""


# =============================================================================
# Reconciliation artifacts (never persisted)
# =============================================================================

def _parent_set(value: Any) -> Set[str]:
    if isinstance(value, str):
        return {value} if value else set()
    return {safe_str(p) for p in value or [] if safe_str(p)}


@dataclass
class PersonView:
    """Source-specific summary of one person"""
    name: str
    role: Role
    code: str = ""
    parent_name: str = ""
    status: str = ""
    months_observed: Set[int] = field(default_factory=set)
    policy_count: int = 0
    total_amount: float = 0.0
    # Ledger only: every non-empty parent seen in each month
    parents_by_month: Dict[int, Set[str]] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "role": self.role.value,
            "code": self.code,
            "parent_name": self.parent_name,
            "status": self.status,
            "months_observed": sorted(self.months_observed),
            "policy_count": self.policy_count,
            "total_amount": self.total_amount,
            "parents_by_month": {str(m): sorted(ps) for m, ps in sorted(self.parents_by_month.items())},
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional["PersonView"]:
        if not data:
            return None
        return cls(
            name=safe_str(data.get("name")),
            role=Role(data.get("role")),
            code=safe_str(data.get("code")),
            parent_name=safe_str(data.get("parent_name")),
            status=safe_str(data.get("status")),
            months_observed={int(m) for m in data.get("months_observed") or []},
            policy_count=int(data.get("policy_count") or 0),
            total_amount=safe_float(data.get("total_amount")),
            parents_by_month={int(m): _parent_set(ps) for m, ps in (data.get("parents_by_month") or {}).items()},
        )


@dataclass
class DiffItem:
    """One person's classified discrepancy, pending operator review"""
    id: str
    role: Role
    name: str
    diff_kind: DiffKind
    code: str = ""
    system: Optional[PersonView] = None
    secondary: Optional[PersonView] = None
    ledger: Optional[PersonView] = None
    description: str = ""
    suggested_parent: str = ""
    confirmed_parent: str = ""       # Filled by the operator
    action: Action = Action.ACCEPT

    @property
    def key(self):
        return (self.role, self.name)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "role": self.role.value,
            "role_label": self.role.label,
            "name": self.name,
            "code": self.code,
            "system": self.system.to_dict() if self.system else None,
            "secondary": self.secondary.to_dict() if self.secondary else None,
            "ledger": self.ledger.to_dict() if self.ledger else None,
            "diff_kind": self.diff_kind.value,
            "description": self.description,
            "suggested_parent": self.suggested_parent,
            "confirmed_parent": self.confirmed_parent,
            "action": self.action.value,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DiffItem":
        return cls(
            id=safe_str(data.get("id")),
            role=Role(data.get("role")),
            name=safe_str(data.get("name")),
            code=safe_str(data.get("code")),
            system=PersonView.from_dict(data.get("system")),
            secondary=PersonView.from_dict(data.get("secondary")),
            ledger=PersonView.from_dict(data.get("ledger")),
            diff_kind=DiffKind(data.get("diff_kind")),
            description=safe_str(data.get("description")),
            suggested_parent=safe_str(data.get("suggested_parent")),
            confirmed_parent=safe_str(data.get("confirmed_parent")),
            action=Action(data.get("action") or Action.ACCEPT.value),
        )


@dataclass
class DiffResult:
    """Output of one reconciliation run"""
    items: List[DiffItem] = field(default_factory=list)
    consistent_count: int = 0
    # Parent candidates for the reviewer
    existing_directors: List[str] = field(default_factory=list)
    existing_dept_managers: List[str] = field(default_factory=list)

    @property
    def total_items(self) -> int:
        return len(self.items)

    @property
    def counts_by_kind(self) -> Dict[DiffKind, int]:
        counts = {kind: 0 for kind in DiffKind}
        for item in self.items:
            counts[item.diff_kind] += 1
        return counts

    @property
    def has_changes(self) -> bool:
        return bool(self.items)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "has_changes": self.has_changes,
            "total_items": self.total_items,
            "consistent_count": self.consistent_count,
            "counts_by_kind": {k.value: v for k, v in self.counts_by_kind.items()},
            "items": [item.to_dict() for item in self.items],
            "existing_staff": {
                "directors": self.existing_directors,
                "dept_managers": self.existing_dept_managers,
            },
        }


# =============================================================================
# Pass results
# =============================================================================

@dataclass
class ScanChange:
    """One roster change the ledger scan made on its own"""
    name: str
    role: Role
    month: int
    new_parent: str
    old_parent: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "role": self.role.value,
            "month": self.month,
            "new_parent": self.new_parent,
            "old_parent": self.old_parent,
        }


@dataclass
class FillResult:
    filled_managers: int = 0
    filled_directors: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {
            "filled_managers": self.filled_managers,
            "filled_directors": self.filled_directors,
        }


@dataclass
class ScanResult:
    added: List[ScanChange] = field(default_factory=list)
    transferred: List[ScanChange] = field(default_factory=list)
    unchanged: int = 0
    total_scanned: int = 0
    fill: FillResult = field(default_factory=FillResult)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "added": len(self.added),
            "transferred": len(self.transferred),
            "unchanged": self.unchanged,
            "total_scanned": self.total_scanned,
            "added_detail": [c.to_dict() for c in self.added],
            "transferred_detail": [c.to_dict() for c in self.transferred],
            "fill": self.fill.to_dict(),
        }


@dataclass
class MissingRecord:
    """A ledger row still missing attribution after the fill"""
    policy_no: str
    customer_manager: str
    network_name: str
    bank: str
    amount: float
    month: int                       # 0 when the row has no readable date
    missing_field: str               # "manager", "director" or "both"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "policy_no": self.policy_no,
            "customer_manager": self.customer_manager,
            "network_name": self.network_name,
            "bank": self.bank,
            "amount": self.amount,
            "month": self.month,
            "missing_field": self.missing_field,
        }


@dataclass
class PersonMissing:
    """Rows missing a parent, grouped by the person who lacks one"""
    name: str
    role: Role
    missing_field: str
    count: int = 0
    total_amount: float = 0.0
    months: Set[int] = field(default_factory=set)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "role": self.role.value,
            "missing_field": self.missing_field,
            "count": self.count,
            "total_amount": self.total_amount,
            "months": sorted(self.months),
        }


@dataclass
class IntegrityAlert:
    missing_manager_count: int = 0
    missing_director_count: int = 0
    missing_both_count: int = 0
    missing_by_person: List[PersonMissing] = field(default_factory=list)
    details: List[MissingRecord] = field(default_factory=list)

    @property
    def total_missing(self) -> int:
        return self.missing_manager_count + self.missing_director_count + self.missing_both_count

    @property
    def has_missing(self) -> bool:
        return self.total_missing > 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "has_missing": self.has_missing,
            "total_missing": self.total_missing,
            "missing_manager_count": self.missing_manager_count,
            "missing_director_count": self.missing_director_count,
            "missing_both_count": self.missing_both_count,
            "missing_by_person": [p.to_dict() for p in self.missing_by_person],
            "details": [d.to_dict() for d in self.details],
        }
