"""
Three-Way Classifier

Compares one person's roster, secondary-export and ledger views and decides
whether the operator needs to look at them.

Evidence precedence for the suggested parent is ledger > secondary > roster,
except that a blank ledger parent is never evidence.
"""
from __future__ import annotations

import uuid
from typing import Optional

from .models import DiffItem, DiffKind, PersonView, Role
from .utils import coalesce


def _parent(view: Optional[PersonView]) -> str:
    return view.parent_name if view else ""


def _differ(a: str, b: str) -> bool:
    """Both present and not equal."""
    return bool(a) and bool(b) and a != b


def _item(role, name, kind, description, suggested, system, secondary, ledger) -> DiffItem:
    code = coalesce(
        system.code if system else "",
        ledger.code if ledger else "",
        secondary.code if secondary else "",
    )
    return DiffItem(
        id=uuid.uuid4().hex[:10],
        role=role,
        name=name,
        code=code,
        diff_kind=kind,
        description=description,
        suggested_parent=suggested,
        system=system,
        secondary=secondary,
        ledger=ledger,
    )


def _classify_director(name, system, secondary, ledger) -> Optional[DiffItem]:
    label = Role.DIRECTOR.label
    if system is None and (secondary is not None or ledger is not None):
        return _item(Role.DIRECTOR, name, DiffKind.NEW_PERSON,
                     f"New {label}: {name}", "", system, secondary, ledger)
    if system is not None and secondary is None and ledger is None:
        return _item(Role.DIRECTOR, name, DiffKind.INACTIVE,
                     f"{label} {name} does not appear in the uploaded data", "",
                     system, secondary, ledger)
    return None


def classify(
    role: Role,
    name: str,
    system: Optional[PersonView] = None,
    secondary: Optional[PersonView] = None,
    ledger: Optional[PersonView] = None,
) -> Optional[DiffItem]:
    """Return a DiffItem for the person, or None when the sources agree."""
    role = Role(role)
    if role == Role.DIRECTOR:
        return _classify_director(name, system, secondary, ledger)

    label = role.label
    sys_p, sec_p, led_p = _parent(system), _parent(secondary), _parent(ledger)
    in_sys, in_sec, in_led = system is not None, secondary is not None, ledger is not None

    def make(kind: DiffKind, description: str, suggested: str) -> DiffItem:
        return _item(role, name, kind, description, suggested, system, secondary, ledger)

    if not in_sys:
        if in_led and not in_sec:
            return make(DiffKind.NEW_PERSON,
                        f"New {label}: {name}, ledger parent: {led_p or '(blank)'}", led_p)
        if in_sec and not in_led:
            return make(DiffKind.SECONDARY_ONLY,
                        f"{label} {name} only appears in the HR export, parent: {sec_p or '(none)'}", sec_p)
        if in_sec and in_led:
            if _differ(sec_p, led_p):
                return make(DiffKind.CONFLICT,
                            f"New {label} {name}: HR export parent {sec_p}, ledger parent {led_p}", sec_p)
            suggested = coalesce(led_p, sec_p)
            return make(DiffKind.NEW_PERSON, f"New {label}: {name}, parent: {suggested or '(blank)'}", suggested)
        return None

    if not in_sec and not in_led:
        return make(DiffKind.INACTIVE,
                    f"{label} {name} (parent: {sys_p or '(none)'}) does not appear in the uploaded data", sys_p)

    if in_sec and not in_led:
        if _differ(sec_p, sys_p):
            return make(DiffKind.CONFLICT,
                        f"{label} {name} parent differs: roster {sys_p}, HR export {sec_p}", sec_p)
        return None

    if not in_sec:
        # Roster and ledger only
        if not led_p:
            return make(DiffKind.MISSING_PARENT,
                        f"{label} {name} has a blank parent in the ledger, roster parent: {sys_p or '(none)'}", sys_p)
        if led_p != sys_p:
            return make(DiffKind.CONFLICT,
                        f"{label} {name} parent changed: roster {sys_p or '(none)'} -> ledger {led_p}", led_p)
        return None

    # Present in all three
    if not led_p:
        if _differ(sec_p, sys_p):
            return make(DiffKind.CONFLICT,
                        f"{label} {name} has a blank ledger parent; roster {sys_p}, HR export {sec_p}", sec_p)
        suggested = coalesce(sys_p, sec_p)
        return make(DiffKind.MISSING_PARENT,
                    f"{label} {name} has a blank parent in the ledger, roster/HR parent: {suggested or '(none)'}",
                    suggested)
    if _differ(sec_p, led_p):
        description = f"{label} {name}: HR export parent {sec_p}, ledger parent {led_p}"
        if sys_p and sys_p not in (sec_p, led_p):
            description += f", roster parent {sys_p}"
        return make(DiffKind.CONFLICT, description, led_p)
    if _differ(led_p, sys_p):
        return make(DiffKind.CONFLICT,
                    f"{label} {name} parent changed: roster {sys_p} -> ledger {led_p}", led_p)
    return None
