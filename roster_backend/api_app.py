from __future__ import annotations

import io
import logging
from typing import Any, Dict, List, Optional

from fastapi import Depends, FastAPI, File, Form, HTTPException, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import StreamingResponse
from pydantic import BaseModel

from .adapters import load_ledger_rows, load_secondary_rows
from .engine import apply_resolutions, check_integrity, extract_diff, output_filename, scan_and_fill_ledger
from .models import DiffItem
from .outputs import write_diff_xlsx
from .roster import (
    DuplicateRecordError,
    JsonRosterStore,
    Roster,
    RosterPersistenceError,
    UnknownRecordError,
)
from .settings import DEFAULT_SETTINGS, RosterSettings

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

app = FastAPI(title="Staff Roster Reconciliation API", version="1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

_settings: RosterSettings = DEFAULT_SETTINGS
_roster: Optional[Roster] = None

# Last diff workbook, served by /staff-diff/export
_last_diff: Dict[str, bytes] = {}


def get_roster() -> Roster:
    """Process-wide roster, loaded from the store on first use."""
    global _roster
    if _roster is None:
        try:
            _roster = Roster.load(JsonRosterStore(_settings.store_path))
        except RosterPersistenceError as e:
            raise HTTPException(status_code=503, detail=str(e))
    return _roster


def _check_month(month: Optional[int]) -> Optional[int]:
    if month is not None and not 1 <= month <= 12:
        raise HTTPException(status_code=400, detail=f"Invalid month: {month}")
    return month


async def _read_upload(upload: Optional[UploadFile]):
    if upload is None:
        return None, ""
    return await upload.read(), upload.filename or ""


# ============================================================================
# Request Models
# ============================================================================

class TransferRequest(BaseModel):
    staff_id: str
    new_parent: str
    month: int


class ConfirmRequest(BaseModel):
    items: List[Dict[str, Any]]
    as_of_month: Optional[int] = None


# ============================================================================
# API Endpoints
# ============================================================================

@app.get("/health")
def health():
    """Simple health check endpoint"""
    return {"ok": True, "status": "running"}


@app.get("/staff")
def list_staff(roster: Roster = Depends(get_roster)):
    return [r.to_dict() for r in roster.records]


@app.get("/staff/effective/{month}")
def effective_staff(month: int, roster: Roster = Depends(get_roster)):
    _check_month(month)
    return [r.to_dict() for r in roster.effective_staff(month)]


@app.post("/staff/transfer")
def transfer_staff(req: TransferRequest, roster: Roster = Depends(get_roster)):
    _check_month(req.month)
    try:
        out_record, in_record = roster.transfer(req.staff_id, req.new_parent, req.month)
    except UnknownRecordError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except DuplicateRecordError as e:
        raise HTTPException(status_code=409, detail=str(e))
    roster.save_async()
    return {"ok": True, "transferred": out_record.to_dict(), "new_item": in_record.to_dict()}


@app.post("/staff-diff")
async def staff_diff(
    ledger: Optional[UploadFile] = File(None),
    secondary: Optional[UploadFile] = File(None),
    roster: Roster = Depends(get_roster),
):
    """Three-way diff of the roster against the uploaded ledger and/or HR export."""
    if ledger is None and secondary is None:
        raise HTTPException(status_code=400, detail="Upload a ledger and/or an HR export")
    ledger_data, ledger_name = await _read_upload(ledger)
    secondary_data, secondary_name = await _read_upload(secondary)

    ledger_rows = load_ledger_rows(ledger_data, ledger_name, _settings) if ledger_data else []
    secondary_rows = load_secondary_rows(secondary_data, secondary_name, _settings) if secondary_data else []
    diff = extract_diff(roster, secondary_rows, ledger_rows, _settings)

    bio = io.BytesIO()
    write_diff_xlsx(bio, diff)
    _last_diff["latest"] = bio.getvalue()
    return diff.to_dict()


@app.get("/staff-diff/export")
def export_staff_diff():
    data = _last_diff.get("latest")
    if data is None:
        raise HTTPException(status_code=404, detail="No diff has been run yet")
    return StreamingResponse(
        io.BytesIO(data),
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        headers={"Content-Disposition": f'attachment; filename="{output_filename("diff")}"'},
    )


@app.post("/staff-diff/confirm")
def confirm_staff_diff(req: ConfirmRequest, roster: Roster = Depends(get_roster)):
    """Apply the operator's decisions to the roster."""
    _check_month(req.as_of_month)
    try:
        items = [DiffItem.from_dict(d) for d in req.items]
    except (KeyError, ValueError) as e:
        raise HTTPException(status_code=400, detail=f"Invalid diff item: {e}")
    try:
        result = apply_resolutions(roster, items, req.as_of_month, wait=True, settings=_settings)
    except RosterPersistenceError as e:
        logger.error("Confirmed changes applied in memory but not saved: %s", e)
        raise HTTPException(status_code=503, detail=str(e))
    return result.to_dict()


@app.post("/ledger/scan")
async def scan_ledger_upload(
    ledger: UploadFile = File(...),
    secondary: Optional[UploadFile] = File(None),
    as_of_month: Optional[int] = Form(None),
    roster: Roster = Depends(get_roster),
):
    """Record organic hierarchy changes from a ledger, fill blanks, report what is still missing."""
    _check_month(as_of_month)
    ledger_data, ledger_name = await _read_upload(ledger)
    secondary_data, secondary_name = await _read_upload(secondary)

    ledger_rows = load_ledger_rows(ledger_data, ledger_name, _settings)
    secondary_rows = load_secondary_rows(secondary_data, secondary_name, _settings) if secondary_data else []
    result = scan_and_fill_ledger(roster, ledger_rows, as_of_month, secondary_rows, settings=_settings)
    alert = check_integrity(ledger_rows, _settings.integrity_detail_limit, _settings)

    out = result.to_dict()
    out["integrity"] = alert.to_dict()
    return out
