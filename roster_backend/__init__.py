"""Roster reconciliation backend package.

Reconciles the staff hierarchy roster against the sales ledger and the HR
export, and repairs missing attribution in the ledger. Run the API with:

    python -m uvicorn roster_backend.api_app:app --host 127.0.0.1 --port 8000
"""
