"""
Bank statement import endpoint.

POST /api/import/bank-statement
    Authorization: Bearer <token>
    { bank_account_id, file_url? | file_base64?, dry_run?, tz?, file_type? }

dry_run=true parses and returns a preview; otherwise new transactions are
stored and categorized. Any error that stops the whole import returns 400
with a zeroed summary and the message in ``error``.
"""

import logging
from typing import Any, Optional
from fastapi import APIRouter, Depends, Header
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ..config import Settings, get_settings
from ..database import get_db
from ..exceptions import StatementImportError
from ..services.identity import resolve_owner
from ..services.statement_import import ImportRequest, failure_payload, run_import

logger = logging.getLogger(__name__)

router = APIRouter()


# --- Pydantic Schemas ---

class ImportStatementIn(BaseModel):
    # Optional here so missing values produce the import's own 400 response
    bank_account_id: Optional[str] = None
    file_url: Optional[str] = None
    file_base64: Optional[str] = None
    dry_run: bool = False
    tz: Optional[str] = None
    file_type: Optional[str] = None


class RowErrorOut(BaseModel):
    row: int
    message: str
    data: Optional[dict[str, Any]] = None


class ImportSummaryOut(BaseModel):
    total_rows: int
    parsed_rows: int
    inserted: int
    skipped_duplicate: int
    categorized: int
    uncategorized: int
    errors: list[RowErrorOut]


class NormalizedRowOut(BaseModel):
    posted_at: str
    description: str
    merchant_name: Optional[str] = None
    amount: float
    balance_after: Optional[float] = None
    currency: str
    is_internal_transfer: bool = False
    raw: Optional[dict[str, Any]] = None


class ImportStatementOut(BaseModel):
    summary: ImportSummaryOut
    sample: list[NormalizedRowOut]


# --- Endpoints ---

@router.post("/bank-statement", response_model=ImportStatementOut)
def import_bank_statement(
    data: ImportStatementIn,
    authorization: Optional[str] = Header(None),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    """Preview (dry_run) or import a Banco General statement into a bank account."""
    try:
        owner_id = resolve_owner(authorization, db)
        result = run_import(db, owner_id, ImportRequest(**data.model_dump()), settings)
    except StatementImportError as e:
        logger.error(f"Statement import failed: {e}")
        db.rollback()
        return JSONResponse(status_code=400, content=failure_payload(str(e)))

    return result.to_dict()
