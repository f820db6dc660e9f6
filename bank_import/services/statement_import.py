"""
Bank statement import pipeline.

    load file → check account ownership → detect format → parse
      ├─ dry run: return counts and a sample, nothing is written
      └─ import:  per row, in file order
                    fingerprint → already imported? skip
                    insert (a unique-constraint race counts as a duplicate)
                    categorize unless it is an internal transfer

Rows are processed strictly in sequence so a row sees everything inserted
before it, including earlier rows of the same file. Each row is committed on
its own; a failure on one row is recorded in the summary and the next row is
processed. Re-running an import is safe because of the fingerprints.

Errors that make the whole file unusable raise StatementImportError.
"""

import base64
import binascii
import logging
from dataclasses import dataclass, field
from typing import Optional

import pytz
import requests
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..config import Settings
from ..exceptions import FileLoadError, InvalidRequestError, UnsupportedFormatError
from ..models import Transaction
from .categorize import categorize_transaction, load_active_rules
from .fingerprint import generate_fingerprint
from .identity import get_owned_account
from .parsers import ParseOptions, RowError, default_parsers, detect_parser

logger = logging.getLogger(__name__)

FINGERPRINT_CONSTRAINT = "uq_transactions_fingerprint"


@dataclass
class ImportRequest:
    bank_account_id: Optional[str] = None
    file_url: Optional[str] = None
    file_base64: Optional[str] = None
    dry_run: bool = False
    tz: Optional[str] = None
    file_type: Optional[str] = None


@dataclass
class ImportSummary:
    total_rows: int = 0
    parsed_rows: int = 0
    inserted: int = 0
    skipped_duplicate: int = 0
    categorized: int = 0
    uncategorized: int = 0
    errors: list = field(default_factory=list)
    max_errors: int = field(default=100, repr=False)

    def add_error(self, error: RowError) -> None:
        if len(self.errors) < self.max_errors:
            self.errors.append(error)

    def to_dict(self) -> dict:
        return {
            "total_rows": self.total_rows,
            "parsed_rows": self.parsed_rows,
            "inserted": self.inserted,
            "skipped_duplicate": self.skipped_duplicate,
            "categorized": self.categorized,
            "uncategorized": self.uncategorized,
            "errors": [e.to_dict() for e in self.errors],
        }


@dataclass
class ImportResult:
    summary: ImportSummary
    sample: list = field(default_factory=list)

    def to_dict(self) -> dict:
        return {"summary": self.summary.to_dict(), "sample": self.sample}


def failure_payload(message: str) -> dict:
    """Response body for an import that failed before processing any row."""
    summary = ImportSummary()
    summary.add_error(RowError(row=0, message=message))
    return {"error": message, **ImportResult(summary=summary).to_dict()}


# ── Input ──

def validate_request(request: ImportRequest) -> None:
    if not request.bank_account_id:
        raise InvalidRequestError("bank_account_id is required")
    if not request.file_url and not request.file_base64:
        raise InvalidRequestError("Either file_url or file_base64 is required")
    if request.file_url and request.file_base64:
        raise InvalidRequestError("Provide only one of file_url or file_base64")


def decode_base64_payload(payload: str) -> bytes:
    """Decode a base64 body, accepting a ``data:<mime>;base64,`` prefix."""
    payload = payload.strip()
    if payload.startswith("data:"):
        payload = payload.partition(",")[2]
    try:
        return base64.b64decode("".join(payload.split()), validate=True)
    except (binascii.Error, ValueError) as e:
        raise FileLoadError(f"file_base64 is not valid base64: {e}") from e


def fetch_file(url: str, timeout: float) -> bytes:
    try:
        response = requests.get(url, timeout=timeout)
    except requests.RequestException as e:
        raise FileLoadError(f"Failed to fetch file: {e}") from e
    if not response.ok:
        raise FileLoadError(f"Failed to fetch file: {response.status_code} {response.reason}")
    return response.content


def load_file_content(request: ImportRequest, settings: Settings) -> bytes:
    if request.file_base64:
        content = decode_base64_payload(request.file_base64)
    else:
        content = fetch_file(request.file_url, settings.fetch_timeout)

    if not content:
        raise FileLoadError("The file is empty")
    if len(content) > settings.max_file_bytes:
        raise FileLoadError(
            f"The file is too large ({len(content)} bytes, limit {settings.max_file_bytes})"
        )
    return content


# ── Pipeline ──

def is_fingerprint_conflict(error: SQLAlchemyError) -> bool:
    """True for a unique violation on the transaction fingerprint.

    PostgreSQL names the constraint; SQLite lists the constrained columns.
    """
    if not isinstance(error, IntegrityError):
        return False
    message = str(error.orig)
    if FINGERPRINT_CONSTRAINT in message:
        return True
    return "UNIQUE" in message.upper() and "external_fingerprint" in message


def _parse_statement(db: Session, owner_id: str, request: ImportRequest, settings: Settings):
    """Shared front half: validate, authorize, load, detect, parse."""
    validate_request(request)
    account = get_owned_account(db, owner_id, request.bank_account_id)

    tz = request.tz or settings.default_timezone
    try:
        options = ParseOptions.create(tz, account.currency or settings.default_currency)
    except pytz.UnknownTimeZoneError:
        raise InvalidRequestError(f"Unknown timezone: {tz}")

    content = load_file_content(request, settings)

    parser = detect_parser(
        content,
        file_type=request.file_type,
        parsers=default_parsers(settings),
        window=settings.detect_window,
    )
    if parser is None:
        raise UnsupportedFormatError(
            "Unsupported file format. Use a Banco General Excel export (.xlsx) or OFX statement."
        )

    parsed = parser.parse(content, options)
    summary = ImportSummary(
        total_rows=parsed.total_rows,
        parsed_rows=len(parsed.rows),
        max_errors=settings.max_reported_errors,
    )
    for error in parsed.errors:
        summary.add_error(error)
    return account, parser, parsed, summary


def preview_statement(db: Session, owner_id: str, request: ImportRequest, settings: Settings) -> ImportResult:
    """Detect and parse only; nothing is persisted, deduplicated or categorized."""
    account, parser, parsed, summary = _parse_statement(db, owner_id, request, settings)
    logger.info(
        f"Preview {parser.name} for account {account.id}: "
        f"{summary.parsed_rows}/{summary.total_rows} rows parsed"
    )
    sample = [row.to_dict() for row in parsed.rows[: settings.preview_sample_size]]
    return ImportResult(summary=summary, sample=sample)


def import_statement(db: Session, owner_id: str, request: ImportRequest, settings: Settings) -> ImportResult:
    """Parse, then persist new rows and categorize them."""
    account, parser, parsed, summary = _parse_statement(db, owner_id, request, settings)
    logger.info(f"Importing {summary.parsed_rows} {parser.name} rows into account {account.id}")

    rules = None
    inserted_rows = []

    for position, row in enumerate(parsed.rows, start=1):
        fingerprint = generate_fingerprint(row, account.id, settings.fingerprint_prefix)

        try:
            existing = (
                db.query(Transaction.id)
                .filter(
                    Transaction.owner_id == owner_id,
                    Transaction.bank_account_id == account.id,
                    Transaction.external_fingerprint == fingerprint,
                )
                .first()
            )
            if existing:
                summary.skipped_duplicate += 1
                continue

            txn = Transaction(
                owner_id=owner_id,
                bank_account_id=account.id,
                posted_at=row.posted_at,
                description=row.description,
                merchant_name=row.merchant_name,
                amount=row.amount,
                balance_after=row.balance_after,
                currency=row.currency,
                is_internal_transfer=row.is_internal_transfer,
                external_fingerprint=fingerprint,
                raw=row.raw,
            )
            db.add(txn)
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            if is_fingerprint_conflict(e):
                # Inserted concurrently since the lookup: same outcome as a duplicate
                summary.skipped_duplicate += 1
                logger.info(f"Row {position}: fingerprint {fingerprint} already stored")
                continue
            logger.warning(f"Row {position}: insert failed: {e}")
            summary.add_error(RowError(row=position, message=f"Database error: {e}", data=row.to_dict()))
            continue

        summary.inserted += 1
        inserted_rows.append(row)

        if row.is_internal_transfer:
            continue

        try:
            if rules is None:
                rules = load_active_rules(db, owner_id)
            category_id = categorize_transaction(db, txn.id, row, rules)
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.warning(f"Row {position}: categorization failed: {e}")
            summary.add_error(RowError(row=position, message=f"Categorization failed: {e}", data=row.to_dict()))
            summary.uncategorized += 1
            continue

        if category_id:
            summary.categorized += 1
        else:
            summary.uncategorized += 1

    logger.info(
        f"Import complete for account {account.id}: {summary.inserted} inserted, "
        f"{summary.skipped_duplicate} duplicates, {summary.categorized} categorized, "
        f"{summary.uncategorized} uncategorized, {len(summary.errors)} errors"
    )
    sample = [row.to_dict(include_raw=False) for row in inserted_rows[: settings.import_sample_size]]
    return ImportResult(summary=summary, sample=sample)


def run_import(db: Session, owner_id: str, request: ImportRequest, settings: Settings) -> ImportResult:
    if request.dry_run:
        return preview_statement(db, owner_id, request, settings)
    return import_statement(db, owner_id, request, settings)
