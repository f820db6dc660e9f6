#!/usr/bin/env python3
"""
Import (or preview) a bank statement file from the command line.

Run from project root:
    python -m bank_import.cli statement.ofx --owner <owner-id> --account <bank-account-id>
    python -m bank_import.cli movimientos.xlsx --owner ... --account ... --dry-run

Uses the same pipeline and database as the HTTP endpoint. The owner id is
trusted as given; there is no token check on the command line.
"""

import argparse
import base64
import json
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Import a bank statement file")
    parser.add_argument("file", type=Path, help="Statement file (.xlsx, .xls, .csv or .ofx)")
    parser.add_argument("--owner", required=True, help="Owner id of the bank account")
    parser.add_argument("--account", required=True, help="Bank account id to import into")
    parser.add_argument("--dry-run", action="store_true", help="Parse and preview only")
    parser.add_argument("--tz", default=None, help="Timezone for date normalization")
    parser.add_argument("--file-type", default=None, help="Declared type (ofx, xlsx, xls, csv)")
    parser.add_argument("--log-level", default="INFO")
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    load_dotenv()

    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(message)s",
        handlers=[logging.StreamHandler()],
    )

    from .config import load_settings
    from .database import SessionLocal, init_db
    from .exceptions import StatementImportError
    from .services.statement_import import ImportRequest, failure_payload, run_import

    if not args.file.is_file():
        logger.error(f"Not found: {args.file}")
        return 1

    request = ImportRequest(
        bank_account_id=args.account,
        file_base64=base64.b64encode(args.file.read_bytes()).decode("ascii"),
        dry_run=args.dry_run,
        tz=args.tz,
        file_type=args.file_type or args.file.suffix.lstrip(".") or None,
    )

    init_db()
    db = SessionLocal()
    try:
        result = run_import(db, args.owner, request, load_settings())
    except StatementImportError as e:
        logger.error(f"Import failed: {e}")
        print(json.dumps(failure_payload(str(e)), indent=2, default=str))
        return 1
    finally:
        db.close()

    print(json.dumps(result.to_dict(), indent=2, default=str))
    return 0


if __name__ == "__main__":
    sys.exit(main())
