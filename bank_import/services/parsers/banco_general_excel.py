"""
Banco General "últimos movimientos" spreadsheet parser.

Expected layout (sheet BGRExcelContReport, or a CSV export of it):
    rows 1..n   banner/metadata (bank name, account mask, period)
    header row  Fecha | | Referencia | Transacción | Descripción | Débito | Crédito | | Saldo total
    data rows   until the first fully blank row
    summary     optional Total / Saldo final rows (skipped)

Notes:
- Columns are positional (A date, C reference, D type, E description,
  F debit, G credit, I running balance); see TabularLayout.
- Dates are DD/MM/YYYY or YYYY-MM-DD (or native date cells in .xlsx)
- Debit and credit are separate unsigned columns; amount = credit - debit
- The export carries no currency, so rows use the account's currency
- A bad row is reported and skipped; only a missing header fails the file
"""

import csv
import io
import logging
import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Optional

import pandas as pd

from ...config import TabularParserConfig
from ...exceptions import FileLoadError, HeaderNotFoundError, RowParseError
from ..text_utils import collapse_whitespace, fold, matches_any_pattern, strip_accents, title_case
from .base import (
    BankParser, NormalizedRow, ParseOptions, ParseResult, RowError,
    decode_text, is_workbook,
)

logger = logging.getLogger(__name__)

_TIME_SUFFIX = r"(?:[ T]\d{1,2}:\d{2}(?::\d{2}(?:\.\d+)?)?)?"
_DMY_DATE = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})" + _TIME_SUFFIX + "$")
_ISO_DATE = re.compile(r"^(\d{4})-(\d{1,2})-(\d{1,2})" + _TIME_SUFFIX + "$")
_NUMBER_TOKEN = re.compile(r"\d[\d.,]*")
_TRAILING_DATE = re.compile(r"\s+\d{1,2}/\d{1,2}/\d{2,4}$")
_TRAILING_NUMBER = re.compile(r"\s+\d+$")
_TRAILING_CODE = re.compile(r"\s+[A-Z]{2,}\d+$")
_CSV_DELIMITERS = (",", ";", "\t")


def _is_blank(value) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def _cell_text(value) -> str:
    """Render a grid cell as a stripped string ('' for blanks)."""
    if _is_blank(value):
        return ""
    if isinstance(value, datetime):
        return value.date().isoformat() if value.time() == datetime.min.time() else value.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def parse_numeric(value) -> Optional[Decimal]:
    """Parse an amount cell; None when the cell holds no number.

    Tolerates currency symbols, thousands separators and comma decimals:
    '1,234.56', '1.234,56', 'B/. 18.75' and '18,75' all parse.
    """
    if _is_blank(value):
        return None
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float, Decimal)):
        return Decimal(str(value))

    raw = str(value).strip()
    match = _NUMBER_TOKEN.search(raw)
    if not match:
        return None
    # 'B/.' ends in a dot, so only the digits run is kept
    text = match.group(0).rstrip(".,")
    negative = "-" in raw[: match.start()] or (raw.startswith("(") and raw.endswith(")"))

    if "," in text and "." in text:
        if text.rfind(",") > text.rfind("."):
            text = text.replace(".", "").replace(",", ".")
        else:
            text = text.replace(",", "")
    elif "," in text:
        head, _, tail = text.rpartition(",")
        if text.count(",") == 1 and len(tail) in (1, 2):
            text = f"{head}.{tail}"
        else:
            text = text.replace(",", "")
    try:
        number = Decimal(text)
    except InvalidOperation:
        return None
    return -number if negative else number


def parse_date(value) -> date:
    """Parse a date cell. Raises RowParseError for anything unsupported."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value

    text = _cell_text(value)
    if not text:
        raise RowParseError("Empty date")

    match = _DMY_DATE.match(text)
    if match:
        day, month, year = (int(g) for g in match.groups())
    else:
        match = _ISO_DATE.match(text)
        if not match:
            raise RowParseError(
                f"Unsupported date format: '{text}' (expected DD/MM/YYYY or YYYY-MM-DD)"
            )
        year, month, day = (int(g) for g in match.groups())

    try:
        return date(year, month, day)
    except ValueError:
        raise RowParseError(f"Invalid date: '{text}'")


def _amount_cell(value, label: str) -> Optional[Decimal]:
    number = parse_numeric(value)
    if number is None and not _is_blank(value):
        raise RowParseError(f"{label} is not numeric: '{_cell_text(value)}'")
    return number


def resolve_amount(debit, credit) -> Decimal:
    """Signed amount from the debit/credit pair (debit negative, credit positive)."""
    debit_num = _amount_cell(debit, "Debit")
    credit_num = _amount_cell(credit, "Credit")

    if debit_num is not None and credit_num is not None:
        return credit_num - debit_num
    if debit_num is not None:
        return -abs(debit_num)
    if credit_num is not None:
        return abs(credit_num)
    raise RowParseError("Could not determine amount: debit and credit are both empty")


def normalize_description(value) -> str:
    description = strip_accents(collapse_whitespace(_cell_text(value)))
    if not description:
        raise RowParseError("Empty description")
    return description


class BancoGeneralExcelParser(BankParser):
    """Fixed-layout movements spreadsheet (.xlsx, .xls or CSV)."""

    name = "banco_general_excel"
    file_types = ("excel", "xlsx", "xls", "csv")

    def __init__(self, config: Optional[TabularParserConfig] = None):
        self.config = config or TabularParserConfig()
        self._summary_patterns = [
            re.compile(r"\b" + re.escape(fold(keyword)) + r"\b")
            for keyword in self.config.summary_keywords
        ]
        months = "|".join(re.escape(m) for m in self.config.month_tokens)
        # "12 OCT", "12 DE OCT", "5 DE OCTUBRE"
        self._trailing_day_month = re.compile(
            rf"\s+\d{{1,2}}\s+(?:DE\s+)?(?:{months})[A-Z]*\.?$", re.IGNORECASE
        )

    # ── Detection ──

    def detect(self, content: bytes, head: str) -> bool:
        if is_workbook(content):
            try:
                sheets = self._read_sheets(content, nrows=self.config.header_scan_limit)
            except FileLoadError as e:
                logger.debug(f"Workbook not readable during detection: {e}")
                return False
            if any(self._is_data_sheet_name(name) for name in sheets):
                return True
            return any(
                self.is_header_row(row)
                for grid in sheets.values()
                for row in grid[: self.config.header_scan_limit]
            )

        # Text export: the header tokens must appear together in the window
        return self._has_header_tokens(head)

    def _is_data_sheet_name(self, name: str) -> bool:
        folded = fold(name)
        return any(hint in folded for hint in self.config.sheet_name_hints)

    def _has_header_tokens(self, text: str) -> bool:
        folded = fold(text)
        cfg = self.config

        def has(tokens):
            return any(token in folded for token in tokens)

        return (
            has(cfg.date_tokens)
            and (has(cfg.debit_tokens) or has(cfg.credit_tokens))
            and (has(cfg.description_tokens) or has(cfg.transaction_tokens))
        )

    def is_header_row(self, cells) -> bool:
        """A header row names a date, a debit or credit, and a description or transaction."""
        return self._has_header_tokens(" ".join(_cell_text(c) for c in cells))

    def is_summary_row(self, cells) -> bool:
        text = fold(" ".join(_cell_text(c) for c in cells))
        return any(pattern.search(text) for pattern in self._summary_patterns)

    # ── Parsing ──

    def parse(self, content: bytes, options: ParseOptions) -> ParseResult:
        sheets = self._read_sheets(content)
        sheet_name, grid = self._find_data_sheet(sheets)
        header_index = self._find_header_row(grid)
        logger.info(f"Sheet '{sheet_name}': header at row {header_index + 1}")

        result = ParseResult()
        for index, cells in self._data_rows(grid, header_index):
            row_number = index + 1
            try:
                result.rows.append(self.normalize_row(cells, row_number, sheet_name, options))
            except RowParseError as e:
                result.errors.append(RowError(row=row_number, message=f"Row {row_number}: {e}"))

        logger.info(
            f"Parsed {len(result.rows)} rows from '{sheet_name}' "
            f"({len(result.errors)} rejected)"
        )
        return result

    def _read_sheets(self, content: bytes, nrows: Optional[int] = None) -> dict:
        """Return {sheet name: list of row cell lists}."""
        if is_workbook(content):
            try:
                frames = pd.read_excel(
                    io.BytesIO(content), sheet_name=None, header=None, dtype=object, nrows=nrows
                )
            except Exception as e:
                raise FileLoadError(f"Could not read spreadsheet: {e}") from e
            return {
                str(name): [list(row) for row in frame.itertuples(index=False, name=None)]
                for name, frame in frames.items()
            }

        text = decode_text(content)
        # Banner lines defeat csv.Sniffer; the most frequent candidate wins
        sample = text[:4096]
        delimiter = max(_CSV_DELIMITERS, key=sample.count)
        reader = csv.reader(io.StringIO(text), delimiter=delimiter)
        rows = []
        for line in reader:
            rows.append(line)
            if nrows is not None and len(rows) >= nrows:
                break
        return {"csv": rows}

    def _find_data_sheet(self, sheets: dict):
        if not sheets:
            raise FileLoadError("The spreadsheet has no sheets")
        for name, grid in sheets.items():
            if self._is_data_sheet_name(name):
                return name, grid
        name = next(iter(sheets))
        return name, sheets[name]

    def _find_header_row(self, grid: list) -> int:
        for index, cells in enumerate(grid[: self.config.header_scan_limit]):
            if self.is_header_row(cells):
                return index
        raise HeaderNotFoundError(
            "No header row found in the first "
            f"{self.config.header_scan_limit} rows. Expected the Banco General "
            "'Últimos movimientos' export (sheet BGRExcelContReport) with columns "
            "Fecha, Referencia, Transacción, Descripción, Débito, Crédito, Saldo total."
        )

    def _data_rows(self, grid: list, header_index: int):
        """Yield (index, padded cells) for candidate data rows after the header."""
        layout = self.config.layout
        end = min(len(grid), header_index + 1 + self.config.max_data_rows)
        for index in range(header_index + 1, end):
            cells = list(grid[index]) + [None] * (layout.width - len(grid[index]))
            if all(_is_blank(c) for c in cells):
                break
            if self.is_summary_row(cells):
                continue
            if _is_blank(cells[layout.date]):
                continue
            yield index, cells

    def normalize_row(self, cells, row_number: int, sheet_name: str, options: ParseOptions) -> NormalizedRow:
        layout = self.config.layout
        posted_at = parse_date(cells[layout.date])
        description = normalize_description(cells[layout.description])
        amount = resolve_amount(cells[layout.debit], cells[layout.credit])
        balance = parse_numeric(cells[layout.balance])

        is_transfer = matches_any_pattern(description, self.config.transfer_patterns)
        merchant = self.config.transfer_label if is_transfer else self.extract_merchant_name(description)
        reference = _cell_text(cells[layout.reference])

        return NormalizedRow(
            posted_at=posted_at,
            description=description,
            merchant_name=merchant,
            amount=amount,
            balance_after=balance,
            currency=options.default_currency,
            is_internal_transfer=is_transfer,
            raw={
                "parser": self.name,
                "sheet": sheet_name,
                "row_number": row_number,
                "reference_id": reference or None,
                "original_data": [_cell_text(c) for c in cells],
                "parsed_at": options.parsed_at,
                "header_mapping": {
                    "fecha": _cell_text(cells[layout.date]),
                    "referencia": reference,
                    "transaccion": _cell_text(cells[layout.transaction_type]),
                    "descripcion": _cell_text(cells[layout.description]),
                    "debito": _cell_text(cells[layout.debit]),
                    "credito": _cell_text(cells[layout.credit]),
                    "saldo_total": _cell_text(cells[layout.balance]),
                },
            },
        )

    def extract_merchant_name(self, description: str) -> Optional[str]:
        """Best-effort counterparty name from a movement description.

        'COMPRA EN FARMACIA EL REY 12 DE OCT' → 'Farmacia El Rey'
        """
        if not description:
            return None
        merchant = description

        upper = merchant.upper()
        for prefix in self.config.merchant_prefixes:
            if upper.startswith(prefix):
                merchant = merchant[len(prefix):]
                break

        for separator in self.config.merchant_separators:
            if separator in merchant:
                merchant = merchant.split(separator)[0]
                break

        merchant = self._trailing_day_month.sub("", merchant)
        merchant = _TRAILING_DATE.sub("", merchant)
        merchant = _TRAILING_NUMBER.sub("", merchant)
        merchant = _TRAILING_CODE.sub("", merchant)

        merchant = title_case(merchant.strip())
        return merchant or None
