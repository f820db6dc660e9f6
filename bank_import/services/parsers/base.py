"""
Base parser: shared interface and data structures.

Every bank format is a BankParser with two operations:
- detect(content, head) → bool: does this parser claim the file?
- parse(content, options) → ParseResult: normalized rows plus row errors.

The detector tries parsers in order, so a new bank format is supported by
writing one more BankParser and appending it to the detector's list.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

import pytz

from ..text_utils import fold

ZIP_MAGIC = b"PK\x03\x04"                          # .xlsx
OLE2_MAGIC = b"\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1"   # legacy .xls


def is_workbook(content: bytes) -> bool:
    return content.startswith(ZIP_MAGIC) or content.startswith(OLE2_MAGIC)


def decode_text(content: bytes) -> str:
    """Decode a text export: UTF-8 (with or without BOM), else Windows-1252."""
    try:
        return content.decode("utf-8-sig")
    except UnicodeDecodeError:
        return content.decode("cp1252", errors="replace")


def decode_head(content: bytes, window: int) -> str:
    """Decode the first ``window`` bytes, tolerating a UTF-8 sequence cut at the edge."""
    chunk = content[:window]
    try:
        text = chunk.decode("utf-8")
    except UnicodeDecodeError as e:
        if e.start < len(chunk) - 3:
            return chunk.decode("cp1252", errors="replace")
        text = chunk[: e.start].decode("utf-8")
    return text.lstrip("\ufeff")


@dataclass
class NormalizedRow:
    """One transaction, independent of the file format it came from."""
    posted_at: date
    description: str
    amount: Decimal               # signed: negative=money out, positive=money in
    currency: str
    merchant_name: Optional[str] = None
    balance_after: Optional[Decimal] = None
    is_internal_transfer: bool = False
    raw: dict = field(default_factory=dict)

    @property
    def match_text(self) -> str:
        """Folded merchant name (preferred) or description, for rule matching."""
        return fold(self.merchant_name or self.description)

    def to_dict(self, include_raw: bool = True) -> dict:
        data = {
            "posted_at": self.posted_at.isoformat(),
            "description": self.description,
            "merchant_name": self.merchant_name,
            "amount": float(self.amount),
            "balance_after": float(self.balance_after) if self.balance_after is not None else None,
            "currency": self.currency,
            "is_internal_transfer": self.is_internal_transfer,
        }
        if include_raw:
            data["raw"] = self.raw
        return data


@dataclass
class RowError:
    row: int
    message: str
    data: Optional[dict] = None

    def to_dict(self) -> dict:
        out = {"row": self.row, "message": self.message}
        if self.data is not None:
            out["data"] = self.data
        return out


@dataclass
class ParseResult:
    rows: list = field(default_factory=list)
    errors: list = field(default_factory=list)

    @property
    def total_rows(self) -> int:
        """Rows seen: emitted rows plus rows rejected with an error."""
        return len(self.rows) + len(self.errors)


@dataclass
class ParseOptions:
    tz: str = "America/Panama"
    default_currency: str = "PAB"
    parsed_at: str = ""

    @classmethod
    def create(cls, tz: str, default_currency: str) -> "ParseOptions":
        """Validate the timezone and stamp the parse time in it.

        Raises pytz.UnknownTimeZoneError for an unknown zone name.
        """
        zone = pytz.timezone(tz)
        return cls(
            tz=tz,
            default_currency=default_currency,
            parsed_at=datetime.now(zone).isoformat(),
        )


class BankParser(ABC):
    """Abstract base for all statement parsers."""

    name: str = "base"
    # Declared file types this parser accepts (lower-case, no dot)
    file_types: tuple = ()

    def accepts_file_type(self, file_type: Optional[str]) -> bool:
        if not file_type:
            return True
        return file_type.lower().lstrip(".") in self.file_types

    @abstractmethod
    def detect(self, content: bytes, head: str) -> bool:
        """Return True if this parser can handle the given file.

        ``head`` is a decoded prefix of ``content`` (the detection window).
        """

    @abstractmethod
    def parse(self, content: bytes, options: ParseOptions) -> ParseResult:
        """Parse a statement into normalized rows.

        Row-level problems are reported in ParseResult.errors; problems with
        the document as a whole raise a StatementParseError.
        """
