"""
Banco General OFX parser.

Handles OFX 1.x (SGML, unclosed leaf tags) and 2.x (XML) statements:

    <STMTTRN>
    <TRNTYPE>DEBIT
    <DTPOSTED>20250818120000[-5:EST]
    <TRNAMT>-18.75
    <FITID>2025081800001
    <REFNUM>000123
    <MEMO>COMPRA FARMACIA EL REY-4621-71XX-XXXX-1234
    </STMTTRN>

Notes:
- TRNAMT already carries the sign (negative = money out)
- Only the YYYYMMDD prefix of DTPOSTED is used
- Blocks missing amount, date or memo are not transactions and are skipped
- A block with a malformed date or amount is reported and skipped
- Output is sorted by posted date, most recent first
"""

import logging
import re
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Optional

from ...config import StatementListParserConfig
from ...exceptions import RowParseError
from ..text_utils import collapse_whitespace, matches_any_pattern, title_case
from .base import BankParser, NormalizedRow, ParseOptions, ParseResult, RowError, decode_text

logger = logging.getLogger(__name__)

_TRANSACTION_BLOCK = re.compile(r"<STMTTRN>(.*?)</STMTTRN>", re.DOTALL | re.IGNORECASE)
_OFX_DATE = re.compile(r"[0-9]{8}")
_DESCRIPTION_NOISE = re.compile(r"[^\w\s\-./]")
_MASKED_CARD = re.compile(r"-?\d{4}-\d{2}XX-XXXX-\d{4}", re.IGNORECASE)
_LONG_NUMBER = re.compile(r"\d{10,}")


def extract_field(block: str, name: str) -> str:
    """Value of an OFX leaf element, '' when absent."""
    match = re.search(rf"<{name}>([^<]+)", block, re.IGNORECASE)
    return match.group(1).strip() if match else ""


def parse_ofx_date(value: str) -> date:
    """Date part of an OFX timestamp (YYYYMMDD[hhmmss[.sss]][tz])."""
    prefix = value[:8]
    if not _OFX_DATE.fullmatch(prefix):
        raise RowParseError(f"Invalid OFX date format: '{value}'")
    try:
        return date(int(prefix[:4]), int(prefix[4:6]), int(prefix[6:8]))
    except ValueError:
        raise RowParseError(f"Invalid OFX date: '{value}'")


def parse_ofx_amount(value: str) -> Decimal:
    try:
        return Decimal(value.replace(",", "."))
    except InvalidOperation:
        raise RowParseError(f"Invalid OFX amount: '{value}'")


def normalize_memo(memo: str) -> str:
    """Collapse whitespace and drop punctuation, keeping accented letters."""
    text = _DESCRIPTION_NOISE.sub(" ", collapse_whitespace(memo))
    return collapse_whitespace(text)


class BancoGeneralOFXParser(BankParser):
    """Structured transaction list (OFX) exported by Banco General."""

    name = "banco_general_ofx"
    file_types = ("ofx", "qfx")

    def __init__(self, config: Optional[StatementListParserConfig] = None):
        self.config = config or StatementListParserConfig()

    def detect(self, content: bytes, head: str) -> bool:
        upper = head.upper()
        is_ofx = any(marker.upper() in upper for marker in self.config.format_markers)
        if not is_ofx:
            return False
        return any(marker.upper() in upper for marker in self.config.institution_markers)

    def parse(self, content: bytes, options: ParseOptions) -> ParseResult:
        text = decode_text(content)
        account_info = self.extract_account_info(text, options)
        result = ParseResult()
        skipped = 0

        for index, match in enumerate(_TRANSACTION_BLOCK.finditer(text)):
            block = match.group(1)
            try:
                row = self.parse_transaction(block, index, account_info, options)
            except RowParseError as e:
                result.errors.append(RowError(row=index + 1, message=f"Transaction {index + 1}: {e}"))
                continue
            if row is None:
                skipped += 1
                continue
            result.rows.append(row)

        # Most recent first; sort is stable so same-day blocks keep file order
        result.rows.sort(key=lambda r: r.posted_at, reverse=True)

        logger.info(
            f"Parsed {len(result.rows)} OFX transactions for account "
            f"{account_info.get('account_id') or '?'} "
            f"({len(result.errors)} rejected, {skipped} incomplete blocks skipped)"
        )
        return result

    def extract_account_info(self, text: str, options: ParseOptions) -> dict:
        info = {"currency": options.default_currency}

        curdef = extract_field(text, "CURDEF").upper()
        if curdef:
            if curdef in self.config.supported_currencies:
                info["currency"] = curdef
            else:
                info["currency"] = self.config.fallback_currency

        account_id = extract_field(text, "ACCTID")
        if account_id:
            info["account_id"] = account_id

        balance = extract_field(text, "BALAMT")
        if balance:
            info["balance"] = balance
        return info

    def parse_transaction(self, block: str, index: int, account_info: dict,
                          options: ParseOptions) -> Optional[NormalizedRow]:
        amount_raw = extract_field(block, "TRNAMT")
        posted_raw = extract_field(block, "DTPOSTED")
        memo = extract_field(block, "MEMO") or extract_field(block, "NAME")
        fit_id = extract_field(block, "FITID")
        ref_num = extract_field(block, "REFNUM")
        trn_type = extract_field(block, "TRNTYPE")

        if not amount_raw or not posted_raw or not memo:
            return None

        posted_at = parse_ofx_date(posted_raw)
        amount = parse_ofx_amount(amount_raw)
        description = normalize_memo(memo)
        if not description:
            raise RowParseError("Empty description")

        is_transfer = matches_any_pattern(description, self.config.transfer_patterns)
        merchant = self.extract_merchant_name(description, is_transfer)

        return NormalizedRow(
            posted_at=posted_at,
            description=description,
            merchant_name=merchant,
            amount=amount,
            currency=account_info["currency"],
            is_internal_transfer=is_transfer,
            raw={
                "parser": self.name,
                "row_index": index,
                "fitid": fit_id or None,
                "refnum": ref_num or None,
                "trntype": trn_type or None,
                "original_block": block.strip(),
                "account_info": account_info,
                "parsed_at": options.parsed_at,
            },
        )

    def extract_merchant_name(self, description: str, is_internal_transfer: bool) -> Optional[str]:
        if is_internal_transfer:
            return self.config.transfer_label
        if not description:
            return None

        merchant = description
        upper = merchant.upper()
        for prefix in self.config.merchant_prefixes:
            position = upper.find(prefix.upper())
            if position >= 0:
                merchant = merchant[position + len(prefix):]
                break

        merchant = _MASKED_CARD.sub("", merchant)
        merchant = _LONG_NUMBER.sub("", merchant)

        words = [word for word in merchant.split() if len(word) > 2]
        if words:
            merchant = " ".join(words[: self.config.merchant_max_words])

        merchant = title_case(merchant.strip())
        return merchant or None
