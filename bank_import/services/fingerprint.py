"""
Deduplication fingerprints for imported transactions.

A fingerprint combines the posted date, the best reference the source offers
(OFX FITID, then REFNUM, then the spreadsheet reference column, then the
description) and the bank account id. Re-importing an overlapping statement
yields the same fingerprints, so already-imported rows are skipped.

The hash is the classic 31-multiplier string hash over UTF-16 code units,
wrapped to a signed 32-bit integer, rendered in base 36 behind a fixed
prefix. It is stable across processes, unlike Python's built-in hash().
"""

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def reference_id(row) -> str:
    raw = row.raw or {}
    return (
        raw.get("fitid")
        or raw.get("refnum")
        or raw.get("reference_id")
        or row.description
    )


def string_hash(data: str) -> int:
    """Signed 32-bit 31-multiplier hash over UTF-16 code units."""
    encoded = data.encode("utf-16-le")
    value = 0
    for i in range(0, len(encoded), 2):
        unit = encoded[i] | (encoded[i + 1] << 8)
        value = (value * 31 + unit) & 0xFFFFFFFF
    if value >= 0x80000000:
        value -= 0x100000000
    return value


def to_base36(number: int) -> str:
    if number == 0:
        return "0"
    digits = []
    while number:
        number, remainder = divmod(number, 36)
        digits.append(_BASE36[remainder])
    return "".join(reversed(digits))


def generate_fingerprint(row, bank_account_id: str, prefix: str = "bg_") -> str:
    """Deterministic dedup key for ``row`` imported into ``bank_account_id``."""
    data = f"{row.posted_at.isoformat()}|{reference_id(row)}|{bank_account_id}"
    return f"{prefix}{to_base36(abs(string_hash(data)))}"
