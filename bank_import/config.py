"""
Runtime configuration for the statement import service.

Service-level settings come from environment variables (loaded from .env by
main.py). Keyword lists used by the parsers and the detector live in frozen
dataclasses so a bank or locale can be supported by passing a different
config to the parser constructor instead of editing module constants.
"""

import os
from dataclasses import dataclass, field


# Phrasings of "transfer between own accounts". Matched as regexes against
# the folded (lower-case, accent-free) description.
TRANSFER_PATTERNS = (
    r"entre cuentas",
    r"transferencia.*entre.*cuentas",
    r"banca movil transferencia.*entre cuentas",
    r"transfer.*own.*account",
    r"internal.*transfer",
    r"movimiento.*entre.*cuentas",
)

INTERNAL_TRANSFER_LABEL = "Transferencia Entre Cuentas"

MONTH_TOKENS = (
    "ENE", "FEB", "MAR", "ABR", "MAY", "JUN", "JUL", "AGO", "SEP", "SET",
    "OCT", "NOV", "DIC", "JAN", "APR", "AUG", "DEC",
)


@dataclass(frozen=True)
class TabularLayout:
    """Zero-based column positions of the Banco General movements sheet."""
    date: int = 0          # A
    reference: int = 2     # C
    transaction_type: int = 3  # D
    description: int = 4   # E
    debit: int = 5         # F
    credit: int = 6        # G
    balance: int = 8       # I
    width: int = 10


@dataclass(frozen=True)
class TabularParserConfig:
    sheet_name_hints: tuple = ("bgrexcelcontreport", "movimientos", "estado")
    date_tokens: tuple = ("fecha", "date")
    debit_tokens: tuple = ("debito", "debit")
    credit_tokens: tuple = ("credito", "credit")
    description_tokens: tuple = ("descripcion", "description")
    transaction_tokens: tuple = ("transaccion", "transaction")
    header_scan_limit: int = 30
    max_data_rows: int = 1000
    summary_keywords: tuple = (
        "total", "totales", "saldo anterior", "saldo inicial", "saldo final",
        "resumen", "total debitos", "total creditos", "movimientos",
    )
    merchant_prefixes: tuple = (
        "COMPRA EN ", "PAGO A ", "PAGO EN ", "TRANSFERENCIA A ", "DEPOSITO ",
        "ABONO ", "RETIRO ", "TRANS. ", "ACH ", "POS ", "COMERCIO: ",
    )
    merchant_separators: tuple = (" / ", " - ", " | ", " /", " -", " |")
    month_tokens: tuple = MONTH_TOKENS
    transfer_patterns: tuple = TRANSFER_PATTERNS
    transfer_label: str = INTERNAL_TRANSFER_LABEL
    layout: TabularLayout = field(default_factory=TabularLayout)


@dataclass(frozen=True)
class StatementListParserConfig:
    format_markers: tuple = ("OFXHEADER:", "<OFX>", "<STMTTRN>", "<BANKTRANLIST>")
    institution_markers: tuple = (
        "<ORG>BG", "<FID>BG", "<BANKID>BG", "BANCA MOVIL TRANSFERENCIA",
    )
    supported_currencies: tuple = ("USD", "PAB")
    fallback_currency: str = "PAB"
    merchant_prefixes: tuple = (
        "BANCA MOVIL TRANSFERENCIA DE ",
        "BANCA MOVIL TRANSFERENCIA A ",
        "ACH - ",
        "WU ",
        "APPLE.COM/BILL-",
        "WWW.",
        "HTTP://",
        "HTTPS://",
    )
    merchant_max_words: int = 3
    transfer_patterns: tuple = TRANSFER_PATTERNS
    transfer_label: str = INTERNAL_TRANSFER_LABEL


@dataclass
class Settings:
    default_timezone: str = "America/Panama"
    default_currency: str = "PAB"
    detect_window: int = 4096
    preview_sample_size: int = 3
    import_sample_size: int = 3
    max_reported_errors: int = 100
    max_file_bytes: int = 10 * 1024 * 1024
    fetch_timeout: float = 30.0
    fingerprint_prefix: str = "bg_"
    tabular: TabularParserConfig = field(default_factory=TabularParserConfig)
    statement_list: StatementListParserConfig = field(default_factory=StatementListParserConfig)


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    return int(value) if value else default


def load_settings() -> Settings:
    """Build Settings from the environment, falling back to defaults."""
    return Settings(
        default_timezone=os.getenv("BANK_IMPORT_TZ", "America/Panama"),
        default_currency=os.getenv("BANK_IMPORT_DEFAULT_CURRENCY", "PAB"),
        detect_window=_env_int("BANK_IMPORT_DETECT_WINDOW", 4096),
        max_reported_errors=_env_int("BANK_IMPORT_MAX_ERRORS", 100),
        max_file_bytes=_env_int("BANK_IMPORT_MAX_FILE_BYTES", 10 * 1024 * 1024),
        fetch_timeout=float(os.getenv("BANK_IMPORT_FETCH_TIMEOUT", "30")),
    )


def get_settings() -> Settings:
    """FastAPI dependency returning the active settings."""
    return load_settings()
