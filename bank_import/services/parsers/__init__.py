from .base import BankParser, NormalizedRow, ParseOptions, ParseResult, RowError, decode_head
from .banco_general_excel import BancoGeneralExcelParser
from .banco_general_ofx import BancoGeneralOFXParser
from .detector import default_parsers, detect_parser

__all__ = [
    "BankParser",
    "NormalizedRow",
    "ParseOptions",
    "ParseResult",
    "RowError",
    "decode_head",
    "BancoGeneralExcelParser",
    "BancoGeneralOFXParser",
    "default_parsers",
    "detect_parser",
]
