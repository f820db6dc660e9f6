"""
Format detection: pick the one parser that claims a statement file.

Parsers are tried in order. The OFX parser goes first because its
signature (OFX markers plus institution tags) is the stronger one; content
that would satisfy both detectors therefore resolves to OFX rather than
being mis-read as a spreadsheet.
"""

import logging
from typing import Optional

from ...config import Settings, load_settings
from .banco_general_excel import BancoGeneralExcelParser
from .banco_general_ofx import BancoGeneralOFXParser
from .base import BankParser, decode_head, is_workbook

logger = logging.getLogger(__name__)


def default_parsers(settings: Settings) -> list:
    """Ordered parser candidates, strongest signature first."""
    return [
        BancoGeneralOFXParser(settings.statement_list),
        BancoGeneralExcelParser(settings.tabular),
    ]


def detect_parser(
    content: bytes,
    file_type: Optional[str] = None,
    parsers: Optional[list] = None,
    window: int = 4096,
) -> Optional[BankParser]:
    """Return the first parser that claims ``content``, or None.

    ``file_type`` (e.g. "ofx", "xlsx") narrows the candidates but the
    content must still match.
    """
    if parsers is None:
        parsers = default_parsers(load_settings())

    head = "" if is_workbook(content) else decode_head(content, window)

    for parser in parsers:
        if not parser.accepts_file_type(file_type):
            continue
        if parser.detect(content, head):
            logger.info(f"Detected format: {parser.name}")
            return parser

    logger.info(f"No parser claimed the file (declared type: {file_type or 'none'})")
    return None
