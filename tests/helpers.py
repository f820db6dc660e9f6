"""Builders for statement fixtures used across the test modules."""

import csv
import io
from datetime import date
from decimal import Decimal

from openpyxl import Workbook

from bank_import.services.parsers import NormalizedRow

BANNER = [
    ["Banco General, S.A."],
    ["Últimos movimientos", None, None, None, "Cuenta 04-72-98-XXXXX-1"],
]
HEADER = [
    "Fecha", None, "Referencia", "Transacción", "Descripción",
    "Débito", "Crédito", None, "Saldo total",
]


def movement(posted, description, debit=None, credit=None, balance=None, reference=None, kind="POS"):
    """One data row in the spreadsheet's positional layout."""
    return [posted, None, reference, kind, description, debit, credit, None, balance]


def build_xlsx(rows, sheet_title="BGRExcelContReport", header=True, trailer=()):
    wb = Workbook()
    ws = wb.active
    ws.title = sheet_title
    for line in BANNER:
        ws.append(line)
    if header:
        ws.append(HEADER)
    for row in rows:
        ws.append(row)
    for row in trailer:
        ws.append(row)
    buf = io.BytesIO()
    wb.save(buf)
    return buf.getvalue()


def build_csv(rows, delimiter=",", trailer=()) -> bytes:
    buf = io.StringIO()
    writer = csv.writer(buf, delimiter=delimiter)
    for line in BANNER:
        writer.writerow(["" if c is None else c for c in line])
    writer.writerow(["" if c is None else c for c in HEADER])
    for row in list(rows) + list(trailer):
        writer.writerow(["" if c is None else c for c in row])
    return buf.getvalue().encode("utf-8")


OFX_HEADER = """OFXHEADER:100
DATA:OFXSGML
VERSION:102
SECURITY:NONE
ENCODING:USASCII
CHARSET:1252
COMPRESSION:NONE
OLDFILEUID:NONE
NEWFILEUID:NONE

<OFX>
<SIGNONMSGSRSV1><SONRS>
<STATUS><CODE>0<SEVERITY>INFO</STATUS>
<DTSERVER>20250820120000
<LANGUAGE>SPA
<FI><ORG>BGENERAL<FID>BG001</FI>
</SONRS></SIGNONMSGSRSV1>
<BANKMSGSRSV1><STMTTRNRS><STMTRS>
{curdef}<BANKACCTFROM><BANKID>BG<ACCTID>0472981234<ACCTTYPE>CHECKING</BANKACCTFROM>
<BANKTRANLIST>
<DTSTART>20250801<DTEND>20250820
"""

OFX_FOOTER = """</BANKTRANLIST>
<LEDGERBAL><BALAMT>1520.40<DTASOF>20250820</LEDGERBAL>
</STMTRS></STMTTRNRS></BANKMSGSRSV1>
</OFX>
"""


def ofx_block(posted, amount, memo, fitid=None, refnum=None, trntype="DEBIT"):
    lines = ["<STMTTRN>", f"<TRNTYPE>{trntype}"]
    if posted is not None:
        lines.append(f"<DTPOSTED>{posted}")
    if amount is not None:
        lines.append(f"<TRNAMT>{amount}")
    if fitid:
        lines.append(f"<FITID>{fitid}")
    if refnum:
        lines.append(f"<REFNUM>{refnum}")
    if memo is not None:
        lines.append(f"<MEMO>{memo}")
    lines.append("</STMTTRN>")
    return "\n".join(lines) + "\n"


def build_ofx(blocks, curdef="USD", encoding="utf-8") -> bytes:
    currency = f"<CURDEF>{curdef}\n" if curdef else ""
    text = OFX_HEADER.format(curdef=currency) + "".join(blocks) + OFX_FOOTER
    return text.encode(encoding)


def make_row(description="COMPRA EN SUPER 99", amount="-10.00", posted=date(2025, 1, 12),
             merchant=None, raw=None, transfer=False) -> NormalizedRow:
    return NormalizedRow(
        posted_at=posted,
        description=description,
        amount=Decimal(amount),
        currency="PAB",
        merchant_name=merchant,
        is_internal_transfer=transfer,
        raw=raw or {},
    )


SAMPLE_MOVEMENTS = [
    movement("12/01/2025", "COMPRA EN FARMACIA EL REY 12 DE OCT", debit=18.75, balance=981.25, reference="100001"),
    movement("13/01/2025", "DEPOSITO PLANILLA EMPRESA XYZ", credit=1500, balance=2481.25, reference="100002", kind="ACH"),
    movement("14/01/2025", "TRANSFERENCIA ENTRE CUENTAS", debit=200, balance=2281.25, reference="100003", kind="TRF"),
    movement("15/01/2025", "COMPRA EN SUPER 99 / SUC COSTA DEL ESTE", debit=42.10, balance=2239.15, reference="100004"),
    movement("16/01/2025", "PAGO A CABLE ONDA", debit=65, balance=2174.15, reference="100005"),
]
