"""
Spreadsheet import / export of projects.

Supported:
- .xlsx (openpyxl)
- .csv

Fixed column set (same header on import, export and template):
  Project name | Client | Contract No | Contract date | Amount (excl. VAT) |
  VAT rate | Currency | Service start | Service end | Status | Progress %

Bad rows never abort an import; their errors are collected per row and the
remaining rows still go in as new projects.
"""

import csv
import io
import logging
import math
import re
from datetime import date, datetime
from typing import Any, Callable, Iterable, Optional

import openpyxl
from openpyxl.styles import Font
from openpyxl.utils import get_column_letter

from bizops.schemas.project import CURRENCIES, VAT_RATES
from bizops.services.finance import effective_amount, safe_number

logger = logging.getLogger(__name__)

COLUMNS = [
    "Project name",
    "Client",
    "Contract No",
    "Contract date",
    "Amount (excl. VAT)",
    "VAT rate",
    "Currency",
    "Service start",
    "Service end",
    "Status",
    "Progress %",
]

XLSX_MIME = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

_DATE_FORMATS = ("%Y-%m-%d", "%d.%m.%Y", "%d/%m/%Y", "%Y-%m-%d %H:%M:%S")


def _normalize_header(h) -> str:
    if h is None:
        return ""
    return " ".join(str(h).strip().lower().split())


_HEADER_KEYS = {_normalize_header(c): c for c in COLUMNS}


def _blank(value) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _parse_number(val) -> Optional[float]:
    """'1 234 567,50' / '1,234,567.50' -> float; None when unparseable."""
    if isinstance(val, bool):
        return None
    if isinstance(val, (int, float)):
        return float(val) if math.isfinite(val) else None
    s = str(val).replace("\u00a0", "").replace(" ", "").strip()
    s = re.sub(r"[^\d,.\-]", "", s)
    if "," in s and "." not in s:
        s = s.replace(",", ".")
    else:
        s = s.replace(",", "")
    try:
        result = float(s)
    except ValueError:
        return None
    # a long run of digits parses to inf
    return result if math.isfinite(result) else None


def _parse_date(val) -> Optional[date]:
    if isinstance(val, datetime):
        return val.date()
    if isinstance(val, date):
        return val
    s = str(val).strip()
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(s, fmt).date()
        except ValueError:
            continue
    return None


# ----------------------------
# Reading
# ----------------------------

def _find_header_row(rows: list) -> int:
    """Pick the row (within the first 15) that matches the most known column names."""
    best_idx, best_hits = 0, 0
    for i, row in enumerate(rows[:15]):
        hits = sum(1 for c in row if _normalize_header(c) in _HEADER_KEYS)
        if hits > best_hits:
            best_idx, best_hits = i, hits
    return best_idx


def _rows_to_dicts(rows: list) -> list[tuple[int, dict]]:
    """Map each data row to {canonical column: value}, keeping its 1-based sheet line."""
    if not rows:
        return []
    header_idx = _find_header_row(rows)
    headers = [_HEADER_KEYS.get(_normalize_header(h)) for h in rows[header_idx]]

    out = []
    for offset, row in enumerate(rows[header_idx + 1:], start=header_idx + 2):
        if all(_blank(c) for c in row):
            continue
        mapped = {headers[i]: row[i] for i in range(min(len(headers), len(row))) if headers[i]}
        out.append((offset, mapped))
    return out


def read_xlsx(content: bytes) -> list[tuple[int, dict]]:
    wb = openpyxl.load_workbook(io.BytesIO(content), read_only=True, data_only=True)
    try:
        rows = list(wb.active.iter_rows(values_only=True))
    finally:
        wb.close()
    return _rows_to_dicts(rows)


def read_csv(content: bytes) -> list[tuple[int, dict]]:
    text = content.decode("utf-8-sig", errors="replace")
    sample = text[:2048]
    delimiter = ";" if sample.count(";") > sample.count(",") else ","
    rows = list(csv.reader(io.StringIO(text), delimiter=delimiter))
    return _rows_to_dicts(rows)


def read_rows(filename: str, content: bytes) -> list[tuple[int, dict]]:
    name = (filename or "").lower()
    if name.endswith(".xlsx"):
        return read_xlsx(content)
    if name.endswith(".csv"):
        return read_csv(content)
    raise ValueError("Unsupported file type. Upload an .xlsx or .csv file")


# ----------------------------
# Validation
# ----------------------------

def parse_row(raw: dict) -> tuple[dict, list[str]]:
    """Turn one sheet row into ProjectCreate-shaped fields plus any errors."""
    errors = []

    name = "" if _blank(raw.get("Project name")) else str(raw["Project name"]).strip()
    client = "" if _blank(raw.get("Client")) else str(raw["Client"]).strip()
    if not name and not client:
        errors.append("Project name or client is required")

    contract_no = "" if _blank(raw.get("Contract No")) else str(raw["Contract No"]).strip()
    if not contract_no:
        errors.append("Contract number is required")

    amount = 0.0
    if not _blank(raw.get("Amount (excl. VAT)")):
        parsed = _parse_number(raw["Amount (excl. VAT)"])
        if parsed is None or parsed < 0:
            errors.append(f"Amount is not a valid number: {raw['Amount (excl. VAT)']}")
        else:
            amount = parsed

    vat_rate = 12
    if not _blank(raw.get("VAT rate")):
        parsed = _parse_number(str(raw["VAT rate"]).replace("%", ""))
        if parsed is None or int(parsed) != parsed or int(parsed) not in VAT_RATES:
            errors.append(f"VAT rate must be one of {list(VAT_RATES)}")
        else:
            vat_rate = int(parsed)

    currency = "KZT"
    if not _blank(raw.get("Currency")):
        currency = str(raw["Currency"]).strip().upper()
        if currency not in CURRENCIES:
            errors.append(f"Currency must be one of {list(CURRENCIES)}")

    dates = {}
    for column, field in (
        ("Contract date", "contract_date"),
        ("Service start", "service_start_date"),
        ("Service end", "service_end_date"),
    ):
        if _blank(raw.get(column)):
            dates[field] = None
            continue
        parsed = _parse_date(raw[column])
        if parsed is None:
            errors.append(f"{column} is not a valid date: {raw[column]}")
        dates[field] = parsed

    progress = 0
    if not _blank(raw.get("Progress %")):
        parsed = _parse_number(str(raw["Progress %"]).replace("%", ""))
        if parsed is None:
            errors.append(f"Progress % is not a number: {raw['Progress %']}")
        else:
            progress = int(max(0, min(100, parsed)))

    fields = {
        "name": name or client,
        "client_name": client or None,
        "contract_number": contract_no or None,
        "amount_without_vat": amount,
        "vat_rate": vat_rate,
        "currency": currency,
        "completion_percent": progress,
        **dates,
    }
    return fields, errors


def parse_rows(rows: Iterable[tuple[int, dict]]) -> tuple[list[dict], list[dict]]:
    """Returns (valid field dicts, [{row, errors}])."""
    valid, invalid = [], []
    for line, raw in rows:
        fields, errors = parse_row(raw)
        if errors:
            invalid.append({"row": line, "errors": errors})
        else:
            valid.append(fields)
    logger.info("Parsed project sheet: %d valid, %d invalid rows", len(valid), len(invalid))
    return valid, invalid


# ----------------------------
# Export
# ----------------------------

def _fmt_date(d) -> Optional[str]:
    return d.isoformat() if d else None


def _export_row(project, show_finances: bool) -> list[Any]:
    amount = effective_amount(project.amount_without_vat, project.amendments) if show_finances else None
    return [
        project.name,
        project.client_name,
        project.contract_number,
        _fmt_date(project.contract_date),
        amount,
        project.vat_rate,
        project.currency,
        _fmt_date(project.service_start_date),
        _fmt_date(project.service_end_date),
        project.status,
        int(safe_number(project.completion_percent)),
    ]


def _workbook_bytes(rows: Iterable[list[Any]]) -> bytes:
    wb = openpyxl.Workbook()
    ws = wb.active
    ws.title = "Projects"
    ws.append(COLUMNS)
    for cell in ws[1]:
        cell.font = Font(bold=True)
    for row in rows:
        ws.append(row)
    for i, column in enumerate(COLUMNS, start=1):
        ws.column_dimensions[get_column_letter(i)].width = max(14, len(column) + 4)

    buf = io.BytesIO()
    wb.save(buf)
    return buf.getvalue()


def export_workbook(projects: Iterable[Any], show_finances: Callable[[Any], bool]) -> bytes:
    """`show_finances(project)` decides per project whether the amount column is filled."""
    return _workbook_bytes(_export_row(p, show_finances(p)) for p in projects)


def template_workbook() -> bytes:
    return _workbook_bytes([])
