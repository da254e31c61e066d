"""
Delimited-text parsing for coordinate imports.

The parser is deliberately lenient: every double quote toggles the
"inside quotes" state and is dropped, so ``"a, b"`` stays one field but a
doubled ``""`` is not unescaped to a literal quote. Excel workbooks are
reduced to CSV text with pandas before they reach :func:`parse_tabular`.
"""

import io
import logging
import re
from typing import List, Optional, Union

import pandas as pd

from .detection import detect_coordinate_type
from .exceptions import FormatError
from .schemas import ParsedTable

logger = logging.getLogger(__name__)

ExcelSource = Union[bytes, io.BytesIO]

_LINE_BREAK = re.compile(r"\r?\n")


def decode_upload(contents: bytes) -> str:
    """Decode an uploaded file, trying common encodings in turn"""
    for encoding in ['utf-8-sig', 'cp1252', 'latin-1']:
        try:
            text = contents.decode(encoding)
            logger.debug(f"Successfully decoded with {encoding}")
            return text
        except UnicodeDecodeError:
            continue
    # latin-1 maps every byte, so this is only reached for odd subclasses
    return contents.decode('utf-8', errors='ignore')


def split_line(line: str) -> List[str]:
    """Split one comma-delimited line, honouring (but not unescaping) quotes"""
    fields = []
    current = []
    in_quotes = False

    for char in line:
        if char == '"':
            in_quotes = not in_quotes
        elif char == ',' and not in_quotes:
            fields.append("".join(current).strip())
            current = []
        else:
            current.append(char)

    fields.append("".join(current).strip())
    return fields


def parse_tabular(text: str) -> ParsedTable:
    """Parse CSV text into headers and rows, then run column detection.

    Raises:
        FormatError: If there is no header plus at least one data row.
    """
    lines = _LINE_BREAK.split(text.strip())
    if len(lines) < 2:
        raise FormatError("file must contain at least a header and one data row")

    headers = split_line(lines[0])
    rows = []

    for line in lines[1:]:
        values = split_line(line)
        row = {}
        for index, header in enumerate(headers):
            # duplicate headers keep the first occurrence
            if header in row:
                continue
            row[header] = values[index] if index < len(values) else ""
        rows.append(row)

    detection = detect_coordinate_type(headers, rows)
    logger.info(
        f"Parsed table with {len(headers)} columns and {len(rows)} rows, "
        f"detected type: {detection.coordinate_type}"
    )

    return ParsedTable(
        headers=headers,
        rows=rows,
        detected_coordinate_type=detection.coordinate_type,
        detected_column_mapping=detection.column_mapping,
        field_status=detection.field_status,
    )


def _workbook(data: ExcelSource) -> pd.ExcelFile:
    if isinstance(data, bytes):
        data = io.BytesIO(data)
    return pd.ExcelFile(data)


def list_worksheets(data: ExcelSource) -> List[str]:
    """Names of the worksheets in an Excel workbook"""
    with _workbook(data) as workbook:
        return [str(name) for name in workbook.sheet_names]


def excel_to_csv_text(data: ExcelSource, sheet_name: Optional[str] = None) -> str:
    """Reduce one worksheet (the first by default) to CSV text.

    Raises:
        FormatError: If the worksheet is missing or has no data.
    """
    with _workbook(data) as workbook:
        sheet_names = [str(name) for name in workbook.sheet_names]
        target = sheet_name or (sheet_names[0] if sheet_names else None)
        if target is None or target not in sheet_names:
            raise FormatError(f'Worksheet "{sheet_name}" not found')

        df = workbook.parse(target, header=None, dtype=str)

    # Blank rows are skipped, matching the spreadsheet export default
    df = df.dropna(how="all").fillna("")
    output = io.StringIO()
    df.to_csv(output, index=False, header=False, lineterminator="\n")
    csv_text = output.getvalue()

    if not csv_text.strip():
        raise FormatError("Excel file appears to be empty or contains no data")
    return csv_text


def parse_excel(data: ExcelSource, sheet_name: Optional[str] = None) -> ParsedTable:
    """Parse an Excel worksheet through the CSV path and record which sheet was used"""
    if not isinstance(data, bytes):
        data = data.read()
    if sheet_name is None:
        sheets = list_worksheets(data)
        sheet_name = sheets[0] if sheets else None
    table = parse_tabular(excel_to_csv_text(data, sheet_name))
    return table.model_copy(update={"worksheet_name": sheet_name})
