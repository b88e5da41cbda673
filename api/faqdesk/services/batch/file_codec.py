"""Reading question files and writing answer files (CSV and XLSX).

Input rows are ``question, metadata``; output rows are ``question, answer``.
Both formats may start with a header row whose first cell is "Question".
An XLSX file can declare the language of its questions with a "Language"
header cell in the first row; the value below it is the language code.
"""

import csv
import io
import logging
from typing import Iterable, List, Optional, Sequence, Tuple

from faqdesk.models.batch import AnswerItem, BatchFileFormat, BatchInput
from openpyxl import Workbook, load_workbook

logger = logging.getLogger(__name__)

QUESTION_HEADER = "question"
LANGUAGE_HEADER = "language"
OUTPUT_HEADER = ("Question", "Answer")


def _cell_text(value) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _is_header(row: Sequence[str]) -> bool:
    return bool(row) and row[0].strip().lower() == QUESTION_HEADER


def _trim_trailing_empty(rows: List[List[str]]) -> List[List[str]]:
    while rows and not any(cell.strip() for cell in rows[-1]):
        rows.pop()
    return rows


def _pairs(rows: Iterable[Sequence[str]]) -> List[Tuple[str, str]]:
    pairs = []
    for row in rows:
        first = row[0] if len(row) > 0 else ""
        second = row[1] if len(row) > 1 else ""
        pairs.append((first, second))
    return pairs


# ---------------------------------------------------------------------------
# CSV
# ---------------------------------------------------------------------------


def read_csv_rows(content: bytes) -> List[Tuple[str, str]]:
    """Parse the first two columns of every data row of a CSV file."""
    text = content.decode("utf-8-sig")
    rows = [list(row) for row in csv.reader(io.StringIO(text, newline=""))]
    rows = _trim_trailing_empty(rows)
    if rows and _is_header(rows[0]):
        rows = rows[1:]
    return _pairs(rows)


def write_csv_rows(rows: Iterable[Tuple[str, str]]) -> bytes:
    buffer = io.StringIO(newline="")
    writer = csv.writer(buffer)
    writer.writerow(OUTPUT_HEADER)
    for question, answer in rows:
        writer.writerow([question, answer])
    return buffer.getvalue().encode("utf-8")


# ---------------------------------------------------------------------------
# XLSX
# ---------------------------------------------------------------------------


def read_xlsx_rows(content: bytes) -> Tuple[List[Tuple[str, str]], Optional[str]]:
    """Parse the first worksheet of a workbook.

    Returns:
        Tuple of (question/metadata pairs, declared language code or None)
    """
    workbook = load_workbook(io.BytesIO(content), read_only=True, data_only=True)
    try:
        sheet = workbook.worksheets[0]
        rows = [
            [_cell_text(value) for value in row]
            for row in sheet.iter_rows(values_only=True)
        ]
    finally:
        workbook.close()

    rows = _trim_trailing_empty(rows)
    language_code = None
    if rows and _is_header(rows[0]):
        header = [cell.lower() for cell in rows[0]]
        if LANGUAGE_HEADER in header and len(rows) > 1:
            column = header.index(LANGUAGE_HEADER)
            first_data = rows[1]
            if column < len(first_data) and first_data[column]:
                language_code = first_data[column].lower()
        rows = rows[1:]
    return _pairs(rows), language_code


def write_xlsx_rows(rows: Iterable[Tuple[str, str]]) -> bytes:
    workbook = Workbook()
    sheet = workbook.active
    sheet.title = "Answers"
    sheet.append(list(OUTPUT_HEADER))
    for question, answer in rows:
        sheet.append([question, answer])
    buffer = io.BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


# ---------------------------------------------------------------------------
# Format dispatch
# ---------------------------------------------------------------------------


def read_questions(content: bytes, file_format: BatchFileFormat) -> BatchInput:
    """Read a question file into batch rows."""
    language_code = None
    if file_format is BatchFileFormat.CSV:
        pairs = read_csv_rows(content)
    else:
        pairs, language_code = read_xlsx_rows(content)
    items = [AnswerItem(question=q, metadata=m) for q, m in pairs]
    logger.info(
        "Read %d questions from %s file (language=%s)",
        len(items),
        file_format.value,
        language_code,
    )
    return BatchInput(items=items, file_format=file_format, language_code=language_code)


def write_answers(items: Sequence[AnswerItem], file_format: BatchFileFormat) -> bytes:
    """Serialize answered rows in the same format as the input."""
    rows = [(item.question, item.answer) for item in items]
    if file_format is BatchFileFormat.CSV:
        return write_csv_rows(rows)
    return write_xlsx_rows(rows)
