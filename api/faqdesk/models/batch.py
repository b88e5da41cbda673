"""Models for bulk question files."""

from enum import Enum
from pathlib import PurePosixPath
from typing import List, Optional

from faqdesk.core.exceptions import UnsupportedFileTypeError
from pydantic import BaseModel, Field

READ_ERROR_ANSWER = "ERROR reading input"
GENERATE_ERROR_ANSWER = "ERROR generating answer"


class BatchFileFormat(str, Enum):
    CSV = ".csv"
    XLSX = ".xlsx"

    @property
    def mime_type(self) -> str:
        if self is BatchFileFormat.CSV:
            return "text/csv"
        return "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

    @classmethod
    def from_filename(cls, filename: str) -> "BatchFileFormat":
        suffix = PurePosixPath(filename or "").suffix.lower()
        for fmt in cls:
            if fmt.value == suffix:
                return fmt
        raise UnsupportedFileTypeError(suffix)


class AnswerItem(BaseModel):
    """One row of a batch job."""

    question: str = ""
    answer: str = ""
    metadata: str = ""
    language_code: Optional[str] = None


class BatchInput(BaseModel):
    """Rows read from an uploaded file plus the language it declares."""

    items: List[AnswerItem] = Field(default_factory=list)
    file_format: BatchFileFormat
    language_code: Optional[str] = None


class FileConsentContext(BaseModel):
    """Context echoed back by the platform when the user answers a consent card."""

    filename: str = ""
    id: str = ""
