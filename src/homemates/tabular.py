"""CSV and Excel sheet parsing with pandas.

Used by the property sheet import and the dataset upload. Every cell is read
as text so phone numbers and codes keep their leading zeros; numeric columns
are converted later by ``homemates.coerce``.
"""

import io
import logging
import zipfile
from pathlib import Path
from typing import Any

import pandas as pd
from xlrd import XLRDError

logger = logging.getLogger("homemates-tabular")

SUPPORTED_EXTENSIONS = {".csv", ".xlsx", ".xls"}


class TableParseError(ValueError):
    """The file could not be read as a table."""


def file_extension(filename: str | None) -> str:
    return Path(filename or "").suffix.lower()


def read_table(content: bytes, filename: str) -> pd.DataFrame:
    """Read a CSV or Excel file into a DataFrame of strings.

    Args:
        content: Raw file bytes.
        filename: Original name; its extension selects the parser.

    Raises:
        TableParseError: Unsupported extension or unreadable content.
    """
    extension = file_extension(filename)
    if extension not in SUPPORTED_EXTENSIONS:
        raise TableParseError(f"Unsupported file type: {extension or filename}")

    buffer = io.BytesIO(content)
    try:
        if extension == ".csv":
            frame = pd.read_csv(buffer, dtype=str, skipinitialspace=True)
        else:
            engine = "openpyxl" if extension == ".xlsx" else "xlrd"
            frame = pd.read_excel(buffer, dtype=str, engine=engine)
    except pd.errors.EmptyDataError as e:
        raise TableParseError("File has no rows") from e
    except (pd.errors.ParserError, ValueError, OSError, zipfile.BadZipFile, XLRDError) as e:
        logger.warning(f"Failed to parse {filename}: {e!s}")
        raise TableParseError(f"Could not parse {filename}: {e!s}") from e

    frame.columns = [str(column).strip() for column in frame.columns]
    # Whitespace-only cells count as missing
    return frame.replace(r"^\s*$", pd.NA, regex=True)


def data_health(frame: pd.DataFrame) -> dict[str, Any]:
    """Summarize row quality for the dataset page."""
    empty = frame.isna().all(axis=1)
    filled = frame[~empty]
    duplicates = int(filled.duplicated().sum())
    total = len(frame)

    return {
        "total_rows": total,
        "valid_rows": total - int(empty.sum()) - duplicates,
        "empty_rows": int(empty.sum()),
        "duplicate_rows": duplicates,
        "columns": list(frame.columns),
        "missing_values": {column: int(count) for column, count in frame.isna().sum().items()},
    }


def to_records(frame: pd.DataFrame) -> list[dict[str, Any]]:
    """Non-empty rows as dicts, with missing cells as None."""
    filled = frame.dropna(how="all")
    cleaned = filled.astype(object).where(filled.notna(), None)
    return cleaned.to_dict(orient="records")


def normalize_column(name: str) -> str:
    """``"Must Need amenities"`` -> ``"must_need_amenities"``."""
    return "_".join(name.strip().lower().replace("-", " ").split())


def pick(row: dict[str, Any], *names: str) -> Any:
    """First non-missing value among column aliases (compared normalized)."""
    normalized = {normalize_column(key): value for key, value in row.items()}
    for name in names:
        value = normalized.get(normalize_column(name))
        if value is not None and not (isinstance(value, float) and pd.isna(value)):
            return value
    return None
