"""
Line-based CSV parsing into domain entities.

Header and rows are split with a quote-aware splitter: a ``"`` toggles the
quoted state unless preceded by a backslash, in which case both characters
are kept in the value. Commas inside quotes are literal and quoted fields
never span lines.
"""
import io
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Generic, List, Sequence, TypeVar

from core.exceptions import InvalidFormatError, RowReadError, SchemaMismatchError
from core.logger import setup_logger

logger = setup_logger(__name__)

T = TypeVar("T")

CSV_EXTENSION = ".csv"
QUOTE = '"'
ESCAPE = "\\"
SEPARATOR = ","


class EntityCsvMapper(ABC, Generic[T]):
    """Maps one CSV row (header -> value) to an entity."""

    @property
    @abstractmethod
    def required_columns(self) -> Sequence[str]:
        """Exact header row, in order."""

    @abstractmethod
    def map_row(self, row: Dict[str, str]) -> T:
        """Build an entity from a row mapping."""


def split_csv_line(line: str) -> List[str]:
    """
    Split a single CSV line into field values.

    Args:
        line: One line without its terminator

    Returns:
        List of field values with quoting removed
    """
    values = []
    current = []
    in_quotes = False
    previous = ""

    for char in line:
        if char == QUOTE and previous != ESCAPE:
            in_quotes = not in_quotes
        elif char == SEPARATOR and not in_quotes:
            values.append("".join(current))
            current = []
        else:
            current.append(char)
        previous = char

    values.append("".join(current))
    return values


def validate_csv_file(content: bytes, filename: str) -> None:
    """
    Validate file name extension and presence of content.

    Raises:
        InvalidFormatError: If the file is empty or not a CSV
    """
    if not content:
        raise InvalidFormatError("File is empty or not provided", details={"filename": filename})

    if not filename or Path(filename).suffix != CSV_EXTENSION:
        raise InvalidFormatError("File is not a CSV", details={"filename": filename})


def parse_csv(content: bytes, filename: str, mapper: EntityCsvMapper[T]) -> List[T]:
    """
    Parse CSV bytes into entities using ``mapper``.

    Args:
        content: Raw file bytes
        filename: Original upload name, used for the extension check
        mapper: Row-to-entity mapper declaring the required header

    Returns:
        Entities in file order

    Raises:
        InvalidFormatError: If the file is empty or not a CSV
        SchemaMismatchError: If the header differs from ``mapper.required_columns``
        RowReadError: If a line cannot be decoded or has the wrong number of values
        FormatError: Propagated from the mapper for malformed field values
    """
    validate_csv_file(content, filename)

    try:
        text = content.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise RowReadError(
            "Unable to read file: content is not valid UTF-8",
            details={"filename": filename, "error": str(e)}
        )

    stream = io.StringIO(text)
    header_line = stream.readline().rstrip("\r\n")
    if not header_line.strip():
        raise InvalidFormatError("File is empty or not provided", details={"filename": filename})

    header = split_csv_line(header_line)
    expected = list(mapper.required_columns)
    if header != expected:
        raise SchemaMismatchError(
            f"CSV header must be exactly: {','.join(expected)}",
            details={"expected": expected, "actual": header}
        )

    logger.info(f"Parsing {filename} with columns {header}")

    entities = []
    line_number = 1
    for raw_line in stream:
        line_number += 1
        line = raw_line.rstrip("\r\n")
        if not line.strip():
            continue

        values = split_csv_line(line)
        if len(values) != len(header):
            raise RowReadError(
                f"Unable to read line {line_number}: expected {len(header)} values, got {len(values)}",
                details={"line": line_number, "expected": len(header), "actual": len(values)}
            )

        row = dict(zip(header, values))
        entities.append(mapper.map_row(row))

    logger.info(f"Parsed {len(entities)} rows from {filename}")
    return entities
