"""
Excel export of transaction records.
Columns follow the declared ExportSchema of the record shape.
"""
import io
from typing import List, Sequence

import pandas as pd

from core.exceptions import ExportError
from core.logger import setup_logger
from core.schema import EXPORT_SCHEMAS, ExportSchema, Transaction, export_row

logger = setup_logger(__name__)

MAX_COLUMN_WIDTH = 50


def get_export_schema(records: Sequence[Transaction]) -> ExportSchema:
    """
    Look up the export schema for a homogeneous list of records.

    Raises:
        ExportError: If the list is empty, mixed or of an unregistered shape
    """
    if not records:
        raise ExportError("Nothing to export")

    record_type = type(records[0])
    if any(type(record) is not record_type for record in records):
        raise ExportError(
            "All exported records must have the same shape",
            details={"types": sorted({type(r).__name__ for r in records})}
        )

    schema = EXPORT_SCHEMAS.get(record_type)
    if schema is None:
        raise ExportError(
            f"No export schema for {record_type.__name__}",
            details={"type": record_type.__name__}
        )
    return schema


def build_export_frame(records: List[Transaction], schema: ExportSchema) -> pd.DataFrame:
    """Build a DataFrame with one row per record in schema column order."""
    headers = [header for _, header in schema.columns]
    return pd.DataFrame([export_row(record, schema) for record in records], columns=headers)


def export_to_excel(records: List[Transaction]) -> bytes:
    """
    Export records to an in-memory .xlsx workbook.

    Args:
        records: Same-shaped, timezone-resolved records

    Returns:
        Workbook bytes

    Raises:
        ExportError: If the records cannot be exported
    """
    schema = get_export_schema(records)
    output_df = build_export_frame(records, schema)

    logger.info(f"Exporting {len(output_df)} records to sheet {schema.sheet_name}")

    buffer = io.BytesIO()
    try:
        with pd.ExcelWriter(
            buffer,
            engine="xlsxwriter",
            datetime_format="yyyy-mm-dd hh:mm:ss",
        ) as writer:
            output_df.to_excel(writer, sheet_name=schema.sheet_name, index=False)

            worksheet = writer.sheets[schema.sheet_name]

            # Auto-fit columns (approximate)
            for idx, col in enumerate(output_df.columns):
                max_len = max(
                    output_df[col].astype(str).map(len).max(),
                    len(str(col))
                )
                worksheet.set_column(idx, idx, min(max_len + 2, MAX_COLUMN_WIDTH))

        return buffer.getvalue()

    except Exception as e:
        logger.error(f"Failed to export Excel: {e}")
        raise ExportError(
            "Failed to export to Excel",
            details={"sheet_name": schema.sheet_name, "error": str(e)}
        )
