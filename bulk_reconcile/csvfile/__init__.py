"""CSV input tokenizing, column mapping and CSV exports."""

from .columns import ColumnMap, detect_columns, extract_fields, is_vetted_export
from .tokenizer import CsvFormatError, parse, parse_with_header, read_csv_text

__all__ = [
    "ColumnMap",
    "CsvFormatError",
    "detect_columns",
    "extract_fields",
    "is_vetted_export",
    "parse",
    "parse_with_header",
    "read_csv_text",
]
