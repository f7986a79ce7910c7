from ingestion.csv_mapping import (
    ColumnMapping,
    CsvParseResult,
    detect_mapping,
    ingest,
    parse_amount,
    parse_csv,
    parse_date,
    rows_to_drafts,
)

__all__ = [
    "ColumnMapping",
    "CsvParseResult",
    "detect_mapping",
    "ingest",
    "parse_amount",
    "parse_csv",
    "parse_date",
    "rows_to_drafts",
]
