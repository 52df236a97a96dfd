"""
CSV Parser - Converts raw CSV text into canonical behavioural records.

Only columns named in the column mapping survive parsing; every other column
(names, emails, addresses) is dropped before a record is built.

Usage:
    from tastecrm.ingest.csv_parser import parse_csv
    parsed = parse_csv(text, {"Age": "age_range", "Spend": "spending_level"})
    parsed.records_processed, parsed.completeness
"""

import logging
import math
import re
from dataclasses import dataclass, field

logger = logging.getLogger("tastecrm.ingest.csv")

CANONICAL_FIELDS = ("age_range", "spending_level", "purchase_categories", "interaction_frequency")

CATEGORY_SPLIT = re.compile(r"[;,|]")


class CsvIngestError(ValueError):
    """Raised when CSV text yields no usable records."""
    pass


@dataclass
class ParsedCsv:
    records_processed: int
    records: list = field(default_factory=list)
    completeness: float = 0.0


def _clean_cell(value: str) -> str:
    return value.replace('"', "").strip()


def split_line(line: str) -> list:
    """Split one CSV line on commas and clean each cell.

    Quoted commas are not honoured; quotes are simply stripped.
    """
    return [_clean_cell(v) for v in line.split(",")]


def reverse_mapping(column_mapping: dict) -> dict:
    """Map canonical field -> source header.

    Empty or non-canonical mapping values are ignored. When several headers
    map to the same field, the last one in mapping order wins.
    """
    reverse = {}
    for header, target in column_mapping.items():
        if target in CANONICAL_FIELDS:
            reverse[target] = header
    return reverse


def split_categories(value: str) -> list:
    return [item.strip() for item in CATEGORY_SPLIT.split(value) if item.strip()]


def record_filled_count(record: dict) -> int:
    """Number of the four canonical fields holding a non-empty value."""
    return sum(1 for f in CANONICAL_FIELDS if record.get(f))


def compute_completeness(records: list) -> float:
    """Filled canonical slots / (4 * records) as a percentage in [0, 100]."""
    total = len(records)
    if total == 0:
        return 0.0
    filled = sum(record_filled_count(r) for r in records)
    completeness = filled / (total * len(CANONICAL_FIELDS)) * 100
    if math.isnan(completeness):
        return 0.0
    return max(0.0, min(100.0, completeness))


def parse_csv(csv_text: str, column_mapping: dict) -> ParsedCsv:
    """Parse CSV text using a header -> canonical field mapping.

    Args:
        csv_text: Raw CSV, first line is the header row.
        column_mapping: Source header -> canonical field name (or "").

    Returns:
        ParsedCsv with one record per well-formed data row. Records hold only
        canonical keys that had a value; purchase_categories is a list.

    Raises:
        CsvIngestError: Fewer than two lines, or no row survived parsing.
    """
    lines = (csv_text or "").strip().split("\n")
    if len(lines) < 2:
        raise CsvIngestError("Could not parse any valid records from the CSV: no data rows found.")

    headers = split_line(lines[0])
    reverse = reverse_mapping(column_mapping or {})
    # canonical field -> column index, only for headers actually present
    columns = {f: headers.index(h) for f, h in reverse.items() if h in headers}

    records = []
    dropped = 0
    for line_no, line in enumerate(lines[1:], start=2):
        values = split_line(line)
        if len(values) != len(headers):
            dropped += 1
            logger.debug("Dropping line %d: %d fields, expected %d",
                         line_no, len(values), len(headers), extra={"row_index": line_no})
            continue

        record = {}
        for f in CANONICAL_FIELDS:
            idx = columns.get(f)
            if idx is None or not values[idx]:
                continue
            if f == "purchase_categories":
                record[f] = split_categories(values[idx])
            else:
                record[f] = values[idx]
        records.append(record)

    if not records:
        raise CsvIngestError(
            "Could not parse any valid records from the CSV file. Please check the file format."
        )

    if dropped:
        logger.warning("Dropped %d malformed CSV rows (field count mismatch)", dropped)

    return ParsedCsv(
        records_processed=len(records),
        records=records,
        completeness=compute_completeness(records),
    )
