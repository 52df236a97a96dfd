#!/usr/bin/env python3
"""
Import a customer CSV from the command line (same pipeline as the API).

Replaces every stored customer profile with the file's rows.

Usage:
    python scripts/run_import.py customers.csv --map "Age=age_range" --map "Items=purchase_categories"
    python scripts/run_import.py customers.csv --auto            # keyword heuristic mapping
    python scripts/run_import.py customers.csv --auto --llm      # LLM mapping (heuristic fallback)
    python scripts/run_import.py customers.csv --auto --dry-run  # show mapping and parse stats only
"""

import argparse
import json
import os
import sys

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from tastecrm.db import connection
from tastecrm.db.init_db import init_db
from tastecrm.ingest.column_mapper import heuristic_mapping, suggest_mapping
from tastecrm.ingest.csv_parser import CsvIngestError, parse_csv, split_line
from tastecrm.ingest.importer import process_customer_data
from tastecrm.logging_config import setup_logging


def parse_map_args(pairs: list) -> dict:
    mapping = {}
    for pair in pairs or []:
        header, sep, field = pair.partition("=")
        if not sep:
            raise SystemExit(f"--map expects HEADER=field, got {pair!r}")
        mapping[header.strip()] = field.strip()
    return mapping


def main():
    parser = argparse.ArgumentParser(description="Import customer CSV into TasteCRM")
    parser.add_argument("csv_file")
    parser.add_argument("--map", action="append", metavar="HEADER=field",
                        help="Column mapping entry (repeatable)")
    parser.add_argument("--auto", action="store_true", help="Derive the mapping from the headers")
    parser.add_argument("--llm", action="store_true", help="With --auto, ask the LLM for the mapping")
    parser.add_argument("--dry-run", action="store_true", help="Parse only, do not enrich or store")
    args = parser.parse_args()

    setup_logging()
    with open(args.csv_file, encoding="utf-8") as f:
        text = f.read()

    lines = text.strip().split("\n")
    headers = split_line(lines[0]) if lines else []
    mapping = parse_map_args(args.map)
    if args.auto:
        if args.llm:
            preview = [split_line(line) for line in lines[1:6]]
            mapping = {**suggest_mapping(headers, preview), **mapping}
        else:
            mapping = {**heuristic_mapping(headers), **mapping}

    print("Column mapping:")
    for header in headers:
        print(f"  {header:<30} -> {mapping.get(header) or '(discarded)'}")

    try:
        if args.dry_run:
            parsed = parse_csv(text, mapping)
            print(f"\nParsed {parsed.records_processed} records, "
                  f"completeness {parsed.completeness:.1f}%")
            return 0

        init_db(connection.DB_PATH)
        result = process_customer_data(text, mapping)
    except CsvIngestError as e:
        print(f"\nFAIL: {e}")
        return 1

    print()
    print(json.dumps({k: v for k, v in result.items() if k != "processedData"}, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
