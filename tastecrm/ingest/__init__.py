# Ingest Layer - CSV import for TasteCRM
# Turns raw customer CSV text into anonymised behavioural profiles.
#
# Key modules:
#   csv_parser.py    - Splits CSV text and applies the column mapping (unmapped columns are discarded)
#   column_mapper.py - Suggests header -> canonical field mappings (keyword heuristic or LLM)
#   importer.py      - Per-row enrichment with Cultural DNA, then full replace of stored profiles
