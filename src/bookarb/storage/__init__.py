"""DuckDB persistence: book state and our own order records."""
