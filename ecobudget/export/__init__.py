"""Transaction export."""

from ecobudget.export.csv_export import (
    CSV_HEADERS,
    export_filename,
    transactions_to_csv,
    write_csv,
)

__all__ = ["CSV_HEADERS", "export_filename", "transactions_to_csv", "write_csv"]
