"""File formats: backup JSON, expense structure JSON, CSV."""

from src.exports.backup import (
    backup_filename,
    decode_backup,
    decode_structure,
    encode_backup,
    encode_structure,
)
from src.exports.csv_export import csv_filename, format_amount, records_to_csv

__all__ = [
    "backup_filename",
    "decode_backup",
    "decode_structure",
    "encode_backup",
    "encode_structure",
    "csv_filename",
    "format_amount",
    "records_to_csv",
]
