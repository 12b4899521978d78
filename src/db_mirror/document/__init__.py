"""Schema document files: JSON and XLSX codecs.

Usage:
    from db_mirror.document import read_schema_file, write_schema_file
"""

from db_mirror.document.codec import (
    detect_format,
    dumps_json,
    read_schema_file,
    write_schema_file,
)
from db_mirror.document.worksheets import schema_to_worksheets

__all__ = [
    "detect_format",
    "dumps_json",
    "read_schema_file",
    "write_schema_file",
    "schema_to_worksheets",
]
