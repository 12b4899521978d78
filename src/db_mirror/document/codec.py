"""Read and write schema documents on disk.

Supported formats, chosen by file extension:

- ``.json`` / ``.js``: canonical record form, pretty-printed UTF-8
- ``.xlsx``: one worksheet per object (see ``worksheets``)

Usage:
    from db_mirror.document import read_schema_file, write_schema_file

    document = read_schema_file("schema.xlsx")
    write_schema_file(document, "schema.json")
"""

import json
import logging
from pathlib import Path
from typing import Literal

from db_mirror.document.worksheets import read_workbook, write_workbook
from db_mirror.schema.errors import InputFormatError
from db_mirror.schema.models import SchemaDocument
from db_mirror.schema.normalizer import normalize_schema, schema_from_worksheets

logger = logging.getLogger(__name__)

DocumentFormat = Literal["json", "xlsx"]

_FORMATS: dict[str, DocumentFormat] = {
    ".json": "json",
    ".js": "json",
    ".xlsx": "xlsx",
}


def detect_format(path: Path | str) -> DocumentFormat:
    """Map a file extension to a document format.

    Raises:
        InputFormatError: For any other extension.

    Examples:
        >>> detect_format("out/Schema.JSON")
        'json'
        >>> detect_format("schema.xlsx")
        'xlsx'
    """
    suffix = Path(path).suffix.lower()
    if suffix not in _FORMATS:
        raise InputFormatError(
            f"Unsupported file format '{suffix or path}'. Use .json, .js or .xlsx"
        )
    return _FORMATS[suffix]


def dumps_json(document: SchemaDocument) -> str:
    """Serialize a document as pretty-printed JSON (non-ASCII kept as-is)."""
    return json.dumps(document.to_records(), indent=4, ensure_ascii=False) + "\n"


def read_schema_file(path: Path | str, keep_incomplete: bool = False) -> SchemaDocument:
    """Read and normalize a schema document.

    Args:
        path: ``.json``, ``.js`` or ``.xlsx`` file.
        keep_incomplete: Forwarded to ``normalize_schema``.

    Returns:
        Normalized ``SchemaDocument``.

    Raises:
        FileNotFoundError: If the file does not exist.
        InputFormatError: Unsupported extension, undecodable content, or a
            document shape the normalizer rejects.
    """
    path = Path(path)
    doc_format = detect_format(path)
    if not path.exists():
        raise FileNotFoundError(f"Schema file not found: {path}")

    if doc_format == "xlsx":
        raw = schema_from_worksheets(read_workbook(path))
    else:
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise InputFormatError(f"Failed to parse JSON input {path}: {e}") from e

    document = normalize_schema(raw, keep_incomplete=keep_incomplete)
    logger.debug("Read %d objects from %s", len(document.objects), path)
    return document


def write_schema_file(document: SchemaDocument, path: Path | str) -> Path:
    """Write a document in the format implied by *path*.

    Returns:
        The path written.
    """
    path = Path(path)
    doc_format = detect_format(path)

    if doc_format == "xlsx":
        write_workbook(document, path)
    else:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(dumps_json(document), encoding="utf-8")

    logger.debug("Wrote %d objects to %s", len(document.objects), path)
    return path
