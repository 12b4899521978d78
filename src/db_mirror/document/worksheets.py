"""Tabular (XLSX) form of a schema document.

One worksheet per object, one row per field, with the fixed header
``TABULAR_HEADERS``.  Object metadata (indexes, engine, collation,
CREATE statement) is written on the object's first row only.
"""

import json
import re
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from openpyxl import Workbook, load_workbook

from db_mirror.schema.models import ObjectSchema, SchemaDocument
from db_mirror.schema.normalizer import TABULAR_HEADERS

EMPTY_SHEET_NAME = "schema"

_MAX_TITLE_LENGTH = 31
_INVALID_TITLE_CHARS = re.compile(r"[\[\]:*?/\\]")


def sheet_title(name: str, used: set[str]) -> str:
    """Derive a valid, unused worksheet title from an object name.

    Excel titles are at most 31 characters, must not contain
    ``[]:*?/\\`` and are compared case-insensitively.  The real object
    name is preserved in the ``table_name`` column.

    Examples:
        >>> sheet_title("orders", set())
        'orders'
        >>> sheet_title("a/b", {"a_b"})
        'a_b_2'
    """
    base = _INVALID_TITLE_CHARS.sub("_", name).strip("'")[:_MAX_TITLE_LENGTH] or "object"
    title = base
    counter = 2
    while title.lower() in used:
        suffix = f"_{counter}"
        title = base[: _MAX_TITLE_LENGTH - len(suffix)] + suffix
        counter += 1
    used.add(title.lower())
    return title


def _indexes_json(obj: ObjectSchema) -> str:
    return json.dumps(
        [index.model_dump(mode="json") for index in obj.indexes],
        ensure_ascii=False,
    )


def object_rows(obj: ObjectSchema) -> list[list[Any]]:
    """Data rows for one object (header excluded)."""
    meta = [_indexes_json(obj), obj.engine, obj.collation, obj.create_sql]
    blank_meta = ["", "", "", ""]

    if not obj.fields:
        return [[obj.type, obj.name, "", "", "", "", "", "", "", "", "", "", "", *meta]]

    rows = []
    for i, field in enumerate(obj.fields):
        rows.append(
            [
                obj.type,
                obj.name,
                field.name,
                field.position,
                field.type,
                "YES" if field.nullable else "NO",
                field.default_kind,
                field.default_value,
                field.extra,
                field.key,
                field.collation,
                field.comment,
                field.generation_expression,
                *(meta if i == 0 else blank_meta),
            ]
        )
    return rows


def schema_to_worksheets(document: SchemaDocument) -> dict[str, list[list[Any]]]:
    """Lay a document out as ``{sheet_title: [header, rows...]}``."""
    header = list(TABULAR_HEADERS)
    if not document.objects:
        return {EMPTY_SHEET_NAME: [header]}

    used: set[str] = set()
    return {
        sheet_title(obj.name, used): [header, *object_rows(obj)]
        for obj in document.objects
    }


def write_workbook(document: SchemaDocument, output_path: Path | str) -> None:
    """Write a document as an XLSX workbook."""
    workbook = Workbook()
    default_sheet = workbook.active

    for title, rows in schema_to_worksheets(document).items():
        sheet = workbook.create_sheet(title)
        for row_index, row in enumerate(rows, start=1):
            for column_index, value in enumerate(row, start=1):
                cell = sheet.cell(row=row_index, column=column_index, value=value)
                # Text such as "=now()" must not be stored as a formula.
                if isinstance(value, str) and value.startswith("="):
                    cell.data_type = "s"

    if default_sheet is not None:
        workbook.remove(default_sheet)

    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    workbook.save(output_path)


def read_workbook(path: Path | str) -> dict[str, list[Sequence[Any]]]:
    """Read every worksheet as ``{title: [rows...]}`` (header included)."""
    workbook = load_workbook(Path(path), read_only=True, data_only=True)
    try:
        worksheets: dict[str, list[Sequence[Any]]] = {}
        for sheet in workbook.worksheets:
            worksheets[sheet.title] = [list(row) for row in sheet.iter_rows(values_only=True)]
        return worksheets
    finally:
        workbook.close()

