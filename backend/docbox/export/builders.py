"""Build the XLSX workbooks and ZIP bundles handed back to the user."""

import io
import json
import logging
import re
import zipfile
from typing import Any

from openpyxl import Workbook
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.utils import get_column_letter

from docbox.boxes.models import Box
from docbox.boxes.storage import StorageBackend
from docbox.export import transformers
from docbox.export.profiles import PROFILE_COLUMNS, ExportFormat

logger = logging.getLogger(__name__)

COLUMN_WIDTH = 15
_INVALID_SHEET_CHARS = re.compile(r"[\[\]\*\?/\\:]")


def _safe_sheet_title(title: str) -> str:
    # Excel limits sheet names to 31 characters and forbids a few symbols
    return _INVALID_SHEET_CHARS.sub("_", title)[:31] or "Export"


def build_workbook(rows: list[dict[str, Any]], headers: list[str], sheet_title: str) -> bytes:
    """Write ``rows`` (header -> value) into a single-sheet workbook."""
    wb = Workbook()
    ws = wb.active
    ws.title = _safe_sheet_title(sheet_title)

    header_font = Font(bold=True, color="FFFFFF")
    header_fill = PatternFill(start_color="3B82F6", end_color="3B82F6", fill_type="solid")

    for col, header in enumerate(headers, 1):
        cell = ws.cell(row=1, column=col, value=header)
        cell.font = header_font
        cell.fill = header_fill
        cell.alignment = Alignment(horizontal="center")
        ws.column_dimensions[get_column_letter(col)].width = COLUMN_WIDTH

    for row_idx, row in enumerate(rows, 2):
        for col, header in enumerate(headers, 1):
            ws.cell(row=row_idx, column=col, value=row.get(header, ""))

    output = io.BytesIO()
    wb.save(output)
    return output.getvalue()


def boxes_to_workbook(
    boxes: list[Box],
    columns: dict[str, str],
    sheet_title: str,
    creators: dict | None = None,
) -> bytes:
    creators = creators or {}
    rows = [
        transformers.transform_box_to_row(box, columns, creators.get(box.created_by)) for box in boxes
    ]
    return build_workbook(rows, list(columns.values()), sheet_title)


async def build_zip_bundle(
    boxes: list[Box],
    storage: StorageBackend,
    creators: dict | None = None,
    include_json: bool = True,
    group_by_month: bool = True,
) -> tuple[bytes, int]:
    """Pack a GENERIC summary workbook and every box's stored files into one archive.

    Returns the archive bytes and the number of files that could not be read.
    Missing files are logged and left out of the archive.
    """
    creators = creators or {}
    skipped = 0
    buffer = io.BytesIO()

    with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as archive:
        archive.writestr(
            "summary.xlsx",
            boxes_to_workbook(boxes, PROFILE_COLUMNS[ExportFormat.GENERIC], "สรุปกล่องเอกสาร", creators),
        )

        for box in boxes:
            folder = transformers.box_folder_name(box, group_by_month)
            creator = creators.get(box.created_by)

            if include_json:
                summary = transformers.box_summary(box, creator)
                archive.writestr(f"{folder}/summary.json", json.dumps(summary, ensure_ascii=False, indent=2))

            index = 1
            for document in box.documents:
                for stored in document.files:
                    name = transformers.numbered_file_name(index, document.doc_type, stored.original_filename)
                    index += 1
                    try:
                        data = await storage.read(stored.storage_path)
                    except (FileNotFoundError, OSError):
                        logger.warning(
                            "Skipping unreadable file %s of box %s in export", stored.id, box.box_number
                        )
                        skipped += 1
                        continue
                    archive.writestr(f"{folder}/{name}", data)

    return buffer.getvalue(), skipped
