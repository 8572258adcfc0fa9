"""Raw-text extraction for uploaded RFP files.

Dispatches on the file extension:

    .pdf   -- PyMuPDF (fitz), page text joined by newlines
    .docx  -- python-docx, paragraph text joined by newlines
    .xlsx  -- openpyxl, one ``# <sheet>`` block of CSV rows per worksheet,
              blocks separated by a blank line

All three libraries are synchronous, so each extraction runs in a worker
thread via :func:`asyncio.to_thread`.  The output is raw text; the text
normalizer cleans it before chunking.
"""

from __future__ import annotations

import asyncio
import csv
import io
import os
from pathlib import Path

import docx
import fitz  # PyMuPDF -- the "fitz" import name is a PyMuPDF convention
import openpyxl
import structlog

from rfpsearch.interfaces.text_extractor import ITextExtractor
from rfpsearch.utils.errors import ExtractionError, UnsupportedFileTypeError

logger = structlog.get_logger(logger_name=__name__)

_SUPPORTED = frozenset({".pdf", ".docx", ".xlsx"})


def extract_pdf(file_path: str) -> str:
    doc = fitz.open(file_path)
    try:
        return "\n".join(page.get_text("text") for page in doc)
    finally:
        doc.close()


def extract_docx(file_path: str) -> str:
    document = docx.Document(file_path)
    return "\n".join(paragraph.text for paragraph in document.paragraphs)


def extract_xlsx(file_path: str) -> str:
    """Render each worksheet as a ``# <name>`` header followed by CSV rows."""
    workbook = openpyxl.load_workbook(file_path, read_only=True, data_only=True)
    try:
        sheets: list[str] = []
        for sheet in workbook.worksheets:
            buffer = io.StringIO()
            writer = csv.writer(buffer, lineterminator="\n")
            for row in sheet.iter_rows(values_only=True):
                writer.writerow(["" if cell is None else cell for cell in row])
            sheets.append(f"# {sheet.title}\n{buffer.getvalue()}")
        return "\n\n".join(sheets)
    finally:
        workbook.close()


_EXTRACTORS = {
    ".pdf": extract_pdf,
    ".docx": extract_docx,
    ".xlsx": extract_xlsx,
}


class FileTextExtractor(ITextExtractor):
    """Extracts raw text from PDF, DOCX and XLSX files on local disk."""

    def supported_extensions(self) -> frozenset[str]:
        return _SUPPORTED

    async def extract_text(self, file_path: str) -> str:
        path = Path(file_path)
        if not path.is_file() or not os.access(path, os.R_OK):
            raise ExtractionError(message=f"File not readable: {file_path}")

        extension = path.suffix.lower()
        extractor = _EXTRACTORS.get(extension)
        if extractor is None:
            raise UnsupportedFileTypeError(message=f"Unsupported file type: {extension or path.name}")

        try:
            text = await asyncio.to_thread(extractor, str(path))
        except Exception as exc:
            logger.error(
                "text_extraction_failed",
                file_path=file_path,
                extension=extension,
                error=str(exc),
            )
            raise ExtractionError(
                message=f"Could not extract text from {path.name}: {exc}",
                provider_name=extension.lstrip("."),
            ) from exc

        logger.info(
            "text_extracted",
            file_path=file_path,
            extension=extension,
            characters=len(text),
        )
        return text
