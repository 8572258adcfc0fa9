"""Upload persistence: validate files, store them on disk, queue ingestion.

Every file of a request is validated before anything is written.  If
writing a file or inserting its row then fails, the files and rows already
stored for that request are removed again, so a request stores all of its
files or none.  Ingest jobs are queued only once every file is stored; each
document gets status ``uploaded`` and one :class:`IngestJob`, and the HTTP
response does not wait for ingestion.
"""

from __future__ import annotations

import asyncio
import re
import time
import uuid
from pathlib import Path

import structlog

from rfpsearch.interfaces.document_store import IDocumentStore
from rfpsearch.interfaces.job_queue import IJobQueue
from rfpsearch.models.document import Document, NewDocument, UploadedFile
from rfpsearch.models.job import IngestJob, JobOptions
from rfpsearch.utils.errors import (
    DuplicateDocumentError,
    RFPSearchError,
    StorageError,
    UnsupportedFileTypeError,
    ValidationError,
)

logger = structlog.get_logger(logger_name=__name__)

PDF_MIME = "application/pdf"
DOCX_MIME = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
XLSX_MIME = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

_EXTENSION_MIME = {".pdf": PDF_MIME, ".docx": DOCX_MIME, ".xlsx": XLSX_MIME}

# Browsers and curl send these when they can't tell; the extension decides then.
_GENERIC_MIME = frozenset({"", "application/octet-stream", "binary/octet-stream"})

_UNSAFE_PATH_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def safe_path_component(name: str) -> str:
    """Reduce *name* to characters safe for a single path component."""
    cleaned = _UNSAFE_PATH_CHARS.sub("_", Path(name).name).strip("._")
    return cleaned or "file"


def _stored_name(filename: str) -> str:
    # distinct even for same-name uploads within one millisecond
    return f"{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}-{safe_path_component(filename)}"


class DocumentService:
    """Accepts uploaded RFP files for a client."""

    def __init__(
        self,
        store: IDocumentStore,
        queue: IJobQueue,
        upload_dir: str | Path = "uploads",
        max_files: int = 5,
        max_file_size_bytes: int = 10 * 1024 * 1024,
        allowed_mime_types: frozenset[str] | None = None,
        ingest_job_options: JobOptions | None = None,
    ) -> None:
        self._store = store
        self._queue = queue
        self._upload_dir = Path(upload_dir)
        self._max_files = max_files
        self._max_file_size = max_file_size_bytes
        self._allowed_mime = allowed_mime_types or frozenset(_EXTENSION_MIME.values())
        self._ingest_job_options = ingest_job_options

    @property
    def max_file_size_bytes(self) -> int:
        return self._max_file_size

    async def save_documents(
        self,
        client_name: str | None,
        files: list[UploadedFile],
        uploader_id: str | None = None,
    ) -> list[Document]:
        """Validate, store and queue a batch of uploaded files.

        Raises
        ------
        ValidationError
            Missing client name, wrong file count, oversize or unsupported file.
        DuplicateDocumentError
            A file with the same name already exists for this client.
        """
        client = (client_name or "").strip()
        if not client:
            raise ValidationError(message="clientName is required")
        if not files:
            raise ValidationError(message="No files uploaded")
        if len(files) > self._max_files:
            raise ValidationError(message=f"At most {self._max_files} files can be uploaded at once")

        seen: set[str] = set()
        mime_types: list[str] = []
        for upload in files:
            mime_types.append(self._check_file(upload))
            if upload.filename in seen or await self._store.document_exists(upload.filename, client):
                raise DuplicateDocumentError(
                    message=f"Document '{upload.filename}' already exists for client '{client}'"
                )
            seen.add(upload.filename)

        client_dir = self._upload_dir / safe_path_component(client)
        await asyncio.to_thread(client_dir.mkdir, parents=True, exist_ok=True)

        documents: list[Document] = []
        written: list[Path] = []
        try:
            for upload, mime_type in zip(files, mime_types):
                path = client_dir / _stored_name(upload.filename)
                try:
                    await asyncio.to_thread(path.write_bytes, upload.data)
                except OSError as exc:
                    raise StorageError(
                        message=f"Could not store '{upload.filename}': {exc}",
                        provider_name="filesystem",
                    ) from exc
                written.append(path)

                documents.append(
                    await self._store.insert_document(
                        NewDocument(
                            filename=upload.filename,
                            path=str(path),
                            uploader_id=uploader_id,
                            client_name=client,
                            file_size=upload.size,
                            mime_type=mime_type,
                        )
                    )
                )
        except RFPSearchError as exc:
            await self._discard(documents, written)
            logger.warning(
                "upload_rolled_back",
                client_name=client,
                discarded=len(written),
                error=str(exc),
            )
            raise

        for document in documents:
            try:
                await self._queue.enqueue(
                    IngestJob(document_id=document.id, file_path=document.path),
                    self._ingest_job_options,
                )
            except RFPSearchError as exc:
                logger.warning("ingest_enqueue_failed", document_id=document.id, error=str(exc))

        logger.info(
            "documents_uploaded",
            client_name=client,
            count=len(documents),
            uploader_id=uploader_id,
        )
        return documents

    async def _discard(self, documents: list[Document], written: list[Path]) -> None:
        """Remove the rows and files a failed upload already stored."""
        for document in documents:
            await self._store.delete_document(document.id)
        for path in written:
            await asyncio.to_thread(path.unlink, missing_ok=True)

    def _check_file(self, upload: UploadedFile) -> str:
        """Return the effective MIME type of *upload* or raise."""
        extension = Path(upload.filename).suffix.lower()
        expected = _EXTENSION_MIME.get(extension)
        if expected is None:
            raise UnsupportedFileTypeError(
                message=f"Invalid file type for '{upload.filename}'. Only PDF, DOCX, and XLSX are allowed."
            )

        content_type = (upload.content_type or "").split(";", 1)[0].strip().lower()
        if content_type in _GENERIC_MIME:
            content_type = expected
        if content_type not in self._allowed_mime:
            raise UnsupportedFileTypeError(
                message=f"Invalid file type for '{upload.filename}': {content_type}"
            )

        if upload.size > self._max_file_size:
            raise ValidationError(
                message=f"File '{upload.filename}' exceeds the {self._max_file_size // (1024 * 1024)} MB limit"
            )
        return content_type
