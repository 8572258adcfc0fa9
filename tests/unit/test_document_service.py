"""Unit tests for DocumentService upload validation and persistence."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from rfpsearch.models.document import Document, UploadedFile
from rfpsearch.models.job import IngestJob
from rfpsearch.services.document_service import (
    DOCX_MIME,
    PDF_MIME,
    XLSX_MIME,
    DocumentService,
    safe_path_component,
)
from rfpsearch.utils.errors import (
    DuplicateDocumentError,
    QueueError,
    StorageError,
    UnsupportedFileTypeError,
    ValidationError,
)


def _file(name: str = "rfp.pdf", content_type: str = PDF_MIME, size: int = 16) -> UploadedFile:
    return UploadedFile(filename=name, content_type=content_type, data=b"x" * size)


def _make_service(tmp_path: Path, existing: set[str] | None = None, **kwargs):
    existing = existing or set()
    store = AsyncMock()
    store.document_exists.side_effect = lambda filename, client: filename in existing

    counter = {"n": 0}

    async def insert(new_doc):
        counter["n"] += 1
        return Document(
            id=f"doc-{counter['n']}",
            uploaded_at=datetime.now(timezone.utc),
            **new_doc.model_dump(),
        )

    store.insert_document.side_effect = insert
    queue = AsyncMock()
    service = DocumentService(store=store, queue=queue, upload_dir=tmp_path / "uploads", **kwargs)
    return service, store, queue


class TestSaveDocuments:
    async def test_stores_files_and_enqueues_ingestion(self, tmp_path: Path) -> None:
        service, store, queue = _make_service(tmp_path)

        documents = await service.save_documents(
            "Acme Corp",
            [_file("rfp.pdf"), _file("answers.xlsx", XLSX_MIME)],
            uploader_id="u-7",
        )

        assert [d.filename for d in documents] == ["rfp.pdf", "answers.xlsx"]
        assert documents[0].client_name == "Acme Corp"
        assert documents[0].uploader_id == "u-7"
        assert documents[1].mime_type == XLSX_MIME
        for document in documents:
            path = Path(document.path)
            assert path.read_bytes() == b"x" * 16
            assert path.parent == tmp_path / "uploads" / "Acme_Corp"
            assert path.name.endswith(document.filename)

        jobs = [c.args[0] for c in queue.enqueue.await_args_list]
        assert all(isinstance(j, IngestJob) for j in jobs)
        assert [j.document_id for j in jobs] == ["doc-1", "doc-2"]
        assert jobs[0].file_path == documents[0].path

    async def test_client_name_is_trimmed(self, tmp_path: Path) -> None:
        service, _, _ = _make_service(tmp_path)
        documents = await service.save_documents("  Acme  ", [_file()])
        assert documents[0].client_name == "Acme"

    @pytest.mark.parametrize("client", [None, "", "   "])
    async def test_client_name_required(self, tmp_path: Path, client) -> None:
        service, _, _ = _make_service(tmp_path)
        with pytest.raises(ValidationError, match="clientName is required"):
            await service.save_documents(client, [_file()])

    async def test_no_files(self, tmp_path: Path) -> None:
        service, _, _ = _make_service(tmp_path)
        with pytest.raises(ValidationError, match="No files uploaded"):
            await service.save_documents("Acme", [])

    async def test_too_many_files(self, tmp_path: Path) -> None:
        service, _, _ = _make_service(tmp_path)
        files = [_file(f"rfp-{i}.pdf") for i in range(6)]
        with pytest.raises(ValidationError):
            await service.save_documents("Acme", files)

    async def test_wrong_extension(self, tmp_path: Path) -> None:
        service, _, _ = _make_service(tmp_path)
        with pytest.raises(UnsupportedFileTypeError):
            await service.save_documents("Acme", [_file("notes.txt", "text/plain")])

    async def test_mime_mismatch(self, tmp_path: Path) -> None:
        service, _, _ = _make_service(tmp_path)
        with pytest.raises(UnsupportedFileTypeError):
            await service.save_documents("Acme", [_file("rfp.pdf", "image/png")])

    async def test_generic_mime_falls_back_to_extension(self, tmp_path: Path) -> None:
        service, _, _ = _make_service(tmp_path)
        documents = await service.save_documents(
            "Acme", [_file("scope.docx", "application/octet-stream")]
        )
        assert documents[0].mime_type == DOCX_MIME

    async def test_oversize_file(self, tmp_path: Path) -> None:
        service, _, _ = _make_service(tmp_path, max_file_size_bytes=10)
        with pytest.raises(ValidationError, match="exceeds"):
            await service.save_documents("Acme", [_file(size=11)])

    async def test_invalid_batch_writes_nothing(self, tmp_path: Path) -> None:
        service, store, queue = _make_service(tmp_path)
        with pytest.raises(UnsupportedFileTypeError):
            await service.save_documents("Acme", [_file("ok.pdf"), _file("bad.exe", "")])

        store.insert_document.assert_not_awaited()
        queue.enqueue.assert_not_awaited()
        assert not (tmp_path / "uploads").exists()

    async def test_duplicate_in_database(self, tmp_path: Path) -> None:
        service, store, _ = _make_service(tmp_path, existing={"rfp.pdf"})
        with pytest.raises(DuplicateDocumentError):
            await service.save_documents("Acme", [_file("rfp.pdf")])
        store.insert_document.assert_not_awaited()

    async def test_duplicate_within_request(self, tmp_path: Path) -> None:
        service, _, _ = _make_service(tmp_path)
        with pytest.raises(DuplicateDocumentError):
            await service.save_documents("Acme", [_file("rfp.pdf"), _file("rfp.pdf")])

    async def test_enqueue_failure_keeps_document(self, tmp_path: Path) -> None:
        service, _, queue = _make_service(tmp_path)
        queue.enqueue.side_effect = QueueError(message="queue is stopped")

        documents = await service.save_documents("Acme", [_file()])

        assert len(documents) == 1
        assert Path(documents[0].path).exists()

    async def test_failed_insert_discards_earlier_files(self, tmp_path: Path) -> None:
        service, store, queue = _make_service(tmp_path)
        insert = store.insert_document.side_effect

        async def insert_then_conflict(new_doc):
            if new_doc.filename == "answers.xlsx":
                raise DuplicateDocumentError(message="Document 'answers.xlsx' already exists")
            return await insert(new_doc)

        store.insert_document.side_effect = insert_then_conflict

        with pytest.raises(DuplicateDocumentError):
            await service.save_documents("Acme", [_file("rfp.pdf"), _file("answers.xlsx", XLSX_MIME)])

        store.delete_document.assert_awaited_once_with("doc-1")
        queue.enqueue.assert_not_awaited()
        assert list((tmp_path / "uploads" / "Acme").iterdir()) == []

    async def test_write_failure_is_storage_error(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        service, store, queue = _make_service(tmp_path)

        def _disk_full(self, data):
            raise OSError(28, "No space left on device")

        monkeypatch.setattr(Path, "write_bytes", _disk_full)

        with pytest.raises(StorageError, match="No space left") as info:
            await service.save_documents("Acme", [_file()])

        assert info.value.provider_name == "filesystem"
        store.insert_document.assert_not_awaited()
        queue.enqueue.assert_not_awaited()


class TestSafePathComponent:
    @pytest.mark.parametrize(
        ("name", "expected"),
        [
            ("Acme Corp", "Acme_Corp"),
            ("../../etc/passwd", "passwd"),
            ("rfp v2 (final).pdf", "rfp_v2_final_.pdf"),
            ("...", "file"),
        ],
    )
    def test_sanitizes(self, name: str, expected: str) -> None:
        assert safe_path_component(name) == expected
