"""Abstract base class for document text extraction."""

from __future__ import annotations

from abc import ABC, abstractmethod


# Concrete implementation: FileTextExtractor (rfpsearch/providers/parser/)
class ITextExtractor(ABC):
    """Contract for turning a stored file into raw text."""

    @abstractmethod
    async def extract_text(self, file_path: str) -> str:
        """Return the raw text of the file at *file_path*.

        Raises
        ------
        rfpsearch.utils.errors.ExtractionError
            If the file is missing, unreadable or corrupt.
        rfpsearch.utils.errors.UnsupportedFileTypeError
            If the extension is not one the extractor handles.
        """

    @abstractmethod
    def supported_extensions(self) -> frozenset[str]:
        """Return the lower-case extensions (with dot) this extractor accepts."""
