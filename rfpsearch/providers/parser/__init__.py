"""Text extraction providers."""

from rfpsearch.providers.parser.file_text_extractor import FileTextExtractor

__all__ = ["FileTextExtractor"]
