"""
Text extraction from stored study materials.
"""

import io
from pathlib import PurePosixPath
from typing import Any

from pypdf import PdfReader

_TEXT_SUFFIXES = {".txt", ".md", ".markdown", ".csv", ".json", ".html", ".htm"}


class PDFProcessor:
    """Extracts text from PDF files."""

    def extract_pages_from_bytes(self, data: bytes) -> list[dict[str, Any]]:
        """
        Extract per-page text from PDF bytes.

        Returns:
            List of {"page": int, "text": str}.
        """
        if not data:
            raise ValueError("File is empty and cannot be processed.")

        try:
            reader = PdfReader(io.BytesIO(data))
        except Exception as e:
            raise ValueError(f"Unable to parse PDF (possibly corrupted): {e!s}") from e

        pages: list[dict[str, Any]] = []
        try:
            for idx, page in enumerate(reader.pages):
                text = (page.extract_text() or "").strip()
                if text:
                    pages.append({"page": idx + 1, "text": text})
        except Exception as e:
            raise ValueError(f"Error extracting page text: {e!s}") from e

        return pages

    def extract_text_from_bytes(self, data: bytes) -> str:
        return "\n".join(p["text"] for p in self.extract_pages_from_bytes(data))


def is_pdf(file_path: str, data: bytes) -> bool:
    return PurePosixPath(file_path).suffix.lower() == ".pdf" or data[:5] == b"%PDF-"


def is_text(file_path: str) -> bool:
    return PurePosixPath(file_path).suffix.lower() in _TEXT_SUFFIXES


def extract_material_text(file_path: str, data: bytes) -> str:
    """
    Extract text from a stored material by its path suffix.

    Raises:
        ValueError: empty file, unreadable PDF, or unsupported type.
    """
    if not data:
        raise ValueError(f"File is empty and cannot be processed: {file_path}")
    if is_pdf(file_path, data):
        return PDFProcessor().extract_text_from_bytes(data)
    if is_text(file_path):
        return data.decode("utf-8", errors="replace")
    raise ValueError(f"Unsupported file type for text extraction: {file_path}")
