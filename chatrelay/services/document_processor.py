import io
import zipfile
from pathlib import Path
from typing import List
import logging

import PyPDF2
from PyPDF2.errors import PdfReadError
from docx import Document
from docx.opc.exceptions import PackageNotFoundError

from chatrelay.errors import ClientInputError

logger = logging.getLogger(__name__)


class DocumentProcessor:
    def __init__(self, allowed_types: List[str] = (".pdf", ".docx", ".txt")):
        self.allowed_types = [suffix.lower() for suffix in allowed_types]

    def extract_text(self, content: bytes, filename: str) -> str:
        """Extract plain text from an uploaded PDF, DOCX or TXT file"""
        suffix = Path(filename or "").suffix.lower()
        if suffix not in self.allowed_types:
            raise ClientInputError(
                f"Unsupported document type: {filename}. Allowed types: {', '.join(self.allowed_types)}"
            )

        try:
            if suffix == ".pdf":
                text = self._extract_pdf_text(content)
            elif suffix == ".docx":
                text = self._extract_docx_text(content)
            else:
                text = content.decode("utf-8", errors="replace")
        except (PdfReadError, PackageNotFoundError, zipfile.BadZipFile, ValueError, KeyError, OSError) as e:
            logger.error(f"Error extracting text from {filename}: {str(e)}")
            raise ClientInputError(f"Could not read document {filename}") from e

        text = text.strip()
        if not text:
            raise ClientInputError(f"No text could be extracted from {filename}")
        logger.info(f"Extracted {len(text)} characters from {filename}")
        return text

    def _extract_pdf_text(self, content: bytes) -> str:
        pdf_reader = PyPDF2.PdfReader(io.BytesIO(content))
        text = ""
        for page in pdf_reader.pages:
            text += (page.extract_text() or "") + "\n"
        return text

    def _extract_docx_text(self, content: bytes) -> str:
        doc = Document(io.BytesIO(content))
        text = ""
        for paragraph in doc.paragraphs:
            text += paragraph.text + "\n"
        return text
