"""
Text extraction service for uploaded tenancy agreements.
Supports PDF, DOCX and plain-text files.
"""
import re
import logging
from pathlib import Path
import docx
from pdfminer.high_level import extract_text as pdf_extract_text
from pdfminer.pdfparser import PDFSyntaxError

logger = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS = ('.pdf', '.docx', '.txt')

# Maximum characters to keep; the orchestrator truncates further for Gemini
MAX_TEXT_LENGTH = 2_000_000


def _normalize_whitespace(text: str) -> str:
    """
    Normalize whitespace and remove control characters.

    Args:
        text: Raw extracted text.

    Returns:
        Cleaned text with normalized whitespace.
    """
    # Remove control characters except newline, tab, carriage return
    text = re.sub(r'[\x00-\x08\x0B-\x0C\x0E-\x1F\x7F-\x9F]', '', text)

    text = text.replace('\r\n', '\n').replace('\r', '\n')
    text = re.sub(r'[ \t]+', ' ', text)
    text = re.sub(r'\n{3,}', '\n\n', text)

    lines = [line.strip() for line in text.split('\n')]
    return '\n'.join(lines).strip()


def _extract_pdf_text(path: Path) -> str:
    """
    Extract text from a PDF file.

    Raises:
        RuntimeError: On extraction failure.
    """
    try:
        text = pdf_extract_text(str(path))
    except PDFSyntaxError:
        logger.error("PDF file has syntax errors")
        raise RuntimeError("Failed to extract text from PDF. The file may be corrupted.")
    except Exception as e:
        logger.error(f"Failed to extract text from PDF: {type(e).__name__}")
        raise RuntimeError("Failed to extract text from PDF. The file may be encrypted, corrupted, or in an unsupported format.")

    if not text or not text.strip():
        raise RuntimeError("PDF appears to be empty or contains only images")

    logger.info(f"Extracted {len(text)} characters from PDF file")
    return text


def _extract_docx_text(path: Path) -> str:
    """
    Extract paragraph and table text from a DOCX file.

    Raises:
        RuntimeError: On extraction failure.
    """
    try:
        document = docx.Document(str(path))
    except Exception as e:
        logger.error(f"Failed to open DOCX file: {type(e).__name__}")
        raise RuntimeError("Failed to extract text from DOCX. The file may be corrupted.")

    parts = [para.text for para in document.paragraphs]

    # Lease forms often put rent and deposit amounts in tables
    for table in document.tables:
        for row in table.rows:
            cells = [cell.text.strip() for cell in row.cells if cell.text.strip()]
            if cells:
                parts.append(' | '.join(cells))

    text = '\n'.join(parts)
    if not text.strip():
        raise RuntimeError("DOCX document appears to be empty")

    logger.info(f"Extracted {len(text)} characters from DOCX file")
    return text


def _extract_plain_text(path: Path) -> str:
    text = path.read_text(encoding='utf-8', errors='replace')
    if not text.strip():
        raise RuntimeError("Text file is empty")
    logger.info(f"Read {len(text)} characters from text file")
    return text


def extract_text(path: Path) -> str:
    """
    Extract text from a tenancy agreement (PDF, DOCX or TXT).

    Args:
        path: Path to the document file.

    Returns:
        Normalized text content with whitespace cleaned and control characters removed.

    Raises:
        RuntimeError: If extraction fails or file format is unsupported.
    """
    path = Path(path)
    if not path.exists():
        raise RuntimeError("Contract file not found")

    suffix = path.suffix.lower()

    try:
        if suffix == '.pdf':
            raw_text = _extract_pdf_text(path)
        elif suffix == '.docx':
            raw_text = _extract_docx_text(path)
        elif suffix == '.txt':
            raw_text = _extract_plain_text(path)
        else:
            logger.error(f"Unsupported file format: {suffix}")
            raise RuntimeError(f"Unsupported file format: {suffix}. Only PDF, DOCX and TXT files are supported.")

        normalized_text = _normalize_whitespace(raw_text)

        if len(normalized_text) > MAX_TEXT_LENGTH:
            logger.warning(f"Text length {len(normalized_text)} exceeds maximum {MAX_TEXT_LENGTH}, truncating")
            normalized_text = normalized_text[:MAX_TEXT_LENGTH]

        logger.info(f"Text extraction complete: {len(normalized_text)} characters after normalization")
        return normalized_text

    except RuntimeError:
        raise
    except Exception as e:
        logger.error(f"Unexpected error during text extraction: {type(e).__name__}")
        raise RuntimeError("An unexpected error occurred while extracting text from the document")
