"""
Document parsing.

Extracts text from uploaded files (txt, pdf via pypdf, docx via python-docx)
and detects the heading structure:

- markdown headings `#` to `#####`
- numbered headings `1.`, `1.2.` (level = number depth, at most 5)
- ALL CAPS lines of three or more words, shorter than 100 characters
"""

import asyncio
import hashlib
import io
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import pypdf
from docx import Document as DocxDocument

from vaisu.core.logging import get_logger
from vaisu.models.documents import (
    DocumentMetadata,
    DocumentStructure,
    HierarchyNode,
    ParsedDocument,
    Section,
)
from vaisu.utils.language_detector import detect_language

logger = get_logger()

SUPPORTED_FILE_TYPES = ("txt", "pdf", "docx")

_MARKDOWN_HEADING = re.compile(r"^(#{1,5})\s+(.+)$")
_NUMBERED_HEADING = re.compile(r"^(\d+(?:\.\d+)*)\.\s+(.+)$")
_TITLE_MARKER = re.compile(r"^#+\s*")


def get_file_type(filename: str) -> str:
    return filename.rsplit(".", 1)[-1].lower() or "txt"


def detect_heading(line: str) -> Optional[tuple[int, str]]:
    """Return `(level, title)` when the stripped line is a heading."""
    match = _MARKDOWN_HEADING.match(line)
    if match:
        return len(match.group(1)), match.group(2).strip()

    match = _NUMBERED_HEADING.match(line)
    if match:
        return min(len(match.group(1).split(".")), 5), match.group(2).strip()

    if line == line.upper() and len(line.split(" ")) >= 3 and len(line) < 100:
        return 1, line

    return None


def count_words(text: str) -> int:
    return len(text.split())


def generate_document_id(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()[:16]


def extract_title(text: str, filename: str) -> str:
    for line in text.split("\n")[:5]:
        trimmed = line.strip()
        if 10 < len(trimmed) < 100:
            cleaned = _TITLE_MARKER.sub("", trimmed)
            if cleaned:
                return cleaned
    return Path(filename).stem if "." in filename else filename


class DocumentParser:
    """Turns uploaded bytes into a `ParsedDocument`."""

    async def parse_document(self, content: bytes, filename: str) -> ParsedDocument:
        """
        Parse an uploaded file.

        Raises:
            ValueError: unsupported file type or unreadable file
        """
        file_type = get_file_type(filename)
        text = await self.extract_text(content, file_type)
        structure = self.detect_structure(text)

        logger.debug(f"Parsed {filename}: {len(structure.sections)} sections")

        return ParsedDocument(
            id=generate_document_id(text),
            title=extract_title(text, filename),
            content=text,
            metadata=DocumentMetadata(
                word_count=count_words(text),
                upload_date=datetime.now(timezone.utc),
                file_type=file_type,
                language=detect_language(text),
            ),
            structure=structure,
        )

    async def extract_text(self, content: bytes, file_type: str) -> str:
        if file_type == "txt":
            return content.decode("utf-8", errors="replace")
        if file_type == "pdf":
            extractor = self._extract_pdf_text
        elif file_type == "docx":
            extractor = self._extract_docx_text
        else:
            raise ValueError(f"Unsupported file type: {file_type}")

        loop = asyncio.get_event_loop()
        try:
            return await loop.run_in_executor(None, extractor, content)
        except Exception as e:
            logger.error(f"Error extracting {file_type} text: {e}")
            raise ValueError(f"Failed to extract text from {file_type} file") from e

    @staticmethod
    def _extract_pdf_text(content: bytes) -> str:
        reader = pypdf.PdfReader(io.BytesIO(content))
        return "\n".join(page.extract_text() or "" for page in reader.pages)

    @staticmethod
    def _extract_docx_text(content: bytes) -> str:
        document = DocxDocument(io.BytesIO(content))
        return "\n".join(paragraph.text for paragraph in document.paragraphs)

    def detect_structure(self, text: str) -> DocumentStructure:
        sections = self._identify_sections(text)
        return DocumentStructure(sections=sections, hierarchy=self._build_hierarchy(sections))

    def _identify_sections(self, text: str) -> list[Section]:
        sections: list[Section] = []
        current: Optional[Section] = None
        current_content: list[str] = []
        index = 0

        for raw_line in text.split("\n"):
            line = raw_line.strip()
            heading = detect_heading(line)

            if heading:
                if current:
                    current.content = "\n".join(current_content).strip()
                    current.end_index = index
                    sections.append(current)

                level, title = heading
                current = Section(
                    id=f"section-{len(sections)}",
                    level=level,
                    title=title,
                    start_index=index,
                )
                current_content = []
            elif line:
                current_content.append(line)

            index += len(line) + 1

        if current:
            current.content = "\n".join(current_content).strip()
            current.end_index = index
            sections.append(current)

        if not sections:
            sections.append(
                Section(
                    id="section-0",
                    level=1,
                    title="Document",
                    content=text,
                    start_index=0,
                    end_index=len(text),
                )
            )

        return sections

    @staticmethod
    def _build_hierarchy(sections: list[Section]) -> list[HierarchyNode]:
        """Nest sections under the closest preceding section of lower level."""
        roots: list[HierarchyNode] = []
        stack: list[HierarchyNode] = []

        for section in sections:
            node = HierarchyNode(
                id=f"node-{section.id}", section_id=section.id, level=section.level
            )
            while stack and stack[-1].level >= section.level:
                stack.pop()

            if stack:
                stack[-1].children.append(node)
            else:
                roots.append(node)
            stack.append(node)

        return roots


document_parser = DocumentParser()
