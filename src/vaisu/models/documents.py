"""
Parsed document models.

A `ParsedDocument` is what the parser produces from an uploaded file: the
extracted text plus detected sections and their heading hierarchy. The
analysis attached to it stays a plain dict, since its shape follows the LLM
prompts.
"""

from datetime import datetime
from typing import Any, Optional

from pydantic import Field

from vaisu.models.records import CamelModel


class Section(CamelModel):
    id: str
    level: int
    title: str
    content: str = ""
    start_index: int = 0
    end_index: int = 0
    summary: str = ""
    keywords: list[str] = Field(default_factory=list)
    children: list["Section"] = Field(default_factory=list)


class HierarchyNode(CamelModel):
    id: str
    section_id: str
    level: int
    children: list["HierarchyNode"] = Field(default_factory=list)


class DocumentStructure(CamelModel):
    sections: list[Section] = Field(default_factory=list)
    hierarchy: list[HierarchyNode] = Field(default_factory=list)


class DocumentMetadata(CamelModel):
    word_count: int
    upload_date: datetime
    file_type: str
    language: str = "en"


class ParsedDocument(CamelModel):
    """Document text, metadata, structure and (once analyzed) analysis."""

    id: str
    title: str
    content: str
    metadata: DocumentMetadata
    structure: DocumentStructure
    analysis: Optional[dict[str, Any]] = None

    def to_response(self) -> dict[str, Any]:
        """JSON-compatible camelCase representation used in API responses."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
