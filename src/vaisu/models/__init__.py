"""
Data models.

- records: persisted records (documents, analyses, visualizations, users, ...)
- documents: parsed document structure
- requests: API request bodies
"""

from vaisu.models.documents import (
    DocumentMetadata,
    DocumentStructure,
    HierarchyNode,
    ParsedDocument,
    Section,
)
from vaisu.models.records import (
    AnalysisRecord,
    AuditLog,
    CamelModel,
    DocumentRecord,
    KnowledgeGraphEdge,
    KnowledgeGraphNode,
    LLMMetadata,
    Session,
    UsageLimitConfig,
    UsageLimits,
    User,
    VisualizationRecord,
)

__all__ = [
    "DocumentMetadata",
    "DocumentStructure",
    "HierarchyNode",
    "ParsedDocument",
    "Section",
    "AnalysisRecord",
    "AuditLog",
    "CamelModel",
    "DocumentRecord",
    "KnowledgeGraphEdge",
    "KnowledgeGraphNode",
    "LLMMetadata",
    "Session",
    "UsageLimitConfig",
    "UsageLimits",
    "User",
    "VisualizationRecord",
]
