"""
Repositories over the key-value store.

Each repository owns one table; module-level instances use the process-wide
store, and every class accepts an explicit store for tests and scripts.
"""

from vaisu.repositories.analysis import AnalysisRepository, analysis_repository
from vaisu.repositories.audit_logs import AuditLogsRepository, audit_logs_repository
from vaisu.repositories.document import DocumentRepository, document_repository
from vaisu.repositories.knowledge_graph import (
    KnowledgeGraphRepository,
    knowledge_graph_repository,
)
from vaisu.repositories.session import SessionRepository, session_repository
from vaisu.repositories.usage_limits import UsageLimitsRepository, usage_limits_repository
from vaisu.repositories.user import UserRepository, user_repository
from vaisu.repositories.visualization import VisualizationRepository
from vaisu.repositories.visualization_service import (
    VISUALIZATION_TYPES,
    VisualizationService,
    visualization_service,
)

__all__ = [
    "AnalysisRepository",
    "analysis_repository",
    "AuditLogsRepository",
    "audit_logs_repository",
    "DocumentRepository",
    "document_repository",
    "KnowledgeGraphRepository",
    "knowledge_graph_repository",
    "SessionRepository",
    "session_repository",
    "UsageLimitsRepository",
    "usage_limits_repository",
    "UserRepository",
    "user_repository",
    "VisualizationRepository",
    "VISUALIZATION_TYPES",
    "VisualizationService",
    "visualization_service",
]
