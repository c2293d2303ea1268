"""
Visualization registry.

Routes each visualization type to the repository that stores it. Types
without a table of their own (structured-view and the matrix/gantt views)
are stored in the analyses table under `VISUALIZATION#{TYPE}`.
"""

from typing import Any, Optional, Union

from vaisu.core.config import settings
from vaisu.core.exceptions import UnknownVisualizationTypeError
from vaisu.core.logging import get_logger
from vaisu.repositories.knowledge_graph import (
    KnowledgeGraphRepository,
    knowledge_graph_repository,
)
from vaisu.repositories.visualization import (
    VisualizationRepository,
    argument_map_repository,
    depth_graph_repository,
    entity_graph_repository,
    executive_dashboard_repository,
    flowchart_repository,
    mind_map_repository,
    terms_definitions_repository,
    timeline_repository,
    uml_class_repository,
)
from vaisu.storage.kv_store import KeyValueStore

logger = get_logger()

VISUALIZATION_TYPES = (
    "structured-view",
    "argument-map",
    "depth-graph",
    "uml-class",
    "uml-class-diagram",
    "uml-sequence",
    "uml-activity",
    "mind-map",
    "flowchart",
    "knowledge-graph",
    "executive-dashboard",
    "timeline",
    "terms-definitions",
    "gantt",
    "comparison-matrix",
    "priority-matrix",
    "raci-matrix",
)

ANALYSIS_BACKED_TYPES = (
    "structured-view",
    "gantt",
    "comparison-matrix",
    "priority-matrix",
    "raci-matrix",
)

UML_TYPES = ("uml-class", "uml-class-diagram", "uml-sequence", "uml-activity")

Repository = Union[VisualizationRepository, KnowledgeGraphRepository]


def analysis_sort_key(visualization_type: str) -> str:
    return f"VISUALIZATION#{visualization_type.upper().replace('-', '_')}"


class VisualizationService:
    """Create, find, update and delete visualizations by type."""

    def __init__(self, store: Optional[KeyValueStore] = None):
        own = [
            argument_map_repository,
            depth_graph_repository,
            mind_map_repository,
            flowchart_repository,
            executive_dashboard_repository,
            timeline_repository,
            terms_definitions_repository,
            entity_graph_repository,
        ]
        uml = uml_class_repository
        self.knowledge_graph = knowledge_graph_repository
        if store is not None:
            own = [repository.with_store(store) for repository in own]
            uml = uml.with_store(store)
            self.knowledge_graph = KnowledgeGraphRepository(store)

        self._repositories: dict[str, Repository] = {
            repository.visualization_type: repository for repository in own
        }
        for visualization_type in UML_TYPES:
            self._repositories[visualization_type] = uml
        for visualization_type in ANALYSIS_BACKED_TYPES:
            self._repositories[visualization_type] = VisualizationRepository(
                settings.analyses_table,
                analysis_sort_key(visualization_type),
                visualization_type,
                store,
            )
        self._repositories["knowledge-graph"] = self.knowledge_graph

    def get_repository_for_type(self, visualization_type: str) -> Repository:
        """
        Raises:
            UnknownVisualizationTypeError: no repository stores this type
        """
        try:
            return self._repositories[visualization_type]
        except KeyError:
            raise UnknownVisualizationTypeError(visualization_type) from None

    async def create(self, visualization: dict[str, Any]) -> None:
        repository = self.get_repository_for_type(visualization["visualizationType"])
        await repository.create(visualization)

    async def find_by_document_id_and_type(
        self, document_id: str, visualization_type: str
    ) -> Optional[dict[str, Any]]:
        repository = self.get_repository_for_type(visualization_type)
        if isinstance(repository, KnowledgeGraphRepository):
            return await repository.find_visualization(document_id)
        return await repository.find_by_document_id(document_id)

    async def find_by_document_id(self, document_id: str) -> list[dict[str, Any]]:
        """
        Collect the visualizations of a document across all tables.

        Types sharing a table are read once. A failing table is logged and
        skipped.
        """
        results = []
        seen: set[int] = set()
        for visualization_type in VISUALIZATION_TYPES:
            repository_id = id(self.get_repository_for_type(visualization_type))
            if repository_id in seen:
                continue
            seen.add(repository_id)
            try:
                visualization = await self.find_by_document_id_and_type(
                    document_id, visualization_type
                )
            except Exception as e:
                logger.warning(f"Failed to fetch {visualization_type} visualization: {e}")
                continue
            if visualization:
                results.append(visualization)
        return results

    async def update(
        self, document_id: str, visualization_type: str, updates: dict[str, Any]
    ) -> None:
        repository = self.get_repository_for_type(visualization_type)
        await repository.update(document_id, updates)

    async def delete_visualization(self, document_id: str, visualization_type: str) -> None:
        repository = self.get_repository_for_type(visualization_type)
        await repository.delete(document_id)

    async def delete_all(self, document_id: str) -> None:
        """Delete every stored visualization of a document."""
        for visualization_type in VISUALIZATION_TYPES:
            await self.delete_visualization(document_id, visualization_type)


visualization_service = VisualizationService()
