"""
Per-type visualization repositories.

Every visualization type lives in its own table with a fixed sort key
(`MIND_MAP`, `TIMELINE`, ...) and one record per document.
"""

from typing import Any, Optional

from vaisu.core.config import settings
from vaisu.repositories.base import BaseRepository, filter_updates, now_iso
from vaisu.storage.kv_store import KeyValueStore

PROTECTED_FIELDS = ("documentId", "SK", "visualizationType")


class VisualizationRepository(BaseRepository):
    """
    CRUD over one visualization table.

    Args:
        table: table name
        sort_key: fixed sort key of the records
        visualization_type: type tag written on created records
    """

    def __init__(
        self,
        table: str,
        sort_key: str,
        visualization_type: str,
        store: Optional[KeyValueStore] = None,
    ):
        super().__init__(table, store)
        self.sort_key = sort_key
        self.visualization_type = visualization_type

    def __repr__(self) -> str:
        return f"<VisualizationRepository {self.table}:{self.sort_key}>"

    def with_store(self, store: Optional[KeyValueStore]) -> "VisualizationRepository":
        """Same table and sort key on another store."""
        return VisualizationRepository(self.table, self.sort_key, self.visualization_type, store)

    async def create(self, record: dict[str, Any]) -> None:
        now = now_iso()
        item = {
            "visualizationType": self.visualization_type,
            **record,
            "SK": self.sort_key,
            "createdAt": record.get("createdAt") or now,
            "updatedAt": now,
        }
        await self.store.put_item(self.table, record["documentId"], self.sort_key, item)

    async def find_by_document_id(self, document_id: str) -> Optional[dict[str, Any]]:
        return await self.store.get_item(self.table, document_id, self.sort_key)

    async def update(self, document_id: str, updates: dict[str, Any]) -> None:
        """
        Partial update used when a visualization is regenerated.

        Protected keys are ignored; an update with nothing left to set is a
        no-op. A missing record is created from the update.
        """
        values = filter_updates(updates, PROTECTED_FIELDS)
        if not values:
            return

        values["updatedAt"] = now_iso()
        updated = await self.store.update_item(self.table, document_id, self.sort_key, values)
        if updated is None:
            await self.store.put_item(
                self.table,
                document_id,
                self.sort_key,
                {
                    "documentId": document_id,
                    "SK": self.sort_key,
                    "visualizationType": self.visualization_type,
                    "createdAt": values["updatedAt"],
                    **values,
                },
            )

    async def delete(self, document_id: str) -> None:
        await self.store.delete_item(self.table, document_id, self.sort_key)


mind_map_repository = VisualizationRepository(
    settings.mind_map_table, "MIND_MAP", "mind-map"
)
timeline_repository = VisualizationRepository(
    settings.timeline_table, "TIMELINE", "timeline"
)
terms_definitions_repository = VisualizationRepository(
    settings.terms_definitions_table, "TERMS_DEFINITIONS", "terms-definitions"
)
argument_map_repository = VisualizationRepository(
    settings.argument_map_table, "ARGUMENT_MAP", "argument-map"
)
depth_graph_repository = VisualizationRepository(
    settings.depth_graph_table, "DEPTH_GRAPH", "depth-graph"
)
uml_class_repository = VisualizationRepository(
    settings.uml_class_table, "UML_CLASS", "uml-class"
)
flowchart_repository = VisualizationRepository(
    settings.flowchart_table, "FLOWCHART", "flowchart"
)
executive_dashboard_repository = VisualizationRepository(
    settings.executive_dashboard_table, "EXECUTIVE_DASHBOARD", "executive-dashboard"
)
entity_graph_repository = VisualizationRepository(
    settings.entity_graph_table, "ENTITY_GRAPH", "entity-graph"
)
