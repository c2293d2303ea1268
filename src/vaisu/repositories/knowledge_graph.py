"""
Knowledge graph repository.

Nodes and edges of a document share its partition; nodes use the sort key
`NODE#{id}` and edges `EDGE#{id}` so every element has its own record.
"""

from typing import Any, Optional

from vaisu.core.config import settings
from vaisu.core.logging import get_logger
from vaisu.repositories.base import BaseRepository, now_iso
from vaisu.storage.kv_store import KeyValueStore

logger = get_logger()

NODE_PREFIX = "NODE#"
EDGE_PREFIX = "EDGE#"

NODE_FIELDS = ("id", "documentId", "label", "entityType", "confidence", "metadata")
EDGE_FIELDS = (
    "id",
    "documentId",
    "sourceId",
    "targetId",
    "relation",
    "weight",
    "evidence",
    "relationshipType",
)
NODE_UPDATABLE = ("label", "entityType", "confidence", "metadata")
EDGE_UPDATABLE = ("relation", "weight", "evidence", "relationshipType")


def _strip(item: dict[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in item.items() if key not in ("SK", "type")}


class KnowledgeGraphRepository(BaseRepository):
    def __init__(self, store: Optional[KeyValueStore] = None):
        super().__init__(settings.knowledge_graph_table, store)

    async def create_node(self, node: dict[str, Any]) -> None:
        now = now_iso()
        item = {key: node.get(key) for key in NODE_FIELDS}
        item.update(
            {"type": "NODE", "SK": f"{NODE_PREFIX}{node['id']}", "createdAt": now, "updatedAt": now}
        )
        await self.store.put_item(self.table, node["documentId"], item["SK"], item)

    async def create_edge(self, edge: dict[str, Any]) -> None:
        now = now_iso()
        item = {key: edge.get(key) for key in EDGE_FIELDS}
        item.update(
            {"type": "EDGE", "SK": f"{EDGE_PREFIX}{edge['id']}", "createdAt": now, "updatedAt": now}
        )
        await self.store.put_item(self.table, edge["documentId"], item["SK"], item)

    async def find_by_document_id(self, document_id: str) -> dict[str, list[dict[str, Any]]]:
        """All nodes and edges of a document: `{"nodes": [...], "edges": [...]}`."""
        items = await self.store.query(self.table, document_id)
        return {
            "nodes": [_strip(item) for item in items if item.get("type") == "NODE"],
            "edges": [_strip(item) for item in items if item.get("type") == "EDGE"],
        }

    async def update_node(self, document_id: str, node_id: str, updates: dict[str, Any]) -> None:
        values = {key: updates[key] for key in NODE_UPDATABLE if key in updates}
        values["updatedAt"] = now_iso()
        await self.store.update_item(self.table, document_id, f"{NODE_PREFIX}{node_id}", values)

    async def update_edge(self, document_id: str, edge_id: str, updates: dict[str, Any]) -> None:
        values = {key: updates[key] for key in EDGE_UPDATABLE if key in updates}
        values["updatedAt"] = now_iso()
        await self.store.update_item(self.table, document_id, f"{EDGE_PREFIX}{edge_id}", values)

    async def delete_node(self, document_id: str, node_id: str) -> None:
        await self.store.delete_item(self.table, document_id, f"{NODE_PREFIX}{node_id}")

    async def delete_edge(self, document_id: str, edge_id: str) -> None:
        await self.store.delete_item(self.table, document_id, f"{EDGE_PREFIX}{edge_id}")

    async def delete_knowledge_graph(self, document_id: str) -> None:
        graph = await self.find_by_document_id(document_id)
        for node in graph["nodes"]:
            await self.delete_node(document_id, node["id"])
        for edge in graph["edges"]:
            await self.delete_edge(document_id, edge["id"])

    # ==================== Visualization registry adapters ====================

    async def create(self, record: dict[str, Any]) -> None:
        """
        Store a generated knowledge graph visualization as nodes and edges.

        Edges reference nodes through `source`/`target` in the generated data.
        """
        document_id = record["documentId"]
        data = record.get("visualizationData") or {}

        for node in data.get("nodes", []):
            await self.create_node(
                {
                    "id": node["id"],
                    "documentId": document_id,
                    "label": node.get("label", ""),
                    "entityType": node.get("type", "concept"),
                    "confidence": node.get("confidence", node.get("importance", 0.5)),
                    "metadata": {
                        "sources": [quote.get("text", "") for quote in node.get("sourceQuotes", [])],
                        "description": node.get("description"),
                        "category": node.get("category"),
                    },
                }
            )

        for edge in data.get("edges", []):
            await self.create_edge(
                {
                    "id": edge["id"],
                    "documentId": document_id,
                    "sourceId": edge.get("source"),
                    "targetId": edge.get("target"),
                    "relation": edge.get("label") or edge.get("type", ""),
                    "weight": edge.get("strength", 0.5),
                    "evidence": [
                        span.get("text", "") if isinstance(span, dict) else str(span)
                        for span in edge.get("evidence", [])
                    ],
                    "relationshipType": edge.get("type", ""),
                }
            )

        logger.debug(f"Stored knowledge graph of {document_id}")

    async def find_visualization(self, document_id: str) -> Optional[dict[str, Any]]:
        """Stored graph as a visualization record, None when the document has no graph."""
        graph = await self.find_by_document_id(document_id)
        if not graph["nodes"] and not graph["edges"]:
            return None

        nodes = [
            {
                "id": node["id"],
                "label": node.get("label", ""),
                "type": node.get("entityType", "concept"),
                "confidence": node.get("confidence", 0.5),
                "description": (node.get("metadata") or {}).get("description"),
                "category": (node.get("metadata") or {}).get("category"),
            }
            for node in graph["nodes"]
        ]
        edges = [
            {
                "id": edge["id"],
                "source": edge.get("sourceId"),
                "target": edge.get("targetId"),
                "type": edge.get("relationshipType", ""),
                "label": edge.get("relation", ""),
                "strength": edge.get("weight", 0.5),
            }
            for edge in graph["edges"]
        ]
        return {
            "documentId": document_id,
            "visualizationType": "knowledge-graph",
            "visualizationData": {"nodes": nodes, "edges": edges},
            "updatedAt": max(item.get("updatedAt", "") for item in graph["nodes"] + graph["edges"]),
        }

    async def update(self, document_id: str, updates: dict[str, Any]) -> None:
        """Replace the stored graph when `visualizationData` is given."""
        if "visualizationData" not in updates:
            return
        await self.delete_knowledge_graph(document_id)
        await self.create({"documentId": document_id, **updates})

    async def delete(self, document_id: str) -> None:
        await self.delete_knowledge_graph(document_id)


knowledge_graph_repository = KnowledgeGraphRepository()
