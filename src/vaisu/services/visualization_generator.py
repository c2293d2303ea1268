"""
Visualization generation.

Builds the JSON payload for each visualization type from a parsed document
and its analysis. Structure-driven views (structured-view, flowchart,
dashboard, timeline) are computed locally; mind-map, terms-definitions,
argument-map and uml-class ask the LLM, the first two with a local fallback.
"""

import uuid
from collections import deque
from typing import Any, Optional

from vaisu.core.exceptions import InvalidJSONResponseError, LLMError, UnknownVisualizationTypeError
from vaisu.core.logging import get_logger
from vaisu.models.documents import ParsedDocument, Section
from vaisu.services.llm.openrouter_client import (
    PARSE_ERRORS,
    OpenRouterClient,
    dict_items,
    get_openrouter_client,
)
from vaisu.utils.date_parser import parse_date

logger = get_logger()

LEVEL_COLORS = ["#4F46E5", "#7C3AED", "#10B981", "#F59E0B", "#EF4444", "#EC4899", "#06B6D4"]
NODE_EMOJIS = ["📄", "📊", "🔧", "💡", "🌐", "📈", "⚙️"]
SECTION_EMOJIS = ["📊", "🔧", "💡", "🌐", "📈", "⚙️", "🏗️"]

MIND_MAP_THEME = {
    "primary": "#4F46E5",
    "secondary": "#7C3AED",
    "accent": "#10B981",
    "background": "#FFFFFF",
    "text": "#1F2937",
}

ENTITY_COLORS = {
    "person": "#3B82F6",
    "organization": "#8B5CF6",
    "location": "#10B981",
    "concept": "#F59E0B",
    "product": "#EF4444",
    "metric": "#06B6D4",
    "date": "#EC4899",
    "technical": "#6366F1",
}
DEFAULT_ENTITY_COLOR = "#6B7280"

HIERARCHICAL_EDGE_TYPES = ("part-of", "contains", "implements")
SOURCE_QUOTE_CONTEXT = 50
MAX_FALLBACK_TERMS = 30

MIND_MAP_SAMPLE = 8000
GLOSSARY_SAMPLE = 10000

GLOSSARY_INSTRUCTIONS = (
    "Extract 10-50 key terms, technical jargon, and acronyms. Provide context-aware "
    "definitions based on the document's domain. Return as JSON array with format: "
    '{ "terms": [{ "term": "...", "definition": "...", "type": "acronym|technical|jargon|concept", '
    '"confidence": 0.0-1.0, "mentions": number, "context": "..." }], "domain": "..." }'
)


def entity_color(entity_type: Optional[str]) -> str:
    return ENTITY_COLORS.get(entity_type or "", DEFAULT_ENTITY_COLOR)


def level_importance(level: int) -> float:
    return max(0.3, 0.9 - level * 0.15)


def tldr_text(analysis: dict[str, Any]) -> str:
    tldr = analysis.get("tldr")
    if isinstance(tldr, dict):
        return tldr.get("text") or ""
    return tldr or ""


def build_hierarchy(nodes: list[dict[str, Any]], edges: list[dict[str, Any]]) -> dict[str, Any]:
    """
    Depth of every node along hierarchical edges (source is the parent).

    Roots are nodes that are nobody's child; depths come from a BFS from the
    roots, so nodes only reachable through a cycle keep depth 0.
    """
    node_depths = {node["id"]: 0 for node in nodes}
    children: dict[str, list[str]] = {node["id"]: [] for node in nodes}
    has_parent: set[str] = set()

    for edge in edges:
        has_parent.add(edge["target"])
        children.setdefault(edge["source"], []).append(edge["target"])

    root_nodes = [node["id"] for node in nodes if node["id"] not in has_parent]
    queue = deque((node_id, 0) for node_id in root_nodes)
    visited: set[str] = set()
    max_depth = 0

    while queue:
        node_id, depth = queue.popleft()
        if node_id in visited:
            continue
        visited.add(node_id)
        node_depths[node_id] = depth
        max_depth = max(max_depth, depth)
        for child_id in children.get(node_id, []):
            queue.append((child_id, depth + 1))

    return {"rootNodes": root_nodes, "maxDepth": max_depth, "nodeDepths": node_depths}


class VisualizationGenerator:
    def __init__(self, llm_client: Optional[OpenRouterClient] = None):
        self._llm_client = llm_client
        self._generators = {
            "structured-view": self.generate_structured_view,
            "mind-map": self.generate_mind_map,
            "flowchart": self.generate_flowchart,
            "knowledge-graph": self.generate_knowledge_graph,
            "executive-dashboard": self.generate_dashboard,
            "timeline": self.generate_timeline,
            "terms-definitions": self.generate_terms_definitions,
            "argument-map": self.generate_argument_map,
            "uml-class": self.generate_uml_class_diagram,
        }

    @property
    def llm_client(self) -> OpenRouterClient:
        return self._llm_client or get_openrouter_client()

    @property
    def supported_types(self) -> list[str]:
        return list(self._generators)

    async def generate_visualization(
        self,
        visualization_type: str,
        document: ParsedDocument,
        analysis: Optional[dict[str, Any]],
    ) -> dict[str, Any]:
        """
        Raises:
            UnknownVisualizationTypeError: no generator for this type
        """
        generator = self._generators.get(visualization_type)
        if generator is None:
            raise UnknownVisualizationTypeError(visualization_type)
        return await generator(document, analysis or {})

    # ==================== Structure-based ====================

    async def generate_structured_view(
        self, document: ParsedDocument, analysis: dict[str, Any]
    ) -> dict[str, Any]:
        structure = document.structure.model_dump(mode="json", by_alias=True)
        return {
            "type": "structured-view",
            "sections": structure["sections"],
            "hierarchy": structure["hierarchy"],
        }

    async def generate_flowchart(
        self, document: ParsedDocument, analysis: dict[str, Any]
    ) -> dict[str, Any]:
        sections = document.structure.sections
        last = len(sections) - 1
        nodes = [
            {
                "id": section.id,
                "type": "start" if i == 0 else "end" if i == last else "process",
                "label": section.title,
                "description": section.summary or "",
                "position": {"x": 100, "y": 100 + i * 150},
            }
            for i, section in enumerate(sections)
        ]
        edges = [
            {
                "id": f"edge-{i}",
                "source": nodes[i]["id"],
                "target": nodes[i + 1]["id"],
                "type": "solid",
            }
            for i in range(len(nodes) - 1)
        ]
        return {"nodes": nodes, "edges": edges, "layout": "topToBottom"}

    async def generate_dashboard(
        self, document: ParsedDocument, analysis: dict[str, Any]
    ) -> dict[str, Any]:
        summary = analysis.get("executiveSummary") or {}
        kpis = summary.get("kpis") or []
        return {
            "executiveCard": summary,
            "kpiTiles": kpis,
            "charts": [
                {
                    "type": "bar",
                    "title": "Key Metrics",
                    "data": [{"name": kpi.get("label"), "value": kpi.get("value")} for kpi in kpis],
                }
            ],
        }

    async def generate_timeline(
        self, document: ParsedDocument, analysis: dict[str, Any]
    ) -> dict[str, Any]:
        date_entities = [e for e in analysis.get("entities") or [] if e.get("type") == "date"]
        events = [
            {
                "id": f"event-{i}",
                "title": entity.get("text", ""),
                "description": entity.get("context") or "",
                "date": parse_date(entity.get("text")).isoformat(),
                "category": "general",
                "color": "#4F46E5",
            }
            for i, entity in enumerate(date_entities)
        ]
        events.sort(key=lambda event: event["date"])
        return {"events": events, "scale": "month"}

    async def generate_knowledge_graph(
        self, document: ParsedDocument, analysis: dict[str, Any]
    ) -> dict[str, Any]:
        entities = analysis.get("entities") or []
        relationships = analysis.get("relationships") or []
        logger.info(
            f"Generating knowledge graph from {len(entities)} entities "
            f"and {len(relationships)} relationships"
        )

        if not entities:
            logger.warning("No entities found in analysis, returning empty knowledge graph")
            return {"nodes": [], "edges": [], "clusters": []}

        nodes = []
        for entity in entities:
            importance = entity.get("importance") or 0
            mentions = entity.get("mentions") or []
            metadata: dict[str, Any] = {
                "centrality": importance,
                "connections": 0,
                "description": entity.get("context") or "",
                "sourceQuote": self._source_quote(mentions, document.content),
            }
            if mentions:
                metadata["sourceSpan"] = mentions[0]
            nodes.append(
                {
                    "id": entity.get("id"),
                    "label": entity.get("text"),
                    "type": entity.get("type"),
                    "size": importance * 50 + 20,
                    "color": entity_color(entity.get("type")),
                    "metadata": metadata,
                }
            )

        edges = [
            {
                "id": f"rel-{i}",
                "source": rel.get("source"),
                "target": rel.get("target"),
                "type": rel.get("type"),
                "strength": rel.get("strength"),
                "label": rel.get("type"),
                "evidence": rel.get("evidence"),
            }
            for i, rel in enumerate(relationships)
        ]

        by_id = {node["id"]: node for node in nodes}
        for edge in edges:
            missing = [end for end in (edge["source"], edge["target"]) if end not in by_id]
            if missing:
                logger.error(f"Edge {edge['id']} references unknown nodes: {missing}")
            for end in (edge["source"], edge["target"]):
                if end in by_id:
                    by_id[end]["metadata"]["connections"] += 1

        hierarchical = [e for e in edges if e["type"] in HIERARCHICAL_EDGE_TYPES]
        return {
            "nodes": nodes,
            "edges": edges,
            "clusters": [],
            "hierarchy": build_hierarchy(nodes, hierarchical),
        }

    @staticmethod
    def _source_quote(mentions: list[dict[str, Any]], content: str) -> str:
        if not mentions or not content:
            return ""
        mention = mentions[0]
        start = max(0, (mention.get("start") or 0) - SOURCE_QUOTE_CONTEXT)
        end = min(len(content), (mention.get("end") or 0) + SOURCE_QUOTE_CONTEXT)
        return content[start:end]

    # ==================== LLM-based ====================

    async def generate_mind_map(
        self, document: ParsedDocument, analysis: dict[str, Any]
    ) -> dict[str, Any]:
        prompt = (
            f"Document Title: {document.title}\n\n"
            f"TLDR: {tldr_text(analysis)}\n\n"
            f"Content:\n{document.content[:MIND_MAP_SAMPLE]}"
        )
        try:
            response = await self.llm_client.call_with_fallback("mindMapGeneration", prompt)
            parsed = self.llm_client.parse_json_response(response)
            nodes = dict_items(parsed.get("nodes") or []) if isinstance(parsed, dict) else None
            if nodes:
                return {
                    "root": self._convert_llm_node(nodes[0], 0),
                    "layout": "radial",
                    "theme": dict(MIND_MAP_THEME),
                }
        except (LLMError, *PARSE_ERRORS) as e:
            logger.error(f"LLM mind map generation failed, falling back to structure: {e}")

        return self._mind_map_from_structure(document, analysis)

    def _convert_llm_node(self, node: dict[str, Any], level: int) -> dict[str, Any]:
        summary = node.get("summary") or ""
        return {
            "id": node.get("id") or f"node-{uuid.uuid4().hex[:9]}",
            "label": node.get("label") or "Untitled",
            "subtitle": node.get("subtitle") or summary[:40],
            "icon": node.get("icon") or NODE_EMOJIS[level % len(NODE_EMOJIS)],
            "summary": summary,
            "detailedExplanation": node.get("detailedExplanation")
            or summary
            or "No additional details available.",
            "sourceTextExcerpt": node.get("sourceTextExcerpt"),
            "children": [
                self._convert_llm_node(child, level + 1)
                for child in dict_items(node.get("children") or [])
            ],
            "level": level,
            "color": LEVEL_COLORS[level % len(LEVEL_COLORS)],
            "sourceRef": {"start": 0, "end": 0, "text": ""},
            "metadata": {
                "importance": node.get("importance") or level_importance(level),
                "confidence": 0.85,
            },
        }

    def _mind_map_from_structure(
        self, document: ParsedDocument, analysis: dict[str, Any]
    ) -> dict[str, Any]:
        text = tldr_text(analysis)
        root = {
            "id": "root",
            "label": document.title,
            "subtitle": text[:40],
            "icon": "📄",
            "summary": text,
            "detailedExplanation": text,
            "sourceTextExcerpt": document.content[:200],
            "children": self._sections_to_nodes(document.structure.sections, 1),
            "level": 0,
            "color": LEVEL_COLORS[0],
            "sourceRef": {"start": 0, "end": 0, "text": ""},
            "metadata": {"importance": 1.0, "confidence": 1.0},
        }
        return {"root": root, "layout": "radial", "theme": dict(MIND_MAP_THEME)}

    def _sections_to_nodes(self, sections: list[Section], level: int) -> list[dict[str, Any]]:
        nodes = []
        for index, section in enumerate(sections):
            summary = section.summary or section.content[:100] + "..."
            nodes.append(
                {
                    "id": section.id,
                    "label": section.title,
                    "subtitle": summary[:40],
                    "icon": SECTION_EMOJIS[index % len(SECTION_EMOJIS)],
                    "summary": summary,
                    "detailedExplanation": section.summary or section.content[:300],
                    "sourceTextExcerpt": section.content[:200],
                    "children": self._sections_to_nodes(section.children, level + 1),
                    "level": level,
                    "color": LEVEL_COLORS[level % len(LEVEL_COLORS)],
                    "sourceRef": {
                        "start": section.start_index,
                        "end": section.end_index,
                        "text": section.content[:50],
                    },
                    "metadata": {"importance": level_importance(level), "confidence": 0.85},
                }
            )
        return nodes

    async def generate_terms_definitions(
        self, document: ParsedDocument, analysis: dict[str, Any]
    ) -> dict[str, Any]:
        prompt = (
            f"Document Title: {document.title}\n\n"
            f"TLDR: {tldr_text(analysis)}\n\n"
            f"Content:\n{document.content[:GLOSSARY_SAMPLE]}\n\n"
            f"{GLOSSARY_INSTRUCTIONS}"
        )
        try:
            response = await self.llm_client.call_with_fallback("glossary", prompt)
            parsed = self.llm_client.parse_json_response(response)
            if isinstance(parsed, list):
                parsed = {"terms": parsed}
            raw_terms = dict_items(parsed.get("terms") or [])
            if raw_terms:
                terms = sorted(
                    (
                        {
                            "id": f"term-{i}",
                            "term": t.get("term") or t.get("text") or "Unknown",
                            "definition": t.get("definition") or "No definition provided",
                            "type": t.get("type") or "concept",
                            "confidence": t.get("confidence") or 0.8,
                            "mentions": t.get("mentions") or 1,
                            "context": t.get("context"),
                        }
                        for i, t in enumerate(raw_terms)
                    ),
                    key=lambda term: term["term"].lower(),
                )
                return {
                    "terms": terms,
                    "metadata": {
                        "totalTerms": len(terms),
                        "extractionConfidence": 0.85,
                        "documentDomain": parsed.get("domain") or "general",
                    },
                }
        except (LLMError, *PARSE_ERRORS) as e:
            logger.error(f"LLM glossary extraction failed, falling back to entities: {e}")

        return self._terms_from_entities(analysis)

    @staticmethod
    def _terms_from_entities(analysis: dict[str, Any]) -> dict[str, Any]:
        candidates = [
            e for e in analysis.get("entities") or [] if e.get("type") in ("technical", "concept")
        ][:MAX_FALLBACK_TERMS]
        terms = sorted(
            (
                {
                    "id": f"term-{i}",
                    "term": entity.get("text", ""),
                    "definition": entity.get("context") or "Technical term from document",
                    "type": entity.get("type"),
                    "confidence": entity.get("importance"),
                    "mentions": len(entity.get("mentions") or []),
                    "context": entity.get("context"),
                }
                for i, entity in enumerate(candidates)
            ),
            key=lambda term: term["term"].lower(),
        )
        return {
            "terms": terms,
            "metadata": {
                "totalTerms": len(terms),
                "extractionConfidence": 0.7,
                "documentDomain": "general",
            },
        }

    async def generate_argument_map(
        self, document: ParsedDocument, analysis: dict[str, Any]
    ) -> dict[str, Any]:
        prompt = f"Document Title: {document.title}\n\nContent:\n{document.content[:MIND_MAP_SAMPLE]}"
        response = await self.llm_client.call_with_fallback("argumentMapGeneration", prompt)
        parsed = self.llm_client.parse_json_response(response)
        if not isinstance(parsed, dict):
            raise InvalidJSONResponseError()

        nodes = parsed.get("nodes") or []
        edges = parsed.get("edges") or []
        metadata = parsed.get("metadata") or {}
        claims = [n for n in nodes if n.get("type") == "claim"]
        metadata.setdefault("mainClaimId", claims[0].get("id") if claims else None)
        metadata.setdefault("totalClaims", len(claims))
        metadata.setdefault("totalEvidence", sum(1 for n in nodes if n.get("type") == "evidence"))
        return {"nodes": nodes, "edges": edges, "metadata": metadata}

    async def generate_uml_class_diagram(
        self, document: ParsedDocument, analysis: dict[str, Any]
    ) -> dict[str, Any]:
        response = await self.llm_client.call_with_fallback(
            "uml-extraction", document.content[:GLOSSARY_SAMPLE]
        )
        parsed = self.llm_client.parse_json_response(response)
        if not isinstance(parsed, dict):
            raise InvalidJSONResponseError()

        classes = parsed.get("classes") or []
        for i, uml_class in enumerate(classes):
            uml_class.setdefault("id", f"class-{i}")
            uml_class.setdefault("attributes", [])
            uml_class.setdefault("methods", [])
        relationships = parsed.get("relationships") or []
        for i, relationship in enumerate(relationships):
            relationship.setdefault("id", f"rel-{i}")

        return {
            "classes": classes,
            "relationships": relationships,
            "packages": parsed.get("packages") or [],
            "metadata": {
                "totalClasses": len(classes),
                "totalRelationships": len(relationships),
            },
        }


visualization_generator = VisualizationGenerator()
