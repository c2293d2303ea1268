"""
Document analysis through the LLM.

`TextAnalyzer.analyze_document` runs the independent tasks (TLDR, executive
summary, entity extraction, signal analysis) concurrently, then the tasks
that depend on them: relationships, section summaries and visualization
recommendations. Parse failures fall back to conservative defaults; a failed
LLM call for a core task propagates.
"""

import asyncio
import json
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from vaisu.core.exceptions import InvalidJSONResponseError, LLMError
from vaisu.core.logging import get_logger
from vaisu.models.documents import ParsedDocument, Section
from vaisu.services.llm.openrouter_client import (
    PARSE_ERRORS,
    LLMResponse,
    OpenRouterClient,
    dict_items,
    get_openrouter_client,
)

logger = get_logger()

ProgressCallback = Callable[[str, int, str, Optional[dict[str, Any]]], None]

TLDR_SAMPLE = 4000
SUMMARY_SAMPLE = 6000
ENTITY_SAMPLE = 5000
RELATIONSHIP_SAMPLE = 4000
SIGNAL_SAMPLE = 3000
SECTION_SAMPLE = 2000
RECOMMENDATION_SAMPLE = 1000
MIN_SECTION_LENGTH = 100
MAX_RECOMMENDATIONS = 5

DEFAULT_SIGNALS = {
    "structural": 0.5,
    "process": 0.3,
    "quantitative": 0.3,
    "technical": 0.2,
    "argumentative": 0.3,
    "temporal": 0.2,
}

STRUCTURED_VIEW_RECOMMENDATION = {
    "type": "structured-view",
    "score": 1.0,
    "rationale": "Default view showing document structure with summaries",
}

DEFAULT_RECOMMENDATIONS = [
    {
        "type": "structured-view",
        "score": 1.0,
        "rationale": "Default view showing document structure",
    },
    {
        "type": "mind-map",
        "score": 0.8,
        "rationale": "Good for hierarchical content",
    },
]

DEFAULT_HEADLINE = "Document Summary"
DEFAULT_CALL_TO_ACTION = "Review the document for details"


class UsageTracker:
    """Models and tokens consumed by one analysis."""

    def __init__(self):
        self.models: list[str] = []
        self.tokens_used = 0

    def record(self, response: LLMResponse) -> None:
        if response.model not in self.models:
            self.models.append(response.model)
        self.tokens_used += response.tokens_used


class TextAnalyzer:
    def __init__(self, llm_client: Optional[OpenRouterClient] = None):
        self._llm_client = llm_client

    @property
    def llm_client(self) -> OpenRouterClient:
        return self._llm_client or get_openrouter_client()

    async def _call(
        self, task: str, prompt: str, usage: Optional[UsageTracker] = None
    ) -> LLMResponse:
        response = await self.llm_client.call_with_fallback(task, prompt)
        if usage is not None:
            usage.record(response)
        return response

    async def analyze_document(
        self,
        document: ParsedDocument,
        on_progress: Optional[ProgressCallback] = None,
    ) -> dict[str, Any]:
        """
        Full analysis of a parsed document.

        Section summaries are written into `document.structure` in place.

        Args:
            document: parsed document
            on_progress: called with (step, progress, message, partial_analysis)

        Returns:
            analysis dict (camelCase keys)
        """

        def progress(step: str, percent: int, message: str, partial=None) -> None:
            logger.info(f"[{document.id}] {percent}% - {message}")
            if on_progress:
                on_progress(step, percent, message, partial)

        usage = UsageTracker()
        text = document.content

        progress("starting", 5, "Starting analysis")
        tldr, executive_summary, entities, signals = await asyncio.gather(
            self.generate_tldr(text, usage),
            self.generate_executive_summary(text, usage),
            self.extract_entities(text, usage),
            self.analyze_signals(text, usage),
        )
        partial = {
            "tldr": tldr,
            "executiveSummary": executive_summary,
            "entities": entities,
            "signals": signals,
        }
        progress("core-analysis", 50, "Summary, entities and signals ready", partial)

        relationships = await self.detect_relationships(text, entities, usage)
        progress(
            "relationships",
            65,
            f"Detected {len(relationships)} relationships",
            {**partial, "relationships": relationships},
        )

        await self.generate_section_summaries(document, usage)
        progress("sections", 80, "Section summaries ready")

        recommendations = await self.recommend_visualizations(
            document, signals, len(entities), len(relationships), usage
        )
        progress("recommendations", 95, "Visualization recommendations ready")

        analysis = {
            "tldr": tldr,
            "executiveSummary": executive_summary,
            "entities": entities,
            "relationships": relationships,
            "metrics": executive_summary.get("kpis", []),
            "signals": signals,
            "recommendations": recommendations,
            "structure": document.structure.model_dump(mode="json", by_alias=True),
            "metadata": {
                "models": usage.models,
                "tokensUsed": usage.tokens_used,
                "analyzedAt": datetime.now(timezone.utc).isoformat(),
            },
        }
        progress("complete", 100, "Analysis complete")
        return analysis

    async def generate_tldr(self, text: str, usage: Optional[UsageTracker] = None) -> dict[str, Any]:
        response = await self._call("tldr", text[:TLDR_SAMPLE], usage)
        return {
            "text": response.content.strip(),
            "confidence": 0.9,
            "generatedAt": datetime.now(timezone.utc).isoformat(),
            "model": response.model,
        }

    async def generate_executive_summary(
        self, text: str, usage: Optional[UsageTracker] = None
    ) -> dict[str, Any]:
        response = await self._call("executiveSummary", text[:SUMMARY_SAMPLE], usage)
        try:
            parsed = self.llm_client.parse_json_response(response)
            if not isinstance(parsed, dict):
                raise InvalidJSONResponseError()
        except InvalidJSONResponseError:
            logger.error("Failed to parse executive summary, using fallback")
            return {
                "headline": DEFAULT_HEADLINE,
                "keyIdeas": [response.content[:200]],
                "kpis": [],
                "risks": [],
                "opportunities": [],
                "callToAction": DEFAULT_CALL_TO_ACTION,
            }

        return {
            "headline": parsed.get("headline") or DEFAULT_HEADLINE,
            "keyIdeas": parsed.get("keyIdeas") or [],
            "kpis": parsed.get("kpis") or [],
            "risks": parsed.get("risks") or [],
            "opportunities": parsed.get("opportunities") or [],
            "callToAction": parsed.get("callToAction") or DEFAULT_CALL_TO_ACTION,
        }

    async def extract_entities(
        self, text: str, usage: Optional[UsageTracker] = None
    ) -> list[dict[str, Any]]:
        response = await self._call("entityExtraction", text[:ENTITY_SAMPLE], usage)
        try:
            parsed = self.llm_client.parse_json_response(response)
            if isinstance(parsed, list):
                return dict_items(parsed)
            return dict_items(parsed.get("entities") or [])
        except PARSE_ERRORS:
            logger.error("Failed to parse entities")
            return []

    async def detect_relationships(
        self,
        text: str,
        entities: list[dict[str, Any]],
        usage: Optional[UsageTracker] = None,
    ) -> list[dict[str, Any]]:
        if not entities:
            return []

        entity_list = "\n".join(
            f"- {entity.get('id')}: {entity.get('text')} ({entity.get('type')})"
            for entity in entities
        )
        prompt = f"Text: {text[:RELATIONSHIP_SAMPLE]}\n\nEntities:\n{entity_list}"
        response = await self._call("relationshipDetection", prompt, usage)
        try:
            parsed = self.llm_client.parse_json_response(response)
            if isinstance(parsed, list):
                return dict_items(parsed)
            return dict_items(parsed.get("relationships") or [])
        except PARSE_ERRORS:
            logger.error("Failed to parse relationships")
            return []

    async def analyze_signals(
        self, text: str, usage: Optional[UsageTracker] = None
    ) -> dict[str, float]:
        response = await self._call("signalAnalysis", text[:SIGNAL_SAMPLE], usage)
        try:
            parsed = self.llm_client.parse_json_response(response)
        except InvalidJSONResponseError:
            logger.error("Failed to parse signals, using defaults")
            return dict(DEFAULT_SIGNALS)
        if not isinstance(parsed, dict):
            return dict(DEFAULT_SIGNALS)
        return {**DEFAULT_SIGNALS, **parsed}

    async def generate_section_summaries(
        self, document: ParsedDocument, usage: Optional[UsageTracker] = None
    ) -> None:
        """Fill `summary` and `keywords` of every section, nested ones included."""
        await asyncio.gather(
            *(self._summarize_section(section, usage) for section in document.structure.sections)
        )

    async def _summarize_section(self, section: Section, usage: Optional[UsageTracker]) -> None:
        if len(section.content) > MIN_SECTION_LENGTH:
            try:
                response = await self._call(
                    "sectionSummary", section.content[:SECTION_SAMPLE], usage
                )
            except LLMError:
                logger.error(f"Failed to summarize section {section.id}")
                section.summary = section.content[:200] + "..."
            else:
                try:
                    parsed = self.llm_client.parse_json_response(response)
                    if not isinstance(parsed, dict):
                        raise InvalidJSONResponseError()
                    section.summary = parsed.get("summary") or response.content.strip()
                    section.keywords = parsed.get("keywords") or []
                except InvalidJSONResponseError:
                    section.summary = response.content.strip()
                    section.keywords = []
        else:
            section.summary = section.content

        if section.children:
            await asyncio.gather(
                *(self._summarize_section(child, usage) for child in section.children)
            )

    async def recommend_visualizations(
        self,
        document: ParsedDocument,
        signals: dict[str, Any],
        entity_count: int,
        relationship_count: int,
        usage: Optional[UsageTracker] = None,
    ) -> list[dict[str, Any]]:
        prompt = (
            "Document analysis:\n"
            f"- Word count: {document.metadata.word_count}\n"
            f"- Sections: {len(document.structure.sections)}\n"
            f"- Entities: {entity_count}\n"
            f"- Relationships: {relationship_count}\n"
            f"- Signals: {json.dumps(signals)}\n\n"
            f"Sample text:\n{document.content[:RECOMMENDATION_SAMPLE]}"
        )
        response = await self._call("vizRecommendation", prompt, usage)
        try:
            parsed = self.llm_client.parse_json_response(response)
            raw = parsed if isinstance(parsed, list) else parsed.get("recommendations") or []
            recommendations = dict_items(raw)
            if raw and not recommendations:
                raise InvalidJSONResponseError()
        except PARSE_ERRORS:
            logger.error("Failed to parse recommendations, using defaults")
            return [dict(r) for r in DEFAULT_RECOMMENDATIONS]

        if not any(r.get("type") == "structured-view" for r in recommendations):
            recommendations.insert(0, dict(STRUCTURED_VIEW_RECOMMENDATION))
        return recommendations[:MAX_RECOMMENDATIONS]


text_analyzer = TextAnalyzer()
