"""Tests for the LLM-driven document analysis."""

import pytest

from vaisu.core.exceptions import LLMError
from vaisu.services.document_parser import DocumentParser
from vaisu.services.text_analyzer import (
    DEFAULT_RECOMMENDATIONS,
    DEFAULT_SIGNALS,
    MAX_RECOMMENDATIONS,
    TextAnalyzer,
)

LONG_SECTION = "Revenue grew strongly across every region during the quarter. " * 3

TEXT = f"""# Quarterly Report

Acme Corp reports strong growth.

## Revenue

{LONG_SECTION}
"""


@pytest.fixture
async def document():
    return await DocumentParser().parse_document(TEXT.encode("utf-8"), "report.txt")


@pytest.fixture
def analyzer(fake_llm):
    return TextAnalyzer(fake_llm)


class TestAnalyzeDocument:
    async def test_full_analysis(self, analyzer, document, fake_llm):
        analysis = await analyzer.analyze_document(document)

        assert analysis["tldr"]["text"] == "Acme Corp reports strong quarterly growth."
        assert analysis["tldr"]["model"] == "test-model"
        assert analysis["executiveSummary"]["headline"] == "Quarterly growth"
        assert analysis["metrics"] == analysis["executiveSummary"]["kpis"]
        assert [e["id"] for e in analysis["entities"]] == ["e1", "e2"]
        assert analysis["relationships"][0]["type"] == "part-of"
        assert analysis["signals"]["structural"] == 0.8
        assert analysis["signals"]["temporal"] == DEFAULT_SIGNALS["temporal"]
        assert analysis["recommendations"][0]["type"] == "structured-view"
        assert analysis["metadata"]["models"] == ["test-model"]
        assert analysis["metadata"]["tokensUsed"] == 10 * len(fake_llm.calls)

    async def test_section_summaries_written_in_place(self, analyzer, document):
        analysis = await analyzer.analyze_document(document)

        short, long = document.structure.sections
        assert short.summary == short.content
        assert long.summary == "Section summary"
        assert long.keywords == ["growth"]
        assert analysis["structure"]["sections"][1]["summary"] == "Section summary"

    async def test_progress_reported_in_order(self, analyzer, document):
        steps = []
        await analyzer.analyze_document(
            document, lambda step, percent, message, partial=None: steps.append((step, percent))
        )
        percents = [percent for _, percent in steps]
        assert percents == sorted(percents)
        assert steps[0] == ("starting", 5)
        assert steps[-1] == ("complete", 100)

    async def test_core_task_failure_propagates(self, analyzer, document, fake_llm):
        fake_llm.answers["tldr"] = LLMError("provider down")
        with pytest.raises(LLMError):
            await analyzer.analyze_document(document)


class TestFallbacks:
    async def test_unparseable_summary(self, analyzer, fake_llm):
        fake_llm.answers["executiveSummary"] = "The document is about growth."
        summary = await analyzer.generate_executive_summary("text")
        assert summary["headline"] == "Document Summary"
        assert summary["keyIdeas"] == ["The document is about growth."]
        assert summary["callToAction"] == "Review the document for details"

    async def test_unparseable_entities(self, analyzer, fake_llm):
        fake_llm.answers["entityExtraction"] = "none"
        assert await analyzer.extract_entities("text") == []

    async def test_entity_list_accepted(self, analyzer, fake_llm):
        fake_llm.answers["entityExtraction"] = [{"id": "x", "text": "X"}]
        assert await analyzer.extract_entities("text") == [{"id": "x", "text": "X"}]

    async def test_non_dict_entities_dropped(self, analyzer, fake_llm):
        fake_llm.answers["entityExtraction"] = {"entities": ["Acme", {"id": "x", "text": "X"}, 3]}
        assert await analyzer.extract_entities("text") == [{"id": "x", "text": "X"}]

    async def test_malformed_relationships(self, analyzer, fake_llm):
        fake_llm.answers["relationshipDetection"] = {"relationships": "none found"}
        assert await analyzer.detect_relationships("text", [{"id": "e1"}]) == []

    async def test_relationships_skipped_without_entities(self, analyzer, fake_llm):
        assert await analyzer.detect_relationships("text", []) == []
        assert fake_llm.calls == []

    async def test_unparseable_signals(self, analyzer, fake_llm):
        fake_llm.answers["signalAnalysis"] = "high"
        assert await analyzer.analyze_signals("text") == DEFAULT_SIGNALS

    async def test_unparseable_recommendations(self, analyzer, document, fake_llm):
        fake_llm.answers["vizRecommendation"] = "use a chart"
        result = await analyzer.recommend_visualizations(document, {}, 0, 0)
        assert result == DEFAULT_RECOMMENDATIONS

    async def test_string_recommendations_use_defaults(self, analyzer, document, fake_llm):
        fake_llm.answers["vizRecommendation"] = {"recommendations": ["mind-map", "timeline"]}
        result = await analyzer.recommend_visualizations(document, {}, 0, 0)
        assert result == DEFAULT_RECOMMENDATIONS

    async def test_analysis_survives_string_recommendations(self, analyzer, document, fake_llm):
        fake_llm.answers["vizRecommendation"] = ["mind-map"]
        analysis = await analyzer.analyze_document(document)
        assert [r["type"] for r in analysis["recommendations"]] == ["structured-view", "mind-map"]
        assert analysis["recommendations"][1]["score"] == 0.8

    async def test_recommendations_capped(self, analyzer, document, fake_llm):
        fake_llm.answers["vizRecommendation"] = [
            {"type": f"type-{i}", "score": 0.5} for i in range(10)
        ]
        result = await analyzer.recommend_visualizations(document, {}, 0, 0)
        assert len(result) == MAX_RECOMMENDATIONS
        assert result[0]["type"] == "structured-view"

    async def test_failed_section_summary_truncates_content(self, analyzer, document, fake_llm):
        fake_llm.answers["sectionSummary"] = LLMError("timeout")
        await analyzer.generate_section_summaries(document)
        long = document.structure.sections[1]
        assert long.summary == long.content[:200] + "..."
