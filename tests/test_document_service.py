"""Tests for the document workflow service."""

import pytest

from vaisu.core.exceptions import AnalysisRequiredError, NotFoundError, UnknownVisualizationTypeError
from vaisu.repositories import document_repository, usage_limits_repository
from vaisu.services.document_service import DocumentService, IDLE_PROGRESS
from vaisu.storage import kv_store
from vaisu.storage.kv_store import LocalKeyValueStore

TEXT = """# Quarterly Report

Acme Corp reports strong growth.

## Revenue

Revenue grew by twenty percent.
"""


@pytest.fixture
def service():
    return DocumentService()


class TestUploadAndAnalyze:
    async def test_upload_counts_usage(self, service):
        document = await service.upload(TEXT.encode("utf-8"), "report.txt", "u1")

        assert document.title == "Quarterly Report"
        assert service.get_owner(document.id) == "u1"
        usage = await usage_limits_repository.get_current_usage("u1")
        assert usage["documentCount"] == 1
        assert usage["storageUsed"] == len(TEXT.encode("utf-8"))

    async def test_upload_rejects_unsupported_file(self, service):
        with pytest.raises(ValueError):
            await service.upload(b"data", "image.png", "u1")

    async def test_analyze_persists_under_new_id(self, service, fake_llm):
        document = await service.upload(TEXT.encode("utf-8"), "report.txt", "u1")
        result = await service.analyze("u1", document_id=document.id)

        assert result["cached"] is False
        assert result["documentId"] != document.id
        assert result["analysis"]["tldr"]["text"]
        assert result["processingTime"] >= 0

        record = await document_repository.find_by_id(result["documentId"])
        assert record["userId"] == "u1"
        assert record["filename"] == "report.txt"
        assert record["hasAnalysis"] is True
        assert service.get_owner(result["documentId"]) == "u1"
        assert service.get_progress(document.id) == IDLE_PROGRESS

    async def test_second_analysis_served_from_storage(self, service, fake_llm):
        first = await service.analyze("u1", text=TEXT)
        calls = len(fake_llm.calls)

        second = await service.analyze("u1", text=TEXT)

        assert second["cached"] is True
        assert second["documentId"] == first["documentId"]
        assert second["analysis"] == first["analysis"]
        assert len(fake_llm.calls) == calls

    async def test_analyze_unknown_document(self, service):
        with pytest.raises(NotFoundError):
            await service.analyze("u1", document_id="missing")

    async def test_analyze_without_input(self, service):
        with pytest.raises(ValueError, match="No documentId or text provided"):
            await service.analyze("u1")

    async def test_storage_failure_still_returns_analysis(self, service, tmp_path):
        store = LocalKeyValueStore(tmp_path / "broken")
        store.data_dir.rmdir()
        kv_store.set_kv_store(store)

        result = await service.analyze("u1", text=TEXT)

        assert result["cached"] is False
        assert result["analysis"]["tldr"]["text"]
        assert service.get_owner(result["documentId"]) == "u1"
        assert await document_repository.find_by_id(result["documentId"]) is None

    async def test_cache_lookup_failure_runs_analysis(self, service, fake_llm, monkeypatch):
        async def broken_lookup(content_hash, filename):
            raise RuntimeError("connection reset")

        monkeypatch.setattr(service.documents, "find_by_hash_and_filename", broken_lookup)

        result = await service.analyze("u1", text=TEXT)

        assert result["cached"] is False
        assert fake_llm.calls


class TestLookup:
    async def test_get_rebuilds_from_storage(self, service):
        result = await service.analyze("u1", text=TEXT)
        document_id = result["documentId"]

        fresh = DocumentService()
        loaded = await fresh.get(document_id)
        assert loaded["document"]["content"] == TEXT
        assert loaded["analysis"] == result["analysis"]
        assert fresh.get_owner(document_id) == "u1"

        record = await document_repository.find_by_id(document_id)
        assert record["accessCount"] >= 2

    async def test_get_unknown(self, service):
        assert await service.get("missing") is None
        assert await service.get_full("missing") is None

    async def test_list_and_search(self, service):
        await service.analyze("u1", text=TEXT)
        await service.upload(b"# Meeting Notes From Monday\n\nAgenda items.", "notes.txt", "u1")
        await service.upload(TEXT.encode("utf-8"), "other.txt", "u2")

        listing = await service.list_documents("u1")
        assert listing["total"] == 2
        assert {item["title"] for item in listing["documents"]} == {
            "direct-text.txt",
            "Meeting Notes From Monday",
        }
        assert listing["limit"] == 50 and listing["offset"] == 0

        page = await service.list_documents("u1", limit=1, offset=1)
        assert len(page["documents"]) == 1
        assert page["total"] == 2

        found = await service.search("  GROWTH ", "u1")
        assert found["query"] == "growth"
        assert [item["title"] for item in found["documents"]] == ["direct-text.txt"]

        assert await service.search("", "u1") == {"documents": [], "total": 0, "query": ""}


class TestVisualizations:
    async def test_generated_then_cached(self, service):
        result = await service.analyze("u1", text=TEXT)
        document_id = result["documentId"]

        first = await service.get_visualization(document_id, "flowchart")
        assert first["cached"] is False
        second = await service.get_visualization(document_id, "flowchart")
        assert second["cached"] is True
        assert second["data"] == first["data"]

    async def test_stored_visualization_reused(self, service):
        result = await service.analyze("u1", text=TEXT)
        document_id = result["documentId"]
        generated = await service.get_visualization(document_id, "mind-map")

        fresh = DocumentService()
        stored = await fresh.get_visualization(document_id, "mind-map")
        assert stored["cached"] is True
        assert stored["data"] == generated["data"]

        full = await fresh.get_full(document_id)
        assert "mind-map" in full["visualizations"]

    async def test_knowledge_graph_regenerated(self, service):
        result = await service.analyze("u1", text=TEXT)
        document_id = result["documentId"]
        await service.get_visualization(document_id, "knowledge-graph")

        fresh = DocumentService()
        again = await fresh.get_visualization(document_id, "knowledge-graph")
        assert again["cached"] is False
        assert {node["id"] for node in again["data"]["nodes"]} == {"e1", "e2"}

    async def test_structured_view_without_analysis(self, service):
        document = await service.upload(TEXT.encode("utf-8"), "report.txt", "u1")
        view = await service.get_visualization(document.id, "structured-view")
        assert view["data"]["type"] == "structured-view"

    async def test_analysis_required(self, service):
        document = await service.upload(TEXT.encode("utf-8"), "report.txt", "u1")
        with pytest.raises(AnalysisRequiredError):
            await service.get_visualization(document.id, "mind-map")

    async def test_unknown_type(self, service):
        result = await service.analyze("u1", text=TEXT)
        with pytest.raises(UnknownVisualizationTypeError):
            await service.get_visualization(result["documentId"], "pie-chart")

    async def test_unknown_document(self, service):
        with pytest.raises(NotFoundError):
            await service.get_visualization("missing", "flowchart")


class TestDelete:
    async def test_delete_removes_everything(self, service):
        result = await service.analyze("u1", text=TEXT)
        document_id = result["documentId"]
        await service.get_visualization(document_id, "flowchart")

        assert await service.delete(document_id) is True

        assert await document_repository.find_by_id(document_id) is None
        assert await service.get(document_id) is None
        assert await DocumentService().get(document_id) is None

    async def test_delete_unknown(self, service):
        assert await service.delete("missing") is False
