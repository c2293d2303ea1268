"""
Document workflow: upload, analysis, lookup, visualization and deletion.

Process-local caches sit in front of the repositories and the object store.
Analyses are persisted under a new document id; a later analysis of the same
content and file name is served from storage instead of the LLM.
"""

import time
import uuid
from datetime import timezone
from pathlib import Path
from typing import Any, Optional

from vaisu.core.config import settings
from vaisu.core.exceptions import (
    AnalysisRequiredError,
    NotFoundError,
    StorageError,
    VaisuError,
)
from vaisu.core.logging import get_logger
from vaisu.models.documents import DocumentMetadata, DocumentStructure, ParsedDocument
from vaisu.models.records import AnalysisRecord, DocumentRecord, LLMMetadata
from vaisu.repositories import (
    AnalysisRepository,
    DocumentRepository,
    UsageLimitsRepository,
    VisualizationService,
    analysis_repository,
    document_repository,
    usage_limits_repository,
    visualization_service,
)
from vaisu.repositories.base import now_iso, parse_iso
from vaisu.services.document_parser import DocumentParser, count_words, document_parser
from vaisu.services.text_analyzer import TextAnalyzer, text_analyzer
from vaisu.services.visualization_generator import (
    VisualizationGenerator,
    visualization_generator,
)
from vaisu.storage.object_store import ObjectStore, get_content_type, get_object_store
from vaisu.utils.hashing import calculate_content_hash
from vaisu.utils.language_detector import detect_language

logger = get_logger()

PASTED_TEXT_FILENAME = "pasted-text.txt"
DIRECT_TEXT_FILENAME = "direct-text.txt"

IDLE_PROGRESS = {
    "step": "complete",
    "progress": 100,
    "message": "Analysis complete or not started",
}

# Regenerated from the analysis; the stored graph keeps nodes and edges only.
REGENERATED_TYPES = ("knowledge-graph",)


def file_type_of(filename: str) -> str:
    return Path(filename).suffix.lstrip(".").lower() or "txt"


class DocumentService:
    def __init__(
        self,
        documents: Optional[DocumentRepository] = None,
        analyses: Optional[AnalysisRepository] = None,
        visualizations: Optional[VisualizationService] = None,
        usage_limits: Optional[UsageLimitsRepository] = None,
        object_store: Optional[ObjectStore] = None,
        parser: Optional[DocumentParser] = None,
        analyzer: Optional[TextAnalyzer] = None,
        generator: Optional[VisualizationGenerator] = None,
    ):
        self.documents = documents or document_repository
        self.analyses = analyses or analysis_repository
        self.visualizations = visualizations or visualization_service
        self.usage_limits = usage_limits or usage_limits_repository
        self._object_store = object_store
        self.parser = parser or document_parser
        self.analyzer = analyzer or text_analyzer
        self.generator = generator or visualization_generator

        self._documents: dict[str, ParsedDocument] = {}
        self._analyses: dict[str, dict[str, Any]] = {}
        self._visualizations: dict[tuple[str, str], Any] = {}
        self._progress: dict[str, dict[str, Any]] = {}
        self._filenames: dict[str, str] = {}
        self._owners: dict[str, str] = {}

    @property
    def object_store(self) -> ObjectStore:
        return self._object_store or get_object_store()

    def clear_cache(self) -> None:
        self._documents.clear()
        self._analyses.clear()
        self._visualizations.clear()
        self._progress.clear()
        self._filenames.clear()
        self._owners.clear()

    # ==================== Upload / analyze ====================

    async def upload(self, content: bytes, filename: str, user_id: str) -> ParsedDocument:
        """
        Parse and cache an uploaded file.

        Raises:
            ValueError: unsupported or unreadable file
        """
        document = await self.parser.parse_document(content, filename)
        self._cache_document(document, filename, user_id)
        await self.usage_limits.increment_document_count(user_id)
        await self.usage_limits.increment_storage_used(user_id, len(content))
        logger.info(f"Document uploaded: {document.id} ({filename}) by {user_id}")
        return document

    def _cache_document(self, document: ParsedDocument, filename: str, user_id: str) -> None:
        self._documents[document.id] = document
        self._filenames[document.id] = filename
        self._owners[document.id] = user_id

    async def analyze(
        self,
        user_id: str,
        document_id: Optional[str] = None,
        text: Optional[str] = None,
    ) -> dict[str, Any]:
        """
        Analyze a cached document or raw text.

        Returns:
            {documentId, document, analysis, processingTime, cached}

        Raises:
            NotFoundError: `document_id` is not a known document
            ValueError: neither `document_id` nor `text` was given
        """
        if document_id:
            document = await self._load_document(document_id)
            if document is None:
                raise NotFoundError("Document not found")
            filename = self._filenames.get(document_id, document.title)
        elif text:
            filename = DIRECT_TEXT_FILENAME
            document = await self.parser.parse_document(text.encode("utf-8"), filename)
            self._cache_document(document, filename, user_id)
        else:
            raise ValueError("No documentId or text provided")

        start = time.perf_counter()
        content = document.content.encode("utf-8")
        content_hash = calculate_content_hash(document.content)

        cached = await self._find_cached_analysis(content_hash, filename)
        if cached is not None:
            cached_id, analysis = cached
            self._documents[cached_id] = document
            self._analyses[cached_id] = analysis
            return {
                "documentId": cached_id,
                "document": document.to_response(),
                "analysis": analysis,
                "processingTime": self._elapsed_ms(start),
                "cached": True,
            }

        def on_progress(step: str, progress: int, message: str, partial=None) -> None:
            entry: dict[str, Any] = {"step": step, "progress": progress, "message": message}
            if partial is not None:
                entry["partialAnalysis"] = partial
            self._progress[document.id] = entry

        try:
            analysis = await self.analyzer.analyze_document(document, on_progress)
        finally:
            self._progress.pop(document.id, None)

        processing_time = self._elapsed_ms(start)
        self._analyses[document.id] = analysis
        document.analysis = analysis

        result_id = document.id
        try:
            result_id = await self._persist(
                document, analysis, content, content_hash, filename, user_id, processing_time
            )
        except VaisuError as e:
            logger.error(f"Storage error (returning analysis anyway): {e}")

        return {
            "documentId": result_id,
            "document": document.to_response(),
            "analysis": analysis,
            "processingTime": processing_time,
            "cached": False,
        }

    @staticmethod
    def _elapsed_ms(start: float) -> int:
        return int((time.perf_counter() - start) * 1000)

    async def _find_cached_analysis(
        self, content_hash: str, filename: str
    ) -> Optional[tuple[str, dict[str, Any]]]:
        try:
            record = await self.documents.find_by_hash_and_filename(content_hash, filename)
            if record is None:
                logger.info(f"Cache MISS for {content_hash[:8]}... ({filename})")
                return None
            analysis_record = await self.analyses.find_by_document_id(record["documentId"])
            if analysis_record is None:
                return None
            await self.documents.update_access_metadata(record["documentId"])
        except Exception as e:
            logger.error(f"Cache lookup error (continuing with analysis): {e}")
            return None

        logger.info(f"Cache HIT for {content_hash[:8]}..., document {record['documentId']}")
        return record["documentId"], analysis_record["analysis"]

    async def _persist(
        self,
        document: ParsedDocument,
        analysis: dict[str, Any],
        content: bytes,
        content_hash: str,
        filename: str,
        user_id: str,
        processing_time: int,
    ) -> str:
        new_id = str(uuid.uuid4())
        upload = await self.object_store.upload_document(content_hash, filename, content)
        now = now_iso()

        await self.documents.create(
            DocumentRecord(
                document_id=new_id,
                user_id=user_id,
                content_hash=content_hash,
                filename=filename,
                s3_path=upload.path,
                s3_bucket=upload.bucket,
                s3_key=upload.key,
                content_type=get_content_type(filename),
                file_size=len(content),
                word_count=document.metadata.word_count,
                has_analysis=True,
                uploaded_at=now,
                last_accessed_at=now,
                access_count=1,
            ).to_item()
        )

        metadata = analysis.get("metadata") or {}
        await self.analyses.create(
            AnalysisRecord(
                document_id=new_id,
                analysis=analysis,
                llm_metadata=LLMMetadata(
                    model=",".join(metadata.get("models") or []) or settings.llm_primary_model,
                    tokens_used=metadata.get("tokensUsed") or 0,
                    processing_time=processing_time,
                    timestamp=now,
                ),
                created_at=now,
            ).to_item()
        )

        self._documents[new_id] = document
        self._analyses[new_id] = analysis
        self._filenames[new_id] = filename
        self._owners[new_id] = user_id
        self._owners.pop(document.id, None)

        logger.info(f"Document stored with ID: {new_id}")
        return new_id

    # ==================== Lookup ====================

    async def _load_document(self, document_id: str) -> Optional[ParsedDocument]:
        """Cached document, or rebuild it from its stored record and file."""
        if document_id in self._documents:
            return self._documents[document_id]

        try:
            record = await self.documents.find_by_id(document_id)
            analysis_record = await self.analyses.find_by_document_id(document_id)
            if not record or not analysis_record:
                return None
            content = (await self.object_store.download_document(record["s3Key"])).decode(
                "utf-8", errors="replace"
            )
        except (NotFoundError, StorageError) as e:
            logger.error(f"Stored document lookup failed for {document_id}: {e}")
            return None

        analysis = analysis_record["analysis"]
        document = ParsedDocument(
            id=record["documentId"],
            title=record["filename"],
            content=content,
            metadata=DocumentMetadata(
                word_count=record.get("wordCount") or count_words(content),
                upload_date=parse_iso(record["uploadedAt"]),
                file_type=file_type_of(record["filename"]),
                language=detect_language(content),
            ),
            structure=DocumentStructure.model_validate(analysis.get("structure") or {}),
            analysis=analysis,
        )
        self._documents[document_id] = document
        self._analyses[document_id] = analysis
        self._filenames[document_id] = record["filename"]
        self._owners[document_id] = record.get("userId", "")
        await self.documents.update_access_metadata(document_id)
        return document

    async def get(self, document_id: str) -> Optional[dict[str, Any]]:
        """{document, analysis} or None when unknown."""
        document = await self._load_document(document_id)
        if document is None:
            return None
        return {
            "document": document.to_response(),
            "analysis": self._analyses.get(document_id),
        }

    async def get_full(self, document_id: str) -> Optional[dict[str, Any]]:
        """Document, analysis and every generated visualization keyed by type."""
        document = await self._load_document(document_id)
        if document is None:
            return None

        visualizations: dict[str, Any] = {}
        for record in await self.visualizations.find_by_document_id(document_id):
            visualizations[record["visualizationType"]] = record.get("visualizationData")
        for (cached_id, visualization_type), data in self._visualizations.items():
            if cached_id == document_id:
                visualizations[visualization_type] = data

        return {
            "document": document.to_response(),
            "analysis": self._analyses.get(document_id),
            "visualizations": visualizations,
        }

    def get_owner(self, document_id: str) -> Optional[str]:
        return self._owners.get(document_id)

    def get_progress(self, document_id: str) -> dict[str, Any]:
        return self._progress.get(document_id, dict(IDLE_PROGRESS))

    # ==================== Listing / search ====================

    async def _list_items(self, user_id: str) -> list[dict[str, Any]]:
        items: dict[str, dict[str, Any]] = {}

        for record in await self.documents.list_by_user_id(user_id, limit=1000):
            document_id = record["documentId"]
            analysis = self._analyses.get(document_id)
            if analysis is None:
                analysis_record = await self.analyses.find_by_document_id(document_id)
                analysis = (analysis_record or {}).get("analysis")
            items[document_id] = self._list_item(
                document_id,
                record["filename"],
                file_type_of(record["filename"]),
                record["uploadedAt"],
                record.get("wordCount") or 0,
                analysis,
            )

        for document_id, document in self._documents.items():
            if document_id in items or self._owners.get(document_id) != user_id:
                continue
            items[document_id] = self._list_item(
                document_id,
                document.title,
                document.metadata.file_type,
                document.metadata.upload_date.astimezone(timezone.utc).isoformat(),
                document.metadata.word_count,
                self._analyses.get(document_id),
            )

        return sorted(
            items.values(),
            key=lambda item: parse_iso(item["uploadDate"]),
            reverse=True,
        )

    @staticmethod
    def _list_item(
        document_id: str,
        title: str,
        file_type: str,
        upload_date: str,
        word_count: int,
        analysis: Optional[dict[str, Any]],
    ) -> dict[str, Any]:
        analysis = analysis or {}
        return {
            "id": document_id,
            "title": title,
            "fileType": file_type,
            "uploadDate": upload_date,
            "tldr": analysis.get("tldr"),
            "summaryHeadline": (analysis.get("executiveSummary") or {}).get("headline"),
            "wordCount": word_count,
        }

    async def list_documents(self, user_id: str, limit: int = 50, offset: int = 0) -> dict[str, Any]:
        items = await self._list_items(user_id)
        return {
            "documents": items[offset:offset + limit],
            "total": len(items),
            "limit": limit,
            "offset": offset,
        }

    async def search(self, query: str, user_id: str) -> dict[str, Any]:
        """Case-insensitive match on title, TLDR text and summary headline."""
        needle = (query or "").lower().strip()
        if not needle:
            return {"documents": [], "total": 0, "query": ""}

        def matches(item: dict[str, Any]) -> bool:
            tldr = item.get("tldr")
            tldr_text = tldr.get("text") if isinstance(tldr, dict) else tldr
            fields = (item.get("title"), tldr_text, item.get("summaryHeadline"))
            return any(needle in field.lower() for field in fields if field)

        found = [item for item in await self._list_items(user_id) if matches(item)]
        return {"documents": found, "total": len(found), "query": needle}

    # ==================== Visualizations ====================

    async def get_visualization(self, document_id: str, visualization_type: str) -> dict[str, Any]:
        """
        Cached, stored or freshly generated visualization.

        Returns:
            {type, data, cached}

        Raises:
            NotFoundError: unknown document
            AnalysisRequiredError: the type needs an analysis the document lacks
            UnknownVisualizationTypeError: no generator for the type
        """
        document = await self._load_document(document_id)
        if document is None:
            raise NotFoundError("Document not found")

        analysis = self._analyses.get(document_id)
        if analysis is None and visualization_type != "structured-view":
            raise AnalysisRequiredError()

        key = (document_id, visualization_type)
        if key in self._visualizations:
            return {"type": visualization_type, "data": self._visualizations[key], "cached": True}

        if visualization_type not in REGENERATED_TYPES:
            stored = await self._find_stored_visualization(document_id, visualization_type)
            if stored is not None:
                self._visualizations[key] = stored
                return {"type": visualization_type, "data": stored, "cached": True}

        data = await self.generator.generate_visualization(visualization_type, document, analysis)
        self._visualizations[key] = data
        await self._store_visualization(document_id, visualization_type, data)
        return {"type": visualization_type, "data": data, "cached": False}

    async def _find_stored_visualization(
        self, document_id: str, visualization_type: str
    ) -> Optional[Any]:
        try:
            record = await self.visualizations.find_by_document_id_and_type(
                document_id, visualization_type
            )
        except VaisuError as e:
            logger.warning(f"Stored {visualization_type} lookup failed: {e}")
            return None
        return record.get("visualizationData") if record else None

    async def _store_visualization(
        self, document_id: str, visualization_type: str, data: Any
    ) -> None:
        now = now_iso()
        record = {
            "documentId": document_id,
            "visualizationType": visualization_type,
            "visualizationData": data,
            "llmMetadata": LLMMetadata(
                model=settings.llm_primary_model, timestamp=now
            ).to_item(),
            "createdAt": now,
        }
        try:
            await self.visualizations.create(record)
        except VaisuError as e:
            logger.error(f"Failed to store {visualization_type} for {document_id}: {e}")

    # ==================== Delete ====================

    async def delete(self, document_id: str) -> bool:
        """
        Remove a document with its analysis, visualizations and stored file.

        Returns:
            False when the document is unknown
        """
        record = await self.documents.find_by_id(document_id)
        if record is None and document_id not in self._documents:
            return False

        if record is not None:
            try:
                await self.object_store.delete_document(record["s3Key"])
            except StorageError as e:
                logger.warning(f"Failed to delete stored file of {document_id}: {e}")
            await self.documents.delete(document_id)

        await self.analyses.delete(document_id)
        await self.visualizations.delete_all(document_id)

        self._documents.pop(document_id, None)
        self._analyses.pop(document_id, None)
        self._progress.pop(document_id, None)
        self._filenames.pop(document_id, None)
        self._owners.pop(document_id, None)
        for key in [key for key in self._visualizations if key[0] == document_id]:
            del self._visualizations[key]

        logger.info(f"Document deleted: {document_id}")
        return True


document_service = DocumentService()
