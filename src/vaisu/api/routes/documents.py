"""
Document API: upload, analysis, search, visualizations and deletion.

Every endpoint requires an authenticated user. Upload is subject to the
storage limit of the user's plan, analysis to the daily analysis limit.
Static paths (`/upload`, `/analyze`, `/search`, `/stats`) are declared
before `/{document_id}`.
"""

import re
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, Request, UploadFile

from vaisu.api.dependencies import (
    AuthenticatedUser,
    authenticate,
    check_analysis_limit,
    check_storage_limit,
    client_info,
)
from vaisu.api.rate_limit import rate_limit
from vaisu.core.config import settings
from vaisu.core.exceptions import (
    AnalysisRequiredError,
    ApiError,
    NotFoundError,
    UnknownVisualizationTypeError,
    VaisuError,
)
from vaisu.core.logging import get_logger
from vaisu.models.requests import AnalyzeRequest
from vaisu.repositories import audit_logs_repository, document_repository, usage_limits_repository
from vaisu.services.document_service import PASTED_TEXT_FILENAME, document_service

router = APIRouter(
    prefix="/api/documents",
    tags=["documents"],
    dependencies=[Depends(rate_limit)],
)

logger = get_logger()

ALLOWED_CONTENT_TYPES = (
    "text/plain",
    "application/pdf",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
)
ALLOWED_EXTENSIONS = re.compile(r"\.(txt|pdf|docx)$")

INVALID_FILE_TYPE = "Invalid file type. Only .txt, .pdf, and .docx files are allowed."
FILE_TOO_LARGE = "File too large. Maximum size is 1GB."


def is_allowed_file(filename: str, content_type: Optional[str]) -> bool:
    return content_type in ALLOWED_CONTENT_TYPES or bool(ALLOWED_EXTENSIONS.search(filename))


async def _json_text(request: Request) -> Optional[str]:
    if not request.headers.get("content-type", "").startswith("application/json"):
        return None
    try:
        body = await request.json()
    except ValueError:
        return None
    return body.get("text") if isinstance(body, dict) else None


@router.post("/upload")
async def upload_document(
    request: Request,
    file: Optional[UploadFile] = File(default=None),
    text: Optional[str] = Form(default=None),
    user: AuthenticatedUser = Depends(check_storage_limit),
):
    """Upload a .txt/.pdf/.docx file (multipart `file`) or pasted `text`."""
    if file is not None and file.filename:
        if not is_allowed_file(file.filename, file.content_type):
            raise ApiError(400, INVALID_FILE_TYPE)
        content = await file.read()
        if len(content) > settings.max_upload_size:
            raise ApiError(413, FILE_TOO_LARGE)
        filename = file.filename
    else:
        text = text or await _json_text(request)
        if not text:
            raise ApiError(400, "No file or text provided")
        content = text.encode("utf-8")
        filename = PASTED_TEXT_FILENAME

    try:
        document = await document_service.upload(content, filename, user.user_id)
    except ValueError as e:
        raise ApiError(400, str(e)) from e
    except VaisuError as e:
        logger.error(f"Upload error: {e}")
        raise ApiError(500, str(e) or "Failed to upload document") from e

    ip, user_agent = client_info(request)
    await audit_logs_repository.log_document_upload(
        user.user_id, document.id, filename, ip_address=ip, user_agent=user_agent
    )

    return {
        "documentId": document.id,
        "message": "Document uploaded successfully",
        "document": document.to_response(),
    }


@router.post("/analyze")
async def analyze_document(
    body: AnalyzeRequest,
    request: Request,
    user: AuthenticatedUser = Depends(check_analysis_limit),
):
    try:
        result = await document_service.analyze(
            user.user_id, document_id=body.document_id, text=body.text
        )
    except NotFoundError as e:
        raise ApiError(404, str(e)) from e
    except ValueError as e:
        raise ApiError(400, str(e)) from e
    except VaisuError as e:
        logger.error(f"Analysis error: {e}")
        raise ApiError(500, str(e) or "Failed to analyze document") from e

    await usage_limits_repository.increment_analysis_count(user.user_id)
    ip, user_agent = client_info(request)
    await audit_logs_repository.log_document_analysis(
        user.user_id,
        result["documentId"],
        "cached" if result["cached"] else "full",
        ip_address=ip,
        user_agent=user_agent,
    )
    return result


@router.get("/search")
async def search_documents(
    q: str = Query(default=""),
    user: AuthenticatedUser = Depends(authenticate),
):
    return await document_service.search(q, user.user_id)


@router.get("/stats")
async def document_stats(user: AuthenticatedUser = Depends(authenticate)):
    return await document_repository.get_stats_by_user_id(user.user_id)


@router.get("")
async def list_documents(
    limit: int = Query(default=50, ge=1, le=1000),
    offset: int = Query(default=0, ge=0),
    user: AuthenticatedUser = Depends(authenticate),
):
    return await document_service.list_documents(user.user_id, limit=limit, offset=offset)


@router.get("/{document_id}")
async def get_document(document_id: str, _: AuthenticatedUser = Depends(authenticate)):
    result = await document_service.get(document_id)
    if result is None:
        raise ApiError(404, "Document not found")
    return result


@router.delete("/{document_id}")
async def delete_document(document_id: str, user: AuthenticatedUser = Depends(authenticate)):
    owner = document_service.get_owner(document_id)
    if owner is None:
        record = await document_repository.find_by_id(document_id)
        owner = record.get("userId") if record else None
    if owner and owner != user.user_id and user.role != "admin":
        raise ApiError(403, "Access denied")

    if not await document_service.delete(document_id):
        raise ApiError(404, "Document not found")
    return {"message": "Document deleted successfully", "documentId": document_id}


@router.post("/{document_id}/visualizations/{visualization_type}")
async def generate_visualization(
    document_id: str,
    visualization_type: str,
    _: AuthenticatedUser = Depends(authenticate),
):
    logger.info(f"Visualization request: type={visualization_type}, documentId={document_id}")
    try:
        return await document_service.get_visualization(document_id, visualization_type)
    except (NotFoundError, AnalysisRequiredError) as e:
        raise ApiError(404, str(e)) from e
    except UnknownVisualizationTypeError as e:
        raise ApiError(400, str(e)) from e
    except VaisuError as e:
        logger.error(f"Visualization error: {e}")
        raise ApiError(500, str(e) or "Failed to generate visualization") from e


@router.get("/{document_id}/progress")
async def analysis_progress(document_id: str, _: AuthenticatedUser = Depends(authenticate)):
    return document_service.get_progress(document_id)


@router.get("/{document_id}/full")
async def get_full_document(document_id: str, _: AuthenticatedUser = Depends(authenticate)):
    result = await document_service.get_full(document_id)
    if result is None:
        raise ApiError(404, "Document not found")
    return result
