"""
Persisted record models.

Records are stored as JSON objects with camelCase keys. Every model accepts
both the alias and the field name, and `to_item()` produces the stored form.
"""

from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model with camelCase aliases."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )

    def to_item(self) -> dict[str, Any]:
        """Stored representation: camelCase keys, None values dropped."""
        return self.model_dump(by_alias=True, exclude_none=True)


class DocumentRecord(CamelModel):
    """Metadata of an uploaded and analyzed document."""

    document_id: str
    user_id: str
    content_hash: str
    filename: str
    s3_path: str
    s3_bucket: str
    s3_key: str
    content_type: str
    file_size: int
    word_count: int
    has_analysis: Optional[bool] = None
    uploaded_at: str
    last_accessed_at: str
    access_count: int = 0
    ttl: Optional[int] = None


class LLMMetadata(CamelModel):
    model: str
    tokens_used: int = 0
    processing_time: float = 0
    timestamp: str


class AnalysisRecord(CamelModel):
    """Analysis results of one document."""

    document_id: str
    analysis_version: str = "1.0"
    analysis: dict[str, Any]
    llm_metadata: LLMMetadata
    created_at: str


class VisualizationRecord(CamelModel):
    """Generated visualization data of one document for one type."""

    document_id: str
    visualization_type: str
    visualization_data: Any
    llm_metadata: LLMMetadata
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class KnowledgeGraphNodeMetadata(CamelModel):
    sources: list[str] = Field(default_factory=list)
    description: Optional[str] = None
    category: Optional[str] = None


class KnowledgeGraphNode(CamelModel):
    id: str
    document_id: str
    label: str
    entity_type: str
    confidence: float
    metadata: KnowledgeGraphNodeMetadata = Field(default_factory=KnowledgeGraphNodeMetadata)
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class KnowledgeGraphEdge(CamelModel):
    id: str
    document_id: str
    source_id: str
    target_id: str
    relation: str
    weight: float
    evidence: list[str] = Field(default_factory=list)
    relationship_type: str
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


UserStatus = Literal["active", "inactive", "suspended", "pending_verification"]
SubscriptionStatus = Literal["active", "canceled", "past_due", "incomplete", "trialing"]


class User(CamelModel):
    """User account."""

    user_id: str
    email: str
    first_name: str
    last_name: str
    profile_picture_url: Optional[str] = None
    role: Optional[str] = None
    password_hash: str
    status: UserStatus
    email_verified: bool
    verification_token: Optional[str] = None
    reset_token: Optional[str] = None
    reset_token_expiry: Optional[str] = None
    failed_login_attempts: int = 0
    locked_until: Optional[str] = None
    last_login: Optional[str] = None
    created_at: str
    updated_at: str
    deleted_at: Optional[str] = None
    subscription_provider: Optional[str] = None
    subscription_id: Optional[str] = None
    subscription_status: Optional[SubscriptionStatus] = None
    current_period_end: Optional[str] = None


class Session(CamelModel):
    """Refresh-token session of one device."""

    session_id: str
    user_id: str
    refresh_token: str
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    created_at: str
    expires_at: str
    revoked: bool = False


class UsageLimits(CamelModel):
    """Usage counters of one user for one period (`YYYY-MM` or `YYYY-MM-DD`)."""

    user_id: str
    period: str
    document_count: int = 0
    analysis_count: int = 0
    api_calls: int = 0
    storage_used: int = 0
    reset_date: str
    created_at: str
    updated_at: str


class UsageLimitConfig(CamelModel):
    max_documents: int = 100
    max_analyses: int = 500
    max_api_calls: int = 10000
    max_storage: int = 1024 * 1024 * 1024


class AuditLog(CamelModel):
    log_id: str
    user_id: str
    action: str
    resource_id: Optional[str] = None
    resource_type: Optional[str] = None
    details: Optional[dict[str, Any]] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    timestamp: str
